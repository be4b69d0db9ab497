from datetime import timedelta

from app.labtrack.core.security import create_access_token


def test_missing_token_is_rejected(client):
    response = client.get("/labtrack/requests")
    assert response.status_code == 401
    payload = response.json()
    assert payload["code"] == "UNAUTHORIZED"
    assert payload["trace_id"]


def test_invalid_token_is_rejected(client):
    response = client.get("/labtrack/requests", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_expired_token_is_rejected(client):
    token = create_access_token({"sub": "user-1", "role": "REQUESTER"}, expires_delta=timedelta(minutes=-1))
    response = client.get("/labtrack/requests", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_token_without_subject_is_rejected(client):
    token = create_access_token({"role": "ADMIN"})
    response = client.get("/labtrack/requests", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"
