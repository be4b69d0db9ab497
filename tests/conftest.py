import importlib
import os
from pathlib import Path

os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from alembic import command
from alembic.config import Config

from tests.db_utils import create_throwaway_postgres_database
from tests.labtrack_helpers import RecordingNotifier


def _setup_app(database_url: str):
    os.environ["DATABASE_URL"] = database_url

    import app.labtrack.core.config as config
    import app.labtrack.db.session as session
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)

    return main.create_app(), session


def _run_migrations(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


@pytest.fixture()
def client(tmp_path: Path):
    database_url = os.getenv("DATABASE_URL", "")
    cleanup = None

    if database_url.startswith("postgres"):
        database_url, cleanup = create_throwaway_postgres_database(database_url)
    else:
        db_path = tmp_path / "test.db"
        database_url = f"sqlite+pysqlite:///{db_path}"

    _run_migrations(database_url)
    app, session = _setup_app(database_url)

    with TestClient(app) as client:
        yield client

    session.engine.dispose()
    if cleanup:
        cleanup()


@pytest.fixture()
def db_session(client):
    from app.labtrack.db.session import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def notifier(client):
    from app.labtrack.services.notifications import get_notifier

    recorder = RecordingNotifier()
    client.app.dependency_overrides[get_notifier] = lambda: recorder
    yield recorder
    client.app.dependency_overrides.pop(get_notifier, None)
