from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi.security import OAuth2PasswordBearer
from jose import jwt
from pydantic import BaseModel

from app.labtrack.core.config import settings

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/labtrack/auth/token")

REQUESTER = "REQUESTER"
ACCOUNT_MANAGER = "ACCOUNT_MANAGER"
ADMIN = "ADMIN"


class TokenData(BaseModel):
    """Identity claims issued by the external auth provider."""

    sub: str
    role: str = REQUESTER
    email: str | None = None


def normalize_role(role: str | None) -> str:
    return (role or "").strip().upper().replace(" ", "_")


def has_override_capability(role: str | None) -> bool:
    return normalize_role(role) in settings.override_roles


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
