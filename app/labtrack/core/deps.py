from fastapi import Depends, Request
from jose import JWTError
from pydantic import ValidationError

from app.labtrack.core.error_catalog import AppError, ErrorCatalog
from app.labtrack.core.security import TokenData, decode_token, oauth2_scheme


def get_current_token_data(request: Request, token: str = Depends(oauth2_scheme)) -> TokenData:
    try:
        payload = decode_token(token)
        token_data = TokenData(**payload)
    except (JWTError, ValidationError, TypeError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc
    request.state.user_id = token_data.sub
    return token_data


__all__ = ["get_current_token_data"]
