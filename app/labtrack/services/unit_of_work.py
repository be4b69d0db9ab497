from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from app.labtrack.core.error_catalog import AppError, ErrorCatalog
from app.labtrack.core.errors import is_lock_timeout
from app.labtrack.core.logging import log_json

logger = logging.getLogger(__name__)


def parse_id(value, *, entity: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise AppError(
            ErrorCatalog.NOT_FOUND,
            details={"message": f"{entity} not found", "id": str(value)},
        ) from exc


@contextmanager
def write_transaction(db, context: dict | None = None):
    """Commit once on success; roll back on any error.

    A versioned row written by someone else since it was read becomes
    CONCURRENT_MODIFICATION. Store failures other than lock timeouts become
    PARTIAL_FAILURE after the rollback. ``context`` is logged with the failure
    and may be filled in by the caller while the transaction runs.
    """
    context = context if context is not None else {}
    try:
        yield context
        db.commit()
    except AppError:
        db.rollback()
        raise
    except StaleDataError as exc:
        db.rollback()
        log_json(
            logger,
            {"event": "concurrent_modification", **context},
            level=logging.WARNING,
        )
        raise AppError(
            ErrorCatalog.CONCURRENT_MODIFICATION,
            details={
                "message": "the request changed while this operation ran; nothing was saved, reload and retry",
                "request_id": context.get("request_id"),
            },
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        if is_lock_timeout(exc):
            raise
        log_json(
            logger,
            {"event": "partial_failure", "error_class": exc.__class__.__name__, **context},
            level=logging.ERROR,
        )
        raise AppError(
            ErrorCatalog.PARTIAL_FAILURE,
            details={
                "message": "nothing was saved; retry, and contact support if the problem persists",
                "request_id": context.get("request_id"),
            },
        ) from exc
    except Exception:
        db.rollback()
        raise
