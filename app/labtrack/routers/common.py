from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from app.labtrack.core.error_catalog import ErrorCatalog
from app.labtrack.core.security import TokenData
from app.labtrack.services.audit import AuditEventPayload, AuditService
from app.labtrack.services.idempotency import REPLAY_HEADER, IdempotencyService, extract_idempotency_key


def trace_id(request: Request) -> str | None:
    return getattr(request.state, "trace_id", "") or None


def record_audit(
    db,
    request: Request,
    token_data: TokenData,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None,
    before: dict | None = None,
    after: dict | None = None,
    metadata: dict | None = None,
) -> None:
    AuditService(db).record_event(
        AuditEventPayload(
            actor_id=token_data.sub,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            trace_id=trace_id(request),
            before=before,
            after=after,
            metadata={"actor_role": token_data.role, **(metadata or {})},
        )
    )


def begin_idempotent(db, request: Request, token_data: TokenData, payload: dict) -> JSONResponse | None:
    """Register an optional Idempotency-Key; returns the stored response on replay."""
    idempotency_key = extract_idempotency_key(request.headers)
    if idempotency_key is None:
        return None
    context, replay = IdempotencyService(db).start(
        actor_id=token_data.sub,
        endpoint=str(request.url.path),
        method=request.method,
        idempotency_key=idempotency_key,
        request_hash=IdempotencyService.fingerprint(payload),
    )
    if replay:
        return JSONResponse(
            status_code=replay.status_code,
            content=replay.response_body,
            headers={REPLAY_HEADER: ErrorCatalog.IDEMPOTENCY_REPLAY.code},
        )
    request.state.idempotency = context
    return None


def finish_idempotent(request: Request, *, status_code: int, response_body: dict) -> None:
    context = getattr(request.state, "idempotency", None)
    if context is not None:
        context.record_success(status_code=status_code, response_body=response_body)
