import logging
from dataclasses import dataclass
from datetime import datetime

from app.labtrack.db.models import AuditEvent

logger = logging.getLogger(__name__)


@dataclass
class AuditEventPayload:
    actor_id: str
    action: str
    entity_type: str
    entity_id: str | None
    trace_id: str | None = None
    before: dict | None = None
    after: dict | None = None
    metadata: dict | None = None
    result: str = "success"


class AuditService:
    """Best-effort audit logging.

    Strategy: failures are logged and swallowed to avoid breaking request flows.
    Events are written after the business transaction has committed.
    """

    def __init__(self, db):
        self.db = db

    def record_event(self, payload: AuditEventPayload) -> None:
        try:
            event = AuditEvent(
                actor_id=payload.actor_id,
                action=payload.action,
                entity_type=payload.entity_type,
                entity_id=payload.entity_id,
                trace_id=payload.trace_id,
                before_payload=payload.before,
                after_payload=payload.after,
                event_metadata=dict(payload.metadata or {}),
                result=payload.result,
                created_at=datetime.utcnow(),
            )
            self.db.add(event)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception(
                "Failed to write audit event",
                extra={
                    "action": payload.action,
                    "trace_id": payload.trace_id,
                    "entity_id": payload.entity_id,
                },
            )
