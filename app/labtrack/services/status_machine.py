"""Request lifecycle transitions.

The transition table is the single authority for which status changes a
caller may request. ``Received`` is never requested directly: it is reached
when aggregation finds every line fully received (``promote_to_received``),
or through an administrative override.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from app.labtrack.core.error_catalog import AppError, ErrorCatalog
from app.labtrack.core.security import has_override_capability
from app.labtrack.db.enums import RequestStatus
from app.labtrack.db.models import PurchaseRequest


TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset(
        {RequestStatus.QUOTE_REQUESTED, RequestStatus.PO_REQUESTED, RequestStatus.DENIED}
    ),
    RequestStatus.QUOTE_REQUESTED: frozenset({RequestStatus.PO_REQUESTED, RequestStatus.DENIED}),
    RequestStatus.PO_REQUESTED: frozenset({RequestStatus.ORDERED, RequestStatus.CANCELLED}),
    RequestStatus.ORDERED: frozenset({RequestStatus.RECEIVED, RequestStatus.CANCELLED}),
    RequestStatus.RECEIVED: frozenset(),
    RequestStatus.DENIED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
}

# Reached only through aggregation, never by a caller on the normal path.
SYSTEM_ONLY_TARGETS = frozenset({RequestStatus.RECEIVED})

RECEIVABLE_STATUSES = frozenset({RequestStatus.ORDERED, RequestStatus.RECEIVED})

OVERRIDE_INTO_RECEIVED_WARNING = (
    "Request was marked Received by override; received quantities were not reconciled"
)


@dataclass
class TransitionDecision:
    previous: RequestStatus
    target: RequestStatus
    changed: bool
    warnings: list[str] = field(default_factory=list)


def _invalid(current: RequestStatus, target: RequestStatus, message: str) -> AppError:
    return AppError(
        ErrorCatalog.INVALID_TRANSITION,
        details={"message": message, "from": current.value, "to": target.value},
    )


def check_transition(
    request: PurchaseRequest,
    target: RequestStatus,
    *,
    override: bool = False,
    role: str | None = None,
) -> TransitionDecision:
    current = RequestStatus(request.status)
    if target == current:
        return TransitionDecision(previous=current, target=target, changed=False)

    if current == RequestStatus.RECEIVED:
        raise _invalid(
            current,
            target,
            "a Received request can only leave Received by reverting the reception",
        )

    if override:
        if not has_override_capability(role):
            raise AppError(
                ErrorCatalog.PERMISSION_DENIED,
                details={"message": "status override requires an admin or account manager role"},
            )
        warnings = [OVERRIDE_INTO_RECEIVED_WARNING] if target == RequestStatus.RECEIVED else []
        return TransitionDecision(previous=current, target=target, changed=True, warnings=warnings)

    if target in SYSTEM_ONLY_TARGETS:
        raise _invalid(current, target, "Received is reached by recording receipts for every line")
    if target not in TRANSITIONS[current]:
        raise _invalid(current, target, f"cannot move a request from {current.value} to {target.value}")
    if current == RequestStatus.PENDING and target == RequestStatus.PO_REQUESTED and not request.quote_url:
        raise _invalid(current, target, "attach a quote before requesting a purchase order")
    if target == RequestStatus.ORDERED and not request.po_number:
        raise _invalid(current, target, "record a PO number before marking the request as Ordered")
    return TransitionDecision(previous=current, target=target, changed=True)


def promote_to_received(request: PurchaseRequest) -> bool:
    """Drive a fully received request to Received; returns True when status changed."""
    if request.status == RequestStatus.RECEIVED:
        return False
    request.status = RequestStatus.RECEIVED
    return True


def ensure_receivable(request: PurchaseRequest) -> None:
    if request.status not in RECEIVABLE_STATUSES:
        raise AppError(
            ErrorCatalog.REQUEST_NOT_RECEIVABLE,
            details={
                "message": f"goods can only be received for Ordered requests, this one is {request.status.value}",
                "status": request.status.value,
            },
        )
