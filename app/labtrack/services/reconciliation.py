"""Receive, correct and revert operations.

Every operation locks the request row first, validates completely against
the aggregated received totals, and only then writes. Inventory keys are
locked in a stable order so two requests touching the same products cannot
deadlock each other. Notifications go out after commit.

SQLite ignores ``FOR UPDATE``; there the version counters on requests and
inventory records make the slower of two racing writers fail with
CONCURRENT_MODIFICATION instead of committing totals it validated against
stale data.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from app.labtrack.core.error_catalog import AppError, ErrorCatalog
from app.labtrack.core.logging import log_json
from app.labtrack.core.metrics import metrics
from app.labtrack.core.security import TokenData, has_override_capability
from app.labtrack.db.enums import MovementReason, RequestStatus
from app.labtrack.db.models import PurchaseRequest, ReceivedItem, RequestLineItem
from app.labtrack.repos.inventory import InventoryKey
from app.labtrack.repos.receiving import ReceivingRepository
from app.labtrack.services import status_machine
from app.labtrack.services.aggregation import aggregate_by_line_item, is_fully_received, remaining
from app.labtrack.services.inventory import InventoryLedger, MovementAttribution
from app.labtrack.services.notifications import (
    RECEPTION_REVERTED,
    REQUEST_RECEIVED,
    Notifier,
)
from app.labtrack.services.packing_slips import PackingSlipService
from app.labtrack.services.requests import RequestOutcome, RequestService, status_event
from app.labtrack.services.unit_of_work import parse_id, write_transaction

logger = logging.getLogger(__name__)

CORRECTION_ABSTAIN_WARNING = (
    "Request stays Received although a line is now short; revert the reception to reopen it"
)


@dataclass(frozen=True)
class ReceiptLine:
    line_item_id: str
    quantity: int


def _lock_order(line: RequestLineItem) -> tuple[str, str, str]:
    key = InventoryKey.of(line.product_name, line.catalog_number, line.brand)
    return key.product_name, key.catalog_number, key.brand


def _exceeds_ordered(line: RequestLineItem, quantity: int, total: int) -> AppError:
    left = remaining(line, total)
    return AppError(
        ErrorCatalog.EXCEEDS_ORDERED,
        details={
            "message": f"cannot receive {quantity} units of {line.product_name}, only {left} remain on order",
            "line_item_id": str(line.id),
            "ordered": line.quantity,
            "received": total,
            "remaining": left,
        },
    )


def _negative_result(line: RequestLineItem, total: int, new_total: int) -> AppError:
    return AppError(
        ErrorCatalog.NEGATIVE_RESULT,
        details={
            "message": f"{line.product_name} would drop to {new_total} received units; only {total} have been received",
            "line_item_id": str(line.id),
            "received": total,
        },
    )


class ReconciliationService:
    def __init__(self, db, notifier: Notifier | None = None):
        self.db = db
        self.requests = RequestService(db, notifier)
        self.notifier = self.requests.notifier
        self.slips = PackingSlipService(db)
        self.ledger = InventoryLedger(db)
        self.receiving = ReceivingRepository(db)

    def aggregated_received(self, request_id) -> RequestOutcome:
        return self.requests.get_request(request_id)

    def _load_received_item(self, item_id) -> ReceivedItem:
        item = self.receiving.get_received_item(item_id)
        if item is None:
            raise AppError(
                ErrorCatalog.NOT_FOUND,
                details={"message": "received item not found", "received_item_id": str(item_id)},
            )
        return item

    def _complete_if_received(self, request: PurchaseRequest) -> bool:
        self.db.flush()
        totals = aggregate_by_line_item(self.db, request.id, request.items)
        if request.status == RequestStatus.ORDERED and is_fully_received(request.items, totals):
            return status_machine.promote_to_received(request)
        return False

    def receive(
        self,
        request_id,
        items: list[ReceiptLine],
        actor: TokenData,
        *,
        slip_number: str | None = None,
        slip_url: str | None = None,
    ) -> RequestOutcome:
        context = {"operation": "receive", "request_id": str(request_id), "slip_id": None, "inventory_keys": []}
        with write_transaction(self.db, context):
            request = self.requests.load(request_id, for_update=True)
            status_machine.ensure_receivable(request)
            lines = {str(line.id): line for line in request.items}

            entries: list[tuple[RequestLineItem, int]] = []
            for item in items:
                if item.quantity == 0:
                    continue
                line = lines.get(str(parse_id(item.line_item_id, entity="line item")))
                if line is None:
                    raise AppError(
                        ErrorCatalog.NOT_FOUND,
                        details={
                            "message": "line item does not belong to this request",
                            "line_item_id": str(item.line_item_id),
                        },
                    )
                entries.append((line, item.quantity))
            if not entries:
                raise AppError(
                    ErrorCatalog.VALIDATION_ERROR,
                    details={"message": "enter a non-zero quantity for at least one item"},
                )

            running = aggregate_by_line_item(self.db, request.id, request.items)
            for line, quantity in entries:
                total = running[str(line.id)]
                new_total = total + quantity
                if quantity > 0 and new_total > line.quantity:
                    raise _exceeds_ordered(line, quantity, total)
                if new_total < 0:
                    raise _negative_result(line, total, new_total)
                running[str(line.id)] = new_total

            slip = self.slips.create_slip(
                request, actor_id=actor.sub, slip_number=slip_number, slip_url=slip_url
            )
            context["slip_id"] = str(slip.id)
            now = datetime.utcnow()
            rows = []
            for line, quantity in entries:
                row = ReceivedItem(
                    slip_id=slip.id,
                    request_item_id=line.id,
                    quantity_received=quantity,
                    received_at=now,
                )
                self.db.add(row)
                rows.append((row, line))
            self.db.flush()

            for row, line in sorted(rows, key=lambda pair: _lock_order(pair[1])):
                context["inventory_keys"].append(
                    InventoryKey.of(line.product_name, line.catalog_number, line.brand).as_dict()
                )
                self.ledger.apply_line_delta(
                    line,
                    row.quantity_received,
                    MovementAttribution(
                        reason=MovementReason.RECEIVE,
                        actor_id=actor.sub,
                        request_id=request.id,
                        slip_id=slip.id,
                        received_item_id=row.id,
                    ),
                )

            promoted = self._complete_if_received(request)
            request.updated_at = now

        metrics.increment_receipt(completed=promoted)
        log_json(
            logger,
            {
                "event": "receipt_recorded",
                "request_id": str(request.id),
                "slip_id": context["slip_id"],
                "items": len(entries),
                "completed": promoted,
                "actor_id": actor.sub,
            },
        )
        if promoted:
            self.notifier.dispatch(
                [status_event(REQUEST_RECEIVED, request, previous=RequestStatus.ORDERED, actor_id=actor.sub)]
            )
        return self.requests.outcome(request, status_changed=promoted, slip=slip)

    def correct_received_item(self, received_item_id, new_quantity: int, actor: TokenData) -> RequestOutcome:
        if new_quantity < 0:
            raise AppError(
                ErrorCatalog.NEGATIVE_RESULT,
                details={"message": "received quantity cannot be negative", "quantity": new_quantity},
            )
        item_id = parse_id(received_item_id, entity="received item")
        item = self._load_received_item(item_id)
        request_id = item.slip.request_id
        if item.quantity_received == new_quantity:
            return self.requests.get_request(request_id)

        warnings: list[str] = []
        promoted = False
        context = {"operation": "correct_received_item", "request_id": str(request_id), "slip_id": str(item.slip_id)}
        with write_transaction(self.db, context):
            request = self.requests.load(request_id, for_update=True)
            # Re-read under the request lock; a concurrent revert may have removed the row.
            self.db.expire(item)
            item = self._load_received_item(item_id)
            status_machine.ensure_receivable(request)

            delta = new_quantity - item.quantity_received
            line = item.line_item
            total = aggregate_by_line_item(self.db, request.id, request.items)[str(line.id)]
            new_total = total + delta
            if delta > 0 and new_total > line.quantity:
                raise _exceeds_ordered(line, delta, total)
            if new_total < 0:
                raise _negative_result(line, total, new_total)

            item.quantity_received = new_quantity
            context["inventory_keys"] = [InventoryKey.of(line.product_name, line.catalog_number, line.brand).as_dict()]
            self.ledger.apply_line_delta(
                line,
                delta,
                MovementAttribution(
                    reason=MovementReason.CORRECT,
                    actor_id=actor.sub,
                    request_id=request.id,
                    slip_id=item.slip_id,
                    received_item_id=item.id,
                ),
            )

            promoted = self._complete_if_received(request)
            if request.status == RequestStatus.RECEIVED and not promoted:
                totals = aggregate_by_line_item(self.db, request.id, request.items)
                if not is_fully_received(request.items, totals):
                    warnings.append(CORRECTION_ABSTAIN_WARNING)
                    log_json(
                        logger,
                        {
                            "event": "received_status_abstained",
                            "request_id": str(request.id),
                            "received_item_id": str(item.id),
                            "line_item_id": str(line.id),
                            "received": new_total,
                            "ordered": line.quantity,
                        },
                        level=logging.WARNING,
                    )
            request.updated_at = datetime.utcnow()

        if promoted:
            self.notifier.dispatch(
                [status_event(REQUEST_RECEIVED, request, previous=RequestStatus.ORDERED, actor_id=actor.sub)]
            )
        return self.requests.outcome(request, status_changed=promoted, warnings=warnings)

    def revert_reception(self, request_id, actor: TokenData) -> RequestOutcome:
        if not has_override_capability(actor.role):
            raise AppError(
                ErrorCatalog.PERMISSION_DENIED,
                details={"message": "reverting a reception requires an admin or account manager role"},
            )
        context = {"operation": "revert_reception", "request_id": str(request_id), "inventory_keys": []}
        with write_transaction(self.db, context):
            request = self.requests.load(request_id, for_update=True)
            if request.status != RequestStatus.RECEIVED:
                raise AppError(
                    ErrorCatalog.NOT_RECEIVED,
                    details={
                        "message": f"only Received requests can be reverted, this one is {request.status.value}",
                        "status": request.status.value,
                    },
                )

            received = self.receiving.list_received_items(request.id)
            for item in sorted(received, key=lambda row: _lock_order(row.line_item)):
                if not item.quantity_received:
                    continue
                line = item.line_item
                context["inventory_keys"].append(
                    InventoryKey.of(line.product_name, line.catalog_number, line.brand).as_dict()
                )
                self.ledger.apply_line_delta(
                    line,
                    -item.quantity_received,
                    MovementAttribution(
                        reason=MovementReason.REVERT,
                        actor_id=actor.sub,
                        request_id=request.id,
                        slip_id=item.slip_id,
                        received_item_id=item.id,
                    ),
                )

            for slip in self.receiving.list_slips(request.id):
                self.db.delete(slip)
            request.status = RequestStatus.ORDERED
            request.updated_at = datetime.utcnow()

        metrics.increment_reception_revert()
        log_json(
            logger,
            {
                "event": "reception_reverted",
                "request_id": str(request.id),
                "received_items": len(received),
                "actor_id": actor.sub,
            },
        )
        self.notifier.dispatch(
            [status_event(RECEPTION_REVERTED, request, previous=RequestStatus.RECEIVED, actor_id=actor.sub)]
        )
        return self.requests.outcome(request, status_changed=True)
