from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from app.labtrack.core.config import settings
from app.labtrack.core.error_catalog import AppError, ErrorCatalog
from app.labtrack.core.logging import log_json
from app.labtrack.core.security import TokenData
from app.labtrack.db.enums import RequestStatus
from app.labtrack.db.models import PackingSlip, PurchaseRequest, RequestLineItem
from app.labtrack.repos.inventory import InventoryRepository
from app.labtrack.repos.receiving import ReceivingRepository
from app.labtrack.repos.requests import RequestQueryFilters, RequestRepository
from app.labtrack.services import status_machine
from app.labtrack.services.aggregation import aggregate_by_line_item, is_fully_received
from app.labtrack.services.notifications import (
    STATUS_CHANGED,
    NotificationEvent,
    Notifier,
    get_notifier,
)
from app.labtrack.services.unit_of_work import parse_id, write_transaction

logger = logging.getLogger(__name__)

FULL_EDIT_FIELDS = frozenset({"vendor_id", "shipping_address_id", "billing_address_id"})
FULL_EDIT_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.PO_REQUESTED})
META_EDIT_FIELDS = frozenset({"account_manager_id", "notes", "project_codes"})
META_EDIT_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.QUOTE_REQUESTED})
LINE_ITEM_FIELDS = frozenset(
    {"product_name", "catalog_number", "brand", "quantity", "unit_price", "format", "notes", "link"}
)
REQUIRED_FIELDS = frozenset({"vendor_id", "product_name", "catalog_number", "quantity"})
QUOTE_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.QUOTE_REQUESTED, RequestStatus.PO_REQUESTED})
PURCHASE_ORDER_STATUSES = frozenset({RequestStatus.PO_REQUESTED, RequestStatus.ORDERED})
REQUEST_NUMBER_ATTEMPTS = 3
MERGEABLE_STATUSES = frozenset(
    {RequestStatus.PENDING, RequestStatus.QUOTE_REQUESTED, RequestStatus.PO_REQUESTED, RequestStatus.ORDERED}
)


def _reject_cleared_required(changes: dict) -> None:
    cleared = sorted(name for name in REQUIRED_FIELDS if name in changes and changes[name] is None)
    if cleared:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": f"{', '.join(cleared)} cannot be empty", "fields": cleared},
        )


@dataclass
class RequestOutcome:
    request: PurchaseRequest
    totals: dict[str, int]
    status_changed: bool = False
    warnings: list[str] = field(default_factory=list)
    slip: PackingSlip | None = None

    @property
    def fully_received(self) -> bool:
        return is_fully_received(self.request.items, self.totals)


def status_event(
    name: str,
    request: PurchaseRequest,
    *,
    previous: RequestStatus | None,
    actor_id: str | None,
    data: dict | None = None,
) -> NotificationEvent:
    return NotificationEvent(
        event=name,
        request_id=str(request.id),
        request_number=request.request_number,
        status=RequestStatus(request.status).value,
        previous_status=previous.value if previous is not None else None,
        actor_id=actor_id,
        data=data or {},
    )


class RequestService:
    def __init__(self, db, notifier: Notifier | None = None):
        self.db = db
        self.repo = RequestRepository(db)
        self.notifier = notifier or get_notifier()

    def load(self, request_id, *, for_update: bool = False) -> PurchaseRequest:
        request = self.repo.get(parse_id(request_id, entity="request"), for_update=for_update)
        if request is None:
            raise AppError(
                ErrorCatalog.NOT_FOUND,
                details={"message": "request not found", "request_id": str(request_id)},
            )
        return request

    def outcome(self, request: PurchaseRequest, **kwargs) -> RequestOutcome:
        self.db.refresh(request)
        totals = aggregate_by_line_item(self.db, request.id, request.items)
        return RequestOutcome(request=request, totals=totals, **kwargs)

    def get_request(self, request_id) -> RequestOutcome:
        return self.outcome(self.load(request_id))

    def list_requests(self, filters: RequestQueryFilters) -> list[PurchaseRequest]:
        return self.repo.list_requests(filters)

    def _next_request_number(self) -> str:
        prefix = f"{settings.REQUEST_NUMBER_PREFIX}-{datetime.utcnow():%Y%m%d}-"
        latest = self.repo.latest_request_number(prefix)
        sequence = 1
        if latest:
            sequence = int(latest.rsplit("-", 1)[1]) + 1
        return f"{prefix}{sequence:04d}"

    def create_request(self, data: dict, items: list[dict], actor: TokenData) -> RequestOutcome:
        if not items:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "a request needs at least one line item"},
            )
        for attempt in range(1, REQUEST_NUMBER_ATTEMPTS + 1):
            try:
                return self._insert_request(data, items, actor)
            except AppError as exc:
                if exc.error is not ErrorCatalog.CONCURRENT_MODIFICATION or attempt == REQUEST_NUMBER_ATTEMPTS:
                    raise
                log_json(logger, {"event": "request_number_retry", "attempt": attempt}, level=logging.WARNING)

    def _insert_request(self, data: dict, items: list[dict], actor: TokenData) -> RequestOutcome:
        with write_transaction(self.db, {"operation": "create_request"}):
            now = datetime.utcnow()
            request = PurchaseRequest(
                request_number=self._next_request_number(),
                requester_id=data.get("requester_id") or actor.sub,
                vendor_id=data["vendor_id"],
                account_manager_id=data.get("account_manager_id"),
                shipping_address_id=data.get("shipping_address_id"),
                billing_address_id=data.get("billing_address_id"),
                notes=data.get("notes"),
                project_codes=list(data.get("project_codes") or []),
                status=RequestStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            request.items = [
                RequestLineItem(position=index, created_at=now, **item) for index, item in enumerate(items)
            ]
            self.db.add(request)
            try:
                self.db.flush()
            except IntegrityError as exc:
                if "request_number" not in str(exc.orig):
                    raise
                raise AppError(
                    ErrorCatalog.CONCURRENT_MODIFICATION,
                    details={"message": "request number already taken; retry", "request_number": request.request_number},
                ) from exc
        return self.outcome(request)

    def update_request(self, request_id, changes: dict, actor: TokenData) -> RequestOutcome:
        _reject_cleared_required(changes)
        with write_transaction(self.db, {"operation": "update_request", "request_id": str(request_id)}):
            request = self.load(request_id, for_update=True)
            status = RequestStatus(request.status)
            blocked = sorted(
                name
                for name in changes
                if (name in FULL_EDIT_FIELDS and status not in FULL_EDIT_STATUSES)
                or (name in META_EDIT_FIELDS and status not in META_EDIT_STATUSES)
            )
            if blocked:
                raise AppError(
                    ErrorCatalog.REQUEST_NOT_EDITABLE,
                    details={
                        "message": f"{', '.join(blocked)} cannot be changed while the request is {status.value}",
                        "fields": blocked,
                        "status": status.value,
                    },
                )
            for name, value in changes.items():
                if name in FULL_EDIT_FIELDS | META_EDIT_FIELDS:
                    setattr(request, name, value)
            request.updated_at = datetime.utcnow()
        return self.outcome(request)

    def update_line_item(self, request_id, line_item_id, changes: dict, actor: TokenData) -> RequestOutcome:
        _reject_cleared_required(changes)
        with write_transaction(self.db, {"operation": "update_line_item", "request_id": str(request_id)}):
            request = self.load(request_id, for_update=True)
            line = self.repo.get_line_item(parse_id(line_item_id, entity="line item"), request_id=request.id)
            if line is None:
                raise AppError(
                    ErrorCatalog.NOT_FOUND,
                    details={"message": "line item not found on this request", "line_item_id": str(line_item_id)},
                )
            for name, value in changes.items():
                if name in LINE_ITEM_FIELDS:
                    setattr(line, name, value)
            request.updated_at = datetime.utcnow()
        return self.outcome(request)

    def transition_status(
        self,
        request_id,
        target: RequestStatus,
        actor: TokenData,
        *,
        override: bool = False,
    ) -> RequestOutcome:
        with write_transaction(self.db, {"operation": "transition_status", "request_id": str(request_id)}):
            request = self.load(request_id, for_update=True)
            decision = status_machine.check_transition(request, target, override=override, role=actor.role)
            if decision.changed:
                request.status = target
                request.updated_at = datetime.utcnow()
        if decision.changed:
            log_json(
                logger,
                {
                    "event": "status_changed",
                    "request_id": str(request.id),
                    "from": decision.previous.value,
                    "to": target.value,
                    "override": override,
                    "actor_id": actor.sub,
                },
            )
            self.notifier.dispatch(
                [status_event(STATUS_CHANGED, request, previous=decision.previous, actor_id=actor.sub)]
            )
        return self.outcome(request, status_changed=decision.changed, warnings=decision.warnings)

    def attach_quote(self, request_id, quote_url: str, actor: TokenData) -> RequestOutcome:
        with write_transaction(self.db, {"operation": "attach_quote", "request_id": str(request_id)}):
            request = self.load(request_id, for_update=True)
            previous = RequestStatus(request.status)
            if previous not in QUOTE_STATUSES:
                raise AppError(
                    ErrorCatalog.REQUEST_NOT_EDITABLE,
                    details={"message": f"a quote cannot be attached while the request is {previous.value}"},
                )
            request.quote_url = quote_url
            changed = previous == RequestStatus.QUOTE_REQUESTED
            if changed:
                request.status = RequestStatus.PO_REQUESTED
            request.updated_at = datetime.utcnow()
        if changed:
            self.notifier.dispatch([status_event(STATUS_CHANGED, request, previous=previous, actor_id=actor.sub)])
        return self.outcome(request, status_changed=changed)

    def record_purchase_order(
        self,
        request_id,
        po_number: str,
        actor: TokenData,
        *,
        po_url: str | None = None,
    ) -> RequestOutcome:
        with write_transaction(self.db, {"operation": "record_purchase_order", "request_id": str(request_id)}):
            request = self.load(request_id, for_update=True)
            previous = RequestStatus(request.status)
            if previous not in PURCHASE_ORDER_STATUSES:
                raise AppError(
                    ErrorCatalog.REQUEST_NOT_EDITABLE,
                    details={"message": f"a purchase order cannot be recorded while the request is {previous.value}"},
                )
            request.po_number = po_number
            if po_url is not None:
                request.po_url = po_url
            changed = previous == RequestStatus.PO_REQUESTED
            if changed:
                request.status = RequestStatus.ORDERED
            request.updated_at = datetime.utcnow()
        if changed:
            self.notifier.dispatch([status_event(STATUS_CHANGED, request, previous=previous, actor_id=actor.sub)])
        return self.outcome(request, status_changed=changed)

    def merge_requests(self, source_id, target_id, actor: TokenData) -> RequestOutcome:
        """Move every line of ``source_id`` onto ``target_id`` and delete the source.

        Both requests must share a vendor, be at most Ordered and have no
        packing slips.
        """
        source_key = parse_id(source_id, entity="request")
        target_key = parse_id(target_id, entity="request")
        if source_key == target_key:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "a request cannot be merged into itself"},
            )
        context = {"operation": "merge_requests", "request_id": str(target_key), "source_id": str(source_key)}
        with write_transaction(self.db, context):
            locked = {key: self.load(key, for_update=True) for key in sorted((source_key, target_key), key=str)}
            source, target = locked[source_key], locked[target_key]
            for request in (source, target):
                status = RequestStatus(request.status)
                has_slips = bool(ReceivingRepository(self.db).list_slips(request.id))
                if status not in MERGEABLE_STATUSES or has_slips:
                    reason = "has packing slips" if has_slips else f"is {status.value}"
                    raise AppError(
                        ErrorCatalog.REQUEST_NOT_EDITABLE,
                        details={
                            "message": f"request {request.request_number} {reason} and cannot be merged",
                            "request_id": str(request.id),
                        },
                    )
            if source.vendor_id != target.vendor_id:
                raise AppError(
                    ErrorCatalog.VALIDATION_ERROR,
                    details={"message": "only requests for the same vendor can be merged"},
                )
            offset = len(target.items)
            moved = list(source.items)
            for index, line in enumerate(moved):
                line.position = offset + index
                line.request = target
            self.db.delete(source)
            target.updated_at = datetime.utcnow()
        log_json(
            logger,
            {
                "event": "requests_merged",
                "request_id": str(target.id),
                "source_id": str(source_key),
                "source_number": source.request_number,
                "moved_items": len(moved),
                "actor_id": actor.sub,
            },
        )
        return self.outcome(target)

    def reorder_from_inventory(self, record_ids: list, data: dict, actor: TokenData) -> RequestOutcome:
        """Open a Pending request that re-buys the given inventory records."""
        inventory = InventoryRepository(self.db)
        records = []
        for record_id in dict.fromkeys(str(value) for value in record_ids):
            record = inventory.get(parse_id(record_id, entity="inventory record"))
            if record is None:
                raise AppError(
                    ErrorCatalog.NOT_FOUND,
                    details={"message": "inventory record not found", "inventory_record_id": record_id},
                )
            records.append(record)
        items = [
            {
                "product_name": record.product_name,
                "catalog_number": record.catalog_number,
                "brand": record.brand or None,
                "quantity": record.quantity if record.quantity > 0 else 1,
                "unit_price": record.unit_price,
                "format": record.format,
                "notes": f"Reordered from inventory (on hand: {record.quantity})",
            }
            for record in records
        ]
        data = {**data, "notes": data.get("notes") or f"Reorder generated for {len(items)} inventory items"}
        return self.create_request(data, items, actor)
