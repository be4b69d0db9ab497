from __future__ import annotations

import logging
from datetime import datetime

from app.labtrack.core.config import settings
from app.labtrack.core.error_catalog import AppError, ErrorCatalog
from app.labtrack.core.logging import log_json
from app.labtrack.core.security import TokenData
from app.labtrack.db.enums import RequestStatus
from app.labtrack.db.models import PackingSlip, PurchaseRequest
from app.labtrack.repos.inventory import InventoryKey
from app.labtrack.repos.receiving import ReceivingRepository
from app.labtrack.services.unit_of_work import parse_id, write_transaction

logger = logging.getLogger(__name__)


def default_slip_number(now: datetime | None = None) -> str:
    now = now or datetime.utcnow()
    return f"{settings.SLIP_NUMBER_PREFIX}-{now:%Y%m%d%H%M%S%f}"


class PackingSlipService:
    def __init__(self, db):
        self.db = db
        self.repo = ReceivingRepository(db)

    def create_slip(
        self,
        request: PurchaseRequest,
        *,
        actor_id: str,
        slip_number: str | None = None,
        slip_url: str | None = None,
    ) -> PackingSlip:
        """Add a slip to the caller's open transaction."""
        now = datetime.utcnow()
        slip = PackingSlip(
            request_id=request.id,
            slip_number=(slip_number or "").strip() or default_slip_number(now),
            received_by=actor_id,
            received_at=now,
            slip_url=slip_url,
        )
        self.db.add(slip)
        self.db.flush()
        return slip

    def list_slips(self, request_id) -> list[PackingSlip]:
        return self.repo.list_slips(parse_id(request_id, entity="request"))

    def get_slip(self, slip_id) -> PackingSlip:
        slip = self.repo.get_slip(parse_id(slip_id, entity="packing slip"))
        if slip is None:
            raise AppError(
                ErrorCatalog.NOT_FOUND,
                details={"message": "packing slip not found", "slip_id": str(slip_id)},
            )
        return slip

    def delete_slip(self, slip_id, actor: TokenData) -> PurchaseRequest:
        """Delete a slip and its received items without touching inventory.

        Slips of a Received request that still carry items are refused; those
        must be undone through a reception revert.
        """
        slip = self.get_slip(slip_id)
        context = {"operation": "delete_slip", "request_id": str(slip.request_id), "slip_id": str(slip.id)}
        with write_transaction(self.db, context):
            request = self.db.get(PurchaseRequest, slip.request_id, with_for_update=True, populate_existing=True)
            slip = self.get_slip(slip_id)
            item_count = self.repo.count_slip_items(slip.id)
            if request.status == RequestStatus.RECEIVED and item_count:
                raise AppError(
                    ErrorCatalog.SLIP_IN_USE,
                    details={
                        "message": "this slip is part of a completed reception; revert the reception instead",
                        "slip_id": str(slip.id),
                    },
                )
            untouched = sorted(
                {
                    InventoryKey.of(item.line_item.product_name, item.line_item.catalog_number, item.line_item.brand)
                    for item in slip.items
                    if item.quantity_received
                },
                key=lambda key: (key.product_name, key.catalog_number, key.brand),
            )
            self.db.delete(slip)
            request.updated_at = datetime.utcnow()
        if untouched:
            log_json(
                logger,
                {
                    "event": "packing_slip_deleted_without_reversal",
                    "request_id": str(request.id),
                    "slip_id": context["slip_id"],
                    "actor_id": actor.sub,
                    "inventory_keys": [key.as_dict() for key in untouched],
                },
                level=logging.WARNING,
            )
        return request
