from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from app.labtrack.core.logging import log_json
from app.labtrack.core.metrics import metrics
from app.labtrack.db.enums import MovementReason
from app.labtrack.db.models import InventoryMovement, InventoryRecord, RequestLineItem
from app.labtrack.repos.inventory import InventoryKey, InventoryRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MovementAttribution:
    reason: MovementReason
    actor_id: str | None
    request_id: object = None
    slip_id: object = None
    received_item_id: object = None


class InventoryLedger:
    """Signed-delta upserts against inventory records.

    Each key is locked before its quantity is read, so concurrent deltas for
    the same key serialize. Quantities never go below zero: an over-large
    negative delta is clamped and the clamp is logged.
    """

    def __init__(self, db):
        self.db = db
        self.repo = InventoryRepository(db)

    def apply_line_delta(
        self,
        line: RequestLineItem,
        delta: int,
        attribution: MovementAttribution,
    ) -> InventoryMovement:
        key = InventoryKey.of(line.product_name, line.catalog_number, line.brand)
        return self.apply_delta(
            key,
            delta,
            attribution,
            unit_price=line.unit_price,
            format=line.format,
        )

    def apply_delta(
        self,
        key: InventoryKey,
        delta: int,
        attribution: MovementAttribution,
        *,
        unit_price=None,
        format: str | None = None,
    ) -> InventoryMovement:
        record = self.repo.get_by_key(key, for_update=True)
        if record is None:
            record = self._create_record(key, unit_price=unit_price, format=format)

        new_quantity = record.quantity + delta
        applied = delta
        if new_quantity < 0:
            applied = -record.quantity
            new_quantity = 0
            log_json(
                logger,
                {
                    "event": "inventory_clamped",
                    "inventory_key": key.as_dict(),
                    "reason": attribution.reason.value,
                    "delta_requested": delta,
                    "delta_applied": applied,
                    "request_id": attribution.request_id,
                },
                level=logging.WARNING,
            )
            metrics.increment_inventory_clamp(attribution.reason.value)

        record.quantity = new_quantity
        if delta > 0:
            if unit_price is not None:
                record.unit_price = unit_price
            if format:
                record.format = format
        record.last_updated = datetime.utcnow()

        movement = InventoryMovement(
            inventory_record_id=record.id,
            request_id=attribution.request_id,
            slip_id=attribution.slip_id,
            received_item_id=attribution.received_item_id,
            reason=attribution.reason.value,
            delta_requested=delta,
            delta_applied=applied,
            quantity_after=new_quantity,
            actor_id=attribution.actor_id,
            created_at=datetime.utcnow(),
        )
        self.db.add(movement)
        self.db.flush()
        return movement

    def _create_record(self, key: InventoryKey, *, unit_price=None, format: str | None = None) -> InventoryRecord:
        now = datetime.utcnow()
        try:
            with self.db.begin_nested():
                record = InventoryRecord(
                    product_name=key.product_name,
                    catalog_number=key.catalog_number,
                    brand=key.brand,
                    quantity=0,
                    unit_price=unit_price,
                    format=format,
                    added_at=now,
                    last_updated=now,
                )
                self.db.add(record)
        except IntegrityError:
            # Another transaction inserted the key first; take its row lock instead.
            record = self.repo.get_by_key(key, for_update=True)
            if record is None:
                raise
        return record
