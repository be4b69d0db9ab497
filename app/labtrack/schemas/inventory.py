from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class InventoryRecordResponse(BaseModel):
    id: str
    product_name: str
    catalog_number: str
    brand: str | None
    quantity: int
    unit_price: float | None
    format: str | None
    added_at: datetime
    last_updated: datetime


class InventoryListResponse(BaseModel):
    rows: list[InventoryRecordResponse]


class InventoryMovementResponse(BaseModel):
    id: str
    inventory_record_id: str
    request_id: str | None
    slip_id: str | None
    received_item_id: str | None
    reason: str
    delta_requested: int
    delta_applied: int
    quantity_after: int
    actor_id: str | None
    created_at: datetime


class InventoryMovementListResponse(BaseModel):
    record: InventoryRecordResponse
    rows: list[InventoryMovementResponse]
