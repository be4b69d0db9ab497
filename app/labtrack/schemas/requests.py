from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.labtrack.db.enums import RequestStatus


_LINE_ITEM_EXAMPLE = {
    "product_name": "Filter pipette tips 200uL",
    "catalog_number": "TF-200-R-S",
    "brand": "Axygen",
    "quantity": 10,
    "unit_price": 42.5,
    "format": "rack of 96",
}


class LineItemCreate(BaseModel):
    product_name: str = Field(min_length=1, max_length=255)
    catalog_number: str = Field(min_length=1, max_length=255)
    brand: str | None = Field(default=None, max_length=255)
    quantity: int = Field(ge=1)
    unit_price: Decimal | None = Field(default=None, ge=0)
    format: str | None = None
    notes: str | None = None
    link: str | None = None

    model_config = {"json_schema_extra": {"example": _LINE_ITEM_EXAMPLE}}


class LineItemUpdate(BaseModel):
    product_name: str | None = Field(default=None, min_length=1, max_length=255)
    catalog_number: str | None = Field(default=None, min_length=1, max_length=255)
    brand: str | None = Field(default=None, max_length=255)
    quantity: int | None = Field(default=None, ge=1)
    unit_price: Decimal | None = Field(default=None, ge=0)
    format: str | None = None
    notes: str | None = None
    link: str | None = None


class RequestCreateRequest(BaseModel):
    vendor_id: str
    requester_id: str | None = None
    account_manager_id: str | None = None
    shipping_address_id: str | None = None
    billing_address_id: str | None = None
    notes: str | None = None
    project_codes: list[str] = Field(default_factory=list)
    items: list[LineItemCreate] = Field(min_length=1)


class RequestUpdateRequest(BaseModel):
    vendor_id: str | None = None
    account_manager_id: str | None = None
    shipping_address_id: str | None = None
    billing_address_id: str | None = None
    notes: str | None = None
    project_codes: list[str] | None = None


class StatusTransitionRequest(BaseModel):
    status: RequestStatus
    override: bool = False


class QuoteAttachRequest(BaseModel):
    quote_url: str = Field(min_length=1, max_length=500)


class PurchaseOrderRequest(BaseModel):
    po_number: str = Field(min_length=1, max_length=100)
    po_url: str | None = Field(default=None, max_length=500)


class MergeRequestsRequest(BaseModel):
    target_request_id: str


class ReorderRequest(BaseModel):
    inventory_record_ids: list[str] = Field(min_length=1)
    vendor_id: str
    account_manager_id: str | None = None
    shipping_address_id: str | None = None
    billing_address_id: str | None = None
    notes: str | None = None
    project_codes: list[str] = Field(default_factory=list)


class LineItemResponse(BaseModel):
    id: str
    position: int
    product_name: str
    catalog_number: str
    brand: str | None
    quantity: int
    unit_price: float | None
    format: str | None
    notes: str | None
    link: str | None
    received_qty: int
    remaining_qty: int


class ReceivedItemResponse(BaseModel):
    id: str
    slip_id: str
    request_item_id: str
    quantity_received: int
    received_at: datetime


class PackingSlipResponse(BaseModel):
    id: str
    request_id: str
    slip_number: str
    received_by: str
    received_at: datetime
    slip_url: str | None
    items: list[ReceivedItemResponse]


class RequestResponse(BaseModel):
    id: str
    request_number: str | None
    vendor_id: str
    requester_id: str
    account_manager_id: str | None
    shipping_address_id: str | None
    billing_address_id: str | None
    status: RequestStatus
    quote_url: str | None
    po_url: str | None
    po_number: str | None
    notes: str | None
    project_codes: list[str]
    created_at: datetime
    updated_at: datetime | None
    items: list[LineItemResponse]
    fully_received: bool
    status_changed: bool = False
    warnings: list[str] = Field(default_factory=list)
    packing_slip: PackingSlipResponse | None = None


class RequestSummary(BaseModel):
    id: str
    request_number: str | None
    vendor_id: str
    requester_id: str
    status: RequestStatus
    po_number: str | None
    created_at: datetime
    item_count: int


class RequestListResponse(BaseModel):
    rows: list[RequestSummary]
