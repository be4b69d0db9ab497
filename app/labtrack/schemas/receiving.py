from __future__ import annotations

from pydantic import BaseModel, Field

from app.labtrack.db.enums import RequestStatus
from app.labtrack.schemas.requests import PackingSlipResponse


class ReceiptLineRequest(BaseModel):
    line_item_id: str
    quantity: int


class ReceiveRequest(BaseModel):
    slip_number: str | None = Field(default=None, max_length=100)
    slip_url: str | None = Field(default=None, max_length=500)
    items: list[ReceiptLineRequest]

    model_config = {
        "json_schema_extra": {
            "example": {
                "slip_number": "DN-48812",
                "items": [{"line_item_id": "6f1c7f0e-3b55-4c52-9d1b-0f5f1c3a2e10", "quantity": 3}],
            }
        }
    }


class ReceivedItemCorrectionRequest(BaseModel):
    quantity_received: int


class LineReceiptTotals(BaseModel):
    line_item_id: str
    product_name: str
    ordered: int
    received: int
    remaining: int


class AggregatedReceivedResponse(BaseModel):
    request_id: str
    status: RequestStatus
    fully_received: bool
    lines: list[LineReceiptTotals]


class PackingSlipListResponse(BaseModel):
    rows: list[PackingSlipResponse]
