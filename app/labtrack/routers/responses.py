from __future__ import annotations

from app.labtrack.db.models import InventoryMovement, InventoryRecord, PackingSlip, PurchaseRequest
from app.labtrack.schemas.inventory import InventoryMovementResponse, InventoryRecordResponse
from app.labtrack.schemas.receiving import AggregatedReceivedResponse, LineReceiptTotals
from app.labtrack.schemas.requests import (
    LineItemResponse,
    PackingSlipResponse,
    ReceivedItemResponse,
    RequestResponse,
    RequestSummary,
)
from app.labtrack.services.aggregation import remaining
from app.labtrack.services.requests import RequestOutcome


def _str_or_none(value) -> str | None:
    return str(value) if value is not None else None


def _float_or_none(value) -> float | None:
    return float(value) if value is not None else None


def packing_slip_response(slip: PackingSlip) -> PackingSlipResponse:
    return PackingSlipResponse(
        id=str(slip.id),
        request_id=str(slip.request_id),
        slip_number=slip.slip_number,
        received_by=slip.received_by,
        received_at=slip.received_at,
        slip_url=slip.slip_url,
        items=[
            ReceivedItemResponse(
                id=str(item.id),
                slip_id=str(item.slip_id),
                request_item_id=str(item.request_item_id),
                quantity_received=item.quantity_received,
                received_at=item.received_at,
            )
            for item in slip.items
        ],
    )


def request_response(outcome: RequestOutcome) -> RequestResponse:
    request = outcome.request
    items = []
    for line in request.items:
        received = outcome.totals.get(str(line.id), 0)
        items.append(
            LineItemResponse(
                id=str(line.id),
                position=line.position,
                product_name=line.product_name,
                catalog_number=line.catalog_number,
                brand=line.brand,
                quantity=line.quantity,
                unit_price=_float_or_none(line.unit_price),
                format=line.format,
                notes=line.notes,
                link=line.link,
                received_qty=received,
                remaining_qty=remaining(line, received),
            )
        )
    return RequestResponse(
        id=str(request.id),
        request_number=request.request_number,
        vendor_id=request.vendor_id,
        requester_id=request.requester_id,
        account_manager_id=request.account_manager_id,
        shipping_address_id=request.shipping_address_id,
        billing_address_id=request.billing_address_id,
        status=request.status,
        quote_url=request.quote_url,
        po_url=request.po_url,
        po_number=request.po_number,
        notes=request.notes,
        project_codes=list(request.project_codes or []),
        created_at=request.created_at,
        updated_at=request.updated_at,
        items=items,
        fully_received=outcome.fully_received,
        status_changed=outcome.status_changed,
        warnings=list(outcome.warnings),
        packing_slip=packing_slip_response(outcome.slip) if outcome.slip is not None else None,
    )


def request_summary(request: PurchaseRequest) -> RequestSummary:
    return RequestSummary(
        id=str(request.id),
        request_number=request.request_number,
        vendor_id=request.vendor_id,
        requester_id=request.requester_id,
        status=request.status,
        po_number=request.po_number,
        created_at=request.created_at,
        item_count=len(request.items),
    )


def aggregated_response(outcome: RequestOutcome) -> AggregatedReceivedResponse:
    lines = []
    for line in outcome.request.items:
        received = outcome.totals.get(str(line.id), 0)
        lines.append(
            LineReceiptTotals(
                line_item_id=str(line.id),
                product_name=line.product_name,
                ordered=line.quantity,
                received=received,
                remaining=remaining(line, received),
            )
        )
    return AggregatedReceivedResponse(
        request_id=str(outcome.request.id),
        status=outcome.request.status,
        fully_received=outcome.fully_received,
        lines=lines,
    )


def inventory_record_response(record: InventoryRecord) -> InventoryRecordResponse:
    return InventoryRecordResponse(
        id=str(record.id),
        product_name=record.product_name,
        catalog_number=record.catalog_number,
        brand=record.brand or None,
        quantity=record.quantity,
        unit_price=_float_or_none(record.unit_price),
        format=record.format,
        added_at=record.added_at,
        last_updated=record.last_updated,
    )


def inventory_movement_response(movement: InventoryMovement) -> InventoryMovementResponse:
    return InventoryMovementResponse(
        id=str(movement.id),
        inventory_record_id=str(movement.inventory_record_id),
        request_id=_str_or_none(movement.request_id),
        slip_id=_str_or_none(movement.slip_id),
        received_item_id=_str_or_none(movement.received_item_id),
        reason=movement.reason,
        delta_requested=movement.delta_requested,
        delta_applied=movement.delta_applied,
        quantity_after=movement.quantity_after,
        actor_id=movement.actor_id,
        created_at=movement.created_at,
    )
