from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.labtrack.core.deps import get_current_token_data
from app.labtrack.db.session import get_db
from app.labtrack.routers.common import begin_idempotent, finish_idempotent, record_audit
from app.labtrack.routers.responses import aggregated_response, packing_slip_response, request_response
from app.labtrack.schemas.receiving import (
    AggregatedReceivedResponse,
    PackingSlipListResponse,
    ReceivedItemCorrectionRequest,
    ReceiveRequest,
)
from app.labtrack.schemas.requests import RequestResponse
from app.labtrack.services.notifications import get_notifier
from app.labtrack.services.packing_slips import PackingSlipService
from app.labtrack.services.reconciliation import ReceiptLine, ReconciliationService
from app.labtrack.services.requests import RequestService


router = APIRouter()


@router.post("/labtrack/requests/{request_id}/receipts", response_model=RequestResponse, status_code=201)
def receive(
    request_id: str,
    request: Request,
    payload: ReceiveRequest,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    replay = begin_idempotent(db, request, token_data, payload.model_dump(mode="json"))
    if replay is not None:
        return replay

    outcome = ReconciliationService(db, notifier).receive(
        request_id,
        [ReceiptLine(line_item_id=item.line_item_id, quantity=item.quantity) for item in payload.items],
        token_data,
        slip_number=payload.slip_number,
        slip_url=payload.slip_url,
    )
    response = request_response(outcome)
    body = response.model_dump(mode="json")
    finish_idempotent(request, status_code=201, response_body=body)
    record_audit(
        db,
        request,
        token_data,
        action="request.receive",
        entity_type="packing_slip",
        entity_id=response.packing_slip.id,
        after=body["packing_slip"],
        metadata={"request_id": response.id, "status_changed": response.status_changed},
    )
    return response


@router.get("/labtrack/requests/{request_id}/received", response_model=AggregatedReceivedResponse)
def aggregated_received(
    request_id: str,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    return aggregated_response(ReconciliationService(db, notifier).aggregated_received(request_id))


@router.get("/labtrack/requests/{request_id}/packing-slips", response_model=PackingSlipListResponse)
def list_packing_slips(
    request_id: str,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    RequestService(db, notifier).load(request_id)
    slips = PackingSlipService(db).list_slips(request_id)
    return PackingSlipListResponse(rows=[packing_slip_response(slip) for slip in slips])


@router.delete("/labtrack/packing-slips/{slip_id}", response_model=RequestResponse)
def delete_packing_slip(
    slip_id: str,
    request: Request,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    slips = PackingSlipService(db)
    before = packing_slip_response(slips.get_slip(slip_id)).model_dump(mode="json")
    owner = slips.delete_slip(slip_id, token_data)
    response = request_response(RequestService(db, notifier).get_request(owner.id))
    record_audit(
        db,
        request,
        token_data,
        action="packing_slip.delete",
        entity_type="packing_slip",
        entity_id=before["id"],
        before=before,
        metadata={"request_id": response.id, "inventory_reversed": False},
    )
    return response


@router.patch("/labtrack/received-items/{received_item_id}", response_model=RequestResponse)
def correct_received_item(
    received_item_id: str,
    request: Request,
    payload: ReceivedItemCorrectionRequest,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    outcome = ReconciliationService(db, notifier).correct_received_item(
        received_item_id, payload.quantity_received, token_data
    )
    response = request_response(outcome)
    record_audit(
        db,
        request,
        token_data,
        action="received_item.correct",
        entity_type="received_item",
        entity_id=received_item_id,
        after={"quantity_received": payload.quantity_received},
        metadata={"request_id": response.id, "warnings": response.warnings},
    )
    return response


@router.post("/labtrack/requests/{request_id}/revert-reception", response_model=RequestResponse)
def revert_reception(
    request_id: str,
    request: Request,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    replay = begin_idempotent(db, request, token_data, {"request_id": request_id})
    if replay is not None:
        return replay

    response = request_response(ReconciliationService(db, notifier).revert_reception(request_id, token_data))
    body = response.model_dump(mode="json")
    finish_idempotent(request, status_code=200, response_body=body)
    record_audit(
        db,
        request,
        token_data,
        action="request.reception.revert",
        entity_type="request",
        entity_id=response.id,
        before={"status": "Received"},
        after={"status": response.status.value},
    )
    return response
