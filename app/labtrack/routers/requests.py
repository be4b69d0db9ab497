from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from app.labtrack.core.deps import get_current_token_data
from app.labtrack.db.enums import RequestStatus
from app.labtrack.db.session import get_db
from app.labtrack.repos.requests import RequestQueryFilters
from app.labtrack.routers.common import record_audit
from app.labtrack.routers.responses import request_response, request_summary
from app.labtrack.schemas.requests import (
    LineItemUpdate,
    MergeRequestsRequest,
    PurchaseOrderRequest,
    QuoteAttachRequest,
    RequestCreateRequest,
    ReorderRequest,
    RequestListResponse,
    RequestResponse,
    RequestUpdateRequest,
    StatusTransitionRequest,
)
from app.labtrack.services.notifications import get_notifier
from app.labtrack.services.requests import RequestService


router = APIRouter()


@router.post("/labtrack/requests", response_model=RequestResponse, status_code=201)
def create_request(
    request: Request,
    payload: RequestCreateRequest,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    data = payload.model_dump(exclude={"items"})
    items = [item.model_dump() for item in payload.items]
    outcome = RequestService(db, notifier).create_request(data, items, token_data)
    response = request_response(outcome)
    record_audit(
        db,
        request,
        token_data,
        action="request.create",
        entity_type="request",
        entity_id=response.id,
        after=response.model_dump(mode="json"),
    )
    return response


@router.get("/labtrack/requests", response_model=RequestListResponse)
def list_requests(
    status: RequestStatus | None = Query(default=None),
    requester_id: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    filters = RequestQueryFilters(status=status, requester_id=requester_id, limit=limit)
    rows = RequestService(db, notifier).list_requests(filters)
    return RequestListResponse(rows=[request_summary(row) for row in rows])


@router.get("/labtrack/requests/{request_id}", response_model=RequestResponse)
def get_request(
    request_id: str,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    return request_response(RequestService(db, notifier).get_request(request_id))


@router.patch("/labtrack/requests/{request_id}", response_model=RequestResponse)
def update_request(
    request_id: str,
    request: Request,
    payload: RequestUpdateRequest,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    service = RequestService(db, notifier)
    before = request_response(service.get_request(request_id)).model_dump(mode="json")
    changes = payload.model_dump(exclude_unset=True)
    response = request_response(service.update_request(request_id, changes, token_data))
    record_audit(
        db,
        request,
        token_data,
        action="request.update",
        entity_type="request",
        entity_id=response.id,
        before=before,
        after=response.model_dump(mode="json"),
        metadata={"fields": sorted(changes)},
    )
    return response


@router.patch("/labtrack/requests/{request_id}/items/{item_id}", response_model=RequestResponse)
def update_line_item(
    request_id: str,
    item_id: str,
    request: Request,
    payload: LineItemUpdate,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    changes = payload.model_dump(exclude_unset=True)
    response = request_response(RequestService(db, notifier).update_line_item(request_id, item_id, changes, token_data))
    record_audit(
        db,
        request,
        token_data,
        action="request.line_item.update",
        entity_type="request_line_item",
        entity_id=item_id,
        after=payload.model_dump(mode="json", exclude_unset=True),
        metadata={"request_id": response.id},
    )
    return response


@router.post("/labtrack/requests/{request_id}/status", response_model=RequestResponse)
def transition_status(
    request_id: str,
    request: Request,
    payload: StatusTransitionRequest,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    service = RequestService(db, notifier)
    before_status = service.get_request(request_id).request.status
    outcome = service.transition_status(request_id, payload.status, token_data, override=payload.override)
    response = request_response(outcome)
    if outcome.status_changed:
        record_audit(
            db,
            request,
            token_data,
            action="request.status.override" if payload.override else "request.status.transition",
            entity_type="request",
            entity_id=response.id,
            before={"status": RequestStatus(before_status).value},
            after={"status": response.status.value},
            metadata={"warnings": response.warnings},
        )
    return response


@router.post("/labtrack/requests/{request_id}/quote", response_model=RequestResponse)
def attach_quote(
    request_id: str,
    request: Request,
    payload: QuoteAttachRequest,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    response = request_response(RequestService(db, notifier).attach_quote(request_id, payload.quote_url, token_data))
    record_audit(
        db,
        request,
        token_data,
        action="request.quote.attach",
        entity_type="request",
        entity_id=response.id,
        after={"quote_url": response.quote_url, "status": response.status.value},
    )
    return response


@router.post("/labtrack/requests/{request_id}/purchase-order", response_model=RequestResponse)
def record_purchase_order(
    request_id: str,
    request: Request,
    payload: PurchaseOrderRequest,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    outcome = RequestService(db, notifier).record_purchase_order(
        request_id, payload.po_number, token_data, po_url=payload.po_url
    )
    response = request_response(outcome)
    record_audit(
        db,
        request,
        token_data,
        action="request.purchase_order.record",
        entity_type="request",
        entity_id=response.id,
        after={"po_number": response.po_number, "po_url": response.po_url, "status": response.status.value},
    )
    return response


@router.post("/labtrack/requests/reorder", response_model=RequestResponse, status_code=201)
def reorder_from_inventory(
    request: Request,
    payload: ReorderRequest,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    data = payload.model_dump(exclude={"inventory_record_ids"})
    outcome = RequestService(db, notifier).reorder_from_inventory(payload.inventory_record_ids, data, token_data)
    response = request_response(outcome)
    record_audit(
        db,
        request,
        token_data,
        action="request.reorder",
        entity_type="request",
        entity_id=response.id,
        after=response.model_dump(mode="json"),
        metadata={"inventory_record_ids": payload.inventory_record_ids},
    )
    return response


@router.post("/labtrack/requests/{request_id}/merge", response_model=RequestResponse)
def merge_requests(
    request_id: str,
    request: Request,
    payload: MergeRequestsRequest,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    service = RequestService(db, notifier)
    before = request_response(service.get_request(request_id)).model_dump(mode="json")
    response = request_response(service.merge_requests(request_id, payload.target_request_id, token_data))
    record_audit(
        db,
        request,
        token_data,
        action="request.merge",
        entity_type="request",
        entity_id=request_id,
        before=before,
        after=response.model_dump(mode="json"),
        metadata={"target_request_id": response.id},
    )
    return response
