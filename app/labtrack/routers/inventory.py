from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.labtrack.core.deps import get_current_token_data
from app.labtrack.core.error_catalog import AppError, ErrorCatalog
from app.labtrack.db.session import get_db
from app.labtrack.repos.inventory import InventoryRepository
from app.labtrack.routers.responses import inventory_movement_response, inventory_record_response
from app.labtrack.schemas.inventory import InventoryListResponse, InventoryMovementListResponse
from app.labtrack.services.unit_of_work import parse_id


router = APIRouter()


@router.get("/labtrack/inventory", response_model=InventoryListResponse)
def list_inventory(
    q: str | None = Query(default=None, max_length=255),
    limit: int = Query(default=200, ge=1, le=1000),
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
):
    rows = InventoryRepository(db).list_records(q, limit=limit)
    return InventoryListResponse(rows=[inventory_record_response(row) for row in rows])


@router.get("/labtrack/inventory/{record_id}/movements", response_model=InventoryMovementListResponse)
def list_inventory_movements(
    record_id: str,
    token_data=Depends(get_current_token_data),
    db=Depends(get_db),
):
    repo = InventoryRepository(db)
    record = repo.get(parse_id(record_id, entity="inventory record"))
    if record is None:
        raise AppError(
            ErrorCatalog.NOT_FOUND,
            details={"message": "inventory record not found", "record_id": record_id},
        )
    return InventoryMovementListResponse(
        record=inventory_record_response(record),
        rows=[inventory_movement_response(row) for row in repo.list_movements(record.id)],
    )
