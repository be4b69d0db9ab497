from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select

from app.labtrack.db.enums import RequestStatus
from app.labtrack.db.models import PurchaseRequest, RequestLineItem


@dataclass(frozen=True)
class RequestQueryFilters:
    status: RequestStatus | None = None
    requester_id: str | None = None
    limit: int = 100


class RequestRepository:
    def __init__(self, db):
        self.db = db

    def get(self, request_id, *, for_update: bool = False) -> PurchaseRequest | None:
        query = select(PurchaseRequest).where(PurchaseRequest.id == request_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(query).scalars().first()

    def list_requests(self, filters: RequestQueryFilters) -> list[PurchaseRequest]:
        query = select(PurchaseRequest)
        if filters.status is not None:
            query = query.where(PurchaseRequest.status == filters.status)
        if filters.requester_id:
            query = query.where(PurchaseRequest.requester_id == filters.requester_id)
        query = query.order_by(PurchaseRequest.created_at.desc()).limit(filters.limit)
        return self.db.execute(query).scalars().all()

    def get_line_item(self, line_item_id, *, request_id=None) -> RequestLineItem | None:
        query = select(RequestLineItem).where(RequestLineItem.id == line_item_id)
        if request_id is not None:
            query = query.where(RequestLineItem.request_id == request_id)
        return self.db.execute(query).scalars().first()

    def latest_request_number(self, prefix: str) -> str | None:
        return self.db.execute(
            select(func.max(PurchaseRequest.request_number)).where(
                PurchaseRequest.request_number.like(f"{prefix}%")
            )
        ).scalar()
