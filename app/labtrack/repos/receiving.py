from __future__ import annotations

from sqlalchemy import func, select

from app.labtrack.db.models import PackingSlip, ReceivedItem


class ReceivingRepository:
    def __init__(self, db):
        self.db = db

    def get_slip(self, slip_id) -> PackingSlip | None:
        return self.db.execute(select(PackingSlip).where(PackingSlip.id == slip_id)).scalars().first()

    def list_slips(self, request_id) -> list[PackingSlip]:
        return (
            self.db.execute(
                select(PackingSlip)
                .where(PackingSlip.request_id == request_id)
                .order_by(PackingSlip.received_at.desc())
            )
            .scalars()
            .all()
        )

    def get_received_item(self, received_item_id) -> ReceivedItem | None:
        return (
            self.db.execute(select(ReceivedItem).where(ReceivedItem.id == received_item_id))
            .scalars()
            .first()
        )

    def list_received_items(self, request_id) -> list[ReceivedItem]:
        return (
            self.db.execute(
                select(ReceivedItem)
                .join(PackingSlip, PackingSlip.id == ReceivedItem.slip_id)
                .where(PackingSlip.request_id == request_id)
                .order_by(ReceivedItem.received_at)
            )
            .scalars()
            .all()
        )

    def count_slip_items(self, slip_id) -> int:
        return int(
            self.db.execute(
                select(func.count()).select_from(ReceivedItem).where(ReceivedItem.slip_id == slip_id)
            ).scalar_one()
        )

    def received_totals(self, request_id) -> dict[str, int]:
        query = (
            select(
                ReceivedItem.request_item_id,
                func.coalesce(func.sum(ReceivedItem.quantity_received), 0),
            )
            .join(PackingSlip, PackingSlip.id == ReceivedItem.slip_id)
            .where(PackingSlip.request_id == request_id)
            .group_by(ReceivedItem.request_item_id)
        )
        return {str(line_id): int(total or 0) for line_id, total in self.db.execute(query).all()}
