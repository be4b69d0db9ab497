from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_, select

from app.labtrack.db.models import InventoryMovement, InventoryRecord


@dataclass(frozen=True)
class InventoryKey:
    product_name: str
    catalog_number: str
    brand: str = ""

    @classmethod
    def of(cls, product_name: str, catalog_number: str, brand: str | None) -> "InventoryKey":
        return cls(
            product_name=product_name.strip(),
            catalog_number=catalog_number.strip(),
            brand=(brand or "").strip(),
        )

    def as_dict(self) -> dict:
        return {
            "product_name": self.product_name,
            "catalog_number": self.catalog_number,
            "brand": self.brand or None,
        }


class InventoryRepository:
    def __init__(self, db):
        self.db = db

    def get(self, record_id) -> InventoryRecord | None:
        return self.db.execute(select(InventoryRecord).where(InventoryRecord.id == record_id)).scalars().first()

    def get_by_key(self, key: InventoryKey, *, for_update: bool = False) -> InventoryRecord | None:
        query = select(InventoryRecord).where(
            InventoryRecord.product_name == key.product_name,
            InventoryRecord.catalog_number == key.catalog_number,
            InventoryRecord.brand == key.brand,
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(query).scalars().first()

    def list_records(self, q: str | None = None, *, limit: int = 200) -> list[InventoryRecord]:
        query = select(InventoryRecord)
        if q:
            pattern = f"%{q}%"
            query = query.where(
                or_(
                    InventoryRecord.product_name.ilike(pattern),
                    InventoryRecord.catalog_number.ilike(pattern),
                    InventoryRecord.brand.ilike(pattern),
                )
            )
        query = query.order_by(InventoryRecord.product_name, InventoryRecord.catalog_number).limit(limit)
        return self.db.execute(query).scalars().all()

    def list_movements(self, record_id) -> list[InventoryMovement]:
        return (
            self.db.execute(
                select(InventoryMovement)
                .where(InventoryMovement.inventory_record_id == record_id)
                .order_by(InventoryMovement.created_at)
            )
            .scalars()
            .all()
        )
