"""initial procurement and receiving schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def upgrade() -> None:
    op.create_table(
        "requests",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("request_number", sa.String(length=50), nullable=True, unique=True),
        sa.Column("vendor_id", sa.String(length=64), nullable=False),
        sa.Column("requester_id", sa.String(length=64), nullable=False),
        sa.Column("account_manager_id", sa.String(length=64), nullable=True),
        sa.Column("shipping_address_id", sa.String(length=64), nullable=True),
        sa.Column("billing_address_id", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("quote_url", sa.String(length=500), nullable=True),
        sa.Column("po_url", sa.String(length=500), nullable=True),
        sa.Column("po_number", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("project_codes", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_requests_requester_id", "requests", ["requester_id"], unique=False)
    op.create_index("ix_requests_status", "requests", ["status"], unique=False)

    op.create_table(
        "request_line_items",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("request_id", GUID(), sa.ForeignKey("requests.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("catalog_number", sa.String(length=255), nullable=False),
        sa.Column("brand", sa.String(length=255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("format", sa.String(length=100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("link", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_request_line_items_request_id", "request_line_items", ["request_id"], unique=False)

    op.create_table(
        "packing_slips",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("request_id", GUID(), sa.ForeignKey("requests.id"), nullable=False),
        sa.Column("slip_number", sa.String(length=100), nullable=False),
        sa.Column("received_by", sa.String(length=64), nullable=False),
        sa.Column("received_at", sa.DateTime(), nullable=False),
        sa.Column("slip_url", sa.String(length=500), nullable=True),
    )
    op.create_index("ix_packing_slips_request_id", "packing_slips", ["request_id"], unique=False)

    op.create_table(
        "received_items",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("slip_id", GUID(), sa.ForeignKey("packing_slips.id"), nullable=False),
        sa.Column("request_item_id", GUID(), sa.ForeignKey("request_line_items.id"), nullable=False),
        sa.Column("quantity_received", sa.Integer(), nullable=False),
        sa.Column("received_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_received_items_slip_id", "received_items", ["slip_id"], unique=False)
    op.create_index("ix_received_items_request_item_id", "received_items", ["request_item_id"], unique=False)
    op.create_index(
        "ix_received_items_slip_line",
        "received_items",
        ["slip_id", "request_item_id"],
        unique=False,
    )

    op.create_table(
        "inventory_records",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("catalog_number", sa.String(length=255), nullable=False),
        sa.Column("brand", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("format", sa.String(length=100), nullable=True),
        sa.Column("added_at", sa.DateTime(), nullable=False),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("product_name", "catalog_number", "brand", name="uq_inventory_key"),
    )

    op.create_table(
        "inventory_movements",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("inventory_record_id", GUID(), sa.ForeignKey("inventory_records.id"), nullable=False),
        sa.Column("request_id", GUID(), nullable=True),
        sa.Column("slip_id", GUID(), nullable=True),
        sa.Column("received_item_id", GUID(), nullable=True),
        sa.Column("reason", sa.String(length=20), nullable=False),
        sa.Column("delta_requested", sa.Integer(), nullable=False),
        sa.Column("delta_applied", sa.Integer(), nullable=False),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_inventory_movements_inventory_record_id",
        "inventory_movements",
        ["inventory_record_id"],
        unique=False,
    )
    op.create_index("ix_inventory_movements_request_id", "inventory_movements", ["request_id"], unique=False)

    op.create_table(
        "idempotency_records",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("endpoint", sa.String(length=255), nullable=False),
        sa.Column("method", sa.String(length=10), nullable=False),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column("request_hash", sa.String(length=64), nullable=False),
        sa.Column("state", sa.String(length=20), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("actor_id", "endpoint", "method", "idempotency_key", name="uq_idempotency"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("trace_id", sa.String(length=100), nullable=True),
        sa.Column("before_payload", sa.JSON(), nullable=True),
        sa.Column("after_payload", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("result", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"], unique=False)
    op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_events_entity", table_name="audit_events")
    op.drop_index("ix_audit_events_actor_id", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("idempotency_records")
    op.drop_index("ix_inventory_movements_request_id", table_name="inventory_movements")
    op.drop_index("ix_inventory_movements_inventory_record_id", table_name="inventory_movements")
    op.drop_table("inventory_movements")
    op.drop_table("inventory_records")
    op.drop_index("ix_received_items_slip_line", table_name="received_items")
    op.drop_index("ix_received_items_request_item_id", table_name="received_items")
    op.drop_index("ix_received_items_slip_id", table_name="received_items")
    op.drop_table("received_items")
    op.drop_index("ix_packing_slips_request_id", table_name="packing_slips")
    op.drop_table("packing_slips")
    op.drop_index("ix_request_line_items_request_id", table_name="request_line_items")
    op.drop_table("request_line_items")
    op.drop_index("ix_requests_status", table_name="requests")
    op.drop_index("ix_requests_requester_id", table_name="requests")
    op.drop_table("requests")
