"""Initial schema: companies, fleet, orders, COD and transfers.

Status columns are VARCHAR holding lowercase enum values.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*names: str) -> list[sa.Column]:
    return [
        sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now())
        for name in names
    ]


def upgrade() -> None:
    # ── transport_companies ───────────────────────────────────────────
    op.create_table(
        "transport_companies",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps("created_at"),
    )

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "company_id",
            sa.Integer,
            sa.ForeignKey("transport_companies.id"),
            nullable=False,
        ),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("license_number", sa.String(50), nullable=True),
        sa.Column("rating", sa.Numeric(3, 2), server_default="5"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps("created_at"),
    )
    op.create_index("idx_drivers_company", "drivers", ["company_id"])

    # ── routes ────────────────────────────────────────────────────────
    op.create_table(
        "routes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "company_id",
            sa.Integer,
            sa.ForeignKey("transport_companies.id"),
            nullable=False,
        ),
        sa.Column("route_name", sa.String(200), nullable=False),
        sa.Column("origin_province", sa.String(100), nullable=False),
        sa.Column("destination_province", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps("created_at"),
    )
    op.create_index("idx_routes_company", "routes", ["company_id"])

    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "company_id",
            sa.Integer,
            sa.ForeignKey("transport_companies.id"),
            nullable=False,
        ),
        sa.Column("license_plate", sa.String(20), unique=True, nullable=False),
        sa.Column("vehicle_type", sa.String(32), nullable=False),
        sa.Column("max_weight_kg", sa.Numeric(8, 2), nullable=False),
        sa.Column("max_volume_m3", sa.Numeric(6, 2), nullable=True),
        sa.Column("current_weight_kg", sa.Numeric(8, 2), nullable=False, server_default="0"),
        sa.Column("capacity_percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("overload_threshold", sa.Numeric(5, 2), nullable=False, server_default="95"),
        sa.Column("allow_overload", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("current_status", sa.String(32), nullable=False, server_default="available"),
        sa.Column("gps_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps("created_at", "updated_at"),
        sa.CheckConstraint("max_weight_kg > 0", name="ck_vehicles_max_weight"),
        sa.CheckConstraint("current_weight_kg >= 0", name="ck_vehicles_weight"),
    )
    op.create_index("idx_vehicles_company", "vehicles", ["company_id"])
    op.create_index("idx_vehicles_status", "vehicles", ["current_status"])

    # ── orders ────────────────────────────────────────────────────────
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("tracking_code", sa.String(50), unique=True, nullable=False),
        sa.Column("customer_id", sa.Integer, nullable=False),
        sa.Column("sender_name", sa.String(200), nullable=False),
        sa.Column("sender_phone", sa.String(20), nullable=False),
        sa.Column("sender_address", sa.Text, nullable=False),
        sa.Column("receiver_name", sa.String(200), nullable=False),
        sa.Column("receiver_phone", sa.String(20), nullable=False),
        sa.Column("receiver_address", sa.Text, nullable=False),
        sa.Column("receiver_province", sa.String(100), nullable=True),
        sa.Column("receiver_district", sa.String(100), nullable=True),
        sa.Column("parcel_type", sa.String(32), nullable=False, server_default="other"),
        sa.Column("weight_kg", sa.Numeric(8, 2), nullable=True),
        sa.Column("declared_value", sa.Numeric(15, 2), nullable=True),
        sa.Column("special_instructions", sa.Text, nullable=True),
        sa.Column("route_id", sa.Integer, sa.ForeignKey("routes.id"), nullable=True),
        sa.Column("vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=True),
        sa.Column("shipping_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("cod_amount", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("payment_method", sa.String(32), nullable=False),
        sa.Column("payment_status", sa.String(32), nullable=False, server_default="unpaid"),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "order_status", sa.String(32), nullable=False, server_default="pending_pickup"
        ),
        *_timestamps("created_at"),
        sa.Column("pickup_scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pickup_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("updated_at"),
    )
    op.create_index("idx_orders_status", "orders", ["order_status"])
    op.create_index("idx_orders_customer", "orders", ["customer_id"])
    op.create_index("idx_orders_driver", "orders", ["driver_id"])
    op.create_index("idx_orders_route", "orders", ["route_id"])
    op.create_index("idx_orders_created_at", "orders", ["created_at"])

    # ── order_status_history / order_photos ───────────────────────────
    op.create_table(
        "order_status_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.Integer, sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("old_status", sa.String(50), nullable=True),
        sa.Column("new_status", sa.String(50), nullable=False),
        sa.Column("updated_by", sa.Integer, nullable=True),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps("created_at"),
    )
    op.create_index("idx_history_order", "order_status_history", ["order_id"])

    op.create_table(
        "order_photos",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.Integer, sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("photo_type", sa.String(32), nullable=False),
        sa.Column("photo_url", sa.String(500), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("uploaded_by", sa.Integer, nullable=True),
        *_timestamps("uploaded_at"),
    )
    op.create_index("idx_photos_order", "order_photos", ["order_id"])

    # ── cod_submissions / cod_transactions ────────────────────────────
    op.create_table(
        "cod_submissions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("idempotency_key", sa.String(64), unique=True, nullable=False),
        sa.Column("transaction_count", sa.Integer, nullable=False),
        sa.Column("total_amount", sa.Numeric(15, 2), nullable=False),
        *_timestamps("submitted_at"),
    )
    op.create_index("idx_cod_submissions_driver", "cod_submissions", ["driver_id"])

    op.create_table(
        "cod_transactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "order_id", sa.Integer, sa.ForeignKey("orders.id"), unique=True, nullable=False
        ),
        sa.Column("cod_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("collected_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column(
            "collected_by_driver", sa.Integer, sa.ForeignKey("drivers.id"), nullable=True
        ),
        sa.Column("collected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("collection_status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("collection_proof_photo", sa.String(500), nullable=True),
        sa.Column(
            "submission_id", sa.Integer, sa.ForeignKey("cod_submissions.id"), nullable=True
        ),
        sa.Column(
            "submitted_to_company", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("submitted_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column("company_received_by", sa.Integer, nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("company_fee", sa.Numeric(15, 2), nullable=True),
        sa.Column("adjustment_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column("adjustment_reason", sa.Text, nullable=True),
        sa.Column(
            "transferred_to_sender", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column("transferred_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transfer_method", sa.String(32), nullable=True),
        sa.Column("transfer_reference", sa.String(100), nullable=True),
        sa.Column("transfer_proof", sa.String(500), nullable=True),
        sa.Column("payout_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column(
            "overall_status",
            sa.String(32),
            nullable=False,
            server_default="pending_collection",
        ),
        sa.Column("notes", sa.Text, nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.CheckConstraint(
            "collected_amount IS NULL OR collected_amount <= cod_amount",
            name="ck_cod_collected_le_amount",
        ),
    )
    op.create_index("idx_cod_driver", "cod_transactions", ["collected_by_driver"])
    op.create_index("idx_cod_status", "cod_transactions", ["overall_status"])
    op.create_index("idx_cod_submission", "cod_transactions", ["submission_id"])

    # ── company_partnerships ──────────────────────────────────────────
    op.create_table(
        "company_partnerships",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "company_id",
            sa.Integer,
            sa.ForeignKey("transport_companies.id"),
            nullable=False,
        ),
        sa.Column(
            "partner_company_id",
            sa.Integer,
            sa.ForeignKey("transport_companies.id"),
            nullable=False,
        ),
        sa.Column(
            "partnership_level", sa.String(32), nullable=False, server_default="regular"
        ),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("priority_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "total_transferred_orders", sa.Integer, nullable=False, server_default="0"
        ),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_by", sa.Integer, nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.UniqueConstraint("company_id", "partner_company_id", name="uq_partnership"),
        sa.CheckConstraint(
            "company_id <> partner_company_id", name="ck_partnership_not_self"
        ),
        sa.CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 100",
            name="ck_partnership_rate",
        ),
    )
    op.create_index(
        "idx_partnerships_partner", "company_partnerships", ["partner_company_id"]
    )

    # ── order_transfers ───────────────────────────────────────────────
    op.create_table(
        "order_transfers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.Integer, sa.ForeignKey("orders.id"), nullable=False),
        sa.Column(
            "from_company_id",
            sa.Integer,
            sa.ForeignKey("transport_companies.id"),
            nullable=False,
        ),
        sa.Column(
            "to_company_id",
            sa.Integer,
            sa.ForeignKey("transport_companies.id"),
            nullable=False,
        ),
        sa.Column("transfer_reason", sa.String(32), nullable=False),
        sa.Column(
            "original_vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=True
        ),
        sa.Column("new_vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=True),
        sa.Column("transferred_by", sa.Integer, nullable=False),
        sa.Column("transfer_fee", sa.Numeric(12, 2), nullable=True),
        sa.Column("commission_paid", sa.Numeric(12, 2), nullable=True),
        sa.Column("admin_notes", sa.Text, nullable=True),
        sa.Column("transfer_status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column("decided_by", sa.Integer, nullable=True),
        *_timestamps("transferred_at"),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_transfers_order", "order_transfers", ["order_id"])
    op.create_index("idx_transfers_from", "order_transfers", ["from_company_id"])
    op.create_index("idx_transfers_to", "order_transfers", ["to_company_id"])
    op.create_index("idx_transfers_status", "order_transfers", ["transfer_status"])


def downgrade() -> None:
    op.drop_table("order_transfers")
    op.drop_table("company_partnerships")
    op.drop_table("cod_transactions")
    op.drop_table("cod_submissions")
    op.drop_table("order_photos")
    op.drop_table("order_status_history")
    op.drop_table("orders")
    op.drop_table("vehicles")
    op.drop_table("routes")
    op.drop_table("drivers")
    op.drop_table("transport_companies")
