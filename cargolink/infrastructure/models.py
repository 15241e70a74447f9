"""
SQLAlchemy ORM models.

Tables
------
* ``transport_companies``  -- carriers using the platform
* ``drivers`` / ``routes`` -- owned by a company
* ``vehicles``             -- capacity-tracked fleet
* ``orders``               -- parcels, plus append-only ``order_status_history``
                              and ``order_photos``
* ``cod_transactions``     -- one per COD order; ``cod_submissions`` batches
                              a driver's hand-in
* ``company_partnerships`` -- directed company -> partner relationship
* ``order_transfers``      -- hand-off of an order to a partner

Status columns are plain strings at the storage layer (``native_enum=False``)
holding the lowercase enum values.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)

from .database import Base
from cargolink.domain.enums import (
    CodCollectionStatus,
    CodStatus,
    OrderStatus,
    ParcelType,
    PartnershipLevel,
    PaymentMethod,
    PaymentStatus,
    PayoutMethod,
    PhotoType,
    TransferReason,
    TransferStatus,
    VehicleStatus,
    VehicleType,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def StrEnum(enum_cls, length: int = 32) -> Enum:
    """Store the enum *value* in a VARCHAR column."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )


class TransportCompanyModel(Base):
    __tablename__ = "transport_companies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("transport_companies.id"), nullable=False)
    full_name = Column(String(200), nullable=False)
    phone = Column(String(20), nullable=True)
    license_number = Column(String(50), nullable=True)
    rating = Column(Numeric(3, 2), default=5)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_drivers_company", "company_id"),)


class RouteModel(Base):
    __tablename__ = "routes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("transport_companies.id"), nullable=False)
    route_name = Column(String(200), nullable=False)
    origin_province = Column(String(100), nullable=False)
    destination_province = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_routes_company", "company_id"),)


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("transport_companies.id"), nullable=False)
    license_plate = Column(String(20), unique=True, nullable=False)
    vehicle_type = Column(StrEnum(VehicleType), nullable=False)
    max_weight_kg = Column(Numeric(8, 2), nullable=False)
    max_volume_m3 = Column(Numeric(6, 2), nullable=True)
    current_weight_kg = Column(Numeric(8, 2), default=0, nullable=False)
    capacity_percentage = Column(Numeric(5, 2), default=0, nullable=False)
    overload_threshold = Column(Numeric(5, 2), default=95, nullable=False)
    allow_overload = Column(Boolean, default=False, nullable=False)
    current_status = Column(
        StrEnum(VehicleStatus), default=VehicleStatus.AVAILABLE, nullable=False
    )
    gps_enabled = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_vehicles_company", "company_id"),
        Index("idx_vehicles_status", "current_status"),
    )


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tracking_code = Column(String(50), unique=True, nullable=False)
    customer_id = Column(Integer, nullable=False)

    sender_name = Column(String(200), nullable=False)
    sender_phone = Column(String(20), nullable=False)
    sender_address = Column(Text, nullable=False)
    receiver_name = Column(String(200), nullable=False)
    receiver_phone = Column(String(20), nullable=False)
    receiver_address = Column(Text, nullable=False)
    receiver_province = Column(String(100), nullable=True)
    receiver_district = Column(String(100), nullable=True)

    parcel_type = Column(StrEnum(ParcelType), default=ParcelType.OTHER, nullable=False)
    weight_kg = Column(Numeric(8, 2), nullable=True)
    declared_value = Column(Numeric(15, 2), nullable=True)
    special_instructions = Column(Text, nullable=True)

    route_id = Column(Integer, ForeignKey("routes.id"), nullable=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)

    shipping_fee = Column(Numeric(12, 2), nullable=False)
    cod_amount = Column(Numeric(15, 2), default=0, nullable=False)
    payment_method = Column(StrEnum(PaymentMethod), nullable=False)
    payment_status = Column(
        StrEnum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False
    )
    paid_at = Column(DateTime(timezone=True), nullable=True)
    order_status = Column(
        StrEnum(OrderStatus), default=OrderStatus.PENDING_PICKUP, nullable=False
    )

    created_at = Column(DateTime(timezone=True), default=utcnow)
    pickup_scheduled_at = Column(DateTime(timezone=True), nullable=True)
    pickup_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_orders_status", "order_status"),
        Index("idx_orders_customer", "customer_id"),
        Index("idx_orders_driver", "driver_id"),
        Index("idx_orders_route", "route_id"),
        Index("idx_orders_created_at", "created_at"),
    )


class OrderStatusHistoryModel(Base):
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    old_status = Column(String(50), nullable=True)
    new_status = Column(String(50), nullable=False)
    updated_by = Column(Integer, nullable=True)
    location = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_history_order", "order_id"),)


class OrderPhotoModel(Base):
    __tablename__ = "order_photos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    photo_type = Column(StrEnum(PhotoType), nullable=False)
    photo_url = Column(String(500), nullable=False)
    file_name = Column(String(255), nullable=True)
    uploaded_by = Column(Integer, nullable=True)
    uploaded_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_photos_order", "order_id"),)


class CodSubmissionModel(Base):
    __tablename__ = "cod_submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    idempotency_key = Column(String(64), unique=True, nullable=False)
    transaction_count = Column(Integer, nullable=False)
    total_amount = Column(Numeric(15, 2), nullable=False)
    submitted_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_cod_submissions_driver", "driver_id"),)


class CodTransactionModel(Base):
    __tablename__ = "cod_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), unique=True, nullable=False)
    cod_amount = Column(Numeric(15, 2), nullable=False)

    # Driver leg
    collected_amount = Column(Numeric(15, 2), nullable=True)
    collected_by_driver = Column(Integer, ForeignKey("drivers.id"), nullable=True)
    collected_at = Column(DateTime(timezone=True), nullable=True)
    collection_status = Column(
        StrEnum(CodCollectionStatus),
        default=CodCollectionStatus.PENDING,
        nullable=False,
    )
    collection_proof_photo = Column(String(500), nullable=True)

    # Hand-in to the company
    submission_id = Column(Integer, ForeignKey("cod_submissions.id"), nullable=True)
    submitted_to_company = Column(Boolean, default=False, nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    submitted_amount = Column(Numeric(15, 2), nullable=True)
    company_received_by = Column(Integer, nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=True)
    company_fee = Column(Numeric(15, 2), nullable=True)
    adjustment_amount = Column(Numeric(15, 2), nullable=True)
    adjustment_reason = Column(Text, nullable=True)

    # Payout to the sender
    transferred_to_sender = Column(Boolean, default=False, nullable=False)
    transferred_at = Column(DateTime(timezone=True), nullable=True)
    transfer_method = Column(StrEnum(PayoutMethod), nullable=True)
    transfer_reference = Column(String(100), nullable=True)
    transfer_proof = Column(String(500), nullable=True)
    payout_amount = Column(Numeric(15, 2), nullable=True)

    overall_status = Column(
        StrEnum(CodStatus), default=CodStatus.PENDING_COLLECTION, nullable=False
    )
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_cod_driver", "collected_by_driver"),
        Index("idx_cod_status", "overall_status"),
        Index("idx_cod_submission", "submission_id"),
    )


class CompanyPartnershipModel(Base):
    __tablename__ = "company_partnerships"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey("transport_companies.id"), nullable=False)
    partner_company_id = Column(
        Integer, ForeignKey("transport_companies.id"), nullable=False
    )
    partnership_level = Column(
        StrEnum(PartnershipLevel), default=PartnershipLevel.REGULAR, nullable=False
    )
    commission_rate = Column(Numeric(5, 2), default=0, nullable=False)
    priority_order = Column(Integer, default=0, nullable=False)
    total_transferred_orders = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("company_id", "partner_company_id", name="uq_partnership"),
        Index("idx_partnerships_partner", "partner_company_id"),
    )


class OrderTransferModel(Base):
    __tablename__ = "order_transfers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    from_company_id = Column(
        Integer, ForeignKey("transport_companies.id"), nullable=False
    )
    to_company_id = Column(Integer, ForeignKey("transport_companies.id"), nullable=False)
    transfer_reason = Column(StrEnum(TransferReason), nullable=False)
    original_vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)
    new_vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)
    transferred_by = Column(Integer, nullable=False)
    transfer_fee = Column(Numeric(12, 2), nullable=True)
    commission_paid = Column(Numeric(12, 2), nullable=True)
    admin_notes = Column(Text, nullable=True)
    transfer_status = Column(
        StrEnum(TransferStatus), default=TransferStatus.PENDING, nullable=False
    )
    rejection_reason = Column(Text, nullable=True)
    decided_by = Column(Integer, nullable=True)
    transferred_at = Column(DateTime(timezone=True), default=utcnow)
    decided_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_transfers_order", "order_id"),
        Index("idx_transfers_from", "from_company_id"),
        Index("idx_transfers_to", "to_company_id"),
        Index("idx_transfers_status", "transfer_status"),
    )
