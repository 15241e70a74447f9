"""Pydantic request / response schemas for the REST API.

Money and weights come in as ``Decimal`` and go out as ``float``.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

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


# ── Orders: requests ──────────────────────────────────────────────────


class OrderCreateRequest(BaseModel):
    customer_id: int
    sender_name: str = Field(..., max_length=200)
    sender_phone: str = Field(..., max_length=20)
    sender_address: str
    receiver_name: str = Field(..., max_length=200)
    receiver_phone: str = Field(..., max_length=20)
    receiver_address: str
    receiver_province: Optional[str] = Field(None, max_length=100)
    receiver_district: Optional[str] = Field(None, max_length=100)
    parcel_type: ParcelType = ParcelType.OTHER
    weight_kg: Optional[Decimal] = Field(None, gt=0)
    declared_value: Optional[Decimal] = Field(None, ge=0)
    special_instructions: Optional[str] = None
    cod_amount: Decimal = Field(Decimal("0"), ge=0)
    payment_method: PaymentMethod
    route_id: Optional[int] = None
    pickup_scheduled_at: Optional[datetime] = None


class OrderUpdateRequest(BaseModel):
    sender_name: Optional[str] = Field(None, max_length=200)
    sender_phone: Optional[str] = Field(None, max_length=20)
    sender_address: Optional[str] = None
    receiver_name: Optional[str] = Field(None, max_length=200)
    receiver_phone: Optional[str] = Field(None, max_length=20)
    receiver_address: Optional[str] = None
    receiver_province: Optional[str] = None
    receiver_district: Optional[str] = None
    parcel_type: Optional[ParcelType] = None
    weight_kg: Optional[Decimal] = Field(None, gt=0)
    declared_value: Optional[Decimal] = Field(None, ge=0)
    special_instructions: Optional[str] = None
    cod_amount: Optional[Decimal] = Field(None, ge=0)
    route_id: Optional[int] = None
    pickup_scheduled_at: Optional[datetime] = None


class OrderStatusUpdateRequest(BaseModel):
    new_status: OrderStatus
    user_id: int
    notes: Optional[str] = None
    photo_url: Optional[str] = Field(None, max_length=500)
    location: Optional[str] = Field(None, max_length=200)


class OrderCancelRequest(BaseModel):
    user_id: int
    reason: Optional[str] = None


class OrderAssignRequest(BaseModel):
    driver_id: int
    vehicle_id: int
    assigned_by: int
    notes: Optional[str] = None


class OrderUnassignRequest(BaseModel):
    user_id: int


class OrderPhotoCreateRequest(BaseModel):
    photo_type: PhotoType
    photo_url: str = Field(..., max_length=500)
    file_name: Optional[str] = Field(None, max_length=255)
    uploaded_by: Optional[int] = None


class ShippingFeeRequest(BaseModel):
    weight_kg: Optional[Decimal] = Field(None, gt=0)
    cod_amount: Optional[Decimal] = Field(None, ge=0)


# ── Orders: responses ─────────────────────────────────────────────────


class OrderResponse(BaseModel):
    id: int
    tracking_code: str
    customer_id: int
    sender_name: str
    sender_phone: str
    sender_address: str
    receiver_name: str
    receiver_phone: str
    receiver_address: str
    receiver_province: Optional[str] = None
    receiver_district: Optional[str] = None
    parcel_type: ParcelType
    weight_kg: Optional[float] = None
    declared_value: Optional[float] = None
    special_instructions: Optional[str] = None
    route_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    driver_id: Optional[int] = None
    shipping_fee: float
    cod_amount: float
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    paid_at: Optional[datetime] = None
    order_status: OrderStatus
    created_at: Optional[datetime] = None
    pickup_scheduled_at: Optional[datetime] = None
    pickup_confirmed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    page: int
    page_size: int


class OrderHistoryResponse(BaseModel):
    id: int
    order_id: int
    old_status: Optional[str] = None
    new_status: str
    updated_by: Optional[int] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OrderPhotoResponse(BaseModel):
    id: int
    order_id: int
    photo_type: PhotoType
    photo_url: str
    file_name: Optional[str] = None
    uploaded_by: Optional[int] = None
    uploaded_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ShippingFeeResponse(BaseModel):
    base_fee: float
    weight_fee: float
    cod_fee: float
    total_fee: float

    model_config = {"from_attributes": True}


class TrackingEventResponse(BaseModel):
    status: str
    description: str
    notes: Optional[str] = None
    location: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TrackingResponse(BaseModel):
    tracking_code: str
    status: str
    status_description: str
    receiver_name: Optional[str] = None
    receiver_province: Optional[str] = None
    created_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    estimated_delivery: Optional[datetime] = None
    events: list[TrackingEventResponse] = []

    model_config = {"from_attributes": True}


# ── COD ───────────────────────────────────────────────────────────────


class CodCreateRequest(BaseModel):
    order_id: int
    notes: Optional[str] = None


class CodCollectRequest(BaseModel):
    order_id: int
    driver_id: int
    amount: Optional[Decimal] = Field(
        None, description="Defaults to the order's full COD amount."
    )
    proof_photo_url: Optional[str] = Field(None, max_length=500)


class CodSubmitRequest(BaseModel):
    driver_id: int
    transaction_ids: list[int] = Field(..., min_length=1)
    idempotency_key: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Client-generated UUID so a retried hand-in is not applied twice.",
    )
    declared_total: Optional[Decimal] = Field(None, ge=0)


class CodReceiveRequest(BaseModel):
    received_by: int


class CodAdjustRequest(BaseModel):
    amount: Decimal
    reason: str


class CodPayoutRequest(BaseModel):
    method: PayoutMethod
    reference: Optional[str] = Field(None, max_length=100)
    proof: Optional[str] = Field(None, max_length=500)


class CodFailRequest(BaseModel):
    reason: str


class CodTransactionResponse(BaseModel):
    id: int
    order_id: int
    cod_amount: float
    collected_amount: Optional[float] = None
    collected_by_driver: Optional[int] = None
    collected_at: Optional[datetime] = None
    collection_status: CodCollectionStatus
    collection_proof_photo: Optional[str] = None
    submission_id: Optional[int] = None
    submitted_to_company: bool
    submitted_at: Optional[datetime] = None
    submitted_amount: Optional[float] = None
    company_received_by: Optional[int] = None
    received_at: Optional[datetime] = None
    company_fee: Optional[float] = None
    adjustment_amount: Optional[float] = None
    adjustment_reason: Optional[str] = None
    transferred_to_sender: bool
    transferred_at: Optional[datetime] = None
    transfer_method: Optional[PayoutMethod] = None
    transfer_reference: Optional[str] = None
    payout_amount: Optional[float] = None
    overall_status: CodStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CodSubmissionResponse(BaseModel):
    id: int
    driver_id: int
    idempotency_key: str
    transaction_count: int
    total_amount: float
    submitted_at: Optional[datetime] = None
    replayed: bool = False
    transactions: list[CodTransactionResponse] = []


class DriverPendingCodResponse(BaseModel):
    driver_id: int
    transaction_count: int
    total_amount: float
    transactions: list[CodTransactionResponse] = []

    model_config = {"from_attributes": True}


class DriverReconciliationResponse(BaseModel):
    driver_id: int
    collected_count: int
    collected_amount: float
    submitted_count: int
    submitted_amount: float
    variance: float

    model_config = {"from_attributes": True}


class CodReconciliationResponse(BaseModel):
    company_id: int
    day: date
    drivers: list[DriverReconciliationResponse] = []
    total_collected: float
    total_submitted: float
    total_variance: float

    model_config = {"from_attributes": True}


class CodStatusTotal(BaseModel):
    count: int
    amount: float


class CodDashboardResponse(BaseModel):
    company_id: Optional[int] = None
    total_transactions: int
    by_status: dict[str, CodStatusTotal]
    outstanding_amount: float
    paid_out_amount: float


# ── Partnerships & transfers ──────────────────────────────────────────


class PartnershipCreateRequest(BaseModel):
    company_id: int
    partner_company_id: int
    partnership_level: PartnershipLevel = PartnershipLevel.REGULAR
    commission_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    priority_order: int = Field(0, ge=0)
    notes: Optional[str] = None
    created_by: Optional[int] = None


class PartnershipUpdateRequest(BaseModel):
    partnership_level: Optional[PartnershipLevel] = None
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    priority_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class PartnershipResponse(BaseModel):
    id: int
    company_id: int
    partner_company_id: int
    partnership_level: PartnershipLevel
    commission_rate: float
    priority_order: int
    total_transferred_orders: int
    is_active: bool
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PartnershipStatisticsResponse(BaseModel):
    partnership_id: int
    company_id: int
    partner_company_id: int
    total_transferred_orders: int
    transfers_by_status: dict[str, int]
    total_commission: float


class TransferCreateRequest(BaseModel):
    order_id: int
    to_company_id: Optional[int] = Field(
        None, description="Omit to hand the order to the best available partner."
    )
    transfer_reason: TransferReason
    transferred_by: int
    original_vehicle_id: Optional[int] = None
    admin_notes: Optional[str] = None


class TransferAcceptRequest(BaseModel):
    company_id: int
    user_id: int
    vehicle_id: Optional[int] = None


class TransferRejectRequest(BaseModel):
    company_id: int
    user_id: int
    reason: Optional[str] = None


class TransferResponse(BaseModel):
    id: int
    order_id: int
    from_company_id: int
    to_company_id: int
    transfer_reason: TransferReason
    original_vehicle_id: Optional[int] = None
    new_vehicle_id: Optional[int] = None
    transferred_by: int
    transfer_fee: Optional[float] = None
    commission_paid: Optional[float] = None
    admin_notes: Optional[str] = None
    transfer_status: TransferStatus
    rejection_reason: Optional[str] = None
    decided_by: Optional[int] = None
    transferred_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ── Vehicles ──────────────────────────────────────────────────────────


class VehicleCreateRequest(BaseModel):
    company_id: int
    license_plate: str = Field(..., max_length=20)
    vehicle_type: VehicleType
    max_weight_kg: Decimal = Field(..., gt=0)
    max_volume_m3: Optional[Decimal] = Field(None, gt=0)
    overload_threshold: Optional[Decimal] = Field(None, gt=0, le=100)
    allow_overload: bool = False
    gps_enabled: bool = False


class VehicleUpdateRequest(BaseModel):
    license_plate: Optional[str] = Field(None, max_length=20)
    vehicle_type: Optional[VehicleType] = None
    max_weight_kg: Optional[Decimal] = Field(None, gt=0)
    max_volume_m3: Optional[Decimal] = Field(None, gt=0)
    overload_threshold: Optional[Decimal] = Field(None, gt=0, le=100)
    allow_overload: Optional[bool] = None
    gps_enabled: Optional[bool] = None


class VehicleWeightRequest(BaseModel):
    weight_kg: Decimal = Field(..., gt=0)


class VehicleStatusRequest(BaseModel):
    status: VehicleStatus


class VehicleResponse(BaseModel):
    id: int
    company_id: int
    license_plate: str
    vehicle_type: VehicleType
    max_weight_kg: float
    max_volume_m3: Optional[float] = None
    current_weight_kg: float
    capacity_percentage: float
    overload_threshold: float
    allow_overload: bool
    current_status: VehicleStatus
    gps_enabled: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class LoadReportResponse(BaseModel):
    vehicle_id: int
    old_weight_kg: float
    new_weight_kg: float
    max_weight_kg: float
    capacity_percentage: float
    overload_threshold: float
    status: VehicleStatus
    is_overloaded: bool
    can_take_more: bool

    model_config = {"from_attributes": True}


class CapacityCheckResponse(BaseModel):
    vehicle_id: int
    weight_kg: float
    can_accommodate: bool


# ── Admin ─────────────────────────────────────────────────────────────


class OrderStatisticsResponse(BaseModel):
    total_orders: int
    by_status: dict[str, int]
    orders_today: int
    revenue_today: float
    revenue_this_month: float


class StatisticsResponse(BaseModel):
    orders: OrderStatisticsResponse
    vehicles: dict[str, int]
    cod: CodDashboardResponse


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
