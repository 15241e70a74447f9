"""Domain enumerations and state-transition rules."""

import enum


class OrderStatus(str, enum.Enum):
    PENDING_PICKUP = "pending_pickup"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    RETURNED = "returned"
    CANCELLED = "cancelled"


# State machine: maps current status -> set of valid next statuses
ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING_PICKUP: {OrderStatus.PICKED_UP, OrderStatus.CANCELLED},
    OrderStatus.PICKED_UP: {OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED},
    OrderStatus.IN_TRANSIT: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.RETURNED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED, OrderStatus.RETURNED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.RETURNED: set(),
    OrderStatus.CANCELLED: set(),
}

# Orders in these statuses may still be handed to a partner company
TRANSFERABLE_ORDER_STATUSES = {OrderStatus.PENDING_PICKUP, OrderStatus.PICKED_UP}

# Reaching one of these takes the parcel off its vehicle
UNLOADING_ORDER_STATUSES = {
    OrderStatus.DELIVERED,
    OrderStatus.RETURNED,
    OrderStatus.CANCELLED,
}


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PENDING = "pending"
    PAID = "paid"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    E_WALLET = "e_wallet"
    PERIODIC = "periodic"


class ParcelType(str, enum.Enum):
    FRAGILE = "fragile"
    ELECTRONICS = "electronics"
    FOOD = "food"
    COLD = "cold"
    DOCUMENT = "document"
    OTHER = "other"


class PhotoType(str, enum.Enum):
    BEFORE_DELIVERY = "before_delivery"
    AFTER_DELIVERY = "after_delivery"
    PARCEL_CONDITION = "parcel_condition"
    SIGNATURE = "signature"
    DAMAGE_PROOF = "damage_proof"


# ── COD ───────────────────────────────────────────────────────────────


class CodCollectionStatus(str, enum.Enum):
    PENDING = "pending"
    COLLECTED = "collected"
    FAILED = "failed"


class CodStatus(str, enum.Enum):
    PENDING_COLLECTION = "pending_collection"
    COLLECTED = "collected"
    SUBMITTED_TO_COMPANY = "submitted_to_company"
    RECEIVED_BY_COMPANY = "received_by_company"
    COMPLETED = "completed"
    FAILED = "failed"


COD_TRANSITIONS: dict[CodStatus, set[CodStatus]] = {
    CodStatus.PENDING_COLLECTION: {CodStatus.COLLECTED, CodStatus.FAILED},
    CodStatus.COLLECTED: {CodStatus.SUBMITTED_TO_COMPANY, CodStatus.FAILED},
    CodStatus.SUBMITTED_TO_COMPANY: {CodStatus.RECEIVED_BY_COMPANY},
    CodStatus.RECEIVED_BY_COMPANY: {CodStatus.COMPLETED},
    CodStatus.COMPLETED: set(),
    CodStatus.FAILED: set(),
}


class PayoutMethod(str, enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    E_WALLET = "e_wallet"


# ── Partnerships & transfers ──────────────────────────────────────────


class PartnershipLevel(str, enum.Enum):
    PREFERRED = "preferred"
    REGULAR = "regular"
    BACKUP = "backup"


# Lower rank is tried first when picking a transfer target
PARTNERSHIP_LEVEL_RANK: dict[PartnershipLevel, int] = {
    PartnershipLevel.PREFERRED: 0,
    PartnershipLevel.REGULAR: 1,
    PartnershipLevel.BACKUP: 2,
}


class TransferReason(str, enum.Enum):
    VEHICLE_FULL = "vehicle_full"
    ROUTE_UNAVAILABLE = "route_unavailable"
    EMERGENCY = "emergency"
    PARTNERSHIP = "partnership"
    OTHER = "other"


class TransferStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


TRANSFER_TRANSITIONS: dict[TransferStatus, set[TransferStatus]] = {
    TransferStatus.PENDING: {TransferStatus.ACCEPTED, TransferStatus.REJECTED},
    TransferStatus.ACCEPTED: set(),
    TransferStatus.REJECTED: set(),
}


# ── Vehicles ──────────────────────────────────────────────────────────


class VehicleType(str, enum.Enum):
    TRUCK = "truck"
    VAN = "van"
    MOTORBIKE = "motorbike"


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "available"
    IN_TRANSIT = "in_transit"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"
    OVERLOADED = "overloaded"
