"""Tracking codes and the customer-facing view of an order's progress."""

from __future__ import annotations

import secrets
import string
from datetime import datetime, timedelta
from typing import Optional

from .enums import OrderStatus

_ALPHABET = string.ascii_uppercase + string.digits

STATUS_NOTES: dict[OrderStatus, str] = {
    OrderStatus.PENDING_PICKUP: "Order created, waiting for pickup",
    OrderStatus.PICKED_UP: "Parcel picked up",
    OrderStatus.IN_TRANSIT: "Parcel in transit",
    OrderStatus.OUT_FOR_DELIVERY: "Parcel out for delivery",
    OrderStatus.DELIVERED: "Parcel delivered",
    OrderStatus.RETURNED: "Parcel returned to sender",
    OrderStatus.CANCELLED: "Order cancelled",
}

STATUS_DESCRIPTIONS: dict[OrderStatus, str] = {
    OrderStatus.PENDING_PICKUP: "Waiting for a driver to collect the parcel",
    OrderStatus.PICKED_UP: "The driver has collected the parcel",
    OrderStatus.IN_TRANSIT: "The parcel is on its way",
    OrderStatus.OUT_FOR_DELIVERY: "The parcel is out for delivery",
    OrderStatus.DELIVERED: "The parcel has been delivered",
    OrderStatus.RETURNED: "The parcel has been returned to the sender",
    OrderStatus.CANCELLED: "The order has been cancelled",
}


def generate_tracking_code(prefix: str, now: datetime, length: int = 6) -> str:
    """``<prefix><yyMMdd><random>`` e.g. ``CL2610184QZ7KD``."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(length))
    return f"{prefix}{now:%y%m%d}{suffix}"


def default_status_note(status: OrderStatus | str) -> str:
    return STATUS_NOTES.get(OrderStatus(status), "Status updated")


def describe_status(status: Optional[str]) -> str:
    try:
        return STATUS_DESCRIPTIONS[OrderStatus(status)]
    except ValueError:
        return "Unknown status"


def mask_name(name: Optional[str]) -> Optional[str]:
    """Keep first and last character: ``"Nguyen"`` -> ``"N****n"``."""
    if not name or len(name) <= 2:
        return name
    return name[0] + "*" * (len(name) - 2) + name[-1]


def estimated_delivery(
    status: OrderStatus | str,
    created_at: Optional[datetime],
    delivered_at: Optional[datetime],
    days: int,
) -> Optional[datetime]:
    if delivered_at is not None:
        return delivered_at
    if OrderStatus(status) == OrderStatus.CANCELLED or created_at is None:
        return None
    return created_at + timedelta(days=days)
