"""
Vehicle capacity arithmetic
===========================

Capacity_Percentage = Current_Weight_kg / Max_Weight_kg x 100   (2 dp)

A vehicle is **overloaded** iff its capacity percentage is strictly above
its overload threshold and the admin has not set ``allow_overload``.
Leaving the overloaded band returns the vehicle to ``available``; any other
status (in_transit, maintenance, ...) is left untouched by load changes.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal

from .enums import VehicleStatus

ZERO = Decimal("0")
HUNDRED = Decimal("100")
PCT = Decimal("0.01")


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def capacity_percentage(current_weight_kg, max_weight_kg) -> Decimal:
    max_kg = _dec(max_weight_kg)
    if max_kg <= 0:
        return Decimal("0.00")
    return (_dec(current_weight_kg) / max_kg * HUNDRED).quantize(
        PCT, rounding=ROUND_HALF_UP
    )


def is_overloaded(percentage, threshold, allow_overload: bool) -> bool:
    return _dec(percentage) > _dec(threshold) and not allow_overload


def derive_status(
    current: VehicleStatus | str, percentage, threshold, allow_overload: bool
) -> VehicleStatus:
    current = VehicleStatus(current)
    if is_overloaded(percentage, threshold, allow_overload):
        return VehicleStatus.OVERLOADED
    if current == VehicleStatus.OVERLOADED:
        return VehicleStatus.AVAILABLE
    return current


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class VehicleLoad:
    """Snapshot of a vehicle's load; every mutation returns a new snapshot."""

    max_weight_kg: Decimal
    current_weight_kg: Decimal = ZERO
    overload_threshold: Decimal = Decimal("95")
    allow_overload: bool = False
    status: VehicleStatus = VehicleStatus.AVAILABLE

    @property
    def percentage(self) -> Decimal:
        return capacity_percentage(self.current_weight_kg, self.max_weight_kg)

    @property
    def overloaded(self) -> bool:
        return is_overloaded(
            self.percentage, self.overload_threshold, self.allow_overload
        )

    def can_accommodate(self, weight_kg) -> bool:
        projected = capacity_percentage(
            self.current_weight_kg + _dec(weight_kg), self.max_weight_kg
        )
        return self.allow_overload or projected <= _dec(self.overload_threshold)

    def _with_weight(self, new_weight: Decimal) -> "VehicleLoad":
        pct = capacity_percentage(new_weight, self.max_weight_kg)
        status = derive_status(
            self.status, pct, self.overload_threshold, self.allow_overload
        )
        return replace(self, current_weight_kg=new_weight, status=status)

    def add(self, weight_kg) -> "VehicleLoad":
        return self._with_weight(self.current_weight_kg + _dec(weight_kg))

    def remove(self, weight_kg) -> "VehicleLoad":
        return self._with_weight(max(ZERO, self.current_weight_kg - _dec(weight_kg)))

    def reset(self) -> "VehicleLoad":
        return self._with_weight(ZERO)

    def recalculated(self) -> "VehicleLoad":
        """Re-derive status after the limits (max weight, threshold) change."""
        return self._with_weight(self.current_weight_kg)
