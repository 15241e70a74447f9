"""
Vehicle capacity tracking
=========================

Every load change goes through :meth:`VehicleService.add_weight` /
:meth:`VehicleService.remove_weight`, which lock the vehicle row, apply the
change to a :class:`~cargolink.domain.capacity.VehicleLoad` snapshot and
write back weight, capacity percentage and derived status together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cargolink.config import settings
from cargolink.domain.capacity import VehicleLoad, derive_status
from cargolink.domain.enums import VehicleStatus, VehicleType
from cargolink.domain.errors import (
    InvalidArgumentError,
    InvalidOperationError,
    NotFoundError,
)
from cargolink.infrastructure.models import VehicleModel
from cargolink.infrastructure.repositories import CompanyRepository, VehicleRepository

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {
    "license_plate",
    "vehicle_type",
    "max_weight_kg",
    "max_volume_m3",
    "overload_threshold",
    "allow_overload",
    "gps_enabled",
}


def _kg(value) -> Decimal:
    return Decimal(str(value or 0))


def load_of(vehicle: VehicleModel) -> VehicleLoad:
    return VehicleLoad(
        max_weight_kg=_kg(vehicle.max_weight_kg),
        current_weight_kg=_kg(vehicle.current_weight_kg),
        overload_threshold=_kg(vehicle.overload_threshold),
        allow_overload=bool(vehicle.allow_overload),
        status=VehicleStatus(vehicle.current_status or VehicleStatus.AVAILABLE),
    )


def fits(vehicle: VehicleModel, weight_kg) -> bool:
    return load_of(vehicle).can_accommodate(weight_kg)


@dataclass
class LoadReport:
    vehicle_id: int
    old_weight_kg: Decimal
    new_weight_kg: Decimal
    max_weight_kg: Decimal
    capacity_percentage: Decimal
    overload_threshold: Decimal
    status: VehicleStatus
    is_overloaded: bool
    can_take_more: bool


class VehicleService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.vehicles = VehicleRepository(session)

    # ── CRUD ──────────────────────────────────────────────────────────

    async def create(
        self,
        *,
        company_id: int,
        license_plate: str,
        vehicle_type: VehicleType,
        max_weight_kg: Decimal,
        max_volume_m3: Optional[Decimal] = None,
        overload_threshold: Optional[Decimal] = None,
        allow_overload: bool = False,
        gps_enabled: bool = False,
    ) -> VehicleModel:
        if await CompanyRepository(self.session).get_by_id(company_id) is None:
            raise NotFoundError("Company", company_id)
        if _kg(max_weight_kg) <= 0:
            raise InvalidArgumentError("max_weight_kg must be greater than 0")
        threshold = _kg(
            settings.default_overload_threshold
            if overload_threshold is None
            else overload_threshold
        )
        self._check_threshold(threshold)
        if await self.vehicles.get_by_plate(license_plate) is not None:
            raise InvalidOperationError(
                f"Vehicle with license plate {license_plate} already exists"
            )

        vehicle = VehicleModel(
            company_id=company_id,
            license_plate=license_plate,
            vehicle_type=VehicleType(vehicle_type),
            max_weight_kg=_kg(max_weight_kg),
            max_volume_m3=max_volume_m3,
            current_weight_kg=Decimal("0"),
            capacity_percentage=Decimal("0"),
            overload_threshold=threshold,
            allow_overload=allow_overload,
            current_status=VehicleStatus.AVAILABLE,
            gps_enabled=gps_enabled,
        )
        await self.vehicles.add(vehicle)
        logger.info("Vehicle %s (%s) created for company %s", vehicle.id, license_plate, company_id)
        return vehicle

    async def get(self, vehicle_id: int) -> VehicleModel:
        vehicle = await self.vehicles.get_by_id(vehicle_id)
        if vehicle is None:
            raise NotFoundError("Vehicle", vehicle_id)
        return vehicle

    async def list(
        self,
        company_id: Optional[int] = None,
        status: Optional[VehicleStatus] = None,
    ) -> list[VehicleModel]:
        return await self.vehicles.search(
            company_id=company_id, statuses=[status] if status else None
        )

    async def update(self, vehicle_id: int, **changes) -> VehicleModel:
        vehicle = await self._locked(vehicle_id)
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        plate = changes.get("license_plate")
        if plate and plate != vehicle.license_plate:
            if await self.vehicles.get_by_plate(plate) is not None:
                raise InvalidOperationError(
                    f"Vehicle with license plate {plate} already exists"
                )
        if "max_weight_kg" in changes and _kg(changes["max_weight_kg"]) <= 0:
            raise InvalidArgumentError("max_weight_kg must be greater than 0")
        if changes.get("overload_threshold") is not None:
            self._check_threshold(_kg(changes["overload_threshold"]))

        for field, value in changes.items():
            if value is not None:
                setattr(vehicle, field, value)

        self._apply(vehicle, load_of(vehicle).recalculated())
        await self.session.flush()
        return vehicle

    async def deactivate(self, vehicle_id: int) -> VehicleModel:
        vehicle = await self._locked(vehicle_id)
        vehicle.current_status = VehicleStatus.INACTIVE
        await self.session.flush()
        logger.info("Vehicle %s deactivated", vehicle_id)
        return vehicle

    # ── Load ──────────────────────────────────────────────────────────

    async def add_weight(self, vehicle_id: int, weight_kg) -> LoadReport:
        self._check_weight(weight_kg)
        vehicle = await self._locked(vehicle_id)
        return await self._change_load(vehicle, load_of(vehicle).add(weight_kg))

    async def remove_weight(self, vehicle_id: int, weight_kg) -> LoadReport:
        self._check_weight(weight_kg)
        vehicle = await self._locked(vehicle_id)
        return await self._change_load(vehicle, load_of(vehicle).remove(weight_kg))

    async def reset_load(self, vehicle_id: int) -> LoadReport:
        vehicle = await self._locked(vehicle_id)
        return await self._change_load(vehicle, load_of(vehicle).reset())

    async def can_accommodate(self, vehicle_id: int, weight_kg) -> bool:
        self._check_weight(weight_kg)
        return fits(await self.get(vehicle_id), weight_kg)

    async def set_status(self, vehicle_id: int, status: VehicleStatus) -> VehicleModel:
        status = VehicleStatus(status)
        if status == VehicleStatus.OVERLOADED:
            raise InvalidOperationError(
                "Status overloaded is derived from the load and cannot be set"
            )
        vehicle = await self._locked(vehicle_id)
        if status == VehicleStatus.AVAILABLE:
            # Still above threshold -> stays overloaded
            load = load_of(vehicle)
            status = derive_status(
                status, load.percentage, load.overload_threshold, load.allow_overload
            )
        vehicle.current_status = status
        await self.session.flush()
        logger.info("Vehicle %s status set to %s", vehicle_id, vehicle.current_status.value)
        return vehicle

    # ── Queries ───────────────────────────────────────────────────────

    async def available_for_weight(
        self, weight_kg, company_id: Optional[int] = None
    ) -> list[VehicleModel]:
        """Available vehicles able to take *weight_kg*, least-loaded first."""
        return [
            v for v in await self.vehicles.available(company_id) if fits(v, weight_kg)
        ]

    async def overloaded(self, company_id: Optional[int] = None) -> list[VehicleModel]:
        return await self.vehicles.search(
            company_id=company_id, statuses=[VehicleStatus.OVERLOADED]
        )

    async def count_by_status(self, company_id: Optional[int] = None) -> dict[str, int]:
        counts = await self.vehicles.count_by_status(company_id)
        return {s.value: counts.get(s, 0) for s in VehicleStatus}

    # ── Internals ─────────────────────────────────────────────────────

    async def _locked(self, vehicle_id: int) -> VehicleModel:
        vehicle = await self.vehicles.get_for_update(vehicle_id)
        if vehicle is None:
            raise NotFoundError("Vehicle", vehicle_id)
        return vehicle

    @staticmethod
    def _check_weight(weight_kg) -> None:
        if weight_kg is None or _kg(weight_kg) <= 0:
            raise InvalidArgumentError("Weight must be greater than 0")

    @staticmethod
    def _check_threshold(threshold: Decimal) -> None:
        if not Decimal("0") < threshold <= Decimal("100"):
            raise InvalidArgumentError("overload_threshold must be in (0, 100]")

    @staticmethod
    def _apply(vehicle: VehicleModel, load: VehicleLoad) -> None:
        vehicle.current_weight_kg = load.current_weight_kg
        vehicle.capacity_percentage = load.percentage
        vehicle.current_status = load.status

    async def _change_load(self, vehicle: VehicleModel, load: VehicleLoad) -> LoadReport:
        old_weight = _kg(vehicle.current_weight_kg)
        self._apply(vehicle, load)
        await self.session.flush()
        logger.info(
            "Vehicle %s load: %s -> %s kg (%s%%, %s)",
            vehicle.id,
            old_weight,
            load.current_weight_kg,
            load.percentage,
            load.status.value,
        )
        return LoadReport(
            vehicle_id=vehicle.id,
            old_weight_kg=old_weight,
            new_weight_kg=load.current_weight_kg,
            max_weight_kg=load.max_weight_kg,
            capacity_percentage=load.percentage,
            overload_threshold=load.overload_threshold,
            status=load.status,
            is_overloaded=load.overloaded,
            can_take_more=load.allow_overload
            or load.percentage < load.overload_threshold,
        )
