"""Vehicle capacity tracking against the SQLite test database."""

from decimal import Decimal

import pytest

from cargolink.domain.enums import VehicleStatus, VehicleType
from cargolink.domain.errors import (
    InvalidArgumentError,
    InvalidOperationError,
    NotFoundError,
)
from cargolink.services.vehicles import VehicleService


@pytest.mark.asyncio
async def test_create_uses_default_threshold(db_session, world):
    vehicle = await VehicleService(db_session).create(
        company_id=world.company_a,
        license_plate="51D-123.45",
        vehicle_type=VehicleType.VAN,
        max_weight_kg=Decimal("800"),
    )
    assert vehicle.id is not None
    assert vehicle.current_status == VehicleStatus.AVAILABLE
    assert vehicle.overload_threshold == Decimal("95")
    assert vehicle.current_weight_kg == 0


@pytest.mark.asyncio
async def test_create_rejects_duplicate_plate(db_session, world):
    with pytest.raises(InvalidOperationError, match="already exists"):
        await VehicleService(db_session).create(
            company_id=world.company_a,
            license_plate="51C-000.01",
            vehicle_type=VehicleType.TRUCK,
            max_weight_kg=Decimal("1000"),
        )


@pytest.mark.asyncio
async def test_create_rejects_bad_limits(db_session, world):
    service = VehicleService(db_session)
    with pytest.raises(InvalidArgumentError):
        await service.create(
            company_id=world.company_a,
            license_plate="X-1",
            vehicle_type=VehicleType.VAN,
            max_weight_kg=Decimal("0"),
        )
    with pytest.raises(InvalidArgumentError):
        await service.create(
            company_id=world.company_a,
            license_plate="X-2",
            vehicle_type=VehicleType.VAN,
            max_weight_kg=Decimal("100"),
            overload_threshold=Decimal("120"),
        )


@pytest.mark.asyncio
async def test_create_for_unknown_company(db_session, world):
    with pytest.raises(NotFoundError):
        await VehicleService(db_session).create(
            company_id=999,
            license_plate="X-3",
            vehicle_type=VehicleType.VAN,
            max_weight_kg=Decimal("100"),
        )


@pytest.mark.asyncio
async def test_add_weight_past_threshold_overloads(db_session, world):
    service = VehicleService(db_session)
    await service.update(world.vehicle_a, overload_threshold=Decimal("90"))

    report = await service.add_weight(world.vehicle_a, Decimal("950"))

    assert report.old_weight_kg == 0
    assert report.new_weight_kg == Decimal("950")
    assert report.capacity_percentage == Decimal("95.00")
    assert report.is_overloaded
    assert report.status == VehicleStatus.OVERLOADED
    assert not report.can_take_more

    vehicle = await service.get(world.vehicle_a)
    assert vehicle.current_status == VehicleStatus.OVERLOADED
    assert vehicle.capacity_percentage == Decimal("95.00")


@pytest.mark.asyncio
async def test_add_weight_is_never_refused(db_session, world):
    report = await VehicleService(db_session).add_weight(world.vehicle_c, Decimal("800"))
    assert report.new_weight_kg == Decimal("800")
    assert report.capacity_percentage == Decimal("160.00")


@pytest.mark.asyncio
async def test_remove_weight_back_under_threshold(db_session, world):
    service = VehicleService(db_session)
    await service.add_weight(world.vehicle_a, Decimal("990"))
    report = await service.remove_weight(world.vehicle_a, Decimal("100"))
    assert report.new_weight_kg == Decimal("890")
    assert report.status == VehicleStatus.AVAILABLE
    assert report.can_take_more


@pytest.mark.asyncio
async def test_remove_more_than_loaded_clamps(db_session, world):
    service = VehicleService(db_session)
    await service.add_weight(world.vehicle_a, Decimal("100"))
    report = await service.remove_weight(world.vehicle_a, Decimal("300"))
    assert report.new_weight_kg == 0


@pytest.mark.asyncio
async def test_reset_load(db_session, world):
    service = VehicleService(db_session)
    await service.add_weight(world.vehicle_a, Decimal("999"))
    report = await service.reset_load(world.vehicle_a)
    assert report.new_weight_kg == 0
    assert report.status == VehicleStatus.AVAILABLE


@pytest.mark.asyncio
async def test_weight_must_be_positive(db_session, world):
    service = VehicleService(db_session)
    with pytest.raises(InvalidArgumentError):
        await service.add_weight(world.vehicle_a, Decimal("0"))
    with pytest.raises(InvalidArgumentError):
        await service.remove_weight(world.vehicle_a, Decimal("-5"))


@pytest.mark.asyncio
async def test_unknown_vehicle(db_session, world):
    with pytest.raises(NotFoundError):
        await VehicleService(db_session).add_weight(999, Decimal("1"))


@pytest.mark.asyncio
async def test_can_accommodate(db_session, world):
    service = VehicleService(db_session)
    await service.add_weight(world.vehicle_a, Decimal("900"))
    assert await service.can_accommodate(world.vehicle_a, Decimal("50"))
    assert not await service.can_accommodate(world.vehicle_a, Decimal("60"))


@pytest.mark.asyncio
async def test_allow_overload_keeps_vehicle_available(db_session, world):
    service = VehicleService(db_session)
    await service.update(world.vehicle_a, allow_overload=True)
    report = await service.add_weight(world.vehicle_a, Decimal("1200"))
    assert report.status == VehicleStatus.AVAILABLE
    assert not report.is_overloaded
    assert report.can_take_more


@pytest.mark.asyncio
async def test_lowering_max_weight_rederives_status(db_session, world):
    service = VehicleService(db_session)
    await service.add_weight(world.vehicle_a, Decimal("600"))
    vehicle = await service.update(world.vehicle_a, max_weight_kg=Decimal("500"))
    assert vehicle.capacity_percentage == Decimal("120.00")
    assert vehicle.current_status == VehicleStatus.OVERLOADED


@pytest.mark.asyncio
async def test_overloaded_cannot_be_set_manually(db_session, world):
    with pytest.raises(InvalidOperationError):
        await VehicleService(db_session).set_status(world.vehicle_a, VehicleStatus.OVERLOADED)


@pytest.mark.asyncio
async def test_set_available_while_over_threshold_stays_overloaded(db_session, world):
    service = VehicleService(db_session)
    await service.add_weight(world.vehicle_a, Decimal("990"))
    await service.set_status(world.vehicle_a, VehicleStatus.MAINTENANCE)
    vehicle = await service.set_status(world.vehicle_a, VehicleStatus.AVAILABLE)
    assert vehicle.current_status == VehicleStatus.OVERLOADED


@pytest.mark.asyncio
async def test_available_for_weight_orders_least_loaded_first(db_session, world):
    service = VehicleService(db_session)
    await service.add_weight(world.vehicle_a, Decimal("500"))

    found = await service.available_for_weight(Decimal("100"))
    assert [v.id for v in found] == [world.vehicle_b, world.vehicle_c, world.vehicle_a]

    found = await service.available_for_weight(Decimal("600"))
    assert [v.id for v in found] == [world.vehicle_b]


@pytest.mark.asyncio
async def test_counts_include_every_status(db_session, world):
    service = VehicleService(db_session)
    await service.deactivate(world.vehicle_c)
    counts = await service.count_by_status()
    assert counts["available"] == 2
    assert counts["inactive"] == 1
    assert counts["overloaded"] == 0
    assert set(counts) == {s.value for s in VehicleStatus}
