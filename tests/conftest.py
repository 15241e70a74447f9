"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  ``FOR UPDATE`` is a no-op on SQLite; Redis is
an ``AsyncMock`` that always grants locks.
"""

from types import SimpleNamespace
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from cargolink.domain.enums import PartnershipLevel, VehicleStatus, VehicleType
from cargolink.infrastructure.database import Base
from cargolink.infrastructure.models import (
    CompanyPartnershipModel,
    DriverModel,
    RouteModel,
    TransportCompanyModel,
    VehicleModel,
)
from cargolink.services.notifications import Notifier


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── Redis ─────────────────────────────────────────────────────────────


@pytest.fixture
def fake_redis():
    """Redis mock: every SET NX succeeds, every release deletes."""
    redis = AsyncMock()
    redis.set = AsyncMock(return_value=True)
    redis.eval = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def silent_notifier() -> Notifier:
    return Notifier(webhook_url=None)


# ── Sample data ───────────────────────────────────────────────────────


def _vehicle(company_id: int, plate: str, max_kg: int) -> VehicleModel:
    return VehicleModel(
        company_id=company_id,
        license_plate=plate,
        vehicle_type=VehicleType.TRUCK,
        max_weight_kg=max_kg,
        current_weight_kg=0,
        capacity_percentage=0,
        overload_threshold=95,
        allow_overload=False,
        current_status=VehicleStatus.AVAILABLE,
    )


@pytest_asyncio.fixture
async def world(session_factory) -> SimpleNamespace:
    """Three companies; A partners with B (regular, 10 %).

    * company A: drivers ``driver_a`` / ``driver_a2``, route ``route_a``,
      vehicle ``vehicle_a`` (1000 kg)
    * company B: driver ``driver_b``, route ``route_b``, vehicle ``vehicle_b``
      (1000 kg)
    * company C: vehicle ``vehicle_c`` (500 kg), no partnership
    """
    async with session_factory() as session:
        companies = [
            TransportCompanyModel(name="Alpha Express"),
            TransportCompanyModel(name="Beta Freight"),
            TransportCompanyModel(name="Gamma Cargo"),
        ]
        session.add_all(companies)
        await session.flush()
        a, b, c = (co.id for co in companies)

        drivers = [
            DriverModel(company_id=a, full_name="Nguyen Van An"),
            DriverModel(company_id=a, full_name="Tran Thi Binh"),
            DriverModel(company_id=b, full_name="Le Van Cuong"),
        ]
        routes = [
            RouteModel(
                company_id=a,
                route_name="HCM - Can Tho",
                origin_province="Ho Chi Minh",
                destination_province="Can Tho",
            ),
            RouteModel(
                company_id=b,
                route_name="Ha Noi - Hai Phong",
                origin_province="Ha Noi",
                destination_province="Hai Phong",
            ),
        ]
        vehicles = [
            _vehicle(a, "51C-000.01", 1000),
            _vehicle(b, "29C-000.02", 1000),
            _vehicle(c, "65C-000.03", 500),
        ]
        session.add_all(drivers + routes + vehicles)
        await session.flush()

        partnership = CompanyPartnershipModel(
            company_id=a,
            partner_company_id=b,
            partnership_level=PartnershipLevel.REGULAR,
            commission_rate=10,
            priority_order=1,
        )
        session.add(partnership)
        await session.commit()

        return SimpleNamespace(
            company_a=a,
            company_b=b,
            company_c=c,
            driver_a=drivers[0].id,
            driver_a2=drivers[1].id,
            driver_b=drivers[2].id,
            route_a=routes[0].id,
            route_b=routes[1].id,
            vehicle_a=vehicles[0].id,
            vehicle_b=vehicles[1].id,
            vehicle_c=vehicles[2].id,
            partnership_ab=partnership.id,
        )


ORDER_FIELDS = {
    "sender_name": "Shop Sai Gon",
    "sender_phone": "0909000000",
    "sender_address": "12 Le Loi, District 1",
    "receiver_name": "Nguyen",
    "receiver_phone": "0912000000",
    "receiver_address": "5 Tran Hung Dao",
    "receiver_province": "Can Tho",
    "payment_method": "cash",
}
