"""
Integration tests for the REST API endpoints.

Uses the in-memory SQLite database from ``conftest``; ``get_db`` and
``get_redis`` are overridden and the expiry worker is patched out.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tests.conftest import ORDER_FIELDS


# ── Fixture ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(session_factory, world, fake_redis):
    """AsyncClient backed by SQLite and a mocked Redis."""
    with (
        patch(
            "cargolink.workers.transfer_expiry.start_expiry_loop",
            new_callable=AsyncMock,
        ),
        patch(
            "cargolink.workers.transfer_expiry.stop_expiry_loop",
            new_callable=AsyncMock,
        ),
    ):
        async def _test_db():
            async with session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        async def _test_redis():
            return fake_redis

        from cargolink.api.app import create_app
        from cargolink.api.dependencies import get_db
        from cargolink.api.middleware import limiter
        from cargolink.infrastructure.redis_client import get_redis

        limiter.enabled = False
        app = create_app()
        app.dependency_overrides[get_db] = _test_db
        app.dependency_overrides[get_redis] = _test_redis

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


async def _create_order(client: AsyncClient, world, **overrides) -> dict:
    body = {**ORDER_FIELDS, "customer_id": 1, "route_id": world.route_a, **overrides}
    resp = await client.post("/api/v1/orders", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ── Tests ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_create_order_returns_201(client: AsyncClient, world):
    data = await _create_order(client, world, weight_kg="2.5", cod_amount="100000")
    assert data["order_status"] == "pending_pickup"
    assert data["payment_status"] == "unpaid"
    # 30000 + 2.5 * 5000 + 100000 * 1 %
    assert data["shipping_fee"] == 43500.0

    resp = await client.get(f"/api/v1/cod/orders/{data['id']}")
    assert resp.status_code == 200
    assert resp.json()["overall_status"] == "pending_collection"


@pytest.mark.asyncio
async def test_create_order_validation_error(client: AsyncClient, world):
    resp = await client.post(
        "/api/v1/orders", json={**ORDER_FIELDS, "customer_id": 1, "weight_kg": -1}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_get_order_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/orders/9999")
    assert resp.status_code == 404
    assert "not found" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_status_walk_and_history(client: AsyncClient, world):
    order = await _create_order(client, world)
    for status in ("picked_up", "in_transit", "out_for_delivery", "delivered"):
        resp = await client.patch(
            f"/api/v1/orders/{order['id']}/status",
            json={"new_status": status, "user_id": 5},
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["order_status"] == status

    resp = await client.get(f"/api/v1/orders/{order['id']}/history")
    assert [h["new_status"] for h in resp.json()] == [
        "pending_pickup",
        "picked_up",
        "in_transit",
        "out_for_delivery",
        "delivered",
    ]


@pytest.mark.asyncio
async def test_invalid_transition_returns_409(client: AsyncClient, world):
    order = await _create_order(client, world)
    resp = await client.patch(
        f"/api/v1/orders/{order['id']}/status",
        json={"new_status": "delivered", "user_id": 5},
    )
    assert resp.status_code == 409
    assert "pending_pickup -> delivered" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_cancel_twice_fails(client: AsyncClient, world):
    order = await _create_order(client, world)
    resp = await client.patch(f"/api/v1/orders/{order['id']}/cancel", json={"user_id": 1})
    assert resp.status_code == 200
    assert resp.json()["order_status"] == "cancelled"
    resp = await client.patch(f"/api/v1/orders/{order['id']}/cancel", json={"user_id": 1})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_public_tracking(client: AsyncClient, world):
    order = await _create_order(client, world)
    resp = await client.get(f"/api/v1/tracking/{order['tracking_code']}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["receiver_name"] == "N****n"
    assert data["events"][0]["status"] == "pending_pickup"
    assert "receiver_phone" not in data


@pytest.mark.asyncio
async def test_shipping_fee_quote(client: AsyncClient):
    resp = await client.post(
        "/api/v1/orders/shipping-fee", json={"weight_kg": "3", "cod_amount": "200000"}
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "base_fee": 30000.0,
        "weight_fee": 15000.0,
        "cod_fee": 2000.0,
        "total_fee": 47000.0,
    }


@pytest.mark.asyncio
async def test_list_orders_paginates(client: AsyncClient, world):
    for _ in range(3):
        await _create_order(client, world)
    resp = await client.get("/api/v1/orders", params={"page_size": 2})
    data = resp.json()
    assert data["total"] == 3
    assert len(data["items"]) == 2


@pytest.mark.asyncio
async def test_cod_flow(client: AsyncClient, world, fake_redis):
    order = await _create_order(client, world, cod_amount="500000")

    resp = await client.post(
        "/api/v1/cod/collect", json={"order_id": order["id"], "driver_id": world.driver_a}
    )
    assert resp.status_code == 200, resp.text
    txn = resp.json()
    assert txn["overall_status"] == "collected"

    body = {
        "driver_id": world.driver_a,
        "transaction_ids": [txn["id"]],
        "idempotency_key": "f5a0c1de",
        "declared_total": "500000",
    }
    first = await client.post("/api/v1/cod/submit", json=body)
    assert first.status_code == 200, first.text
    assert first.json()["replayed"] is False
    second = await client.post("/api/v1/cod/submit", json=body)
    assert second.json()["replayed"] is True
    assert second.json()["id"] == first.json()["id"]

    resp = await client.post(f"/api/v1/cod/{txn['id']}/receive", json={"received_by": 3})
    assert resp.json()["company_fee"] == 10000.0
    resp = await client.post(
        f"/api/v1/cod/{txn['id']}/transfer-to-sender", json={"method": "bank_transfer"}
    )
    assert resp.json()["overall_status"] == "completed"
    assert resp.json()["payout_amount"] == 490000.0


@pytest.mark.asyncio
async def test_cod_collect_over_amount_returns_400(client: AsyncClient, world):
    order = await _create_order(client, world, cod_amount="1000")
    resp = await client.post(
        "/api/v1/cod/collect",
        json={"order_id": order["id"], "driver_id": world.driver_a, "amount": "2000"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_cod_dashboard(client: AsyncClient, world):
    await _create_order(client, world, cod_amount="1000")
    resp = await client.get("/api/v1/cod/dashboard")
    assert resp.status_code == 200
    assert resp.json()["by_status"]["pending_collection"]["count"] == 1


@pytest.mark.asyncio
async def test_transfer_accept_by_wrong_company_returns_403(client: AsyncClient, world):
    order = await _create_order(client, world)
    resp = await client.post(
        "/api/v1/transfers",
        json={
            "order_id": order["id"],
            "to_company_id": world.company_b,
            "transfer_reason": "vehicle_full",
            "transferred_by": 1,
        },
    )
    assert resp.status_code == 201, resp.text
    transfer = resp.json()

    resp = await client.post(
        f"/api/v1/transfers/{transfer['id']}/accept",
        json={"company_id": world.company_c, "user_id": 2},
    )
    assert resp.status_code == 403

    resp = await client.post(
        f"/api/v1/transfers/{transfer['id']}/accept",
        json={"company_id": world.company_b, "user_id": 2},
    )
    assert resp.json()["transfer_status"] == "accepted"


@pytest.mark.asyncio
async def test_partnership_endpoints(client: AsyncClient, world):
    resp = await client.post(
        "/api/v1/partnerships",
        json={
            "company_id": world.company_a,
            "partner_company_id": world.company_c,
            "partnership_level": "preferred",
            "commission_rate": "7.5",
        },
    )
    assert resp.status_code == 201, resp.text

    resp = await client.get(f"/api/v1/partnerships/companies/{world.company_a}")
    assert [p["partner_company_id"] for p in resp.json()] == [world.company_c, world.company_b]

    resp = await client.delete(f"/api/v1/partnerships/{world.partnership_ab}")
    assert resp.status_code == 204


@pytest.mark.asyncio
async def test_vehicle_load_endpoints(client: AsyncClient, world):
    resp = await client.post(
        f"/api/v1/vehicles/{world.vehicle_a}/load/add", json={"weight_kg": "960"}
    )
    assert resp.status_code == 200
    report = resp.json()
    assert report["capacity_percentage"] == 96.0
    assert report["status"] == "overloaded"

    resp = await client.get("/api/v1/vehicles/overloaded")
    assert [v["id"] for v in resp.json()] == [world.vehicle_a]

    resp = await client.get(
        f"/api/v1/vehicles/{world.vehicle_b}/capacity-check", params={"weight_kg": "100"}
    )
    assert resp.json()["can_accommodate"] is True

    resp = await client.patch(
        f"/api/v1/vehicles/{world.vehicle_a}/status", json={"status": "overloaded"}
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_admin_statistics(client: AsyncClient, world):
    await _create_order(client, world)
    resp = await client.get("/api/v1/admin/statistics")
    assert resp.status_code == 200
    data = resp.json()
    assert data["orders"]["total_orders"] == 1
    assert data["vehicles"]["available"] == 3
