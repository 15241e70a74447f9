"""
Order workflow
==============

pending_pickup -> picked_up -> in_transit -> out_for_delivery -> delivered
(cancel from pending_pickup / picked_up, return from in_transit /
out_for_delivery)

Every status change appends an ``order_status_history`` row in the same
unit of work as the status itself.  Side effects per target status:

* picked_up  -- stamp ``pickup_confirmed_at``
* delivered  -- stamp ``delivered_at``, mark payment ``paid``
* returned / cancelled -- fail a COD transaction still awaiting collection
* delivered / returned / cancelled -- release the parcel's weight from its
  vehicle
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cargolink.config import settings
from cargolink.domain.enums import (
    UNLOADING_ORDER_STATUSES,
    CodStatus,
    OrderStatus,
    ParcelType,
    PaymentMethod,
    PaymentStatus,
    PhotoType,
    VehicleStatus,
)
from cargolink.domain.errors import (
    InvalidArgumentError,
    InvalidOperationError,
    NotFoundError,
)
from cargolink.domain.fees import ShippingFeeCalculator, ShippingFeeQuote, to_money
from cargolink.domain.tracking import (
    default_status_note,
    describe_status,
    estimated_delivery,
    generate_tracking_code,
    mask_name,
)
from cargolink.domain.workflow import COD_WORKFLOW, ORDER_WORKFLOW
from cargolink.infrastructure.models import (
    OrderModel,
    OrderPhotoModel,
    OrderStatusHistoryModel,
    utcnow,
)
from cargolink.infrastructure.repositories import (
    CodTransactionRepository,
    DriverRepository,
    OrderHistoryRepository,
    OrderPhotoRepository,
    OrderRepository,
    RouteRepository,
    VehicleRepository,
)
from cargolink.services.cod import CodService
from cargolink.services.notifications import Notifier, default_notifier
from cargolink.services.vehicles import VehicleService, fits

logger = logging.getLogger(__name__)

MAX_TRACKING_CODE_ATTEMPTS = 10

_EDITABLE_FIELDS = {
    "sender_name",
    "sender_phone",
    "sender_address",
    "receiver_name",
    "receiver_phone",
    "receiver_address",
    "receiver_province",
    "receiver_district",
    "parcel_type",
    "weight_kg",
    "declared_value",
    "special_instructions",
    "cod_amount",
    "route_id",
    "pickup_scheduled_at",
}

_ASSIGNABLE_VEHICLE_STATUSES = {VehicleStatus.AVAILABLE, VehicleStatus.IN_TRANSIT}


@dataclass
class TrackingEvent:
    status: str
    description: str
    notes: Optional[str]
    location: Optional[str]
    created_at: Optional[datetime]


@dataclass
class TrackingView:
    """Public view of an order, safe to show to anyone holding the code."""

    tracking_code: str
    status: str
    status_description: str
    receiver_name: Optional[str]
    receiver_province: Optional[str]
    created_at: Optional[datetime]
    delivered_at: Optional[datetime]
    estimated_delivery: Optional[datetime]
    events: list[TrackingEvent] = field(default_factory=list)


class OrderService:
    def __init__(
        self,
        session: AsyncSession,
        notifier: Optional[Notifier] = None,
        fee_calculator: Optional[ShippingFeeCalculator] = None,
    ):
        self.session = session
        self.notifier = notifier or default_notifier()
        self.fees = fee_calculator or ShippingFeeCalculator(
            settings.base_shipping_fee, settings.fee_per_kg, settings.cod_fee_rate
        )
        self.orders = OrderRepository(session)
        self.history = OrderHistoryRepository(session)
        self.photos = OrderPhotoRepository(session)
        self.vehicle_service = VehicleService(session)

    # ── Creation & edits ──────────────────────────────────────────────

    async def create_order(
        self,
        customer_id: int,
        *,
        sender_name: str,
        sender_phone: str,
        sender_address: str,
        receiver_name: str,
        receiver_phone: str,
        receiver_address: str,
        payment_method: PaymentMethod,
        receiver_province: Optional[str] = None,
        receiver_district: Optional[str] = None,
        parcel_type: ParcelType = ParcelType.OTHER,
        weight_kg: Optional[Decimal] = None,
        declared_value: Optional[Decimal] = None,
        special_instructions: Optional[str] = None,
        cod_amount: Optional[Decimal] = None,
        route_id: Optional[int] = None,
        pickup_scheduled_at: Optional[datetime] = None,
    ) -> OrderModel:
        cod = to_money(cod_amount)
        if cod < 0:
            raise InvalidArgumentError("cod_amount cannot be negative")
        if weight_kg is not None and Decimal(str(weight_kg)) <= 0:
            raise InvalidArgumentError("weight_kg must be greater than 0")
        if route_id is not None:
            await self._require_route(route_id)

        quote = self.fees.quote(weight_kg, cod)
        order = OrderModel(
            tracking_code=await self._new_tracking_code(),
            customer_id=customer_id,
            sender_name=sender_name,
            sender_phone=sender_phone,
            sender_address=sender_address,
            receiver_name=receiver_name,
            receiver_phone=receiver_phone,
            receiver_address=receiver_address,
            receiver_province=receiver_province,
            receiver_district=receiver_district,
            parcel_type=ParcelType(parcel_type),
            weight_kg=weight_kg,
            declared_value=declared_value,
            special_instructions=special_instructions,
            route_id=route_id,
            shipping_fee=quote.total_fee,
            cod_amount=cod,
            payment_method=PaymentMethod(payment_method),
            payment_status=PaymentStatus.UNPAID,
            order_status=OrderStatus.PENDING_PICKUP,
            pickup_scheduled_at=pickup_scheduled_at,
        )
        await self.orders.add(order)
        await self._record(order, None, OrderStatus.PENDING_PICKUP, customer_id)

        if cod > 0:
            await CodService(self.session).create(order.id)

        logger.info(
            "Order %s (%s) created by customer %s, fee %s",
            order.id,
            order.tracking_code,
            customer_id,
            order.shipping_fee,
        )
        return order

    async def update_order(self, order_id: int, **changes) -> OrderModel:
        """Edit an order that has not been picked up yet."""
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise InvalidArgumentError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in changes.items() if v is not None}

        order = await self._locked(order_id)
        if ORDER_WORKFLOW.coerce(order.order_status) != OrderStatus.PENDING_PICKUP:
            raise InvalidOperationError(
                f"Order {order_id} can only be edited while pending pickup"
            )
        if "route_id" in changes:
            await self._require_route(changes["route_id"])
        if "weight_kg" in changes and Decimal(str(changes["weight_kg"])) <= 0:
            raise InvalidArgumentError("weight_kg must be greater than 0")
        if "cod_amount" in changes and to_money(changes["cod_amount"]) < 0:
            raise InvalidArgumentError("cod_amount cannot be negative")

        old_weight = order.weight_kg
        for name, value in changes.items():
            setattr(order, name, value)

        if "weight_kg" in changes and order.vehicle_id is not None:
            await self._reload_vehicle(order, old_weight)
        if "weight_kg" in changes or "cod_amount" in changes:
            order.cod_amount = to_money(order.cod_amount)
            order.shipping_fee = self.fees.quote(order.weight_kg, order.cod_amount).total_fee
        if "cod_amount" in changes:
            await self._sync_cod(order)

        await self.session.flush()
        logger.info("Order %s updated: %s", order_id, ", ".join(sorted(changes)))
        return order

    # ── Status workflow ───────────────────────────────────────────────

    async def update_status(
        self,
        order_id: int,
        new_status: OrderStatus,
        user_id: int,
        notes: Optional[str] = None,
        photo_url: Optional[str] = None,
        location: Optional[str] = None,
    ) -> OrderModel:
        order = await self._locked(order_id)
        old_status = ORDER_WORKFLOW.coerce(order.order_status)
        new_status = ORDER_WORKFLOW.ensure(old_status, new_status)

        now = utcnow()
        order.order_status = new_status
        if new_status == OrderStatus.PICKED_UP:
            order.pickup_confirmed_at = now
        elif new_status == OrderStatus.DELIVERED:
            order.delivered_at = now
            order.payment_status = PaymentStatus.PAID
            order.paid_at = now

        if photo_url:
            await self.photos.add(
                OrderPhotoModel(
                    order_id=order.id,
                    photo_type=(
                        PhotoType.BEFORE_DELIVERY
                        if new_status == OrderStatus.PICKED_UP
                        else PhotoType.AFTER_DELIVERY
                    ),
                    photo_url=photo_url,
                    uploaded_by=user_id,
                )
            )

        await self._record(order, old_status, new_status, user_id, notes, location)

        if new_status in (OrderStatus.RETURNED, OrderStatus.CANCELLED):
            await CodService(self.session).fail_pending_for_order(
                order.id, f"Order {new_status.value}"
            )
        if new_status in UNLOADING_ORDER_STATUSES:
            await self._unload(order, detach=False)

        await self.session.flush()
        logger.info(
            "Order %s status: %s -> %s by user %s",
            order.id,
            old_status.value,
            new_status.value,
            user_id,
        )
        await self.notifier.order_status_changed(order, old_status, new_status)
        return order

    async def cancel_order(
        self, order_id: int, user_id: int, reason: Optional[str] = None
    ) -> OrderModel:
        return await self.update_status(
            order_id, OrderStatus.CANCELLED, user_id, notes=reason
        )

    # ── Assignment ────────────────────────────────────────────────────

    async def assign(
        self,
        order_id: int,
        driver_id: int,
        vehicle_id: int,
        assigned_by: int,
        notes: Optional[str] = None,
    ) -> OrderModel:
        order = await self._locked(order_id)
        status = ORDER_WORKFLOW.coerce(order.order_status)
        if status != OrderStatus.PENDING_PICKUP:
            raise InvalidOperationError(
                f"Order {order_id} is {status.value}; only pending orders can be assigned"
            )

        driver = await DriverRepository(self.session).get_by_id(driver_id)
        if driver is None:
            raise NotFoundError("Driver", driver_id)
        if not driver.is_active:
            raise InvalidOperationError(f"Driver {driver_id} is inactive")
        vehicle = await VehicleRepository(self.session).get_for_update(vehicle_id)
        if vehicle is None:
            raise NotFoundError("Vehicle", vehicle_id)
        if VehicleStatus(vehicle.current_status) not in _ASSIGNABLE_VEHICLE_STATUSES:
            raise InvalidOperationError(
                f"Vehicle {vehicle_id} is {VehicleStatus(vehicle.current_status).value}"
            )

        if order.vehicle_id != vehicle_id:
            await self._unload(order)
            if order.weight_kg:
                if not fits(vehicle, order.weight_kg):
                    raise InvalidOperationError(
                        f"Vehicle {vehicle_id} cannot accommodate {order.weight_kg} kg"
                    )
                await self.vehicle_service.add_weight(vehicle_id, order.weight_kg)

        order.driver_id = driver_id
        order.vehicle_id = vehicle_id
        await self._record(
            order,
            status,
            status,
            assigned_by,
            notes or f"Assigned to driver {driver_id}, vehicle {vehicle_id}",
        )
        await self.session.flush()
        logger.info(
            "Order %s assigned to driver %s / vehicle %s by %s",
            order_id,
            driver_id,
            vehicle_id,
            assigned_by,
        )
        return order

    async def unassign(self, order_id: int, user_id: int) -> OrderModel:
        order = await self._locked(order_id)
        status = ORDER_WORKFLOW.coerce(order.order_status)
        if status != OrderStatus.PENDING_PICKUP:
            raise InvalidOperationError(
                f"Order {order_id} is {status.value}; only pending orders can be unassigned"
            )
        if order.driver_id is None and order.vehicle_id is None:
            raise InvalidOperationError(f"Order {order_id} is not assigned")

        await self._unload(order)
        order.driver_id = None
        await self._record(order, status, status, user_id, "Assignment removed")
        await self.session.flush()
        logger.info("Order %s unassigned by %s", order_id, user_id)
        return order

    # ── Photos ────────────────────────────────────────────────────────

    async def add_photo(
        self,
        order_id: int,
        photo_type: PhotoType,
        photo_url: str,
        uploaded_by: Optional[int] = None,
        file_name: Optional[str] = None,
    ) -> OrderPhotoModel:
        await self.get_order(order_id)
        return await self.photos.add(
            OrderPhotoModel(
                order_id=order_id,
                photo_type=PhotoType(photo_type),
                photo_url=photo_url,
                file_name=file_name,
                uploaded_by=uploaded_by,
            )
        )

    async def list_photos(self, order_id: int) -> list[OrderPhotoModel]:
        await self.get_order(order_id)
        return await self.photos.for_order(order_id)

    # ── Queries ───────────────────────────────────────────────────────

    async def get_order(self, order_id: int) -> OrderModel:
        order = await self.orders.get_by_id(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    async def get_by_tracking_code(self, tracking_code: str) -> OrderModel:
        order = await self.orders.get_by_tracking_code(tracking_code)
        if order is None:
            raise NotFoundError("Order", tracking_code)
        return order

    async def list_orders(
        self,
        *,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        customer_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        company_id: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[OrderModel], int]:
        if page < 1 or page_size < 1:
            raise InvalidArgumentError("page and page_size must be positive")
        return await self.orders.search(
            status=status,
            payment_status=payment_status,
            customer_id=customer_id,
            driver_id=driver_id,
            company_id=company_id,
            search=search,
            offset=(page - 1) * page_size,
            limit=page_size,
        )

    async def get_history(self, order_id: int) -> list[OrderStatusHistoryModel]:
        await self.get_order(order_id)
        return await self.history.for_order(order_id)

    async def track(self, tracking_code: str) -> TrackingView:
        order = await self.get_by_tracking_code(tracking_code)
        events = [
            TrackingEvent(
                status=h.new_status,
                description=describe_status(h.new_status),
                notes=h.notes,
                location=h.location,
                created_at=h.created_at,
            )
            for h in await self.history.for_order(order.id)
        ]
        status = ORDER_WORKFLOW.coerce(order.order_status)
        return TrackingView(
            tracking_code=order.tracking_code,
            status=status.value,
            status_description=describe_status(status.value),
            receiver_name=mask_name(order.receiver_name),
            receiver_province=order.receiver_province,
            created_at=order.created_at,
            delivered_at=order.delivered_at,
            estimated_delivery=estimated_delivery(
                status,
                order.created_at,
                order.delivered_at,
                settings.estimated_delivery_days,
            ),
            events=events,
        )

    def calculate_shipping_fee(
        self, weight_kg: Optional[Decimal] = None, cod_amount: Optional[Decimal] = None
    ) -> ShippingFeeQuote:
        return self.fees.quote(weight_kg, cod_amount)

    async def statistics(self, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        month_start = day_start.replace(day=1)
        counts = await self.orders.count_by_status()
        return {
            "total_orders": sum(counts.values()),
            "by_status": {s.value: counts.get(s, 0) for s in OrderStatus},
            "orders_today": await self.orders.count_created_since(day_start),
            "revenue_today": to_money(await self.orders.delivered_revenue_since(day_start)),
            "revenue_this_month": to_money(
                await self.orders.delivered_revenue_since(month_start)
            ),
        }

    # ── Internals ─────────────────────────────────────────────────────

    async def _locked(self, order_id: int) -> OrderModel:
        order = await self.orders.get_for_update(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    async def _require_route(self, route_id: int) -> None:
        route = await RouteRepository(self.session).get_by_id(route_id)
        if route is None:
            raise NotFoundError("Route", route_id)
        if not route.is_active:
            raise InvalidOperationError(f"Route {route_id} is inactive")

    async def _new_tracking_code(self) -> str:
        for _ in range(MAX_TRACKING_CODE_ATTEMPTS):
            code = generate_tracking_code(settings.tracking_code_prefix, utcnow())
            if not await self.orders.tracking_code_exists(code):
                return code
        raise InvalidOperationError("Could not generate a unique tracking code")

    async def _record(
        self,
        order: OrderModel,
        old_status: Optional[OrderStatus],
        new_status: OrderStatus,
        user_id: Optional[int],
        notes: Optional[str] = None,
        location: Optional[str] = None,
    ) -> OrderStatusHistoryModel:
        return await self.history.add(
            OrderStatusHistoryModel(
                order_id=order.id,
                old_status=old_status.value if old_status else None,
                new_status=new_status.value,
                updated_by=user_id,
                location=location,
                notes=notes or default_status_note(new_status),
            )
        )

    async def _unload(self, order: OrderModel, detach: bool = True) -> None:
        """Take the parcel's weight off its vehicle."""
        if order.vehicle_id is None:
            return
        if order.weight_kg:
            await self.vehicle_service.remove_weight(order.vehicle_id, order.weight_kg)
        if detach:
            order.vehicle_id = None

    async def _reload_vehicle(self, order: OrderModel, old_weight) -> None:
        if old_weight:
            await self.vehicle_service.remove_weight(order.vehicle_id, old_weight)
        vehicle = await self.vehicle_service.get(order.vehicle_id)
        if not fits(vehicle, order.weight_kg):
            raise InvalidOperationError(
                f"Vehicle {order.vehicle_id} cannot accommodate {order.weight_kg} kg"
            )
        await self.vehicle_service.add_weight(order.vehicle_id, order.weight_kg)

    async def _sync_cod(self, order: OrderModel) -> None:
        """Mirror a changed COD amount into the not-yet-collected transaction."""
        cod = CodService(self.session)
        transactions = CodTransactionRepository(self.session)
        txn = await transactions.get_by_order(order.id, for_update=True)
        if txn is None:
            if order.cod_amount > 0:
                await cod.create(order.id)
            return
        status = COD_WORKFLOW.coerce(txn.overall_status)
        if status == CodStatus.PENDING_COLLECTION:
            if order.cod_amount > 0:
                txn.cod_amount = order.cod_amount
            else:
                await cod.fail_pending_for_order(order.id, "COD removed from order")
        elif status == CodStatus.FAILED:
            # COD re-added after an earlier removal failed the old transaction
            if order.cod_amount > 0:
                await transactions.delete(txn)
                await cod.create(order.id)
        else:
            raise InvalidOperationError(
                f"COD for order {order.id} is already {status.value}; "
                "its amount can no longer change"
            )
