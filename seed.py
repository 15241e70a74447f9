"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 3 transport companies, each with drivers and a route
  - 6 vehicles (one of them partly loaded)
  - 2 partnerships between the companies
  - 6 sample orders (mix of pending, in-transit and delivered; some COD)
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import text

from cargolink.config import settings
from cargolink.domain.capacity import capacity_percentage
from cargolink.domain.enums import (
    CodCollectionStatus,
    CodStatus,
    OrderStatus,
    ParcelType,
    PartnershipLevel,
    PaymentMethod,
    VehicleType,
)
from cargolink.domain.fees import ShippingFeeCalculator
from cargolink.domain.tracking import default_status_note, generate_tracking_code
from cargolink.infrastructure.database import async_session_factory, engine
from cargolink.infrastructure.models import (
    CodTransactionModel,
    CompanyPartnershipModel,
    DriverModel,
    OrderModel,
    OrderStatusHistoryModel,
    RouteModel,
    TransportCompanyModel,
    VehicleModel,
)


COMPANIES = [
    {"name": "Saigon Express", "phone": "02838000001"},
    {"name": "Hanoi Freight", "phone": "02438000002"},
    {"name": "Mekong Logistics", "phone": "02928000003"},
]

DRIVERS = [
    # (company index, name, phone)
    (0, "Nguyen Van An", "0901000001"),
    (0, "Tran Thi Binh", "0901000002"),
    (1, "Le Van Cuong", "0902000001"),
    (1, "Pham Thi Dung", "0902000002"),
    (2, "Hoang Van Em", "0903000001"),
]

ROUTES = [
    (0, "HCM - Can Tho", "Ho Chi Minh", "Can Tho"),
    (1, "Ha Noi - Hai Phong", "Ha Noi", "Hai Phong"),
    (2, "Can Tho - Ca Mau", "Can Tho", "Ca Mau"),
]

VEHICLES = [
    # (company index, plate, type, max kg, current kg)
    (0, "51C-100.01", VehicleType.TRUCK, Decimal("1000"), Decimal("0")),
    (0, "51C-100.02", VehicleType.VAN, Decimal("500"), Decimal("120")),
    (0, "59X-200.03", VehicleType.MOTORBIKE, Decimal("50"), Decimal("0")),
    (1, "29C-300.04", VehicleType.TRUCK, Decimal("2000"), Decimal("0")),
    (1, "29D-300.05", VehicleType.VAN, Decimal("600"), Decimal("0")),
    (2, "65C-400.06", VehicleType.TRUCK, Decimal("1500"), Decimal("0")),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM transport_companies"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Companies ─────────────────────────────────────────────────
        companies = [TransportCompanyModel(**c) for c in COMPANIES]
        session.add_all(companies)
        await session.flush()
        print(f"  Created {len(companies)} companies")

        # ── Drivers & routes ──────────────────────────────────────────
        drivers = [
            DriverModel(company_id=companies[ci].id, full_name=name, phone=phone)
            for ci, name, phone in DRIVERS
        ]
        routes = [
            RouteModel(
                company_id=companies[ci].id,
                route_name=name,
                origin_province=origin,
                destination_province=destination,
            )
            for ci, name, origin, destination in ROUTES
        ]
        session.add_all(drivers + routes)
        await session.flush()
        print(f"  Created {len(drivers)} drivers and {len(routes)} routes")

        # ── Vehicles ──────────────────────────────────────────────────
        vehicles = []
        for ci, plate, vtype, max_kg, current_kg in VEHICLES:
            m = VehicleModel(
                company_id=companies[ci].id,
                license_plate=plate,
                vehicle_type=vtype,
                max_weight_kg=max_kg,
                current_weight_kg=current_kg,
                capacity_percentage=capacity_percentage(current_kg, max_kg),
                overload_threshold=Decimal(str(settings.default_overload_threshold)),
            )
            session.add(m)
            vehicles.append(m)
        await session.flush()
        print(f"  Created {len(vehicles)} vehicles")

        # ── Partnerships ──────────────────────────────────────────────
        session.add_all([
            CompanyPartnershipModel(
                company_id=companies[0].id,
                partner_company_id=companies[2].id,
                partnership_level=PartnershipLevel.PREFERRED,
                commission_rate=Decimal("10"),
                priority_order=1,
            ),
            CompanyPartnershipModel(
                company_id=companies[0].id,
                partner_company_id=companies[1].id,
                partnership_level=PartnershipLevel.BACKUP,
                commission_rate=Decimal("15"),
                priority_order=1,
            ),
        ])
        await session.flush()
        print("  Created 2 partnerships")

        # ── Orders ────────────────────────────────────────────────────
        fees = ShippingFeeCalculator(
            base_fee=settings.base_shipping_fee,
            fee_per_kg=settings.fee_per_kg,
            cod_fee_rate=settings.cod_fee_rate,
        )
        now = datetime.now(timezone.utc)
        orders_data = [
            {"route": 0, "status": OrderStatus.PENDING_PICKUP, "weight": "2.5",
             "cod": "350000", "parcel": ParcelType.ELECTRONICS, "vehicle": None, "driver": None},
            {"route": 0, "status": OrderStatus.PENDING_PICKUP, "weight": "0.4",
             "cod": "0", "parcel": ParcelType.DOCUMENT, "vehicle": None, "driver": None},
            {"route": 0, "status": OrderStatus.IN_TRANSIT, "weight": "120",
             "cod": "1200000", "parcel": ParcelType.OTHER, "vehicle": 1, "driver": 0},
            {"route": 1, "status": OrderStatus.PENDING_PICKUP, "weight": "8",
             "cod": "0", "parcel": ParcelType.FRAGILE, "vehicle": None, "driver": None},
            {"route": 1, "status": OrderStatus.DELIVERED, "weight": "3",
             "cod": "450000", "parcel": ParcelType.FOOD, "vehicle": 3, "driver": 2},
            {"route": 2, "status": OrderStatus.PENDING_PICKUP, "weight": "15",
             "cod": "800000", "parcel": ParcelType.COLD, "vehicle": None, "driver": None},
        ]

        walk = [
            OrderStatus.PENDING_PICKUP,
            OrderStatus.PICKED_UP,
            OrderStatus.IN_TRANSIT,
            OrderStatus.OUT_FOR_DELIVERY,
            OrderStatus.DELIVERED,
        ]
        for i, o in enumerate(orders_data):
            weight, cod = Decimal(o["weight"]), Decimal(o["cod"])
            order = OrderModel(
                tracking_code=generate_tracking_code(settings.tracking_code_prefix, now),
                customer_id=1000 + i,
                sender_name="Shop Sai Gon",
                sender_phone="0909000000",
                sender_address="12 Le Loi, District 1, Ho Chi Minh",
                receiver_name=f"Receiver {i + 1}",
                receiver_phone=f"091200000{i}",
                receiver_address=f"{i + 1} Tran Hung Dao",
                parcel_type=o["parcel"],
                weight_kg=weight,
                route_id=routes[o["route"]].id,
                vehicle_id=vehicles[o["vehicle"]].id if o["vehicle"] is not None else None,
                driver_id=drivers[o["driver"]].id if o["driver"] is not None else None,
                shipping_fee=fees.quote(weight, cod).total_fee,
                cod_amount=cod,
                payment_method=PaymentMethod.CASH,
                order_status=o["status"],
                delivered_at=now if o["status"] == OrderStatus.DELIVERED else None,
            )
            session.add(order)
            await session.flush()

            # History walks the legal path up to the seeded status
            steps = walk[: walk.index(o["status"]) + 1]
            previous = None
            for step in steps:
                session.add(
                    OrderStatusHistoryModel(
                        order_id=order.id,
                        old_status=previous.value if previous else None,
                        new_status=step.value,
                        notes=default_status_note(step),
                    )
                )
                previous = step

            if cod > 0:
                delivered = o["status"] == OrderStatus.DELIVERED
                session.add(
                    CodTransactionModel(
                        order_id=order.id,
                        cod_amount=cod,
                        collected_amount=cod if delivered else None,
                        collected_by_driver=order.driver_id if delivered else None,
                        collected_at=now if delivered else None,
                        collection_status=(
                            CodCollectionStatus.COLLECTED
                            if delivered
                            else CodCollectionStatus.PENDING
                        ),
                        overall_status=(
                            CodStatus.COLLECTED if delivered else CodStatus.PENDING_COLLECTION
                        ),
                    )
                )
        await session.flush()
        print(f"  Created {len(orders_data)} orders")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
