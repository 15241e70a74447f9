"""
Vehicle endpoints
=================

POST   /api/v1/vehicles                              -- register a vehicle
GET    /api/v1/vehicles                              -- list (company, status)
GET    /api/v1/vehicles/available?weight_kg=         -- vehicles with room
GET    /api/v1/vehicles/overloaded                   -- overloaded vehicles
GET    /api/v1/vehicles/counts                       -- counts per status
GET    /api/v1/vehicles/{vehicle_id}                 -- detail
PATCH  /api/v1/vehicles/{vehicle_id}                 -- update limits / details
DELETE /api/v1/vehicles/{vehicle_id}                 -- deactivate
PATCH  /api/v1/vehicles/{vehicle_id}/status          -- manual status
POST   /api/v1/vehicles/{vehicle_id}/load/add        -- add weight
POST   /api/v1/vehicles/{vehicle_id}/load/remove     -- remove weight
POST   /api/v1/vehicles/{vehicle_id}/load/reset      -- empty the vehicle
GET    /api/v1/vehicles/{vehicle_id}/capacity-check  -- would a parcel fit?
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cargolink.api.dependencies import get_db
from cargolink.api.middleware import limiter
from cargolink.api.schemas import (
    CapacityCheckResponse,
    LoadReportResponse,
    VehicleCreateRequest,
    VehicleResponse,
    VehicleStatusRequest,
    VehicleUpdateRequest,
    VehicleWeightRequest,
)
from cargolink.domain.enums import VehicleStatus
from cargolink.services.vehicles import VehicleService

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.post("", status_code=201, response_model=VehicleResponse, summary="Register a vehicle")
@limiter.limit("100/minute")
async def create_vehicle(
    request: Request,
    body: VehicleCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await VehicleService(db).create(**body.model_dump())


@router.get("", response_model=list[VehicleResponse], summary="List vehicles")
@limiter.limit("100/minute")
async def list_vehicles(
    request: Request,
    company_id: Optional[int] = None,
    status: Optional[VehicleStatus] = None,
    db: AsyncSession = Depends(get_db),
):
    return await VehicleService(db).list(company_id, status)


@router.get(
    "/available",
    response_model=list[VehicleResponse],
    summary="Available vehicles able to take a parcel, least-loaded first",
)
@limiter.limit("100/minute")
async def available_vehicles(
    request: Request,
    weight_kg: Decimal = Query(..., gt=0),
    company_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    return await VehicleService(db).available_for_weight(weight_kg, company_id)


@router.get("/overloaded", response_model=list[VehicleResponse], summary="Overloaded vehicles")
@limiter.limit("100/minute")
async def overloaded_vehicles(
    request: Request,
    company_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    return await VehicleService(db).overloaded(company_id)


@router.get("/counts", response_model=dict[str, int], summary="Vehicle counts per status")
@limiter.limit("100/minute")
async def vehicle_counts(
    request: Request,
    company_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    return await VehicleService(db).count_by_status(company_id)


@router.get("/{vehicle_id}", response_model=VehicleResponse, summary="Get a vehicle")
@limiter.limit("100/minute")
async def get_vehicle(
    request: Request,
    vehicle_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await VehicleService(db).get(vehicle_id)


@router.patch("/{vehicle_id}", response_model=VehicleResponse, summary="Update a vehicle")
@limiter.limit("100/minute")
async def update_vehicle(
    request: Request,
    vehicle_id: int,
    body: VehicleUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await VehicleService(db).update(
        vehicle_id, **body.model_dump(exclude_unset=True)
    )


@router.delete("/{vehicle_id}", response_model=VehicleResponse, summary="Deactivate a vehicle")
@limiter.limit("100/minute")
async def deactivate_vehicle(
    request: Request,
    vehicle_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await VehicleService(db).deactivate(vehicle_id)


@router.patch(
    "/{vehicle_id}/status",
    response_model=VehicleResponse,
    summary="Set a vehicle's status manually",
    description="``overloaded`` is derived from the load and cannot be set.",
)
@limiter.limit("100/minute")
async def set_vehicle_status(
    request: Request,
    vehicle_id: int,
    body: VehicleStatusRequest,
    db: AsyncSession = Depends(get_db),
):
    return await VehicleService(db).set_status(vehicle_id, body.status)


@router.post("/{vehicle_id}/load/add", response_model=LoadReportResponse, summary="Add weight")
@limiter.limit("100/minute")
async def add_vehicle_weight(
    request: Request,
    vehicle_id: int,
    body: VehicleWeightRequest,
    db: AsyncSession = Depends(get_db),
):
    report = await VehicleService(db).add_weight(vehicle_id, body.weight_kg)
    return LoadReportResponse.model_validate(report)


@router.post("/{vehicle_id}/load/remove", response_model=LoadReportResponse, summary="Remove weight")
@limiter.limit("100/minute")
async def remove_vehicle_weight(
    request: Request,
    vehicle_id: int,
    body: VehicleWeightRequest,
    db: AsyncSession = Depends(get_db),
):
    report = await VehicleService(db).remove_weight(vehicle_id, body.weight_kg)
    return LoadReportResponse.model_validate(report)


@router.post("/{vehicle_id}/load/reset", response_model=LoadReportResponse, summary="Empty a vehicle")
@limiter.limit("100/minute")
async def reset_vehicle_load(
    request: Request,
    vehicle_id: int,
    db: AsyncSession = Depends(get_db),
):
    report = await VehicleService(db).reset_load(vehicle_id)
    return LoadReportResponse.model_validate(report)


@router.get(
    "/{vehicle_id}/capacity-check",
    response_model=CapacityCheckResponse,
    summary="Check whether a parcel would fit",
)
@limiter.limit("100/minute")
async def check_vehicle_capacity(
    request: Request,
    vehicle_id: int,
    weight_kg: Decimal = Query(..., gt=0),
    db: AsyncSession = Depends(get_db),
):
    fits = await VehicleService(db).can_accommodate(vehicle_id, weight_kg)
    return CapacityCheckResponse(
        vehicle_id=vehicle_id, weight_kg=weight_kg, can_accommodate=fits
    )
