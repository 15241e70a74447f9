"""
Admin / observability endpoints
===============================

GET /api/v1/admin/statistics -- order, vehicle and COD totals
GET /api/v1/admin/health     -- simple health check
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cargolink.api.dependencies import get_db
from cargolink.api.middleware import limiter
from cargolink.api.schemas import HealthResponse, StatisticsResponse
from cargolink.services.cod import CodService
from cargolink.services.orders import OrderService
from cargolink.services.vehicles import VehicleService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/statistics",
    response_model=StatisticsResponse,
    summary="Order, vehicle and COD totals",
)
@limiter.limit("100/minute")
async def get_statistics(
    request: Request,
    company_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    return StatisticsResponse(
        orders=await OrderService(db).statistics(),
        vehicles=await VehicleService(db).count_by_status(company_id),
        cod=await CodService(db).dashboard(company_id),
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
