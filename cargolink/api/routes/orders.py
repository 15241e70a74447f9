"""
Order endpoints
===============

POST  /api/v1/orders                           -- create an order
GET   /api/v1/orders                           -- filtered, paginated list
POST  /api/v1/orders/shipping-fee              -- fee quote
GET   /api/v1/orders/tracking-code/{code}      -- full order by tracking code
GET   /api/v1/orders/{order_id}                -- order detail
PATCH /api/v1/orders/{order_id}                -- edit while pending pickup
PATCH /api/v1/orders/{order_id}/status         -- status transition
PATCH /api/v1/orders/{order_id}/cancel         -- cancel
POST  /api/v1/orders/{order_id}/assign         -- assign driver + vehicle
POST  /api/v1/orders/{order_id}/unassign       -- remove assignment
GET   /api/v1/orders/{order_id}/history        -- status history
GET   /api/v1/orders/{order_id}/photos         -- photos
POST  /api/v1/orders/{order_id}/photos         -- attach a photo
GET   /api/v1/tracking/{code}                  -- public tracking view
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cargolink.api.dependencies import get_db
from cargolink.api.middleware import limiter
from cargolink.api.schemas import (
    OrderAssignRequest,
    OrderCancelRequest,
    OrderCreateRequest,
    OrderHistoryResponse,
    OrderListResponse,
    OrderPhotoCreateRequest,
    OrderPhotoResponse,
    OrderResponse,
    OrderStatusUpdateRequest,
    OrderUnassignRequest,
    OrderUpdateRequest,
    ShippingFeeRequest,
    ShippingFeeResponse,
    TrackingResponse,
)
from cargolink.domain.enums import OrderStatus, PaymentStatus
from cargolink.services.orders import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])
tracking_router = APIRouter(prefix="/tracking", tags=["tracking"])


@router.post(
    "",
    status_code=201,
    response_model=OrderResponse,
    summary="Create an order",
    description=(
        "Computes the shipping fee, issues a tracking code and opens a COD "
        "transaction when ``cod_amount`` is greater than zero."
    ),
)
@limiter.limit("100/minute")
async def create_order(
    request: Request,
    body: OrderCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    data = body.model_dump()
    customer_id = data.pop("customer_id")
    return await OrderService(db).create_order(customer_id, **data)


@router.get("", response_model=OrderListResponse, summary="List orders")
@limiter.limit("100/minute")
async def list_orders(
    request: Request,
    status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    customer_id: Optional[int] = None,
    driver_id: Optional[int] = None,
    company_id: Optional[int] = None,
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    items, total = await OrderService(db).list_orders(
        status=status,
        payment_status=payment_status,
        customer_id=customer_id,
        driver_id=driver_id,
        company_id=company_id,
        search=search,
        page=page,
        page_size=page_size,
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post(
    "/shipping-fee",
    response_model=ShippingFeeResponse,
    summary="Quote the shipping fee for a parcel",
)
@limiter.limit("100/minute")
async def quote_shipping_fee(
    request: Request,
    body: ShippingFeeRequest,
    db: AsyncSession = Depends(get_db),
):
    quote = OrderService(db).calculate_shipping_fee(body.weight_kg, body.cod_amount)
    return ShippingFeeResponse.model_validate(quote)


@router.get(
    "/tracking-code/{tracking_code}",
    response_model=OrderResponse,
    summary="Get an order by tracking code",
)
@limiter.limit("100/minute")
async def get_order_by_tracking_code(
    request: Request,
    tracking_code: str,
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).get_by_tracking_code(tracking_code)


@router.get("/{order_id}", response_model=OrderResponse, summary="Get an order")
@limiter.limit("100/minute")
async def get_order(
    request: Request,
    order_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).get_order(order_id)


@router.patch(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Edit an order that has not been picked up",
)
@limiter.limit("100/minute")
async def update_order(
    request: Request,
    order_id: int,
    body: OrderUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).update_order(
        order_id, **body.model_dump(exclude_unset=True)
    )


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Move an order to its next status",
    responses={409: {"description": "Transition not allowed from the current status."}},
)
@limiter.limit("100/minute")
async def update_order_status(
    request: Request,
    order_id: int,
    body: OrderStatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).update_status(
        order_id,
        body.new_status,
        body.user_id,
        notes=body.notes,
        photo_url=body.photo_url,
        location=body.location,
    )


@router.patch("/{order_id}/cancel", response_model=OrderResponse, summary="Cancel an order")
@limiter.limit("100/minute")
async def cancel_order(
    request: Request,
    order_id: int,
    body: OrderCancelRequest,
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).cancel_order(order_id, body.user_id, body.reason)


@router.post(
    "/{order_id}/assign",
    response_model=OrderResponse,
    summary="Assign a driver and vehicle",
)
@limiter.limit("100/minute")
async def assign_order(
    request: Request,
    order_id: int,
    body: OrderAssignRequest,
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).assign(
        order_id, body.driver_id, body.vehicle_id, body.assigned_by, body.notes
    )


@router.post(
    "/{order_id}/unassign",
    response_model=OrderResponse,
    summary="Remove driver and vehicle assignment",
)
@limiter.limit("100/minute")
async def unassign_order(
    request: Request,
    order_id: int,
    body: OrderUnassignRequest,
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).unassign(order_id, body.user_id)


@router.get(
    "/{order_id}/history",
    response_model=list[OrderHistoryResponse],
    summary="Status history, oldest first",
)
@limiter.limit("100/minute")
async def get_order_history(
    request: Request,
    order_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).get_history(order_id)


@router.get(
    "/{order_id}/photos",
    response_model=list[OrderPhotoResponse],
    summary="List order photos",
)
@limiter.limit("100/minute")
async def list_order_photos(
    request: Request,
    order_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).list_photos(order_id)


@router.post(
    "/{order_id}/photos",
    status_code=201,
    response_model=OrderPhotoResponse,
    summary="Attach a photo to an order",
)
@limiter.limit("100/minute")
async def add_order_photo(
    request: Request,
    order_id: int,
    body: OrderPhotoCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).add_photo(
        order_id, body.photo_type, body.photo_url, body.uploaded_by, body.file_name
    )


@tracking_router.get(
    "/{tracking_code}",
    response_model=TrackingResponse,
    summary="Public tracking view",
    description="Receiver name is masked; no phone numbers or addresses are exposed.",
)
@limiter.limit("100/minute")
async def track_order(
    request: Request,
    tracking_code: str,
    db: AsyncSession = Depends(get_db),
):
    view = await OrderService(db).track(tracking_code)
    return TrackingResponse.model_validate(view)
