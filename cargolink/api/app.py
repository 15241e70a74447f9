"""
FastAPI application factory.

* Registers routes for orders, tracking, COD, partnerships, transfers,
  vehicles and admin.
* Starts / stops the transfer expiry worker via lifespan events.
* Applies rate limiting, CORS, request logging and domain error mapping.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from cargolink.api.middleware import limiter, setup_middleware
from cargolink.api.routes import admin, cod, orders, partnerships, transfers, vehicles
from cargolink.workers import transfer_expiry as _transfer_expiry

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the transfer expiry worker on startup; stop on shutdown."""
    await _transfer_expiry.start_expiry_loop()
    yield
    await _transfer_expiry.stop_expiry_loop()


def create_app() -> FastAPI:
    app = FastAPI(
        title="CargoLink Logistics API",
        description=(
            "Delivery management backend: order status workflow, "
            "cash-on-delivery settlement, inter-company transfers and "
            "vehicle capacity tracking."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    setup_middleware(app)

    # Routers
    app.include_router(orders.router, prefix="/api/v1")
    app.include_router(orders.tracking_router, prefix="/api/v1")
    app.include_router(cod.router, prefix="/api/v1")
    app.include_router(partnerships.router, prefix="/api/v1")
    app.include_router(transfers.router, prefix="/api/v1")
    app.include_router(vehicles.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
