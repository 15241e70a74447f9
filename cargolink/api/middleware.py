"""Rate limiting, domain error mapping and request logging."""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from cargolink.config import settings
from cargolink.domain.errors import (
    DomainError,
    InvalidArgumentError,
    InvalidOperationError,
    NotFoundError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

ERROR_STATUS_CODES: dict[type[DomainError], int] = {
    NotFoundError: 404,
    InvalidArgumentError: 400,
    UnauthorizedError: 403,
    InvalidOperationError: 409,
}


def status_code_for(exc: DomainError) -> int:
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return code
    return 400


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_code_for(exc)
    logger.warning(
        "%s %s -> %d %s: %s",
        request.method,
        request.url.path,
        status_code,
        type(exc).__name__,
        exc,
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def setup_middleware(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s - Status: %d - Time: %.4fs",
            request.method,
            request.url.path,
            response.status_code,
            time.perf_counter() - start,
        )
        return response

    app.add_exception_handler(DomainError, domain_error_handler)
