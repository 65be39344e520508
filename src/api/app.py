"""
FastAPI application factory.

* Registers routes for strikes, suspensions, appeals, driver lookups,
  live speed monitoring and admin.
* Starts / stops the background expiry sweeper via lifespan events.
* Maps ``SafetyServiceError`` subclasses to HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.dependencies import close_monitor_registry
from src.api.middleware import limiter
from src.api.routes import admin, appeals, drivers, monitoring, strikes, suspensions
from src.config import settings
from src.infrastructure.redis_client import close_redis
from src.services.errors import (
    AppealWindowExpired,
    ConflictError,
    NotFoundError,
    PersistenceError,
    SafetyServiceError,
    ValidationFailed,
)
from src.workers import sweeper as _sweeper

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

_STATUS_CODES: list[tuple[type[SafetyServiceError], int]] = [
    (NotFoundError, 404),
    (ConflictError, 409),
    (AppealWindowExpired, 422),
    (ValidationFailed, 422),
    (PersistenceError, 500),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the expiry sweeper on startup; stop it and release clients on shutdown."""
    await _sweeper.start_sweep_loop()
    yield
    await _sweeper.stop_sweep_loop()
    await close_monitor_registry()
    await close_redis()


async def safety_error_handler(request: Request, exc: SafetyServiceError) -> JSONResponse:
    status = next(
        (code for cls, code in _STATUS_CODES if isinstance(exc, cls)), 400
    )
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status, content={"detail": exc.message, "code": exc.code}
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Carpool Driver Safety API",
        description=(
            "Strike ledger, suspension escalation, appeals and live speed "
            "monitoring for carpool drivers.  Every strike recomputes the "
            "driver's safety profile; suspensions gate going online."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(SafetyServiceError, safety_error_handler)

    # Routers
    for module in (strikes, suspensions, appeals, drivers, monitoring, admin):
        app.include_router(module.router, prefix="/api/v1")

    return app
