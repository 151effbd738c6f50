"""
FastAPI application factory.

* Builds the session's ``FlowContext`` (one store, held on ``app.state``).
* Registers routes for the flow, inbound events and admin.
* Starts / stops the inbound event pump via lifespan events.
* Maps strict-mode invalid navigation to 409.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, events, flow
from src.config import settings
from src.domain.entities import InvalidNavigation
from src.infrastructure.redis_client import close_redis
from src.infrastructure.reference_data import build_tier_loaders
from src.services.context import FlowContext
from src.workers import event_pump as _event_pump

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the event pump on startup; stop it and the context on shutdown."""
    await _event_pump.start_event_pump(
        app.state.flow, subscribe=settings.subscribe_redis_events
    )
    yield
    await _event_pump.stop_event_pump()
    app.state.flow.close()
    await close_redis()


async def invalid_navigation_handler(request: Request, exc: InvalidNavigation):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def create_app(context: Optional[FlowContext] = None) -> FastAPI:
    app = FastAPI(
        title="Dispatch Flow Coordinator API",
        description=(
            "Drives customer and driver flows for transport, delivery, "
            "errand and parcel jobs.  Navigation is manual or driven by "
            "inbound job events, validated against the job lifecycle."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.flow = context or FlowContext(loaders=build_tier_loaders())

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(InvalidNavigation, invalid_navigation_handler)

    # Routers
    app.include_router(flow.router, prefix="/api/v1")
    app.include_router(events.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
