"""
FastAPI application entry point with health check and metrics routes.
"""
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from marketplace.api.middleware.error_handler import (
    app_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from marketplace.api.routes import (
    availability,
    bookings,
    calendar,
    catalog,
    gift_cards,
    platform,
    resources,
    reviews,
    supply_orders,
    webhooks,
)
from marketplace.jobs.scheduler import get_scheduler
from marketplace.jobs.sweeps import register_sweeps
from marketplace.lib.errors import AppException
from marketplace.lib.logging import get_logger, log_with_context, set_correlation_id
from marketplace.lib.metrics import get_metrics_collector
from marketplace.lib.settings import settings

logger = get_logger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation_id to all requests for distributed tracing.
    Accepts X-Correlation-ID from incoming requests or generates a new one.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        set_correlation_id(correlation_id)

        log_with_context(
            logger,
            "info",
            "Incoming request",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id

        log_with_context(logger, "info", "Response sent", status_code=response.status_code)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager. Starts the background sweeps when
    ``SCHEDULER_ENABLED`` is set.
    """
    logger.info(f"{settings.app_name} starting up...")
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = get_scheduler()
        register_sweeps(scheduler)
        scheduler.start()
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    logger.info(f"{settings.app_name} shutting down...")


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="Service booking marketplace: availability, slots, bookings and payments",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)


# Register exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


# Include routers
app.include_router(catalog.router)
app.include_router(resources.router)
app.include_router(availability.router)
app.include_router(bookings.router)
app.include_router(calendar.router)
app.include_router(gift_cards.router)
app.include_router(reviews.router)
app.include_router(supply_orders.router)
app.include_router(platform.router)
app.include_router(webhooks.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics_endpoint():
    """
    Prometheus-compatible metrics endpoint.

    Metrics exposed:
    - bookings_created_total: Bookings by source and initial status
    - booking_conflicts_total: Rejected booking requests by conflict reason
    - booking_transitions_total: Committed lifecycle transitions by event type
    - payment_webhooks_total: Webhook events by event name and outcome
    - calendar_sync_failures_total / event_dispatch_failures_total
    """
    return PlainTextResponse(
        content=get_metrics_collector().export_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
