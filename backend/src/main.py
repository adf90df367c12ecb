# pyright: reportMissingTypeStubs=false
"""
Dental Practice Backend API

A FastAPI application for running a dental practice.

Features:
- Patients, dental chart, clinical notes, consents and GDPR exports
- Doctors, availability windows, practice closures and the appointment agenda
- Inventory with the implant register, finance and the services catalogue
- Email/SMS templates, recalls, appointment reminders and recurring messages
- SQLAlchemy ORM with Alembic migrations
"""

import logging
from contextlib import asynccontextmanager
import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import (
    admin, appointments, auth, calendar_settings, consent_modules, doctors, errors,
    finance, inventory, notifications, patients, recalls, services_catalogue, templates,
)
from core.config import SCHEDULER_ENABLED
from core.constants import CORS_ORIGINS
from core.database import get_db_context
from services.email_service import NotificationDeliveryError
from services.error_report_service import ErrorReportService
from services.notification_scheduler import start_notification_scheduler, stop_notification_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("🦷 Dental Practice API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Dental Practice Backend API")

    # Note: Database sessions are created fresh for each scheduler run
    if SCHEDULER_ENABLED:
        try:
            await start_notification_scheduler()
            logger.info("✅ Notification scheduler started")
        except Exception as e:
            logger.exception(f"❌ Failed to start notification scheduler: {e}")
    else:
        logger.info("Notification scheduler disabled (SCHEDULER_ENABLED=false)")

    yield

    if SCHEDULER_ENABLED:
        try:
            await stop_notification_scheduler()
            logger.info("🛑 Notification scheduler stopped")
        except Exception as e:
            logger.exception(f"❌ Error stopping notification scheduler: {e}")

    logger.info("🛑 Shutting down Dental Practice Backend API")


# Create FastAPI application
app = FastAPI(
    title="Dental Practice Backend",
    description="Practice management for dental clinics",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["x-error-code"],
)

_STAFF_RESPONSES = {
    401: {"description": "Unauthorized"},
    403: {"description": "Forbidden"},
    404: {"description": "Resource not found"},
    500: {"description": "Internal server error"},
}

# Include API routers
app.include_router(
    auth.router,
    prefix="/api/auth",
    tags=["authentication"],
    responses={
        401: {"description": "Unauthorized"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(admin.router, prefix="/api/admin", tags=["admin"], responses=_STAFF_RESPONSES)
app.include_router(errors.router, prefix="/api/errors", tags=["errors"])
app.include_router(patients.router, prefix="/api/patients", tags=["patients"], responses={
    **_STAFF_RESPONSES,
    409: {"description": "Conflict"},
})
app.include_router(consent_modules.router, prefix="/api/consent-modules", tags=["consents"], responses=_STAFF_RESPONSES)
app.include_router(doctors.router, prefix="/api/doctors", tags=["doctors"], responses=_STAFF_RESPONSES)
app.include_router(calendar_settings.router, prefix="/api/calendar", tags=["calendar"], responses=_STAFF_RESPONSES)
app.include_router(appointments.router, prefix="/api/appointments", tags=["appointments"], responses=_STAFF_RESPONSES)
app.include_router(inventory.router, prefix="/api/inventory", tags=["inventory"], responses=_STAFF_RESPONSES)
app.include_router(finance.router, prefix="/api/finance", tags=["finance"], responses=_STAFF_RESPONSES)
app.include_router(services_catalogue.router, prefix="/api/services", tags=["services"], responses=_STAFF_RESPONSES)
app.include_router(templates.router, prefix="/api/templates", tags=["templates"], responses={
    **_STAFF_RESPONSES,
    502: {"description": "Delivery provider error"},
})
app.include_router(recalls.jobs_router, prefix="/api/recalls", tags=["jobs"])
app.include_router(recalls.router, prefix="/api/recalls", tags=["recalls"], responses=_STAFF_RESPONSES)
app.include_router(notifications.jobs_router, prefix="/api/notifications", tags=["jobs"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["notifications"], responses={
    **_STAFF_RESPONSES,
    502: {"description": "Delivery provider error"},
})


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "Dental Practice Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


# Global exception handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions globally and hand out a support code."""
    logger.exception(f"Unexpected error: {exc}")
    content = {"detail": "Errore interno del server", "type": "internal_error"}
    headers = {}
    try:
        with get_db_context() as db:
            code = ErrorReportService.report_error(
                db, None,
                message=str(exc) or type(exc).__name__,
                source="server",
                path=request.url.path,
                context={"method": request.method},
                error=exc,
            )
        content["code"] = code
        headers["x-error-code"] = code
    except Exception as report_exc:
        logger.exception(f"Failed to record error report: {report_exc}")
    return JSONResponse(status_code=500, content=content, headers=headers)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Handle validation errors."""
    logger.warning(f"Validation error: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )


@app.exception_handler(NotificationDeliveryError)
async def delivery_error_handler(request: Request, exc: NotificationDeliveryError) -> JSONResponse:
    """Handle email/SMS provider failures."""
    logger.error(f"Notification delivery failed: {exc}")
    return JSONResponse(
        status_code=502,
        content={"detail": str(exc), "type": "delivery_error"},
    )


@app.exception_handler(httpx.HTTPStatusError)
async def http_status_error_handler(request: Request, exc: httpx.HTTPStatusError) -> JSONResponse:
    """Handle HTTP status errors from external services."""
    logger.error(f"HTTP status error: {exc}")
    return JSONResponse(
        status_code=502,
        content={"detail": "External service error", "type": "external_service_error"},
    )
