"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from opsconsole.api.routes import api_router
from opsconsole.core.config import settings
from opsconsole.core.exceptions import MaintenanceError
from opsconsole.core.logging_config import configure_logging
from opsconsole.core.rate_limit import limiter
from opsconsole.db.base import Base
from opsconsole.db.session import SessionLocal, engine
from opsconsole.services.maintenance_reminder_service import MaintenanceReminderScheduler

# Import models so they register with Base.metadata
import opsconsole.models  # noqa: F401

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting maintenance operations console")

    # Create tables if they don't exist (for SQLite dev)
    if settings.database_url.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created (SQLite mode)")

    reminder_scheduler = MaintenanceReminderScheduler(SessionLocal)
    app.state.reminder_scheduler = reminder_scheduler
    if settings.maintenance_reminders_enabled:
        reminder_scheduler.start()
    else:
        logger.info("Maintenance reminders disabled")

    yield

    if reminder_scheduler.is_running:
        reminder_scheduler.stop()

    logger.info("Shutting down maintenance operations console")


app = FastAPI(
    title="Maintenance Operations Console",
    description="Scheduled maintenance and inventory reconciliation API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Rate limiting setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(MaintenanceError)
async def maintenance_error_handler(request: Request, exc: MaintenanceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,
)

# Include API routes
app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/health")
def health_check(request: Request):
    """Basic liveness check endpoint."""
    scheduler = getattr(request.app.state, "reminder_scheduler", None)
    return {
        "status": "healthy",
        "version": "1.0.0",
        "reminders": scheduler.get_status() if scheduler else None,
    }
