from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from app.config import settings
from app.database import Database
from app.dependencies import get_record_store
from app.features.notes.router import router as notes_router
from app.features.patients.router import router as patients_router
from app.routers.health import router as health_router
from app.services.adherence_engine import AdherenceEngine
from app.services.reminder_scheduler import ReminderScheduler
from app.shared.exceptions import (
    CarePlanError,
    CipherError,
    ExtractionFormatError,
    ExtractionGatewayError,
    StoreError,
)
from app.shared.schemas import ErrorResponse
from app.core.logging import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI application."""
    # Startup
    logger.info("Starting Care Plan API...")
    await Database.connect_db()

    scheduler = None
    if settings.REMINDERS_ENABLED:
        scheduler = ReminderScheduler(
            AdherenceEngine(get_record_store()),
            interval_seconds=settings.REMINDER_SWEEP_INTERVAL_SECONDS,
        )
        await scheduler.start()
    app.state.reminder_scheduler = scheduler

    logger.info("Application started successfully")

    yield

    # Shutdown
    logger.info("Shutting down...")
    if scheduler:
        await scheduler.stop()
    await Database.close_db()
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Turns clinical notes into care plans and tracks patient adherence",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health_router)
app.include_router(notes_router, prefix=settings.API_V1_PREFIX)
app.include_router(patients_router, prefix=settings.API_V1_PREFIX)


ERROR_STATUS = {
    ExtractionFormatError: status.HTTP_502_BAD_GATEWAY,
    ExtractionGatewayError: status.HTTP_502_BAD_GATEWAY,
    StoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
    CipherError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@app.exception_handler(CarePlanError)
async def care_plan_error_handler(request: Request, exc: CarePlanError):
    """Map domain errors to HTTP responses."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            message=exc.message,
            detail={"error": type(exc).__name__},
        ).model_dump(),
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }
