"""Health check endpoints."""

from fastapi import APIRouter, Request

from app.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint, including the last adherence sweep."""
    scheduler = getattr(request.app.state, "reminder_scheduler", None)
    last_report = scheduler.last_report if scheduler else None
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "reminders": {
            "enabled": scheduler is not None,
            "last_sweep_at": last_report.ran_at.isoformat() if last_report else None,
        },
    }


@router.get("/ready")
async def readiness_check():
    """Readiness check for Kubernetes/Docker."""
    return {"status": "ready"}
