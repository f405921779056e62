"""Health check endpoints."""

from fastapi import APIRouter, Request

from venuebridge import __version__

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "venuebridge"}


@router.get("/health/detailed")
async def detailed_health(request: Request):
    """Detailed health check with configuration and scheduler info."""
    services = request.app.state.services
    return {
        "status": "healthy",
        "service": "venuebridge",
        "version": __version__,
        "scheduler_running": services.scheduler.is_running,
        "config": services.settings.get_safe_dict(),
    }
