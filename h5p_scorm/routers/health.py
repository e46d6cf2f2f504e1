"""
Health Check Router

Provides health check endpoints for monitoring application status.
"""

import os
import sys
import tempfile
import time
from datetime import datetime

from fastapi import APIRouter, HTTPException, Request

from ..models.conversion import HealthCheckResponse
from ..services.scorm_package import TEMPLATE_DIR

# Initialize router
router = APIRouter()

# Application start time for uptime calculation
_start_time = time.time()


def _working_dir_writable(path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryFile(dir=path):
            pass
        return True
    except OSError:
        return False


@router.get("/health", response_model=HealthCheckResponse, summary="Basic Health Check")
async def health_check(request: Request):
    """
    Basic health check endpoint

    Returns application status, version, and environment information.
    """
    settings = request.app.state.settings
    return HealthCheckResponse(
        status="healthy",
        version=request.app.version,
        environment=settings.environment,
        timestamp=datetime.utcnow(),
        uptime=time.time() - _start_time,
    )


@router.get("/health/detailed", summary="Detailed Health Check")
async def detailed_health_check(request: Request):
    """
    Detailed health check

    Reports working directory and statistics configuration plus the number
    of conversions currently holding a workspace.
    """
    settings = request.app.state.settings
    service = request.app.state.conversion_service

    components = {
        "working_directory": {
            "path": str(settings.working_dir),
            "writable": _working_dir_writable(settings.working_dir),
            "active_workspaces": service.workspaces.active_count,
        },
        "template": {"present": (TEMPLATE_DIR / "index.html").is_file()},
        "statistics": {"enabled": settings.use_statistics},
    }
    is_healthy = (
        components["working_directory"]["writable"]
        and components["template"]["present"]
    )

    return {
        "status": "healthy" if is_healthy else "degraded",
        "version": request.app.version,
        "environment": settings.environment,
        "timestamp": datetime.utcnow().isoformat(),
        "uptime": time.time() - _start_time,
        "components": components,
        "details": {
            "python_version": sys.version,
            "startup_time": datetime.fromtimestamp(_start_time).isoformat(),
        },
    }


@router.get("/health/ready", summary="Readiness Check")
async def readiness_check(request: Request):
    """
    Kubernetes-style readiness probe

    Returns 200 when the working directory is writable and the player
    template is installed, 503 otherwise.
    """
    settings = request.app.state.settings
    if not _working_dir_writable(settings.working_dir):
        raise HTTPException(status_code=503, detail="Working directory not writable")
    if not (TEMPLATE_DIR / "index.html").is_file():
        raise HTTPException(status_code=503, detail="Player template missing")
    return {"status": "ready", "timestamp": datetime.utcnow().isoformat()}


@router.get("/health/live", summary="Liveness Check")
async def liveness_check():
    """Kubernetes-style liveness probe"""
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat(),
        "pid": os.getpid(),
    }
