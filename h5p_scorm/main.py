"""Main FastAPI application entry point.

Provides the H5P to SCORM conversion endpoint, health checks and CORS.
"""

from contextlib import asynccontextmanager
from datetime import datetime
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from h5p_scorm.config import Settings, get_settings
from h5p_scorm.exceptions import ConversionError
from h5p_scorm.routers import convert, health
from h5p_scorm.services.converter import ConversionService
from h5p_scorm.services.workspace import WorkspaceManager

logger = logging.getLogger(__name__)

# Application metadata
APP_NAME = "H5P to SCORM Converter API"
VERSION = "1.0.0"
DESCRIPTION = """
Converts H5P interactive content into SCORM 1.2 packages.

## Features

* **Conversion**: Upload a `.h5p` file, receive a SCORM 1.2 zip
* **Mastery score**: Pass threshold written into the SCORM manifest
* **Statistics**: Optional CSV log of converted content types
* **Health Check**: Monitor application status
"""


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around ``settings`` (environment by default)."""
    settings = settings or get_settings()
    configure_logging(settings)

    workspaces = WorkspaceManager(settings.working_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {APP_NAME} v{VERSION}")
        logger.info(f"Environment: {settings.environment}")
        logger.info(f"Statistics enabled: {settings.use_statistics}")
        workspaces.init_root()
        try:
            yield
        finally:
            logger.info(f"Shutting down {APP_NAME}")
            workspaces.teardown_root()

    app = FastAPI(
        title=APP_NAME,
        description=DESCRIPTION,
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.conversion_service = ConversionService(settings, workspaces=workspaces)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc):
        """Handle HTTP exceptions with consistent error format"""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": exc.detail,
                "timestamp": datetime.utcnow().isoformat(),
                "path": str(request.url.path)
            }
        )

    @app.exception_handler(ConversionError)
    async def conversion_exception_handler(request, exc):
        """Pipeline errors that escaped a router: generic message only"""
        logger.error(f"Conversion error: {exc}", exc_info=True)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": exc.public_message,
                "timestamp": datetime.utcnow().isoformat(),
                "path": str(request.url.path)
            }
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        """Handle general exceptions"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal Server Error",
                "timestamp": datetime.utcnow().isoformat(),
                "path": str(request.url.path)
            }
        )

    # Include routers; /convert is also served at the root for form posts
    app.include_router(health.router, prefix="/api/v1", tags=["Health"])
    app.include_router(convert.router, prefix="/api/v1", tags=["Convert"])
    app.include_router(convert.router, include_in_schema=False)

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information"""
        return {
            "name": APP_NAME,
            "version": VERSION,
            "status": "running",
            "environment": settings.environment,
            "timestamp": datetime.utcnow().isoformat(),
            "docs": "/docs",
            "convert": "/api/v1/convert",
            "health": "/api/v1/health"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "h5p_scorm.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
