"""
Packshot Studio Pipeline - HTTP Application

FastAPI application with:
- API versioning (/api/v1/)
- Structured logging with structlog
- Prometheus metrics
- Global exception handling
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from packshot.core.config import settings
from packshot.core.logging import setup_logging, get_logger
from packshot.core.exceptions import register_exception_handlers
from packshot.core.metrics import set_app_info
from packshot.api.v1 import api_v1_router


# =============================================================================
# Initialize Logging
# =============================================================================
setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=settings.LOG_FORMAT_JSON
)
logger = get_logger(__name__)


# =============================================================================
# Lifespan Handler
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - startup and shutdown."""
    logger.info(
        "application_starting",
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        inpaint_enabled=settings.pipeline_config().inpaint_available,
        background_vendor=settings.BACKGROUND_REMOVAL_VENDOR.value
    )
    set_app_info(version=settings.APP_VERSION, environment=settings.ENVIRONMENT)

    yield

    logger.info("application_shutdown_complete")


# =============================================================================
# Create FastAPI Application
# =============================================================================
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Product photo to studio packshot:

    1. **Normalize** - square RGBA canvas
    2. **Background Removal** - remove.bg / Poof (falls back to a no-op)
    3. **Reposition** - center-bottom catalog composition
    4. **Inpaint** - OpenAI image edit of the background (optional)
    5. **Post-process** - flatten, cosmetic pass, pure white background
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    openapi_url="/api/openapi.json"
)


@app.middleware("http")
async def add_request_timing(request: Request, call_next):
    """Expose request duration to clients."""
    start_time = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = str(time.time() - start_time)
    return response


register_exception_handlers(app)
app.include_router(api_v1_router)


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "docs": "/api/docs",
        "enhance": "/api/v1/enhance",
        "metrics": "/api/v1/metrics"
    }


@app.get("/health", tags=["health"])
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION
    }


# =============================================================================
# Development Server
# =============================================================================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "packshot.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
