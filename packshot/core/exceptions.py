"""
Exception Taxonomy and Failure Handling

Provides the pipeline's error hierarchy and structured error responses
for the HTTP surface.
"""

import traceback
from typing import Optional, Dict, Any
from datetime import datetime
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from packshot.core.logging import get_logger, job_id_var

logger = get_logger(__name__)


# =============================================================================
# Custom Exceptions
# =============================================================================

class PackshotError(Exception):
    """Base exception for the pipeline."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        job_id: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.job_id = job_id or job_id_var.get()
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "error_type": type(self).__name__,
            "job_id": self.job_id,
            "code": self.code,
            "stage": self.stage,
            "details": self.details,
        }


class UnsupportedFormatError(PackshotError):
    """Raised when the decoder cannot interpret the input bytes."""

    def __init__(self, message: str = "Unsupported or corrupt image data", **kwargs):
        super().__init__(message, code=415, **kwargs)


class ValidationError(PackshotError):
    """Raised when a pre-flight contract check fails."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=400, **kwargs)


class PayloadTooLargeError(PackshotError):
    """Raised when a request payload exceeds the configured ceiling."""

    def __init__(self, message: str, size_bytes: int, limit_bytes: int, **kwargs):
        super().__init__(message, code=413, **kwargs)
        self.details["size_bytes"] = size_bytes
        self.details["limit_bytes"] = limit_bytes


class OutOfBoundsError(PackshotError):
    """Raised when a crop is requested for an empty bounding box."""

    def __init__(self, message: str = "Bounding box is empty", **kwargs):
        super().__init__(message, code=422, **kwargs)


class ServiceError(PackshotError):
    """Raised when an external service call fails (network, HTTP or body)."""

    def __init__(
        self,
        message: str,
        service: str,
        http_status: Optional[int] = None,
        retryable: bool = True,
        **kwargs
    ):
        super().__init__(message, code=502, **kwargs)
        self.service = service
        self.http_status = http_status
        self.retryable = retryable
        self.details["service"] = service
        self.details["http_status"] = http_status


class InpaintError(PackshotError):
    """Raised when generative inpainting cannot produce a result."""

    def __init__(self, message: str, attempts: int = 0, **kwargs):
        super().__init__(message, code=502, **kwargs)
        self.details["attempts"] = attempts


class PipelineCancelledError(PackshotError):
    """Raised when the caller cancels a running invocation."""

    def __init__(self, message: str = "Pipeline cancelled", **kwargs):
        super().__init__(message, code=499, **kwargs)


class PipelineStageError(PackshotError):
    """Raised when a pipeline stage fails unexpectedly."""

    def __init__(self, message: str, stage: str, **kwargs):
        super().__init__(message, code=500, stage=stage, **kwargs)


# =============================================================================
# HTTP Exception Handlers
# =============================================================================

def register_exception_handlers(app: FastAPI):
    """Register custom exception handlers with FastAPI app."""

    @app.exception_handler(PackshotError)
    async def packshot_exception_handler(request: Request, exc: PackshotError):
        logger.error(
            "packshot_exception",
            error=exc.message,
            code=exc.code,
            stage=exc.stage,
            details=exc.details
        )

        content = exc.to_dict()
        content["timestamp"] = datetime.utcnow().isoformat() + "Z"
        status_code = exc.code if 400 <= exc.code < 600 else 500
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
            traceback=traceback.format_exc()
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "job_id": job_id_var.get(),
                "code": 500,
                "timestamp": datetime.utcnow().isoformat() + "Z"
            }
        )
