"""
Enhance Endpoint

POST /api/v1/enhance - run the full pipeline on an uploaded photo and
return the PNG. Degraded and partial results still return an image; the
outcome is reported in the X-Pipeline-* headers. Only when no usable
artifact exists is a JSON error returned.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from packshot.api.dependencies import get_pipeline
from packshot.core.config import settings
from packshot.core.exceptions import PayloadTooLargeError, PipelineStageError, ValidationError
from packshot.core.logging import get_logger
from packshot.pipeline.orchestrator import EnhancementPipeline

logger = get_logger(__name__)
router = APIRouter()


@router.post("", response_class=Response)
async def enhance_image(
    file: UploadFile = File(..., description="Product photo (jpg, png, webp)"),
    prompt: Optional[str] = Form(default=None, max_length=1000),
    pipeline: EnhancementPipeline = Depends(get_pipeline),
):
    """
    Turn a product photo into a studio-style packshot.

    Response headers:
    - X-Job-Id: invocation id (matches the logs)
    - X-Pipeline-Status: completed | degraded | partial
    - X-Pipeline-Final-Stage: stage that produced the returned image
    - X-Pipeline-Warnings: degraded stages, if any
    - X-Pipeline-Error: error message for partial results
    """
    data = await file.read()
    if not data:
        raise ValidationError("Uploaded file is empty")
    if len(data) > settings.MAX_UPLOAD_SIZE_BYTES:
        raise PayloadTooLargeError(
            f"Upload is {len(data)} bytes, limit is {settings.MAX_UPLOAD_SIZE_BYTES}",
            size_bytes=len(data),
            limit_bytes=settings.MAX_UPLOAD_SIZE_BYTES
        )

    result = await run_in_threadpool(
        pipeline.run, data, file.filename or "upload", prompt
    )

    if not result.has_image:
        if result.error is not None:
            raise result.error
        raise PipelineStageError("Pipeline produced no image", stage=result.final_stage or "unknown",
                                 job_id=result.job_id)

    headers = {
        "X-Job-Id": result.job_id,
        "X-Pipeline-Status": result.status.value,
        "X-Pipeline-Final-Stage": result.final_stage or "",
    }
    if result.degraded_stages:
        headers["X-Pipeline-Warnings"] = ",".join(result.degraded_stages)
    if result.error is not None:
        message = " ".join(result.error.message.split())[:200]
        headers["X-Pipeline-Error"] = message.encode("ascii", "replace").decode()

    logger.info("enhance_response", job_id=result.job_id, status=result.status.value)
    return Response(content=result.png_bytes, media_type="image/png", headers=headers)
