"""
Metrics Endpoint

GET /api/v1/metrics - Prometheus metrics endpoint
"""

from fastapi import APIRouter, Response

from packshot.core.metrics import get_metrics, get_metrics_content_type

router = APIRouter()


@router.get("/metrics")
async def metrics():
    """
    Prometheus metrics endpoint.

    Exposes:
    - pipeline_latency_seconds (per stage)
    - pipeline_stage_outcomes_total
    - external_api_calls_total
    - packshot_jobs_total
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
