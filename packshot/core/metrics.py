"""
Prometheus Metrics for Observability

Tracks pipeline stage latency, stage outcomes and external API calls.
Exposed by the HTTP surface at /api/v1/metrics.
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY
)

# =============================================================================
# Metrics Definitions
# =============================================================================

# Pipeline Latency - Per Stage
pipeline_latency_seconds = Histogram(
    "pipeline_latency_seconds",
    "Time spent in each pipeline stage",
    labelnames=["stage", "status"],
    buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0]
)

# Total Pipeline Duration
pipeline_total_duration = Histogram(
    "pipeline_total_duration_seconds",
    "Total time for complete pipeline execution",
    labelnames=["status"],
    buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0]
)

# Stage outcomes (success / degraded / fatal / skipped)
pipeline_stage_outcomes_total = Counter(
    "pipeline_stage_outcomes_total",
    "Outcome of each pipeline stage",
    labelnames=["stage", "outcome"]
)

# External API Calls
external_api_calls_total = Counter(
    "external_api_calls_total",
    "Total number of external service calls",
    labelnames=["service", "status", "http_status"]
)

# Jobs Counter
jobs_total = Counter(
    "packshot_jobs_total",
    "Total number of pipeline invocations",
    labelnames=["status"]
)

# Application Info
app_info = Info(
    "packshot_app",
    "Application information"
)


# =============================================================================
# Helper Functions
# =============================================================================

def set_app_info(version: str, environment: str):
    """Set application info metric."""
    app_info.info({
        "version": version,
        "environment": environment
    })


@contextmanager
def track_stage_latency(stage: str):
    """
    Context manager to track stage latency.

    Usage:
        with track_stage_latency("reposition"):
            # do work
    """
    start = time.perf_counter()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        pipeline_latency_seconds.labels(stage=stage, status=status).observe(
            time.perf_counter() - start
        )


def record_stage_outcome(stage: str, outcome: str):
    """Record the tagged outcome of a stage."""
    pipeline_stage_outcomes_total.labels(stage=stage, outcome=outcome).inc()


def record_external_call(service: str, status: str, http_status=None):
    """Record an external API call."""
    external_api_calls_total.labels(
        service=service,
        status=status,
        http_status=str(http_status) if http_status is not None else "none"
    ).inc()


def record_job_completion(status: str, duration_seconds: float):
    """Record the end of a pipeline invocation."""
    jobs_total.labels(status=status).inc()
    pipeline_total_duration.labels(status=status).observe(duration_seconds)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
