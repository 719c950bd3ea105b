"""
FastAPI Dependencies

A fresh pipeline per request keeps invocations isolated: each gets its
own adapters and cancellation token.
"""

from packshot.core.config import settings
from packshot.pipeline.orchestrator import EnhancementPipeline


def get_pipeline() -> EnhancementPipeline:
    """Pipeline factory - override in tests via app.dependency_overrides."""
    return EnhancementPipeline(
        settings.pipeline_config(),
        working_dir=settings.WORKING_DIR,
        persist_working_files=settings.PERSIST_WORKING_FILES,
    )
