"""
Pipeline data model: stage outcomes, per-invocation context, final result.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from packshot.core.exceptions import PackshotError
from packshot.core.storage import WorkingFiles
from packshot.engines.raster import RasterImage


class PipelineState(str, Enum):
    """Pipeline stages, in execution order, plus the terminal states."""
    NORMALIZE = "normalize"
    REMOVE_BACKGROUND = "remove_background"
    REPOSITION = "reposition"
    SYNTHESIZE_MASK = "synthesize_mask"
    INPAINT = "inpaint"
    POST_PROCESS = "post_process"
    DONE = "done"
    FAILED = "failed"


STAGE_ORDER = (
    PipelineState.NORMALIZE,
    PipelineState.REMOVE_BACKGROUND,
    PipelineState.REPOSITION,
    PipelineState.SYNTHESIZE_MASK,
    PipelineState.INPAINT,
    PipelineState.POST_PROCESS,
)


class StageStatus(str, Enum):
    SUCCESS = "success"
    DEGRADED = "degraded"
    FATAL = "fatal"
    SKIPPED = "skipped"


class ResultStatus(str, Enum):
    COMPLETED = "completed"   # every stage ran on its primary path
    DEGRADED = "degraded"     # finished, but some stage used a fallback
    PARTIAL = "partial"       # aborted; last good artifact returned
    FAILED = "failed"         # aborted before any usable artifact existed


@dataclass(frozen=True)
class StageResult:
    """Tagged outcome of one stage."""
    status: StageStatus
    artifact: Optional[RasterImage] = None
    reason: Optional[str] = None
    error: Optional[PackshotError] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, artifact: RasterImage, **metadata) -> "StageResult":
        return cls(StageStatus.SUCCESS, artifact=artifact, metadata=metadata)

    @classmethod
    def degraded(cls, artifact: RasterImage, reason: str, error: Optional[PackshotError] = None,
                 **metadata) -> "StageResult":
        return cls(StageStatus.DEGRADED, artifact=artifact, reason=reason, error=error,
                   metadata=metadata)

    @classmethod
    def fatal(cls, error: PackshotError, **metadata) -> "StageResult":
        return cls(StageStatus.FATAL, reason=error.message, error=error, metadata=metadata)

    @classmethod
    def skipped(cls, artifact: RasterImage, reason: str) -> "StageResult":
        return cls(StageStatus.SKIPPED, artifact=artifact, reason=reason)

    @property
    def is_fatal(self) -> bool:
        return self.status == StageStatus.FATAL


class StageRecord(BaseModel):
    """Diagnostics for one executed stage."""
    stage: str
    status: StageStatus
    duration_ms: int = 0
    reason: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


@dataclass
class PipelineContext:
    """
    Mutable record for a single invocation.

    Created when an invocation starts and dropped when it returns; nothing
    here outlives the call.
    """
    source_name: str
    canvas_size: int
    working_files: Optional[WorkingFiles] = None
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: PipelineState = PipelineState.NORMALIZE
    artifact: Optional[RasterImage] = None
    last_good: Optional[RasterImage] = None
    last_good_stage: Optional[str] = None
    mask: Optional[RasterImage] = None
    inpainted: bool = False
    records: List[StageRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error: Optional[PackshotError] = None
    started_at: float = field(default_factory=time.perf_counter)

    def accept(self, stage: PipelineState, artifact: RasterImage):
        """Adopt `artifact` as the current and last good working artifact."""
        self.artifact = artifact
        self.last_good = artifact
        self.last_good_stage = stage.value

    @property
    def timings(self) -> Dict[str, int]:
        return {record.stage: record.duration_ms for record in self.records}

    @property
    def elapsed_seconds(self) -> float:
        return time.perf_counter() - self.started_at


@dataclass
class PipelineResult:
    """What the caller gets back from one invocation."""
    job_id: str
    status: ResultStatus
    image: Optional[RasterImage]
    png_bytes: Optional[bytes]
    final_stage: Optional[str]
    records: List[StageRecord]
    warnings: List[str]
    error: Optional[PackshotError] = None
    output_path: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (ResultStatus.COMPLETED, ResultStatus.DEGRADED)

    @property
    def has_image(self) -> bool:
        return self.image is not None and bool(self.png_bytes)

    @property
    def degraded_stages(self) -> List[str]:
        return [r.stage for r in self.records if r.status == StageStatus.DEGRADED]

    def stage_status(self, stage: PipelineState) -> Optional[StageStatus]:
        for record in self.records:
            if record.stage == stage.value:
                return record.status
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "final_stage": self.final_stage,
            "warnings": self.warnings,
            "error": self.error.to_dict() if self.error else None,
            "stages": [r.model_dump(mode="json") for r in self.records],
            "output_path": self.output_path,
        }
