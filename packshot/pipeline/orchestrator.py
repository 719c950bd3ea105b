"""
Stage Pipeline Orchestrator

normalize -> remove_background -> reposition -> synthesize_mask -> inpaint
-> post_process, strictly forward. Stages are never retried here (the
adapters do that). A DEGRADED stage is logged and the pipeline carries on
with the fallback artifact; a FATAL stage stops the run and the last good
artifact is handed back together with the error.
"""

import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import httpx

from packshot.core.config import PipelineConfig, settings
from packshot.core.exceptions import PackshotError, PipelineStageError
from packshot.core.logging import LogContext, get_logger
from packshot.core.metrics import record_job_completion, record_stage_outcome, track_stage_latency
from packshot.core.storage import WorkingFiles, input_identity
from packshot.engines.adapters import (
    BackgroundRemovalAdapter,
    BackgroundRemover,
    CancellationToken,
    InpaintAdapter,
    build_remover,
)
from packshot.engines.raster import RasterImage
from packshot.pipeline import stages
from packshot.pipeline.schemas import (
    PipelineContext,
    PipelineResult,
    PipelineState,
    ResultStatus,
    StageRecord,
    StageResult,
    StageStatus,
)

logger = get_logger(__name__)

ARTIFACT_NAMES = {
    PipelineState.NORMALIZE: "input",
    PipelineState.REMOVE_BACKGROUND: "no_bg",
    PipelineState.REPOSITION: "repositioned",
    PipelineState.SYNTHESIZE_MASK: "mask",
    PipelineState.INPAINT: "inpainted",
    PipelineState.POST_PROCESS: "result",
}


def _local(fn: Callable[[], Tuple[RasterImage, Dict[str, Any]]]) -> Callable[[], StageResult]:
    """Adapt a local `(artifact, metadata)` stage function to a StageResult."""
    def run() -> StageResult:
        artifact, metadata = fn()
        return StageResult.success(artifact, **metadata)
    return run


class EnhancementPipeline:
    """
    One configured pipeline. Safe to reuse for sequential invocations;
    concurrent invocations should each use their own instance.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        remover: Optional[BackgroundRemover] = None,
        inpaint_adapter: Optional[InpaintAdapter] = None,
        http_client: Optional[httpx.Client] = None,
        token: Optional[CancellationToken] = None,
        working_dir: Optional[Union[str, Path]] = None,
        persist_working_files: bool = False,
    ):
        self.config = config or settings.pipeline_config()
        self.token = token or CancellationToken()
        self.background = BackgroundRemovalAdapter(
            remover or build_remover(self.config, http_client),
            self.config,
            token=self.token,
        )
        self.inpainter = inpaint_adapter or InpaintAdapter(
            self.config, client=http_client, token=self.token
        )
        self.working_dir = Path(working_dir) if working_dir else settings.working_path
        self.persist_working_files = persist_working_files

    @property
    def inpaint_enabled(self) -> bool:
        return self.config.inpaint_available

    # ---------------------------------------------------------------- stages
    def _run_stage(
        self,
        ctx: PipelineContext,
        state: PipelineState,
        fn: Callable[[], StageResult],
    ) -> StageResult:
        ctx.state = state
        stage = state.value
        start = time.perf_counter()

        with LogContext(stage=stage):
            logger.info("stage_started")
            try:
                self.token.raise_if_cancelled(stage=stage)
                with track_stage_latency(stage):
                    result = fn()
            except PackshotError as e:
                e.stage = e.stage or stage
                result = StageResult.fatal(e)
            except Exception as e:
                logger.exception("stage_crashed", error=str(e))
                result = StageResult.fatal(
                    PipelineStageError(f"{stage} failed: {e}", stage=stage, job_id=ctx.job_id)
                )

            duration_ms = int((time.perf_counter() - start) * 1000)
            self._record(ctx, state, result, duration_ms)

        return result

    def _skip(self, ctx: PipelineContext, state: PipelineState, reason: str):
        result = StageResult.skipped(ctx.artifact, reason)
        with LogContext(stage=state.value):
            self._record(ctx, state, result, 0)

    def _record(self, ctx: PipelineContext, state: PipelineState, result: StageResult, duration_ms: int):
        error = result.error
        ctx.records.append(StageRecord(
            stage=state.value,
            status=result.status,
            duration_ms=duration_ms,
            reason=result.reason,
            error=error.message if error else None,
            error_type=type(error).__name__ if error else None,
            metadata={k: v for k, v in result.metadata.items() if isinstance(v, (str, int, float, bool, list, tuple))},
        ))
        record_stage_outcome(state.value, result.status.value)

        if result.status == StageStatus.SUCCESS:
            logger.info("stage_completed", duration_ms=duration_ms)
        elif result.status == StageStatus.DEGRADED:
            ctx.warnings.append(f"{state.value}: {result.reason}")
            logger.warning("stage_degraded", duration_ms=duration_ms, reason=result.reason)
        elif result.status == StageStatus.SKIPPED:
            logger.info("stage_skipped", reason=result.reason)
        else:
            logger.error(
                "stage_failed",
                duration_ms=duration_ms,
                error=result.reason,
                error_type=type(error).__name__ if error else None
            )

        if result.artifact is not None and result.status != StageStatus.SKIPPED and ctx.working_files:
            self._persist(ctx, ARTIFACT_NAMES[state], result.artifact)

    def _persist(self, ctx: PipelineContext, name: str, artifact: RasterImage):
        """Write a working file; a storage failure never costs the caller the artifact."""
        try:
            ctx.working_files.write(name, artifact.encode_png())
        except OSError as e:
            logger.error(
                "working_file_write_failed",
                name=name,
                path=str(ctx.working_files.path_for(name)),
                error=str(e)
            )

    # ------------------------------------------------------------------- run
    def run(self, data: bytes, source_name: str = "image", prompt: Optional[str] = None) -> PipelineResult:
        """Run every stage over the encoded image `data`."""
        ctx = PipelineContext(source_name=source_name, canvas_size=self.config.canvas_size)
        ctx.working_files = WorkingFiles(
            self.working_dir,
            input_identity(source_name, data),
            job_id=ctx.job_id,
            enabled=self.persist_working_files,
        )
        config = self.config

        with LogContext(job_id=ctx.job_id):
            logger.info("pipeline_started", source=source_name, input_size=len(data))

            result = self._run_stage(ctx, PipelineState.NORMALIZE, _local(lambda: stages.normalize(data, config)))
            if result.is_fatal:
                return self._abort(ctx, result)
            ctx.accept(PipelineState.NORMALIZE, result.artifact)

            normalized = ctx.artifact
            result = self._run_stage(ctx, PipelineState.REMOVE_BACKGROUND, lambda: self.background.remove(normalized))
            if result.is_fatal:
                return self._abort(ctx, result)
            ctx.accept(PipelineState.REMOVE_BACKGROUND, result.artifact)

            cutout = ctx.artifact
            result = self._run_stage(ctx, PipelineState.REPOSITION, _local(lambda: stages.reposition(cutout, config)))
            if result.is_fatal:
                return self._abort(ctx, result)
            ctx.accept(PipelineState.REPOSITION, result.artifact)

            if self.inpaint_enabled:
                placed = ctx.artifact
                result = self._run_stage(ctx, PipelineState.SYNTHESIZE_MASK, _local(lambda: stages.synthesize_mask(placed, config)))
                if result.is_fatal:
                    return self._abort(ctx, result)
                ctx.mask = result.artifact

                mask = ctx.mask
                result = self._run_stage(ctx, PipelineState.INPAINT, lambda: self.inpainter.edit(placed, mask, prompt))
                if result.is_fatal:
                    return self._abort(ctx, result)
                ctx.accept(PipelineState.INPAINT, result.artifact)
                ctx.inpainted = True
            else:
                reason = "inpainting disabled" if not config.inpaint_enabled else "no inpainting API key configured"
                self._skip(ctx, PipelineState.SYNTHESIZE_MASK, reason)
                self._skip(ctx, PipelineState.INPAINT, reason)

            current, inpainted = ctx.artifact, ctx.inpainted
            result = self._run_stage(
                ctx, PipelineState.POST_PROCESS,
                _local(lambda: stages.post_process(current, config, inpainted=inpainted))
            )
            if result.is_fatal:
                return self._abort(ctx, result)
            ctx.accept(PipelineState.POST_PROCESS, result.artifact)

            return self._complete(ctx)

    def _complete(self, ctx: PipelineContext) -> PipelineResult:
        ctx.state = PipelineState.DONE
        status = ResultStatus.DEGRADED if ctx.warnings else ResultStatus.COMPLETED
        record_job_completion(status.value, ctx.elapsed_seconds)
        logger.info(
            "pipeline_completed",
            status=status.value,
            warnings=ctx.warnings,
            timings=ctx.timings
        )
        return self._result(ctx, status)

    def _abort(self, ctx: PipelineContext, failure: StageResult) -> PipelineResult:
        failed_stage = ctx.state.value
        ctx.error = failure.error
        ctx.state = PipelineState.FAILED
        status = ResultStatus.PARTIAL if ctx.last_good is not None else ResultStatus.FAILED

        if status == ResultStatus.PARTIAL and ctx.working_files:
            self._persist(ctx, "result", ctx.last_good)

        record_job_completion(status.value, ctx.elapsed_seconds)
        logger.error(
            "pipeline_failed",
            failed_stage=failed_stage,
            error=failure.reason,
            fallback_stage=ctx.last_good_stage,
            timings=ctx.timings
        )
        return self._result(ctx, status)

    def _result(self, ctx: PipelineContext, status: ResultStatus) -> PipelineResult:
        image = ctx.last_good
        output_path = None
        if ctx.working_files and "result" in ctx.working_files.written:
            output_path = str(ctx.working_files.written["result"])
        return PipelineResult(
            job_id=ctx.job_id,
            status=status,
            image=image,
            png_bytes=image.encode_png() if image is not None else None,
            final_stage=ctx.last_good_stage,
            records=list(ctx.records),
            warnings=list(ctx.warnings),
            error=ctx.error,
            output_path=output_path,
        )

    def run_path(self, path: Union[str, Path], prompt: Optional[str] = None) -> PipelineResult:
        path = Path(path)
        return self.run(path.read_bytes(), source_name=path.name, prompt=prompt)
