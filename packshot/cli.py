"""
Command line entry point.

    packshot photo.jpg
    packshot ./input --output-dir ./output

A directory is processed one image at a time. Exit status is 1 when any
image produced no output at all.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from packshot.core.config import settings
from packshot.core.logging import setup_logging, get_logger
from packshot.pipeline.orchestrator import EnhancementPipeline
from packshot.pipeline.schemas import PipelineResult

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}

logger = get_logger(__name__)


def collect_inputs(path: Path) -> List[Path]:
    if path.is_dir():
        return sorted(p for p in path.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS)
    return [path]


def write_output(result: PipelineResult, source: Path, output_dir: Path) -> Optional[Path]:
    if not result.has_image:
        return None
    output_dir.mkdir(parents=True, exist_ok=True)
    suffix = "result" if result.ok else "partial"
    target = output_dir / f"{source.stem}_{suffix}.png"
    target.write_bytes(result.png_bytes)
    return target


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Turn product photos into white-background studio packshots"
    )
    parser.add_argument("input", help="Image file or directory of images")
    parser.add_argument(
        "--output-dir",
        default=settings.OUTPUT_DIR,
        help="Where finished images are written"
    )
    parser.add_argument(
        "--prompt",
        default=None,
        help="Override the inpainting instruction"
    )
    parser.add_argument(
        "--no-inpaint",
        action="store_true",
        help="Skip the generative inpainting step"
    )
    parser.add_argument(
        "--keep-working-files",
        action=argparse.BooleanOptionalAction,
        default=settings.PERSIST_WORKING_FILES,
        help="Keep intermediate PNGs in the working directory (default: PERSIST_WORKING_FILES)"
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default="json" if settings.LOG_FORMAT_JSON else "console"
    )

    args = parser.parse_args(argv)
    setup_logging(log_level=settings.LOG_LEVEL, json_format=args.log_format == "json")

    source = Path(args.input)
    if not source.exists():
        parser.error(f"input not found: {source}")

    inputs = collect_inputs(source)
    if not inputs:
        logger.warning("no_images_found", path=str(source))
        return 0

    overrides = {"inpaint_enabled": False} if args.no_inpaint else {}
    config = settings.pipeline_config(**overrides)
    output_dir = Path(args.output_dir)

    failures = 0
    for path in inputs:
        pipeline = EnhancementPipeline(
            config,
            working_dir=settings.WORKING_DIR,
            persist_working_files=args.keep_working_files,
        )
        result = pipeline.run_path(path, prompt=args.prompt)
        target = write_output(result, path, output_dir)

        if target is None:
            failures += 1
            logger.error(
                "image_failed",
                source=str(path),
                error=result.error.message if result.error else None
            )
        else:
            logger.info(
                "image_written",
                source=str(path),
                output=str(target),
                status=result.status.value,
                warnings=result.warnings
            )

    logger.info("batch_finished", total=len(inputs), failed=failures)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
