"""
Pipeline Stage Implementations

Local (non-network) stages as plain functions of (input, config).
Network stages live in packshot.engines.adapters; the orchestrator wraps
both kinds into StageResults.
"""

from typing import Any, Dict, Tuple

from packshot.core.config import PipelineConfig
from packshot.core.logging import get_logger
from packshot.engines.raster import (
    BoundingBox,
    CanvasSpec,
    RasterImage,
    TRANSPARENT,
    WHITE,
    compose_on_canvas,
    compute_content_bounding_box,
    compute_opaque_bounding_box,
    contain_on_canvas,
    crop_with_padding,
    fit_within_box,
    synthesize_mask_from_alpha,
)
from packshot.pipeline.finalizer import Finalizer

logger = get_logger(__name__)


# =============================================================================
# Stage 1: Normalize
# =============================================================================

def normalize(data: bytes, config: PipelineConfig) -> Tuple[RasterImage, Dict[str, Any]]:
    """
    Decode, add alpha and contain onto the square canvas.

    Raises UnsupportedFormatError when the bytes are not an image.
    """
    source = RasterImage.decode(data)
    canvas = CanvasSpec.square(config.canvas_size, tuple(config.normalize_background))
    normalized = contain_on_canvas(source.ensure_alpha(), canvas)

    metadata = {
        "input_size": len(data),
        "original_dimensions": source.size,
        "original_channels": source.channels,
    }
    logger.info("image_normalized", **metadata)
    return normalized, metadata


# =============================================================================
# Stage 3: Reposition (center-bottom composition)
# =============================================================================

def placement_for(width: int, height: int, config: PipelineConfig) -> Tuple[int, int]:
    """Top-left offset that centres horizontally and rests on the bottom margin."""
    canvas = config.canvas_size
    bottom = canvas - int(round(canvas * config.bottom_margin_fraction))
    return (canvas - width) // 2, bottom - height


def place_center_bottom(
    product: RasterImage,
    config: PipelineConfig,
    background: Tuple[int, ...] = TRANSPARENT,
    channels: int = 4,
) -> RasterImage:
    canvas = config.canvas_size
    product = fit_within_box(
        product,
        max(1, int(canvas * config.max_width_fraction)),
        max(1, int(canvas * config.max_height_fraction)),
    )
    left, top = placement_for(product.width, product.height, config)
    return compose_on_canvas(CanvasSpec.square(canvas, background, channels), product, left, top)


def reposition(image: RasterImage, config: PipelineConfig) -> Tuple[RasterImage, Dict[str, Any]]:
    box = compute_opaque_bounding_box(image, config.alpha_threshold)
    if box.is_empty:
        logger.warning("reposition_no_foreground", alpha_threshold=config.alpha_threshold)
        box = BoundingBox(0, 0, image.width - 1, image.height - 1)

    product = crop_with_padding(image, box, config.crop_padding)
    placed = place_center_bottom(product, config)

    metadata = {
        "foreground_box": [box.min_x, box.min_y, box.max_x, box.max_y],
        "cropped_dimensions": product.size,
    }
    logger.info("image_repositioned", **metadata)
    return placed, metadata


# =============================================================================
# Stage 4: Mask synthesis
# =============================================================================

def synthesize_mask(image: RasterImage, config: PipelineConfig) -> Tuple[RasterImage, Dict[str, Any]]:
    mask = synthesize_mask_from_alpha(
        image,
        invert=config.mask_invert,
        encoding=config.mask_encoding,
    )
    metadata = {
        "invert": config.mask_invert,
        "encoding": config.mask_encoding.value,
    }
    return mask, metadata


# =============================================================================
# Stage 6: Post-process
# =============================================================================

def recompose_on_white(image: RasterImage, config: PipelineConfig) -> RasterImage:
    """
    Trim the generated image to its content and re-place it center-bottom
    on a white canvas. Returns the input unchanged when no content is found.
    """
    box = compute_content_bounding_box(image, WHITE[:3], config.trim_tolerance)
    if box.is_empty:
        return image
    product = crop_with_padding(image, box, 0)
    return place_center_bottom(product, config, background=WHITE)


def post_process(
    image: RasterImage,
    config: PipelineConfig,
    inpainted: bool = False,
) -> Tuple[RasterImage, Dict[str, Any]]:
    recomposed = False
    if inpainted and config.recompose_after_inpaint:
        image = recompose_on_white(image, config)
        recomposed = True

    final = Finalizer(config).finalize(image)
    return final, {"recomposed": recomposed, "output_dimensions": final.size}
