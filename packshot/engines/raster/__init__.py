"""
Raster utilities: pixel buffers, geometry, masks.
"""

from packshot.engines.raster.image import RasterImage, is_png
from packshot.engines.raster.geometry import (
    BoundingBox,
    CanvasSpec,
    WHITE,
    TRANSPARENT,
    compute_opaque_bounding_box,
    compute_content_bounding_box,
    crop_with_padding,
    fit_within_box,
    compose_on_canvas,
    contain_on_canvas,
    flatten_onto_background,
)
from packshot.engines.raster.masks import (
    synthesize_mask_from_alpha,
    mask_region,
    whiten_near_white_pixels,
)

__all__ = [
    "RasterImage",
    "is_png",
    "BoundingBox",
    "CanvasSpec",
    "WHITE",
    "TRANSPARENT",
    "compute_opaque_bounding_box",
    "compute_content_bounding_box",
    "crop_with_padding",
    "fit_within_box",
    "compose_on_canvas",
    "contain_on_canvas",
    "flatten_onto_background",
    "synthesize_mask_from_alpha",
    "mask_region",
    "whiten_near_white_pixels",
]
