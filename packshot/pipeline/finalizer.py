"""
Result Finalizer

Deterministic pixel pass applied to the final artifact:
flatten onto white -> cosmetic adjustment -> near-white whitening.
Output is always an opaque, canvas-sized RGB image.
"""

import numpy as np
from PIL import ImageEnhance, ImageFilter

from packshot.core.config import PipelineConfig
from packshot.engines.raster import (
    CanvasSpec,
    RasterImage,
    WHITE,
    contain_on_canvas,
    flatten_onto_background,
    whiten_near_white_pixels,
)


def linear_stretch(image: RasterImage, slope: float) -> RasterImage:
    """out = slope * in + (128 - 128 * slope), applied to RGB and clipped."""
    pixels = image.copy_pixels()
    intercept = 128.0 - 128.0 * slope
    rgb = pixels[:, :, :3].astype(np.float32) * slope + intercept
    pixels[:, :, :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    return RasterImage(pixels)


def cosmetic_adjust(image: RasterImage, config: PipelineConfig) -> RasterImage:
    """Brightness/saturation scaling, unsharp mask, median denoise, linear contrast stretch."""
    pil = image.to_pil()
    pil = ImageEnhance.Brightness(pil).enhance(config.brightness)
    pil = ImageEnhance.Color(pil).enhance(config.saturation)
    pil = pil.filter(
        ImageFilter.UnsharpMask(
            radius=config.sharpen_radius,
            percent=config.sharpen_percent,
            threshold=config.sharpen_threshold,
        )
    )
    if config.median_size > 1:
        pil = pil.filter(ImageFilter.MedianFilter(config.median_size))
    return linear_stretch(RasterImage.from_pil(pil), config.contrast_slope)


class Finalizer:
    def __init__(self, config: PipelineConfig):
        self.config = config
        self.canvas = CanvasSpec.square(config.canvas_size, WHITE[:3], channels=3)

    def flatten(self, image: RasterImage) -> RasterImage:
        flat = flatten_onto_background(image, WHITE[:3])
        if flat.size != self.config.canvas_dimensions:
            flat = contain_on_canvas(flat, self.canvas)
        return flat

    def finalize(self, image: RasterImage) -> RasterImage:
        flat = self.flatten(image)
        adjusted = cosmetic_adjust(flat, self.config)
        return whiten_near_white_pixels(adjusted, self.config.whiten_threshold)
