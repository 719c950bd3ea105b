"""
Mask synthesis and pixel clean-up passes.
"""

from __future__ import annotations

import numpy as np

from packshot.core.config import MaskEncoding
from packshot.engines.raster.image import RasterImage

# Source alpha below this is background
ALPHA_CUTOFF = 128


def editable_region(image: RasterImage, invert: bool = False, alpha_cutoff: int = ALPHA_CUTOFF) -> np.ndarray:
    """
    Single-channel uint8 plane: 255 where the inpainting service may edit.

    By default the background (alpha < cutoff) is editable; `invert`
    makes the foreground editable instead.
    """
    region = np.where(image.alpha < alpha_cutoff, 255, 0).astype(np.uint8)
    if invert:
        region = np.bitwise_not(region)
    return region


def synthesize_mask_from_alpha(
    image: RasterImage,
    invert: bool = False,
    encoding: MaskEncoding = MaskEncoding.LUMINANCE,
    alpha_cutoff: int = ALPHA_CUTOFF
) -> RasterImage:
    """
    Build an RGBA mask the same size as `image`.

    LUMINANCE: RGB holds the editable region (255 = edit), alpha is 255.
    ALPHA: RGB is white, alpha is 0 where editable (OpenAI edits endpoint).
    """
    region = editable_region(image, invert=invert, alpha_cutoff=alpha_cutoff)
    mask = np.empty((image.height, image.width, 4), dtype=np.uint8)

    if encoding == MaskEncoding.ALPHA:
        mask[:, :, :3] = 255
        mask[:, :, 3] = np.bitwise_not(region)
    else:
        mask[:, :, 0] = region
        mask[:, :, 1] = region
        mask[:, :, 2] = region
        mask[:, :, 3] = 255

    return RasterImage(mask)


def mask_region(mask: RasterImage, encoding: MaskEncoding = MaskEncoding.LUMINANCE) -> np.ndarray:
    """Inverse of synthesize_mask_from_alpha: recover the editable plane."""
    if encoding == MaskEncoding.ALPHA:
        return np.bitwise_not(mask.alpha)
    return np.array(mask.pixels[:, :, 0])


def whiten_near_white_pixels(image: RasterImage, threshold: int = 240) -> RasterImage:
    """Snap pixels whose R, G and B all exceed `threshold` to pure white."""
    pixels = image.copy_pixels()
    rgb = pixels[:, :, :3]
    near_white = (rgb > threshold).all(axis=2)
    rgb[near_white] = 255
    return RasterImage(pixels)
