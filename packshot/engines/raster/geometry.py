"""
Geometry helpers: bounding boxes, cropping, fitting and compositing.

All functions are pure: they take RasterImages and return new ones.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple

import numpy as np
from PIL import Image

from packshot.core.exceptions import OutOfBoundsError
from packshot.engines.raster.image import RasterImage

WHITE = (255, 255, 255, 255)
TRANSPARENT = (0, 0, 0, 0)


@dataclass(frozen=True)
class BoundingBox:
    """Inclusive pixel box. `BoundingBox.EMPTY` means nothing was found."""
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    EMPTY: ClassVar["BoundingBox"]

    @property
    def is_empty(self) -> bool:
        return self.max_x < self.min_x or self.max_y < self.min_y

    @property
    def width(self) -> int:
        return 0 if self.is_empty else self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return 0 if self.is_empty else self.max_y - self.min_y + 1

    def expand(self, padding: int) -> "BoundingBox":
        if self.is_empty:
            return self
        return BoundingBox(
            self.min_x - padding,
            self.min_y - padding,
            self.max_x + padding,
            self.max_y + padding,
        )

    def clamp(self, width: int, height: int) -> "BoundingBox":
        """Clip to an image of the given size; EMPTY if nothing overlaps."""
        if self.is_empty:
            return self
        box = BoundingBox(
            max(self.min_x, 0),
            max(self.min_y, 0),
            min(self.max_x, width - 1),
            min(self.max_y, height - 1),
        )
        return BoundingBox.EMPTY if box.is_empty else box

    def as_slices(self) -> Tuple[slice, slice]:
        return slice(self.min_y, self.max_y + 1), slice(self.min_x, self.max_x + 1)


BoundingBox.EMPTY = BoundingBox(0, 0, -1, -1)


@dataclass(frozen=True)
class CanvasSpec:
    width: int
    height: int
    background: Tuple[int, ...] = TRANSPARENT
    channels: int = 4

    @classmethod
    def square(cls, size: int, background: Tuple[int, ...] = TRANSPARENT, channels: int = 4):
        return cls(size, size, background, channels)


def _box_from_mask(mask: np.ndarray) -> BoundingBox:
    rows = np.flatnonzero(mask.any(axis=1))
    if rows.size == 0:
        return BoundingBox.EMPTY
    cols = np.flatnonzero(mask.any(axis=0))
    return BoundingBox(int(cols[0]), int(rows[0]), int(cols[-1]), int(rows[-1]))


def compute_opaque_bounding_box(image: RasterImage, alpha_threshold: int = 0) -> BoundingBox:
    """
    Box around every pixel whose alpha exceeds `alpha_threshold`.

    Images without an alpha channel are treated as fully opaque. The
    threshold test allocates one H x W bool plane (a quarter of the RGBA
    buffer); rows and columns are then reduced from it with `any`.
    """
    if not image.has_alpha:
        if image.width == 0 or image.height == 0:
            return BoundingBox.EMPTY
        return BoundingBox(0, 0, image.width - 1, image.height - 1)
    return _box_from_mask(image.pixels[:, :, 3] > alpha_threshold)


def compute_content_bounding_box(
    image: RasterImage,
    background: Optional[Tuple[int, int, int]] = None,
    tolerance: int = 10
) -> BoundingBox:
    """
    Box around pixels that differ from the background colour.

    `background` defaults to the top-left pixel. Transparent pixels never
    count as content.
    """
    rgb = image.pixels[:, :, :3].astype(np.int16)
    if background is None:
        background = tuple(int(v) for v in image.pixels[0, 0, :3])
    diff = np.abs(rgb - np.array(background[:3], dtype=np.int16)).max(axis=2)
    content = diff > tolerance
    if image.has_alpha:
        content &= image.pixels[:, :, 3] > 0
    return _box_from_mask(content)


def crop_with_padding(image: RasterImage, box: BoundingBox, padding: int = 0) -> RasterImage:
    """Crop `box` grown by `padding` on every side, clamped to the image."""
    if box.is_empty:
        raise OutOfBoundsError("Cannot crop an empty bounding box")
    region = box.expand(padding).clamp(image.width, image.height)
    if region.is_empty:
        raise OutOfBoundsError(
            "Bounding box lies outside the image",
            details={"box": [box.min_x, box.min_y, box.max_x, box.max_y]}
        )
    rows, cols = region.as_slices()
    return RasterImage.from_array(image.pixels[rows, cols])


def resize(image: RasterImage, width: int, height: int) -> RasterImage:
    resized = image.to_pil().resize((width, height), Image.Resampling.LANCZOS)
    return RasterImage.from_pil(resized)


def fit_within_box(image: RasterImage, max_width: int, max_height: int) -> RasterImage:
    """
    Downscale proportionally so both sides fit; never upscales.

    Returns `image` itself when it already fits.
    """
    if image.width <= max_width and image.height <= max_height:
        return image
    scale = min(max_width / image.width, max_height / image.height)
    width = max(1, min(max_width, int(image.width * scale)))
    height = max(1, min(max_height, int(image.height * scale)))
    return resize(image, width, height)


def _blank_canvas(spec: CanvasSpec) -> np.ndarray:
    color = tuple(spec.background) + (255,) * (4 - len(spec.background))
    canvas = np.empty((spec.height, spec.width, spec.channels), dtype=np.uint8)
    canvas[:, :] = color[:spec.channels]
    return canvas


def compose_on_canvas(
    canvas_spec: CanvasSpec,
    overlay: RasterImage,
    left: int,
    top: int
) -> RasterImage:
    """
    Alpha-composite `overlay` onto a fresh canvas at (left, top).

    Offsets may be negative or run past the canvas edge; the overlay is
    clipped to the visible region.
    """
    canvas = _blank_canvas(canvas_spec)

    x0, y0 = max(left, 0), max(top, 0)
    x1 = min(left + overlay.width, canvas_spec.width)
    y1 = min(top + overlay.height, canvas_spec.height)
    if x0 >= x1 or y0 >= y1:
        return RasterImage(canvas)

    src = overlay.pixels[y0 - top:y1 - top, x0 - left:x1 - left]
    dst = canvas[y0:y1, x0:x1]

    src_rgb = src[:, :, :3].astype(np.float32)
    src_a = (src[:, :, 3:4].astype(np.float32) / 255.0) if overlay.has_alpha else None
    dst_rgb = dst[:, :, :3].astype(np.float32)

    if src_a is None:
        dst[:, :, :3] = src[:, :, :3]
        if canvas_spec.channels == 4:
            dst[:, :, 3] = 255
        return RasterImage(canvas)

    if canvas_spec.channels == 4:
        dst_a = dst[:, :, 3:4].astype(np.float32) / 255.0
        out_a = src_a + dst_a * (1.0 - src_a)
        safe_a = np.where(out_a > 0, out_a, 1.0)
        out_rgb = (src_rgb * src_a + dst_rgb * dst_a * (1.0 - src_a)) / safe_a
        dst[:, :, 3] = np.rint(out_a[:, :, 0] * 255.0).astype(np.uint8)
    else:
        out_rgb = src_rgb * src_a + dst_rgb * (1.0 - src_a)

    dst[:, :, :3] = np.clip(np.rint(out_rgb), 0, 255).astype(np.uint8)
    return RasterImage(canvas)


def contain_on_canvas(image: RasterImage, canvas_spec: CanvasSpec) -> RasterImage:
    """
    Scale `image` (up or down) to fit the canvas without cropping and
    centre it; the uncovered area keeps the canvas background.
    """
    scale = min(canvas_spec.width / image.width, canvas_spec.height / image.height)
    width = max(1, min(canvas_spec.width, round(image.width * scale)))
    height = max(1, min(canvas_spec.height, round(image.height * scale)))
    if (width, height) != image.size:
        image = resize(image, width, height)
    left = (canvas_spec.width - width) // 2
    top = (canvas_spec.height - height) // 2
    return compose_on_canvas(canvas_spec, image, left, top)


def flatten_onto_background(image: RasterImage, color: Tuple[int, int, int] = WHITE[:3]) -> RasterImage:
    """Composite remaining transparency over an opaque colour; returns RGB."""
    if not image.has_alpha:
        return image
    spec = CanvasSpec(image.width, image.height, tuple(color), channels=3)
    return compose_on_canvas(spec, image, 0, 0)
