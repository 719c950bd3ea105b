"""
RasterImage: the pixel buffer passed between pipeline stages.

Thin immutable wrapper over an (H, W, C) uint8 numpy array. Pillow does
the decoding/encoding; numpy does the per-pixel math.
"""

from __future__ import annotations

import io
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from packshot.core.exceptions import UnsupportedFormatError

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


@dataclass(frozen=True)
class RasterImage:
    """
    8-bit RGB or RGBA pixels.

    The buffer is marked read-only on construction; stages build new
    images instead of mutating. `copy_pixels()` hands out a writable copy.
    """
    pixels: np.ndarray  # (H, W, 3|4), dtype uint8

    def __post_init__(self):
        px = self.pixels
        if px.dtype != np.uint8:
            raise ValueError(f"pixels must be uint8, got {px.dtype}")
        if px.ndim != 3 or px.shape[2] not in (3, 4):
            raise ValueError(f"pixels must have shape (H, W, 3|4), got {px.shape}")
        if px.flags.writeable:
            px.flags.writeable = False

    # ------------------------------------------------------------------ shape
    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple:
        return (self.width, self.height)

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])

    @property
    def has_alpha(self) -> bool:
        return self.channels == 4

    @property
    def mode(self) -> str:
        return "RGBA" if self.has_alpha else "RGB"

    @property
    def alpha(self) -> np.ndarray:
        """Alpha plane; an opaque plane for RGB images."""
        if self.has_alpha:
            return self.pixels[:, :, 3]
        return np.full((self.height, self.width), 255, dtype=np.uint8)

    # --------------------------------------------------------------- creation
    @classmethod
    def from_array(cls, array: np.ndarray) -> "RasterImage":
        return cls(np.ascontiguousarray(np.array(array, dtype=np.uint8)))

    @classmethod
    def from_pil(cls, image: Image.Image) -> "RasterImage":
        if image.mode not in ("RGB", "RGBA"):
            has_transparency = "A" in image.getbands() or "transparency" in image.info
            image = image.convert("RGBA" if has_transparency else "RGB")
        return cls(np.array(image, dtype=np.uint8))

    @classmethod
    def blank(cls, width: int, height: int, color: tuple = (0, 0, 0, 0)) -> "RasterImage":
        channels = len(color)
        pixels = np.empty((height, width, channels), dtype=np.uint8)
        pixels[:, :] = color
        return cls(pixels)

    @classmethod
    def decode(cls, data: bytes) -> "RasterImage":
        """Decode encoded image bytes, honouring EXIF orientation."""
        if not data:
            raise UnsupportedFormatError("Empty image data")
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                img = ImageOps.exif_transpose(img)
                return cls.from_pil(img)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as e:
            raise UnsupportedFormatError(f"Cannot decode image: {e}")

    # ------------------------------------------------------------ conversion
    def to_pil(self) -> Image.Image:
        return Image.fromarray(np.array(self.pixels))

    def encode_png(self) -> bytes:
        buffer = io.BytesIO()
        self.to_pil().save(buffer, format="PNG")
        return buffer.getvalue()

    def copy_pixels(self) -> np.ndarray:
        """Writable copy of the pixel buffer."""
        return np.array(self.pixels, copy=True)

    def ensure_alpha(self) -> "RasterImage":
        if self.has_alpha:
            return self
        alpha = np.full((self.height, self.width, 1), 255, dtype=np.uint8)
        return RasterImage(np.concatenate([self.pixels, alpha], axis=2))

    def to_rgb(self) -> "RasterImage":
        """Drop alpha without compositing (see flatten_onto_background for that)."""
        if not self.has_alpha:
            return self
        return RasterImage(np.ascontiguousarray(self.pixels[:, :, :3]))

    def same_pixels(self, other: "RasterImage") -> bool:
        return self.pixels.shape == other.pixels.shape and bool(
            np.array_equal(self.pixels, other.pixels)
        )


def is_png(data: bytes) -> bool:
    return data[:8] == PNG_SIGNATURE
