import io

import numpy as np
from PIL import Image

from packshot.core.exceptions import ServiceError
from packshot.engines.adapters import BackgroundRemover
from packshot.engines.raster import RasterImage


def encode(image: Image.Image, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def product_on_transparent(size: int, box, color=(90, 60, 200, 255)) -> RasterImage:
    """Transparent square with one opaque rectangle (x0, y0, x1, y1 inclusive)."""
    pixels = np.zeros((size, size, 4), dtype=np.uint8)
    x0, y0, x1, y1 = box
    pixels[y0:y1 + 1, x0:x1 + 1] = color
    return RasterImage(pixels)


class FakeRemover(BackgroundRemover):
    """Stands in for a vendor: either cuts out near-white or fails."""

    name = "fake_remover"

    def __init__(self, fail: bool = False, retryable: bool = True):
        self.fail = fail
        self.retryable = retryable
        self.calls = 0

    def remove(self, image: RasterImage) -> RasterImage:
        self.calls += 1
        if self.fail:
            raise ServiceError("vendor down", service=self.name, http_status=503,
                               retryable=self.retryable)
        pixels = image.ensure_alpha().copy_pixels()
        near_white = (pixels[:, :, :3] > 230).all(axis=2)
        pixels[near_white, 3] = 0
        return RasterImage(pixels)
