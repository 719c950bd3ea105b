import numpy as np
import pytest

from packshot.core.config import PipelineConfig
from packshot.engines.raster import RasterImage, whiten_near_white_pixels
from packshot.pipeline.finalizer import Finalizer, linear_stretch
from tests.helpers import product_on_transparent


@pytest.fixture
def finalizer() -> Finalizer:
    return Finalizer(PipelineConfig(canvas_size=64))


@pytest.fixture
def cutout() -> RasterImage:
    return product_on_transparent(64, (16, 20, 47, 55), color=(120, 80, 40, 255))


def test_output_is_opaque_rgb_canvas(finalizer, cutout):
    out = finalizer.finalize(cutout)

    assert out.size == (64, 64)
    assert out.channels == 3
    assert not out.has_alpha


def test_transparent_background_ends_up_pure_white(finalizer, cutout):
    out = finalizer.finalize(cutout)

    assert tuple(out.pixels[0, 0]) == (255, 255, 255)
    assert tuple(out.pixels[63, 63]) == (255, 255, 255)
    # product interior keeps its colour family
    r, g, b = (int(v) for v in out.pixels[38, 32])
    assert r > g > b


def test_white_canvas_stays_white(finalizer):
    white = RasterImage.blank(64, 64, (255, 255, 255))
    out = finalizer.finalize(white)
    assert (out.pixels == 255).all()


def test_off_size_input_is_contained(finalizer):
    wide = RasterImage.blank(200, 50, (10, 10, 10, 255))
    out = finalizer.finalize(wide)
    assert out.size == (64, 64)
    assert tuple(out.pixels[0, 32]) == (255, 255, 255)
    assert out.pixels[32, 32].max() < 100


def test_flatten_and_whiten_are_idempotent_on_finalized_output(finalizer, cutout):
    out = finalizer.finalize(cutout)

    assert finalizer.flatten(out).same_pixels(out)
    assert whiten_near_white_pixels(out, 240).same_pixels(out)


def test_second_pass_keeps_background_and_stays_close(finalizer, cutout):
    once = finalizer.finalize(cutout)
    twice = finalizer.finalize(once)

    background = (cutout.alpha == 0)
    assert (twice.pixels[background] == 255).all()

    diff = np.abs(twice.pixels.astype(np.int16) - once.pixels.astype(np.int16))
    assert diff.mean() < 8


def test_linear_stretch_pivots_on_mid_grey():
    pixels = np.array([[[0, 128, 255]]], dtype=np.uint8)
    out = linear_stretch(RasterImage(pixels), 1.02)
    assert tuple(out.pixels[0, 0]) == (0, 128, 255)

    darker = linear_stretch(RasterImage(np.array([[[50, 200, 100]]], dtype=np.uint8)), 1.02)
    assert tuple(darker.pixels[0, 0]) == (48, 201, 99)


def test_median_window_is_off_by_default_and_removes_specks_when_set():
    pixels = np.full((64, 64, 3), 255, dtype=np.uint8)
    pixels[32, 32] = (0, 0, 0)
    speckled = RasterImage(pixels)

    kept = Finalizer(PipelineConfig(canvas_size=64)).finalize(speckled)
    cleaned = Finalizer(PipelineConfig(canvas_size=64, median_size=3)).finalize(speckled)

    assert kept.pixels[32, 32].max() < 128
    assert (cleaned.pixels == 255).all()
