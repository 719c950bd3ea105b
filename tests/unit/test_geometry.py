"""
Geometry helper tests: bounding boxes, crop, fit, compose, contain.
"""

import unittest

import numpy as np

from packshot.core.exceptions import OutOfBoundsError
from packshot.engines.raster import (
    BoundingBox,
    CanvasSpec,
    RasterImage,
    compose_on_canvas,
    compute_content_bounding_box,
    compute_opaque_bounding_box,
    contain_on_canvas,
    crop_with_padding,
    fit_within_box,
)
from tests.helpers import product_on_transparent


class TestBoundingBox(unittest.TestCase):

    def setUp(self):
        self.rect = (12, 20, 41, 70)
        self.image = product_on_transparent(100, self.rect)
        self.empty = RasterImage(np.zeros((50, 80, 4), dtype=np.uint8))

    def test_opaque_rectangle_found_for_any_threshold(self):
        for threshold in (0, 1, 50, 128, 200, 253):
            box = compute_opaque_bounding_box(self.image, threshold)
            self.assertEqual(
                (box.min_x, box.min_y, box.max_x, box.max_y), self.rect,
                f"threshold={threshold}"
            )

    def test_all_transparent_is_empty(self):
        box = compute_opaque_bounding_box(self.empty, 0)
        self.assertTrue(box.is_empty)
        self.assertEqual(box, BoundingBox.EMPTY)
        self.assertEqual(box.width, 0)

    def test_threshold_excludes_soft_edges(self):
        pixels = self.image.copy_pixels()
        pixels[5, 5] = (255, 0, 0, 40)
        soft = RasterImage(pixels)

        self.assertEqual(compute_opaque_bounding_box(soft, 0).min_x, 5)
        self.assertEqual(compute_opaque_bounding_box(soft, 50).min_x, 12)

    def test_rgb_image_is_fully_opaque(self):
        rgb = RasterImage(np.zeros((30, 40, 3), dtype=np.uint8))
        box = compute_opaque_bounding_box(rgb, 128)
        self.assertEqual((box.width, box.height), (40, 30))

    def test_content_box_against_white(self):
        pixels = np.full((60, 60, 3), 255, dtype=np.uint8)
        pixels[10:20, 30:50] = (20, 20, 20)
        pixels[0, 0] = (250, 250, 250)  # within tolerance
        box = compute_content_bounding_box(RasterImage(pixels), (255, 255, 255), tolerance=10)
        self.assertEqual((box.min_x, box.min_y, box.max_x, box.max_y), (30, 10, 49, 19))


class TestCropAndFit(unittest.TestCase):

    def test_crop_with_padding_is_clamped(self):
        image = product_on_transparent(100, (2, 3, 50, 60))
        box = compute_opaque_bounding_box(image)
        cropped = crop_with_padding(image, box, padding=10)
        # left/top clamp at 0, right/bottom grow by 10
        self.assertEqual(cropped.size, (61, 71))

    def test_crop_empty_box_raises(self):
        image = product_on_transparent(10, (0, 0, 1, 1))
        with self.assertRaises(OutOfBoundsError):
            crop_with_padding(image, BoundingBox.EMPTY, padding=5)

    def test_fit_never_upsizes(self):
        image = product_on_transparent(40, (5, 5, 30, 30))
        fitted = fit_within_box(image, 200, 300)
        self.assertIs(fitted, image)
        self.assertEqual(fitted.encode_png(), image.encode_png())

    def test_fit_downsizes_preserving_aspect(self):
        image = RasterImage(np.zeros((200, 400, 4), dtype=np.uint8))
        fitted = fit_within_box(image, 100, 100)
        self.assertEqual(fitted.size, (100, 50))

    def test_fit_respects_both_limits(self):
        for w, h in ((300, 90), (90, 300), (250, 250)):
            image = RasterImage(np.zeros((h, w, 3), dtype=np.uint8))
            fitted = fit_within_box(image, 120, 80)
            self.assertLessEqual(fitted.width, min(w, 120))
            self.assertLessEqual(fitted.height, min(h, 80))


class TestCompose(unittest.TestCase):

    def setUp(self):
        self.spec = CanvasSpec(50, 40, (255, 255, 255, 255), channels=4)

    def test_oversized_overlay_is_clipped(self):
        overlay = RasterImage(np.full((100, 120, 4), (10, 20, 30, 255), dtype=np.uint8))
        out = compose_on_canvas(self.spec, overlay, -30, -25)
        self.assertEqual(out.size, (50, 40))
        self.assertTrue((out.pixels == (10, 20, 30, 255)).all())

    def test_offsets_past_canvas_leave_background(self):
        overlay = RasterImage(np.zeros((10, 10, 4), dtype=np.uint8) + 255)
        for left, top in ((60, 0), (0, 45), (-10, -10), (-500, 500)):
            out = compose_on_canvas(self.spec, overlay, left, top)
            self.assertTrue((out.pixels == 255).all())

    def test_partial_overlap(self):
        overlay = RasterImage(np.full((10, 10, 4), (0, 0, 0, 255), dtype=np.uint8))
        out = compose_on_canvas(self.spec, overlay, 45, 35)
        self.assertTrue((out.pixels[35:40, 45:50, :3] == 0).all())
        self.assertTrue((out.pixels[:35, :, :3] == 255).all())

    def test_transparent_overlay_keeps_canvas(self):
        overlay = RasterImage(np.zeros((10, 10, 4), dtype=np.uint8))
        out = compose_on_canvas(self.spec, overlay, 5, 5)
        self.assertTrue((out.pixels == 255).all())

    def test_rgb_canvas(self):
        spec = CanvasSpec(20, 20, (255, 255, 255), channels=3)
        overlay = RasterImage(np.full((4, 4, 3), 7, dtype=np.uint8))
        out = compose_on_canvas(spec, overlay, 8, 8)
        self.assertEqual(out.channels, 3)
        self.assertTrue((out.pixels[8:12, 8:12] == 7).all())

    def test_contain_portrait_on_square(self):
        image = RasterImage(np.full((600, 400, 3), 100, dtype=np.uint8))
        out = contain_on_canvas(image.ensure_alpha(), CanvasSpec.square(128))
        box = compute_opaque_bounding_box(out)
        self.assertEqual(out.size, (128, 128))
        self.assertEqual(box.height, 128)
        self.assertAlmostEqual(box.width, 85, delta=1)
        self.assertAlmostEqual((box.min_x + box.max_x) / 2, 63.5, delta=1)
