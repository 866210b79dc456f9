"""
Tests for the pixel rendering engine (core.rendering_engine).

Covers decoding synthetic files, viewport bookkeeping, coordinate transforms
and paint futures.
"""

import unittest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from core.rendering_engine import DecodeError, PixelRenderingEngine, Point, RenderSurface, Viewport
from dicom_fixtures import image_bytes, make_dataset, no_pixel_bytes, to_bytes


class TestDecode(unittest.TestCase):
    """Tests for PixelRenderingEngine.decode."""

    def setUp(self):
        self.engine = PixelRenderingEngine()

    def test_decode_image(self):
        image = self.engine.decode("ref", image_bytes(rows=4, columns=6))
        self.assertEqual((image.width, image.height), (6, 4))
        self.assertEqual(image.pixels.shape, (4, 6))
        self.assertEqual(image.default_window, (100.0, 200.0))
        self.assertEqual((image.row_pixel_spacing, image.column_pixel_spacing), (0.5, 0.5))
        self.assertEqual(image.bits_stored, 12)
        self.assertFalse(image.invert)

    def test_rescale_applied(self):
        ds = make_dataset()
        ds.RescaleSlope = 2
        ds.RescaleIntercept = -1024
        image = self.engine.decode("ref", to_bytes(ds))
        self.assertEqual(float(image.pixels[0, 1]), 10 * 2 - 1024.0)

    def test_no_pixel_data_raises(self):
        with self.assertRaises(DecodeError):
            self.engine.decode("ref", no_pixel_bytes())

    def test_garbage_raises(self):
        with self.assertRaises(DecodeError):
            self.engine.decode("ref", b"")


class TestEngineAsync(unittest.IsolatedAsyncioTestCase):
    """Tests for load, display and paint futures."""

    def setUp(self):
        self.engine = PixelRenderingEngine()
        self.surface = RenderSurface(64, 64)
        self.engine.enable(self.surface)

    async def test_add_source_and_load(self):
        ref = self.engine.add_source(image_bytes())
        self.assertTrue(ref.startswith("dicomfile:"))
        image = await self.engine.load(ref)
        self.assertEqual(image.image_ref, ref)

    async def test_unknown_reference(self):
        with self.assertRaises(DecodeError):
            await self.engine.load("dicomfile:999")

    async def test_clear_sources(self):
        ref = self.engine.add_source(image_bytes())
        self.engine.clear_sources()
        with self.assertRaises(DecodeError):
            await self.engine.load(ref)

    async def test_display_fits_and_paints(self):
        painted = []
        self.surface.add_paint_listener(painted.append)
        image = self.engine.decode("ref", image_bytes())
        canvas = await self.engine.display(self.surface, image)
        self.assertEqual(canvas.size, (64, 64))
        self.assertEqual(canvas.mode, "RGB")
        self.assertEqual(self.engine.get_viewport(self.surface).scale, 8.0)
        self.assertEqual(painted, [self.surface])

    async def test_viewport_kept_across_images(self):
        image = self.engine.decode("ref", image_bytes())
        await self.engine.display(self.surface, image)
        viewport = self.engine.get_viewport(self.surface)
        viewport.window_center = 10.0
        await self.engine.set_viewport(self.surface, viewport)
        await self.engine.display(self.surface, self.engine.decode("ref2", image_bytes()))
        self.assertEqual(self.engine.get_viewport(self.surface).window_center, 10.0)

    async def test_window_width_floor(self):
        await self.engine.display(self.surface, self.engine.decode("ref", image_bytes()))
        await self.engine.set_viewport(self.surface, Viewport(window_width=0.0))
        self.assertEqual(self.engine.get_viewport(self.surface).window_width, 1.0)

    async def test_reset_restores_default(self):
        image = self.engine.decode("ref", image_bytes())
        await self.engine.display(self.surface, image, Viewport(scale=3.0, translation_x=5.0))
        await self.engine.reset(self.surface)
        viewport = self.engine.get_viewport(self.surface)
        self.assertEqual((viewport.scale, viewport.translation_x), (8.0, 0.0))
        self.assertEqual((viewport.window_center, viewport.window_width), (100.0, 200.0))

    async def test_disabled_surface_rejects_display(self):
        self.engine.disable(self.surface)
        with self.assertRaises(RuntimeError):
            self.engine.display(self.surface, self.engine.decode("ref", image_bytes()))

    async def test_paint_after_disable_resolves_none(self):
        future = self.engine.display(self.surface, self.engine.decode("ref", image_bytes()))
        self.engine.disable(self.surface)
        self.assertIsNone(await future)

    async def test_coordinate_roundtrip(self):
        image = self.engine.decode("ref", image_bytes())
        await self.engine.display(self.surface, image, Viewport(scale=4.0, translation_x=6.0, translation_y=-2.0))
        canvas_point = self.engine.pixel_to_canvas(self.surface, Point(2, 3))
        self.assertEqual(canvas_point, Point(32 + 6 + (2 - 4) * 4, 32 - 2 + (3 - 4) * 4))
        back = self.engine.canvas_to_pixel(self.surface, *canvas_point)
        self.assertAlmostEqual(back.x, 2.0)
        self.assertAlmostEqual(back.y, 3.0)


if __name__ == "__main__":
    unittest.main()
