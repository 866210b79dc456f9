"""
Unit tests for image export (core.image_exporter).

Tests ExportSettings conversion and rendering/saving with and without
measurements and the warning banner.
"""

import unittest
import sys
import os
import tempfile
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from PIL import Image

from core.calibration_resolver import CalibrationInfo
from core.image_exporter import ExportSettings, ImageExporter
from core.rendering_engine import PixelRenderingEngine, Point, Viewport
from tools.annotation_store import Measurement
from dicom_fixtures import image_bytes


class TestExportSettings(unittest.TestCase):
    """Tests for ExportSettings."""

    def test_from_dict(self):
        settings = ExportSettings.from_dict({"width": "640", "height": 480, "format": "PNG", "filename": "ct"})
        self.assertEqual((settings.width, settings.height), (640, 480))
        self.assertEqual(settings.format, "png")
        self.assertEqual(settings.default_filename, "ct.png")

    def test_invalid_values_ignored(self):
        settings = ExportSettings.from_dict({"width": "wide", "format": "tiff", "filename": ""})
        self.assertEqual(settings.width, 1024)
        self.assertEqual(settings.format, "jpg")
        self.assertEqual(settings.default_filename, "Image.jpg")

    def test_to_dict_roundtrip(self):
        settings = ExportSettings(width=300, height=200, filename="x", format="png",
                                  include_annotations=False, include_warning=False)
        self.assertEqual(ExportSettings.from_dict(settings.to_dict()), settings)


class TestImageExporter(unittest.IsolatedAsyncioTestCase):
    """Tests for ImageExporter.render and export."""

    def setUp(self):
        self.engine = PixelRenderingEngine()
        self.exporter = ImageExporter(self.engine)
        self.image = self.engine.decode("ref", image_bytes())
        self.viewport = Viewport(scale=64.0, window_width=200.0, window_center=100.0)
        self.calibration = CalibrationInfo(0.5, 0.5, estimated=False)
        self.measurement = Measurement(Point(1, 4), Point(7, 4), 0, "S1")

    async def render(self, **kwargs):
        settings = ExportSettings(width=128, height=128, **kwargs)
        return await self.exporter.render(self.image, self.viewport, [self.measurement], self.calibration, settings)

    async def test_render_size(self):
        canvas = await self.render(include_annotations=False, include_warning=False)
        self.assertEqual(canvas.size, (128, 128))
        self.assertEqual(canvas.mode, "RGB")

    async def test_annotations_drawn_in_line_color(self):
        plain = await self.render(include_annotations=False, include_warning=False)
        annotated = await self.render(include_annotations=True, include_warning=False)
        # 8x8 image fitted to 128 px: pixel (1, 4) maps to canvas (16, 64)
        self.assertEqual(annotated.getpixel((16, 64)), (0, 255, 0))
        self.assertNotEqual(plain.getpixel((16, 64)), (0, 255, 0))

    async def test_warning_banner_changes_bottom(self):
        plain = await self.render(include_annotations=False, include_warning=False)
        warned = await self.render(include_annotations=False, include_warning=True)
        self.assertNotEqual(list(plain.crop((0, 88, 128, 122)).getdata()),
                            list(warned.crop((0, 88, 128, 122)).getdata()))

    async def test_export_adds_extension(self):
        with tempfile.TemporaryDirectory() as out_dir:
            settings = ExportSettings(width=32, height=32, format="jpg")
            path = await self.exporter.export(self.image, self.viewport, [], self.calibration,
                                              Path(out_dir) / "slice", settings)
            self.assertEqual(path.name, "slice.jpg")
            with Image.open(path) as saved:
                self.assertEqual(saved.format, "JPEG")
                self.assertEqual(saved.size, (32, 32))


if __name__ == "__main__":
    unittest.main()
