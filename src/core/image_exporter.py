"""
Image Exporter

This module exports the displayed image to a JPEG or PNG file. The image is
rendered off-screen at the requested size, fitted to that size, with the
window/level and inversion currently used on screen. Measurements of the
displayed instance and a "Not for diagnostic use" banner are optionally drawn
on top.

Inputs:
    - LoadedImage and the on-screen Viewport
    - Measurements of the displayed instance and its CalibrationInfo
    - ExportSettings (size, format, file name, overlay options)

Outputs:
    - Rendered PIL image
    - Saved image file

Requirements:
    - Pillow (Image, ImageDraw, ImageFont)
    - core.rendering_engine for off-screen rendering
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from PIL import Image, ImageDraw, ImageFont

from core.calibration_resolver import CalibrationInfo
from core.rendering_engine import LoadedImage, RenderingEngine, RenderSurface, Viewport
from tools.annotation_store import Measurement
from tools.measurement_overlay import (ENDPOINT_RADIUS, ESTIMATED_LABEL_COLOR, LINE_COLOR, LINE_WIDTH,
                                       MeasurementGraphic, build_measurement_graphics)


WARNING_TEXT = "Not for diagnostic use"
WARNING_COLOR = (255, 68, 68)
SUPPORTED_FORMATS = ("jpg", "png")

_FONT_PATHS = [
    "arial.ttf",
    "Arial.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "C:/Windows/Fonts/arial.ttf",
]
_BOLD_FONT_PATHS = [
    "arialbd.ttf",
    "Arial Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "C:/Windows/Fonts/arialbd.ttf",
]


def load_font(size: int, bold: bool = False):
    """Load a TrueType font of the given size, falling back to Pillow's default font."""
    for font_path in (_BOLD_FONT_PATHS if bold else []) + _FONT_PATHS:
        try:
            return ImageFont.truetype(font_path, size)
        except OSError:
            continue
    return ImageFont.load_default()


@dataclass
class ExportSettings:
    """
    Options of one export.

    Attributes:
        width: Output width in pixels
        height: Output height in pixels
        filename: File name without extension
        format: "jpg" or "png"
        include_annotations: Draw measurements
        include_warning: Draw the "Not for diagnostic use" banner
    """
    width: int = 1024
    height: int = 1024
    filename: str = "Image"
    format: str = "jpg"
    include_annotations: bool = True
    include_warning: bool = True

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "ExportSettings":
        """Build settings from a ConfigManager.get_export_settings() dictionary, ignoring invalid values."""
        settings = cls()
        try:
            settings.width = max(int(values.get("width", settings.width)), 1)
            settings.height = max(int(values.get("height", settings.height)), 1)
        except (TypeError, ValueError):
            pass
        settings.filename = str(values.get("filename") or settings.filename)
        export_format = str(values.get("format", settings.format)).lower()
        settings.format = export_format if export_format in SUPPORTED_FORMATS else "jpg"
        settings.include_annotations = bool(values.get("include_annotations", settings.include_annotations))
        settings.include_warning = bool(values.get("include_warning", settings.include_warning))
        return settings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "filename": self.filename,
            "format": self.format,
            "include_annotations": self.include_annotations,
            "include_warning": self.include_warning,
        }

    @property
    def extension(self) -> str:
        return "png" if self.format == "png" else "jpg"

    @property
    def default_filename(self) -> str:
        return f"{self.filename}.{self.extension}"


class ImageExporter:
    """
    Renders and saves the displayed image.
    """

    def __init__(self, engine: RenderingEngine, line_color=LINE_COLOR, estimated_color=ESTIMATED_LABEL_COLOR):
        """
        Initialize the exporter.

        Args:
            engine: Rendering engine used for the off-screen render
            line_color: Measurement colour
            estimated_color: Label colour when the spacing is estimated
        """
        self.engine = engine
        self.line_color = tuple(line_color)
        self.estimated_color = tuple(estimated_color)

    async def render(
        self,
        image: LoadedImage,
        viewport: Viewport,
        measurements: Sequence[Measurement],
        calibration: CalibrationInfo,
        settings: ExportSettings,
    ) -> Image.Image:
        """
        Render the export image.

        Args:
            image: Displayed image
            viewport: On-screen viewport (window/level and inversion are reused)
            measurements: Measurements to draw
            calibration: Spacing used for measurement labels
            settings: Export options

        Returns:
            RGB image of settings.width x settings.height
        """
        surface = RenderSurface(settings.width, settings.height)
        self.engine.enable(surface)
        try:
            export_viewport = self.engine.get_default_viewport(surface, image)
            export_viewport.window_width = viewport.window_width
            export_viewport.window_center = viewport.window_center
            export_viewport.invert = viewport.invert
            canvas = await self.engine.display(surface, image, export_viewport)
            if canvas is None:
                raise RuntimeError("Off-screen render produced no image")
            canvas = canvas.convert("RGB")

            if settings.include_annotations and measurements:
                graphics = build_measurement_graphics(
                    measurements,
                    lambda point: self.engine.pixel_to_canvas(surface, point),
                    calibration,
                    line_color=self.line_color,
                    estimated_color=self.estimated_color,
                )
                self.draw_measurements(canvas, graphics)
            if settings.include_warning:
                self.draw_warning(canvas)
            return canvas
        finally:
            try:
                self.engine.disable(surface)
            except Exception as e:
                print(f"[EXPORT] Ignoring error while releasing export surface: {e}")

    @staticmethod
    def draw_measurements(canvas: Image.Image, graphics: List[MeasurementGraphic]) -> None:
        """Draw lines, endpoints and distance labels onto the canvas."""
        draw = ImageDraw.Draw(canvas, "RGBA")
        font = load_font(13)
        for graphic in graphics:
            draw.line([graphic.start, graphic.end], fill=graphic.line_color, width=LINE_WIDTH)
            radius = ENDPOINT_RADIUS - 1
            for point in (graphic.start, graphic.end):
                draw.ellipse([point.x - radius, point.y - radius, point.x + radius, point.y + radius],
                             fill=graphic.line_color)

            mid_x = (graphic.start.x + graphic.end.x) / 2.0
            mid_y = (graphic.start.y + graphic.end.y) / 2.0
            left, top, right, bottom = draw.textbbox((0, 0), graphic.label, font=font)
            text_width = right - left + 8
            draw.rectangle([mid_x - text_width / 2.0, mid_y - 12, mid_x + text_width / 2.0, mid_y + 12],
                           fill=(0, 0, 0, 153))
            draw.text((mid_x - (right - left) / 2.0 - left, mid_y - (bottom - top) / 2.0 - top),
                      graphic.label, fill=graphic.label_color, font=font)

    @staticmethod
    def draw_warning(canvas: Image.Image) -> None:
        """Draw the red "Not for diagnostic use" banner centred at the bottom."""
        draw = ImageDraw.Draw(canvas, "RGBA")
        font = load_font(24, bold=True)
        width, height = canvas.size
        left, top, right, bottom = draw.textbbox((0, 0), WARNING_TEXT, font=font)
        box_width = right - left + 30
        draw.rectangle([width / 2.0 - box_width / 2.0, height - 40, width / 2.0 + box_width / 2.0, height - 6],
                       fill=(0, 0, 0, 178))
        draw.text((width / 2.0 - (right - left) / 2.0 - left, height - 12 - bottom),
                  WARNING_TEXT, fill=WARNING_COLOR, font=font)

    @staticmethod
    def save(image: Image.Image, output_path: Union[str, Path], settings: ExportSettings) -> Path:
        """
        Write the image as PNG or JPEG (quality 95).

        A missing extension is added from the format.

        Returns:
            Path written
        """
        path = Path(output_path)
        if path.suffix == "":
            path = path.with_name(f"{path.name}.{settings.extension}")
        if settings.format == "png":
            image.save(path, "PNG")
        else:
            image.convert("RGB").save(path, "JPEG", quality=95)
        print(f"[EXPORT] Saved {path}")
        return path

    async def export(
        self,
        image: LoadedImage,
        viewport: Viewport,
        measurements: Sequence[Measurement],
        calibration: CalibrationInfo,
        output_path: Union[str, Path],
        settings: Optional[ExportSettings] = None,
    ) -> Path:
        """
        Render and save in one step.

        Returns:
            Path written
        """
        settings = settings or ExportSettings()
        rendered = await self.render(image, viewport, measurements, calibration, settings)
        return self.save(rendered, output_path, settings)
