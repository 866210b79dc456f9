"""
Measurement Overlay

This module computes what to draw for ruler measurements on a canvas: the
mapped endpoints, the calibrated distance label and its background box, and
the delete button shown next to each committed measurement. Drawing itself is
left to the caller (the Qt viewer widget or the image exporter).

Inputs:
    - Visible measurements from the AnnotationStore
    - A pixel -> canvas transform
    - CalibrationInfo of the displayed image

Outputs:
    - MeasurementGraphic records
    - Delete-button hit testing

Requirements:
    - core.calibration_resolver for CalibrationInfo
"""

import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from core.calibration_resolver import CalibrationInfo
from core.rendering_engine import Point
from tools.annotation_store import Measurement


Color = Tuple[int, int, int]

LINE_COLOR: Color = (0, 255, 0)
ESTIMATED_LABEL_COLOR: Color = (255, 204, 0)
DELETE_BUTTON_COLOR: Color = (255, 68, 68)
LINE_WIDTH = 2
ENDPOINT_RADIUS = 4
LABEL_HEIGHT = 18
DELETE_BUTTON_RADIUS = 8


def measure_distance(measurement: Measurement, calibration: CalibrationInfo) -> float:
    """Real-world length of a measurement: sqrt((dx*xs)^2 + (dy*ys)^2)."""
    dx, dy = measurement.pixel_delta
    return math.sqrt((dx * calibration.x_spacing) ** 2 + (dy * calibration.y_spacing) ** 2)


def format_measurement_label(distance: float, estimated: bool) -> str:
    """Label text, prefixed with "~" when the spacing is estimated."""
    prefix = "~" if estimated else ""
    return f"{prefix}{distance:.1f} mm"


def label_width(text: str) -> float:
    """Approximate label box width for 12 px text."""
    return len(text) * 7 + 10


@dataclass(frozen=True)
class MeasurementGraphic:
    """
    Canvas-space drawing instructions for one measurement.

    Attributes:
        measurement: Measurement drawn
        start: Canvas start point
        end: Canvas end point
        label: Distance text
        label_anchor: Canvas point the label text is centered on
        label_box: (left, top, width, height) of the label background
        line_color: Line and endpoint colour
        label_color: Text colour
        delete_button: (center_x, center_y, radius), None for in-progress measurements
    """
    measurement: Measurement
    start: Point
    end: Point
    label: str
    label_anchor: Point
    label_box: Tuple[float, float, float, float]
    line_color: Color
    label_color: Color
    delete_button: Optional[Tuple[float, float, float]] = None


def build_measurement_graphics(
    measurements: Sequence[Measurement],
    pixel_to_canvas: Callable[[Point], Point],
    calibration: CalibrationInfo,
    line_color: Color = LINE_COLOR,
    estimated_color: Color = ESTIMATED_LABEL_COLOR,
) -> List[MeasurementGraphic]:
    """
    Compute drawing instructions for the visible measurements.

    Args:
        measurements: Measurements in draw order
        pixel_to_canvas: Maps an image-pixel point to canvas coordinates
        calibration: Spacing of the displayed image
        line_color: Colour of lines, endpoints and calibrated labels
        estimated_color: Label colour when the spacing is estimated

    Returns:
        One MeasurementGraphic per measurement, in the same order
    """
    graphics = []
    label_color = estimated_color if calibration.estimated else line_color
    for measurement in measurements:
        start = pixel_to_canvas(measurement.start)
        end = pixel_to_canvas(measurement.end)
        label = format_measurement_label(measure_distance(measurement, calibration), calibration.estimated)
        mid_x = (start.x + end.x) / 2.0
        mid_y = (start.y + end.y) / 2.0
        width = label_width(label)
        delete_button = None
        if not measurement.in_progress:
            delete_button = (mid_x + width / 2.0 + 10, mid_y - 11, DELETE_BUTTON_RADIUS)
        graphics.append(MeasurementGraphic(
            measurement=measurement,
            start=Point(start.x, start.y),
            end=Point(end.x, end.y),
            label=label,
            label_anchor=Point(mid_x, mid_y - 11),
            label_box=(mid_x - width / 2.0, mid_y - 20, width, LABEL_HEIGHT),
            line_color=line_color,
            label_color=label_color,
            delete_button=delete_button,
        ))
    return graphics


def hit_test_delete_button(graphics: Sequence[MeasurementGraphic], x: float, y: float) -> Optional[Measurement]:
    """
    Find the measurement whose delete button contains a canvas point.

    Later graphics are on top, so they are tested first.

    Returns:
        Measurement to delete, or None
    """
    for graphic in reversed(graphics):
        if graphic.delete_button is None:
            continue
        cx, cy, radius = graphic.delete_button
        if (x - cx) ** 2 + (y - cy) ** 2 <= radius ** 2:
            return graphic.measurement
    return None
