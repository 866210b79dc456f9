"""
Calibration Resolver

Derives the real-world pixel spacing (mm per pixel) of the displayed image.

Priority:
    1. Spacing the rendering engine already reports on the loaded image
    2. Pixel Spacing (0028,0030)
    3. Imager Pixel Spacing (0018,1164)
    4. Default of 1.0 x 1.0, flagged as estimated

Inputs:
    - LoadedImage (or any object with row/column spacing and a tag parser)

Outputs:
    - CalibrationInfo

Requirements:
    - utils.dicom_utils for spacing string parsing
"""

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from core.dicom_parser import IMAGER_PIXEL_SPACING, PIXEL_SPACING
from utils.dicom_utils import parse_spacing_string


@dataclass(frozen=True)
class CalibrationInfo:
    """
    Pixel spacing along each axis.

    Attributes:
        x_spacing: Column spacing (mm per pixel horizontally)
        y_spacing: Row spacing (mm per pixel vertically)
        estimated: True when no metadata spacing was found and 1.0 was substituted
    """
    x_spacing: float = 1.0
    y_spacing: float = 1.0
    estimated: bool = True


ESTIMATED = CalibrationInfo(1.0, 1.0, estimated=True)


def _engine_spacing(image: Any) -> Optional[Tuple[float, float]]:
    row = getattr(image, "row_pixel_spacing", None)
    column = getattr(image, "column_pixel_spacing", None)
    if row is None or column is None:
        return None
    return parse_spacing_string(f"{row}\\{column}")


def _tag_spacing(image: Any, tag: Tuple[int, int]) -> Optional[Tuple[float, float]]:
    data = getattr(image, "data", None)
    if data is None:
        return None
    return parse_spacing_string(data.lookup(tag))


def resolve_spacing(image: Any) -> CalibrationInfo:
    """
    Resolve the calibration of an image. Never raises.

    Args:
        image: Displayed image, or None

    Returns:
        CalibrationInfo; estimated 1.0 x 1.0 when no source yields a valid spacing
    """
    if image is None:
        return ESTIMATED
    for source in (
        lambda: _engine_spacing(image),
        lambda: _tag_spacing(image, PIXEL_SPACING),
        lambda: _tag_spacing(image, IMAGER_PIXEL_SPACING),
    ):
        try:
            spacing = source()
        except Exception:
            spacing = None
        if spacing is not None:
            row_spacing, column_spacing = spacing
            return CalibrationInfo(x_spacing=column_spacing, y_spacing=row_spacing, estimated=False)
    return ESTIMATED
