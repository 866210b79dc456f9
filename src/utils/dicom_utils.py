"""
DICOM Utility Functions

This module provides helper functions for DICOM operations including:
- Pixel spacing string parsing and dataset lookups
- Multi-valued tag value conversion
- Date formatting for display
- DICOM file name filtering

Inputs:
    - pydicom.Dataset objects
    - Raw tag value strings
    - File names

Outputs:
    - Parsed numeric values
    - Display strings

Requirements:
    - pydicom library
"""

import math
import os
from typing import Any, List, Optional, Tuple

from pydicom.dataset import Dataset
from pydicom.multival import MultiValue


# Backslash separates the components of a multi-valued DICOM string
VALUE_SEPARATOR = "\\"


def to_float_list(value: Any) -> List[float]:
    """
    Convert a tag value to a list of floats.

    Accepts pydicom MultiValue, lists/tuples, backslash-separated strings and scalars.

    Args:
        value: Raw tag value

    Returns:
        List of floats (empty if value is None or empty)

    Raises:
        ValueError: If a component cannot be converted
    """
    if value is None:
        return []
    if isinstance(value, (MultiValue, list, tuple)):
        return [float(v) for v in value]
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="replace")
    if isinstance(value, str):
        return [float(part.strip()) for part in value.split(VALUE_SEPARATOR) if part.strip()]
    return [float(value)]


def first_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    """
    Get the first numeric component of a (possibly multi-valued) tag value.

    Args:
        value: Raw tag value
        default: Value returned when nothing can be parsed

    Returns:
        First float, or default
    """
    try:
        values = to_float_list(value)
    except (TypeError, ValueError):
        return default
    return values[0] if values else default


def parse_spacing_string(text: Optional[str]) -> Optional[Tuple[float, float]]:
    """
    Parse a two-component spacing string such as "0.5\\0.5".

    Components are row spacing then column spacing. Both must be finite and
    strictly positive.

    Args:
        text: Spacing string, or None

    Returns:
        Tuple of (row_spacing, column_spacing), or None if the string is unusable
    """
    if not text:
        return None
    parts = str(text).split(VALUE_SEPARATOR)
    if len(parts) < 2:
        return None
    try:
        row_spacing = float(parts[0].strip())
        col_spacing = float(parts[1].strip())
    except ValueError:
        return None
    if not (math.isfinite(row_spacing) and math.isfinite(col_spacing)):
        return None
    if row_spacing <= 0 or col_spacing <= 0:
        return None
    return (row_spacing, col_spacing)


def get_pixel_spacing(dataset: Dataset) -> Optional[Tuple[float, float]]:
    """
    Get Pixel Spacing (0028,0030) from a DICOM dataset.

    Args:
        dataset: pydicom Dataset

    Returns:
        Tuple of (row_spacing, column_spacing) in mm, or None if not available
    """
    try:
        if hasattr(dataset, 'PixelSpacing'):
            pixel_spacing = to_float_list(dataset.PixelSpacing)
            if len(pixel_spacing) >= 2:
                row_spacing, col_spacing = pixel_spacing[0], pixel_spacing[1]
                if row_spacing > 0 and col_spacing > 0 and math.isfinite(row_spacing) and math.isfinite(col_spacing):
                    return (row_spacing, col_spacing)
    except Exception:
        pass

    return None


def format_dicom_date(date_str: Optional[str]) -> Optional[str]:
    """
    Format a DICOM date (YYYYMMDD) as DD/MM/YYYY.

    Values that are not exactly eight characters long are returned unchanged.

    Args:
        date_str: DICOM date string

    Returns:
        Formatted date string
    """
    if not date_str or len(date_str) != 8:
        return date_str
    return f"{date_str[6:8]}/{date_str[4:6]}/{date_str[0:4]}"


def is_dicom_filename(file_name: str) -> bool:
    """
    Check whether a file name looks like a DICOM file.

    Files ending in .dcm and files without any extension are accepted.

    Args:
        file_name: File name or path

    Returns:
        True if the file should be offered to the parser
    """
    name = os.path.basename(file_name).lower()
    return name.endswith(".dcm") or "." not in name
