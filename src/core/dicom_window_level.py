"""
DICOM window/level handling.

This module applies window/level to pixel arrays and extracts the rescale
parameters and the default window center/width of a dataset.

Inputs:
    - pydicom Dataset, pixel arrays

Outputs:
    - Windowed pixel arrays (0-255 uint8), (slope, intercept) and (center, width) tuples

Requirements:
    - numpy, pydicom
    - utils.dicom_utils (first_float)
"""

import numpy as np
from typing import Tuple
from pydicom.dataset import Dataset

from utils.dicom_utils import first_float


def apply_window_level(
    pixel_array: np.ndarray,
    window_center: float,
    window_width: float,
) -> np.ndarray:
    """Apply window/level transformation to a (rescaled) pixel array. Returns 0-255 uint8."""
    window_width = max(float(window_width), 1.0)
    window_min = window_center - window_width / 2.0
    window_max = window_center + window_width / 2.0
    windowed = np.clip(pixel_array, window_min, window_max)
    return ((windowed - window_min) / (window_max - window_min) * 255.0).astype(np.uint8)


def apply_color_window_level_luminance(
    pixel_array: np.ndarray,
    window_center: float,
    window_width: float,
) -> np.ndarray:
    """Apply window/level to RGB images by scaling each pixel's luminance. Returns 0-255 uint8 RGB."""
    rgb_float = pixel_array.astype(np.float32)
    luminance = np.dot(rgb_float[..., :3], [0.299, 0.587, 0.114])
    normalized_luminance = apply_window_level(luminance, window_center, window_width).astype(np.float32)
    epsilon = 1e-10
    scale = normalized_luminance / (luminance + epsilon)
    zero_luminance_mask = luminance < epsilon
    if np.any(zero_luminance_mask):
        max_channel = np.max(rgb_float, axis=2)
        scale[zero_luminance_mask] = normalized_luminance[zero_luminance_mask] / (max_channel[zero_luminance_mask] + epsilon)
    windowed_rgb = rgb_float * scale[..., np.newaxis]
    return np.clip(windowed_rgb, 0, 255).astype(np.uint8)


def get_rescale_parameters(dataset: Dataset) -> Tuple[float, float]:
    """
    Get Rescale Slope and Rescale Intercept, defaulting to the identity (1, 0).

    Args:
        dataset: pydicom Dataset

    Returns:
        Tuple of (rescale_slope, rescale_intercept)
    """
    slope = first_float(getattr(dataset, 'RescaleSlope', None), 1.0)
    intercept = first_float(getattr(dataset, 'RescaleIntercept', None), 0.0)
    if slope == 0.0:
        slope = 1.0
    return slope, intercept


def get_default_window(dataset: Dataset, pixel_array: np.ndarray) -> Tuple[float, float]:
    """
    Get the default window center and width for a (rescaled) pixel array.

    The first Window Center/Window Width values are used when present;
    otherwise the window spans the pixel value range.

    Args:
        dataset: pydicom Dataset
        pixel_array: Rescaled pixel values

    Returns:
        Tuple of (window_center, window_width)
    """
    window_center = first_float(getattr(dataset, 'WindowCenter', None))
    window_width = first_float(getattr(dataset, 'WindowWidth', None))
    if window_center is not None and window_width is not None and window_width > 0:
        return window_center, window_width

    if pixel_array.ndim == 3 and pixel_array.shape[-1] == 3:
        pixel_array = np.dot(pixel_array[..., :3].astype(np.float32), [0.299, 0.587, 0.114])
    pixel_min = float(np.min(pixel_array))
    pixel_max = float(np.max(pixel_array))
    return (pixel_min + pixel_max) / 2.0, max(pixel_max - pixel_min, 1.0)
