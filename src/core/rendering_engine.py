"""
Rendering Engine

This module implements the rendering-engine collaborator of the viewer: it
decodes instances into displayable images, owns per-surface viewport state
(pan, zoom, window/level, inversion), maps between image-pixel and canvas
coordinates, and paints surfaces into Pillow canvases.

Every call that changes what a surface shows returns an asyncio future that
resolves once the surface has been repainted, so callers can chain overlay
drawing after the paint instead of subscribing to paint events.

Inputs:
    - Raw DICOM sources registered with add_source()
    - Render surfaces created by the viewport lifecycle controller
    - Viewport changes from gestures

Outputs:
    - LoadedImage objects (rescaled pixels, default window, spacing, tags)
    - Painted RGB canvases (PIL.Image)
    - Coordinate transforms between image pixels and canvas pixels

Requirements:
    - numpy for pixel arithmetic
    - pydicom for decoding
    - Pillow for raster transforms
    - asyncio for paint futures
"""

import asyncio
import itertools
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple, Union

import numpy as np
from PIL import Image

from core.dicom_parser import DICOMParser, parse_dicom_bytes
from core.dicom_window_level import (apply_color_window_level_luminance, apply_window_level,
                                     get_default_window, get_rescale_parameters)
from utils.dicom_utils import first_float, get_pixel_spacing


class DecodeError(Exception):
    """Raised when an instance cannot be turned into a displayable image."""


class Point(NamedTuple):
    """A 2D point in image-pixel or canvas coordinates."""
    x: float
    y: float


@dataclass
class Viewport:
    """
    Display parameters of one surface.

    Attributes:
        scale: Canvas pixels per image pixel
        translation_x: Horizontal pan in canvas pixels
        translation_y: Vertical pan in canvas pixels
        window_width: VOI window width
        window_center: VOI window center
        invert: Display inverted grayscale
    """
    scale: float = 1.0
    translation_x: float = 0.0
    translation_y: float = 0.0
    window_width: float = 1.0
    window_center: float = 0.0
    invert: bool = False

    def copy(self) -> "Viewport":
        return replace(self)


@dataclass
class LoadedImage:
    """A decoded instance ready for display."""
    image_ref: str
    pixels: np.ndarray
    width: int
    height: int
    default_window: Tuple[float, float]
    data: DICOMParser
    bits_stored: int = 16
    row_pixel_spacing: Optional[float] = None
    column_pixel_spacing: Optional[float] = None
    invert: bool = False
    is_color: bool = False


class RenderSurface:
    """
    A drawable area the engine paints into.

    The surface only holds state; the engine mutates it and the GUI reads
    `canvas` after each paint notification.
    """

    _ids = itertools.count(1)

    def __init__(self, width: int = 512, height: int = 512):
        self.surface_id = next(RenderSurface._ids)
        self.width = max(int(width), 1)
        self.height = max(int(height), 1)
        self.enabled = False
        self.image: Optional[LoadedImage] = None
        self.viewport: Optional[Viewport] = None
        self.canvas: Optional[Image.Image] = None
        self._paint_listeners: List[Callable[["RenderSurface"], None]] = []

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def add_paint_listener(self, listener: Callable[["RenderSurface"], None]) -> None:
        """Register a callback invoked after each paint (used by widgets to refresh)."""
        if listener not in self._paint_listeners:
            self._paint_listeners.append(listener)

    def remove_paint_listener(self, listener: Callable[["RenderSurface"], None]) -> None:
        if listener in self._paint_listeners:
            self._paint_listeners.remove(listener)

    def notify_painted(self) -> None:
        for listener in list(self._paint_listeners):
            listener(self)

    def __repr__(self) -> str:
        return f"RenderSurface(id={self.surface_id}, size={self.width}x{self.height}, enabled={self.enabled})"


class RenderingEngine:
    """
    Interface of the rendering engine consumed by the viewer core.

    Concrete engines implement load() and _paint(); viewport bookkeeping and
    coordinate transforms are shared.
    """

    async def load(self, image_ref: str) -> LoadedImage:
        """Decode the instance behind image_ref. May raise any exception."""
        raise NotImplementedError

    def _paint(self, surface: RenderSurface) -> Optional[Image.Image]:
        """Paint surface.image with surface.viewport into a canvas."""
        raise NotImplementedError

    # --- surface lifecycle ---

    def enable(self, surface: RenderSurface) -> None:
        """Make a surface usable. Enabling an enabled surface is a no-op."""
        surface.enabled = True

    def disable(self, surface: RenderSurface) -> None:
        """Release a surface. Disabling a disabled surface is a no-op."""
        surface.enabled = False
        surface.image = None
        surface.viewport = None
        surface.canvas = None

    # --- display ---

    def display(self, surface: RenderSurface, image: LoadedImage,
                viewport: Optional[Viewport] = None) -> asyncio.Future:
        """
        Show an image on a surface.

        The surface keeps its viewport across images; a surface without one
        gets the image's default viewport.

        Args:
            surface: Enabled surface
            image: Image to show
            viewport: Optional viewport to apply instead

        Returns:
            Future resolved with the painted canvas
        """
        self._require_enabled(surface)
        surface.image = image
        if viewport is not None:
            surface.viewport = viewport.copy()
        elif surface.viewport is None:
            surface.viewport = self.get_default_viewport(surface, image)
        return self._schedule_paint(surface)

    def get_default_viewport(self, surface: RenderSurface, image: LoadedImage) -> Viewport:
        """Viewport that fits the image to the surface with the image's default window."""
        center, width = image.default_window
        return Viewport(
            scale=self.fit_scale(surface, image),
            window_width=width,
            window_center=center,
            invert=image.invert,
        )

    def get_viewport(self, surface: RenderSurface) -> Optional[Viewport]:
        """Copy of the surface's viewport, or None when nothing is displayed."""
        if not surface.enabled or surface.viewport is None:
            return None
        return surface.viewport.copy()

    def set_viewport(self, surface: RenderSurface, viewport: Viewport) -> asyncio.Future:
        """Apply a viewport and repaint."""
        self._require_enabled(surface)
        surface.viewport = viewport.copy()
        if surface.viewport.window_width < 1:
            surface.viewport.window_width = 1.0
        return self._schedule_paint(surface)

    def reset(self, surface: RenderSurface) -> asyncio.Future:
        """Restore the default viewport of the displayed image and repaint."""
        self._require_enabled(surface)
        if surface.image is not None:
            surface.viewport = self.get_default_viewport(surface, surface.image)
        return self._schedule_paint(surface)

    def resize(self, surface: RenderSurface, width: int, height: int) -> asyncio.Future:
        """Change the canvas size and repaint."""
        surface.width = max(int(width), 1)
        surface.height = max(int(height), 1)
        return self._schedule_paint(surface)

    # --- coordinates ---

    @staticmethod
    def fit_scale(surface: RenderSurface, image: LoadedImage) -> float:
        return min(surface.width / max(image.width, 1), surface.height / max(image.height, 1))

    def pixel_to_canvas(self, surface: RenderSurface, point: Point) -> Point:
        """Map an image-pixel point to canvas coordinates."""
        image, viewport = surface.image, surface.viewport
        if image is None or viewport is None:
            return Point(point[0], point[1])
        return Point(
            surface.width / 2.0 + viewport.translation_x + (point[0] - image.width / 2.0) * viewport.scale,
            surface.height / 2.0 + viewport.translation_y + (point[1] - image.height / 2.0) * viewport.scale,
        )

    def canvas_to_pixel(self, surface: RenderSurface, x: float, y: float) -> Point:
        """Map a canvas point to image-pixel coordinates."""
        image, viewport = surface.image, surface.viewport
        if image is None or viewport is None or viewport.scale == 0:
            return Point(x, y)
        return Point(
            (x - surface.width / 2.0 - viewport.translation_x) / viewport.scale + image.width / 2.0,
            (y - surface.height / 2.0 - viewport.translation_y) / viewport.scale + image.height / 2.0,
        )

    # --- painting ---

    def _require_enabled(self, surface: RenderSurface) -> None:
        if not surface.enabled:
            raise RuntimeError(f"{surface!r} is not enabled")

    def _schedule_paint(self, surface: RenderSurface) -> asyncio.Future:
        """
        Queue a paint of the surface on the running loop.

        Returns:
            Future resolved with the canvas (None if nothing could be painted)
        """
        loop = asyncio.get_event_loop()
        future = loop.create_future()

        def paint() -> None:
            if future.cancelled():
                return
            if not surface.enabled or surface.image is None or surface.viewport is None:
                future.set_result(None)
                return
            try:
                canvas = self._paint(surface)
            except Exception as e:
                future.set_exception(e)
                return
            surface.canvas = canvas
            surface.notify_painted()
            future.set_result(canvas)

        loop.call_soon(paint)
        return future


class PixelRenderingEngine(RenderingEngine):
    """
    Rendering engine backed by pydicom, numpy and Pillow.

    Sources are registered up front (like a file manager handing out image
    references); load() decodes them on demand.
    """

    def __init__(self):
        self._sources: Dict[str, Union[bytes, str, Path]] = {}
        self._next_id = itertools.count(1)

    def add_source(self, source: Union[bytes, str, Path]) -> str:
        """
        Register a file (bytes or path) and return its image reference.

        Args:
            source: Raw file contents or path

        Returns:
            Image reference accepted by load()
        """
        image_ref = f"dicomfile:{next(self._next_id)}"
        self._sources[image_ref] = source
        return image_ref

    def clear_sources(self) -> None:
        self._sources.clear()

    async def load(self, image_ref: str) -> LoadedImage:
        # Yield first so queued work runs in arrival order
        await asyncio.sleep(0)
        source = self._sources.get(image_ref)
        if source is None:
            raise DecodeError(f"Unknown image reference: {image_ref}")
        return self.decode(image_ref, source)

    def decode(self, image_ref: str, source: Union[bytes, str, Path]) -> LoadedImage:
        """
        Decode a source into a LoadedImage.

        Raises:
            DecodeError: If the source is unreadable or carries no pixel data
        """
        try:
            raw = source if isinstance(source, bytes) else Path(source).read_bytes()
            dataset = parse_dicom_bytes(raw)
        except Exception as e:
            raise DecodeError(f"Could not parse {image_ref}: {e}") from e

        if "PixelData" not in dataset:
            raise DecodeError(f"{image_ref} has no pixel data")

        try:
            pixel_array = dataset.pixel_array
        except Exception as e:
            raise DecodeError(f"Could not decode pixel data of {image_ref}: {e}") from e

        photometric = str(getattr(dataset, "PhotometricInterpretation", "MONOCHROME2")).strip().upper()
        samples_per_pixel = int(getattr(dataset, "SamplesPerPixel", 1) or 1)
        is_color = samples_per_pixel == 3

        # Multi-frame instances show their first frame
        frames = int(first_float(getattr(dataset, "NumberOfFrames", 1), 1) or 1)
        if frames > 1 and pixel_array.ndim == (4 if is_color else 3):
            pixel_array = pixel_array[0]

        if is_color:
            pixels = pixel_array.astype(np.float32)
        else:
            if pixel_array.ndim != 2:
                raise DecodeError(f"Unexpected pixel array shape {pixel_array.shape} for {image_ref}")
            slope, intercept = get_rescale_parameters(dataset)
            pixels = pixel_array.astype(np.float32) * slope + intercept

        spacing = get_pixel_spacing(dataset)
        height, width = pixels.shape[0], pixels.shape[1]
        return LoadedImage(
            image_ref=image_ref,
            pixels=pixels,
            width=int(width),
            height=int(height),
            default_window=get_default_window(dataset, pixels),
            data=DICOMParser(dataset),
            bits_stored=int(getattr(dataset, "BitsStored", 16) or 16),
            row_pixel_spacing=spacing[0] if spacing else None,
            column_pixel_spacing=spacing[1] if spacing else None,
            invert=photometric == "MONOCHROME1",
            is_color=is_color,
        )

    def _paint(self, surface: RenderSurface) -> Image.Image:
        return self.render_image(surface.image, surface.viewport, surface.size)

    @staticmethod
    def render_image(image: LoadedImage, viewport: Viewport, size: Tuple[int, int]) -> Image.Image:
        """
        Render an image with a viewport onto an RGB canvas of the given size.

        Args:
            image: Decoded image
            viewport: Pan/zoom/window parameters
            size: Canvas (width, height)

        Returns:
            RGB canvas
        """
        if image.is_color:
            data = apply_color_window_level_luminance(image.pixels, viewport.window_center, viewport.window_width)
        else:
            data = apply_window_level(image.pixels, viewport.window_center, viewport.window_width)
        if viewport.invert:
            data = 255 - data
        source = Image.fromarray(data)

        canvas_width, canvas_height = size
        scale = viewport.scale if viewport.scale > 0 else 1.0
        # Affine maps canvas coordinates back into image coordinates
        inverse = 1.0 / scale
        offset_x = image.width / 2.0 - (canvas_width / 2.0 + viewport.translation_x) * inverse
        offset_y = image.height / 2.0 - (canvas_height / 2.0 + viewport.translation_y) * inverse
        canvas = source.transform(
            (canvas_width, canvas_height),
            Image.Transform.AFFINE,
            (inverse, 0.0, offset_x, 0.0, inverse, offset_y),
            resample=Image.Resampling.BILINEAR,
            fillcolor=0,
        )
        return canvas.convert("RGB")
