"""
Viewer Session

This module composes the navigation-and-annotation controller of one viewer
session: navigation state, instance resolution, the viewport lifecycle, the
gesture interpreter and the annotation store. The GUI talks to the viewer only
through this object and listens to its signals.

Inputs:
    - Loaded studies
    - Series selection, navigation, tool and measurement requests
    - Pointer, wheel and key events in canvas coordinates

Outputs:
    - Signals: navigation_changed, metadata_changed, overlay_changed,
      surface_changed, document_changed, window_level_changed, tool_changed,
      studies_changed
    - Read-only status (current index, total, estimated spacing, ...)

Requirements:
    - PySide6 for QObject/Signal
    - asyncio for scheduling resolutions
"""

import asyncio
import time
from pathlib import Path
from typing import Any, Callable, Coroutine, Dict, List, Optional, Set, Union

from PySide6.QtCore import QObject, Signal

from core.calibration_resolver import CalibrationInfo, resolve_spacing
from core.document_text import TextDocument
from core.image_exporter import ExportSettings, ImageExporter
from core.instance_resolver import InstanceResolver, Resolution
from core.navigation_state import (NavigationState, NavigationStatus, ViewportMode,
                                   compute_navigation_status, fraction_to_index)
from core.rendering_engine import LoadedImage, Point, RenderingEngine, RenderSurface, Viewport
from core.study_model import Series, Study
from core.viewport_lifecycle_controller import ViewportLifecycleController
from tools.annotation_store import AnnotationStore, Measurement
from tools.gesture_interpreter import GestureInterpreter, GestureSettings, Tool
from tools.measurement_overlay import (ESTIMATED_LABEL_COLOR, LINE_COLOR, MeasurementGraphic,
                                       build_measurement_graphics, hit_test_delete_button)
from utils.config_manager import ConfigManager
from utils.debug_log import debug_log


# Key names accepted by key_press()
PREVIOUS_KEYS = ("up", "left")
NEXT_KEYS = ("down", "right")


class ViewerSession(QObject):
    """
    One viewer session: the state and operations behind the viewer window.

    Features:
    - Series selection with fallback past undecodable instances
    - Navigation by buttons, keys, wheel, stack-scroll drag and scrollbar
    - Pan, zoom, window/level and ruler gestures
    - Per-instance measurements with calibrated labels
    """

    # Signals
    studies_changed = Signal(object)  # List[Study]
    navigation_changed = Signal(object)  # NavigationStatus
    metadata_changed = Signal(object)  # Dict[str, Dict[str, str]]
    overlay_changed = Signal(object)  # List[MeasurementGraphic]
    surface_changed = Signal(object)  # RenderSurface or None
    document_changed = Signal(object)  # TextDocument or None
    window_level_changed = Signal(float, float)  # center, width
    tool_changed = Signal(object)  # Tool

    def __init__(
        self,
        engine: RenderingEngine,
        config_manager: Optional[ConfigManager] = None,
        clock: Callable[[], float] = time.monotonic,
        parent: Optional[QObject] = None,
    ):
        """
        Initialize the session.

        Args:
            engine: Rendering engine
            config_manager: Source of gesture tuning, colors and the default tool (defaults when None)
            clock: Monotonic clock used for the wheel cooldown
            parent: Optional Qt parent
        """
        super().__init__(parent)
        self.engine = engine
        self.config_manager = config_manager

        settings = config_manager.get_gesture_settings() if config_manager else GestureSettings()
        self.line_color = config_manager.get_measurement_line_color() if config_manager else LINE_COLOR
        self.estimated_color = (config_manager.get_measurement_estimated_color()
                                if config_manager else ESTIMATED_LABEL_COLOR)

        self.studies: List[Study] = []
        self.current_study_index: Optional[int] = None
        self.state = NavigationState()
        self.annotations = AnnotationStore()
        self.gestures = GestureInterpreter(self, self.annotations, settings, clock)
        if config_manager is not None:
            self.gestures.set_tool(config_manager.get_default_tool())
        self.lifecycle = ViewportLifecycleController(
            engine,
            self.state,
            self.gestures,
            redraw_overlay=self._on_surface_painted,
            on_surface_changed=self.surface_changed.emit,
            on_document_changed=self.document_changed.emit,
        )
        self.resolver = InstanceResolver(
            engine,
            self.state,
            self.lifecycle,
            on_displayed=self._on_image_displayed,
            on_document=self._on_document_shown,
        )

        self.overlay_graphics: List[MeasurementGraphic] = []
        self._pending: Set[asyncio.Future] = set()
        self._pointer_consumed = False

    # --- read-only status ---

    @property
    def current_index(self) -> int:
        return self.state.current_index

    @property
    def total(self) -> int:
        return self.state.total

    @property
    def current_series(self) -> Optional[Series]:
        return self.state.series

    @property
    def current_study(self) -> Optional[Study]:
        if self.current_study_index is None:
            return None
        return self.studies[self.current_study_index]

    @property
    def current_image(self) -> Optional[LoadedImage]:
        return self.lifecycle.current_image

    @property
    def current_document(self) -> Optional[TextDocument]:
        return self.lifecycle.document

    @property
    def surface(self) -> Optional[RenderSurface]:
        return self.state.surface

    @property
    def mode(self) -> ViewportMode:
        return self.state.mode

    @property
    def active_tool(self) -> Tool:
        return self.gestures.active_tool

    @property
    def calibration(self) -> CalibrationInfo:
        return resolve_spacing(self.current_image)

    @property
    def is_estimated_spacing(self) -> bool:
        return self.calibration.estimated

    @property
    def navigation_status(self) -> NavigationStatus:
        return compute_navigation_status(self.state)

    # --- task scheduling ---

    def schedule(self, coro: Coroutine) -> asyncio.Future:
        """
        Run a coroutine on the event loop and track it until it finishes.

        Returns:
            The scheduled task (awaitable)
        """
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            print(f"[SESSION] Background task failed: {error}")

    async def wait_idle(self) -> None:
        """Wait until scheduled resolutions and the paints they queued have completed."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        # Paints and their overlay continuations run on the following loop iterations
        for _ in range(3):
            await asyncio.sleep(0)

    # --- studies and series ---

    def load_studies(self, studies: List[Study]) -> None:
        """Replace the loaded studies. The active series stays selected until a new selection."""
        self.studies = list(studies)
        debug_log("viewer_session.load_studies", "studies loaded",
                  {"studies": len(self.studies),
                   "series": sum(len(s.series) for s in self.studies)})
        self.studies_changed.emit(self.studies)

    async def select_series(self, study_index: int, series_id: str) -> Resolution:
        """
        Make a series active and display its first decodable instance.

        Structured-report series go straight to the text document view.

        Args:
            study_index: Index into the loaded studies
            series_id: Series identifier within that study

        Returns:
            Resolution outcome
        """
        if not (0 <= study_index < len(self.studies)):
            print(f"[SESSION] No study at index {study_index}")
            return Resolution.SKIPPED
        series = self.studies[study_index].get_series(series_id)
        if series is None:
            print(f"[SESSION] Study {study_index} has no series {series_id}")
            return Resolution.SKIPPED

        self.current_study_index = study_index
        self.state.reset_for_series(series)
        self.gestures.reset_wheel_state()
        self.annotations.cancel()
        debug_log("viewer_session.select_series", "series selected",
                  {"study": study_index, "series": series_id, "modality": series.modality,
                   "instances": len(series)})

        if series.is_report:
            result = await self.resolver.show_report()
        else:
            self.lifecycle.prepare_surface()
            self.redraw_overlay()
            result = await self.resolver.load_first_valid()
        self._emit_navigation()
        return result

    # --- navigation ---

    def navigate(self, direction: int) -> Optional[asyncio.Future]:
        """
        Step to the previous (-1) or next (+1) instance.

        Returns:
            Scheduled task, or None when the step would leave the series
        """
        total = self.state.total
        if total == 0:
            return None
        direction = 1 if direction > 0 else -1
        target = self.state.current_index + direction
        if not (0 <= target < total):
            return None
        return self.schedule(self.go_to(target, direction))

    async def go_to(self, index: int, direction: int = 1) -> Resolution:
        """Display the instance at index, walking in direction past undecodable ones."""
        result = await self.resolver.go_to(index, direction)
        if result is not Resolution.STALE:
            self._emit_navigation()
        return result

    async def go_to_fraction(self, fraction: float) -> Resolution:
        """Jump to the instance at a scrollbar position in [0, 1]."""
        total = self.state.total
        if total == 0:
            return Resolution.SKIPPED
        target = fraction_to_index(fraction, total)
        if target == self.state.current_index and self.state.mode == ViewportMode.PIXEL_ACTIVE:
            return Resolution.SKIPPED
        direction = 1 if target >= self.state.current_index else -1
        return await self.go_to(target, direction)

    def key_press(self, key: str) -> Optional[asyncio.Future]:
        """Arrow keys: up/left go back, down/right go forward."""
        key = key.lower()
        if key in PREVIOUS_KEYS:
            return self.navigate(-1)
        if key in NEXT_KEYS:
            return self.navigate(1)
        return None

    def _emit_navigation(self) -> None:
        self.navigation_changed.emit(self.navigation_status)

    # --- tools and view ---

    def set_active_tool(self, tool: Union[Tool, str]) -> Tool:
        """
        Activate a pointer tool. The reset tool resets the view and leaves the active tool unchanged.

        Raises:
            ValueError: For unknown tool names
        """
        if isinstance(tool, str):
            tool = Tool.from_name(tool)
        if tool.is_one_shot:
            self.reset_view()
            return self.gestures.active_tool
        self.gestures.set_tool(tool)
        self.tool_changed.emit(tool)
        return tool

    def reset_view(self) -> None:
        """Restore the default viewport and clear the current instance's measurements."""
        if self.lifecycle.reset_viewport() is None:
            return
        self._emit_window_level()
        self.clear_measurements()

    def resize_surface(self, width: int, height: int) -> None:
        self.lifecycle.resize(width, height)

    def _emit_window_level(self) -> None:
        viewport = self.lifecycle.get_viewport()
        if viewport is not None:
            self.window_level_changed.emit(float(viewport.window_center), float(viewport.window_width))

    # --- measurements ---

    def add_measurement(self, start: Point, end: Point) -> Optional[Measurement]:
        """Add a committed measurement on the displayed instance."""
        if self.state.series is None:
            return None
        measurement = self.annotations.add(start, end, self.state.current_index, self.state.series_id)
        self.redraw_overlay()
        return measurement

    def remove_measurement(self, measurement: Measurement) -> bool:
        removed = self.annotations.remove(measurement)
        if removed:
            self.redraw_overlay()
        return removed

    def clear_measurements(self) -> int:
        """Remove the measurements of the displayed instance."""
        removed = self.annotations.clear_for_current(self.state.current_index, self.state.series_id)
        self.redraw_overlay()
        return removed

    async def export_image(self, output_path, settings: Optional[ExportSettings] = None) -> Path:
        """
        Export the displayed image with its committed measurements.

        Args:
            output_path: Destination file (extension added from the format when missing)
            settings: Export options (config defaults, or built-in defaults without a config)

        Returns:
            Path written

        Raises:
            ValueError: If no image is displayed
        """
        image = self.current_image
        viewport = self.lifecycle.get_viewport()
        if image is None or viewport is None:
            raise ValueError("No image is displayed")
        if settings is None:
            settings = (ExportSettings.from_dict(self.config_manager.get_export_settings())
                        if self.config_manager else ExportSettings())
        exporter = ImageExporter(self.engine, self.line_color, self.estimated_color)
        measurements = [m for m in self.visible_measurements() if not m.in_progress]
        return await exporter.export(image, viewport, measurements, self.calibration, output_path, settings)

    def visible_measurements(self) -> List[Measurement]:
        return self.annotations.visible_for(self.state.current_index, self.state.series_id)

    def redraw_overlay(self) -> None:
        """Recompute measurement graphics for the active surface and emit them."""
        surface = self.state.surface
        if surface is None or surface.image is None:
            graphics = []
        else:
            graphics = build_measurement_graphics(
                self.visible_measurements(),
                self.lifecycle.pixel_to_canvas,
                self.calibration,
                line_color=self.line_color,
                estimated_color=self.estimated_color,
            )
        self.overlay_graphics = graphics
        self.overlay_changed.emit(graphics)

    # --- pointer, wheel ---

    def pointer_down(self, x: float, y: float) -> None:
        measurement = hit_test_delete_button(self.overlay_graphics, x, y)
        if measurement is not None:
            # The delete button swallows the whole press/move/release
            self._pointer_consumed = True
            self.remove_measurement(measurement)
            return
        self.gestures.pointer_down(x, y)

    def pointer_move(self, x: float, y: float) -> None:
        if self._pointer_consumed:
            return
        self.gestures.pointer_move(x, y)

    def pointer_up(self, x: float, y: float) -> None:
        if self._pointer_consumed:
            self._pointer_consumed = False
            return
        self.gestures.pointer_up(x, y)

    def pointer_leave(self) -> None:
        self._pointer_consumed = False
        self.gestures.pointer_leave()

    def wheel(self, delta_y: float) -> bool:
        """
        Feed a wheel event; active whenever the series has more than one instance.

        Returns:
            True if a navigation step was taken
        """
        if self.state.total <= 1:
            return False
        return self.gestures.wheel(delta_y)

    # --- gesture host ---

    def get_viewport(self) -> Optional[Viewport]:
        return self.lifecycle.get_viewport()

    def set_viewport(self, viewport: Viewport) -> None:
        if self.lifecycle.set_viewport(viewport) is not None:
            self._emit_window_level()

    def canvas_to_pixel(self, x: float, y: float) -> Point:
        return self.lifecycle.canvas_to_pixel(x, y)

    def current_scope(self):
        return (self.state.current_index, self.state.series_id)

    def annotations_changed(self) -> None:
        self.redraw_overlay()

    # --- resolver / lifecycle callbacks ---

    def _on_surface_painted(self, surface: RenderSurface) -> None:
        self.redraw_overlay()

    def _on_image_displayed(self, index: int, image: LoadedImage) -> None:
        self.metadata_changed.emit(self._image_metadata(image))
        self._emit_window_level()
        self._emit_navigation()

    def _on_document_shown(self, index: int, document: TextDocument) -> None:
        self.overlay_graphics = []
        self.overlay_changed.emit(self.overlay_graphics)
        self.metadata_changed.emit(self._document_metadata(document))
        self._emit_navigation()

    def _image_metadata(self, image: LoadedImage) -> Dict[str, Dict[str, str]]:
        viewport = self.lifecycle.get_viewport()
        center = viewport.window_center if viewport else 0.0
        width = viewport.window_width if viewport else 0.0
        return {
            "patient": image.data.get_patient_info(),
            "study": image.data.get_study_info(),
            "image": {
                "Dimensions": f"{image.width} x {image.height}",
                "Bits": f"{image.bits_stored or 16} bits",
                "Window Center": f"{center:.0f}",
                "Window Width": f"{width:.0f}",
            },
        }

    def _document_metadata(self, document: TextDocument) -> Dict[str, Any]:
        if document.parser is None:
            return {"patient": {}, "study": {}, "image": {"Type": document.title}}
        series = self.state.series
        default_modality = series.modality if series is not None and series.is_report else "N/A"
        study = document.parser.get_study_info(default_modality=default_modality)
        image_type = "Structured Report" if series is not None and series.is_report else "Document"
        return {
            "patient": document.parser.get_patient_info(),
            "study": study,
            "image": {"Type": image_type, "Modality": study["Modality"]},
        }
