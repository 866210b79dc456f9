"""
Gesture Interpreter

This module turns continuous pointer-drag and wheel input into discrete tool
actions: window/level adjustment, pan, zoom, stack-scroll navigation and
ruler drawing.

Drag input is dispatched through one handler table keyed by the active tool.
Stack-scroll drags and wheel input both navigate through accumulators: small
deltas are summed until a threshold is reached, then exactly one navigation
step is taken and the accumulator is reset. Wheel navigation is additionally
locked for a short cooldown after each step; wheel events that arrive during
the cooldown are discarded.

Inputs:
    - Pointer down/move/up/leave events in canvas coordinates
    - Wheel deltas
    - Active tool selection

Outputs:
    - Viewport changes, navigation steps and annotation edits, applied through a host

Requirements:
    - tools.annotation_store for ruler measurements
    - time.monotonic (injectable) for the wheel cooldown
"""

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from tools.annotation_store import AnnotationStore


class Tool(Enum):
    """Mutually exclusive pointer tools. RESET is one-shot and never stays active."""
    PAN = "pan"
    ZOOM = "zoom"
    WINDOW_LEVEL = "window_level"
    STACK_SCROLL = "stack_scroll"
    RULER = "ruler"
    RESET = "reset"

    @classmethod
    def from_name(cls, name: str) -> "Tool":
        """
        Look up a tool by name.

        Accepts the enum value with either "-" or "_" as separator, plus the
        short names "wwwc", "stackscroll" and "length".

        Raises:
            ValueError: If the name matches no tool
        """
        key = str(name).strip().lower().replace("-", "_").replace(" ", "_")
        aliases = {
            "wwwc": cls.WINDOW_LEVEL,
            "stackscroll": cls.STACK_SCROLL,
            "length": cls.RULER,
        }
        if key in aliases:
            return aliases[key]
        return cls(key)

    @property
    def is_one_shot(self) -> bool:
        return self is Tool.RESET

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


@dataclass(frozen=True)
class GestureSettings:
    """
    Gesture tuning.

    Attributes:
        stack_scroll_threshold: Vertical drag distance (px) per stack-scroll step
        wheel_threshold: Accumulated wheel delta per navigation step
        wheel_cooldown: Seconds wheel navigation stays locked after a step
        window_width_sensitivity: Window width change per horizontal px
        window_center_sensitivity: Window center change per vertical px
        zoom_sensitivity: Scale change per vertical px
        min_scale: Smallest allowed scale
        max_scale: Largest allowed scale
    """
    stack_scroll_threshold: float = 30.0
    wheel_threshold: float = 150.0
    wheel_cooldown: float = 0.030
    window_width_sensitivity: float = 2.0
    window_center_sensitivity: float = 1.0
    zoom_sensitivity: float = 0.01
    min_scale: float = 0.1
    max_scale: float = 10.0


def _sign(value: float) -> int:
    return 1 if value > 0 else -1


class GestureInterpreter:
    """
    Per-session gesture state machine.

    The host supplies the operations gestures act on:
        get_viewport() -> Viewport or None
        set_viewport(viewport) -> None
        canvas_to_pixel(x, y) -> Point
        navigate(direction) -> None
        current_scope() -> (instance_index, series_id)
        annotations_changed() -> None
    """

    def __init__(self, host, annotations: AnnotationStore,
                 settings: Optional[GestureSettings] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize the gesture interpreter.

        Args:
            host: Object providing viewport access, navigation and scope (see class docstring)
            annotations: Store that ruler gestures edit
            settings: Gesture tuning (defaults when None)
            clock: Monotonic clock in seconds, used for the wheel cooldown
        """
        self.host = host
        self.annotations = annotations
        self.settings = settings or GestureSettings()
        self.clock = clock
        self.active_tool = Tool.WINDOW_LEVEL
        self.surface = None

        self.dragging = False
        self.last_position: Optional[Tuple[float, float]] = None
        self.stack_scroll_accumulator = 0.0
        self.wheel_accumulator = 0.0
        self._wheel_locked_until = -math.inf

        self._drag_handlers: Dict[Tool, Callable[[float, float], None]] = {
            Tool.WINDOW_LEVEL: self._drag_window_level,
            Tool.PAN: self._drag_pan,
            Tool.ZOOM: self._drag_zoom,
            Tool.STACK_SCROLL: self._drag_stack_scroll,
        }

    # --- wiring ---

    def attach(self, surface) -> None:
        """Start interpreting pointer gestures for a surface."""
        self.surface = surface
        self._end_drag()

    def detach(self) -> None:
        """Stop interpreting pointer gestures (surface torn down)."""
        self.surface = None
        self._end_drag()

    @property
    def attached(self) -> bool:
        return self.surface is not None

    def set_tool(self, tool: Tool) -> None:
        """
        Make a tool active.

        Raises:
            ValueError: For one-shot tools, which are actions rather than modes
        """
        if tool.is_one_shot:
            raise ValueError(f"{tool.value} is a one-shot action, not a pointer tool")
        self.active_tool = tool
        self._end_drag()

    # --- pointer ---

    def pointer_down(self, x: float, y: float) -> None:
        if not self.attached:
            return
        if self.active_tool is Tool.RULER:
            index, series_id = self.host.current_scope()
            if self.annotations.begin(self.host.canvas_to_pixel(x, y), index, series_id):
                self.host.annotations_changed()
            return
        self.dragging = True
        self.last_position = (x, y)

    def pointer_move(self, x: float, y: float) -> None:
        if not self.attached:
            return
        if self.active_tool is Tool.RULER:
            if self.annotations.in_progress is not None:
                self.annotations.update(self.host.canvas_to_pixel(x, y))
                self.host.annotations_changed()
            return
        if not self.dragging or self.last_position is None:
            return
        dx = x - self.last_position[0]
        dy = y - self.last_position[1]
        self.last_position = (x, y)
        handler = self._drag_handlers.get(self.active_tool)
        if handler is not None:
            handler(dx, dy)

    def pointer_up(self, x: float, y: float) -> None:
        if self.active_tool is Tool.RULER:
            # The release point is the measurement's final end
            if self.attached and self.annotations.in_progress is not None:
                self.annotations.update(self.host.canvas_to_pixel(x, y))
            if self.annotations.commit() is not None:
                self.host.annotations_changed()
        self._end_drag()

    def pointer_leave(self) -> None:
        # An in-progress measurement survives leaving the canvas
        self._end_drag()

    def _end_drag(self) -> None:
        self.dragging = False
        self.last_position = None
        self.stack_scroll_accumulator = 0.0

    # --- drag handlers ---

    def _drag_window_level(self, dx: float, dy: float) -> None:
        viewport = self.host.get_viewport()
        if viewport is None:
            return
        viewport.window_width += dx * self.settings.window_width_sensitivity
        viewport.window_center += dy * self.settings.window_center_sensitivity
        self.host.set_viewport(viewport)

    def _drag_pan(self, dx: float, dy: float) -> None:
        viewport = self.host.get_viewport()
        if viewport is None:
            return
        viewport.translation_x += dx
        viewport.translation_y += dy
        self.host.set_viewport(viewport)

    def _drag_zoom(self, dx: float, dy: float) -> None:
        viewport = self.host.get_viewport()
        if viewport is None:
            return
        scale = viewport.scale + dy * self.settings.zoom_sensitivity
        viewport.scale = min(max(scale, self.settings.min_scale), self.settings.max_scale)
        self.host.set_viewport(viewport)

    def _drag_stack_scroll(self, dx: float, dy: float) -> None:
        self.stack_scroll_accumulator += dy
        if abs(self.stack_scroll_accumulator) >= self.settings.stack_scroll_threshold:
            direction = _sign(self.stack_scroll_accumulator)
            self.stack_scroll_accumulator = 0.0
            self.host.navigate(direction)

    # --- wheel ---

    def wheel(self, delta_y: float) -> bool:
        """
        Feed one wheel event.

        Args:
            delta_y: Vertical wheel delta (positive scrolls towards later instances)

        Returns:
            True if this event triggered a navigation step
        """
        now = self.clock()
        if now < self._wheel_locked_until:
            return False
        self.wheel_accumulator += delta_y
        if abs(self.wheel_accumulator) < self.settings.wheel_threshold:
            return False
        direction = _sign(self.wheel_accumulator)
        self.wheel_accumulator = 0.0
        self._wheel_locked_until = now + self.settings.wheel_cooldown
        self.host.navigate(direction)
        return True

    def reset_wheel_state(self) -> None:
        self.wheel_accumulator = 0.0
        self._wheel_locked_until = -math.inf
