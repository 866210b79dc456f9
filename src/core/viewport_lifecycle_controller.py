"""
Viewport Lifecycle Controller

This module owns the single active render surface of a viewer session. It
creates a fresh surface when a series is selected (tearing down the previous
one first), attaches the gesture interpreter to it, and switches between pixel
mode and textual-document mode.

Render calls return futures from the rendering engine. Overlay redraws are
chained onto those futures and skipped when the surface they were issued for
is no longer the active one.

Inputs:
    - LoadedImage objects to display
    - Instances to show as text documents
    - Viewport changes from the session and gestures

Outputs:
    - Active RenderSurface (or None in textual mode)
    - TextDocument for textual mode
    - Overlay redraw and surface/document change callbacks

Requirements:
    - core.rendering_engine for surfaces and futures
    - core.document_text for the textual view
"""

import asyncio
from typing import Callable, Optional

from core.document_text import TextDocument, build_text_document
from core.navigation_state import NavigationState, ViewportMode
from core.rendering_engine import LoadedImage, Point, RenderingEngine, RenderSurface, Viewport
from core.study_model import Instance
from tools.gesture_interpreter import GestureInterpreter
from utils.debug_log import debug_log


class ViewportLifecycleController:
    """
    Creates, replaces and releases the session's render surface.

    Only this controller creates or disables surfaces; other components query
    the active surface through it.
    """

    def __init__(
        self,
        engine: RenderingEngine,
        state: NavigationState,
        gestures: GestureInterpreter,
        redraw_overlay: Optional[Callable[[RenderSurface], None]] = None,
        on_surface_changed: Optional[Callable[[Optional[RenderSurface]], None]] = None,
        on_document_changed: Optional[Callable[[Optional[TextDocument]], None]] = None,
        width: int = 512,
        height: int = 512,
    ):
        """
        Initialize the controller.

        Args:
            engine: Rendering engine that paints surfaces
            state: Session navigation state (surface and mode are written here)
            gestures: Interpreter attached to each new surface
            redraw_overlay: Called after each completed paint of the active surface
            on_surface_changed: Called with the new surface (None after teardown)
            on_document_changed: Called with the new text document (None when leaving textual mode)
            width: Initial surface width
            height: Initial surface height
        """
        self.engine = engine
        self.state = state
        self.gestures = gestures
        self.redraw_overlay = redraw_overlay
        self.on_surface_changed = on_surface_changed
        self.on_document_changed = on_document_changed
        self.width = width
        self.height = height
        self.current_image: Optional[LoadedImage] = None
        self.document: Optional[TextDocument] = None

    @property
    def surface(self) -> Optional[RenderSurface]:
        return self.state.surface

    @property
    def mode(self) -> ViewportMode:
        return self.state.mode

    # --- lifecycle ---

    def prepare_surface(self) -> RenderSurface:
        """
        Replace the active surface with a fresh, enabled one.

        Returns:
            The new surface
        """
        self.teardown()
        surface = RenderSurface(self.width, self.height)
        self.engine.enable(surface)
        self.state.surface = surface
        self.state.mode = ViewportMode.UNINITIALIZED
        self.gestures.attach(surface)
        self._set_document(None)
        debug_log("viewport_lifecycle_controller.prepare_surface", "surface created",
                  {"surface": surface.surface_id})
        if self.on_surface_changed is not None:
            self.on_surface_changed(surface)
        return surface

    def ensure_pixel_surface(self) -> RenderSurface:
        """Get the active surface, creating one if there is none (e.g. coming back from textual mode)."""
        if self.state.surface is None:
            return self.prepare_surface()
        return self.state.surface

    def teardown(self) -> None:
        """Release the active surface. Disable errors are logged and swallowed."""
        surface = self.state.surface
        self.state.surface = None
        self.current_image = None
        self.gestures.detach()
        if surface is None:
            return
        try:
            self.engine.disable(surface)
        except Exception as e:
            print(f"[VIEWPORT] Ignoring error while disabling {surface!r}: {e}")
        if self.on_surface_changed is not None:
            self.on_surface_changed(None)

    def _set_document(self, document: Optional[TextDocument]) -> None:
        if document is None and self.document is None:
            return
        self.document = document
        if self.on_document_changed is not None:
            self.on_document_changed(document)

    # --- pixel mode ---

    def display(self, image: LoadedImage) -> asyncio.Future:
        """
        Show an image on the active surface and switch to pixel mode.

        Returns:
            Future resolved after the surface has been painted
        """
        surface = self.ensure_pixel_surface()
        future = self.engine.display(surface, image)
        self.current_image = image
        self.state.mode = ViewportMode.PIXEL_ACTIVE
        return self._chain_overlay(surface, future)

    def _chain_overlay(self, surface: RenderSurface, future: asyncio.Future) -> asyncio.Future:
        def on_painted(done: asyncio.Future) -> None:
            if done.cancelled():
                return
            error = done.exception()
            if error is not None:
                print(f"[VIEWPORT] Paint failed on {surface!r}: {error}")
                return
            if surface is not self.state.surface:
                return
            if self.redraw_overlay is not None:
                self.redraw_overlay(surface)

        future.add_done_callback(on_painted)
        return future

    def get_viewport(self) -> Optional[Viewport]:
        if self.state.surface is None:
            return None
        return self.engine.get_viewport(self.state.surface)

    def set_viewport(self, viewport: Viewport) -> Optional[asyncio.Future]:
        surface = self.state.surface
        if surface is None or surface.image is None:
            return None
        return self._chain_overlay(surface, self.engine.set_viewport(surface, viewport))

    def reset_viewport(self) -> Optional[asyncio.Future]:
        surface = self.state.surface
        if surface is None or surface.image is None:
            return None
        return self._chain_overlay(surface, self.engine.reset(surface))

    def resize(self, width: int, height: int) -> Optional[asyncio.Future]:
        """Resize the active surface; also used as the size of surfaces created later."""
        self.width = max(int(width), 1)
        self.height = max(int(height), 1)
        surface = self.state.surface
        if surface is None:
            return None
        return self._chain_overlay(surface, self.engine.resize(surface, self.width, self.height))

    def pixel_to_canvas(self, point: Point) -> Point:
        if self.state.surface is None:
            return Point(point[0], point[1])
        return self.engine.pixel_to_canvas(self.state.surface, point)

    def canvas_to_pixel(self, x: float, y: float) -> Point:
        if self.state.surface is None:
            return Point(x, y)
        return self.engine.canvas_to_pixel(self.state.surface, x, y)

    # --- textual mode ---

    async def show_document(
        self,
        instance: Optional[Instance],
        title: str,
        is_current: Callable[[], bool] = lambda: True,
    ) -> Optional[TextDocument]:
        """
        Switch to textual mode showing the readable text of an instance.

        Reading the source suspends; if is_current() turns false meanwhile, the
        switch is abandoned. Errors become an inline error document.

        Args:
            instance: Instance whose source is shown
            title: Document heading
            is_current: Staleness check evaluated after the source has been read

        Returns:
            The document shown, or None if the request went stale
        """
        raw = None
        error = None
        try:
            await asyncio.sleep(0)
            if instance is None:
                raise ValueError("no instance to display")
            raw = instance.read_source()
        except Exception as e:
            error = e

        if not is_current():
            debug_log("viewport_lifecycle_controller.show_document", "stale document request dropped",
                      {"title": title})
            return None

        self.teardown()
        self.state.mode = ViewportMode.TEXTUAL_ACTIVE
        if error is not None:
            print(f"[DOCUMENT] Error reading document source: {error}")
            document = TextDocument(title=title, error=f"Error loading document: {error}")
        else:
            document = build_text_document(raw, title)
        self._set_document(document)
        return document
