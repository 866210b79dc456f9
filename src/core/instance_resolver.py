"""
Instance Resolver

This module decides which instance of a series is actually displayed. It finds
the first decodable instance of a newly selected series, walks forward or
backward past instances that fail to decode, remembers failed indices for the
rest of the series' session, and falls back to the textual document view when
no pixel data can be shown.

Every resolution carries a ticket from NavigationState. After each suspension
point the ticket is checked; a resolution that has been superseded by a newer
selection or navigation stops without touching display state or the set of
known-bad indices.

Inputs:
    - NavigationState (active series, current index, known-bad indices)
    - Rendering engine loads

Outputs:
    - Displayed image or text document via the ViewportLifecycleController
    - on_displayed / on_document callbacks for metadata and navigation refresh

Requirements:
    - core.viewport_lifecycle_controller
    - utils.debug_log for state transitions
"""

from enum import Enum
from typing import Callable, Optional

from core.document_text import TextDocument
from core.navigation_state import NavigationState, ResolutionTicket
from core.rendering_engine import LoadedImage, RenderingEngine
from core.study_model import Series
from core.viewport_lifecycle_controller import ViewportLifecycleController
from utils.debug_log import debug_log


DOCUMENT_TITLE = "DICOM Document (no image)"
REPORT_TITLE = "Structured Report (SR)"


class Resolution(Enum):
    """Outcome of a resolution request."""
    DISPLAYED = "displayed"  # an image is on the surface
    DOCUMENT = "document"  # textual fallback is shown
    SKIPPED = "skipped"  # nothing changed (out of range, or only known-bad indices ahead)
    STALE = "stale"  # superseded by a newer request


class InstanceResolver:
    """
    Resolves displayable instances for the active series.
    """

    def __init__(
        self,
        engine: RenderingEngine,
        state: NavigationState,
        lifecycle: ViewportLifecycleController,
        on_displayed: Optional[Callable[[int, LoadedImage], None]] = None,
        on_document: Optional[Callable[[int, TextDocument], None]] = None,
    ):
        """
        Initialize the resolver.

        Args:
            engine: Rendering engine used to load instances
            state: Session navigation state
            lifecycle: Owner of the render surface
            on_displayed: Called with (index, image) after an image is shown
            on_document: Called with (index, document) after falling back to textual mode
        """
        self.engine = engine
        self.state = state
        self.lifecycle = lifecycle
        self.on_displayed = on_displayed
        self.on_document = on_document
        self.last_render = None

    async def load_first_valid(self) -> Resolution:
        """
        Display the first decodable instance of the active series.

        Indices already known to be bad are skipped. If every instance fails
        (or the series is empty), instance 0 is shown as a text document.

        Returns:
            Resolution outcome
        """
        state = self.state
        series = state.series
        ticket = state.issue_request(0)
        if series is None:
            return Resolution.SKIPPED

        for index in range(state.total):
            if state.is_bad(index):
                continue
            image = await self._try_load(series, index, ticket)
            if not state.is_current(ticket):
                return self._stale(ticket, "load_first_valid")
            if image is not None:
                self._show_image(index, image)
                return Resolution.DISPLAYED

        debug_log("instance_resolver.load_first_valid", "no decodable instance, showing document",
                  {"series": series.series_id, "total": state.total})
        return await self._fall_back(series, 0, ticket, DOCUMENT_TITLE)

    async def go_to(self, index: int, direction: int = 1) -> Resolution:
        """
        Display the instance at index, walking in direction past failures.

        Known-bad indices are stepped over without being re-marked; if the walk
        runs out of bounds on such a skip, nothing changes. An index that fails
        to load is marked bad and the walk continues; if the walk runs out of
        bounds right after a failure, that instance is shown as a text document.

        Args:
            index: Target index
            direction: +1 or -1, the walking direction

        Returns:
            Resolution outcome
        """
        state = self.state
        series = state.series
        total = state.total
        if series is None or not (0 <= index < total):
            return Resolution.SKIPPED
        direction = 1 if direction >= 0 else -1
        ticket = state.issue_request(index)

        while True:
            next_index = index + direction
            if state.is_bad(index):
                if 0 <= next_index < total:
                    index = next_index
                    continue
                debug_log("instance_resolver.go_to", "only known-bad indices ahead",
                          {"series": series.series_id, "index": index, "direction": direction})
                return Resolution.SKIPPED

            image = await self._try_load(series, index, ticket)
            if not state.is_current(ticket):
                return self._stale(ticket, "go_to")
            if image is not None:
                self._show_image(index, image)
                return Resolution.DISPLAYED
            if 0 <= next_index < total:
                index = next_index
                continue
            return await self._fall_back(series, index, ticket, DOCUMENT_TITLE)

    async def show_report(self) -> Resolution:
        """Show the active (structured report) series as a text document."""
        series = self.state.series
        ticket = self.state.issue_request(0)
        if series is None:
            return Resolution.SKIPPED
        return await self._fall_back(series, 0, ticket, REPORT_TITLE)

    async def _try_load(self, series: Series, index: int, ticket: ResolutionTicket) -> Optional[LoadedImage]:
        """Load one instance; a failure marks the index bad unless the request went stale."""
        try:
            return await self.engine.load(series.instances[index].image_ref)
        except Exception as e:
            if self.state.is_current(ticket):
                print(f"[RESOLVE] Instance {index} of series {series.series_id} could not be decoded: {e}")
                self.state.mark_bad(index)
            return None

    def _show_image(self, index: int, image: LoadedImage) -> None:
        self.state.current_index = index
        self.last_render = self.lifecycle.display(image)
        if self.on_displayed is not None:
            self.on_displayed(index, image)

    async def _fall_back(self, series: Series, index: int, ticket: ResolutionTicket, title: str) -> Resolution:
        self.state.current_index = index
        instance = series.instances[index] if 0 <= index < len(series.instances) else None
        document = await self.lifecycle.show_document(instance, title, lambda: self.state.is_current(ticket))
        if document is None:
            return self._stale(ticket, "fall_back")
        debug_log("instance_resolver.fall_back", "textual mode",
                  {"series": series.series_id, "index": index, "title": title})
        if self.on_document is not None:
            self.on_document(index, document)
        return Resolution.DOCUMENT

    def _stale(self, ticket: ResolutionTicket, where: str) -> Resolution:
        debug_log(f"instance_resolver.{where}", "stale resolution dropped",
                  {"series": ticket.series_id, "index": ticket.index})
        return Resolution.STALE
