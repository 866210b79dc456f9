"""
Navigation State

This module holds the per-session navigation state (current series, current
instance index, known-bad indices, active surface, viewport mode) and derives
the navigation affordances shown to the user (position indicator, prev/next
enabled state, scrollbar thumb geometry).

Staleness of asynchronous resolutions is tracked with two counters: the
selection token changes whenever a different series is selected, and the
request token changes for every resolution issued. A resolution may only
mutate display state while its ticket still matches both.

Inputs:
    - Series selections and resolution requests from the session

Outputs:
    - ResolutionTicket objects
    - NavigationStatus snapshots

Requirements:
    - dataclasses, enum (standard library)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Set

from core.study_model import Series


# Indicator text shown when there is no fraction to display
DEFAULT_PLACEHOLDER = "Report"

# Smallest scrollbar thumb, in percent of the track
MIN_THUMB_PERCENT = 8.0


class ViewportMode(Enum):
    """What the viewport currently shows."""
    UNINITIALIZED = "uninitialized"
    PIXEL_ACTIVE = "pixel-active"
    TEXTUAL_ACTIVE = "textual-active"


@dataclass(frozen=True)
class ResolutionTicket:
    """Identifies one resolution request for staleness checks."""
    selection_token: int
    request_token: int
    series_id: Optional[str]
    index: int


@dataclass
class NavigationState:
    """
    Mutable navigation state of one viewer session.

    Attributes:
        series: Active series, None before the first selection
        current_index: Index of the displayed instance
        bad_indices: Indices known to be non-decodable for the active series
        surface: Active render surface, None in textual mode
        mode: Current viewport mode
    """
    series: Optional[Series] = None
    current_index: int = 0
    bad_indices: Set[int] = field(default_factory=set)
    surface: Optional[object] = None
    mode: ViewportMode = ViewportMode.UNINITIALIZED
    selection_token: int = 0
    request_token: int = 0

    @property
    def total(self) -> int:
        """Number of image references in the active series (0 for reports)."""
        if self.series is None or self.series.is_report:
            return 0
        return len(self.series)

    @property
    def series_id(self) -> Optional[str]:
        return self.series.series_id if self.series is not None else None

    def reset_for_series(self, series: Optional[Series]) -> None:
        """
        Make a series active.

        Clears the known-bad set, rewinds the index and invalidates every
        resolution issued for the previous selection.
        """
        self.series = series
        self.current_index = 0
        self.bad_indices = set()
        self.selection_token += 1
        self.request_token += 1

    def issue_request(self, index: int) -> ResolutionTicket:
        """
        Start a new resolution, superseding any resolution still in flight.

        Args:
            index: Index the resolution starts from

        Returns:
            Ticket to check with is_current() after every suspension point
        """
        self.request_token += 1
        return ResolutionTicket(self.selection_token, self.request_token, self.series_id, index)

    def is_current(self, ticket: ResolutionTicket) -> bool:
        """True if no newer selection or resolution has been issued since the ticket."""
        return (ticket.selection_token == self.selection_token
                and ticket.request_token == self.request_token
                and ticket.series_id == self.series_id)

    def mark_bad(self, index: int) -> None:
        self.bad_indices.add(index)

    def is_bad(self, index: int) -> bool:
        return index in self.bad_indices

    def all_bad(self) -> bool:
        total = self.total
        return total > 0 and all(i in self.bad_indices for i in range(total))


@dataclass(frozen=True)
class NavigationStatus:
    """Navigation affordances derived from a NavigationState."""
    indicator: str
    prev_enabled: bool = False
    next_enabled: bool = False
    stack_scroll_enabled: bool = False
    scrollbar_visible: bool = False
    thumb_percent: float = 100.0
    thumb_offset_percent: float = 0.0


def compute_navigation_status(state: NavigationState,
                              placeholder: str = DEFAULT_PLACEHOLDER) -> NavigationStatus:
    """
    Derive navigation affordances from the current state.

    Args:
        state: Session navigation state
        placeholder: Indicator text used when no fraction applies

    Returns:
        NavigationStatus snapshot
    """
    total = state.total
    index = state.current_index

    if total == 0 or state.all_bad():
        return NavigationStatus(indicator=placeholder)

    if state.mode == ViewportMode.TEXTUAL_ACTIVE:
        return NavigationStatus(
            indicator=placeholder,
            prev_enabled=index > 0,
            next_enabled=index < total - 1,
        )

    if total == 1:
        return NavigationStatus(indicator="1 / 1")

    thumb = max(MIN_THUMB_PERCENT, 100.0 / total)
    offset = (index / (total - 1)) * (100.0 - thumb)
    return NavigationStatus(
        indicator=f"{index + 1} / {total}",
        prev_enabled=index > 0,
        next_enabled=index < total - 1,
        stack_scroll_enabled=True,
        scrollbar_visible=True,
        thumb_percent=thumb,
        thumb_offset_percent=offset,
    )


def fraction_to_index(fraction: float, total: int) -> int:
    """
    Map a scrollbar position (0..1) to an instance index.

    Args:
        fraction: Position along the track
        total: Number of instances

    Returns:
        Index in [0, total - 1] (0 for empty series)
    """
    if total <= 1:
        return 0
    fraction = min(max(fraction, 0.0), 1.0)
    return int(round(fraction * (total - 1)))
