"""
Annotation Store

This module owns the ruler measurements of a viewer session. Measurements are
anchored to image-pixel coordinates and scoped to the (series, instance) they
were drawn on, so they only show while that instance is displayed.

Inputs:
    - Ruler gesture events (begin/update/commit)
    - Delete and clear requests

Outputs:
    - Measurements visible for a given (series, instance)

Requirements:
    - core.rendering_engine.Point for coordinates
"""

import itertools
from typing import List, Optional, Tuple

from core.rendering_engine import Point


class Measurement:
    """
    A two-point ruler measurement in image-pixel coordinates.

    Measurements compare by identity; two rulers with the same endpoints on the
    same instance are still distinct.
    """

    _ids = itertools.count(1)

    def __init__(self, start: Point, end: Point, instance_index: int,
                 series_id: Optional[str], in_progress: bool = False):
        self.measurement_id = next(Measurement._ids)
        self.start = Point(*start)
        self.end = Point(*end)
        self.instance_index = instance_index
        self.series_id = series_id
        self.in_progress = in_progress

    def belongs_to(self, instance_index: int, series_id: Optional[str]) -> bool:
        return self.instance_index == instance_index and self.series_id == series_id

    def copy(self) -> "Measurement":
        """Committed copy of this measurement."""
        return Measurement(self.start, self.end, self.instance_index, self.series_id, in_progress=False)

    @property
    def pixel_delta(self) -> Tuple[float, float]:
        return (self.end.x - self.start.x, self.end.y - self.start.y)

    def __repr__(self) -> str:
        state = "in progress" if self.in_progress else "committed"
        return (f"Measurement(#{self.measurement_id}, {self.start} -> {self.end}, "
                f"series={self.series_id!r}, index={self.instance_index}, {state})")


class AnnotationStore:
    """
    Holds committed measurements plus at most one in-progress measurement.
    """

    def __init__(self):
        self._measurements: List[Measurement] = []
        self._in_progress: Optional[Measurement] = None

    @property
    def in_progress(self) -> Optional[Measurement]:
        return self._in_progress

    @property
    def measurements(self) -> List[Measurement]:
        """Committed measurements, oldest first."""
        return list(self._measurements)

    def begin(self, point: Point, instance_index: int, series_id: Optional[str]) -> Optional[Measurement]:
        """
        Start a measurement with start and end at point.

        Returns:
            The new in-progress measurement, or None if one is already in progress
        """
        if self._in_progress is not None:
            return None
        self._in_progress = Measurement(point, point, instance_index, series_id, in_progress=True)
        return self._in_progress

    def update(self, point: Point) -> None:
        """Move the end point of the in-progress measurement."""
        if self._in_progress is not None:
            self._in_progress.end = Point(*point)

    def commit(self) -> Optional[Measurement]:
        """
        Store a copy of the in-progress measurement and clear the in-progress slot.

        Returns:
            The committed measurement, or None if nothing was in progress
        """
        if self._in_progress is None:
            return None
        committed = self._in_progress.copy()
        self._measurements.append(committed)
        self._in_progress = None
        return committed

    def cancel(self) -> None:
        """Drop the in-progress measurement without committing it."""
        self._in_progress = None

    def add(self, start: Point, end: Point, instance_index: int, series_id: Optional[str]) -> Measurement:
        """Add a committed measurement directly."""
        measurement = Measurement(start, end, instance_index, series_id)
        self._measurements.append(measurement)
        return measurement

    def remove(self, measurement: Measurement) -> bool:
        """
        Remove a committed measurement by identity.

        Returns:
            True if the measurement was found
        """
        for i, existing in enumerate(self._measurements):
            if existing is measurement:
                del self._measurements[i]
                return True
        return False

    def clear_for_current(self, instance_index: int, series_id: Optional[str]) -> int:
        """
        Remove every committed measurement of one (series, instance).

        Returns:
            Number of measurements removed
        """
        kept = [m for m in self._measurements if not m.belongs_to(instance_index, series_id)]
        removed = len(self._measurements) - len(kept)
        self._measurements = kept
        return removed

    def clear_all(self) -> None:
        self._measurements = []
        self._in_progress = None

    def visible_for(self, instance_index: int, series_id: Optional[str]) -> List[Measurement]:
        """
        Measurements to draw for the displayed (series, instance).

        Committed matches come first; a matching in-progress measurement is last
        so it draws on top.
        """
        visible = [m for m in self._measurements if m.belongs_to(instance_index, series_id)]
        if self._in_progress is not None and self._in_progress.belongs_to(instance_index, series_id):
            visible.append(self._in_progress)
        return visible
