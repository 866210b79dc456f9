"""
Study / Series / Instance Model

This module defines the three-level hierarchy the viewer navigates:
a Study (exam) holds Series (acquisition runs), which hold ordered Instances
(one image or document each).

Inputs:
    - Values extracted by the organizer during ingestion

Outputs:
    - Study, Series and Instance objects

Requirements:
    - dataclasses, pathlib (standard library)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union


# Modality code of structured-report documents
REPORT_MODALITY = "SR"


@dataclass(frozen=True)
class Instance:
    """
    One image or document of a series.

    Attributes:
        image_ref: Opaque reference the rendering engine uses to load pixel data
        source: Raw file bytes or a path to the file, kept for re-parsing
        instance_number: Instance Number (0020,0013), 0 when missing
        ingest_order: Position in ingestion order, used to break instance-number ties
    """
    image_ref: str
    source: Union[bytes, str, Path]
    instance_number: int = 0
    ingest_order: int = 0

    def read_source(self) -> bytes:
        """
        Get the raw bytes of the original file.

        Returns:
            File contents
        """
        if isinstance(self.source, bytes):
            return self.source
        return Path(self.source).read_bytes()


@dataclass
class Series:
    """One acquisition run: an ordered sequence of instances."""
    series_id: str
    description: str = ""
    modality: str = "OT"
    instances: List[Instance] = field(default_factory=list)

    def add_instance(self, instance: Instance) -> None:
        """Append an instance (call sort_instances() once ingestion is done)."""
        self.instances.append(instance)

    def sort_instances(self) -> None:
        """Order instances by instance number; ties keep ingestion order."""
        self.instances.sort(key=lambda inst: (inst.instance_number, inst.ingest_order))

    @property
    def image_refs(self) -> List[str]:
        """Image references in display order."""
        return [inst.image_ref for inst in self.instances]

    @property
    def is_report(self) -> bool:
        """True for structured-report series, which carry no pixel data."""
        return (self.modality or "").upper() == REPORT_MODALITY

    def __len__(self) -> int:
        return len(self.instances)


@dataclass
class Study:
    """One exam: series keyed by series identifier, in ingestion order."""
    study_id: str
    description: str = "Study"
    modality: str = "OT"
    series: Dict[str, Series] = field(default_factory=dict)

    def add_series(self, series: Series) -> Series:
        """
        Add a series, or return the existing one with the same identifier.

        Args:
            series: Series to add

        Returns:
            The series stored under series.series_id
        """
        return self.series.setdefault(series.series_id, series)

    def get_series(self, series_id: str) -> Optional[Series]:
        """Get a series by identifier."""
        return self.series.get(series_id)

    @property
    def series_ids(self) -> List[str]:
        """Series identifiers in ingestion order."""
        return list(self.series.keys())
