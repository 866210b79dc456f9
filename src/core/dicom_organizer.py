"""
DICOM Series and Study Organizer

This module organizes loaded DICOM files into studies and series based on their
metadata. Files are grouped by StudyInstanceUID and SeriesInstanceUID, each
file is registered with the rendering engine to obtain its image reference,
and instances are sorted by InstanceNumber (ties keep loading order).

Inputs:
    - List of LoadedFile records

Outputs:
    - Ordered list of Study objects (in order of first appearance)

Requirements:
    - core.dicom_parser for tag lookups
    - core.study_model for the hierarchy
"""

from typing import Dict, List, Optional, Tuple

from core.dicom_loader import LoadedFile
from core.dicom_parser import (DICOMParser, INSTANCE_NUMBER, MODALITY, SERIES_DESCRIPTION,
                               SERIES_INSTANCE_UID, STUDY_DESCRIPTION, STUDY_INSTANCE_UID)
from core.study_model import Instance, Series, Study


UNKNOWN_STUDY = "UnknownStudy"
UNKNOWN_SERIES = "UnknownSeries"
DEFAULT_STUDY_DESCRIPTION = "Study"
DEFAULT_MODALITY = "OT"


def parse_instance_number(text: Optional[str]) -> int:
    """Leading integer of an Instance Number string, 0 if there is none."""
    if not text:
        return 0
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return int(float(text))
    except ValueError:
        return 0


class DICOMOrganizer:
    """
    Organizes DICOM files into studies and series.

    Groups files by:
    - StudyInstanceUID (studies)
    - SeriesInstanceUID (series within studies)
    - Sorts instances by InstanceNumber

    Study and series descriptions and modality are taken from the first file
    of each group.
    """

    def __init__(self, engine):
        """
        Initialize the organizer.

        Args:
            engine: Rendering engine with add_source(source) -> image_ref
        """
        self.engine = engine
        self.studies: List[Study] = []

    def organize(self, files: List[LoadedFile]) -> List[Study]:
        """
        Organize loaded files into studies and series.

        Args:
            files: Loaded files in loading order

        Returns:
            Studies in order of first appearance
        """
        studies: Dict[str, Study] = {}

        for order, loaded in enumerate(files):
            parser = DICOMParser(loaded.dataset)
            study_uid = parser.lookup(STUDY_INSTANCE_UID) or UNKNOWN_STUDY
            series_uid = parser.lookup(SERIES_INSTANCE_UID) or UNKNOWN_SERIES
            modality = parser.lookup(MODALITY) or DEFAULT_MODALITY

            study = studies.get(study_uid)
            if study is None:
                study = Study(
                    study_id=study_uid,
                    description=parser.lookup(STUDY_DESCRIPTION) or DEFAULT_STUDY_DESCRIPTION,
                    modality=modality,
                )
                studies[study_uid] = study

            series = study.add_series(Series(
                series_id=series_uid,
                description=parser.lookup(SERIES_DESCRIPTION) or "",
                modality=modality,
            ))

            image_ref = self.engine.add_source(loaded.source)
            series.add_instance(Instance(
                image_ref=image_ref,
                source=loaded.source,
                instance_number=parse_instance_number(parser.lookup(INSTANCE_NUMBER)),
                ingest_order=order,
            ))

        for study in studies.values():
            for series in study.series.values():
                series.sort_instances()

        self.studies = list(studies.values())
        return self.studies

    def get_studies(self) -> List[Study]:
        """Get the organized studies."""
        return self.studies

    def get_series_list(self, study_index: int) -> List[Tuple[str, str]]:
        """
        Get (series_id, description) pairs of a study.

        Args:
            study_index: Index into get_studies()

        Returns:
            List of tuples, empty for an unknown index
        """
        if not (0 <= study_index < len(self.studies)):
            return []
        return [(s.series_id, s.description) for s in self.studies[study_index].series.values()]

    def get_slice_count(self, study_index: int, series_id: str) -> int:
        """Number of instances in a series (0 if unknown)."""
        if not (0 <= study_index < len(self.studies)):
            return 0
        series = self.studies[study_index].get_series(series_id)
        return len(series) if series is not None else 0
