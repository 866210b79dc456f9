"""
DICOM Metadata Parser

This module turns raw DICOM bytes into a tag dictionary and provides string
lookups, readable-text iteration, and grouped patient/study information for
display.

Inputs:
    - Raw DICOM file bytes
    - pydicom.Dataset objects

Outputs:
    - String tag lookups (multi-values joined with a backslash)
    - Iteration over textual element values
    - Patient and study information dictionaries

Requirements:
    - pydicom library
    - typing for type hints
"""

from io import BytesIO
from typing import Any, Dict, Iterator, Optional, Tuple, Union

import pydicom
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError
from pydicom.multival import MultiValue
from pydicom.sequence import Sequence
from pydicom.tag import Tag

from utils.dicom_utils import VALUE_SEPARATOR, format_dicom_date


TagKey = Union[Tuple[int, int], int]

# Tags used by the viewer
STUDY_INSTANCE_UID = (0x0020, 0x000D)
SERIES_INSTANCE_UID = (0x0020, 0x000E)
INSTANCE_NUMBER = (0x0020, 0x0013)
STUDY_DESCRIPTION = (0x0008, 0x1030)
SERIES_DESCRIPTION = (0x0008, 0x103E)
MODALITY = (0x0008, 0x0060)
STUDY_DATE = (0x0008, 0x0020)
INSTITUTION_NAME = (0x0008, 0x0080)
PATIENT_NAME = (0x0010, 0x0010)
PATIENT_ID = (0x0010, 0x0020)
PATIENT_BIRTH_DATE = (0x0010, 0x0030)
PATIENT_SEX = (0x0010, 0x0040)
PIXEL_SPACING = (0x0028, 0x0030)
IMAGER_PIXEL_SPACING = (0x0018, 0x1164)
PIXEL_DATA = (0x7FE0, 0x0010)

# Value representations that never carry human-readable text
_BINARY_VRS = {"OB", "OD", "OF", "OL", "OV", "OW", "UN", "SQ"}

# Elements longer than this are not treated as text candidates
MAX_TEXT_ELEMENT_LENGTH = 10000


def parse_dicom_bytes(raw: bytes) -> Dataset:
    """
    Parse raw DICOM bytes into a pydicom Dataset.

    Args:
        raw: File contents

    Returns:
        Parsed dataset

    Raises:
        pydicom.errors.InvalidDicomError or other parse errors for unreadable input
    """
    dataset = pydicom.dcmread(BytesIO(raw), force=True)
    if len(dataset) == 0:
        raise InvalidDicomError("No DICOM elements found")
    return dataset


def _value_to_string(value: Any) -> Optional[str]:
    """Convert an element value to the string form used for lookups."""
    if value is None or isinstance(value, Sequence):
        return None
    if isinstance(value, (MultiValue, list, tuple)):
        parts = [_value_to_string(v) or "" for v in value]
        text = VALUE_SEPARATOR.join(parts)
    elif isinstance(value, bytes):
        text = value.decode("ascii", errors="ignore")
    else:
        text = str(value)
    text = text.strip(" \x00")
    return text or None


class DICOMParser:
    """
    Parses and exposes DICOM metadata from a dataset.

    Provides methods to:
    - Look up tag values as strings
    - Iterate the textual values of every element (nested sequences included)
    - Extract patient and study information for display
    """

    def __init__(self, dataset: Optional[Dataset] = None):
        """
        Initialize the parser with an optional dataset.

        Args:
            dataset: pydicom Dataset to parse
        """
        self.dataset = dataset

    @classmethod
    def from_bytes(cls, raw: bytes) -> "DICOMParser":
        """
        Create a parser for raw DICOM bytes.

        Args:
            raw: File contents

        Returns:
            DICOMParser wrapping the parsed dataset
        """
        return cls(parse_dicom_bytes(raw))

    def set_dataset(self, dataset: Dataset) -> None:
        """
        Set the dataset to parse.

        Args:
            dataset: pydicom Dataset
        """
        self.dataset = dataset

    def get_tag_value(self, tag: TagKey, default: Any = None) -> Any:
        """
        Get the raw value of a specific tag.

        Args:
            tag: Tag as (group, element) tuple or integer
            default: Default value if tag not found

        Returns:
            Tag value or default
        """
        if self.dataset is None:
            return default

        try:
            tag_obj = Tag(tag[0], tag[1]) if isinstance(tag, tuple) else Tag(tag)
            if tag_obj in self.dataset:
                return self.dataset[tag_obj].value
            return default
        except Exception:
            return default

    def lookup(self, tag: TagKey) -> Optional[str]:
        """
        Look up a tag as a string.

        Multi-valued elements are joined with a backslash, so Pixel Spacing reads
        back as e.g. "0.5\\0.5".

        Args:
            tag: Tag as (group, element) tuple or integer

        Returns:
            String value, or None if the tag is absent or empty
        """
        return _value_to_string(self.get_tag_value(tag))

    def get_tag_by_keyword(self, keyword: str, default: Any = None) -> Any:
        """
        Get tag value by keyword.

        Args:
            keyword: DICOM tag keyword (e.g., "PatientName", "StudyDate")
            default: Default value if tag not found

        Returns:
            Tag value or default
        """
        if self.dataset is None:
            return default

        try:
            if hasattr(self.dataset, keyword):
                return getattr(self.dataset, keyword)
            return default
        except Exception:
            return default

    def iter_text_values(self, max_length: int = MAX_TEXT_ELEMENT_LENGTH) -> Iterator[str]:
        """
        Yield the string value of every non-binary element, in dataset order.

        Nested sequence items are walked as well. Elements whose value cannot
        be read are skipped.

        Args:
            max_length: Elements with a longer encoded length are skipped

        Yields:
            String values
        """
        if self.dataset is None:
            return
        for elem in self.dataset.iterall():
            if elem.tag == PIXEL_DATA or elem.VR in _BINARY_VRS:
                continue
            try:
                text = _value_to_string(elem.value)
            except Exception:
                continue
            if text is None or len(text) >= max_length:
                continue
            yield text

    def get_patient_info(self) -> Dict[str, str]:
        """
        Get patient-related information for display.

        Returns:
            Dictionary with patient information (display defaults filled in)
        """
        return {
            "PatientName": self.lookup(PATIENT_NAME) or "Unknown",
            "PatientID": self.lookup(PATIENT_ID) or "N/A",
            "PatientBirthDate": format_dicom_date(self.lookup(PATIENT_BIRTH_DATE)) or "N/A",
            "PatientSex": self.lookup(PATIENT_SEX) or "N/A",
        }

    def get_study_info(self, default_modality: str = "N/A") -> Dict[str, str]:
        """
        Get study-related information for display.

        Args:
            default_modality: Modality shown when the tag is missing

        Returns:
            Dictionary with study information (display defaults filled in)
        """
        return {
            "StudyDate": format_dicom_date(self.lookup(STUDY_DATE)) or "N/A",
            "StudyDescription": self.lookup(STUDY_DESCRIPTION) or "N/A",
            "Modality": self.lookup(MODALITY) or default_modality,
            "InstitutionName": self.lookup(INSTITUTION_NAME) or "N/A",
        }
