"""
Unit tests for DICOM parser module.

Tests tag lookups, readable-text iteration and display dictionaries.
"""

import unittest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.dicom_parser import (DICOMParser, INSTANCE_NUMBER, MODALITY, PATIENT_NAME, PIXEL_SPACING,
                               SERIES_DESCRIPTION)
from dicom_fixtures import make_dataset, make_report_dataset, to_bytes


class TestDICOMParserNoDataset(unittest.TestCase):
    """Test cases for a parser without a dataset."""

    def setUp(self):
        """Set up test fixtures."""
        self.parser = DICOMParser()

    def test_parser_initialization(self):
        """Test parser initialization."""
        self.assertIsNotNone(self.parser)
        self.assertIsNone(self.parser.dataset)

    def test_get_tag_value_no_dataset(self):
        """Test getting tag value with no dataset."""
        self.assertIsNone(self.parser.get_tag_value((0x0010, 0x0010)))
        self.assertIsNone(self.parser.lookup(PATIENT_NAME))

    def test_iter_text_values_no_dataset(self):
        self.assertEqual(list(self.parser.iter_text_values()), [])


class TestDICOMParserLookup(unittest.TestCase):
    """Test cases for string lookups on a parsed file."""

    def setUp(self):
        self.parser = DICOMParser.from_bytes(to_bytes(make_dataset(instance_number=7)))

    def test_lookup_string_tags(self):
        self.assertEqual(self.parser.lookup(MODALITY), "CT")
        self.assertEqual(self.parser.lookup(SERIES_DESCRIPTION), "Axial")
        self.assertEqual(self.parser.lookup(INSTANCE_NUMBER), "7")

    def test_multi_value_joined_with_backslash(self):
        self.assertEqual(self.parser.lookup(PIXEL_SPACING), "0.5\\0.5")

    def test_missing_tag_is_none(self):
        self.assertIsNone(self.parser.lookup((0x0018, 0x1164)))

    def test_get_tag_by_keyword(self):
        self.assertEqual(str(self.parser.get_tag_by_keyword("PatientID")), "PID001")
        self.assertIsNone(self.parser.get_tag_by_keyword("NoSuchKeyword"))


class TestDICOMParserDisplayInfo(unittest.TestCase):
    """Test cases for patient/study dictionaries."""

    def test_patient_info(self):
        info = DICOMParser(make_dataset()).get_patient_info()
        self.assertEqual(info["PatientName"], "Test^Patient")
        self.assertEqual(info["PatientID"], "PID001")
        self.assertEqual(info["PatientBirthDate"], "02/01/1980")

    def test_study_info(self):
        info = DICOMParser(make_dataset()).get_study_info()
        self.assertEqual(info["StudyDate"], "15/03/2024")
        self.assertEqual(info["StudyDescription"], "Head CT")
        self.assertEqual(info["Modality"], "CT")
        self.assertEqual(info["InstitutionName"], "General Hospital")

    def test_study_info_default_modality(self):
        ds = make_dataset()
        del ds.Modality
        self.assertEqual(DICOMParser(ds).get_study_info()["Modality"], "N/A")
        self.assertEqual(DICOMParser(ds).get_study_info(default_modality="SR")["Modality"], "SR")


class TestDICOMParserText(unittest.TestCase):
    """Test cases for iter_text_values."""

    def test_nested_sequence_text_included(self):
        parser = DICOMParser(make_report_dataset(text="Findings are normal."))
        self.assertIn("Findings are normal.", list(parser.iter_text_values()))

    def test_pixel_data_skipped(self):
        parser = DICOMParser(make_dataset())
        values = list(parser.iter_text_values())
        self.assertIn("Head CT", values)
        self.assertFalse(any(len(v) == 8 * 8 * 2 for v in values))

    def test_max_length_filters_long_values(self):
        ds = make_dataset(with_pixels=False)
        ds.StudyComments = "x" * 50
        values = list(DICOMParser(ds).iter_text_values(max_length=50))
        self.assertNotIn("x" * 50, values)


if __name__ == '__main__':
    unittest.main()
