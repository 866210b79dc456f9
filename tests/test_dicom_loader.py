"""
Unit tests for DICOM loader module.

Tests file loading, directory loading, in-memory files and error handling.
"""

import unittest
import os
import tempfile
from pathlib import Path

# Add src to path
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.dicom_loader import DICOMLoader
from dicom_fixtures import image_bytes, make_dataset, to_bytes


class TestDICOMLoader(unittest.TestCase):
    """Test cases for DICOMLoader."""

    def setUp(self):
        """Set up test fixtures."""
        self.loader = DICOMLoader()
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self):
        self.temp_dir.cleanup()

    def write(self, relative, data):
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return str(path)

    def test_loader_initialization(self):
        """Test loader initialization."""
        self.assertIsNotNone(self.loader)
        self.assertEqual(len(self.loader.loaded_files), 0)
        self.assertEqual(len(self.loader.failed_files), 0)

    def test_load_nonexistent_file(self):
        """Test loading a non-existent file."""
        result = self.loader.load_file("/nonexistent/file.dcm")
        self.assertIsNone(result)
        self.assertEqual(len(self.loader.failed_files), 1)

    def test_load_file_reads_metadata_only(self):
        path = self.write("slice.dcm", image_bytes())
        loaded = self.loader.load_file(path)
        self.assertIsNotNone(loaded)
        self.assertEqual(loaded.source, path)
        self.assertEqual(loaded.dataset.StudyDescription, "Head CT")
        self.assertNotIn("PixelData", loaded.dataset)

    def test_load_garbage_file_fails(self):
        path = self.write("junk.dcm", b"")
        self.assertIsNone(self.loader.load_file(path))
        name, message = self.loader.get_failed_files()[0]
        self.assertEqual(name, path)
        self.assertTrue(message)

    def test_load_files_mixes_files_and_directories(self):
        single = self.write("single.dcm", image_bytes(instance_number=1))
        self.write("series/a.dcm", image_bytes(instance_number=2))
        self.write("series/nested/IM0003", image_bytes(instance_number=3))
        self.write("series/notes.txt", b"not dicom")
        loaded = self.loader.load_files([single, str(self.root / "series")])
        self.assertEqual(len(loaded), 3)
        self.assertEqual(self.loader.get_failed_files(), [])

    def test_load_files_records_missing_paths(self):
        loaded = self.loader.load_files([str(self.root / "missing")])
        self.assertEqual(loaded, [])
        self.assertEqual(len(self.loader.get_failed_files()), 1)

    def test_progress_callback(self):
        self.write("a.dcm", image_bytes())
        self.write("b.dcm", image_bytes())
        calls = []
        self.loader.load_directory(str(self.root), progress_callback=lambda i, n, name: calls.append((i, n, name)))
        self.assertEqual(calls, [(1, 2, "a.dcm"), (2, 2, "b.dcm")])

    def test_load_directory_non_recursive(self):
        self.write("top.dcm", image_bytes())
        self.write("sub/deep.dcm", image_bytes())
        loaded = self.loader.load_directory(str(self.root), recursive=False)
        self.assertEqual(len(loaded), 1)

    def test_load_directory_missing(self):
        self.assertEqual(self.loader.load_directory(str(self.root / "nope")), [])
        self.assertEqual(len(self.loader.get_failed_files()), 1)

    def test_load_named_bytes_filters_names(self):
        raw = to_bytes(make_dataset())
        loaded = self.loader.load_named_bytes([("a.dcm", raw), ("b.jpg", raw), ("IM1", raw)])
        self.assertEqual([f.name for f in loaded], ["a.dcm", "IM1"])
        self.assertIs(loaded[0].source, raw)

    def test_clear(self):
        """Test clearing loaded files."""
        self.loader.load_file("/nonexistent/file.dcm")
        self.loader.clear()
        self.assertEqual(len(self.loader.loaded_files), 0)
        self.assertEqual(len(self.loader.failed_files), 0)


if __name__ == '__main__':
    unittest.main()
