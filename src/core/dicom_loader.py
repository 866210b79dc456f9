"""
DICOM File Loader

This module collects DICOM files from the sources a user can hand the viewer:
- Single files
- Multiple files
- Directories (with recursive search)
- In-memory file contents (drag-and-drop)

Only files named *.dcm or without an extension are offered to the parser.
Each accepted file is read and its metadata parsed; files that cannot be
parsed are skipped and recorded with their error message.

Inputs:
    - File paths (single or multiple)
    - Directory paths
    - (name, bytes) pairs

Outputs:
    - List of LoadedFile records (path or bytes plus parsed metadata)
    - List of files that failed to load (with error messages)

Requirements:
    - pydicom library for DICOM metadata reading
    - pathlib for path handling
    - os for file system operations
"""

import os
import warnings
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union

import pydicom
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError

from utils.dicom_utils import is_dicom_filename


@dataclass
class LoadedFile:
    """
    One successfully parsed file.

    Attributes:
        name: File name (or path) used in messages
        source: Path on disk, or the raw bytes for in-memory files
        dataset: Metadata (pixel data not loaded)
    """
    name: str
    source: Union[str, bytes]
    dataset: Dataset


def read_metadata(raw: bytes) -> Dataset:
    """
    Parse the metadata of raw DICOM bytes, stopping before pixel data.

    Raises:
        InvalidDicomError: If nothing DICOM-like could be read
    """
    with warnings.catch_warnings():
        warnings.filterwarnings('ignore', category=UserWarning)
        dataset = pydicom.dcmread(BytesIO(raw), force=True, stop_before_pixels=True)
    if len(dataset) == 0:
        raise InvalidDicomError("No DICOM elements found")
    return dataset


class DICOMLoader:
    """
    Handles loading DICOM files from various sources.

    Supports:
    - Single and multiple file loading
    - Recursive directory scanning
    - In-memory files
    """

    def __init__(self):
        """Initialize the DICOM loader."""
        self.loaded_files: List[LoadedFile] = []
        self.failed_files: List[Tuple[str, str]] = []  # (path, error_message)

    def collect_files(self, paths: Iterable[str], recursive: bool = True) -> List[str]:
        """
        Expand files and directories into the list of candidate DICOM files.

        Args:
            paths: File and/or directory paths
            recursive: If True, search subdirectories recursively

        Returns:
            Sorted candidate file paths (directory entries in name order)
        """
        candidates = []
        for path in paths:
            path_obj = Path(path)
            if path_obj.is_dir():
                entries = path_obj.rglob('*') if recursive else path_obj.iterdir()
                candidates.extend(sorted(str(p) for p in entries if p.is_file() and is_dicom_filename(p.name)))
            elif path_obj.is_file():
                if is_dicom_filename(path_obj.name):
                    candidates.append(str(path_obj))
            else:
                self.failed_files.append((str(path), "File or directory does not exist"))
        return candidates

    def load_file(self, file_path: str) -> Optional[LoadedFile]:
        """
        Load a single DICOM file.

        Args:
            file_path: Path to the DICOM file

        Returns:
            LoadedFile if successful, None otherwise
        """
        try:
            with open(file_path, 'rb') as f:
                raw = f.read()
            dataset = read_metadata(raw)
        except Exception as e:
            self._record_failure(file_path, e)
            return None
        return LoadedFile(name=file_path, source=file_path, dataset=dataset)

    def load_bytes(self, name: str, raw: bytes) -> Optional[LoadedFile]:
        """
        Load an in-memory DICOM file.

        Args:
            name: File name (used for filtering and messages)
            raw: File contents

        Returns:
            LoadedFile if successful, None otherwise
        """
        try:
            dataset = read_metadata(raw)
        except Exception as e:
            self._record_failure(name, e)
            return None
        return LoadedFile(name=name, source=raw, dataset=dataset)

    def load_files(self, file_paths: List[str],
                   progress_callback: Optional[Callable[[int, int, str], None]] = None) -> List[LoadedFile]:
        """
        Load multiple DICOM files. Files and directories may be mixed.

        Args:
            file_paths: List of file or directory paths
            progress_callback: Optional callback (current, total, filename)

        Returns:
            List of successfully loaded files
        """
        self.clear()
        candidates = self.collect_files(file_paths)
        total_files = len(candidates)
        for idx, file_path in enumerate(candidates):
            if progress_callback:
                progress_callback(idx + 1, total_files, os.path.basename(file_path))
            loaded = self.load_file(file_path)
            if loaded is not None:
                self.loaded_files.append(loaded)
        if self.failed_files:
            print(f"[LOADER] {len(self.failed_files)} of {total_files} files could not be loaded")
        return list(self.loaded_files)

    def load_directory(self, directory_path: str, recursive: bool = True,
                       progress_callback: Optional[Callable[[int, int, str], None]] = None) -> List[LoadedFile]:
        """
        Load all DICOM files from a directory.

        Args:
            directory_path: Path to the directory
            recursive: If True, search subdirectories recursively
            progress_callback: Optional callback (current, total, filename)

        Returns:
            List of successfully loaded files
        """
        dir_path = Path(directory_path)
        if not dir_path.exists() or not dir_path.is_dir():
            self.clear()
            self.failed_files.append((directory_path, "Directory does not exist or is not a directory"))
            return []
        if recursive:
            return self.load_files([directory_path], progress_callback)
        self.clear()
        for file_path in self.collect_files([directory_path], recursive=False):
            loaded = self.load_file(file_path)
            if loaded is not None:
                self.loaded_files.append(loaded)
        return list(self.loaded_files)

    def load_named_bytes(self, files: Iterable[Tuple[str, bytes]]) -> List[LoadedFile]:
        """
        Load in-memory files, skipping names that do not look like DICOM files.

        Args:
            files: (name, contents) pairs

        Returns:
            List of successfully loaded files
        """
        self.clear()
        for name, raw in files:
            if not is_dicom_filename(name):
                continue
            loaded = self.load_bytes(name, raw)
            if loaded is not None:
                self.loaded_files.append(loaded)
        return list(self.loaded_files)

    def _record_failure(self, name: str, error: Exception) -> None:
        error_msg = str(error)
        error_type = type(error).__name__
        if error_type not in error_msg:
            error_msg = f"{error_type}: {error_msg}"
        print(f"[LOADER] Error parsing file {os.path.basename(name)}: {error_msg}")
        self.failed_files.append((name, error_msg))

    def get_failed_files(self) -> List[Tuple[str, str]]:
        """
        Get list of files that failed to load with error messages.

        Returns:
            List of tuples (file_path, error_message)
        """
        return self.failed_files.copy()

    def clear(self) -> None:
        """Clear loaded files and failed files lists."""
        self.loaded_files = []
        self.failed_files = []
