"""
File Operations Handler

This module handles opening files and folders (from dialogs, drag-and-drop or
the command line): loading, organizing into studies and series, and handing
the result to the viewer session.

Inputs:
    - File paths (single or multiple)
    - Folder paths

Outputs:
    - Organized studies passed to the load callback
    - Status messages and warning/error dialogs

Requirements:
    - DICOMLoader for loading files
    - DICOMOrganizer for organizing
    - FileDialog for user dialogs
    - ConfigManager for configuration
"""

import os
from typing import Callable, List, Optional

from PySide6.QtWidgets import QApplication

from core.dicom_loader import DICOMLoader, LoadedFile
from core.dicom_organizer import DICOMOrganizer
from core.study_model import Study
from gui.dialogs.file_dialog import FileDialog
from utils.config_manager import ConfigManager

# Failed files listed in a warning before it is summarized
MAX_LISTED_FAILURES = 5


class FileOperationsHandler:
    """
    Handles file operations including opening files and folders.

    Responsibilities:
    - Open single or multiple DICOM files
    - Open folders (recursive)
    - Open dropped or command line paths
    - Load and organize DICOM files
    - Report files that could not be read
    """

    def __init__(
        self,
        dicom_loader: DICOMLoader,
        dicom_organizer: DICOMOrganizer,
        file_dialog: FileDialog,
        config_manager: ConfigManager,
        parent_widget,
        load_studies_callback: Callable[[List[Study]], None],
        update_status_callback: Callable[[str], None],
    ):
        """
        Initialize the file operations handler.

        Args:
            dicom_loader: DICOM loader instance
            dicom_organizer: DICOM organizer instance
            file_dialog: File dialog instance
            config_manager: Configuration manager
            parent_widget: Parent for dialogs
            load_studies_callback: Receives the organized studies
            update_status_callback: Callback to update status bar
        """
        self.dicom_loader = dicom_loader
        self.dicom_organizer = dicom_organizer
        self.file_dialog = file_dialog
        self.config_manager = config_manager
        self.parent_widget = parent_widget
        self.load_studies_callback = load_studies_callback
        self.update_status_callback = update_status_callback

    @staticmethod
    def _format_source_name(file_paths: List[str]) -> str:
        if len(file_paths) == 1:
            return os.path.basename(os.path.normpath(file_paths[0]))
        elif len(file_paths) > 1:
            return os.path.basename(os.path.normpath(file_paths[0])) + "..."
        return ""

    @staticmethod
    def format_final_status(studies: List[Study], num_files: int, source_name: str) -> str:
        """
        Format final status message with studies/series/file counts.

        Args:
            studies: Organized studies
            num_files: Number of files loaded
            source_name: Name of source (folder or file)

        Returns:
            Formatted status message
        """
        num_studies = len(studies)
        num_series = sum(len(study.series) for study in studies)

        study_text = f"{num_studies} stud" + ("ies" if num_studies != 1 else "y")
        series_text = f"{num_series} series"
        file_text = f"{num_files} file" + ("s" if num_files != 1 else "")

        return f"{study_text}, {series_text}, {file_text} loaded from {source_name}"

    @staticmethod
    def format_failures(failed) -> str:
        """List up to MAX_LISTED_FAILURES failed files, one per line."""
        lines = [f"{os.path.basename(path)}: {error}" for path, error in failed[:MAX_LISTED_FAILURES]]
        if len(failed) > MAX_LISTED_FAILURES:
            lines.append(f"... and {len(failed) - MAX_LISTED_FAILURES} more")
        return "\n".join(lines)

    def open_files(self) -> Optional[List[Study]]:
        """
        Handle open files request.

        Returns:
            Studies, or None if cancelled or nothing could be loaded
        """
        file_paths = self.file_dialog.open_files(self.parent_widget)
        if not file_paths:
            return None
        return self.open_paths(file_paths)

    def open_folder(self) -> Optional[List[Study]]:
        """
        Handle open folder request.

        Returns:
            Studies, or None if cancelled or nothing could be loaded
        """
        folder_path = self.file_dialog.open_folder(self.parent_widget)
        if not folder_path:
            return None
        return self.open_paths([folder_path])

    def open_paths(self, paths: List[str]) -> Optional[List[Study]]:
        """
        Load files and folders, organize them and pass the studies on.

        Args:
            paths: File or folder paths

        Returns:
            Studies, or None if nothing could be loaded
        """
        source_name = self._format_source_name(paths)
        self.update_status_callback(f"Loading files from {source_name}...")
        QApplication.processEvents()

        def progress_callback(current: int, total: int, filename: str) -> None:
            self.update_status_callback(f"Loading file {current}/{total}: {filename}...")
            QApplication.processEvents()

        loaded = self.dicom_loader.load_files(paths, progress_callback=progress_callback)
        failed = self.dicom_loader.get_failed_files()

        if not loaded:
            if failed:
                message = "No DICOM files could be loaded.\n\nErrors:\n\n" + self.format_failures(failed)
            else:
                message = "No DICOM files could be loaded."
            self.file_dialog.show_error(self.parent_widget, "Error", message)
            self.update_status_callback("Ready")
            return None

        if failed:
            self.file_dialog.show_warning(
                self.parent_widget,
                "Loading Warnings",
                f"Warning: {len(failed)} file(s) could not be loaded:\n\n" + self.format_failures(failed),
            )

        studies = self.organize(loaded)
        if studies is None:
            return None
        if paths:
            self.config_manager.set_last_path(paths[0])
        self.update_status_callback(self.format_final_status(studies, len(loaded), source_name))
        self.load_studies_callback(studies)
        return studies

    def organize(self, loaded: List[LoadedFile]) -> Optional[List[Study]]:
        """Organize loaded files, reporting errors in a dialog."""
        self.update_status_callback(f"Loaded {len(loaded)} file(s). Organizing into studies/series...")
        QApplication.processEvents()
        try:
            return self.dicom_organizer.organize(loaded)
        except MemoryError as e:
            print(f"[FILE_OPS] Out of memory while organizing files: {e}")
            self.file_dialog.show_error(
                self.parent_widget,
                "Memory Error",
                f"Out of memory while organizing DICOM files. "
                f"Try closing other applications or loading fewer files.\n\nError: {str(e)}",
            )
        except Exception as e:
            print(f"[FILE_OPS] Error organizing files: {e}")
            self.file_dialog.show_error(self.parent_widget, "Error", f"Error organizing DICOM files: {str(e)}")
        self.update_status_callback("Ready")
        return None
