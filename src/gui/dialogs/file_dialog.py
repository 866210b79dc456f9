"""
File Selection Dialog

This module provides file and folder selection dialogs with last path memory,
plus the warning and error message boxes used while opening files.

Inputs:
    - User file/folder selections
    - Configuration for last path

Outputs:
    - Selected file/folder paths
    - Updated configuration

Requirements:
    - PySide6 for dialogs
    - ConfigManager for path memory
"""

import os
from typing import List, Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import QFileDialog, QMessageBox

from utils.config_manager import ConfigManager


class FileDialog:
    """
    Handles file and folder selection dialogs.

    Features:
    - Multiple file selection
    - Last path memory
    - Extension-agnostic file filtering (DICOM files often have none)
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """
        Initialize the file dialog handler.

        Args:
            config_manager: Optional ConfigManager instance
        """
        self.config_manager = config_manager or ConfigManager()

    def _start_directory(self) -> str:
        last_path = self.config_manager.get_last_path()
        if not last_path or not os.path.exists(last_path):
            return os.getcwd()
        if os.path.isfile(last_path):
            return os.path.dirname(last_path)
        return last_path

    def open_files(self, parent=None) -> List[str]:
        """
        Open file selection dialog for multiple files.

        Args:
            parent: Parent widget for the dialog

        Returns:
            List of selected file paths (empty when cancelled)
        """
        file_paths, _ = QFileDialog.getOpenFileNames(
            parent,
            "Open DICOM File(s)",
            self._start_directory(),
            "DICOM Files (*.dcm *.dicom *.DCM *.DICOM);;All Files (*)",
        )
        if file_paths:
            self.config_manager.set_last_path(file_paths[0])
        return file_paths

    def open_folder(self, parent=None) -> Optional[str]:
        """
        Open folder selection dialog.

        Args:
            parent: Parent widget for the dialog

        Returns:
            Selected folder path or None
        """
        folder_path = QFileDialog.getExistingDirectory(parent, "Open DICOM Folder", self._start_directory())
        if folder_path:
            self.config_manager.set_last_path(folder_path)
            return folder_path
        return None

    def show_warning(self, parent=None, title: str = "Warning", message: str = "") -> None:
        """
        Show a warning dialog.

        Args:
            parent: Parent widget
            title: Dialog title
            message: Warning message
        """
        self._show_message(parent, QMessageBox.Icon.Warning, title, message)

    def show_error(self, parent=None, title: str = "Error", message: str = "") -> None:
        """
        Show an error dialog.

        Args:
            parent: Parent widget
            title: Dialog title
            message: Error message
        """
        self._show_message(parent, QMessageBox.Icon.Critical, title, message)

    @staticmethod
    def _show_message(parent, icon, title: str, message: str) -> None:
        msg_box = QMessageBox(parent)
        msg_box.setIcon(icon)
        msg_box.setWindowTitle(title)
        msg_box.setText(message)

        # Ensure dialog appears on top
        msg_box.setWindowFlags(msg_box.windowFlags() | Qt.WindowType.WindowStaysOnTopHint)
        msg_box.activateWindow()
        msg_box.raise_()

        msg_box.exec()
