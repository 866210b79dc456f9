"""
Export Dialog

This module provides the dialog used to export the displayed image to a JPEG
or PNG file: output size, format, file name, output directory and whether
measurements and the "Not for diagnostic use" banner are drawn.

Inputs:
    - Initial ExportSettings (from ConfigManager)
    - Last export directory

Outputs:
    - Accepted ExportSettings and output file path

Requirements:
    - PySide6 for dialogs
    - core.image_exporter.ExportSettings
"""

import os
from typing import Optional

from PySide6.QtWidgets import (QButtonGroup, QCheckBox, QDialog, QFileDialog, QFormLayout, QGroupBox,
                               QHBoxLayout, QLabel, QLineEdit, QMessageBox, QPushButton, QRadioButton,
                               QSpinBox, QVBoxLayout)

from core.image_exporter import ExportSettings


MIN_EXPORT_SIZE = 64
MAX_EXPORT_SIZE = 8192


class ExportDialog(QDialog):
    """
    Dialog for exporting the displayed image.

    Features:
    - Select export format (JPEG, PNG)
    - Output width and height
    - Measurement and warning banner options
    - Choose output location
    """

    def __init__(self, settings: Optional[ExportSettings] = None, config_manager=None, parent=None):
        """
        Initialize the export dialog.

        Args:
            settings: Initial export options
            config_manager: Optional ConfigManager for the last export directory
            parent: Parent widget
        """
        super().__init__(parent)
        self.settings = settings or ExportSettings()
        self.config_manager = config_manager
        self.output_directory = ""
        if config_manager is not None:
            self.output_directory = config_manager.get_last_export_path()
        if not self.output_directory:
            self.output_directory = os.path.expanduser("~")

        self.setWindowTitle("Export Image")
        self.setModal(True)
        self.resize(420, 360)
        self._create_ui()

    def _create_ui(self) -> None:
        """Create the UI components."""
        layout = QVBoxLayout(self)
        layout.setContentsMargins(10, 10, 10, 10)

        # Format selection
        format_group = QGroupBox("Export Format")
        format_layout = QHBoxLayout()
        self.format_group = QButtonGroup(self)
        self.jpg_radio = QRadioButton("JPG")
        self.png_radio = QRadioButton("PNG")
        self.format_group.addButton(self.jpg_radio, 0)
        self.format_group.addButton(self.png_radio, 1)
        if self.settings.format == "png":
            self.png_radio.setChecked(True)
        else:
            self.jpg_radio.setChecked(True)
        format_layout.addWidget(self.jpg_radio)
        format_layout.addWidget(self.png_radio)
        format_group.setLayout(format_layout)
        layout.addWidget(format_group)

        # Size and file name
        form = QFormLayout()
        self.width_spin = QSpinBox()
        self.width_spin.setRange(MIN_EXPORT_SIZE, MAX_EXPORT_SIZE)
        self.width_spin.setValue(self.settings.width)
        self.width_spin.setSuffix(" px")
        form.addRow("Width:", self.width_spin)

        self.height_spin = QSpinBox()
        self.height_spin.setRange(MIN_EXPORT_SIZE, MAX_EXPORT_SIZE)
        self.height_spin.setValue(self.settings.height)
        self.height_spin.setSuffix(" px")
        form.addRow("Height:", self.height_spin)

        self.filename_edit = QLineEdit(self.settings.filename)
        form.addRow("File name:", self.filename_edit)
        layout.addLayout(form)

        self.annotations_checkbox = QCheckBox("Include measurements")
        self.annotations_checkbox.setChecked(self.settings.include_annotations)
        layout.addWidget(self.annotations_checkbox)

        self.warning_checkbox = QCheckBox("Include \"Not for diagnostic use\" banner")
        self.warning_checkbox.setChecked(self.settings.include_warning)
        layout.addWidget(self.warning_checkbox)

        # Output path
        path_layout = QHBoxLayout()
        path_layout.addWidget(QLabel("Output Directory:"))
        self.path_label = QLabel(self.output_directory)
        path_layout.addWidget(self.path_label, 1)
        browse_button = QPushButton("Browse...")
        browse_button.clicked.connect(self._browse_output)
        path_layout.addWidget(browse_button)
        layout.addLayout(path_layout)

        layout.addStretch()

        # Buttons
        button_layout = QHBoxLayout()
        button_layout.addStretch()
        export_button = QPushButton("Export")
        export_button.setDefault(True)
        export_button.clicked.connect(self._on_export)
        button_layout.addWidget(export_button)
        cancel_button = QPushButton("Cancel")
        cancel_button.clicked.connect(self.reject)
        button_layout.addWidget(cancel_button)
        layout.addLayout(button_layout)

    def _browse_output(self) -> None:
        """Browse for output directory."""
        directory = QFileDialog.getExistingDirectory(self, "Select Output Directory", self.output_directory)
        if directory:
            self.output_directory = directory
            self.path_label.setText(directory)

    def _on_export(self) -> None:
        """Validate the inputs and accept."""
        if not self.filename_edit.text().strip():
            QMessageBox.warning(self, "No File Name", "Please enter a file name.")
            return
        if not os.path.isdir(self.output_directory):
            QMessageBox.warning(self, "No Output Directory", "Please select an existing output directory.")
            return
        if self.config_manager is not None:
            self.config_manager.set_last_export_path(self.output_directory)
            self.config_manager.set_export_settings(self.get_settings().to_dict())
        self.accept()

    def get_settings(self) -> ExportSettings:
        """Export options as entered."""
        return ExportSettings(
            width=self.width_spin.value(),
            height=self.height_spin.value(),
            filename=self.filename_edit.text().strip() or self.settings.filename,
            format="png" if self.png_radio.isChecked() else "jpg",
            include_annotations=self.annotations_checkbox.isChecked(),
            include_warning=self.warning_checkbox.isChecked(),
        )

    def get_output_path(self) -> str:
        """Full path of the file to write."""
        return os.path.join(self.output_directory, self.get_settings().default_filename)
