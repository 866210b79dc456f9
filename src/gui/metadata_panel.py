"""
Metadata Panel

This module provides the panel showing patient, study and image information
of the displayed instance, grouped in a tree.

Inputs:
    - Metadata dictionaries from ViewerSession.metadata_changed:
      {"patient": {...}, "study": {...}, "image": {...}}
    - Window/level updates

Outputs:
    - Displayed metadata

Requirements:
    - PySide6 for GUI components
"""

from typing import Dict, Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import QLabel, QTreeWidget, QTreeWidgetItem, QVBoxLayout, QWidget


# (section key, group title)
SECTIONS = (
    ("patient", "Patient"),
    ("study", "Study"),
    ("image", "Image"),
)


class MetadataPanel(QWidget):
    """
    Panel for displaying metadata of the displayed instance.

    Features:
    - Patient, Study and Image groups
    - Live window center/width values
    """

    def __init__(self, parent=None):
        """
        Initialize the metadata panel.

        Args:
            parent: Parent widget
        """
        super().__init__(parent)
        self.setObjectName("metadata_panel")
        self.metadata: Dict[str, Dict[str, str]] = {}
        self._create_ui()

    def _create_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(5, 5, 5, 5)

        title = QLabel("Metadata")
        title.setStyleSheet("font-weight: bold;")
        layout.addWidget(title)

        self.tree_widget = QTreeWidget()
        self.tree_widget.setHeaderLabels(["Name", "Value"])
        self.tree_widget.setColumnWidth(0, 130)
        self.tree_widget.setRootIsDecorated(True)
        layout.addWidget(self.tree_widget)

    def set_metadata(self, metadata: Optional[Dict[str, Dict[str, str]]]) -> None:
        """
        Show a metadata dictionary (None clears the panel).

        Args:
            metadata: Sections of name/value pairs
        """
        self.metadata = {key: dict(values) for key, values in (metadata or {}).items()}
        self._populate()

    def set_window_level(self, center: float, width: float) -> None:
        """Update the window values of the image section."""
        image = self.metadata.get("image")
        if image is None or "Window Center" not in image:
            return
        image["Window Center"] = f"{center:.0f}"
        image["Window Width"] = f"{width:.0f}"
        self._populate()

    def clear(self) -> None:
        self.set_metadata(None)

    def _populate(self) -> None:
        self.tree_widget.clear()
        for key, title in SECTIONS:
            values = self.metadata.get(key)
            if not values:
                continue
            group = QTreeWidgetItem(self.tree_widget, [title, ""])
            group.setFirstColumnSpanned(True)
            font = group.font(0)
            font.setBold(True)
            group.setFont(0, font)
            for name, value in values.items():
                item = QTreeWidgetItem(group, [name, str(value)])
                item.setToolTip(1, str(value))
                item.setFlags(item.flags() & ~Qt.ItemFlag.ItemIsEditable)
            group.setExpanded(True)
