"""
Series Navigator Widget

This module provides the study/series tree used to choose the active series.
Studies are top-level items, each listing its series with modality, description
and instance count.

Inputs:
    - Organized studies
    - Current study index and series identifier

Outputs:
    - series_selected(study_index, series_id) signal

Requirements:
    - PySide6 for GUI components
"""

from typing import List, Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import QLabel, QTreeWidget, QTreeWidgetItem, QVBoxLayout, QWidget

from core.study_model import Series, Study


# Item data roles
STUDY_INDEX_ROLE = Qt.ItemDataRole.UserRole
SERIES_ID_ROLE = Qt.ItemDataRole.UserRole + 1


def series_label(series: Series) -> str:
    """Tree text of a series: modality, description and instance count."""
    description = series.description or series.series_id
    count = len(series)
    return f"[{series.modality}] {description} ({count} image{'s' if count != 1 else ''})"


class SeriesNavigator(QWidget):
    """
    Tree of loaded studies and their series.

    Clicking (or activating with the keyboard) a series item emits series_selected.
    """

    series_selected = Signal(int, str)

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setObjectName("series_navigator")
        self._updating = False

        layout = QVBoxLayout(self)
        layout.setContentsMargins(5, 5, 5, 5)
        title = QLabel("Studies")
        title.setStyleSheet("font-weight: bold;")
        layout.addWidget(title)

        self.tree_widget = QTreeWidget()
        self.tree_widget.setHeaderHidden(True)
        self.tree_widget.currentItemChanged.connect(self._on_current_item_changed)
        layout.addWidget(self.tree_widget)

    def update_series_list(self, studies: List[Study]) -> None:
        """
        Rebuild the tree.

        Args:
            studies: Organized studies
        """
        self._updating = True
        try:
            self.tree_widget.clear()
            for study_index, study in enumerate(studies):
                study_item = QTreeWidgetItem(self.tree_widget, [f"{study.description} ({study.modality})"])
                study_item.setToolTip(0, study.study_id)
                study_item.setFlags(study_item.flags() & ~Qt.ItemFlag.ItemIsSelectable)
                for series in study.series.values():
                    item = QTreeWidgetItem(study_item, [series_label(series)])
                    item.setData(0, STUDY_INDEX_ROLE, study_index)
                    item.setData(0, SERIES_ID_ROLE, series.series_id)
                    item.setToolTip(0, series.series_id)
                study_item.setExpanded(True)
        finally:
            self._updating = False

    def set_current_series(self, study_index: int, series_id: str) -> None:
        """Highlight a series without emitting series_selected."""
        item = self._find_item(study_index, series_id)
        if item is None:
            return
        self._updating = True
        try:
            self.tree_widget.setCurrentItem(item)
        finally:
            self._updating = False

    def clear(self) -> None:
        self._updating = True
        try:
            self.tree_widget.clear()
        finally:
            self._updating = False

    def _find_item(self, study_index: int, series_id: str) -> Optional[QTreeWidgetItem]:
        study_item = self.tree_widget.topLevelItem(study_index)
        if study_item is None:
            return None
        for row in range(study_item.childCount()):
            child = study_item.child(row)
            if child.data(0, SERIES_ID_ROLE) == series_id:
                return child
        return None

    def _on_current_item_changed(self, current: Optional[QTreeWidgetItem], previous) -> None:
        if self._updating or current is None:
            return
        series_id = current.data(0, SERIES_ID_ROLE)
        if series_id is None:
            return
        self.series_selected.emit(int(current.data(0, STUDY_INDEX_ROLE)), str(series_id))
