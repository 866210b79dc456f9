"""
Widget tests for the series navigator, metadata panel, stack scrollbar and
main window navigation/document views.

Requires PySide6; runs on the offscreen platform plugin.
"""

import unittest
import sys
import os
import tempfile

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6.QtWidgets import QApplication

from core.document_text import TextDocument
from core.navigation_state import NavigationStatus
from core.study_model import Instance, Series, Study
from gui.image_viewer import StackScrollBar
from gui.main_window import PAGE_DOCUMENT, MainWindow
from gui.metadata_panel import MetadataPanel
from gui.series_navigator import SeriesNavigator, series_label
from tools.gesture_interpreter import Tool
from utils.config_manager import ConfigManager


def make_study():
    study = Study(study_id="1.1", description="Head CT", modality="CT")
    axial = Series(series_id="1.1.1", description="Axial", modality="CT")
    for i in range(3):
        axial.add_instance(Instance(f"dicomfile:{i}", b"", instance_number=i + 1))
    report = Series(series_id="1.1.9", description="", modality="SR")
    report.add_instance(Instance("dicomfile:9", b""))
    study.add_series(axial)
    study.add_series(report)
    return study


class QtTestCase(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        """Ensure QApplication exists for widgets."""
        cls._app = QApplication.instance() or QApplication(sys.argv)


class TestSeriesNavigator(QtTestCase):
    """Tests for SeriesNavigator."""

    def setUp(self):
        self.navigator = SeriesNavigator()
        self.selected = []
        self.navigator.series_selected.connect(lambda index, series_id: self.selected.append((index, series_id)))
        self.navigator.update_series_list([make_study()])

    def test_series_label(self):
        study = make_study()
        self.assertEqual(series_label(study.get_series("1.1.1")), "[CT] Axial (3 images)")
        self.assertEqual(series_label(study.get_series("1.1.9")), "[SR] 1.1.9 (1 image)")

    def test_tree_contents(self):
        study_item = self.navigator.tree_widget.topLevelItem(0)
        self.assertEqual(study_item.text(0), "Head CT (CT)")
        self.assertEqual(study_item.childCount(), 2)

    def test_user_selection_emits(self):
        item = self.navigator.tree_widget.topLevelItem(0).child(1)
        self.navigator.tree_widget.setCurrentItem(item)
        self.assertEqual(self.selected, [(0, "1.1.9")])

    def test_programmatic_selection_is_silent(self):
        self.navigator.set_current_series(0, "1.1.1")
        self.assertEqual(self.selected, [])
        self.assertEqual(self.navigator.tree_widget.currentItem().text(0), "[CT] Axial (3 images)")


class TestMetadataPanel(QtTestCase):
    """Tests for MetadataPanel."""

    def setUp(self):
        self.panel = MetadataPanel()

    def test_groups_and_window_update(self):
        self.panel.set_metadata({
            "patient": {"PatientName": "Test^Patient"},
            "study": {},
            "image": {"Window Center": "100", "Window Width": "200"},
        })
        self.assertEqual(self.panel.tree_widget.topLevelItemCount(), 2)
        self.panel.set_window_level(40.0, 400.0)
        self.assertEqual(self.panel.metadata["image"]["Window Width"], "400")

    def test_window_update_ignored_for_documents(self):
        self.panel.set_metadata({"image": {"Type": "Structured Report"}})
        self.panel.set_window_level(40.0, 400.0)
        self.assertNotIn("Window Center", self.panel.metadata["image"])

    def test_clear(self):
        self.panel.set_metadata({"patient": {"PatientID": "PID001"}})
        self.panel.clear()
        self.assertEqual(self.panel.tree_widget.topLevelItemCount(), 0)


class TestStackScrollBar(QtTestCase):

    def test_visibility_follows_status(self):
        bar = StackScrollBar()
        bar.set_status(NavigationStatus(indicator="1 / 1"))
        self.assertTrue(bar.isHidden())
        bar.set_status(NavigationStatus(indicator="2 / 4", scrollbar_visible=True, thumb_percent=25.0))
        self.assertFalse(bar.isHidden())
        bar.close()


class TestMainWindow(QtTestCase):
    """Tests for MainWindow navigation bar and document view."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.window = MainWindow(ConfigManager(config_dir=self.temp_dir.name))

    def tearDown(self):
        self.window.deleteLater()
        self.temp_dir.cleanup()

    def test_update_navigation(self):
        self.window.update_navigation(NavigationStatus(
            indicator="2 / 4", prev_enabled=True, next_enabled=True, stack_scroll_enabled=True))
        self.assertEqual(self.window.indicator_label.text(), "2 / 4")
        self.assertTrue(self.window.prev_button.isEnabled())
        self.assertTrue(self.window.tool_actions[Tool.STACK_SCROLL].isEnabled())

    def test_single_image_disables_navigation(self):
        self.window.update_navigation(NavigationStatus(indicator="1 / 1"))
        self.assertFalse(self.window.prev_button.isEnabled())
        self.assertFalse(self.window.next_button.isEnabled())
        self.assertFalse(self.window.tool_actions[Tool.STACK_SCROLL].isEnabled())

    def test_show_document_escapes_text(self):
        self.window.show_document(TextDocument(title="Report", paragraphs=["a < b"]))
        self.assertEqual(self.window.view_stack.currentIndex(), PAGE_DOCUMENT)
        self.assertIn("a < b", self.window.document_view.toPlainText())

    def test_default_tool_checked(self):
        self.assertTrue(self.window.tool_actions[Tool.WINDOW_LEVEL].isChecked())
        self.window.set_tool_checked(Tool.RULER)
        self.assertTrue(self.window.tool_actions[Tool.RULER].isChecked())
        self.assertFalse(self.window.tool_actions[Tool.WINDOW_LEVEL].isChecked())


if __name__ == "__main__":
    unittest.main()
