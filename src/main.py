"""
DICOM Stack Viewer - Main Application Entry Point

This module is the main entry point for the stack viewer application.
It initializes the application, creates the main window and the viewer
session, wires them together and runs the Qt event loop with asyncio
integration.

Inputs:
    - Command line arguments (optional files or folders to open)

Outputs:
    - Running stack viewer application

Requirements:
    - PySide6 for application framework (QtAsyncio for the event loop)
    - pydicom for DICOM file handling
    - PIL/Pillow for image processing
    - numpy for array operations
    - All other application modules
"""

import sys
from pathlib import Path
from typing import List, Optional

# Add src directory to path
src_dir = Path(__file__).parent
sys.path.insert(0, str(src_dir))

from PySide6 import QtAsyncio
from PySide6.QtCore import QObject
from PySide6.QtWidgets import QApplication, QStyleFactory

from core.dicom_loader import DICOMLoader
from core.dicom_organizer import DICOMOrganizer
from core.document_text import TextDocument
from core.file_operations_handler import FileOperationsHandler
from core.image_exporter import ExportSettings
from core.rendering_engine import PixelRenderingEngine, RenderSurface
from core.study_model import Study
from core.viewer_session import ViewerSession
from gui.dialogs.export_dialog import ExportDialog
from gui.dialogs.file_dialog import FileDialog
from gui.image_viewer import ImageViewer, StackScrollBar
from gui.main_window import MainWindow
from gui.metadata_panel import MetadataPanel
from gui.series_navigator import SeriesNavigator
from utils.config_manager import ConfigManager


class StackViewerApp(QObject):
    """
    Main application class for the stack viewer.

    Coordinates all components and handles application logic.
    """

    def __init__(self, app: QApplication):
        """
        Initialize the application.

        Args:
            app: The Qt application
        """
        super().__init__()
        self.app = app

        # Initialize managers
        self.config_manager = ConfigManager()
        self.engine = PixelRenderingEngine()
        self.dicom_loader = DICOMLoader()
        self.dicom_organizer = DICOMOrganizer(self.engine)
        self.session = ViewerSession(self.engine, self.config_manager, parent=self)

        # Create main window and components
        self.main_window = MainWindow(self.config_manager)
        self.file_dialog = FileDialog(self.config_manager)
        self.image_viewer = ImageViewer(self.session)
        self.scroll_bar = StackScrollBar()
        self.series_navigator = SeriesNavigator()
        self.metadata_panel = MetadataPanel()

        self.file_operations_handler = FileOperationsHandler(
            self.dicom_loader,
            self.dicom_organizer,
            self.file_dialog,
            self.config_manager,
            self.main_window,
            load_studies_callback=self._on_studies_loaded,
            update_status_callback=self.main_window.update_status,
        )

        self._setup_ui()
        self._connect_signals()

    def _setup_ui(self) -> None:
        """Set up the user interface layout."""
        self.main_window.set_left_widgets(self.series_navigator, self.metadata_panel)
        self.main_window.set_image_viewer(self.image_viewer, self.scroll_bar)
        self.main_window.update_navigation(self.session.navigation_status)
        self.scroll_bar.set_status(self.session.navigation_status)

    def _connect_signals(self) -> None:
        """Connect signals between components."""
        # Main window requests
        self.main_window.open_file_requested.connect(self.file_operations_handler.open_files)
        self.main_window.open_folder_requested.connect(self.file_operations_handler.open_folder)
        self.main_window.open_files_from_paths_requested.connect(self.file_operations_handler.open_paths)
        self.main_window.export_requested.connect(self._on_export_requested)
        self.main_window.tool_changed.connect(self._on_tool_requested)
        self.main_window.reset_view_requested.connect(self.session.reset_view)
        self.main_window.clear_measurements_requested.connect(self.session.clear_measurements)
        self.main_window.navigation_requested.connect(self.session.navigate)

        # Navigator and scrollbar
        self.series_navigator.series_selected.connect(self._on_series_selected)
        self.scroll_bar.fraction_requested.connect(
            lambda fraction: self.session.schedule(self.session.go_to_fraction(fraction))
        )

        # Session updates
        self.session.navigation_changed.connect(self.main_window.update_navigation)
        self.session.navigation_changed.connect(self.scroll_bar.set_status)
        self.session.metadata_changed.connect(self._on_metadata_changed)
        self.session.window_level_changed.connect(self.main_window.update_window_level)
        self.session.window_level_changed.connect(self.metadata_panel.set_window_level)
        self.session.surface_changed.connect(self._on_surface_changed)
        self.session.document_changed.connect(self._on_document_changed)
        self.session.tool_changed.connect(self.main_window.set_tool_checked)

    # --- file handling ---

    def open_paths(self, paths: List[str]) -> Optional[List[Study]]:
        return self.file_operations_handler.open_paths(paths)

    def _on_studies_loaded(self, studies: List[Study]) -> None:
        """Show the loaded studies and select the first series."""
        self.session.load_studies(studies)
        self.series_navigator.update_series_list(studies)
        for study_index, study in enumerate(studies):
            series_ids = study.series_ids
            if series_ids:
                self.series_navigator.set_current_series(study_index, series_ids[0])
                self._on_series_selected(study_index, series_ids[0])
                return

    def _on_series_selected(self, study_index: int, series_id: str) -> None:
        self.session.schedule(self.session.select_series(study_index, series_id))

    # --- session updates ---

    def _on_surface_changed(self, surface: Optional[RenderSurface]) -> None:
        if surface is not None:
            self.main_window.show_image_view()
            self.session.resize_surface(self.image_viewer.width(), self.image_viewer.height())

    def _on_document_changed(self, document: Optional[TextDocument]) -> None:
        if document is not None:
            self.main_window.show_document(document)

    def _on_metadata_changed(self, metadata) -> None:
        self.metadata_panel.set_metadata(metadata)
        if self.session.current_image is not None:
            self.main_window.update_spacing_warning(self.session.is_estimated_spacing)

    def _on_tool_requested(self, tool_name: str) -> None:
        try:
            self.session.set_active_tool(tool_name)
        except ValueError as e:
            print(f"[SESSION] {e}")

    def _on_export_requested(self) -> None:
        if self.session.current_image is None:
            self.file_dialog.show_warning(self.main_window, "Export", "No image is displayed.")
            return
        settings = ExportSettings.from_dict(self.config_manager.get_export_settings())
        dialog = ExportDialog(settings, self.config_manager, self.main_window)
        if not dialog.exec():
            return
        task = self.session.schedule(self.session.export_image(dialog.get_output_path(), dialog.get_settings()))
        task.add_done_callback(self._on_export_finished)

    def _on_export_finished(self, task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.file_dialog.show_error(self.main_window, "Export Error", f"Error exporting image: {error}")
            return
        self.main_window.update_status(f"Exported {task.result()}")

    # --- running ---

    async def startup(self, paths: List[str]) -> None:
        """Open command line paths once the event loop runs."""
        if paths:
            self.open_paths(paths)
        self.image_viewer.setFocus()

    def run(self, paths: List[str]) -> int:
        """
        Run the application.

        Args:
            paths: Files or folders to open after start

        Returns:
            Exit code
        """
        self.main_window.show()
        QtAsyncio.run(self.startup(paths), keep_running=True, quit_qapp=True, handle_sigint=True)
        return 0


def exception_hook(exctype, value, tb):
    """Global exception handler to catch unhandled exceptions."""
    import traceback
    error_msg = ''.join(traceback.format_exception(exctype, value, tb))
    print(f"Unhandled exception:\n{error_msg}")

    # Try to show error dialog if QApplication exists
    try:
        from PySide6.QtWidgets import QMessageBox
        if QApplication.instance():
            QMessageBox.critical(
                None,
                "Fatal Error",
                f"An unexpected error occurred:\n\n{exctype.__name__}: {value}\n\nThe application may be unstable."
            )
    except Exception:
        pass  # If Qt is not available, just print


def main():
    """Main entry point."""
    # Install global exception hook
    sys.excepthook = exception_hook

    try:
        app = QApplication(sys.argv)
        app.setApplicationName("DICOM Stack Viewer")
        app.setStyle(QStyleFactory.create("Fusion"))
        viewer = StackViewerApp(app)
        return viewer.run(sys.argv[1:])
    except Exception as e:
        print(f"Fatal error: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
