"""
Main Application Window

This module implements the main application window with menu bar, toolbar,
status bar and layout for the stack viewer: studies and metadata on the left,
the image (or document) view in the center with the navigation bar below it.

Inputs:
    - User interactions (menu selections, toolbar clicks)
    - Application configuration
    - Navigation status and documents from the viewer session

Outputs:
    - Main application interface
    - Request signals handled by the application

Requirements:
    - PySide6 for GUI components
    - ConfigManager for settings
"""

import html
import os
from typing import Dict, Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QAction, QActionGroup, QDragEnterEvent, QDropEvent, QKeySequence
from PySide6.QtWidgets import (QApplication, QHBoxLayout, QLabel, QMainWindow, QMessageBox, QPushButton,
                               QSplitter, QStackedWidget, QTextBrowser, QToolBar, QVBoxLayout, QWidget)

from core.document_text import TextDocument
from core.navigation_state import DEFAULT_PLACEHOLDER, NavigationStatus
from gui.main_window_theme import get_theme_stylesheet, get_theme_viewer_background_color
from tools.gesture_interpreter import Tool
from utils.config_manager import ConfigManager


# Stacked view pages
PAGE_INSTRUCTIONS = 0
PAGE_IMAGE = 1
PAGE_DOCUMENT = 2

INSTRUCTIONS_TEXT = (
    "Open DICOM files or a folder (File menu), or drop them here.\n\n"
    "Arrow keys or the mouse wheel move through the series."
)

# Toolbar order of the pointer tools
POINTER_TOOLS = (Tool.PAN, Tool.ZOOM, Tool.WINDOW_LEVEL, Tool.STACK_SCROLL, Tool.RULER)


class MainWindow(QMainWindow):
    """
    Main application window for the stack viewer.

    Provides:
    - Menu bar with file operations, view options, tools
    - Toolbar with the pointer tools and one-shot actions
    - Status bar for information display
    - Central widget area for image display and panels
    """

    # Signals
    open_file_requested = Signal()
    open_folder_requested = Signal()
    open_files_from_paths_requested = Signal(list)  # Emitted when files/folders are dropped (list of paths)
    export_requested = Signal()
    tool_changed = Signal(str)  # Tool value
    reset_view_requested = Signal()
    clear_measurements_requested = Signal()
    navigation_requested = Signal(int)  # -1 previous, 1 next

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """
        Initialize the main window.

        Args:
            config_manager: Optional ConfigManager instance
        """
        super().__init__()

        self.config_manager = config_manager or ConfigManager()
        self.image_viewer = None
        self.tool_actions: Dict[Tool, QAction] = {}

        # Window properties
        self.setWindowTitle("DICOM Stack Viewer")
        self.setGeometry(100, 100,
                         self.config_manager.get("window_width", 1200),
                         self.config_manager.get("window_height", 800))

        # Create UI components
        self._create_menu_bar()
        self._create_toolbar()
        self._create_status_bar()
        self._create_central_widget()

        # Enable drag-and-drop on main window
        self.setAcceptDrops(True)

        self._apply_theme()
        self.set_tool_checked(self.config_manager.get_default_tool())

    def _create_menu_bar(self) -> None:
        """Create the application menu bar."""
        menubar = self.menuBar()

        # File menu
        file_menu = menubar.addMenu("&File")

        open_file_action = QAction("&Open File(s)...", self)
        open_file_action.setShortcut(QKeySequence.StandardKey.Open)
        open_file_action.triggered.connect(self.open_file_requested.emit)
        file_menu.addAction(open_file_action)

        open_folder_action = QAction("Open &Folder...", self)
        open_folder_action.setShortcut(QKeySequence("Ctrl+Shift+O"))
        open_folder_action.triggered.connect(self.open_folder_requested.emit)
        file_menu.addAction(open_folder_action)

        file_menu.addSeparator()

        self.export_action = QAction("&Export Image...", self)
        self.export_action.setShortcut(QKeySequence("Ctrl+E"))
        self.export_action.setEnabled(False)
        self.export_action.triggered.connect(self.export_requested.emit)
        file_menu.addAction(self.export_action)

        file_menu.addSeparator()

        exit_action = QAction("E&xit", self)
        exit_action.setShortcut(QKeySequence.StandardKey.Quit)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        # View menu
        view_menu = menubar.addMenu("&View")

        reset_action = QAction("&Reset View", self)
        reset_action.setShortcut(QKeySequence("R"))
        reset_action.triggered.connect(self.reset_view_requested.emit)
        view_menu.addAction(reset_action)

        view_menu.addSeparator()
        theme_menu = view_menu.addMenu("&Theme")
        theme_group = QActionGroup(self)
        theme_group.setExclusive(True)
        self.light_theme_action = QAction("&Light", self)
        self.dark_theme_action = QAction("&Dark", self)
        for action, theme in ((self.light_theme_action, "light"), (self.dark_theme_action, "dark")):
            action.setCheckable(True)
            theme_group.addAction(action)
            action.triggered.connect(lambda checked=False, t=theme: self._set_theme(t))
            theme_menu.addAction(action)
        if self.config_manager.get_theme() == "dark":
            self.dark_theme_action.setChecked(True)
        else:
            self.light_theme_action.setChecked(True)

        # Tools menu
        tools_menu = menubar.addMenu("&Tools")
        clear_action = QAction("&Clear Measurements", self)
        clear_action.setShortcut(QKeySequence("Ctrl+Delete"))
        clear_action.triggered.connect(self.clear_measurements_requested.emit)
        tools_menu.addAction(clear_action)

        # Help menu
        help_menu = menubar.addMenu("&Help")
        about_action = QAction("&About", self)
        about_action.triggered.connect(self._show_about)
        help_menu.addAction(about_action)

    def _create_toolbar(self) -> None:
        """Create the application toolbar."""
        toolbar = QToolBar("Main Toolbar", self)
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        # Pointer tools (exclusive)
        self.tool_group = QActionGroup(self)
        self.tool_group.setExclusive(True)
        for tool in POINTER_TOOLS:
            action = QAction(tool.label, self)
            action.setCheckable(True)
            action.triggered.connect(lambda checked=False, t=tool: self._on_tool_triggered(t))
            self.tool_group.addAction(action)
            toolbar.addAction(action)
            self.tool_actions[tool] = action
        self.tool_actions[Tool.STACK_SCROLL].setEnabled(False)

        toolbar.addSeparator()

        # One-shot actions
        reset_action = QAction("Reset", self)
        reset_action.setToolTip("Reset zoom, pan and window/level and clear this image's measurements")
        reset_action.triggered.connect(lambda: self.tool_changed.emit(Tool.RESET.value))
        toolbar.addAction(reset_action)

        clear_action = QAction("Clear Measurements", self)
        clear_action.triggered.connect(self.clear_measurements_requested.emit)
        toolbar.addAction(clear_action)

        export_action = QAction("Export", self)
        export_action.triggered.connect(self.export_requested.emit)
        toolbar.addAction(export_action)
        self.toolbar_export_action = export_action
        export_action.setEnabled(False)

    def _create_status_bar(self) -> None:
        """Create the status bar."""
        # Left widget: File/study information
        self.file_study_label = QLabel("Ready")
        self.file_study_label.setAlignment(Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignVCenter)
        self.statusBar().addPermanentWidget(self.file_study_label, stretch=2)

        # Center widget: window/level
        self.window_level_label = QLabel("")
        self.window_level_label.setAlignment(Qt.AlignmentFlag.AlignCenter | Qt.AlignmentFlag.AlignVCenter)
        self.statusBar().addPermanentWidget(self.window_level_label, stretch=1)

        # Right widget: spacing warning
        self.spacing_label = QLabel("")
        self.spacing_label.setAlignment(Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter)
        self.statusBar().addPermanentWidget(self.spacing_label, stretch=1)

    def _create_central_widget(self) -> None:
        """Create the central widget area."""
        central_widget = QWidget()
        self.setCentralWidget(central_widget)

        main_layout = QVBoxLayout(central_widget)
        main_layout.setContentsMargins(0, 0, 0, 0)
        main_layout.setSpacing(0)

        # Splitter for resizable panels
        self.splitter = QSplitter(Qt.Orientation.Horizontal)
        main_layout.addWidget(self.splitter)

        # Left panel (series list and metadata)
        self.left_panel = QWidget()
        self.left_panel.setObjectName("left_panel")
        self.left_panel.setMaximumWidth(450)
        self.left_panel.setMinimumWidth(200)
        QVBoxLayout(self.left_panel).setContentsMargins(0, 0, 0, 0)
        self.splitter.addWidget(self.left_panel)

        # Center panel (view stack and navigation bar)
        self.center_panel = QWidget()
        self.center_panel.setObjectName("center_panel")
        center_layout = QVBoxLayout(self.center_panel)
        center_layout.setContentsMargins(0, 0, 0, 0)
        center_layout.setSpacing(0)

        self.view_stack = QStackedWidget()
        self.instructions_label = QLabel(INSTRUCTIONS_TEXT)
        self.instructions_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.instructions_label.setWordWrap(True)
        self.view_stack.addWidget(self.instructions_label)

        self.image_page = QWidget()
        image_layout = QHBoxLayout(self.image_page)
        image_layout.setContentsMargins(0, 0, 0, 0)
        image_layout.setSpacing(0)
        self.view_stack.addWidget(self.image_page)

        self.document_view = QTextBrowser()
        self.document_view.setOpenExternalLinks(False)
        self.view_stack.addWidget(self.document_view)
        center_layout.addWidget(self.view_stack, 1)

        # Navigation bar
        nav_bar = QWidget()
        nav_layout = QHBoxLayout(nav_bar)
        nav_layout.setContentsMargins(5, 3, 5, 3)
        self.prev_button = QPushButton("◀ Prev")
        self.prev_button.clicked.connect(lambda: self.navigation_requested.emit(-1))
        self.next_button = QPushButton("Next ▶")
        self.next_button.clicked.connect(lambda: self.navigation_requested.emit(1))
        self.indicator_label = QLabel(DEFAULT_PLACEHOLDER)
        self.indicator_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.indicator_label.setMinimumWidth(90)
        nav_layout.addStretch()
        nav_layout.addWidget(self.prev_button)
        nav_layout.addWidget(self.indicator_label)
        nav_layout.addWidget(self.next_button)
        nav_layout.addStretch()
        center_layout.addWidget(nav_bar)
        self.splitter.addWidget(self.center_panel)

        # Set splitter proportions - use saved positions or defaults
        saved_sizes = self.config_manager.get("splitter_sizes", None)
        if saved_sizes and isinstance(saved_sizes, list) and len(saved_sizes) == 2:
            self.splitter.setSizes(saved_sizes)
        else:
            window_width = self.config_manager.get("window_width", 1200)
            self.splitter.setSizes([280, window_width - 280])
        self.splitter.splitterMoved.connect(self._on_splitter_moved)

        self.update_navigation(NavigationStatus(indicator=DEFAULT_PLACEHOLDER))

    def set_left_widgets(self, *widgets: QWidget) -> None:
        """Add widgets to the left panel, top to bottom."""
        layout = self.left_panel.layout()
        for widget in widgets:
            layout.addWidget(widget, 1)

    def set_image_viewer(self, image_viewer: QWidget, scroll_bar: QWidget) -> None:
        """Place the image viewer and its stack scrollbar in the image page."""
        self.image_viewer = image_viewer
        layout = self.image_page.layout()
        layout.addWidget(image_viewer, 1)
        layout.addWidget(scroll_bar)
        image_viewer.set_background_color(get_theme_viewer_background_color(self.config_manager.get_theme()))

    # --- theme ---

    def _apply_theme(self) -> None:
        """Apply the current theme stylesheet."""
        theme = self.config_manager.get_theme()
        app = QApplication.instance()
        if app is not None:
            app.setStyleSheet(get_theme_stylesheet(theme))
        if self.image_viewer is not None:
            self.image_viewer.set_background_color(get_theme_viewer_background_color(theme))

    def _set_theme(self, theme: str) -> None:
        """
        Set the application theme and save the preference.

        Args:
            theme: Theme name ("light" or "dark")
        """
        self.config_manager.set_theme(theme)
        self._apply_theme()

    # --- tools ---

    def _on_tool_triggered(self, tool: Tool) -> None:
        self.tool_changed.emit(tool.value)

    def set_tool_checked(self, tool: Tool) -> None:
        """Check the toolbar action of a tool without emitting tool_changed."""
        action = self.tool_actions.get(tool)
        if action is None:
            return
        action.blockSignals(True)
        action.setChecked(True)
        action.blockSignals(False)

    # --- session updates ---

    def update_navigation(self, status: NavigationStatus) -> None:
        """Apply a navigation status to the navigation bar and tool availability."""
        self.indicator_label.setText(status.indicator)
        self.prev_button.setEnabled(status.prev_enabled)
        self.next_button.setEnabled(status.next_enabled)
        self.tool_actions[Tool.STACK_SCROLL].setEnabled(status.stack_scroll_enabled)

    def show_instructions(self) -> None:
        self.view_stack.setCurrentIndex(PAGE_INSTRUCTIONS)
        self._set_export_enabled(False)

    def show_image_view(self) -> None:
        self.view_stack.setCurrentIndex(PAGE_IMAGE)
        self._set_export_enabled(True)

    def show_document(self, document: Optional[TextDocument]) -> None:
        """
        Show a text document in the center view (None returns to the image view).

        Args:
            document: Document to show
        """
        if document is None:
            self.document_view.clear()
            return
        parts = [f"<h2>{html.escape(document.title)}</h2>"]
        style = ' style="color: #ff4444;"' if document.is_error else ""
        for paragraph in document.body:
            parts.append(f"<p{style}>{html.escape(paragraph)}</p>")
        self.document_view.setHtml("\n".join(parts))
        self.view_stack.setCurrentIndex(PAGE_DOCUMENT)
        self._set_export_enabled(False)
        self.window_level_label.setText("")
        self.spacing_label.setText("")

    def update_window_level(self, center: float, width: float) -> None:
        self.window_level_label.setText(f"W: {width:.0f}  L: {center:.0f}")

    def update_spacing_warning(self, estimated: bool) -> None:
        self.spacing_label.setText("Pixel spacing unknown, lengths estimated" if estimated else "")

    def update_status(self, message: str) -> None:
        """
        Update the status bar message.

        Args:
            message: Status message to display
        """
        self.file_study_label.setText(message)

    def _set_export_enabled(self, enabled: bool) -> None:
        self.export_action.setEnabled(enabled)
        self.toolbar_export_action.setEnabled(enabled)

    def _on_splitter_moved(self, pos: int, index: int) -> None:
        self.config_manager.set("splitter_sizes", self.splitter.sizes())

    def _show_about(self) -> None:
        QMessageBox.about(
            self,
            "About DICOM Stack Viewer",
            "DICOM Stack Viewer\n\n"
            "Browse DICOM series, adjust window/level, zoom and pan, and measure distances.\n\n"
            "Not for diagnostic use.",
        )

    # --- drag and drop ---

    def dragEnterEvent(self, event: QDragEnterEvent) -> None:
        """
        Handle drag enter event - accept files and folders.

        Args:
            event: QDragEnterEvent
        """
        if event.mimeData().hasUrls():
            for url in event.mimeData().urls():
                path = url.toLocalFile()
                if path and os.path.exists(path):
                    event.acceptProposedAction()
                    return

        event.ignore()

    def dropEvent(self, event: QDropEvent) -> None:
        """
        Handle drop event - load files or folders.

        Args:
            event: QDropEvent
        """
        if not event.mimeData().hasUrls():
            event.ignore()
            return

        paths = []
        for url in event.mimeData().urls():
            path = url.toLocalFile()
            if path and os.path.exists(path):
                paths.append(path)

        if not paths:
            event.ignore()
            return

        self.open_files_from_paths_requested.emit(paths)
        event.acceptProposedAction()

    def closeEvent(self, event) -> None:
        """
        Handle window close event.

        Args:
            event: Close event
        """
        # Save window geometry
        geometry = self.geometry()
        self.config_manager.set("window_width", geometry.width())
        self.config_manager.set("window_height", geometry.height())
        self.config_manager.save_config()

        event.accept()
