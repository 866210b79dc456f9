"""
Main Window Theme – stylesheet and viewer background for light/dark themes.

Used by gui.main_window.MainWindow._apply_theme(); no dependency on MainWindow or config.

Inputs:
    - theme: "light" or "dark"

Outputs:
    - Stylesheet string for QApplication.setStyleSheet
    - QColor for the image viewer background

Requirements:
    - PySide6.QtGui.QColor
"""

from PySide6.QtGui import QColor


_DARK = {
    "background": "#2b2b2b",
    "panel": "#1b1b1b",
    "text": "#ffffff",
    "border": "#555555",
    "hover": "#3a3a3a",
    "accent": "#4285da",
    "disabled": "#777777",
}

_LIGHT = {
    "background": "#f0f0f0",
    "panel": "#ffffff",
    "text": "#000000",
    "border": "#c0c0c0",
    "hover": "#e0e0e0",
    "accent": "#4285da",
    "disabled": "#a0a0a0",
}

_TEMPLATE = """
    QMainWindow, QWidget {{
        background-color: {background};
        color: {text};
    }}

    QMenuBar {{
        background-color: {background};
        color: {text};
        border-bottom: 1px solid {border};
    }}

    QMenuBar::item:selected, QMenu::item:selected {{
        background-color: {accent};
        color: #ffffff;
    }}

    QMenu {{
        background-color: {background};
        border: 1px solid {border};
    }}

    QToolBar {{
        background-color: {background};
        border-bottom: 1px solid {border};
        spacing: 3px;
    }}

    QToolButton:checked {{
        background-color: {accent};
        color: #ffffff;
    }}

    QToolButton:hover {{
        background-color: {hover};
    }}

    QTreeWidget, QTextBrowser {{
        background-color: {panel};
        border: 1px solid {border};
    }}

    QTreeWidget::item:selected {{
        background-color: {accent};
        color: #ffffff;
    }}

    QPushButton {{
        background-color: {panel};
        border: 1px solid {border};
        padding: 4px 10px;
    }}

    QPushButton:disabled {{
        color: {disabled};
    }}

    QStatusBar {{
        border-top: 1px solid {border};
    }}
"""


def get_theme_stylesheet(theme: str) -> str:
    """
    Return the full application stylesheet for the given theme.

    Args:
        theme: "light" or "dark" (anything else is treated as light)

    Returns:
        Stylesheet string to pass to QApplication.instance().setStyleSheet()
    """
    colors = _DARK if theme == "dark" else _LIGHT
    return _TEMPLATE.format(**colors)


def get_theme_viewer_background_color(theme: str) -> QColor:
    """
    Return the image viewer background color for the given theme.

    Args:
        theme: "light" or "dark"

    Returns:
        QColor for ImageViewer.set_background_color()
    """
    if theme == "dark":
        return QColor(27, 27, 27)  # #1b1b1b
    else:
        return QColor(64, 64, 64)  # #404040
