"""
Image Viewer Widget

This module implements the widget that shows the session's render surface and
its measurement overlay, and forwards pointer, wheel, key and resize events to
the ViewerSession. A slim stack scrollbar widget next to it shows and sets the
position within the series.

Inputs:
    - Painted canvases of the active RenderSurface
    - MeasurementGraphic lists from the session
    - NavigationStatus snapshots (scrollbar geometry)
    - Mouse, wheel, keyboard and resize events

Outputs:
    - Session pointer/wheel/key calls
    - fraction_requested signal from the scrollbar

Requirements:
    - PySide6 for widgets and painting
    - Pillow canvases converted to QImage
"""

from typing import List, Optional

from PIL import Image
from PySide6.QtCore import QPointF, QRectF, Qt, Signal
from PySide6.QtGui import QBrush, QColor, QFont, QImage, QPainter, QPen
from PySide6.QtWidgets import QSizePolicy, QWidget

from core.navigation_state import NavigationStatus
from core.rendering_engine import RenderSurface
from tools.measurement_overlay import ENDPOINT_RADIUS, LINE_WIDTH, MeasurementGraphic


def pil_to_qimage(image: Image.Image) -> QImage:
    """Convert an RGB Pillow image into a detached QImage."""
    rgb = image.convert("RGB")
    data = rgb.tobytes("raw", "RGB")
    qimage = QImage(data, rgb.width, rgb.height, rgb.width * 3, QImage.Format.Format_RGB888)
    return qimage.copy()


# Qt key -> session key name
_KEY_NAMES = {
    Qt.Key.Key_Up: "up",
    Qt.Key.Key_Left: "left",
    Qt.Key.Key_Down: "down",
    Qt.Key.Key_Right: "right",
}


class ImageViewer(QWidget):
    """
    Displays the active render surface with the measurement overlay.

    Features:
    - Repaints whenever the engine reports a completed paint
    - Draws measurement lines, labels and delete buttons
    - Forwards input to the session in canvas coordinates
    """

    def __init__(self, session, parent: Optional[QWidget] = None):
        """
        Initialize the image viewer.

        Args:
            session: ViewerSession receiving input and providing the surface
            parent: Optional parent widget
        """
        super().__init__(parent)
        self.session = session
        self.surface: Optional[RenderSurface] = None
        self._qimage: Optional[QImage] = None
        self.graphics: List[MeasurementGraphic] = []
        self.background_color = QColor(0, 0, 0)

        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setMinimumSize(200, 200)

        session.surface_changed.connect(self.set_surface)
        session.overlay_changed.connect(self.set_graphics)

    def set_surface(self, surface: Optional[RenderSurface]) -> None:
        """Follow a new surface (None clears the view)."""
        if self.surface is not None:
            self.surface.remove_paint_listener(self._on_surface_painted)
        self.surface = surface
        self._qimage = None
        if surface is not None:
            surface.add_paint_listener(self._on_surface_painted)
            if surface.canvas is not None:
                self._qimage = pil_to_qimage(surface.canvas)
        self.update()

    def set_background_color(self, color: QColor) -> None:
        self.background_color = color
        self.update()

    def set_graphics(self, graphics: List[MeasurementGraphic]) -> None:
        self.graphics = list(graphics)
        self.update()

    def _on_surface_painted(self, surface: RenderSurface) -> None:
        if surface is not self.surface or surface.canvas is None:
            return
        self._qimage = pil_to_qimage(surface.canvas)
        self.update()

    # --- painting ---

    def paintEvent(self, event) -> None:
        painter = QPainter(self)
        painter.fillRect(self.rect(), self.background_color)
        if self._qimage is not None:
            painter.drawImage(0, 0, self._qimage)
        if self.graphics:
            painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
            self._draw_graphics(painter)
        painter.end()

    def _draw_graphics(self, painter: QPainter) -> None:
        font = QFont("Arial")
        font.setPixelSize(12)
        painter.setFont(font)
        for graphic in self.graphics:
            color = QColor(*graphic.line_color)
            painter.setPen(QPen(color, LINE_WIDTH))
            painter.drawLine(QPointF(*graphic.start), QPointF(*graphic.end))
            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(QBrush(color))
            for point in (graphic.start, graphic.end):
                painter.drawEllipse(QPointF(*point), ENDPOINT_RADIUS, ENDPOINT_RADIUS)

            left, top, width, height = graphic.label_box
            painter.setBrush(QBrush(QColor(0, 0, 0, 178)))
            painter.drawRoundedRect(QRectF(left, top, width, height), 3, 3)
            painter.setPen(QPen(QColor(*graphic.label_color)))
            painter.drawText(QRectF(left, top, width, height), Qt.AlignmentFlag.AlignCenter, graphic.label)

            if graphic.delete_button is not None:
                cx, cy, radius = graphic.delete_button
                painter.setPen(QPen(QColor(255, 255, 255), 1))
                painter.setBrush(QBrush(QColor(255, 68, 68)))
                painter.drawEllipse(QPointF(cx, cy), radius, radius)
                painter.setPen(QPen(QColor(255, 255, 255), 1.5))
                offset = radius * 0.4
                painter.drawLine(QPointF(cx - offset, cy - offset), QPointF(cx + offset, cy + offset))
                painter.drawLine(QPointF(cx - offset, cy + offset), QPointF(cx + offset, cy - offset))
            painter.setBrush(Qt.BrushStyle.NoBrush)

    # --- input ---

    def mousePressEvent(self, event) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self.setFocus()
            pos = event.position()
            self.session.pointer_down(pos.x(), pos.y())
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event) -> None:
        pos = event.position()
        self.session.pointer_move(pos.x(), pos.y())

    def mouseReleaseEvent(self, event) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            pos = event.position()
            self.session.pointer_up(pos.x(), pos.y())
            event.accept()
            return
        super().mouseReleaseEvent(event)

    def leaveEvent(self, event) -> None:
        self.session.pointer_leave()
        super().leaveEvent(event)

    def wheelEvent(self, event) -> None:
        # Qt reports positive angles when scrolling away from the user
        delta = event.pixelDelta().y() if not event.pixelDelta().isNull() else event.angleDelta().y()
        self.session.wheel(-float(delta))
        event.accept()

    def keyPressEvent(self, event) -> None:
        key_name = _KEY_NAMES.get(Qt.Key(event.key()))
        if key_name is not None:
            self.session.key_press(key_name)
            event.accept()
            return
        super().keyPressEvent(event)

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        self.session.resize_surface(self.width(), self.height())


class StackScrollBar(QWidget):
    """
    Vertical position bar for the instance stack.

    The thumb size and offset come from NavigationStatus; clicking or dragging
    emits the track fraction under the pointer.
    """

    fraction_requested = Signal(float)

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.status: Optional[NavigationStatus] = None
        self.setFixedWidth(14)
        self._dragging = False

    def set_status(self, status: NavigationStatus) -> None:
        self.status = status
        self.setVisible(status.scrollbar_visible)
        self.update()

    def paintEvent(self, event) -> None:
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor(40, 40, 40))
        if self.status is not None and self.status.scrollbar_visible:
            height = self.height()
            thumb_height = height * self.status.thumb_percent / 100.0
            thumb_top = height * self.status.thumb_offset_percent / 100.0
            painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(QBrush(QColor(96, 165, 250)))
            painter.drawRoundedRect(QRectF(2, thumb_top, self.width() - 4, thumb_height), 4, 4)
        painter.end()

    def _emit_fraction(self, y: float) -> None:
        if self.height() <= 0:
            return
        self.fraction_requested.emit(min(max(y / self.height(), 0.0), 1.0))

    def mousePressEvent(self, event) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self._dragging = True
            self._emit_fraction(event.position().y())

    def mouseMoveEvent(self, event) -> None:
        if self._dragging:
            self._emit_fraction(event.position().y())

    def mouseReleaseEvent(self, event) -> None:
        self._dragging = False
