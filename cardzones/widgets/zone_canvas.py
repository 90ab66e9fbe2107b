from PySide6.QtCore import QRectF, Qt, Signal
from PySide6.QtGui import QColor, QFont, QPainter, QPen
from PySide6.QtWidgets import QWidget

from cardzones.core.geometry import to_pixels
from cardzones.core.models import IMAGE, FRONT, zone_color
from cardzones.core.template_store import TemplateSession
from cardzones.core.zone_editor import CREATING, ZoneEditStateMachine


# ============================================================
# ZoneCanvas: draws the active face and turns mouse input into
# gestures on ZoneEditStateMachine
# ============================================================
class ZoneCanvas(QWidget):
    zoneSelected = Signal(str)
    zonesChanged = Signal()

    def __init__(self, session: TemplateSession, face: str = FRONT, parent=None):
        super().__init__(parent)
        self.session = session
        self.settings = session.settings
        self.editor = ZoneEditStateMachine(session, face)

        self.setFixedSize(int(self.settings.editor_width), int(self.settings.editor_height))
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.StrongFocus)

    # --------------------------------------------------------
    @property
    def face(self) -> str:
        return self.editor.face

    def set_face(self, face: str) -> bool:
        if not self.editor.set_face(face):
            return False
        self.zoneSelected.emit("")
        self.update()
        return True

    def set_session(self, session: TemplateSession):
        self.editor.cancel()
        self.session = session
        self.editor = ZoneEditStateMachine(session, self.editor.face)
        self.zoneSelected.emit("")
        self.update()

    def selected_zone_id(self):
        return self.editor.selected_zone_id

    def delete_selected(self) -> bool:
        zone_id = self.editor.selected_zone_id
        if zone_id is None or self.editor.is_active:
            return False
        if not self.session.delete_zone(self.face, zone_id):
            return False
        self.editor.select(None)
        self.zoneSelected.emit("")
        self.zonesChanged.emit()
        self.update()
        return True

    # --------------------------------------------------------
    # PAINT
    # --------------------------------------------------------
    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)

        W, H = self.width(), self.height()
        painter.fillRect(self.rect(), QColor(self.settings.background))

        # grid
        grid_pen = QPen(QColor(255, 255, 255, 40), 1)
        painter.setPen(grid_pen)
        steps = self.settings.grid_size
        for i in range(1, steps):
            x = W * i / steps
            y = H * i / steps
            painter.drawLine(int(x), 0, int(x), H)
            painter.drawLine(0, int(y), W, int(y))

        # zones
        painter.setFont(QFont(self.font().family(), 9))
        selected = self.editor.selected_zone_id
        for index, zone in enumerate(self.session.zones(self.face)):
            rect = QRectF(*to_pixels(zone.position, W, H))
            color = QColor(zone_color(index))
            fill = QColor(color)
            fill.setAlpha(90 if zone.id == selected else 50)
            painter.fillRect(rect, fill)
            painter.setPen(QPen(color, 2 if zone.id == selected else 1))
            painter.drawRect(rect)

            marker = "IMG" if zone.content_type == IMAGE else "T"
            painter.setPen(QColor(self.settings.text_color))
            painter.drawText(rect, Qt.AlignCenter, zone.name)
            painter.drawText(rect.adjusted(3, 2, -3, -2), Qt.AlignTop | Qt.AlignLeft, marker)

        # candidate of a create gesture
        if self.editor.state == CREATING and self.editor.candidate is not None:
            rect = QRectF(*to_pixels(self.editor.candidate, W, H))
            color = QColor(220, 50, 50) if self.editor.candidate_overlaps else QColor(80, 160, 255)
            pen = QPen(color, 2, Qt.DashLine)
            painter.setPen(pen)
            painter.drawRect(rect)

        # resize handles of the selected zone
        zone = self.session.find_zone(self.face, selected)
        if zone is not None:
            self.draw_resize_handles(painter, zone)

        painter.end()

    def draw_resize_handles(self, painter, zone):
        s = self.settings.handle_size
        painter.setBrush(QColor(255, 255, 255))
        painter.setPen(QPen(QColor(0, 0, 0), 1))
        for hx, hy in self.editor.handle_points(zone).values():
            painter.drawRect(QRectF(hx - s / 2, hy - s / 2, s, s))
        painter.setBrush(Qt.NoBrush)

    # --------------------------------------------------------
    # Mouse Events
    # --------------------------------------------------------
    def mousePressEvent(self, event):
        if event.button() != Qt.LeftButton:
            return
        pos = event.position()
        before = self.editor.selected_zone_id
        if self.editor.pointer_down((pos.x(), pos.y())):
            if self.editor.selected_zone_id != before:
                self.zoneSelected.emit(self.editor.selected_zone_id or "")
            self.update()

    def mouseMoveEvent(self, event):
        pos = event.position()
        if self.editor.pointer_move((pos.x(), pos.y())):
            self.update()

    def mouseReleaseEvent(self, event):
        if event.button() != Qt.LeftButton or not self.editor.is_active:
            return
        changed = self.editor.state != CREATING
        created = self.editor.pointer_up()
        if created is not None:
            self.zoneSelected.emit(created.id)
            changed = True
        if changed:
            self.zonesChanged.emit()
        self.update()

    def keyPressEvent(self, event):
        if event.key() == Qt.Key_Escape and self.editor.is_active:
            self.editor.cancel()
            self.update()
        elif event.key() == Qt.Key_Delete:
            self.delete_selected()
        else:
            super().keyPressEvent(event)
