import asyncio
import logging
from typing import Optional

from PIL.ImageQt import ImageQt
from PySide6.QtCore import QObject, Qt, QThread, Signal
from PySide6.QtGui import QPixmap
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDoubleSpinBox,
    QFileDialog,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from cardzones.core.bindings import BindingResolver
from cardzones.core.compositor import LABELS, VISIBILITY_MODES, CardCompositor
from cardzones.core.json_loader import TemplateFormatError, TemplateLoader
from cardzones.core.models import BACK, CONTENT_TYPES, FRONT, H_ALIGNMENTS, IMAGE, V_ALIGNMENTS, AssetCriteria
from cardzones.core.renderer import CardRenderer, PillowTextMeasurer, default_font_path
from cardzones.core.template_store import TemplateSession
from cardzones.widgets.zone_canvas import ZoneCanvas

logger = logging.getLogger(__name__)


class AssetResolveWorker(QObject):
    """Runs pending asset-criteria queries off the GUI thread."""

    finished = Signal(dict)
    failed = Signal(str)

    def __init__(self, resolver: BindingResolver, elements):
        super().__init__()
        self.resolver = resolver
        self.elements = list(elements)

    def run(self):
        try:
            results = asyncio.run(self.resolver.resolve_all(self.elements))
            self.finished.emit(results)
        except Exception as exc:  # pragma: no cover - UI thread safety
            logger.exception("Asset resolution failed")
            self.failed.emit(str(exc))


class ZoneEditorWindow(QMainWindow):
    def __init__(self, session: Optional[TemplateSession] = None, resolver: Optional[BindingResolver] = None):
        super().__init__()
        self.session = session or TemplateSession()
        self.resolver = resolver or BindingResolver()
        self.template_path: Optional[str] = None
        self.asset_thread: Optional[QThread] = None
        self.asset_worker: Optional[AssetResolveWorker] = None
        self._assets_failed_once = False

        measurer = PillowTextMeasurer(default_font_path())
        self.compositor = CardCompositor(self.session, self.resolver, measurer)
        self.renderer = CardRenderer(self.session.settings, measurer)

        self.setWindowTitle("Card Zones")
        self._updating = False
        self._setup_ui()
        self._load_session_fields()

    # ------------------------------------------------------------------
    def _setup_ui(self):
        central = QWidget()
        root = QHBoxLayout(central)

        left = QVBoxLayout()
        header = QFormLayout()
        self.name_edit = QLineEdit()
        self.name_edit.textEdited.connect(self._on_name_edited)
        header.addRow("Template name", self.name_edit)

        self.front_only_check = QCheckBox("Front only")
        self.front_only_check.toggled.connect(self._on_front_only_toggled)
        header.addRow("", self.front_only_check)

        self.face_combo = QComboBox()
        self.face_combo.addItems([FRONT, BACK])
        self.face_combo.currentTextChanged.connect(self._on_face_changed)
        header.addRow("Face", self.face_combo)
        left.addLayout(header)

        self.canvas = ZoneCanvas(self.session)
        self.canvas.zoneSelected.connect(self._on_zone_selected)
        self.canvas.zonesChanged.connect(self.refresh_preview)
        left.addWidget(self.canvas, alignment=Qt.AlignCenter)

        buttons = QHBoxLayout()
        self.copy_to_back_button = QPushButton("Copy front → back")
        self.copy_to_back_button.clicked.connect(self._copy_front_to_back)
        buttons.addWidget(self.copy_to_back_button)
        self.copy_to_front_button = QPushButton("Copy back → front")
        self.copy_to_front_button.clicked.connect(self._copy_back_to_front)
        buttons.addWidget(self.copy_to_front_button)
        self.delete_button = QPushButton("Delete zone")
        self.delete_button.clicked.connect(self.canvas.delete_selected)
        buttons.addWidget(self.delete_button)
        left.addLayout(buttons)

        files = QHBoxLayout()
        self.open_button = QPushButton("Open…")
        self.open_button.clicked.connect(self._open_template)
        files.addWidget(self.open_button)
        self.save_button = QPushButton("Save…")
        self.save_button.clicked.connect(self._save_template)
        files.addWidget(self.save_button)
        files.addStretch(1)
        left.addLayout(files)
        root.addLayout(left)

        right = QVBoxLayout()
        self.binding_form = QFormLayout()
        self.zone_name_edit = QLineEdit()
        self.zone_name_edit.editingFinished.connect(self._on_zone_renamed)
        self.binding_form.addRow("Zone", self.zone_name_edit)
        self.content_type_combo = QComboBox()
        self.content_type_combo.addItems(list(CONTENT_TYPES))
        self.content_type_combo.currentTextChanged.connect(self._on_content_type_changed)
        self.binding_form.addRow("Content", self.content_type_combo)
        self.claim_edit = QLineEdit()
        self.claim_edit.editingFinished.connect(lambda: self._edit_binding("claim_path", self.claim_edit.text()))
        self.binding_form.addRow("Claim path", self.claim_edit)
        self.static_edit = QLineEdit()
        self.static_edit.editingFinished.connect(lambda: self._edit_binding("static_value", self.static_edit.text()))
        self.binding_form.addRow("Static text", self.static_edit)
        self.label_edit = QLineEdit()
        self.label_edit.editingFinished.connect(lambda: self._edit_binding("label", self.label_edit.text()))
        self.binding_form.addRow("Fallback label", self.label_edit)
        self.logo_edit = QLineEdit()
        self.logo_edit.editingFinished.connect(lambda: self._edit_binding("logo_uri", self.logo_edit.text()))
        self.binding_form.addRow("Logo URI", self.logo_edit)
        self.role_edit = QLineEdit()
        self.role_edit.setPlaceholderText("issuer")
        self.role_edit.editingFinished.connect(self._on_criteria_edited)
        self.binding_form.addRow("Asset role", self.role_edit)
        self.asset_type_edit = QLineEdit()
        self.asset_type_edit.setPlaceholderText("logo")
        self.asset_type_edit.editingFinished.connect(self._on_criteria_edited)
        self.binding_form.addRow("Asset type", self.asset_type_edit)
        self.provider_edit = QLineEdit()
        self.provider_edit.editingFinished.connect(self._on_criteria_edited)
        self.binding_form.addRow("Data provider", self.provider_edit)
        self.align_combo = QComboBox()
        self.align_combo.addItems(list(H_ALIGNMENTS))
        self.align_combo.currentTextChanged.connect(lambda v: self._edit_binding("alignment", v))
        self.binding_form.addRow("Horizontal", self.align_combo)
        self.valign_combo = QComboBox()
        self.valign_combo.addItems(list(V_ALIGNMENTS))
        self.valign_combo.currentTextChanged.connect(lambda v: self._edit_binding("vertical_alignment", v))
        self.binding_form.addRow("Vertical", self.valign_combo)
        settings = self.session.settings
        self.scale_spin = QDoubleSpinBox()
        self.scale_spin.setRange(settings.scale_min, settings.scale_max)
        self.scale_spin.setSingleStep(0.1)
        self.scale_spin.valueChanged.connect(lambda v: self._edit_binding("scale", v))
        self.binding_form.addRow("Scale", self.scale_spin)
        self.wrap_check = QCheckBox("Wrap text")
        self.wrap_check.toggled.connect(lambda v: self._edit_binding("text_wrap", v))
        self.binding_form.addRow("", self.wrap_check)
        self.reset_button = QPushButton("Reset binding")
        self.reset_button.clicked.connect(self._reset_binding)
        self.binding_form.addRow("", self.reset_button)
        right.addLayout(self.binding_form)

        self.mode_combo = QComboBox()
        self.mode_combo.addItems(list(VISIBILITY_MODES))
        self.mode_combo.setCurrentText(LABELS)
        self.mode_combo.currentTextChanged.connect(self.refresh_preview)
        right.addWidget(self.mode_combo)
        self.preview_label = QLabel()
        self.preview_label.setAlignment(Qt.AlignCenter)
        right.addWidget(self.preview_label)
        right.addStretch(1)
        root.addLayout(right)

        self.setCentralWidget(central)

    # ------------------------------------------------------------------
    def _load_session_fields(self):
        self._updating = True
        template = self.session.template
        self.name_edit.setText(template.name)
        self.front_only_check.setChecked(template.front_only)
        self.face_combo.setCurrentText(FRONT)
        self._updating = False
        self.canvas.set_face(FRONT)
        self._apply_front_only(template.front_only)
        self._on_zone_selected("")
        self.refresh_preview()

    def _apply_front_only(self, front_only: bool):
        self.copy_to_back_button.setEnabled(not front_only)
        self.copy_to_front_button.setEnabled(not front_only)
        index = self.face_combo.findText(BACK)
        self.face_combo.model().item(index).setEnabled(not front_only)
        if front_only and self.face_combo.currentText() == BACK:
            self.face_combo.setCurrentText(FRONT)

    def _on_name_edited(self, text: str):
        self.session.set_name(text)

    def _on_front_only_toggled(self, checked: bool):
        if self._updating:
            return
        self.session.set_front_only(checked)
        self._apply_front_only(checked)
        self.refresh_preview()

    def _on_face_changed(self, face: str):
        if self._updating:
            return
        if not self.canvas.set_face(face):
            self._updating = True
            self.face_combo.setCurrentText(self.canvas.face)
            self._updating = False
            return
        self.refresh_preview()

    def _copy_front_to_back(self):
        self.session.copy_front_to_back()
        self.canvas.update()
        self.refresh_preview()

    def _copy_back_to_front(self):
        self.session.copy_back_to_front()
        self.canvas.update()
        self.refresh_preview()

    # ------------------------------------------------------------------
    # binding panel
    # ------------------------------------------------------------------
    def _on_zone_selected(self, zone_id: str):
        zone = self.session.find_zone(self.canvas.face, zone_id or None)
        enabled = zone is not None
        for row in range(self.binding_form.rowCount()):
            item = self.binding_form.itemAt(row, QFormLayout.FieldRole)
            if item is not None and item.widget() is not None:
                item.widget().setEnabled(enabled)
        self.delete_button.setEnabled(enabled)
        if zone is None:
            return

        element = self.session.bindings.ensure(zone.id, zone.content_type)
        self._updating = True
        self.zone_name_edit.setText(zone.name)
        self.content_type_combo.setCurrentText(element.content_type)
        self.claim_edit.setText(element.claim_path or "")
        self.static_edit.setText(element.static_value or "")
        self.label_edit.setText(element.label or "")
        self.logo_edit.setText(element.logo_uri or "")
        criteria = element.asset_criteria
        self.role_edit.setText(criteria.entity_role if criteria else "")
        self.asset_type_edit.setText(criteria.asset_type if criteria else "")
        self.provider_edit.setText((criteria.data_provider_type or "") if criteria else "")
        self.align_combo.setCurrentText(element.alignment)
        self.valign_combo.setCurrentText(element.vertical_alignment)
        self.scale_spin.setValue(element.scale)
        self.wrap_check.setChecked(element.text_wrap)
        is_image = element.content_type == IMAGE
        self.claim_edit.setEnabled(not is_image)
        self.static_edit.setEnabled(not is_image)
        self.label_edit.setEnabled(not is_image)
        self.wrap_check.setEnabled(not is_image)
        self.logo_edit.setEnabled(is_image)
        self.role_edit.setEnabled(is_image)
        self.asset_type_edit.setEnabled(is_image)
        self.provider_edit.setEnabled(is_image)
        self._updating = False

    def _on_zone_renamed(self):
        zone_id = self.canvas.selected_zone_id()
        if zone_id and self.session.rename_zone(self.canvas.face, zone_id, self.zone_name_edit.text()):
            self.canvas.update()
            self.refresh_preview()

    def _on_content_type_changed(self, content_type: str):
        zone_id = self.canvas.selected_zone_id()
        if self._updating or not zone_id:
            return
        self.session.set_zone_content_type(self.canvas.face, zone_id, content_type)
        self._on_zone_selected(zone_id)
        self.canvas.update()
        self.refresh_preview()

    def _edit_binding(self, field: str, value):
        zone_id = self.canvas.selected_zone_id()
        if self._updating or not zone_id:
            return
        bindings = self.session.bindings
        setter = getattr(bindings, f"set_{field}")
        if isinstance(value, str):
            value = value or None
        if getattr(bindings.element(zone_id), field) == value:
            return
        try:
            setter(zone_id, value)
        except ValueError as e:
            QMessageBox.warning(self, "Binding", str(e))
            return
        if field == "logo_uri":
            self.resolver.invalidate(zone_id)
        self.session.dirty = True
        self._on_zone_selected(zone_id)
        self.refresh_preview()

    def _on_criteria_edited(self):
        role = self.role_edit.text().strip()
        asset_type = self.asset_type_edit.text().strip()
        if not role or not asset_type:
            return
        criteria = AssetCriteria(role, asset_type, self.provider_edit.text().strip() or None)
        self._edit_binding("asset_criteria", criteria)

    def _reset_binding(self):
        zone_id = self.canvas.selected_zone_id()
        if not zone_id:
            return
        self.compositor.request_reset(self.canvas.face, zone_id)
        answer = QMessageBox.question(self, "Reset binding", "Reset this zone's binding to its defaults?")
        if answer == QMessageBox.Yes:
            self.compositor.confirm_reset()
        else:
            self.compositor.cancel_reset()
        self._on_zone_selected(zone_id)
        self.refresh_preview()

    # ------------------------------------------------------------------
    # preview
    # ------------------------------------------------------------------
    def refresh_preview(self, *_):
        mode = self.mode_combo.currentText() or LABELS
        composed = self.compositor.compose_face(self.canvas.face, mode)
        image = self.renderer.render(composed)
        self.preview_label.setPixmap(QPixmap.fromImage(ImageQt(image)))
        if any(zone.pending for zone in composed.zones):
            self._resolve_pending_assets()

    def _resolve_pending_assets(self):
        if self.asset_thread is not None or self._assets_failed_once:
            return
        elements = [
            element
            for element in (self.session.bindings.get(zone.id) for zone in self.session.zones(self.canvas.face))
            if element is not None
        ]
        self.asset_thread = QThread()
        self.asset_worker = AssetResolveWorker(self.resolver, elements)
        self.asset_worker.moveToThread(self.asset_thread)
        self.asset_thread.started.connect(self.asset_worker.run)
        self.asset_worker.finished.connect(self._assets_resolved)
        self.asset_worker.failed.connect(self._assets_failed)
        self.asset_worker.finished.connect(self.asset_thread.quit)
        self.asset_worker.failed.connect(self.asset_thread.quit)
        self.asset_thread.finished.connect(self.asset_worker.deleteLater)
        self.asset_thread.finished.connect(self.asset_thread.deleteLater)
        self.asset_thread.finished.connect(self._asset_thread_finished)
        self.asset_thread.start()

    def _assets_resolved(self, results: dict):
        logger.debug("Resolved %d asset queries", len(results))

    def _assets_failed(self, message: str):
        self._assets_failed_once = True
        QMessageBox.warning(self, "Assets", message)

    def _asset_thread_finished(self):
        self.asset_thread = None
        self.asset_worker = None
        self.refresh_preview()

    def closeEvent(self, event):
        if self.asset_thread is not None:
            self.asset_thread.quit()
            self.asset_thread.wait()
        super().closeEvent(event)

    # ------------------------------------------------------------------
    # files
    # ------------------------------------------------------------------
    def _open_template(self):
        path, _ = QFileDialog.getOpenFileName(self, "Open template", "", "JSON (*.json)")
        if not path:
            return
        loader = TemplateLoader(path, settings=self.session.settings)
        try:
            session = loader.load_session()
        except (OSError, TemplateFormatError) as e:
            logger.error("Cannot open %s: %s", path, e)
            QMessageBox.critical(self, "Open template", str(e))
            return
        self.template_path = path
        self.set_session(session)

    def set_session(self, session: TemplateSession):
        self.session = session
        self.resolver.cache.clear()
        self.renderer.image_loader.clear_cache()
        self._assets_failed_once = False
        self.compositor.session = session
        self.canvas.set_session(session)
        self._load_session_fields()

    def _save_template(self):
        path = self.template_path
        if not path:
            path, _ = QFileDialog.getSaveFileName(self, "Save template", "", "JSON (*.json)")
            if not path:
                return
        try:
            TemplateLoader(path, settings=self.session.settings).save_session(self.session)
        except OSError as e:
            logger.error("Cannot save %s: %s", path, e)
            QMessageBox.critical(self, "Save template", str(e))
            return
        self.template_path = path

