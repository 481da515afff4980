from __future__ import annotations

import html
import os

from PySide6.QtGui import QAction, QCloseEvent, QKeySequence
from PySide6.QtWidgets import QFileDialog, QLabel, QMainWindow

from csslens.core.overlay import owner_slot_id
from csslens.core.synchronizer import Region
from csslens.lsp.lsp_client import LspClient
from csslens.settings_store import JsonSettingsStore
from csslens.ui.companion_controller import CompanionController
from csslens.ui.editor_workspace import EditorWorkspace, path_to_uri


class MainWindow(QMainWindow):
    APP_NAME = "csslens"

    def __init__(self, settings: JsonSettingsStore, client: LspClient | None = None, parent=None):
        super().__init__(parent)
        self.settings = settings
        self.client = client
        self.setWindowTitle(self.APP_NAME)
        self.resize(1280, 800)

        self.workspace = EditorWorkspace(
            self,
            font_size=int(settings.get("editor.font_size", 10)),
            font_family=str(settings.get("editor.font_family", "") or "") or None,
        )
        self.setCentralWidget(self.workspace)
        self.controller = CompanionController(self.workspace, settings, client, self)

        self._legend_label = QLabel(self)
        self.statusBar().addPermanentWidget(self._legend_label)
        self.controller.legendChanged.connect(self._show_legend)
        self.controller.statusMessage.connect(lambda m: self.statusBar().showMessage(m, 2500))
        self.workspace.statusMessage.connect(lambda m: self.statusBar().showMessage(m, 2500))

        open_action = QAction("&Open...", self)
        open_action.setShortcut(QKeySequence.Open)
        open_action.triggered.connect(self._prompt_open)
        self.menuBar().addMenu("&File").addAction(open_action)

        if settings.last_error:
            self.statusBar().showMessage(settings.last_error, 6000)
        else:
            self.statusBar().showMessage("Ready")

    def open_paths(self, paths: list[str]) -> None:
        for path in paths:
            if os.path.isfile(path):
                self.workspace.open_document(path_to_uri(path), Region.PRIMARY)

    def _prompt_open(self) -> None:
        paths, _ = QFileDialog.getOpenFileNames(self, "Open markup", os.getcwd(), "Markup (*.html *.htm *.xhtml);;All files (*)")
        self.open_paths(paths)

    def _show_legend(self, _uri: str, rows: object) -> None:
        entries: list[str] = []
        for slot, source in rows if isinstance(rows, list) else []:
            color = self.controller.surface.color_for_slot(owner_slot_id(slot))
            swatch = color.name() if color is not None else "#888888"
            entries.append(f'<span style="color:{swatch}">&#9632;</span> {html.escape(source.display_name)}')
        self._legend_label.setText("&nbsp;&nbsp;".join(entries))

    def closeEvent(self, event: QCloseEvent):
        self.controller.shutdown()
        super().closeEvent(event)
