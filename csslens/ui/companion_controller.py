"""Controller wiring the backend client, the editor workspace and the companion core."""

from __future__ import annotations

import logging

from PySide6.QtCore import QObject, Signal

from csslens.core.overlay import OverlayEngine
from csslens.core.synchronizer import CompanionSynchronizer, Region
from csslens.lsp.lsp_client import LspClient
from csslens.lsp.protocol import SHOW_COMPANION_METHOD, ShowCompanionRequest
from csslens.settings_store import JsonSettingsStore
from csslens.ui.editor_workspace import EditorWorkspace
from csslens.ui.qt_host import QtDecorationSurface, QtEditorHost

logger = logging.getLogger(__name__)

MARKUP_SUFFIXES = (".html", ".htm", ".xhtml")


class CompanionController(QObject):
    legendChanged = Signal(str, object)  # companion uri, list[(slot, SourceFile)]
    statusMessage = Signal(str)

    def __init__(
        self,
        workspace: EditorWorkspace,
        settings: JsonSettingsStore,
        client: LspClient | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent or workspace)
        self.workspace = workspace
        self.settings = settings
        self.client = client

        self.surface = QtDecorationSurface(
            workspace,
            palette=settings.palette(),
            line_alpha=int(settings.get("overlay.line_alpha", 56)),
            overwritten_style=str(settings.get("overlay.overwritten_style", "strikethrough")),
        )
        self.surface.set_enabled(bool(settings.get("overlay.enabled", True)))
        self.overlay = OverlayEngine(
            self.surface,
            palette_size=self.surface.palette_size,
            on_render=self._emit_legend,
        )
        self.host = QtEditorHost(workspace, self)
        self.synchronizer = CompanionSynchronizer(self.host, self.overlay)

        workspace.set_placement_guard(self.synchronizer.placement_for)
        workspace.set_line_describer(self.overlay.describe_line)
        workspace.documentOpened.connect(self._on_document_opened)
        workspace.documentClosed.connect(self._on_document_closed)
        workspace.activeDocumentChanged.connect(self._on_active_document_changed)
        workspace.documentTextChanged.connect(self._on_document_text_changed)

        if client is not None:
            client.register_request_handler(SHOW_COMPANION_METHOD, self.handle_show_companion)
            client.statusMessage.connect(self.statusMessage.emit)

    # -------- backend --------

    def handle_show_companion(self, params: object) -> None:
        request = ShowCompanionRequest.from_params(params)
        logger.debug(
            "Companion %s: %d sources, %d lines",
            request.companion_uri,
            len(request.model.sources),
            request.model.line_count,
        )
        self.synchronizer.show_companion(request.companion_uri, request.model)
        return None

    def _emit_legend(self, uri: str) -> None:
        self.legendChanged.emit(uri, self.overlay.legend(uri))

    # -------- workspace events --------

    def _is_markup(self, uri: str) -> bool:
        return uri.lower().endswith(MARKUP_SUFFIXES)

    def _on_document_opened(self, uri: str, region: Region) -> None:
        self.synchronizer.document_opened(uri, region)
        if self.client is not None and region is Region.PRIMARY and self._is_markup(uri):
            editor = self.workspace.editor_for_uri(uri)
            if editor is not None:
                self.client.did_open(uri=uri, language_id="html", text=editor.toPlainText())

    def _on_document_closed(self, uri: str) -> None:
        self.synchronizer.document_closed(uri)
        if self.client is not None:
            self.client.did_close(uri=uri)

    def _on_active_document_changed(self, uri: str, region: Region) -> None:
        self.synchronizer.active_view_changed(uri, region)
        if self.overlay.has_render(uri):
            self._emit_legend(uri)

    def _on_document_text_changed(self, uri: str) -> None:
        if self.synchronizer.registry.pair_for_companion(uri) is not None:
            self.synchronizer.companion_edited(uri)
            return
        if self.client is not None and self.client.is_tracking(uri):
            editor = self.workspace.editor_for_uri(uri)
            if editor is not None:
                self.client.did_change(uri=uri, text=editor.toPlainText())

    def shutdown(self) -> None:
        self.synchronizer.teardown()
        if self.client is not None:
            self.client.stop()
