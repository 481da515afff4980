"""Qt implementations of the synchronizer host and the decoration surface."""

from __future__ import annotations

import logging

from PySide6.QtCore import QObject, QTimer
from PySide6.QtGui import QColor, QTextCursor, QTextFormat
from PySide6.QtWidgets import QTextEdit

from csslens.core.color_assignment import DEFAULT_PALETTE
from csslens.core.overlay import OVERWRITTEN_SLOT, LineSpan, palette_index_from_slot
from csslens.core.synchronizer import OpenCallback, Region
from csslens.ui.editor_workspace import EditorWidget, EditorWorkspace

logger = logging.getLogger(__name__)


class QtEditorHost(QObject):
    """Drives an ``EditorWorkspace``; open completions arrive on a later event-loop turn."""

    def __init__(self, workspace: EditorWorkspace, parent: QObject | None = None) -> None:
        super().__init__(parent or workspace)
        self._workspace = workspace

    def open_document(self, uri: str, region: Region, *, preserve_focus: bool, on_opened: OpenCallback) -> None:
        def _complete() -> None:
            editor = self._workspace.open_document(uri, region, preserve_focus=preserve_focus)
            on_opened(editor is not None)

        QTimer.singleShot(0, _complete)

    def reveal_document(self, uri: str, region: Region, *, preserve_focus: bool) -> None:
        self._workspace.reveal_document(uri, region, preserve_focus=preserve_focus)

    def refresh_document(self, uri: str) -> None:
        self._workspace.reload_document(uri)

    def close_document(self, uri: str) -> None:
        self._workspace.close_document(uri)

    def documents_in_region(self, region: Region) -> list[str]:
        return self._workspace.documents_in_region(region)

    def active_document(self, region: Region) -> str | None:
        return self._workspace.active_document(region)

    def is_open(self, uri: str) -> bool:
        return self._workspace.is_open(uri)

    def is_visible(self, uri: str) -> bool:
        return self._workspace.is_visible(uri)


class QtDecorationSurface:
    """Paints overlay slots as ``QTextEdit.ExtraSelection`` on workspace editors."""

    def __init__(
        self,
        workspace: EditorWorkspace,
        *,
        palette: list[str] | tuple[str, ...] = DEFAULT_PALETTE,
        line_alpha: int = 56,
        overwritten_style: str = "strikethrough",
    ) -> None:
        self._workspace = workspace
        self._palette = [QColor(c) for c in palette] or [QColor(c) for c in DEFAULT_PALETTE]
        self._line_alpha = max(0, min(255, int(line_alpha)))
        self._overwritten_style = overwritten_style
        self._enabled = True

    @property
    def palette_size(self) -> int:
        return len(self._palette)

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = bool(enabled)

    def color_for_slot(self, slot_id: str) -> QColor | None:
        index = palette_index_from_slot(slot_id)
        if index is None:
            return None
        color = QColor(self._palette[index % len(self._palette)])
        color.setAlpha(self._line_alpha)
        return color

    def line_count(self, view_id: str) -> int | None:
        editor = self._workspace.editor_for_uri(view_id)
        if editor is None:
            return None
        return editor.text_line_count()

    def clear_all(self, view_id: str) -> None:
        editor = self._workspace.editor_for_uri(view_id)
        if editor is not None:
            editor.clear_attribution_selections()

    def paint(self, view_id: str, slot_id: str, spans: list[LineSpan]) -> None:
        if not self._enabled:
            return
        editor = self._workspace.editor_for_uri(view_id)
        if editor is None:
            logger.debug("Paint of %s skipped; %s is not open", slot_id, view_id)
            return
        if slot_id == OVERWRITTEN_SLOT:
            selections = self._overwritten_selections(editor, spans)
        else:
            color = self.color_for_slot(slot_id)
            if color is None:
                logger.warning("Unknown overlay slot %s", slot_id)
                return
            selections = self._line_selections(editor, spans, color)
        editor.add_attribution_selections(selections)

    @staticmethod
    def _blocks(editor: EditorWidget, spans: list[LineSpan]):
        document = editor.document()
        for span in spans:
            for line in range(span.first, span.last + 1):
                block = document.findBlockByNumber(line)
                if block.isValid():
                    yield block

    def _line_selections(self, editor: EditorWidget, spans: list[LineSpan], color: QColor) -> list[QTextEdit.ExtraSelection]:
        selections: list[QTextEdit.ExtraSelection] = []
        for block in self._blocks(editor, spans):
            sel = QTextEdit.ExtraSelection()
            cursor = QTextCursor(block)
            cursor.clearSelection()
            sel.cursor = cursor
            sel.format.setProperty(QTextFormat.FullWidthSelection, True)
            sel.format.setBackground(color)
            selections.append(sel)
        return selections

    def _overwritten_selections(self, editor: EditorWidget, spans: list[LineSpan]) -> list[QTextEdit.ExtraSelection]:
        selections: list[QTextEdit.ExtraSelection] = []
        for block in self._blocks(editor, spans):
            sel = QTextEdit.ExtraSelection()
            cursor = QTextCursor(block)
            cursor.movePosition(QTextCursor.StartOfBlock)
            cursor.movePosition(QTextCursor.EndOfBlock, QTextCursor.KeepAnchor)
            sel.cursor = cursor
            if self._overwritten_style == "italic":
                sel.format.setFontItalic(True)
            else:
                sel.format.setFontStrikeOut(True)
            selections.append(sel)
        return selections
