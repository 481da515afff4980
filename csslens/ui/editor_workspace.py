"""Two-region editor workspace: primary documents on the left, companions on the right."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable

from PySide6.QtCore import QEvent, Qt, QUrl, Signal
from PySide6.QtGui import QColor, QFont, QFontDatabase, QTextFormat
from PySide6.QtWidgets import (
    QPlainTextEdit,
    QSizePolicy,
    QSplitter,
    QTabWidget,
    QTextEdit,
    QToolTip,
    QVBoxLayout,
    QWidget,
)

from csslens.core.synchronizer import Region

logger = logging.getLogger(__name__)

PlacementGuard = Callable[[str, Region], Region]
LineDescriber = Callable[[str, int], str]


def uri_to_path(uri: str) -> str:
    url = QUrl(uri)
    if url.isLocalFile():
        return str(url.toLocalFile())
    return str(uri or "")


def path_to_uri(path: str) -> str:
    return QUrl.fromLocalFile(os.path.abspath(path)).toString()


@dataclass
class DocumentRecord:
    uri: str
    region: Region
    editor: "EditorWidget"


class EditorWidget(QPlainTextEdit):
    FONT_FALLBACKS = (
        "Cascadia Code",
        "Consolas",
        "JetBrains Mono",
        "Fira Code",
        "Courier New",
        "Monospace",
    )

    focused = Signal(object)

    def __init__(self, uri: str, *, font_size: int = 10, font_family: str | None = None, parent=None):
        super().__init__(parent)
        self.uri = uri
        self._attribution_selections: list[QTextEdit.ExtraSelection] = []
        self._line_describer: LineDescriber | None = None

        self.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        font = QFont(self._resolve_font_family(font_family))
        font.setPointSize(max(1, int(font_size)))
        self.setFont(font)
        self.cursorPositionChanged.connect(self._rebuild_extra_selections)

    @classmethod
    def _resolve_font_family(cls, preferred: str | None) -> str:
        text = str(preferred or "").strip()
        families = set(QFontDatabase.families())
        if text and text in families:
            return text
        for candidate in cls.FONT_FALLBACKS:
            if candidate in families:
                return candidate
        return text or "Monospace"

    def display_name(self) -> str:
        return os.path.basename(uri_to_path(self.uri)) or self.uri

    def load_from_uri(self) -> bool:
        path = uri_to_path(self.uri)
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return False
        self.setPlainText(text)
        self.document().setModified(False)
        return True

    def text_line_count(self) -> int:
        """Lines of text; a trailing newline does not start another line."""
        count = self.document().blockCount()
        if count > 1 and not self.document().lastBlock().text():
            count -= 1
        return count

    def set_line_describer(self, describer: LineDescriber | None) -> None:
        self._line_describer = describer

    # -------- attribution selections --------

    def set_attribution_selections(self, selections: list[QTextEdit.ExtraSelection]) -> None:
        self._attribution_selections = list(selections)
        self._rebuild_extra_selections()

    def add_attribution_selections(self, selections: list[QTextEdit.ExtraSelection]) -> None:
        self._attribution_selections.extend(selections)
        self._rebuild_extra_selections()

    def attribution_selections(self) -> list[QTextEdit.ExtraSelection]:
        return list(self._attribution_selections)

    def clear_attribution_selections(self) -> None:
        self._attribution_selections = []
        self._rebuild_extra_selections()

    def _rebuild_extra_selections(self) -> None:
        extra = list(self._attribution_selections)
        if not self.isReadOnly():
            selection = QTextEdit.ExtraSelection()
            line_color = QColor(self.palette().base().color())
            line_color = line_color.lighter(130) if line_color.lightness() < 128 else line_color.darker(112)
            line_color.setAlpha(140)
            selection.format.setBackground(line_color)
            selection.format.setProperty(QTextFormat.FullWidthSelection, True)
            selection.cursor = self.textCursor()
            selection.cursor.clearSelection()
            extra.append(selection)
        self.setExtraSelections(extra)

    def focusInEvent(self, event):
        super().focusInEvent(event)
        self.focused.emit(self)

    def event(self, event):
        if event.type() == QEvent.ToolTip and self._line_describer is not None:
            cursor = self.cursorForPosition(self.viewport().mapFromGlobal(event.globalPos()))
            text = self._line_describer(self.uri, cursor.blockNumber())
            if text:
                QToolTip.showText(event.globalPos(), text, self)
            else:
                QToolTip.hideText()
            return True
        return super().event(event)


class EditorTabs(QTabWidget):
    def __init__(self, workspace: "EditorWorkspace", region: Region, parent=None):
        super().__init__(parent)
        self.workspace = workspace
        self.region = region
        self.setTabsClosable(True)
        self.setMovable(True)
        self.setDocumentMode(True)
        self.setUsesScrollButtons(True)
        self.tabCloseRequested.connect(self._on_tab_close_requested)
        self.currentChanged.connect(self._on_current_changed)

    def editors(self) -> list[EditorWidget]:
        out: list[EditorWidget] = []
        for idx in range(self.count()):
            widget = self.widget(idx)
            if isinstance(widget, EditorWidget):
                out.append(widget)
        return out

    def current_editor(self) -> EditorWidget | None:
        widget = self.currentWidget()
        return widget if isinstance(widget, EditorWidget) else None

    def _on_tab_close_requested(self, index: int) -> None:
        widget = self.widget(index)
        if isinstance(widget, EditorWidget):
            self.workspace.close_document(widget.uri)

    def _on_current_changed(self, _index: int) -> None:
        editor = self.current_editor()
        if editor is not None and editor.hasFocus():
            self.workspace.mark_active(editor)


class EditorWorkspace(QWidget):
    documentOpened = Signal(str, object)  # uri, Region
    documentClosed = Signal(str)
    activeDocumentChanged = Signal(str, object)  # uri, Region
    documentTextChanged = Signal(str)
    statusMessage = Signal(str)

    def __init__(self, parent=None, *, font_size: int = 10, font_family: str | None = None):
        super().__init__(parent)
        self.setContentsMargins(0, 0, 0, 0)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)

        self._documents: dict[str, DocumentRecord] = {}
        self._font_size = max(1, int(font_size))
        self._font_family = font_family or None
        self._placement_guard: PlacementGuard | None = None
        self._line_describer: LineDescriber | None = None
        self._active_uri: str | None = None

        self.root_splitter = QSplitter(Qt.Horizontal, self)
        self.root_splitter.setChildrenCollapsible(False)
        self.root_splitter.setHandleWidth(6)
        self._tabs = {
            Region.PRIMARY: EditorTabs(self, Region.PRIMARY, self.root_splitter),
            Region.SECONDARY: EditorTabs(self, Region.SECONDARY, self.root_splitter),
        }
        for tabs in self._tabs.values():
            self.root_splitter.addWidget(tabs)
        self.root_splitter.setStretchFactor(0, 3)
        self.root_splitter.setStretchFactor(1, 2)

        lay = QVBoxLayout(self)
        lay.setContentsMargins(0, 0, 0, 0)
        lay.addWidget(self.root_splitter)

    def set_placement_guard(self, guard: PlacementGuard | None) -> None:
        self._placement_guard = guard

    def set_line_describer(self, describer: LineDescriber | None) -> None:
        self._line_describer = describer
        for record in self._documents.values():
            record.editor.set_line_describer(describer)

    def tabs_for(self, region: Region) -> EditorTabs:
        return self._tabs[region]

    # -------- queries --------

    def editor_for_uri(self, uri: str) -> EditorWidget | None:
        record = self._documents.get(uri)
        return record.editor if record is not None else None

    def region_of(self, uri: str) -> Region | None:
        record = self._documents.get(uri)
        return record.region if record is not None else None

    def documents_in_region(self, region: Region) -> list[str]:
        return [editor.uri for editor in self._tabs[region].editors()]

    def active_document(self, region: Region) -> str | None:
        editor = self._tabs[region].current_editor()
        return editor.uri if editor is not None else None

    def focused_document(self) -> str | None:
        return self._active_uri

    def is_open(self, uri: str) -> bool:
        return uri in self._documents

    def is_visible(self, uri: str) -> bool:
        record = self._documents.get(uri)
        if record is None:
            return False
        return self._tabs[record.region].current_editor() is record.editor

    # -------- commands --------

    def open_document(self, uri: str, region: Region = Region.PRIMARY, *, preserve_focus: bool = False) -> EditorWidget | None:
        target = region
        if self._placement_guard is not None:
            target = self._placement_guard(uri, region)
            if target is not region:
                logger.debug("Redirected %s from %s to %s", uri, region.name, target.name)

        record = self._documents.get(uri)
        if record is not None:
            self.reveal_document(uri, record.region, preserve_focus=preserve_focus)
            return record.editor

        editor = EditorWidget(uri, font_size=self._font_size, font_family=self._font_family)
        if not editor.load_from_uri():
            editor.deleteLater()
            self.statusMessage.emit(f"Could not open {uri_to_path(uri)}")
            return None
        editor.set_line_describer(self._line_describer)
        editor.focused.connect(self.mark_active)
        editor.textChanged.connect(lambda ed=editor: self.documentTextChanged.emit(ed.uri))

        tabs = self._tabs[target]
        idx = tabs.addTab(editor, editor.display_name())
        tabs.setTabToolTip(idx, uri_to_path(uri))
        self._documents[uri] = DocumentRecord(uri=uri, region=target, editor=editor)
        self._show_in_tabs(tabs, editor, preserve_focus=preserve_focus)
        self.documentOpened.emit(uri, target)
        return editor

    def reveal_document(self, uri: str, region: Region | None = None, *, preserve_focus: bool = True) -> bool:
        record = self._documents.get(uri)
        if record is None:
            return False
        if region is not None and region is not record.region:
            logger.debug("%s lives in %s, not %s", uri, record.region.name, region.name)
        self._show_in_tabs(self._tabs[record.region], record.editor, preserve_focus=preserve_focus)
        return True

    def reload_document(self, uri: str) -> bool:
        """Re-read a document from disk when its text changed there."""
        record = self._documents.get(uri)
        if record is None:
            return False
        path = uri_to_path(uri)
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as exc:
            logger.warning("Could not reload %s: %s", path, exc)
            return False
        if text == record.editor.toPlainText():
            return False
        record.editor.setPlainText(text)
        record.editor.document().setModified(False)
        return True

    def close_document(self, uri: str) -> bool:
        record = self._documents.pop(uri, None)
        if record is None:
            return False
        tabs = self._tabs[record.region]
        idx = tabs.indexOf(record.editor)
        if idx >= 0:
            tabs.removeTab(idx)
        if self._active_uri == uri:
            self._active_uri = None
        record.editor.blockSignals(True)
        record.editor.deleteLater()
        self.documentClosed.emit(uri)
        return True

    def close_all(self) -> None:
        for uri in list(self._documents):
            self.close_document(uri)

    def mark_active(self, editor: EditorWidget) -> None:
        record = self._documents.get(editor.uri)
        if record is None or record.editor is not editor:
            return
        if self._active_uri == editor.uri:
            return
        self._active_uri = editor.uri
        self.activeDocumentChanged.emit(editor.uri, record.region)

    def _show_in_tabs(self, tabs: EditorTabs, editor: EditorWidget, *, preserve_focus: bool) -> None:
        blocker = tabs.blockSignals(True)
        try:
            tabs.setCurrentWidget(editor)
        finally:
            tabs.blockSignals(blocker)
        if not preserve_focus:
            editor.setFocus(Qt.OtherFocusReason)
            self.mark_active(editor)
