from pathlib import Path

from csslens.core.synchronizer import Region
from csslens.ui.editor_workspace import uri_to_path


class TestOpenDocument:
    def test_opens_in_requested_region(self, workspace, make_doc) -> None:
        uri = make_doc("index.html", "<p>hi</p>\n")
        opened: list[tuple] = []
        workspace.documentOpened.connect(lambda u, r: opened.append((u, r)))

        editor = workspace.open_document(uri, Region.PRIMARY)

        assert editor is not None
        assert editor.toPlainText() == "<p>hi</p>\n"
        assert opened == [(uri, Region.PRIMARY)]
        assert workspace.documents_in_region(Region.PRIMARY) == [uri]
        assert workspace.active_document(Region.PRIMARY) == uri
        assert workspace.region_of(uri) is Region.PRIMARY

    def test_missing_file_reports_status(self, workspace, tmp_path: Path) -> None:
        messages: list[str] = []
        workspace.statusMessage.connect(messages.append)

        editor = workspace.open_document((tmp_path / "gone.html").as_uri(), Region.PRIMARY)

        assert editor is None
        assert len(messages) == 1
        assert workspace.documents_in_region(Region.PRIMARY) == []

    def test_reopen_reuses_editor(self, workspace, make_doc) -> None:
        uri = make_doc("a.html", "x")
        opened: list[str] = []
        workspace.documentOpened.connect(lambda u, _r: opened.append(u))

        first = workspace.open_document(uri)
        second = workspace.open_document(uri)

        assert first is second
        assert opened == [uri]

    def test_placement_guard_redirects(self, workspace, make_doc) -> None:
        uri = make_doc("notes.css", "a {}\n")
        workspace.set_placement_guard(lambda _uri, _region: Region.PRIMARY)

        workspace.open_document(uri, Region.SECONDARY)

        assert workspace.region_of(uri) is Region.PRIMARY
        assert workspace.documents_in_region(Region.SECONDARY) == []

    def test_preserve_focus_still_shows_tab(self, workspace, make_doc) -> None:
        first = make_doc("a.html", "a")
        second = make_doc("b.html", "b")
        workspace.open_document(first)

        workspace.open_document(second, preserve_focus=True)

        assert workspace.is_visible(second)
        assert not workspace.is_visible(first)
        assert workspace.focused_document() != second


class TestDocumentChanges:
    def test_close_emits_and_forgets(self, workspace, make_doc) -> None:
        uri = make_doc("a.html", "a")
        workspace.open_document(uri)
        closed: list[str] = []
        workspace.documentClosed.connect(closed.append)

        assert workspace.close_document(uri)

        assert closed == [uri]
        assert not workspace.is_open(uri)
        assert not workspace.close_document(uri)

    def test_edit_emits_text_changed(self, workspace, make_doc) -> None:
        uri = make_doc("a.html", "a")
        editor = workspace.open_document(uri)
        changed: list[str] = []
        workspace.documentTextChanged.connect(changed.append)

        editor.insertPlainText("b")

        assert changed and changed[-1] == uri

    def test_reload_picks_up_disk_changes(self, workspace, make_doc) -> None:
        uri = make_doc("m.css", "a {}\n")
        editor = workspace.open_document(uri)

        assert not workspace.reload_document(uri)
        Path(uri_to_path(uri)).write_text("b {}\nc {}\n", encoding="utf-8")

        assert workspace.reload_document(uri)
        assert editor.toPlainText() == "b {}\nc {}\n"
        assert not workspace.reload_document("file:///not/open.css")


def test_line_count_ignores_trailing_newline(workspace, make_doc) -> None:
    with_newline = workspace.open_document(make_doc("a.css", "a\nb\n"))
    without_newline = workspace.open_document(make_doc("b.css", "a\nb"))

    assert with_newline.text_line_count() == 2
    assert without_newline.text_line_count() == 2
