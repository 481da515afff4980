import pytest

from csslens.core.attribution import SourceFile
from csslens.core.synchronizer import Region
from csslens.settings_store import JsonSettingsStore
from csslens.ui.editor_workspace import path_to_uri
from csslens.ui.main_window import MainWindow


@pytest.fixture
def window(qapp, tmp_path):
    settings = JsonSettingsStore(tmp_path / "settings.json")
    settings.load()
    win = MainWindow(settings)
    yield win
    win.controller.shutdown()
    win.workspace.close_all()
    win.deleteLater()
    qapp.processEvents()


def test_open_paths_skips_missing_files(window, tmp_path) -> None:
    page = tmp_path / "index.html"
    page.write_text("<p></p>\n", encoding="utf-8")

    window.open_paths([str(page), str(tmp_path / "missing.html")])

    assert window.workspace.documents_in_region(Region.PRIMARY) == [path_to_uri(str(page))]


def test_legend_lists_sources(window) -> None:
    window._show_legend("file:///m.css", [(0, SourceFile(1, "base.css", "/b.css")), (1, SourceFile(2, "a<b.css", ""))])

    text = window._legend_label.text()
    assert "base.css" in text
    assert "a&lt;b.css" in text
