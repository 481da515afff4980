from pathlib import Path
from typing import Callable

import pytest

from csslens.ui.editor_workspace import EditorWorkspace, path_to_uri


@pytest.fixture
def workspace(qapp):
    ws = EditorWorkspace()
    yield ws
    ws.close_all()
    ws.deleteLater()
    qapp.processEvents()


@pytest.fixture
def make_doc(tmp_path: Path) -> Callable[[str, str], str]:
    """Write ``text`` to ``name`` under tmp_path and return its file uri."""

    def _make(name: str, text: str) -> str:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path_to_uri(str(path))

    return _make
