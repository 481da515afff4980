"""Shared fixtures and fakes for tests."""

import os
from pathlib import Path
from typing import Callable

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from csslens.core.attribution import AttributionModel, Declaration, LineRecord, Rule, SourceFile, SourceRegistry
from csslens.core.overlay import LineSpan, OverlayEngine
from csslens.core.synchronizer import CompanionSynchronizer, OpenCallback, Region

_TESTS_ROOT = Path(__file__).parent

PRIMARY_URI = "file:///work/index.html"


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "qt" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        rel = Path(str(item.fspath)).relative_to(_TESTS_ROOT)
        if rel.parts and rel.parts[0] == "qt":
            item.add_marker(pytest.mark.qt)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Fakes for the synchronizer host and the decoration surface
# ---------------------------------------------------------------------------


class FakeHost:
    """In-memory editor host; opens stay pending until ``complete_open``."""

    def __init__(self) -> None:
        self.regions: dict[Region, list[str]] = {Region.PRIMARY: [], Region.SECONDARY: []}
        self.active: dict[Region, str | None] = {Region.PRIMARY: None, Region.SECONDARY: None}
        self.pending_opens: list[tuple[str, Region, OpenCallback]] = []
        self.calls: list[tuple] = []

    def add(self, uri: str, region: Region = Region.PRIMARY, *, active: bool = True) -> None:
        if uri not in self.regions[region]:
            self.regions[region].append(uri)
        if active:
            self.active[region] = uri

    def complete_open(self, index: int = 0, *, ok: bool = True) -> None:
        uri, region, on_opened = self.pending_opens.pop(index)
        if ok:
            self.add(uri, region)
        on_opened(ok)

    def calls_named(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    def _region_of(self, uri: str) -> Region | None:
        for region, uris in self.regions.items():
            if uri in uris:
                return region
        return None

    # EditorHost

    def open_document(self, uri: str, region: Region, *, preserve_focus: bool, on_opened: OpenCallback) -> None:
        self.calls.append(("open", uri, region, preserve_focus))
        self.pending_opens.append((uri, region, on_opened))

    def reveal_document(self, uri: str, region: Region, *, preserve_focus: bool) -> None:
        self.calls.append(("reveal", uri, region, preserve_focus))
        actual = self._region_of(uri)
        if actual is not None:
            self.active[actual] = uri

    def refresh_document(self, uri: str) -> None:
        self.calls.append(("refresh", uri))

    def close_document(self, uri: str) -> None:
        self.calls.append(("close", uri))
        region = self._region_of(uri)
        if region is None:
            return
        self.regions[region].remove(uri)
        if self.active[region] == uri:
            self.active[region] = self.regions[region][-1] if self.regions[region] else None

    def documents_in_region(self, region: Region) -> list[str]:
        return list(self.regions[region])

    def active_document(self, region: Region) -> str | None:
        return self.active[region]

    def is_open(self, uri: str) -> bool:
        return self._region_of(uri) is not None

    def is_visible(self, uri: str) -> bool:
        region = self._region_of(uri)
        return region is not None and self.active[region] == uri


class FakeSurface:
    """Records clear/paint calls; a view exists once it has a line count."""

    def __init__(self) -> None:
        self.lines: dict[str, int] = {}
        self.ops: list[tuple] = []
        self.painted: dict[str, dict[str, list[LineSpan]]] = {}

    def paint(self, view_id: str, slot_id: str, spans: list[LineSpan]) -> None:
        self.ops.append(("paint", view_id, slot_id, tuple(spans)))
        self.painted.setdefault(view_id, {})[slot_id] = list(spans)

    def clear_all(self, view_id: str) -> None:
        self.ops.append(("clear", view_id))
        self.painted[view_id] = {}

    def line_count(self, view_id: str) -> int | None:
        return self.lines.get(view_id)


def build_model(line_owners: list[int | None], *, overwritten_lines: tuple[int, ...] = ()) -> AttributionModel:
    owners = sorted({owner for owner in line_owners if owner is not None})
    sources = SourceRegistry(SourceFile(id=o, display_name=f"s{o}.css", absolute_path=f"/css/s{o}.css") for o in owners)
    decls = tuple(
        Declaration(
            owner_id=line_owners[line],
            property_name="color",
            values=("red",),
            source_line=line,
            overwritten=True,
        )
        for line in overwritten_lines
    )
    rules = (Rule(owner_id=None, selector="p", declarations=decls),) if decls else ()
    lines = tuple(LineRecord(line_number=i, owner_id=owner) for i, owner in enumerate(line_owners))
    return AttributionModel(sources=sources, rules=rules, lines=lines)


@pytest.fixture
def model_factory() -> Callable[..., AttributionModel]:
    return build_model


@pytest.fixture
def host() -> FakeHost:
    fake = FakeHost()
    fake.add(PRIMARY_URI, Region.PRIMARY)
    return fake


@pytest.fixture
def empty_host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def overlay(surface: FakeSurface) -> OverlayEngine:
    return OverlayEngine(surface, palette_size=4)


@pytest.fixture
def synchronizer(host: FakeHost, overlay: OverlayEngine) -> CompanionSynchronizer:
    return CompanionSynchronizer(host, overlay)


# ---------------------------------------------------------------------------
# Qt
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance() or QApplication([])
    yield app
