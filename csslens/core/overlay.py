"""Attribution overlay: paints owner colors and overwrite markers on a companion view.

Rendering is always clear-then-paint. The engine never touches document text;
it only talks to a ``DecorationSurface``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol

from csslens.core.attribution import AttributionModel, SourceFile
from csslens.core.color_assignment import DEFAULT_PALETTE, ColorAssignment, assign_color_slots

logger = logging.getLogger(__name__)

OWNER_SLOT_PREFIX = "owner-"
OVERWRITTEN_SLOT = "overwritten"


def owner_slot_id(palette_index: int) -> str:
    return f"{OWNER_SLOT_PREFIX}{int(palette_index)}"


def palette_index_from_slot(slot_id: str) -> int | None:
    text = str(slot_id or "")
    if not text.startswith(OWNER_SLOT_PREFIX):
        return None
    try:
        return int(text[len(OWNER_SLOT_PREFIX):])
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class LineSpan:
    """Inclusive range of whole lines, 0-based."""

    first: int
    last: int

    def __contains__(self, line: object) -> bool:
        return isinstance(line, int) and self.first <= line <= self.last


def merge_line_spans(lines: Iterable[int]) -> list[LineSpan]:
    spans: list[LineSpan] = []
    for line in sorted(set(lines)):
        if spans and spans[-1].last + 1 == line:
            spans[-1] = LineSpan(spans[-1].first, line)
        else:
            spans.append(LineSpan(line, line))
    return spans


class DecorationSurface(Protocol):
    def paint(self, view_id: str, slot_id: str, spans: list[LineSpan]) -> None: ...

    def clear_all(self, view_id: str) -> None: ...

    def line_count(self, view_id: str) -> int | None: ...


@dataclass(frozen=True)
class RenderResult:
    view_id: str
    painted: dict[str, tuple[LineSpan, ...]]
    skipped_lines: tuple[int, ...] = ()


@dataclass
class _ViewState:
    model: AttributionModel
    assignment: ColorAssignment


class OverlayEngine:
    def __init__(
        self,
        surface: DecorationSurface,
        *,
        palette_size: int = len(DEFAULT_PALETTE),
        on_render: Callable[[str], None] | None = None,
    ) -> None:
        if int(palette_size) <= 0:
            raise ValueError(f"palette_size must be positive, got {palette_size!r}")
        self._surface = surface
        self._palette_size = int(palette_size)
        self._views: dict[str, _ViewState] = {}
        self._on_render = on_render

    @property
    def palette_size(self) -> int:
        return self._palette_size

    def set_palette_size(self, palette_size: int) -> None:
        size = int(palette_size)
        if size <= 0:
            raise ValueError(f"palette_size must be positive, got {palette_size!r}")
        if size == self._palette_size:
            return
        self._palette_size = size
        for view_id, state in list(self._views.items()):
            self.render(view_id, state.model)

    def has_render(self, view_id: str) -> bool:
        return view_id in self._views

    def model_for(self, view_id: str) -> AttributionModel | None:
        state = self._views.get(view_id)
        return state.model if state is not None else None

    def assignment_for(self, view_id: str) -> ColorAssignment | None:
        state = self._views.get(view_id)
        return state.assignment if state is not None else None

    def render(self, view_id: str, model: AttributionModel) -> RenderResult | None:
        line_count = self._surface.line_count(view_id)
        if line_count is None:
            logger.debug("No view for %s; overlay not rendered", view_id)
            self._views.pop(view_id, None)
            return None

        if not model.is_current_for(line_count):
            logger.warning(
                "Attribution model for %s covers %d lines but the view has %d",
                view_id,
                model.line_count,
                line_count,
            )

        assignment = assign_color_slots(model, self._palette_size)
        lines_by_slot: dict[int, list[int]] = {}
        skipped: set[int] = set()
        for record in model.lines:
            slot = assignment.slot_for(record.owner_id)
            if slot is None:
                continue
            if not 0 <= record.line_number < line_count:
                skipped.add(record.line_number)
                continue
            lines_by_slot.setdefault(slot, []).append(record.line_number)

        overwritten_lines: set[int] = set()
        for decl in model.overwritten_declarations():
            if decl.source_line is None:
                continue
            if not 0 <= decl.source_line < line_count:
                skipped.add(decl.source_line)
                continue
            overwritten_lines.add(decl.source_line)

        if skipped:
            logger.warning("Skipped %d out-of-range lines while rendering %s", len(skipped), view_id)

        painted: dict[str, tuple[LineSpan, ...]] = {}
        self._surface.clear_all(view_id)
        for slot in sorted(lines_by_slot):
            spans = merge_line_spans(lines_by_slot[slot])
            slot_id = owner_slot_id(slot)
            self._surface.paint(view_id, slot_id, spans)
            painted[slot_id] = tuple(spans)
        if overwritten_lines:
            spans = merge_line_spans(overwritten_lines)
            self._surface.paint(view_id, OVERWRITTEN_SLOT, spans)
            painted[OVERWRITTEN_SLOT] = tuple(spans)

        self._views[view_id] = _ViewState(model=model, assignment=assignment)
        if self._on_render is not None:
            self._on_render(view_id)
        return RenderResult(view_id=view_id, painted=painted, skipped_lines=tuple(sorted(skipped)))

    def clear(self, view_id: str) -> None:
        self._views.pop(view_id, None)
        if self._surface.line_count(view_id) is None:
            return
        self._surface.clear_all(view_id)

    def forget(self, view_id: str) -> None:
        self._views.pop(view_id, None)

    def legend(self, view_id: str) -> list[tuple[int, SourceFile]]:
        state = self._views.get(view_id)
        if state is None:
            return []
        rows: list[tuple[int, SourceFile]] = []
        for owner, slot in state.assignment.slots.items():
            source = state.model.source(owner)
            if source is not None:
                rows.append((slot, source))
        return rows

    def describe_line(self, view_id: str, line: int) -> str:
        state = self._views.get(view_id)
        if state is None:
            return ""
        parts: list[str] = []
        source = state.model.source(state.model.owner_for_line(line))
        if source is not None:
            parts.append(f"{source.display_name} ({source.absolute_path})" if source.absolute_path else source.display_name)
        for decl in state.model.declarations_on_line(line):
            if decl.overwritten is not True:
                continue
            owner = state.model.source(decl.owner_id)
            origin = f" from {owner.display_name}" if owner is not None else ""
            parts.append(f"{decl.property_name}: {decl.value}{origin} is overwritten by a later source")
        return "\n".join(parts)
