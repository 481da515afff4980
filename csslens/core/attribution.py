"""Merged-stylesheet attribution model delivered by the analysis backend.

The backend resolves the cascade; this module only decodes its payload into
immutable snapshots. A snapshot is valid until the companion document's text
changes, after which it must be replaced by a fresh one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping


# The backend reports declarations from <style> blocks inside the markup as owner 0.
INLINE_SOURCE_ID = 0
INLINE_SOURCE_NAME = "inline <style>"


class AttributionPayloadError(ValueError):
    """Raised when an attribution payload cannot be decoded."""


@dataclass(frozen=True, slots=True)
class SourceFile:
    id: int
    display_name: str
    absolute_path: str


@dataclass(frozen=True, slots=True)
class Declaration:
    owner_id: int | None
    property_name: str
    values: tuple[str, ...] = ()
    source_line: int | None = None
    overwritten: bool | None = None

    @property
    def value(self) -> str:
        # A property repeated inside one rule keeps every value; the last one applies.
        return self.values[-1] if self.values else ""


@dataclass(frozen=True, slots=True)
class Rule:
    owner_id: int | None
    selector: str
    declarations: tuple[Declaration, ...] = ()

    def effective_owner(self) -> int | None:
        if self.owner_id is not None:
            return self.owner_id
        owners = {decl.owner_id for decl in self.declarations if decl.owner_id is not None}
        if len(owners) == 1:
            return next(iter(owners))
        return None

    @property
    def is_mixed(self) -> bool:
        return self.owner_id is None and self.effective_owner() is None


@dataclass(frozen=True, slots=True)
class LineRecord:
    line_number: int
    owner_id: int | None = None


class SourceRegistry:
    """Contributing source files of one synthesized document, keyed by id."""

    def __init__(self, sources: Iterable[SourceFile] = ()) -> None:
        self._by_id: dict[int, SourceFile] = {}
        for source in sources:
            self.add(source)

    def add(self, source: SourceFile) -> None:
        existing = self._by_id.get(source.id)
        if existing is not None and existing != source:
            raise AttributionPayloadError(f"Duplicate source id {source.id}: {existing.display_name!r} / {source.display_name!r}")
        self._by_id[source.id] = source

    def get(self, source_id: int | None) -> SourceFile | None:
        if source_id is None:
            return None
        return self._by_id.get(source_id)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._by_id

    def __iter__(self):
        return iter(sorted(self._by_id.values(), key=lambda item: item.id))

    def __len__(self) -> int:
        return len(self._by_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SourceRegistry):
            return NotImplemented
        return self._by_id == other._by_id

    __hash__ = None

    def ids(self) -> frozenset[int]:
        return frozenset(self._by_id)


@dataclass(frozen=True)
class AttributionModel:
    """Snapshot of a merged stylesheet with per-line and per-declaration owners."""

    sources: SourceRegistry
    rules: tuple[Rule, ...] = ()
    lines: tuple[LineRecord, ...] = ()
    _declarations_by_line: dict[int, tuple[Declaration, ...]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _owner_by_line: dict[int, int | None] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        known = self.sources.ids()
        for owner in self._referenced_owner_ids():
            if owner not in known:
                raise AttributionPayloadError(f"Owner id {owner} is not a registered source")

        by_line: dict[int, list[Declaration]] = {}
        for rule in self.rules:
            for decl in rule.declarations:
                if decl.source_line is not None:
                    by_line.setdefault(decl.source_line, []).append(decl)
        self._declarations_by_line.update({line: tuple(decls) for line, decls in by_line.items()})
        self._owner_by_line.update({record.line_number: record.owner_id for record in self.lines})

    def _referenced_owner_ids(self) -> set[int]:
        owners: set[int] = set()
        for rule in self.rules:
            if rule.owner_id is not None:
                owners.add(rule.owner_id)
            owners.update(decl.owner_id for decl in rule.declarations if decl.owner_id is not None)
        owners.update(record.owner_id for record in self.lines if record.owner_id is not None)
        return owners

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def source(self, owner_id: int | None) -> SourceFile | None:
        return self.sources.get(owner_id)

    def owner_ids(self) -> list[int]:
        """Distinct line owners in first-seen order."""
        seen: dict[int, None] = {}
        for record in self.lines:
            if record.owner_id is not None and record.owner_id not in seen:
                seen[record.owner_id] = None
        return list(seen)

    def owner_for_line(self, line_number: int) -> int | None:
        return self._owner_by_line.get(int(line_number))

    def declarations_on_line(self, line_number: int) -> tuple[Declaration, ...]:
        return self._declarations_by_line.get(int(line_number), ())

    def overwritten_declarations(self) -> list[Declaration]:
        return [decl for rule in self.rules for decl in rule.declarations if decl.overwritten is True]

    def is_current_for(self, line_count: int) -> bool:
        return self.line_count == int(line_count)

    @classmethod
    def from_payload(cls, payload: object) -> "AttributionModel":
        if not isinstance(payload, Mapping):
            raise AttributionPayloadError(f"Attribution payload must be an object, found {type(payload).__name__}")

        sources = SourceRegistry(_decode_source(item) for item in _as_list(payload, "sources", "imported_sheets"))
        rules = tuple(_decode_rule(item) for item in _as_list(payload, "rules", "styles"))
        lines = tuple(_decode_line(item, index) for index, item in enumerate(_as_list(payload, "lines")))
        if INLINE_SOURCE_ID not in sources and _references_owner(INLINE_SOURCE_ID, rules, lines):
            sources.add(SourceFile(id=INLINE_SOURCE_ID, display_name=INLINE_SOURCE_NAME, absolute_path=""))
        return cls(sources=sources, rules=rules, lines=lines)


# -------- payload decoding --------


def _references_owner(owner_id: int, rules: tuple[Rule, ...], lines: tuple[LineRecord, ...]) -> bool:
    if any(record.owner_id == owner_id for record in lines):
        return True
    for rule in rules:
        if rule.owner_id == owner_id or any(decl.owner_id == owner_id for decl in rule.declarations):
            return True
    return False


def _pick(item: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in item:
            return item[key]
    return None


def _as_list(payload: Mapping[str, Any], *keys: str) -> list[Any]:
    raw = _pick(payload, *keys)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise AttributionPayloadError(f"'{keys[0]}' must be a list, found {type(raw).__name__}")
    return raw


def _require_mapping(item: object, what: str) -> Mapping[str, Any]:
    if not isinstance(item, Mapping):
        raise AttributionPayloadError(f"{what} entry must be an object, found {type(item).__name__}")
    return item


def _optional_int(value: object, what: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise AttributionPayloadError(f"{what} must be an integer, found bool")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise AttributionPayloadError(f"{what} must be an integer, found {value!r}") from exc


def _optional_bool(value: object, what: str) -> bool | None:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise AttributionPayloadError(f"{what} must be a boolean, found {value!r}")
    return value


def _decode_source(item: object) -> SourceFile:
    data = _require_mapping(item, "Source")
    source_id = _optional_int(_pick(data, "id"), "Source id")
    if source_id is None:
        raise AttributionPayloadError("Source entry is missing 'id'")
    path = str(_pick(data, "absolutePath", "absolute_path") or "")
    name = str(_pick(data, "displayName", "display_name", "file_name") or "").strip()
    if not name and path:
        name = path.replace("\\", "/").rsplit("/", 1)[-1]
    return SourceFile(id=source_id, display_name=name or f"source {source_id}", absolute_path=path)


def _decode_declaration(item: object) -> Declaration:
    data = _require_mapping(item, "Declaration")
    name = str(_pick(data, "propertyName", "property_name", "name") or "").strip()
    if not name:
        raise AttributionPayloadError("Declaration entry is missing a property name")
    raw_values = _pick(data, "values")
    if raw_values is None:
        single = _pick(data, "value")
        values: tuple[str, ...] = () if single is None else (str(single),)
    elif isinstance(raw_values, list):
        values = tuple(str(v) for v in raw_values)
    else:
        raise AttributionPayloadError(f"Declaration '{name}' values must be a list")
    return Declaration(
        owner_id=_optional_int(_pick(data, "ownerId", "owner_id", "source"), f"Declaration '{name}' owner"),
        property_name=name,
        values=values,
        source_line=_optional_int(_pick(data, "sourceLine", "source_line", "line"), f"Declaration '{name}' line"),
        overwritten=_optional_bool(
            _pick(data, "overwritten", "isOverwritten", "is_overwritten"), f"Declaration '{name}' overwritten flag"
        ),
    )


def _decode_rule(item: object) -> Rule:
    data = _require_mapping(item, "Rule")
    selector = str(_pick(data, "selector", "tag") or "").strip()
    raw_decls = _pick(data, "declarations", "attributes") or []
    if not isinstance(raw_decls, list):
        raise AttributionPayloadError(f"Rule '{selector}' declarations must be a list")
    return Rule(
        owner_id=_optional_int(_pick(data, "ownerId", "owner_id", "source"), f"Rule '{selector}' owner"),
        selector=selector,
        declarations=tuple(_decode_declaration(decl) for decl in raw_decls),
    )


def _decode_line(item: object, index: int) -> LineRecord:
    data = _require_mapping(item, "Line")
    line_number = _optional_int(_pick(data, "lineNumber", "line_number", "line"), "Line number")
    return LineRecord(
        line_number=index if line_number is None else line_number,
        owner_id=_optional_int(_pick(data, "ownerId", "owner_id", "source"), f"Line {index} owner"),
    )
