"""Companion pairing and attribution overlay, independent of any GUI toolkit."""

from .attribution import (
    AttributionModel,
    AttributionPayloadError,
    Declaration,
    LineRecord,
    Rule,
    SourceFile,
    SourceRegistry,
)
from .color_assignment import DEFAULT_PALETTE, ColorAssignment, assign_color_slots
from .overlay import OVERWRITTEN_SLOT, DecorationSurface, LineSpan, OverlayEngine, owner_slot_id
from .pair_registry import DocumentPair, PairRegistry
from .synchronizer import CompanionSynchronizer, EditorHost, Region

__all__ = [
    "AttributionModel",
    "AttributionPayloadError",
    "ColorAssignment",
    "CompanionSynchronizer",
    "DEFAULT_PALETTE",
    "Declaration",
    "DecorationSurface",
    "DocumentPair",
    "EditorHost",
    "LineRecord",
    "LineSpan",
    "OVERWRITTEN_SLOT",
    "OverlayEngine",
    "PairRegistry",
    "Region",
    "Rule",
    "SourceFile",
    "SourceRegistry",
    "assign_color_slots",
    "owner_slot_id",
]
