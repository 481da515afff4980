"""Owner-to-palette-slot assignment for one render pass."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from csslens.core.attribution import AttributionModel

logger = logging.getLogger(__name__)

DEFAULT_PALETTE: tuple[str, ...] = (
    "#E5534B",
    "#4C9AFF",
    "#57AB5A",
    "#D4A72C",
    "#B083F0",
    "#39C5CF",
    "#E0823D",
    "#C96198",
    "#8DDB8C",
    "#96A0AA",
)


@dataclass(frozen=True)
class ColorAssignment:
    palette_size: int
    slots: dict[int, int] = field(default_factory=dict)

    def slot_for(self, owner_id: int | None) -> int | None:
        if owner_id is None:
            return None
        return self.slots.get(owner_id)

    @property
    def overflowed(self) -> bool:
        return len(self.slots) > self.palette_size

    def owners_sharing(self, slot: int) -> list[int]:
        return [owner for owner, owner_slot in self.slots.items() if owner_slot == slot]


def assign_color_slots(model: AttributionModel, palette_size: int = len(DEFAULT_PALETTE)) -> ColorAssignment:
    """Map each line owner to ``first-seen index % palette_size``.

    Stable for a given model only; two snapshots of the same companion may
    color an owner differently when first-seen order changes. With more owners
    than slots, colors are reused and owners become visually ambiguous.
    """
    size = int(palette_size)
    if size <= 0:
        raise ValueError(f"palette_size must be positive, got {palette_size!r}")

    slots = {owner: index % size for index, owner in enumerate(model.owner_ids())}
    assignment = ColorAssignment(palette_size=size, slots=slots)
    if assignment.overflowed:
        logger.debug("%d owners share a %d-color palette; colors are reused", len(slots), size)
    return assignment
