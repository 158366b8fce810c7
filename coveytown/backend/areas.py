"""Conversation areas and the containment rules used for membership."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box centred on (x, y).

    Containment is half-open: the low edges belong to the box and the high
    edges do not, so a point on a boundary shared by two adjacent boxes is
    inside exactly one of them.
    """

    x: float
    y: float
    width: float
    height: float

    def contains(self, x: float, y: float) -> bool:
        half_width = self.width / 2
        half_height = self.height / 2
        return (
            self.x - half_width <= x < self.x + half_width
            and self.y - half_height <= y < self.y + half_height
        )


@dataclass(eq=False)
class ConversationArea:
    label: str
    topic: str
    bounding_box: BoundingBox
    occupants_by_id: list[str] = field(default_factory=list)

    def add_occupant(self, player_id: str) -> bool:
        if player_id in self.occupants_by_id:
            return False
        self.occupants_by_id.append(player_id)
        return True

    def remove_occupant(self, player_id: str) -> bool:
        if player_id not in self.occupants_by_id:
            return False
        self.occupants_by_id.remove(player_id)
        return True

    @property
    def is_empty(self) -> bool:
        return not self.occupants_by_id


def find_area_by_label(areas: Iterable[ConversationArea], label: str | None) -> ConversationArea | None:
    if label is None:
        return None
    for area in areas:
        if area.label == label:
            return area
    return None


def find_area_containing(areas: Iterable[ConversationArea], x: float, y: float) -> ConversationArea | None:
    """Return the first area, in insertion order, whose box contains (x, y)."""
    for area in areas:
        if area.bounding_box.contains(x, y):
            return area
    return None
