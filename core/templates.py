"""
Layout templates and structure limits per controller level
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from core.exceptions import InvalidTemplateException
from core.world import (
    CONTAINER,
    EXTENSION,
    EXTRACTOR,
    FACTORY,
    LAB,
    LINK,
    NUKER,
    OBSERVER,
    POWER_SPAWN,
    RAMPART,
    ROAD,
    SPAWN,
    STORAGE,
    TERMINAL,
    TOWER,
    WALL,
)

MAX_LEVEL = 8

# Index is the controller level, 0..8
STRUCTURE_LIMITS: Dict[str, Tuple[int, ...]] = {
    SPAWN: (0, 1, 1, 1, 1, 1, 1, 2, 3),
    EXTENSION: (0, 0, 5, 10, 20, 30, 40, 50, 60),
    LINK: (0, 0, 0, 0, 0, 2, 3, 4, 6),
    STORAGE: (0, 0, 0, 0, 1, 1, 1, 1, 1),
    TOWER: (0, 0, 0, 1, 1, 2, 2, 3, 6),
    OBSERVER: (0, 0, 0, 0, 0, 0, 0, 0, 1),
    POWER_SPAWN: (0, 0, 0, 0, 0, 0, 0, 0, 1),
    NUKER: (0, 0, 0, 0, 0, 0, 0, 0, 1),
    EXTRACTOR: (0, 0, 0, 0, 0, 0, 1, 1, 1),
    LAB: (0, 0, 0, 0, 0, 0, 3, 6, 10),
    TERMINAL: (0, 0, 0, 0, 0, 0, 1, 1, 1),
    FACTORY: (0, 0, 0, 0, 0, 0, 0, 1, 1),
    CONTAINER: (5, 5, 5, 5, 5, 5, 5, 5, 5),
    ROAD: (2500,) * 9,
    RAMPART: (0, 0) + (2500,) * 7,
    WALL: (0, 0) + (2500,) * 7,
}

BUILD_PRIORITY = {
    SPAWN: 100,
    TOWER: 95,
    EXTENSION: 80,
    STORAGE: 75,
    LINK: 65,
    TERMINAL: 60,
    EXTRACTOR: 55,
    LAB: 50,
    FACTORY: 45,
    POWER_SPAWN: 40,
    NUKER: 35,
    OBSERVER: 30,
    CONTAINER: 70,
}

# Everything except extensions, keyed by the level that unlocks it.
# Offsets are relative to the primary spawn and all sit on the even
# checkerboard so odd tiles stay free for walking.
FIXED_LAYOUT: Dict[int, List[Tuple[str, int, int]]] = {
    1: [(SPAWN, 0, 0)],
    3: [(TOWER, 2, 0)],
    4: [(STORAGE, 0, 2)],
    5: [(TOWER, -2, 0), (LINK, -2, 2)],
    6: [(TERMINAL, 2, 2), (LAB, 5, 5), (LAB, 5, 3), (LAB, 3, 5)],
    7: [
        (TOWER, 0, -2),
        (SPAWN, -4, 0),
        (FACTORY, 0, 4),
        (LAB, 6, 4),
        (LAB, 4, 6),
        (LAB, 6, 6),
    ],
    8: [
        (TOWER, 2, -2),
        (TOWER, -2, -2),
        (TOWER, 0, -4),
        (SPAWN, 4, 0),
        (LINK, 2, 4),
        (POWER_SPAWN, -4, 4),
        (NUKER, 4, -4),
        (OBSERVER, -4, -4),
        (LAB, 7, 5),
        (LAB, 5, 7),
        (LAB, 7, 7),
        (LAB, 7, 3),
    ],
}

# Kept free of extensions so the lab cluster can grow into it
LAB_BLOCK = (3, 7)

EXTENSION_SEARCH_RADIUS = 12

ADJACENT_OFFSETS = [
    (dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if (dx, dy) != (0, 0)
]


@dataclass(frozen=True)
class TemplateBuilding:
    structure_type: str
    dx: int
    dy: int
    level: int
    priority: int


def _clamp_level(level: int) -> int:
    return max(0, min(MAX_LEVEL, int(level)))


def limit_for(structure_type: str, level: int) -> int:
    limits = STRUCTURE_LIMITS.get(structure_type)
    if limits is None:
        return 0
    return limits[_clamp_level(level)]


def structure_limits(level: int) -> Dict[str, int]:
    return {stype: limit_for(stype, level) for stype in STRUCTURE_LIMITS}


def min_level_for(structure_type: str) -> Optional[int]:
    for level in range(MAX_LEVEL + 1):
        if limit_for(structure_type, level) > 0:
            return level
    return None


def reserved_offsets() -> set:
    """
    Offsets kept for fixed template buildings and the lab cluster
    """
    reserved = {(dx, dy) for entries in FIXED_LAYOUT.values() for _, dx, dy in entries}
    low, high = LAB_BLOCK
    for dx in range(low, high + 1):
        for dy in range(low, high + 1):
            reserved.add((dx, dy))
    return reserved


def _build_extension_slots() -> List[Tuple[int, int]]:
    reserved = reserved_offsets()
    slots = []
    for ring in range(2, EXTENSION_SEARCH_RADIUS + 1):
        ring_slots = []
        for dx in range(-ring, ring + 1):
            for dy in range(-ring, ring + 1):
                if max(abs(dx), abs(dy)) != ring:
                    continue
                if (dx + dy) % 2 != 0 or (dx, dy) in reserved:
                    continue
                ring_slots.append((dx, dy))
        ring_slots.sort(key=lambda offset: (abs(offset[0]) + abs(offset[1]), offset[1], offset[0]))
        slots.extend(ring_slots)
    return slots


EXTENSION_SLOTS = _build_extension_slots()


def extension_slots(skip: int = 0) -> List[Tuple[int, int]]:
    """
    Slot order used by the templates; dynamic fill continues past the
    template's last slot
    """
    return EXTENSION_SLOTS[skip:]


def template_for(level: int) -> List[TemplateBuilding]:
    """
    Buildings first unlocked at exactly this level
    """
    level = _clamp_level(level)
    entries = [
        TemplateBuilding(stype, dx, dy, level, BUILD_PRIORITY.get(stype, 10))
        for stype, dx, dy in FIXED_LAYOUT.get(level, [])
    ]
    before = limit_for(EXTENSION, level - 1) if level > 0 else 0
    now = limit_for(EXTENSION, level)
    for dx, dy in EXTENSION_SLOTS[before:now]:
        entries.append(TemplateBuilding(EXTENSION, dx, dy, level, BUILD_PRIORITY[EXTENSION]))
    return entries


def buildings_up_to(level: int) -> List[TemplateBuilding]:
    result = []
    for lvl in range(1, _clamp_level(level) + 1):
        result.extend(template_for(lvl))
    return result


def spawn_accessibility_score(template: Iterable[TemplateBuilding],
                              obstructed: Iterable[Tuple[int, int]] = ()) -> int:
    """
    Number of tiles around the anchor spawn the template leaves free.
    ``obstructed`` adds offsets that are blocked for other reasons, such as
    walls next to an actual spawn.
    """
    occupied = {(b.dx, b.dy) for b in template} | set(obstructed)
    return sum(1 for offset in ADJACENT_OFFSETS if offset not in occupied)


def count_by_type(template: Iterable[TemplateBuilding]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for building in template:
        counts[building.structure_type] = counts.get(building.structure_type, 0) + 1
    return counts


def validate_template(level: int, min_spawn_access: int = 4) -> None:
    template = buildings_up_to(level)
    for stype, count in count_by_type(template).items():
        if count > limit_for(stype, level):
            raise InvalidTemplateException(
                f"Level {level} template has {count} {stype}, limit is {limit_for(stype, level)}"
            )
    offsets = [(b.dx, b.dy) for b in template]
    if len(offsets) != len(set(offsets)):
        raise InvalidTemplateException(f"Level {level} template places two buildings on one tile")
    if level >= 1 and spawn_accessibility_score(template) < min_spawn_access:
        raise InvalidTemplateException(f"Level {level} template blocks the spawn")


__all__ = [
    "MAX_LEVEL",
    "STRUCTURE_LIMITS",
    "BUILD_PRIORITY",
    "TemplateBuilding",
    "limit_for",
    "structure_limits",
    "min_level_for",
    "reserved_offsets",
    "extension_slots",
    "template_for",
    "buildings_up_to",
    "spawn_accessibility_score",
    "count_by_type",
    "validate_template",
]
