"""Value types shared between the planner and the host world.

Stored plans only ever hold plain ``Position`` values. Anything that needs
to ask the world about a tile goes through ``rehydrate`` first, so a plan
loaded from disk behaves the same as one built in this process.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


ROOM_SIZE = 50
MIN_BUILD = 1
MAX_BUILD = ROOM_SIZE - 2

SPAWN = "spawn"
EXTENSION = "extension"
ROAD = "road"
CONTAINER = "container"
RAMPART = "rampart"
WALL = "constructedWall"
TOWER = "tower"
STORAGE = "storage"
LINK = "link"
TERMINAL = "terminal"
LAB = "lab"
FACTORY = "factory"
POWER_SPAWN = "powerSpawn"
NUKER = "nuker"
OBSERVER = "observer"
EXTRACTOR = "extractor"

# these can share a tile with anything walkable
PASSABLE_STRUCTURES = frozenset({ROAD, CONTAINER, RAMPART})


class ErrorKind(Enum):
    INVALID_TARGET = "invalid_target"
    FULL = "full"
    RCL_NOT_ENOUGH = "rcl_not_enough"
    NOT_OWNER = "not_owner"
    INVALID_ARGS = "invalid_args"
    UNKNOWN = "unknown"

    @property
    def is_capacity(self) -> bool:
        return self in (ErrorKind.FULL, ErrorKind.RCL_NOT_ENOUGH)


@dataclass(frozen=True)
class Position:
    x: int
    y: int
    room: str

    def key(self) -> str:
        return f"{self.x},{self.y}"

    def offset(self, dx: int, dy: int) -> "Position":
        return Position(self.x + dx, self.y + dy, self.room)

    def in_room(self) -> bool:
        return 0 <= self.x < ROOM_SIZE and 0 <= self.y < ROOM_SIZE

    def in_build_bounds(self) -> bool:
        return MIN_BUILD <= self.x <= MAX_BUILD and MIN_BUILD <= self.y <= MAX_BUILD

    def range_to(self, other: "Position") -> int:
        return max(abs(self.x - other.x), abs(self.y - other.y))

    def to_dict(self) -> Dict[str, object]:
        return {"x": self.x, "y": self.y, "room": self.room}

    @classmethod
    def from_dict(cls, data: Dict) -> "Position":
        return cls(int(data["x"]), int(data["y"]), str(data["room"]))

    @classmethod
    def from_key(cls, key: str, room: str) -> "Position":
        x, y = key.split(",")
        return cls(int(x), int(y), room)


@dataclass(frozen=True)
class Terrain:
    walkable: bool
    swamp: bool = False


@dataclass
class ConstructionResult:
    ok: bool
    request_id: Optional[str] = None
    error: Optional[ErrorKind] = None

    @classmethod
    def success(cls, request_id: Optional[str] = None) -> "ConstructionResult":
        return cls(True, request_id, None)

    @classmethod
    def failure(cls, error: ErrorKind) -> "ConstructionResult":
        return cls(False, None, error)


class TileHandle:
    """Live view of one tile; never stored in a plan."""

    def __init__(self, position: Position, world):
        self.position = position
        self.world = world

    def terrain(self) -> Terrain:
        return self.world.terrain_at(self.position.room, self.position.x, self.position.y)

    def structures(self) -> List:
        return list(self.world.structures_at(self.position.room, self.position.x, self.position.y) or [])

    def markers(self) -> List:
        return list(
            self.world.construction_markers_at(self.position.room, self.position.x, self.position.y) or []
        )

    def units(self) -> List:
        return list(self.world.units_at(self.position.room, self.position.x, self.position.y) or [])

    def structure_types(self) -> List[str]:
        return [s.structure_type for s in self.structures()]

    def marker_types(self) -> List[str]:
        return [m.structure_type for m in self.markers()]

    def has_structure(self, structure_type: str) -> bool:
        return structure_type in self.structure_types()

    def has_marker(self, structure_type: str) -> bool:
        return structure_type in self.marker_types()

    def request(self, structure_type: str) -> ConstructionResult:
        result = self.world.request_construction(
            self.position.room, self.position.x, self.position.y, structure_type
        )
        if result is None:
            return ConstructionResult.failure(ErrorKind.UNKNOWN)
        return result


def rehydrate(position: Position, world) -> TileHandle:
    return TileHandle(position, world)


__all__ = [
    "ROOM_SIZE",
    "MIN_BUILD",
    "MAX_BUILD",
    "PASSABLE_STRUCTURES",
    "ErrorKind",
    "Position",
    "Terrain",
    "ConstructionResult",
    "TileHandle",
    "rehydrate",
]
