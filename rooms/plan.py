"""Persisted per-room plan records."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from core.exceptions import InvalidJSONException, InvalidPlanException
from core.filemanager import FileManager
from core.world import Position


class PlanStatus(Enum):
    PLANNING = "planning"
    BUILDING = "building"
    READY = "ready"


class PathType(Enum):
    SOURCE = "source"
    CONTROLLER = "controller"
    MINERAL = "mineral"
    EXIT = "exit"
    INTERNAL = "internal"


@dataclass
class Building:
    structure_type: str
    pos: Position
    priority: int
    level_required: int
    placed: bool = False
    construction_request_id: Optional[str] = None
    ever_placed: bool = False
    reason: str = ""

    def mark_placed(self, request_id: Optional[str] = None) -> None:
        self.placed = True
        self.ever_placed = True
        if request_id is not None:
            self.construction_request_id = request_id

    def mark_missing(self) -> None:
        self.placed = False
        self.construction_request_id = None

    def to_dict(self) -> Dict:
        return {
            "structure_type": self.structure_type,
            "pos": self.pos.to_dict(),
            "priority": self.priority,
            "level_required": self.level_required,
            "placed": self.placed,
            "construction_request_id": self.construction_request_id,
            "ever_placed": self.ever_placed,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Building":
        return cls(
            structure_type=str(data["structure_type"]),
            pos=Position.from_dict(data["pos"]),
            priority=int(data.get("priority", 0)),
            level_required=int(data.get("level_required", 0)),
            placed=bool(data.get("placed", False)),
            construction_request_id=data.get("construction_request_id"),
            ever_placed=bool(data.get("ever_placed", False)),
            reason=str(data.get("reason", "")),
        )


@dataclass
class RoadSegment:
    pos: Position
    priority: int
    traffic_score: float
    path_type: PathType
    placed: bool = False
    construction_request_id: Optional[str] = None
    ever_placed: bool = False

    def mark_placed(self, request_id: Optional[str] = None) -> None:
        self.placed = True
        self.ever_placed = True
        if request_id is not None:
            self.construction_request_id = request_id

    def mark_missing(self) -> None:
        self.placed = False
        self.construction_request_id = None

    def to_dict(self) -> Dict:
        return {
            "pos": self.pos.to_dict(),
            "priority": self.priority,
            "traffic_score": self.traffic_score,
            "path_type": self.path_type.value,
            "placed": self.placed,
            "construction_request_id": self.construction_request_id,
            "ever_placed": self.ever_placed,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "RoadSegment":
        return cls(
            pos=Position.from_dict(data["pos"]),
            priority=int(data.get("priority", 0)),
            traffic_score=float(data.get("traffic_score", 0)),
            path_type=PathType(data.get("path_type", PathType.INTERNAL.value)),
            placed=bool(data.get("placed", False)),
            construction_request_id=data.get("construction_request_id"),
            ever_placed=bool(data.get("ever_placed", False)),
        )


@dataclass
class Plan:
    room: str
    plan_level: int = 0
    buildings: List[Building] = field(default_factory=list)
    roads: List[RoadSegment] = field(default_factory=list)
    status: PlanStatus = PlanStatus.PLANNING
    priority: int = 0
    last_updated: int = 0
    deferred: List[Building] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    def count_by_type(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for building in self.buildings:
            counts[building.structure_type] = counts.get(building.structure_type, 0) + 1
        return counts

    def building_at(self, pos: Position, structure_type: Optional[str] = None) -> Optional[Building]:
        for building in self.buildings:
            if building.pos == pos and (structure_type is None or building.structure_type == structure_type):
                return building
        return None

    def road_at(self, pos: Position) -> Optional[RoadSegment]:
        for road in self.roads:
            if road.pos == pos:
                return road
        return None

    def clear(self) -> None:
        self.buildings = []
        self.roads = []
        self.deferred = []
        self.failed = {}
        self.status = PlanStatus.PLANNING

    def to_dict(self) -> Dict:
        return {
            "room": self.room,
            "plan_level": self.plan_level,
            "buildings": [b.to_dict() for b in self.buildings],
            "roads": [r.to_dict() for r in self.roads],
            "status": self.status.value,
            "priority": self.priority,
            "last_updated": self.last_updated,
            "deferred": [b.to_dict() for b in self.deferred],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Plan":
        try:
            return cls(
                room=str(data["room"]),
                plan_level=int(data.get("plan_level", 0)),
                buildings=[Building.from_dict(b) for b in data.get("buildings", [])],
                roads=[RoadSegment.from_dict(r) for r in data.get("roads", [])],
                status=PlanStatus(data.get("status", PlanStatus.PLANNING.value)),
                priority=int(data.get("priority", 0)),
                last_updated=int(data.get("last_updated", 0)),
                deferred=[Building.from_dict(b) for b in data.get("deferred", [])],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPlanException(f"Malformed plan record: {e}") from e


@dataclass
class RoomRecord:
    room: str
    plan: Optional[Plan] = None
    traffic: Dict[str, Dict[str, float]] = field(default_factory=dict)
    last_traffic_decay: int = 0
    last_replacement_scan: int = 0

    def to_dict(self) -> Dict:
        return {
            "room": self.room,
            "plan": self.plan.to_dict() if self.plan else None,
            "traffic": self.traffic,
            "last_traffic_decay": self.last_traffic_decay,
            "last_replacement_scan": self.last_replacement_scan,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "RoomRecord":
        plan_data = data.get("plan")
        try:
            return cls(
                room=str(data["room"]),
                plan=Plan.from_dict(plan_data) if plan_data else None,
                traffic={key: dict(value) for key, value in (data.get("traffic") or {}).items()},
                last_traffic_decay=int(data.get("last_traffic_decay", 0)),
                last_replacement_scan=int(data.get("last_replacement_scan", 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPlanException(f"Malformed room record: {e}") from e


class PlanStore:
    """
    Room records keyed by room name, optionally mirrored to
    ``<cache_dir>/<room>.json``
    """

    def __init__(self, cache_dir: Optional[str] = None):
        self.cache_dir = cache_dir
        self.records: Dict[str, RoomRecord] = {}
        self.logger = logging.getLogger("PlanStore")

    def _path(self, room: str) -> str:
        return os.path.join(self.cache_dir, f"{room}.json")

    def record(self, room: str) -> RoomRecord:
        if room not in self.records:
            loaded = self.load(room)
            self.records[room] = loaded if loaded else RoomRecord(room)
        return self.records[room]

    def plan(self, room: str) -> Optional[Plan]:
        return self.record(room).plan

    def set_plan(self, room: str, plan: Plan) -> None:
        self.record(room).plan = plan

    def rooms(self) -> List[str]:
        return sorted(self.records)

    def load(self, room: str) -> Optional[RoomRecord]:
        if not self.cache_dir:
            return None
        try:
            data = FileManager.load_json_file(self._path(room))
            if not data:
                return None
            return RoomRecord.from_dict(data)
        except (InvalidJSONException, InvalidPlanException):
            self.logger.warning("Discarding unreadable plan cache for %s", room)
            return None

    def save(self, room: str) -> None:
        if not self.cache_dir or room not in self.records:
            return
        FileManager.save_json_file(self.records[room].to_dict(), self._path(room))

    def cached_rooms(self) -> List[str]:
        if not self.cache_dir or not FileManager.path_exists(self.cache_dir):
            return []
        return [name[:-5] for name in FileManager.list_directory(self.cache_dir, ends_with=".json")]

    def forget(self, room: str) -> None:
        self.records.pop(room, None)
        if self.cache_dir:
            FileManager.remove_file(self._path(room))
