"""Drives planning, construction and repair detection for every owned room."""

from __future__ import annotations

import copy
import logging
from typing import Dict, List, Optional

from core import templates
from core.configmanager import ConfigManager
from core.settings import load_settings
from rooms.basebuilder import BaseLayoutPlanner
from rooms.plan import Plan, PlanStatus, PlanStore, RoomRecord
from rooms.replacement import StructureReplacementManager
from rooms.roadplanner import RoadPlanner
from rooms.terrain import TerrainAnalysis, TerrainAnalyzer
from rooms.traffic import TrafficAnalyzer


class RoomManager:
    """Per-tick entry point; one call to ``run`` handles every owned room."""

    def __init__(self, world, store: Optional[PlanStore] = None, settings: Optional[Dict] = None,
                 config: Optional[Dict] = None, config_manager: Optional[ConfigManager] = None):
        self.world = world
        self.config_manager = config_manager
        if config is None and config_manager is not None:
            config = config_manager.get_config()
        self.config = config or {}
        self.settings = settings if settings is not None else load_settings(config)
        self.store = store if store is not None else PlanStore(self.settings["cache_dir"])
        self.logger = logging.getLogger("RoomManager")

        self.terrain = TerrainAnalyzer(world, self.settings)
        self.traffic = TrafficAnalyzer(world, self.settings)
        self.builder = BaseLayoutPlanner(world, self.settings)
        self.roads = RoadPlanner(world, self.settings, self.traffic)
        self.replacement = StructureReplacementManager(world)

        for level in range(1, templates.MAX_LEVEL + 1):
            templates.validate_template(level, self.settings["min_spawn_access"])

    @classmethod
    def from_config_file(cls, world, config_path: str = "config.json") -> "RoomManager":
        return cls(world, config_manager=ConfigManager(config_path))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(self, tick: int) -> None:
        owned = list(self.world.owned_rooms())
        if tick % self.settings["planning_cadence"] == 0:
            self.forget_lost_rooms(owned)
        for room in owned:
            if not self.room_enabled(room):
                self.logger.debug("Planning disabled for room %s", room)
                continue
            try:
                self.process_room(room, tick)
                self.store.save(room)
            except Exception as exc:
                self.logger.exception("Planning failed for room %s: %s", room, exc)

    def process_room(self, room: str, tick: int) -> None:
        record = self.store.record(room)
        level = int(self.world.controller_level(room) or 0)

        self._track_traffic(room, record, tick)

        if record.plan is None:
            record.plan = Plan(room=room, status=PlanStatus.PLANNING, last_updated=tick)
            self.logger.info("Created empty plan for room %s", room)
        plan = record.plan

        if plan.plan_level != level or self.builder.has_invalid_structure_counts(plan, level):
            self.replan(room, record, level, tick)
            return
        terrain = self.terrain.analyze(room, tick)

        planned = False
        if tick % self.settings["planning_cadence"] == 0:
            if self.should_update_building_plan(plan, level, tick):
                self.update_buildings(room, record, terrain, level, tick)
                planned = True
            elif self.should_update_road_plan(plan, record, terrain):
                self.update_roads(room, record, terrain)
                planned = True

        if not planned and tick % self.settings["construction_cadence"] == 0:
            self.place_pending(room, record, level, tick)

        if tick - record.last_replacement_scan >= self.settings["replacement_cadence"]:
            record.plan = self.replacement.scan(room, copy.deepcopy(record.plan))
            record.last_replacement_scan = tick

    def replan(self, room: str, record: RoomRecord, level: int, tick: int) -> None:
        plan = record.plan
        if plan.plan_level != level:
            self.logger.info("Room %s changed from level %d to %d, replanning", room, plan.plan_level, level)
        else:
            self.logger.warning(
                "Room %s plan exceeds structure limits %s, replanning",
                room, self.builder.invalid_structure_counts(plan, level),
            )

        self.terrain.invalidate(room)
        terrain = self.terrain.analyze(room, tick)
        working = copy.deepcopy(plan)
        roads = working.roads
        working.clear()
        self.builder.plan_or_update(room, terrain, level, working, tick=tick)
        # segments keep their history; ones under new buildings are dropped
        working.roads = roads
        self.roads.update_road_plan(room, record, terrain, working)
        record.plan = working

    def should_update_building_plan(self, plan: Plan, level: int, tick: int) -> bool:
        if not plan.buildings or plan.plan_level != level:
            return True
        max_age = self.settings["planning_cadence"] * self.settings["stale_plan_factor"]
        return tick - plan.last_updated > max_age

    def should_update_road_plan(self, plan: Plan, record: RoomRecord, terrain: TerrainAnalysis) -> bool:
        if not plan.roads:
            return True
        if len(record.traffic) < self.settings["min_traffic_data_points"]:
            return False
        return bool(self.roads.recommended_road_positions(record, plan, terrain))

    def update_buildings(self, room: str, record: RoomRecord, terrain: TerrainAnalysis, level: int,
                         tick: int) -> None:
        working = copy.deepcopy(record.plan)
        self.builder.plan_or_update(room, terrain, level, working, tick=tick)
        record.plan = working

    def update_roads(self, room: str, record: RoomRecord, terrain: TerrainAnalysis) -> None:
        working = copy.deepcopy(record.plan)
        self.roads.update_road_plan(room, record, terrain, working)
        record.plan = working

    def place_pending(self, room: str, record: RoomRecord, level: int, tick: int) -> int:
        """
        Tops up construction requests between planning passes
        """
        working = copy.deepcopy(record.plan)
        self.builder.reconcile(working)
        placed = self.builder.place_construction_requests(room, working, level)
        placed += self.roads.place_construction_requests(room, working.roads)
        self.builder.update_plan_status(working, level, self.terrain.analyze(room, tick))
        record.plan = working
        return placed

    def forget_lost_rooms(self, owned) -> List[str]:
        """
        Drops plans, traffic and cached files of rooms that are no longer owned
        """
        owned = set(owned)
        lost = sorted((set(self.store.rooms()) | set(self.store.cached_rooms())) - owned)
        for room in lost:
            self.logger.info("Room %s is no longer owned, dropping its plan", room)
            self.store.forget(room)
            self.terrain.invalidate(room)
        return lost

    def room_enabled(self, room: str) -> bool:
        rooms = self.config.get("rooms") or {}
        return bool((rooms.get(room) or {}).get("enabled", True))

    def set_room_enabled(self, room: str, enabled: bool) -> None:
        if self.config_manager is None:
            self.logger.warning("No config manager, cannot change room %s", room)
            return
        self.config_manager.update_room_config(room, "enabled", bool(enabled))
        self.config = self.config_manager.get_config()

    def status(self, room: str) -> Dict[str, object]:
        record = self.store.record(room)
        plan = record.plan
        if plan is None:
            return {"room": room, "status": None}
        return {
            "room": room,
            "level": plan.plan_level,
            "status": plan.status.value,
            "priority": plan.priority,
            "buildings": plan.count_by_type(),
            "unplaced_buildings": sum(1 for b in plan.buildings if not b.placed),
            "roads": len(plan.roads),
            "unplaced_roads": sum(1 for r in plan.roads if not r.placed),
            "deferred": len(plan.deferred),
            "traffic": self.traffic.statistics(record),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _track_traffic(self, room: str, record: RoomRecord, tick: int) -> None:
        if not self.traffic.enabled:
            return
        self.traffic.sample_room(room, record, tick)
        if tick - record.last_traffic_decay >= self.settings["traffic_decay_cadence"]:
            self.traffic.decay(record, tick)
