"""
Road network planning and road construction requests
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from core.world import PASSABLE_STRUCTURES, ROAD, Position, rehydrate
from rooms.pathing import CostGrid, find_path
from rooms.plan import Building, PathType, Plan, RoadSegment
from rooms.terrain import TerrainAnalysis
from rooms.traffic import TrafficAnalyzer

PATH_PRIORITY = {
    PathType.SOURCE: 100,
    PathType.CONTROLLER: 90,
    PathType.MINERAL: 70,
    PathType.EXIT: 60,
    PathType.INTERNAL: 50,
}


class RoadPlanner:
    """
    Connects the anchor with sources, controller, mineral and exits, and
    adds roads wherever units keep walking
    """

    def __init__(self, world, settings: Dict, traffic: TrafficAnalyzer):
        self.world = world
        self.settings = settings
        self.traffic = traffic
        self.logger = logging.getLogger("RoadPlanner")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def update_road_plan(self, room: str, record, terrain: TerrainAnalysis, plan: Plan) -> int:
        """
        Recomputes the network and requests construction in the same pass
        """
        plan.roads = self.plan_road_network(room, terrain, plan.buildings, record, plan.roads)
        return self.place_construction_requests(room, plan.roads)

    def plan_road_network(self, room: str, terrain: TerrainAnalysis, buildings: List[Building],
                          record, existing: Optional[List[RoadSegment]] = None) -> List[RoadSegment]:
        building_tiles = {b.pos.key() for b in buildings}
        segments: Dict[str, RoadSegment] = {}
        for segment in existing or []:
            if segment.pos.key() in building_tiles:
                self.logger.debug("Dropping road at %s in %s, a building took the tile", segment.pos.key(), room)
                continue
            segment.traffic_score = self.traffic.score_at(record, segment.pos)
            segments[segment.pos.key()] = segment

        for path_type, path in self.calculate_paths(room, terrain, buildings, existing or []):
            for x, y in path:
                pos = Position(x, y, room)
                if not pos.in_build_bounds() or pos.key() in building_tiles:
                    continue
                score = self.traffic.score_at(record, pos)
                priority = PATH_PRIORITY[path_type] + int(score // 10)
                self._claim(segments, pos, priority, score, path_type)

        blocked = building_tiles | terrain.key_positions.object_tiles()
        threshold = self.settings["min_traffic_for_road"]
        for pos in self.traffic.high_traffic_positions(record, threshold):
            if pos.key() in segments or not self._road_allowed(pos, terrain, blocked):
                continue
            score = self.traffic.score_at(record, pos)
            segments[pos.key()] = RoadSegment(pos, int(score // 5), score, PathType.INTERNAL)

        roads = sorted(segments.values(), key=lambda s: (-s.priority, s.pos.y, s.pos.x))
        self.logger.info("Planned %d road tiles in %s", len(roads), room)
        return roads

    def calculate_paths(self, room: str, terrain: TerrainAnalysis, buildings: List[Building],
                        existing: List[RoadSegment]) -> List[Tuple[PathType, List[Tuple[int, int]]]]:
        keys = terrain.key_positions
        grid = CostGrid(
            walkable=terrain.walkable,
            swamps=terrain.swamps,
            roads={s.pos.key() for s in existing if s.placed},
            blocked={b.pos.key() for b in buildings} | keys.object_tiles(),
        )
        start = (keys.anchor.x, keys.anchor.y)
        max_ops = self.settings["max_path_ops"]

        targets: List[Tuple[PathType, Tuple[int, int], Tuple[int, int], int]] = []
        for source in keys.sources:
            targets.append((PathType.SOURCE, start, (source.x, source.y), 1))
        if keys.controller:
            targets.append((PathType.CONTROLLER, start, (keys.controller.x, keys.controller.y), 1))
            for source in keys.sources:
                targets.append(
                    (PathType.CONTROLLER, (source.x, source.y), (keys.controller.x, keys.controller.y), 1)
                )
        if keys.mineral:
            targets.append((PathType.MINERAL, start, (keys.mineral.x, keys.mineral.y), 1))
        for exit_pos in keys.exits[: self.settings["max_exit_paths"]]:
            targets.append((PathType.EXIT, start, (exit_pos.x, exit_pos.y), 0))

        paths = []
        for path_type, origin, goal, goal_range in targets:
            path = find_path(grid, origin, goal, goal_range=goal_range, max_ops=max_ops)
            if path is None:
                self.logger.warning("No %s path from %s to %s in %s", path_type.value, origin, goal, room)
                continue
            paths.append((path_type, path))
        return paths

    def was_previously_placed(self, segment: RoadSegment) -> bool:
        if segment.ever_placed:
            return True
        return (
            not segment.placed
            and segment.path_type != PathType.INTERNAL
            and segment.priority > self.settings["rebuild_priority_threshold"]
        )

    def is_eligible(self, segment: RoadSegment) -> bool:
        if segment.placed:
            return False
        return (
            segment.traffic_score >= self.settings["min_traffic_for_road"]
            or segment.priority >= self.settings["high_priority_cutoff"]
            or self.was_previously_placed(segment)
        )

    def place_construction_requests(self, room: str, roads: List[RoadSegment]) -> int:
        pending = 0
        candidates = []
        for segment in roads:
            tile = rehydrate(segment.pos, self.world)
            if tile.has_marker(ROAD):
                pending += 1
                if not segment.placed:
                    segment.mark_placed()
                continue
            if segment.placed:
                continue
            if tile.has_structure(ROAD):
                segment.mark_placed()
                continue
            if self.is_eligible(segment):
                candidates.append((segment, tile))

        budget = self.settings["road_site_budget"] - pending
        if budget <= 0:
            self.logger.debug("Room %s already has %d pending road requests", room, pending)
            return 0

        candidates.sort(key=lambda item: (not self.was_previously_placed(item[0]), -item[0].priority))
        placed = 0
        for segment, tile in candidates:
            if placed >= budget:
                break
            if not self._can_take_road(tile):
                continue
            result = tile.request(ROAD)
            if result.ok:
                segment.mark_placed(result.request_id)
                placed += 1
                self.logger.debug("Requested road at %s in %s (priority %d)", segment.pos.key(), room, segment.priority)
                continue
            if result.error is not None and result.error.is_capacity:
                self.logger.warning("Road construction refused in %s: %s", room, result.error.value)
                break
            self.logger.warning(
                "Failed to request road at %s in %s: %s",
                segment.pos.key(), room, result.error.value if result.error else "unknown",
            )

        if placed:
            self.logger.info("Requested %d roads in %s", placed, room)
        return placed

    def recommended_road_positions(self, record, plan: Plan, terrain: TerrainAnalysis) -> List[Position]:
        """
        Busy tiles that have no road segment yet and could take one
        """
        planned = {s.pos.key() for s in plan.roads}
        blocked = {b.pos.key() for b in plan.buildings} | terrain.key_positions.object_tiles()
        return [
            pos
            for pos in self.traffic.high_traffic_positions(record, self.settings["min_traffic_for_road"])
            if pos.key() not in planned and self._road_allowed(pos, terrain, blocked)
        ]

    def road_network_stats(self, record, plan: Plan, terrain: TerrainAnalysis) -> Dict[str, int]:
        return {
            "planned": len(plan.roads),
            "placed": sum(1 for s in plan.roads if s.placed),
            "eligible": sum(1 for s in plan.roads if self.is_eligible(s)),
            "rebuild": sum(1 for s in plan.roads if not s.placed and self.was_previously_placed(s)),
            "recommended": len(self.recommended_road_positions(record, plan, terrain)),
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _claim(segments: Dict[str, RoadSegment], pos: Position, priority: int, score: float,
               path_type: PathType) -> None:
        current = segments.get(pos.key())
        if current is None:
            segments[pos.key()] = RoadSegment(pos, priority, score, path_type)
            return
        if priority > current.priority:
            current.priority = priority
            current.path_type = path_type
        current.traffic_score = score

    @staticmethod
    def _road_allowed(pos: Position, terrain: TerrainAnalysis, blocked) -> bool:
        return pos.in_build_bounds() and pos.key() in terrain.walkable and pos.key() not in blocked

    @staticmethod
    def _can_take_road(tile) -> bool:
        if not tile.position.in_build_bounds() or not tile.terrain().walkable:
            return False
        if any(stype not in PASSABLE_STRUCTURES for stype in tile.structure_types()):
            return False
        return not tile.markers()
