"""
Turns layout templates into a concrete building list for a room
"""
from __future__ import annotations

import logging
from typing import Dict, Optional, Set

from core import templates
from core.world import (
    CONTAINER,
    EXTENSION,
    EXTRACTOR,
    LAB,
    PASSABLE_STRUCTURES,
    RAMPART,
    ROAD,
    SPAWN,
    STORAGE,
    TERMINAL,
    TOWER,
    WALL,
    ErrorKind,
    Position,
    rehydrate,
)
from rooms.plan import Building, Plan, PlanStatus
from rooms.terrain import KeyPositions, TerrainAnalysis, TerrainAnalyzer

DYNAMIC_SEARCH_RADIUS = 12

# Placed by their own rules, or not planned as buildings at all
NOT_DYNAMIC = {EXTENSION, EXTRACTOR, CONTAINER, ROAD, RAMPART, WALL}


class BaseLayoutPlanner:
    """
    Keeps the building list of a plan in line with the room level.

    Candidates come from the accumulated layout templates, anchored on the
    primary spawn. Tiles that can never hold a building (outside 1..48 or
    on a wall) are dropped on the spot; tiles that are only temporarily
    blocked stay in the plan and are skipped when requests go out.
    """

    def __init__(self, world, settings: Dict):
        self.world = world
        self.settings = settings
        self.logger = logging.getLogger("BaseLayoutPlanner")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def plan_or_update(self, room: str, terrain: TerrainAnalysis, level: int, plan: Plan,
                       tick: int = 0) -> Plan:
        added = self.add_candidates(room, terrain, level, plan)
        self.check_spawn_access(room, terrain, level, plan)
        reconciled = self.reconcile(plan)
        placed = self.place_construction_requests(room, plan, level)
        self.update_plan_status(plan, level, terrain)
        plan.last_updated = tick
        if added or reconciled or placed:
            self.logger.info(
                "Room %s level %d: %d new buildings, %d already built, %d requested",
                room, level, added, reconciled, placed,
            )
        return plan

    def add_candidates(self, room: str, terrain: TerrainAnalysis, level: int, plan: Plan) -> int:
        anchor = terrain.anchor
        blocked = terrain.key_positions.object_tiles()
        counts = plan.count_by_type()
        occupied = {b.pos.key() for b in plan.buildings}
        deferred_keys = set()
        plan.deferred = []
        added = 0

        def accept(structure_type: str, pos: Position, priority: int, level_required: int,
                   reason: str) -> bool:
            nonlocal added
            if plan.building_at(pos, structure_type):
                return True
            if not self._is_permanently_valid(terrain, pos, structure_type, blocked, occupied):
                self.logger.debug("Rejected %s at %s in %s", structure_type, pos.key(), room)
                return False
            building = Building(structure_type, pos, priority, level_required, reason=reason)
            if counts.get(structure_type, 0) >= templates.limit_for(structure_type, level):
                key = (structure_type, pos.key())
                if key not in deferred_keys:
                    deferred_keys.add(key)
                    plan.deferred.append(building)
                return False
            plan.buildings.append(building)
            counts[structure_type] = counts.get(structure_type, 0) + 1
            occupied.add(pos.key())
            added += 1
            return True

        for entry in templates.buildings_up_to(level):
            pos = anchor.offset(entry.dx, entry.dy)
            accept(entry.structure_type, pos, entry.priority, entry.level, "template")

        if self.settings["use_dynamic_placement"]:
            self._fill_extensions(anchor, level, counts, accept)
            self._fill_dynamic(terrain, level, counts, accept)
        self._place_containers(terrain, level, plan, counts, accept)

        mineral = terrain.key_positions.mineral
        if mineral and templates.limit_for(EXTRACTOR, level) > 0:
            accept(
                EXTRACTOR,
                mineral,
                templates.BUILD_PRIORITY[EXTRACTOR],
                templates.min_level_for(EXTRACTOR),
                "mineral",
            )

        if plan.deferred:
            self.logger.debug("Room %s: %d candidates deferred by limits", room, len(plan.deferred))
        return added

    def reconcile(self, plan: Plan) -> int:
        """
        Marks unplaced buildings that already exist in the world, or already
        have a matching construction request, as placed
        """
        found = 0
        for building in plan.buildings:
            if building.placed:
                continue
            tile = rehydrate(building.pos, self.world)
            if tile.has_structure(building.structure_type) or tile.has_marker(building.structure_type):
                building.mark_placed()
                found += 1
        return found

    def place_construction_requests(self, room: str, plan: Plan, level: int) -> int:
        pending = sum(
            1 for b in plan.buildings if rehydrate(b.pos, self.world).markers()
        )
        budget = self.settings["max_construction_sites"] - pending
        if budget <= 0:
            self.logger.debug("Room %s already has %d pending construction requests", room, pending)
            return 0

        eligible = [b for b in plan.buildings if not b.placed and b.level_required <= level]
        eligible.sort(key=lambda b: -b.priority)

        placed = 0
        refused_types: Set[str] = set()
        for building in eligible:
            if placed >= budget:
                break
            if building.structure_type in refused_types:
                continue
            tile = rehydrate(building.pos, self.world)
            problem = self.validate_position(tile, building.structure_type)
            if problem:
                plan.failed[building.pos.key()] = problem
                self.logger.debug(
                    "Skipping %s at %s in %s: %s", building.structure_type, building.pos.key(), room, problem
                )
                continue

            result = tile.request(building.structure_type)
            if result.ok:
                building.mark_placed(result.request_id)
                plan.failed.pop(building.pos.key(), None)
                placed += 1
                self.logger.info(
                    "Requested %s at %s in %s", building.structure_type, building.pos.key(), room
                )
                continue

            plan.failed[building.pos.key()] = result.error.value if result.error else "unknown"
            if result.error == ErrorKind.FULL:
                self.logger.warning("Construction refused in %s: too many pending requests", room)
                break
            if result.error == ErrorKind.RCL_NOT_ENOUGH:
                self.logger.warning(
                    "Construction of %s refused in %s: level too low", building.structure_type, room
                )
                refused_types.add(building.structure_type)
                continue
            self.logger.warning(
                "Failed to request %s at %s in %s: %s",
                building.structure_type, building.pos.key(), room,
                result.error.value if result.error else "unknown",
            )
        return placed

    @staticmethod
    def validate_position(tile, structure_type: str) -> Optional[str]:
        """
        Returns why a tile cannot take a construction request right now,
        or None when it can
        """
        pos = tile.position
        if not pos.in_build_bounds():
            return "out of bounds"
        if not tile.terrain().walkable:
            return "wall"
        blocking = [
            stype for stype in tile.structure_types()
            if stype not in PASSABLE_STRUCTURES and stype != structure_type
        ]
        if blocking:
            return f"occupied by {blocking[0]}"
        if tile.markers():
            return "construction pending"
        if tile.units():
            return "unit in the way"
        return None

    @staticmethod
    def has_invalid_structure_counts(plan: Plan, level: int) -> bool:
        for structure_type, count in plan.count_by_type().items():
            if count > templates.limit_for(structure_type, level):
                return True
        return False

    @staticmethod
    def invalid_structure_counts(plan: Plan, level: int) -> Dict[str, int]:
        return {
            stype: count
            for stype, count in plan.count_by_type().items()
            if count > templates.limit_for(stype, level)
        }

    def update_plan_status(self, plan: Plan, level: int, terrain: Optional[TerrainAnalysis] = None) -> None:
        due = [b for b in plan.buildings if b.level_required <= level]
        if due and all(b.placed for b in due):
            plan.status = PlanStatus.READY
        elif any(b.placed for b in due):
            plan.status = PlanStatus.BUILDING
        else:
            plan.status = PlanStatus.PLANNING
        plan.plan_level = level
        sources = len(terrain.key_positions.sources) if terrain and terrain.key_positions else 0
        plan.priority = level * 10 + sources

    def spawn_access(self, terrain: TerrainAnalysis, level: int, plan: Optional[Plan] = None) -> int:
        """
        Tiles around the anchor left free by the template, the walls and any
        solid building already in the plan
        """
        anchor = terrain.anchor
        obstructed = set()
        for dx, dy in templates.ADJACENT_OFFSETS:
            pos = anchor.offset(dx, dy)
            if pos.key() not in terrain.walkable:
                obstructed.add((dx, dy))
                continue
            building = plan.building_at(pos) if plan else None
            if building and building.structure_type not in PASSABLE_STRUCTURES:
                obstructed.add((dx, dy))
        return templates.spawn_accessibility_score(templates.buildings_up_to(level), obstructed)

    def check_spawn_access(self, room: str, terrain: TerrainAnalysis, level: int, plan: Plan) -> int:
        access = self.spawn_access(terrain, level, plan)
        minimum = self.settings["min_spawn_access"]
        anchor_key = terrain.anchor.key()
        if level >= 1 and access < minimum:
            plan.failed[anchor_key] = f"spawn access {access} below {minimum}"
            self.logger.warning(
                "Room %s: only %d free tiles around the spawn at %s, need %d", room, access, anchor_key, minimum
            )
        elif plan.failed.get(anchor_key, "").startswith("spawn access"):
            plan.failed.pop(anchor_key)
        return access

    @staticmethod
    def score_position(structure_type: str, pos: Position, keys: KeyPositions) -> int:
        """
        Higher is better. Spawns lean towards the controller and sources,
        towers towards the room centre, storage and terminal towards the
        anchor.
        """
        if structure_type == SPAWN:
            score = 0
            if keys.controller:
                score += 100 - pos.range_to(keys.controller) * 2
            for source in keys.sources:
                score += 50 - pos.range_to(source)
            return score
        if structure_type == TOWER:
            return 100 - pos.range_to(Position(25, 25, pos.room)) * 3
        if structure_type in (STORAGE, TERMINAL):
            return 100 - pos.range_to(keys.anchor) * 2
        if structure_type == LAB:
            return 30 - pos.range_to(keys.anchor)
        if keys.controller:
            return 50 - pos.range_to(keys.controller)
        return 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _fill_extensions(self, anchor: Position, level: int, counts: Dict[str, int], accept) -> None:
        """
        Continues past the template's extension slots while tiles were lost
        to walls or the room edge
        """
        limit = templates.limit_for(EXTENSION, level)
        if counts.get(EXTENSION, 0) >= limit:
            return
        added = 0
        for dx, dy in templates.extension_slots(skip=limit):
            if counts.get(EXTENSION, 0) >= limit:
                break
            before = counts.get(EXTENSION, 0)
            accept(
                EXTENSION,
                anchor.offset(dx, dy),
                templates.BUILD_PRIORITY[EXTENSION],
                templates.min_level_for(EXTENSION),
                "dynamic",
            )
            if counts.get(EXTENSION, 0) > before:
                added += 1
        if added:
            self.logger.debug("Placed %d extensions outside the template", added)

    def _fill_dynamic(self, terrain: TerrainAnalysis, level: int, counts: Dict[str, int], accept) -> None:
        """
        Gives every other structure type still short of its limit the best
        scored free tiles around the anchor
        """
        anchor = terrain.anchor
        keys = terrain.key_positions
        area = None
        for structure_type, limit in templates.structure_limits(level).items():
            if structure_type in NOT_DYNAMIC or counts.get(structure_type, 0) >= limit:
                continue
            if area is None:
                reserved = templates.reserved_offsets()
                area = [
                    pos for pos in TerrainAnalyzer.buildable_area(terrain, anchor, DYNAMIC_SEARCH_RADIUS)
                    if anchor.range_to(pos) >= 2
                    and (pos.x - anchor.x + pos.y - anchor.y) % 2 == 0
                    and (pos.x - anchor.x, pos.y - anchor.y) not in reserved
                ]
            candidates = area
            if structure_type == SPAWN:
                candidates = [pos for pos in area if TerrainAnalyzer.has_minimum_clearance(terrain, pos, radius=1)]
            ranked = sorted(
                candidates,
                key=lambda pos: (-self.score_position(structure_type, pos, keys), pos.y, pos.x),
            )
            before = counts.get(structure_type, 0)
            for pos in ranked:
                if counts.get(structure_type, 0) >= limit:
                    break
                accept(
                    structure_type,
                    pos,
                    templates.BUILD_PRIORITY.get(structure_type, 10),
                    templates.min_level_for(structure_type),
                    "dynamic",
                )
            if counts.get(structure_type, 0) > before:
                self.logger.debug(
                    "Placed %d %s outside the template", counts.get(structure_type, 0) - before, structure_type
                )

    def _place_containers(self, terrain: TerrainAnalysis, level: int, plan: Plan, counts: Dict[str, int],
                          accept) -> None:
        """
        One container beside each source and the controller, on the free
        tile nearest the anchor
        """
        limit = templates.limit_for(CONTAINER, level)
        keys = terrain.key_positions
        anchor = terrain.anchor
        targets = list(keys.sources) + ([keys.controller] if keys.controller else [])
        containers = [b.pos for b in plan.buildings if b.structure_type == CONTAINER]
        for target in targets:
            if counts.get(CONTAINER, 0) >= limit:
                break
            if any(pos.range_to(target) <= 1 for pos in containers):
                continue
            around = [target.offset(dx, dy) for dx, dy in templates.ADJACENT_OFFSETS]
            around = sorted(
                (pos for pos in around if anchor.range_to(pos) >= 2),
                key=lambda pos: (pos.range_to(anchor), pos.y, pos.x),
            )
            for pos in around:
                if accept(
                    CONTAINER,
                    pos,
                    templates.BUILD_PRIORITY[CONTAINER],
                    templates.min_level_for(CONTAINER),
                    "container",
                ):
                    containers.append(pos)
                    break

    @staticmethod
    def _is_permanently_valid(terrain: TerrainAnalysis, pos: Position, structure_type: str,
                              blocked, occupied) -> bool:
        if not pos.in_build_bounds():
            return False
        if pos.key() in occupied:
            return False
        if structure_type == EXTRACTOR:
            return pos.key() in blocked
        if pos.key() not in terrain.walkable:
            return False
        return pos.key() not in blocked
