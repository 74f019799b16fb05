"""
Terrain analysis and key position lookup for a room
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from core.exceptions import TerrainAnalysisException
from core.world import ROOM_SIZE, Position

# Clearance beyond this does not make an anchor any better; among
# equally open tiles the one nearest the controller/source centroid wins.
ANCHOR_CLEARANCE_CAP = 4


@dataclass(frozen=True)
class KeyPositions:
    anchor: Position
    sources: Tuple[Position, ...] = ()
    controller: Optional[Position] = None
    mineral: Optional[Position] = None
    exits: Tuple[Position, ...] = ()
    spawns: Tuple[Position, ...] = ()

    def object_tiles(self) -> FrozenSet[str]:
        """Tiles occupied by sources, the controller and the mineral"""
        tiles = {p.key() for p in self.sources}
        if self.controller:
            tiles.add(self.controller.key())
        if self.mineral:
            tiles.add(self.mineral.key())
        return frozenset(tiles)


@dataclass(frozen=True)
class TerrainAnalysis:
    room: str
    walkable: FrozenSet[str]
    swamps: FrozenSet[str]
    clearance: Dict[str, int] = field(hash=False, compare=False)
    key_positions: Optional[KeyPositions] = None
    analyzed_at: int = 0

    @property
    def anchor(self) -> Position:
        return self.key_positions.anchor

    def is_walkable(self, x: int, y: int) -> bool:
        return f"{x},{y}" in self.walkable


class TerrainAnalyzer:
    """
    Reads terrain once per room and caches it for ``layout_analysis_ttl`` ticks
    """

    def __init__(self, world, settings: Dict):
        self.world = world
        self.settings = settings
        self.logger = logging.getLogger("TerrainAnalyzer")
        self._cache: Dict[str, TerrainAnalysis] = {}

    def analyze(self, room: str, tick: int = 0) -> TerrainAnalysis:
        cached = self._cache.get(room)
        if cached and tick - cached.analyzed_at <= self.settings["layout_analysis_ttl"]:
            return cached
        if cached:
            self.logger.debug("Terrain cache expired for %s (age %d)", room, tick - cached.analyzed_at)

        walkable, swamps = self._read_terrain(room)
        clearance = self._distance_transform(walkable)
        analysis = TerrainAnalysis(
            room=room,
            walkable=frozenset(walkable),
            swamps=frozenset(swamps),
            clearance=clearance,
            analyzed_at=tick,
        )
        keys = self.identify_key_positions(room, analysis)
        analysis = TerrainAnalysis(
            room=room,
            walkable=analysis.walkable,
            swamps=analysis.swamps,
            clearance=clearance,
            key_positions=keys,
            analyzed_at=tick,
        )
        self._cache[room] = analysis
        self.logger.info(
            "Analyzed room %s: %d walkable tiles, anchor %s", room, len(walkable), keys.anchor.key()
        )
        return analysis

    def invalidate(self, room: str) -> None:
        self._cache.pop(room, None)

    # ------------------------------------------------------------------
    # Terrain reading
    # ------------------------------------------------------------------
    def _read_terrain(self, room: str):
        walkable = set()
        swamps = set()
        try:
            for x in range(ROOM_SIZE):
                for y in range(ROOM_SIZE):
                    terrain = self.world.terrain_at(room, x, y)
                    if terrain.walkable:
                        walkable.add(f"{x},{y}")
                        if terrain.swamp:
                            swamps.add(f"{x},{y}")
        except (AttributeError, TypeError) as e:
            raise TerrainAnalysisException(f"Could not read terrain for {room}: {e}") from e
        return walkable, swamps

    @staticmethod
    def _distance_transform(walkable) -> Dict[str, int]:
        """
        Chebyshev distance from every walkable tile to the nearest wall or
        room edge
        """
        distance: Dict[Tuple[int, int], int] = {}
        queue = deque()
        for x in range(ROOM_SIZE):
            for y in range(ROOM_SIZE):
                edge = x in (0, ROOM_SIZE - 1) or y in (0, ROOM_SIZE - 1)
                if edge or f"{x},{y}" not in walkable:
                    distance[(x, y)] = 0
                    queue.append((x, y))

        while queue:
            x, y = queue.popleft()
            for dx in (-1, 0, 1):
                for dy in (-1, 0, 1):
                    nx, ny = x + dx, y + dy
                    if not (0 <= nx < ROOM_SIZE and 0 <= ny < ROOM_SIZE):
                        continue
                    if (nx, ny) in distance:
                        continue
                    distance[(nx, ny)] = distance[(x, y)] + 1
                    queue.append((nx, ny))

        return {f"{x},{y}": d for (x, y), d in distance.items() if f"{x},{y}" in walkable}

    # ------------------------------------------------------------------
    # Key positions
    # ------------------------------------------------------------------
    def identify_key_positions(self, room: str, analysis: TerrainAnalysis) -> KeyPositions:
        objects = self.world.room_objects(room) or {}
        sources = tuple(Position(x, y, room) for x, y in objects.get("sources") or [])
        controller = objects.get("controller")
        controller = Position(controller[0], controller[1], room) if controller else None
        mineral = objects.get("mineral")
        mineral = Position(mineral[0], mineral[1], room) if mineral else None
        spawns = tuple(Position(x, y, room) for x, y in objects.get("spawns") or [])

        if spawns:
            anchor = spawns[0]
        else:
            anchor = self._find_anchor(room, analysis, sources, controller)

        exits = tuple(self.main_exits(room, analysis.walkable))
        self.logger.debug(
            "Key positions for %s: %d sources, %d exits", room, len(sources), len(exits)
        )
        return KeyPositions(
            anchor=anchor,
            sources=sources,
            controller=controller,
            mineral=mineral,
            exits=exits,
            spawns=spawns,
        )

    @staticmethod
    def weighted_center(room: str, sources, controller) -> Position:
        if not controller:
            return Position(25, 25, room)
        total_x = controller.x * 2
        total_y = controller.y * 2
        weight = 2
        for source in sources:
            total_x += source.x
            total_y += source.y
            weight += 1
        return Position(round(total_x / weight), round(total_y / weight), room)

    def _find_anchor(self, room, analysis, sources, controller) -> Position:
        center = self.weighted_center(room, sources, controller)
        blocked = {p.key() for p in sources}
        if controller:
            blocked.add(controller.key())

        best = None
        best_rank = None
        for key, clearance in analysis.clearance.items():
            if key in blocked:
                continue
            pos = Position.from_key(key, room)
            if not pos.in_build_bounds():
                continue
            rank = (-min(clearance, ANCHOR_CLEARANCE_CAP), pos.range_to(center), pos.y, pos.x)
            if best_rank is None or rank < best_rank:
                best = pos
                best_rank = rank

        if best is None:
            self.logger.warning("Room %s has no usable tile for an anchor, using the centre", room)
            return Position(25, 25, room)
        return best

    def main_exits(self, room: str, walkable) -> List[Position]:
        """
        Middle tile of every contiguous run of walkable edge tiles
        """
        edges = [
            [(x, 0) for x in range(ROOM_SIZE)],
            [(ROOM_SIZE - 1, y) for y in range(ROOM_SIZE)],
            [(x, ROOM_SIZE - 1) for x in range(ROOM_SIZE)],
            [(0, y) for y in range(ROOM_SIZE)],
        ]
        exits = []
        for edge in edges:
            run = []
            for x, y in edge + [(-1, -1)]:
                if f"{x},{y}" in walkable:
                    run.append((x, y))
                    continue
                if run:
                    mx, my = run[len(run) // 2]
                    exits.append(Position(mx, my, room))
                    run = []
        return exits[: self.settings["max_exit_paths"]]

    @staticmethod
    def buildable_area(analysis: TerrainAnalysis, center: Position, radius: int) -> List[Position]:
        area = []
        for dx in range(-radius, radius + 1):
            for dy in range(-radius, radius + 1):
                pos = center.offset(dx, dy)
                if pos.in_build_bounds() and pos.key() in analysis.walkable:
                    area.append(pos)
        return area

    @staticmethod
    def has_minimum_clearance(analysis: TerrainAnalysis, pos: Position, radius: int = 2,
                              ratio: float = 0.6) -> bool:
        total = 0
        walkable = 0
        for dx in range(-radius, radius + 1):
            for dy in range(-radius, radius + 1):
                total += 1
                if pos.offset(dx, dy).key() in analysis.walkable:
                    walkable += 1
        return walkable >= total * ratio
