"""Grid path search used for road planning."""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import AbstractSet, Dict, List, Optional, Tuple

from core.world import ROOM_SIZE

logger = logging.getLogger("Pathing")

Tile = Tuple[int, int]

PLAIN_COST = 2
SWAMP_COST = 10
ROAD_COST = 1

NEIGHBOURS = [
    (-1, -1), (0, -1), (1, -1),
    (-1, 0), (1, 0),
    (-1, 1), (0, 1), (1, 1),
]


def chebyshev(a: Tile, b: Tile) -> int:
    return max(abs(a[0] - b[0]), abs(a[1] - b[1]))


@dataclass
class CostGrid:
    """Per-tile step costs; anything not walkable or blocked is impassable."""

    walkable: AbstractSet[str]
    swamps: AbstractSet[str]
    roads: AbstractSet[str]
    blocked: AbstractSet[str]

    def cost(self, x: int, y: int) -> Optional[int]:
        if not (0 <= x < ROOM_SIZE and 0 <= y < ROOM_SIZE):
            return None
        key = f"{x},{y}"
        if key not in self.walkable or key in self.blocked:
            return None
        if key in self.roads:
            return ROAD_COST
        if key in self.swamps:
            return SWAMP_COST
        return PLAIN_COST


def find_path(
    grid: CostGrid,
    start: Tile,
    goal: Tile,
    goal_range: int = 1,
    max_ops: int = 2000,
) -> Optional[List[Tile]]:
    """
    A* from ``start`` until a tile within ``goal_range`` of ``goal``.

    The start tile itself is never part of the result and does not need to
    be passable. Returns None when no path exists inside ``max_ops``
    expansions.
    """
    if chebyshev(start, goal) <= goal_range:
        return []

    frontier: List[Tuple[int, int, Tile]] = []
    counter = 0
    heapq.heappush(frontier, (chebyshev(start, goal) * ROAD_COST, counter, start))
    costs: Dict[Tile, int] = {start: 0}
    parents: Dict[Tile, Tile] = {}
    expansions = 0
    reached: Optional[Tile] = None

    while frontier and expansions < max_ops:
        _, _, node = heapq.heappop(frontier)
        expansions += 1
        if node != start and chebyshev(node, goal) <= goal_range:
            reached = node
            break
        base = costs[node]
        for dx, dy in NEIGHBOURS:
            nxt = (node[0] + dx, node[1] + dy)
            step = grid.cost(nxt[0], nxt[1])
            if step is None:
                continue
            next_cost = base + step
            prev = costs.get(nxt)
            if prev is not None and next_cost >= prev:
                continue
            costs[nxt] = next_cost
            parents[nxt] = node
            counter += 1
            heapq.heappush(frontier, (next_cost + chebyshev(nxt, goal) * ROAD_COST, counter, nxt))

    if reached is None:
        logger.debug("No path from %s to %s within %d expansions", start, goal, max_ops)
        return None

    path = []
    cursor = reached
    while cursor != start:
        path.append(cursor)
        cursor = parents[cursor]
    path.reverse()
    return path
