"""
Finds planned structures that disappeared from the world
"""
import logging

from core.world import ROAD, rehydrate


class StructureReplacementManager:
    """
    Flips ``placed`` back to False for anything that decayed or was destroyed.
    Counts and priorities are left alone; the planners pick the entries up
    again on their next pass.
    """

    def __init__(self, world):
        self.world = world
        self.logger = logging.getLogger("StructureReplacementManager")

    def scan(self, room, plan):
        missing_buildings = 0
        for building in plan.buildings:
            if not building.placed:
                continue
            if not self._exists(building.pos, building.structure_type):
                building.mark_missing()
                missing_buildings += 1
                self.logger.info(
                    "Marked %s at %s in %s for rebuilding",
                    building.structure_type, building.pos.key(), room,
                )

        missing_roads = 0
        for road in plan.roads:
            if road.placed and not self._exists(road.pos, ROAD):
                road.mark_missing()
                missing_roads += 1

        if missing_buildings or missing_roads:
            self.logger.warning(
                "Room %s: %d buildings and %d roads missing, marked for rebuilding",
                room, missing_buildings, missing_roads,
            )
        return plan

    def _exists(self, pos, structure_type):
        """
        A pending construction request counts as present
        """
        tile = rehydrate(pos, self.world)
        return tile.has_structure(structure_type) or tile.has_marker(structure_type)
