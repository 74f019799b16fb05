import unittest
from unittest.mock import MagicMock
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core.world import Position
from helpers import FakeWorld
from rooms.plan import Building, PathType, Plan, RoadSegment
from rooms.replacement import StructureReplacementManager

ROOM = "W1N1"


class TestStructureReplacementManager(unittest.TestCase):

    def setUp(self):
        self.world = FakeWorld()
        self.manager = StructureReplacementManager(self.world)
        self.manager.logger = MagicMock()
        self.plan = Plan(ROOM, plan_level=3)
        self.tower = Building("tower", Position(27, 25, ROOM), 95, 3, placed=True, ever_placed=True)
        self.extension = Building("extension", Position(28, 28, ROOM), 80, 2, placed=True,
                                  construction_request_id="site-1")
        self.road = RoadSegment(Position(26, 26, ROOM), 100, 0, PathType.SOURCE, placed=True)
        self.plan.buildings = [self.tower, self.extension]
        self.plan.roads = [self.road]

    def test_missing_structures_are_unplaced(self):
        # Arrange
        self.world.add_structure(ROOM, 27, 25, "tower")

        # Act
        result = self.manager.scan(ROOM, self.plan)

        # Assert
        self.assertIs(result, self.plan)
        self.assertTrue(self.tower.placed)
        self.assertFalse(self.extension.placed)
        self.assertIsNone(self.extension.construction_request_id)
        self.assertFalse(self.road.placed)
        self.manager.logger.warning.assert_called_once()

    def test_pending_request_counts_as_present(self):
        self.world.markers[ROOM][(28, 28)] = ["extension"]
        self.world.markers[ROOM][(26, 26)] = ["road"]
        self.world.add_structure(ROOM, 27, 25, "tower")
        self.manager.scan(ROOM, self.plan)
        self.assertTrue(self.extension.placed)
        self.assertTrue(self.road.placed)
        self.manager.logger.warning.assert_not_called()

    def test_wrong_structure_type_is_missing(self):
        self.world.add_structure(ROOM, 27, 25, "extension")
        self.manager.scan(ROOM, self.plan)
        self.assertFalse(self.tower.placed)

    def test_counts_and_priorities_untouched(self):
        self.manager.scan(ROOM, self.plan)
        self.assertEqual(len(self.plan.buildings), 2)
        self.assertEqual(len(self.plan.roads), 1)
        self.assertEqual(self.tower.priority, 95)
        self.assertEqual(self.road.priority, 100)


if __name__ == '__main__':
    unittest.main()
