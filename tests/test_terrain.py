import unittest
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core.settings import load_settings
from core.world import Position
from helpers import FakeWorld
from rooms.terrain import TerrainAnalyzer


class TestTerrainAnalyzer(unittest.TestCase):

    def setUp(self):
        self.world = FakeWorld()
        self.settings = load_settings()
        self.analyzer = TerrainAnalyzer(self.world, self.settings)

    def test_existing_spawn_is_the_anchor(self):
        analysis = self.analyzer.analyze("W1N1", tick=1)
        self.assertEqual(analysis.anchor, Position(25, 25, "W1N1"))
        self.assertEqual(len(analysis.key_positions.sources), 2)
        self.assertEqual(analysis.key_positions.mineral, Position(8, 40, "W1N1"))

    def test_anchor_without_spawn_is_open_and_buildable(self):
        # Arrange
        world = FakeWorld(spawns=())
        world.add_walls("W1N1", {(x, y) for x in range(0, 50) for y in range(0, 20)})
        analyzer = TerrainAnalyzer(world, self.settings)

        # Act
        analysis = analyzer.analyze("W1N1")

        # Assert
        anchor = analysis.anchor
        self.assertTrue(anchor.in_build_bounds())
        self.assertIn(anchor.key(), analysis.walkable)
        self.assertGreaterEqual(anchor.y, 24)
        self.assertGreaterEqual(analysis.clearance[anchor.key()], 4)

    def test_degenerate_room_still_returns_anchor(self):
        world = FakeWorld(spawns=())
        world.add_walls("W1N1", {(x, y) for x in range(50) for y in range(50)})
        analysis = TerrainAnalyzer(world, self.settings).analyze("W1N1")
        self.assertEqual(analysis.anchor, Position(25, 25, "W1N1"))
        self.assertEqual(analysis.key_positions.exits, ())

    def test_exits_are_middle_of_each_edge_run(self):
        world = FakeWorld()
        edge_walls = {(x, 0) for x in range(50)} | {(x, 49) for x in range(50)}
        edge_walls |= {(0, y) for y in range(50)} | {(49, y) for y in range(50)}
        edge_walls -= {(x, 0) for x in range(10, 15)}
        world.add_walls("W1N1", edge_walls)
        analysis = TerrainAnalyzer(world, self.settings).analyze("W1N1")
        self.assertEqual(analysis.key_positions.exits, (Position(12, 0, "W1N1"),))

    def test_analysis_is_cached_until_ttl(self):
        self.analyzer.analyze("W1N1", tick=10)
        reads = self.world.terrain_reads
        self.analyzer.analyze("W1N1", tick=10 + self.settings["layout_analysis_ttl"])
        self.assertEqual(self.world.terrain_reads, reads)
        self.analyzer.analyze("W1N1", tick=11 + self.settings["layout_analysis_ttl"])
        self.assertGreater(self.world.terrain_reads, reads)

    def test_invalidate_forces_new_read(self):
        self.analyzer.analyze("W1N1", tick=1)
        reads = self.world.terrain_reads
        self.analyzer.invalidate("W1N1")
        self.analyzer.analyze("W1N1", tick=2)
        self.assertGreater(self.world.terrain_reads, reads)

    def test_weighted_center_favours_controller(self):
        center = TerrainAnalyzer.weighted_center(
            "W1N1", [Position(10, 10, "W1N1")], Position(40, 10, "W1N1")
        )
        self.assertEqual(center, Position(30, 10, "W1N1"))

    def test_minimum_clearance(self):
        self.world.add_walls("W1N1", {(30 + dx, 30 + dy) for dx in range(-2, 3) for dy in range(-2, 2)})
        analysis = self.analyzer.analyze("W1N1")
        self.assertFalse(TerrainAnalyzer.has_minimum_clearance(analysis, Position(30, 30, "W1N1")))
        self.assertTrue(TerrainAnalyzer.has_minimum_clearance(analysis, Position(15, 30, "W1N1")))
        area = TerrainAnalyzer.buildable_area(analysis, Position(1, 1, "W1N1"), 1)
        self.assertEqual(len(area), 4)


if __name__ == '__main__':
    unittest.main()
