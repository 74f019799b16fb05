import unittest
import os
import shutil
import sys
import tempfile

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core.exceptions import InvalidPlanException
from core.world import Position
from rooms.plan import Building, PathType, Plan, PlanStatus, PlanStore, RoadSegment


def _sample_plan():
    plan = Plan(room="W1N1", plan_level=3, status=PlanStatus.BUILDING, priority=32, last_updated=120)
    plan.buildings.append(Building("spawn", Position(25, 25, "W1N1"), 100, 1, placed=True, ever_placed=True))
    plan.buildings.append(Building("extension", Position(28, 25, "W1N1"), 80, 2))
    plan.roads.append(RoadSegment(Position(26, 26, "W1N1"), 100, 3.5, PathType.SOURCE))
    return plan


class TestPlanRecords(unittest.TestCase):

    def test_plan_survives_serialisation(self):
        plan = _sample_plan()
        restored = Plan.from_dict(plan.to_dict())
        self.assertEqual(restored.buildings, plan.buildings)
        self.assertEqual(restored.roads, plan.roads)
        self.assertEqual(restored.status, PlanStatus.BUILDING)
        self.assertIsInstance(restored.roads[0].path_type, PathType)

    def test_malformed_plan_raises(self):
        with self.assertRaises(InvalidPlanException):
            Plan.from_dict({"room": "W1N1", "buildings": [{"structure_type": "spawn"}]})
        with self.assertRaises(InvalidPlanException):
            Plan.from_dict({"room": "W1N1", "status": "finished"})

    def test_count_and_lookup(self):
        plan = _sample_plan()
        self.assertEqual(plan.count_by_type(), {"spawn": 1, "extension": 1})
        self.assertIsNotNone(plan.building_at(Position(28, 25, "W1N1"), "extension"))
        self.assertIsNone(plan.building_at(Position(28, 25, "W1N1"), "tower"))
        self.assertIsNotNone(plan.road_at(Position(26, 26, "W1N1")))

    def test_mark_missing_keeps_history(self):
        building = Building("tower", Position(27, 25, "W1N1"), 95, 3)
        building.mark_placed("site-1")
        building.mark_missing()
        self.assertFalse(building.placed)
        self.assertTrue(building.ever_placed)
        self.assertIsNone(building.construction_request_id)


class TestPlanStore(unittest.TestCase):

    def setUp(self):
        self.cache_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.cache_dir, ignore_errors=True)

    def test_record_is_created_on_demand(self):
        store = PlanStore()
        record = store.record("W1N1")
        self.assertIsNone(record.plan)
        self.assertIs(store.record("W1N1"), record)
        store.save("W1N1")

    def test_save_and_reload(self):
        # Arrange
        store = PlanStore(self.cache_dir)
        store.set_plan("W1N1", _sample_plan())
        store.record("W1N1").traffic["26,26"] = {"score": 4.0, "last_seen": 100}

        # Act
        store.save("W1N1")
        reloaded = PlanStore(self.cache_dir)

        # Assert
        self.assertEqual(reloaded.cached_rooms(), ["W1N1"])
        self.assertEqual(reloaded.plan("W1N1").buildings, _sample_plan().buildings)
        self.assertEqual(reloaded.record("W1N1").traffic["26,26"]["score"], 4.0)

    def test_unreadable_cache_is_discarded(self):
        with open(os.path.join(self.cache_dir, "W1N1.json"), "w") as f:
            f.write("{not json")
        store = PlanStore(self.cache_dir)
        self.assertIsNone(store.record("W1N1").plan)

    def test_forget_removes_file(self):
        store = PlanStore(self.cache_dir)
        store.set_plan("W1N1", _sample_plan())
        store.save("W1N1")
        store.forget("W1N1")
        self.assertEqual(store.cached_rooms(), [])
        self.assertEqual(store.rooms(), [])


if __name__ == '__main__':
    unittest.main()
