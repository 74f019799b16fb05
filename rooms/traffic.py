"""
Tracks where units walk so frequently used tiles can become roads
"""
import logging

from core.world import Position


class TrafficAnalyzer:
    """
    Traffic lives on the room record as ``{"x,y": {"score", "last_seen"}}``
    """

    def __init__(self, world, settings):
        self.world = world
        self.settings = settings
        self.logger = logging.getLogger("TrafficAnalyzer")

    @property
    def enabled(self):
        return self.settings["traffic_analysis_enabled"]

    def record_sample(self, record, pos, tick):
        if not self.enabled:
            return
        key = pos.key() if isinstance(pos, Position) else f"{pos[0]},{pos[1]}"
        entry = record.traffic.setdefault(key, {"score": 0.0, "last_seen": tick})
        entry["score"] = entry["score"] + 1
        entry["last_seen"] = tick

    def sample_room(self, room, record, tick):
        """
        Records one tick of unit positions, capped at ``traffic_sample_limit``
        """
        if not self.enabled:
            return 0
        positions = list(self.world.unit_positions_sample(room) or [])
        limit = self.settings["traffic_sample_limit"]
        for x, y in positions[:limit]:
            self.record_sample(record, (x, y), tick)
        return min(len(positions), limit)

    def decay(self, record, tick):
        """
        Scales every score down and forgets tiles nobody walks on any more
        """
        factor = self.settings["traffic_decay_factor"]
        floor = self.settings["traffic_prune_below"]
        ttl = self.settings["traffic_data_ttl"]
        removed = 0
        for key in list(record.traffic):
            entry = record.traffic[key]
            entry["score"] = entry["score"] * factor
            if entry["score"] < floor or tick - entry["last_seen"] > ttl:
                del record.traffic[key]
                removed += 1
        record.last_traffic_decay = tick
        if removed:
            self.logger.debug("Pruned %d traffic entries in %s", removed, record.room)
        return removed

    @staticmethod
    def score_at(record, pos):
        entry = record.traffic.get(pos.key())
        if not entry:
            return 0.0
        return entry["score"]

    @staticmethod
    def high_traffic_positions(record, threshold):
        ranked = [
            (entry["score"], key) for key, entry in record.traffic.items() if entry["score"] >= threshold
        ]
        ranked.sort(key=lambda item: (-item[0], item[1]))
        return [Position.from_key(key, record.room) for _, key in ranked]

    def statistics(self, record):
        scores = [entry["score"] for entry in record.traffic.values()]
        total = sum(scores)
        return {
            "positions": len(scores),
            "total": total,
            "average": total / len(scores) if scores else 0.0,
            "high_traffic": sum(1 for s in scores if s >= self.settings["min_traffic_for_road"]),
        }
