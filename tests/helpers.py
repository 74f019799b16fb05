from types import SimpleNamespace

from core.world import ConstructionResult, ErrorKind, Terrain


class FakeWorld:
    """
    In-memory stand-in for the host world. Every room is open plain terrain
    unless walls or swamps are added.
    """

    def __init__(self, room="W1N1", level=2, sources=((5, 5), (44, 6)), controller=(40, 44),
                 mineral=(8, 40), spawns=((25, 25),)):
        self.levels = {}
        self.walls = {}
        self.swamps = {}
        self.objects = {}
        self.structures = {}
        self.markers = {}
        self.units = {}
        self.unit_positions = {}
        self.requests = []
        self.fail_with = None
        self.marker_cap = 100
        self.terrain_reads = 0
        self.add_room(room, level, sources, controller, mineral, spawns)

    def add_room(self, room, level=2, sources=((5, 5), (44, 6)), controller=(40, 44), mineral=(8, 40),
                 spawns=((25, 25),)):
        self.levels[room] = level
        self.walls[room] = set()
        self.swamps[room] = set()
        self.structures[room] = {}
        self.markers[room] = {}
        self.units[room] = {}
        self.unit_positions[room] = []
        self.objects[room] = {
            "sources": list(sources),
            "controller": controller,
            "mineral": mineral,
            "spawns": list(spawns),
        }
        for x, y in spawns:
            self.add_structure(room, x, y, "spawn")

    # world interface
    def owned_rooms(self):
        return list(self.levels)

    def controller_level(self, room):
        return self.levels[room]

    def room_objects(self, room):
        return self.objects[room]

    def terrain_at(self, room, x, y):
        self.terrain_reads += 1
        return Terrain(walkable=(x, y) not in self.walls[room], swamp=(x, y) in self.swamps[room])

    def structures_at(self, room, x, y):
        return [SimpleNamespace(structure_type=t) for t in self.structures[room].get((x, y), [])]

    def construction_markers_at(self, room, x, y):
        return [SimpleNamespace(structure_type=t) for t in self.markers[room].get((x, y), [])]

    def units_at(self, room, x, y):
        return list(self.units[room].get((x, y), []))

    def request_construction(self, room, x, y, structure_type):
        self.requests.append((room, x, y, structure_type))
        if self.fail_with is not None:
            return ConstructionResult.failure(self.fail_with)
        if sum(len(v) for v in self.markers[room].values()) >= self.marker_cap:
            return ConstructionResult.failure(ErrorKind.FULL)
        self.markers[room].setdefault((x, y), []).append(structure_type)
        return ConstructionResult.success(f"site-{len(self.requests)}")

    def unit_positions_sample(self, room):
        return list(self.unit_positions[room])

    # test helpers
    def add_structure(self, room, x, y, structure_type):
        self.structures[room].setdefault((x, y), []).append(structure_type)

    def remove_structure(self, room, x, y, structure_type):
        self.structures[room][(x, y)].remove(structure_type)

    def add_walls(self, room, tiles):
        self.walls[room].update(tiles)

    def build_all(self, room):
        for tile, types in self.markers[room].items():
            for structure_type in types:
                self.add_structure(room, tile[0], tile[1], structure_type)
        self.markers[room] = {}

    def requested_types(self):
        return [request[3] for request in self.requests]
