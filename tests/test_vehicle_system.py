import random
import unittest
from v2i_sim.controllers.implementations import all_red
from v2i_sim.domain.graph import RoadGrid
from v2i_sim.domain.models import (
    Direction, DirectionSignal, Intersection, Point, SignalState, TurnDirection, Vehicle,
    VehicleKind, VehicleStatus
)
from v2i_sim.routing.planner import RoutePlanner
from v2i_sim.systems.vehicle_system import VehicleSystem

def make_vehicle(vid, x, y, direction=Direction.EAST, kind=VehicleKind.CAR, speed=2.0,
                 road=0, lane=1, destination=None, **extra):
    if destination is None:
        destination = {
            Direction.EAST: Point(x=950.0, y=y), Direction.WEST: Point(x=-50.0, y=y),
            Direction.SOUTH: Point(x=x, y=750.0), Direction.NORTH: Point(x=x, y=-50.0),
        }[direction]
    return Vehicle(id=vid, spawn_seq=extra.pop("spawn_seq", 1), type=kind, x=x, y=y, direction=direction,
                   speed=speed, road=road, lane=lane, destination=destination, **extra)

def grid_signals(grid, state_for):
    intersections = {}
    for iid in grid.intersection_ids:
        x, y = grid.position(iid)
        h_road, v_road = grid.roads_of(iid)
        signals = all_red()
        for direction in Direction:
            signals[direction] = DirectionSignal(state=state_for(direction), timer_ms=1e9)
        intersections[iid] = Intersection(id=iid, x=x, y=y, h_road=h_road, v_road=v_road, signals=signals)
    return intersections

def only(vehicles, vid):
    return next(v for v in vehicles if v.id == vid)

class TestVehicleSystem(unittest.TestCase):
    def setUp(self):
        self.grid = RoadGrid()
        self.system = VehicleSystem(self.grid)
        self.green = grid_signals(self.grid, lambda d: SignalState.GREEN)
        self.red = grid_signals(self.grid, lambda d: SignalState.RED)
        self.yellow = grid_signals(self.grid, lambda d: SignalState.YELLOW)

    def step(self, vehicles, intersections=None, multiplier=1.0, cleared=frozenset()):
        return self.system.update(vehicles, intersections or self.green, multiplier, cleared)

    def test_free_motion(self):
        result = self.step([make_vehicle("a", 0.0, 188.0)])
        a = only(result.vehicles, "a")
        self.assertEqual((a.x, a.y), (2.0, 188.0))
        self.assertEqual(a.status, VehicleStatus.MOVING)
        self.assertFalse(a.stopped)

    def test_speed_multiplier_scales_movement(self):
        a = only(self.step([make_vehicle("a", 0.0, 188.0)], multiplier=2.5).vehicles, "a")
        self.assertEqual(a.x, 5.0)

    def test_lane_locking(self):
        a = only(self.step([make_vehicle("a", 0.0, 191.0)]).vehicles, "a")
        self.assertEqual(a.y, 188.0)

    def test_stops_at_red(self):
        a = only(self.step([make_vehicle("a", 240.0, 188.0)], self.red).vehicles, "a")
        self.assertEqual(a.x, 240.0)
        self.assertTrue(a.stopped)
        self.assertEqual(a.status, VehicleStatus.STOPPED)

    def test_red_out_of_range_keeps_moving(self):
        a = only(self.step([make_vehicle("a", 200.0, 188.0)], self.red).vehicles, "a")
        self.assertEqual(a.x, 202.0)

    def test_stops_at_yellow(self):
        a = only(self.step([make_vehicle("a", 240.0, 188.0)], self.yellow).vehicles, "a")
        self.assertTrue(a.stopped)

    def test_vehicle_inside_intersection_clears_it(self):
        a = only(self.step([make_vehicle("a", 280.0, 188.0)], self.red).vehicles, "a")
        self.assertEqual(a.x, 282.0)

    def test_queue_behind_stopped_vehicle(self):
        lead = make_vehicle("lead", 100.0, 188.0, stopped=True)
        follower = make_vehicle("follower", 70.0, 188.0)
        result = self.step([lead, follower])
        f = only(result.vehicles, "follower")
        self.assertEqual(f.x, 70.0)
        self.assertEqual(f.status, VehicleStatus.STOPPED_QUEUE)

    def test_following_never_closes_inside_safe_distance(self):
        lead = make_vehicle("lead", 100.0, 188.0, speed=1.5)
        follower = make_vehicle("follower", 59.0, 188.0)
        result = self.step([lead, follower])
        f = only(result.vehicles, "follower")
        self.assertEqual(f.status, VehicleStatus.FOLLOWING)
        self.assertEqual(f.x, 60.0)

        lead = make_vehicle("lead", 100.0, 188.0, speed=1.5)
        follower = make_vehicle("follower", 20.0, 188.0)
        f = only(self.step([lead, follower]).vehicles, "follower")
        self.assertEqual(f.status, VehicleStatus.MOVING)
        self.assertEqual(f.x, 22.0)

    def test_coincident_vehicles_later_spawn_follows(self):
        first = make_vehicle("a", 100.0, 188.0, spawn_seq=1)
        second = make_vehicle("b", 100.0, 188.0, spawn_seq=2)
        result = self.step([second, first])
        a, b = only(result.vehicles, "a"), only(result.vehicles, "b")
        self.assertEqual(a.x, 102.0)
        self.assertEqual(a.status, VehicleStatus.MOVING)
        self.assertEqual(b.x, 100.0)
        self.assertEqual(b.status, VehicleStatus.FOLLOWING)

        lead, gap = self.system.find_vehicle_ahead(second, [first, second])
        self.assertEqual((lead.id, gap), ("a", 0.0))
        lead, _ = self.system.find_vehicle_ahead(first, [first, second])
        self.assertIsNone(lead)

    def test_other_lane_and_opposite_direction_ignored(self):
        other_lane = make_vehicle("b", 20.0, 170.0, lane=2, stopped=True)
        oncoming = make_vehicle("c", 30.0, 188.0, direction=Direction.WEST, stopped=True)
        a = only(self.step([make_vehicle("a", 0.0, 188.0), other_lane, oncoming]).vehicles, "a")
        self.assertEqual(a.x, 2.0)

    def test_emergency_ignores_signals_and_traffic(self):
        lead = make_vehicle("lead", 260.0, 188.0, stopped=True)
        ev = make_vehicle("ev", 240.0, 188.0, kind=VehicleKind.EMERGENCY, speed=4.0)
        result = self.step([lead, ev], self.red)
        self.assertEqual(only(result.vehicles, "ev").x, 244.0)

    def test_destination_reached(self):
        result = self.step([make_vehicle("a", 946.0, 188.0), make_vehicle("b", 945.0, 188.0, lane=2)])
        self.assertEqual(result.reached, ["a"])
        # Moves are clamped to the remaining distance
        b = make_vehicle("b", 948.0, 170.0, lane=2, speed=4.0, destination=Point(x=955.0, y=170.0))
        self.assertEqual(only(self.step([b]).vehicles, "b").x, 952.0)
        b = make_vehicle("b", 952.0, 170.0, lane=2, speed=8.0, destination=Point(x=958.0, y=170.0))
        self.assertEqual(only(self.step([b]).vehicles, "b").x, 958.0)

    def test_yield_to_emergency_vehicle(self):
        ev = make_vehicle("ev", 150.0, 188.0, kind=VehicleKind.EMERGENCY, speed=4.0)
        car = make_vehicle("car", 288.0, 130.0, direction=Direction.SOUTH)
        self.assertEqual(self.system.emergency_zones([ev]), {1})

        c = only(self.step([ev, car]).vehicles, "car")
        self.assertTrue(c.stopped)
        self.assertEqual(c.status, VehicleStatus.STOPPED)

        c = only(self.step([ev, car], cleared=frozenset({"car"})).vehicles, "car")
        self.assertEqual(c.y, 132.0)

        # Further back than the stop threshold keeps moving
        car = make_vehicle("car", 288.0, 100.0, direction=Direction.SOUTH)
        self.assertEqual(only(self.step([ev, car]).vehicles, "car").y, 102.0)

    def test_update_is_order_independent(self):
        lead = make_vehicle("lead", 100.0, 188.0, speed=1.5)
        follower = make_vehicle("follower", 59.0, 188.0)
        forward = {v.id: v for v in self.step([lead, follower]).vehicles}
        backward = {v.id: v for v in self.step([follower, lead]).vehicles}
        self.assertEqual(forward, backward)

class TestTurnExecution(unittest.TestCase):
    def setUp(self):
        self.grid = RoadGrid()
        self.system = VehicleSystem(self.grid)
        self.green = grid_signals(self.grid, lambda d: SignalState.GREEN)
        route = RoutePlanner(self.grid, random.Random(0)).build_turn_route(
            "emergency", Direction.EAST, TurnDirection.RIGHT)
        self.route = route

    def ev_at(self, x, y, path_index, **extra):
        update = dict(path=self.route.path, path_index=path_index, turn_direction=TurnDirection.RIGHT,
                      planned_turn_intersection_id=2, destination=self.route.destination)
        update.update(extra)
        return make_vehicle("ev", x, y, kind=VehicleKind.EMERGENCY, speed=4.0, **update)

    def test_entry_waypoint_advances(self):
        ev = only(self.system.update([self.ev_at(552.0, 188.0, 1)], self.green, 1.0).vehicles, "ev")
        self.assertEqual(ev.path_index, 2)
        self.assertEqual(ev.status, VehicleStatus.TURNING)

    def test_mid_turn_is_not_lane_locked(self):
        ev = only(self.system.update([self.ev_at(558.0, 188.0, 2)], self.green, 1.0).vehicles, "ev")
        self.assertGreater(ev.y, 188.0)
        self.assertEqual(ev.direction, Direction.EAST)

    def test_turn_commits_at_planned_intersection(self):
        last = len(self.route.path) - 2
        ev = only(self.system.update([self.ev_at(588.0, 212.0, last)], self.green, 1.0).vehicles, "ev")
        self.assertEqual(ev.direction, Direction.SOUTH)
        self.assertEqual(ev.road, 1)
        self.assertEqual((ev.x, ev.y), (588.0, 212.0))
        self.assertIsNone(ev.path)
        self.assertEqual(ev.destination, Point(x=588.0, y=750.0))

        # Travels on the new lane afterwards
        ev = only(self.system.update([ev], self.green, 1.0).vehicles, "ev")
        self.assertEqual((ev.x, ev.y), (588.0, 216.0))

    def test_turn_mismatch_continues_straight(self):
        last = len(self.route.path) - 2
        vehicle = self.ev_at(588.0, 212.0, last, planned_turn_intersection_id=4)
        with self.assertLogs("v2i_sim.systems.vehicle_system", level="WARNING"):
            ev = only(self.system.update([vehicle], self.green, 1.0).vehicles, "ev")
        self.assertEqual(ev.direction, Direction.EAST)
        self.assertIsNone(ev.path)
        self.assertEqual(ev.destination, Point(x=950.0, y=188.0))

if __name__ == '__main__':
    unittest.main()
