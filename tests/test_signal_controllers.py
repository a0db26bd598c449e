import unittest
from v2i_sim.controllers.implementations import (
    FourPhaseIndependentController, TwoPhaseController, all_red, build_controller
)
from v2i_sim.domain.config import SimulationConfig
from v2i_sim.domain.errors import ConfigurationError
from v2i_sim.domain.models import AxisPhase, Direction, Intersection, SignalState, TurnDirection

def blank_intersection(iid: int = 1) -> Intersection:
    return Intersection(id=iid, x=310.0, y=210.0, h_road=0, v_road=0, signals=all_red())

def non_red(intersection: Intersection):
    return [d for d, s in intersection.signals.items() if s.state != SignalState.RED]

class TestFourPhaseController(unittest.TestCase):
    def setUp(self):
        self.controller = FourPhaseIndependentController(SimulationConfig())

    def test_initial_green_is_staggered(self):
        self.assertEqual(self.controller.initialize(blank_intersection(), 0).green_directions(), [Direction.NORTH])
        self.assertEqual(self.controller.initialize(blank_intersection(), 1).green_directions(), [Direction.EAST])

    def test_green_yellow_red_handover(self):
        i = self.controller.initialize(blank_intersection(), 0)
        i = self.controller.tick(i, 8000.0)
        self.assertEqual(i.signal_for(Direction.NORTH), SignalState.YELLOW)
        self.assertEqual(i.signals[Direction.NORTH].timer_ms, 2000.0)
        i = self.controller.tick(i, 2000.0)
        self.assertEqual(i.signal_for(Direction.NORTH), SignalState.RED)
        self.assertEqual(i.green_directions(), [Direction.EAST])
        self.assertEqual(i.last_green, Direction.EAST)

    def test_single_active_direction_in_round_robin_order(self):
        i = self.controller.initialize(blank_intersection(), 0)
        greens = [Direction.NORTH]
        for _ in range(int(45000 / 50)):
            i = self.controller.tick(i, 50.0)
            self.assertEqual(len(non_red(i)), 1)
            current = i.green_directions()
            if current and current[0] != greens[-1]:
                greens.append(current[0])
        self.assertEqual(greens[:5], [Direction.NORTH, Direction.EAST, Direction.SOUTH,
                                      Direction.WEST, Direction.NORTH])

    def test_all_red_recovers(self):
        i = blank_intersection().model_copy(update={"last_green": Direction.WEST})
        i = self.controller.tick(i, 50.0)
        self.assertEqual(i.green_directions(), [Direction.NORTH])

    def test_tick_does_not_mutate_input(self):
        i = self.controller.initialize(blank_intersection(), 0)
        self.controller.tick(i, 50.0)
        self.assertEqual(i.signals[Direction.NORTH].timer_ms, 8000.0)

    def test_override_and_clear(self):
        i = self.controller.initialize(blank_intersection(), 0)
        i = self.controller.apply_emergency_override(i, [Direction.EAST], TurnDirection.RIGHT, "v-0001-123")
        self.assertTrue(i.emergency_override)
        self.assertEqual(i.green_directions(), [Direction.EAST])
        self.assertEqual(i.emergency_turn_direction, TurnDirection.RIGHT)
        self.assertEqual(i.override_vehicle_id, "v-0001-123")

        # Timers are frozen during an override
        held = self.controller.tick(i, 20000.0)
        self.assertEqual(held, i)

        cleared = self.controller.clear_override(i)
        self.assertFalse(cleared.emergency_override)
        self.assertIsNone(cleared.override_vehicle_id)
        self.assertEqual(cleared.green_directions(), [Direction.SOUTH])
        self.assertEqual(cleared.signals[Direction.SOUTH].timer_ms, 8000.0)

    def test_override_rejects_bad_targets(self):
        i = self.controller.initialize(blank_intersection(), 0)
        with self.assertRaises(ConfigurationError):
            self.controller.apply_emergency_override(i, [])
        with self.assertRaises(ConfigurationError):
            self.controller.apply_emergency_override(i, ["up"])

class TestTwoPhaseController(unittest.TestCase):
    def setUp(self):
        self.controller = TwoPhaseController(SimulationConfig(signal_mode="two_phase"))

    def test_initial_phase_alternates(self):
        even = self.controller.initialize(blank_intersection(), 0)
        odd = self.controller.initialize(blank_intersection(), 1)
        self.assertEqual(even.phase, AxisPhase.NS_GREEN)
        self.assertEqual(sorted(even.green_directions()), [Direction.NORTH, Direction.SOUTH])
        self.assertEqual(odd.phase, AxisPhase.EW_GREEN)

    def test_phase_cycle(self):
        i = self.controller.initialize(blank_intersection(), 0)
        i = self.controller.tick(i, 50.0)
        self.assertEqual(i.phase_timer_ms, 7950.0)
        i = self.controller.tick(i, 7950.0)
        self.assertEqual(i.phase, AxisPhase.NS_YELLOW)
        self.assertEqual(i.signal_for(Direction.NORTH), SignalState.YELLOW)
        i = self.controller.tick(i, 2000.0)
        self.assertEqual(i.phase, AxisPhase.EW_GREEN)
        i = self.controller.tick(i, 8000.0)
        i = self.controller.tick(i, 2000.0)
        self.assertEqual(i.phase, AxisPhase.NS_GREEN)

    def test_axes_never_both_open(self):
        i = self.controller.initialize(blank_intersection(), 1)
        for _ in range(1000):
            i = self.controller.tick(i, 50.0)
            open_dirs = set(non_red(i))
            self.assertTrue(open_dirs <= {Direction.NORTH, Direction.SOUTH} or
                            open_dirs <= {Direction.EAST, Direction.WEST})

    def test_override_single_axis(self):
        i = self.controller.initialize(blank_intersection(), 0)
        i = self.controller.apply_emergency_override(i, [Direction.EAST], vehicle_id="v-0001-100")
        self.assertTrue(i.emergency_override)
        self.assertEqual(i.phase, AxisPhase.EW_GREEN)
        self.assertEqual(i.emergency_turn_direction, TurnDirection.STRAIGHT)
        self.assertEqual(self.controller.tick(i, 50000.0), i)

        cleared = self.controller.clear_override(i)
        self.assertFalse(cleared.emergency_override)
        self.assertEqual(cleared.phase, AxisPhase.NS_GREEN)

    def test_override_spanning_axes_is_rejected(self):
        i = self.controller.initialize(blank_intersection(), 0)
        with self.assertRaises(ConfigurationError):
            self.controller.apply_emergency_override(i, [Direction.EAST, Direction.NORTH])

class TestBuildController(unittest.TestCase):
    def test_modes(self):
        self.assertIsInstance(build_controller(SimulationConfig()), FourPhaseIndependentController)
        self.assertIsInstance(build_controller(SimulationConfig(signal_mode="two_phase")), TwoPhaseController)

if __name__ == '__main__':
    unittest.main()
