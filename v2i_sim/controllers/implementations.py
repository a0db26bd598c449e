from typing import Dict, Iterable, List, Optional

from v2i_sim.controllers.base import SignalController
from v2i_sim.domain.config import SimulationConfig
from v2i_sim.domain.errors import ConfigurationError
from v2i_sim.domain.graph import as_direction
from v2i_sim.domain.models import (
    AxisPhase, Direction, DirectionSignal, Intersection, SignalState, TurnDirection
)


# Round-robin order of the independent controller
ROUND_ROBIN = [Direction.NORTH, Direction.EAST, Direction.SOUTH, Direction.WEST]

NS_AXIS = (Direction.NORTH, Direction.SOUTH)
EW_AXIS = (Direction.EAST, Direction.WEST)

def all_red() -> Dict[Direction, DirectionSignal]:
    return {d: DirectionSignal(state=SignalState.RED, timer_ms=0.0) for d in ROUND_ROBIN}

def _targets(targets: Iterable) -> List[Direction]:
    resolved = [as_direction(t) for t in targets]
    if not resolved:
        raise ConfigurationError("An emergency override needs at least one direction")
    return resolved


class FourPhaseIndependentController(SignalController):
    """One direction green at a time, served in north, east, south, west order.

    Each direction walks GREEN -> YELLOW -> RED and then waits in RED until
    the round-robin comes back to it.
    """

    def initialize(self, intersection: Intersection, index: int) -> Intersection:
        first = ROUND_ROBIN[index % len(ROUND_ROBIN)]
        signals = all_red()
        signals[first] = DirectionSignal(state=SignalState.GREEN, timer_ms=self.config.green_time_ms)
        return intersection.model_copy(update={
            "signals": signals, "phase": None, "phase_timer_ms": 0.0, "last_green": first,
        })

    @staticmethod
    def next_after(direction: Optional[Direction]) -> Direction:
        if direction is None:
            return ROUND_ROBIN[0]
        return ROUND_ROBIN[(ROUND_ROBIN.index(direction) + 1) % len(ROUND_ROBIN)]

    def tick(self, intersection: Intersection, dt_ms: float) -> Intersection:
        if intersection.emergency_override:
            return intersection

        signals = dict(intersection.signals)
        active = next((d for d in ROUND_ROBIN if signals[d].state != SignalState.RED), None)
        if active is None:
            # All red, hand the green to whoever is next in line
            nxt = self.next_after(intersection.last_green)
            signals[nxt] = DirectionSignal(state=SignalState.GREEN, timer_ms=self.config.green_time_ms)
            return intersection.model_copy(update={"signals": signals, "last_green": nxt})

        current = signals[active]
        remaining = current.timer_ms - dt_ms
        if remaining > 0:
            signals[active] = DirectionSignal(state=current.state, timer_ms=remaining)
            return intersection.model_copy(update={"signals": signals})

        last_green = intersection.last_green
        if current.state == SignalState.GREEN:
            signals[active] = DirectionSignal(state=SignalState.YELLOW, timer_ms=self.config.yellow_time_ms)
        else:
            signals[active] = DirectionSignal(state=SignalState.RED, timer_ms=0.0)
            last_green = self.next_after(active)
            signals[last_green] = DirectionSignal(state=SignalState.GREEN, timer_ms=self.config.green_time_ms)
        return intersection.model_copy(update={"signals": signals, "last_green": last_green})

    def apply_emergency_override(self, intersection: Intersection, targets: Iterable[Direction],
                                 turn_direction: Optional[TurnDirection] = None,
                                 vehicle_id: Optional[str] = None) -> Intersection:
        granted = _targets(targets)
        signals = all_red()
        for direction in granted:
            signals[direction] = DirectionSignal(state=SignalState.GREEN, timer_ms=self.config.green_time_ms)
        return intersection.model_copy(update={
            "signals": signals,
            "last_green": granted[0],
            "emergency_override": True,
            "emergency_turn_direction": turn_direction or TurnDirection.STRAIGHT,
            "override_vehicle_id": vehicle_id,
        })

    def clear_override(self, intersection: Intersection) -> Intersection:
        if not intersection.emergency_override:
            return intersection
        nxt = self.next_after(intersection.last_green)
        signals = all_red()
        signals[nxt] = DirectionSignal(state=SignalState.GREEN, timer_ms=self.config.green_time_ms)
        return intersection.model_copy(update={
            "signals": signals,
            "last_green": nxt,
            "emergency_override": False,
            "emergency_turn_direction": None,
            "override_vehicle_id": None,
        })


class TwoPhaseController(SignalController):
    """Shared north-south / east-west phase: NS_GREEN -> NS_YELLOW -> EW_GREEN -> EW_YELLOW."""

    NEXT_PHASE = {
        AxisPhase.NS_GREEN: AxisPhase.NS_YELLOW,
        AxisPhase.NS_YELLOW: AxisPhase.EW_GREEN,
        AxisPhase.EW_GREEN: AxisPhase.EW_YELLOW,
        AxisPhase.EW_YELLOW: AxisPhase.NS_GREEN,
    }

    @staticmethod
    def signals_for(phase: AxisPhase) -> Dict[Direction, DirectionSignal]:
        signals = all_red()
        served = NS_AXIS if phase in (AxisPhase.NS_GREEN, AxisPhase.NS_YELLOW) else EW_AXIS
        state = SignalState.GREEN if phase in (AxisPhase.NS_GREEN, AxisPhase.EW_GREEN) else SignalState.YELLOW
        for direction in served:
            signals[direction] = DirectionSignal(state=state)
        return signals

    def _duration(self, phase: AxisPhase) -> float:
        if phase in (AxisPhase.NS_GREEN, AxisPhase.EW_GREEN):
            return self.config.green_time_ms
        return self.config.yellow_time_ms

    def _enter(self, intersection: Intersection, phase: AxisPhase, **extra) -> Intersection:
        duration = self._duration(phase)
        signals = self.signals_for(phase)
        for direction, signal in signals.items():
            if signal.state != SignalState.RED:
                signals[direction] = DirectionSignal(state=signal.state, timer_ms=duration)
        update = {"signals": signals, "phase": phase, "phase_timer_ms": duration, "last_green": None}
        update.update(extra)
        return intersection.model_copy(update=update)

    def initialize(self, intersection: Intersection, index: int) -> Intersection:
        # Offset neighbouring intersections so the grid does not switch in lockstep
        phase = AxisPhase.NS_GREEN if index % 2 == 0 else AxisPhase.EW_GREEN
        return self._enter(intersection, phase)

    def tick(self, intersection: Intersection, dt_ms: float) -> Intersection:
        if intersection.emergency_override:
            return intersection
        phase = intersection.phase or AxisPhase.NS_GREEN
        remaining = intersection.phase_timer_ms - dt_ms
        if remaining > 0:
            signals = {
                d: DirectionSignal(state=s.state, timer_ms=remaining if s.state != SignalState.RED else 0.0)
                for d, s in intersection.signals.items()
            }
            return intersection.model_copy(update={"signals": signals, "phase_timer_ms": remaining})
        return self._enter(intersection, self.NEXT_PHASE[phase])

    def apply_emergency_override(self, intersection: Intersection, targets: Iterable[Direction],
                                 turn_direction: Optional[TurnDirection] = None,
                                 vehicle_id: Optional[str] = None) -> Intersection:
        granted = _targets(targets)
        axes = {d in NS_AXIS for d in granted}
        if len(axes) != 1:
            raise ConfigurationError("A two-phase intersection can only grant one axis at a time")
        phase = AxisPhase.NS_GREEN if axes.pop() else AxisPhase.EW_GREEN
        return self._enter(intersection, phase,
                           emergency_override=True,
                           emergency_turn_direction=turn_direction or TurnDirection.STRAIGHT,
                           override_vehicle_id=vehicle_id)

    def clear_override(self, intersection: Intersection) -> Intersection:
        if not intersection.emergency_override:
            return intersection
        # Serve the axis that was held red during the override first
        held = intersection.phase or AxisPhase.NS_GREEN
        phase = AxisPhase.EW_GREEN if held in (AxisPhase.NS_GREEN, AxisPhase.NS_YELLOW) else AxisPhase.NS_GREEN
        return self._enter(intersection, phase,
                           emergency_override=False,
                           emergency_turn_direction=None,
                           override_vehicle_id=None)


def build_controller(config: SimulationConfig) -> SignalController:
    if config.signal_mode == "two_phase":
        return TwoPhaseController(config)
    if config.signal_mode == "four_phase":
        return FourPhaseIndependentController(config)
    raise ConfigurationError(f"Unknown signal mode {config.signal_mode!r}")
