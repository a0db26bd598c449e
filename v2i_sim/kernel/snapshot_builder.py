from v2i_sim.domain.models import (
    Intersection, IntersectionView, SignalDetails, SimulationSnapshot, Vehicle, VehicleView
)
from v2i_sim.domain.state import SimulationState

class SnapshotBuilder:
    """Read-only camelCase views of the kernel state for the UI."""

    def build(self, state: SimulationState) -> SimulationSnapshot:
        return SimulationSnapshot(
            tick=state.tick_id,
            timeMs=state.time_ms,
            vehicles=[self.vehicle_view(v) for v in state.vehicles],
            intersections=[self.intersection_view(i) for _, i in sorted(state.intersections.items())],
            links=list(state.links),
            statistics=state.statistics.model_copy(),
            emergencyActive=state.emergency_active,
            paused=state.paused,
            speedMultiplier=state.speed_multiplier,
        )

    def vehicle_view(self, v: Vehicle) -> VehicleView:
        return VehicleView(
            id=v.id,
            x=v.x,
            y=v.y,
            direction=v.direction,
            type=v.type,
            isEmergency=v.is_emergency,
            stopped=v.stopped,
            status=v.status,
            turnDirection=v.turn_direction,
        )

    def intersection_view(self, i: Intersection) -> IntersectionView:
        return IntersectionView(
            id=i.id,
            x=i.x,
            y=i.y,
            signals={d: s.state for d, s in i.signals.items()},
            emergencyOverride=i.emergency_override,
            emergencyTurnDirection=i.emergency_turn_direction,
        )

    def details(self, intersection: Intersection) -> SignalDetails:
        return SignalDetails(
            intersectionId=intersection.id,
            signals={d: s.state for d, s in intersection.signals.items()},
            timerRemaining={d: round(max(0.0, s.timer_ms) / 1000.0, 2) for d, s in intersection.signals.items()},
            phase=intersection.phase,
            emergencyOverride=intersection.emergency_override,
            overrideVehicleId=intersection.override_vehicle_id,
        )
