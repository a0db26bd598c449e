import logging
from typing import Dict, List, Optional, Sequence, Set
from pydantic import BaseModel

from v2i_sim.controllers.base import SignalController
from v2i_sim.domain.graph import RoadGrid, turn_target
from v2i_sim.domain.models import Direction, Intersection, TurnDirection, Vehicle

logger = logging.getLogger(__name__)

class PreemptionResult(BaseModel):
    intersections: Dict[int, Intersection]
    cleared_ids: Set[str] = set()
    activated: List[int] = []
    released: List[int] = []

class EmergencyArbitrator:
    """Grants right-of-way to emergency vehicles ahead of their arrival.

    An intersection is claimed by the first emergency vehicle (lowest spawn
    sequence) that enters its detection window while approaching it, and
    stays claimed until that vehicle is farther than the clear distance.
    """

    def __init__(self, grid: RoadGrid, controller: SignalController):
        self.grid = grid
        self.config = grid.config
        self.controller = controller

    def run_tick(self, intersections: Dict[int, Intersection], vehicles: Sequence[Vehicle]) -> PreemptionResult:
        emergencies = sorted((v for v in vehicles if v.is_emergency), key=lambda v: v.spawn_seq)
        result = self.apply_preemption(intersections, emergencies)
        result.cleared_ids = self.queue_clearance(emergencies, vehicles)
        return result

    def target_direction(self, ev: Vehicle, intersection_id: int) -> Direction:
        turning_here = (
            ev.planned_turn_intersection_id == intersection_id
            and ev.turn_direction in (TurnDirection.LEFT, TurnDirection.RIGHT)
            and ev.path is not None
        )
        if turning_here:
            return turn_target(ev.direction, ev.turn_direction)
        return ev.direction

    def demands_preemption(self, ev: Vehicle, intersection_id: int) -> bool:
        dist = self.grid.distance_to(ev.x, ev.y, intersection_id)
        if not self.config.preemption_min_distance < dist <= self.config.detection_distance:
            return False
        return self.grid.is_ahead(ev.x, ev.y, ev.direction, intersection_id)

    def _holder(self, intersection: Intersection, emergencies: Sequence[Vehicle]) -> Optional[Vehicle]:
        if not intersection.emergency_override:
            return None
        for ev in emergencies:
            if ev.id == intersection.override_vehicle_id:
                if self.grid.distance_to(ev.x, ev.y, intersection.id) <= self.config.emergency_clear_distance:
                    return ev
                return None
        return None

    def apply_preemption(self, intersections: Dict[int, Intersection],
                         emergencies: Sequence[Vehicle]) -> PreemptionResult:
        updated: Dict[int, Intersection] = {}
        activated, released = [], []

        for iid, intersection in intersections.items():
            holder = self._holder(intersection, emergencies)
            if holder is None:
                demands = [ev for ev in emergencies if self.demands_preemption(ev, iid)]
                if demands:
                    holder = demands[0]
                    wanted = {self.target_direction(ev, iid) for ev in demands}
                    if len(wanted) > 1:
                        logger.warning("Conflicting emergency demands at intersection %s (%s), granting %s to %s",
                                       iid, sorted(d.value for d in wanted),
                                       self.target_direction(holder, iid).value, holder.id)

            if holder is None:
                if intersection.emergency_override:
                    logger.info("Intersection %s released by %s", iid, intersection.override_vehicle_id)
                    released.append(iid)
                    intersection = self.controller.clear_override(intersection)
                updated[iid] = intersection
                continue

            if intersection.override_vehicle_id != holder.id:
                logger.info("Intersection %s preempted for %s %s", iid, holder.type.value, holder.id)
                activated.append(iid)
            updated[iid] = self.controller.apply_emergency_override(
                intersection, [self.target_direction(holder, iid)],
                turn_direction=holder.turn_direction, vehicle_id=holder.id,
            )

        return PreemptionResult(intersections=updated, activated=activated, released=released)

    def queue_clearance(self, emergencies: Sequence[Vehicle], vehicles: Sequence[Vehicle]) -> Set[str]:
        """Regular vehicles in an emergency vehicle's lane, between it and the next intersection."""
        cleared: Set[str] = set()
        for ev in emergencies:
            upcoming = self.grid.next_intersection(ev.x, ev.y, ev.direction)
            if upcoming is None:
                continue
            _, intersection_along = upcoming
            for v in vehicles:
                if v.is_emergency or v.direction != ev.direction:
                    continue
                along, lateral = self.grid.relative_offset(ev.x, ev.y, ev.direction, v.x, v.y)
                if along <= 0 or along > self.config.queue_clearance_distance:
                    continue
                if abs(lateral) >= self.config.lane_tolerance:
                    continue
                if along < intersection_along:
                    cleared.add(v.id)
        if cleared:
            logger.debug("Emergency clearance granted to %s", sorted(cleared))
        return cleared
