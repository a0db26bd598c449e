import logging
import math
from typing import AbstractSet, Dict, List, Optional, Sequence, Set, Tuple
from pydantic import BaseModel

from v2i_sim.domain.graph import RoadGrid, is_horizontal, turn_target
from v2i_sim.domain.models import (
    Intersection, Point, SignalState, TurnDirection, Vehicle, VehicleStatus
)

logger = logging.getLogger(__name__)

class VehicleUpdate(BaseModel):
    vehicles: List[Vehicle]
    reached: List[str] = []

class VehicleSystem:
    """Per-tick kinematics, car following, signal compliance and turn execution.

    Every vehicle is resolved against the same pre-tick ``snapshot`` and the
    results are collected into a new list, so processing order never leaks
    into the outcome.
    """

    def __init__(self, grid: RoadGrid):
        self.grid = grid
        self.config = grid.config

    def update(self, vehicles: Sequence[Vehicle], intersections: Dict[int, Intersection],
               speed_multiplier: float, cleared_ids: AbstractSet[str] = frozenset()) -> VehicleUpdate:
        snapshot = tuple(vehicles)
        near_emergency = self.emergency_zones(snapshot)

        moved: List[Vehicle] = []
        reached: List[str] = []
        for v in snapshot:
            result = self._update_single_vehicle(v, snapshot, intersections, near_emergency,
                                                 cleared_ids, speed_multiplier)
            if result is None:
                reached.append(v.id)
            else:
                moved.append(result)
        return VehicleUpdate(vehicles=moved, reached=reached)

    def emergency_zones(self, snapshot: Sequence[Vehicle]) -> Set[int]:
        """Intersections with an emergency vehicle inside the detection distance."""
        zones = set()
        for ev in snapshot:
            if not ev.is_emergency:
                continue
            for iid in self.grid.intersection_ids:
                if self.grid.distance_to(ev.x, ev.y, iid) <= self.config.detection_distance:
                    zones.add(iid)
        return zones

    def _update_single_vehicle(self, v: Vehicle, snapshot: Sequence[Vehicle],
                               intersections: Dict[int, Intersection], near_emergency: Set[int],
                               cleared_ids: AbstractSet[str], speed_multiplier: float) -> Optional[Vehicle]:
        cfg = self.config
        target = v.target
        remaining = math.hypot(target.x - v.x, target.y - v.y)

        # 1. Destination
        if v.on_final_leg and remaining < cfg.destination_reach_distance:
            return None

        step = v.speed * speed_multiplier

        if not v.is_emergency:
            # 2. Vehicle ahead
            lead, gap = self.find_vehicle_ahead(v, snapshot)
            in_band = lead is not None and gap < cfg.safe_distance + step
            if in_band and lead.stopped:
                return self._halt(v, VehicleStatus.STOPPED_QUEUE)

            # 3 + 4. Signal and emergency approach
            if v.id not in cleared_ids:
                if self.must_stop_for_signal(v, intersections) or self.must_yield_to_emergency(v, near_emergency):
                    return self._halt(v, VehicleStatus.STOPPED)

            if in_band:
                follow = lead.speed * speed_multiplier * cfg.deceleration_factor
                budget = min(follow, max(0.0, gap - cfg.safe_distance))
                return self._advance(v, target, budget, VehicleStatus.FOLLOWING)

        # 5. Waypoints
        if v.path is not None and not v.on_final_leg and remaining < cfg.waypoint_reach_distance:
            return self._advance_waypoint(v)

        # 6. Straight-line motion
        status = VehicleStatus.TURNING if v.mid_turn else VehicleStatus.MOVING
        return self._advance(v, target, step, status)

    # --- checks ---

    def find_vehicle_ahead(self, v: Vehicle, snapshot: Sequence[Vehicle]) -> Tuple[Optional[Vehicle], float]:
        lead, gap = None, math.inf
        for other in snapshot:
            if other.id == v.id or other.direction != v.direction:
                continue
            along, lateral = self.grid.relative_offset(v.x, v.y, v.direction, other.x, other.y)
            if along < 0 or abs(lateral) >= self.config.lane_tolerance:
                continue
            # Coincident vehicles: the earlier spawn leads
            if along == 0 and (other.spawn_seq, other.id) > (v.spawn_seq, v.id):
                continue
            if along < gap:
                lead, gap = other, along
        return lead, gap

    def must_stop_for_signal(self, v: Vehicle, intersections: Dict[int, Intersection]) -> bool:
        for intersection in intersections.values():
            if self.grid.distance_to(v.x, v.y, intersection.id) >= self.config.intersection_check_distance:
                continue
            # Vehicles already in the box, or past the center, clear it
            if self.grid.is_inside(v.x, v.y, intersection.id):
                continue
            if not self.grid.is_ahead(v.x, v.y, v.direction, intersection.id):
                continue
            state = intersection.signal_for(v.direction)
            if state == SignalState.RED or (state == SignalState.YELLOW and self.config.stop_on_yellow):
                return True
        return False

    def must_yield_to_emergency(self, v: Vehicle, near_emergency: Set[int]) -> bool:
        half = self.config.intersection_half_size
        for iid in near_emergency:
            if self.grid.is_inside(v.x, v.y, iid):
                continue
            along, lateral = self.grid.relative_offset(v.x, v.y, v.direction, *self.grid.position(iid))
            if along <= 0 or abs(lateral) > half:
                continue
            if 0 < along - half <= self.config.emergency_stop_threshold:
                return True
        return False

    # --- state transitions ---

    def _halt(self, v: Vehicle, status: VehicleStatus) -> Vehicle:
        return v.model_copy(update={"stopped": True, "status": status})

    def _advance(self, v: Vehicle, target: Point, budget: float, status: VehicleStatus) -> Vehicle:
        x, y = v.x, v.y
        dx, dy = target.x - x, target.y - y
        dist = math.hypot(dx, dy)
        if dist > 0 and budget > 0:
            move = min(budget, dist)
            x += dx / dist * move
            y += dy / dist * move

        # Lane locking: only the along-travel coordinate is free
        if not v.mid_turn:
            cross = self.grid.lane_center(v.road, v.lane, v.direction)
            if is_horizontal(v.direction):
                y = cross
            else:
                x = cross
        return v.model_copy(update={"x": x, "y": y, "stopped": False, "status": status})

    def _advance_waypoint(self, v: Vehicle) -> Vehicle:
        next_index = v.path_index + 1
        if next_index < len(v.path) - 1:
            return v.model_copy(update={"path_index": next_index, "stopped": False,
                                        "status": VehicleStatus.TURNING})

        nearest, _ = self.grid.nearest_intersection(v.x, v.y)
        if v.turn_direction in (TurnDirection.LEFT, TurnDirection.RIGHT) and nearest == v.planned_turn_intersection_id:
            direction = turn_target(v.direction, v.turn_direction)
            road = self.grid.road_after_turn(nearest, direction)
            cross = self.grid.lane_center(road, v.lane, direction)
            x, y = (v.x, cross) if is_horizontal(direction) else (cross, v.y)
            logger.info("%s %s turning %s at intersection %s: %s -> %s",
                        v.type.value, v.id, v.turn_direction.value, nearest,
                        v.direction.value, direction.value)
            return v.model_copy(update={
                "x": x, "y": y, "direction": direction, "road": road,
                "path": None, "path_index": None, "destination": v.path[-1],
                "stopped": False, "status": VehicleStatus.TURNING,
            })

        logger.warning("%s %s reached its turn point near intersection %s instead of %s, continuing straight",
                       v.type.value, v.id, nearest, v.planned_turn_intersection_id)
        _, end = self.grid.route_endpoints(v.road, v.lane, v.direction)
        return v.model_copy(update={"path": None, "path_index": None, "destination": end,
                                    "stopped": False, "status": VehicleStatus.MOVING})
