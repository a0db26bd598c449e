import logging
import random
from typing import List, Optional, Sequence
from pydantic import BaseModel

from v2i_sim.domain.errors import NoRouteError
from v2i_sim.domain.graph import DIRECTION_VECTORS, RoadGrid, is_horizontal, turn_target
from v2i_sim.domain.models import Direction, Point, TurnDirection, Vehicle, VehicleKind
from v2i_sim.routing.arc import compute_turn_arc

logger = logging.getLogger(__name__)

# Approach order of the canonical turn routes
TURN_APPROACHES = [Direction.NORTH, Direction.EAST, Direction.SOUTH, Direction.WEST]

class RouteTemplate(BaseModel):
    road: int
    lane: int
    direction: Direction
    start: Point
    end: Point

class PlannedRoute(BaseModel):
    kind: VehicleKind
    speed: float
    start: Point
    destination: Point
    direction: Direction
    road: int
    lane: int
    path: Optional[List[Point]] = None
    path_index: Optional[int] = None
    turn_direction: Optional[TurnDirection] = None
    planned_turn_intersection_id: Optional[int] = None


def parse_kind(kind) -> VehicleKind:
    try:
        return VehicleKind(kind)
    except ValueError:
        raise NoRouteError(f"No route template for vehicle kind {kind!r}") from None

def parse_turn(turn) -> Optional[TurnDirection]:
    if turn is None:
        return None
    try:
        return TurnDirection(turn)
    except ValueError:
        raise NoRouteError(f"No route template for turn {turn!r}") from None

def parse_approach(approach) -> Optional[Direction]:
    if approach is None:
        return None
    try:
        return Direction(approach)
    except ValueError:
        raise NoRouteError(f"No route template approaching from {approach!r}") from None


class RoutePlanner:
    """Chooses a route for every spawn and fixes where an emergency vehicle turns."""

    TURN_ROAD = 0
    TURN_LANE = 1

    def __init__(self, grid: RoadGrid, rng: Optional[random.Random] = None):
        self.grid = grid
        self.config = grid.config
        self.rng = rng or random.Random()
        self.straight_routes = self._build_straight_routes()

    def _build_straight_routes(self) -> List[RouteTemplate]:
        routes = []
        for direction in (Direction.EAST, Direction.WEST, Direction.SOUTH, Direction.NORTH):
            roads = self.config.horizontal_roads if is_horizontal(direction) else self.config.vertical_roads
            for road in range(len(roads)):
                for lane in sorted(self.config.lane_offsets):
                    start, end = self.grid.route_endpoints(road, lane, direction)
                    routes.append(RouteTemplate(road=road, lane=lane, direction=direction, start=start, end=end))
        return routes

    def start_is_clear(self, start: Point, direction: Direction, vehicles: Sequence[Vehicle]) -> bool:
        """False when a vehicle in the same lane sits within safe distance of ``start``."""
        for other in vehicles:
            if other.direction != direction:
                continue
            along, lateral = self.grid.relative_offset(start.x, start.y, direction, other.x, other.y)
            if abs(along) < self.config.safe_distance and abs(lateral) < self.config.lane_tolerance:
                return False
        return True

    def plan(self, kind, turn_direction=None, approach: Optional[Direction] = None,
             vehicles: Sequence[Vehicle] = ()) -> PlannedRoute:
        """Route for a new vehicle whose start is clear of ``vehicles``."""
        kind = parse_kind(kind)
        turn = parse_turn(turn_direction)
        approach = parse_approach(approach)
        if kind.value not in self.config.vehicle_speeds:
            raise NoRouteError(f"No speed configured for {kind.value}")

        if turn in (TurnDirection.LEFT, TurnDirection.RIGHT):
            if not kind.is_emergency:
                raise NoRouteError(f"Turn routes are only planned for emergency vehicles, not {kind.value}")
            if approach is None:
                first = TURN_APPROACHES.index(self.rng.choice(TURN_APPROACHES))
                approaches = TURN_APPROACHES[first:] + TURN_APPROACHES[:first]
            else:
                approaches = [approach]
            for candidate in approaches:
                route = self.build_turn_route(kind, candidate, turn)
                if self.start_is_clear(route.start, route.direction, vehicles):
                    return route
            raise NoRouteError(f"Every {turn.value} turn route start is occupied")

        candidates = self.straight_routes
        if approach is not None:
            candidates = [r for r in candidates if r.direction == approach]
        candidates = [r for r in candidates if self.start_is_clear(r.start, r.direction, vehicles)]
        if not kind.is_emergency and candidates:
            lane = 1 if self.rng.random() < self.config.inner_lane_probability else 2
            # Fall back to the other lane when every start in this one is occupied
            candidates = [r for r in candidates if r.lane == lane] or candidates
        if not candidates:
            raise NoRouteError(f"No free straight route for {kind.value} heading {approach}")

        template = self.rng.choice(candidates)
        return PlannedRoute(
            kind=kind,
            speed=self.config.vehicle_speeds[kind.value],
            start=template.start,
            destination=template.end,
            direction=template.direction,
            road=template.road,
            lane=template.lane,
            turn_direction=turn if kind.is_emergency else None,
        )

    def plan_turn_intersection(self, x: float, y: float, direction: Direction) -> Optional[int]:
        """Second intersection ahead when there are at least two, else the first."""
        ahead = self.grid.intersections_ahead(x, y, direction)
        if len(ahead) >= 2:
            return ahead[1][0]
        if ahead:
            return ahead[0][0]
        return None

    def build_turn_route(self, kind, approach: Direction, turn: TurnDirection,
                         road: int = TURN_ROAD, lane: int = TURN_LANE,
                         start_along: Optional[float] = None) -> PlannedRoute:
        kind = parse_kind(kind)
        approach = parse_approach(approach)
        turn = parse_turn(turn)
        if turn not in (TurnDirection.LEFT, TurnDirection.RIGHT):
            raise NoRouteError(f"No turn route for {turn!r}")
        start, _ = self.grid.route_endpoints(road, lane, approach)
        if start_along is not None:
            start = self.grid.lane_point(road, lane, approach, start_along)

        planned = self.plan_turn_intersection(start.x, start.y, approach)
        if planned is None:
            raise NoRouteError(f"No intersection ahead of {approach.value} start {start}")

        exit_direction = turn_target(approach, turn)
        exit_road = self.grid.road_after_turn(planned, exit_direction)
        approach_cross = self.grid.lane_center(road, lane, approach)
        exit_cross = self.grid.lane_center(exit_road, lane, exit_direction)
        if is_horizontal(approach):
            corner = Point(x=exit_cross, y=approach_cross)
        else:
            corner = Point(x=approach_cross, y=exit_cross)

        radius = self.config.turn_radius
        ax, ay = DIRECTION_VECTORS[approach]
        ex, ey = DIRECTION_VECTORS[exit_direction]
        entry = Point(x=corner.x - ax * radius, y=corner.y - ay * radius)
        exit_point = Point(x=corner.x + ex * radius, y=corner.y + ey * radius)
        if self.grid.relative_offset(start.x, start.y, approach, entry.x, entry.y)[0] <= 0:
            raise NoRouteError(f"Start {start} is already past the turn entry at intersection {planned}")

        _, end = self.grid.route_endpoints(exit_road, lane, exit_direction)
        if self.config.turn_arc_segments:
            arc = compute_turn_arc(entry, exit_point, approach, self.config.turn_arc_segments)
            path = [start, entry, *arc, end]
        else:
            path = [start, entry, end]

        logger.debug("Planned %s turn for %s approaching %s at intersection %s",
                     turn.value, kind.value, approach.value, planned)
        return PlannedRoute(
            kind=kind,
            speed=self.config.vehicle_speeds[kind.value],
            start=start,
            destination=end,
            direction=approach,
            road=road,
            lane=lane,
            path=path,
            path_index=1,
            turn_direction=turn,
            planned_turn_intersection_id=planned,
        )
