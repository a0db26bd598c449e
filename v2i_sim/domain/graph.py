import math
import networkx as nx
from typing import Dict, List, Optional, Tuple

from v2i_sim.domain.config import SimulationConfig
from v2i_sim.domain.errors import ConfigurationError
from v2i_sim.domain.models import Direction, Point, TurnDirection

# Unit vectors in screen coordinates
DIRECTION_VECTORS: Dict[Direction, Tuple[float, float]] = {
    Direction.NORTH: (0.0, -1.0),
    Direction.SOUTH: (0.0, 1.0),
    Direction.EAST: (1.0, 0.0),
    Direction.WEST: (-1.0, 0.0),
}

# Right = 90 degrees clockwise, left = 90 degrees counter-clockwise
RIGHT_OF: Dict[Direction, Direction] = {
    Direction.NORTH: Direction.EAST,
    Direction.EAST: Direction.SOUTH,
    Direction.SOUTH: Direction.WEST,
    Direction.WEST: Direction.NORTH,
}
LEFT_OF: Dict[Direction, Direction] = {after: before for before, after in RIGHT_OF.items()}

def is_horizontal(direction: Direction) -> bool:
    return direction in (Direction.EAST, Direction.WEST)

def turn_target(direction: Direction, turn: Optional[TurnDirection]) -> Direction:
    if turn == TurnDirection.RIGHT:
        return RIGHT_OF[direction]
    if turn == TurnDirection.LEFT:
        return LEFT_OF[direction]
    return direction

def as_direction(value) -> Direction:
    try:
        return Direction(value)
    except ValueError:
        raise ConfigurationError(f"Unknown direction {value!r}") from None

def distance(ax: float, ay: float, bx: float, by: float) -> float:
    return math.hypot(bx - ax, by - ay)


class RoadGrid:
    """Static road layout: road centerlines, lane centers and intersections.

    Intersections are graph nodes; every road segment between two adjacent
    intersections is a directed edge per travel direction, so "what comes
    next along this road" is a walk over edges carrying that direction.
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or SimulationConfig()
        self.graph = nx.DiGraph()
        self._build()

    def _build(self):
        cfg = self.config
        node_id = 1
        for h_idx, y in enumerate(cfg.horizontal_roads):
            for v_idx, x in enumerate(cfg.vertical_roads):
                self.graph.add_node(node_id, pos=(x, y), h_road=h_idx, v_road=v_idx)
                node_id += 1

        for h_idx in range(len(cfg.horizontal_roads)):
            row = sorted((n for n, d in self.graph.nodes(data=True) if d["h_road"] == h_idx),
                         key=lambda n: self.graph.nodes[n]["pos"][0])
            self._link(row, Direction.EAST, Direction.WEST)
        for v_idx in range(len(cfg.vertical_roads)):
            col = sorted((n for n, d in self.graph.nodes(data=True) if d["v_road"] == v_idx),
                         key=lambda n: self.graph.nodes[n]["pos"][1])
            self._link(col, Direction.SOUTH, Direction.NORTH)

    def _link(self, ordered: List[int], forward: Direction, backward: Direction):
        for a, b in zip(ordered, ordered[1:]):
            length = distance(*self.position(a), *self.position(b))
            self.graph.add_edge(a, b, direction=forward, length=length)
            self.graph.add_edge(b, a, direction=backward, length=length)

    # --- static lookups ---

    @property
    def intersection_ids(self) -> List[int]:
        return sorted(self.graph.nodes)

    def position(self, intersection_id: int) -> Tuple[float, float]:
        if intersection_id not in self.graph:
            raise ConfigurationError(f"Unknown intersection {intersection_id!r}")
        return self.graph.nodes[intersection_id]["pos"]

    def roads_of(self, intersection_id: int) -> Tuple[int, int]:
        self.position(intersection_id)
        data = self.graph.nodes[intersection_id]
        return data["h_road"], data["v_road"]

    def _road_centerline(self, road: int, direction: Direction) -> float:
        roads = self.config.horizontal_roads if is_horizontal(direction) else self.config.vertical_roads
        if not isinstance(road, int) or not 0 <= road < len(roads):
            raise ConfigurationError(f"Road index {road!r} out of range for {direction.value} travel")
        return roads[road]

    def lane_center(self, road: int, lane: int, direction) -> float:
        """Cross-travel coordinate of a lane center.

        Returns y for horizontal roads and x for vertical roads. Eastbound and
        southbound lanes sit on the negative side of the centerline, their
        opposites on the positive side; lane 2 is always further out.
        """
        direction = as_direction(direction)
        base = self._road_centerline(road, direction)
        if lane not in self.config.lane_offsets:
            raise ConfigurationError(f"Lane {lane!r} is not defined")
        offset = self.config.lane_offsets[lane]
        if direction in (Direction.EAST, Direction.SOUTH):
            return base - offset
        return base + offset

    def lane_point(self, road: int, lane: int, direction: Direction, along: float) -> Point:
        cross = self.lane_center(road, lane, direction)
        if is_horizontal(direction):
            return Point(x=along, y=cross)
        return Point(x=cross, y=along)

    def route_endpoints(self, road: int, lane: int, direction) -> Tuple[Point, Point]:
        """Off-canvas start and end points for a straight pass along a lane."""
        direction = as_direction(direction)
        cfg = self.config
        low = -cfg.spawn_margin
        high = (cfg.canvas_width if is_horizontal(direction) else cfg.canvas_height) + cfg.spawn_margin
        if direction in (Direction.EAST, Direction.SOUTH):
            start, end = low, high
        else:
            start, end = high, low
        return (self.lane_point(road, lane, direction, start),
                self.lane_point(road, lane, direction, end))

    def road_after_turn(self, intersection_id: int, direction) -> int:
        """Road index a vehicle travels on after leaving ``intersection_id`` heading ``direction``."""
        direction = as_direction(direction)
        h_road, v_road = self.roads_of(intersection_id)
        return h_road if is_horizontal(direction) else v_road

    # --- relative geometry ---

    def relative_offset(self, x: float, y: float, direction: Direction, px: float, py: float) -> Tuple[float, float]:
        """(along, lateral) offset of point p as seen from (x, y) travelling ``direction``."""
        ux, uy = DIRECTION_VECTORS[direction]
        dx, dy = px - x, py - y
        return dx * ux + dy * uy, dx * uy - dy * ux

    def is_inside(self, x: float, y: float, intersection_id: int) -> bool:
        ix, iy = self.position(intersection_id)
        half = self.config.intersection_half_size
        return abs(x - ix) <= half and abs(y - iy) <= half

    def distance_to(self, x: float, y: float, intersection_id: int) -> float:
        return distance(x, y, *self.position(intersection_id))

    def nearest_intersection(self, x: float, y: float) -> Tuple[int, float]:
        return min(((i, self.distance_to(x, y, i)) for i in self.intersection_ids),
                   key=lambda item: (item[1], item[0]))

    def is_ahead(self, x: float, y: float, direction: Direction, intersection_id: int) -> bool:
        along, lateral = self.relative_offset(x, y, direction, *self.position(intersection_id))
        return along > 0 and abs(lateral) <= self.config.intersection_half_size

    def intersections_ahead(self, x: float, y: float, direction) -> List[Tuple[int, float]]:
        """Intersections still ahead on the current road, nearest first, with along-road distance."""
        direction = as_direction(direction)
        candidates = []
        for node in self.intersection_ids:
            along, lateral = self.relative_offset(x, y, direction, *self.position(node))
            if along > 0 and abs(lateral) <= self.config.intersection_half_size:
                candidates.append((along, node))
        if not candidates:
            return []

        first_along, current = min(candidates)
        ahead = [(current, first_along)]
        while True:
            nxt = [v for _, v, d in self.graph.out_edges(current, data=True) if d["direction"] == direction]
            if not nxt:
                break
            along = ahead[-1][1] + self.graph.edges[current, nxt[0]]["length"]
            current = nxt[0]
            ahead.append((current, along))
        return ahead

    def next_intersection(self, x: float, y: float, direction) -> Optional[Tuple[int, float]]:
        ahead = self.intersections_ahead(x, y, direction)
        return ahead[0] if ahead else None
