from typing import List

from v2i_sim.domain.graph import is_horizontal
from v2i_sim.domain.models import Direction, Point


def turn_corner(entry: Point, exit: Point, approach: Direction) -> Point:
    """Where the approach lane line crosses the exit lane line."""
    if is_horizontal(approach):
        return Point(x=exit.x, y=entry.y)
    return Point(x=entry.x, y=exit.y)


def compute_turn_arc(entry: Point, exit: Point, approach: Direction, segments: int) -> List[Point]:
    """Quadratic bezier from ``entry`` to ``exit`` with the lane corner as control point.

    Returns the points after ``entry`` up to and including ``exit``. With
    fewer than two segments the arc degenerates to the single point ``exit``.
    """
    if segments < 2:
        return [exit]
    control = turn_corner(entry, exit, approach)
    points = []
    for i in range(1, segments + 1):
        t = i / segments
        u = 1.0 - t
        points.append(Point(
            x=u * u * entry.x + 2 * u * t * control.x + t * t * exit.x,
            y=u * u * entry.y + 2 * u * t * control.y + t * t * exit.y,
        ))
    return points
