import logging
from typing import Dict, List, Optional, Sequence
from pydantic import BaseModel

from v2i_sim.domain.graph import RoadGrid, distance
from v2i_sim.domain.models import (
    CommunicationLink, Intersection, LinkType, Point, TurnDirection, V2IMessage, Vehicle
)

logger = logging.getLogger(__name__)

class BroadcastResult(BaseModel):
    links: List[CommunicationLink] = []
    messages: int = 0

class CommunicationSystem:
    """Builds the V2V and V2I link set for one broadcast round.

    Purely observational: nothing here feeds back into vehicle or signal state.
    """

    def __init__(self, grid: RoadGrid):
        self.grid = grid
        self.config = grid.config

    def broadcast(self, vehicles: Sequence[Vehicle], intersections: Dict[int, Intersection],
                  speed_multiplier: float, tick_ms: Optional[float] = None) -> BroadcastResult:
        tick_ms = self.config.tick_ms if tick_ms is None else tick_ms
        links = self.v2v_links(vehicles)
        messages = 0
        for v in vehicles:
            if v.is_emergency:
                message = self.emergency_message(v, speed_multiplier, tick_ms)
                if message is None:
                    continue
                ix, iy = self.grid.position(message.intersection_id)
                links.append(CommunicationLink(type=LinkType.V2I, source=Point(x=v.x, y=v.y),
                                               target=Point(x=ix, y=iy), message=message))
                messages += 1
                logger.debug("V2I %s -> intersection %s: %s, eta %.1fs",
                             v.id, message.intersection_id, message.action.value, message.eta_s)
            else:
                for iid in intersections:
                    if self.grid.distance_to(v.x, v.y, iid) < self.config.v2i_static_radius:
                        ix, iy = self.grid.position(iid)
                        links.append(CommunicationLink(type=LinkType.V2I, source=Point(x=v.x, y=v.y),
                                                       target=Point(x=ix, y=iy)))
        return BroadcastResult(links=links, messages=messages)

    def v2v_links(self, vehicles: Sequence[Vehicle]) -> List[CommunicationLink]:
        links = []
        for i, a in enumerate(vehicles):
            for b in vehicles[i + 1:]:
                if distance(a.x, a.y, b.x, b.y) < self.config.v2v_range:
                    links.append(CommunicationLink(type=LinkType.V2V, source=Point(x=a.x, y=a.y),
                                                   target=Point(x=b.x, y=b.y)))
        return links

    def emergency_message(self, ev: Vehicle, speed_multiplier: float, tick_ms: float) -> Optional[V2IMessage]:
        """Intent message for the next intersection ahead, if it is within range."""
        upcoming = self.grid.next_intersection(ev.x, ev.y, ev.direction)
        if upcoming is None:
            return None
        iid, _ = upcoming
        dist = self.grid.distance_to(ev.x, ev.y, iid)
        if not self.config.v2i_min_distance < dist <= self.config.v2i_max_distance:
            return None

        intention = ev.turn_direction or TurnDirection.STRAIGHT
        action = TurnDirection.STRAIGHT
        if ev.planned_turn_intersection_id == iid and ev.path is not None:
            action = intention
        ticks_away = dist / (ev.speed * speed_multiplier)
        return V2IMessage(
            vehicle_id=ev.id,
            intersection_id=iid,
            direction=ev.direction,
            turn_intention=intention,
            action=action,
            eta_s=ticks_away * tick_ms / 1000.0,
            distance=dist,
        )
