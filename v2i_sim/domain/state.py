from typing import Dict, List, Set
from pydantic import BaseModel, Field
from v2i_sim.domain.models import Intersection, Vehicle, CommunicationLink, Statistics

class SimulationState(BaseModel):
    tick_id: int = 0
    time_ms: float = 0.0
    intersections: Dict[int, Intersection] = {}
    vehicles: List[Vehicle] = []
    links: List[CommunicationLink] = []
    statistics: Statistics = Field(default_factory=Statistics)
    emergency_active: bool = False
    paused: bool = False
    speed_multiplier: float = 1.0
    spawn_seq: int = 0

    # Ids removed by command, dropped at the end of the current tick
    pending_removals: Set[str] = set()
