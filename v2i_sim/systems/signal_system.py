from typing import Dict

from v2i_sim.controllers.base import SignalController
from v2i_sim.domain.models import Intersection

class SignalSystem:
    def __init__(self, controller: SignalController):
        self.controller = controller

    def update(self, intersections: Dict[int, Intersection], dt_ms: float) -> Dict[int, Intersection]:
        # Overridden intersections are skipped by the controller itself
        return {iid: self.controller.tick(intersection, dt_ms) for iid, intersection in intersections.items()}
