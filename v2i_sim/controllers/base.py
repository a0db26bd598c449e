from abc import ABC, abstractmethod
from typing import Iterable, Optional

from v2i_sim.domain.config import SimulationConfig
from v2i_sim.domain.models import Intersection, TurnDirection, Direction

class SignalController(ABC):
    """Signal timing strategy for one intersection.

    Controllers are stateless: every operation takes an ``Intersection`` and
    returns a new one, leaving the input untouched.
    """

    def __init__(self, config: SimulationConfig):
        self.config = config

    @abstractmethod
    def initialize(self, intersection: Intersection, index: int) -> Intersection:
        """Starting signal layout for the ``index``-th intersection of the grid."""

    @abstractmethod
    def tick(self, intersection: Intersection, dt_ms: float) -> Intersection:
        """Advance timers by ``dt_ms``. Must be a no-op while an override is set."""

    @abstractmethod
    def apply_emergency_override(self, intersection: Intersection, targets: Iterable[Direction],
                                 turn_direction: Optional[TurnDirection] = None,
                                 vehicle_id: Optional[str] = None) -> Intersection:
        """Force ``targets`` green, everything else red, and suspend the timers."""

    @abstractmethod
    def clear_override(self, intersection: Intersection) -> Intersection:
        """Drop the override and restart cycling from a fresh phase."""
