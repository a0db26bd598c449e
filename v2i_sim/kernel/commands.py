from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from v2i_sim.kernel.simulation_kernel import SimulationKernel

class Command(ABC):
    """A deferred kernel mutation, applied at the start of the next tick."""

    @abstractmethod
    def execute(self, kernel: "SimulationKernel"):
        ...

class SpawnVehicleCommand(Command):
    def __init__(self, kind: str = "car", turn_direction: Optional[str] = None, approach: Optional[str] = None):
        self.kind = kind
        self.turn_direction = turn_direction
        self.approach = approach

    def execute(self, kernel: "SimulationKernel"):
        return kernel.spawn_vehicle(self.kind, turn_direction=self.turn_direction, approach=self.approach)

class RemoveVehicleCommand(Command):
    def __init__(self, vehicle_id: str):
        self.vehicle_id = vehicle_id

    def execute(self, kernel: "SimulationKernel"):
        kernel.remove_vehicle(self.vehicle_id)

class SetPausedCommand(Command):
    def __init__(self, paused: bool):
        self.paused = paused

    def execute(self, kernel: "SimulationKernel"):
        kernel.set_paused(self.paused)

class SetSpeedCommand(Command):
    """Clamping happens in the kernel, so any multiplier is accepted here."""

    def __init__(self, multiplier: float):
        self.multiplier = multiplier

    def execute(self, kernel: "SimulationKernel"):
        return kernel.set_speed_multiplier(self.multiplier)
