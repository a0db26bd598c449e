import json
import logging
import time
from typing import Dict, Optional, Sequence, Tuple, Union

from v2i_sim.domain.config import SimulationConfig
from v2i_sim.kernel.commands import SpawnVehicleCommand
from v2i_sim.kernel.simulation_kernel import SimulationKernel

logger = logging.getLogger(__name__)

# (tick, kind) or (tick, kind, turn_direction), queued at the start of that tick
SpawnEntry = Union[Tuple[int, str], Tuple[int, str, Optional[str]]]

DEMO_SPAWN_PLAN: Sequence[SpawnEntry] = (
    (0, "car"),
    (20, "bus"),
    (40, "car"),
    (60, "truck"),
    (80, "emergency", "right"),
    (100, "car"),
    (120, "car"),
)

def run_headless_experiment(output_path: str, ticks: int = 600, seed: int = 42,
                            spawn_plan: Optional[Sequence[SpawnEntry]] = None,
                            config: Optional[SimulationConfig] = None):
    spawn_plan = DEMO_SPAWN_PLAN if spawn_plan is None else spawn_plan
    config = (config or SimulationConfig()).model_copy(update={"seed": seed})

    kernel = SimulationKernel(config)
    kernel.initialize(seed=seed)

    schedule: Dict[int, list] = {}
    for entry in spawn_plan:
        tick, kind = entry[0], entry[1]
        turn = entry[2] if len(entry) > 2 else None
        schedule.setdefault(tick, []).append(SpawnVehicleCommand(kind, turn_direction=turn))

    results = []

    start_time = time.time()
    for i in range(ticks):
        for command in schedule.get(i, []):
            kernel.queue_command(command)
        kernel.run_tick()
        snapshot = kernel.get_snapshot()
        results.append({
            "tick": snapshot.tick,
            "vehicle_count": len(snapshot.vehicles),
            "emergency_active": snapshot.emergencyActive,
            "link_count": len(snapshot.links),
        })

    end_time = time.time()
    logger.info("Experiment finished in %.4fs (%d ticks, %d vehicles spawned)",
                end_time - start_time, ticks, kernel.state.statistics.total_vehicles)

    with open(output_path, 'w') as f:
        json.dump(results, f, indent=2)
    return results

if __name__ == "__main__":
    import sys
    logging.basicConfig(level=logging.INFO)
    if len(sys.argv) > 1:
        run_headless_experiment(sys.argv[1], ticks=int(sys.argv[2]) if len(sys.argv) > 2 else 600)
    else:
        print("Usage: python -m v2i_sim.experiments.run_experiment <output> [ticks]")
