import logging
import random
from typing import Optional

from v2i_sim.arbitration.emergency_arbitrator import EmergencyArbitrator
from v2i_sim.controllers.implementations import all_red, build_controller
from v2i_sim.domain.config import SimulationConfig
from v2i_sim.domain.errors import SimulationError, UnknownVehicleError
from v2i_sim.domain.graph import RoadGrid
from v2i_sim.domain.models import (
    Intersection, SignalDetails, SimulationSnapshot, Vehicle, VehicleKind
)
from v2i_sim.domain.state import SimulationState
from v2i_sim.kernel.command_queue import CommandQueue
from v2i_sim.kernel.commands import Command
from v2i_sim.kernel.snapshot_builder import SnapshotBuilder
from v2i_sim.routing.planner import RoutePlanner
from v2i_sim.systems.communication_system import CommunicationSystem
from v2i_sim.systems.signal_system import SignalSystem
from v2i_sim.systems.vehicle_system import VehicleSystem

logger = logging.getLogger(__name__)

class SimulationKernel:
    """Fixed-timestep orchestrator for the intersection grid.

    One ``run_tick`` drains queued commands, then advances signals,
    emergency preemption, vehicles and (every broadcast interval) the
    communication layer. Each system returns new model copies which are
    swapped into ``state`` only once the whole tick has been computed.
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or SimulationConfig()
        self.rng = random.Random(self.config.seed)
        self.grid = RoadGrid(self.config)
        self.controller = build_controller(self.config)
        self.planner = RoutePlanner(self.grid, self.rng)
        self.signal_system = SignalSystem(self.controller)
        self.vehicle_system = VehicleSystem(self.grid)
        self.communication_system = CommunicationSystem(self.grid)
        self.arbitrator = EmergencyArbitrator(self.grid, self.controller)
        self.command_queue = CommandQueue()
        self.snapshot_builder = SnapshotBuilder()
        self.state = SimulationState()
        self.initialized = False

    def initialize(self, seed: Optional[int] = None):
        seed = self.config.seed if seed is None else seed
        self.rng.seed(seed)
        self.state = SimulationState()
        self._initialize_grid()
        self.initialized = True
        for _ in range(self.config.initial_vehicles):
            self.spawn_vehicle(VehicleKind.CAR)
        logger.info("Kernel initialized (seed: %s, signal mode: %s)", seed, self.config.signal_mode)

    def _initialize_grid(self):
        intersections = {}
        for index, iid in enumerate(self.grid.intersection_ids):
            x, y = self.grid.position(iid)
            h_road, v_road = self.grid.roads_of(iid)
            blank = Intersection(id=iid, x=x, y=y, h_road=h_road, v_road=v_road,
                                 signals=all_red())
            intersections[iid] = self.controller.initialize(blank, index)
        self.state = self.state.model_copy(update={"intersections": intersections})

    def _ensure_initialized(self):
        if not self.initialized:
            self.initialize()

    def reset(self):
        self.command_queue.clear()
        self.initialize()
        logger.info("Simulation reset")

    # --- commands ---

    def queue_command(self, command: Command):
        self.command_queue.add(command)

    def spawn_vehicle(self, kind=VehicleKind.CAR, turn_direction=None, approach=None) -> Vehicle:
        self._ensure_initialized()
        route = self.planner.plan(kind, turn_direction=turn_direction, approach=approach,
                                  vehicles=self.state.vehicles)

        state = self.state
        seq = state.spawn_seq + 1
        vehicle = Vehicle(
            id=f"v-{seq:04d}-{self.rng.randint(100, 999)}",
            spawn_seq=seq,
            type=route.kind,
            x=route.start.x,
            y=route.start.y,
            direction=route.direction,
            speed=route.speed,
            road=route.road,
            lane=route.lane,
            destination=route.destination,
            path=route.path,
            path_index=route.path_index,
            turn_direction=route.turn_direction,
            planned_turn_intersection_id=route.planned_turn_intersection_id,
        )

        stats = state.statistics
        stats = stats.model_copy(update={
            "total_vehicles": stats.total_vehicles + 1,
            "emergency_events": stats.emergency_events + (1 if vehicle.is_emergency else 0),
        })
        self.state = state.model_copy(update={
            "vehicles": [*state.vehicles, vehicle],
            "spawn_seq": seq,
            "statistics": stats,
            "emergency_active": state.emergency_active or vehicle.is_emergency,
        })
        if vehicle.is_emergency:
            logger.info("Spawned %s %s heading %s (turn: %s, at intersection %s)", vehicle.type.value,
                        vehicle.id, vehicle.direction.value,
                        vehicle.turn_direction.value if vehicle.turn_direction else "straight",
                        vehicle.planned_turn_intersection_id)
        else:
            logger.info("Spawned %s %s heading %s on road %s lane %s", vehicle.type.value, vehicle.id,
                        vehicle.direction.value, vehicle.road, vehicle.lane)
        return vehicle

    def remove_vehicle(self, vehicle_id: str):
        if not any(v.id == vehicle_id for v in self.state.vehicles):
            raise UnknownVehicleError(vehicle_id)
        self.state = self.state.model_copy(update={
            "pending_removals": self.state.pending_removals | {vehicle_id},
        })
        logger.info("Vehicle %s marked for removal", vehicle_id)

    def set_paused(self, paused: bool):
        self.state = self.state.model_copy(update={"paused": bool(paused)})
        logger.info("Simulation %s", "paused" if paused else "resumed")

    def set_speed_multiplier(self, multiplier: float) -> float:
        clamped = min(self.config.max_speed_multiplier, max(self.config.min_speed_multiplier, float(multiplier)))
        self.state = self.state.model_copy(update={"speed_multiplier": clamped})
        logger.info("Speed multiplier set to %.2f", clamped)
        return clamped

    # --- tick ---

    def run_tick(self):
        self._ensure_initialized()

        # 1. Process Commands
        for cmd in self.command_queue.drain():
            try:
                cmd.execute(self)
            except SimulationError as exc:
                logger.warning("Rejected %s: %s", type(cmd).__name__, exc)

        state = self.state
        if state.paused:
            self._apply_removals()
            return

        multiplier = state.speed_multiplier
        dt_ms = self.config.tick_ms * multiplier

        # 2. Logic
        intersections = self.signal_system.update(state.intersections, dt_ms)
        preemption = self.arbitrator.run_tick(intersections, state.vehicles)
        intersections = preemption.intersections
        update = self.vehicle_system.update(state.vehicles, intersections, multiplier, preemption.cleared_ids)

        vehicles = [v for v in update.vehicles if v.id not in state.pending_removals]
        completed = [vid for vid in update.reached if vid not in state.pending_removals]
        for vid in completed:
            logger.debug("Vehicle %s reached its destination", vid)
        stats = state.statistics.model_copy(update={
            "vehicles_completed": state.statistics.vehicles_completed + len(completed),
        })
        emergency_active = any(v.is_emergency for v in vehicles)
        if state.emergency_active and not emergency_active:
            logger.info("No emergency vehicles left on the grid")

        # 3. Time Advance
        tick_id = state.tick_id + 1
        time_ms = state.time_ms + dt_ms

        # 4. Communication
        links = state.links
        if self.config.communication_enabled and tick_id % self.config.broadcast_every_ticks == 0:
            result = self.communication_system.broadcast(vehicles, intersections, multiplier, self.config.tick_ms)
            links = result.links
            stats = stats.model_copy(update={
                "communication_links": len(links),
                "v2i_broadcasts": stats.v2i_broadcasts + result.messages,
            })

        self.state = state.model_copy(update={
            "tick_id": tick_id,
            "time_ms": time_ms,
            "intersections": intersections,
            "vehicles": vehicles,
            "links": links,
            "statistics": stats,
            "emergency_active": emergency_active,
            "pending_removals": set(),
        })

    def _apply_removals(self):
        state = self.state
        if not state.pending_removals:
            return
        self.state = state.model_copy(update={
            "vehicles": [v for v in state.vehicles if v.id not in state.pending_removals],
            "emergency_active": any(v.is_emergency and v.id not in state.pending_removals
                                    for v in state.vehicles),
            "pending_removals": set(),
        })

    # --- queries ---

    def get_snapshot(self) -> SimulationSnapshot:
        self._ensure_initialized()
        return self.snapshot_builder.build(self.state)

    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        return next((v for v in self.state.vehicles if v.id == vehicle_id), None)

    def get_intersection_details(self, intersection_id: int) -> Optional[SignalDetails]:
        self._ensure_initialized()
        intersection = self.state.intersections.get(intersection_id)
        if not intersection:
            return None
        return self.snapshot_builder.details(intersection)
