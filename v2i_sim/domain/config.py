# Simulation Configuration
from typing import Dict, Literal, Optional, Tuple
from pydantic import BaseModel, Field, field_validator

# Clock
TICK_MS = 50.0                  # Fixed kinematics timestep
BROADCAST_INTERVAL_MS = 500.0   # V2V / V2I recomputation cadence
MIN_SPEED_MULTIPLIER = 0.5
MAX_SPEED_MULTIPLIER = 3.0

# Grid Settings (screen coordinates, y grows downwards)
CANVAS_WIDTH = 900.0
CANVAS_HEIGHT = 700.0
SPAWN_MARGIN = 50.0
HORIZONTAL_ROADS = (210.0, 510.0)  # y of each horizontal road centerline
VERTICAL_ROADS = (310.0, 610.0)    # x of each vertical road centerline
LANE_OFFSETS = {1: 22.0, 2: 40.0}  # Distance of each lane center from the road centerline
INTERSECTION_HALF_SIZE = 50.0      # Half width of the square intersection footprint

# Signal Timings
GREEN_TIME_MS = 8000.0
YELLOW_TIME_MS = 2000.0
STOP_ON_YELLOW = True

# Vehicle Behaviour
VEHICLE_SPEEDS = {            # px per tick at 1x
    "car": 2.0,
    "truck": 2.0,
    "bus": 1.5,
    "emergency": 4.0,
    "firetruck": 4.0,
    "police": 4.0,
}
INNER_LANE_PROBABILITY = 0.7  # Share of regular vehicles spawned in lane 1
SAFE_DISTANCE = 40.0
LANE_TOLERANCE = 15.0
DECELERATION_FACTOR = 0.8
INTERSECTION_CHECK_DISTANCE = 80.0
DESTINATION_REACH_DISTANCE = 5.0
WAYPOINT_REACH_DISTANCE = 10.0

# Turns
TURN_RADIUS = 30.0
TURN_ARC_SEGMENTS = 3  # 0 keeps the plain start / entry / exit polyline

# Emergency Preemption
DETECTION_DISTANCE = 200.0
PREEMPTION_MIN_DISTANCE = 50.0
EMERGENCY_CLEAR_DISTANCE = 200.0
EMERGENCY_STOP_THRESHOLD = 30.0
QUEUE_CLEARANCE_DISTANCE = 200.0

# Communication
V2V_RANGE = 100.0
V2I_MIN_DISTANCE = 10.0
V2I_MAX_DISTANCE = 300.0
V2I_STATIC_RADIUS = 80.0


class SimulationConfig(BaseModel):
    """Construction-time settings for a simulation kernel.

    Every field defaults to the module constant of the same meaning, so
    ``SimulationConfig()`` reproduces the stock 2x2 grid.
    """

    tick_ms: float = Field(TICK_MS, gt=0)
    broadcast_interval_ms: float = Field(BROADCAST_INTERVAL_MS, gt=0)
    min_speed_multiplier: float = Field(MIN_SPEED_MULTIPLIER, gt=0)
    max_speed_multiplier: float = Field(MAX_SPEED_MULTIPLIER, gt=0)

    canvas_width: float = CANVAS_WIDTH
    canvas_height: float = CANVAS_HEIGHT
    spawn_margin: float = SPAWN_MARGIN
    horizontal_roads: Tuple[float, ...] = HORIZONTAL_ROADS
    vertical_roads: Tuple[float, ...] = VERTICAL_ROADS
    lane_offsets: Dict[int, float] = Field(default_factory=lambda: dict(LANE_OFFSETS))
    intersection_half_size: float = Field(INTERSECTION_HALF_SIZE, gt=0)

    signal_mode: Literal["four_phase", "two_phase"] = "four_phase"
    green_time_ms: float = Field(GREEN_TIME_MS, gt=0)
    yellow_time_ms: float = Field(YELLOW_TIME_MS, gt=0)
    stop_on_yellow: bool = STOP_ON_YELLOW

    vehicle_speeds: Dict[str, float] = Field(default_factory=lambda: dict(VEHICLE_SPEEDS))
    inner_lane_probability: float = Field(INNER_LANE_PROBABILITY, ge=0, le=1)
    safe_distance: float = Field(SAFE_DISTANCE, gt=0)
    lane_tolerance: float = Field(LANE_TOLERANCE, gt=0)
    deceleration_factor: float = Field(DECELERATION_FACTOR, gt=0, le=1)
    intersection_check_distance: float = Field(INTERSECTION_CHECK_DISTANCE, gt=0)
    destination_reach_distance: float = Field(DESTINATION_REACH_DISTANCE, gt=0)
    waypoint_reach_distance: float = Field(WAYPOINT_REACH_DISTANCE, gt=0)

    turn_radius: float = Field(TURN_RADIUS, gt=0)
    turn_arc_segments: int = Field(TURN_ARC_SEGMENTS, ge=0)

    detection_distance: float = Field(DETECTION_DISTANCE, gt=0)
    preemption_min_distance: float = Field(PREEMPTION_MIN_DISTANCE, ge=0)
    emergency_clear_distance: float = Field(EMERGENCY_CLEAR_DISTANCE, gt=0)
    emergency_stop_threshold: float = Field(EMERGENCY_STOP_THRESHOLD, gt=0)
    queue_clearance_distance: float = Field(QUEUE_CLEARANCE_DISTANCE, gt=0)

    communication_enabled: bool = True
    v2v_range: float = Field(V2V_RANGE, gt=0)
    v2i_min_distance: float = Field(V2I_MIN_DISTANCE, ge=0)
    v2i_max_distance: float = Field(V2I_MAX_DISTANCE, gt=0)
    v2i_static_radius: float = Field(V2I_STATIC_RADIUS, gt=0)

    seed: Optional[int] = None
    initial_vehicles: int = Field(0, ge=0)

    @field_validator("lane_offsets")
    @classmethod
    def _lanes_are_ordered(cls, value: Dict[int, float]) -> Dict[int, float]:
        if set(value) != {1, 2}:
            raise ValueError("lane_offsets must define lanes 1 and 2")
        if not 0 < value[1] < value[2]:
            raise ValueError("lane 2 must be outboard of lane 1")
        return value

    @field_validator("vehicle_speeds")
    @classmethod
    def _speeds_are_positive(cls, value: Dict[str, float]) -> Dict[str, float]:
        for kind, speed in value.items():
            if speed <= 0:
                raise ValueError(f"speed for {kind} must be positive")
        return value

    @property
    def broadcast_every_ticks(self) -> int:
        return max(1, round(self.broadcast_interval_ms / self.tick_ms))
