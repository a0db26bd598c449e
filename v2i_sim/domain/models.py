from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel

class Direction(str, Enum):
    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"

class SignalState(str, Enum):
    RED = "RED"
    YELLOW = "YELLOW"
    GREEN = "GREEN"

class AxisPhase(str, Enum):
    NS_GREEN = "NS_GREEN"
    NS_YELLOW = "NS_YELLOW"
    EW_GREEN = "EW_GREEN"
    EW_YELLOW = "EW_YELLOW"

class TurnDirection(str, Enum):
    STRAIGHT = "straight"
    LEFT = "left"
    RIGHT = "right"

class VehicleKind(str, Enum):
    CAR = "car"
    BUS = "bus"
    TRUCK = "truck"
    EMERGENCY = "emergency"
    FIRETRUCK = "firetruck"
    POLICE = "police"

    @property
    def is_emergency(self) -> bool:
        return self in EMERGENCY_KINDS

EMERGENCY_KINDS = frozenset({VehicleKind.EMERGENCY, VehicleKind.FIRETRUCK, VehicleKind.POLICE})

class VehicleStatus(str, Enum):
    MOVING = "moving"
    STOPPED = "stopped"
    FOLLOWING = "following"
    STOPPED_QUEUE = "stopped (queue)"
    TURNING = "turning"

class LinkType(str, Enum):
    V2V = "V2V"
    V2I = "V2I"

class Point(BaseModel):
    x: float
    y: float

class Vehicle(BaseModel):
    id: str
    spawn_seq: int
    type: VehicleKind
    x: float
    y: float
    direction: Direction
    speed: float  # px per tick at 1x
    road: int
    lane: int  # 1 = inner, 2 = outer
    destination: Point
    path: Optional[List[Point]] = None  # Only set while a turn maneuver is pending
    path_index: Optional[int] = None
    turn_direction: Optional[TurnDirection] = None
    planned_turn_intersection_id: Optional[int] = None
    stopped: bool = False
    status: VehicleStatus = VehicleStatus.MOVING

    @property
    def is_emergency(self) -> bool:
        return self.type.is_emergency

    @property
    def target(self) -> Point:
        if self.path is not None and self.path_index is not None:
            return self.path[self.path_index]
        return self.destination

    @property
    def on_final_leg(self) -> bool:
        return self.path is None or self.path_index == len(self.path) - 1

    @property
    def mid_turn(self) -> bool:
        # Past the entry waypoint, following the arc
        return self.path is not None and self.path_index is not None and self.path_index >= 2

class DirectionSignal(BaseModel):
    state: SignalState = SignalState.RED
    timer_ms: float = 0.0

class Intersection(BaseModel):
    id: int
    x: float
    y: float
    h_road: int
    v_road: int
    signals: Dict[Direction, DirectionSignal]
    phase: Optional[AxisPhase] = None  # Two-phase controller only
    phase_timer_ms: float = 0.0
    last_green: Optional[Direction] = None
    emergency_override: bool = False
    emergency_turn_direction: Optional[TurnDirection] = None
    override_vehicle_id: Optional[str] = None

    def signal_for(self, direction: Direction) -> SignalState:
        return self.signals[direction].state

    def green_directions(self) -> List[Direction]:
        return [d for d, s in self.signals.items() if s.state == SignalState.GREEN]

class V2IMessage(BaseModel):
    vehicle_id: str
    intersection_id: int
    direction: Direction
    turn_intention: TurnDirection
    action: TurnDirection  # What happens at this particular intersection
    eta_s: float
    distance: float

class CommunicationLink(BaseModel):
    type: LinkType
    source: Point
    target: Point
    message: Optional[V2IMessage] = None

class Statistics(BaseModel):
    total_vehicles: int = 0
    emergency_events: int = 0
    communication_links: int = 0
    v2i_broadcasts: int = 0
    vehicles_completed: int = 0

# Snapshot / API models

class VehicleView(BaseModel):
    id: str
    x: float
    y: float
    direction: Direction
    type: VehicleKind
    isEmergency: bool
    stopped: bool
    status: VehicleStatus
    turnDirection: Optional[TurnDirection] = None

class IntersectionView(BaseModel):
    id: int
    x: float
    y: float
    signals: Dict[Direction, SignalState]
    emergencyOverride: bool
    emergencyTurnDirection: Optional[TurnDirection] = None

class SimulationSnapshot(BaseModel):
    tick: int
    timeMs: float
    vehicles: List[VehicleView]
    intersections: List[IntersectionView]
    links: List[CommunicationLink]
    statistics: Statistics
    emergencyActive: bool
    paused: bool
    speedMultiplier: float

class SignalDetails(BaseModel):
    intersectionId: int
    signals: Dict[Direction, SignalState]
    timerRemaining: Dict[Direction, float]  # seconds
    phase: Optional[AxisPhase] = None
    emergencyOverride: bool
    overrideVehicleId: Optional[str] = None

class SpawnRequest(BaseModel):
    kind: VehicleKind = VehicleKind.CAR
    turnDirection: Optional[TurnDirection] = None
    approach: Optional[Direction] = None

class PauseRequest(BaseModel):
    paused: bool

class SpeedRequest(BaseModel):
    multiplier: float
