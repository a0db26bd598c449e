import asyncio
import logging
import time
import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from v2i_sim.domain.errors import NoRouteError, UnknownVehicleError
from v2i_sim.domain.models import (
    PauseRequest, SignalDetails, SimulationSnapshot, SpawnRequest, SpeedRequest, VehicleView
)
from v2i_sim.kernel.simulation_kernel import SimulationKernel

logger = logging.getLogger(__name__)

# Initialize Kernel
kernel = SimulationKernel()

# Background task for simulation loop
@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    kernel.initialize()
    loop_task = asyncio.create_task(run_simulation())
    yield
    loop_task.cancel()

app = FastAPI(lifespan=lifespan)

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

async def run_simulation():
    """Runs the simulation update loop once per tick interval"""
    dt = kernel.config.tick_ms / 1000.0

    while True:
        start_time = time.time()

        kernel.run_tick()

        elapsed = time.time() - start_time
        await asyncio.sleep(max(0.0, dt - elapsed))

@app.get("/api/simulation/state", response_model=SimulationSnapshot)
async def get_simulation_state():
    """Returns the current snapshot of vehicles, signals and links"""
    return kernel.get_snapshot()

@app.get("/api/intersections/{intersection_id}", response_model=SignalDetails)
async def get_intersection(intersection_id: int):
    """Returns the signal details of a specific intersection"""
    details = kernel.get_intersection_details(intersection_id)
    if not details:
        raise HTTPException(status_code=404, detail="Intersection not found")
    return details

@app.post("/api/vehicles", response_model=VehicleView)
async def spawn_vehicle(request: SpawnRequest):
    """Spawns a vehicle immediately so the caller gets its id"""
    try:
        vehicle = kernel.spawn_vehicle(request.kind, turn_direction=request.turnDirection,
                                       approach=request.approach)
    except NoRouteError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return kernel.snapshot_builder.vehicle_view(vehicle)

@app.delete("/api/vehicles/{vehicle_id}")
async def remove_vehicle(vehicle_id: str):
    """Removes a vehicle at the end of the current tick"""
    try:
        kernel.remove_vehicle(vehicle_id)
    except UnknownVehicleError:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return {"status": "Vehicle Removed", "id": vehicle_id}

@app.post("/api/simulation/pause")
async def set_paused(request: PauseRequest):
    kernel.set_paused(request.paused)
    return {"paused": request.paused}

@app.post("/api/simulation/speed")
async def set_speed(request: SpeedRequest):
    """Sets the speed multiplier, clamped to the supported range"""
    return {"speedMultiplier": kernel.set_speed_multiplier(request.multiplier)}

@app.post("/api/simulation/reset")
async def reset_simulation():
    kernel.reset()
    return {"status": "Simulation Reset"}

@app.get("/")
def read_root():
    return {"status": "V2I Intersection Simulator Running"}

def serve(host: str = "0.0.0.0", port: int = 8000):
    """Serves the API with the tick loop running in the app lifespan"""
    uvicorn.run(app, host=host, port=port)

if __name__ == "__main__":
    serve()
