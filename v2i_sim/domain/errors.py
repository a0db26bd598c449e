class SimulationError(Exception):
    """Base class for errors raised by the simulation engine."""

class ConfigurationError(SimulationError, ValueError):
    """A road, lane or direction key that the static grid does not define."""

class NoRouteError(SimulationError):
    """A spawn request that matches no route template. No vehicle is created."""

class UnknownVehicleError(SimulationError, KeyError):
    """A command referenced a vehicle id that is not in the active set."""
