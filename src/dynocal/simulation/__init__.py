"""
Simulation module - Live fixed-step loop around vehicle actors.

This module contains:
- Simulator: Fixed-step loop with frame time accumulation
- World: Actor container with bounds and clock
- VehicleActor: Vehicle model bound to a collision body
"""

from dynocal.simulation.simulator import Simulator, SimulatorConfig
from dynocal.simulation.world import World
from dynocal.simulation.actor import (
    BoxBody,
    CollisionSystem,
    DriverIntent,
    OpenCollisionSystem,
    VehicleActor,
    WorldBounds,
    resolve_intent,
)

__all__ = [
    "Simulator",
    "SimulatorConfig",
    "World",
    "BoxBody",
    "CollisionSystem",
    "DriverIntent",
    "OpenCollisionSystem",
    "VehicleActor",
    "WorldBounds",
    "resolve_intent",
]
