"""
Car module - Planar vehicle dynamics.

This module contains all car-related components:
- CarConfig: Immutable physical parameters
- CarConfigBuilder: Layered construction from catalog specs
- Engine: Torque curve, RPM, rev limiter
- Transmission: Gear state machine, automatic shifting
- Powertrain: Engine + transmission drive force
- Aero: Drag and downforce
- Chassis: Mass properties, load transfer
- Tires: Slip angles and friction ellipse
- VehicleModel: Per-tick integrator
"""

from dynocal.car.config import CarConfig, DriveType, TUNABLE_KEYS
from dynocal.car.builder import CarConfigBuilder
from dynocal.car.engine import Engine
from dynocal.car.transmission import Transmission, GearState
from dynocal.car.powertrain import Powertrain
from dynocal.car.aero import Aero
from dynocal.car.chassis import Chassis
from dynocal.car.tires import Tire, TireSet
from dynocal.car.vehicle import VehicleModel, VehicleState, VehicleInputs

__all__ = [
    "CarConfig",
    "DriveType",
    "TUNABLE_KEYS",
    "CarConfigBuilder",
    "Engine",
    "Transmission",
    "GearState",
    "Powertrain",
    "Aero",
    "Chassis",
    "Tire",
    "TireSet",
    "VehicleModel",
    "VehicleState",
    "VehicleInputs",
]
