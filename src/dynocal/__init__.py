"""
dynocal - Vehicle dynamics simulation with automatic performance calibration.

This package provides:
- A deterministic per-tick planar car model (powertrain, aero, load transfer, tires)
- Headless 0-100 km/h and top speed measurement runs
- A calibration controller that tunes drag, rolling resistance and drivetrain
  efficiency until a car matches its published figures
- A versioned store for calibration results
- A fixed-step simulator loop with collision fold-back
"""

__version__ = "0.1.0"

from dynocal.car.vehicle import VehicleModel
from dynocal.car.config import CarConfig
from dynocal.performance.measurement import PerformanceMeasurement
from dynocal.calibration.controller import CalibrationController
from dynocal.calibration.service import CalibrationService
from dynocal.simulation.simulator import Simulator

__all__ = [
    "VehicleModel",
    "CarConfig",
    "PerformanceMeasurement",
    "CalibrationController",
    "CalibrationService",
    "Simulator",
    "__version__",
]
