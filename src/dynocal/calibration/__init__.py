"""
Calibration module - Match simulated cars to published performance figures.

This module contains:
- CalibrationController: Iterative coefficient tuning for one car
- CalibrationStore: Versioned record persistence
- CalibrationService: Batch verification of a catalog
- extract_targets: Spec figure normalization
"""

from dynocal.calibration.errors import CalibrationError, RecordFormatError
from dynocal.calibration.targets import PerformanceTarget, extract_targets
from dynocal.calibration.record import CalibrationRecord, MeasuredMetrics, RECORD_VERSION
from dynocal.calibration.controller import CalibrationConfig, CalibrationController
from dynocal.calibration.store import (
    CalibrationStore,
    JsonFileStorage,
    KeyValueStorage,
    MemoryStorage,
)
from dynocal.calibration.service import (
    BatchSummary,
    CalibrationService,
    CalibrationServiceConfig,
)

__all__ = [
    "CalibrationError",
    "RecordFormatError",
    "PerformanceTarget",
    "extract_targets",
    "CalibrationRecord",
    "MeasuredMetrics",
    "RECORD_VERSION",
    "CalibrationConfig",
    "CalibrationController",
    "CalibrationStore",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "BatchSummary",
    "CalibrationService",
    "CalibrationServiceConfig",
]
