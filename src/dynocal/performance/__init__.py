"""
Performance module - Headless acceleration and top speed measurement.
"""

from dynocal.performance.measurement import (
    MeasurementConfig,
    PerformanceMeasurement,
    TopSpeedResult,
    ZeroToHundredResult,
)

__all__ = [
    "MeasurementConfig",
    "PerformanceMeasurement",
    "TopSpeedResult",
    "ZeroToHundredResult",
]
