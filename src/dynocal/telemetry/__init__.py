"""
Telemetry module - Measurement traces and export.

This module contains:
- PerformanceTrace: Sampled speed/distance history
- TraceExporter: Export traces to CSV/JSON
- NumpyEncoder: JSON encoder for numpy values
"""

from dynocal.telemetry.trace import PerformanceTrace, PerformanceSample
from dynocal.telemetry.exporter import ExporterConfig, TraceExporter, NumpyEncoder

__all__ = [
    "PerformanceTrace",
    "PerformanceSample",
    "ExporterConfig",
    "TraceExporter",
    "NumpyEncoder",
]
