#!/usr/bin/env python3
"""
Performance Trace Example

This example demonstrates how to:
1. Run 0-100 km/h and top speed measurements
2. Record speed/distance samples for both runs
3. Export the trace to CSV and JSON
4. Analyze the samples with numpy

Run with: python record_trace.py
"""

from pathlib import Path

import numpy as np

from dynocal import CarConfig, PerformanceMeasurement
from dynocal.performance.measurement import ZERO_TO_HUNDRED_PHASE, TOP_SPEED_PHASE
from dynocal.telemetry import PerformanceTrace, TraceExporter, ExporterConfig


def main():
    print("=" * 60)
    print("dynocal Performance Trace Example")
    print("=" * 60)

    output_dir = Path(__file__).parent / "output"
    config = CarConfig()

    print("\n1. Measuring default coupe...")
    trace = PerformanceTrace()
    measurement = PerformanceMeasurement()
    zero = measurement.measure_zero_to_hundred(config, trace=trace)
    top = measurement.measure_top_speed(config, trace=trace)
    print(f"   0-100 km/h: {zero.time_sec:.2f}s (reached: {zero.reached})")
    print(f"   Top speed:  {top.max_speed_kph:.1f} km/h after {top.duration_sec:.1f}s")
    print(f"   Simulated ticks: {measurement.ticks}")

    print("\n2. Analyzing samples...")
    times = trace.get_times(ZERO_TO_HUNDRED_PHASE)
    speeds = trace.get_speeds(ZERO_TO_HUNDRED_PHASE)
    accel = np.diff(speeds / 3.6) / np.maximum(np.diff(times), 1e-9)
    print(f"   0-100 samples: {len(speeds)}")
    print(f"   Peak acceleration: {np.max(accel):.2f} m/s^2")
    distances = trace.get_distances(TOP_SPEED_PHASE)
    print(f"   Top speed run distance: {distances[-1] / 1000:.2f} km")

    print("\n3. Exporting trace...")
    exporter = TraceExporter(ExporterConfig(output_dir=str(output_dir)))
    csv_path = exporter.export_csv(trace)
    json_path = exporter.export_json(trace)
    print(f"   CSV:  {csv_path}")
    print(f"   JSON: {json_path}")


if __name__ == "__main__":
    main()
