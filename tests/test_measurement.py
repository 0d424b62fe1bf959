"""Tests for headless performance measurement."""

import itertools

import pytest
import numpy as np

from dynocal.car.config import CarConfig
from dynocal.performance.measurement import (
    PerformanceMeasurement,
    MeasurementConfig,
    ZERO_TO_HUNDRED_PHASE,
    TOP_SPEED_PHASE,
)
from dynocal.telemetry.trace import PerformanceTrace


def ticking_clock():
    """Clock that advances one second per reading."""
    counter = itertools.count()
    return lambda: float(next(counter))


class TestMeasurementConfig:
    """Test measurement configuration."""

    def test_defaults(self):
        """Test default run parameters."""
        config = MeasurementConfig()
        assert config.dt == pytest.approx(1 / 200)
        assert config.target_speed_kph == 100.0
        assert config.settle_sec == 7.0

    def test_invalid_dt(self):
        """Test non-positive timestep is rejected."""
        with pytest.raises(ValueError):
            MeasurementConfig(dt=0.0)


class TestZeroToHundred:
    """Test 0-100 km/h runs."""

    def test_default_car_reaches_target(self):
        """Test the default coupe reaches 100 km/h in a plausible time."""
        measurement = PerformanceMeasurement()
        result = measurement.measure_zero_to_hundred(CarConfig())
        assert result.reached
        assert not result.aborted
        assert 2.0 < result.time_sec < 10.0
        assert measurement.ticks * measurement.config.dt >= result.time_sec

    def test_runs_are_reproducible(self):
        """Test identical configs give bit-identical times."""
        first = PerformanceMeasurement().measure_zero_to_hundred(CarConfig())
        second = PerformanceMeasurement().measure_zero_to_hundred(CarConfig())
        assert first.time_sec == second.time_sec

    def test_more_efficient_drivetrain_is_quicker(self):
        """Test higher efficiency shortens the run."""
        measurement = PerformanceMeasurement()
        slow = measurement.measure_zero_to_hundred(CarConfig(drivetrain_efficiency=0.7))
        fast = measurement.measure_zero_to_hundred(CarConfig(drivetrain_efficiency=1.0))
        assert fast.time_sec < slow.time_sec

    def test_run_cap(self):
        """Test the cap is reported when the target speed is never reached."""
        measurement = PerformanceMeasurement(MeasurementConfig(zero_to_hundred_max_sec=1.0))
        result = measurement.measure_zero_to_hundred(CarConfig())
        assert not result.reached
        assert result.time_sec == 1.0

    def test_deadline_already_passed(self):
        """Test an expired deadline aborts before the first tick."""
        measurement = PerformanceMeasurement(clock=lambda: 100.0)
        result = measurement.measure_zero_to_hundred(CarConfig(), deadline=50.0)
        assert result.aborted
        assert result.time_sec is None
        assert measurement.ticks == 0

    def test_deadline_mid_run(self):
        """Test the deadline is polled every tick."""
        measurement = PerformanceMeasurement(clock=ticking_clock())
        result = measurement.measure_zero_to_hundred(CarConfig(), deadline=5.0)
        assert result.aborted
        assert measurement.ticks == 5

    def test_trace(self):
        """Test samples are recorded for the run."""
        trace = PerformanceTrace()
        measurement = PerformanceMeasurement()
        result = measurement.measure_zero_to_hundred(CarConfig(), trace=trace)
        assert trace.phases == [ZERO_TO_HUNDRED_PHASE]
        assert trace.samples[0].time_sec == 0.0
        assert trace.samples[-1].time_sec == pytest.approx(result.time_sec)
        assert np.max(trace.get_speeds()) >= 100.0
        assert not trace.was_aborted()

    def test_aborted_trace(self):
        """Test an aborted run marks its final sample."""
        trace = PerformanceTrace()
        measurement = PerformanceMeasurement(clock=ticking_clock())
        measurement.measure_zero_to_hundred(CarConfig(), deadline=3.0, trace=trace)
        assert trace.was_aborted(ZERO_TO_HUNDRED_PHASE)
        assert trace.samples[-1].aborted


class TestTopSpeed:
    """Test top speed runs."""

    def test_default_car_settles(self):
        """Test the settle detector ends the run before the cap."""
        measurement = PerformanceMeasurement(MeasurementConfig(dt=1 / 100))
        result = measurement.measure_top_speed(CarConfig())
        assert not result.aborted
        assert 150.0 < result.max_speed_kph < 400.0
        assert 5.0 < result.duration_sec < measurement.config.top_speed_max_sec

    def test_more_drag_lowers_top_speed(self):
        """Test drag coefficient limits top speed."""
        measurement = PerformanceMeasurement(MeasurementConfig(dt=1 / 100))
        slippery = measurement.measure_top_speed(CarConfig(drag_coefficient=0.3))
        draggy = measurement.measure_top_speed(CarConfig(drag_coefficient=0.8))
        assert draggy.max_speed_kph < slippery.max_speed_kph

    def test_deadline_keeps_partial_maximum(self):
        """Test an aborted run reports the maximum seen so far."""
        measurement = PerformanceMeasurement(clock=ticking_clock())
        result = measurement.measure_top_speed(CarConfig(), deadline=200.0)
        assert result.aborted
        assert result.max_speed_kph > 0.0
        assert result.duration_sec == pytest.approx(200 * measurement.config.dt)

    def test_trace_phase(self):
        """Test top speed samples carry their phase."""
        trace = PerformanceTrace()
        measurement = PerformanceMeasurement(clock=ticking_clock())
        measurement.measure_top_speed(CarConfig(), deadline=50.0, trace=trace)
        assert trace.phases == [TOP_SPEED_PHASE]
        assert trace.get_state()[TOP_SPEED_PHASE]["aborted"]
