"""
Performance measurement - Headless acceleration and top speed runs.

Provides:
- 0-100 km/h time with sub-tick interpolation of the crossing
- Top speed with a settle detector
- Optional wall-clock deadline polled every simulated tick
- Optional sample traces
"""

from dataclasses import dataclass
from typing import Callable, Optional
import logging
import time

from dynocal.car.config import CarConfig
from dynocal.car.vehicle import VehicleModel
from dynocal.physics import clamp
from dynocal.telemetry.trace import PerformanceTrace

logger = logging.getLogger(__name__)

ZERO_TO_HUNDRED_PHASE = "zero_to_hundred"
TOP_SPEED_PHASE = "top_speed"


@dataclass
class MeasurementConfig:
    """Measurement run parameters."""
    dt: float = 1 / 200

    # 0-100 km/h
    target_speed_kph: float = 100.0
    zero_to_hundred_max_sec: float = 15.0
    zero_to_hundred_sample_interval: float = 0.02

    # Top speed
    top_speed_max_sec: float = 160.0
    settle_sec: float = 7.0            # Stable time needed before stopping
    min_duration_sec: float = 5.0      # Never stop before this
    rise_threshold_kph: float = 0.05   # Gain that counts as a new maximum
    stable_band_kph: float = 0.1       # Within this of the maximum counts as stable
    unstable_rate: float = 0.25        # Stable-time rate outside the band
    top_speed_sample_interval: float = 0.04

    def __post_init__(self):
        """Validate configuration."""
        if not self.dt > 0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if self.zero_to_hundred_max_sec <= 0 or self.top_speed_max_sec <= 0:
            raise ValueError("Run durations must be positive")


@dataclass(frozen=True)
class ZeroToHundredResult:
    """Outcome of a 0-100 km/h run.

    time_sec is None when the run was aborted by its deadline and equals
    the run cap when 100 km/h was never reached.
    """
    time_sec: Optional[float]
    reached: bool
    aborted: bool = False


@dataclass(frozen=True)
class TopSpeedResult:
    """Outcome of a top speed run (partial maximum when aborted)."""
    max_speed_kph: float
    duration_sec: float
    aborted: bool = False


class PerformanceMeasurement:
    """Runs isolated full-throttle tests on a fresh VehicleModel.

    Every run starts a new vehicle at rest at the origin heading along +X,
    so results depend only on the car configuration and are reproducible
    bit for bit. The deadline, when given, is a value of ``clock`` after
    which the run stops early.

    Usage:
        measurement = PerformanceMeasurement()
        result = measurement.measure_zero_to_hundred(CarConfig())
        print(result.time_sec, measurement.ticks)
    """

    def __init__(
        self,
        config: MeasurementConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize measurement runner.

        Args:
            config: Run parameters. Uses defaults if None.
            clock: Monotonic time source in seconds
        """
        self.config = config or MeasurementConfig()
        self.clock = clock
        self.ticks: int = 0

    def _create_vehicle(self, car_config: CarConfig) -> VehicleModel:
        vehicle = VehicleModel(car_config)
        vehicle.reset_state(x=0.0, y=0.0, heading=0.0)
        return vehicle

    def _expired(self, deadline: Optional[float]) -> bool:
        return deadline is not None and self.clock() >= deadline

    def _tick(self, vehicle: VehicleModel) -> float:
        vehicle.step(1.0, 0.0, 0.0, self.config.dt)
        self.ticks += 1
        return vehicle.speed_kph

    def measure_zero_to_hundred(
        self,
        car_config: CarConfig,
        deadline: Optional[float] = None,
        trace: Optional[PerformanceTrace] = None,
    ) -> ZeroToHundredResult:
        """Time a standing start to the target speed.

        Args:
            car_config: Car to measure
            deadline: Clock value after which the run is aborted
            trace: Optional trace receiving samples

        Returns:
            ZeroToHundredResult
        """
        cfg = self.config
        dt = cfg.dt
        vehicle = self._create_vehicle(car_config)
        phase = ZERO_TO_HUNDRED_PHASE
        if trace is not None:
            trace.record(0.0, 0.0, 0.0, phase)

        elapsed = 0.0
        previous_speed = 0.0
        sample_timer = 0.0
        while elapsed < cfg.zero_to_hundred_max_sec:
            if self._expired(deadline):
                if trace is not None:
                    trace.record(elapsed, vehicle.speed_kph, vehicle.state.x, phase, aborted=True)
                logger.debug(f"0-100 run aborted at {elapsed:.2f}s")
                return ZeroToHundredResult(time_sec=None, reached=False, aborted=True)

            speed = self._tick(vehicle)
            elapsed += dt
            sample_timer += dt
            if trace is not None and sample_timer >= cfg.zero_to_hundred_sample_interval:
                sample_timer = 0.0
                trace.record(elapsed, speed, vehicle.state.x, phase)

            if speed >= cfg.target_speed_kph:
                crossing = elapsed
                delta = speed - previous_speed
                if delta > 1e-6:
                    ratio = clamp((cfg.target_speed_kph - previous_speed) / delta, 0.0, 1.0)
                    crossing = elapsed - dt + ratio * dt
                if trace is not None:
                    trace.record(crossing, speed, vehicle.state.x, phase)
                return ZeroToHundredResult(time_sec=crossing, reached=True)
            previous_speed = speed

        if trace is not None:
            trace.record(elapsed, vehicle.speed_kph, vehicle.state.x, phase)
        return ZeroToHundredResult(time_sec=cfg.zero_to_hundred_max_sec, reached=False)

    def measure_top_speed(
        self,
        car_config: CarConfig,
        deadline: Optional[float] = None,
        trace: Optional[PerformanceTrace] = None,
    ) -> TopSpeedResult:
        """Hold full throttle until speed stops rising.

        Args:
            car_config: Car to measure
            deadline: Clock value after which the run is aborted
            trace: Optional trace receiving samples

        Returns:
            TopSpeedResult
        """
        cfg = self.config
        dt = cfg.dt
        vehicle = self._create_vehicle(car_config)
        phase = TOP_SPEED_PHASE
        if trace is not None:
            trace.record(0.0, 0.0, 0.0, phase)

        elapsed = 0.0
        max_speed = 0.0
        stable_time = 0.0
        sample_timer = 0.0
        while elapsed < cfg.top_speed_max_sec:
            if self._expired(deadline):
                if trace is not None:
                    trace.record(elapsed, vehicle.speed_kph, vehicle.state.x, phase, aborted=True)
                logger.debug(f"Top speed run aborted at {elapsed:.2f}s ({max_speed:.1f} km/h so far)")
                return TopSpeedResult(max_speed_kph=max_speed, duration_sec=elapsed, aborted=True)

            speed = self._tick(vehicle)
            elapsed += dt
            sample_timer += dt
            if trace is not None and sample_timer >= cfg.top_speed_sample_interval:
                sample_timer = 0.0
                trace.record(elapsed, speed, vehicle.state.x, phase)

            if speed > max_speed + cfg.rise_threshold_kph:
                max_speed = speed
                stable_time = 0.0
            elif abs(speed - max_speed) < cfg.stable_band_kph:
                stable_time += dt
            else:
                stable_time += dt * cfg.unstable_rate

            if elapsed > cfg.min_duration_sec and stable_time >= cfg.settle_sec:
                break

        if trace is not None:
            trace.record(elapsed, vehicle.speed_kph, vehicle.state.x, phase)
        return TopSpeedResult(max_speed_kph=max_speed, duration_sec=elapsed)
