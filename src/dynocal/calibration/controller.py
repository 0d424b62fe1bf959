"""
Calibration controller - Tune unmeasured coefficients to match published figures.

The controller treats the vehicle model as a black box. Each iteration
measures 0-100 km/h on a working copy of the car config and corrects it,
then measures top speed on the corrected copy and corrects again. The
corrections are damped multiplicative nudges to drivetrain efficiency,
rolling resistance and drag:

- too slow off the line: raise efficiency, lower rolling resistance
- top speed off: scale drag by the squared speed ratio, with smaller
  efficiency and rolling resistance corrections

The search is a bounded best-effort heuristic; it stops when both figures
are within tolerance, when the iteration budget is spent, or when the
wall-clock deadline passes.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional
import logging
import time

from dynocal.calibration.record import CalibrationRecord, MeasuredMetrics, RECORD_VERSION
from dynocal.calibration.targets import PerformanceTarget, extract_targets
from dynocal.car.builder import CarConfigBuilder
from dynocal.car.config import CarConfig, TUNABLE_KEYS
from dynocal.performance.measurement import (
    PerformanceMeasurement,
    TopSpeedResult,
    ZeroToHundredResult,
)
from dynocal.physics import clamp
from dynocal.telemetry.trace import PerformanceTrace

logger = logging.getLogger(__name__)

NO_TARGET_NOTE = "No performance targets provided; skipped calibration."


@dataclass
class CalibrationConfig:
    """Calibration budgets, tolerances and correction constants."""
    timeout_ms: int = 120000
    max_iterations: int = 12

    # Relative tolerances
    zero_to_hundred_tolerance: float = 0.04
    top_speed_tolerance: float = 0.03

    # Coefficient bounds
    efficiency_min: float = 0.6
    efficiency_max: float = 1.0
    rolling_min: float = 0.0045
    rolling_max: float = 0.03
    drag_min: float = 0.16
    drag_max: float = 0.9

    # Acceleration correction
    accel_ratio_min: float = 0.25
    accel_ratio_max: float = 4.0
    accel_efficiency_exponent: float = 0.92
    accel_efficiency_blend: float = 0.55
    accel_rolling_gain: float = 0.45
    accel_rolling_blend: float = 0.35

    # Top speed correction
    top_ratio_min: float = 0.5
    top_ratio_max: float = 1.6
    top_drag_blend: float = 0.6
    top_efficiency_exponent: float = 0.35
    top_efficiency_blend: float = 0.25
    top_rolling_gain: float = 0.25
    top_rolling_blend: float = 0.2

    # Override extraction
    override_epsilon: float = 1e-4
    override_decimals: int = 5

    def __post_init__(self):
        """Normalize budgets."""
        self.timeout_ms = max(0, int(self.timeout_ms))
        self.max_iterations = max(1, int(self.max_iterations))


def mix(current: float, target: float, factor: float) -> float:
    """Blend current toward target by factor (clamped to [0, 1])."""
    alpha = clamp(factor, 0.0, 1.0)
    return current * (1 - alpha) + target * alpha


def is_within_tolerance(current: Optional[float], target: Optional[float], tolerance: float) -> bool:
    """Whether current is within a relative tolerance of target."""
    if current is None or target is None or target == 0:
        return False
    return abs(current - target) / abs(target) <= abs(tolerance)


class CalibrationController:
    """Runs the calibration loop for one car at a time.

    The controller never mutates a live config: it calibrates a working
    copy and reports only the override delta against the spec-derived
    base config.

    Usage:
        controller = CalibrationController()
        record = controller.run_calibration({"id": "coupe", "specs": spec})
    """

    def __init__(
        self,
        config: CalibrationConfig | None = None,
        measurement: PerformanceMeasurement | None = None,
        builder: CarConfigBuilder | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ):
        """Initialize controller.

        Args:
            config: Calibration parameters. Uses defaults if None.
            measurement: Measurement runner. Shares ``clock`` if None.
            builder: Spec to CarConfig builder
            clock: Monotonic time source (seconds) used for deadlines
            wall_clock: Time source (epoch seconds) for record timestamps
        """
        self.config = config or CalibrationConfig()
        self.clock = clock
        self.wall_clock = wall_clock
        self.measurement = measurement or PerformanceMeasurement(clock=clock)
        self.builder = builder or CarConfigBuilder()

    # -- corrections ------------------------------------------------------

    def adjust_acceleration(self, config: CarConfig, measured_sec: Optional[float], target_sec: float) -> CarConfig:
        """Correct efficiency and rolling resistance toward the 0-100 target.

        The ratio is target over measured time, below 1 when the car is too
        slow, so efficiency rises and rolling resistance falls.
        """
        if measured_sec is None or measured_sec <= 0 or target_sec <= 0:
            return config
        cfg = self.config
        ratio = clamp(target_sec / measured_sec, cfg.accel_ratio_min, cfg.accel_ratio_max)

        desired_efficiency = clamp(
            config.drivetrain_efficiency / ratio ** cfg.accel_efficiency_exponent,
            cfg.efficiency_min,
            cfg.efficiency_max,
        )
        desired_rolling = clamp(
            config.rolling_resistance_coeff * (1 + (ratio - 1) * cfg.accel_rolling_gain),
            cfg.rolling_min,
            cfg.rolling_max,
        )
        return config.with_overrides(
            drivetrain_efficiency=mix(config.drivetrain_efficiency, desired_efficiency, cfg.accel_efficiency_blend),
            rolling_resistance_coeff=mix(config.rolling_resistance_coeff, desired_rolling, cfg.accel_rolling_blend),
        )

    def adjust_top_speed(self, config: CarConfig, measured_kph: Optional[float], target_kph: float) -> CarConfig:
        """Correct drag (mainly), efficiency and rolling resistance toward the top speed target."""
        if measured_kph is None or measured_kph <= 0 or target_kph <= 0:
            return config
        cfg = self.config
        ratio = clamp(measured_kph / target_kph, cfg.top_ratio_min, cfg.top_ratio_max)

        desired_drag = clamp(config.drag_coefficient * ratio * ratio, cfg.drag_min, cfg.drag_max)
        drag = mix(config.drag_coefficient, desired_drag, cfg.top_drag_blend)

        desired_efficiency = clamp(
            config.drivetrain_efficiency / ratio ** cfg.top_efficiency_exponent,
            cfg.efficiency_min,
            cfg.efficiency_max,
        )
        efficiency = mix(config.drivetrain_efficiency, desired_efficiency, cfg.top_efficiency_blend)

        desired_rolling = clamp(
            config.rolling_resistance_coeff * (1 + (ratio - 1) * cfg.top_rolling_gain),
            cfg.rolling_min,
            cfg.rolling_max,
        )
        rolling = mix(config.rolling_resistance_coeff, desired_rolling, cfg.top_rolling_blend)

        return config.with_overrides(
            drag_coefficient=drag,
            drivetrain_efficiency=efficiency,
            rolling_resistance_coeff=rolling,
        )

    def compute_overrides(self, config: CarConfig, base: CarConfig) -> Optional[Dict[str, float]]:
        """Tunable values that moved away from base, rounded for storage.

        Returns:
            Mapping of changed keys, or None when nothing changed
        """
        overrides = {}
        for key in TUNABLE_KEYS:
            value = getattr(config, key)
            if abs(value - getattr(base, key)) <= self.config.override_epsilon:
                continue
            overrides[key] = round(value, self.config.override_decimals)
        return overrides or None

    # -- loop -------------------------------------------------------------

    def _measure(
        self,
        config: CarConfig,
        target: PerformanceTarget,
        deadline: float,
        trace: Optional[PerformanceTrace] = None,
    ) -> tuple[Optional[ZeroToHundredResult], Optional[TopSpeedResult]]:
        zero = top = None
        if target.has_zero_to_hundred:
            zero = self.measurement.measure_zero_to_hundred(config, deadline=deadline, trace=trace)
        if target.has_top_speed:
            top = self.measurement.measure_top_speed(config, deadline=deadline, trace=trace)
        return zero, top

    def _converged(
        self,
        target: PerformanceTarget,
        zero: Optional[ZeroToHundredResult],
        top: Optional[TopSpeedResult],
    ) -> bool:
        accel_close = zero is None or is_within_tolerance(
            zero.time_sec, target.zero_to_hundred_sec, self.config.zero_to_hundred_tolerance
        )
        top_close = top is None or is_within_tolerance(
            top.max_speed_kph, target.top_speed_kph, self.config.top_speed_tolerance
        )
        return accel_close and top_close

    def calibrate(
        self,
        base: CarConfig,
        target: Optional[PerformanceTarget],
        timeout_ms: Optional[int] = None,
        max_iterations: Optional[int] = None,
        trace: Optional[PerformanceTrace] = None,
    ) -> CalibrationRecord:
        """Calibrate a config against a target.

        Args:
            base: Spec-derived config (left untouched)
            target: Figures to reproduce. None or empty skips calibration.
            timeout_ms: Wall-clock budget. Uses config default if None.
            max_iterations: Iteration budget. Uses config default if None.
            trace: Optional trace receiving samples of the final measurement

        Returns:
            CalibrationRecord
        """
        if target is None or target.is_empty:
            return CalibrationRecord(
                version=RECORD_VERSION,
                verified=True,
                overrides=None,
                measured=MeasuredMetrics(),
                target=None,
                iterations=0,
                updated_at=self.wall_clock(),
                note=NO_TARGET_NOTE,
            )

        timeout_ms = self.config.timeout_ms if timeout_ms is None else max(0, int(timeout_ms))
        max_iterations = self.config.max_iterations if max_iterations is None else max(1, int(max_iterations))
        deadline = self.clock() + timeout_ms / 1000.0

        working = base.with_overrides()
        iterations = 0
        timed_out = False
        for _ in range(max_iterations):
            if self.clock() >= deadline:
                timed_out = True
                break
            iterations += 1

            # Top speed is measured on the config the acceleration step produced
            accel_close = True
            if target.has_zero_to_hundred:
                zero = self.measurement.measure_zero_to_hundred(working, deadline=deadline)
                if zero.aborted:
                    timed_out = True
                    break
                accel_close = is_within_tolerance(
                    zero.time_sec, target.zero_to_hundred_sec, self.config.zero_to_hundred_tolerance
                )
                if not accel_close:
                    working = self.adjust_acceleration(working, zero.time_sec, target.zero_to_hundred_sec)

            top_close = True
            if target.has_top_speed:
                top = self.measurement.measure_top_speed(working, deadline=deadline)
                if top.aborted:
                    timed_out = True
                    break
                top_close = is_within_tolerance(
                    top.max_speed_kph, target.top_speed_kph, self.config.top_speed_tolerance
                )
                if not top_close:
                    working = self.adjust_top_speed(working, top.max_speed_kph, target.top_speed_kph)

            if accel_close and top_close:
                break

            logger.debug(
                f"Iteration {iterations}: drag={working.drag_coefficient:.4f} "
                f"crr={working.rolling_resistance_coeff:.5f} eff={working.drivetrain_efficiency:.4f}"
            )

        overrides = self.compute_overrides(working, base)
        final_config = base.with_overrides(**overrides) if overrides else base

        zero, top = self._measure(final_config, target, deadline, trace=trace)
        if (zero is not None and zero.aborted) or (top is not None and top.aborted):
            timed_out = True

        measured = MeasuredMetrics(
            zero_to_hundred_sec=zero.time_sec if zero is not None else None,
            zero_to_hundred_reached=zero.reached if zero is not None else False,
            top_speed_kph=top.max_speed_kph if top is not None else None,
            top_speed_duration_sec=top.duration_sec if top is not None else 0.0,
        )

        if timed_out:
            verified = False
            note = f"Calibration timed out after {timeout_ms} ms"
        elif self._converged(target, zero, top):
            verified = True
            note = None
        else:
            verified = False
            note = f"Calibration did not converge within {iterations} iterations"

        return CalibrationRecord(
            version=RECORD_VERSION,
            verified=verified,
            overrides=overrides,
            measured=measured,
            target=target,
            iterations=iterations,
            updated_at=self.wall_clock(),
            note=note,
        )

    def run_calibration(
        self,
        car: Mapping[str, Any],
        timeout_ms: Optional[int] = None,
        max_iterations: Optional[int] = None,
        trace: Optional[PerformanceTrace] = None,
    ) -> CalibrationRecord:
        """Calibrate a catalog car.

        Args:
            car: Catalog entry with ``specs`` (and usually ``id``)
            timeout_ms: Wall-clock budget. Uses config default if None.
            max_iterations: Iteration budget. Uses config default if None.
            trace: Optional trace receiving samples of the final measurement

        Returns:
            CalibrationRecord
        """
        spec = car.get("specs") if isinstance(car, Mapping) else None
        if not isinstance(spec, Mapping):
            spec = {}
        target = extract_targets(spec)
        if target is None:
            return self.calibrate(CarConfig(), None)
        base = self.builder.build(spec)
        return self.calibrate(base, target, timeout_ms=timeout_ms, max_iterations=max_iterations, trace=trace)
