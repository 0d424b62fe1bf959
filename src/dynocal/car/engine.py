"""
Engine component - Torque curve and RPM behavior.

Simulates:
- RPM-based torque curve derived from horsepower and peak torque
- Shift points (upshift/downshift) derived from the peak power RPM
- Rev limiter with torque collapse beyond the limit
- RPM tracking from wheel speed with idle decay
"""

import math

from dynocal.car.config import CarConfig
from dynocal.physics import EPSILON, HP_TO_WATTS, clamp

IDLE_RPM = 900.0
MIN_PEAK_RPM = 2500.0

# Torque curve shape
RISE_EXPONENT = 1.25
RISE_BASE_FRACTION = 0.65
HP_TORQUE_CONSTANT = 5252.0
MIN_HYPERBOLA_FRACTION = 0.45
LIMITER_OVERSHOOT_RPM = 600.0

# RPM decay per tick when the wheels are not driving the engine
RPM_IDLE_DECAY = 0.98


class Engine:
    """Engine torque and RPM model.

    The torque curve has three regions:
    - idle to peak RPM: power-law rise from 65% to 100% of peak torque
    - peak RPM to the limiter: constant-power hyperbola (hp * 5252 / rpm)
      clamped to 45-100% of peak torque
    - beyond the limiter: collapse to 5-12% of peak torque
    """

    def __init__(self, config: CarConfig | None = None):
        """Initialize engine from a car configuration.

        Args:
            config: Car configuration. Uses defaults if None.
        """
        self.config = config or CarConfig()

        self.idle_rpm = IDLE_RPM
        self.peak_rpm = max(
            MIN_PEAK_RPM,
            (self.config.horsepower * HP_TO_WATTS) / (self.config.peak_torque_nm + 1e-6)
            * (60 / (2 * math.pi)),
        )
        self.redline_rpm = self.peak_rpm * 1.15
        self.upshift_rpm = self.redline_rpm * 0.95
        self.downshift_rpm = self.peak_rpm * 0.6

        limiter = self.config.rev_limiter_rpm
        if limiter > 0:
            self.redline_rpm = min(self.redline_rpm, limiter * 0.995)
            self.upshift_rpm = min(self.upshift_rpm, limiter * 0.97)
            if self.downshift_rpm >= self.upshift_rpm:
                self.downshift_rpm = self.upshift_rpm * 0.55
            self.rev_limiter_rpm = limiter
        else:
            self.rev_limiter_rpm = self.redline_rpm

        self._rpm: float = self.idle_rpm
        self._rev_limiter_active: bool = False

    @property
    def rpm(self) -> float:
        """Current engine RPM."""
        return self._rpm

    @rpm.setter
    def rpm(self, value: float) -> None:
        """Set engine RPM, clamped to [idle, 105% of limiter]."""
        self._rpm = clamp(value, self.idle_rpm, self.rev_limiter_rpm * 1.05)

    @property
    def rev_limiter_active(self) -> bool:
        """Whether the limiter clamped RPM on the last update."""
        return self._rev_limiter_active

    def torque_at_rpm(self, rpm: float) -> float:
        """Full-throttle torque at given RPM.

        Args:
            rpm: Engine RPM to query

        Returns:
            Torque in Nm
        """
        peak_torque = self.config.peak_torque_nm
        limiter = self.rev_limiter_rpm
        effective_rpm = clamp(rpm, self.idle_rpm, limiter + LIMITER_OVERSHOOT_RPM)

        if effective_rpm <= self.peak_rpm:
            ratio = clamp(
                (effective_rpm - self.idle_rpm) / max(1.0, self.peak_rpm - self.idle_rpm),
                0.0,
                1.0,
            )
            factor = RISE_BASE_FRACTION + (1.0 - RISE_BASE_FRACTION) * ratio ** RISE_EXPONENT
            return peak_torque * clamp(factor, MIN_HYPERBOLA_FRACTION, 1.05)

        if effective_rpm <= limiter:
            torque_from_hp = self.config.horsepower * HP_TORQUE_CONSTANT / max(effective_rpm, 1.0)
            return clamp(torque_from_hp, peak_torque * MIN_HYPERBOLA_FRACTION, peak_torque)

        overshoot = clamp((effective_rpm - limiter) / LIMITER_OVERSHOOT_RPM, 0.0, 1.0)
        return peak_torque * clamp(0.12 * (1.0 - overshoot), 0.05, 0.12)

    def update(self, speed_abs: float, total_ratio: float) -> bool:
        """Update RPM from wheel speed through the drivetrain.

        Args:
            speed_abs: Absolute longitudinal speed in m/s
            total_ratio: Effective gear ratio (without final drive)

        Returns:
            True if the rev limiter engaged this update
        """
        if total_ratio > 0 and speed_abs > 0.1:
            wheel_angular_speed = speed_abs / (self.config.wheel_radius_m + EPSILON)
            self._rpm = max(
                self.idle_rpm,
                abs(wheel_angular_speed * total_ratio * self.config.final_drive_ratio * 60 / (2 * math.pi)),
            )
        else:
            self._rpm = max(self._rpm * RPM_IDLE_DECAY, self.idle_rpm)

        self._rev_limiter_active = False
        if self._rpm > self.rev_limiter_rpm:
            self._rev_limiter_active = True
            self._rpm = self.rev_limiter_rpm
        return self._rev_limiter_active

    def reset(self) -> None:
        """Reset engine to idle."""
        self._rpm = self.idle_rpm
        self._rev_limiter_active = False

    def get_state(self) -> dict:
        """Get current engine state for telemetry.

        Returns:
            Dictionary containing engine state values
        """
        return {
            "rpm": self._rpm,
            "torque_nm": self.torque_at_rpm(self._rpm),
            "peak_rpm": self.peak_rpm,
            "upshift_rpm": self.upshift_rpm,
            "downshift_rpm": self.downshift_rpm,
            "rev_limiter_rpm": self.rev_limiter_rpm,
            "rev_limiter_active": self._rev_limiter_active,
        }
