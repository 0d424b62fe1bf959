"""
Powertrain - Engine and transmission working together.

Per tick:
- Smooths throttle toward the driver input
- Resolves forward/reverse intent
- Derives engine RPM from wheel speed and applies the rev limiter
- Shifts automatically when not in manual mode
- Produces drive force at the contact patch
"""

from dynocal.car.config import CarConfig
from dynocal.car.engine import Engine
from dynocal.car.transmission import Transmission
from dynocal.physics import EPSILON, clamp

THROTTLE_RATE = 4.0

# Rev limiter cut: throttle above this magnitude is scaled down
LIMITER_THROTTLE_THRESHOLD = 0.7
LIMITER_THROTTLE_SCALE = 0.6
LIMITER_FORCE_SCALE = 0.15


class Powertrain:
    """Engine + gearbox model producing longitudinal drive force.

    Usage:
        powertrain = Powertrain(config)
        powertrain.update(throttle_input=1.0, v_long=12.0, dt=0.005)
        force = powertrain.drive_force()
    """

    def __init__(self, config: CarConfig | None = None, manual_mode: bool = False):
        """Initialize powertrain.

        Args:
            config: Car configuration. Uses defaults if None.
            manual_mode: Start with manual shifting
        """
        self.config = config or CarConfig()
        self.engine = Engine(self.config)
        self.transmission = Transmission(self.config, manual_mode=manual_mode)
        self._throttle: float = 0.0

    @property
    def throttle(self) -> float:
        """Smoothed throttle (-1 to 1, negative = reverse intent)."""
        return self._throttle

    @throttle.setter
    def throttle(self, value: float) -> None:
        self._throttle = clamp(value, -1.0, 1.0)

    def update(self, throttle_input: float, v_long: float, dt: float) -> None:
        """Advance powertrain state by one tick.

        Args:
            throttle_input: Driver throttle (-1 to 1)
            v_long: Longitudinal speed in m/s (body frame)
            dt: Time step in seconds
        """
        target = clamp(throttle_input, -1.0, 1.0)
        self._throttle += (target - self._throttle) * clamp(dt * THROTTLE_RATE, 0.0, 1.0)
        self._throttle = clamp(self._throttle, -1.0, 1.0)

        speed_abs = abs(v_long)
        self._throttle = self.transmission.update_direction(self._throttle, speed_abs)

        limiter_active = self.engine.update(speed_abs, self.transmission.effective_ratio())
        if limiter_active and abs(self._throttle) > LIMITER_THROTTLE_THRESHOLD:
            direction = 1.0 if self._throttle >= 0 else -1.0
            self._throttle = direction * abs(self._throttle) * LIMITER_THROTTLE_SCALE

        self.transmission.auto_shift(
            self.engine.rpm,
            self._throttle,
            self.engine.upshift_rpm,
            self.engine.downshift_rpm,
        )

    def drive_force(self) -> float:
        """Total longitudinal drive force at the wheels in N.

        Returns:
            Drive force (negative when reversing)
        """
        ratio = self.transmission.effective_ratio()
        if ratio <= 0:
            return 0.0

        reverse = self.transmission.reverse_mode
        throttle_magnitude = abs(self._throttle) if reverse else max(self._throttle, 0.0)
        torque = (
            self.engine.torque_at_rpm(self.engine.rpm)
            * throttle_magnitude
            * self.config.drivetrain_efficiency
        )
        if torque <= 0:
            return 0.0

        force = torque * ratio * self.config.final_drive_ratio / (self.config.wheel_radius_m + EPSILON)
        if reverse:
            force = -force
        if self.engine.rev_limiter_active:
            force *= LIMITER_FORCE_SCALE
        return force

    def reset(self) -> None:
        """Reset to idle with zero throttle."""
        self.engine.reset()
        self.transmission.reset()
        self._throttle = 0.0

    def get_state(self) -> dict:
        """Get powertrain state for telemetry."""
        return {
            "throttle": self._throttle,
            "drive_force_n": self.drive_force(),
            "engine": self.engine.get_state(),
            "transmission": self.transmission.get_state(),
        }
