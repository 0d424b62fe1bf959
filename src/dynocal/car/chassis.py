"""
Chassis component - Mass properties and load transfer.

Defines:
- CG position along the wheelbase
- Yaw inertia (box approximation)
- Wheel positions relative to the CG
- Static axle loads and dynamic load transfer
"""

from dynocal.car.config import CarConfig
from dynocal.physics import GRAVITY, clamp

MAX_LATERAL_BIAS = 0.45
MIN_LEVER_M = 0.1


class Chassis:
    """Vehicle mass properties and normal-load distribution.

    Load transfer uses the accelerations recorded on the previous tick,
    which keeps the discrete system from feeding back on itself within
    a single step.
    """

    def __init__(self, config: CarConfig | None = None):
        """Initialize chassis.

        Args:
            config: Car configuration. Uses defaults if None.
        """
        self.config = config or CarConfig()

        self.mass = self.config.mass_kg
        self.weight = self.mass * GRAVITY

        # CG distance to front (lf) and rear (lr) axle
        self.lf = self.config.wheelbase_m * self.config.front_weight_distribution
        self.lr = self.config.wheelbase_m - self.lf

        self.yaw_inertia = (
            self.mass * (self.config.wheelbase_m ** 2 + self.config.track_width_m ** 2) / 12
        )

        half_track = self.config.track_width_m * 0.5
        # (forward, right) offsets from CG for [FL, FR, RL, RR]
        self.wheel_positions = (
            (self.lf, half_track),
            (self.lf, -half_track),
            (-self.lr, half_track),
            (-self.lr, -half_track),
        )

        self._wheel_loads = [0.0, 0.0, 0.0, 0.0]
        self._lateral_bias: float = 0.0

    @property
    def static_axle_loads(self) -> tuple[float, float]:
        """Static (front, rear) axle loads in N."""
        front = self.weight * self.config.front_weight_distribution
        return front, self.weight - front

    @property
    def wheel_loads(self) -> list[float]:
        """Normal loads from the last update [FL, FR, RL, RR] in N."""
        return list(self._wheel_loads)

    @property
    def lateral_bias(self) -> float:
        """Left/right load split bias from the last update."""
        return self._lateral_bias

    def longitudinal_transfer(self, longitudinal_accel: float) -> float:
        """Load moved from front to rear axle in N (negative under braking)."""
        return (
            self.mass * longitudinal_accel * self.config.cg_height_m
            / max(MIN_LEVER_M, self.config.wheelbase_m)
        )

    def lateral_bias_for(self, lateral_accel: float) -> float:
        """Left/right bias from lateral acceleration, clamped to +/-0.45."""
        return clamp(
            lateral_accel * self.config.cg_height_m
            / (GRAVITY * max(MIN_LEVER_M, self.config.track_width_m)),
            -MAX_LATERAL_BIAS,
            MAX_LATERAL_BIAS,
        )

    def update(
        self,
        downforce: float,
        longitudinal_accel: float,
        lateral_accel: float,
    ) -> tuple[list[float], float]:
        """Compute per-wheel normal loads.

        Args:
            downforce: Total aerodynamic downforce in N
            longitudinal_accel: Previous tick's longitudinal acceleration (m/s^2)
            lateral_accel: Previous tick's lateral acceleration (m/s^2)

        Returns:
            Tuple of (wheel loads [FL, FR, RL, RR], lateral bias)
        """
        front_static, rear_static = self.static_axle_loads
        downforce_front = downforce * self.config.front_weight_distribution
        downforce_rear = downforce - downforce_front

        transfer = self.longitudinal_transfer(longitudinal_accel)
        front_axle = front_static + downforce_front - transfer
        rear_axle = rear_static + downforce_rear + transfer

        bias = self.lateral_bias_for(lateral_accel)
        self._wheel_loads = [
            max(0.0, front_axle * 0.5 * (1 + bias)),
            max(0.0, front_axle * 0.5 * (1 - bias)),
            max(0.0, rear_axle * 0.5 * (1 + bias)),
            max(0.0, rear_axle * 0.5 * (1 - bias)),
        ]
        self._lateral_bias = bias
        return list(self._wheel_loads), bias

    def reset(self) -> None:
        """Reset dynamic load state."""
        self._wheel_loads = [0.0, 0.0, 0.0, 0.0]
        self._lateral_bias = 0.0

    def get_state(self) -> dict:
        """Get current chassis state for telemetry."""
        return {
            "mass_kg": self.mass,
            "yaw_inertia": self.yaw_inertia,
            "wheel_loads_n": list(self._wheel_loads),
            "lateral_bias": self._lateral_bias,
        }
