"""
Tire component - Slip angles, lateral force and combined-slip saturation.

Simulates:
- Axle slip angles (bicycle model) with a low-speed floor
- Linear cornering stiffness capped by lateral grip
- Per-wheel friction ellipse coupling longitudinal and lateral force
"""

from typing import List, Sequence
import math

from dynocal.car.config import CarConfig, WHEEL_POSITIONS
from dynocal.physics import clamp, sign

CORNERING_STIFFNESS_FRONT = 80000.0  # N/rad per axle
CORNERING_STIFFNESS_REAR = 90000.0

# Speeds below this use a fixed denominator for slip angles (m/s)
SLIP_SPEED_FLOOR = 0.5

CAPACITY_EPSILON = 1e-6


class Tire:
    """Single tire state.

    Stores the last saturated force pair and the limits it was checked
    against, so utilization can be inspected after a step.
    """

    def __init__(self, position: str, grip: float, lateral_grip: float):
        """Initialize tire.

        Args:
            position: Tire position identifier (FL, FR, RL, RR)
            grip: Longitudinal friction coefficient
            lateral_grip: Lateral friction coefficient
        """
        self.position = position
        self.grip = grip
        self.lateral_grip = lateral_grip

        self.normal_load: float = 0.0
        self.force_long: float = 0.0
        self.force_lat: float = 0.0
        self.long_capacity: float = 0.0
        self.lat_capacity: float = 0.0
        self.has_traction: bool = True

    @property
    def utilization(self) -> float:
        """Friction ellipse usage of the last force pair (<= 1 after saturation)."""
        long_ratio = (self.force_long / self.long_capacity) ** 2 if self.long_capacity > CAPACITY_EPSILON else 0.0
        lat_ratio = (self.force_lat / self.lat_capacity) ** 2 if self.lat_capacity > CAPACITY_EPSILON else 0.0
        return long_ratio + lat_ratio

    def update(
        self,
        normal_load: float,
        force_long: float,
        force_lat: float,
        lat_multiplier: float = 1.0,
    ) -> tuple[float, float]:
        """Saturate a requested force pair against the friction ellipse.

        Both components are scaled by the same factor when the combined
        demand exceeds the ellipse; an axis with no capacity carries no force.

        Args:
            normal_load: Vertical load in N
            force_long: Requested longitudinal force in N
            force_lat: Requested lateral force in N
            lat_multiplier: Extra lateral capacity factor

        Returns:
            Tuple of (longitudinal, lateral) force in N
        """
        self.normal_load = normal_load
        self.long_capacity = max(0.0, self.grip * normal_load)
        self.lat_capacity = max(0.0, self.lateral_grip * normal_load) * lat_multiplier

        if self.long_capacity <= CAPACITY_EPSILON:
            force_long = 0.0
        if self.lat_capacity <= CAPACITY_EPSILON:
            force_lat = 0.0

        long_ratio = (force_long / self.long_capacity) ** 2 if force_long else 0.0
        lat_ratio = (force_lat / self.lat_capacity) ** 2 if force_lat else 0.0
        load_ratio = math.sqrt(long_ratio + lat_ratio)

        if load_ratio > 1.0:
            scale = 1.0 / load_ratio
            force_long *= scale
            force_lat *= scale
            self.has_traction = False
        else:
            self.has_traction = True

        self.force_long = force_long
        self.force_lat = force_lat
        return force_long, force_lat

    def reset(self) -> None:
        """Reset tire to initial state."""
        self.normal_load = 0.0
        self.force_long = 0.0
        self.force_lat = 0.0
        self.long_capacity = 0.0
        self.lat_capacity = 0.0
        self.has_traction = True

    def get_state(self) -> dict:
        """Get current tire state for telemetry."""
        return {
            "position": self.position,
            "load_n": self.normal_load,
            "force_long_n": self.force_long,
            "force_lat_n": self.force_lat,
            "utilization": self.utilization,
            "has_traction": self.has_traction,
        }


class TireSet:
    """Complete set of 4 tires [FL, FR, RL, RR]."""

    def __init__(self, config: CarConfig | None = None):
        """Initialize tire set.

        Args:
            config: Car configuration. Uses defaults if None.
        """
        self.config = config or CarConfig()
        self._tires = [
            Tire(name, grip, lateral)
            for name, grip, lateral in zip(
                WHEEL_POSITIONS,
                self.config.tire_grips,
                self.config.tire_lateral_grips,
            )
        ]
        self.fl, self.fr, self.rl, self.rr = self._tires

    @property
    def tires(self) -> List[Tire]:
        """List of all 4 tires [FL, FR, RL, RR]."""
        return self._tires

    def get_tire(self, position: str) -> Tire:
        """Get tire by position string (FL, FR, RL, RR)."""
        return self._tires[WHEEL_POSITIONS.index(position.upper())]

    @staticmethod
    def slip_angles(
        v_long: float,
        v_lat: float,
        speed: float,
        yaw_rate: float,
        steer_angle: float,
        lf: float,
        lr: float,
    ) -> tuple[float, float]:
        """Calculate front and rear axle slip angles.

        Args:
            v_long: Longitudinal velocity (m/s)
            v_lat: Lateral velocity (m/s)
            speed: Total speed (m/s)
            yaw_rate: Angular velocity (rad/s)
            steer_angle: Front wheel angle (rad)
            lf: CG to front axle (m)
            lr: CG to rear axle (m)

        Returns:
            Tuple of (front, rear) slip angles in radians
        """
        if abs(v_long) > SLIP_SPEED_FLOOR:
            front = math.atan2(v_lat + yaw_rate * lf, abs(v_long)) - steer_angle * sign(v_long)
            rear = math.atan2(v_lat - yaw_rate * lr, abs(v_long))
            return front, rear
        if speed > SLIP_SPEED_FLOOR:
            front = math.atan2(v_lat + yaw_rate * lf, SLIP_SPEED_FLOOR) - steer_angle
            rear = math.atan2(v_lat - yaw_rate * lr, SLIP_SPEED_FLOOR)
            return front, rear
        return 0.0, 0.0

    def axle_lateral_forces(
        self,
        slip_front: float,
        slip_rear: float,
        loads: Sequence[float],
    ) -> tuple[float, float]:
        """Linear axle lateral forces capped by the axle's lateral grip.

        Returns:
            Tuple of (front, rear) lateral force in N
        """
        max_front = self.fl.lateral_grip * loads[0] + self.fr.lateral_grip * loads[1]
        max_rear = self.rl.lateral_grip * loads[2] + self.rr.lateral_grip * loads[3]
        front = clamp(-CORNERING_STIFFNESS_FRONT * slip_front, -max_front, max_front)
        rear = clamp(-CORNERING_STIFFNESS_REAR * slip_rear, -max_rear, max_rear)
        return front, rear

    def update(
        self,
        loads: Sequence[float],
        long_forces: Sequence[float],
        lat_forces: Sequence[float],
        front_lat_multiplier: float = 1.0,
    ) -> tuple[list[float], list[float]]:
        """Saturate requested per-wheel forces.

        Args:
            loads: Normal loads [FL, FR, RL, RR]
            long_forces: Requested longitudinal forces
            lat_forces: Requested lateral forces
            front_lat_multiplier: Lateral capacity factor for the front tires

        Returns:
            Tuple of (longitudinal forces, lateral forces) after saturation
        """
        out_long = []
        out_lat = []
        for index, tire in enumerate(self._tires):
            multiplier = front_lat_multiplier if index < 2 else 1.0
            f_long, f_lat = tire.update(loads[index], long_forces[index], lat_forces[index], multiplier)
            out_long.append(f_long)
            out_lat.append(f_lat)
        return out_long, out_lat

    def reset(self) -> None:
        """Reset all tires to initial state."""
        for tire in self._tires:
            tire.reset()

    def get_state(self) -> dict:
        """Get current tire set state for telemetry."""
        return {tire.position.lower(): tire.get_state() for tire in self._tires}
