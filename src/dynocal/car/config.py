"""
Car configuration - Immutable parameter snapshot for one vehicle model.

Defines:
- Drive layouts and their torque split
- The CarConfig dataclass with documented defaults
- Tunable calibration keys
"""

from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Tuple


class DriveType(str, Enum):
    """Driven axle layout."""
    FWD = "FWD"
    RWD = "RWD"
    AWD = "AWD"

    @property
    def split(self) -> tuple[float, float]:
        """Drive force fraction as (front, rear)."""
        if self is DriveType.FWD:
            return 1.0, 0.0
        if self is DriveType.AWD:
            return 0.45, 0.55
        return 0.0, 1.0

    @classmethod
    def parse(cls, value, default: "DriveType | None" = None) -> "DriveType":
        """Parse a drive type name, falling back to default (RWD) when unknown."""
        if isinstance(value, DriveType):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return default or cls.RWD


# Coefficients the calibration controller is allowed to change
TUNABLE_KEYS = (
    "drag_coefficient",
    "rolling_resistance_coeff",
    "drivetrain_efficiency",
)

DEFAULT_LATERAL_GRIP_FACTOR = 1.12
WHEEL_POSITIONS = ("FL", "FR", "RL", "RR")


@dataclass(frozen=True)
class CarConfig:
    """Complete physical configuration of a car.

    Default values describe a ~1450 kg rear-driven sports coupe
    producing 420 hp. Four-element tuples are ordered [FL, FR, RL, RR].
    """
    # Mass
    mass_kg: float = 1450.0

    # Drivetrain
    drive_type: DriveType = DriveType.RWD
    gear_ratios: Tuple[float, ...] = (0.0, 3.54, 2.12, 1.49, 1.21, 1.0, 0.84)
    final_drive_ratio: float = 3.42
    drivetrain_efficiency: float = 0.9

    # Engine
    horsepower: float = 420.0
    peak_torque_nm: float = 530.0
    rev_limiter_rpm: float = 7000.0

    # Brakes
    brake_horsepower: float = 360.0
    brake_torque_per_wheel_nm: Tuple[float, float, float, float] = (4200.0, 4200.0, 3200.0, 3200.0)
    brake_bias_front: float = 0.6

    # Aerodynamics
    drag_coefficient: float = 0.32
    downforce_coefficient: float = 1.1
    frontal_area_m2: float = 2.2

    # Tires
    wheel_radius_m: float = 0.32
    tire_grips: Tuple[float, float, float, float] = (1.05, 1.05, 1.1, 1.1)
    # Lateral grips default to longitudinal grips * DEFAULT_LATERAL_GRIP_FACTOR
    tire_lateral_grips: Tuple[float, float, float, float] = (1.176, 1.176, 1.232, 1.232)
    rolling_resistance_coeff: float = 0.015

    # Geometry
    wheelbase_m: float = 2.8
    cg_height_m: float = 0.55
    track_width_m: float = 1.55
    front_weight_distribution: float = 0.52

    def __post_init__(self):
        """Validate invariants and normalize sequences to tuples."""
        object.__setattr__(self, "drive_type", DriveType.parse(self.drive_type))
        ratios = tuple(float(r) for r in self.gear_ratios)
        if not ratios or ratios[0] != 0.0:
            raise ValueError("gear_ratios[0] must be the neutral ratio 0.0")
        object.__setattr__(self, "gear_ratios", ratios)
        for name in ("tire_grips", "tire_lateral_grips", "brake_torque_per_wheel_nm"):
            values = tuple(float(v) for v in getattr(self, name))
            if len(values) != 4:
                raise ValueError(f"{name} must have exactly 4 entries, got {len(values)}")
            object.__setattr__(self, name, values)

    @property
    def forward_gear_count(self) -> int:
        """Number of forward gears."""
        return len(self.gear_ratios) - 1

    def with_overrides(self, **changes) -> "CarConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def tunables(self) -> dict:
        """Current values of the calibration-tunable coefficients."""
        return {key: getattr(self, key) for key in TUNABLE_KEYS}

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        data["drive_type"] = self.drive_type.value
        for key, value in data.items():
            if isinstance(value, tuple):
                data[key] = list(value)
        return data
