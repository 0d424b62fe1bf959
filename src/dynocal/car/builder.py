"""
Car config builder - Layered construction of CarConfig from catalog specs.

Layers are applied in a fixed order, each one a pure function of the
previous layer's values:

1. Defaults (CarConfig field defaults)
2. Spec values (catalog entry, camelCase or snake_case keys)
3. Per-spec hand-tuned overrides (``calibrationOverrides`` in the spec)
4. Calibration overrides (from the calibration store)

Any absent or non-finite field falls back to the previous layer's value.
"""

from dataclasses import fields
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
import logging
import math
import re

from dynocal.car.config import (
    CarConfig,
    DriveType,
    TUNABLE_KEYS,
    DEFAULT_LATERAL_GRIP_FACTOR,
)
from dynocal.physics import HP_TO_WATTS, finite_or

logger = logging.getLogger(__name__)

# Scalar fields and the spec keys read for each, in priority order
SCALAR_SPEC_KEYS: Dict[str, tuple] = {
    "mass_kg": ("massKg", "mass_kg", "mass"),
    "final_drive_ratio": ("finalDrive", "finalDriveRatio", "final_drive_ratio"),
    "horsepower": ("horsepower", "hp"),
    "peak_torque_nm": ("torqueNm", "peakTorqueNm", "peak_torque_nm"),
    "brake_horsepower": ("brakeHorsepower", "brake_horsepower"),
    "drag_coefficient": ("dragCoefficient", "drag_coefficient"),
    "downforce_coefficient": ("downforceCoefficient", "downforce_coefficient"),
    "frontal_area_m2": ("frontalAreaM2", "frontal_area_m2"),
    "wheel_radius_m": ("wheelRadiusM", "wheel_radius_m"),
    "wheelbase_m": ("wheelbaseM", "wheelbase_m"),
    "cg_height_m": ("cgHeightM", "cg_height_m"),
    "track_width_m": ("trackWidthM", "track_width_m"),
    "front_weight_distribution": ("frontWeightDistribution", "front_weight_distribution"),
    "drivetrain_efficiency": ("drivetrainEfficiency", "drivetrain_efficiency"),
    "rolling_resistance_coeff": ("rollingResistanceCoeff", "rolling_resistance_coeff"),
    "rev_limiter_rpm": ("revLimiterRpm", "rev_limiter_rpm"),
    "brake_bias_front": ("brakeBiasFront", "brake_bias_front"),
}

LONGITUDINAL_GRIP_KEYS = ("tireGrips", "tireGripLong", "tireGripLongitudinal", "tire_grips")
LATERAL_GRIP_KEYS = (
    "tireGripLat",
    "tireGripLateral",
    "tireGripSide",
    "tireGripLatitudinal",
    "tire_lateral_grips",
)
BRAKE_TORQUE_KEYS = (
    "brakeTorquePerWheelNm",
    "brakeTorquePerWheel",
    "brakeTorque",
    "brakeTorqueNm",
    "brake_torque_per_wheel_nm",
)

# Spec-side names of the tunable coefficients
TUNABLE_SPEC_NAMES = {
    "drag_coefficient": "dragCoefficient",
    "rolling_resistance_coeff": "rollingResistanceCoeff",
    "drivetrain_efficiency": "drivetrainEfficiency",
}

BRAKE_HP_FRACTION = 0.82

# Brake hp converts to a total brake force at this reference speed (m/s)
BRAKE_REFERENCE_SPEED = 30.0

# Dimensions that must stay strictly positive
POSITIVE_FIELDS = ("mass_kg", "wheel_radius_m", "wheelbase_m", "track_width_m", "frontal_area_m2")

_DELIMITERS = re.compile(r"[,;|]")


def normalize_wheel_values(value: Any) -> Optional[List[float]]:
    """Parse a per-wheel value given as scalar, delimited string or sequence.

    Args:
        value: Raw spec value

    Returns:
        List of finite floats, or None when nothing usable was given
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        parts = [part.strip() for part in _DELIMITERS.split(value)]
        values = [finite_or(part, math.nan) for part in parts if part]
    elif isinstance(value, Iterable):
        values = [finite_or(item, math.nan) for item in value]
    else:
        values = [finite_or(value, math.nan)]
    values = [v for v in values if math.isfinite(v)]
    return values or None


def ensure_wheel_array(value: Any, fallback: Sequence[float]) -> tuple:
    """Normalize a per-wheel value to exactly four entries.

    Fewer than four values are replicated modulo their count
    (a single value applies to every wheel, two values alternate).

    Args:
        value: Raw spec value
        fallback: Four-entry fallback used when value is unusable

    Returns:
        Tuple of four floats [FL, FR, RL, RR]
    """
    values = normalize_wheel_values(value)
    if not values:
        return tuple(float(v) for v in fallback)
    return tuple(values[index % len(values)] for index in range(4))


def ensure_gear_ratios(value: Any, fallback: Sequence[float]) -> tuple:
    """Normalize a gear ratio list so index 0 is the neutral ratio 0.0."""
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        return tuple(fallback)
    ratios = [finite_or(v, math.nan) for v in value]
    ratios = [r for r in ratios if math.isfinite(r)]
    if not ratios:
        return tuple(fallback)
    if ratios[0] != 0.0:
        ratios.insert(0, 0.0)
    return tuple(ratios)


def fallback_brake_torque(brake_horsepower: float, brake_bias_front: float, wheel_radius_m: float) -> tuple:
    """Per-wheel brake torque derived from brake horsepower.

    Brake power at the reference speed gives a total force, split between
    the axles by the front bias and evenly across each axle's wheels.

    Returns:
        Tuple of four torques [FL, FR, RL, RR] in N·m
    """
    total_force = brake_horsepower * HP_TO_WATTS / BRAKE_REFERENCE_SPEED
    front_force = total_force * brake_bias_front
    rear_force = total_force - front_force
    front_torque = front_force / 2 * wheel_radius_m
    rear_torque = rear_force / 2 * wheel_radius_m
    return (front_torque, front_torque, rear_torque, rear_torque)


def find_spec_value(spec: Mapping[str, Any], keys: Sequence[str]) -> Any:
    """Return the first present (non-None) value among keys."""
    for key in keys:
        if key in spec and spec[key] is not None:
            return spec[key]
    return None


class CarConfigBuilder:
    """Builds CarConfig instances from catalog specs.

    Usage:
        builder = CarConfigBuilder()
        config = builder.build(spec, overrides={"drag_coefficient": 0.29})
    """

    def __init__(self, defaults: CarConfig | None = None):
        """Initialize builder.

        Args:
            defaults: Base layer. Uses CarConfig() defaults if None.
        """
        self.defaults = defaults or CarConfig()

    def default_values(self) -> Dict[str, Any]:
        """Layer 1: field values of the default config."""
        return {f.name: getattr(self.defaults, f.name) for f in fields(CarConfig)}

    def apply_spec(self, values: Dict[str, Any], spec: Mapping[str, Any]) -> Dict[str, Any]:
        """Layer 2: copy of values with the spec's fields applied."""
        result = dict(values)

        for name, keys in SCALAR_SPEC_KEYS.items():
            result[name] = finite_or(find_spec_value(spec, keys), values[name])

        for name in POSITIVE_FIELDS:
            if result[name] <= 0:
                logger.warning(f"Ignoring non-positive {name}={result[name]} in car spec")
                result[name] = values[name]

        # Brake hp defaults to a fraction of the spec's engine power
        if find_spec_value(spec, SCALAR_SPEC_KEYS["brake_horsepower"]) is None:
            horsepower = finite_or(find_spec_value(spec, SCALAR_SPEC_KEYS["horsepower"]), math.nan)
            if math.isfinite(horsepower):
                result["brake_horsepower"] = horsepower * BRAKE_HP_FRACTION

        result["drive_type"] = DriveType.parse(
            find_spec_value(spec, ("driveType", "drive_type")),
            values["drive_type"],
        )
        result["gear_ratios"] = ensure_gear_ratios(
            find_spec_value(spec, ("gearRatios", "gear_ratios")),
            values["gear_ratios"],
        )

        grips = ensure_wheel_array(
            find_spec_value(spec, LONGITUDINAL_GRIP_KEYS),
            values["tire_grips"],
        )
        result["tire_grips"] = grips

        lateral_factor = finite_or(
            find_spec_value(spec, ("tireLateralGripFactor", "tire_lateral_grip_factor")),
            DEFAULT_LATERAL_GRIP_FACTOR,
        )
        lateral_input = find_spec_value(spec, LATERAL_GRIP_KEYS)
        if normalize_wheel_values(lateral_input):
            result["tire_lateral_grips"] = ensure_wheel_array(lateral_input, values["tire_lateral_grips"])
        else:
            result["tire_lateral_grips"] = tuple(g * lateral_factor for g in grips)

        brake_values = normalize_wheel_values(find_spec_value(spec, BRAKE_TORQUE_KEYS))
        if brake_values:
            result["brake_torque_per_wheel_nm"] = ensure_wheel_array(brake_values, values["brake_torque_per_wheel_nm"])
        else:
            result["brake_torque_per_wheel_nm"] = fallback_brake_torque(
                result["brake_horsepower"],
                result["brake_bias_front"],
                result["wheel_radius_m"],
            )
        return result

    @staticmethod
    def apply_overrides(values: Dict[str, Any], overrides: Mapping[str, Any] | None) -> Dict[str, Any]:
        """Layers 3 and 4: copy of values with tunable overrides applied.

        Only the tunable coefficients are accepted; keys may use either the
        config field name or the spec's camelCase name.
        """
        result = dict(values)
        if not isinstance(overrides, Mapping):
            return result
        for key in TUNABLE_KEYS:
            raw = overrides.get(key, overrides.get(TUNABLE_SPEC_NAMES[key]))
            result[key] = finite_or(raw, result[key])
        return result

    def build(
        self,
        spec: Mapping[str, Any] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> CarConfig:
        """Build a CarConfig from a spec and optional calibration overrides.

        Args:
            spec: Catalog spec mapping (may be None)
            overrides: Calibration overrides from the store

        Returns:
            Immutable car configuration
        """
        values = self.default_values()
        if isinstance(spec, Mapping):
            values = self.apply_spec(values, spec)
            values = self.apply_overrides(values, spec.get("calibrationOverrides"))
        elif spec is not None:
            logger.warning(f"Ignoring non-mapping car spec of type {type(spec).__name__}")
        values = self.apply_overrides(values, overrides)
        return CarConfig(**values)
