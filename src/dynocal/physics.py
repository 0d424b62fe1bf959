"""
Physics helpers - Constants and small math utilities shared by the car model.

Provides:
- Physical constants (gravity, air density)
- Unit conversions (pixels, km/h, mph)
- Scalar clamping and sign helpers
- Heading normalization
"""

import math

GRAVITY = 9.81
AIR_DENSITY = 1.225

# World rendering units: 16 pixels per meter
PIXELS_PER_METER = 16.0

MPS_TO_KPH = 3.6
MPS_TO_MPH = 2.237
HP_TO_WATTS = 745.7

# Guard added to divisors that may approach zero
EPSILON = 1e-6


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def sign(value: float) -> float:
    """Sign of value (-1, 0 or 1)."""
    if value > 0:
        return 1.0
    if value < 0:
        return -1.0
    return 0.0


def finite_or(value, fallback: float) -> float:
    """Return value as float if it is a finite number, otherwise fallback.

    Args:
        value: Candidate value (any type)
        fallback: Value returned when candidate is missing or non-finite

    Returns:
        Finite float
    """
    if isinstance(value, bool):
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(number):
        return fallback
    return number


def normalize_heading(heading: float) -> float:
    """Wrap an angle into (-pi, pi]. Non-finite angles become 0."""
    if not math.isfinite(heading):
        return 0.0
    if abs(heading) > 4 * math.pi:
        heading = math.fmod(heading, 2 * math.pi)
    while heading > math.pi:
        heading -= 2 * math.pi
    while heading <= -math.pi:
        heading += 2 * math.pi
    return heading
