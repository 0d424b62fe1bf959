"""
Performance targets - Published figures a car should reproduce.

Catalog specs are loosely structured: figures may sit at the top level or
under ``performance``, ``realWorld`` or ``stats``, under several spellings,
in km/h or mph, and as 0-100 km/h or 0-60 mph times. extract_targets
normalizes all of that into a PerformanceTarget.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from dynocal.physics import finite_or

MPH_TO_KPH = 1.60934
# 0-100 km/h takes roughly 5% longer than 0-60 mph (96.6 km/h)
ZERO_TO_SIXTY_FACTOR = 1.05

SPEC_CONTAINERS = ("performance", "realWorld", "stats")

TOP_SPEED_KPH_KEYS = (
    "topSpeedKph", "topSpeedKmH", "topSpeed", "vMaxKph", "vMaxKmH",
    "top_speed_kph", "top_speed", "v_max_kph",
)
TOP_SPEED_MPH_KEYS = ("topSpeedMph", "topSpeedMPH", "top_speed_mph")
ZERO_TO_HUNDRED_KEYS = (
    "zeroToHundredSec", "zeroTo100Sec", "zeroToHundred", "zeroTo100", "zeroToHundredKmH",
    "zero_to_hundred_sec", "zero_to_100_sec", "zero_to_hundred",
)
ZERO_TO_SIXTY_KEYS = (
    "zeroToSixtySec", "zeroToSixty", "zeroTo60Sec", "zeroTo60", "zeroToSixtyMph",
    "zero_to_sixty_sec", "zero_to_sixty", "zero_to_60_sec",
)


@dataclass(frozen=True)
class PerformanceTarget:
    """Normalized performance figures (km/h and seconds)."""
    top_speed_kph: Optional[float] = None
    zero_to_hundred_sec: Optional[float] = None

    @property
    def has_top_speed(self) -> bool:
        return self.top_speed_kph is not None

    @property
    def has_zero_to_hundred(self) -> bool:
        return self.zero_to_hundred_sec is not None

    @property
    def is_empty(self) -> bool:
        return not (self.has_top_speed or self.has_zero_to_hundred)

    def to_dict(self) -> dict:
        return {
            "top_speed_kph": self.top_speed_kph,
            "zero_to_hundred_sec": self.zero_to_hundred_sec,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PerformanceTarget":
        """Rebuild from to_dict output; invalid figures become None."""
        return cls(
            top_speed_kph=positive_number(data.get("top_speed_kph")),
            zero_to_hundred_sec=positive_number(data.get("zero_to_hundred_sec")),
        )


def positive_number(value: Any) -> Optional[float]:
    """Return value as float if it is finite and positive, otherwise None."""
    number = finite_or(value, 0.0)
    return number if number > 0 else None


def find_numeric(spec: Mapping[str, Any], keys: Sequence[str]) -> Optional[float]:
    """First finite positive value among keys, probing the spec and its sub-mappings.

    Keys take priority over containers: every container is checked for the
    first key before moving on to the next key.
    """
    if not isinstance(spec, Mapping):
        return None
    containers = [spec] + [spec.get(name) for name in SPEC_CONTAINERS]
    for key in keys:
        for container in containers:
            if not isinstance(container, Mapping) or key not in container:
                continue
            number = positive_number(container[key])
            if number is not None:
                return number
    return None


def extract_targets(spec: Mapping[str, Any] | None) -> Optional[PerformanceTarget]:
    """Extract performance targets from a catalog spec.

    Args:
        spec: Car spec mapping

    Returns:
        PerformanceTarget, or None when the spec has no usable figure
    """
    if not isinstance(spec, Mapping):
        return None

    top_speed = find_numeric(spec, TOP_SPEED_KPH_KEYS)
    if top_speed is None:
        mph = find_numeric(spec, TOP_SPEED_MPH_KEYS)
        if mph is not None:
            top_speed = mph * MPH_TO_KPH

    zero_to_hundred = find_numeric(spec, ZERO_TO_HUNDRED_KEYS)
    if zero_to_hundred is None:
        sixty = find_numeric(spec, ZERO_TO_SIXTY_KEYS)
        if sixty is not None:
            zero_to_hundred = sixty * ZERO_TO_SIXTY_FACTOR

    target = PerformanceTarget(top_speed_kph=top_speed, zero_to_hundred_sec=zero_to_hundred)
    return None if target.is_empty else target
