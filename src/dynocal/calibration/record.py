"""
Calibration record - Persisted outcome of one car's calibration.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
import math

from dynocal.calibration.errors import RecordFormatError
from dynocal.calibration.targets import PerformanceTarget
from dynocal.car.config import TUNABLE_KEYS

RECORD_VERSION = 1


@dataclass
class MeasuredMetrics:
    """Final measurements of a calibration run."""
    zero_to_hundred_sec: Optional[float] = None
    zero_to_hundred_reached: bool = False
    top_speed_kph: Optional[float] = None
    top_speed_duration_sec: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "zero_to_hundred_sec": self.zero_to_hundred_sec,
            "zero_to_hundred_reached": self.zero_to_hundred_reached,
            "top_speed_kph": self.top_speed_kph,
            "top_speed_duration_sec": self.top_speed_duration_sec,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MeasuredMetrics":
        if not isinstance(data, Mapping):
            raise RecordFormatError(f"measured must be a mapping, got {type(data).__name__}")
        return cls(
            zero_to_hundred_sec=_optional_float(data.get("zero_to_hundred_sec"), "zero_to_hundred_sec"),
            zero_to_hundred_reached=data.get("zero_to_hundred_reached") is True,
            top_speed_kph=_optional_float(data.get("top_speed_kph"), "top_speed_kph"),
            top_speed_duration_sec=_optional_float(data.get("top_speed_duration_sec"), "top_speed_duration_sec") or 0.0,
        )


@dataclass
class CalibrationRecord:
    """Outcome of calibrating one car.

    overrides holds only the tunable coefficients that moved away from
    the spec-derived config (None when nothing changed).
    """
    version: int = RECORD_VERSION
    verified: bool = False
    overrides: Optional[Dict[str, float]] = None
    measured: Optional[MeasuredMetrics] = field(default_factory=MeasuredMetrics)
    target: Optional[PerformanceTarget] = None
    iterations: int = 0
    updated_at: float = 0.0
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "version": self.version,
            "verified": self.verified,
            "overrides": dict(self.overrides) if self.overrides else None,
            "measured": self.measured.to_dict() if self.measured else None,
            "target": self.target.to_dict() if self.target else None,
            "iterations": self.iterations,
            "updated_at": self.updated_at,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CalibrationRecord":
        """Parse a record produced by to_dict.

        Raises:
            RecordFormatError: If the payload is not a well-formed record
        """
        if not isinstance(data, Mapping):
            raise RecordFormatError(f"record must be a mapping, got {type(data).__name__}")

        version = data.get("version")
        if isinstance(version, bool) or not isinstance(version, int):
            raise RecordFormatError(f"record version must be an integer, got {version!r}")
        verified = data.get("verified")
        if not isinstance(verified, bool):
            raise RecordFormatError(f"record verified flag must be a boolean, got {verified!r}")

        measured = data.get("measured")
        target = data.get("target")
        if target is not None and not isinstance(target, Mapping):
            raise RecordFormatError("record target must be a mapping")

        iterations = data.get("iterations", 0)
        if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 0:
            raise RecordFormatError(f"record iterations must be a non-negative integer, got {iterations!r}")

        note = data.get("note")
        if note is not None and not isinstance(note, str):
            raise RecordFormatError("record note must be a string")

        return cls(
            version=version,
            verified=verified,
            overrides=_parse_overrides(data.get("overrides")),
            measured=MeasuredMetrics.from_dict(measured) if measured is not None else None,
            target=PerformanceTarget.from_dict(target) if target is not None else None,
            iterations=iterations,
            updated_at=_optional_float(data.get("updated_at"), "updated_at") or 0.0,
            note=note,
        )


def _optional_float(value: Any, name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise RecordFormatError(f"{name} must be a finite number, got {value!r}")
    return float(value)


def _parse_overrides(value: Any) -> Optional[Dict[str, float]]:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise RecordFormatError("record overrides must be a mapping")
    overrides = {}
    for key, raw in value.items():
        if key not in TUNABLE_KEYS:
            raise RecordFormatError(f"unknown override key {key!r}")
        overrides[key] = _optional_float(raw, key)
        if overrides[key] is None:
            raise RecordFormatError(f"override {key!r} must not be null")
    return overrides or None
