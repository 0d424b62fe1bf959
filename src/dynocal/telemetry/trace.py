"""
Performance trace - Sampled speed/distance history of a measurement run.

Provides:
- Time-series storage per run phase
- Numpy accessors for analysis
- Abort marking when a run hits its deadline
"""

from collections import deque
from dataclasses import dataclass, asdict
from typing import Deque, Dict, List, Any
import numpy as np


@dataclass
class PerformanceSample:
    """One sampled point of a measurement run."""
    time_sec: float
    speed_kph: float
    distance_m: float
    phase: str
    aborted: bool = False


class PerformanceTrace:
    """Sample history of measurement runs.

    A single trace can hold several runs; each sample carries the phase
    it was recorded in ("zero_to_hundred", "top_speed").
    """

    def __init__(self, buffer_size: int = 100000):
        """Initialize trace.

        Args:
            buffer_size: Maximum number of samples kept (oldest dropped first)
        """
        self.buffer_size = buffer_size
        self._samples: Deque[PerformanceSample] = deque(maxlen=buffer_size)

    @property
    def samples(self) -> List[PerformanceSample]:
        """Recorded samples in order."""
        return list(self._samples)

    @property
    def count(self) -> int:
        """Number of recorded samples."""
        return len(self._samples)

    @property
    def phases(self) -> List[str]:
        """Distinct phases in recording order."""
        seen: List[str] = []
        for sample in self._samples:
            if sample.phase not in seen:
                seen.append(sample.phase)
        return seen

    def record(
        self,
        time_sec: float,
        speed_kph: float,
        distance_m: float,
        phase: str,
        aborted: bool = False,
    ) -> PerformanceSample:
        """Record a new sample.

        Args:
            time_sec: Simulated time since run start
            speed_kph: Vehicle speed
            distance_m: Distance travelled since run start
            phase: Run phase name
            aborted: True for the final sample of an aborted run

        Returns:
            The recorded sample
        """
        sample = PerformanceSample(time_sec, speed_kph, distance_m, phase, aborted)
        self._samples.append(sample)
        return sample

    def was_aborted(self, phase: str | None = None) -> bool:
        """Whether any (matching) run was cut short by its deadline."""
        return any(s.aborted for s in self._samples if phase is None or s.phase == phase)

    def _select(self, phase: str | None) -> List[PerformanceSample]:
        if phase is None:
            return list(self._samples)
        return [s for s in self._samples if s.phase == phase]

    def get_times(self, phase: str | None = None) -> np.ndarray:
        """Sample times, optionally for one phase."""
        return np.array([s.time_sec for s in self._select(phase)])

    def get_speeds(self, phase: str | None = None) -> np.ndarray:
        """Sampled speeds in km/h, optionally for one phase."""
        return np.array([s.speed_kph for s in self._select(phase)])

    def get_distances(self, phase: str | None = None) -> np.ndarray:
        """Sampled distances in meters, optionally for one phase."""
        return np.array([s.distance_m for s in self._select(phase)])

    def clear(self) -> None:
        """Remove all samples."""
        self._samples.clear()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {"samples": [asdict(s) for s in self._samples]}

    def get_state(self) -> Dict[str, Any]:
        """Summary statistics per phase."""
        summary = {}
        for phase in self.phases:
            speeds = self.get_speeds(phase)
            times = self.get_times(phase)
            summary[phase] = {
                "samples": int(len(speeds)),
                "duration_sec": float(times[-1]) if len(times) else 0.0,
                "max_speed_kph": float(np.max(speeds)) if len(speeds) else 0.0,
                "aborted": self.was_aborted(phase),
            }
        return summary
