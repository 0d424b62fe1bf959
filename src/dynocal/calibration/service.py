"""
Calibration service - Batch verification of a car catalog.

Ties together the controller, the store and the config builder:
- skips cars whose stored record is current and whose spec is flagged verified
- honors a spec's own ``performanceVerified`` flag
- calibrates the rest in catalog order, logging progress
- persists the store once per batch
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional
import logging
import time

from dynocal.calibration.controller import CalibrationConfig, CalibrationController
from dynocal.calibration.record import CalibrationRecord, RECORD_VERSION
from dynocal.calibration.store import (
    CalibrationStore,
    DEFAULT_STORAGE_KEY,
    JsonFileStorage,
    MemoryStorage,
)
from dynocal.calibration.targets import extract_targets
from dynocal.car.builder import CarConfigBuilder
from dynocal.car.config import CarConfig

logger = logging.getLogger(__name__)

SPEC_VERIFIED_FLAG = "performanceVerified"
SPEC_FLAG_NOTE = "Marked verified via spec performance flag."


@dataclass
class CalibrationServiceConfig:
    """Batch calibration settings."""
    per_car_timeout_ms: int = 120000
    max_iterations: int = 12
    limit: Optional[int] = None

    # Persistence
    storage_path: Optional[Path] = None  # In-memory when None
    storage_key: str = DEFAULT_STORAGE_KEY
    version: int = RECORD_VERSION

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    def __post_init__(self):
        """Validate and normalize configuration."""
        self.per_car_timeout_ms = max(0, int(self.per_car_timeout_ms))
        self.max_iterations = max(1, int(self.max_iterations))
        if self.limit is not None:
            self.limit = max(0, int(self.limit))
        if self.storage_path and isinstance(self.storage_path, str):
            self.storage_path = Path(self.storage_path)
        if self.log_file and isinstance(self.log_file, str):
            self.log_file = Path(self.log_file)


@dataclass
class BatchSummary:
    """Car ids grouped by what verify_all did with them."""
    skipped: List[str] = field(default_factory=list)
    flagged: List[str] = field(default_factory=list)
    verified: List[str] = field(default_factory=list)
    unverified: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def calibrated(self) -> int:
        """Number of cars that went through the calibration loop."""
        return len(self.verified) + len(self.unverified) + len(self.failed)


def format_car_label(car: Mapping[str, Any]) -> str:
    """Human-readable "year make model (variant)" label."""
    parts = [
        str(car["year"]) if car.get("year") else None,
        car.get("make"),
        car.get("model"),
        f"({car['variant']})" if car.get("variant") else None,
    ]
    return " ".join(str(p) for p in parts if p) or str(car.get("id") or "unknown")


class CalibrationService:
    """Verifies catalog cars against their published figures.

    Usage:
        service = CalibrationService.from_config(CalibrationServiceConfig())
        service.verify_all(catalog)
        config = service.build_config(catalog[0])
    """

    def __init__(
        self,
        store: CalibrationStore | None = None,
        controller: CalibrationController | None = None,
        config: CalibrationServiceConfig | None = None,
        builder: CarConfigBuilder | None = None,
        wall_clock: Callable[[], float] = time.time,
    ):
        """Initialize service.

        Args:
            store: Record store. In-memory if None.
            controller: Calibration controller
            config: Batch settings. Uses defaults if None.
            builder: Spec to CarConfig builder
            wall_clock: Time source (epoch seconds) for record timestamps
        """
        self.config = config or CalibrationServiceConfig()
        self.store = store or CalibrationStore(
            MemoryStorage(), self.config.storage_key, self.config.version
        )
        self.builder = builder or CarConfigBuilder()
        self.controller = controller or CalibrationController(
            CalibrationConfig(
                timeout_ms=self.config.per_car_timeout_ms,
                max_iterations=self.config.max_iterations,
            ),
            builder=self.builder,
        )
        self.wall_clock = wall_clock

    @classmethod
    def from_config(cls, config: CalibrationServiceConfig, **kwargs) -> "CalibrationService":
        """Create a service with the storage backend named by config."""
        storage = JsonFileStorage(config.storage_path) if config.storage_path else MemoryStorage()
        store = CalibrationStore(storage, config.storage_key, config.version)
        return cls(store=store, config=config, **kwargs)

    # -- spec flag --------------------------------------------------------

    @staticmethod
    def _specs(car: Mapping[str, Any]) -> Mapping[str, Any]:
        specs = car.get("specs")
        return specs if isinstance(specs, Mapping) else {}

    def is_spec_verified(self, car: Mapping[str, Any]) -> bool:
        return self._specs(car).get(SPEC_VERIFIED_FLAG) is True

    def mark_spec_verified(self, car: Mapping[str, Any], flag: bool) -> None:
        """Set the spec's verified flag when the spec is mutable."""
        specs = car.get("specs")
        if isinstance(specs, MutableMapping):
            specs[SPEC_VERIFIED_FLAG] = bool(flag)

    # -- queries ----------------------------------------------------------

    def get_overrides(self, car_id: str) -> Optional[Dict[str, float]]:
        """Stored overrides for a car, if its record is current."""
        if not car_id:
            return None
        return self.store.overrides_for(car_id)

    def build_config(self, car: Mapping[str, Any]) -> CarConfig:
        """Build the car's config with spec and stored calibration layers applied."""
        return self.builder.build(self._specs(car), overrides=self.get_overrides(car.get("id")))

    # -- batch ------------------------------------------------------------

    def _flag_record(self, car: Mapping[str, Any], existing: Optional[CalibrationRecord]) -> CalibrationRecord:
        return CalibrationRecord(
            version=self.store.version,
            verified=True,
            overrides=existing.overrides if existing else None,
            measured=existing.measured if existing else None,
            target=(existing.target if existing and existing.target else None) or extract_targets(self._specs(car)),
            iterations=existing.iterations if existing else 0,
            updated_at=self.wall_clock(),
            note=SPEC_FLAG_NOTE,
        )

    def _log_verified(self, label: str, record: CalibrationRecord) -> None:
        zero_diff = top_diff = "n/a"
        measured, target = record.measured, record.target
        if measured and target:
            if measured.zero_to_hundred_sec is not None and target.zero_to_hundred_sec is not None:
                zero_diff = f"{abs(measured.zero_to_hundred_sec - target.zero_to_hundred_sec):.2f}"
            if measured.top_speed_kph is not None and target.top_speed_kph is not None:
                top_diff = f"{abs(measured.top_speed_kph - target.top_speed_kph):.1f}"
        logger.info(f"{label} verified (Δ0-100: {zero_diff}s, ΔVmax: {top_diff} km/h)")

    def verify_all(self, cars: Iterable[Mapping[str, Any]], limit: Optional[int] = None) -> BatchSummary:
        """Verify every car that lacks a current record.

        Args:
            cars: Catalog entries (mappings with ``id`` and ``specs``)
            limit: Maximum number of cars to calibrate. Uses config if None.

        Returns:
            BatchSummary of the run
        """
        summary = BatchSummary()
        limit = self.config.limit if limit is None else max(0, int(limit))
        if limit is not None:
            logger.info(f"Limiting calibration to {limit} vehicles for this run.")

        changed = False
        pending = []
        for car in cars:
            if not isinstance(car, Mapping) or not car.get("id"):
                continue
            car_id = car["id"]
            existing = self.store.get(car_id)
            spec_verified = self.is_spec_verified(car)
            if existing is not None:
                self.mark_spec_verified(car, existing.verified)

            # Reusable only while the spec still carries its verified flag
            if self.store.is_current(existing) and spec_verified:
                summary.skipped.append(car_id)
                continue

            if spec_verified:
                self.store.put(car_id, self._flag_record(car, existing))
                self.mark_spec_verified(car, True)
                summary.flagged.append(car_id)
                changed = True
                continue

            if limit is not None and len(pending) >= limit:
                continue
            pending.append(car)

        if pending:
            noun = "car" if len(pending) == 1 else "cars"
            logger.info(f"Calibrating {len(pending)} unverified {noun}...")

        total = len(pending)
        for index, car in enumerate(pending, start=1):
            car_id = car["id"]
            label = format_car_label(car)
            logger.info(f"({index}/{total}) verifying {label}...")
            try:
                record = self.controller.run_calibration(
                    car,
                    timeout_ms=self.config.per_car_timeout_ms,
                    max_iterations=self.config.max_iterations,
                )
            except Exception as e:
                logger.exception(f"Calibration failed for {car_id}")
                self.store.put(car_id, CalibrationRecord(
                    version=self.store.version,
                    verified=False,
                    measured=None,
                    updated_at=self.wall_clock(),
                    note=f"error: {e}",
                ))
                self.mark_spec_verified(car, False)
                summary.failed.append(car_id)
                changed = True
                continue

            record.version = self.store.version
            self.store.put(car_id, record)
            self.mark_spec_verified(car, record.verified)
            changed = True
            if record.verified:
                summary.verified.append(car_id)
                self._log_verified(label, record)
            else:
                summary.unverified.append(car_id)
                logger.warning(f"{label} left unverified: {record.note or 'timeout/failure'}")

        if changed:
            self.store.persist()
        return summary
