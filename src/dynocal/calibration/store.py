"""
Calibration store - Versioned calibration records keyed by car id.

Provides:
- A minimal string key-value storage interface
- In-memory and JSON-file storage backends
- Lazy loading with malformed data treated as a cache miss
"""

from pathlib import Path
from typing import Dict, Iterator, Optional, Protocol
import json
import logging
import os

from dynocal.calibration.errors import RecordFormatError
from dynocal.calibration.record import CalibrationRecord, RECORD_VERSION
from dynocal.telemetry.exporter import NumpyEncoder

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "dynocal.calibration.v1"


class KeyValueStorage(Protocol):
    """String key-value storage (a localStorage-like interface)."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStorage:
    """Process-local storage."""

    def __init__(self, initial: Dict[str, str] | None = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """Storage backed by one JSON object file mapping keys to strings.

    Writes go through a temporary file and an atomic replace, so a reader
    never sees a half-written file.
    """

    def __init__(self, path: str | Path):
        """Initialize storage.

        Args:
            path: JSON file location (created on first write)
        """
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring storage file {self.path}: expected a JSON object")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class CalibrationStore:
    """Calibration records persisted as one JSON map under a storage key.

    Records are loaded lazily on first access. A payload that is not valid
    JSON drops every record; a single malformed record is dropped on its
    own. Both are logged and behave as cache misses.

    Usage:
        store = CalibrationStore(JsonFileStorage("calibration.json"))
        store.put("coupe", record)
        store.persist()
    """

    def __init__(
        self,
        storage: KeyValueStorage | None = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        version: int = RECORD_VERSION,
    ):
        """Initialize store.

        Args:
            storage: Backend. In-memory if None.
            storage_key: Key holding the serialized record map
            version: Record schema version considered current
        """
        self.storage = storage if storage is not None else MemoryStorage()
        self.storage_key = storage_key
        self.version = version
        self._records: Dict[str, CalibrationRecord] = {}
        self._loaded = False

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        raw = self.storage.get(self.storage_key)
        if not raw:
            return
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding unreadable calibration data: {e}")
            return
        if not isinstance(payload, dict):
            logger.warning("Discarding calibration data: expected a JSON object")
            return
        for car_id, data in payload.items():
            try:
                self._records[car_id] = CalibrationRecord.from_dict(data)
            except RecordFormatError as e:
                logger.warning(f"Dropping malformed calibration record for {car_id}: {e}")

    def is_current(self, record: Optional[CalibrationRecord]) -> bool:
        """Whether a record matches the current version and is verified."""
        return record is not None and record.version == self.version and record.verified

    def get(self, car_id: str) -> Optional[CalibrationRecord]:
        self._ensure_loaded()
        return self._records.get(car_id)

    def put(self, car_id: str, record: CalibrationRecord) -> None:
        """Store a record (replaces any existing one)."""
        self._ensure_loaded()
        self._records[car_id] = record

    def remove(self, car_id: str) -> None:
        self._ensure_loaded()
        self._records.pop(car_id, None)

    def clear(self) -> None:
        """Drop every record, including the persisted copy."""
        self._records.clear()
        self._loaded = True
        self.storage.remove(self.storage_key)

    def overrides_for(self, car_id: str) -> Optional[Dict[str, float]]:
        """Overrides of the car's current record, if any."""
        record = self.get(car_id)
        if not self.is_current(record) or not record.overrides:
            return None
        return dict(record.overrides)

    def persist(self) -> None:
        """Write all records to storage."""
        self._ensure_loaded()
        payload = {car_id: record.to_dict() for car_id, record in self._records.items()}
        try:
            self.storage.set(self.storage_key, json.dumps(payload, cls=NumpyEncoder))
        except OSError as e:
            logger.warning(f"Failed to persist calibration data: {e}")

    def __contains__(self, car_id: str) -> bool:
        self._ensure_loaded()
        return car_id in self._records

    def __iter__(self) -> Iterator[str]:
        self._ensure_loaded()
        return iter(list(self._records))

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._records)
