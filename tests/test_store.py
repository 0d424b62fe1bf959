"""Tests for calibration records and their store."""

import json
import logging

import pytest

from dynocal.calibration.errors import RecordFormatError, CalibrationError
from dynocal.calibration.record import CalibrationRecord, MeasuredMetrics, RECORD_VERSION
from dynocal.calibration.store import (
    CalibrationStore,
    JsonFileStorage,
    MemoryStorage,
    DEFAULT_STORAGE_KEY,
)
from dynocal.calibration.targets import PerformanceTarget


def verified_record(**changes):
    values = dict(
        version=RECORD_VERSION,
        verified=True,
        overrides={"drag_coefficient": 0.31},
        measured=MeasuredMetrics(zero_to_hundred_sec=4.1, zero_to_hundred_reached=True, top_speed_kph=290.0),
        target=PerformanceTarget(top_speed_kph=295.0, zero_to_hundred_sec=4.0),
        iterations=3,
        updated_at=1700000000.0,
    )
    values.update(changes)
    return CalibrationRecord(**values)


class FailingStorage(MemoryStorage):
    """Storage whose writes fail."""

    def set(self, key, value):
        raise OSError("disk full")


class TestCalibrationRecord:
    """Test record serialization."""

    def test_round_trip(self):
        """Test to_dict output parses back to an equal record."""
        record = verified_record(note="ok")
        assert CalibrationRecord.from_dict(record.to_dict()) == record

    def test_snake_case_keys(self):
        """Test serialized keys."""
        data = verified_record().to_dict()
        assert set(data) == {"version", "verified", "overrides", "measured", "target", "iterations", "updated_at", "note"}
        assert data["measured"]["top_speed_kph"] == 290.0

    @pytest.mark.parametrize("data", [
        "not a record",
        {"version": "1", "verified": True},
        {"version": True, "verified": True},
        {"version": 1, "verified": "yes"},
        {"version": 1, "verified": True, "overrides": {"mass_kg": 1.0}},
        {"version": 1, "verified": True, "overrides": {"drag_coefficient": None}},
        {"version": 1, "verified": True, "measured": {"top_speed_kph": float("nan")}},
        {"version": 1, "verified": True, "iterations": -1},
        {"version": 1, "verified": True, "note": 5},
    ])
    def test_malformed(self, data):
        """Test malformed payloads raise RecordFormatError."""
        with pytest.raises(RecordFormatError):
            CalibrationRecord.from_dict(data)

    def test_error_hierarchy(self):
        """Test format errors are calibration errors and value errors."""
        assert issubclass(RecordFormatError, CalibrationError)
        assert issubclass(RecordFormatError, ValueError)


class TestCalibrationStore:
    """Test the record store."""

    def test_put_and_get(self):
        """Test records are stored by car id."""
        store = CalibrationStore()
        store.put("coupe", verified_record())
        assert "coupe" in store
        assert len(store) == 1
        assert store.get("coupe").iterations == 3
        assert store.get("missing") is None

    def test_is_current(self):
        """Test only verified records of the current version are current."""
        store = CalibrationStore(version=2)
        assert store.is_current(verified_record(version=2))
        assert not store.is_current(verified_record(version=1))
        assert not store.is_current(verified_record(version=2, verified=False))
        assert not store.is_current(None)

    def test_overrides_for(self):
        """Test overrides are only served from current records."""
        store = CalibrationStore()
        store.put("a", verified_record())
        store.put("b", verified_record(verified=False))
        assert store.overrides_for("a") == {"drag_coefficient": 0.31}
        assert store.overrides_for("b") is None
        assert store.overrides_for("c") is None

    def test_persist_and_reload(self):
        """Test records survive a round trip through storage."""
        storage = MemoryStorage()
        store = CalibrationStore(storage)
        store.put("coupe", verified_record())
        store.persist()

        payload = json.loads(storage.get(DEFAULT_STORAGE_KEY))
        assert payload["coupe"]["verified"] is True

        reloaded = CalibrationStore(storage)
        assert reloaded.get("coupe") == verified_record()

    def test_unreadable_payload_is_cache_miss(self, caplog):
        """Test invalid JSON drops every record with a warning."""
        storage = MemoryStorage({DEFAULT_STORAGE_KEY: "{not json"})
        with caplog.at_level(logging.WARNING):
            store = CalibrationStore(storage)
            assert len(store) == 0
        assert "unreadable" in caplog.text

    def test_non_object_payload_is_cache_miss(self):
        """Test a JSON payload that is not an object is ignored."""
        store = CalibrationStore(MemoryStorage({DEFAULT_STORAGE_KEY: "[1, 2]"}))
        assert list(store) == []

    def test_malformed_record_dropped_alone(self, caplog):
        """Test one bad record does not drop its neighbours."""
        payload = {"good": verified_record().to_dict(), "bad": {"version": "x"}}
        storage = MemoryStorage({DEFAULT_STORAGE_KEY: json.dumps(payload)})
        with caplog.at_level(logging.WARNING):
            store = CalibrationStore(storage)
            assert list(store) == ["good"]
        assert "bad" in caplog.text

    def test_remove_and_clear(self):
        """Test removing records and clearing storage."""
        storage = MemoryStorage()
        store = CalibrationStore(storage)
        store.put("a", verified_record())
        store.put("b", verified_record())
        store.persist()
        store.remove("a")
        assert list(store) == ["b"]
        store.clear()
        assert len(store) == 0
        assert storage.get(DEFAULT_STORAGE_KEY) is None

    def test_persist_failure_is_logged(self, caplog):
        """Test storage write failures do not raise."""
        store = CalibrationStore(FailingStorage())
        store.put("a", verified_record())
        with caplog.at_level(logging.WARNING):
            store.persist()
        assert "disk full" in caplog.text
        assert store.get("a") is not None


class TestJsonFileStorage:
    """Test the JSON file backend."""

    def test_missing_file(self, tmp_path):
        """Test a missing file reads as empty."""
        storage = JsonFileStorage(tmp_path / "calibration.json")
        assert storage.get("anything") is None

    def test_set_get_remove(self, tmp_path):
        """Test values persist in the file."""
        path = tmp_path / "nested" / "calibration.json"
        storage = JsonFileStorage(path)
        storage.set("key", "value")
        assert path.exists()
        assert JsonFileStorage(path).get("key") == "value"
        storage.remove("key")
        assert storage.get("key") is None
        assert not path.with_suffix(".json.tmp").exists()

    def test_corrupt_file(self, tmp_path):
        """Test a corrupt file reads as empty."""
        path = tmp_path / "calibration.json"
        path.write_text("garbage")
        assert JsonFileStorage(path).get("key") is None

    def test_store_on_file(self, tmp_path):
        """Test a store persists through the file backend."""
        path = tmp_path / "calibration.json"
        store = CalibrationStore(JsonFileStorage(path))
        store.put("coupe", verified_record())
        store.persist()
        assert CalibrationStore(JsonFileStorage(path)).overrides_for("coupe") == {"drag_coefficient": 0.31}
