"""Tests for batch calibration of a car catalog."""

import logging

import pytest

from dynocal.calibration.controller import CalibrationController, NO_TARGET_NOTE
from dynocal.calibration.record import CalibrationRecord, MeasuredMetrics, RECORD_VERSION
from dynocal.calibration.service import (
    CalibrationService,
    CalibrationServiceConfig,
    SPEC_FLAG_NOTE,
    SPEC_VERIFIED_FLAG,
    format_car_label,
)
from dynocal.calibration.store import CalibrationStore, MemoryStorage
from dynocal.calibration.targets import PerformanceTarget
from dynocal.performance.measurement import PerformanceMeasurement


class StubController:
    """Controller stand-in returning canned records."""

    def __init__(self, verified=True, overrides=None, error=None):
        self.verified = verified
        self.overrides = overrides
        self.error = error
        self.calls = []

    def run_calibration(self, car, timeout_ms=None, max_iterations=None, trace=None):
        self.calls.append((car["id"], timeout_ms, max_iterations))
        if self.error is not None:
            raise self.error
        return CalibrationRecord(
            version=RECORD_VERSION,
            verified=self.verified,
            overrides=self.overrides,
            measured=MeasuredMetrics(zero_to_hundred_sec=4.0, top_speed_kph=300.0),
            target=PerformanceTarget(top_speed_kph=300.0, zero_to_hundred_sec=4.0),
            iterations=2,
            updated_at=1.0,
            note=None if self.verified else "Calibration did not converge within 12 iterations",
        )


def car(car_id, **specs):
    specs.setdefault("topSpeedKph", 300)
    return {"id": car_id, "year": 2020, "make": "Acme", "model": car_id.title(), "specs": specs}


def make_service(controller=None, store=None, **config):
    return CalibrationService(
        store=store or CalibrationStore(MemoryStorage()),
        controller=controller or StubController(),
        config=CalibrationServiceConfig(**config),
        wall_clock=lambda: 1700000000.0,
    )


class TestCalibrationServiceConfig:
    """Test service configuration."""

    def test_normalization(self):
        """Test budgets and paths are normalized."""
        config = CalibrationServiceConfig(per_car_timeout_ms=-5, max_iterations=0, limit=-1, storage_path="cal.json")
        assert config.per_car_timeout_ms == 0
        assert config.max_iterations == 1
        assert config.limit == 0
        assert config.storage_path.name == "cal.json"


class TestVerifyAll:
    """Test batch verification."""

    def test_calibrates_pending_cars(self):
        """Test cars without records are calibrated and stored."""
        controller = StubController(overrides={"drag_coefficient": 0.3})
        service = make_service(controller, per_car_timeout_ms=5000, max_iterations=4)
        cars = [car("alpha"), car("beta")]
        summary = service.verify_all(cars)
        assert summary.verified == ["alpha", "beta"]
        assert summary.calibrated == 2
        assert controller.calls == [("alpha", 5000, 4), ("beta", 5000, 4)]
        assert service.store.is_current(service.store.get("alpha"))
        assert cars[0]["specs"][SPEC_VERIFIED_FLAG] is True

    def test_current_record_is_cache_hit(self):
        """Test a current record of a flagged spec skips the car without simulating."""
        measurement = PerformanceMeasurement()
        store = CalibrationStore(MemoryStorage())
        store.put("alpha", CalibrationRecord(version=RECORD_VERSION, verified=True))
        service = make_service(CalibrationController(measurement=measurement), store=store)
        cars = [car("alpha", performanceVerified=True)]
        summary = service.verify_all(cars)
        assert summary.skipped == ["alpha"]
        assert summary.calibrated == 0
        assert measurement.ticks == 0
        assert cars[0]["specs"][SPEC_VERIFIED_FLAG] is True

    def test_unmarked_spec_recalibrated(self):
        """Test a current record is not reused once the spec loses its flag."""
        store = CalibrationStore(MemoryStorage())
        store.put("alpha", CalibrationRecord(version=RECORD_VERSION, verified=True))
        controller = StubController(overrides={"drag_coefficient": 0.3})
        service = make_service(controller, store=store)
        summary = service.verify_all([car("alpha", performanceVerified=False)])
        assert summary.skipped == []
        assert summary.verified == ["alpha"]
        assert [call[0] for call in controller.calls] == ["alpha"]
        assert store.get("alpha").overrides == {"drag_coefficient": 0.3}

    def test_second_batch_is_cache_hit(self):
        """Test a calibrated catalog is skipped on the next batch."""
        controller = StubController()
        service = make_service(controller)
        cars = [car("alpha")]
        service.verify_all(cars)
        summary = service.verify_all(cars)
        assert summary.skipped == ["alpha"]
        assert len(controller.calls) == 1

    def test_stale_version_recalibrated(self):
        """Test records from another schema version are not current."""
        store = CalibrationStore(MemoryStorage(), version=2)
        store.put("alpha", CalibrationRecord(version=1, verified=True))
        controller = StubController()
        service = make_service(controller, store=store)
        service.verify_all([car("alpha")])
        assert len(controller.calls) == 1
        assert store.get("alpha").version == 2

    def test_unverified_record_recalibrated(self):
        """Test unverified records are retried."""
        store = CalibrationStore(MemoryStorage())
        store.put("alpha", CalibrationRecord(verified=False))
        controller = StubController()
        summary = make_service(controller, store=store).verify_all([car("alpha")])
        assert summary.verified == ["alpha"]

    def test_spec_flag_marks_verified(self):
        """Test a spec flagged verified is recorded without calibrating."""
        controller = StubController()
        service = make_service(controller)
        summary = service.verify_all([car("alpha", performanceVerified=True, zeroToHundredSec=3.5)])
        assert summary.flagged == ["alpha"]
        assert controller.calls == []
        record = service.store.get("alpha")
        assert record.verified
        assert record.note == SPEC_FLAG_NOTE
        assert record.target == PerformanceTarget(top_speed_kph=300.0, zero_to_hundred_sec=3.5)

    def test_spec_flag_keeps_existing_overrides(self):
        """Test flagging keeps overrides from an earlier unverified record."""
        store = CalibrationStore(MemoryStorage())
        store.put("alpha", CalibrationRecord(verified=False, overrides={"drag_coefficient": 0.29}, iterations=12))
        service = make_service(store=store)
        cars = [car("alpha", performanceVerified=True)]
        service.verify_all(cars)
        record = store.get("alpha")
        assert record.verified
        assert record.overrides == {"drag_coefficient": 0.29}
        assert record.iterations == 12
        assert cars[0]["specs"][SPEC_VERIFIED_FLAG] is True

    def test_unverified_result(self, caplog):
        """Test failed convergence is stored and logged as a warning."""
        service = make_service(StubController(verified=False))
        cars = [car("alpha")]
        with caplog.at_level(logging.WARNING):
            summary = service.verify_all(cars)
        assert summary.unverified == ["alpha"]
        assert cars[0]["specs"][SPEC_VERIFIED_FLAG] is False
        assert "left unverified" in caplog.text

    def test_exception_stored_as_error_record(self):
        """Test a crashing calibration is recorded and the batch continues."""
        controller = StubController(error=RuntimeError("boom"))
        service = make_service(controller)
        summary = service.verify_all([car("alpha"), car("beta")])
        assert summary.failed == ["alpha", "beta"]
        record = service.store.get("alpha")
        assert not record.verified
        assert record.note == "error: boom"

    def test_limit(self):
        """Test only the first pending cars are calibrated."""
        controller = StubController()
        service = make_service(controller, limit=2)
        summary = service.verify_all([car("a"), car("b"), car("c")])
        assert [call[0] for call in controller.calls] == ["a", "b"]
        assert "c" not in service.store
        assert summary.calibrated == 2

    def test_limit_argument_overrides_config(self):
        """Test an explicit limit wins over the configured one."""
        controller = StubController()
        service = make_service(controller, limit=2)
        service.verify_all([car("a"), car("b"), car("c")], limit=0)
        assert controller.calls == []

    def test_entries_without_id_ignored(self):
        """Test catalog entries need an id."""
        controller = StubController()
        summary = make_service(controller).verify_all([{"specs": {}}, "junk", {"id": ""}])
        assert controller.calls == []
        assert summary.skipped == []

    def test_persists_once_changed(self):
        """Test the store is written after a batch with changes."""
        storage = MemoryStorage()
        service = make_service(store=CalibrationStore(storage))
        service.verify_all([car("alpha")])
        assert storage.get(service.store.storage_key) is not None

    def test_no_target_car_with_real_controller(self):
        """Test cars without figures verify without simulating."""
        measurement = PerformanceMeasurement()
        service = make_service(CalibrationController(measurement=measurement))
        summary = service.verify_all([{"id": "kart", "specs": {"massKg": 300}}])
        assert summary.verified == ["kart"]
        assert service.store.get("kart").note == NO_TARGET_NOTE
        assert measurement.ticks == 0


class TestServiceQueries:
    """Test override lookup and config building."""

    def test_build_config_applies_current_overrides(self):
        """Test stored overrides flow into the built config."""
        store = CalibrationStore(MemoryStorage())
        store.put("alpha", CalibrationRecord(verified=True, overrides={"drag_coefficient": 0.28}))
        service = make_service(store=store)
        config = service.build_config(car("alpha", massKg=1300))
        assert config.drag_coefficient == 0.28
        assert config.mass_kg == 1300.0

    def test_build_config_ignores_unverified_overrides(self):
        """Test overrides of records that are not current are ignored."""
        store = CalibrationStore(MemoryStorage())
        store.put("alpha", CalibrationRecord(verified=False, overrides={"drag_coefficient": 0.28}))
        service = make_service(store=store)
        assert service.build_config(car("alpha")).drag_coefficient == 0.32
        assert service.get_overrides("") is None

    def test_from_config_uses_file_storage(self, tmp_path):
        """Test the configured storage path is used and reloaded."""
        config = CalibrationServiceConfig(storage_path=tmp_path / "cal.json")
        service = CalibrationService.from_config(config, controller=StubController(), wall_clock=lambda: 1.0)
        cars = [car("alpha")]
        service.verify_all(cars)
        assert (tmp_path / "cal.json").exists()

        controller = StubController()
        reloaded = CalibrationService.from_config(config, controller=controller)
        summary = reloaded.verify_all(cars)
        assert summary.skipped == ["alpha"]
        assert controller.calls == []


class TestFormatCarLabel:
    """Test car labels."""

    def test_full_label(self):
        """Test year make model and variant."""
        label = format_car_label({"year": 1999, "make": "Acme", "model": "Roadster", "variant": "GT"})
        assert label == "1999 Acme Roadster (GT)"

    def test_fallback_to_id(self):
        """Test the id is used when nothing else is known."""
        assert format_car_label({"id": "mystery"}) == "mystery"
        assert format_car_label({}) == "unknown"


class TestTimeouts:
    """Test forced timeouts through the service."""

    def test_zero_timeout_leaves_store_loadable(self):
        """Test a timed-out batch stores an unverified record that reloads."""
        storage = MemoryStorage()
        measurement = PerformanceMeasurement()
        service = CalibrationService(
            store=CalibrationStore(storage),
            controller=CalibrationController(measurement=measurement),
            config=CalibrationServiceConfig(per_car_timeout_ms=0),
        )
        summary = service.verify_all([car("alpha")])
        assert summary.unverified == ["alpha"]
        assert measurement.ticks == 0

        reloaded = CalibrationStore(storage)
        record = reloaded.get("alpha")
        assert not record.verified
        assert "timed out" in record.note
