#!/usr/bin/env python3
"""
Catalog Calibration Example

This example demonstrates how to:
1. Load a car catalog (JSON list of {id, make, model, specs})
2. Verify every car against its published figures
3. Persist calibration records to a JSON file and spec flags to the catalog
4. Build calibrated configs for the simulator

Run with: python calibrate_catalog.py [catalog.json] --store calibration.json
"""

import argparse
import json
import logging
from pathlib import Path

from dynocal.calibration import CalibrationService, CalibrationServiceConfig
from dynocal.logging_config import configure_logging

logger = logging.getLogger("calibrate_catalog")

SAMPLE_CATALOG = [
    {
        "id": "coupe-gt",
        "year": 2021,
        "make": "Acme",
        "model": "Coupe",
        "variant": "GT",
        "specs": {
            "massKg": 1450,
            "horsepower": 420,
            "torqueNm": 530,
            "driveType": "RWD",
            "performance": {"zeroToHundredSec": 4.2, "topSpeedKph": 280},
        },
    },
    {
        "id": "hatch-s",
        "year": 2019,
        "make": "Acme",
        "model": "Hatch",
        "specs": {
            "massKg": 1250,
            "horsepower": 200,
            "torqueNm": 280,
            "driveType": "FWD",
            "gearRatios": [3.3, 2.1, 1.4, 1.1, 0.9, 0.75],
            "realWorld": {"zeroToSixtySec": 6.4, "topSpeedMph": 146},
        },
    },
    {
        "id": "kart",
        "make": "Acme",
        "model": "Kart",
        "specs": {"massKg": 300, "horsepower": 30},
    },
]


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Calibrate a car catalog")
    parser.add_argument("catalog", nargs="?", type=Path, help="Catalog JSON file (built-in sample if omitted)")
    parser.add_argument("--store", type=Path, default=Path("calibration.json"), help="Calibration record file")
    parser.add_argument("--timeout-ms", type=int, default=120000, help="Per-car wall-clock budget")
    parser.add_argument("--max-iterations", type=int, default=12, help="Per-car iteration budget")
    parser.add_argument("--limit", type=int, help="Calibrate at most this many cars")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    parser.add_argument("--log-file", type=Path, help="Log file path (in addition to stdout)")
    return parser.parse_args()


def load_catalog(path: Path | None) -> list:
    if path is None:
        return SAMPLE_CATALOG
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def save_catalog(path: Path, catalog: list) -> None:
    """Write the catalog back so updated performanceVerified flags persist."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(catalog, f, indent=2)


def main():
    args = parse_args()
    config = CalibrationServiceConfig(
        per_car_timeout_ms=args.timeout_ms,
        max_iterations=args.max_iterations,
        limit=args.limit,
        storage_path=args.store,
        log_level=args.log_level,
        log_file=args.log_file,
    )
    configure_logging(config.log_level, config.log_file)

    catalog = load_catalog(args.catalog)
    logger.info(f"Loaded {len(catalog)} cars; records in {config.storage_path}")

    service = CalibrationService.from_config(config)
    summary = service.verify_all(catalog)
    if args.catalog is not None:
        save_catalog(args.catalog, catalog)

    print("\n" + "=" * 60)
    print("CALIBRATION SUMMARY")
    print("=" * 60)
    print(f"Skipped (cached): {len(summary.skipped)}")
    print(f"Flagged by spec:  {len(summary.flagged)}")
    print(f"Verified:         {len(summary.verified)}")
    print(f"Unverified:       {len(summary.unverified)}")
    print(f"Failed:           {len(summary.failed)}")

    for car in catalog:
        record = service.store.get(car.get("id"))
        if record is None:
            continue
        config = service.build_config(car)
        print(f"\n{car['id']}: verified={record.verified} iterations={record.iterations}")
        print(f"   Cd={config.drag_coefficient:.4f} "
              f"Crr={config.rolling_resistance_coeff:.5f} "
              f"eff={config.drivetrain_efficiency:.3f}")
        if record.note:
            print(f"   Note: {record.note}")


if __name__ == "__main__":
    main()
