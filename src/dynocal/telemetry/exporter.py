"""
Trace exporter - Export performance traces to files.

Provides:
- CSV export
- JSON export
- NumPy-aware JSON encoding shared with the calibration store
"""

from dataclasses import dataclass
from pathlib import Path
import csv
import json
import numpy as np

from dynocal.telemetry.trace import PerformanceTrace


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy types."""

    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.bool_):
            return bool(obj)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        return super().default(obj)


@dataclass
class ExporterConfig:
    """Exporter configuration."""
    output_dir: str = "./traces"
    include_summary: bool = True


class TraceExporter:
    """Export measurement traces for analysis in external tools."""

    def __init__(self, config: ExporterConfig | None = None):
        """Initialize exporter.

        Args:
            config: Exporter configuration
        """
        self.config = config or ExporterConfig()

        self._output_path = Path(self.config.output_dir)
        self._output_path.mkdir(parents=True, exist_ok=True)

    def export_csv(self, trace: PerformanceTrace, filename: str = "trace.csv") -> Path:
        """Export samples to a CSV file.

        Args:
            trace: Trace with samples
            filename: Output filename

        Returns:
            Path to exported file
        """
        output_file = self._output_path / filename
        with open(output_file, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["phase", "time_sec", "speed_kph", "distance_m", "aborted"])
            for sample in trace.samples:
                writer.writerow([
                    sample.phase,
                    f"{sample.time_sec:.4f}",
                    f"{sample.speed_kph:.3f}",
                    f"{sample.distance_m:.3f}",
                    int(sample.aborted),
                ])
        return output_file

    def export_json(self, trace: PerformanceTrace, filename: str = "trace.json") -> Path:
        """Export samples (and per-phase summary) to a JSON file.

        Args:
            trace: Trace with samples
            filename: Output filename

        Returns:
            Path to exported file
        """
        output_file = self._output_path / filename
        data = trace.to_dict()
        if self.config.include_summary:
            data["summary"] = trace.get_state()
        with open(output_file, "w") as f:
            json.dump(data, f, indent=2, cls=NumpyEncoder)
        return output_file
