"""
Calibration errors.
"""


class CalibrationError(Exception):
    """Base class for calibration API errors."""


class RecordFormatError(CalibrationError, ValueError):
    """A persisted calibration record could not be parsed."""
