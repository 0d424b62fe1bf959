"""Tests for logging setup."""

import logging

from dynocal.logging_config import configure_logging, LOG_FORMAT


class TestConfigureLogging:
    """Test root logger configuration."""

    def teardown_method(self):
        logging.basicConfig(force=True, handlers=[logging.NullHandler()])

    def test_level_and_format(self):
        """Test level names are applied to the root logger."""
        configure_logging("debug")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert root.handlers[0].formatter._fmt == LOG_FORMAT

    def test_unknown_level_defaults_to_info(self):
        """Test an unknown level name falls back to INFO."""
        configure_logging("chatty")
        assert logging.getLogger().level == logging.INFO

    def test_log_file(self, tmp_path):
        """Test messages are copied to the log file."""
        log_file = tmp_path / "calibration.log"
        configure_logging("INFO", log_file)
        logging.getLogger("dynocal.test").info("verifying coupe")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "verifying coupe" in log_file.read_text()
