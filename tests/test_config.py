"""
Tests for configuration and structured logging
"""

import json
import logging
import pytest

from retail_ledger.config import LedgerConfig, get_config, reload_config
from retail_ledger.logging_config import (
    JSONFormatter, setup_logging, setup_logging_from_config, get_logger, log_action
)


class TestLedgerConfig:
    """Test pydantic-settings configuration"""

    def test_defaults(self):
        """Test default configuration values"""
        config = LedgerConfig()
        assert config.minimum_deposit == "1.00"
        assert config.default_daily_withdrawal_limit == "5000.00"
        assert config.minimum_daily_withdrawal_limit == "100.00"
        assert config.interest_log_threshold == "0.01"

    def test_environment_override(self, monkeypatch):
        """Test overriding settings from the environment"""
        monkeypatch.setenv("LEDGER_MINIMUM_DEPOSIT", "5.00")
        monkeypatch.setenv("LEDGER_DEFAULT_DAILY_WITHDRAWAL_LIMIT", "7000.00")
        config = LedgerConfig()
        assert config.minimum_deposit == "5.00"
        assert config.default_daily_withdrawal_limit == "7000.00"

    def test_fixed_constants_are_not_settings(self, monkeypatch):
        """Test that commission, history cap and interest year cannot be configured"""
        monkeypatch.setenv("LEDGER_EXCHANGE_COMMISSION_RATE", "0")
        monkeypatch.setenv("LEDGER_HISTORY_CAPACITY", "5000")
        monkeypatch.setenv("LEDGER_DAYS_PER_YEAR", "360")
        config = LedgerConfig()
        for name in ("exchange_commission_rate", "history_capacity", "days_per_year"):
            assert not hasattr(config, name)

    def test_reload(self, monkeypatch):
        """Test reloading the global configuration"""
        monkeypatch.setenv("LEDGER_LOG_LEVEL", "DEBUG")
        try:
            assert reload_config().log_level == "DEBUG"
            assert get_config().log_level == "DEBUG"
        finally:
            monkeypatch.delenv("LEDGER_LOG_LEVEL")
            reload_config()


class TestStructuredLogging:
    """Test JSON logging helpers"""

    def test_json_formatter(self):
        """Test JSON formatting of structured fields"""
        logger = logging.getLogger("retail_ledger_test.formatter")
        record = logger.makeRecord(logger.name, logging.INFO, __name__, 0, "Deposit completed", (), None)
        record.account = "1234567890123456"
        record.action = "deposit"
        record.extra = {"amount": "10"}

        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["message"] == "Deposit completed"
        assert entry["account"] == "1234567890123456"
        assert entry["action"] == "deposit"
        assert entry["extra"] == {"amount": "10"}
        assert "resource" not in entry

    def test_setup_logging_json(self, capsys):
        """Test JSON logging setup on a named logger"""
        logger = setup_logging("INFO", logger_name="retail_ledger_test.json")
        log_action(logger, "info", "hello", action="greet")

        line = capsys.readouterr().err.strip()
        assert json.loads(line)["action"] == "greet"
        assert len(logger.handlers) == 1
        assert not logger.propagate

    def test_setup_logging_text_to_file(self, tmp_path):
        """Test text logging to a file with a level filter"""
        path = tmp_path / "ledger.log"
        logger = setup_logging("WARNING", logger_name="retail_ledger_test.text",
                               log_format="text", log_file=str(path))
        log_action(logger, "info", "skipped")
        log_action(logger, "warning", "kept")
        for handler in logger.handlers:
            handler.flush()

        content = path.read_text()
        assert "kept" in content
        assert "skipped" not in content

    def test_setup_from_config(self):
        """Test logging setup from a configuration object"""
        config = LedgerConfig(log_level="ERROR", log_format="text")
        logger = setup_logging_from_config(config)
        try:
            assert logger.level == logging.ERROR
        finally:
            for handler in logger.handlers[:]:
                logger.removeHandler(handler)
            logger.setLevel(logging.NOTSET)
            logger.propagate = True

    def test_get_logger(self):
        """Test logger lookup by name"""
        assert get_logger("retail_ledger.accounts").name == "retail_ledger.accounts"
