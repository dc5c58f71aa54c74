"""
StealthPay - Config, Logging & Errors Tests
=============================================
Unit tests for the ambient stack.
"""

import json
import logging

import pytest
from pydantic import ValidationError as PydanticValidationError

from stealth_pay.config import (
    StealthSettings,
    get_development_config,
    get_settings,
    get_test_config,
    override_settings,
    reload_settings,
    validate_config,
)
from stealth_pay.errors import (
    AddressMismatchError,
    CryptoError,
    DatabaseConnectionError,
    InvalidAnnouncementError,
    KeyAgreementError,
    RecipientKeyNotFoundError,
    StealthError,
    StealthPayException,
    StoreError,
    ValidationError,
    format_validation_error,
)
from stealth_pay.logging_setup import (
    JSONFormatter,
    PerformanceLogger,
    get_logger,
    setup_logging,
    setup_logging_from_settings,
    short_key,
)
from stealth_pay.version import __version__, is_compatible


class TestSettings:
    """Test StealthSettings"""

    def test_defaults(self, temp_data_dir):
        config = StealthSettings(data_dir=temp_data_dir, log_to_file=False)

        assert config.scan_max_workers == 8
        assert config.enable_view_tags is True
        assert config.legacy_fallback is True
        assert config.verify_key_records is True
        assert config.kdf_iterations == 200_000
        assert config.db_path == temp_data_dir / "stealthpay.db"

    def test_env_override(self, temp_data_dir, monkeypatch):
        monkeypatch.setenv("STEALTHPAY_SCAN_MAX_WORKERS", "16")
        monkeypatch.setenv("STEALTHPAY_LEGACY_FALLBACK", "false")

        config = StealthSettings(data_dir=temp_data_dir, log_to_file=False)

        assert config.scan_max_workers == 16
        assert config.legacy_fallback is False

    @pytest.mark.parametrize("field,value", [
        ("scan_max_workers", 0),
        ("scan_max_workers", 1000),
        ("kdf_iterations", 500),
        ("kdf_iterations", 10 ** 9),
        ("log_level", "VERBOSE"),
        ("log_format", "xml"),
    ])
    def test_invalid_values(self, temp_data_dir, field, value):
        with pytest.raises(PydanticValidationError):
            StealthSettings(data_dir=temp_data_dir, log_to_file=False, **{field: value})

    def test_log_level_normalized(self, temp_data_dir):
        config = StealthSettings(data_dir=temp_data_dir, log_to_file=False, log_level="debug")
        assert config.log_level == "DEBUG"

    def test_test_config(self, temp_data_dir):
        config = get_test_config(temp_data_dir)

        assert config.data_dir.exists()
        assert config.log_to_file is False
        assert config.dev_mode is True
        assert validate_config(config) == (True, [])

    def test_development_config(self, temp_data_dir, monkeypatch):
        monkeypatch.chdir(temp_data_dir)
        config = get_development_config()

        assert config.dev_mode is True
        assert config.log_format == "text"

    def test_json_round_trip(self, test_config):
        restored = StealthSettings.from_json(test_config.to_json())

        assert restored.scan_max_workers == test_config.scan_max_workers
        assert restored.db_path == test_config.db_path

    def test_repr(self, test_config):
        assert "scan_max_workers=4" in repr(test_config)

    def test_override_settings(self, temp_data_dir):
        config = override_settings(data_dir=temp_data_dir, log_to_file=False, legacy_fallback=False)

        assert config.legacy_fallback is False
        assert config.scan_max_workers == 8

    def test_reload_settings(self, temp_data_dir, monkeypatch):
        monkeypatch.chdir(temp_data_dir)
        monkeypatch.setenv("STEALTHPAY_LOG_TO_FILE", "false")
        monkeypatch.setenv("STEALTHPAY_SCAN_MAX_WORKERS", "3")
        try:
            assert reload_settings().scan_max_workers == 3
            assert get_settings().scan_max_workers == 3
        finally:
            monkeypatch.delenv("STEALTHPAY_SCAN_MAX_WORKERS")
            reload_settings()


class TestErrors:
    """Test exception hierarchy"""

    def test_hierarchy(self):
        assert issubclass(KeyAgreementError, CryptoError)
        assert issubclass(AddressMismatchError, StealthError)
        assert issubclass(InvalidAnnouncementError, ValidationError)
        assert issubclass(DatabaseConnectionError, StoreError)
        for cls in (CryptoError, StealthError, ValidationError, StoreError):
            assert issubclass(cls, StealthPayException)

    def test_retryable(self):
        assert RecipientKeyNotFoundError("x").retryable
        assert StoreError("x").retryable
        assert not KeyAgreementError("x").retryable
        assert not InvalidAnnouncementError("x").retryable

    def test_to_dict(self):
        error = AddressMismatchError("no match", code="ADDRESS_MISMATCH", details={"a": 1})

        assert error.to_dict() == {
            "error": "ADDRESS_MISMATCH",
            "message": "no match",
            "details": {"a": 1},
            "retryable": False,
        }
        assert "[ADDRESS_MISMATCH]" in str(error)

    def test_format_validation_error(self):
        error = format_validation_error("derivedAddress", "0x" + "a" * 40, "EIP-55 address")

        assert isinstance(error, InvalidAnnouncementError)
        assert error.code == "INVALID_ANNOUNCEMENT"
        assert error.details["field"] == "derivedAddress"
        assert len(error.details["value"]) <= 15


class TestLogging:
    """Test logging helpers"""

    def test_category_logger_name(self):
        assert get_logger("services.scanning").name == "stealthpay.services.scanning"

    def test_json_formatter_extra_data(self):
        record = logging.LogRecord(
            "stealthpay.test", logging.INFO, __file__, 1, "hello", None, None
        )
        record.extra_data = {"address": "0xabc"}

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "hello"
        assert data["extra_data"] == {"address": "0xabc"}

    def test_short_key(self):
        assert short_key("02" + "ab" * 32, 8) == "02ababab..."
        assert short_key("abc") == "abc"
        assert short_key(None) == ""

    def test_performance_logger(self):
        with PerformanceLogger(get_logger("test"), "op", threshold_ms=10_000) as perf:
            pass

        assert perf.elapsed_ms >= 0

    def test_setup_logging_files(self, temp_data_dir):
        root = logging.getLogger("stealthpay")
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            logger = setup_logging(
                log_level="DEBUG",
                log_dir=temp_data_dir / "logs",
                enable_console=False,
            )
            logger.error("boom", extra_data={"code": "X"})
            for handler in root.handlers:
                handler.flush()

            assert (temp_data_dir / "logs" / "stealthpay.log").exists()
            errors = (temp_data_dir / "logs" / "stealthpay_errors.log").read_text()
            assert "boom" in errors
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_setup_logging_from_settings(self, test_config):
        root = logging.getLogger("stealthpay")
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            setup_logging_from_settings(test_config.model_copy(update={"log_level": "ERROR"}))

            assert root.level == logging.ERROR
            assert not any(isinstance(h, logging.FileHandler) for h in root.handlers)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestVersion:
    def test_version(self):
        assert __version__ == "1.0.0"
        assert is_compatible("1.4.2")
        assert not is_compatible("2.0.0")
        assert not is_compatible("garbage")
