"""
Tests for the structured logging setup
"""

import json
import logging

import pytest

from modbus_web.app.utilities.logging_config import (
    ComponentFilter, JsonFormatter, LoggingConfig, LoggingManager, LogFormat, LogLevel
)


def make_record(**extra):
    record = logging.LogRecord("modbus_web", logging.INFO, __file__, 10, "Session saved", (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogLevel:
    """Test level name parsing"""

    def test_from_name(self):
        assert LogLevel.from_name("debug") is LogLevel.DEBUG
        assert LogLevel.from_name(" Warning ") is LogLevel.WARNING
        assert LogLevel.from_name(LogLevel.ERROR) is LogLevel.ERROR

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            LogLevel.from_name("verbose")


class TestFormatters:
    """Test JSON output and component filtering"""

    def test_json_formatter_includes_extras(self):
        line = JsonFormatter().format(make_record(component="connection_cache", session_key="42"))
        payload = json.loads(line)

        assert payload["message"] == "Session saved"
        assert payload["level"] == "INFO"
        assert payload["extra"] == {"component": "connection_cache", "session_key": "42"}

    def test_component_filter(self):
        component_filter = ComponentFilter(["transport"])

        assert not component_filter.filter(make_record(component="transport"))
        assert component_filter.filter(make_record(component="session"))
        assert component_filter.filter(make_record())


class TestLoggingManager:
    """Test configuration of the service logger"""

    def test_get_logger_before_configure(self):
        with pytest.raises(RuntimeError):
            LoggingManager().get_logger()

    def test_configure_replaces_handlers(self):
        manager = LoggingManager()
        config = LoggingConfig(level="debug", format_type="standard", logger_name="modbus_web_test")

        manager.configure(config)
        manager.configure(config)

        logger = manager.get_logger()
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert config.format_type is LogFormat.STANDARD

    def test_child_loggers_are_nested(self):
        manager = LoggingManager()
        manager.configure(LoggingConfig(logger_name="modbus_web_test"))

        assert manager.get_logger("api").name == "modbus_web_test.api"
        assert manager.get_logger("modbus_web_test.api").name == "modbus_web_test.api"

    def test_set_level(self):
        manager = LoggingManager()
        manager.configure(LoggingConfig(logger_name="modbus_web_test"))

        manager.set_level("error")

        assert manager.get_logger().level == logging.ERROR
