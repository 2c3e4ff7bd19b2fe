"""
Logging entry point for the Modbus web service.

Modules do `from modbus_web.app.utilities.telemetry import logger`. The first
import configures console logging from settings unless the application has
configured logging already.
"""

from modbus_web.app.config import settings
from modbus_web.app.utilities.logging_config import (
    LoggingConfig,
    LogLevel,
    LogFormat,
    LogDestination,
    configure_logging,
    get_logger,
    set_log_level,
    logging_manager
)


def logging_config_from_settings() -> LoggingConfig:
    return LoggingConfig(
        level=settings.log_level,
        format_type=settings.log_format,
        console_destination=LogDestination.STDOUT,
        log_file_path=settings.log_file_path or None
    )


def initialize_logging(config=None):
    """(Re)configure the service logger tree and return its root logger"""
    configure_logging(config or logging_config_from_settings())
    return get_logger()


logger = get_logger() if logging_manager.is_configured else initialize_logging()


__all__ = [
    'logger',
    'get_logger',
    'initialize_logging',
    'logging_config_from_settings',
    'LoggingConfig',
    'LogLevel',
    'LogFormat',
    'LogDestination',
    'configure_logging',
    'set_log_level',
    'logging_manager'
]
