"""
Structured logging for the Modbus web service.

Every module logs through one named logger tree (`modbus_web.*`) and passes
context as `extra` fields, e.g.

    logger.info("Session saved", extra={"component": "connection_cache", "session_key": key})

JSON output carries those fields under "extra"; text output drops them.
"""

import json
import logging
import logging.handlers
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union


class LogLevel(Enum):
    CRITICAL = logging.CRITICAL
    ERROR = logging.ERROR
    WARNING = logging.WARNING
    INFO = logging.INFO
    DEBUG = logging.DEBUG

    @classmethod
    def from_name(cls, name: Union['LogLevel', str]) -> 'LogLevel':
        """Accept either a member or a case-insensitive level name such as 'debug'"""
        if isinstance(name, cls):
            return name
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown log level: {name}") from None


class LogFormat(Enum):
    JSON_COMPACT = "json_compact"
    JSON_PRETTY = "json_pretty"
    STANDARD = "standard"
    DETAILED = "detailed"


class LogDestination(Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


TEXT_LAYOUTS = {
    LogFormat.STANDARD: "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    LogFormat.DETAILED: "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s",
}
TEXT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord carries; anything else came in through `extra`
_STANDARD_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message", "asctime", "taskName"
}


class JsonFormatter(logging.Formatter):
    """One JSON document per record; `indent` switches from single-line to pretty output"""

    def __init__(self, indent: Optional[int] = None):
        super().__init__()
        self.indent = indent

    def format(self, record):
        document = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)

        context = {
            name: value for name, value in vars(record).items()
            if name not in _STANDARD_RECORD_FIELDS and not name.startswith("_")
        }
        if context:
            document["extra"] = context

        if self.indent is None:
            return json.dumps(document, ensure_ascii=False, separators=(",", ":"), default=str)
        return json.dumps(document, ensure_ascii=False, indent=self.indent, default=str)


def build_formatter(format_type: LogFormat) -> logging.Formatter:
    if format_type in TEXT_LAYOUTS:
        return logging.Formatter(fmt=TEXT_LAYOUTS[format_type], datefmt=TEXT_DATE_FORMAT)
    if format_type == LogFormat.JSON_PRETTY:
        return JsonFormatter(indent=2)
    return JsonFormatter()


class ComponentFilter(logging.Filter):
    """Drop records whose `component` extra is in the excluded list"""

    def __init__(self, exclude_components: List[str]):
        super().__init__()
        self.exclude_components = set(exclude_components)

    def filter(self, record):
        return getattr(record, "component", None) not in self.exclude_components


@dataclass
class LoggingConfig:
    level: Union[LogLevel, str] = LogLevel.INFO
    format_type: Union[LogFormat, str] = LogFormat.JSON_COMPACT
    logger_name: str = "modbus_web"
    enable_console: bool = True
    console_destination: Union[LogDestination, str] = LogDestination.STDOUT
    log_file_path: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    exclude_components: List[str] = field(default_factory=list)
    capture_warnings: bool = True

    def __post_init__(self):
        self.level = LogLevel.from_name(self.level)
        self.format_type = LogFormat(self.format_type)
        self.console_destination = LogDestination(self.console_destination)


class LoggingManager:
    """Owns the service's logger tree; `configure` may be called again to swap handlers"""

    def __init__(self):
        self._config: Optional[LoggingConfig] = None
        self._loggers: Dict[str, logging.Logger] = {}

    @property
    def is_configured(self) -> bool:
        return self._config is not None

    def configure(self, config: LoggingConfig) -> None:
        if config.capture_warnings:
            logging.captureWarnings(True)

        root = logging.getLogger(config.logger_name)
        root.setLevel(config.level.value)
        root.propagate = False

        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

        for handler in self._build_handlers(config):
            root.addHandler(handler)

        self._config = config
        self._loggers[config.logger_name] = root

    def get_logger(self, name: Optional[str] = None) -> logging.Logger:
        """Loggers are nested under the configured root: get_logger("api") -> modbus_web.api"""
        if self._config is None:
            raise RuntimeError("Logging not configured. Call configure() first.")

        root_name = self._config.logger_name
        if not name or name == root_name:
            return self._loggers[root_name]

        qualified = name if name.startswith(root_name + ".") else f"{root_name}.{name}"
        return self._loggers.setdefault(qualified, logging.getLogger(qualified))

    def set_level(self, level: Union[LogLevel, str], component: Optional[str] = None) -> None:
        log_level = LogLevel.from_name(level)
        target = self.get_logger(component)
        target.setLevel(log_level.value)
        if component is None:
            for handler in target.handlers:
                handler.setLevel(log_level.value)

    def _build_handlers(self, config: LoggingConfig) -> List[logging.Handler]:
        handlers: List[logging.Handler] = []

        if config.enable_console:
            stream = sys.stdout if config.console_destination == LogDestination.STDOUT else sys.stderr
            handlers.append(logging.StreamHandler(stream))

        if config.log_file_path:
            Path(config.log_file_path).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.handlers.RotatingFileHandler(
                filename=config.log_file_path,
                maxBytes=config.max_file_size,
                backupCount=config.backup_count
            ))

        for handler in handlers:
            handler.setLevel(config.level.value)
            handler.setFormatter(build_formatter(config.format_type))
            if config.exclude_components:
                handler.addFilter(ComponentFilter(config.exclude_components))
        return handlers


logging_manager = LoggingManager()


def configure_logging(config: LoggingConfig) -> None:
    logging_manager.configure(config)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging_manager.get_logger(name)


def set_log_level(level: Union[LogLevel, str], component: Optional[str] = None) -> None:
    logging_manager.set_level(level, component)
