"""
Centralized logging configuration for Tixer.
Provides component-specific loggers, optionally with separate log files.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import get_config
from ..core.enums import LogComponent

DETAILED_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - "
    "%(funcName)s() - %(message)s"
)
SIMPLE_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ComponentLogger:
    """Manages component-specific logging."""

    _loggers: Dict[str, logging.Logger] = {}
    _initialized = False
    _log_dir: Optional[Path] = None
    _to_file = False
    _json_format = False
    _level = logging.INFO

    COMPONENTS = {
        LogComponent.API.value: {"level": logging.INFO, "file": "api.log"},
        LogComponent.STORE.value: {"level": logging.INFO, "file": "store.log"},
        LogComponent.DATABASE.value: {"level": logging.INFO, "file": "database.log"},
        LogComponent.MAIN.value: {"level": logging.INFO, "file": "main.log"},
        LogComponent.ERROR.value: {"level": logging.ERROR, "file": "errors.log"},
    }

    @classmethod
    def initialize(
        cls,
        log_dir: Optional[str] = None,
        debug: bool = False,
        to_file: Optional[bool] = None,
        json_format: Optional[bool] = None,
    ) -> None:
        """
        Initialize the logging system with component-specific loggers.

        Args:
            log_dir: Directory for log files. Defaults to config.app.log_dir
            debug: Enable debug logging for all components
            to_file: Write rotating log files. Defaults to config.app.log_to_file
            json_format: Emit JSON lines. Defaults to true outside development
        """
        if cls._initialized:
            return

        config = get_config()
        cls._to_file = config.app.log_to_file if to_file is None else to_file
        configured_level = getattr(logging, config.app.log_level.upper(), logging.INFO)
        cls._level = logging.DEBUG if debug else configured_level

        cls._json_format = (
            not config.app.is_development if json_format is None else json_format
        )

        if cls._json_format:
            detailed_formatter = simple_formatter = JsonFormatter()
        else:
            detailed_formatter = logging.Formatter(DETAILED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
            simple_formatter = logging.Formatter(SIMPLE_FORMAT, datefmt="%H:%M:%S")

        session_dir = datetime.now().strftime("%Y%m%d_%H%M%S")
        if cls._to_file:
            base_dir = Path(log_dir or config.app.log_dir)
            cls._log_dir = base_dir / session_dir
            cls._log_dir.mkdir(parents=True, exist_ok=True)

        unified_handler = cls._unified_handler(detailed_formatter) if cls._to_file else None

        for component_name, component_config in cls.COMPONENTS.items():
            logger = logging.getLogger(f"tixer.{component_name}")
            logger.handlers.clear()
            logger.propagate = False

            level = logging.DEBUG if debug else max(cls._level, component_config["level"])
            logger.setLevel(level)

            if cls._to_file:
                file_handler = cls._file_handler(cls._log_dir / component_config["file"])
                file_handler.setLevel(level)
                file_handler.setFormatter(detailed_formatter)
                logger.addHandler(file_handler)
                logger.addHandler(unified_handler)

            if cls._to_file:
                # Console handler for errors only when writing files
                if component_name in (LogComponent.ERROR.value, LogComponent.MAIN.value):
                    console_handler = logging.StreamHandler(sys.stderr)
                    console_handler.setLevel(logging.ERROR)
                    console_handler.setFormatter(simple_formatter)
                    logger.addHandler(console_handler)
            elif component_name == LogComponent.ERROR.value:
                # Component loggers already print the error to the console
                logger.addHandler(logging.NullHandler())
            else:
                console_handler = logging.StreamHandler(sys.stderr)
                console_handler.setLevel(level)
                console_handler.setFormatter(simple_formatter)
                logger.addHandler(console_handler)

            cls._loggers[component_name] = logger

        # Mark as initialized before logging to avoid recursion
        cls._initialized = True

        main_logger = cls._loggers[LogComponent.MAIN.value]
        main_logger.debug(
            "Logging initialized",
            extra={
                "session": session_dir,
                "log_dir": str(cls._log_dir),
                "debug": debug,
                "json_format": cls._json_format,
            },
        )

    @classmethod
    def _file_handler(cls, path: Path) -> logging.Handler:
        return logging.handlers.RotatingFileHandler(
            path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )

    @classmethod
    def _unified_handler(cls, formatter: logging.Formatter) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            cls._log_dir / "unified.log",
            maxBytes=20 * 1024 * 1024,  # 20MB
            backupCount=3,
            encoding="utf-8",
        )
        handler.setLevel(cls._level)
        handler.setFormatter(formatter)
        return handler

    @classmethod
    def resolve_component(cls, name: str) -> str:
        """Map a component name or a module path (``__name__``) to a component."""
        if not name.startswith("tixer."):
            return name if name in cls.COMPONENTS else LogComponent.MAIN.value

        parts = name.split(".")
        if parts[1] == "api":
            return LogComponent.API.value
        if parts[1] == "store":
            return LogComponent.STORE.value
        if parts[1] == "db":
            return LogComponent.DATABASE.value
        return LogComponent.MAIN.value

    @classmethod
    def get_logger(cls, component: str) -> logging.Logger:
        """
        Get a logger for a specific component.

        Args:
            component: Component name (api, store, database, main, error)
                      or a module path like 'tixer.store.ticket_store'

        Returns:
            Logger instance for the component
        """
        if not cls._initialized:
            cls.initialize()
        return cls._loggers[cls.resolve_component(component)]

    @classmethod
    def log_exception(
        cls, component: str, exc: BaseException, context: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log an exception with context to both component and error logs.

        Args:
            component: Component where the exception occurred
            exc: The exception to log
            context: Additional context information
        """
        component_logger = cls.get_logger(component)
        error_logger = cls._loggers[LogComponent.ERROR.value]

        context_str = ""
        if context:
            context_str = " | Context: " + ", ".join(f"{k}={v}" for k, v in context.items())

        exc_info = (type(exc), exc, exc.__traceback__)
        component_logger.error(
            f"Exception in {component}: {type(exc).__name__}: {exc}{context_str}",
            exc_info=exc_info,
        )
        if component_logger is not error_logger:
            error_logger.error(
                f"[{component}] {type(exc).__name__}: {exc}{context_str}", exc_info=exc_info
            )

    @classmethod
    def get_log_directory(cls) -> Optional[Path]:
        """Get the current log directory path."""
        return cls._log_dir

    @classmethod
    def reset(cls) -> None:
        """Close handlers and forget all loggers so the next call re-initializes."""
        for logger in cls._loggers.values():
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
        cls._loggers = {}
        cls._initialized = False
        cls._log_dir = None


# Convenience functions
def get_logger(component: str) -> logging.Logger:
    """Get a logger for a specific component."""
    return ComponentLogger.get_logger(component)


def initialize_logging(
    log_dir: Optional[str] = None,
    debug: bool = False,
    to_file: Optional[bool] = None,
    json_format: Optional[bool] = None,
) -> None:
    """Initialize the logging system."""
    ComponentLogger.initialize(
        log_dir=log_dir, debug=debug, to_file=to_file, json_format=json_format
    )


def log_exception(
    component: str, exc: BaseException, context: Optional[Dict[str, Any]] = None
) -> None:
    """Log an exception with context."""
    ComponentLogger.log_exception(component, exc, context)


def get_log_directory() -> Optional[Path]:
    """Get the current log directory path."""
    return ComponentLogger.get_log_directory()
