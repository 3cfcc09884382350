"""
Configuration management for the Tixer tickets service.

Configuration is assembled from dataclass defaults, an optional JSON file
(``TIXER_CONFIG_FILE``) and ``TIXER_*`` environment variable overrides.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from . import __version__
from .core.enums import Environment


@dataclass
class DatabaseConfig:
    """Database configuration."""

    url: str = "sqlite:///tixer_tickets.db"
    echo: bool = False
    log_queries: bool = False  # Enable query timing logs


@dataclass
class StoreConfig:
    """Ticket store configuration."""

    collection: str = "tickets"
    counter_id: str = "--counter--"  # Reserved ID of the counter aggregate

    # Retry policy for write conflicts inside a unit of work
    max_attempts: int = 5
    backoff_base: float = 0.02
    backoff_max: float = 1.0
    backoff_jitter: float = 0.2


@dataclass
class ServerConfig:
    """Server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False
    request_timeout: float = 10.0  # Deadline given to every store call
    shutdown_timeout: float = 20.0


@dataclass
class AppConfig:
    """Main application configuration."""

    app_name: str = "Tixer Tickets"
    version: str = __version__
    environment: str = Environment.DEVELOPMENT.value

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = "logs"

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT.value


@dataclass
class TixerConfig:
    """Complete configuration for the Tixer tickets service."""

    app: AppConfig = field(default_factory=AppConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    store: StoreConfig = field(default_factory=StoreConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "app": asdict(self.app),
            "server": asdict(self.server),
            "database": asdict(self.database),
            "store": asdict(self.store),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TixerConfig":
        """Create from dictionary."""
        return cls(
            app=AppConfig(**data.get("app", {})),
            server=ServerConfig(**data.get("server", {})),
            database=DatabaseConfig(**data.get("database", {})),
            store=StoreConfig(**data.get("store", {})),
        )


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# Environment variable -> (section, field, converter)
ENV_OVERRIDES: Dict[str, tuple] = {
    "TIXER_ENV": ("app", "environment", str),
    "TIXER_LOG_LEVEL": ("app", "log_level", str),
    "TIXER_LOG_TO_FILE": ("app", "log_to_file", _parse_bool),
    "TIXER_LOG_DIR": ("app", "log_dir", str),
    "TIXER_HOST": ("server", "host", str),
    "TIXER_PORT": ("server", "port", int),
    "TIXER_DEBUG": ("server", "debug", _parse_bool),
    "TIXER_REQUEST_TIMEOUT": ("server", "request_timeout", float),
    "TIXER_SHUTDOWN_TIMEOUT": ("server", "shutdown_timeout", float),
    "TIXER_DATABASE_URL": ("database", "url", str),
    "TIXER_DATABASE_ECHO": ("database", "echo", _parse_bool),
    "TIXER_LOG_QUERIES": ("database", "log_queries", _parse_bool),
    "TIXER_COLLECTION": ("store", "collection", str),
    "TIXER_COUNTER_ID": ("store", "counter_id", str),
    "TIXER_STORE_MAX_ATTEMPTS": ("store", "max_attempts", int),
}


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self):
        self.config_file: Optional[Path] = None
        self.config: Optional[TixerConfig] = None

    def get_config_file_path(self) -> Optional[Path]:
        """Get the path of the JSON config file, if one is configured."""
        config_file = os.getenv("TIXER_CONFIG_FILE")
        return Path(config_file) if config_file else None

    def apply_env_overrides(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Overlay ``TIXER_*`` environment variables on a config dictionary."""
        for env_name, (section, key, convert) in ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if raw is None or raw == "":
                continue
            try:
                value = convert(raw)
            except ValueError:
                logging.warning(f"Ignoring invalid value for {env_name}: {raw!r}")
                continue
            data.setdefault(section, {})[key] = value
        return data

    def load_config(self, reload: bool = False) -> TixerConfig:
        """Load configuration from file and environment, or return the cached one."""
        if self.config is not None and not reload:
            return self.config

        data: Dict[str, Any] = {}
        self.config_file = self.get_config_file_path()

        if self.config_file is not None:
            if self.config_file.exists():
                with open(self.config_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                logging.info(f"Loaded configuration from {self.config_file}")
            else:
                logging.warning(f"Config file {self.config_file} not found, using defaults")

        self.config = TixerConfig.from_dict(self.apply_env_overrides(data))
        return self.config

    def update_config(self, updates: Dict[str, Any]) -> TixerConfig:
        """Apply dotted-key updates such as ``{"server.port": 9000}``."""
        config_dict = self.load_config().to_dict()

        for key, value in updates.items():
            if "." in key:
                section, name = key.split(".", 1)
                if section in config_dict:
                    config_dict[section][name] = value
            elif key in config_dict and isinstance(value, dict):
                config_dict[key].update(value)

        self.config = TixerConfig.from_dict(config_dict)
        return self.config

    def reset(self) -> None:
        """Forget the cached configuration."""
        self.config = None
        self.config_file = None

    def validate_config(self) -> List[str]:
        """Validate configuration and return list of warnings/errors."""
        config = self.load_config()
        issues = []

        environments = {env.value for env in Environment}
        if config.app.environment not in environments:
            issues.append(
                f"Unknown environment {config.app.environment!r} "
                f"(expected one of {sorted(environments)})"
            )

        if not config.store.collection:
            issues.append("Store collection name must not be empty")

        if not config.store.counter_id:
            issues.append("Counter ID must not be empty")
        elif _looks_like_uuid(config.store.counter_id):
            issues.append(
                f"Counter ID {config.store.counter_id!r} could collide with a ticket ID"
            )

        if config.store.max_attempts < 1:
            issues.append("Store max_attempts must be at least 1")

        if config.server.request_timeout <= 0:
            issues.append("Request timeout must be positive")

        db_url = config.database.url
        if db_url.startswith("sqlite:///") and db_url != "sqlite:///:memory:":
            db_dir = Path(db_url.replace("sqlite:///", "")).parent
            if db_dir.exists() and not os.access(db_dir, os.W_OK):
                issues.append(f"Database directory is not writable: {db_dir}")

        return issues


def _looks_like_uuid(value: str) -> bool:
    try:
        UUID(value)
    except ValueError:
        return False
    return True


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> TixerConfig:
    """Get the current configuration."""
    return config_manager.load_config()


def reset_config() -> None:
    """Drop the cached configuration so the next access reloads it."""
    config_manager.reset()


def validate_startup_config(report: Callable[[str], None] = logging.warning) -> List[str]:
    """Validate configuration at startup and report every issue found."""
    issues = config_manager.validate_config()
    for issue in issues:
        report(issue)
    return issues
