"""Enums for the Tixer application."""

from enum import Enum


class Environment(str, Enum):
    """Deployment environments."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogComponent(str, Enum):
    """Logging components with their own log files."""

    API = "api"
    STORE = "store"
    DATABASE = "database"
    MAIN = "main"
    ERROR = "error"
