from .context import Context
from .enums import Environment, LogComponent

__all__ = ["Context", "Environment", "LogComponent"]
