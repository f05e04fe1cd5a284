"""pyaspect logging — structlog-backed logging port and adapter."""

from pyaspect.logging.port import LoggingPort
from pyaspect.logging.structlog_adapter import LoggingProperties, StructlogAdapter

__all__ = ["LoggingPort", "LoggingProperties", "StructlogAdapter"]
