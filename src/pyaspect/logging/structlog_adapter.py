# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""StructlogAdapter — default LoggingPort implementation using structlog."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Any

import structlog

from pyaspect.core.config import Config, config_properties

_STREAMS = {"stdout": lambda: sys.stdout, "stderr": lambda: sys.stderr}


@config_properties(prefix="pyaspect.logging")
@dataclass
class LoggingProperties:
    """``pyaspect.logging`` section.

    ``level`` is either a single level name for the root logger or a
    mapping of ``root`` plus per-logger overrides such as
    ``pyaspect.aop.engine: DEBUG``.
    """

    format: str = "console"
    stream: str = "stderr"
    level: Any = field(default_factory=dict)

    def levels(self) -> tuple[str, dict[str, str]]:
        if isinstance(self.level, str):
            return self.level.upper(), {}
        section = dict(self.level or {})
        root = str(section.pop("root", "INFO")).upper()
        return root, {name: str(value).upper() for name, value in section.items()}


class StructlogAdapter:
    """Logging adapter backed by structlog.

    Interception events (``advice_failed``, ``advice_chain_resolved``, ...)
    are emitted as key-value events; ``console`` renders them for humans and
    ``json`` renders one object per line.
    """

    def __init__(self) -> None:
        self._root_level: str = "INFO"
        self._format: str = "console"
        self._stream: str = "stderr"
        self._module_levels: dict[str, str] = {}

    def configure(self, config: Config) -> None:
        """Configure structlog from the ``pyaspect.logging`` section."""
        properties = config.bind(LoggingProperties)
        self._root_level, self._module_levels = properties.levels()
        self._format = properties.format.lower()
        self._stream = properties.stream.lower()
        if self._stream not in _STREAMS:
            raise ValueError(f"Unknown log stream '{properties.stream}': expected 'stdout' or 'stderr'")

        self._setup_structlog()
        self._apply_levels()

    def get_logger(self, name: str) -> Any:
        return structlog.get_logger(name)

    def set_level(self, name: str, level: str) -> None:
        """Set the log level for a specific stdlib logger."""
        logging.getLogger(name).setLevel(getattr(logging, level.upper(), logging.INFO))

    def _setup_structlog(self) -> None:
        processors: list[structlog.types.Processor] = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
        ]
        if self._format == "json":
            processors += [
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.processors.JSONRenderer(),
            ]
        else:
            processors.append(structlog.dev.ConsoleRenderer())

        structlog.configure(
            processors=processors,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        logging.basicConfig(
            format="%(message)s",
            stream=_STREAMS[self._stream](),
            level=getattr(logging, self._root_level, logging.INFO),
            force=True,
        )

    def _apply_levels(self) -> None:
        for module, level in self._module_levels.items():
            self.set_level(module, level)
