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
"""Explicit aspect manifest bound from YAML/TOML configuration.

YAML structure::

    pyaspect:
      aop:
        cache_chains: true
        freeze_on_first_call: true
        pointcuts:
          - name: allOrder
            expression: "execution(* hello.aop.order..*(..))"
          - name: allService
            expression: "execution(* *..*Service.*(..))"
        advices:
          - pointcut: "allOrder() && allService()"
            kind: around
            handler: "myapp.aspects:transaction"
            priority: 1
"""

from __future__ import annotations

import importlib
from collections.abc import Callable
from typing import Any

import structlog
from pydantic import BaseModel, Field

from pyaspect.aop.registry import AspectRegistry
from pyaspect.aop.types import AdviceDeclaration, AdviceKind
from pyaspect.core.config import Config, config_properties

logger = structlog.get_logger("pyaspect.aop.manifest")


class PointcutEntry(BaseModel):
    """``pyaspect.aop.pointcuts[*]``."""

    name: str
    expression: str


class AdviceEntry(BaseModel):
    """``pyaspect.aop.advices[*]``."""

    pointcut: str
    kind: AdviceKind
    handler: str
    priority: int = 0
    name: str | None = None


@config_properties(prefix="pyaspect.aop")
class AopProperties(BaseModel):
    """Root AOP configuration (``pyaspect.aop.*``)."""

    cache_chains: bool = True
    freeze_on_first_call: bool = True
    pointcuts: list[PointcutEntry] = Field(default_factory=list)
    advices: list[AdviceEntry] = Field(default_factory=list)


def resolve_handler(path: str) -> Callable[..., Any]:
    """Import the callable named by ``"package.module:attr.path"``.

    Raises:
        ValueError: *path* is not of the ``module:attr`` form, or the target
            is not callable.
        ImportError: The module cannot be imported.
        AttributeError: The attribute path does not exist.
    """
    module_name, sep, attr_path = path.partition(":")
    if not sep or not module_name or not attr_path:
        raise ValueError(f"Invalid handler reference '{path}': expected 'module:attribute'")

    target: Any = importlib.import_module(module_name)
    for part in attr_path.split("."):
        target = getattr(target, part)

    if not callable(target):
        raise ValueError(f"Handler reference '{path}' does not name a callable")
    return target


def load_manifest(config: Config, registry: AspectRegistry | None = None) -> AspectRegistry:
    """Register the pointcuts and advice listed under ``pyaspect.aop``.

    All pointcuts are registered before any advice, so advice may reference
    any pointcut in the manifest regardless of order.
    """
    properties = config.bind(AopProperties)
    registry = registry if registry is not None else AspectRegistry()

    for entry in properties.pointcuts:
        registry.register_pointcut(entry.name, entry.expression)

    for advice in properties.advices:
        registry.register_advice(
            AdviceDeclaration(
                pointcut=advice.pointcut,
                kind=advice.kind,
                handler=resolve_handler(advice.handler),
                priority=advice.priority,
                name=advice.name or advice.handler,
            )
        )

    logger.debug(
        "aop_manifest_loaded",
        pointcuts=len(properties.pointcuts),
        advices=len(properties.advices),
    )
    return registry
