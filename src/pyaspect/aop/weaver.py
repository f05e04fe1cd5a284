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
"""AOP weaver — wraps object methods so calls go through the interception engine."""

from __future__ import annotations

import functools
import inspect
from typing import Any

import structlog

from pyaspect.aop.engine import InterceptionEngine
from pyaspect.aop.signature import Signature, signature_of

logger = structlog.get_logger("pyaspect.aop.weaver")


def weave_bean(bean: Any, engine: InterceptionEngine, qualified_prefix: str | None = None) -> list[str]:
    """Weave advice into the public methods of *bean*.

    For each public method (name not starting with ``_``) the signature is
    derived from the method's annotations. If its advice chain is non-empty,
    the method is replaced on the instance with a wrapper that routes the
    call through :meth:`InterceptionEngine.intercept` (or
    :meth:`~InterceptionEngine.intercept_async` for coroutine functions).

    *qualified_prefix* publishes the bean's class under a logical type name
    such as ``"hello.aop.order.OrderService"``.

    Methods woven by an earlier call are left as they are.

    Returns the names of the methods woven by this call.
    """
    cls = type(bean)
    woven: list[str] = []
    for attr_name in dir(bean):
        if attr_name.startswith("_"):
            continue

        raw = inspect.getattr_static(cls, attr_name, None)
        if raw is None or not (inspect.isfunction(raw) or isinstance(raw, (staticmethod, classmethod))):
            continue

        original = getattr(bean, attr_name)
        if getattr(original, "__pyaspect_woven__", False):
            continue

        signature = signature_of(cls, attr_name, qualified_prefix)
        if not engine.chain_for(signature):
            continue

        if inspect.iscoroutinefunction(original):
            wrapper = _build_async_wrapper(bean, engine, signature, original)
        else:
            wrapper = _build_sync_wrapper(bean, engine, signature, original)

        wrapper.__pyaspect_woven__ = True
        # Replace the method on the instance
        setattr(bean, attr_name, wrapper)
        woven.append(attr_name)

    if woven:
        logger.debug("bean_woven", bean=cls.__qualname__, methods=woven)
    return woven


def _build_async_wrapper(bean: Any, engine: InterceptionEngine, signature: Signature, original: Any) -> Any:
    @functools.wraps(original)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        return await engine.intercept_async(
            signature,
            args,
            lambda: original(*args, **kwargs),
            target=bean,
            kwargs=kwargs,
        )

    return wrapper


def _build_sync_wrapper(bean: Any, engine: InterceptionEngine, signature: Signature, original: Any) -> Any:
    @functools.wraps(original)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return engine.intercept(
            signature,
            args,
            lambda: original(*args, **kwargs),
            target=bean,
            kwargs=kwargs,
        )

    return wrapper
