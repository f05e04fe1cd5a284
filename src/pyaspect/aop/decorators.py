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
"""AOP decorators — @aspect, @pointcut, advice annotations and marker tags."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from pyaspect.aop.types import AdviceKind

T = TypeVar("T", bound=type)
F = TypeVar("F", bound=Callable[..., Any])


# ---------------------------------------------------------------------------
# @aspect: marks a class as an AOP aspect
# ---------------------------------------------------------------------------


def aspect(cls: T) -> T:
    """Mark a class as an aspect.

    Sets ``__pyaspect_aspect__ = True`` on the class. Priority is set
    separately with :func:`pyaspect.aop.ordering.order`.
    """
    cls.__pyaspect_aspect__ = True  # type: ignore[attr-defined]
    return cls


def is_aspect(obj: Any) -> bool:
    cls = obj if isinstance(obj, type) else type(obj)
    return bool(getattr(cls, "__pyaspect_aspect__", False))


# ---------------------------------------------------------------------------
# @pointcut: a named, reusable pointcut declared as a method
# ---------------------------------------------------------------------------


def pointcut(expression: str) -> Callable[[F], F]:
    """Declare a named pointcut; the method body is never called.

    The pointcut is registered as ``ClassName.method_name`` and can be
    referenced as ``ClassName.method_name()`` anywhere, or as
    ``method_name()`` from advice on the same class.
    """

    def decorator(fn: F) -> F:
        fn.__pyaspect_pointcut__ = expression  # type: ignore[attr-defined]
        return fn

    return decorator


# ---------------------------------------------------------------------------
# Advice decorators: @before, @after_returning, @after_throwing, @after, @around
# ---------------------------------------------------------------------------


def _make_advice(kind: AdviceKind) -> Callable[[str], Callable[[F], F]]:
    """Create an advice decorator factory for the given *kind*.

    The returned factory takes a pointcut string and returns a decorator
    that annotates the wrapped method with:

    * ``__pyaspect_advice_kind__``     — e.g. ``"before"``, ``"around"``
    * ``__pyaspect_advice_pointcut__`` — the pointcut expression string
    """

    def factory(pointcut_expression: str) -> Callable[[F], F]:
        def decorator(fn: F) -> F:
            fn.__pyaspect_advice_kind__ = kind.value  # type: ignore[attr-defined]
            fn.__pyaspect_advice_pointcut__ = pointcut_expression  # type: ignore[attr-defined]
            return fn

        return decorator

    return factory


before = _make_advice(AdviceKind.BEFORE)
after_returning = _make_advice(AdviceKind.AFTER_RETURNING)
after_throwing = _make_advice(AdviceKind.AFTER_THROWING)
after = _make_advice(AdviceKind.AFTER)
around = _make_advice(AdviceKind.AROUND)


# ---------------------------------------------------------------------------
# @tag: markers selected by @annotation(...) and @within(...)
# ---------------------------------------------------------------------------


def tag(*names: str) -> Callable[[F], F]:
    """Attach marker names to a method or class.

    Tagged methods are selected by ``@annotation(name)``; methods of tagged
    classes by ``@within(name)``.
    """

    def decorator(obj: F) -> F:
        existing = tuple(obj.__dict__.get("__pyaspect_tags__", ()))
        obj.__pyaspect_tags__ = existing + tuple(n for n in names if n not in existing)  # type: ignore[attr-defined]
        return obj

    return decorator
