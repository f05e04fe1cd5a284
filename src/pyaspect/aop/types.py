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
"""AOP core types — advice kinds, advice declarations and join points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pyaspect.aop.pointcut import PointcutExpression
from pyaspect.aop.signature import Signature


class AdviceKind(str, Enum):
    """When an advice runs relative to its join point."""

    BEFORE = "before"
    AFTER_RETURNING = "after_returning"
    AFTER_THROWING = "after_throwing"
    AFTER = "after"
    AROUND = "around"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class AdviceDeclaration:
    """A single piece of advice bound to a pointcut.

    Attributes:
        pointcut: Pointcut text; either an expression or a reference such
            as ``"Pointcuts.all_order()"``.
        kind: When the handler runs.
        handler: The advice callable. Called as ``handler(jp)`` for
            before/after, ``handler(jp, result)`` for after-returning,
            ``handler(jp, error)`` for after-throwing and ``handler(pjp)``
            for around advice.
        priority: Lower values are entered first and exited last.
        name: Display name used in logs and errors.
        scope: Aspect name that qualifies bare references in *pointcut*.
        expression: Compiled pointcut, filled in at registration.
        sequence: Registration order, filled in at registration.
    """

    pointcut: str
    kind: AdviceKind
    handler: Callable[..., Any]
    priority: int = 0
    name: str | None = None
    scope: str | None = None
    expression: PointcutExpression | None = field(default=None, compare=False)
    sequence: int = -1

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return getattr(self.handler, "__qualname__", repr(self.handler))


@dataclass
class JoinPoint:
    """The intercepted call as seen by advice handlers.

    Attributes:
        signature: Signature of the intercepted method.
        target: The object whose method is being intercepted, if any.
        args: Positional arguments passed to the method.
        kwargs: Keyword arguments passed to the method.
    """

    signature: Signature
    target: Any = None
    args: tuple = ()
    kwargs: dict[str, Any] = field(default_factory=dict)

    @property
    def method_name(self) -> str:
        return self.signature.method_name


@dataclass
class ProceedingJoinPoint(JoinPoint):
    """Join point handed to around advice; ``proceed()`` runs the rest of the chain."""

    _proceed: Callable[[], Any] | None = field(default=None, repr=False)

    @classmethod
    def of(cls, jp: JoinPoint, proceed: Callable[[], Any]) -> ProceedingJoinPoint:
        return cls(
            signature=jp.signature,
            target=jp.target,
            args=jp.args,
            kwargs=jp.kwargs,
            _proceed=proceed,
        )

    def proceed(self) -> Any:
        """Invoke the next advice layer, or the method itself when innermost.

        May be called more than once (retries) or not at all (short circuit).
        In asynchronous interception the result must be awaited.
        """
        if self._proceed is None:
            raise RuntimeError("proceed() is not available on this join point")
        return self._proceed()
