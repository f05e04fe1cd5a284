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
"""Interception engine — runs advice chains around intercepted calls.

Every matching advice forms one layer around the call, in chain order
(priority, then registration order). Layers nest like matched parentheses:
the first advice entered is the last one exited.

Per layer:

* **before** — runs the handler, then proceeds. A handler failure becomes
  an :class:`AdviceExecutionError` and skips the rest of the chain and the
  method itself; outer layers still see it on their exit side.
* **around** — the handler gets a :class:`ProceedingJoinPoint` and decides
  whether and how often to ``proceed()``.
* **after_returning** — proceeds, then hands the result to the handler.
* **after_throwing** — proceeds; on failure hands the error to the handler
  and re-raises the original error.
* **after** — proceeds, then always runs the handler.

Failures of ``after`` and ``after_throwing`` handlers never replace the
call's outcome. They are logged and passed to error listeners instead.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import structlog

from pyaspect.aop.chain import AdviceChain, AdviceChainBuilder
from pyaspect.aop.registry import AspectRegistry
from pyaspect.aop.signature import Signature
from pyaspect.aop.types import AdviceDeclaration, AdviceKind, JoinPoint, ProceedingJoinPoint
from pyaspect.core.config import Config
from pyaspect.kernel.exceptions import AdviceExecutionError

logger = structlog.get_logger("pyaspect.aop.engine")

ErrorListener = Callable[[AdviceExecutionError], None]


class InterceptionEngine:
    """Executes advice chains for intercepted calls.

    Usage::

        engine = InterceptionEngine(registry)
        result = engine.intercept(signature, (item_id,), lambda: service.order_item(item_id))

    Args:
        registry: Source of pointcuts and advice. A fresh one is created
            when omitted.
        cache_chains: Cache resolved chains per signature.
        freeze_on_first_call: Validate and freeze the registry the first
            time a chain is resolved.
    """

    def __init__(
        self,
        registry: AspectRegistry | None = None,
        *,
        cache_chains: bool = True,
        freeze_on_first_call: bool = True,
    ) -> None:
        self.registry = registry if registry is not None else AspectRegistry()
        self._builder = AdviceChainBuilder(self.registry, cache=cache_chains)
        self._freeze_on_first_call = freeze_on_first_call
        self._error_listeners: list[ErrorListener] = []

    @classmethod
    def from_config(cls, config: Config, registry: AspectRegistry | None = None) -> InterceptionEngine:
        """Build an engine from the ``pyaspect.aop`` configuration section."""
        from pyaspect.aop.manifest import AopProperties, load_manifest

        properties = config.bind(AopProperties)
        return cls(
            load_manifest(config, registry),
            cache_chains=properties.cache_chains,
            freeze_on_first_call=properties.freeze_on_first_call,
        )

    def add_error_listener(self, listener: ErrorListener) -> None:
        """Receive advice failures that are reported instead of raised."""
        self._error_listeners.append(listener)

    def chain_for(self, signature: Signature) -> AdviceChain:
        if self._freeze_on_first_call and not self.registry.frozen:
            self.registry.freeze()
        return self._builder.build(signature)

    # ------------------------------------------------------------------
    # Synchronous interception
    # ------------------------------------------------------------------

    def intercept(
        self,
        signature: Signature,
        args: Sequence[Any],
        original: Callable[[], Any],
        *,
        target: Any = None,
        kwargs: dict[str, Any] | None = None,
    ) -> Any:
        """Run *original* (a zero-argument thunk) inside the matching advice chain."""
        chain = self.chain_for(signature)
        if not chain:
            return original()
        jp = JoinPoint(signature=signature, target=target, args=tuple(args), kwargs=dict(kwargs or {}))
        return self._call_layer(chain.advices, 0, jp, original)

    def _call_layer(
        self,
        advices: tuple[AdviceDeclaration, ...],
        index: int,
        jp: JoinPoint,
        original: Callable[[], Any],
    ) -> Any:
        if index == len(advices):
            return original()

        advice = advices[index]

        def proceed() -> Any:
            return self._call_layer(advices, index + 1, jp, original)

        kind = advice.kind
        if kind is AdviceKind.BEFORE:
            self._invoke(advice, jp)
            return proceed()

        if kind is AdviceKind.AROUND:
            return self._around(advice, jp, proceed)

        if kind is AdviceKind.AFTER_RETURNING:
            result = proceed()
            self._invoke(advice, jp, result)
            return result

        if kind is AdviceKind.AFTER_THROWING:
            try:
                return proceed()
            except Exception as exc:
                self._invoke_and_report(advice, jp, exc)
                raise

        try:
            return proceed()
        finally:
            self._invoke_and_report(advice, jp)

    def _invoke(self, advice: AdviceDeclaration, jp: JoinPoint, *extra: Any) -> Any:
        try:
            result = advice.handler(jp, *extra)
        except Exception as exc:
            raise self._advice_error(advice, jp, exc) from exc
        if inspect.isawaitable(result):
            _discard(result)
            raise AdviceExecutionError(
                f"{advice.kind} advice '{advice.display_name}' returned an awaitable "
                f"on synchronous join point {jp.signature}",
                advice,
                jp,
            )
        return result

    def _invoke_and_report(self, advice: AdviceDeclaration, jp: JoinPoint, *extra: Any) -> None:
        try:
            self._invoke(advice, jp, *extra)
        except AdviceExecutionError as error:
            self._report(error)

    def _around(self, advice: AdviceDeclaration, jp: JoinPoint, proceed: Callable[[], Any]) -> Any:
        escaped: list[BaseException] = []

        def tracked_proceed() -> Any:
            try:
                return proceed()
            except Exception as exc:
                escaped.append(exc)
                raise

        pjp = ProceedingJoinPoint.of(jp, tracked_proceed)
        try:
            result = advice.handler(pjp)
        except Exception as exc:
            if any(exc is seen for seen in escaped):
                raise
            raise self._advice_error(advice, jp, exc) from exc
        if inspect.isawaitable(result):
            _discard(result)
            raise AdviceExecutionError(
                f"around advice '{advice.display_name}' returned an awaitable "
                f"on synchronous join point {jp.signature}",
                advice,
                jp,
            )
        return result

    # ------------------------------------------------------------------
    # Asynchronous interception
    # ------------------------------------------------------------------

    async def intercept_async(
        self,
        signature: Signature,
        args: Sequence[Any],
        original: Callable[[], Awaitable[Any]],
        *,
        target: Any = None,
        kwargs: dict[str, Any] | None = None,
    ) -> Any:
        """Async counterpart of :meth:`intercept`.

        *original* returns an awaitable. Handlers may be sync or async;
        around handlers must await ``proceed()``.
        """
        chain = self.chain_for(signature)
        if not chain:
            return await _resolve(original())
        jp = JoinPoint(signature=signature, target=target, args=tuple(args), kwargs=dict(kwargs or {}))
        return await self._call_layer_async(chain.advices, 0, jp, original)

    async def _call_layer_async(
        self,
        advices: tuple[AdviceDeclaration, ...],
        index: int,
        jp: JoinPoint,
        original: Callable[[], Awaitable[Any]],
    ) -> Any:
        if index == len(advices):
            return await _resolve(original())

        advice = advices[index]

        def proceed() -> Awaitable[Any]:
            return self._call_layer_async(advices, index + 1, jp, original)

        kind = advice.kind
        if kind is AdviceKind.BEFORE:
            await self._invoke_async(advice, jp)
            return await proceed()

        if kind is AdviceKind.AROUND:
            return await self._around_async(advice, jp, proceed)

        if kind is AdviceKind.AFTER_RETURNING:
            result = await proceed()
            await self._invoke_async(advice, jp, result)
            return result

        if kind is AdviceKind.AFTER_THROWING:
            try:
                return await proceed()
            except Exception as exc:
                await self._invoke_and_report_async(advice, jp, exc)
                raise

        try:
            return await proceed()
        finally:
            await self._invoke_and_report_async(advice, jp)

    async def _invoke_async(self, advice: AdviceDeclaration, jp: JoinPoint, *extra: Any) -> Any:
        try:
            return await _resolve(advice.handler(jp, *extra))
        except Exception as exc:
            raise self._advice_error(advice, jp, exc) from exc

    async def _invoke_and_report_async(self, advice: AdviceDeclaration, jp: JoinPoint, *extra: Any) -> None:
        try:
            await self._invoke_async(advice, jp, *extra)
        except AdviceExecutionError as error:
            self._report(error)

    async def _around_async(
        self,
        advice: AdviceDeclaration,
        jp: JoinPoint,
        proceed: Callable[[], Awaitable[Any]],
    ) -> Any:
        escaped: list[BaseException] = []

        async def tracked_proceed() -> Any:
            try:
                return await proceed()
            except Exception as exc:
                escaped.append(exc)
                raise

        pjp = ProceedingJoinPoint.of(jp, tracked_proceed)
        try:
            return await _resolve(advice.handler(pjp))
        except Exception as exc:
            if any(exc is seen for seen in escaped):
                raise
            raise self._advice_error(advice, jp, exc) from exc

    # ------------------------------------------------------------------
    # Failure reporting
    # ------------------------------------------------------------------

    @staticmethod
    def _advice_error(advice: AdviceDeclaration, jp: JoinPoint, exc: Exception) -> AdviceExecutionError:
        return AdviceExecutionError(
            f"{advice.kind} advice '{advice.display_name}' failed on {jp.signature}: {exc}",
            advice,
            jp,
        )

    def _report(self, error: AdviceExecutionError) -> None:
        logger.warning(
            "advice_failed",
            advice=error.context.get("advice"),
            kind=error.context.get("kind"),
            signature=error.context.get("signature"),
            error=repr(error.__cause__),
        )
        for listener in self._error_listeners:
            try:
                listener(error)
            except Exception:
                logger.exception("advice_error_listener_failed", listener=repr(listener))


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _discard(awaitable: Any) -> None:
    close = getattr(awaitable, "close", None)
    if callable(close):
        close()
