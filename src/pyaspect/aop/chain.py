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
"""Advice chain builder — which advice applies to a call site, and in what order."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

import structlog

from pyaspect.aop.pointcut import matches
from pyaspect.aop.registry import AspectRegistry
from pyaspect.aop.signature import Signature
from pyaspect.aop.types import AdviceDeclaration, AdviceKind

logger = structlog.get_logger("pyaspect.aop.chain")


@dataclass(frozen=True)
class AdviceChain:
    """Matching advice for one signature, outermost layer first."""

    signature: Signature
    advices: tuple[AdviceDeclaration, ...] = ()

    def __iter__(self) -> Iterator[AdviceDeclaration]:
        return iter(self.advices)

    def __len__(self) -> int:
        return len(self.advices)

    def __bool__(self) -> bool:
        return bool(self.advices)

    def of_kind(self, kind: AdviceKind) -> list[AdviceDeclaration]:
        return [advice for advice in self.advices if advice.kind is kind]


class AdviceChainBuilder:
    """Resolves and caches :class:`AdviceChain` objects per signature.

    Chains are cached by ``Signature.key``. Two threads may compute the
    same chain concurrently; the first one stored wins and both callers
    receive it. The cache is dropped whenever the registry's version moves,
    so advice registered after a call still reaches signatures already seen.
    """

    def __init__(self, registry: AspectRegistry, cache: bool = True) -> None:
        self._registry = registry
        self._cache_enabled = cache
        self._cache: dict[tuple, AdviceChain] = {}
        self._version = registry.version

    @property
    def cached(self) -> int:
        return len(self._cache)

    def build(self, signature: Signature) -> AdviceChain:
        """Return the chain for *signature*, computing it on first use."""
        version = self._registry.version
        if self._cache_enabled:
            if version != self._version:
                self._cache = {}
                self._version = version
            chain = self._cache.get(signature.key)
            if chain is not None:
                return chain

        resolver = self._registry.pointcuts.lookup
        advices = tuple(
            advice
            for advice in self._registry.advices
            if advice.expression is not None and matches(advice.expression, signature, resolver)
        )
        chain = AdviceChain(signature, advices)
        logger.debug(
            "advice_chain_resolved",
            signature=str(signature),
            advices=[advice.display_name for advice in advices],
        )

        if not self._cache_enabled or self._registry.version != version:
            return chain
        return self._cache.setdefault(signature.key, chain)

    def clear(self) -> None:
        self._cache.clear()
