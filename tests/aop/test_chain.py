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
"""Tests for AdviceChainBuilder — matching, ordering and caching."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from pyaspect.aop.chain import AdviceChain, AdviceChainBuilder
from pyaspect.aop.registry import AspectRegistry
from pyaspect.aop.signature import Signature
from pyaspect.aop.types import AdviceDeclaration, AdviceKind

ORDER_ITEM = Signature("hello.aop.order.OrderService", "order_item", ("str",), "None")
SAVE = Signature("hello.aop.order.OrderRepository", "save", ("str",), "str")
MEMBER = Signature("hello.aop.member.MemberService", "hello", ("str",), "str")
HELLO = Signature("hello.aop.member.MemberServiceImpl", "hello", ("str",), "str")


def _noop(*args):
    return None


def _registry() -> AspectRegistry:
    registry = AspectRegistry()
    registry.register_pointcut("allOrder", "execution(* hello.aop.order..*(..))")
    registry.register_pointcut("allService", "execution(* *..*Service.*(..))")
    registry.register_advice(AdviceDeclaration("allOrder()", AdviceKind.AROUND, _noop, priority=2, name="log"))
    registry.register_advice(
        AdviceDeclaration("allOrder() && allService()", AdviceKind.AROUND, _noop, priority=1, name="tx")
    )
    registry.register_advice(AdviceDeclaration("allService()", AdviceKind.BEFORE, _noop, priority=1, name="audit"))
    return registry


class TestChainResolution:
    def test_chain_contains_matching_advice_in_priority_order(self) -> None:
        chain = AdviceChainBuilder(_registry()).build(ORDER_ITEM)
        assert [a.display_name for a in chain] == ["tx", "audit", "log"]

    def test_partial_match(self) -> None:
        chain = AdviceChainBuilder(_registry()).build(SAVE)
        assert [a.display_name for a in chain] == ["log"]

    def test_service_outside_order_package(self) -> None:
        chain = AdviceChainBuilder(_registry()).build(MEMBER)
        assert [a.display_name for a in chain] == ["audit"]

    def test_no_match(self) -> None:
        assert not AdviceChainBuilder(_registry()).build(HELLO)

    def test_empty_chain_is_falsy(self) -> None:
        registry = AspectRegistry()
        chain = AdviceChainBuilder(registry).build(HELLO)
        assert not chain
        assert len(chain) == 0
        assert chain.signature is HELLO

    def test_of_kind(self) -> None:
        chain = AdviceChainBuilder(_registry()).build(ORDER_ITEM)
        assert [a.display_name for a in chain.of_kind(AdviceKind.AROUND)] == ["tx", "log"]
        assert chain.of_kind(AdviceKind.AFTER) == []


class TestChainCache:
    def test_cached_chain_is_reused(self) -> None:
        builder = AdviceChainBuilder(_registry())
        first = builder.build(ORDER_ITEM)
        assert builder.build(ORDER_ITEM) is first
        assert builder.cached == 1

    def test_cache_is_keyed_by_call_site(self) -> None:
        builder = AdviceChainBuilder(_registry())
        builder.build(ORDER_ITEM)
        builder.build(SAVE)
        same_site = Signature("hello.aop.order.OrderService", "order_item", ("str",), "None")
        assert builder.build(same_site) is builder.build(ORDER_ITEM)
        assert builder.cached == 2

    def test_cache_can_be_disabled(self) -> None:
        builder = AdviceChainBuilder(_registry(), cache=False)
        first = builder.build(ORDER_ITEM)
        second = builder.build(ORDER_ITEM)
        assert first is not second
        assert first == second
        assert builder.cached == 0

    def test_clear(self) -> None:
        builder = AdviceChainBuilder(_registry())
        first = builder.build(ORDER_ITEM)
        builder.clear()
        assert builder.cached == 0
        assert builder.build(ORDER_ITEM) is not first

    def test_concurrent_builds_agree_on_one_chain(self) -> None:
        builder = AdviceChainBuilder(_registry())
        barrier = threading.Barrier(8)

        def build() -> AdviceChain:
            barrier.wait()
            return builder.build(ORDER_ITEM)

        with ThreadPoolExecutor(max_workers=8) as pool:
            chains = list(pool.map(lambda _: build(), range(8)))

        assert all(chain is chains[0] for chain in chains)
        assert builder.build(ORDER_ITEM) is chains[0]

    def test_registration_invalidates_cached_chains(self) -> None:
        registry = _registry()
        builder = AdviceChainBuilder(registry)
        assert [a.display_name for a in builder.build(SAVE)] == ["log"]

        registry.register_pointcut("allRepository", "execution(* *..*Repository.*(..))")
        registry.register_advice(
            AdviceDeclaration("allRepository()", AdviceKind.AFTER, _noop, priority=3, name="audit-save")
        )

        assert [a.display_name for a in builder.build(SAVE)] == ["log", "audit-save"]
        assert builder.cached == 1
