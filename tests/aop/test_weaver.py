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
"""Tests for AOP weaver — method wrapping with advice chain."""

from __future__ import annotations

import pytest

from pyaspect.aop.decorators import after_returning, after_throwing, around, aspect, before
from pyaspect.aop.engine import InterceptionEngine
from pyaspect.aop.registry import AspectRegistry
from pyaspect.aop.weaver import weave_bean


# ---------------------------------------------------------------------------
# Helper beans and aspects
# ---------------------------------------------------------------------------


class MyService:
    """A simple service with async and sync methods."""

    label = "service"

    async def greet(self, name: str) -> str:
        return f"hello {name}"

    async def explode(self) -> str:
        raise ValueError("boom")

    def sync_greet(self, name: str) -> str:
        return f"hi {name}"

    def sync_explode(self) -> str:
        raise RuntimeError("sync boom")

    @staticmethod
    def shout(text: str) -> str:
        return text.upper()

    def _private(self) -> str:
        return "private"


def _make_engine(*aspect_instances: object) -> InterceptionEngine:
    registry = AspectRegistry()
    registry.register(*aspect_instances)
    return InterceptionEngine(registry)


# ---------------------------------------------------------------------------
# Weaving
# ---------------------------------------------------------------------------


class TestWeaving:
    def test_returns_woven_method_names(self) -> None:
        @aspect
        class GreetAspect:
            @before("execution(* service.MyService.*greet(..))")
            def log_before(self, jp):
                pass

        svc = MyService()
        woven = weave_bean(svc, _make_engine(GreetAspect()), "service.MyService")

        assert sorted(woven) == ["greet", "sync_greet"]
        assert "sync_explode" not in vars(svc)

    def test_private_methods_and_attributes_are_skipped(self) -> None:
        @aspect
        class EverythingAspect:
            @before("execution(* *(..))")
            def log_before(self, jp):
                pass

        svc = MyService()
        woven = weave_bean(svc, _make_engine(EverythingAspect()), "service.MyService")

        assert "_private" not in woven
        assert "label" not in woven
        assert svc.label == "service"

    def test_no_matching_advice_leaves_bean_untouched(self) -> None:
        svc = MyService()
        assert weave_bean(svc, InterceptionEngine(), "service.MyService") == []
        assert vars(svc) == {}

    def test_defaults_to_real_class_name(self) -> None:
        calls: list[str] = []

        @aspect
        class ClassNameAspect:
            @before("execution(* *..MyService.sync_greet(..))")
            def log_before(self, jp):
                calls.append(jp.signature.declaring_type)

        svc = MyService()
        weave_bean(svc, _make_engine(ClassNameAspect()))
        svc.sync_greet("bob")

        assert calls == [f"{MyService.__module__}.MyService"]

    def test_wrapper_keeps_method_metadata(self) -> None:
        @aspect
        class GreetAspect:
            @before("execution(* service.MyService.sync_greet(..))")
            def log_before(self, jp):
                pass

        svc = MyService()
        weave_bean(svc, _make_engine(GreetAspect()), "service.MyService")

        assert svc.sync_greet.__name__ == "sync_greet"

    def test_weaving_twice_does_not_double_advice(self) -> None:
        calls: list[str] = []

        @aspect
        class GreetAspect:
            @before("execution(* service.MyService.sync_greet(..))")
            def log_before(self, jp):
                calls.append("before")

        svc = MyService()
        engine = _make_engine(GreetAspect())
        assert weave_bean(svc, engine, "service.MyService") == ["sync_greet"]
        assert weave_bean(svc, engine, "service.MyService") == []

        assert svc.sync_greet("dave") == "hi dave"
        assert calls == ["before"]


# ---------------------------------------------------------------------------
# Advice on woven methods
# ---------------------------------------------------------------------------


class TestBeforeAdvice:
    @pytest.mark.asyncio
    async def test_before_runs_before_async_method(self) -> None:
        calls: list[str] = []

        @aspect
        class LogAspect:
            @before("execution(* service.MyService.*(..))")
            def log_before(self, jp):
                calls.append(f"before:{jp.method_name}")

        svc = MyService()
        weave_bean(svc, _make_engine(LogAspect()), "service.MyService")

        result = await svc.greet("alice")
        assert result == "hello alice"
        assert calls == ["before:greet"]

    def test_before_runs_on_sync_method(self) -> None:
        calls: list[str] = []

        @aspect
        class SyncLogAspect:
            @before("execution(* service.MyService.*(..))")
            def log_before(self, jp):
                calls.append(f"before:{jp.method_name}:{jp.args}")

        svc = MyService()
        weave_bean(svc, _make_engine(SyncLogAspect()), "service.MyService")

        result = svc.sync_greet("bob")
        assert result == "hi bob"
        assert calls == ["before:sync_greet:('bob',)"]

    def test_join_point_target_is_bean(self) -> None:
        targets: list[object] = []

        @aspect
        class TargetAspect:
            @before("execution(* service.MyService.sync_greet(..))")
            def capture(self, jp):
                targets.append(jp.target)

        svc = MyService()
        weave_bean(svc, _make_engine(TargetAspect()), "service.MyService")
        svc.sync_greet(name="carol")

        assert targets == [svc]


class TestAfterReturningAdvice:
    def test_after_returning_sees_return_value(self) -> None:
        captured: list[str] = []

        @aspect
        class ReturnAspect:
            @after_returning("execution(str service.MyService.sync_*(str))")
            def on_return(self, jp, result):
                captured.append(result)

        svc = MyService()
        weave_bean(svc, _make_engine(ReturnAspect()), "service.MyService")

        assert svc.sync_greet("world") == "hi world"
        assert captured == ["hi world"]


class TestAfterThrowingAdvice:
    @pytest.mark.asyncio
    async def test_async_exception_reaches_advice_and_caller(self) -> None:
        captured: list[BaseException] = []

        @aspect
        class ErrorAspect:
            @after_throwing("execution(* service.MyService.explode(..))")
            def on_error(self, jp, exc):
                captured.append(exc)

        svc = MyService()
        weave_bean(svc, _make_engine(ErrorAspect()), "service.MyService")

        with pytest.raises(ValueError, match="boom"):
            await svc.explode()
        assert len(captured) == 1
        assert isinstance(captured[0], ValueError)


class TestAroundAdvice:
    def test_around_on_sync_method(self) -> None:
        @aspect
        class UpperAspect:
            @around("execution(* service.MyService.sync_greet(..))")
            def upper(self, pjp):
                return pjp.proceed().upper()

        svc = MyService()
        weave_bean(svc, _make_engine(UpperAspect()), "service.MyService")

        assert svc.sync_greet("dan") == "HI DAN"

    @pytest.mark.asyncio
    async def test_around_on_async_method(self) -> None:
        @aspect
        class WrapAspect:
            @around("execution(* service.MyService.greet(..))")
            async def wrap(self, pjp):
                result = await pjp.proceed()
                return f"[{result}]"

        svc = MyService()
        weave_bean(svc, _make_engine(WrapAspect()), "service.MyService")

        assert await svc.greet("eve") == "[hello eve]"

    def test_around_on_static_method(self) -> None:
        @aspect
        class StaticAspect:
            @around("execution(static * service.MyService.shout(str))")
            def wrap(self, pjp):
                return pjp.proceed() + "!"

        svc = MyService()
        woven = weave_bean(svc, _make_engine(StaticAspect()), "service.MyService")

        assert woven == ["shout"]
        assert svc.shout("hey") == "HEY!"
