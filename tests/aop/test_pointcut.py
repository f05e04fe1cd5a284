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
"""Tests for the pointcut expression matcher."""

from __future__ import annotations

import pytest

from pyaspect.aop.parser import compile_pointcut
from pyaspect.aop.pointcut import (
    And,
    Not,
    Or,
    Reference,
    glob_to_regex,
    matches,
    matches_pointcut,
    type_glob_to_regex,
)
from pyaspect.aop.registry import PointcutRegistry
from pyaspect.aop.signature import Signature

# MemberServiceImpl.hello(str) -> str, declared on the MemberService interface.
HELLO = Signature(
    declaring_type="hello.aop.member.MemberServiceImpl",
    method_name="hello",
    parameter_types=("str",),
    return_type="str",
    supertypes={"hello.aop.member.MemberService": {"hello"}},
)

# MemberServiceImpl.internal(str) -> str, not declared on the interface.
INTERNAL = Signature(
    declaring_type="hello.aop.member.MemberServiceImpl",
    method_name="internal",
    parameter_types=("str",),
    return_type="str",
    supertypes={"hello.aop.member.MemberService": {"hello"}},
)

ORDER_ITEM = Signature("hello.aop.order.OrderService", "order_item", ("str",), "None")
SAVE = Signature("hello.aop.order.OrderRepository", "save", ("str",), "str")
NESTED = Signature("hello.aop.order.internal.AuditService", "record", (), "None")
OTHER = Signature("shop.billing.InvoiceService", "issue", ("int", "str"), "shop.billing.Invoice")


# ---------------------------------------------------------------------------
# Glob helpers
# ---------------------------------------------------------------------------


class TestGlobs:
    def test_star_stays_within_segment(self) -> None:
        assert glob_to_regex("*").fullmatch("hello")
        assert not glob_to_regex("*").fullmatch("a.b")

    def test_question_mark_matches_one_character(self) -> None:
        assert glob_to_regex("sav?").fullmatch("save")
        assert not glob_to_regex("sav?").fullmatch("saves")

    def test_partial_star(self) -> None:
        assert glob_to_regex("*el*").fullmatch("hello")
        assert not glob_to_regex("*el*").fullmatch("internal")

    def test_subpackage_glob(self) -> None:
        regex = type_glob_to_regex("hello.aop..*")
        assert regex.fullmatch("hello.aop.Member")
        assert regex.fullmatch("hello.aop.member.deep.Member")
        assert not regex.fullmatch("hello.aopx.Member")

    def test_trailing_subpackage_glob_selects_every_type(self) -> None:
        regex = type_glob_to_regex("hello.aop..")
        assert regex.fullmatch("hello.aop.order.OrderService")
        assert not regex.fullmatch("hello.other.OrderService")


# ---------------------------------------------------------------------------
# execution(...) component patterns
# ---------------------------------------------------------------------------


class TestExecutionMatching:
    """Method, type, return and modifier patterns."""

    def test_exact_declaration(self) -> None:
        assert matches_pointcut("execution(public str hello.aop.member.MemberServiceImpl.hello(str))", HELLO)

    def test_all_wildcards(self) -> None:
        assert matches_pointcut("execution(* *(..))", HELLO)

    def test_method_name_exact(self) -> None:
        assert matches_pointcut("execution(* hello(..))", HELLO)

    def test_method_name_prefix(self) -> None:
        assert matches_pointcut("execution(* hel*(..))", HELLO)

    def test_method_name_infix(self) -> None:
        assert matches_pointcut("execution(* *el*(..))", HELLO)

    def test_method_name_mismatch(self) -> None:
        assert not matches_pointcut("execution(* nono(..))", HELLO)

    def test_package_exact(self) -> None:
        assert matches_pointcut("execution(* hello.aop.member.MemberServiceImpl.hello(..))", HELLO)

    def test_package_star_type(self) -> None:
        assert matches_pointcut("execution(* hello.aop.member.*.*(..))", HELLO)

    def test_star_does_not_cross_packages(self) -> None:
        assert not matches_pointcut("execution(* hello.aop.*.*(..))", HELLO)

    def test_subpackage_glob_crosses_packages(self) -> None:
        assert matches_pointcut("execution(* hello.aop..*.*(..))", HELLO)

    def test_subpackage_glob_includes_the_package_itself(self) -> None:
        assert matches_pointcut("execution(* hello.aop.member..*.*(..))", HELLO)

    def test_subpackage_glob_with_method_directly(self) -> None:
        expr = compile_pointcut("execution(* hello.aop.order..*(..))")
        assert matches(expr, ORDER_ITEM)
        assert matches(expr, SAVE)
        assert matches(expr, NESTED)
        assert not matches(expr, HELLO)

    def test_service_suffix_in_any_package(self) -> None:
        expr = compile_pointcut("execution(* *..*Service.*(..))")
        assert matches(expr, ORDER_ITEM)
        assert matches(expr, NESTED)
        assert matches(expr, OTHER)
        assert not matches(expr, SAVE)

    def test_return_type_simple_name(self) -> None:
        assert matches_pointcut("execution(Invoice *(..))", OTHER)

    def test_return_type_full_name(self) -> None:
        assert matches_pointcut("execution(shop.billing.Invoice *(..))", OTHER)

    def test_return_type_mismatch(self) -> None:
        assert not matches_pointcut("execution(int *(..))", HELLO)

    def test_public_modifier(self) -> None:
        assert matches_pointcut("execution(public * *(..))", HELLO)

    def test_missing_modifier(self) -> None:
        assert not matches_pointcut("execution(static * *(..))", HELLO)


class TestSupertypeRule:
    """A supertype pattern selects only methods the supertype declares."""

    def test_interface_selects_declared_method(self) -> None:
        assert matches_pointcut("execution(* hello.aop.member.MemberService.*(..))", HELLO)

    def test_interface_does_not_select_undeclared_method(self) -> None:
        assert not matches_pointcut("execution(* hello.aop.member.MemberService.*(..))", INTERNAL)

    def test_implementation_selects_every_method(self) -> None:
        assert matches_pointcut("execution(* hello.aop.member.MemberServiceImpl.*(..))", INTERNAL)

    def test_within_ignores_supertypes(self) -> None:
        assert not matches_pointcut("within(hello.aop.member.MemberService)", HELLO)
        assert matches_pointcut("within(hello.aop.member.MemberServiceImpl)", HELLO)


class TestParameterPatterns:
    @pytest.mark.parametrize(
        ("pattern", "params", "expected"),
        [
            ("()", (), True),
            ("()", ("str",), False),
            ("(*)", ("str",), True),
            ("(*)", (), False),
            ("(*)", ("str", "int"), False),
            ("(*, *)", ("str", "int"), True),
            ("(..)", (), True),
            ("(..)", ("str", "int", "float"), True),
            ("(str)", ("str",), True),
            ("(str)", ("int",), False),
            ("(str, ..)", ("str",), True),
            ("(str, ..)", ("str", "int", "float"), True),
            ("(str, ..)", ("int", "str"), False),
            ("(.., str)", ("int", "str"), True),
            ("(str, *)", ("str", "int"), True),
            ("(str, *)", ("str",), False),
            ("(.., int, ..)", ("str", "int", "float"), True),
            ("(Order)", ("shop.Order",), True),
            ("(shop.Order)", ("shop.Order",), True),
        ],
    )
    def test_parameter_pattern(self, pattern: str, params: tuple[str, ...], expected: bool) -> None:
        signature = Signature("demo.Service", "run", params)
        assert matches_pointcut(f"execution(* *{pattern})", signature) is expected


class TestAnnotations:
    SIG = Signature(
        "demo.OrderService",
        "place",
        annotations=frozenset({"method_aop"}),
        type_annotations=frozenset({"class_aop"}),
    )

    def test_method_marker(self) -> None:
        assert matches_pointcut("@annotation(method_aop)", self.SIG)
        assert not matches_pointcut("@annotation(class_aop)", self.SIG)

    def test_type_marker(self) -> None:
        assert matches_pointcut("@within(class_aop)", self.SIG)
        assert not matches_pointcut("@within(method_aop)", self.SIG)


# ---------------------------------------------------------------------------
# Boolean composition
# ---------------------------------------------------------------------------

ATOMS = [
    compile_pointcut("execution(* hello.aop.order..*(..))"),
    compile_pointcut("execution(* *..*Service.*(..))"),
    compile_pointcut("execution(* *(str))"),
]
SIGNATURES = [HELLO, INTERNAL, ORDER_ITEM, SAVE, NESTED, OTHER]


class TestBooleanAlgebra:
    @pytest.mark.parametrize("sig", SIGNATURES, ids=lambda s: s.qualified_name)
    def test_and_or_not(self, sig: Signature) -> None:
        a, b, _ = ATOMS
        assert matches(And(a, b), sig) == (matches(a, sig) and matches(b, sig))
        assert matches(Or(a, b), sig) == (matches(a, sig) or matches(b, sig))
        assert matches(Not(a), sig) == (not matches(a, sig))

    @pytest.mark.parametrize("sig", SIGNATURES, ids=lambda s: s.qualified_name)
    def test_de_morgan(self, sig: Signature) -> None:
        a, b, _ = ATOMS
        assert matches(Not(And(a, b)), sig) == matches(Or(Not(a), Not(b)), sig)
        assert matches(Not(Or(a, b)), sig) == matches(And(Not(a), Not(b)), sig)

    @pytest.mark.parametrize("sig", SIGNATURES, ids=lambda s: s.qualified_name)
    def test_distributivity(self, sig: Signature) -> None:
        a, b, c = ATOMS
        assert matches(And(a, Or(b, c)), sig) == matches(Or(And(a, b), And(a, c)), sig)

    @pytest.mark.parametrize("sig", SIGNATURES, ids=lambda s: s.qualified_name)
    def test_double_negation(self, sig: Signature) -> None:
        a, _, _ = ATOMS
        assert matches(Not(Not(a)), sig) == matches(a, sig)

    def test_order_and_service(self) -> None:
        expr = compile_pointcut(
            "execution(* hello.aop.order..*(..)) && execution(* *..*Service.*(..))"
        )
        assert matches(expr, ORDER_ITEM)
        assert not matches(expr, SAVE)


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


class TestReferences:
    def test_reference_resolves_through_registry(self) -> None:
        registry = PointcutRegistry()
        registry.register("allOrder", "execution(* hello.aop.order..*(..))")
        registry.register("allService", "execution(* *..*Service.*(..))")
        registry.register("orderAndService", "allOrder() && allService()")

        expr = compile_pointcut("orderAndService()")
        assert matches(expr, ORDER_ITEM, registry.lookup)
        assert not matches(expr, SAVE, registry.lookup)

    def test_unresolved_reference_does_not_match(self) -> None:
        assert not matches(Reference("missing"), ORDER_ITEM)
        assert not matches(Reference("missing"), ORDER_ITEM, lambda ref: None)

    def test_negated_unresolved_reference_matches(self) -> None:
        assert matches(Not(Reference("missing")), ORDER_ITEM)

    def test_walk_and_references(self) -> None:
        expr = compile_pointcut("a() && !(b() || execution(* *(..)))")
        assert [r.name for r in expr.references()] == ["a", "b"]
        assert len(list(expr.walk())) >= 6
