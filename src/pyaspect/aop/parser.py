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
"""Pointcut expression parser.

Compiles pointcut text into the node tree of :mod:`pyaspect.aop.pointcut`.

Grammar
-------
::

    expr      := and ("||" and)*
    and       := unary ("&&" unary)*
    unary     := "!" unary | primary
    primary   := "(" expr ")" | directive | reference
    directive := "execution" "(" modifier* return decl "(" params? ")" ")"
               | "within" "(" type ")"
               | "@annotation" "(" name ")"
               | "@within" "(" name ")"
    reference := dotted-name "(" ")"

``decl`` is ``type.method`` or a bare ``method``; ``a.b..method`` selects any
type in ``a.b`` or its subpackages. Parameters are ``..`` (zero or more),
``*`` (exactly one) or a type name.

Example::

    expr = compile_pointcut("execution(* demo..*Service.*(str, ..)) && !within(demo.internal..)")
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from pyaspect.aop.pointcut import (
    And,
    AnnotationPattern,
    AnyRemaining,
    ExactType,
    Execution,
    MethodNamePattern,
    ModifierPattern,
    Not,
    Or,
    ParamItem,
    ParamPattern,
    PointcutExpression,
    Reference,
    ReturnPattern,
    TypePattern,
    Wildcard,
    Within,
)
from pyaspect.kernel.exceptions import ParseError

_TOKEN_RE = re.compile(
    r"""
    (?P<space>\s+)
    | (?P<and>&&)
    | (?P<or>\|\|)
    | (?P<not>!)
    | (?P<lparen>\()
    | (?P<rparen>\))
    | (?P<comma>,)
    | (?P<word>@?[A-Za-z0-9_$*?.]+)
    """,
    re.VERBOSE,
)

_SEGMENT_RE = re.compile(r"[A-Za-z0-9_$*?]+")
_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")

DIRECTIVES = ("execution", "within", "@annotation", "@within")


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


def tokenize(expression: str) -> list[Token]:
    """Split *expression* into tokens, raising :class:`ParseError` on stray characters."""
    tokens: list[Token] = []
    pos = 0
    while pos < len(expression):
        match = _TOKEN_RE.match(expression, pos)
        if match is None:
            raise ParseError(f"Unexpected character '{expression[pos]}'", expression, pos)
        kind = match.lastgroup or ""
        if kind != "space":
            tokens.append(Token(kind, match.group(), pos))
        pos = match.end()
    tokens.append(Token("end", "", len(expression)))
    return tokens


class PointcutParser:
    """Recursive-descent parser for a single pointcut expression."""

    def __init__(self, expression: str, scope: str | None = None) -> None:
        self._expression = expression
        self._scope = scope
        self._tokens = tokenize(expression)
        self._index = 0

    def parse(self) -> PointcutExpression:
        if self._peek().kind == "end":
            raise ParseError("Empty pointcut expression", self._expression, 0)
        expr = self._parse_or()
        token = self._peek()
        if token.kind != "end":
            message = "Unbalanced ')'" if token.kind == "rparen" else f"Unexpected '{token.text}'"
            raise self._error(message, token)
        return expr

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def _peek(self) -> Token:
        return self._tokens[self._index]

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        if token.kind != "end":
            self._index += 1
        return token

    def _expect(self, kind: str, what: str) -> Token:
        token = self._peek()
        if token.kind != kind:
            if token.kind == "end" and kind == "rparen":
                raise self._error("Unbalanced '(': missing ')'", token)
            found = "end of input" if token.kind == "end" else f"'{token.text}'"
            raise self._error(f"Expected {what} but found {found}", token)
        return self._advance()

    def _error(self, message: str, token: Token) -> ParseError:
        return ParseError(message, self._expression, token.position)

    # ------------------------------------------------------------------
    # Boolean structure
    # ------------------------------------------------------------------

    def _parse_or(self) -> PointcutExpression:
        left = self._parse_and()
        while self._peek().kind == "or":
            self._advance()
            left = Or(left, self._parse_and())
        return left

    def _parse_and(self) -> PointcutExpression:
        left = self._parse_unary()
        while self._peek().kind == "and":
            self._advance()
            left = And(left, self._parse_unary())
        return left

    def _parse_unary(self) -> PointcutExpression:
        if self._peek().kind == "not":
            self._advance()
            return Not(self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self) -> PointcutExpression:
        token = self._peek()
        if token.kind == "lparen":
            self._advance()
            expr = self._parse_or()
            self._expect("rparen", "')'")
            return expr
        if token.kind != "word":
            found = "end of input" if token.kind == "end" else f"'{token.text}'"
            raise self._error(f"Expected a pointcut but found {found}", token)

        self._advance()
        if token.text == "execution":
            return self._parse_execution()
        if token.text == "within":
            return self._parse_within()
        if token.text in ("@annotation", "@within"):
            return self._parse_annotation(on_type=token.text == "@within")
        return self._parse_reference(token)

    # ------------------------------------------------------------------
    # Directives
    # ------------------------------------------------------------------

    def _parse_reference(self, name: Token) -> PointcutExpression:
        self._expect("lparen", "'(' after pointcut name")
        if self._peek().kind != "rparen":
            expected = ", ".join(DIRECTIVES)
            raise self._error(f"Unknown pointcut directive '{name.text}' (expected one of: {expected})", name)
        self._advance()
        if not all(_IDENTIFIER_RE.fullmatch(part) for part in name.text.split(".")):
            raise self._error(f"Invalid pointcut reference '{name.text}'", name)
        return Reference(name.text, self._scope)

    def _parse_within(self) -> PointcutExpression:
        self._expect("lparen", "'(' after 'within'")
        token = self._expect("word", "a type pattern")
        self._check_type_glob(token.text, token)
        self._expect("rparen", "')'")
        return Within(TypePattern(token.text, inherited=False))

    def _parse_annotation(self, on_type: bool) -> PointcutExpression:
        self._expect("lparen", "'(' after annotation directive")
        token = self._expect("word", "a marker name")
        if not all(_IDENTIFIER_RE.fullmatch(part) for part in token.text.split(".")):
            raise self._error(f"Invalid marker name '{token.text}'", token)
        self._expect("rparen", "')'")
        return AnnotationPattern(token.text, on_type=on_type)

    def _parse_execution(self) -> PointcutExpression:
        self._expect("lparen", "'(' after 'execution'")

        words: list[Token] = []
        while self._peek().kind == "word":
            words.append(self._advance())
        if len(words) < 2:
            raise self._error("execution() needs a return type pattern and a method pattern", self._peek())

        *modifier_tokens, return_token, decl_token = words
        for token in modifier_tokens:
            if not _IDENTIFIER_RE.fullmatch(token.text):
                raise self._error(f"Invalid modifier '{token.text}'", token)
        self._check_glob(return_token.text, return_token, "return type")
        type_pattern, method_pattern = self._split_declaration(decl_token)

        self._expect("lparen", "'(' before parameter list")
        params = self._parse_params()
        self._expect("rparen", "')'")

        return Execution(
            return_pattern=ReturnPattern(return_token.text),
            method_pattern=method_pattern,
            param_pattern=params,
            type_pattern=type_pattern,
            modifiers=tuple(ModifierPattern(t.text) for t in modifier_tokens),
        )

    def _split_declaration(self, token: Token) -> tuple[TypePattern | None, MethodNamePattern]:
        text = token.text
        if "." not in text:
            self._check_segment(text, token)
            return None, MethodNamePattern(text)

        type_glob, _, method_glob = text.rpartition(".")
        self._check_segment(method_glob, token)
        if type_glob.endswith("."):
            # "a.b..name": keep the trailing ".." on the type glob
            type_glob += "."
        self._check_type_glob(type_glob, token)
        return TypePattern(type_glob), MethodNamePattern(method_glob)

    def _parse_params(self) -> ParamPattern:
        items: list[ParamItem] = []
        if self._peek().kind == "rparen":
            self._advance()
            return ParamPattern(())

        while True:
            token = self._expect("word", "a parameter pattern")
            if token.text == "..":
                items.append(AnyRemaining())
            elif token.text == "*":
                items.append(Wildcard())
            else:
                if not all(_IDENTIFIER_RE.fullmatch(part) for part in token.text.split(".")):
                    raise self._error(f"Invalid parameter type '{token.text}'", token)
                items.append(ExactType(token.text))

            if self._peek().kind == "comma":
                self._advance()
                continue
            self._expect("rparen", "',' or ')' in parameter list")
            return ParamPattern(tuple(items))

    # ------------------------------------------------------------------
    # Glob validation
    # ------------------------------------------------------------------

    def _check_segment(self, segment: str, token: Token) -> None:
        if not _SEGMENT_RE.fullmatch(segment):
            raise self._error(f"Invalid glob '{token.text}'", token)

    def _check_glob(self, glob: str, token: Token, what: str) -> None:
        if ".." in glob:
            raise self._error(f"'..' is not allowed in a {what} pattern: '{glob}'", token)
        for segment in glob.split("."):
            self._check_segment(segment, token)

    def _check_type_glob(self, glob: str, token: Token) -> None:
        if glob.startswith(".") or "..." in glob:
            raise self._error(f"Invalid glob '{token.text}'", token)
        pieces = glob.split("..")
        for index, piece in enumerate(pieces):
            if piece == "" and index == len(pieces) - 1 and index > 0:
                continue
            for segment in piece.split("."):
                self._check_segment(segment, token)


def compile_pointcut(expression: str, scope: str | None = None) -> PointcutExpression:
    """Compile *expression* into a :class:`PointcutExpression`.

    Args:
        expression: Pointcut text.
        scope: Aspect name used to qualify bare references.

    Raises:
        ParseError: The expression is malformed.
    """
    return PointcutParser(expression, scope).parse()
