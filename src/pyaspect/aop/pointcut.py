"""Compiled pointcut expressions and the matcher that evaluates them.

A pointcut compiles (see :mod:`pyaspect.aop.parser`) into an immutable tree
of the node types below. Evaluation against a
:class:`~pyaspect.aop.signature.Signature` is pure and total: it never
raises, and an unresolvable :class:`Reference` simply does not match.

Glob syntax
-----------
* ``*``  — any characters within a single dot-separated segment.
* ``?``  — exactly one character within a segment.
* ``..`` — in a type pattern, the package itself and every subpackage.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from pyaspect.aop.signature import Signature

Resolver = Callable[["Reference"], "PointcutExpression | None"]

_SUBPACKAGES = r"\.(?:[^.]+\.)*"


def _segment_to_regex(seg: str) -> str:
    """Convert a single pattern segment to a regex fragment."""
    if seg == "*":
        return r"[^.]+"

    parts: list[str] = []
    for ch in seg:
        if ch == "*":
            parts.append("[^.]*")
        elif ch == "?":
            parts.append("[^.]")
        else:
            parts.append(re.escape(ch))
    return "".join(parts)


def _dotted_to_regex(text: str) -> str:
    return r"\.".join(_segment_to_regex(seg) for seg in text.split("."))


def glob_to_regex(glob: str) -> re.Pattern[str]:
    """Compile a name glob (``*``/``?`` within segments, no ``..``)."""
    return re.compile(_dotted_to_regex(glob))


def type_glob_to_regex(glob: str) -> re.Pattern[str]:
    """Compile a type glob, where ``..`` spans any number of subpackages.

    A trailing ``..`` (``"a.b.."``) selects every type under ``a.b``.
    """
    pieces = glob.split("..")
    if pieces[-1] == "":
        pieces[-1] = "*"
    return re.compile(_SUBPACKAGES.join(_dotted_to_regex(piece) for piece in pieces))


def _simple_name(name: str) -> str:
    return name.rsplit(".", 1)[-1]


def _type_name_matches(regex: re.Pattern[str], name: str) -> bool:
    return regex.fullmatch(name) is not None or regex.fullmatch(_simple_name(name)) is not None


# ---------------------------------------------------------------------------
# Expression nodes
# ---------------------------------------------------------------------------


class PointcutExpression:
    """Base class of every compiled pointcut node."""

    def evaluate(self, signature: Signature, resolver: Resolver | None = None) -> bool:
        raise NotImplementedError

    def children(self) -> tuple[PointcutExpression, ...]:
        return ()

    def walk(self) -> Iterator[PointcutExpression]:
        """Yield this node and all its descendants, depth first."""
        yield self
        for child in self.children():
            yield from child.walk()

    def references(self) -> Iterator[Reference]:
        """Yield every :class:`Reference` in the tree."""
        for node in self.walk():
            if isinstance(node, Reference):
                yield node


@dataclass(frozen=True)
class MethodNamePattern(PointcutExpression):
    glob: str
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", glob_to_regex(self.glob))

    def evaluate(self, signature: Signature, resolver: Resolver | None = None) -> bool:
        return self._regex.fullmatch(signature.method_name) is not None

    def __str__(self) -> str:
        return self.glob


@dataclass(frozen=True)
class TypePattern(PointcutExpression):
    """Declaring-type pattern.

    With ``inherited`` set, an ancestor matching the glob also selects the
    call, but only when that ancestor declares the method itself.
    """

    glob: str
    inherited: bool = True
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", type_glob_to_regex(self.glob))

    @property
    def include_subpackages(self) -> bool:
        return ".." in self.glob

    def evaluate(self, signature: Signature, resolver: Resolver | None = None) -> bool:
        if self._regex.fullmatch(signature.declaring_type) is not None:
            return True
        if not self.inherited:
            return False
        return any(
            signature.declared_on(name) and self._regex.fullmatch(name) is not None
            for name in signature.supertypes
        )

    def __str__(self) -> str:
        return self.glob


@dataclass(frozen=True)
class ReturnPattern(PointcutExpression):
    glob: str
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", glob_to_regex(self.glob))

    def evaluate(self, signature: Signature, resolver: Resolver | None = None) -> bool:
        return _type_name_matches(self._regex, signature.return_type)

    def __str__(self) -> str:
        return self.glob


@dataclass(frozen=True)
class ExactType:
    """A parameter of exactly this type (full or simple name)."""

    name: str

    def accepts(self, type_name: str) -> bool:
        return type_name == self.name or _simple_name(type_name) == self.name

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Wildcard:
    """Exactly one parameter of any type (``*``)."""

    def accepts(self, type_name: str) -> bool:
        return True

    def __str__(self) -> str:
        return "*"


@dataclass(frozen=True)
class AnyRemaining:
    """Zero or more parameters of any type (``..``)."""

    def __str__(self) -> str:
        return ".."


ParamItem = ExactType | Wildcard | AnyRemaining


def _params_match(items: tuple[ParamItem, ...], types: tuple[str, ...]) -> bool:
    if not items:
        return not types
    head, rest = items[0], items[1:]
    if isinstance(head, AnyRemaining):
        return any(_params_match(rest, types[i:]) for i in range(len(types) + 1))
    if not types:
        return False
    return head.accepts(types[0]) and _params_match(rest, types[1:])


@dataclass(frozen=True)
class ParamPattern(PointcutExpression):
    items: tuple[ParamItem, ...] = ()

    def evaluate(self, signature: Signature, resolver: Resolver | None = None) -> bool:
        return _params_match(self.items, signature.parameter_types)

    def __str__(self) -> str:
        return ", ".join(str(item) for item in self.items)


@dataclass(frozen=True)
class ModifierPattern(PointcutExpression):
    name: str

    def evaluate(self, signature: Signature, resolver: Resolver | None = None) -> bool:
        return self.name in signature.modifiers

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class AnnotationPattern(PointcutExpression):
    """``@annotation(name)`` on the method, ``@within(name)`` on its type."""

    name: str
    on_type: bool = False

    def evaluate(self, signature: Signature, resolver: Resolver | None = None) -> bool:
        tags = signature.type_annotations if self.on_type else signature.annotations
        return self.name in tags

    def __str__(self) -> str:
        directive = "@within" if self.on_type else "@annotation"
        return f"{directive}({self.name})"


@dataclass(frozen=True)
class Within(PointcutExpression):
    type_pattern: TypePattern

    def evaluate(self, signature: Signature, resolver: Resolver | None = None) -> bool:
        return self.type_pattern.evaluate(signature, resolver)

    def children(self) -> tuple[PointcutExpression, ...]:
        return (self.type_pattern,)

    def __str__(self) -> str:
        return f"within({self.type_pattern})"


@dataclass(frozen=True)
class Execution(PointcutExpression):
    """``execution(...)``: matches when every component pattern matches."""

    return_pattern: ReturnPattern
    method_pattern: MethodNamePattern
    param_pattern: ParamPattern
    type_pattern: TypePattern | None = None
    modifiers: tuple[ModifierPattern, ...] = ()

    def children(self) -> tuple[PointcutExpression, ...]:
        parts: list[PointcutExpression] = [*self.modifiers, self.return_pattern]
        if self.type_pattern is not None:
            parts.append(self.type_pattern)
        parts.extend((self.method_pattern, self.param_pattern))
        return tuple(parts)

    def evaluate(self, signature: Signature, resolver: Resolver | None = None) -> bool:
        return all(part.evaluate(signature, resolver) for part in self.children())

    def __str__(self) -> str:
        prefix = "".join(f"{m} " for m in self.modifiers)
        if self.type_pattern is None:
            target = str(self.method_pattern)
        elif self.type_pattern.glob.endswith(".."):
            target = f"{self.type_pattern}{self.method_pattern}"
        else:
            target = f"{self.type_pattern}.{self.method_pattern}"
        return f"execution({prefix}{self.return_pattern} {target}({self.param_pattern}))"


def _wrap(expr: PointcutExpression, *loose: type) -> str:
    return f"({expr})" if isinstance(expr, loose) else str(expr)


@dataclass(frozen=True)
class And(PointcutExpression):
    left: PointcutExpression
    right: PointcutExpression

    def evaluate(self, signature: Signature, resolver: Resolver | None = None) -> bool:
        return self.left.evaluate(signature, resolver) and self.right.evaluate(signature, resolver)

    def children(self) -> tuple[PointcutExpression, ...]:
        return (self.left, self.right)

    def __str__(self) -> str:
        return f"{_wrap(self.left, Or)} && {_wrap(self.right, Or, And)}"


@dataclass(frozen=True)
class Or(PointcutExpression):
    left: PointcutExpression
    right: PointcutExpression

    def evaluate(self, signature: Signature, resolver: Resolver | None = None) -> bool:
        return self.left.evaluate(signature, resolver) or self.right.evaluate(signature, resolver)

    def children(self) -> tuple[PointcutExpression, ...]:
        return (self.left, self.right)

    def __str__(self) -> str:
        return f"{self.left} || {_wrap(self.right, Or)}"


@dataclass(frozen=True)
class Not(PointcutExpression):
    inner: PointcutExpression

    def evaluate(self, signature: Signature, resolver: Resolver | None = None) -> bool:
        return not self.inner.evaluate(signature, resolver)

    def children(self) -> tuple[PointcutExpression, ...]:
        return (self.inner,)

    def __str__(self) -> str:
        return f"!{_wrap(self.inner, And, Or)}"


@dataclass(frozen=True)
class Reference(PointcutExpression):
    """A named pointcut, resolved through the registry.

    ``scope`` is the aspect the reference was written in; bare names are
    looked up as ``f"{scope}.{name}"`` first.
    """

    name: str
    scope: str | None = None

    def candidates(self) -> tuple[str, ...]:
        if self.scope and "." not in self.name:
            return (f"{self.scope}.{self.name}", self.name)
        return (self.name,)

    def evaluate(self, signature: Signature, resolver: Resolver | None = None) -> bool:
        target = resolver(self) if resolver is not None else None
        if target is None:
            return False
        return target.evaluate(signature, resolver)

    def __str__(self) -> str:
        return f"{self.name}()"


# ---------------------------------------------------------------------------
# Public matching API
# ---------------------------------------------------------------------------


def matches(expr: PointcutExpression, signature: Signature, resolver: Resolver | None = None) -> bool:
    """Evaluate *expr* against *signature*.

    *resolver* maps :class:`Reference` nodes to their expressions; without
    one, references never match.
    """
    return expr.evaluate(signature, resolver)


def matches_pointcut(expression: str, signature: Signature, resolver: Resolver | None = None) -> bool:
    """Compile *expression* and evaluate it against *signature*.

    Examples
    --------
    >>> sig = Signature("demo.OrderService", "order_item", ("str",), "str")
    >>> matches_pointcut("execution(* demo.*Service.*(..))", sig)
    True
    >>> matches_pointcut("execution(* *(*, *))", sig)
    False
    """
    from pyaspect.aop.parser import compile_pointcut

    return matches(compile_pointcut(expression), signature, resolver)
