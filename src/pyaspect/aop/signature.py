"""Signature model — the normalized identity of an interceptable method.

A :class:`Signature` carries everything a pointcut can select on: the
declaring type, the method name, parameter and return type names, the
declaring type's ancestors together with the methods each ancestor
declares, plus modifiers and marker tags.

Signatures are immutable and may be built by hand (for call sites that are
not Python classes) or derived from a class by :func:`signature_of`.
"""

from __future__ import annotations

import inspect
import types
import typing
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

UNKNOWN_TYPE = "object"

_signature_cache: dict[tuple[type, str, str | None], Signature] = {}


@dataclass(frozen=True)
class Signature:
    """Immutable description of a method as seen by the pointcut matcher.

    Attributes:
        declaring_type: Fully qualified name of the type the method is
            invoked through, e.g. ``"demo.OrderService"``.
        method_name: Name of the method.
        parameter_types: Ordered parameter type names (receiver excluded).
        return_type: Return type name.
        supertypes: Ancestor type name mapped to the method names that
            ancestor declares. Used by the supertype matching rule.
        modifiers: Modifier names such as ``"public"`` or ``"async"``.
        annotations: Marker tags applied to the method.
        type_annotations: Marker tags applied to the declaring type.
    """

    declaring_type: str
    method_name: str
    parameter_types: tuple[str, ...] = ()
    return_type: str = UNKNOWN_TYPE
    supertypes: Mapping[str, frozenset[str]] = field(default_factory=dict, compare=False)
    modifiers: frozenset[str] = frozenset({"public"})
    annotations: frozenset[str] = frozenset()
    type_annotations: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        frozen = {name: frozenset(members) for name, members in dict(self.supertypes).items()}
        object.__setattr__(self, "parameter_types", tuple(self.parameter_types))
        object.__setattr__(self, "supertypes", MappingProxyType(frozen))
        object.__setattr__(self, "modifiers", frozenset(self.modifiers))
        object.__setattr__(self, "annotations", frozenset(self.annotations))
        object.__setattr__(self, "type_annotations", frozenset(self.type_annotations))

    @property
    def key(self) -> tuple[str, str, tuple[str, ...]]:
        """Identity of the call site: type, method name and parameter types."""
        return (self.declaring_type, self.method_name, self.parameter_types)

    @property
    def ancestors(self) -> frozenset[str]:
        """Names of every direct and transitive supertype."""
        return frozenset(self.supertypes)

    @property
    def qualified_name(self) -> str:
        return f"{self.declaring_type}.{self.method_name}"

    def declared_on(self, type_name: str) -> bool:
        """Return True if the ancestor *type_name* declares this method."""
        return self.method_name in self.supertypes.get(type_name, ())

    def __str__(self) -> str:
        params = ", ".join(self.parameter_types)
        return f"{self.return_type} {self.qualified_name}({params})"


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------


def qualified_type_name(cls: type) -> str:
    """Render a class as ``module.QualName``; builtins render bare."""
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def type_name(annotation: Any) -> str:
    """Render a type annotation as the name pointcut patterns match against."""
    if annotation is inspect.Parameter.empty:
        return UNKNOWN_TYPE
    if annotation is None or annotation is type(None):
        return "None"
    if annotation is typing.Any:
        return "Any"
    if isinstance(annotation, str):
        return annotation
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        return "Union"
    if origin is not None:
        return type_name(origin)
    if isinstance(annotation, type):
        return qualified_type_name(annotation)
    return str(annotation)


def _type_hints(function: Any) -> dict[str, Any]:
    try:
        return typing.get_type_hints(function)
    except (NameError, TypeError, AttributeError):
        # Unresolvable forward references fall back to the raw annotations.
        return dict(getattr(function, "__annotations__", {}))


def _describe(function: Any, skip_receiver: bool) -> tuple[tuple[str, ...], str]:
    try:
        sig = inspect.signature(function)
    except (TypeError, ValueError):
        return (), UNKNOWN_TYPE

    hints = _type_hints(function)
    params = list(sig.parameters.values())
    if skip_receiver and params and params[0].kind in (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        params = params[1:]

    parameter_types = tuple(
        type_name(hints.get(p.name, p.annotation))
        for p in params
        if p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    )
    return_type = type_name(hints.get("return", sig.return_annotation))
    return parameter_types, return_type


def _declared_members(cls: type) -> frozenset[str]:
    names: set[str] = set()
    for klass in cls.__mro__:
        if klass is object:
            continue
        for name, value in vars(klass).items():
            if callable(value) or isinstance(value, (staticmethod, classmethod)):
                names.add(name)
    return frozenset(names)


def _tags(obj: Any) -> Iterable[str]:
    return getattr(obj, "__pyaspect_tags__", ())


def signature_of(cls: type, method_name: str, type_name_override: str | None = None) -> Signature:
    """Build (or fetch the cached) :class:`Signature` for ``cls.method_name``.

    *type_name_override* replaces the declaring type name, which lets a
    hosting layer publish a class under a logical name such as
    ``"demo.OrderService"``. Ancestors always use their real names.
    """
    cache_key = (cls, method_name, type_name_override)
    cached = _signature_cache.get(cache_key)
    if cached is not None:
        return cached

    raw = inspect.getattr_static(cls, method_name)
    modifiers = {"private" if method_name.startswith("_") else "public"}
    if isinstance(raw, staticmethod):
        modifiers.add("static")
        function = raw.__func__
    elif isinstance(raw, classmethod):
        modifiers.add("class")
        function = raw.__func__
    else:
        function = raw
    if inspect.iscoroutinefunction(inspect.unwrap(function)):
        modifiers.add("async")

    parameter_types, return_type = _describe(function, skip_receiver="static" not in modifiers)

    supertypes = {
        qualified_type_name(base): _declared_members(base) for base in cls.__mro__[1:] if base is not object
    }

    signature = Signature(
        declaring_type=type_name_override or qualified_type_name(cls),
        method_name=method_name,
        parameter_types=parameter_types,
        return_type=return_type,
        supertypes=supertypes,
        modifiers=frozenset(modifiers),
        annotations=frozenset(_tags(function)),
        type_annotations=frozenset(_tags(cls)),
    )
    return _signature_cache.setdefault(cache_key, signature)
