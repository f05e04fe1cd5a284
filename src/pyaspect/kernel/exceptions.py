"""Unified exception hierarchy for pyaspect.

All library exceptions inherit from PyAspectException, enabling unified
error handling across modules.

Categories:
- PointcutException: Definition-time failures (parsing, references, names)
- RegistryFrozenError: Registration attempted after setup completed
- AdviceExecutionError: An advice handler itself failed at call time

Failures raised by an intercepted method are never wrapped: they reach the
caller with their original type and identity.
"""

from __future__ import annotations

from typing import Any


# =============================================================================
# Base Exception
# =============================================================================


class PyAspectException(Exception):
    """Base exception for all pyaspect errors.

    Carries an optional error code and context dict for structured error data.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "POINTCUT_PARSE").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.context: dict = context if context is not None else {}


# =============================================================================
# Definition-time Exceptions
# =============================================================================


class PointcutException(PyAspectException):
    """A pointcut could not be compiled, named, or resolved."""


class ParseError(PointcutException):
    """Malformed pointcut expression text.

    Args:
        message: What went wrong.
        expression: The full expression being compiled.
        position: Zero-based character offset of the offending token.
    """

    def __init__(self, message: str, expression: str = "", position: int | None = None) -> None:
        detail = message
        if expression:
            where = f" at position {position}" if position is not None else ""
            detail = f"{message}{where} in pointcut '{expression}'"
        super().__init__(
            detail,
            code="POINTCUT_PARSE",
            context={"expression": expression, "position": position},
        )
        self.expression = expression
        self.position = position


class UnresolvedPointcutError(PointcutException):
    """A pointcut reference is dangling or participates in a cycle."""

    def __init__(self, message: str, name: str, path: tuple[str, ...] = ()) -> None:
        super().__init__(
            message,
            code="POINTCUT_UNRESOLVED",
            context={"name": name, "path": list(path)},
        )
        self.name = name
        self.path = path


class DuplicatePointcutError(PointcutException):
    """A pointcut name was registered more than once."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Pointcut '{name}' is already registered",
            code="POINTCUT_DUPLICATE",
            context={"name": name},
        )
        self.name = name


class RegistryFrozenError(PyAspectException):
    """The registry no longer accepts pointcuts or advice."""


# =============================================================================
# Call-time Exceptions
# =============================================================================


class AdviceExecutionError(PyAspectException):
    """An advice handler raised while applying advice to a join point.

    The handler's own exception is available as ``__cause__``.
    """

    def __init__(self, message: str, advice: Any = None, join_point: Any = None) -> None:
        context: dict[str, Any] = {}
        if advice is not None:
            context["advice"] = getattr(advice, "display_name", repr(advice))
            context["kind"] = str(getattr(advice, "kind", ""))
        if join_point is not None:
            context["signature"] = str(join_point.signature)
        super().__init__(message, code="ADVICE_FAILED", context=context)
        self.advice = advice
        self.join_point = join_point
