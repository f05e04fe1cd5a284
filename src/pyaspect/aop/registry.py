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
"""Registries — named pointcuts and the advice declarations bound to them."""

from __future__ import annotations

import dataclasses
import inspect
import threading
from typing import Any

import structlog

from pyaspect.aop.decorators import is_aspect
from pyaspect.aop.ordering import get_order
from pyaspect.aop.parser import compile_pointcut
from pyaspect.aop.pointcut import PointcutExpression, Reference
from pyaspect.aop.types import AdviceDeclaration, AdviceKind
from pyaspect.kernel.exceptions import (
    DuplicatePointcutError,
    RegistryFrozenError,
    UnresolvedPointcutError,
)

logger = structlog.get_logger("pyaspect.aop.registry")

# Sequencing rank of advice methods declared on the same aspect. Entry-side
# kinds keep definition order; an ``after`` handler wraps the
# ``after_returning``/``after_throwing`` handlers so it runs once they are done.
_KIND_RANK = {
    AdviceKind.BEFORE: 0,
    AdviceKind.AROUND: 0,
    AdviceKind.AFTER: 1,
    AdviceKind.AFTER_RETURNING: 2,
    AdviceKind.AFTER_THROWING: 2,
}


class PointcutRegistry:
    """Named, reusable pointcuts.

    Names are unique and case-sensitive. A pointcut may reference names that
    are registered later; cycles are rejected as soon as they close, and
    dangling names are reported by :meth:`validate`.
    """

    def __init__(self) -> None:
        self._entries: dict[str, PointcutExpression] = {}
        self._sources: dict[str, str] = {}
        self._frozen = False
        self._version = 0
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def version(self) -> int:
        """Incremented on every successful registration."""
        return self._version

    def names(self) -> list[str]:
        return list(self._entries)

    def source(self, name: str) -> str:
        """Return the expression text *name* was registered with."""
        return self._sources[name]

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def register(self, name: str, expression: str, scope: str | None = None) -> PointcutExpression:
        """Compile *expression* and store it under *name*.

        Raises:
            ParseError: The expression is malformed.
            DuplicatePointcutError: *name* is already taken.
            UnresolvedPointcutError: The new entry closes a reference cycle.
            RegistryFrozenError: The registry has been frozen.
        """
        compiled = compile_pointcut(expression, scope)
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(f"Cannot register pointcut '{name}': registry is frozen")
            if name in self._entries:
                raise DuplicatePointcutError(name)
            self._entries[name] = compiled
            self._sources[name] = expression
            try:
                self._check_cycles(name)
            except UnresolvedPointcutError:
                del self._entries[name]
                del self._sources[name]
                raise
            self._version += 1

        logger.debug("pointcut_registered", name=name, expression=str(compiled))
        return compiled

    def get(self, name: str) -> PointcutExpression | None:
        return self._entries.get(name)

    def lookup(self, reference: Reference) -> PointcutExpression | None:
        """Resolve *reference*, trying its scope-qualified name first."""
        for candidate in reference.candidates():
            expr = self._entries.get(candidate)
            if expr is not None:
                return expr
        return None

    def _resolved_name(self, reference: Reference) -> str | None:
        for candidate in reference.candidates():
            if candidate in self._entries:
                return candidate
        return None

    def _check_cycles(self, start: str) -> None:
        def visit(name: str, path: tuple[str, ...]) -> None:
            for ref in self._entries[name].references():
                target = self._resolved_name(ref)
                if target is None:
                    continue
                if target in path:
                    cycle = (*path[path.index(target) :], target)
                    raise UnresolvedPointcutError(
                        f"Cyclic pointcut reference: {' -> '.join(cycle)}",
                        name=start,
                        path=cycle,
                    )
                visit(target, (*path, target))

        visit(start, (start,))

    def check(self, expr: PointcutExpression, origin: str) -> None:
        """Verify that every reference reachable from *expr* resolves.

        Raises:
            UnresolvedPointcutError: Some reference is dangling.
        """
        pending: list[tuple[PointcutExpression, tuple[str, ...]]] = [(expr, (origin,))]
        seen: set[str] = set()
        while pending:
            node, path = pending.pop()
            for ref in node.references():
                target = self._resolved_name(ref)
                if target is None:
                    raise UnresolvedPointcutError(
                        f"Unresolved pointcut reference '{ref.name}' in {' -> '.join(path)}",
                        name=ref.name,
                        path=path,
                    )
                if target not in seen:
                    seen.add(target)
                    pending.append((self._entries[target], (*path, target)))

    def validate(self) -> None:
        """Check every registered pointcut for dangling references."""
        for name, expr in self._entries.items():
            self.check(expr, name)

    def freeze(self) -> None:
        """Validate and stop accepting registrations."""
        with self._lock:
            if self._frozen:
                return
            self.validate()
            self._frozen = True
        logger.debug("pointcut_registry_frozen", pointcuts=len(self._entries))


class AspectRegistry:
    """Named pointcuts plus the advice declarations bound to them.

    Usage::

        registry = AspectRegistry()
        registry.register_pointcut("exec", "execution(* demo.*Service.*(..))")
        registry.register_advice(AdviceDeclaration("exec()", AdviceKind.BEFORE, log_entry))

        # or collect decorated aspect objects
        registry.register(Pointcuts(), TxAspect(), LogAspect())

    Declarations are kept sorted by ``(priority, sequence)``.
    """

    def __init__(self, pointcuts: PointcutRegistry | None = None) -> None:
        self.pointcuts = pointcuts if pointcuts is not None else PointcutRegistry()
        self._advices: list[AdviceDeclaration] = []
        self._sequence = 0
        self._version = 0
        self._lock = threading.Lock()

    @property
    def advices(self) -> tuple[AdviceDeclaration, ...]:
        """All declarations, sorted by ``(priority, sequence)``."""
        return tuple(self._advices)

    @property
    def frozen(self) -> bool:
        return self.pointcuts.frozen

    @property
    def version(self) -> int:
        """Changes whenever a pointcut or an advice is registered."""
        return self._version + self.pointcuts.version

    def register_pointcut(self, name: str, expression: str, scope: str | None = None) -> PointcutExpression:
        return self.pointcuts.register(name, expression, scope)

    def register_advice(self, declaration: AdviceDeclaration) -> AdviceDeclaration:
        """Compile, validate and store *declaration*.

        Returns the stored declaration with ``expression`` and ``sequence``
        filled in.

        Raises:
            ParseError: The pointcut text is malformed.
            UnresolvedPointcutError: It references an unknown pointcut.
            RegistryFrozenError: The registry has been frozen.
        """
        expression = compile_pointcut(declaration.pointcut, declaration.scope)
        self.pointcuts.check(expression, declaration.display_name)

        with self._lock:
            if self.frozen:
                raise RegistryFrozenError(
                    f"Cannot register advice '{declaration.display_name}': registry is frozen"
                )
            stored = dataclasses.replace(
                declaration,
                kind=AdviceKind(declaration.kind),
                expression=expression,
                sequence=self._sequence,
            )
            self._sequence += 1
            self._advices.append(stored)
            self._advices.sort(key=lambda d: (d.priority, d.sequence))
            self._version += 1

        logger.debug(
            "advice_registered",
            advice=stored.display_name,
            kind=str(stored.kind),
            pointcut=str(expression),
            priority=stored.priority,
        )
        return stored

    # ------------------------------------------------------------------
    # Decorated aspects
    # ------------------------------------------------------------------

    def register(self, *aspects: Any) -> None:
        """Collect ``@pointcut`` and advice methods from aspect objects.

        All named pointcuts of the batch are registered before any advice,
        so advice may reference pointcuts declared on another aspect of the
        same call. Classes may be passed for pointcut-only holders. Advice
        methods are only collected from instances of ``@aspect`` classes.
        """
        for aspect_obj in aspects:
            self.register_pointcuts(aspect_obj)
        for aspect_obj in aspects:
            if isinstance(aspect_obj, type):
                continue
            if not is_aspect(aspect_obj):
                logger.debug("aspect_skipped", holder=type(aspect_obj).__qualname__)
                continue
            self._register_advice_methods(aspect_obj)

    def register_pointcuts(self, holder: Any) -> list[str]:
        """Register every ``@pointcut`` method of *holder* as ``Class.method``."""
        holder_cls = holder if isinstance(holder, type) else type(holder)
        scope = holder_cls.__name__
        names: list[str] = []
        for attr_name, member in inspect.getmembers(holder_cls, predicate=inspect.isfunction):
            expression = getattr(member, "__pyaspect_pointcut__", None)
            if expression is None:
                continue
            name = f"{scope}.{attr_name}"
            self.pointcuts.register(name, expression, scope)
            names.append(name)
        return names

    def _register_advice_methods(self, aspect_instance: Any) -> None:
        aspect_cls = type(aspect_instance)
        priority = get_order(aspect_cls)
        scope = aspect_cls.__name__

        methods: list[tuple[str, AdviceKind, str]] = []
        for attr_name in _definition_order(aspect_cls):
            unbound = inspect.getattr_static(aspect_cls, attr_name, None)
            kind = getattr(unbound, "__pyaspect_advice_kind__", None)
            pointcut = getattr(unbound, "__pyaspect_advice_pointcut__", None)
            if kind is not None and pointcut is not None:
                methods.append((attr_name, AdviceKind(kind), pointcut))

        methods.sort(key=lambda method: _KIND_RANK[method[1]])
        for attr_name, kind, pointcut in methods:
            self.register_advice(
                AdviceDeclaration(
                    pointcut=pointcut,
                    kind=kind,
                    handler=getattr(aspect_instance, attr_name),
                    priority=priority,
                    name=f"{scope}.{attr_name}",
                    scope=scope,
                )
            )

    def freeze(self) -> None:
        """Validate all pointcuts and stop accepting registrations."""
        self.pointcuts.freeze()


def _definition_order(cls: type) -> list[str]:
    names: list[str] = []
    for klass in reversed(cls.__mro__):
        for name in vars(klass):
            if name not in names:
                names.append(name)
    return names
