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
"""'pyaspect match' — Test a pointcut expression against a method signature."""

from __future__ import annotations

import click
from rich.markup import escape

from pyaspect.aop.parser import compile_pointcut
from pyaspect.aop.pointcut import matches
from pyaspect.aop.registry import PointcutRegistry
from pyaspect.aop.signature import Signature
from pyaspect.cli.console import console
from pyaspect.cli.parse import print_parse_error
from pyaspect.kernel.exceptions import ParseError, PyAspectException


def _parse_supertypes(values: tuple[str, ...]) -> dict[str, frozenset[str]]:
    supertypes: dict[str, frozenset[str]] = {}
    for value in values:
        name, _, members = value.partition(":")
        if not name:
            raise click.BadParameter(f"'{value}' is not NAME[:method,...]", param_hint="--supertype")
        supertypes[name] = frozenset(m for m in members.split(",") if m)
    return supertypes


def _parse_named_pointcuts(values: tuple[str, ...]) -> PointcutRegistry:
    registry = PointcutRegistry()
    for value in values:
        name, sep, expression = value.partition("=")
        if not sep or not name:
            raise click.BadParameter(f"'{value}' is not NAME=EXPRESSION", param_hint="--pointcut")
        registry.register(name.strip(), expression.strip())
    return registry


@click.command()
@click.argument("expression")
@click.option("--type", "declaring_type", required=True, help="Fully qualified declaring type.")
@click.option("--method", "method_name", required=True, help="Method name.")
@click.option("--param", "params", multiple=True, help="Parameter type, repeat in order.")
@click.option("--returns", "return_type", default="object", show_default=True, help="Return type.")
@click.option("--supertype", "supertypes", multiple=True, help="Supertype as NAME[:method,...], repeatable.")
@click.option("--modifier", "modifiers", multiple=True, help="Modifier (default: public), repeatable.")
@click.option("--pointcut", "pointcuts", multiple=True, help="Named pointcut as NAME=EXPRESSION, repeatable.")
def match_command(
    expression: str,
    declaring_type: str,
    method_name: str,
    params: tuple[str, ...],
    return_type: str,
    supertypes: tuple[str, ...],
    modifiers: tuple[str, ...],
    pointcuts: tuple[str, ...],
) -> None:
    """Report whether EXPRESSION selects the described method.

    Exits with status 0 on a match and 1 otherwise. Invalid input exits
    with status 2.
    """
    signature = Signature(
        declaring_type=declaring_type,
        method_name=method_name,
        parameter_types=params,
        return_type=return_type,
        supertypes=_parse_supertypes(supertypes),
        modifiers=frozenset(modifiers or ("public",)),
    )

    try:
        registry = _parse_named_pointcuts(pointcuts)
        compiled = compile_pointcut(expression)
        registry.check(compiled, "<expression>")
    except ParseError as error:
        print_parse_error(error)
        raise SystemExit(2) from None
    except PyAspectException as error:
        console.print(f"[error]✗[/error] {escape(str(error))}")
        raise SystemExit(2) from None

    if matches(compiled, signature, registry.lookup):
        console.print(f"[success]✓ match[/success] {escape(str(signature))}", highlight=False)
        return
    console.print(f"[warning]✗ no match[/warning] {escape(str(signature))}", highlight=False)
    raise SystemExit(1)
