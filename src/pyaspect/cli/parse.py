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
"""'pyaspect parse' — Compile a pointcut expression and show its tree."""

from __future__ import annotations

import click
from rich.markup import escape
from rich.tree import Tree

from pyaspect.aop.parser import compile_pointcut
from pyaspect.aop.pointcut import And, Execution, Not, Or, PointcutExpression, Within
from pyaspect.cli.console import console
from pyaspect.kernel.exceptions import ParseError

_OPERATORS = {And: "&&", Or: "||", Not: "!"}


def _label(node: PointcutExpression) -> str:
    operator = _OPERATORS.get(type(node))
    if operator is not None:
        return f"[pyaspect]{operator}[/pyaspect]"
    if isinstance(node, (Execution, Within)):
        return f"[info]{type(node).__name__.lower()}[/info]"
    return f"[dim]{type(node).__name__}[/dim] {escape(str(node))}"


def _build_tree(node: PointcutExpression, tree: Tree) -> None:
    branch = tree.add(_label(node))
    for child in node.children():
        _build_tree(child, branch)


def print_parse_error(error: ParseError) -> None:
    console.print(f"[error]✗[/error] {escape(str(error))}")
    if error.expression and error.position is not None:
        console.print(f"    {escape(error.expression)}", highlight=False)
        console.print(f"    {' ' * error.position}[error]^[/error]")


@click.command()
@click.argument("expression")
@click.option("--scope", default=None, help="Aspect name that qualifies bare pointcut references.")
def parse_command(expression: str, scope: str | None) -> None:
    """Parse EXPRESSION and print its canonical form and predicate tree."""
    try:
        compiled = compile_pointcut(expression, scope)
    except ParseError as error:
        print_parse_error(error)
        raise SystemExit(1) from None

    console.print(f"[success]✓[/success] {escape(str(compiled))}", highlight=False)
    tree = Tree("[dim]pointcut[/dim]")
    _build_tree(compiled, tree)
    console.print(tree)
