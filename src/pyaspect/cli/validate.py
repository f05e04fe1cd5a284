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
"""'pyaspect validate' — Load an aspect manifest and check every pointcut."""

from __future__ import annotations

from pathlib import Path

import click
import yaml  # type: ignore[import-untyped]
from rich.markup import escape
from rich.table import Table

from pyaspect.aop.manifest import load_manifest
from pyaspect.cli.console import console
from pyaspect.cli.parse import print_parse_error
from pyaspect.core.config import Config
from pyaspect.kernel.exceptions import ParseError, PyAspectException


@click.command()
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--profile", "profiles", multiple=True, help="Active profile overlay, repeatable.")
def validate_command(config_file: Path, profiles: tuple[str, ...]) -> None:
    """Validate the pointcuts and advice declared in CONFIG_FILE."""
    try:
        config = Config.from_file(config_file, active_profiles=list(profiles))
        registry = load_manifest(config)
        registry.freeze()
    except ParseError as error:
        print_parse_error(error)
        raise SystemExit(1) from None
    except (PyAspectException, ValueError, ImportError, AttributeError, yaml.YAMLError) as error:
        console.print(f"[error]✗[/error] {escape(str(error))}")
        raise SystemExit(1) from None

    pointcut_table = Table(title="Pointcuts", border_style="dim")
    pointcut_table.add_column("Name", style="info")
    pointcut_table.add_column("Expression")
    for name in registry.pointcuts.names():
        pointcut_table.add_row(name, escape(registry.pointcuts.source(name)))

    advice_table = Table(title="Advice", border_style="dim")
    advice_table.add_column("Priority", justify="right")
    advice_table.add_column("Kind", style="info")
    advice_table.add_column("Handler")
    advice_table.add_column("Pointcut")
    for advice in registry.advices:
        advice_table.add_row(str(advice.priority), str(advice.kind), advice.display_name, escape(advice.pointcut))

    console.print(pointcut_table)
    console.print(advice_table)
    console.print(
        f"[success]✓[/success] {len(registry.pointcuts)} pointcut(s), {len(registry.advices)} advice declaration(s)"
    )
