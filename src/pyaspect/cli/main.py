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
"""pyaspect CLI — inspect pointcut expressions and aspect manifests."""

from __future__ import annotations

import click

from pyaspect.cli.console import print_banner
from pyaspect.core.config import Config
from pyaspect.logging import StructlogAdapter


class PyAspectCLI(click.Group):
    """Custom Click group that shows the banner on help."""

    def format_help(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        print_banner()
        super().format_help(ctx, formatter)


@click.group(cls=PyAspectCLI)
@click.version_option(package_name="pyaspect")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Enable structured logging at this level.",
)
@click.option("--log-format", type=click.Choice(["console", "json"]), default="console", show_default=True)
def cli(log_level: str | None, log_format: str) -> None:
    """pyaspect — pointcut and advice tooling."""
    if log_level is not None:
        logging_config = Config({"pyaspect": {"logging": {"level": {"root": log_level}, "format": log_format}}})
        StructlogAdapter().configure(logging_config)


from pyaspect.cli.match import match_command
from pyaspect.cli.parse import parse_command
from pyaspect.cli.validate import validate_command

cli.add_command(parse_command, name="parse")
cli.add_command(match_command, name="match")
cli.add_command(validate_command, name="validate")
