"""CLI entry point for ossdigest.

Commands:
  generate   write one HTML activity digest per repository
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.logging import RichHandler

from ossdigest_cli.commands.generate import generate_cmd


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(show_path=False, rich_tracebacks=verbose)],
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("ossdigest"),
    prog_name="ossdigest",
)
@click.option(
    "--config",
    "config_path",
    default=".ossdigest.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="OSSDIGEST_CONFIG",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """AI-generated activity digests for GitHub repositories."""
    from ossdigest_core.config import load_config
    from ossdigest_core.errors import ConfigError

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    # The default path is optional; a path the user named must exist.
    source = ctx.get_parameter_source("config_path")
    required = source is not None and source != click.core.ParameterSource.DEFAULT
    try:
        config = load_config(config_path, required=required)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path


main.add_command(generate_cmd)
