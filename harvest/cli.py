"""Harvest CLI: run and check scraper configurations.

Usage:
    harvest run books.xml                     # Run a configuration
    harvest run books.xml -D start=1 -D end=5 # Seed global variables
    harvest run books.xml --print titles      # Print variables after the run
    harvest check books.xml                   # Validate without running
    harvest processors                        # List registered processor tags
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from harvest.definition import load_config
from harvest.exceptions import HarvestException
from harvest.processors.registry import registry
from harvest.scraper import Scraper
from harvest.settings import ScraperSettings


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_definitions(definitions: tuple[str, ...]) -> dict[str, str]:
    """Parse ``name=value`` pairs given with ``-D``.

    Raises:
        click.BadParameter: If a pair has no ``=`` or an empty name.
    """
    variables: dict[str, str] = {}
    for definition in definitions:
        name, sep, value = definition.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(
                f"Invalid definition '{definition}'. Expected format: name=value",
                param_hint="-D",
            )
        variables[name.strip()] = value
    return variables


@click.group()
@click.version_option(package_name="harvest-engine")
def cli() -> None:
    """Harvest: declarative web-scraping engine."""


@cli.command()
@click.argument(
    "config", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "-D",
    "--define",
    "definitions",
    multiple=True,
    metavar="NAME=VALUE",
    help="Initial global variable (repeatable).",
)
@click.option(
    "--print",
    "print_names",
    multiple=True,
    metavar="NAME",
    help="Print a global variable after the run (repeatable).",
)
@click.option("--charset", default=None, help="Default charset.")
@click.option(
    "--script-language", default=None, help="Default scripting language."
)
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="HTTP timeout in seconds.",
)
@click.option(
    "--working-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Base directory for relative file paths (default: current).",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
def run(
    config: Path,
    definitions: tuple[str, ...],
    print_names: tuple[str, ...],
    charset: str | None,
    script_language: str | None,
    timeout: float | None,
    working_dir: Path | None,
    verbose: bool,
) -> None:
    """Run a scraper configuration.

    CONFIG is the path of the XML configuration file.

    \b
    Examples:
        harvest run books.xml
        harvest run books.xml -D start=1 --print titles
        harvest run books.xml --working-dir out -v
    """
    _configure_logging(verbose)
    variables = parse_definitions(definitions)

    overrides = {
        "charset": charset,
        "script_language": script_language,
        "http_timeout": timeout,
        "working_dir": working_dir,
    }
    try:
        settings = ScraperSettings(
            **{
                name: value
                for name, value in overrides.items()
                if value is not None
            }
        )
    except ValidationError as e:
        raise click.BadParameter(str(e)) from e

    try:
        configuration = load_config(config)
        result = Scraper(configuration, settings).execute(variables)
    except HarvestException as e:
        click.echo(f"Error: {e}", err=True)
        cause = e.__cause__
        while cause is not None:
            click.echo(f"Caused by: {type(cause).__name__}: {cause}", err=True)
            cause = cause.__cause__
        sys.exit(1)

    if result.exited:
        click.echo(f"Exited: {result.message}")
    for name in print_names:
        variable = result.variables.get(name)
        text = variable.to_string(settings.charset) if variable else ""
        click.echo(f"{name}: {text}")


@cli.command()
@click.argument(
    "config", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
def check(config: Path) -> None:
    """Validate a configuration without running it."""
    try:
        configuration = load_config(config)
    except HarvestException as e:
        click.echo(f"Invalid: {e}", err=True)
        sys.exit(1)
    click.echo(
        f"OK: {config} ({len(configuration.root.children)} top-level processors)"
    )


@cli.command()
def processors() -> None:
    """List registered processor tags."""
    for namespace, tag in registry.tags():
        if namespace is None:
            click.echo(tag)
        else:
            click.echo(f"{{{namespace}}}{tag}")
