"""Command line entry point: `unpak sync`, `unpak extract`, `unpak status`."""

from importlib.metadata import PackageNotFoundError, version

import click

DISTRIBUTION = "unpak"


def installed_version() -> str:
    """Return the version of the installed unpak distribution."""
    try:
        return version(DISTRIBUTION)
    except PackageNotFoundError:
        return "unknown"


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(installed_version(), "--version", message="unpak %(version)s")
def cli() -> None:
    """Keep a partial local mirror of a remote VPK archive up to date.

    Use `unpak COMMAND --help` for the options of each command.
    """


@cli.command("version")
def version_cmd() -> None:
    """Print the installed version."""
    click.echo(installed_version())


# Subcommands attach themselves to `cli` on import
from . import extract, status, sync  # noqa: E402, F401
