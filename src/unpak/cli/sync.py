"""Sync command."""

import asyncio
from pathlib import Path

import click

from ..coordinator import SyncCoordinator
from . import cli
from .logger import configure_logging
from .options import build_config, config_options, make_client


@cli.command()
@config_options
def sync(
    config_file: Path | None,
    cache_dir: str | None,
    prefixes: tuple[str, ...],
    manifest_url: str | None,
    verbose: bool,
) -> None:
    """Download the volumes containing the given directory prefixes.

    Volumes whose local copy already matches the manifest hash are not
    downloaded again.
    """
    config = build_config(
        config_file=config_file,
        cache_dir=cache_dir,
        prefixes=prefixes,
        manifest_url=manifest_url,
    )
    configure_logging(verbose, config.log_level)
    coordinator = SyncCoordinator(config, make_client(config))

    if not asyncio.run(coordinator.sync()):
        raise SystemExit(1)

    result = coordinator.last_result
    if result is None:
        raise click.ClickException("sync completed without a result")
    click.echo(
        f"Version {result.version_id}: {len(result.required_volumes)} volume(s) required, "
        f"{len(result.downloaded)} file(s) downloaded."
    )
