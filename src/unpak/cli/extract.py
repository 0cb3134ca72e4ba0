"""Extract command."""

import asyncio
from pathlib import Path

import click

from ..coordinator import SyncCoordinator
from ..errors import FileNotFound, VolumeMissingLocally
from . import cli
from .logger import configure_logging
from .options import build_config, config_options, make_client


@cli.command()
@click.argument("path")
@click.option(
    "-o",
    "--output",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the file here instead of the standard output",
)
@config_options
def extract(
    path: str,
    output: Path | None,
    config_file: Path | None,
    cache_dir: str | None,
    prefixes: tuple[str, ...],
    manifest_url: str | None,
    verbose: bool,
) -> None:
    """Sync, then extract the archived file at PATH."""
    config = build_config(
        config_file=config_file,
        cache_dir=cache_dir,
        prefixes=prefixes,
        manifest_url=manifest_url,
    )
    configure_logging(verbose, config.log_level)
    coordinator = SyncCoordinator(config, make_client(config), show_progress=output is not None)

    if not asyncio.run(coordinator.sync()):
        raise SystemExit(1)

    try:
        data = coordinator.get_file(path)
    except (FileNotFound, VolumeMissingLocally) as exc:
        raise click.ClickException(str(exc)) from exc

    if output is None:
        click.echo(data, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(data)
    click.echo(f"Wrote {len(data)} bytes to {output}.", err=True)
