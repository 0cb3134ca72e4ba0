"""Status command."""

import asyncio
from pathlib import Path

from rich.console import Console

from ..errors import UnpakError
from ..fetcher import bytes_to_mb
from ..status import VolumeState, inspect_cache
from . import cli
from .logger import configure_logging
from .options import build_config, config_options, make_client

_STATE_CHARS: dict[VolumeState, tuple[str, str]] = {
    VolumeState.MISSING: ("D", "red"),
    VolumeState.HASH_MISMATCH: ("M", "yellow"),
    VolumeState.MATCHING: (" ", "dim"),
}


@cli.command()
@config_options
def status(
    config_file: Path | None,
    cache_dir: str | None,
    prefixes: tuple[str, ...],
    manifest_url: str | None,
    verbose: bool,
) -> None:
    """Show the state of the required volumes relative to the manifest.

    Each volume is prefixed with a status letter:

    \b
      'D'  needs download (in manifest, not on disk)
      'M'  modified (on disk, hash differs from manifest)
      ' '  up to date (on disk, same hash)

    When the directory volume is not up to date, it is the only
    volume listed, since it tells which other volumes are required.
    """
    config = build_config(
        config_file=config_file,
        cache_dir=cache_dir,
        prefixes=prefixes,
        manifest_url=manifest_url,
    )
    configure_logging(verbose, config.log_level)
    client = make_client(config)

    try:
        manifest, report = asyncio.run(inspect_cache(config, client))
    except UnpakError as exc:
        Console(stderr=True).print(f"[red]error:[/] {exc}")
        raise SystemExit(1) from exc

    console = Console()
    console.print(f"version {manifest.version_id}")
    for entry in report:
        char, color = _STATE_CHARS[entry.state]
        console.print(f"[{color}]{char}[/] {entry.name} ({bytes_to_mb(entry.size_bytes)} MB)")
