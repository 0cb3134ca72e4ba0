"""Options shared by the commands needing a configuration."""

from __future__ import annotations

import functools
from collections.abc import Callable
from pathlib import Path

import click

from ..config import UnpakConfig, config_from_dict, load_config
from ..errors import ConfigurationError
from ..httpremote import HTTPDistributionClient


def config_options(func: Callable) -> Callable:
    """Add the options used to build an UnpakConfig to a command."""

    @click.option(
        "-c",
        "--config",
        "config_file",
        default=None,
        type=click.Path(dir_okay=False, path_type=Path),
        help="Path to YAML config file",
    )
    @click.option("-d", "--dir", "cache_dir", default=None, help="Cache directory (default: .unpak)")
    @click.option(
        "-p",
        "--prefix",
        "prefixes",
        multiple=True,
        help="Logical directory prefix to download (repeatable)",
    )
    @click.option("--manifest-url", default=None, help="URL of the JSON manifest")
    @click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose mode.")
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


def build_config(
    *,
    config_file: Path | None,
    cache_dir: str | None,
    prefixes: tuple[str, ...],
    manifest_url: str | None,
) -> UnpakConfig:
    """Build the configuration from the config file and the command line flags."""
    overrides = {
        "cache_dir": cache_dir,
        "required_prefixes": list(prefixes) if prefixes else None,
        "manifest_url": manifest_url,
    }
    try:
        if config_file is not None:
            return load_config(config_file, **overrides)
        return config_from_dict({key: value for key, value in overrides.items() if value is not None})
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc


def make_client(config: UnpakConfig) -> HTTPDistributionClient:
    """Create the distribution client for the given configuration."""
    if not config.manifest_url:
        raise click.ClickException("no manifest URL: use --manifest-url or set manifest_url")
    return HTTPDistributionClient(config.manifest_url)
