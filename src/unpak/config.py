"""Configuration of the unpak synchronizer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

import dacite
import yaml

from .errors import ConfigurationError

DEFAULT_PRODUCT_ID: Final[int] = 730
DEFAULT_DEPOT_ID: Final[int] = 2347770
DEFAULT_ARCHIVE_PREFIX: Final[str] = "csgo/pak01"
CACHE_DOTLOCK_FILENAME: Final[str] = ".lock"


def cache_dir_or_default(cache_dir: str | Path | None) -> Path:
    """
    Return cache_dir as a Path if not empty. Otherwise return the
    default value for the cache_dir (i.e., `./.unpak` like git).
    """
    return Path.cwd() / ".unpak" if cache_dir is None else Path(cache_dir)


@dataclass(frozen=True, kw_only=True)
class UnpakConfig:
    """
    Configuration of a SyncCoordinator.

    Attributes:
        required_prefixes: logical directory prefixes we need files from
        cache_dir: directory where we keep the downloaded volumes
        product_id: product identifier on the distribution service
        depot_id: depot identifier on the distribution service
        archive_prefix: remote path of the archive without the
            `_dir.vpk` or `_NNN.vpk` suffix (e.g., `csgo/pak01`)
        manifest_url: URL of the manifest for the HTTP distribution client
        log_level: name of the logging level used by the CLI
    """

    required_prefixes: tuple[str, ...]
    cache_dir: Path = field(default_factory=lambda: cache_dir_or_default(None))
    product_id: int = DEFAULT_PRODUCT_ID
    depot_id: int = DEFAULT_DEPOT_ID
    archive_prefix: str = DEFAULT_ARCHIVE_PREFIX
    manifest_url: str | None = None
    log_level: str = "INFO"

    def __post_init__(self):
        if isinstance(self.required_prefixes, str):
            raise ConfigurationError("required_prefixes must be a sequence of strings")
        if not self.required_prefixes:
            raise ConfigurationError("must supply directories to download")
        if any(not prefix for prefix in self.required_prefixes):
            raise ConfigurationError("required_prefixes must not contain empty prefixes")
        if self.cache_dir.exists() and not self.cache_dir.is_dir():
            raise ConfigurationError(f"cache_dir is not a directory: {self.cache_dir}")
        if not self.archive_prefix.strip("/\\"):
            raise ConfigurationError("archive_prefix must not be empty")
        if logging.getLevelName(self.log_level.upper()) not in (
            logging.DEBUG,
            logging.INFO,
            logging.WARNING,
            logging.ERROR,
            logging.CRITICAL,
        ):
            raise ConfigurationError(f"invalid log_level: {self.log_level}")

    @property
    def archive_stem(self) -> str:
        """Return the last component of archive_prefix (e.g., `pak01`)."""
        return self.archive_prefix.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]

    def directory_volume_suffix(self) -> str:
        """Return the suffix identifying the directory volume in the manifest."""
        return f"{self.archive_prefix}_dir.vpk"

    def volume_suffix(self, volume_index: int) -> str:
        """Return the suffix identifying the given volume in the manifest."""
        return f"{self.archive_prefix}_{volume_index:03d}.vpk"

    def directory_volume_path(self) -> Path:
        """Return the local path of the directory volume."""
        return self.cache_dir / f"{self.archive_stem}_dir.vpk"


def load_config(config_path: Path, **overrides: object) -> UnpakConfig:
    """
    Load the configuration from a YAML file.

    Keyword arguments whose value is not None override the file values.

    Raises:
        ConfigurationError: if the file is missing or invalid.
    """
    try:
        content = config_path.read_text()
    except FileNotFoundError as exc:
        raise ConfigurationError(f"config not found: {config_path}") from exc

    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError("config must be a mapping.")

    data.update({key: value for key, value in overrides.items() if value is not None})
    return config_from_dict(data)


def config_from_dict(data: dict) -> UnpakConfig:
    """Build an UnpakConfig from plain data (e.g., parsed YAML)."""
    try:
        return dacite.from_dict(
            UnpakConfig,
            data,
            config=dacite.Config(type_hooks={Path: Path}, cast=[tuple], strict=True),
        )
    except (dacite.DaciteError, TypeError) as exc:
        raise ConfigurationError(f"invalid config: {exc}") from exc


def ensure_cache_dir(config: UnpakConfig) -> Path:
    """Create the cache directory if needed and return it."""
    config.cache_dir.mkdir(parents=True, exist_ok=True)
    return config.cache_dir


def cache_lock_path(config: UnpakConfig) -> Path:
    """Return the path of the lock file serializing sync passes."""
    return config.cache_dir / CACHE_DOTLOCK_FILENAME
