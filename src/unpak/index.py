"""
Directory index mapping logical paths to archive volumes.

The directory volume (e.g., `pak01_dir.vpk`) contains the tree of all the
files packed inside the archive. For each logical path, the tree tells us
which numbered volume (e.g., `pak01_002.vpk`) contains its bytes.

Files whose bytes live inside the directory volume itself use the
reserved volume index DIRECTORY_VOLUME_INDEX.
"""

from __future__ import annotations

import logging
import struct
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final, Protocol

import vpk

from .errors import CorruptIndex, FileNotFound, VolumeMissingLocally

log = logging.getLogger("unpak/index")

DIRECTORY_VOLUME_INDEX: Final[int] = 0x7FFF
DIRECTORY_VOLUME_SUFFIX: Final[str] = "_dir.vpk"


@dataclass(frozen=True, kw_only=True)
class DirectoryTree:
    """
    Read-only tree parsed from a directory volume.

    Attributes:
        entries: mapping from logical path to volume index
        handle: parser-specific object needed to extract files
    """

    entries: Mapping[str, int]
    handle: Any = None

    def __len__(self) -> int:
        return len(self.entries)


class ArchiveFormat(Protocol):
    """
    Represent the parser of the archive binary format.

    Methods:
        parse_directory_volume: parse the directory volume into a tree.
        extract_file: read the bytes of a logical path from its owning volume.
            DirectoryIndex checks that volume_path exists before calling it;
            formats that locate volumes on their own may ignore the argument.
    """

    def parse_directory_volume(self, local_path: Path) -> DirectoryTree: ...

    def extract_file(self, tree: DirectoryTree, volume_path: Path, logical_path: str) -> bytes: ...


class VPKArchiveFormat:
    """ArchiveFormat implementation for Valve VPK archives using `vpk`."""

    def parse_directory_volume(self, local_path: Path) -> DirectoryTree:
        pak = vpk.open(str(local_path))
        entries = {path: pak.get_file_meta(path)["archive_index"] for path in pak}
        return DirectoryTree(entries=MappingProxyType(entries), handle=pak)

    def extract_file(self, tree: DirectoryTree, volume_path: Path, logical_path: str) -> bytes:
        # vpk opens the numbered volume next to the directory volume
        return tree.handle.get_file(logical_path).read()


def volume_file_name(stem: str, volume_index: int) -> str:
    """Return the local name of a volume, e.g., `pak01_002.vpk`."""
    if volume_index == DIRECTORY_VOLUME_INDEX:
        return f"{stem}{DIRECTORY_VOLUME_SUFFIX}"
    return f"{stem}_{volume_index:03d}.vpk"


class DirectoryIndex:
    """Adapter answering questions about a loaded directory volume."""

    def __init__(self, *, archive_format: ArchiveFormat | None = None) -> None:
        self.archive_format = archive_format if archive_format is not None else VPKArchiveFormat()
        self.path: Path | None = None
        self.tree: DirectoryTree | None = None

    @property
    def loaded(self) -> bool:
        """Whether load() completed successfully."""
        return self.tree is not None

    def load(self, local_path: Path) -> DirectoryTree:
        """
        Parse the directory volume at local_path and return its tree.

        Raises:
            CorruptIndex: if the directory volume cannot be parsed.
        """
        log.debug("loading %s... start", local_path)
        try:
            tree = self.archive_format.parse_directory_volume(local_path)
        except (OSError, ValueError, KeyError, struct.error) as exc:
            log.debug("loading %s... failure: %s", local_path, exc)
            raise CorruptIndex(f"cannot parse directory volume {local_path}: {exc}") from exc
        self.path = local_path
        self.tree = tree
        log.debug("loading %s... ok (%d entries)", local_path, len(tree))
        return tree

    def lookup_volume(self, logical_path: str) -> int | None:
        """Return the index of the volume containing logical_path or None."""
        return self._require_tree().entries.get(logical_path)

    def volume_path(self, volume_index: int) -> Path:
        """Return the local path of the given volume."""
        if self.path is None:
            raise RuntimeError("directory index not loaded")
        stem = self.path.name.removesuffix(DIRECTORY_VOLUME_SUFFIX)
        return self.path.with_name(volume_file_name(stem, volume_index))

    def extract_file(self, logical_path: str) -> bytes:
        """
        Return the bytes of the file at logical_path.

        Raises:
            FileNotFound: logical_path is not in the tree.
            VolumeMissingLocally: the owning volume is not on disk.
        """
        tree = self._require_tree()
        volume_index = tree.entries.get(logical_path)
        if volume_index is None:
            raise FileNotFound(f"no such file in archive: {logical_path}")
        volume_path = self.volume_path(volume_index)
        if not volume_path.exists():
            raise VolumeMissingLocally(f"volume {volume_path.name} needed by {logical_path} is missing")
        return self.archive_format.extract_file(tree, volume_path, logical_path)

    def _require_tree(self) -> DirectoryTree:
        if self.tree is None:
            raise RuntimeError("directory index not loaded")
        return self.tree
