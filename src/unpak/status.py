"""Compare the local cache directory against the latest remote manifest."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .config import UnpakConfig
from .index import DIRECTORY_VOLUME_INDEX, ArchiveFormat, DirectoryIndex
from .manifest import ManifestResolver, RemoteFile, VersionManifest
from .selector import select_required_volumes
from .upstream import DistributionClient
from .verify import compute_digest


class VolumeState(str, Enum):
    """State of a local volume compared with the manifest."""

    MISSING = "missing"
    HASH_MISMATCH = "hash_mismatch"
    MATCHING = "matching"


@dataclass(frozen=True, kw_only=True)
class VolumeStatus:
    """Single entry of the status report."""

    name: str
    volume_index: int
    size_bytes: int
    state: VolumeState


def _volume_state(path: Path, entry: RemoteFile, algorithm: str) -> VolumeState:
    if not path.exists():
        return VolumeState.MISSING
    try:
        digest = compute_digest(path, algorithm)
    except OSError:
        return VolumeState.MISSING
    except ValueError:
        # Unknown hash algorithm: the copy cannot be shown to match
        return VolumeState.HASH_MISMATCH
    return VolumeState.MATCHING if digest == entry.content_hash else VolumeState.HASH_MISMATCH


async def inspect_cache(
    config: UnpakConfig,
    client: DistributionClient,
    *,
    archive_format: ArchiveFormat | None = None,
) -> tuple[VersionManifest, list[VolumeStatus]]:
    """
    Return the latest manifest and the status of the required volumes.

    The directory volume comes first. When it is not current, we cannot
    know which volumes are required, so it is the only entry returned.
    """
    resolver = ManifestResolver(client, product_id=config.product_id, depot_id=config.depot_id)
    manifest = await resolver.resolve_latest_manifest()
    algorithm = manifest.hash_algorithm

    dir_entry = manifest.find_entry(config.directory_volume_suffix())
    dir_path = config.directory_volume_path()
    dir_state = await asyncio.to_thread(_volume_state, dir_path, dir_entry, algorithm)
    report = [
        VolumeStatus(
            name=dir_path.name,
            volume_index=DIRECTORY_VOLUME_INDEX,
            size_bytes=dir_entry.size_bytes,
            state=dir_state,
        )
    ]
    if dir_state != VolumeState.MATCHING:
        return manifest, report

    index = DirectoryIndex(archive_format=archive_format)
    tree = await asyncio.to_thread(index.load, dir_path)
    for volume in select_required_volumes(tree, config.required_prefixes):
        if volume == DIRECTORY_VOLUME_INDEX:
            continue
        entry = manifest.find_entry(config.volume_suffix(volume))
        path = index.volume_path(volume)
        state = await asyncio.to_thread(_volume_state, path, entry, algorithm)
        report.append(
            VolumeStatus(name=path.name, volume_index=volume, size_bytes=entry.size_bytes, state=state)
        )
    return manifest, report
