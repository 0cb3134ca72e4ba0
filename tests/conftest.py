"""Shared pytest fixtures for unpak tests."""

from __future__ import annotations

import asyncio
import hashlib
import json
from pathlib import Path
from types import MappingProxyType

import pytest

from unpak.index import DIRECTORY_VOLUME_INDEX, DirectoryTree
from unpak.manifest import RemoteFile, VersionManifest

REMOTE_PREFIX = "game\\csgo\\pak01"


class FakeArchiveFormat:
    """
    ArchiveFormat storing archives as JSON documents.

    The directory volume maps each logical path to [volume_index, content]
    and each numbered volume maps logical paths to their content. Content
    for DIRECTORY_VOLUME_INDEX entries lives in the directory volume.
    """

    def parse_directory_volume(self, local_path: Path) -> DirectoryTree:
        data = json.loads(local_path.read_text())
        entries = {path: int(value[0]) for path, value in data.items()}
        return DirectoryTree(entries=MappingProxyType(entries), handle=data)

    def extract_file(self, tree: DirectoryTree, volume_path: Path, logical_path: str) -> bytes:
        if tree.entries[logical_path] == DIRECTORY_VOLUME_INDEX:
            return tree.handle[logical_path][1].encode()
        return json.loads(volume_path.read_text())[logical_path].encode()


def build_archive(files: dict[str, tuple[int, str]], *, prefix: str = REMOTE_PREFIX) -> dict[str, bytes]:
    """Return the remote files (path -> bytes) of an archive with the given files."""
    directory = {path: [volume, content if volume == DIRECTORY_VOLUME_INDEX else ""]
                 for path, (volume, content) in files.items()}
    remote = {f"{prefix}_dir.vpk": json.dumps(directory, sort_keys=True).encode()}
    volumes: dict[int, dict[str, str]] = {}
    for path, (volume, content) in files.items():
        if volume != DIRECTORY_VOLUME_INDEX:
            volumes.setdefault(volume, {})[path] = content
    for volume, contents in volumes.items():
        remote[f"{prefix}_{volume:03d}.vpk"] = json.dumps(contents, sort_keys=True).encode()
    return remote


class FakeDistributionClient:
    """DistributionClient serving in-memory files."""

    def __init__(
        self,
        files: dict[str, bytes],
        *,
        version_id: str = "1000",
        session_ready: bool = True,
        hash_algorithm: str = "sha1",
    ) -> None:
        self.files = dict(files)
        self.version_id = version_id
        self.session_ready = session_ready
        self.hash_algorithm = hash_algorithm
        self.manifest_error: Exception | None = None
        self.failing: set[str] = set()
        self.corrupting: set[str] = set()
        self.manifest_calls = 0
        self.downloads: list[str] = []
        self.active_downloads = 0
        self.max_active_downloads = 0

    def manifest(self) -> VersionManifest:
        return VersionManifest(
            version_id=self.version_id,
            files=tuple(
                RemoteFile(
                    remote_path=path,
                    content_hash=hashlib.new(self.hash_algorithm, content).hexdigest(),
                    size_bytes=len(content),
                )
                for path, content in self.files.items()
            ),
            hash_algorithm=self.hash_algorithm,
        )

    async def get_latest_version_and_manifest(self, product_id: int, depot_id: int) -> VersionManifest:
        _ = product_id, depot_id
        self.manifest_calls += 1
        await asyncio.sleep(0)
        if self.manifest_error is not None:
            raise self.manifest_error
        return self.manifest()

    async def download_file(self, product_id, depot_id, remote_file, local_path, on_progress=None):
        _ = product_id, depot_id
        self.downloads.append(remote_file.remote_path)
        self.active_downloads += 1
        self.max_active_downloads = max(self.max_active_downloads, self.active_downloads)
        try:
            content = self.files[remote_file.remote_path]
            half = len(content) // 2
            local_path.write_bytes(content[:half])
            if on_progress is not None:
                on_progress(half, len(content))
            await asyncio.sleep(0.01)
            if remote_file.remote_path in self.failing:
                raise ConnectionError("connection reset by peer")
            if remote_file.remote_path in self.corrupting:
                content = b"garbage" + content
            local_path.write_bytes(content)
            if on_progress is not None:
                on_progress(len(content), len(content))
        finally:
            self.active_downloads -= 1


@pytest.fixture
def fake_format() -> FakeArchiveFormat:
    """Return an archive format backed by JSON files."""
    return FakeArchiveFormat()


@pytest.fixture
def archive_files() -> dict[str, bytes]:
    """Return a small archive spread across three volumes."""
    return build_archive(
        {
            "scripts/items/items_game.txt": (2, "items"),
            "scripts/items/items_game_cdn.txt": (2, "cdn"),
            "scripts/weapons.txt": (3, "weapons"),
            "sound/x.wav": (5, "wav"),
            "resource/flash/econ/default.png": (7, "png"),
            "readme.txt": (DIRECTORY_VOLUME_INDEX, "embedded"),
        }
    )


@pytest.fixture
def make_archive():
    """Return the build_archive helper."""
    return build_archive


@pytest.fixture
def make_client():
    """Return a factory for FakeDistributionClient instances."""
    return FakeDistributionClient
