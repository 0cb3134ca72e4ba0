"""Tests for the unpak.status module."""

import dataclasses
from pathlib import Path

import pytest

from unpak.config import UnpakConfig
from unpak.coordinator import SyncCoordinator
from unpak.errors import ManifestEntryMissing
from unpak.index import DIRECTORY_VOLUME_INDEX
from unpak.status import VolumeState, inspect_cache


def _config(tmp_path: Path) -> UnpakConfig:
    return UnpakConfig(cache_dir=tmp_path, required_prefixes=("scripts",))


class TestInspectCache:
    """Tests for inspect_cache."""

    @pytest.mark.asyncio
    async def test_empty_cache(self, tmp_path, make_client, fake_format, archive_files):
        client = make_client(archive_files)

        manifest, report = await inspect_cache(_config(tmp_path), client, archive_format=fake_format)

        assert manifest.version_id == "1000"
        assert len(report) == 1
        assert report[0].name == "pak01_dir.vpk"
        assert report[0].volume_index == DIRECTORY_VOLUME_INDEX
        assert report[0].state == VolumeState.MISSING
        assert client.downloads == []

    @pytest.mark.asyncio
    async def test_synced_cache(self, tmp_path, make_client, fake_format, archive_files):
        client = make_client(archive_files)
        config = _config(tmp_path)
        await SyncCoordinator(config, client, archive_format=fake_format, show_progress=False).sync()
        (tmp_path / "pak01_003.vpk").write_bytes(b"tampered")
        client.downloads.clear()

        _, report = await inspect_cache(config, client, archive_format=fake_format)

        assert [(entry.name, entry.state) for entry in report] == [
            ("pak01_dir.vpk", VolumeState.MATCHING),
            ("pak01_002.vpk", VolumeState.MATCHING),
            ("pak01_003.vpk", VolumeState.HASH_MISMATCH),
        ]
        assert client.downloads == []

    @pytest.mark.asyncio
    async def test_missing_directory_entry(self, tmp_path, make_client, fake_format, archive_files):
        del archive_files["game\\csgo\\pak01_dir.vpk"]
        with pytest.raises(ManifestEntryMissing):
            await inspect_cache(_config(tmp_path), make_client(archive_files), archive_format=fake_format)

    @pytest.mark.asyncio
    async def test_unknown_hash_algorithm(self, tmp_path, make_client, fake_format, archive_files):
        client = make_client(archive_files)
        manifest = client.manifest()
        client.manifest = lambda: dataclasses.replace(manifest, hash_algorithm="no-such-hash")
        (tmp_path / "pak01_dir.vpk").write_bytes(archive_files["game\\csgo\\pak01_dir.vpk"])

        _, report = await inspect_cache(_config(tmp_path), client, archive_format=fake_format)

        assert [(entry.name, entry.state) for entry in report] == [
            ("pak01_dir.vpk", VolumeState.HASH_MISMATCH),
        ]
