"""Tests for the unpak.fetcher module."""

import logging
from pathlib import Path

import pytest

from unpak.errors import DownloadFailed
from unpak.fetcher import VolumeFetcher, bytes_to_mb

_REMOTE = "game\\csgo\\pak01_002.vpk"


def _fetcher(client) -> VolumeFetcher:
    return VolumeFetcher(client, product_id=730, depot_id=2347770, show_progress=False)


def _entry(client, remote_path: str = _REMOTE):
    return client.manifest().find_entry(remote_path)


class TestFetchIfStale:
    """Tests for VolumeFetcher.fetch_if_stale."""

    @pytest.mark.asyncio
    async def test_downloads_missing_file(self, tmp_path: Path, make_client):
        client = make_client({_REMOTE: b"volume bytes"})
        dest = tmp_path / "pak01_002.vpk"

        downloaded = await _fetcher(client).fetch_if_stale(_entry(client), dest)

        assert downloaded is True
        assert dest.read_bytes() == b"volume bytes"
        assert client.downloads == [_REMOTE]

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path: Path, make_client):
        client = make_client({_REMOTE: b"volume bytes"})
        dest = tmp_path / "nested" / "dir" / "pak01_002.vpk"

        assert await _fetcher(client).fetch_if_stale(_entry(client), dest) is True
        assert dest.read_bytes() == b"volume bytes"

    @pytest.mark.asyncio
    async def test_skips_current_file(self, tmp_path: Path, make_client, caplog):
        client = make_client({_REMOTE: b"volume bytes"})
        dest = tmp_path / "pak01_002.vpk"
        dest.write_bytes(b"volume bytes")

        with caplog.at_level(logging.INFO):
            downloaded = await _fetcher(client).fetch_if_stale(_entry(client), dest, label="[1 / 1]")

        assert downloaded is False
        assert client.downloads == []
        assert "[1 / 1] Already downloaded pak01_002.vpk" in caplog.text

    @pytest.mark.asyncio
    async def test_replaces_stale_file(self, tmp_path: Path, make_client):
        client = make_client({_REMOTE: b"new bytes"})
        dest = tmp_path / "pak01_002.vpk"
        dest.write_bytes(b"old bytes")

        assert await _fetcher(client).fetch_if_stale(_entry(client), dest) is True
        assert dest.read_bytes() == b"new bytes"

    @pytest.mark.asyncio
    async def test_transport_failure(self, tmp_path: Path, make_client):
        client = make_client({_REMOTE: b"volume bytes"})
        client.failing.add(_REMOTE)
        dest = tmp_path / "pak01_002.vpk"

        with pytest.raises(DownloadFailed, match="connection reset"):
            await _fetcher(client).fetch_if_stale(_entry(client), dest)

        assert not dest.exists()
        # No leftover temporary directories either
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_transport_failure_keeps_previous_copy(self, tmp_path: Path, make_client):
        client = make_client({_REMOTE: b"new bytes"})
        client.failing.add(_REMOTE)
        dest = tmp_path / "pak01_002.vpk"
        dest.write_bytes(b"old bytes")

        with pytest.raises(DownloadFailed):
            await _fetcher(client).fetch_if_stale(_entry(client), dest)

        assert dest.read_bytes() == b"old bytes"

    @pytest.mark.asyncio
    async def test_hash_mismatch_after_download(self, tmp_path: Path, make_client):
        client = make_client({_REMOTE: b"volume bytes"})
        client.corrupting.add(_REMOTE)
        entry = _entry(client)
        dest = tmp_path / "pak01_002.vpk"

        with pytest.raises(DownloadFailed, match="sha1 mismatch"):
            await _fetcher(client).fetch_if_stale(entry, dest)

        assert not dest.exists()

    @pytest.mark.asyncio
    async def test_progress_is_forwarded_in_order(self, tmp_path: Path, make_client):
        content = b"0123456789"
        client = make_client({_REMOTE: content})
        calls: list[tuple[int, int]] = []

        await _fetcher(client).fetch_if_stale(
            _entry(client),
            tmp_path / "pak01_002.vpk",
            on_progress=lambda done, total: calls.append((done, total)),
        )

        assert calls == [(5, 10), (10, 10)]

    @pytest.mark.asyncio
    async def test_progress_bar(self, tmp_path: Path, make_client):
        client = make_client({_REMOTE: b"0123456789"})
        fetcher = VolumeFetcher(client, product_id=730, depot_id=2347770, show_progress=True)

        assert await fetcher.fetch_if_stale(_entry(client), tmp_path / "pak01_002.vpk") is True

    @pytest.mark.asyncio
    async def test_uses_manifest_hash_algorithm(self, tmp_path: Path, make_client):
        client = make_client({_REMOTE: b"volume bytes"}, hash_algorithm="sha256")
        dest = tmp_path / "pak01_002.vpk"

        fetcher = _fetcher(client)
        assert await fetcher.fetch_if_stale(_entry(client), dest, hash_algorithm="sha256") is True
        assert await fetcher.fetch_if_stale(_entry(client), dest, hash_algorithm="sha256") is False


def test_bytes_to_mb():
    assert bytes_to_mb(1_500_000) == "1.50"
    assert bytes_to_mb(0) == "0.00"
