"""Module downloading remote files unless the local copy is already current."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from tempfile import TemporaryDirectory

from tqdm import tqdm

from .errors import DownloadFailed
from .manifest import DEFAULT_HASH_ALGORITHM, RemoteFile
from .upstream import DistributionClient, ProgressCallback
from .verify import compute_digest, is_current

log = logging.getLogger("unpak/fetcher")

# Emit a progress log line every time we cross this many percent points
_LOG_PROGRESS_STEP = 10


def bytes_to_mb(size: int) -> str:
    """Format a size in bytes as decimal megabytes with two digits."""
    return f"{size / 1_000_000:.2f}"


class VolumeFetcher:
    """
    Downloads files listed in a manifest into the local cache directory.

    Downloads go to a temporary directory next to the destination and the
    result is moved in place with `os.replace()` only after its content
    hash matches the manifest, so an aborted transfer never leaves a file
    that looks complete.
    """

    def __init__(
        self,
        client: DistributionClient,
        *,
        product_id: int,
        depot_id: int,
        show_progress: bool = True,
    ) -> None:
        self.client = client
        self.product_id = product_id
        self.depot_id = depot_id
        self.show_progress = show_progress

    async def fetch_if_stale(
        self,
        remote_file: RemoteFile,
        local_path: Path,
        *,
        hash_algorithm: str = DEFAULT_HASH_ALGORITHM,
        label: str = "",
        on_progress: ProgressCallback | None = None,
    ) -> bool:
        """
        Make sure local_path contains the bytes of remote_file.

        Returns True if we downloaded the file and False if the local copy
        was already current.

        Raises:
            DownloadFailed: the transfer failed or produced the wrong bytes.
        """
        current = await asyncio.to_thread(
            is_current, local_path, remote_file.content_hash, hash_algorithm
        )
        if current:
            log.info("%sAlready downloaded %s", _prefix(label), local_path.name)
            return False

        log.info(
            "%sDownloading %s - %s MB",
            _prefix(label),
            local_path.name,
            bytes_to_mb(remote_file.size_bytes),
        )
        local_path.parent.mkdir(parents=True, exist_ok=True)
        # Same directory as the destination, so os.replace() stays atomic
        with TemporaryDirectory(dir=local_path.parent) as tmp_dir:
            tmp_file = Path(tmp_dir) / local_path.name
            await self._download(remote_file, tmp_file, label, on_progress)
            await self._validate(remote_file, tmp_file, hash_algorithm)
            os.replace(tmp_file, local_path)

        log.info("%sDownloaded %s", _prefix(label), local_path.name)
        return True

    async def _download(
        self,
        remote_file: RemoteFile,
        tmp_file: Path,
        label: str,
        on_progress: ProgressCallback | None,
    ) -> None:
        reporter = _ProgressReporter(
            name=tmp_file.name,
            label=label,
            total=remote_file.size_bytes,
            show_bar=self.show_progress,
            forward=on_progress,
        )
        try:
            with reporter:
                await self.client.download_file(
                    self.product_id,
                    self.depot_id,
                    remote_file,
                    tmp_file,
                    reporter,
                )
        except DownloadFailed:
            raise
        except Exception as exc:
            raise DownloadFailed(f"cannot download {remote_file.remote_path}: {exc}") from exc

    async def _validate(self, remote_file: RemoteFile, tmp_file: Path, hash_algorithm: str) -> None:
        log.debug("validating %s... start", remote_file.remote_path)
        try:
            digest = await asyncio.to_thread(compute_digest, tmp_file, hash_algorithm)
        except (OSError, ValueError) as exc:
            raise DownloadFailed(f"cannot hash {remote_file.remote_path}: {exc}") from exc
        if digest != remote_file.content_hash:
            raise DownloadFailed(
                f"{hash_algorithm} mismatch for {remote_file.remote_path}: "
                f"expected {remote_file.content_hash}, got {digest}"
            )
        log.debug("validating %s... ok", remote_file.remote_path)


class _ProgressReporter:
    """Progress callback rendering a tqdm bar and periodic log lines."""

    def __init__(
        self,
        *,
        name: str,
        label: str,
        total: int,
        show_bar: bool,
        forward: ProgressCallback | None,
    ) -> None:
        self.name = name
        self.label = label
        self.total = total
        self.show_bar = show_bar
        self.forward = forward
        self.pbar: tqdm | None = None
        self.last_step = 0

    def __enter__(self) -> _ProgressReporter:
        if self.show_bar:
            self.pbar = tqdm(
                total=self.total or None,
                unit="B",
                unit_scale=True,
                unit_divisor=1024,
                desc=self.name,
                leave=True,
            )
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if self.pbar is not None:
            self.pbar.close()
        return False

    def __call__(self, downloaded: int, total: int) -> None:
        if self.pbar is not None:
            if total and self.pbar.total != total:
                self.pbar.total = total
            self.pbar.update(downloaded - self.pbar.n)
        if total > 0:
            step = (downloaded * 100 // total) // _LOG_PROGRESS_STEP
            if step > self.last_step:
                self.last_step = step
                log.debug(
                    "%s%.2f%% - %s / %s MB",
                    _prefix(self.label),
                    downloaded * 100 / total,
                    bytes_to_mb(downloaded),
                    bytes_to_mb(total),
                )
        if self.forward is not None:
            self.forward(downloaded, total)


def _prefix(label: str) -> str:
    return f"{label} " if label else ""
