"""Interface of the remote distribution service we synchronize from."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .manifest import RemoteFile, VersionManifest

ProgressCallback = Callable[[int, int], None]
"""Receives (bytes_downloaded, total_bytes) while a transfer is running."""


class DistributionClient(Protocol):
    """
    Represent the service distributing the archive volumes.

    Attributes:
        session_ready: whether the upstream session is authenticated, which
            is the precondition for looking up manifests.

    Methods:
        get_latest_version_and_manifest: return the manifest of the latest
            version of the given product and depot.
        download_file: download the full remote file to local_path,
            invoking on_progress while transferring.
    """

    @property
    def session_ready(self) -> bool: ...

    async def get_latest_version_and_manifest(
        self,
        product_id: int,
        depot_id: int,
    ) -> VersionManifest: ...

    async def download_file(
        self,
        product_id: int,
        depot_id: int,
        remote_file: RemoteFile,
        local_path: Path,
        on_progress: ProgressCallback | None = None,
    ) -> None: ...
