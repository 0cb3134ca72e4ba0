"""Module resolving the latest version manifest from the distribution service."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .errors import ManifestEntryMissing, UnpakError, UpstreamUnavailable
from .upstream import DistributionClient

log = logging.getLogger("unpak/manifest")

DEFAULT_HASH_ALGORITHM = "sha1"


@dataclass(frozen=True, kw_only=True)
class RemoteFile:
    """Entry in the manifest for a single remote file."""

    remote_path: str
    content_hash: str
    size_bytes: int
    url: str | None = None

    @property
    def name(self) -> str:
        """Return the last component of the remote path."""
        return normalize_remote_path(self.remote_path).rsplit("/", 1)[-1]


@dataclass(frozen=True, kw_only=True)
class VersionManifest:
    """Files composing a specific version of the remote content."""

    version_id: str
    files: tuple[RemoteFile, ...] = field(default_factory=tuple)
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM

    def find_entry(self, suffix: str) -> RemoteFile:
        """
        Return the first file whose remote path ends with the given suffix.

        Both the remote paths and the suffix are normalized to use forward
        slashes, since some services use backslashes as separators.

        Raises:
            ManifestEntryMissing: if no file matches.
        """
        wanted = normalize_remote_path(suffix)
        for entry in self.files:
            path = normalize_remote_path(entry.remote_path)
            if path == wanted or path.endswith("/" + wanted):
                return entry
        raise ManifestEntryMissing(f"no manifest entry for {suffix} in version {self.version_id}")


def normalize_remote_path(path: str) -> str:
    """Convert a remote path to use forward slashes."""
    return path.replace("\\", "/")


class ManifestResolver:
    """Asks the distribution service for the latest version manifest."""

    def __init__(self, client: DistributionClient, *, product_id: int, depot_id: int) -> None:
        self.client = client
        self.product_id = product_id
        self.depot_id = depot_id

    async def resolve_latest_manifest(self) -> VersionManifest:
        """
        Return the manifest of the latest version.

        The upstream session must be ready: calling this method otherwise
        is a programming error and raises RuntimeError.

        Raises:
            UpstreamUnavailable: the service cannot be reached.
            ProductMetadataMissing: the product or depot is unknown.
        """
        if not self.client.session_ready:
            raise RuntimeError("resolve_latest_manifest called before the session is ready")
        log.debug("resolving manifest for %d/%d... start", self.product_id, self.depot_id)
        try:
            manifest = await self.client.get_latest_version_and_manifest(
                self.product_id,
                self.depot_id,
            )
        except UnpakError:
            raise
        except Exception as exc:
            log.debug("resolving manifest for %d/%d... failure: %s", self.product_id, self.depot_id, exc)
            raise UpstreamUnavailable(
                f"cannot resolve manifest for {self.product_id}/{self.depot_id}: {exc}"
            ) from exc
        log.debug(
            "resolving manifest for %d/%d... ok (version %s, %d files)",
            self.product_id,
            self.depot_id,
            manifest.version_id,
            len(manifest.files),
        )
        return manifest
