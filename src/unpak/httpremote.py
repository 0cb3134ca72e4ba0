"""
Distribution client fetching archives described by a JSON manifest over HTTP.

Manifest format:

{
  "v": 0,
  "products": {
    "730": {
      "depots": {
        "2347770": {
          "version": "7101234",
          "hash": "sha1",
          "files": {
            "game/csgo/pak01_dir.vpk": {
              "sha": "5fd924625f6ab16a19cc9807c7c506ae1813490e",
              "size": 1048576,
              "url": "https://example.com/7101234/pak01_dir.vpk"
            }
          }
        }
      }
    }
  }
}

File URLs may be relative, in which case they are resolved against the
manifest URL.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urljoin

import dacite
import requests

from .errors import ProductMetadataMissing, UpstreamUnavailable
from .manifest import DEFAULT_HASH_ALGORITHM, RemoteFile, VersionManifest
from .upstream import ProgressCallback

log = logging.getLogger("unpak/httpremote")

_CHUNK_SIZE = 1 << 20


@dataclass(frozen=True, kw_only=True)
class FileEntry:
    """Entry in the manifest for a single remote file."""

    sha: str
    size: int
    url: str


@dataclass(frozen=True, kw_only=True)
class DepotEntry:
    """Latest version of a depot."""

    version: str
    hash: str = DEFAULT_HASH_ALGORITHM
    files: dict[str, FileEntry] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class ProductEntry:
    """Depots belonging to a product."""

    depots: dict[str, DepotEntry] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class Manifest:
    """Top-level manifest document."""

    v: int
    products: dict[str, ProductEntry] = field(default_factory=dict)

    def __post_init__(self):
        if self.v != 0:
            raise ValueError(f"unsupported manifest version {self.v}")


def parse_manifest(data: object) -> Manifest:
    """Parse the decoded JSON manifest."""
    if not isinstance(data, dict):
        raise ValueError("manifest must be a JSON object")
    return dacite.from_dict(Manifest, data)


class HTTPDistributionClient:
    """
    DistributionClient downloading over HTTP(S).

    There is no authentication, hence the session is always ready.
    """

    def __init__(
        self,
        manifest_url: str,
        *,
        session: requests.Session | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.manifest_url = manifest_url
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    @property
    def session_ready(self) -> bool:
        return True

    async def get_latest_version_and_manifest(
        self,
        product_id: int,
        depot_id: int,
    ) -> VersionManifest:
        manifest = await asyncio.to_thread(self._fetch_manifest)
        try:
            product = manifest.products[str(product_id)]
        except KeyError as exc:
            raise ProductMetadataMissing(f"no product {product_id} in manifest") from exc
        try:
            depot = product.depots[str(depot_id)]
        except KeyError as exc:
            raise ProductMetadataMissing(
                f"no depot {depot_id} for product {product_id} in manifest"
            ) from exc
        files = tuple(
            RemoteFile(
                remote_path=path,
                content_hash=entry.sha,
                size_bytes=entry.size,
                url=urljoin(self.manifest_url, entry.url),
            )
            for path, entry in depot.files.items()
        )
        return VersionManifest(version_id=depot.version, files=files, hash_algorithm=depot.hash)

    async def download_file(
        self,
        product_id: int,
        depot_id: int,
        remote_file: RemoteFile,
        local_path: Path,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        _ = product_id, depot_id
        if remote_file.url is None:
            raise ValueError(f"no URL for {remote_file.remote_path}")
        await asyncio.to_thread(
            self._download,
            remote_file.url,
            remote_file.size_bytes,
            local_path,
            on_progress,
        )

    def _fetch_manifest(self) -> Manifest:
        log.debug("fetching %s... start", self.manifest_url)
        try:
            resp = self.session.get(self.manifest_url, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as exc:
            raise UpstreamUnavailable(f"cannot fetch {self.manifest_url}: {exc}") from exc
        try:
            manifest = parse_manifest(data)
        except (dacite.DaciteError, ValueError) as exc:
            raise ProductMetadataMissing(f"invalid manifest at {self.manifest_url}: {exc}") from exc
        log.debug("fetching %s... ok", self.manifest_url)
        return manifest

    def _download(
        self,
        url: str,
        expected_size: int,
        local_path: Path,
        on_progress: ProgressCallback | None,
    ) -> None:
        with self.session.get(url, stream=True, timeout=self.timeout) as resp:
            resp.raise_for_status()
            content_length = resp.headers.get("Content-Length")
            total = int(content_length) if content_length is not None else expected_size
            downloaded = 0
            with open(local_path, "wb") as fp:
                for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                    fp.write(chunk)
                    downloaded += len(chunk)
                    if on_progress is not None:
                        on_progress(downloaded, total)
