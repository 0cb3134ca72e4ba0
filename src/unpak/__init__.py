"""Selective incremental synchronization of VPK archive volumes.

This library keeps a local, partial mirror of a remote versioned archive
fresh. It downloads only the volumes containing files under the requested
logical directory prefixes, and only when the local copy's content hash
no longer matches the remote manifest.
"""

from .config import UnpakConfig, load_config
from .coordinator import SyncCoordinator, SyncPassResult, SyncState
from .errors import (
    ConfigurationError,
    CorruptIndex,
    DownloadFailed,
    FileNotFound,
    ManifestEntryMissing,
    NotReady,
    ProductMetadataMissing,
    UnpakError,
    UpstreamUnavailable,
    VolumeMissingLocally,
)
from .httpremote import HTTPDistributionClient
from .index import DirectoryIndex, DirectoryTree
from .manifest import RemoteFile, VersionManifest
from .selector import select_required_volumes
from .upstream import DistributionClient

try:
    from ._version import __version__
except ImportError:  # pragma: no cover - build-time generated
    __version__ = "0.0.0"

__all__ = [
    "ConfigurationError",
    "CorruptIndex",
    "DirectoryIndex",
    "DirectoryTree",
    "DistributionClient",
    "DownloadFailed",
    "FileNotFound",
    "HTTPDistributionClient",
    "ManifestEntryMissing",
    "NotReady",
    "ProductMetadataMissing",
    "RemoteFile",
    "SyncCoordinator",
    "SyncPassResult",
    "SyncState",
    "UnpakConfig",
    "UnpakError",
    "UpstreamUnavailable",
    "VersionManifest",
    "VolumeMissingLocally",
    "load_config",
    "select_required_volumes",
    "__version__",
]
