"""
State machine keeping the local cache in sync with the remote archive.

A sync pass goes through the following states:

    NOT_STARTED -> RESOLVING_MANIFEST -> FETCHING_INDEX
        -> SELECTING_VOLUMES -> FETCHING_VOLUMES -> READY

A failure aborts the pass and moves the machine back to NOT_STARTED.

At most one pass runs at any given time. Requesting a sync while a pass
is running queues exactly one follow-up pass, regardless of how many
requests arrive in the meanwhile.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from filelock import BaseFileLock, FileLock, Timeout

from .config import UnpakConfig, cache_lock_path, ensure_cache_dir
from .errors import NotReady, UnpakError
from .fetcher import VolumeFetcher
from .index import DIRECTORY_VOLUME_INDEX, ArchiveFormat, DirectoryIndex
from .manifest import ManifestResolver
from .selector import select_required_volumes
from .upstream import DistributionClient

log = logging.getLogger("unpak/coordinator")

ReadyListener = Callable[[], None]
ErrorListener = Callable[[UnpakError], None]

# Seconds between attempts to take the cache directory lock
LOCK_POLL_INTERVAL = 0.1


class SyncState(str, Enum):
    """State of the SyncCoordinator."""

    NOT_STARTED = "not_started"
    RESOLVING_MANIFEST = "resolving_manifest"
    FETCHING_INDEX = "fetching_index"
    SELECTING_VOLUMES = "selecting_volumes"
    FETCHING_VOLUMES = "fetching_volumes"
    READY = "ready"


async def _acquire(lock: BaseFileLock) -> None:
    # Poll without blocking so a cancelled pass never ends up owning the lock
    while True:
        try:
            lock.acquire(blocking=False)
            return
        except Timeout:
            log.debug("cache directory locked by another process, waiting")
            await asyncio.sleep(LOCK_POLL_INTERVAL)


def crossed_into_ready(previous: bool, current: bool) -> bool:
    """Return whether going from previous to current means becoming ready."""
    return current and not previous


@dataclass(kw_only=True)
class SyncPassResult:
    """Summary of a completed sync pass."""

    version_id: str
    required_volumes: list[int] = field(default_factory=list)
    downloaded: list[str] = field(default_factory=list)


class SyncCoordinator:
    """
    Synchronizes the volumes needed by the configured directory prefixes.

    Usage:

        coordinator = SyncCoordinator(config, client)
        coordinator.add_ready_listener(lambda: print("ready"))
        await coordinator.sync()
        data = coordinator.get_file("scripts/items/items_game.txt")

    The upstream integration should call notify_session_ready() when the
    session becomes authenticated and notify_content_updated() when the
    remote content changes.
    """

    def __init__(
        self,
        config: UnpakConfig,
        client: DistributionClient,
        *,
        archive_format: ArchiveFormat | None = None,
        show_progress: bool = True,
    ) -> None:
        self.config = config
        self.client = client
        self.archive_format = archive_format
        self.resolver = ManifestResolver(
            client,
            product_id=config.product_id,
            depot_id=config.depot_id,
        )
        self.fetcher = VolumeFetcher(
            client,
            product_id=config.product_id,
            depot_id=config.depot_id,
            show_progress=show_progress,
        )
        self.state = SyncState.NOT_STARTED
        self.ready = False
        self.last_error: UnpakError | None = None
        self.last_result: SyncPassResult | None = None
        self._index: DirectoryIndex | None = None
        self._ready_listeners: list[ReadyListener] = []
        self._error_listeners: list[ErrorListener] = []
        self._task: asyncio.Task[None] | None = None
        self._pending = False
        ensure_cache_dir(config)

    @property
    def session_ready(self) -> bool:
        """Whether the upstream session allows us to resolve manifests."""
        return self.client.session_ready

    @property
    def running(self) -> bool:
        """Whether a sync pass is currently in flight."""
        return self._task is not None and not self._task.done()

    def add_ready_listener(self, listener: ReadyListener) -> None:
        """Register a callback invoked each time we become ready."""
        self._ready_listeners.append(listener)

    def add_error_listener(self, listener: ErrorListener) -> None:
        """Register a callback invoked each time a sync pass fails."""
        self._error_listeners.append(listener)

    def start(self) -> asyncio.Task[None] | None:
        """
        Start synchronizing if the upstream session is ready.

        Returns the task running the sync, or None when we are waiting
        for notify_session_ready() to be called.
        """
        if not self.session_ready:
            log.debug("session not ready, waiting for logon")
            return None
        return self.request_sync()

    def notify_session_ready(self) -> asyncio.Task[None] | None:
        """Notify that the upstream session has become authenticated."""
        return self.start()

    def notify_content_updated(self) -> asyncio.Task[None]:
        """Notify that the remote content changed."""
        log.debug("upstream content updated")
        return self.request_sync()

    def request_sync(self) -> asyncio.Task[None]:
        """
        Schedule a sync pass and return the task running it.

        Must be called from within a running event loop. When a pass is
        already running, another pass is queued to run after it.
        """
        if self._task is not None and not self._task.done():
            if not self._pending:
                log.debug("sync pass in progress, queueing another one")
            self._pending = True
            return self._task
        self._pending = False
        self._task = asyncio.get_running_loop().create_task(self._drain())
        return self._task

    async def sync(self) -> bool:
        """Run a sync pass (or join the running one) and return whether we're ready."""
        await self.request_sync()
        return self.state == SyncState.READY

    def get_file(self, logical_path: str) -> bytes:
        """
        Return the bytes of the given archived file.

        Raises:
            NotReady: no sync pass has completed yet.
            FileNotFound: the file does not exist in the archive.
            VolumeMissingLocally: the volume containing the file is missing.
        """
        if not self.ready or self._index is None:
            raise NotReady(f"cannot read {logical_path}: not ready")
        return self._index.extract_file(logical_path)

    async def _drain(self) -> None:
        while True:
            self._pending = False
            await self._run_pass_reporting_errors()
            if not self._pending:
                return

    async def _run_pass_reporting_errors(self) -> None:
        log.info("checking for file updates")
        if not self.session_ready:
            log.warning("session not ready, can't check for updates")
            return
        self.last_error = None
        try:
            self.last_result = await self._run_locked_pass()
        except UnpakError as exc:
            log.error("sync pass failed: %s", exc)
            self._abort(exc)
            for listener in list(self._error_listeners):
                listener(exc)
        except BaseException:
            self._abort(None)
            raise

    def _abort(self, exc: UnpakError | None) -> None:
        self.last_error = exc
        self.state = SyncState.NOT_STARTED
        self.ready = False
        self._index = None

    async def _run_locked_pass(self) -> SyncPassResult:
        # Serialize passes from different processes sharing the cache dir
        lock = FileLock(str(cache_lock_path(self.config)), thread_local=False)
        await _acquire(lock)
        try:
            return await self._run_pass()
        finally:
            lock.release()

    async def _run_pass(self) -> SyncPassResult:
        self._set_state(SyncState.RESOLVING_MANIFEST)
        manifest = await self.resolver.resolve_latest_manifest()
        log.debug("obtained latest version: %s", manifest.version_id)
        dir_entry = manifest.find_entry(self.config.directory_volume_suffix())
        result = SyncPassResult(version_id=manifest.version_id)

        self._set_state(SyncState.FETCHING_INDEX)
        dir_path = self.config.directory_volume_path()
        if await self.fetcher.fetch_if_stale(
            dir_entry,
            dir_path,
            hash_algorithm=manifest.hash_algorithm,
            label="[index]",
        ):
            result.downloaded.append(dir_path.name)
        index = DirectoryIndex(archive_format=self.archive_format)
        tree = await asyncio.to_thread(index.load, dir_path)

        self._set_state(SyncState.SELECTING_VOLUMES)
        volumes = select_required_volumes(tree, self.config.required_prefixes)
        log.debug("required volumes: %s", ", ".join(str(v) for v in volumes) or "none")
        result.required_volumes = volumes

        self._set_state(SyncState.FETCHING_VOLUMES)
        # Files stored inside the directory volume need no extra download
        entries = [
            (volume, manifest.find_entry(self.config.volume_suffix(volume)))
            for volume in volumes
            if volume != DIRECTORY_VOLUME_INDEX
        ]
        for position, (volume, entry) in enumerate(entries, start=1):
            volume_path = index.volume_path(volume)
            if await self.fetcher.fetch_if_stale(
                entry,
                volume_path,
                hash_algorithm=manifest.hash_algorithm,
                label=f"[{position} / {len(entries)}]",
            ):
                result.downloaded.append(volume_path.name)

        self._index = index
        self._set_state(SyncState.READY)
        self._set_ready(True)
        return result

    def _set_state(self, state: SyncState) -> None:
        log.debug("state: %s -> %s", self.state.value, state.value)
        self.state = state

    def _set_ready(self, ready: bool) -> None:
        previous, self.ready = self.ready, ready
        if crossed_into_ready(previous, ready):
            log.info("ready")
            for listener in list(self._ready_listeners):
                listener()
