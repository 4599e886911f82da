"""Reconciliation between a project's store, its local cache and the remote store.

Local saves and incoming remote snapshots are messages on one ordered
``asyncio.Queue`` per project, handled by a single worker task:

* ``SaveCommand`` -- the store changed locally. The latest snapshot is
  always written to the local cache; it is sent to the remote store unless
  it is byte-identical to what the remote already holds, or we are offline.
* ``RemoteSnapshot`` -- another device (or our own save, echoed back)
  changed the remote document. Echoes are ignored. Months edited locally and
  not yet confirmed keep their local version; every other month is taken
  from the snapshot, and the merged state is saved back if it differs.
* ``Reconnect`` -- connectivity came back; unconfirmed local state is retried.

Nothing here blocks a caller on the remote store: mutations only enqueue.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

from budgetsync.codec import (
    deserialize_project_data,
    merge_project_data,
    parse_project_data,
    serialize_project_data,
)
from budgetsync.domain import project_data_to_dict
from budgetsync.errors import PersistenceFailure
from budgetsync.events import DATA_CHANGED, SYNC_STATUS_CHANGED, Event, EventBus, event_bus
from budgetsync.storage import LocalCache, RemoteStore
from budgetsync.store import LOCAL, MonthlyDataStore

logger = logging.getLogger(__name__)

SYNCED = "synced"
PENDING = "pending"
OFFLINE = "offline"
ERROR = "error"


def cache_key(project_id: str) -> str:
    return f"expense-project-{project_id}"


@dataclass(frozen=True)
class SaveCommand:
    revision: int


@dataclass(frozen=True)
class RemoteSnapshot:
    payload: Optional[dict]
    seq: int = 0


@dataclass(frozen=True)
class Reconnect:
    pass


Message = Union[SaveCommand, RemoteSnapshot, Reconnect]


class ProjectSync:

    def __init__(
        self,
        store: MonthlyDataStore,
        remote: RemoteStore,
        cache: LocalCache,
        *,
        bus: Optional[EventBus] = None,
        online: bool = True,
        last_persisted: Optional[str] = None,
    ):
        self.store = store
        self.remote = remote
        self.cache = cache
        self.online = online
        self.status = SYNCED if online else OFFLINE
        self._bus = bus if bus is not None else event_bus
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._unsubscribe_remote = None
        # canonical JSON the remote store is known to hold
        self._last_persisted: Optional[str] = last_persisted
        self._last_cached: Optional[str] = None
        self._pending_saves = 0
        self._dirty = False
        # months changed locally since the remote store last confirmed them
        self._local_months: set = set()
        # arrival counter; snapshots that arrived before our last save completed are stale
        self._seq = 0
        self._saved_through = 0

    @property
    def project_id(self) -> str:
        return self.store.project_id

    @property
    def last_persisted(self) -> Optional[str]:
        return self._last_persisted

    @property
    def has_unsaved_changes(self) -> bool:
        return self._dirty or self._pending_saves > 0

    # lifecycle

    async def start(self, load: bool = True) -> None:
        """Load cache and remote, merge them into the store, then begin listening.

        With ``load=False`` the store's current contents are taken as-is.
        """
        if load:
            await self._load()
        self._bus.subscribe(DATA_CHANGED, self._on_data_changed)
        self._unsubscribe_remote = self.remote.subscribe(self.project_id, self._on_remote_update)
        self._worker = asyncio.create_task(self._run())
        logger.info("Sync started for project %s (%d months)", self.project_id, len(self.store.available_months()))

        if self._dirty and self.online:
            self._enqueue_save()

    async def _load(self) -> None:
        local = deserialize_project_data(self.cache.get(cache_key(self.project_id)))

        payload = None
        remote_loaded = False
        if self.online:
            try:
                payload = await self.remote.load_project_data(self.project_id)
                remote_loaded = True
            except PersistenceFailure as e:
                logger.warning("Starting %s from local cache only: %s", self.project_id, e)
                self._set_status(ERROR)
        remote = parse_project_data(payload, "remote snapshot")

        merged = merge_project_data(local, remote)
        self.store.replace_all(merged)
        content = serialize_project_data(merged)
        self._write_cache(content)

        if remote_loaded and payload is not None:
            self._last_persisted = serialize_project_data(remote)
        if merged and content != self._last_persisted:
            # the cache holds months the remote store has not seen
            self._dirty = True

    def request_save(self) -> None:
        """Queue a save of the store's current state."""
        self._local_months.update(self.store.available_months())
        self._write_cache(serialize_project_data(self.store.snapshot()))
        self._enqueue_save()

    async def flush(self) -> None:
        """Wait until every queued message has been handled."""
        await self._queue.join()

    async def stop(self) -> None:
        self._bus.unsubscribe(DATA_CHANGED, self._on_data_changed)
        if self._unsubscribe_remote is not None:
            self._unsubscribe_remote()
            self._unsubscribe_remote = None
        if self._worker is not None:
            await self._queue.join()
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    async def set_online(self, online: bool) -> None:
        self.online = online
        if online:
            self._queue.put_nowait(Reconnect())
        else:
            self._set_status(OFFLINE)

    # inbound

    def _on_data_changed(self, event: Event, payload: dict) -> dict:
        if payload.get("store") is not self.store or payload.get("origin") != LOCAL:
            return {}
        if payload.get("month"):
            self._local_months.add(payload["month"])
        self._write_cache(serialize_project_data(self.store.snapshot()))
        self._enqueue_save()
        return {"queued": True}

    def _on_remote_update(self, payload: Optional[dict]) -> None:
        self._seq += 1
        self._queue.put_nowait(RemoteSnapshot(payload, self._seq))

    def _enqueue_save(self) -> None:
        self._pending_saves += 1
        if self.status == SYNCED:
            self._set_status(PENDING)
        self._queue.put_nowait(SaveCommand(self.store.revision))

    # worker

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                if isinstance(message, SaveCommand):
                    await self._handle_save(message)
                elif isinstance(message, RemoteSnapshot):
                    self._handle_remote(message)
                elif isinstance(message, Reconnect):
                    self._handle_reconnect()
            except Exception:
                logger.exception("Sync message %r failed for project %s", message, self.project_id)
            finally:
                self._queue.task_done()

    async def _handle_save(self, command: SaveCommand) -> None:
        self._pending_saves -= 1
        data = self.store.snapshot()
        content = serialize_project_data(data)
        self._write_cache(content)

        if content == self._last_persisted:
            logger.debug("Skipping redundant save of %s (revision %d)", self.project_id, command.revision)
            self._dirty = False
            self._local_months.clear()
            self._settle()
            return
        if not self.online:
            self._dirty = True
            self._set_status(OFFLINE)
            return

        try:
            await self.remote.save_project_data(self.project_id, project_data_to_dict(data))
        except PersistenceFailure as e:
            logger.warning("Remote save failed, kept in local cache: %s", e)
            self._dirty = True
            self._set_status(ERROR)
            return

        self._last_persisted = content
        self._saved_through = self._seq
        current = self.store.snapshot()
        self._local_months = {k for k in self._local_months if current.get(k) != data.get(k)}
        self._dirty = False
        self._settle()

    def _handle_remote(self, message: RemoteSnapshot) -> None:
        if message.payload is None:
            logger.debug("Remote document for %s is absent", self.project_id)
            return
        remote = parse_project_data(message.payload, "remote snapshot")
        content = serialize_project_data(remote)
        if content == self._last_persisted:
            logger.debug("Ignoring echoed snapshot for %s", self.project_id)
            return

        if message.seq <= self._saved_through:
            # our later save overwrote it; only months we never had are news
            incoming = {k: v for k, v in remote.items() if k not in self.store}
        else:
            incoming = {k: v for k, v in remote.items() if k not in self._local_months}
            self._last_persisted = content
        kept = sorted(k for k in remote if k not in incoming)
        if kept:
            logger.info("Kept local versions of %s over remote snapshot for %s", ", ".join(kept), self.project_id)

        self.store.apply_remote(incoming)
        local_content = serialize_project_data(self.store.snapshot())
        self._write_cache(local_content)
        if local_content != self._last_persisted:
            self._dirty = True
            if self.online and self._pending_saves == 0:
                self._enqueue_save()
        elif self._pending_saves == 0:
            self._dirty = False
            self._local_months.clear()
            self._settle()

    def _handle_reconnect(self) -> None:
        if self._dirty:
            logger.info("Back online, retrying save of %s", self.project_id)
            self._enqueue_save()
        else:
            self._settle()

    # helpers

    def _write_cache(self, content: str) -> None:
        if content != self._last_cached:
            self.cache.set(cache_key(self.project_id), content)
            self._last_cached = content

    def _settle(self) -> None:
        if self._pending_saves > 0:
            self._set_status(PENDING)
        elif self._dirty:
            self._set_status(OFFLINE if not self.online else ERROR)
        else:
            self._set_status(SYNCED)

    def _set_status(self, status: str) -> None:
        if status != self.status:
            self.status = status
            self._bus.publish(SYNC_STATUS_CHANGED, {"project_id": self.project_id, "status": status})
