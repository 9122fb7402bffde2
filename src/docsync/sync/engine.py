"""
DocSync sync engine.

Keeps a local store and a remote document database in step. Inbound changes
arrive through a long-poll change feed; outbound changes leave through the
bulk-write endpoint with client-generated revisions.

All state is owned by one engine instance and only touched from coroutines
and callbacks on a single asyncio event loop, so no locking is needed.
Requests are the only suspension points.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Coroutine, Iterable
from typing import Any
from urllib.parse import quote

from docsync.core.config import RemoteConfig, SyncMode
from docsync.core.errors import (
    AuthError,
    DeliveryError,
    DocSyncError,
    NotFoundError,
    ProtocolError,
    RequestAborted,
    ServerError,
    TranslationError,
)
from docsync.core.events import ERROR_CHANNEL, EventBus, EventKey, change_keys
from docsync.core.logging import get_logger
from docsync.core.models import Change, Record, RemoteDocument
from docsync.sync.classifier import KnownObjectSet
from docsync.sync.revisions import generate_revision_id, stamp
from docsync.sync.translator import from_remote, to_remote
from docsync.transport.base import PendingRequest, Response, Transport

logger = get_logger(__name__)

# Intermediaries drop long-lived idle connections; reissue the feed request
# if it has not answered within this many seconds.
PULL_RESTART_SECONDS = 25.0

# Fixed, not exponential.
RETRY_DELAY_SECONDS = 3.0

HEARTBEAT_MS = 10000

PushHook = Callable[[list[RemoteDocument], Response], Awaitable[None] | None]


class SyncEngine:
    """
    Pull, push and sync against one remote database.

    Construct inside a running event loop when continuous sync is
    configured: the engine connects immediately and starts pulling.
    """

    def __init__(
        self,
        transport: Transport,
        config: RemoteConfig | None = None,
        bus: EventBus | None = None,
        *,
        id_factory: Callable[[], str] = generate_revision_id,
        on_pushed: PushHook | None = None,
    ) -> None:
        self.config = config or RemoteConfig()
        self.transport = transport
        self.bus = bus or EventBus()
        self.name = self.config.name
        self.prefix = self.config.doc_prefix
        self.id_factory = id_factory
        self.on_pushed = on_pushed

        self.since: int | str = 0
        self.known = KnownObjectSet()
        self.sync_mode = self.config.mode

        self._connected = False
        self._pull_request: PendingRequest | None = None
        self._push_request: PendingRequest | None = None
        self._restart_handle: asyncio.TimerHandle | None = None
        self._retry_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

        if self.sync_mode is not SyncMode.OFF:
            self.connect()

    # === Connection state ===

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def is_pulling_continuously(self) -> bool:
        return self.sync_mode.pulls_continuously

    @property
    def is_pushing_continuously(self) -> bool:
        return self.sync_mode.pushes_continuously

    @property
    def pending_retry_delay(self) -> float | None:
        """Seconds until the scheduled pull retry fires, if one is scheduled."""
        if self._retry_handle is None:
            return None
        return max(0.0, self._retry_handle.when() - asyncio.get_running_loop().time())

    def connect(self) -> asyncio.Task[Any]:
        """Mark the engine connected and start a sync in the background."""
        self._connected = True
        logger.info("Connecting to remote", name=self.name, mode=self.sync_mode.value)
        return self._spawn(self.sync(), "sync")

    def disconnect(self) -> None:
        """Stop all activity. Safe to call when already disconnected."""
        was_connected = self._connected
        self._connected = False
        self._cancel_restart_timer()
        self._cancel_retry_timer()
        for request in (self._pull_request, self._push_request):
            if request is not None:
                request.abort()
        if was_connected:
            logger.info("Disconnected from remote", name=self.name)

    def start_syncing(self) -> asyncio.Task[Any]:
        self.sync_mode = SyncMode.SYNC
        return self.connect()

    def stop_syncing(self) -> None:
        self.sync_mode = SyncMode.OFF
        logger.info("Continuous sync stopped", name=self.name)

    async def aclose(self) -> None:
        """Disconnect and wait for background work to wind down."""
        self.disconnect()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # === Sync ===

    async def sync(self, records: Iterable[Record] | None = None) -> list[Change]:
        """Push local records, then pull remote changes."""
        await self.push(records)
        return await self.pull()

    async def pull(self) -> list[Change]:
        """
        Fetch changes since the cursor and publish them.

        A call while another pull is outstanding aborts the older request.
        """
        previous = self._pull_request
        request = self.transport.request("GET", self._path(self._changes_path()))
        self._pull_request = request
        if previous is not None:
            previous.abort()

        self._cancel_restart_timer()
        if self._connected and self.is_pulling_continuously:
            self._restart_handle = asyncio.get_running_loop().call_later(
                PULL_RESTART_SECONDS, self._restart_pull, request
            )

        try:
            response = await request
        except DocSyncError as error:
            self._settle_pull(request)
            self._handle_pull_error(request, error)
            raise

        self._settle_pull(request)
        try:
            changes = self._handle_pull_success(response)
        except DocSyncError as error:
            self._handle_pull_error(request, error)
            raise

        if self._connected and self.is_pulling_continuously and request is self._pull_request:
            self._spawn(self.pull(), "pull")
        return changes

    async def push(self, records: Iterable[Record] | None = None) -> list[RemoteDocument]:
        """
        Write records to the remote with client-supplied revisions.

        Returns the documents as written. Pushes run one at a time.
        """
        records = list(records or ())
        if not records:
            return []

        docs = [stamp(to_remote(record, self.prefix), self.id_factory) for record in records]

        while self._push_request is not None and not self._push_request.done():
            await self._push_request.wait()

        request = self.transport.request(
            "POST",
            self._path("/_bulk_docs"),
            {"docs": docs, "new_edits": False},
        )
        self._push_request = request
        logger.info("Pushing documents", name=self.name, count=len(docs))

        try:
            response = await request
        except DocSyncError as error:
            logger.warning("Push failed", name=self.name, count=len(docs), error=str(error))
            raise

        if self.on_pushed is not None:
            result = self.on_pushed(docs, response)
            if inspect.isawaitable(result):
                await result
        logger.debug("Push completed", name=self.name, count=len(docs))
        return docs

    def local_changed(self, records: Iterable[Record]) -> bool:
        """
        Called by the local store when it holds unsynced records.

        Schedules a background push when pushing continuously; returns
        whether one was scheduled.
        """
        records = list(records)
        if not records or not self._connected or not self.is_pushing_continuously:
            return False
        self._spawn(self.push(records), "push")
        return True

    # === Pull handling ===

    def _handle_pull_success(self, response: Response) -> list[Change]:
        data = response.data
        if not isinstance(data, dict) or "last_seq" not in data:
            raise ProtocolError("Change feed response has no last_seq")
        results = data.get("results")
        if not isinstance(results, list):
            raise ProtocolError("Change feed response has no results list")

        # Membership changes only stick once the whole batch is delivered.
        known = self.known.copy()
        changes: list[Change] = []
        delivery_errors: list[Exception] = []
        for row in results:
            doc = row.get("doc") if isinstance(row, dict) else None
            if doc is None:
                continue
            try:
                change = self._apply_change(doc, known)
            except TranslationError as e:
                logger.warning("Skipping malformed document", error=str(e))
                continue
            except DeliveryError as e:
                delivery_errors.extend(e.errors)
                continue
            changes.append(change)

        if delivery_errors:
            raise DeliveryError(f"changes after {self.since}", delivery_errors)

        self.known = known
        self.since = data["last_seq"]
        logger.debug("Pulled changes", name=self.name, count=len(changes), since=self.since)
        return changes

    def _apply_change(self, doc: RemoteDocument, known: KnownObjectSet) -> Change:
        record = from_remote(doc, self.prefix)
        kind = known.classify(doc)
        change = Change(kind=kind, record=record, doc_id=doc["_id"])
        self._publish(change)
        return change

    def _publish(self, change: Change) -> None:
        errors: list[Exception] = []
        for key, with_kind in change_keys(self.name, change.kind.value, change.type, change.id):
            args = (change.kind.value, change.record) if with_kind else (change.record,)
            try:
                self.bus.emit(key, *args)
            except DeliveryError as e:
                errors.extend(e.errors)
        if errors:
            raise DeliveryError(change.doc_id, errors)

    def _handle_pull_error(self, request: PendingRequest, error: DocSyncError) -> None:
        if not self._connected:
            logger.debug("Ignoring pull failure while disconnected", error=str(error))
            return
        if request is not self._pull_request:
            return

        if isinstance(error, RequestAborted):
            if self.is_pulling_continuously:
                logger.debug("Reissuing aborted pull", name=self.name)
                self._spawn(self.pull(), "pull")
            return

        if isinstance(error, AuthError):
            logger.warning("Remote rejected credentials", name=self.name)
            try:
                self._emit_error("unauthenticated", error)
            finally:
                self.disconnect()
            return

        if isinstance(error, NotFoundError):
            logger.info("Remote database not found yet", name=self.name)
            self._schedule_pull_retry()
            return

        if isinstance(error, ServerError):
            try:
                self._emit_error("server", error)
            finally:
                self._schedule_pull_retry()
            return

        if isinstance(error, DeliveryError):
            logger.error("Local consumer failed to take changes", name=self.name, error=str(error))
        else:
            logger.warning("Pull failed", name=self.name, error=str(error))

        if self.is_pulling_continuously:
            self._schedule_pull_retry()

    def _emit_error(self, kind: str, error: DocSyncError) -> None:
        key = EventKey(ERROR_CHANNEL, kind, scope=self.name)
        try:
            self.bus.emit(key, error)
        except DeliveryError as e:
            logger.warning("Error event handler failed", key=str(key), error=str(e))

    # === Timers ===

    def _restart_pull(self, request: PendingRequest) -> None:
        self._restart_handle = None
        if request is self._pull_request and not request.done():
            logger.debug("Change feed idle, restarting request", name=self.name)
            request.abort()

    def _schedule_pull_retry(self, delay: float | None = None) -> None:
        delay = RETRY_DELAY_SECONDS if delay is None else delay
        self._cancel_retry_timer()
        self._retry_handle = asyncio.get_running_loop().call_later(delay, self._retry_pull)
        logger.info("Pull retry scheduled", name=self.name, delay_seconds=delay)

    def _retry_pull(self) -> None:
        self._retry_handle = None
        if self._connected:
            self._spawn(self.pull(), "pull")

    def _settle_pull(self, request: PendingRequest) -> None:
        if request is self._pull_request:
            self._cancel_restart_timer()

    def _cancel_restart_timer(self) -> None:
        if self._restart_handle is not None:
            self._restart_handle.cancel()
            self._restart_handle = None

    def _cancel_retry_timer(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    # === Helpers ===

    def _path(self, path: str) -> str:
        if self.name:
            return f"/{quote(self.name, safe='')}{path}"
        return path

    def _changes_path(self) -> str:
        path = f"/_changes?include_docs=true&since={quote(str(self.since), safe='')}"
        if self.is_pulling_continuously:
            path += f"&heartbeat={HEARTBEAT_MS}&feed=longpoll"
        return path

    def _spawn(self, coro: Coroutine[Any, Any, Any], step: str) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(self._run_background(coro, step))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_background(self, coro: Coroutine[Any, Any, Any], step: str) -> None:
        """Run an engine-initiated step; its failures surface as events, not raises."""
        try:
            await coro
        except DocSyncError as e:
            logger.debug("Background step ended with error", step=step, error=str(e))
        except Exception as e:
            logger.error("Background step crashed", step=step, error=str(e), exc_info=True)
