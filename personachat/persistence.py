"""
Persistence queue: best-effort, post-response history writes.

The chat handler hands completed turns to enqueue() and returns
immediately. A single worker task writes each turn (user record, then
assistant record) exactly once; failures are logged and dropped. Nothing
here can change a response's status or body.

Timestamps come from MonotonicClock, so the assistant record of a turn
always sorts strictly after its user record, and later turns after earlier
ones, even when the wall clock stalls or steps backwards.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from datetime import datetime, timedelta, timezone

from personachat.storage.base import MessageStore
from personachat.storage.models import ConversationTurn, StoredMessage

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


class MonotonicClock:
    """Issues UTC timestamps, each strictly later than the previous one."""

    def __init__(self, now=None):
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._last: datetime | None = None
        self._lock = threading.Lock()

    def next(self) -> datetime:
        with self._lock:
            ts = self._now()
            if self._last is not None and ts <= self._last:
                ts = self._last + _TICK
            self._last = ts
            return ts


class PersistenceQueue:
    """Bounded queue of turns drained by one background worker."""

    def __init__(self, store: MessageStore, maxsize: int = 1000, clock: MonotonicClock | None = None):
        self.store = store
        self.maxsize = maxsize
        self.clock = clock or MonotonicClock()
        self._queue: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None
        self._closed = False

        self.persisted = 0
        self.failed = 0
        self.dropped = 0

    def start(self):
        """Create the queue and worker on the running loop."""
        self._queue = asyncio.Queue(maxsize=self.maxsize)
        self._closed = False
        self._worker = asyncio.create_task(self._run(), name="personachat-persistence")
        logger.info("Persistence queue started (store=%s, maxsize=%d)", self.store.name, self.maxsize)

    def _records(self, turn: ConversationTurn) -> tuple[StoredMessage, StoredMessage]:
        user_ts = self.clock.next()
        assistant_ts = self.clock.next()
        user_msg = StoredMessage(
            user_id=turn.user_id,
            role="user",
            content=turn.user_content,
            mode=turn.mode,
            created_at=user_ts.isoformat(timespec="microseconds"),
        )
        assistant_msg = StoredMessage(
            id=turn.assistant_id,
            user_id=turn.user_id,
            role="assistant",
            content=turn.assistant_content,
            mode=turn.mode,
            created_at=assistant_ts.isoformat(timespec="microseconds"),
        )
        return user_msg, assistant_msg

    def enqueue(self, turn: ConversationTurn) -> bool:
        """Queue a turn for writing. Never blocks, never raises."""
        if self._queue is None or self._closed:
            logger.warning("Persistence queue not running; dropping turn for user %s", turn.user_id)
            self.dropped += 1
            return False
        try:
            self._queue.put_nowait(self._records(turn))
        except asyncio.QueueFull:
            logger.error(
                "Persistence queue full (%d); dropping turn for user %s",
                self.maxsize, turn.user_id,
            )
            self.dropped += 1
            return False
        return True

    async def _run(self):
        while True:
            user_msg, assistant_msg = await self._queue.get()
            try:
                await self._write_turn(user_msg, assistant_msg)
            finally:
                self._queue.task_done()

    async def _write_turn(self, user_msg: StoredMessage, assistant_msg: StoredMessage):
        for msg in (user_msg, assistant_msg):
            try:
                await self.store.append_message(msg)
            except Exception as e:
                self.failed += 1
                logger.error(
                    "Failed to persist message (user_id=%s, role=%s, mode=%s): %s",
                    msg.user_id, msg.role, msg.mode, e,
                )
                return
        self.persisted += 1

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def drain(self, timeout: float = 5.0) -> bool:
        """Wait until every queued turn has been attempted. False on timeout."""
        if self._queue is None:
            return True
        try:
            await asyncio.wait_for(self._queue.join(), timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning("Persistence drain timed out with %d turns pending", self.pending)
            return False

    async def stop(self, timeout: float = 5.0):
        """Refuse new turns, flush what is queued, then stop the worker."""
        self._closed = True
        await self.drain(timeout)
        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None
        logger.info(
            "Persistence queue stopped (persisted=%d, failed=%d, dropped=%d)",
            self.persisted, self.failed, self.dropped,
        )
