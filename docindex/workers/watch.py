"""Live watcher — turn filesystem notifications into debounced index updates.

watchdog delivers events on its own observer thread. They are handed to the
event loop, queued, and consumed by one task that keeps a debounce timer per
path. A path is re-indexed only once it has been quiet for ``quiet_period``
seconds; removals are applied immediately.
"""

from __future__ import annotations

import asyncio
import logging
import os
import weakref
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from docindex.core.exceptions import ExtractionError
from docindex.workers.crawl import Crawler

logger = logging.getLogger(__name__)

DEFAULT_QUIET_PERIOD = 2.0
DEFAULT_QUEUE_SIZE = 1024


class WatcherState(StrEnum):
    STOPPED = "stopped"
    WATCHING = "watching"


class FileEventKind(StrEnum):
    UPSERT = "upsert"
    DELETE = "delete"


@dataclass(frozen=True)
class FileEvent:
    kind: FileEventKind
    path: str


class _EventHandler(FileSystemEventHandler):
    """Runs on the observer thread; only forwards, never does I/O."""

    def __init__(self, watcher: LiveWatcher) -> None:
        super().__init__()
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        self._forward(FileEventKind.UPSERT, event.src_path, event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._forward(FileEventKind.UPSERT, event.src_path, event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._forward(FileEventKind.DELETE, event.src_path, event)

    def on_moved(self, event: FileSystemEvent) -> None:
        # A rename is a removal of the old path plus a new file
        self._forward(FileEventKind.DELETE, event.src_path, event)
        self._forward(FileEventKind.UPSERT, event.dest_path, event)

    def _forward(self, kind: FileEventKind, path: str | bytes, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._watcher.notify(FileEvent(kind=kind, path=os.fsdecode(path)))


class LiveWatcher:
    """stopped -> watching -> stopped. ``stop`` is safe to call repeatedly."""

    def __init__(
        self,
        crawler: Crawler,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        observer_factory: Callable[[], BaseObserver] = Observer,
    ) -> None:
        self.crawler = crawler
        self.quiet_period = quiet_period
        self.queue_size = queue_size
        self._observer_factory = observer_factory

        self.state = WatcherState.STOPPED
        self._loop: asyncio.AbstractEventLoop | None = None
        self._observer: BaseObserver | None = None
        self._queue: asyncio.Queue[FileEvent] | None = None
        self._consumer: asyncio.Task | None = None
        # Debounce timers still sleeping, keyed by path
        self._timers: dict[str, asyncio.Task] = {}
        # Work past its quiet period (or deletes); awaited on stop
        self._inflight: set[asyncio.Task] = set()
        # Producers blocked on a full queue; cancelled on stop
        self._blocked_puts: set[asyncio.Task] = set()
        self._path_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @property
    def pending(self) -> int:
        """Number of paths waiting out their quiet period."""
        return len(self._timers)

    # ── Lifecycle ────────────────────────────────────────────

    async def start(self) -> None:
        """Subscribe to every existing root. Past events are not replayed.

        Raises:
            ConfigurationError: If none of the configured roots exist.
        """
        if self.state == WatcherState.WATCHING:
            logger.info("File watcher already running")
            return

        roots = self.crawler.existing_roots()
        self._loop = asyncio.get_running_loop()
        queue: asyncio.Queue[FileEvent] = asyncio.Queue(maxsize=self.queue_size)
        self._queue = queue
        self._consumer = asyncio.create_task(self._consume(queue))

        observer = self._observer_factory()
        handler = _EventHandler(self)
        for root in roots:
            observer.schedule(handler, root, recursive=True)
        observer.start()
        self._observer = observer
        self.state = WatcherState.WATCHING
        logger.info("File watcher started on %d root(s)", len(roots))

    async def stop(self) -> None:
        """Release the subscriptions and drop pending timers unprocessed."""
        if self.state == WatcherState.STOPPED:
            return
        self.state = WatcherState.STOPPED

        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            await asyncio.to_thread(observer.join)

        for task in list(self._blocked_puts):
            task.cancel()

        # Consumer first, so no new timers appear while cancelling
        if self._consumer is not None:
            self._consumer.cancel()
            await asyncio.gather(self._consumer, return_exceptions=True)
            self._consumer = None

        timers = list(self._timers.values())
        self._timers.clear()
        for task in timers:
            task.cancel()
        await asyncio.gather(*timers, return_exceptions=True)

        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

        self._queue = None
        self._loop = None
        logger.info("File watcher stopped")

    # ── Event intake ─────────────────────────────────────────

    def notify(self, event: FileEvent) -> None:
        """Hand an event to the watcher. Safe to call from any thread."""
        loop = self._loop
        if loop is None or self.state != WatcherState.WATCHING:
            return
        if not self.crawler.should_process(event.path):
            return
        loop.call_soon_threadsafe(self._enqueue, event)

    def _enqueue(self, event: FileEvent) -> None:
        if self._queue is None or self.state != WatcherState.WATCHING:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            # Wait for room rather than lose the event
            task = asyncio.create_task(self._queue.put(event))
            self._blocked_puts.add(task)
            task.add_done_callback(self._blocked_puts.discard)

    async def _consume(self, queue: asyncio.Queue[FileEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                self._dispatch(event)
            finally:
                queue.task_done()

    def _dispatch(self, event: FileEvent) -> None:
        timer = self._timers.pop(event.path, None)
        if timer is not None:
            timer.cancel()

        if event.kind == FileEventKind.DELETE:
            self._spawn(self._delete(event.path))
        else:
            self._timers[event.path] = asyncio.create_task(self._debounce(event.path))

    # ── Processing ───────────────────────────────────────────

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    def _lock_for(self, path: str) -> asyncio.Lock:
        lock = self._path_locks.get(path)
        if lock is None:
            lock = asyncio.Lock()
            self._path_locks[path] = lock
        return lock

    async def _debounce(self, path: str) -> None:
        await asyncio.sleep(self.quiet_period)

        # Quiet period over: later events schedule a fresh timer instead
        task = asyncio.current_task()
        if self._timers.get(path) is task:
            del self._timers[path]
        if task is not None:
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

        await self._upsert(path)

    async def _upsert(self, path: str) -> None:
        async with self._lock_for(path):
            try:
                await self.crawler.index_file(path)
            except ExtractionError as exc:
                logger.warning("Skipping changed file %s: %s", path, exc)
            except Exception:
                logger.exception("Failed to index changed file %s", path)

    async def _delete(self, path: str) -> None:
        async with self._lock_for(path):
            try:
                await self.crawler.remove_file(path)
            except Exception:
                logger.exception("Failed to remove %s from index", path)
