"""
Event normalizer for the notify domain.

Turns noisy raw filesystem notifications into a stream of "file X was
updated" events:

- bursts of writes caused by a single save are coalesced
- "create new file, then rename it into place" counts as an update
- renames of files that were not touched recently are ignored
- directories created under a watched directory are watched as well
"""

import queue
import threading
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence

from loguru import logger

from gazer.domains.notify.resolver import resolve_watch_directories
from gazer.domains.notify.source import WatchSource
from gazer.models.schemas import LogicalEvent, Op, RawEvent
from gazer.utils.config import Settings, get_settings
from gazer.utils.helpers import is_dir, is_file, modified_time, normalize_path, now

_MS = 1_000_000


class Notifier:
    """Delivers events when files are virtually updated."""

    def __init__(
        self,
        patterns: Sequence[str],
        max_watch_dirs: Optional[int] = None,
        *,
        source: Optional[WatchSource] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Resolve the watch set and start the feed thread.

        Args:
            patterns: Glob patterns of files to watch
            max_watch_dirs: Upper bound on resolved directories
            source: Watch source to use instead of a new watchdog observer
            settings: Settings to use instead of the cached ones

        Raises:
            TooManyTargetsError: If the patterns resolve to too many directories
            WatchSourceError: If the watch source cannot be started
        """
        self.settings = settings or get_settings()
        if max_watch_dirs is None:
            max_watch_dirs = self.settings.max_watch_dirs

        self.events: "queue.Queue[LogicalEvent]" = queue.Queue(maxsize=1)
        self.errors: "queue.Queue[Exception]" = queue.Queue(maxsize=1)
        self._requeued: Deque[LogicalEvent] = deque()
        self._times: Dict[str, int] = {}
        self._pending_period = self.settings.pending_period_ms
        self._regard_rename_as_mod_period = self.settings.regard_rename_as_mod_period_ms
        self._detect_create = self.settings.detect_create
        self._poll_interval = self.settings.poll_interval
        self._closed = False

        watch_dirs = resolve_watch_directories(patterns, max_watch_dirs)

        self._source = source if source is not None else WatchSource()
        for d in watch_dirs:
            self._add_watch(d)

        self._thread = threading.Thread(target=self._wait, name="gazer-notify", daemon=True)
        self._thread.start()

    def __enter__(self) -> "Notifier":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def watch_dirs(self) -> List[str]:
        return self._source.dirs

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Dispose the watch source. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._source.close()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout=self._poll_interval * 10)

    def pending_period(self, ms: int) -> None:
        """Set the write-coalescing window in milliseconds."""
        self._pending_period = ms

    def detect_create(self, enabled: bool) -> None:
        """Treat file creation as an update (on by default)."""
        self._detect_create = enabled

    def requeue(self, event: LogicalEvent) -> None:
        """Push an event back; the next ``next_event`` call returns it."""
        self._requeued.append(event)

    def next_event(self, timeout: Optional[float] = None) -> LogicalEvent:
        """
        Receive the next logical event.

        Raises:
            queue.Empty: If no event arrived within ``timeout`` seconds
        """
        try:
            return self._requeued.popleft()
        except IndexError:
            pass
        return self.events.get(timeout=timeout)

    def process(self, raw: RawEvent) -> Optional[LogicalEvent]:
        """
        Classify one raw event.

        Returns:
            LogicalEvent if the event counts as an update, None otherwise
        """
        name = normalize_path(raw.name)

        if raw.op is Op.CREATE and is_dir(name):
            self._add_watch(name)

        if not self.should_execute(name, raw.op):
            return None

        logger.debug(f"notified: {name}: {raw.op.value}")
        timestamp = now()
        self._times[name] = timestamp
        return LogicalEvent(name=name, time=timestamp, op=raw.op)

    def should_execute(self, path: str, op: Op) -> bool:
        if op not in (Op.WRITE, Op.RENAME) and not (self._detect_create and op is Op.CREATE):
            logger.debug(f"skipped: {path}: {op.value} (Op is not applicable)")
            return False

        if not is_file(path):
            logger.debug(f"skipped: {path}: {op.value} (not a file)")
            return False

        last_execution_time = self._times.get(path, 0)
        modified = modified_time(path)

        if op in (Op.WRITE, Op.CREATE):
            elapsed = modified - last_execution_time
            logger.debug(f"lastExecutionTime({op.value}): {last_execution_time}, {elapsed}")
            if elapsed < self._pending_period * _MS:
                logger.debug(f"skipped: {path}: {op.value} (too frequent)")
                return False

        if op is Op.RENAME:
            elapsed = now() - modified
            logger.debug(f"lastExecutionTime({op.value}): {last_execution_time}, {elapsed}")
            if elapsed > self._regard_rename_as_mod_period * _MS:
                logger.debug(f"skipped: {path}: {op.value} (unnatural rename)")
                return False

        return True

    def _add_watch(self, directory: str) -> None:
        try:
            self._source.add(directory)
        except OSError as e:
            logger.error(f"{directory}: {e}")
        else:
            logger.info(f"gazing at: {directory}")

    def _wait(self) -> None:
        while not self._closed:
            try:
                item = self._source.get(timeout=self._poll_interval)
            except queue.Empty:
                continue

            if isinstance(item, Exception):
                self._put(self.errors, item)
                continue

            event = self.process(item)
            if event is not None:
                self._put(self.events, event)

    def _put(self, q: queue.Queue, item) -> None:
        # Blocks while the consumer is busy; gives up only on close
        while not self._closed:
            try:
                q.put(item, timeout=self._poll_interval)
                return
            except queue.Full:
                continue
