"""
Watch source backed by watchdog.

Each directory is scheduled non-recursively; the watch set grows when the
notifier adds directories that appear after start-up. Raw events are handed
over through a queue so that the consumer never runs inside the observer
thread.
"""

from __future__ import annotations

import queue
from typing import List, Union

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from gazer.models.schemas import Op, RawEvent


class WatchSourceError(RuntimeError):
    """Raised (or forwarded) when the underlying observer fails."""


class RawEventHandler(FileSystemEventHandler):
    """Translates watchdog events into ``RawEvent`` items."""

    def __init__(self, sink: "queue.Queue[Union[RawEvent, Exception]]"):
        super().__init__()
        self.sink = sink

    def on_created(self, event: FileSystemEvent) -> None:
        self._put(event.src_path, Op.CREATE, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._put(event.src_path, Op.WRITE, event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._put(event.src_path, Op.REMOVE, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        # The destination now holds the content; "write new file, then rename
        # it over the old one" shows up here.
        dest = getattr(event, "dest_path", None)
        self._put(dest or event.src_path, Op.RENAME, event.is_directory)

    def _put(self, path: Union[str, bytes], op: Op, is_directory: bool) -> None:
        if isinstance(path, bytes):
            path = path.decode()
        self.sink.put(RawEvent(name=path, op=op, is_dir=is_directory))


class WatchSource:
    """Watches a growing set of directories and queues raw events."""

    def __init__(self):
        self._queue: "queue.Queue[Union[RawEvent, Exception]]" = queue.Queue()
        self._handler = RawEventHandler(self._queue)
        self._dirs: List[str] = []
        self._closed = False
        self._failed = False

        try:
            self._observer = Observer()
            self._observer.daemon = True
            self._observer.start()
        except Exception as e:
            raise WatchSourceError(f"failed to start observer: {e}") from e

    @property
    def dirs(self) -> List[str]:
        return list(self._dirs)

    @property
    def closed(self) -> bool:
        return self._closed

    def add(self, directory: str) -> None:
        """
        Start watching ``directory``.

        Raises:
            OSError: If the directory cannot be watched
        """
        if directory in self._dirs:
            return
        self._observer.schedule(self._handler, directory, recursive=False)
        self._dirs.append(directory)

    def get(self, timeout: float) -> Union[RawEvent, Exception]:
        """
        Next raw event, or an exception describing an observer failure.

        Raises:
            queue.Empty: If nothing arrived within ``timeout`` seconds
        """
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            if not self._closed and not self._failed and not self._observer.is_alive():
                self._failed = True
                return WatchSourceError("observer thread stopped unexpectedly")
            raise

    def close(self) -> None:
        """Stop the observer. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._observer.stop()
        self._observer.join()
        logger.debug("Watch source closed")
