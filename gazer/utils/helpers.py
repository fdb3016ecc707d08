"""
Helper utilities for gazer.

Filesystem probes and the nanosecond clock shared by the notifier and the
dispatcher. Timestamps from ``now()`` and ``modified_time()`` come from the
same wall clock so they can be subtracted from each other.
"""

import os
import time
from typing import Iterable, Iterator, List


def now() -> int:
    """Current time in nanoseconds."""
    return time.time_ns()


def normalize_path(path: str) -> str:
    """Clean redundant separators and ``.``/``..`` segments."""
    return os.path.normpath(path)


def is_dir(path: str) -> bool:
    """Check if path is an existing directory."""
    return os.path.isdir(path)


def is_file(path: str) -> bool:
    """Check if path is an existing regular file."""
    return os.path.isfile(path)


def modified_time(path: str) -> int:
    """
    Get file modification time in nanoseconds.

    Returns:
        Modification time, or 0 if the path cannot be stat'ed
    """
    try:
        return os.stat(path).st_mtime_ns
    except OSError:
        return 0


class OrderedSet:
    """Insertion-ordered set of strings."""

    def __init__(self, items: Iterable[str] = ()):
        self._items: dict[str, None] = {}
        for item in items:
            self.add(item)

    def add(self, item: str) -> None:
        self._items[item] = None

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def to_list(self) -> List[str]:
        return list(self._items)
