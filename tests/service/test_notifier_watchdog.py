"""
Service-level tests for the Notifier against a real watchdog observer.

These exercise the full path from the OS notification to the logical event
stream: raw event translation, debounce, rename heuristics and dynamic growth
of the watch set.
"""

import os
import queue
import time
from pathlib import Path

import pytest

pytest.importorskip("watchdog", reason="watchdog dependency is required for service tests")

from gazer.domains.notify import Notifier, TooManyTargetsError
from gazer.utils.config import Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(poll_interval=0.02)


def collect(notifier: Notifier, duration: float) -> list:
    """Drain events for ``duration`` seconds."""
    events = []
    deadline = time.monotonic() + duration
    while time.monotonic() < deadline:
        try:
            events.append(notifier.next_event(timeout=0.05))
        except queue.Empty:
            continue
    return events


def wait_for_event(notifier: Notifier, name: str, timeout: float = 5):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            event = notifier.next_event(timeout=0.1)
        except queue.Empty:
            continue
        if event.name == name:
            return event
    return None


def test_file_write_produces_one_event(tmp_path: Path, settings: Settings):
    target = tmp_path / "notes.txt"

    with Notifier([str(tmp_path / "*.txt")], 10, settings=settings) as notifier:
        target.write_text("first")
        target.write_text("second")

        events = [e for e in collect(notifier, 2) if e.name == str(target)]

    assert len(events) == 1


def test_rename_into_place_is_an_update(tmp_path: Path, settings: Settings):
    staging = tmp_path / ".notes.txt.swp"
    target = tmp_path / "notes.txt"

    with Notifier([str(tmp_path / "*.txt")], 10, settings=settings) as notifier:
        staging.write_text("content")
        collect(notifier, 0.5)

        os.replace(staging, target)

        events = [e for e in collect(notifier, 2) if e.name == str(target)]

    assert len(events) == 1


def test_rename_of_old_file_is_ignored(tmp_path: Path, settings: Settings):
    source = tmp_path / "old.bak"
    target = tmp_path / "old.txt"
    source.write_text("content")
    t = time.time_ns() - 10 * 1_000_000_000
    os.utime(source, ns=(t, t))

    with Notifier([str(tmp_path / "*.txt")], 10, settings=settings) as notifier:
        os.replace(source, target)

        events = [e for e in collect(notifier, 2) if e.name == str(target)]

    assert events == []


def test_new_directory_is_watched(tmp_path: Path, settings: Settings):
    sub = tmp_path / "sub"

    with Notifier([str(tmp_path / "**" / "*.txt")], 10, settings=settings) as notifier:
        sub.mkdir()
        deadline = time.monotonic() + 5
        while str(sub) not in notifier.watch_dirs and time.monotonic() < deadline:
            time.sleep(0.05)
        assert str(sub) in notifier.watch_dirs

        target = sub / "inner.txt"
        target.write_text("x")

        assert wait_for_event(notifier, str(target)) is not None


def test_too_many_directories(tmp_path: Path, settings: Settings):
    for i in range(5):
        (tmp_path / f"d{i}").mkdir()

    with pytest.raises(TooManyTargetsError):
        Notifier([str(tmp_path / "*" / "*.txt")], 2, settings=settings)


def test_close_twice(tmp_path: Path, settings: Settings):
    notifier = Notifier([str(tmp_path / "*.txt")], 10, settings=settings)

    notifier.close()
    notifier.close()

    assert notifier.closed
