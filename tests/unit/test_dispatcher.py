import os
import queue
import threading
import time
from pathlib import Path

import pytest

from gazer.domains.dispatch.dispatcher import Gazer
from gazer.domains.dispatch.supervisor import CommandFailedError, ProcessSupervisor
from gazer.models.schemas import CommandRule, LogicalEvent, Op
from gazer.utils.commands import CommandTable
from gazer.utils.config import Settings
from gazer.utils.helpers import now


class FakeNotifier:
    """Stand-in for Notifier fed directly by the test."""

    def __init__(self):
        self.events: queue.Queue = queue.Queue()
        self.close_calls = 0

    def next_event(self, timeout=None) -> LogicalEvent:
        return self.events.get(timeout=timeout)

    def close(self) -> None:
        self.close_calls += 1


class FakeProcess:
    def __init__(self, pid: int):
        self.pid = pid
        self.args = f"fake-{pid}"
        self.done = threading.Event()

    def poll(self):
        return 0 if self.done.is_set() else None


class RecordingSupervisor(ProcessSupervisor):
    """Records commands instead of running them."""

    def __init__(self, fail: bool = False):
        super().__init__()
        self.fail = fail
        self.executed: list[str] = []
        self.started: list[FakeProcess] = []
        self.killed: list[FakeProcess] = []

    def execute_or_timeout(self, command, timeout):
        self.executed.append(command)
        if self.fail:
            raise CommandFailedError(command, 1)

    def start(self, command):
        process = FakeProcess(pid=len(self.started) + 1)
        self.started.append(process)
        return process

    def wait_or_timeout(self, process, timeout):
        process.done.wait(timeout=5)

    def kill(self, process, reason):
        self.killed.append(process)
        process.done.set()


@pytest.fixture
def settings() -> Settings:
    return Settings(poll_interval=0.01)


@pytest.fixture
def table() -> CommandTable:
    return CommandTable([CommandRule(ext=".txt", run="echo {file}")])


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    for name in ("notes.txt", "a.txt", "b.txt", "readme.md"):
        (tmp_path / name).write_text(name)
    return tmp_path


def make_gazer(settings, supervisor=None, patterns=("*.txt", "*.md"), stop_event=None):
    return Gazer(
        list(patterns),
        notifier=FakeNotifier(),
        supervisor=supervisor or RecordingSupervisor(),
        settings=settings,
        stop_event=stop_event,
    )


def wait_for(predicate, timeout: float = 5) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_dispatch_renders_and_runs_command(workdir, settings, table):
    gazer = make_gazer(settings)

    assert gazer.dispatch(LogicalEvent("notes.txt", now()), table)

    assert gazer.supervisor.executed == ["echo notes.txt"]
    assert gazer.counter == 1


def test_event_outside_patterns_is_ignored(workdir, settings, table):
    (workdir / "sub").mkdir()
    (workdir / "sub" / "deep.txt").write_text("x")
    gazer = make_gazer(settings)

    assert not gazer.dispatch(LogicalEvent("sub/deep.txt", now()), table)
    assert gazer.counter == 0


def test_missing_command_is_skipped(workdir, settings, table):
    gazer = make_gazer(settings)

    assert not gazer.dispatch(LogicalEvent("readme.md", now()), table)
    assert gazer.supervisor.executed == []
    assert gazer.counter == 0


def test_non_update_ops_are_ignored(workdir, settings, table):
    gazer = make_gazer(settings)

    assert not gazer.dispatch(LogicalEvent("notes.txt", now(), Op.REMOVE), table)
    assert gazer.counter == 0


def test_duplicate_event_within_ignore_period(workdir, settings, table):
    gazer = make_gazer(settings)
    event = LogicalEvent("notes.txt", now())

    assert gazer.dispatch(event, table)
    # File not modified since the last dispatch
    assert not gazer.dispatch(event, table)

    t = time.time_ns() + 1_000_000_000
    os.utime(workdir / "notes.txt", ns=(t, t))
    assert gazer.dispatch(event, table)
    assert gazer.counter == 2


def test_ignore_period_is_per_path(workdir, settings, table):
    gazer = make_gazer(settings)

    assert gazer.dispatch(LogicalEvent("a.txt", now()), table)
    assert gazer.dispatch(LogicalEvent("b.txt", now()), table)
    assert gazer.supervisor.executed == ["echo a.txt", "echo b.txt"]


def test_failed_command_still_counts(workdir, settings, table):
    gazer = make_gazer(settings, supervisor=RecordingSupervisor(fail=True))

    assert gazer.dispatch(LogicalEvent("notes.txt", now()), table)
    assert gazer.counter == 1


def test_restart_kills_previous_command(workdir, settings, table):
    gazer = make_gazer(settings)
    supervisor = gazer.supervisor

    gazer.dispatch(LogicalEvent("a.txt", now()), table, restart=True)
    first = gazer.ongoing
    assert first is supervisor.started[0]

    gazer.dispatch(LogicalEvent("b.txt", now()), table, restart=True)

    assert supervisor.killed == [first]
    assert gazer.ongoing is supervisor.started[1]
    assert gazer.counter == 2

    supervisor.started[1].done.set()
    assert wait_for(lambda: gazer.ongoing is None)


def test_run_until_stopped(workdir, settings, table):
    stop_event = threading.Event()
    gazer = make_gazer(settings, stop_event=stop_event)
    gazer.notifier.events.put(LogicalEvent("notes.txt", now()))

    worker = threading.Thread(target=gazer.run, args=(table,))
    worker.start()
    assert wait_for(lambda: gazer.counter == 1)

    stop_event.set()
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert gazer.supervisor.executed == ["echo notes.txt"]


def test_run_returns_immediately_when_already_stopped(workdir, settings, table):
    stop_event = threading.Event()
    stop_event.set()
    gazer = make_gazer(settings, stop_event=stop_event)
    gazer.notifier.events.put(LogicalEvent("notes.txt", now()))

    assert gazer.run(table) is None
    assert gazer.counter == 0


def test_close_is_idempotent(settings):
    gazer = make_gazer(settings)

    gazer.close()
    gazer.close()

    assert gazer.notifier.close_calls == 1


def test_patterns_are_normalized(settings):
    gazer = make_gazer(settings, patterns=["./src//*.py"])

    assert gazer.patterns == [os.path.normpath("src/*.py")]
