"""
Dispatcher for the dispatch domain.

Consumes logical update events, picks the command configured for the updated
file and runs it. In restart mode a new matching event kills the command
still running from a previous event before starting the next one.
"""

import queue
import subprocess
import threading
from typing import Dict, Optional, Sequence

from loguru import logger

from gazer.domains.dispatch.supervisor import (
    CommandFailedError,
    CommandTimeoutError,
    ProcessSupervisor,
)
from gazer.domains.notify.notifier import Notifier
from gazer.models.schemas import LogicalEvent, Op
from gazer.utils.commands import CommandTable
from gazer.utils.config import Settings, get_settings
from gazer.utils.helpers import modified_time, normalize_path, now
from gazer.utils.pathglob import match_any

_UPDATE_OPS = (Op.WRITE, Op.RENAME, Op.CREATE)


class Gazer:
    """Watches files and runs their commands when they are updated."""

    def __init__(
        self,
        patterns: Sequence[str],
        max_watch_dirs: Optional[int] = None,
        *,
        stop_event: Optional[threading.Event] = None,
        notifier: Optional[Notifier] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            patterns: Glob patterns of files to watch
            max_watch_dirs: Upper bound on watched directories
            stop_event: Cancellation token; ``run`` returns once it is set
            notifier: Event source to use instead of a new Notifier
            supervisor: Process supervisor to use instead of a new one
            settings: Settings to use instead of the cached ones

        Raises:
            TooManyTargetsError: If the patterns resolve to too many directories
            WatchSourceError: If the watch source cannot be started
        """
        self.settings = settings or get_settings()
        self.patterns = [normalize_path(p) for p in patterns]
        self.stop_event = stop_event or threading.Event()
        self.notifier = notifier if notifier is not None else Notifier(
            self.patterns, max_watch_dirs, settings=self.settings
        )
        self.supervisor = supervisor or ProcessSupervisor()

        self._counter = 0
        self._closed = False
        self._ongoing: Optional[subprocess.Popen] = None
        self._last_dispatch: Dict[str, int] = {}

    def __enter__(self) -> "Gazer":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def counter(self) -> int:
        """Number of commands dispatched so far."""
        return self._counter

    @property
    def ongoing(self) -> Optional[subprocess.Popen]:
        """Restartable process currently tracked, if any."""
        return self._ongoing

    def close(self) -> None:
        """Release watch resources. Safe to call more than once."""
        if self._closed:
            return
        self.notifier.close()
        self._closed = True

    def run(self, commands: CommandTable, timeout: float = 0, restart: bool = False) -> None:
        """
        Dispatch events until the stop event is set.

        A still running restartable command is left running on return.
        """
        poll_interval = self.settings.poll_interval

        while not self.stop_event.is_set():
            try:
                event = self.notifier.next_event(timeout=poll_interval)
            except queue.Empty:
                continue
            self.dispatch(event, commands, timeout, restart)

        logger.debug("Dispatcher stopped")

    def dispatch(
        self,
        event: LogicalEvent,
        commands: CommandTable,
        timeout: float = 0,
        restart: bool = False,
    ) -> bool:
        """
        Handle a single event.

        Returns:
            True if a command was started for the event
        """
        logger.debug(f"Receive: {event.name}")

        if event.op not in _UPDATE_OPS:
            return False
        if not match_any(self.patterns, event.name):
            return False

        modified = modified_time(event.name)
        if modified - self._last_dispatch.get(event.name, 0) < self.settings.ignore_period_ns:
            return False

        command = commands.command_for(event.name)
        if command is None:
            logger.debug(f"Command not found: {event.name}")
            return False

        self._counter += 1
        logger.info(f"[{command}]")

        if self._ongoing is not None:
            self.supervisor.kill(self._ongoing, "Restart")
            self._ongoing = None

        self._last_dispatch[event.name] = now()

        if not restart:
            try:
                self.supervisor.execute_or_timeout(command, timeout)
            except (CommandTimeoutError, CommandFailedError, OSError) as e:
                logger.warning(f"{e}")
            return True

        try:
            process = self.supervisor.start(command)
        except OSError as e:
            logger.warning(f"{e}")
            return True

        self._ongoing = process
        threading.Thread(
            target=self._supervise,
            args=(process, timeout),
            name=f"gazer-run-{process.pid}",
            daemon=True,
        ).start()
        return True

    def _supervise(self, process: subprocess.Popen, timeout: float) -> None:
        try:
            self.supervisor.wait_or_timeout(process, timeout)
        except (CommandTimeoutError, CommandFailedError) as e:
            logger.warning(f"{e}")
        finally:
            if self._ongoing is process:
                self._ongoing = None
