"""
Process supervisor for the dispatch domain.

Starts commands through the shell, enforces an optional timeout and kills
whole process trees on demand. Kill failures are logged, never raised.
"""

import subprocess
from typing import Optional

import psutil
from loguru import logger


class CommandTimeoutError(RuntimeError):
    """Raised when a command does not finish within its timeout."""

    def __init__(self, command: str, timeout: float):
        super().__init__(f"Timeout: {timeout}s has passed: {command}")
        self.command = command
        self.timeout = timeout


class CommandFailedError(RuntimeError):
    """Raised when a command exits with a non-zero status."""

    def __init__(self, command: str, returncode: int):
        super().__init__(f"exit status {returncode}: {command}")
        self.command = command
        self.returncode = returncode


class ProcessSupervisor:
    """Runs external commands and terminates them when asked to."""

    def __init__(self, kill_wait: float = 3.0):
        """
        Initialize process supervisor.

        Args:
            kill_wait: Seconds to wait for a killed process to be reaped
        """
        self.kill_wait = kill_wait

    def start(self, command: str) -> subprocess.Popen:
        """Start ``command`` through the platform shell."""
        logger.debug(f"Starting: {command}")
        return subprocess.Popen(command, shell=True)

    def wait_or_timeout(self, process: subprocess.Popen, timeout: float) -> None:
        """
        Wait for ``process`` to finish.

        Args:
            process: Process returned by ``start``
            timeout: Seconds before the process is killed; 0 waits forever

        Raises:
            CommandTimeoutError: If the timeout elapsed
            CommandFailedError: If the process exited with a non-zero status
        """
        command = _describe(process)
        try:
            returncode = process.wait(timeout=timeout if timeout > 0 else None)
        except subprocess.TimeoutExpired:
            self.kill(process, "Timeout")
            raise CommandTimeoutError(command, timeout)

        if returncode != 0:
            raise CommandFailedError(command, returncode)

    def execute_or_timeout(self, command: str, timeout: float) -> None:
        """Start ``command`` and wait for it, see ``wait_or_timeout``."""
        process = self.start(command)
        self.wait_or_timeout(process, timeout)

    def kill(self, process: Optional[subprocess.Popen], reason: str) -> None:
        """Kill ``process`` and its children, logging ``reason``."""
        if process is None:
            return
        if process.poll() is not None:
            logger.debug(f"{reason}: process {process.pid} already finished")
            return

        try:
            parent = psutil.Process(process.pid)
            for child in parent.children(recursive=True):
                try:
                    child.kill()
                except psutil.NoSuchProcess:
                    continue
            parent.kill()
        except psutil.NoSuchProcess:
            logger.debug(f"{reason}: process {process.pid} already gone")
            return
        except psutil.Error as e:
            logger.warning(f"{reason}: failed to kill process {process.pid}: {e}")
            return

        try:
            process.wait(timeout=self.kill_wait)
        except subprocess.TimeoutExpired:
            logger.warning(f"{reason}: process {process.pid} did not exit after kill")
            return

        logger.info(f"{reason}: killed process {process.pid}")


def _describe(process: subprocess.Popen) -> str:
    args = process.args
    if isinstance(args, (list, tuple)):
        return " ".join(str(a) for a in args)
    return str(args)
