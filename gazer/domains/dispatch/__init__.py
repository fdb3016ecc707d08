"""
Dispatch Domain

Matches updated files to commands and supervises their execution:
- supervisor: start, time out and kill external processes
- dispatcher: event loop with debounce and restart handling
"""

from gazer.domains.dispatch.dispatcher import Gazer
from gazer.domains.dispatch.supervisor import (
    CommandFailedError,
    CommandTimeoutError,
    ProcessSupervisor,
)

__all__ = ["CommandFailedError", "CommandTimeoutError", "Gazer", "ProcessSupervisor"]
