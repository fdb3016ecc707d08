"""
Notify Domain

Watches directories resolved from glob patterns and emits debounced
"file updated" events:
- resolver: patterns → directories to watch
- source: watchdog-backed raw event source
- notifier: debounce and classification of raw events
"""

from gazer.domains.notify.notifier import Notifier
from gazer.domains.notify.resolver import TooManyTargetsError, resolve_watch_directories
from gazer.domains.notify.source import WatchSource, WatchSourceError

__all__ = [
    "Notifier",
    "TooManyTargetsError",
    "WatchSource",
    "WatchSourceError",
    "resolve_watch_directories",
]
