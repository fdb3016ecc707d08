"""
Data models for gazer.

Shared data models across the notifier, the dispatcher and the command table.
"""

import os
import re
from dataclasses import dataclass
from enum import Enum
from re import Pattern
from typing import List, Optional
from pydantic import BaseModel, PrivateAttr, field_validator


# =====================================================
# Filesystem Event Models
# =====================================================

class Op(str, Enum):
    """Raw filesystem operation."""
    CREATE = "CREATE"
    WRITE = "WRITE"
    REMOVE = "REMOVE"
    RENAME = "RENAME"
    CHMOD = "CHMOD"


@dataclass(frozen=True, slots=True)
class RawEvent:
    """Event as delivered by the watch source, before any filtering."""
    name: str
    op: Op
    is_dir: bool = False


@dataclass(frozen=True, slots=True)
class LogicalEvent:
    """A debounced notification that a file was meaningfully updated."""
    name: str
    time: int  # nanoseconds
    op: Op = Op.WRITE


# =====================================================
# Command Models
# =====================================================

class CommandRule(BaseModel):
    """A command to run for files matching an extension or a regex."""
    ext: Optional[str] = None
    re: Optional[str] = None
    run: str = ""

    _pattern: Optional[Pattern[str]] = PrivateAttr(default=None)

    @field_validator("re")
    @classmethod
    def check_regex(cls, value: Optional[str]) -> Optional[str]:
        if value:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid regular expression {value!r}: {e}") from e
        return value

    def model_post_init(self, __context) -> None:
        if self.re:
            self._pattern = re.compile(self.re)

    @property
    def usable(self) -> bool:
        """Rules without a command or without a predicate never match."""
        return bool(self.run) and bool(self.ext or self.re)

    def matches(self, path: str) -> bool:
        if not self.usable:
            return False
        if self.ext and os.path.splitext(path)[1] == self.ext:
            return True
        if self._pattern is not None and self._pattern.search(path):
            return True
        return False


class CommandConfig(BaseModel):
    """Contents of a command table file."""
    commands: List[CommandRule] = []
