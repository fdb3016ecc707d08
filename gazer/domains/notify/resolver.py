"""
Directory resolver for the notify domain.

Turns watch patterns into the concrete directories to subscribe to. Patterns
may point at files that do not exist yet (``src/*.py`` before any ``.py``
file is written), so the nearest concrete ancestor is watched as well.
"""

import os
from typing import List, Optional, Sequence

from loguru import logger

from gazer.utils.helpers import OrderedSet, is_dir, normalize_path
from gazer.utils.pathglob import find, has_glob


class TooManyTargetsError(RuntimeError):
    """Raised when patterns resolve to more directories than allowed."""

    def __init__(self, dirs: Sequence[str], max_dirs: int):
        super().__init__(f"too many directories to watch (more than {max_dirs})")
        self.dirs = list(dirs)
        self.max_dirs = max_dirs


def literal_directory(pattern_dir: str) -> Optional[str]:
    """
    Longest leading part of ``pattern_dir`` without glob segments.

    Returns:
        The directory if it exists, None otherwise
    """
    segments = normalize_path(pattern_dir).replace(os.sep, "/").split("/")

    literal = []
    for segment in segments:
        if has_glob(segment):
            break
        literal.append(segment)

    if not literal:
        # Relative pattern starting with a glob: nearest concrete ancestor is cwd
        literal = ["."]

    # ["", "tmp"] comes from an absolute path
    candidate = "/".join(literal) or "/"
    candidate = normalize_path(candidate)
    if is_dir(candidate):
        return candidate
    return None


def find_dirs(patterns: Sequence[str], max_dirs: int) -> List[str]:
    """
    Collect directories to watch for ``patterns``.

    Stops as soon as the set grows past ``max_dirs`` and returns the partial
    set so the caller can report it.
    """
    targets = OrderedSet()

    for pattern in patterns:
        pattern_dir = os.path.dirname(normalize_path(pattern)) or "."

        real_dir = literal_directory(pattern_dir)
        if real_dir:
            targets.add(real_dir)
        if len(targets) > max_dirs:
            return targets.to_list()

        files, dirs = find(pattern)
        for d in dirs:
            targets.add(d)
        for f in files:
            targets.add(normalize_path(os.path.dirname(f) or "."))
        if len(targets) > max_dirs:
            return targets.to_list()

        _, parent_dirs = find(pattern_dir)
        for d in parent_dirs:
            targets.add(d)
        if len(targets) > max_dirs:
            return targets.to_list()

    return targets.to_list()


def resolve_watch_directories(patterns: Sequence[str], max_dirs: int) -> List[str]:
    """
    Resolve ``patterns`` to the directories to place under watch.

    Raises:
        TooManyTargetsError: If more than ``max_dirs`` directories resolve
    """
    dirs = find_dirs(patterns, max_dirs)
    if len(dirs) > max_dirs:
        logger.error("\n".join(dirs[:max_dirs]) + "\n...")
        raise TooManyTargetsError(dirs, max_dirs)
    return dirs
