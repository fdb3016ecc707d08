"""
Glob expansion and matching for watch patterns.

Patterns follow shell glob syntax per path segment, plus ``**`` (any number
of directory levels) and ``{a,b}`` alternatives.
"""

import fnmatch
import glob
import os
from typing import List, Sequence, Tuple

from gazer.utils.helpers import OrderedSet, is_dir, is_file, normalize_path

# A path segment containing any of these is treated as a glob segment
GLOB_CHARS = "*?[{\\"


def has_glob(segment: str) -> bool:
    """Check if a path segment contains glob metacharacters."""
    return any(ch in GLOB_CHARS for ch in segment)


def expand_braces(pattern: str) -> List[str]:
    """
    Expand ``{a,b}`` alternatives into separate patterns.

    Args:
        pattern: Glob pattern, possibly containing nested alternatives

    Returns:
        List of patterns without braces, in order of appearance
    """
    start = pattern.find("{")
    if start == -1:
        return [pattern]

    depth = 0
    parts = []
    last = start + 1
    for i in range(start, len(pattern)):
        ch = pattern[i]
        if ch == "{":
            depth += 1
        elif ch == "," and depth == 1:
            parts.append(pattern[last:i])
            last = i + 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                parts.append(pattern[last:i])
                prefix, suffix = pattern[:start], pattern[i + 1:]
                expanded = OrderedSet()
                for part in parts:
                    for candidate in expand_braces(prefix + part + suffix):
                        expanded.add(candidate)
                return expanded.to_list()

    # Unbalanced braces are taken literally
    return [pattern]


def find(pattern: str) -> Tuple[List[str], List[str]]:
    """
    Expand a glob pattern against the filesystem.

    Returns:
        Tuple of (files, dirs), each sorted and normalized
    """
    files = OrderedSet()
    dirs = OrderedSet()

    for expanded in expand_braces(pattern):
        for match in glob.glob(expanded, recursive=True):
            path = normalize_path(match)
            if is_file(path):
                files.add(path)
            elif is_dir(path):
                dirs.add(path)

    return sorted(files), sorted(dirs)


def glob_match(pattern: str, path: str) -> bool:
    """Check if ``path`` matches ``pattern``."""
    name_parts = _split(normalize_path(path))
    for expanded in expand_braces(pattern):
        if _match_parts(_split(normalize_path(expanded)), name_parts):
            return True
    return False


def match_any(patterns: Sequence[str], path: str) -> bool:
    """Check if ``path`` matches at least one of ``patterns``."""
    return any(glob_match(pattern, path) for pattern in patterns)


def _split(path: str) -> List[str]:
    return path.replace(os.sep, "/").split("/")


def _match_parts(pattern_parts: Sequence[str], name_parts: Sequence[str]) -> bool:
    if not pattern_parts:
        return not name_parts

    head, rest = pattern_parts[0], pattern_parts[1:]
    if head == "**":
        return any(
            _match_parts(rest, name_parts[i:])
            for i in range(len(name_parts) + 1)
        )

    if not name_parts:
        return False

    return fnmatch.fnmatchcase(name_parts[0], head) and _match_parts(rest, name_parts[1:])
