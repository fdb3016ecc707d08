"""Command table: which command to run for an updated file."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Tuple

import yaml
from loguru import logger
from pydantic import ValidationError

from gazer.models.schemas import CommandConfig, CommandRule

CONFIG_FILE_NAME = ".gazer.yml"

DEFAULT_COMMANDS_YAML = """
commands:
  - ext: .py
    run: python "{file}"
  - ext: .rb
    run: ruby "{file}"
  - ext: .js
    run: node "{file}"
  - ext: .ts
    run: ts-node "{file}"
  - ext: .sh
    run: sh "{file}"
  - ext: .go
    run: go run "{file}"
  - ext: .php
    run: php "{file}"
  - ext: .rs
    run: rustc "{file}" && ./{base0}
  - ext: .cpp
    run: g++ "{file}" -o a.out && ./a.out
  - re: ^Dockerfile$
    run: docker build -f "{file}" .
"""

_PLACEHOLDER = re.compile(r"\{(file|ext|base0|base|dir|abs)\}")


class CommandConfigError(RuntimeError):
    """Raised when a command table file cannot be loaded."""


class CommandTable:
    """Ordered list of command rules; the first matching rule wins."""

    def __init__(self, rules: Iterable[CommandRule]):
        self.rules = list(rules)

    @classmethod
    def single(cls, run: str) -> "CommandTable":
        """Table with one rule that matches every path."""
        return cls([CommandRule(re=".", run=run)])

    def match(self, path: str) -> Tuple[Optional[str], bool]:
        """
        Find the command template for ``path``.

        Returns:
            Tuple of (template, found)
        """
        for rule in self.rules:
            if rule.matches(path):
                return rule.run, True
        return None, False

    def command_for(self, path: str) -> Optional[str]:
        """Rendered command for ``path``, or None when no rule matches."""
        template, found = self.match(path)
        if not found:
            return None
        return render(template, path)

    def __len__(self) -> int:
        return len(self.rules)


def placeholders(path: str) -> Dict[str, str]:
    """Values available to command templates for ``path``."""
    base = os.path.basename(path)
    return {
        "file": path,
        "ext": os.path.splitext(path)[1],
        "base": base,
        "base0": os.path.splitext(base)[0],
        "dir": os.path.dirname(path) or ".",
        "abs": os.path.abspath(path),
    }


def render(template: str, path: str) -> str:
    """Substitute ``{file}``-style placeholders; other braces are kept."""
    values = placeholders(path)
    return _PLACEHOLDER.sub(lambda m: values[m.group(1)], template)


def default_config_paths() -> Sequence[Path]:
    home = Path.home()
    return [
        Path.cwd() / CONFIG_FILE_NAME,
        home / CONFIG_FILE_NAME,
        home / ".config" / "gazer" / "gazer.yml",
    ]


def parse_command_table(text: str, source: str = "<string>") -> CommandTable:
    """Build a command table from YAML text."""
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise CommandConfigError(f"{source}: invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise CommandConfigError(f"{source}: expected a mapping with a 'commands' list")

    try:
        config = CommandConfig.model_validate(data)
    except ValidationError as e:
        raise CommandConfigError(f"{source}: {e}") from e

    return CommandTable(config.commands)


def load_command_table(path: Optional[Path] = None) -> CommandTable:
    """
    Load the command table.

    Args:
        path: Explicit YAML file. When omitted the default locations are
            searched and the built-in table is used if none exists.

    Returns:
        CommandTable
    """
    if path is not None:
        path = Path(path).expanduser()
        if not path.is_file():
            raise CommandConfigError(f"{path}: config file not found")
        candidates = [path]
    else:
        candidates = [p for p in default_config_paths() if p.is_file()]

    if not candidates:
        logger.debug("No config file found, using default commands")
        return parse_command_table(DEFAULT_COMMANDS_YAML, "<default>")

    config_path = candidates[0]
    logger.debug(f"Loading commands from {config_path}")
    return parse_command_table(config_path.read_text(encoding="utf-8"), str(config_path))
