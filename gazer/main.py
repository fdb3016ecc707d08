"""
gazer - run a command when watched files are updated.

    gazer '*.py'
    gazer -r 'make test' 'src/**/*.c'
    gazer --restart -r 'python server.py' 'app/**/*.py'
"""

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from loguru import logger

from gazer import __version__
from gazer.domains.dispatch import Gazer
from gazer.domains.notify import TooManyTargetsError, WatchSourceError
from gazer.utils.commands import CommandConfigError, CommandTable, load_command_table
from gazer.utils.config import get_settings

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with a single stderr sink."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level.upper())


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="gazer",
        description="Watch files and run a command whenever one of them is updated.",
    )
    parser.add_argument(
        "patterns",
        nargs="+",
        help="Glob patterns of files to watch (supports ** and {a,b}).",
    )
    parser.add_argument(
        "-r", "--run",
        default=None,
        help="Command to run for every updated file; {file}, {base}, {base0}, {dir}, {ext} and {abs} are substituted.",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=settings.config_file,
        help="YAML file with per-extension commands (default: ./.gazer.yml, ~/.gazer.yml).",
    )
    parser.add_argument(
        "-t", "--timeout",
        type=int,
        default=settings.timeout,
        help="Kill a command after this many seconds (default: no timeout).",
    )
    parser.add_argument(
        "--restart",
        action="store_true",
        default=settings.restart,
        help="Kill the running command and start it again when a file is updated.",
    )
    parser.add_argument(
        "--max-watch-dirs",
        type=int,
        default=settings.max_watch_dirs,
        help="Maximum number of directories to watch (default: %(default)s).",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors.")
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Log watch details.")
    verbosity.add_argument("--debug", action="store_true", help="Log every filesystem event.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser.parse_args(argv)


def log_level(args: argparse.Namespace) -> str:
    if args.debug:
        return "DEBUG"
    if args.quiet:
        return "WARNING"
    if args.verbose:
        return "INFO"
    return get_settings().log_level


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the CLI."""
    args = parse_args(argv)
    configure_logging(log_level(args))

    try:
        if args.run:
            commands = CommandTable.single(args.run)
        else:
            commands = load_command_table(args.config)
    except CommandConfigError as e:
        logger.error(f"{e}")
        return 1

    stop_event = threading.Event()

    def _signal_handler(signum, frame):  # noqa: D401
        logger.debug(f"Received signal {signum}, shutting down.")
        stop_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        dispatcher = Gazer(args.patterns, args.max_watch_dirs, stop_event=stop_event)
    except (TooManyTargetsError, WatchSourceError) as e:
        logger.error(f"{e}")
        return 1

    with dispatcher:
        dispatcher.run(commands, timeout=args.timeout, restart=args.restart)

    logger.debug(f"Commands dispatched: {dispatcher.counter}")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
