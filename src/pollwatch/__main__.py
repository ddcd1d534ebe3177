"""Command-line entry point that prints change batches as they arrive."""
from __future__ import annotations

import argparse
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .config import ConfigError, WatchConfig, load_config
from .events import Batch, ChangeEvent, ChangeKind
from .watcher import DEFAULT_INTERVAL, watch

_HEADER = "----------------"

_LABELS = {
    ChangeKind.ADDED: "Added",
    ChangeKind.REMOVED: "Removed",
    ChangeKind.CHANGED: "Changed",
    ChangeKind.ERRORED: "Error",
}


def format_batch(batch: Batch) -> str:
    """Render a batch the way the watch command prints it."""

    lines = [_HEADER, "Updates Received", _HEADER]
    for event in batch:
        lines.extend(_describe_event(event))
    return "\n".join(lines)


def _describe_event(event: ChangeEvent) -> List[str]:
    prev = event.previous
    lines = [
        f"{event.path} -- {_LABELS[event.kind]}",
        f"\tIsDir:\t\t{prev.is_dir}",
        f"\tPrev, Size:\t{_format_mtime(prev.mtime)}, {prev.size}",
    ]
    if event.error is not None:
        lines.append(f"\tError:\t\t{event.error}")
    elif event.current is not None:
        lines.append(f"\tNext, Size:\t{_format_mtime(event.current.mtime)}, {event.current.size}")
    return lines


def _format_mtime(mtime: float) -> str:
    return datetime.fromtimestamp(mtime).isoformat(sep=" ")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Poll a file or directory and report changes")
    parser.add_argument("path", nargs="?", help="File or directory to watch")
    parser.add_argument(
        "--recurse",
        action="store_true",
        default=None,
        help="Watch files in directories recursively",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help=f"Seconds between checks for modifications (default: {DEFAULT_INTERVAL})",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML configuration file providing the watch settings",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser


def _resolve_config(args: argparse.Namespace) -> Optional[WatchConfig]:
    config: Optional[WatchConfig] = None
    if args.config:
        config = load_config(Path(args.config))
    if args.path:
        if config is None:
            config = WatchConfig(path=Path(args.path))
        else:
            config.path = Path(args.path)
    if config is None:
        return None
    if args.recurse is not None:
        config.recursive = args.recurse
    if args.interval is not None:
        config.interval = args.interval
    return config


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    try:
        config = _resolve_config(args)
    except ConfigError as exc:
        logging.error("%s", exc)
        return 2

    if config is None:
        print("No file or directory given to watch.\n")
        parser.print_help()
        return 2

    cancel = threading.Event()
    try:
        stream = watch(cancel, config.path, config.recursive, config.interval)
    except (OSError, ValueError) as exc:
        print(exc)
        return 1

    try:
        for batch in stream:
            print(format_batch(batch), flush=True)
    except KeyboardInterrupt:
        logging.info("Watch interrupted by user")
    finally:
        cancel.set()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
