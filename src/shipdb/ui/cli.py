from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from shipdb.app import (
    add_catalog_lines,
    add_rle_patterns,
    count_catalog,
    count_remote,
    drain_changes,
    get_remote_speed,
    get_speed,
    merge_catalog_lines,
    push_catalog_lines,
    serve,
)
from shipdb.config import configure_logging
from shipdb.domain.queries import Adjustables
from shipdb.domain.rule_families import family_names
from shipdb.domain.ships import parse_speed

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Maintain a catalog of the smallest known ships",
        epilog="add, add-rle and merge write the data directory directly; "
        "use push while serve is running on it.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    families = family_names()

    subparsers.add_parser("serve", help="Run the HTTP catalog service")

    get = subparsers.add_parser("get", help="Show the best known ship for a speed")
    get.add_argument("type", choices=families, help="Rule family")
    get.add_argument("speed", nargs="+", help="Speed such as c/4, 2c/5o or (2, 1)c/6")
    get.add_argument(
        "--adjustables",
        choices=[choice.value for choice in Adjustables],
        default=Adjustables.YES.value,
        help="Consult adjustable generators (default: %(default)s)",
    )
    get.add_argument("--remote", action="store_true", help="Ask a running service instead")

    for name, help_text in (
        ("add", "Canonicalize catalog lines from FILE into the local files"),
        ("add-rle", "Identify ships in a file of RLE patterns and merge them locally"),
        ("merge", "Merge already canonical catalog lines from FILE locally"),
        ("push", "Submit catalog lines from FILE to a running service"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("type", choices=families, help="Rule family")
        command.add_argument("file", type=Path, help="Input file")

    counts = subparsers.add_parser("counts", help="Count catalog records per motion class")
    counts.add_argument("type", choices=families, help="Rule family")
    counts.add_argument("--remote", action="store_true", help="Ask a running service instead")

    subparsers.add_parser("drain", help="Fetch and clear the change log of a running service")

    return parser.parse_args(list(argv))


def _read_input(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read {path}: {exc}") from exc


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        text = _read_input(parsed_args.file) if hasattr(parsed_args, "file") else ""
        speed = " ".join(parsed_args.speed) if parsed_args.command == "get" else ""
        if speed:
            parse_speed(speed)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        command = parsed_args.command
        if command == "serve":
            serve()
            return
        if command == "get":
            adjustables = Adjustables(parsed_args.adjustables)
            if parsed_args.remote:
                out = get_remote_speed(parsed_args.type, speed, adjustables=adjustables)
            else:
                out = get_speed(parsed_args.type, speed, adjustables=adjustables)
        elif command == "add":
            out = add_catalog_lines(parsed_args.type, text).render()
        elif command == "add-rle":
            out = add_rle_patterns(parsed_args.type, text).render()
        elif command == "merge":
            out = merge_catalog_lines(parsed_args.type, text).render()
        elif command == "counts":
            if parsed_args.remote:
                out = count_remote(parsed_args.type)
            else:
                out = count_catalog(parsed_args.type)
        elif command == "push":
            out = push_catalog_lines(parsed_args.type, text)
        elif command == "drain":
            entries = drain_changes()
            out = json.dumps([entry.model_dump() for entry in entries], indent=2) + "\n"
        else:
            raise ValueError(f"Unsupported command: {command}")  # noqa: TRY301
    except Exception:
        log.exception("Fatal error running %s", parsed_args.command)
        sys.exit(1)

    sys.stdout.write(out)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
