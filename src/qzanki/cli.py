"""Main CLI interface for qzanki."""

import argparse
import logging
import sys
from pathlib import Path

from qzanki.core.config import init_project, load_config
from qzanki.core.errors import ConfigError, ParseErrors, TransactionError
from qzanki.core.pipeline import save_project
from qzanki.models.collection import DeckReport

# Exit statuses from sysexits.h
EXIT_DATAERR = 65
EXIT_CONFIG = 78
EXIT_FAILURE = 1


def format_reports(reports: list[DeckReport]) -> list[str]:
    """One line per deck that changed, with counts aligned."""
    if not reports:
        return ["Nothing was added or updated"]

    added_width = len(str(max(report.added for report in reports)))
    updated_width = len(str(max(report.updated for report in reports)))
    lines = [
        f"{report.added:>{added_width}} added and {report.updated:>{updated_width}} updated to {report.name}"
        for report in reports
        if report.changed
    ]
    return lines or ["Nothing was added or updated"]


def init(directory: str | None) -> int:
    """Create a new project."""
    config_dir = init_project(Path(directory) if directory else None)
    print(f"Initialized empty qzanki project in {config_dir}")
    return 0


def save(collection: str | None, ignore_case: bool) -> int:
    """Save the current project's cards to the collection."""
    config = load_config(collection=Path(collection) if collection else None)

    try:
        reports = save_project(config, case_insensitive=True if ignore_case else None)
    except ParseErrors as e:
        for error in e.errors:
            print(error, file=sys.stderr)
        return EXIT_DATAERR
    except TransactionError as e:
        for message in e.messages:
            print(message, file=sys.stderr)
        print("Nothing was saved", file=sys.stderr)
        return EXIT_FAILURE

    for line in format_reports(reports):
        print(line)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="qzanki - Keep an Anki collection in sync with plain-text card files"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Init
    init_parser = subparsers.add_parser("init", help="Create a qzanki project")
    init_parser.add_argument("directory", nargs="?", help="Project directory (default: current)")

    # Save
    save_parser = subparsers.add_parser("save", help="Add and update notes from card files")
    save_parser.add_argument("--collection", help="Path to collection.anki2, overriding the config")
    save_parser.add_argument(
        "--ignore-case", action="store_true", help="Match card ids to notes ignoring case"
    )
    save_parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    try:
        if args.command == "init":
            return init(args.directory)
        elif args.command == "save":
            return save(args.collection, args.ignore_case)
    except ConfigError as e:
        print(e, file=sys.stderr)
        return EXIT_CONFIG
    return 0


if __name__ == "__main__":
    sys.exit(main())
