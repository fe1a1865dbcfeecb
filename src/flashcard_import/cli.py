import argparse
import asyncio
import json
import logging
import sys

from flashcard_import.errors import FlashcardImportError, UnsupportedContainerVariant
from flashcard_import.pipeline import import_package
from flashcard_import.settings import ImportSettings

LOG = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flashcard-import",
        description="Import an Anki package or JSON/CSV export and print the flashcards as JSON.",
    )
    parser.add_argument("file", help="Path to an .apkg, .json, .ankijson, .csv or .txt file")
    parser.add_argument(
        "--limit", type=positive_int, default=50, help="Maximum notes read from a package"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    settings = ImportSettings(row_limit=args.limit, fallback_row_limit=args.limit)
    try:
        records = asyncio.run(import_package(args.file, settings=settings))
    except UnsupportedContainerVariant as e:
        print(e.remediation, file=sys.stderr)
        return 2
    except FlashcardImportError as e:
        LOG.error("%s", e)
        return 1

    payload = [r.model_dump(mode="json", by_alias=True) for r in records]
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
