"""Command line entry point: ``csvlint [options] FILE``."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from .models import ErrorCategory, Mode, ValidationResult
from .rules import (
    DEFAULT_DELIMITER,
    EXIT_FATAL,
    EXIT_INVALID,
    EXIT_VALID,
    RFC4180_DELIMITER,
    parse_delimiter,
)
from .validate import Validator

logger = logging.getLogger("csvlint")

# Every category must have a label; a missing one fails loudly in summarize().
CATEGORY_LABELS = {
    ErrorCategory.FIELD_COUNT_MISMATCH: "field count error(s)",
    ErrorCategory.LINE_ENDING_ERROR: "line ending error(s) (RFC 4180 requires CRLF)",
    ErrorCategory.QUOTE_ERROR: "quote/escaping error(s)",
    ErrorCategory.UNESCAPED_SPECIAL_CHARACTER: "unescaped special character error(s)",
    ErrorCategory.ENCODING_ERROR: "encoding error(s)",
    ErrorCategory.IO_ERROR: "I/O error(s)",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="csvlint",
        description="A CSV linter that validates CSV files according to RFC 4180.",
    )
    parser.add_argument("file", help="CSV file to validate, or '-' for stdin.")
    parser.add_argument(
        "-d",
        "--delimiter",
        default=DEFAULT_DELIMITER,
        help="Field delimiter in the file (e.g. ',' '\\t' '|' ':' ';').",
    )
    parser.add_argument(
        "-l",
        "--lazyquotes",
        action="store_true",
        help="Try to parse improperly escaped quotes.",
    )
    parser.add_argument(
        "--rfc4180",
        action="store_true",
        help="Strict RFC 4180 compliance mode (implies comma delimiter and CRLF line endings).",
    )
    parser.add_argument(
        "--require-final-crlf",
        action="store_true",
        help="In RFC 4180 mode, also require CRLF after the last record.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr.")
    return parser


def configure_logging(verbose: bool) -> None:
    if verbose:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(os.environ.get("CSVLINT_LOG_LEVEL", "WARNING").upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(stream=sys.stderr, level=level, format="%(levelname)s %(name)s: %(message)s")


def resolve_mode(args: argparse.Namespace) -> Mode:
    """Turn parsed flags into a Mode, warning about flags strict mode overrides."""
    if args.rfc4180:
        if args.delimiter != RFC4180_DELIMITER:
            print("Warning: --rfc4180 mode requires comma delimiter, ignoring --delimiter option", file=sys.stderr)
        if args.lazyquotes:
            print("Warning: --rfc4180 mode disables lazy quotes, ignoring --lazyquotes option", file=sys.stderr)
        return Mode(
            delimiter=RFC4180_DELIMITER,
            lazy_quotes=False,
            strict_rfc4180=True,
            require_final_crlf=args.require_final_crlf,
        )

    mode = Mode(delimiter=parse_delimiter(args.delimiter), lazy_quotes=args.lazyquotes)
    if mode.delimiter != RFC4180_DELIMITER or mode.lazy_quotes:
        print("Warning: not using defaults, may not validate CSV to RFC 4180", file=sys.stderr)
    return mode


def summarize(result: ValidationResult) -> List[str]:
    lines = [f"Found {len(result.errors)} validation error(s):"]
    for category, count in result.counts().items():
        if count:
            lines.append(f"  - {count} {CATEGORY_LABELS[category]}")
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        mode = resolve_mode(args)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return EXIT_FATAL

    if mode.strict_rfc4180:
        print("Running in strict RFC 4180 compliance mode")
        print("- Delimiter: comma (,)")
        print("- Line endings: CRLF required")
        print("- Quote escaping: strict")
        print()

    if args.file == "-":
        result = Validator(mode).validate(sys.stdin.buffer)
    else:
        try:
            handle = open(args.file, "rb")
        except FileNotFoundError:
            print(f"file '{args.file}' does not exist", file=sys.stderr)
            return EXIT_FATAL
        except OSError as exc:
            print(f"error opening file '{args.file}': {exc}", file=sys.stderr)
            return EXIT_FATAL
        with handle:
            logger.info("validating %s", args.file)
            result = Validator(mode).validate(handle)

    if result.valid:
        print("file is valid and complies with RFC 4180" if mode.strict_rfc4180 else "file is valid")
        return EXIT_VALID

    for line in summarize(result):
        print(line)
    print()
    for defect in result.errors:
        print(defect)

    if result.halted:
        print("\nunable to parse any further")
        return EXIT_FATAL
    return EXIT_INVALID


if __name__ == "__main__":
    sys.exit(main())
