"""
Structural validation of delimited text.

Responsibilities:
- field count consistency against the header (record 1)
- CRLF line endings in strict RFC 4180 mode
- comma delimiter in strict RFC 4180 mode (checked once, at construction)
- forwarding quote malformations found by the scanner
- unescaped special characters in fields produced by lenient recovery
- turning fatal scan conditions into a trailing defect
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Union

from .errors import ScanAbort
from .models import Defect, ErrorCategory, Mode, ReportSummary, ValidateResponse, ValidationResult
from .rules import CR, CRLF, LF, QUOTE, RFC4180_DELIMITER, READ_CHUNK_SIZE
from .scanner import Record, Scanner

logger = logging.getLogger(__name__)


class Validator:
    """Checks one byte stream against a ``Mode``.

    A Validator accumulates defects for a single run; create a new one for
    each input.
    """

    def __init__(self, mode: Mode, chunk_size: int = READ_CHUNK_SIZE) -> None:
        self.mode = mode
        self._chunk_size = chunk_size
        self._errors: List[Defect] = []
        self._expected_fields: Optional[int] = None
        self._records = 0
        self._used = False
        self._config_error: Optional[str] = None
        if mode.strict_rfc4180 and mode.delimiter != RFC4180_DELIMITER:
            self._config_error = (
                f"RFC 4180 mode requires a comma delimiter, got {mode.delimiter!r}"
            )

    def validate(self, source: BinaryIO) -> ValidationResult:
        if self._used:
            raise RuntimeError("Validator instances are single-use")
        self._used = True

        if self._config_error is not None:
            return self._abort(
                Defect(record_number=0, category=ErrorCategory.IO_ERROR, message=self._config_error)
            )

        scanner = Scanner(
            source,
            delimiter=self.mode.delimiter,
            lazy_quotes=self.mode.lazy_quotes,
            chunk_size=self._chunk_size,
        )
        try:
            for record in scanner:
                self.check_record(record)
        except ScanAbort as exc:
            if exc.issues:
                partial = Record(number=exc.record_number, line=exc.line, fields=[], issues=exc.issues)
                self._check_quotes(partial)
            return self._abort(exc.to_defect())

        result = ValidationResult(
            errors=self._errors,
            valid=not self._errors,
            halted=False,
            records=self._records,
        )
        logger.info("validated %d records, %d defects", result.records, len(result.errors))
        return result

    def check_record(self, record: Record) -> None:
        """Apply every per-record rule, in order, to one scanned record."""
        if record.blank:
            # Empty lines are not records; only their line ending is checked.
            self._check_line_ending(record)
            return
        self._records += 1
        self._check_field_count(record)
        self._check_line_ending(record)
        self._check_quotes(record)
        self._check_unescaped(record)

    def _check_field_count(self, record: Record) -> None:
        found = len(record.fields)
        if self._expected_fields is None:
            self._expected_fields = found
            return
        if found != self._expected_fields:
            self._add(
                record,
                ErrorCategory.FIELD_COUNT_MISMATCH,
                f"wrong number of fields: expected {self._expected_fields}, found {found}",
                values=list(record.fields),
            )

    def _check_line_ending(self, record: Record) -> None:
        if not self.mode.strict_rfc4180:
            return
        terminator = record.terminator
        if terminator == CRLF:
            return
        if terminator is None:
            # Only the final record can be unterminated.
            if self.mode.require_final_crlf:
                self._add(
                    record,
                    ErrorCategory.LINE_ENDING_ERROR,
                    "missing line ending on final record (RFC 4180 requires CRLF)",
                )
            return
        self._add(
            record,
            ErrorCategory.LINE_ENDING_ERROR,
            f"invalid line ending {_describe_terminator(terminator)} (RFC 4180 requires CRLF)",
        )

    def _check_quotes(self, record: Record) -> None:
        for issue in record.issues:
            self._add(
                record,
                ErrorCategory.QUOTE_ERROR,
                issue.kind.message,
                field=issue.field_index + 1,
            )

    def _check_unescaped(self, record: Record) -> None:
        specials = (self.mode.delimiter, QUOTE, CR, LF)
        for index in record.recovered_fields:
            value = record.fields[index]
            if any(char in value for char in specials):
                self._add(
                    record,
                    ErrorCategory.UNESCAPED_SPECIAL_CHARACTER,
                    f"field {index + 1} contains unescaped special characters",
                    field=index + 1,
                )

    def _add(
        self,
        record: Record,
        category: ErrorCategory,
        message: str,
        field: Optional[int] = None,
        values: Optional[List[str]] = None,
    ) -> None:
        defect = Defect(
            record_number=record.number,
            category=category,
            message=message,
            line=record.line,
            field=field,
            record=values,
        )
        logger.debug("%s", defect)
        self._errors.append(defect)

    def _abort(self, defect: Defect) -> ValidationResult:
        logger.warning("validation halted: %s", defect)
        self._errors.append(defect)
        return ValidationResult(
            errors=self._errors,
            valid=False,
            halted=True,
            records=self._records,
        )


def _describe_terminator(terminator: str) -> str:
    return {LF: "LF", CR: "CR"}.get(terminator, repr(terminator))


def validate(
    source: BinaryIO,
    delimiter: str = RFC4180_DELIMITER,
    lazy_quotes: bool = False,
    strict_rfc4180: bool = False,
    mode: Optional[Mode] = None,
) -> ValidationResult:
    """Validate a readable binary stream and return the full result."""
    if mode is None:
        mode = Mode(delimiter=delimiter, lazy_quotes=lazy_quotes, strict_rfc4180=strict_rfc4180)
    return Validator(mode).validate(source)


def validate_path(path: Union[str, Path], mode: Mode) -> ValidationResult:
    """Open ``path`` and validate it. ``OSError`` from opening propagates."""
    with Path(path).open("rb") as handle:
        return Validator(mode).validate(handle)


def build_report(result: ValidationResult, mode: Mode) -> Dict[str, Any]:
    """Return a dict matching the API's response envelope."""
    summary = ReportSummary(
        records=result.records,
        errors=len(result.errors),
        valid=result.valid,
        halted=result.halted,
        by_category={category.value: count for category, count in result.counts().items() if count},
    )
    return ValidateResponse(mode=mode, summary=summary, errors=result.errors).model_dump(mode="json")
