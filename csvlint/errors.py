from __future__ import annotations

from typing import Any, List, Optional, Sequence

from .models import Defect, ErrorCategory


class CsvLintError(Exception):
    """Base class for errors raised by csvlint."""


class ScanAbort(CsvLintError):
    """A condition that stops the scan before the end of input.

    ``issues`` holds the quote issues already found in the record that was
    being assembled when the scan stopped.
    """

    category = ErrorCategory.IO_ERROR

    def __init__(
        self,
        message: str,
        record_number: int,
        line: Optional[int] = None,
        issues: Sequence[Any] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.record_number = record_number
        self.line = line
        self.issues: List[Any] = list(issues)

    def to_defect(self) -> Defect:
        return Defect(
            record_number=self.record_number,
            category=self.category,
            message=self.message,
            line=self.line,
        )


class EncodingFailure(ScanAbort):
    category = ErrorCategory.ENCODING_ERROR

    def __init__(
        self,
        offset: int,
        record_number: int,
        line: Optional[int] = None,
        detected: Optional[str] = None,
        issues: Sequence[Any] = (),
    ) -> None:
        message = f"invalid UTF-8 byte sequence at byte offset {offset}"
        if detected:
            message += f" (input looks like {detected})"
        super().__init__(message, record_number, line, issues)
        self.offset = offset
        self.detected = detected


class SourceReadError(ScanAbort):
    category = ErrorCategory.IO_ERROR

    def __init__(
        self,
        reason: str,
        record_number: int,
        line: Optional[int] = None,
        issues: Sequence[Any] = (),
    ) -> None:
        super().__init__(f"I/O error: {reason}", record_number, line, issues)
