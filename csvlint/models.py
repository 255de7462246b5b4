from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .rules import DEFAULT_DELIMITER, FORBIDDEN_DELIMITERS


class ErrorCategory(str, Enum):
    FIELD_COUNT_MISMATCH = "FieldCountMismatch"
    LINE_ENDING_ERROR = "LineEndingError"
    QUOTE_ERROR = "QuoteError"
    UNESCAPED_SPECIAL_CHARACTER = "UnescapedSpecialCharacter"
    ENCODING_ERROR = "EncodingError"
    IO_ERROR = "IoError"


class QuoteErrorKind(str, Enum):
    UNTERMINATED_QUOTE = "unterminated_quote"
    BARE_QUOTE = "bare_quote"
    MALFORMED_ESCAPE = "malformed_escape"

    @property
    def message(self) -> str:
        return _QUOTE_MESSAGES[self]


_QUOTE_MESSAGES = {
    QuoteErrorKind.UNTERMINATED_QUOTE: "unterminated quote",
    QuoteErrorKind.BARE_QUOTE: 'bare " in non-quoted field',
    QuoteErrorKind.MALFORMED_ESCAPE: 'extraneous or missing " in quoted field',
}


class Mode(BaseModel):
    """Dialect a file is checked against. Immutable for the whole run."""

    model_config = ConfigDict(frozen=True)

    delimiter: str = DEFAULT_DELIMITER
    lazy_quotes: bool = False
    strict_rfc4180: bool = False
    # Strict mode only: a last line without CRLF is tolerated unless this is set.
    require_final_crlf: bool = False

    @field_validator("delimiter")
    @classmethod
    def _single_ascii_char(cls, value: str) -> str:
        if len(value) != 1 or not value.isascii():
            raise ValueError("delimiter must be a single ASCII character")
        if value in FORBIDDEN_DELIMITERS:
            raise ValueError("delimiter cannot be a quote or a line-ending character")
        return value


class Defect(BaseModel):
    record_number: int
    category: ErrorCategory
    message: str
    line: Optional[int] = Field(default=None, examples=[None])
    field: Optional[int] = Field(default=None, examples=[None])
    record: Optional[List[str]] = Field(default=None, examples=[None])

    def __str__(self) -> str:
        return f"Record #{self.record_number} has error: {self.message}"


class ValidationResult(BaseModel):
    errors: List[Defect] = Field(default_factory=list)
    valid: bool = True
    halted: bool = False
    records: int = 0

    def counts(self) -> Dict[ErrorCategory, int]:
        tally = {category: 0 for category in ErrorCategory}
        for defect in self.errors:
            tally[defect.category] += 1
        return tally


class ReportSummary(BaseModel):
    records: int = 0
    errors: int = 0
    valid: bool = True
    halted: bool = False
    by_category: Dict[str, int] = Field(default_factory=dict)


class ValidateResponse(BaseModel):
    mode: Mode
    summary: ReportSummary
    errors: List[Defect] = Field(default_factory=list)


class HealthResponse(BaseModel):
    ok: bool = True
