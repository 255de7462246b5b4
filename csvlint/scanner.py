"""
Streaming tokenizer for delimited text.

The scanner reads raw bytes in fixed-size chunks, decodes them as UTF-8
incrementally and runs a small state machine over the decoded characters.
It yields one ``Record`` per logical row as soon as the row's line ending
(or the end of input) is seen, so memory stays bounded by the longest row.

Low-level malformations (bare quotes, malformed escapes, unterminated
quotes) are attached to the record they occur in. Field-count and dialect
policy are left to the validator.

Conditions that make further scanning meaningless (undecodable bytes, a
failing read) are raised as ``ScanAbort`` subclasses after every complete
record before them has been yielded.
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Iterator, List, Optional

from charset_normalizer import from_bytes

from .errors import EncodingFailure, SourceReadError
from .models import QuoteErrorKind
from .rules import (
    CR,
    CRLF,
    DEFAULT_DELIMITER,
    ENCODING_SAMPLE_SIZE,
    FORBIDDEN_DELIMITERS,
    LF,
    QUOTE,
    READ_CHUNK_SIZE,
    UTF8_BOM,
)

logger = logging.getLogger(__name__)


class _State(Enum):
    FIELD_START = "field_start"
    UNQUOTED = "unquoted"
    QUOTED = "quoted"
    QUOTE_PENDING = "quote_pending"
    # After a malformed escape the rest of the field is dropped.
    SKIP_FIELD = "skip_field"


@dataclass
class QuoteIssue:
    kind: QuoteErrorKind
    field_index: int


@dataclass
class Record:
    number: int
    line: int
    fields: List[str]
    terminator: Optional[str] = None
    issues: List[QuoteIssue] = field(default_factory=list)
    recovered_fields: List[int] = field(default_factory=list)
    # Empty line: carries the next record's number and only a line ending.
    blank: bool = False

    @property
    def malformed(self) -> bool:
        return bool(self.issues)


class Scanner:
    """Single-pass iterator of ``Record`` objects over a binary stream."""

    def __init__(
        self,
        source: BinaryIO,
        delimiter: str = DEFAULT_DELIMITER,
        lazy_quotes: bool = False,
        chunk_size: int = READ_CHUNK_SIZE,
    ) -> None:
        if len(delimiter) != 1 or delimiter in FORBIDDEN_DELIMITERS:
            raise ValueError(f"unusable delimiter {delimiter!r}")
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self._source = source
        self._delimiter = delimiter
        self._lazy_quotes = lazy_quotes
        self._chunk_size = chunk_size
        self._started = False

        self._state = _State.FIELD_START
        self._buf: List[str] = []
        self._fields: List[str] = []
        self._issues: List[QuoteIssue] = []
        self._recovered: List[int] = []
        self._field_recovered = False
        self._field_bare_quote = False
        # Record closed by CR, held until we know whether LF follows.
        self._held: Optional[Record] = None

        self._number = 1
        self._line = 1
        self._record_line = 1
        self._prev_cr = False
        self._at_start = True

    def __iter__(self) -> Iterator[Record]:
        if self._started:
            raise RuntimeError("Scanner is single-pass and has already been consumed")
        self._started = True
        return self._records()

    def _records(self) -> Iterator[Record]:
        decoder = codecs.getincrementaldecoder("utf-8")()
        offset = 0
        while True:
            try:
                chunk = self._source.read(self._chunk_size)
            except OSError as exc:
                yield from self._release_held()
                raise SourceReadError(
                    str(exc), self._number, self._record_line, issues=self._issues
                ) from exc
            final = not chunk
            try:
                text = decoder.decode(chunk, final)
            except UnicodeDecodeError as exc:
                raw = bytes(exc.object)
                pending = len(raw) - len(chunk)
                yield from self._feed(raw[: exc.start].decode("utf-8"))
                yield from self._release_held()
                raise EncodingFailure(
                    offset - pending + exc.start,
                    self._number,
                    self._record_line,
                    detected=_guess_encoding(raw, exc.start),
                    issues=self._issues,
                ) from exc
            offset += len(chunk)
            yield from self._feed(text)
            if final:
                break
        yield from self._finish()

    def _feed(self, text: str) -> Iterator[Record]:
        if self._at_start and text:
            self._at_start = False
            if text.startswith(UTF8_BOM):
                text = text[1:]

        delimiter = self._delimiter
        for char in text:
            if char == CR:
                self._line += 1
            elif char == LF and not self._prev_cr:
                self._line += 1
            prev_cr, self._prev_cr = self._prev_cr, char == CR

            held = self._held
            if held is not None:
                self._held = None
                if char == LF and prev_cr:
                    held.terminator = CRLF
                    yield held
                    continue
                held.terminator = CR
                yield held

            state = self._state
            if state is _State.QUOTED:
                if char == QUOTE:
                    self._state = _State.QUOTE_PENDING
                else:
                    self._buf.append(char)
                continue

            if char == CR or char == LF:
                if state is _State.FIELD_START and not self._fields and not self._buf:
                    record = self._blank_record()
                else:
                    record = self._end_record()
                if char == LF:
                    record.terminator = LF
                    yield record
                else:
                    self._held = record
                continue

            if char == delimiter:
                self._end_field()
                continue

            if state is _State.FIELD_START:
                if char == QUOTE:
                    self._state = _State.QUOTED
                else:
                    self._buf.append(char)
                    self._state = _State.UNQUOTED
            elif state is _State.UNQUOTED:
                if char == QUOTE:
                    self._bare_quote()
                self._buf.append(char)
            elif state is _State.QUOTE_PENDING:
                if char == QUOTE:
                    # doubled quote
                    self._buf.append(QUOTE)
                    self._state = _State.QUOTED
                elif self._lazy_quotes:
                    self._buf.append(QUOTE)
                    self._buf.append(char)
                    self._field_recovered = True
                    self._state = _State.UNQUOTED
                else:
                    self._issue(QuoteErrorKind.MALFORMED_ESCAPE)
                    self._state = _State.SKIP_FIELD

    def _bare_quote(self) -> None:
        if self._lazy_quotes:
            self._field_recovered = True
        elif not self._field_bare_quote:
            self._field_bare_quote = True
            self._issue(QuoteErrorKind.BARE_QUOTE)

    def _issue(self, kind: QuoteErrorKind) -> None:
        issue = QuoteIssue(kind=kind, field_index=len(self._fields))
        logger.debug("record %d: %s in field %d", self._number, kind.message, issue.field_index + 1)
        self._issues.append(issue)

    def _end_field(self) -> None:
        if self._field_recovered:
            self._recovered.append(len(self._fields))
        self._fields.append("".join(self._buf))
        self._buf = []
        self._field_recovered = False
        self._field_bare_quote = False
        self._state = _State.FIELD_START

    def _end_record(self) -> Record:
        self._end_field()
        record = Record(
            number=self._number,
            line=self._record_line,
            fields=self._fields,
            issues=self._issues,
            recovered_fields=self._recovered,
        )
        self._number += 1
        self._record_line = self._line
        self._fields = []
        self._issues = []
        self._recovered = []
        return record

    def _blank_record(self) -> Record:
        record = Record(number=self._number, line=self._record_line, fields=[], blank=True)
        self._record_line = self._line
        return record

    def _release_held(self) -> Iterator[Record]:
        if self._held is not None:
            record, self._held = self._held, None
            record.terminator = CR
            yield record

    def _finish(self) -> Iterator[Record]:
        yield from self._release_held()
        if self._state is _State.QUOTED:
            self._issue(QuoteErrorKind.UNTERMINATED_QUOTE)
            yield self._end_record()
        elif self._buf or self._fields or self._state is not _State.FIELD_START:
            yield self._end_record()


def _guess_encoding(raw: bytes, position: int) -> Optional[str]:
    """Best guess at the real encoding of bytes that failed UTF-8 decoding."""
    start = max(0, position - ENCODING_SAMPLE_SIZE // 2)
    match = from_bytes(raw[start : start + ENCODING_SAMPLE_SIZE]).best()
    if match is None:
        return None
    encoding = match.encoding
    if encoding.lower().replace("-", "_") in ("utf_8", "utf8", "ascii"):
        return None
    return encoding


__all__ = ["QuoteIssue", "Record", "Scanner"]
