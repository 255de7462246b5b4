"""
Dialect rules shared by the scanner, validator and the outer surfaces.

RFC 4180 fixes comma and CRLF; everything else here is the relaxed dialect
the tool accepts outside strict mode.
"""

from __future__ import annotations

QUOTE = '"'
CR = "\r"
LF = "\n"
CRLF = CR + LF
UTF8_BOM = "\ufeff"

RFC4180_DELIMITER = ","
DEFAULT_DELIMITER = RFC4180_DELIMITER
SUPPORTED_DELIMITERS = (",", "\t", "|", ":", ";")
FORBIDDEN_DELIMITERS = (QUOTE, CR, LF)

READ_CHUNK_SIZE = 64 * 1024
ENCODING_SAMPLE_SIZE = 4096

SUPPORTED_SUFFIXES = (".csv", ".tsv", ".txt")

EXIT_VALID = 0
EXIT_FATAL = 1
EXIT_INVALID = 2


def parse_delimiter(value: str) -> str:
    """Parse a delimiter given on the command line or in a query string.

    ``\\t`` and ``tab`` mean a tab character; any other single character is
    taken as is.
    """
    if value in ("\\t", "tab"):
        return "\t"
    if len(value) != 1:
        raise ValueError(
            f"error parsing delimiter '{value}', note that only one-character delimiters are supported"
        )
    return value
