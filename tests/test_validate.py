import io

import pytest
from pydantic import ValidationError

from csvlint.models import Defect, ErrorCategory, Mode
from csvlint.validate import Validator, build_report, validate, validate_path

STRICT = Mode(delimiter=",", lazy_quotes=False, strict_rfc4180=True)
LENIENT = Mode()


def _run(data, mode=LENIENT, **kwargs):
    return Validator(mode, **kwargs).validate(io.BytesIO(data))


def _categories(result):
    return [(d.record_number, d.category) for d in result.errors]


def test_well_formed_strict_file_is_valid():
    result = _run(b"a,b,c\r\n1,2,3\r\n", STRICT)
    assert result.valid is True
    assert result.halted is False
    assert result.errors == []
    assert result.records == 2


def test_missing_field_is_a_field_count_mismatch():
    result = _run(b"a,b,c\r\n1,2\r\n", STRICT)
    assert result.valid is False
    assert _categories(result) == [(2, ErrorCategory.FIELD_COUNT_MISMATCH)]
    defect = result.errors[0]
    assert "expected 3" in defect.message
    assert "found 2" in defect.message
    assert defect.record == ["1", "2"]


def test_bare_lf_in_strict_mode_is_a_line_ending_error():
    result = _run(b"a,b,c\r\n1,2,3\n", STRICT)
    assert result.valid is False
    assert _categories(result) == [(2, ErrorCategory.LINE_ENDING_ERROR)]
    assert "LF" in result.errors[0].message


def test_unterminated_quote_at_end_of_file():
    result = _run(b'a,b,c\r\n1,2,"3\r\n', STRICT)
    assert result.valid is False
    assert result.halted is False
    assert _categories(result) == [(2, ErrorCategory.QUOTE_ERROR)]
    assert result.errors[0].message == "unterminated quote"
    assert result.errors[0].field == 3


def test_invalid_utf8_is_fatal_and_keeps_earlier_defects():
    result = _run(b"a,b\n1,2,3\n\xff\n4,5,6\n")
    assert result.valid is False
    assert result.halted is True
    assert _categories(result) == [
        (2, ErrorCategory.FIELD_COUNT_MISMATCH),
        (3, ErrorCategory.ENCODING_ERROR),
    ]
    assert "byte offset 10" in result.errors[-1].message
    assert result.records == 2


def test_lenient_mode_accepts_any_line_ending():
    result = _run(b"a,b\n1,2\r3,4\r\n5,6")
    assert result.valid is True
    assert result.records == 4


def test_header_line_ending_is_checked():
    result = _run(b"a,b\n1,2\r\n", STRICT)
    assert _categories(result) == [(1, ErrorCategory.LINE_ENDING_ERROR)]


def test_bare_cr_in_strict_mode():
    result = _run(b"a\r1\r\n", STRICT)
    assert _categories(result) == [(1, ErrorCategory.LINE_ENDING_ERROR)]
    assert "CR" in result.errors[0].message


def test_missing_final_crlf_is_tolerated_by_default():
    assert _run(b"a,b\r\n1,2", STRICT).valid is True


def test_missing_final_crlf_can_be_required():
    mode = Mode(strict_rfc4180=True, require_final_crlf=True)
    result = _run(b"a,b\r\n1,2", mode)
    assert _categories(result) == [(2, ErrorCategory.LINE_ENDING_ERROR)]


def test_doubled_quote_is_not_a_quote_error():
    result = _run(b'a,b\r\n"x""y","z"\r\n', STRICT)
    assert result.valid is True


def test_bare_quote_strict_quoting():
    result = _run(b'a,b\nx,y"z\n')
    assert _categories(result) == [(2, ErrorCategory.QUOTE_ERROR)]
    assert result.errors[0].field == 2


def test_bare_quote_lazy_quoting_reports_unescaped_character():
    result = _run(b'a,b\nx,y"z\n', Mode(lazy_quotes=True))
    assert _categories(result) == [(2, ErrorCategory.UNESCAPED_SPECIAL_CHARACTER)]
    assert result.errors[0].field == 2
    assert "field 2" in result.errors[0].message


def test_malformed_escape_strict_and_lazy():
    data = b'a,b\n"x"y,z\n'
    strict = _run(data)
    assert _categories(strict) == [(2, ErrorCategory.QUOTE_ERROR)]
    assert "extraneous" in strict.errors[0].message

    lazy = _run(data, Mode(lazy_quotes=True))
    assert _categories(lazy) == [(2, ErrorCategory.UNESCAPED_SPECIAL_CHARACTER)]


def test_rules_apply_in_order_within_a_record():
    result = _run(b'a,b\r\nx"\n', STRICT)
    assert [d.category for d in result.errors] == [
        ErrorCategory.FIELD_COUNT_MISMATCH,
        ErrorCategory.LINE_ENDING_ERROR,
        ErrorCategory.QUOTE_ERROR,
    ]
    assert {d.record_number for d in result.errors} == {2}


def test_non_comma_delimiter_in_strict_mode_is_fatal():
    mode = Mode(delimiter=";", strict_rfc4180=True)
    result = _run(b"a;b\r\n1;2\r\n", mode)
    assert result.valid is False
    assert result.halted is True
    assert _categories(result) == [(0, ErrorCategory.IO_ERROR)]
    assert result.records == 0


def test_read_failure_mid_stream_is_fatal():
    class FlakySource:
        def __init__(self):
            self.calls = 0

        def read(self, size):
            self.calls += 1
            if self.calls == 1:
                return b"a,b\n1,2\n"
            raise OSError("connection reset")

    result = Validator(LENIENT).validate(FlakySource())
    assert result.halted is True
    assert _categories(result) == [(3, ErrorCategory.IO_ERROR)]
    assert "connection reset" in result.errors[0].message


def test_defects_are_in_record_order():
    data = b'a,b,c\n1,2\n"x"y,2,3\r4,5,6,7\r\n"q,r\n'
    result = _run(data, STRICT)
    numbers = [d.record_number for d in result.errors]
    assert numbers == sorted(numbers)
    assert len(result.errors) >= 5


def test_validation_is_idempotent():
    data = b'h1,h2\n1\n"bad"x,2\n\xff'
    first = _run(data, STRICT)
    second = _run(data, STRICT)
    assert first.model_dump() == second.model_dump()


def test_read_size_does_not_change_the_result():
    data = b'a,b\r\n"1\r\n2",3\r\n4,5\n6\r\n"7""",8\r'
    assert _run(data, STRICT, chunk_size=1) == _run(data, STRICT)


def test_defect_free_run_means_header_width_everywhere():
    result = _run(b"a,b,c\n1,2,3\n,,\n\"\",\"\",\"\"\n")
    assert result.valid is True


def test_validator_is_single_use():
    validator = Validator(LENIENT)
    validator.validate(io.BytesIO(b"a\n"))
    with pytest.raises(RuntimeError):
        validator.validate(io.BytesIO(b"a\n"))


def test_validate_helper_and_path(tmp_path):
    path = tmp_path / "data.csv"
    path.write_bytes(b"a\tb\r\n1\t2\r\n")

    assert validate(io.BytesIO(b"a\tb\n1\t2\n"), delimiter="\t").valid is True
    assert validate_path(path, Mode(delimiter="\t")).valid is True
    assert validate_path(path, LENIENT).valid is True


def test_build_report():
    result = _run(b"a,b\n1\n2\n")
    report = build_report(result, LENIENT)
    assert report["summary"] == {
        "records": 3,
        "errors": 2,
        "valid": False,
        "halted": False,
        "by_category": {"FieldCountMismatch": 2},
    }
    assert report["errors"][0]["category"] == "FieldCountMismatch"


def test_defect_display():
    defect = Defect(
        record_number=3,
        category=ErrorCategory.FIELD_COUNT_MISMATCH,
        message="wrong number of fields: expected 3, found 4",
    )
    assert str(defect) == "Record #3 has error: wrong number of fields: expected 3, found 4"


def test_mode_rejects_unusable_delimiters():
    for delimiter in ('"', "\n", "\r", "ab", "", "§"):
        with pytest.raises(ValidationError):
            Mode(delimiter=delimiter)


def test_mode_is_immutable():
    with pytest.raises(ValidationError):
        STRICT.delimiter = ";"



def test_trailing_empty_line_is_not_a_record():
    result = _run(b"a,b,c\r\n1,2,3\r\n\r\n", STRICT)
    assert result.valid is True
    assert result.records == 2


def test_empty_lines_are_skipped_in_lenient_mode():
    result = _run(b"\na,b\n1,2\n\n3,4\n")
    assert result.valid is True
    assert result.records == 3


def test_empty_line_with_bare_lf_in_strict_mode():
    result = _run(b"a,b\r\n1,2\r\n\n3,4\r\n", STRICT)
    assert _categories(result) == [(3, ErrorCategory.LINE_ENDING_ERROR)]
    assert result.errors[0].line == 3
    assert result.records == 3


def test_quote_errors_before_an_encoding_failure_are_kept():
    result = _run(b'a,b\nx"y,\xff\n')
    assert result.halted is True
    assert _categories(result) == [
        (2, ErrorCategory.QUOTE_ERROR),
        (2, ErrorCategory.ENCODING_ERROR),
    ]
    assert result.errors[0].field == 1
    assert result.errors[0].line == 2


def test_quote_errors_before_a_read_failure_are_kept():
    class FlakySource:
        def __init__(self):
            self.calls = 0

        def read(self, size):
            self.calls += 1
            if self.calls == 1:
                return b'a,b\n"x"y'
            raise OSError("connection reset")

    result = Validator(LENIENT).validate(FlakySource())
    assert _categories(result) == [
        (2, ErrorCategory.QUOTE_ERROR),
        (2, ErrorCategory.IO_ERROR),
    ]
