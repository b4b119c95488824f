import pytest

from wavestream.core.ranges import content_range, full_range, parse_range, unsatisfied_content_range
from wavestream.domain.models.delivery import (
    ByteRange,
    FullRange,
    MalformedRange,
    SatisfiableRange,
    UnsatisfiableRange,
)


@pytest.mark.parametrize("total_size", [1, 2, 100, 10_000, 5 * 1024 * 1024 * 1024])
def test_boundary_laws_hold_for_any_positive_size(total_size: int) -> None:
    assert parse_range(None, total_size) == FullRange()
    assert parse_range("bytes=0-0", total_size) == SatisfiableRange(ByteRange(0, 0))
    assert parse_range(f"bytes={total_size}-", total_size) == UnsatisfiableRange(total_size)


def test_suffix_range_selects_tail() -> None:
    assert parse_range("bytes=-500", 1000) == SatisfiableRange(ByteRange(500, 999))


def test_suffix_larger_than_file_clamps_to_whole_file() -> None:
    assert parse_range("bytes=-500", 100) == SatisfiableRange(ByteRange(0, 99))


def test_open_ended_range_runs_to_last_byte() -> None:
    assert parse_range("bytes=100-", 1000) == SatisfiableRange(ByteRange(100, 999))


def test_end_beyond_size_is_clamped() -> None:
    result = parse_range("bytes=0-99999", 100)
    assert result == SatisfiableRange(ByteRange(0, 99))


def test_inverted_range_is_unsatisfiable() -> None:
    assert parse_range("bytes=10-5", 1000) == UnsatisfiableRange(1000)


def test_start_past_end_of_file_is_unsatisfiable() -> None:
    assert parse_range("bytes=2000-3000", 1000) == UnsatisfiableRange(1000)


def test_empty_resource_cannot_satisfy_any_range() -> None:
    assert parse_range("bytes=0-", 0) == UnsatisfiableRange(0)
    assert parse_range("bytes=-5", 0) == UnsatisfiableRange(0)


@pytest.mark.parametrize(
    "header",
    ["", "bytes", "bytes=", "bytes=-", "bytes=abc", "items=0-10", "bytes=0x10-20", "bytes=1-2-3", "0-10"],
)
def test_malformed_headers(header: str) -> None:
    result = parse_range(header, 1000)
    assert isinstance(result, MalformedRange)
    assert result.header == header


def test_unit_is_case_insensitive_and_whitespace_tolerated() -> None:
    assert parse_range("  Bytes = 0 - 9 ", 1000) == SatisfiableRange(ByteRange(0, 9))


def test_multi_range_uses_first_range_only() -> None:
    assert parse_range("bytes=0-9,20-29", 1000) == SatisfiableRange(ByteRange(0, 9))


def test_non_ascii_digits_are_malformed() -> None:
    assert isinstance(parse_range("bytes=١-٢", 1000), MalformedRange)


def test_satisfiable_ranges_are_marked_partial() -> None:
    result = parse_range("bytes=0-", 10)
    assert isinstance(result, SatisfiableRange)
    assert result.byte_range.is_partial is True
    assert result.byte_range.length == 10


def test_full_range_helper() -> None:
    assert full_range(10) == ByteRange(0, 9, is_partial=False)
    assert full_range(0) is None


def test_content_range_formatting() -> None:
    assert content_range(ByteRange(100, 199), 10_000) == "bytes 100-199/10000"
    assert unsatisfied_content_range(10_000) == "bytes */10000"


def test_byte_range_rejects_invalid_bounds() -> None:
    with pytest.raises(ValueError):
        ByteRange(-1, 5)
    with pytest.raises(ValueError):
        ByteRange(10, 5)
