"""Tests for sigrange.core.byterange -- range validation and coverage classification."""

from __future__ import annotations

import pytest

from sigrange.core.byterange import (
    ByteRange,
    CoverageStatus,
    check_excludes_slot,
    classify_coverage,
    compute_byte_range,
    coverage_fraction,
    validate_byte_range,
)
from sigrange.errors import MalformedRangeError

# ── ByteRange ─────────────────────────────────────────────────────


def test_properties():
    br = ByteRange(0, 100, 150, 50)
    assert br.end == 200
    assert br.covered_length == 150
    assert br.gap == (100, 150)
    assert br.as_list() == [0, 100, 150, 50]


def test_from_sequence():
    assert ByteRange.from_sequence([0, 10, 20, 5]) == ByteRange(0, 10, 20, 5)


def test_from_sequence_wrong_length():
    with pytest.raises(MalformedRangeError, match="4 values"):
        ByteRange.from_sequence([0, 10, 20])


def test_from_sequence_rejects_non_int():
    with pytest.raises(MalformedRangeError):
        ByteRange.from_sequence([0, "10", 20, 5])


def test_from_sequence_rejects_bool():
    with pytest.raises(MalformedRangeError):
        ByteRange.from_sequence([0, True, 20, 5])


# ── validate_byte_range ───────────────────────────────────────────


def test_validate_ok():
    validate_byte_range(ByteRange(0, 100, 150, 50), 200)


def test_validate_ok_with_trailing_bytes():
    validate_byte_range(ByteRange(0, 100, 150, 50), 300)


@pytest.mark.parametrize(
    "values",
    [(-1, 100, 150, 50), (0, -100, 150, 50), (0, 100, -150, 50), (0, 100, 150, -50)],
)
def test_validate_negative(values):
    with pytest.raises(MalformedRangeError, match="negative"):
        validate_byte_range(ByteRange(*values), 200)


def test_validate_overlap():
    with pytest.raises(MalformedRangeError, match="overlap"):
        validate_byte_range(ByteRange(0, 160, 150, 50), 200)


def test_validate_beyond_eof():
    with pytest.raises(MalformedRangeError, match="beyond EOF"):
        validate_byte_range(ByteRange(0, 100, 150, 51), 200)


def test_validate_adjacent_segments_allowed():
    # Empty gap is structurally valid; slot checks happen elsewhere
    validate_byte_range(ByteRange(0, 100, 100, 100), 200)


# ── classify_coverage / coverage_fraction ─────────────────────────


def test_classify_full():
    assert classify_coverage(ByteRange(0, 100, 150, 50), 200) is CoverageStatus.FULL


def test_classify_partial():
    assert classify_coverage(ByteRange(0, 100, 150, 50), 250) is CoverageStatus.PARTIAL


def test_classify_absent_is_unknown():
    assert classify_coverage(None, 200) is CoverageStatus.UNKNOWN


def test_classify_malformed_is_unknown():
    assert classify_coverage(ByteRange(0, 100, 150, 500), 200) is CoverageStatus.UNKNOWN
    assert classify_coverage(ByteRange(-5, 100, 150, 50), 200) is CoverageStatus.UNKNOWN


def test_coverage_status_values():
    assert CoverageStatus.FULL.value == "full"
    assert CoverageStatus.PARTIAL.value == "partial"
    assert CoverageStatus.UNKNOWN.value == "unknown"


def test_coverage_fraction():
    assert coverage_fraction(ByteRange(0, 100, 150, 50), 200) == pytest.approx(0.75)
    assert coverage_fraction(ByteRange(0, 100, 150, 50), 300) == pytest.approx(0.5)


def test_coverage_fraction_unknown():
    assert coverage_fraction(None, 200) is None
    assert coverage_fraction(ByteRange(0, 100, 150, 500), 200) is None
    assert coverage_fraction(ByteRange(0, 0, 0, 0), 0) is None


# ── check_excludes_slot ───────────────────────────────────────────


def test_excludes_slot_match():
    check_excludes_slot(ByteRange(0, 100, 150, 50), (100, 150))


def test_excludes_slot_mismatch():
    with pytest.raises(MalformedRangeError, match="does not match"):
        check_excludes_slot(ByteRange(0, 100, 150, 50), (101, 150))


# ── compute_byte_range ────────────────────────────────────────────


def test_compute_byte_range():
    br = compute_byte_range(1000, 400, 102)
    assert br == ByteRange(0, 400, 502, 498)
    assert br.end == 1000
    assert br.gap == (400, 502)


def test_compute_byte_range_slot_outside_file():
    with pytest.raises(MalformedRangeError):
        compute_byte_range(100, 50, 60)
    with pytest.raises(MalformedRangeError):
        compute_byte_range(100, 0, 10)
