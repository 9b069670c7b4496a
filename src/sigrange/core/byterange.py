"""
ByteRange model -- which file bytes a signature covers.

A PDF signature's /ByteRange is four integers ``[start1 len1 start2 len2]``
naming two disjoint spans of the file.  The gap between them is the
signature's own /Contents slot, so the signature can live inside the
bytes it protects without signing itself.
"""

from __future__ import annotations

__all__ = [
    "ByteRange",
    "CoverageStatus",
    "check_excludes_slot",
    "classify_coverage",
    "compute_byte_range",
    "coverage_fraction",
    "validate_byte_range",
]

import enum
from collections.abc import Sequence
from dataclasses import dataclass

from ..errors import MalformedRangeError


class CoverageStatus(str, enum.Enum):
    """How much of the final file a signature's range protects."""

    FULL = "full"
    PARTIAL = "partial"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class ByteRange:
    """The four-integer /ByteRange of one signature."""

    start1: int
    len1: int
    start2: int
    len2: int

    @classmethod
    def from_sequence(cls, values: Sequence[object]) -> ByteRange:
        """Build a ByteRange from a four-element sequence of integers."""
        if len(values) != 4:
            raise MalformedRangeError(f"ByteRange must have 4 values, got {len(values)}")
        ints: list[int] = []
        for value in values:
            # bool is an int subclass, but True/False is never a valid offset
            if isinstance(value, bool) or not isinstance(value, int):
                raise MalformedRangeError(f"ByteRange value is not an integer: {value!r}")
            ints.append(value)
        return cls(*ints)

    @property
    def end(self) -> int:
        """Offset one past the last covered byte."""
        return self.start2 + self.len2

    @property
    def covered_length(self) -> int:
        return self.len1 + self.len2

    @property
    def gap(self) -> tuple[int, int]:
        """(start, end) of the excluded span between the two segments."""
        return self.start1 + self.len1, self.start2

    def as_list(self) -> list[int]:
        return [self.start1, self.len1, self.start2, self.len2]


def validate_byte_range(byte_range: ByteRange, file_length: int) -> None:
    """Check that a ByteRange is usable against a file of ``file_length`` bytes.

    Raises:
        MalformedRangeError: If any value is negative, the segments
            overlap, or the second segment runs past the end of the file.
    """
    values = byte_range.as_list()
    if any(v < 0 for v in values):
        raise MalformedRangeError(f"ByteRange has negative values: {values}")
    if byte_range.start2 < byte_range.start1 + byte_range.len1:
        raise MalformedRangeError(
            f"ByteRange segments overlap: first ends at {byte_range.start1 + byte_range.len1}, "
            f"second starts at {byte_range.start2}"
        )
    if byte_range.end > file_length:
        raise MalformedRangeError(
            f"ByteRange extends beyond EOF: {byte_range.end} > {file_length}"
        )


def classify_coverage(byte_range: ByteRange | None, file_length: int) -> CoverageStatus:
    """Classify how much of the file a signature vouches for.

    ``full`` when the range reaches the last byte, ``partial`` when bytes
    were appended after it (later incremental updates), ``unknown`` when
    the range is absent or malformed.
    """
    if byte_range is None:
        return CoverageStatus.UNKNOWN
    try:
        validate_byte_range(byte_range, file_length)
    except MalformedRangeError:
        return CoverageStatus.UNKNOWN
    if byte_range.end == file_length:
        return CoverageStatus.FULL
    return CoverageStatus.PARTIAL


def coverage_fraction(byte_range: ByteRange | None, file_length: int) -> float | None:
    """Share of the file's bytes covered by the range, or None when unknown."""
    if byte_range is None or file_length == 0:
        return None
    if classify_coverage(byte_range, file_length) is CoverageStatus.UNKNOWN:
        return None
    return byte_range.covered_length / file_length


def check_excludes_slot(byte_range: ByteRange, slot: tuple[int, int]) -> None:
    """Require the gap between the two segments to be exactly the /Contents slot.

    Args:
        byte_range: Range declared by the signature dictionary.
        slot: (start, end) offsets of the ``<...>`` hex string, end exclusive.

    Raises:
        MalformedRangeError: If the excluded gap is not the signature's own slot.
    """
    if byte_range.gap != slot:
        raise MalformedRangeError(
            f"ByteRange gap {byte_range.gap} does not match the /Contents slot {slot}"
        )


def compute_byte_range(total_length: int, slot_start: int, slot_length: int) -> ByteRange:
    """Compute the range that covers everything except the /Contents slot.

    Args:
        total_length: Final length of the document.
        slot_start: Offset of the ``<`` that opens the hex string.
        slot_length: Width of the slot including both delimiters.
    """
    slot_end = slot_start + slot_length
    if slot_start <= 0 or slot_end > total_length:
        raise MalformedRangeError(
            f"Contents slot [{slot_start}, {slot_end}) lies outside a {total_length}-byte file"
        )
    return ByteRange(0, slot_start, slot_end, total_length - slot_end)
