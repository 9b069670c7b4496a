"""Byte-range signature engine.

Leaf building blocks (ranges, digests) are re-exported here; PDF
structure, envelopes, verification and signing live in their own
submodules and are imported from there.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import PDFError
from .byterange import ByteRange, CoverageStatus, classify_coverage, compute_byte_range
from .digest import SUPPORTED_DIGESTS, compute_digest, resolve_digest_algorithm

if TYPE_CHECKING:
    import types

__all__ = [
    "SUPPORTED_DIGESTS",
    "ByteRange",
    "CoverageStatus",
    "classify_coverage",
    "compute_byte_range",
    "compute_digest",
    "require_pikepdf",
    "resolve_digest_algorithm",
]


def require_pikepdf() -> types.ModuleType:
    """Import pikepdf on first use.

    Only structure reading needs it; hashing and envelope code run
    without loading the C extension.
    """
    try:
        import pikepdf
    except ImportError as exc:
        raise PDFError("Reading PDF structure needs pikepdf: pip install 'pikepdf>=8'") from exc
    return pikepdf
