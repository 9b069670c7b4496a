"""Incremental-update plumbing: what the last revision chains to, and how to append after it.

A new revision never rewrites a byte of the document.  It is a run of
replacement objects, a classic xref section listing only those objects,
and a trailer whose /Prev points at the previous cross-reference data.

Object bodies are built in objects.py; builder.py drives both.
"""

from __future__ import annotations

__all__ = [
    "PreviousRevision",
    "append_objects",
    "patch_byte_range",
    "read_previous_revision",
    "resolve_page_index",
    "xref_section",
]

import itertools
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ...errors import PDFError
from ..byterange import ByteRange
from .objects import BYTERANGE_PLACEHOLDER, BYTERANGE_VALUE_WIDTH

if TYPE_CHECKING:
    import pikepdf

_logger = logging.getLogger(__name__)

_STARTXREF_RE = re.compile(rb"startxref\s+(\d+)\s+%%EOF")

# Object bytes keyed by (object number, generation)
RawObject = tuple[tuple[int, int], bytes]


@dataclass(frozen=True, slots=True)
class PreviousRevision:
    """Facts about the newest revision that the appended one must chain to.

    Attributes:
        startxref: Offset of its cross-reference data (becomes /Prev).
        size: Its trailer /Size; new objects are numbered from here.
        root: Catalog (object number, generation).
        carried: Raw trailer entries repeated in the new trailer (/Info, /ID).
    """

    startxref: int
    size: int
    root: tuple[int, int]
    carried: tuple[str, ...] = ()


def _carried_entries(trailer: pikepdf.Dictionary) -> tuple[str, ...]:
    entries: list[str] = []
    info = trailer.get("/Info")
    if info is not None and info.is_indirect:
        num, gen = info.objgen
        entries.append(f"/Info {num} {gen} R")
    doc_id = trailer.get("/ID")
    if doc_id is not None:
        entries.append("/ID " + doc_id.unparse(resolved=True).decode("latin-1"))
    return tuple(entries)


def read_previous_revision(pdf_bytes: bytes, pdf: pikepdf.Pdf) -> PreviousRevision:
    """Collect /Prev, /Size, /Root and carried trailer entries.

    The startxref offset is taken from the raw bytes (the last one wins,
    each update appends its own); everything else comes from pikepdf,
    which merges xref streams and hybrid files correctly.

    Raises:
        PDFError: If any of them is missing.
    """
    found = _STARTXREF_RE.findall(pdf_bytes)
    if not found:
        raise PDFError("Cannot find startxref in PDF.")

    trailer = pdf.trailer
    root = trailer.get("/Root")
    if root is None or not root.is_indirect:
        raise PDFError("Cannot find /Root reference in PDF trailer.")
    size = trailer.get("/Size")
    if size is None:
        raise PDFError("Cannot determine /Size from PDF trailer.")

    return PreviousRevision(
        startxref=int(found[-1]),
        size=int(size),
        root=root.objgen,
        carried=_carried_entries(trailer),
    )


def resolve_page_index(pdf: pikepdf.Pdf, page_spec: int | str) -> int:
    """Map "first", "last" or a 0-based number to a checked page index.

    Raises:
        PDFError: For an unknown word or an index outside the document.
    """
    total = len(pdf.pages)
    if not total:
        raise PDFError("PDF has no pages.")

    named = {"first": 0, "last": total - 1}
    if isinstance(page_spec, str):
        word = page_spec.strip().lower()
        if word in named:
            return named[word]
        if not word.lstrip("-").isdigit():
            raise PDFError(
                f"Invalid page: {page_spec!r}. Use 'first', 'last', or a 0-based number."
            )
        page_spec = int(word)

    if not 0 <= page_spec < total:
        raise PDFError(f"Page {page_spec} out of range (PDF has {total} page(s), 0-based).")
    return page_spec


def xref_section(
    offsets: Mapping[int, tuple[int, int]],
    revision: PreviousRevision,
    new_size: int,
    xref_offset: int,
) -> bytes:
    """Render the xref table, trailer and %%EOF for one appended revision.

    Args:
        offsets: Object number -> (byte offset, generation) of every object
            written in this revision.
        revision: The revision being extended.
        new_size: /Size after this revision.
        xref_offset: Where the ``xref`` keyword itself will sit.
    """
    if not offsets:
        raise PDFError("Cannot build xref table: no objects to reference.")

    out = ["xref"]
    # Runs of consecutive object numbers form one subsection
    numbers = sorted(offsets)
    for _, run in itertools.groupby(enumerate(numbers), key=lambda pair: pair[1] - pair[0]):
        members = [num for _, num in run]
        out.append(f"{members[0]} {len(members)}")
        # 20-byte entries: "\r" here, "\n" from the join
        out.extend(f"{offsets[num][0]:010d} {offsets[num][1]:05d} n\r" for num in members)

    root_num, root_gen = revision.root
    trailer = [
        f"/Size {new_size}",
        f"/Prev {revision.startxref}",
        f"/Root {root_num} {root_gen} R",
        *revision.carried,
    ]
    out += ["trailer", "<< " + " ".join(trailer) + " >>"]
    out += ["startxref", str(xref_offset), "%%EOF", ""]
    return "\n".join(out).encode("latin-1")


def append_objects(
    pdf_bytes: bytes,
    objects: Sequence[RawObject],
    revision: PreviousRevision,
    new_size: int,
) -> bytes:
    """Return ``pdf_bytes`` followed by ``objects`` and their xref section.

    A newline is inserted first when the document does not end in one;
    the original bytes stay an exact prefix either way.
    """
    head = pdf_bytes if pdf_bytes.endswith(b"\n") else pdf_bytes + b"\n"

    offsets: dict[int, tuple[int, int]] = {}
    position = len(head)
    for (num, gen), raw in objects:
        offsets[num] = (position, gen)
        position += len(raw)

    body = b"".join(raw for _, raw in objects)
    _logger.debug(
        "Appending %d object(s), %d bytes, /Prev %d", len(objects), len(body), revision.startxref
    )
    return head + body + xref_section(offsets, revision, new_size, position)


def patch_byte_range(pdf_bytes: bytes, byte_range: ByteRange, search_from: int) -> bytes:
    """Overwrite the first /ByteRange placeholder at or after ``search_from``.

    Earlier revisions are never searched.  Each value is right-aligned in
    its fixed-width column so the document length does not change.
    """
    pos = pdf_bytes.find(BYTERANGE_PLACEHOLDER, search_from)
    if pos < 0:
        raise PDFError("Cannot find ByteRange placeholder in incremental update.")
    values = byte_range.as_list()
    columns = [str(v).rjust(BYTERANGE_VALUE_WIDTH) for v in values]
    if any(len(c) > BYTERANGE_VALUE_WIDTH for c in columns):
        raise PDFError(f"ByteRange values too large for placeholder: {values}")
    patched = b"/ByteRange [" + " ".join(columns).encode("ascii") + b"]"
    if len(patched) != len(BYTERANGE_PLACEHOLDER):
        raise PDFError("ByteRange patch would change the document length.")
    return pdf_bytes[:pos] + patched + pdf_bytes[pos + len(patched) :]
