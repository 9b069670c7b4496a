"""Preparing a document for signing and filling the slot afterwards.

:func:`append_revision_with_placeholder` adds an empty signature field as
its own revision; :func:`insert_envelope` writes the finished envelope
into the reserved hex slot.
"""

from __future__ import annotations

__all__ = [
    "SignatureFieldSpec",
    "append_revision_with_placeholder",
    "insert_envelope",
]

import io
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ...errors import PDFError, PlaceholderTooSmallError
from .. import require_pikepdf as _require_pikepdf
from .incremental import append_objects, read_previous_revision, resolve_page_index
from .objects import (
    allocate_sig_objects,
    build_acroform_update,
    build_page_override,
    build_sig_dict,
    build_sig_widget,
    existing_field_names,
)

_logger = logging.getLogger(__name__)

_CONTENTS_KEY = b"/Contents "


@dataclass(frozen=True, slots=True)
class SignatureFieldSpec:
    """What to write into the new signature field.

    Attributes:
        field_name: Form field name; ``Signature<n>`` with the first free
            ``n`` when None.
        page: Page for the widget -- 0-based int, "first", or "last".
        rect: (x, y, width, height) in PDF points; None for an invisible widget.
    """

    field_name: str | None = None
    reason: str | None = None
    location: str | None = None
    contact_info: str | None = None
    name: str | None = None
    signing_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    page: int | str = 0
    rect: tuple[float, float, float, float] | None = None


def _choose_field_name(requested: str | None, taken: set[str]) -> str:
    if requested is None:
        return next(f"Signature{n}" for n in itertools.count(1) if f"Signature{n}" not in taken)
    if not requested or "." in requested:
        raise PDFError(f"Invalid signature field name: {requested!r}")
    if requested in taken:
        raise PDFError(f"Form field {requested!r} already exists in the document.")
    return requested


def _check_rect(rect: tuple[float, float, float, float] | None) -> None:
    if rect is None:
        return
    x, y, w, h = rect
    if min(w, h) <= 0:
        raise PDFError(f"Invalid signature dimensions: {w:.1f} x {h:.1f} pt")
    if min(x, y) < 0:
        raise PDFError(f"Invalid signature position: ({x:.1f}, {y:.1f})")


def append_revision_with_placeholder(
    pdf_bytes: bytes,
    field_spec: SignatureFieldSpec,
    placeholder_width: int,
) -> tuple[bytes, int]:
    """Append a signature field with a zeroed /Contents slot.

    The original bytes are kept as an exact prefix.  The signature
    dictionary, its widget, and redefinitions of the page and of the
    catalog or AcroForm follow the old %%EOF, with an xref section that
    chains back through /Prev.

    Args:
        pdf_bytes: Raw PDF content.
        field_spec: Field name, metadata and widget placement.
        placeholder_width: Number of hex characters to reserve.

    Returns:
        (new_pdf_bytes, placeholder_offset) where the offset points at the
        ``<`` opening the hex slot.

    Raises:
        PDFError: If the document cannot be read or the field cannot be placed.
    """
    if placeholder_width <= 0 or placeholder_width % 2:
        raise PDFError(f"Placeholder width must be a positive even number: {placeholder_width}")
    _check_rect(field_spec.rect)

    pikepdf = _require_pikepdf()
    try:
        with pikepdf.open(io.BytesIO(pdf_bytes)) as pdf:
            revision = read_previous_revision(pdf_bytes, pdf)
            page = pdf.pages[resolve_page_index(pdf, field_spec.page)].obj
            field_name = _choose_field_name(field_spec.field_name, existing_field_names(pdf))
            nums = allocate_sig_objects(revision.size)
            objects = [
                (
                    (nums.sig, 0),
                    build_sig_dict(
                        nums.sig,
                        placeholder_width,
                        field_spec.signing_time,
                        reason=field_spec.reason,
                        location=field_spec.location,
                        contact_info=field_spec.contact_info,
                        name=field_spec.name,
                    ),
                ),
                ((nums.annot, 0), build_sig_widget(nums, page.objgen, field_name, field_spec.rect)),
                (page.objgen, build_page_override(page, nums.annot)),
                *build_acroform_update(pdf, nums.annot),
            ]
    except pikepdf.PdfError as e:
        raise PDFError(f"Cannot read PDF structure: {e}") from e

    prepared = append_objects(pdf_bytes, objects, revision, nums.new_size)

    # The signature dictionary is the first object after the old bytes
    key_pos = prepared.find(_CONTENTS_KEY + b"<", len(pdf_bytes))
    if key_pos < 0:
        raise PDFError("Cannot find Contents placeholder in prepared PDF.")
    placeholder_offset = key_pos + len(_CONTENTS_KEY)
    _logger.debug(
        "Field %r: objects %d and %d, slot of %d hex chars at %d",
        field_name,
        nums.sig,
        nums.annot,
        placeholder_width,
        placeholder_offset,
    )
    return prepared, placeholder_offset


def insert_envelope(
    pdf_bytes: bytes, placeholder_offset: int, placeholder_width: int, envelope: bytes
) -> bytes:
    """Write the envelope as zero-padded hex into the reserved slot.

    The slot is ``placeholder_width`` hex characters between the ``<`` at
    ``placeholder_offset`` and its closing ``>``; the document length
    does not change.

    Raises:
        PlaceholderTooSmallError: If the envelope does not fit.
        PDFError: If the slot delimiters are not where expected.
    """
    first = placeholder_offset + 1
    close = first + placeholder_width
    if pdf_bytes[placeholder_offset:first] != b"<":
        raise PDFError("Malformed Contents field: expected '<' before hex data")
    if pdf_bytes[close : close + 1] != b">":
        raise PDFError("Malformed Contents field: expected '>' after hex data")

    reserved = placeholder_width // 2
    if len(envelope) > reserved:
        raise PlaceholderTooSmallError(
            f"Signature needs {len(envelope)} bytes but only {reserved} are reserved",
            required=len(envelope),
            reserved=reserved,
        )
    slot = envelope.hex().ljust(placeholder_width, "0").encode("ascii")
    return pdf_bytes[:first] + slot + pdf_bytes[close:]
