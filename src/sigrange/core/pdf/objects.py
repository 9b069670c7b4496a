"""Raw object bodies for a signature revision.

Everything here returns the bytes of a complete ``N G obj ... endobj``
block.  New objects (the signature dictionary and its widget) are written
from scratch; existing ones (page, catalog, AcroForm) are re-emitted with
their current entries plus the changes a new field needs.
"""

from __future__ import annotations

__all__ = [
    "ANNOT_FLAGS_SIG_WIDGET",
    "BYTERANGE_PLACEHOLDER",
    "BYTERANGE_VALUE_WIDTH",
    "SigObjectNums",
    "allocate_sig_objects",
    "build_acroform_update",
    "build_page_override",
    "build_sig_dict",
    "build_sig_widget",
    "existing_field_names",
    "pdf_date",
    "pdf_text_string",
]

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ...constants import __version__

if TYPE_CHECKING:
    import pikepdf

_logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────

# Four right-aligned columns; patched later without moving any byte
BYTERANGE_VALUE_WIDTH = 10
BYTERANGE_PLACEHOLDER = (
    b"/ByteRange [" + b" ".join([b"0".rjust(BYTERANGE_VALUE_WIDTH)] * 4) + b"]"
)

# Annotation flags Print (bit 3) and Locked (bit 8)
ANNOT_FLAGS_SIG_WIDGET = (1 << 2) | (1 << 7)

# SignaturesExist | AppendOnly
_SIG_FLAGS = 3

_LITERAL_ESCAPES = {
    ord("\\"): "\\\\",
    ord("("): "\\(",
    ord(")"): "\\)",
    ord("\n"): "\\n",
    ord("\r"): "\\r",
    ord("\t"): "\\t",
    **{code: f"\\{code:03o}" for code in (*range(0x20), 0x7F) if code not in (9, 10, 13)},
}


@dataclass(frozen=True, slots=True)
class SigObjectNums:
    """Numbers for the two new objects and the /Size that follows them."""

    sig: int
    annot: int
    new_size: int


def allocate_sig_objects(prev_size: int) -> SigObjectNums:
    return SigObjectNums(sig=prev_size, annot=prev_size + 1, new_size=prev_size + 2)


# ── Tokens ───────────────────────────────────────────────────────────


def pdf_text_string(text: str) -> str:
    """Encode text as a PDF text-string token.

    Latin-1 text becomes an escaped literal ``(...)``.  Anything else is
    written as UTF-16BE hex with a byte order mark.
    """
    try:
        text.encode("latin-1")
    except UnicodeEncodeError:
        _logger.debug("Writing %r as UTF-16BE hex", text)
        return "<FEFF" + text.encode("utf-16-be").hex().upper() + ">"
    return "(" + text.translate(_LITERAL_ESCAPES) + ")"


def pdf_date(moment: datetime) -> str:
    """PDF date string for ``moment`` expressed in UTC (naive means UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("D:%Y%m%d%H%M%S+00'00'")


def _token(value: pikepdf.Object) -> str:
    # Indirect values stay references; direct ones are inlined as written
    if value.is_indirect:
        num, gen = value.objgen
        return f"{num} {gen} R"
    return value.unparse(resolved=True).decode("latin-1")


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


def _block(objgen: tuple[int, int], entries: Iterable[str]) -> bytes:
    num, gen = objgen
    lines = [f"{num} {gen} obj", "<<", *(f"  {e}" for e in entries), ">>", "endobj", ""]
    return "\n".join(lines).encode("latin-1")


def _kept_entries(obj: pikepdf.Object, replaced: Iterable[str]) -> list[str]:
    replaced = set(replaced)
    # Dictionary iteration yields values; keys() is needed for names
    return [f"{key} {_token(obj[key])}" for key in obj.keys() if key not in replaced]


def _redefine(obj: pikepdf.Object, changes: dict[str, str]) -> bytes:
    """Re-emit an existing indirect dictionary with ``changes`` applied."""
    entries = _kept_entries(obj, changes)
    entries.extend(f"{key} {value}" for key, value in changes.items())
    return _block(obj.objgen, entries)


# ── Existing objects ─────────────────────────────────────────────────


def build_page_override(page_obj: pikepdf.Object, annot_obj_num: int) -> bytes:
    """The page again, with the new widget appended to /Annots."""
    annots = [_token(a) for a in page_obj.get("/Annots", [])]
    annots.append(f"{annot_obj_num} 0 R")
    return _redefine(page_obj, {"/Annots": "[" + " ".join(annots) + "]"})


def existing_field_names(pdf: pikepdf.Pdf) -> set[str]:
    """Fully qualified names of every field in the form tree."""
    acroform = pdf.Root.get("/AcroForm")
    if acroform is None:
        return set()

    names: set[str] = set()
    pending = [(field, "") for field in acroform.get("/Fields", [])]
    while pending:
        node, parent = pending.pop()
        partial = str(node["/T"]) if "/T" in node else ""
        qualified = ".".join(part for part in (parent, partial) if part)
        if qualified:
            names.add(qualified)
        pending.extend((kid, qualified) for kid in node.get("/Kids", []))
    return names


def build_acroform_update(
    pdf: pikepdf.Pdf, annot_obj_num: int
) -> list[tuple[tuple[int, int], bytes]]:
    """Objects that register the new field in /AcroForm and set /SigFlags.

    An indirect AcroForm is redefined on its own.  A missing or inline one
    is written inline into a redefined catalog.  Every other entry of both
    dictionaries is kept.
    """
    catalog = pdf.Root
    acroform = catalog.get("/AcroForm")

    fields = [_token(f) for f in acroform.get("/Fields", [])] if acroform is not None else []
    fields.append(f"{annot_obj_num} 0 R")
    changes = {"/Fields": "[" + " ".join(fields) + "]", "/SigFlags": str(_SIG_FLAGS)}

    if acroform is not None and acroform.is_indirect:
        return [(acroform.objgen, _redefine(acroform, changes))]

    inline = _kept_entries(acroform, changes) if acroform is not None else []
    inline.extend(f"{key} {value}" for key, value in changes.items())
    form = "<< " + " ".join(inline) + " >>"
    return [(catalog.objgen, _redefine(catalog, {"/AcroForm": form}))]


# ── New objects ──────────────────────────────────────────────────────


def build_sig_dict(
    obj_num: int,
    placeholder_width: int,
    signing_time: datetime,
    reason: str | None = None,
    location: str | None = None,
    contact_info: str | None = None,
    name: str | None = None,
) -> bytes:
    """The /Type /Sig dictionary with zeroed /ByteRange and /Contents.

    /ByteRange is written before /Contents so the placeholder always
    lands in the first covered segment.
    """
    entries = [
        "/Type /Sig",
        "/Filter /Adobe.PPKLite",
        "/SubFilter /adbe.pkcs7.detached",
        BYTERANGE_PLACEHOLDER.decode("ascii"),
        "/Contents <" + "0" * placeholder_width + ">",
        f"/M ({pdf_date(signing_time)})",
    ]
    metadata = {
        "/Reason": reason,
        "/Location": location,
        "/ContactInfo": contact_info,
        "/Name": name,
    }
    entries += [f"{key} {pdf_text_string(value)}" for key, value in metadata.items() if value]
    entries.append(
        f"/Prop_Build << /App << /Name /sigrange /REx ({__version__}) >> "
        "/Filter << /Name /Adobe.PPKLite >> >>"
    )
    return _block((obj_num, 0), entries)


def build_sig_widget(
    obj_nums: SigObjectNums,
    page_objgen: tuple[int, int],
    field_name: str,
    rect: tuple[float, float, float, float] | None = None,
) -> bytes:
    """Merged signature field and widget annotation.

    ``rect`` is (x, y, width, height) in points; None gives the invisible
    /Rect [0 0 0 0].
    """
    corners = (0, 0, 0, 0)
    if rect is not None:
        x, y, w, h = rect
        corners = (x, y, x + w, y + h)
    page_num, page_gen = page_objgen
    return _block(
        (obj_nums.annot, 0),
        [
            "/Type /Annot",
            "/Subtype /Widget",
            "/FT /Sig",
            "/Rect [" + " ".join(_number(c) for c in corners) + "]",
            f"/V {obj_nums.sig} 0 R",
            f"/T {pdf_text_string(field_name)}",
            f"/F {ANNOT_FLAGS_SIG_WIDGET}",
            f"/P {page_num} {page_gen} R",
            "/Border [0 0 0]",
        ],
    )
