"""
Signature field discovery in raw PDF bytes.

Signature dictionaries must sit uncompressed in the file (their /Contents
is excluded by byte offset), so they are located by scanning the bytes
directly rather than through an object-graph parser.  Each dictionary
that declares /Type /Sig or carries a /ByteRange yields one
:class:`ExtractedSignature`, in file order.
"""

from __future__ import annotations

__all__ = [
    "ExtractedSignature",
    "count_signatures",
    "decode_pdf_string",
    "list_signature_fields",
    "parse_pdf_date",
]

import bisect
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from ..byterange import ByteRange

_logger = logging.getLogger(__name__)

_SIG_TYPE_RE = re.compile(rb"/Type\s*/Sig\b")
_OBJ_HEADER_RE = re.compile(rb"\d+\s+\d+\s+obj\b")
_ENDOBJ = b"endobj"
_BYTERANGE_RE = re.compile(rb"/ByteRange\s*\[\s*(-?\d+)\s+(-?\d+)\s+(-?\d+)\s+(-?\d+)\s*\]")
_CONTENTS_RE = re.compile(rb"/Contents\s*(<)([0-9A-Fa-f\s]*)(>)")
_DATE_RE = re.compile(
    r"^D?:?(\d{4})(\d{2})?(\d{2})?(\d{2})?(\d{2})?(\d{2})?"
    r"(?:([Zz+\-])(?:(\d{2})'?(?:(\d{2})'?)?)?)?"
)

_ESCAPES = {
    ord("n"): b"\n",
    ord("r"): b"\r",
    ord("t"): b"\t",
    ord("b"): b"\b",
    ord("f"): b"\f",
    ord("("): b"(",
    ord(")"): b")",
    ord("\\"): b"\\",
}


@dataclass(frozen=True, slots=True)
class ExtractedSignature:
    """One signature field found in a document.

    Attributes:
        index: Ordinal of the signature in file order.
        contents: Raw envelope bytes decoded from /Contents (zero padding
            included); empty when the hex string is missing or invalid.
        byte_range: Declared /ByteRange, or None when absent.
        contents_span: (start, end) offsets of the ``<...>`` slot, end
            exclusive; None when /Contents is not a hex string.
        reason: /Reason entry.
        location: /Location entry.
        contact_info: /ContactInfo entry.
        name: /Name entry.
        signing_time: /M entry parsed as an aware datetime.
        declares_sig_type: Whether the dictionary says /Type /Sig.
    """

    index: int
    contents: bytes
    byte_range: ByteRange | None
    contents_span: tuple[int, int] | None = None
    reason: str | None = None
    location: str | None = None
    contact_info: str | None = None
    name: str | None = None
    signing_time: datetime | None = None
    declares_sig_type: bool = True


# ── PDF string / date decoding ───────────────────────────────────────


def decode_pdf_string(raw: bytes) -> str:
    """Decode PDF text-string bytes: UTF-16BE with BOM, UTF-8 with BOM, else Latin-1."""
    if raw.startswith(b"\xfe\xff"):
        return raw[2:].decode("utf-16-be", errors="replace")
    if raw.startswith(b"\xef\xbb\xbf"):
        return raw[3:].decode("utf-8", errors="replace")
    return raw.decode("latin-1")


def _read_literal(data: bytes, pos: int) -> bytes | None:
    """Read a ``(...)`` literal string starting at ``data[pos] == '('``."""
    out = bytearray()
    depth = 1
    i = pos + 1
    n = len(data)
    while i < n:
        c = data[i]
        if c == 0x5C:  # backslash
            i += 1
            if i >= n:
                break
            esc = data[i]
            if esc in _ESCAPES:
                out += _ESCAPES[esc]
            elif 0x30 <= esc <= 0x37:
                digits = data[i : i + 3]
                octal = re.match(rb"[0-7]{1,3}", digits)
                if octal is None:
                    return None
                out.append(int(octal.group(0), 8) & 0xFF)
                i += len(octal.group(0)) - 1
            elif esc == 0x0D:
                if i + 1 < n and data[i + 1] == 0x0A:
                    i += 1
            elif esc != 0x0A:
                out.append(esc)
        elif c == 0x28:  # (
            depth += 1
            out.append(c)
        elif c == 0x29:  # )
            depth -= 1
            if depth == 0:
                return bytes(out)
            out.append(c)
        else:
            out.append(c)
        i += 1
    return None


def _read_text_entry(obj_text: bytes, key: bytes) -> str | None:
    """Read a text-string entry (literal or hex) from a dictionary body."""
    m = re.search(rb"/" + key + rb"\s*(\(|<(?!<))", obj_text)
    if m is None:
        return None
    start = m.start(1)
    if m.group(1) == b"(":
        raw = _read_literal(obj_text, start)
    else:
        end = obj_text.find(b">", start)
        if end == -1:
            return None
        hex_text = re.sub(rb"\s", b"", obj_text[start + 1 : end])
        if len(hex_text) % 2:
            hex_text += b"0"
        try:
            raw = bytes.fromhex(hex_text.decode("ascii"))
        except ValueError:
            return None
    if raw is None:
        return None
    return decode_pdf_string(raw)


def parse_pdf_date(value: str) -> datetime | None:
    """Parse a PDF date string (``D:YYYYMMDDHHmmSSOHH'mm'``) into an aware datetime.

    Missing trailing components default to their lowest value; a missing
    offset is taken as UTC.  Returns None for unparseable input.
    """
    m = _DATE_RE.match(value.strip())
    if m is None:
        return None
    year, month, day, hour, minute, second, sign, off_h, off_m = m.groups()
    try:
        tz = timezone.utc
        if sign in ("+", "-"):
            offset = timedelta(hours=int(off_h or 0), minutes=int(off_m or 0))
            tz = timezone(offset if sign == "+" else -offset)
        return datetime(
            int(year),
            int(month or 1),
            int(day or 1),
            int(hour or 0),
            int(minute or 0),
            int(second or 0),
            tzinfo=tz,
        )
    except ValueError:
        _logger.debug("Invalid PDF date: %r", value)
        return None


# ── Signature dictionary scanning ────────────────────────────────────


def _object_bounds(pdf_bytes: bytes, headers: list[int], pos: int) -> tuple[int, int]:
    """(start, end) of the indirect object enclosing ``pos``."""
    i = bisect.bisect_right(headers, pos) - 1
    start = headers[i] if i >= 0 else max(0, pos - 4096)
    end = pdf_bytes.find(_ENDOBJ, pos)
    if end == -1:
        end = len(pdf_bytes)
    return start, end


def _parse_signature_object(
    pdf_bytes: bytes, start: int, end: int, index: int
) -> ExtractedSignature:
    obj_text = pdf_bytes[start:end]

    byte_range: ByteRange | None = None
    br_m = _BYTERANGE_RE.search(obj_text)
    if br_m is not None:
        byte_range = ByteRange(*(int(g) for g in br_m.groups()))

    contents = b""
    contents_span: tuple[int, int] | None = None
    ct_m = _CONTENTS_RE.search(obj_text)
    if ct_m is not None:
        contents_span = (start + ct_m.start(1), start + ct_m.end(3))
        hex_text = re.sub(rb"\s", b"", ct_m.group(2))
        if len(hex_text) % 2:
            hex_text += b"0"
        try:
            contents = bytes.fromhex(hex_text.decode("ascii"))
        except ValueError:
            _logger.debug("Signature %d has invalid /Contents hex", index)

    date_text = _read_text_entry(obj_text, b"M")
    return ExtractedSignature(
        index=index,
        contents=contents,
        byte_range=byte_range,
        contents_span=contents_span,
        reason=_read_text_entry(obj_text, b"Reason"),
        location=_read_text_entry(obj_text, b"Location"),
        contact_info=_read_text_entry(obj_text, b"ContactInfo"),
        name=_read_text_entry(obj_text, b"Name"),
        signing_time=parse_pdf_date(date_text) if date_text else None,
        declares_sig_type=_SIG_TYPE_RE.search(obj_text) is not None,
    )


def list_signature_fields(pdf_bytes: bytes) -> list[ExtractedSignature]:
    """Find every signature dictionary in the file, in file order.

    A dictionary counts when it declares /Type /Sig or carries a
    /ByteRange array, so damage to either token alone cannot hide it.

    Returns:
        One ExtractedSignature per signature dictionary; empty when the
        document carries no signatures.
    """
    headers = [m.start() for m in _OBJ_HEADER_RE.finditer(pdf_bytes)]
    anchors = sorted(
        m.start()
        for pattern in (_SIG_TYPE_RE, _BYTERANGE_RE)
        for m in pattern.finditer(pdf_bytes)
    )
    bounds: dict[int, int] = {}
    for pos in anchors:
        start, end = _object_bounds(pdf_bytes, headers, pos)
        bounds.setdefault(start, end)

    results = [
        _parse_signature_object(pdf_bytes, start, end, index)
        for index, (start, end) in enumerate(sorted(bounds.items()))
    ]
    _logger.debug("Found %d signature dictionaries", len(results))
    return results


def count_signatures(pdf_bytes: bytes) -> int:
    """Number of signature dictionaries in the document."""
    return len(list_signature_fields(pdf_bytes))
