"""Finding where a DER envelope ends inside a zero-padded /Contents slot."""

from __future__ import annotations

__all__ = ["ASN1_SEQUENCE_TAG", "MAX_ENVELOPE_SIZE", "der_length", "trim_der_padding"]

# Constructed SEQUENCE; every CMS ContentInfo starts with it
ASN1_SEQUENCE_TAG = 0x30

# Upper bound on a declared envelope length (16 MiB)
MAX_ENVELOPE_SIZE = 1 << 24

_LONG_FORM = 0x80
_MAX_LENGTH_OCTETS = 4


def der_length(data: bytes) -> int:
    """Size of the leading SEQUENCE, header included, as its own header declares.

    Reading the header is the only safe way to drop slot padding: a valid
    envelope may itself end in zero bytes.

    Raises:
        ValueError: Truncated header, another tag, indefinite length, or a
            declared size above MAX_ENVELOPE_SIZE.
    """
    if len(data) < 2:
        raise ValueError("Data too short for ASN.1 TLV header")
    if data[0] != ASN1_SEQUENCE_TAG:
        raise ValueError(f"Expected ASN.1 SEQUENCE (0x30), got 0x{data[0]:02x}")

    first = data[1]
    if first == _LONG_FORM:
        raise ValueError("Indefinite length encoding is not valid in DER")
    if first < _LONG_FORM:
        header, body = 2, first
    else:
        octets = first - _LONG_FORM
        if octets > _MAX_LENGTH_OCTETS:
            raise ValueError(f"ASN.1 length uses {octets} octets, at most 4 are accepted")
        header = 2 + octets
        if len(data) < header:
            raise ValueError("Data too short for ASN.1 length field")
        body = int.from_bytes(data[2:header], "big")

    if header + body > MAX_ENVELOPE_SIZE:
        raise ValueError(
            f"ASN.1 declares {header + body} bytes, limit is {MAX_ENVELOPE_SIZE}"
        )
    return header + body


def trim_der_padding(data: bytes) -> bytes:
    """The envelope without the zero padding that follows it in the slot.

    Raises:
        ValueError: If the header is malformed or declares more than ``data`` holds.
    """
    end = der_length(data)
    if end > len(data):
        raise ValueError(f"ASN.1 declares {end} bytes but only {len(data)} are present")
    return data[:end]
