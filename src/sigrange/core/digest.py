"""Digest engine -- hashing the byte-range-selected bytes of a document."""

from __future__ import annotations

__all__ = [
    "SUPPORTED_DIGESTS",
    "asn1_digest_name",
    "compute_digest",
    "digest_size",
    "resolve_digest_algorithm",
]

import hashlib
import logging

from ..errors import UnsupportedAlgorithmError
from .byterange import ByteRange, validate_byte_range

_logger = logging.getLogger(__name__)

# canonical name -> (hashlib / asn1crypto name, digest OID, digest size)
_DIGESTS: dict[str, tuple[str, str, int]] = {
    "SHA-1": ("sha1", "1.3.14.3.2.26", 20),
    "SHA-224": ("sha224", "2.16.840.1.101.3.4.2.4", 28),
    "SHA-256": ("sha256", "2.16.840.1.101.3.4.2.1", 32),
    "SHA-384": ("sha384", "2.16.840.1.101.3.4.2.2", 48),
    "SHA-512": ("sha512", "2.16.840.1.101.3.4.2.3", 64),
}

SUPPORTED_DIGESTS = tuple(_DIGESTS)

# Some signers put the combined signature algorithm in the digestAlgorithm
# field (e.g. sha1WithRSAEncryption instead of sha1).  Map those to the
# digest they imply.
_SIGNATURE_ALGO_QUIRKS: dict[str, str] = {
    "sha1_rsa": "SHA-1",
    "sha224_rsa": "SHA-224",
    "sha256_rsa": "SHA-256",
    "sha384_rsa": "SHA-384",
    "sha512_rsa": "SHA-512",
    "sha1_ecdsa": "SHA-1",
    "sha224_ecdsa": "SHA-224",
    "sha256_ecdsa": "SHA-256",
    "sha384_ecdsa": "SHA-384",
    "sha512_ecdsa": "SHA-512",
    "1.2.840.113549.1.1.5": "SHA-1",  # sha1WithRSAEncryption
    "1.2.840.113549.1.1.14": "SHA-224",  # sha224WithRSAEncryption
    "1.2.840.113549.1.1.11": "SHA-256",  # sha256WithRSAEncryption
    "1.2.840.113549.1.1.12": "SHA-384",  # sha384WithRSAEncryption
    "1.2.840.113549.1.1.13": "SHA-512",  # sha512WithRSAEncryption
    "1.2.840.10045.4.1": "SHA-1",  # ecdsa-with-SHA1
    "1.2.840.10045.4.3.1": "SHA-224",  # ecdsa-with-SHA224
    "1.2.840.10045.4.3.2": "SHA-256",  # ecdsa-with-SHA256
    "1.2.840.10045.4.3.3": "SHA-384",  # ecdsa-with-SHA384
    "1.2.840.10045.4.3.4": "SHA-512",  # ecdsa-with-SHA512
}


def _build_lookup() -> dict[str, str]:
    lookup: dict[str, str] = {}
    for canonical, (short, oid, _size) in _DIGESTS.items():
        lookup[canonical.lower()] = canonical
        lookup[canonical.replace("-", "").lower()] = canonical
        lookup[short] = canonical
        lookup[oid] = canonical
    lookup.update(_SIGNATURE_ALGO_QUIRKS)
    return lookup


_LOOKUP = _build_lookup()


def resolve_digest_algorithm(name: str) -> str:
    """Resolve a digest name, asn1crypto name, or OID to its canonical name.

    >>> resolve_digest_algorithm("sha256")
    'SHA-256'
    >>> resolve_digest_algorithm("2.16.840.1.101.3.4.2.3")
    'SHA-512'

    Raises:
        UnsupportedAlgorithmError: For any name outside the supported set.
    """
    canonical = _LOOKUP.get(name.strip().lower())
    if canonical is None:
        raise UnsupportedAlgorithmError(f"Unsupported digest algorithm: {name}")
    return canonical


def asn1_digest_name(algorithm: str) -> str:
    """asn1crypto / hashlib name for a digest (``"SHA-256"`` -> ``"sha256"``)."""
    return _DIGESTS[resolve_digest_algorithm(algorithm)][0]


def digest_size(algorithm: str) -> int:
    return _DIGESTS[resolve_digest_algorithm(algorithm)][2]


def compute_digest(data: bytes, byte_range: ByteRange, algorithm: str) -> bytes:
    """Hash the two segments named by ``byte_range``, in order.

    Pure function over an immutable buffer; safe to call concurrently
    for independent signatures of the same document.

    Raises:
        MalformedRangeError: If the range does not fit ``data``.
        UnsupportedAlgorithmError: If ``algorithm`` is not recognized.
    """
    hash_name = asn1_digest_name(algorithm)
    validate_byte_range(byte_range, len(data))

    view = memoryview(data)
    h = hashlib.new(hash_name)
    h.update(view[byte_range.start1 : byte_range.start1 + byte_range.len1])
    h.update(view[byte_range.start2 : byte_range.end])
    _logger.debug(
        "Digest %s over %d bytes (range %s)", algorithm, byte_range.covered_length, byte_range
    )
    return h.digest()
