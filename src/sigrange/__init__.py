"""
sigrange: byte-range PDF signatures with detached CMS envelopes.

Signs PDF documents by appending an incremental revision whose
signature covers every byte except the hex envelope slot, and validates
existing signatures field by field.
"""

from __future__ import annotations

from .api import sign, verify
from .constants import __version__
from .core.byterange import ByteRange, CoverageStatus
from .core.pdf import count_signatures, list_signature_fields
from .core.signing import SignOptions, VisibleAppearance, sign_document, sign_document_with_key
from .core.verify import SignatureValidationResult, validate_signatures
from .errors import (
    CertificateError,
    ConfigError,
    DigestMismatchError,
    InvalidCredentialsError,
    MalformedEnvelopeError,
    MalformedRangeError,
    PDFError,
    PlaceholderTooSmallError,
    SignatureVerificationError,
    SigrangeError,
    UnsupportedAlgorithmError,
    UnsupportedKeyFormatError,
)

__all__ = [
    "ByteRange",
    "CertificateError",
    "ConfigError",
    "CoverageStatus",
    "DigestMismatchError",
    "InvalidCredentialsError",
    "MalformedEnvelopeError",
    "MalformedRangeError",
    "PDFError",
    "PlaceholderTooSmallError",
    "SignOptions",
    "SignatureValidationResult",
    "SignatureVerificationError",
    "SigrangeError",
    "UnsupportedAlgorithmError",
    "UnsupportedKeyFormatError",
    "VisibleAppearance",
    "__version__",
    "count_signatures",
    "list_signature_fields",
    "sign",
    "sign_document",
    "sign_document_with_key",
    "validate_signatures",
    "verify",
]
