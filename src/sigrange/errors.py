"""sigrange error types."""

from __future__ import annotations

__all__ = [
    "CertificateError",
    "ConfigError",
    "DigestMismatchError",
    "InvalidCredentialsError",
    "MalformedEnvelopeError",
    "MalformedRangeError",
    "PDFError",
    "PlaceholderTooSmallError",
    "SignatureVerificationError",
    "SigrangeError",
    "UnsupportedAlgorithmError",
    "UnsupportedKeyFormatError",
]


class SigrangeError(Exception):
    """Base error for sigrange operations."""


class MalformedRangeError(SigrangeError):
    """ByteRange is negative, overlapping, or runs past the end of the file."""


class UnsupportedAlgorithmError(SigrangeError):
    """Digest or signature algorithm is not recognized."""


class MalformedEnvelopeError(SigrangeError):
    """Embedded CMS signature structure could not be decoded."""


class DigestMismatchError(SigrangeError):
    """Computed digest differs from the envelope's declared message digest."""

    def __init__(self, message: str = "digest mismatch") -> None:
        super().__init__(message)


class SignatureVerificationError(SigrangeError):
    """Signature value does not verify under the signer's public key."""

    def __init__(self, message: str = "signature verification failed") -> None:
        super().__init__(message)


class InvalidCredentialsError(SigrangeError):
    """Key container could not be unlocked with the supplied secret."""


class UnsupportedKeyFormatError(SigrangeError):
    """Key container format is unrecognized or holds unusable key material."""


class PlaceholderTooSmallError(SigrangeError):
    """Signature envelope does not fit the reserved /Contents slot.

    Args:
        message: Human-readable error description.
        required: Envelope size in bytes.
        reserved: Reserved placeholder size in bytes.
    """

    def __init__(self, message: str, *, required: int = 0, reserved: int = 0) -> None:
        super().__init__(message)
        self.required = required
        self.reserved = reserved

    def __reduce__(self) -> tuple[type[PlaceholderTooSmallError], tuple[str], dict[str, int]]:
        """Preserve size fields across pickle/unpickle."""
        return (type(self), (str(self),), {"required": self.required, "reserved": self.reserved})

    def __setstate__(self, state: dict[str, int] | None) -> None:
        if state is None:
            return
        self.required = state.get("required", 0)
        self.reserved = state.get("reserved", 0)


class PDFError(SigrangeError):
    """PDF structure, parsing, or building error."""


class ConfigError(SigrangeError):
    """Configuration validation error."""


class CertificateError(SigrangeError):
    """Certificate or trust anchor could not be parsed."""
