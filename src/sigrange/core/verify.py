"""
Verification of embedded PDF signatures.

Each signature field is evaluated independently against the same
immutable document bytes: coverage, envelope decoding, certificate
facts, byte-range checks, digest comparison and the cryptographic
signature check.  Any failure is recorded on that signature's result
and never affects its siblings.
"""

from __future__ import annotations

__all__ = [
    "SignatureAlgorithms",
    "SignatureValidationResult",
    "count_signatures",
    "inspect_signatures",
    "validate_signature",
    "validate_signatures",
]

import hmac
import io
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from cryptography import exceptions as crypto_exceptions

from ..constants import PDF_MAGIC, UNKNOWN
from ..errors import (
    DigestMismatchError,
    MalformedEnvelopeError,
    MalformedRangeError,
    PDFError,
    SigrangeError,
)
from . import require_pikepdf as _require_pikepdf
from .byterange import (
    ByteRange,
    CoverageStatus,
    check_excludes_slot,
    classify_coverage,
    coverage_fraction,
    validate_byte_range,
)
from .certificates import CertificateEvaluation, evaluate_certificate
from .digest import compute_digest, resolve_digest_algorithm
from .envelope import parse_envelope, verify_envelope_signature
from .pdf.extraction import ExtractedSignature, list_signature_fields

if TYPE_CHECKING:
    from datetime import datetime

    from asn1crypto import x509

_logger = logging.getLogger(__name__)

# Errors asn1crypto / cryptography may raise on hostile input
_DECODE_ERRORS = (
    ValueError,
    TypeError,
    KeyError,
    IndexError,
    AttributeError,
    OverflowError,
    crypto_exceptions.UnsupportedAlgorithm,
)


@dataclass(frozen=True, slots=True)
class SignatureAlgorithms:
    """Algorithms actually used by a signature."""

    digest: str = UNKNOWN
    signature: str = UNKNOWN


@dataclass(slots=True)
class SignatureValidationResult:
    """Outcome of validating one embedded signature.

    ``is_valid`` is False whenever ``error_message`` is set.  Identity and
    validity fields are filled from the signer certificate whenever the
    envelope decodes, even if the signature itself does not verify.
    """

    signature_index: int
    is_valid: bool = False
    signer_name: str = UNKNOWN
    signer_org: str = UNKNOWN
    signer_email: str = UNKNOWN
    issuer: str = UNKNOWN
    issuer_org: str = UNKNOWN
    serial_number: str = UNKNOWN
    signature_date: datetime | None = None
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    is_expired: bool = False
    is_not_yet_valid: bool = False
    is_self_signed: bool = False
    is_trusted: bool = False
    algorithms: SignatureAlgorithms = field(default_factory=SignatureAlgorithms)
    byte_range: ByteRange | None = None
    coverage_status: CoverageStatus = CoverageStatus.UNKNOWN
    covered_fraction: float | None = None
    reason: str | None = None
    location: str | None = None
    contact_info: str | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly rendering (datetimes as ISO 8601 strings)."""

        def iso(value: datetime | None) -> str | None:
            return value.isoformat() if value is not None else None

        return {
            "signature_index": self.signature_index,
            "is_valid": self.is_valid,
            "signer_name": self.signer_name,
            "signer_org": self.signer_org,
            "signer_email": self.signer_email,
            "issuer": self.issuer,
            "issuer_org": self.issuer_org,
            "serial_number": self.serial_number,
            "signature_date": iso(self.signature_date),
            "valid_from": iso(self.valid_from),
            "valid_to": iso(self.valid_to),
            "is_expired": self.is_expired,
            "is_not_yet_valid": self.is_not_yet_valid,
            "is_self_signed": self.is_self_signed,
            "is_trusted": self.is_trusted,
            "algorithms": {
                "digest": self.algorithms.digest,
                "signature": self.algorithms.signature,
            },
            "byte_range": self.byte_range.as_list() if self.byte_range else None,
            "coverage_status": self.coverage_status.value,
            "covered_fraction": self.covered_fraction,
            "reason": self.reason,
            "location": self.location,
            "contact_info": self.contact_info,
            "error_message": self.error_message,
        }


def _apply_certificate(result: SignatureValidationResult, ev: CertificateEvaluation) -> None:
    result.signer_name = ev.subject_name or ev.subject_dn or UNKNOWN
    result.signer_org = ev.subject_org or UNKNOWN
    result.signer_email = ev.subject_email or UNKNOWN
    result.issuer = ev.issuer_name or ev.issuer_dn or UNKNOWN
    result.issuer_org = ev.issuer_org or UNKNOWN
    result.serial_number = ev.serial_number
    result.valid_from = ev.valid_from
    result.valid_to = ev.valid_to
    result.is_expired = ev.is_expired
    result.is_not_yet_valid = ev.is_not_yet_valid
    result.is_self_signed = ev.is_self_signed
    result.is_trusted = ev.is_trusted


def _digest_display_name(declared: str) -> str:
    try:
        return resolve_digest_algorithm(declared)
    except SigrangeError:
        return declared


def validate_signature(
    signature: ExtractedSignature,
    document: bytes,
    trust_anchor: x509.Certificate | None = None,
    *,
    validation_time: datetime | None = None,
) -> SignatureValidationResult:
    """Validate one extracted signature against the document bytes.

    Args:
        signature: Field as returned by ``list_signature_fields``.
        document: Complete document bytes.
        trust_anchor: Single trusted certificate; None leaves ``is_trusted`` False.
        validation_time: Moment to judge certificate expiry at; wall clock when None.

    Never raises for per-signature problems -- they land in ``error_message``.
    """
    file_length = len(document)
    result = SignatureValidationResult(
        signature_index=signature.index,
        byte_range=signature.byte_range,
        coverage_status=classify_coverage(signature.byte_range, file_length),
        covered_fraction=coverage_fraction(signature.byte_range, file_length),
        signature_date=signature.signing_time,
        reason=signature.reason,
        location=signature.location,
        contact_info=signature.contact_info,
    )

    try:
        # ── 1. Envelope and certificate facts ────────────────────
        envelope = parse_envelope(signature.contents)
        if result.signature_date is None:
            result.signature_date = envelope.signing_time
        result.algorithms = SignatureAlgorithms(
            digest=_digest_display_name(envelope.digest_algorithm),
            signature=envelope.signature_algorithm_name,
        )
        _apply_certificate(
            result,
            evaluate_certificate(
                envelope.signer_certificate,
                signing_time=validation_time,
                trust_anchor=trust_anchor,
                chain=envelope.chain,
            ),
        )

        # ── 2. Dictionary and byte range ────────────────────────
        if not signature.declares_sig_type:
            raise PDFError("Signature dictionary does not declare /Type /Sig")
        if signature.byte_range is None:
            raise MalformedRangeError("Signature has no /ByteRange")
        validate_byte_range(signature.byte_range, file_length)
        if signature.contents_span is None:
            raise MalformedEnvelopeError("Signature /Contents is not a hex string")
        check_excludes_slot(signature.byte_range, signature.contents_span)

        # ── 3. Digest ───────────────────────────────────────────
        algorithm = resolve_digest_algorithm(envelope.digest_algorithm)
        computed = compute_digest(document, signature.byte_range, algorithm)
        if envelope.message_digest is not None and not hmac.compare_digest(
            computed, envelope.message_digest
        ):
            raise DigestMismatchError()

        # ── 4. Signature value ──────────────────────────────────
        verify_envelope_signature(envelope, computed)
        result.is_valid = True
    except SigrangeError as e:
        result.error_message = str(e)
    except _DECODE_ERRORS as e:
        result.error_message = f"Failed to decode signature: {e}"

    if result.error_message is not None:
        result.is_valid = False
        _logger.info("Signature %d invalid: %s", signature.index, result.error_message)
    else:
        _logger.debug(
            "Signature %d valid (%s, coverage %s)",
            signature.index,
            result.algorithms.digest,
            result.coverage_status.value,
        )
    return result


def _check_pdf(document: bytes) -> None:
    """Reject input that is not a PDF at all."""
    if PDF_MAGIC not in document[:1024]:
        raise PDFError("Not a PDF document (missing %PDF- header)")
    # pikepdf structural check is informational: some valid PDFs have
    # non-standard trees that pikepdf rejects.
    pikepdf = _require_pikepdf()
    try:
        with pikepdf.open(io.BytesIO(document)) as pdf:
            _logger.debug("pikepdf: valid PDF, %d page(s)", len(pdf.pages))
    except (ValueError, RuntimeError, OSError, pikepdf.PdfError) as e:
        _logger.warning("pikepdf structural check failed (non-fatal): %s", e)


def validate_signatures(
    document: bytes,
    trust_anchor: x509.Certificate | None = None,
    *,
    validation_time: datetime | None = None,
    max_workers: int | None = None,
) -> list[SignatureValidationResult]:
    """Validate every signature in the document, one result per field in file order.

    Args:
        document: Complete document bytes.
        trust_anchor: Single trusted certificate.
        validation_time: Moment to judge certificate expiry at.
        max_workers: Run signatures on a thread pool of this size when > 1.

    Returns:
        Results in file order; empty when the document has no signatures.

    Raises:
        PDFError: If the input is not a PDF.
    """
    _check_pdf(document)
    signatures = list_signature_fields(document)
    if not signatures:
        return []

    def run(sig: ExtractedSignature) -> SignatureValidationResult:
        return validate_signature(sig, document, trust_anchor, validation_time=validation_time)

    if max_workers is not None and max_workers > 1 and len(signatures) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(run, signatures))
    return [run(sig) for sig in signatures]


def inspect_signatures(document: bytes) -> list[ExtractedSignature]:
    """Signature dictionaries of a document, without validating any of them.

    Raises:
        PDFError: If the input is not a PDF.
    """
    _check_pdf(document)
    return list_signature_fields(document)


def count_signatures(document: bytes) -> int:
    """Number of signature fields in the document."""
    return len(inspect_signatures(document))
