"""High-level convenience API for signing and validating PDFs.

Provides :func:`sign` and :func:`verify`, which fill in signing options
and the trust anchor from saved configuration and environment variables.

For lower-level control, use :func:`~sigrange.core.signing.sign_document`
and :func:`~sigrange.core.verify.validate_signatures` directly.
"""

from __future__ import annotations

__all__ = ["load_configured_trust_anchor", "sign", "verify"]

import logging
from datetime import datetime
from pathlib import Path

from asn1crypto import x509

from .config import get_signing_defaults, get_trust_anchor_path
from .core.certificates import load_trust_anchor
from .core.signing import SignOptions, VisibleAppearance, sign_document
from .core.verify import SignatureValidationResult, validate_signatures
from .errors import CertificateError

_logger = logging.getLogger(__name__)


def load_configured_trust_anchor() -> x509.Certificate | None:
    """Load the trust anchor named by env var or config, or None when unset.

    Raises:
        CertificateError: If the configured file is missing or unparseable.
    """
    path = get_trust_anchor_path()
    if path is None:
        return None
    try:
        data = path.read_bytes()
    except OSError as e:
        raise CertificateError(f"Cannot read trust anchor {path}: {e}") from e
    _logger.debug("Using trust anchor %s", path)
    return load_trust_anchor(data)


def sign(
    pdf_bytes: bytes,
    key_container: bytes,
    secret: str | None = None,
    *,
    reason: str | None = None,
    location: str | None = None,
    contact_info: str | None = None,
    name: str | None = None,
    digest_algorithm: str | None = None,
    placeholder_size: int | None = None,
    field_name: str | None = None,
    signing_time: datetime | None = None,
    appearance: VisibleAppearance | None = None,
) -> bytes:
    """Sign a PDF with an embedded signature.

    Options left as None are taken from saved configuration (see
    :func:`~sigrange.config.get_signing_defaults`).

    Args:
        pdf_bytes: Raw PDF file content.
        key_container: PKCS#12 or combined PEM bytes.
        secret: Secret unlocking the container.

    Returns:
        Complete PDF with embedded signature.

    Raises:
        InvalidCredentialsError: If the secret does not unlock the container.
        UnsupportedKeyFormatError: If the container is not usable.
        PlaceholderTooSmallError: If the reserved slot is too small.
        PDFError: If the input is not a valid PDF.
    """
    defaults = get_signing_defaults()
    options = SignOptions(
        reason=reason if reason is not None else defaults.reason,
        location=location if location is not None else defaults.location,
        contact_info=contact_info if contact_info is not None else defaults.contact_info,
        name=name if name is not None else defaults.name,
        digest_algorithm=digest_algorithm or defaults.digest_algorithm,
        signing_time=signing_time,
        placeholder_size=(
            placeholder_size if placeholder_size is not None else defaults.placeholder_size
        ),
        field_name=field_name,
        appearance=appearance,
    )
    return sign_document(pdf_bytes, key_container, secret, options)


def verify(
    pdf_bytes: bytes,
    trust_anchor: x509.Certificate | bytes | str | Path | None = None,
    *,
    validation_time: datetime | None = None,
    max_workers: int | None = None,
) -> list[SignatureValidationResult]:
    """Validate every signature in a PDF.

    Args:
        pdf_bytes: Signed PDF.
        trust_anchor: Certificate, PEM/DER bytes, or a path to one.  The
            configured anchor is used when None.
        validation_time: Moment to judge certificate expiry at.
        max_workers: Thread pool size for multi-signature documents.

    Returns:
        One result per signature field, in file order.
    """
    if trust_anchor is None:
        anchor = load_configured_trust_anchor()
    elif isinstance(trust_anchor, x509.Certificate):
        anchor = trust_anchor
    elif isinstance(trust_anchor, bytes):
        anchor = load_trust_anchor(trust_anchor)
    else:
        try:
            anchor = load_trust_anchor(Path(trust_anchor).read_bytes())
        except OSError as e:
            raise CertificateError(f"Cannot read trust anchor {trust_anchor}: {e}") from e
    return validate_signatures(
        pdf_bytes, anchor, validation_time=validation_time, max_workers=max_workers
    )
