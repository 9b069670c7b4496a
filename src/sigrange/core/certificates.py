# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""
Certificate evaluation -- identity, validity window, self-signed and trust status.

One flat evaluation per signer certificate.  Trust is decided against a
single caller-supplied anchor, never a trust store.
"""

from __future__ import annotations

__all__ = [
    "CertificateEvaluation",
    "describe_certificate",
    "evaluate_certificate",
    "extract_name_fields",
    "is_issued_by",
    "load_trust_anchor",
]

import datetime
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from asn1crypto import pem
from asn1crypto import x509 as asn1_x509
from cryptography import exceptions as crypto_exceptions

from ..errors import CertificateError, SigrangeError
from .crypto import verify_raw

_logger = logging.getLogger(__name__)

# OIDs for common name fields
_OID_CN = "2.5.4.3"
_OID_EMAIL = "1.2.840.113549.1.9.1"
_OID_ORG = "2.5.4.10"

_OID_MAP = {_OID_CN: "name", _OID_EMAIL: "email", _OID_ORG: "organization"}


@dataclass(frozen=True, slots=True)
class CertificateEvaluation:
    """Flat facts about a signer certificate."""

    subject_name: str | None
    subject_org: str | None
    subject_email: str | None
    subject_dn: str
    issuer_name: str | None
    issuer_org: str | None
    issuer_dn: str
    serial_number: str
    valid_from: datetime.datetime
    valid_to: datetime.datetime
    is_expired: bool
    is_not_yet_valid: bool
    is_self_signed: bool
    is_trusted: bool


def extract_name_fields(name: asn1_x509.Name) -> dict[str, str | None]:
    """Extract CN, email, and organization from a distinguished name, plus its full text."""
    fields: dict[str, str | None] = {"name": None, "email": None, "organization": None}
    for rdn in name.chosen:
        for attr in rdn:
            oid = attr["type"].dotted
            if oid in _OID_MAP:
                fields[_OID_MAP[oid]] = attr["value"].native
    fields["dn"] = name.human_friendly
    return fields


def is_issued_by(cert: asn1_x509.Certificate, issuer: asn1_x509.Certificate) -> bool:
    """True when ``issuer``'s subject names ``cert``'s issuer and its key verifies the signature."""
    if cert.issuer != issuer.subject:
        return False
    try:
        verify_raw(
            cert["signature_value"].native,
            cert["tbs_certificate"].dump(),
            issuer,
            cert["signature_algorithm"],
            "SHA-256",
        )
    except (SigrangeError, ValueError, crypto_exceptions.UnsupportedAlgorithm) as e:
        _logger.debug(
            "Certificate signature does not verify under %s: %s",
            issuer.subject.human_friendly,
            e,
        )
        return False
    return True


def _chain_reaches_anchor(
    cert: asn1_x509.Certificate,
    anchor: asn1_x509.Certificate,
    chain: Sequence[asn1_x509.Certificate],
) -> bool:
    """Walk issuer links from ``cert`` through ``chain`` looking for ``anchor``."""
    current = cert
    remaining = list(chain)
    while True:
        if is_issued_by(current, anchor):
            return True
        parent = next((c for c in remaining if is_issued_by(current, c)), None)
        if parent is None:
            return False
        remaining.remove(parent)
        current = parent


def _is_trusted(
    cert: asn1_x509.Certificate,
    anchor: asn1_x509.Certificate | None,
    chain: Sequence[asn1_x509.Certificate],
) -> bool:
    if anchor is None:
        return False
    if cert.dump() == anchor.dump():
        return True
    if cert.issuer == anchor.issuer and cert.serial_number == anchor.serial_number:
        return True
    return _chain_reaches_anchor(cert, anchor, chain)


def evaluate_certificate(
    certificate: asn1_x509.Certificate,
    signing_time: datetime.datetime | None = None,
    trust_anchor: asn1_x509.Certificate | None = None,
    chain: Sequence[asn1_x509.Certificate] = (),
) -> CertificateEvaluation:
    """Derive identity, validity, self-signed, and trust facts for a certificate.

    Args:
        certificate: Signer certificate.
        signing_time: Moment to judge expiry at; wall-clock time when None.
        trust_anchor: Single trusted certificate; without one nothing is trusted.
        chain: Other certificates from the envelope, used to link the
            signer to the anchor.

    Never raises for a structurally valid certificate.
    """
    subject = extract_name_fields(certificate.subject)
    issuer = extract_name_fields(certificate.issuer)

    valid_from = certificate.not_valid_before
    valid_to = certificate.not_valid_after
    reference = signing_time or datetime.datetime.now(datetime.timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=datetime.timezone.utc)
    is_expired = valid_to < reference
    is_not_yet_valid = reference < valid_from
    if is_expired:
        _logger.info("Certificate has expired (notAfter: %s)", valid_to)
    elif is_not_yet_valid:
        _logger.info("Certificate is not yet valid (notBefore: %s)", valid_from)

    return CertificateEvaluation(
        subject_name=subject["name"],
        subject_org=subject["organization"],
        subject_email=subject["email"],
        subject_dn=subject["dn"] or "",
        issuer_name=issuer["name"],
        issuer_org=issuer["organization"],
        issuer_dn=issuer["dn"] or "",
        serial_number=format(certificate.serial_number, "x"),
        valid_from=valid_from,
        valid_to=valid_to,
        is_expired=is_expired,
        is_not_yet_valid=is_not_yet_valid,
        is_self_signed=certificate.issuer == certificate.subject,
        is_trusted=_is_trusted(certificate, trust_anchor, chain),
    )


def describe_certificate(certificate: asn1_x509.Certificate) -> dict[str, str | None]:
    """Short summary of a certificate for display: subject, issuer, validity, serial."""
    subject = extract_name_fields(certificate.subject)
    issuer = extract_name_fields(certificate.issuer)
    return {
        "subject": subject["name"] or subject["dn"],
        "organization": subject["organization"],
        "email": subject["email"],
        "issuer": issuer["name"] or issuer["dn"],
        "valid_from": certificate.not_valid_before.isoformat(),
        "valid_to": certificate.not_valid_after.isoformat(),
        "serial_number": format(certificate.serial_number, "x"),
    }


def load_trust_anchor(data: bytes) -> asn1_x509.Certificate:
    """Load a trust anchor certificate from PEM or DER bytes.

    Raises:
        CertificateError: If the data is not a parseable X.509 certificate.
    """
    try:
        if pem.detect(data):
            _, _, data = pem.unarmor(data)
        cert = asn1_x509.Certificate.load(data)
        _ = cert.subject.human_friendly
        _ = cert.serial_number
    except (ValueError, TypeError, KeyError) as e:
        raise CertificateError(f"Failed to parse trust anchor certificate: {e}") from e
    return cert
