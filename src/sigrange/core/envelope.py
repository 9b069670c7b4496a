# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""
Signature envelope codec -- detached CMS SignedData.

Parses the blob stored in a signature's /Contents into the pieces the
verifier needs (signer certificate, chain, signed attributes, declared
message digest, signature value, algorithm identifiers) and builds new
envelopes for the producer.
"""

from __future__ import annotations

__all__ = [
    "ParsedEnvelope",
    "build_envelope",
    "describe_signature_algorithm",
    "estimate_envelope_size",
    "fit_to_placeholder",
    "parse_envelope",
    "simple_cms_attribute",
    "verify_envelope_signature",
]

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from asn1crypto import algos, cms, core, tsp, x509

from ..errors import MalformedEnvelopeError, PlaceholderTooSmallError, UnsupportedAlgorithmError
from .asn1 import trim_der_padding
from .crypto import max_signature_size, sign_raw, signature_mechanism, verify_raw
from .digest import asn1_digest_name, digest_size, resolve_digest_algorithm

if TYPE_CHECKING:
    from .keys import CertificateData

_logger = logging.getLogger(__name__)

# Errors asn1crypto raises while lazily decoding a structure
_DECODE_ERRORS = (ValueError, TypeError, KeyError, IndexError, AttributeError, OverflowError)

# UTCTime cannot represent years from 2050 on (RFC 5280 4.1.2.5)
_UTC_TIME_MAX_YEAR = 2049

_SIGNATURE_DISPLAY_NAMES = {
    "rsassa_pkcs1v15": "RSA",
    "rsassa_pss": "RSA-PSS",
    "ecdsa": "ECDSA",
    "dsa": "DSA",
    "ed25519": "Ed25519",
    "ed448": "Ed448",
}


@dataclass(frozen=True, slots=True)
class ParsedEnvelope:
    """Fields of a decoded CMS SignedData needed for verification."""

    signer_certificate: x509.Certificate
    chain: tuple[x509.Certificate, ...]
    digest_algorithm: str  # as declared: asn1crypto name or dotted OID
    signature_algorithm: algos.SignedDigestAlgorithm
    signature_algorithm_name: str
    message_digest: bytes | None
    signed_attrs: cms.CMSAttributes | None
    signing_time: datetime | None
    signature: bytes


def simple_cms_attribute(attr_type: str, value: object) -> cms.CMSAttribute:
    """Build a CMS attribute holding a single value."""
    return cms.CMSAttribute({"type": cms.CMSAttributeType(attr_type), "values": (value,)})


def describe_signature_algorithm(
    mechanism: algos.SignedDigestAlgorithm, digest_algorithm: str
) -> str:
    """Human-readable name such as ``"RSA with SHA-256"`` or ``"ECDSA with SHA-384"``."""
    try:
        sig_algo = mechanism.signature_algo
    except ValueError:
        return str(mechanism["algorithm"].native)
    base = _SIGNATURE_DISPLAY_NAMES.get(sig_algo, sig_algo)
    if sig_algo in ("ed25519", "ed448"):
        return base
    try:
        hash_name = mechanism.hash_algo
    except ValueError:
        hash_name = digest_algorithm
    try:
        hash_display = resolve_digest_algorithm(hash_name)
    except UnsupportedAlgorithmError:
        hash_display = hash_name.upper()
    return f"{base} with {hash_display}"


# ── Parsing ──────────────────────────────────────────────────────────


def _find_signer_certificate(
    signer_info: cms.SignerInfo, certs: list[x509.Certificate]
) -> x509.Certificate:
    """Pick the certificate the SignerInfo's sid points at, else the first one."""
    sid = signer_info["sid"]
    if sid.name == "issuer_and_serial_number":
        issuer = sid.chosen["issuer"]
        serial = sid.chosen["serial_number"].native
        for cert in certs:
            if cert.issuer == issuer and cert.serial_number == serial:
                return cert
    elif sid.name == "subject_key_identifier":
        ski = sid.chosen.native
        for cert in certs:
            if cert.key_identifier == ski:
                return cert
    _logger.debug("Signer identifier matched no embedded certificate, using the first one")
    return certs[0]


def _find_unique_attribute(attrs: cms.CMSAttributes, name: str) -> object | None:
    values = [attr["values"] for attr in attrs if attr["type"].native == name]
    if not values:
        return None
    if len(values) > 1 or len(values[0]) != 1:
        raise MalformedEnvelopeError(f"Signed attribute {name} must have exactly one value")
    return values[0][0]


def _touch_certificate(cert: x509.Certificate) -> None:
    """Force lazy decoding of the certificate fields the evaluator reads."""
    _ = cert.subject.human_friendly
    _ = cert.issuer.human_friendly
    _ = cert.serial_number
    _ = cert["tbs_certificate"]["validity"].native
    _ = cert.public_key.algorithm


def parse_envelope(contents: bytes) -> ParsedEnvelope:
    """Decode a detached CMS SignedData from a signature's /Contents bytes.

    Trailing zero padding from the placeholder is trimmed using the DER
    length header.

    Raises:
        MalformedEnvelopeError: On any structural decode failure.
    """
    try:
        der = trim_der_padding(contents)
        content_info = cms.ContentInfo.load(der)
        if content_info["content_type"].native != "signed_data":
            raise MalformedEnvelopeError(
                f"Expected signed_data, got {content_info['content_type'].native}"
            )
        signed_data = content_info["content"]
        signer_infos = signed_data["signer_infos"]
        if len(signer_infos) == 0:
            raise MalformedEnvelopeError("No signer information found in signature")
        signer_info = signer_infos[0]

        cert_choices = signed_data["certificates"]
        certs = [c.chosen for c in cert_choices if c.name == "certificate"] if cert_choices else []
        if not certs:
            raise MalformedEnvelopeError("No certificates found in signature")
        signer_cert = _find_signer_certificate(signer_info, certs)
        _touch_certificate(signer_cert)
        chain = tuple(c for c in certs if c is not signer_cert)

        digest_algorithm = str(signer_info["digest_algorithm"]["algorithm"].native)
        mechanism = signer_info["signature_algorithm"]
        signature = signer_info["signature"].native

        signed_attrs = signer_info["signed_attrs"]
        message_digest: bytes | None = None
        signing_time: datetime | None = None
        if isinstance(signed_attrs, core.Void):
            signed_attrs = None
        else:
            md_value = _find_unique_attribute(signed_attrs, "message_digest")
            if md_value is None:
                raise MalformedEnvelopeError("Signed attributes lack a message digest")
            message_digest = md_value.native
            time_value = _find_unique_attribute(signed_attrs, "signing_time")
            if time_value is not None:
                signing_time = time_value.native
    except MalformedEnvelopeError:
        raise
    except _DECODE_ERRORS as e:
        raise MalformedEnvelopeError(f"Failed to parse CMS signature: {e}") from e

    return ParsedEnvelope(
        signer_certificate=signer_cert,
        chain=chain,
        digest_algorithm=digest_algorithm,
        signature_algorithm=mechanism,
        signature_algorithm_name=describe_signature_algorithm(mechanism, digest_algorithm),
        message_digest=message_digest,
        signed_attrs=signed_attrs,
        signing_time=signing_time,
        signature=signature,
    )


def verify_envelope_signature(envelope: ParsedEnvelope, content_digest: bytes) -> None:
    """Check the signature value against the signer certificate's public key.

    With signed attributes the signature covers their DER encoding (as a
    universal SET); without them it covers ``content_digest`` directly.

    Raises:
        SignatureVerificationError: If the signature does not verify.
        UnsupportedAlgorithmError: If the algorithms are not supported.
    """
    md_algorithm = resolve_digest_algorithm(envelope.digest_algorithm)
    if envelope.signed_attrs is not None:
        signed_blob = envelope.signed_attrs.untag().dump()
        verify_raw(
            envelope.signature,
            signed_blob,
            envelope.signer_certificate,
            envelope.signature_algorithm,
            md_algorithm,
        )
    else:
        verify_raw(
            envelope.signature,
            content_digest,
            envelope.signer_certificate,
            envelope.signature_algorithm,
            md_algorithm,
            prehashed=True,
        )


# ── Building ─────────────────────────────────────────────────────────


def _as_signing_certificate_v2(cert: x509.Certificate) -> tsp.SigningCertificateV2:
    """ESS signing-certificate-v2 value identifying ``cert`` by its SHA-256 hash."""
    return tsp.SigningCertificateV2(
        {
            "certs": [
                tsp.ESSCertIDv2(
                    {
                        "hash_algorithm": {"algorithm": "sha256"},
                        "cert_hash": hashlib.sha256(cert.dump()).digest(),
                        "issuer_serial": {
                            "issuer": [x509.GeneralName({"directory_name": cert.issuer})],
                            "serial_number": cert["tbs_certificate"]["serial_number"],
                        },
                    }
                )
            ]
        }
    )


def _cms_time(moment: datetime) -> cms.Time:
    moment = moment.astimezone(timezone.utc).replace(microsecond=0)
    if moment.year > _UTC_TIME_MAX_YEAR:
        return cms.Time({"general_time": core.GeneralizedTime(moment)})
    return cms.Time({"utc_time": core.UTCTime(moment)})


def build_envelope(
    digest: bytes,
    digest_algorithm: str,
    key: CertificateData,
    signing_time: datetime | None = None,
    *,
    dry_run: bool = False,
) -> bytes:
    """Build a detached CMS SignedData over a precomputed content digest.

    Signed attributes: content type, signing time (when given), message
    digest, and signing-certificate-v2.  The signer certificate and any
    chain certificates are embedded.

    Args:
        digest: Digest of the byte-range content.
        digest_algorithm: Name of the digest algorithm used.
        key: Unlocked signing key material.
        signing_time: Claimed signing time.
        dry_run: Skip the private-key operation and embed a zero-filled
            signature of the maximum size for the key (for sizing).

    Returns:
        DER-encoded ContentInfo.
    """
    canonical = resolve_digest_algorithm(digest_algorithm)
    cert = key.certificate
    mechanism = signature_mechanism(cert, canonical)

    attrs = [simple_cms_attribute("content_type", "data")]
    if signing_time is not None:
        attrs.append(simple_cms_attribute("signing_time", _cms_time(signing_time)))
    attrs.append(simple_cms_attribute("message_digest", digest))
    attrs.append(simple_cms_attribute("signing_certificate_v2", _as_signing_certificate_v2(cert)))
    signed_attrs = cms.CMSAttributes(attrs)

    if dry_run:
        signature = bytes(max_signature_size(cert))
    else:
        signature = sign_raw(signed_attrs.dump(), key.private_key, mechanism)

    digest_algorithm_obj = algos.DigestAlgorithm({"algorithm": asn1_digest_name(canonical)})
    signer_info = cms.SignerInfo(
        {
            "version": "v1",
            "sid": cms.SignerIdentifier(
                {
                    "issuer_and_serial_number": cms.IssuerAndSerialNumber(
                        {"issuer": cert.issuer, "serial_number": cert.serial_number}
                    )
                }
            ),
            "digest_algorithm": digest_algorithm_obj,
            "signature_algorithm": mechanism,
            "signed_attrs": signed_attrs,
            "signature": signature,
        }
    )
    certs = [cms.CertificateChoices(name="certificate", value=c) for c in (cert, *key.chain)]
    signed_data = cms.SignedData(
        {
            "version": "v1",
            "digest_algorithms": cms.DigestAlgorithms((digest_algorithm_obj,)),
            "encap_content_info": {"content_type": "data"},
            "certificates": certs,
            "signer_infos": [signer_info],
        }
    )
    content_info = cms.ContentInfo(
        {"content_type": cms.ContentType("signed_data"), "content": signed_data}
    )
    return content_info.dump()


def estimate_envelope_size(
    key: CertificateData, digest_algorithm: str, signing_time: datetime | None = None
) -> int:
    """Size in bytes of the largest envelope ``build_envelope`` can produce for these inputs."""
    dummy_digest = bytes(digest_size(digest_algorithm))
    return len(build_envelope(dummy_digest, digest_algorithm, key, signing_time, dry_run=True))


def fit_to_placeholder(envelope: bytes, placeholder_size: int) -> bytes:
    """Return ``envelope`` unchanged if it fits the reserved slot.

    Raises:
        PlaceholderTooSmallError: If the envelope is larger than the reservation.
    """
    if len(envelope) > placeholder_size:
        raise PlaceholderTooSmallError(
            f"Signature envelope is {len(envelope)} bytes but only "
            f"{placeholder_size} bytes were reserved",
            required=len(envelope),
            reserved=placeholder_size,
        )
    return envelope
