# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""
Key material loading for signing.

Unlocks a PKCS#12 container (``.p12`` / ``.pfx``) or PEM certificate and
private key into a :class:`CertificateData`.  The result lives only for
the duration of one signing operation and is never cached.
"""

from __future__ import annotations

__all__ = [
    "CertificateData",
    "load_combined_pem",
    "load_key_container",
    "load_pem_files",
    "load_pkcs12",
]

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from asn1crypto import pkcs12 as asn1_pkcs12
from asn1crypto import x509 as asn1_x509
from cryptography import exceptions as crypto_exceptions
from cryptography import x509 as crypto_x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from ..errors import InvalidCredentialsError, UnsupportedKeyFormatError

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

_logger = logging.getLogger(__name__)

_PEM_MARKER = b"-----BEGIN"
_PEM_CERT_RE = re.compile(
    rb"-----BEGIN CERTIFICATE-----\s.*?-----END CERTIFICATE-----", re.DOTALL
)
_PEM_KEY_RE = re.compile(
    rb"-----BEGIN (?:ENCRYPTED |RSA |EC )?PRIVATE KEY-----\s.*?"
    rb"-----END (?:ENCRYPTED |RSA |EC )?PRIVATE KEY-----",
    re.DOTALL,
)


@dataclass(frozen=True)
class CertificateData:
    """Signer certificate plus the unlocked key it was loaded with.

    Attributes:
        certificate: Signer certificate (asn1crypto).
        private_key: Unlocked private key (pyca/cryptography).
        chain: Additional certificates to embed in the envelope.
        key_container: Raw container bytes the key came from.
        secret: Secret used to unlock the container.
    """

    certificate: asn1_x509.Certificate
    private_key: PrivateKeyTypes = field(repr=False)
    chain: tuple[asn1_x509.Certificate, ...] = ()
    key_container: bytes = field(default=b"", repr=False)
    secret: str | None = field(default=None, repr=False)

    @property
    def subject_name(self) -> str:
        return self.certificate.subject.human_friendly


def _to_asn1_cert(cert: crypto_x509.Certificate) -> asn1_x509.Certificate:
    return asn1_x509.Certificate.load(cert.public_bytes(serialization.Encoding.DER))


def _public_key_der(private_key: PrivateKeyTypes) -> bytes:
    return private_key.public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )


def _check_key_type(private_key: PrivateKeyTypes) -> None:
    if not isinstance(private_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise UnsupportedKeyFormatError(
            f"Unsupported private key type: {type(private_key).__name__}. Use RSA or EC keys."
        )


def _split_signer(
    private_key: PrivateKeyTypes, certs: list[asn1_x509.Certificate]
) -> tuple[asn1_x509.Certificate, tuple[asn1_x509.Certificate, ...]]:
    """Find the certificate matching the private key; the rest become the chain."""
    key_der = _public_key_der(private_key)
    for cert in certs:
        if cert.public_key.dump() == key_der:
            return cert, tuple(c for c in certs if c is not cert)
    raise UnsupportedKeyFormatError("Private key does not match any supplied certificate")


def load_pkcs12(data: bytes, secret: str | None) -> CertificateData:
    """Unlock a PKCS#12 container.

    Raises:
        UnsupportedKeyFormatError: If the data is not a PKCS#12 structure or
            holds no usable key and certificate.
        InvalidCredentialsError: If the secret does not unlock it.
    """
    try:
        pfx = asn1_pkcs12.Pfx.load(data)
        _ = pfx["version"].native
        _ = pfx["auth_safe"]["content_type"].native
    except (ValueError, TypeError, KeyError) as e:
        raise UnsupportedKeyFormatError(f"Not a PKCS#12 container: {e}") from e

    password = secret.encode("utf-8") if secret else None
    try:
        private_key, cert, extra_certs = pkcs12.load_key_and_certificates(data, password)
    except ValueError as e:
        raise InvalidCredentialsError("Invalid password or corrupted PKCS#12 file") from e
    except crypto_exceptions.UnsupportedAlgorithm as e:
        raise UnsupportedKeyFormatError(f"Unsupported PKCS#12 encryption: {e}") from e

    if private_key is None:
        raise UnsupportedKeyFormatError("No private key found in PKCS#12 file")
    if cert is None:
        raise UnsupportedKeyFormatError("No certificate found in PKCS#12 file")
    _check_key_type(private_key)

    signer_cert = _to_asn1_cert(cert)
    if signer_cert.public_key.dump() != _public_key_der(private_key):
        raise UnsupportedKeyFormatError("Private key does not match the PKCS#12 certificate")
    chain = tuple(_to_asn1_cert(c) for c in extra_certs)
    _logger.debug(
        "Loaded PKCS#12 key for %s (+%d chain certs)",
        signer_cert.subject.human_friendly,
        len(chain),
    )
    return CertificateData(
        certificate=signer_cert,
        private_key=private_key,
        chain=chain,
        key_container=data,
        secret=secret,
    )


def _load_pem_private_key(key_pem: bytes, secret: str | None) -> PrivateKeyTypes:
    encrypted = b"ENCRYPTED" in key_pem
    if encrypted and not secret:
        raise InvalidCredentialsError("Private key is encrypted; a password is required")
    password = secret.encode("utf-8") if encrypted and secret else None
    try:
        return serialization.load_pem_private_key(key_pem, password)
    except ValueError as e:
        if encrypted:
            raise InvalidCredentialsError("Invalid password for encrypted private key") from e
        raise UnsupportedKeyFormatError(f"Cannot parse private key: {e}") from e
    except TypeError as e:
        raise InvalidCredentialsError(str(e)) from e
    except crypto_exceptions.UnsupportedAlgorithm as e:
        raise UnsupportedKeyFormatError(f"Unsupported private key: {e}") from e


def load_pem_files(cert_pem: bytes, key_pem: bytes, secret: str | None = None) -> CertificateData:
    """Load a PEM certificate (optionally followed by chain certificates) and a PEM key.

    Raises:
        UnsupportedKeyFormatError: If either input cannot be parsed or they do not match.
        InvalidCredentialsError: If an encrypted key cannot be unlocked.
    """
    try:
        crypto_certs = crypto_x509.load_pem_x509_certificates(cert_pem)
    except ValueError as e:
        raise UnsupportedKeyFormatError(f"Cannot parse certificate PEM: {e}") from e

    private_key = _load_pem_private_key(key_pem, secret)
    _check_key_type(private_key)
    signer_cert, chain = _split_signer(private_key, [_to_asn1_cert(c) for c in crypto_certs])
    _logger.debug(
        "Loaded PEM key for %s (+%d chain certs)",
        signer_cert.subject.human_friendly,
        len(chain),
    )
    return CertificateData(
        certificate=signer_cert,
        private_key=private_key,
        chain=chain,
        key_container=cert_pem + b"\n" + key_pem,
        secret=secret,
    )


def load_combined_pem(pem: bytes, secret: str | None = None) -> CertificateData:
    """Load a single PEM bundle holding both certificate(s) and a private key."""
    cert_blocks = _PEM_CERT_RE.findall(pem)
    key_match = _PEM_KEY_RE.search(pem)
    if not cert_blocks:
        raise UnsupportedKeyFormatError("No certificate found in PEM data")
    if key_match is None:
        raise UnsupportedKeyFormatError("No private key found in PEM data")
    data = load_pem_files(b"\n".join(cert_blocks), key_match.group(0), secret)
    return CertificateData(
        certificate=data.certificate,
        private_key=data.private_key,
        chain=data.chain,
        key_container=pem,
        secret=secret,
    )


def load_key_container(container: bytes, secret: str | None) -> CertificateData:
    """Unlock a key container, detecting PEM bundle vs PKCS#12 by content.

    Raises:
        InvalidCredentialsError: Wrong or missing secret.
        UnsupportedKeyFormatError: Unrecognized container or unusable key material.
    """
    if not container:
        raise UnsupportedKeyFormatError("Key container is empty")
    if _PEM_MARKER in container:
        return load_combined_pem(container, secret)
    return load_pkcs12(container, secret)
