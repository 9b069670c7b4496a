# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""Raw signature primitives: RSA PKCS#1 v1.5, RSASSA-PSS, and ECDSA.

Bridges asn1crypto algorithm identifiers to pyca/cryptography key
operations.  Everything above this module talks in asn1crypto types.
"""

from __future__ import annotations

__all__ = [
    "max_signature_size",
    "pyca_hash",
    "sign_raw",
    "signature_mechanism",
    "verify_raw",
]

import logging
from typing import TYPE_CHECKING

from asn1crypto import algos
from cryptography import exceptions as crypto_exceptions
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from ..errors import (
    SignatureVerificationError,
    UnsupportedAlgorithmError,
    UnsupportedKeyFormatError,
)
from .digest import asn1_digest_name

if TYPE_CHECKING:
    from asn1crypto import x509

    from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

_logger = logging.getLogger(__name__)


def pyca_hash(algorithm: str) -> hashes.HashAlgorithm:
    """pyca hash object for a digest name (``"SHA-256"`` -> ``hashes.SHA256()``)."""
    return getattr(hashes, asn1_digest_name(algorithm).upper())()


def signature_mechanism(
    certificate: x509.Certificate, digest_algorithm: str
) -> algos.SignedDigestAlgorithm:
    """Signature algorithm identifier for a certificate's key type and digest."""
    key_algo = certificate.public_key.algorithm
    digest = asn1_digest_name(digest_algorithm)
    if key_algo == "rsa":
        return algos.SignedDigestAlgorithm({"algorithm": f"{digest}_rsa"})
    if key_algo == "ec":
        return algos.SignedDigestAlgorithm({"algorithm": f"{digest}_ecdsa"})
    raise UnsupportedKeyFormatError(f"Unsupported signer key type: {key_algo}")


def max_signature_size(certificate: x509.Certificate) -> int:
    """Upper bound on the encoded signature value for this certificate's key."""
    key_algo = certificate.public_key.algorithm
    key_bytes = (certificate.public_key.bit_size + 7) // 8
    if key_algo == "rsa":
        return key_bytes
    if key_algo == "ec":
        # SEQUENCE { INTEGER r, INTEGER s }; each INTEGER may need a leading
        # zero byte plus a two-byte header, the SEQUENCE header up to three.
        return 2 * (key_bytes + 3) + 3
    raise UnsupportedKeyFormatError(f"Unsupported signer key type: {key_algo}")


def _pss_params(params: algos.RSASSAPSSParams) -> tuple[padding.PSS, hashes.HashAlgorithm]:
    md_name = params["hash_algorithm"]["algorithm"].native
    mga = params["mask_gen_algorithm"]
    if mga["algorithm"].native != "mgf1":
        raise UnsupportedAlgorithmError("Only MGF1 is supported for RSASSA-PSS")
    mgf_md_name = mga["parameters"]["algorithm"].native
    if mgf_md_name != md_name:
        _logger.warning("MGF1 digest %s differs from PSS digest %s", mgf_md_name, md_name)
    salt_len: int = params["salt_length"].native
    pss = padding.PSS(mgf=padding.MGF1(pyca_hash(mgf_md_name)), salt_length=salt_len)
    return pss, pyca_hash(md_name)


def sign_raw(
    data: bytes,
    private_key: PrivateKeyTypes,
    mechanism: algos.SignedDigestAlgorithm,
) -> bytes:
    """Sign ``data`` with the given key under ``mechanism``."""
    sig_algo = mechanism.signature_algo
    hash_algo = pyca_hash(mechanism.hash_algo)
    if sig_algo == "rsassa_pkcs1v15":
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise UnsupportedKeyFormatError("RSA signature mechanism requires an RSA key")
        return private_key.sign(data, padding.PKCS1v15(), hash_algo)
    if sig_algo == "ecdsa":
        if not isinstance(private_key, ec.EllipticCurvePrivateKey):
            raise UnsupportedKeyFormatError("ECDSA signature mechanism requires an EC key")
        return private_key.sign(data, ec.ECDSA(hash_algo))
    raise UnsupportedAlgorithmError(f"Signature mechanism {sig_algo} is not supported for signing")


def verify_raw(
    signature: bytes,
    signed_data: bytes,
    certificate: x509.Certificate,
    mechanism: algos.SignedDigestAlgorithm,
    md_algorithm: str,
    *,
    prehashed: bool = False,
) -> None:
    """Verify a raw signature value against the certificate's public key.

    Args:
        signature: Signature value from the SignerInfo.
        signed_data: Bytes that were signed, or the digest when ``prehashed``.
        certificate: Signer certificate.
        mechanism: Signature algorithm identifier from the SignerInfo.
        md_algorithm: Digest algorithm declared by the SignerInfo; used
            when the mechanism itself does not imply one (plain rsaEncryption).
        prehashed: ``signed_data`` is already a digest.

    Raises:
        SignatureVerificationError: If the signature does not verify.
        UnsupportedAlgorithmError: If the mechanism is not supported.
    """
    try:
        verify_md_algo = mechanism.hash_algo
    except ValueError:
        verify_md_algo = md_algorithm

    try:
        pub_key = serialization.load_der_public_key(certificate.public_key.dump())
    except crypto_exceptions.UnsupportedAlgorithm as e:
        raise UnsupportedAlgorithmError(f"Signer public key is not supported: {e}") from e
    except ValueError as e:
        raise SignatureVerificationError(
            f"signature verification failed: bad public key ({e})"
        ) from e

    sig_algo = mechanism.signature_algo
    try:
        if sig_algo == "rsassa_pkcs1v15":
            if not isinstance(pub_key, rsa.RSAPublicKey):
                raise SignatureVerificationError("signature verification failed: key is not RSA")
            md = pyca_hash(verify_md_algo)
            verify_md = Prehashed(md) if prehashed else md
            pub_key.verify(signature, signed_data, padding.PKCS1v15(), verify_md)
        elif sig_algo == "rsassa_pss":
            if not isinstance(pub_key, rsa.RSAPublicKey):
                raise SignatureVerificationError("signature verification failed: key is not RSA")
            pss, md = _pss_params(mechanism["parameters"])
            pub_key.verify(signature, signed_data, pss, Prehashed(md) if prehashed else md)
        elif sig_algo == "ecdsa":
            if not isinstance(pub_key, ec.EllipticCurvePublicKey):
                raise SignatureVerificationError("signature verification failed: key is not EC")
            md = pyca_hash(verify_md_algo)
            pub_key.verify(signature, signed_data, ec.ECDSA(Prehashed(md) if prehashed else md))
        else:
            raise UnsupportedAlgorithmError(f"Signature mechanism {sig_algo} is not supported")
    except crypto_exceptions.InvalidSignature as e:
        raise SignatureVerificationError() from e
    except crypto_exceptions.UnsupportedAlgorithm as e:
        raise UnsupportedAlgorithmError(
            f"Signature mechanism {sig_algo} is not supported: {e}"
        ) from e
