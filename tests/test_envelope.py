"""Tests for sigrange.core.envelope -- detached CMS build, parse, and verify."""

from __future__ import annotations

import datetime
import hashlib

import pytest
from asn1crypto import cms

from sigrange.core.asn1 import der_length, trim_der_padding
from sigrange.core.envelope import (
    build_envelope,
    estimate_envelope_size,
    fit_to_placeholder,
    parse_envelope,
    verify_envelope_signature,
)
from sigrange.errors import (
    MalformedEnvelopeError,
    PlaceholderTooSmallError,
    SignatureVerificationError,
)

CONTENT = b"bytes covered by the signature"
SIGNED_AT = datetime.datetime(2024, 5, 1, 12, 30, 0, tzinfo=datetime.timezone.utc)


def _digest(data: bytes = CONTENT) -> bytes:
    return hashlib.sha256(data).digest()


# ── build + parse ─────────────────────────────────────────────────


def test_parse_built_envelope(rsa_key):
    env = parse_envelope(build_envelope(_digest(), "SHA-256", rsa_key, SIGNED_AT))

    assert env.digest_algorithm == "sha256"
    assert env.message_digest == _digest()
    assert env.signing_time == SIGNED_AT
    assert env.signer_certificate.dump() == rsa_key.certificate.dump()
    assert env.chain == ()
    assert env.signature_algorithm_name.startswith("RSA")
    assert env.signed_attrs is not None


def test_envelope_is_detached(rsa_key):
    der = build_envelope(_digest(), "SHA-256", rsa_key)
    info = cms.ContentInfo.load(der)
    assert info["content"]["encap_content_info"]["content"].native is None


def test_envelope_without_signing_time(rsa_key):
    env = parse_envelope(build_envelope(_digest(), "SHA-256", rsa_key))
    assert env.signing_time is None


def test_envelope_embeds_chain(ca_pair, secret):
    from sigrange.core.keys import load_key_container

    ca, leaf = ca_pair
    key = load_key_container(leaf.p12, secret)
    env = parse_envelope(build_envelope(_digest(), "SHA-256", key))
    assert env.signer_certificate.subject.native["common_name"] == "Carol Leaf"
    assert [c.subject.native["common_name"] for c in env.chain] == ["Test Root CA"]


def test_parse_ignores_zero_padding(rsa_key):
    der = build_envelope(_digest(), "SHA-256", rsa_key)
    env = parse_envelope(der + bytes(500))
    assert env.message_digest == _digest()


@pytest.mark.parametrize("algorithm", ["SHA-256", "SHA-384", "SHA-512"])
def test_ec_envelope_round_trip(ec_key, algorithm):
    digest = hashlib.new(algorithm.replace("-", "").lower(), CONTENT).digest()
    env = parse_envelope(build_envelope(digest, algorithm, ec_key, SIGNED_AT))
    assert env.signature_algorithm_name.startswith("ECDSA")
    verify_envelope_signature(env, digest)


# ── verify ────────────────────────────────────────────────────────


def test_verify_rsa(rsa_key):
    env = parse_envelope(build_envelope(_digest(), "SHA-256", rsa_key, SIGNED_AT))
    verify_envelope_signature(env, _digest())


def test_verify_rejects_forged_signature(rsa_key):
    der = bytearray(build_envelope(_digest(), "SHA-256", rsa_key, SIGNED_AT))
    sig = parse_envelope(bytes(der)).signature
    pos = bytes(der).find(sig)
    der[pos + 10] ^= 0xFF
    env = parse_envelope(bytes(der))
    with pytest.raises(SignatureVerificationError, match="signature verification failed"):
        verify_envelope_signature(env, _digest())


def test_verify_with_other_certificate_fails(rsa_key, ec_key):
    env = parse_envelope(build_envelope(_digest(), "SHA-256", rsa_key))
    swapped = env.__class__(
        signer_certificate=ec_key.certificate,
        chain=env.chain,
        digest_algorithm=env.digest_algorithm,
        signature_algorithm=env.signature_algorithm,
        signature_algorithm_name=env.signature_algorithm_name,
        message_digest=env.message_digest,
        signed_attrs=env.signed_attrs,
        signing_time=env.signing_time,
        signature=env.signature,
    )
    with pytest.raises(SignatureVerificationError):
        verify_envelope_signature(swapped, _digest())


# ── malformed input ───────────────────────────────────────────────


@pytest.mark.parametrize(
    "blob",
    [
        b"",
        b"\x00\x00\x00",
        b"not a cms blob",
        b"\x30\x03\x02\x01\x01",
        b"\x30\x84\xff\xff\xff\xff",
    ],
)
def test_parse_malformed(blob):
    with pytest.raises(MalformedEnvelopeError):
        parse_envelope(blob)


def test_parse_truncated(rsa_key):
    der = build_envelope(_digest(), "SHA-256", rsa_key)
    with pytest.raises(MalformedEnvelopeError):
        parse_envelope(der[: len(der) // 2])


# ── sizing ────────────────────────────────────────────────────────


def test_estimate_covers_real_envelope(rsa_key, ec_key):
    for key in (rsa_key, ec_key):
        estimate = estimate_envelope_size(key, "SHA-256", SIGNED_AT)
        real = build_envelope(_digest(), "SHA-256", key, SIGNED_AT)
        assert len(real) <= estimate


def test_estimate_is_deterministic(rsa_key):
    a = estimate_envelope_size(rsa_key, "SHA-256", SIGNED_AT)
    b = estimate_envelope_size(rsa_key, "SHA-256", SIGNED_AT)
    assert a == b


def test_fit_to_placeholder():
    assert fit_to_placeholder(b"\x01" * 10, 10) == b"\x01" * 10


def test_fit_to_placeholder_too_small():
    with pytest.raises(PlaceholderTooSmallError) as exc_info:
        fit_to_placeholder(b"\x01" * 11, 10)
    assert exc_info.value.required == 11
    assert exc_info.value.reserved == 10


# ── DER helpers ───────────────────────────────────────────────────


def test_der_length_short_and_long_forms():
    assert der_length(b"\x30\x03abc") == 5
    assert der_length(b"\x30\x82\x01\x00" + bytes(256)) == 260


def test_der_length_rejects_non_sequence():
    with pytest.raises(ValueError, match="SEQUENCE"):
        der_length(b"\x04\x01a")


def test_der_length_rejects_indefinite():
    with pytest.raises(ValueError, match="Indefinite"):
        der_length(b"\x30\x80")


def test_trim_der_padding_keeps_trailing_zero_content():
    blob = b"\x30\x02\x00\x00"
    assert trim_der_padding(blob + bytes(8)) == blob
