"""Tests for sigrange.errors -- exception hierarchy."""

import pickle

import pytest

from sigrange.errors import (
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

ALL_ERRORS = (
    CertificateError,
    ConfigError,
    DigestMismatchError,
    InvalidCredentialsError,
    MalformedEnvelopeError,
    MalformedRangeError,
    PDFError,
    PlaceholderTooSmallError,
    SignatureVerificationError,
    UnsupportedAlgorithmError,
    UnsupportedKeyFormatError,
)


def test_sigrange_error_is_exception():
    assert issubclass(SigrangeError, Exception)


@pytest.mark.parametrize("cls", ALL_ERRORS)
def test_inherits_sigrange_error(cls):
    assert issubclass(cls, SigrangeError)


def test_catch_all_with_base():
    """All specific errors should be catchable via SigrangeError."""
    for cls in (InvalidCredentialsError, PDFError, MalformedRangeError):
        with pytest.raises(SigrangeError):
            raise cls("test")


def test_default_messages():
    assert str(DigestMismatchError()) == "digest mismatch"
    assert str(SignatureVerificationError()) == "signature verification failed"


def test_placeholder_too_small_fields():
    e = PlaceholderTooSmallError("too big", required=9000, reserved=8192)
    assert str(e) == "too big"
    assert e.required == 9000
    assert e.reserved == 8192


def test_placeholder_too_small_pickle_roundtrip():
    """PlaceholderTooSmallError should survive pickle/unpickle with sizes preserved."""
    e = PlaceholderTooSmallError("too big", required=9000, reserved=8192)
    restored = pickle.loads(pickle.dumps(e))
    assert isinstance(restored, PlaceholderTooSmallError)
    assert str(restored) == "too big"
    assert restored.required == 9000
    assert restored.reserved == 8192
