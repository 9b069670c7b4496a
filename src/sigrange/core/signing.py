"""
Embedded PDF signing -- a linear pipeline of immutable stages.

Idle -> KeyLoaded -> PlaceholderReserved -> Appended -> DigestComputed
-> EnvelopeBuilt -> Patched.  Each transition accepts only its
predecessor stage, so patching before the envelope exists (or any other
out-of-order step) cannot be expressed.  Key material lives in the
intermediate stages of a single call and is dropped with them.
"""

from __future__ import annotations

__all__ = [
    "Appended",
    "DigestComputed",
    "EnvelopeBuilt",
    "Idle",
    "KeyLoaded",
    "Patched",
    "PlaceholderReserved",
    "SignOptions",
    "VisibleAppearance",
    "append_revision",
    "build_signature_envelope",
    "compute_document_digest",
    "load_key",
    "patch_envelope",
    "reserve_placeholder",
    "sign_document",
    "sign_document_with_key",
]

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TypeVar

from ..constants import DEFAULT_DIGEST_ALGORITHM, DEFAULT_REASON, PDF_MAGIC, PLACEHOLDER_MARGIN
from ..errors import PDFError, PlaceholderTooSmallError
from .byterange import ByteRange, compute_byte_range
from .digest import compute_digest, resolve_digest_algorithm
from .envelope import build_envelope, estimate_envelope_size, fit_to_placeholder
from .keys import CertificateData, load_key_container
from .pdf import (
    SignatureFieldSpec,
    append_revision_with_placeholder,
    insert_envelope,
    list_signature_fields,
    patch_byte_range,
)
from .verify import validate_signature

_logger = logging.getLogger(__name__)

_Stage = TypeVar("_Stage")


# ── Options ──────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class VisibleAppearance:
    """Where a visible signature widget goes on the page.

    Only the rectangle is written by this package; ``image`` and the text
    attributes are carried for an external appearance renderer.

    Attributes:
        page: Page for the widget -- 0-based int, "first", or "last".
        x, y: Lower-left corner in PDF points (origin = bottom-left).
        width, height: Widget size in PDF points.
    """

    page: int | str = 0
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    image: bytes | None = field(default=None, repr=False)
    image_type: str | None = None
    text: str | None = None
    text_size: float | None = None
    text_color: str | None = None

    @property
    def rect(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True, slots=True)
class SignOptions:
    """Options for one embedded signature.

    Attributes:
        reason, location, contact_info, name: Written to the signature
            dictionary when set.
        digest_algorithm: Digest used for the byte range and envelope.
        signing_time: Claimed signing time; now (UTC) when None.
        placeholder_size: Bytes to reserve for the envelope; estimated
            from the key when None.
        field_name: Form field name; ``Signature<n>`` when None.
        appearance: Visible widget placement; invisible when None.
    """

    reason: str | None = DEFAULT_REASON
    location: str | None = None
    contact_info: str | None = None
    name: str | None = None
    digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM
    signing_time: datetime | None = None
    placeholder_size: int | None = None
    field_name: str | None = None
    appearance: VisibleAppearance | None = None


# ── Stages ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Idle:
    document: bytes = field(repr=False)
    key_container: bytes = field(repr=False)
    secret: str | None = field(repr=False)
    options: SignOptions


@dataclass(frozen=True)
class KeyLoaded:
    document: bytes = field(repr=False)
    key: CertificateData
    options: SignOptions
    digest_algorithm: str
    signing_time: datetime


@dataclass(frozen=True)
class PlaceholderReserved:
    document: bytes = field(repr=False)
    key: CertificateData
    options: SignOptions
    digest_algorithm: str
    signing_time: datetime
    placeholder_size: int

    @property
    def placeholder_width(self) -> int:
        """Hex characters in the slot."""
        return self.placeholder_size * 2


@dataclass(frozen=True)
class Appended:
    original_length: int
    prepared: bytes = field(repr=False)
    placeholder_offset: int
    key: CertificateData
    digest_algorithm: str
    signing_time: datetime
    placeholder_size: int


@dataclass(frozen=True)
class DigestComputed:
    original_length: int
    prepared: bytes = field(repr=False)
    placeholder_offset: int
    key: CertificateData
    digest_algorithm: str
    signing_time: datetime
    placeholder_size: int
    byte_range: ByteRange
    digest: bytes


@dataclass(frozen=True)
class EnvelopeBuilt:
    prepared: bytes = field(repr=False)
    placeholder_offset: int
    placeholder_size: int
    byte_range: ByteRange
    envelope: bytes = field(repr=False)


@dataclass(frozen=True)
class Patched:
    document: bytes = field(repr=False)
    placeholder_offset: int
    byte_range: ByteRange
    envelope_size: int


def _expect(stage: object, expected: type[_Stage]) -> _Stage:
    if not isinstance(stage, expected):
        raise TypeError(f"Expected {expected.__name__} stage, got {type(stage).__name__}")
    return stage


# ── Transitions ──────────────────────────────────────────────────────


def _key_loaded(document: bytes, key: CertificateData, options: SignOptions) -> KeyLoaded:
    moment = options.signing_time or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return KeyLoaded(
        document=document,
        key=key,
        options=options,
        digest_algorithm=resolve_digest_algorithm(options.digest_algorithm),
        signing_time=moment.astimezone(timezone.utc).replace(microsecond=0),
    )


def load_key(stage: Idle) -> KeyLoaded:
    """Unlock the key container.

    Raises:
        InvalidCredentialsError: Wrong or missing secret.
        UnsupportedKeyFormatError: Unrecognized container.
    """
    idle = _expect(stage, Idle)
    key = load_key_container(idle.key_container, idle.secret)
    return _key_loaded(idle.document, key, idle.options)


def reserve_placeholder(stage: KeyLoaded) -> PlaceholderReserved:
    """Decide how many envelope bytes to reserve."""
    loaded = _expect(stage, KeyLoaded)
    size = loaded.options.placeholder_size
    if size is None:
        estimated = estimate_envelope_size(loaded.key, loaded.digest_algorithm, loaded.signing_time)
        size = estimated + PLACEHOLDER_MARGIN
        _logger.debug("Estimated envelope %d bytes, reserving %d", estimated, size)
    elif size <= 0:
        raise PlaceholderTooSmallError(
            f"Placeholder size must be positive, got {size}", reserved=size
        )
    return PlaceholderReserved(
        document=loaded.document,
        key=loaded.key,
        options=loaded.options,
        digest_algorithm=loaded.digest_algorithm,
        signing_time=loaded.signing_time,
        placeholder_size=size,
    )


def append_revision(stage: PlaceholderReserved) -> Appended:
    """Append the signature field as an incremental update.

    Raises:
        PDFError: If the new document does not keep the original bytes
            as an exact prefix.
    """
    reserved = _expect(stage, PlaceholderReserved)
    opts = reserved.options
    appearance = opts.appearance
    field_spec = SignatureFieldSpec(
        field_name=opts.field_name,
        reason=opts.reason,
        location=opts.location,
        contact_info=opts.contact_info,
        name=opts.name,
        signing_time=reserved.signing_time,
        page=appearance.page if appearance is not None else 0,
        rect=appearance.rect if appearance is not None else None,
    )
    prepared, offset = append_revision_with_placeholder(
        reserved.document, field_spec, reserved.placeholder_width
    )
    original = reserved.document
    if not prepared.startswith(original):
        raise PDFError("Incremental update modified bytes of the original document.")
    return Appended(
        original_length=len(original),
        prepared=prepared,
        placeholder_offset=offset,
        key=reserved.key,
        digest_algorithm=reserved.digest_algorithm,
        signing_time=reserved.signing_time,
        placeholder_size=reserved.placeholder_size,
    )


def compute_document_digest(stage: Appended) -> DigestComputed:
    """Fix the final /ByteRange in place and hash the covered bytes."""
    appended = _expect(stage, Appended)
    width = appended.placeholder_size * 2
    byte_range = compute_byte_range(len(appended.prepared), appended.placeholder_offset, width + 2)
    patched = patch_byte_range(appended.prepared, byte_range, appended.original_length)
    if len(patched) != len(appended.prepared):
        raise PDFError("ByteRange patch changed the document size.")
    digest = compute_digest(patched, byte_range, appended.digest_algorithm)
    return DigestComputed(
        original_length=appended.original_length,
        prepared=patched,
        placeholder_offset=appended.placeholder_offset,
        key=appended.key,
        digest_algorithm=appended.digest_algorithm,
        signing_time=appended.signing_time,
        placeholder_size=appended.placeholder_size,
        byte_range=byte_range,
        digest=digest,
    )


def build_signature_envelope(stage: DigestComputed) -> EnvelopeBuilt:
    """Sign the digest and check the envelope fits the reservation.

    Raises:
        PlaceholderTooSmallError: If the envelope is larger than the slot.
    """
    computed = _expect(stage, DigestComputed)
    envelope = build_envelope(
        computed.digest, computed.digest_algorithm, computed.key, computed.signing_time
    )
    fit_to_placeholder(envelope, computed.placeholder_size)
    return EnvelopeBuilt(
        prepared=computed.prepared,
        placeholder_offset=computed.placeholder_offset,
        placeholder_size=computed.placeholder_size,
        byte_range=computed.byte_range,
        envelope=envelope,
    )


def patch_envelope(stage: EnvelopeBuilt) -> Patched:
    """Write the envelope into the slot, zero padded; no other byte changes."""
    built = _expect(stage, EnvelopeBuilt)
    signed = insert_envelope(
        built.prepared, built.placeholder_offset, built.placeholder_size * 2, built.envelope
    )
    if len(signed) != len(built.prepared):
        raise PDFError(f"insert_envelope changed PDF size: {len(built.prepared)} -> {len(signed)}")
    return Patched(
        document=signed,
        placeholder_offset=built.placeholder_offset,
        byte_range=built.byte_range,
        envelope_size=len(built.envelope),
    )


# ── Orchestration ────────────────────────────────────────────────────


def _require_pdf_header(pdf_bytes: bytes) -> None:
    # Header may follow up to 1 KB of junk, as readers tolerate
    if not pdf_bytes or PDF_MAGIC not in pdf_bytes[:1024]:
        raise PDFError("Input does not appear to be a PDF file.")


def _self_verify(done: Patched, signing_time: datetime) -> None:
    """Re-read the signed output and validate the signature just written."""
    fields = [
        f
        for f in list_signature_fields(done.document)
        if f.contents_span is not None and f.contents_span[0] == done.placeholder_offset
    ]
    if len(fields) != 1:
        raise PDFError("Post-sign verification FAILED: new signature field not found.")
    result = validate_signature(fields[0], done.document, validation_time=signing_time)
    if not result.is_valid:
        _logger.error("Post-sign verification failed: %s", result.error_message)
        raise PDFError(
            f"Post-sign verification FAILED: {result.error_message}\n"
            "The signed PDF may be corrupt -- not saved."
        )


def _run_from(loaded: KeyLoaded) -> bytes:
    _logger.info(
        "Signing PDF: %d bytes, %s, signer %s",
        len(loaded.document),
        loaded.digest_algorithm,
        loaded.key.subject_name,
    )

    _logger.debug("Step 2: Reserving placeholder")
    reserved = reserve_placeholder(loaded)
    _logger.debug("Reserved %d bytes", reserved.placeholder_size)

    _logger.debug("Step 3: Appending signature field")
    appended = append_revision(reserved)
    _logger.debug(
        "Prepared PDF: %d bytes, slot at %d", len(appended.prepared), appended.placeholder_offset
    )

    _logger.debug("Step 4: Computing ByteRange digest")
    computed = compute_document_digest(appended)
    _logger.debug("ByteRange %s, digest %s", computed.byte_range.as_list(), computed.digest.hex())

    _logger.debug("Step 5: Building envelope")
    built = build_signature_envelope(computed)
    _logger.debug("Envelope: %d bytes", len(built.envelope))

    _logger.debug("Step 6: Patching envelope into PDF")
    done = patch_envelope(built)

    _logger.debug("Step 7: Verifying signature")
    _self_verify(done, loaded.signing_time)
    _logger.debug("Post-sign check passed for the new signature")

    _logger.info("Signed PDF complete: %d bytes", len(done.document))
    return done.document


def sign_document(
    document: bytes,
    key_container: bytes,
    secret: str | None,
    options: SignOptions | None = None,
) -> bytes:
    """Sign ``document`` and return the signed bytes in one call.

    Args:
        document: Raw PDF file content.
        key_container: PKCS#12 or combined PEM bytes.
        secret: Secret unlocking the container.
        options: Signature options; defaults when None.

    Returns:
        The signed document: the original bytes followed by one
        incremental update.

    Raises:
        SigrangeError: A single subclass describing the failure; no
            partially signed output is ever returned.
    """
    _require_pdf_header(document)
    _logger.debug("Step 1: Loading key")
    loaded = load_key(Idle(document, key_container, secret, options or SignOptions()))
    return _run_from(loaded)


def sign_document_with_key(
    document: bytes,
    certificate_data: CertificateData,
    options: SignOptions | None = None,
) -> bytes:
    """Sign a PDF with already unlocked key material."""
    _require_pdf_header(document)
    return _run_from(_key_loaded(document, certificate_data, options or SignOptions()))
