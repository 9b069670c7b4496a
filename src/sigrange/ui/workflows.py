"""What the ``sign`` and ``check`` commands do, minus the terminal.

Functions here return result objects instead of printing or exiting, and
turn expected failures (bad secret, unreadable PDF, unwritable output)
into those results rather than exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..constants import UNKNOWN
from ..core.signing import SignOptions, sign_document
from ..errors import InvalidCredentialsError, SigrangeError
from .helpers import atomic_write

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from ..core.verify import SignatureValidationResult

_logger = logging.getLogger(__name__)

_UNEXPECTED = "An unexpected error occurred. Check logs for details."


@dataclass(frozen=True, slots=True)
class SignOutcome:
    """How signing one file went.

    ``credentials_failed`` is set when the key container rejected the
    secret, so the caller can offer to re-enter it.
    """

    ok: bool
    credentials_failed: bool = False
    error_message: str | None = None
    output_path: Path | None = None
    output_size: int = 0


@dataclass(frozen=True, slots=True)
class SignatureReport:
    """Display lines for one signature of a checked document."""

    index: int
    total: int
    valid: bool
    signer_name: str
    detail_lines: list[str]


@dataclass(frozen=True, slots=True)
class CheckReport:
    all_valid: bool
    total_count: int
    failed_count: int
    entries: list[SignatureReport]


def _classify_error(error: Exception) -> SignOutcome:
    if isinstance(error, InvalidCredentialsError):
        return SignOutcome(ok=False, credentials_failed=True, error_message=str(error))
    if isinstance(error, (SigrangeError, ValueError)):
        return SignOutcome(ok=False, error_message=str(error))
    _logger.exception("Signing failed with an unexpected %s", type(error).__name__)
    return SignOutcome(ok=False, error_message=_UNEXPECTED)


def sign_one(
    pdf_bytes: bytes,
    output_path: Path,
    key_container: bytes,
    secret: str | None,
    options: SignOptions | None = None,
) -> SignOutcome:
    """Sign ``pdf_bytes`` and atomically write the result to ``output_path``.

    Nothing is written unless signing (including the post-sign check)
    succeeded.
    """
    try:
        signed = sign_document(pdf_bytes, key_container, secret, options)
    except Exception as e:
        return _classify_error(e)

    try:
        atomic_write(output_path, signed)
    except PermissionError:
        return SignOutcome(ok=False, error_message=f"Permission denied: {output_path}")
    except OSError as e:
        return SignOutcome(ok=False, error_message=f"Cannot write {output_path}: {e}")

    _logger.info("Wrote %s (%d bytes)", output_path, len(signed))
    return SignOutcome(ok=True, output_path=output_path, output_size=len(signed))


# ── Check reports ─────────────────────────────────────────────────


def _when(value: datetime | None) -> str:
    return UNKNOWN if value is None else value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def _with_org(name: str, org: str) -> str:
    return name if org == UNKNOWN else f"{name} ({org})"


def _status_flags(result: SignatureValidationResult) -> str:
    flags = [
        label
        for label, present in (
            ("EXPIRED", result.is_expired),
            ("NOT YET VALID", result.is_not_yet_valid),
            ("self-signed", result.is_self_signed),
        )
        if present
    ]
    flags.append("trusted" if result.is_trusted else "not trusted")
    return ", ".join(flags)


def _detail_lines(result: SignatureValidationResult) -> list[str]:
    headline = (
        "VALID: digest and signature verified"
        if result.is_valid
        else f"INVALID: {result.error_message or 'unknown error'}"
    )
    coverage = result.coverage_status.value
    if result.covered_fraction is not None:
        coverage = f"{coverage} ({result.covered_fraction:.1%} of file)"

    rows: list[tuple[str, str | None]] = [
        ("Coverage", coverage),
        ("ByteRange", str(result.byte_range.as_list()) if result.byte_range else None),
        ("Digest", result.algorithms.digest),
        ("Algorithm", result.algorithms.signature),
        ("Signer", _with_org(result.signer_name, result.signer_org)),
        ("Email", None if result.signer_email == UNKNOWN else result.signer_email),
        ("Issuer", _with_org(result.issuer, result.issuer_org)),
        ("Serial", result.serial_number),
        ("Signed at", _when(result.signature_date)),
        ("Validity", f"{_when(result.valid_from)} - {_when(result.valid_to)}"),
        ("Status", _status_flags(result)),
        ("Reason", result.reason),
        ("Location", result.location),
        ("Contact", result.contact_info),
    ]
    # Labels padded so values line up in one column
    return [headline] + [f"{label + ':':<10} {value}" for label, value in rows if value]


def format_validation_results(results: list[SignatureValidationResult]) -> CheckReport:
    """Group per-signature results into what the ``check`` command prints."""
    total = len(results)
    entries = [
        SignatureReport(
            index=i,
            total=total,
            valid=result.is_valid,
            signer_name=result.signer_name,
            detail_lines=_detail_lines(result),
        )
        for i, result in enumerate(results)
    ]
    failed = sum(not entry.valid for entry in entries)
    return CheckReport(
        all_valid=not failed,
        total_count=total,
        failed_count=failed,
        entries=entries,
    )
