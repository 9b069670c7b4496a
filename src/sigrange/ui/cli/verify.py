"""The ``check``, ``info`` and ``count`` commands.

Only ``check`` verifies anything; the other two just read signature
dictionaries and, for ``info``, the signer certificate in each envelope.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

from ...api import verify
from ...core.certificates import describe_certificate
from ...core.envelope import parse_envelope
from ...core.verify import count_signatures, inspect_signatures
from ...errors import SigrangeError
from ..helpers import format_size_kb, safe_read_file
from ..workflows import CheckReport, format_validation_results

if TYPE_CHECKING:
    import argparse


def _read_pdf_or_exit(path_str: str) -> tuple[Path, bytes]:
    pdf_path = Path(path_str)
    pdf_bytes = safe_read_file(pdf_path, "PDF")
    if pdf_bytes is None:
        sys.exit(1)
    return pdf_path, pdf_bytes


def _exit_on_error(e: SigrangeError) -> NoReturn:
    print(f"  ERROR: {e}", file=sys.stderr)
    sys.exit(1)


def _print_report(report: CheckReport) -> None:
    several = report.total_count > 1
    for entry in report.entries:
        if several:
            print(f"\n  Signature {entry.index + 1}/{entry.total} ({entry.signer_name}):")
        pad = " " * (4 if several else 2)
        print("\n".join(pad + line for line in entry.detail_lines))

    print()
    if not report.all_valid:
        print(f"  RESULT: {report.failed_count} of {report.total_count} signature(s) FAILED")
    elif several:
        print(f"  RESULT: All {report.total_count} signatures VALID")
    else:
        print("  RESULT: Signature VALID")


def cmd_check(args: argparse.Namespace) -> None:
    """Validate all embedded signatures; exit 1 unless every one is valid."""
    pdf_path, pdf_bytes = _read_pdf_or_exit(args.file)
    if not args.json:
        print(f"Checking {pdf_path.name} ({format_size_kb(len(pdf_bytes))})...")

    try:
        results = verify(pdf_bytes, args.trust_anchor)
    except SigrangeError as e:
        _exit_on_error(e)

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
    elif results:
        _print_report(format_validation_results(results))
    else:
        print("  No signatures found.")

    if not results or not all(r.is_valid for r in results):
        sys.exit(1)


def cmd_info(args: argparse.Namespace) -> None:
    """List signature fields with their metadata and signer summary."""
    pdf_path, pdf_bytes = _read_pdf_or_exit(args.file)
    try:
        signatures = inspect_signatures(pdf_bytes)
    except SigrangeError as e:
        _exit_on_error(e)

    print(f"{pdf_path.name}: {len(signatures)} signature field(s)")
    for sig in signatures:
        print(f"\n  [{sig.index + 1}]")
        byte_range = sig.byte_range.as_list() if sig.byte_range else None
        print(f"  ByteRange: {byte_range}")
        if not sig.declares_sig_type:
            print("  Type:      (missing /Type /Sig)")
        print(f"  Envelope:  {len(sig.contents)} bytes (incl. padding)")
        if sig.signing_time is not None:
            print(f"  Time:      {sig.signing_time.isoformat()}")
        for label, value in (
            ("Name", sig.name),
            ("Reason", sig.reason),
            ("Location", sig.location),
            ("Contact", sig.contact_info),
        ):
            if value:
                print(f"  {label + ':':<10} {value}")

        if not sig.contents:
            print("  Signer:    (no envelope)")
            continue
        try:
            envelope = parse_envelope(sig.contents)
        except SigrangeError as e:
            print(f"  Signer:    (unreadable envelope: {e})")
            continue
        summary = describe_certificate(envelope.signer_certificate)
        print(f"  Signer:    {summary['subject']}")
        print(f"  Issuer:    {summary['issuer']}")
        print(f"  Serial:    {summary['serial_number']}")
        print(f"  Valid:     {summary['valid_from']} - {summary['valid_to']}")
        print(f"  Digest:    {envelope.digest_algorithm}")
        print(f"  Algorithm: {envelope.signature_algorithm_name}")


def cmd_count(args: argparse.Namespace) -> None:
    """Print the number of signature fields."""
    _, pdf_bytes = _read_pdf_or_exit(args.file)
    try:
        print(count_signatures(pdf_bytes))
    except SigrangeError as e:
        _exit_on_error(e)
