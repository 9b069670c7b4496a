"""The ``sign`` command: flags and saved defaults in, signed copy out."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import NoReturn

from ...config import (
    get_credential_storage_info,
    get_signing_defaults,
    resolve_key_secret,
    save_key_secret,
)
from ...constants import BYTES_PER_MB, PDF_WARN_SIZE, __version__
from ...core.signing import SignOptions, VisibleAppearance
from ...errors import PDFError
from ..helpers import (
    confirm_choice,
    default_output_path,
    format_size_kb,
    parse_page_spec,
    parse_rect,
    prompt_secret,
    safe_read_file,
)
from ..workflows import sign_one


def _fail(message: str) -> NoReturn:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _build_appearance(page_raw: str | None, rect_raw: str | None) -> VisibleAppearance | None:
    """Visible widget placement from --page/--rect, or None for invisible."""
    if rect_raw is None:
        if page_raw is not None:
            raise PDFError("--page needs --rect to place a visible signature")
        return None
    page = parse_page_spec(page_raw) if page_raw is not None else 0
    x, y, w, h = parse_rect(rect_raw)
    return VisibleAppearance(page=page, x=x, y=y, width=w, height=h)


def _build_options(args: argparse.Namespace, appearance: VisibleAppearance | None) -> SignOptions:
    """Merge command-line flags over saved signing defaults."""
    defaults = get_signing_defaults()
    return SignOptions(
        reason=args.reason if args.reason is not None else defaults.reason,
        location=args.location if args.location is not None else defaults.location,
        contact_info=args.contact if args.contact is not None else defaults.contact_info,
        name=args.name if args.name is not None else defaults.name,
        digest_algorithm=args.digest or defaults.digest_algorithm,
        placeholder_size=(
            args.placeholder_size
            if args.placeholder_size is not None
            else defaults.placeholder_size
        ),
        field_name=args.field_name,
        appearance=appearance,
    )


def _offer_save_secret(key_path: Path, secret: str) -> None:
    """Ask whether to remember a prompted secret in the system keychain."""
    storage = get_credential_storage_info()
    if not confirm_choice(f"Save key password to {storage}?", default_yes=False):
        return
    if save_key_secret(key_path, secret):
        print(f"Key password saved to {storage}.")
    else:
        print("Could not save key password; keychain unavailable.", file=sys.stderr)


def _warn_if_large(pdf_path: Path, size: int) -> None:
    if size <= PDF_WARN_SIZE:
        return
    print(
        f"  Warning: {pdf_path.name} is {size / BYTES_PER_MB:.0f} MB; hashing files over "
        f"{PDF_WARN_SIZE // BYTES_PER_MB} MB can take a while.",
        file=sys.stderr,
    )


def _obtain_secret(key_path: Path) -> tuple[str, bool]:
    """Secret from env or keychain, else from a prompt (second item True)."""
    stored = resolve_key_secret(key_path)
    if stored is not None:
        return stored, False
    typed = prompt_secret(f"Password for {key_path.name}")
    if typed is None:
        _fail("cancelled")
    return typed, True


def cmd_sign(args: argparse.Namespace) -> None:
    """``sigrange sign FILE -k KEY``: write a signed copy next to FILE."""
    pdf_path = Path(args.file)
    key_path = Path(args.key).expanduser()

    pdf_bytes = safe_read_file(pdf_path, "PDF")
    if pdf_bytes is None:
        sys.exit(1)
    _warn_if_large(pdf_path, len(pdf_bytes))

    key_bytes = safe_read_file(key_path, "key container")
    if key_bytes is None:
        sys.exit(1)

    try:
        appearance = _build_appearance(args.page, args.rect)
    except PDFError as e:
        _fail(str(e))

    secret, prompted = _obtain_secret(key_path)
    options = _build_options(args, appearance)
    out = Path(args.output) if args.output else default_output_path(pdf_path)

    print(f"sigrange v{__version__}")
    print(f"Key: {key_path.name}, Digest: {options.digest_algorithm}")
    if appearance is not None:
        print(f"Visible field on page {args.page or 'first'} at {args.rect}")
    print(f"  Signing {pdf_path.name} ({format_size_kb(len(pdf_bytes))})...", end=" ", flush=True)

    result = sign_one(pdf_bytes, out, key_bytes, secret or None, options)
    if not result.ok:
        print("FAILED", file=sys.stderr)
        print(f"  {result.error_message}", file=sys.stderr)
        if result.credentials_failed:
            print("  Check the key container password (SIGRANGE_KEY_SECRET).", file=sys.stderr)
        sys.exit(1)

    print(f"OK -> {out.name} ({format_size_kb(result.output_size)})")
    if prompted and secret:
        _offer_save_secret(key_path, secret)
