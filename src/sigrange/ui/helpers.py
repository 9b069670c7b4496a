"""Small terminal helpers shared by the ``sign`` and ``check`` commands."""

from __future__ import annotations

import getpass
import os
import sys
import tempfile
from pathlib import Path

from ..errors import PDFError

__all__ = [
    "atomic_write",
    "confirm_choice",
    "default_output_path",
    "format_size_kb",
    "parse_page_spec",
    "parse_rect",
    "prompt_secret",
    "safe_read_file",
]

_YES = frozenset({"y", "yes"})


def format_size_kb(size_bytes: int) -> str:
    return f"{size_bytes / 1024:.1f} KB"


def default_output_path(pdf_path: Path) -> Path:
    """``contract.pdf`` -> ``contract_signed.pdf`` in the same directory."""
    return pdf_path.with_stem(pdf_path.stem + "_signed")


def confirm_choice(message: str, default_yes: bool = True) -> bool:
    """Ask a yes/no question; Ctrl-C or EOF counts as "no".

    Args:
        message: The question, without the ``[Y/n]`` hint.
        default_yes: Whether a bare Enter means yes.
    """
    hint = "[Y/n]" if default_yes else "[y/N]"
    try:
        reply = input(f"{message} {hint} ")
    except (EOFError, KeyboardInterrupt):
        print()
        return False

    reply = reply.strip().lower()
    if not reply:
        return default_yes
    return reply in _YES


def prompt_secret(label: str = "Key password") -> str | None:
    """Read a secret without echo.  None means the user cancelled."""
    try:
        return getpass.getpass(label + ": ")
    except (EOFError, KeyboardInterrupt):
        print()
        return None


def safe_read_file(path: Path, kind: str = "file") -> bytes | None:
    """Read ``path``, reporting problems on stderr instead of raising.

    ``kind`` names the file in the message ("PDF", "key container").
    """
    if not path.exists():
        print(f"Error: {kind} not found: {path}", file=sys.stderr)
        return None
    try:
        return path.read_bytes()
    except OSError as e:
        print(f"Error reading {kind} {path}: {e}", file=sys.stderr)
        return None


def atomic_write(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` via a sibling temp file and rename."""
    fd, name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    staged = Path(name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        staged.replace(path)
    except Exception:
        staged.unlink(missing_ok=True)
        raise


def parse_page_spec(page_str: str) -> str | int:
    """Turn a 1-based page number, "first" or "last" into the engine's form.

    Numbers come back 0-based; the two words are passed through.

    Raises:
        PDFError: For anything else, including numbers below 1.
    """
    word = page_str.strip().lower()
    if word in {"first", "last"}:
        return word
    if not word.lstrip("-").isdigit():
        raise PDFError(f"Invalid page: {page_str!r}. Use 'first', 'last', or a page number.")
    number = int(word)
    if number < 1:
        raise PDFError(f"Pages are numbered from 1, got {number}")
    return number - 1


def parse_rect(rect_str: str) -> tuple[float, float, float, float]:
    """Parse ``X,Y,W,H`` in PDF points.

    Raises:
        PDFError: On the wrong number of fields, non-numbers, a
            non-positive size or a negative origin.
    """
    fields = rect_str.split(",")
    if len(fields) != 4:
        raise PDFError(f"Invalid rectangle {rect_str!r}. Use X,Y,W,H in PDF points.")
    try:
        x, y, w, h = map(float, fields)
    except ValueError as exc:
        raise PDFError(f"Invalid rectangle {rect_str!r}: {exc}") from exc
    if min(w, h) <= 0:
        raise PDFError(f"Rectangle width and height must be positive, got {w} x {h}")
    if min(x, y) < 0:
        raise PDFError(f"Rectangle origin must not be negative, got ({x}, {y})")
    return x, y, w, h
