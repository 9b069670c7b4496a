"""``sigrange`` command line: parser, logging setup, dispatch.

``sign`` lives in :mod:`.sign`; ``check``, ``info`` and ``count`` in
:mod:`.verify`.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from ...constants import DEFAULT_DIGEST_ALGORITHM, ENV_LOG_LEVEL, __version__
from .sign import cmd_sign
from .verify import cmd_check, cmd_count, cmd_info

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

_ENV_HELP = f"""\
environment:
  SIGRANGE_KEY_SECRET        key container password
  SIGRANGE_DIGEST            digest algorithm (default: {DEFAULT_DIGEST_ALGORITHM})
  SIGRANGE_PLACEHOLDER_SIZE  bytes reserved for the signature envelope
  SIGRANGE_TRUST_ANCHOR      trust anchor certificate for `check`
  SIGRANGE_LOG_LEVEL         log level when -v is not given
"""


def _configure_logging(verbosity: int) -> None:
    """Send log records to stderr.

    ``-v`` means INFO and ``-vv`` DEBUG; otherwise SIGRANGE_LOG_LEVEL
    decides, falling back to WARNING.
    """
    if verbosity:
        level = logging.DEBUG if verbosity > 1 else logging.INFO
    else:
        requested = os.environ.get(ENV_LOG_LEVEL, "").strip().upper()
        level = logging.getLevelName(requested) if requested else logging.WARNING
        if not isinstance(level, int):
            print(f"Warning: ignoring invalid {ENV_LOG_LEVEL}={requested!r}", file=sys.stderr)
            level = logging.WARNING
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr)


def _cmd_reset(_args: argparse.Namespace) -> None:
    from ...config import reset_all

    reset_all()
    print("Configuration cleared (keychain secrets are kept).")


def _add_sign(sub: argparse._SubParsersAction) -> None:
    cmd = sub.add_parser("sign", help="Sign a PDF document")
    cmd.set_defaults(handler=cmd_sign)
    cmd.add_argument("file", help="PDF file to sign")
    cmd.add_argument(
        "-k",
        "--key",
        required=True,
        help="Key container: PKCS#12 (.p12/.pfx) or PEM with certificate and key",
    )
    cmd.add_argument("-o", "--output", help="Where to write (default: <name>_signed.pdf)")

    meta = cmd.add_argument_group("signature metadata (defaults come from config)")
    meta.add_argument("--reason", help="Why the document is signed")
    meta.add_argument("--location", help="Where it is signed")
    meta.add_argument("--contact", help="How to reach the signer")
    meta.add_argument("--name", help="Signer display name")

    tuning = cmd.add_argument_group("envelope")
    tuning.add_argument("--digest", help=f"Digest algorithm (default: {DEFAULT_DIGEST_ALGORITHM})")
    tuning.add_argument(
        "--placeholder-size",
        type=int,
        help="Bytes reserved for the envelope (default: estimated from the key)",
    )

    field = cmd.add_argument_group("signature field")
    field.add_argument("--field-name", help="Form field name (default: Signature<n>)")
    field.add_argument(
        "--page",
        help="Page of a visible field: 'first', 'last' or a 1-based number (default: first)",
    )
    field.add_argument("--rect", help="Visible field as X,Y,W,H in points (default: invisible)")


def _add_inspection(sub: argparse._SubParsersAction) -> None:
    check = sub.add_parser("check", help="Validate every signature in a PDF")
    check.set_defaults(handler=cmd_check)
    check.add_argument("file", help="Signed PDF file")
    check.add_argument(
        "--trust-anchor",
        help="Certificate (PEM or DER) to trust as the root; default: from config",
    )
    check.add_argument("--json", action="store_true", help="Print results as JSON")

    for name, handler, text in (
        ("info", cmd_info, "List signature fields and signers"),
        ("count", cmd_count, "Print the number of signature fields"),
    ):
        cmd = sub.add_parser(name, help=text)
        cmd.set_defaults(handler=handler)
        cmd.add_argument("file", help="PDF file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sigrange",
        description="Sign and validate PDF documents with byte-range CMS signatures.",
        epilog=_ENV_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-V", "--version", action="version", version=f"sigrange {__version__}")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log progress to stderr (-vv for debug output)",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    _add_sign(sub)
    _add_inspection(sub)
    sub.add_parser("reset", help="Clear saved configuration").set_defaults(handler=_cmd_reset)
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        sys.exit(1)
    handler(args)


if __name__ == "__main__":
    main()
