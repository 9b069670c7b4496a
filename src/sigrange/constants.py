"""
Application-wide constants for sigrange.

Size limits, default algorithm choices, environment variable names, and
other magic numbers are centralized here for easy maintenance.
"""

from __future__ import annotations

import importlib.metadata

try:
    __version__ = importlib.metadata.version("sigrange")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = [
    "BYTES_PER_MB",
    "DEFAULT_DIGEST_ALGORITHM",
    "DEFAULT_REASON",
    "ENV_DIGEST",
    "ENV_KEY_SECRET",
    "ENV_LOG_LEVEL",
    "ENV_PLACEHOLDER_SIZE",
    "ENV_TRUST_ANCHOR",
    "MAX_PLACEHOLDER_SIZE",
    "MIN_PLACEHOLDER_SIZE",
    "PDF_MAGIC",
    "PDF_WARN_SIZE",
    "PLACEHOLDER_MARGIN",
    "UNKNOWN",
    "__version__",
]

# ── Size units ────────────────────────────────────────────────────────

# Bytes per megabyte -- used for size limit formatting and calculations
BYTES_PER_MB = 1024 * 1024

# PDF file size warning threshold (100 MB); hashing cost grows with covered bytes
PDF_WARN_SIZE = 100 * 1024 * 1024


# ── Placeholder sizing (bytes of DER, hex slot is twice as wide) ─────

# Slack added on top of the estimated envelope size
PLACEHOLDER_MARGIN = 512

# Smallest and largest reservation accepted from config / env
MIN_PLACEHOLDER_SIZE = 64
MAX_PLACEHOLDER_SIZE = 1024 * 1024


# ── Signature defaults ──────────────────────────────────────────────

DEFAULT_DIGEST_ALGORITHM = "SHA-256"

DEFAULT_REASON = "Signed with sigrange"

# Placeholder for identity fields the certificate does not carry
UNKNOWN = "Unknown"

# PDF file magic bytes
PDF_MAGIC = b"%PDF-"


# ── Environment variable names ──────────────────────────────────────

ENV_DIGEST = "SIGRANGE_DIGEST"
ENV_PLACEHOLDER_SIZE = "SIGRANGE_PLACEHOLDER_SIZE"
ENV_TRUST_ANCHOR = "SIGRANGE_TRUST_ANCHOR"
ENV_KEY_SECRET = "SIGRANGE_KEY_SECRET"
ENV_LOG_LEVEL = "SIGRANGE_LOG_LEVEL"
