"""
Configuration management for sigrange.

Signing defaults and the trust anchor path live in
~/.sigrange/config.json.  Environment variables override the file;
invalid values are logged and ignored.

Key-secret storage lives in ``credentials.py``.
"""

from __future__ import annotations

__all__ = [
    "CONFIG_DIR",
    "CONFIG_FILE",
    "SigningDefaults",
    "get_signing_defaults",
    "get_trust_anchor_path",
    "reset_all",
    "save_signing_defaults",
    "save_trust_anchor_path",
]

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from ..constants import (
    DEFAULT_DIGEST_ALGORITHM,
    DEFAULT_REASON,
    ENV_DIGEST,
    ENV_PLACEHOLDER_SIZE,
    ENV_TRUST_ANCHOR,
    MAX_PLACEHOLDER_SIZE,
    MIN_PLACEHOLDER_SIZE,
)
from ..core.digest import resolve_digest_algorithm
from ..errors import ConfigError, UnsupportedAlgorithmError
from . import _storage
from ._storage import CONFIG_DIR, CONFIG_FILE, load_config, load_raw_config, save_config

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SigningDefaults:
    """Signing options resolved from env vars, the config file, and built-in defaults."""

    digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM
    placeholder_size: int | None = None
    reason: str = DEFAULT_REASON
    location: str | None = None
    contact_info: str | None = None
    name: str | None = None


# ── Value parsing ────────────────────────────────────────────────────


def _parse_digest(value: str, source: str) -> str | None:
    try:
        return resolve_digest_algorithm(value)
    except UnsupportedAlgorithmError:
        _logger.warning("Unsupported digest %r in %s, ignoring", value, source)
        return None


def _parse_placeholder_size(value: str) -> int | None:
    try:
        size = int(value)
    except ValueError:
        _logger.warning("Invalid %s value %r, ignoring", ENV_PLACEHOLDER_SIZE, value)
        return None
    if size < MIN_PLACEHOLDER_SIZE or size > MAX_PLACEHOLDER_SIZE:
        _logger.warning(
            "%s=%d out of range [%d, %d], ignoring",
            ENV_PLACEHOLDER_SIZE,
            size,
            MIN_PLACEHOLDER_SIZE,
            MAX_PLACEHOLDER_SIZE,
        )
        return None
    return size


# ── Signing defaults ─────────────────────────────────────────────────


def get_signing_defaults() -> SigningDefaults:
    """
    Resolve signing defaults.

    Priority: env vars > config file > built-in defaults.
    """
    config = load_config()

    digest: str | None = None
    env_digest = os.environ.get(ENV_DIGEST, "").strip()
    if env_digest:
        digest = _parse_digest(env_digest, ENV_DIGEST)
    if digest is None and "digest_algorithm" in config:
        digest = _parse_digest(config["digest_algorithm"], str(_storage.CONFIG_FILE))

    size: int | None = None
    env_size = os.environ.get(ENV_PLACEHOLDER_SIZE, "").strip()
    if env_size:
        size = _parse_placeholder_size(env_size)
    if size is None:
        size = config.get("placeholder_size")

    return SigningDefaults(
        digest_algorithm=digest or DEFAULT_DIGEST_ALGORITHM,
        placeholder_size=size,
        reason=config.get("reason") or DEFAULT_REASON,
        location=config.get("location") or None,
        contact_info=config.get("contact_info") or None,
        name=config.get("name") or None,
    )


def save_signing_defaults(
    *,
    digest_algorithm: str | None = None,
    placeholder_size: int | None = None,
    reason: str | None = None,
    location: str | None = None,
    contact_info: str | None = None,
    name: str | None = None,
) -> None:
    """
    Persist signing defaults, merging into the existing config.

    Only arguments that are not None are written.

    Raises:
        ConfigError: If a value is invalid.
    """
    config = load_raw_config()
    if digest_algorithm is not None:
        try:
            config["digest_algorithm"] = resolve_digest_algorithm(digest_algorithm)
        except UnsupportedAlgorithmError as e:
            raise ConfigError(str(e)) from e
    if placeholder_size is not None:
        if not MIN_PLACEHOLDER_SIZE <= placeholder_size <= MAX_PLACEHOLDER_SIZE:
            raise ConfigError(
                f"placeholder_size must be in [{MIN_PLACEHOLDER_SIZE}, {MAX_PLACEHOLDER_SIZE}]"
            )
        config["placeholder_size"] = placeholder_size
    for key, value in (
        ("reason", reason),
        ("location", location),
        ("contact_info", contact_info),
        ("name", name),
    ):
        if value is not None:
            config[key] = value
    save_config(config)


# ── Trust anchor ─────────────────────────────────────────────────────


def get_trust_anchor_path() -> Path | None:
    """Path of the configured trust anchor certificate, or None.

    Priority: env var > config file.
    """
    env_path = os.environ.get(ENV_TRUST_ANCHOR, "").strip()
    if env_path:
        return Path(env_path).expanduser()
    path = load_config().get("trust_anchor")
    return Path(path).expanduser() if path else None


def save_trust_anchor_path(path: str | Path) -> None:
    """Persist the trust anchor certificate path."""
    config = load_raw_config()
    config["trust_anchor"] = str(Path(path).expanduser().resolve())
    save_config(config)


def reset_all() -> None:
    """Delete the config file."""
    _storage.CONFIG_FILE.unlink(missing_ok=True)
    _logger.info("Removed %s", _storage.CONFIG_FILE)


