"""
Key-container secret management for sigrange.

Secrets are kept in the system keychain via keyring, one entry per key
container path.  They are never written to the config file.  The
``SIGRANGE_KEY_SECRET`` environment variable takes priority over any
stored entry.
"""

from __future__ import annotations

__all__ = [
    "clear_key_secret",
    "get_credential_storage_info",
    "get_key_secret",
    "resolve_key_secret",
    "save_key_secret",
]

import logging
import os
from pathlib import Path

import keyring
from keyring.errors import KeyringError

from ..constants import ENV_KEY_SECRET

_logger = logging.getLogger(__name__)

# Keyring service name for secret storage
_KEYRING_SERVICE = "sigrange"


def _entry_name(container_path: str | Path) -> str:
    """Keyring username for a container: its absolute path."""
    return str(Path(container_path).expanduser().resolve())


# Backend module name fragment -> what users call that store
_BACKEND_LABELS = (
    ("macOS", "macOS Keychain"),
    ("Windows", "Windows Credential Manager"),
    ("SecretService", "Linux Secret Service"),
    ("kwallet", "KDE Wallet"),
)


def get_credential_storage_info() -> str:
    """Human-readable name of the keyring backend secrets go to."""
    backend_type = type(keyring.get_keyring())
    module = (backend_type.__module__ or "").lower()
    for fragment, label in _BACKEND_LABELS:
        if fragment.lower() in module:
            return label
    return f"System keychain ({backend_type.__name__})"


def get_key_secret(container_path: str | Path) -> str | None:
    """Stored secret for a key container, or None when absent or inaccessible."""
    try:
        secret = keyring.get_password(_KEYRING_SERVICE, _entry_name(container_path))
    except KeyringError as e:
        # Expected keyring failure (locked, access denied, no backend)
        _logger.debug("Keyring read failed: %s", e)
        return None
    except (OSError, RuntimeError) as e:
        _logger.debug("Keyring backend error: %s", e)
        return None
    return secret or None


def save_key_secret(container_path: str | Path, secret: str) -> bool:
    """Store a key-container secret in the keychain.

    Returns:
        True if stored, False if the keychain is unavailable.
    """
    try:
        keyring.set_password(_KEYRING_SERVICE, _entry_name(container_path), secret)
    except KeyringError as e:
        _logger.warning("Keyring save failed, secret not stored: %s", e)
        return False
    except (OSError, RuntimeError) as e:
        _logger.warning("Keyring backend error, secret not stored: %s", e)
        return False
    _logger.debug("Stored key secret in %s", get_credential_storage_info())
    return True


def clear_key_secret(container_path: str | Path) -> None:
    """Remove a stored secret; missing entries are not an error."""
    try:
        keyring.delete_password(_KEYRING_SERVICE, _entry_name(container_path))
    except KeyringError as e:
        # PasswordDeleteError for a missing entry is a KeyringError too
        _logger.debug("Keyring delete skipped: %s", e)
    except (OSError, RuntimeError) as e:
        _logger.debug("Keyring delete failed: %s", e)


def resolve_key_secret(container_path: str | Path | None = None) -> str | None:
    """Resolve the secret for a key container.

    Priority: env var > keychain entry for ``container_path``.
    """
    env_secret = os.environ.get(ENV_KEY_SECRET)
    if env_secret:
        _logger.debug("resolve_key_secret: source=env")
        return env_secret
    if container_path is None:
        return None
    secret = get_key_secret(container_path)
    _logger.debug("resolve_key_secret: source=%s", "keyring" if secret else "none")
    return secret
