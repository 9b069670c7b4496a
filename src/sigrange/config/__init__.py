"""
Configuration and secret management.

Unified API for all config-related functionality. Instead of importing
from individual submodules (config, credentials), import from this
package directly.
"""

from __future__ import annotations

from .config import (
    CONFIG_FILE,
    SigningDefaults,
    get_signing_defaults,
    get_trust_anchor_path,
    reset_all,
    save_signing_defaults,
    save_trust_anchor_path,
)
from .credentials import (
    clear_key_secret,
    get_credential_storage_info,
    get_key_secret,
    resolve_key_secret,
    save_key_secret,
)

__all__ = [
    "CONFIG_FILE",
    "SigningDefaults",
    "clear_key_secret",
    "get_credential_storage_info",
    "get_key_secret",
    "get_signing_defaults",
    "get_trust_anchor_path",
    "reset_all",
    "resolve_key_secret",
    "save_key_secret",
    "save_signing_defaults",
    "save_trust_anchor_path",
]
