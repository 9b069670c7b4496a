"""On-disk ``config.json``: reading it leniently, writing it privately.

Only signing defaults and the trust anchor path live here; key secrets
go to the system keychain (see credentials.py).
"""

from __future__ import annotations

__all__ = [
    "CONFIG_DIR",
    "CONFIG_FILE",
    "ConfigDict",
    "load_config",
    "load_raw_config",
    "save_config",
]

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TypedDict

from ..constants import MAX_PLACEHOLDER_SIZE, MIN_PLACEHOLDER_SIZE

_logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".sigrange"
CONFIG_FILE = CONFIG_DIR / "config.json"

_PRIVATE_DIR = 0o700
_PRIVATE_FILE = 0o600


class ConfigDict(TypedDict, total=False):
    """Keys sigrange understands, with their expected types."""

    digest_algorithm: str
    placeholder_size: int
    reason: str
    location: str
    contact_info: str
    name: str
    trust_anchor: str


_TEXT_KEYS = ("digest_algorithm", "reason", "location", "contact_info", "name", "trust_anchor")


def load_raw_config() -> dict[str, object]:
    """Everything in the file, unknown keys included; {} when unusable.

    Callers that rewrite the file start from this so keys written by a
    newer version survive.
    """
    try:
        text = CONFIG_FILE.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        _logger.warning("Cannot read %s: %s", CONFIG_FILE, e)
        return {}

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        _logger.warning("Config file %s is corrupted, ignoring it: %s", CONFIG_FILE, e)
        return {}
    if not isinstance(data, dict):
        _logger.warning("Config file %s does not hold an object, ignoring it", CONFIG_FILE)
        return {}
    return data


def _known_entries(data: dict[str, object]) -> ConfigDict:
    config: ConfigDict = {}
    for key in _TEXT_KEYS:
        value = data.get(key)
        if isinstance(value, str):
            config[key] = value  # type: ignore[literal-required]

    size = data.get("placeholder_size")
    if type(size) is int:
        if MIN_PLACEHOLDER_SIZE <= size <= MAX_PLACEHOLDER_SIZE:
            config["placeholder_size"] = size
        else:
            _logger.warning(
                "Ignoring placeholder_size=%d from config, allowed range is %d..%d",
                size,
                MIN_PLACEHOLDER_SIZE,
                MAX_PLACEHOLDER_SIZE,
            )
    return config


def load_config() -> ConfigDict:
    """Known keys with the right types; anything else is dropped."""
    return _known_entries(load_raw_config())


def _restrict(path: Path, mode: int) -> None:
    if os.name == "nt":
        return
    try:
        path.chmod(mode)
    except OSError:
        _logger.warning("Cannot restrict permissions of %s to %o", path, mode)


def save_config(config: dict[str, object]) -> None:
    """Write ``config`` as the whole file, readable by the owner only.

    The JSON goes to a temp file in the same directory that is renamed
    over the old one, so readers see either the old or the new file.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True, mode=_PRIVATE_DIR)
    _restrict(CONFIG_DIR, _PRIVATE_DIR)

    payload = json.dumps(config, indent=2, ensure_ascii=False) + "\n"
    fd, name = tempfile.mkstemp(prefix=".config.", suffix=".tmp", dir=CONFIG_DIR)
    staged = Path(name)
    try:
        # mkstemp already created the file as 0600
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        _restrict(staged, _PRIVATE_FILE)
        staged.replace(CONFIG_FILE)
    except Exception:
        staged.unlink(missing_ok=True)
        raise
    _logger.debug("Saved %d key(s) to %s", len(config), CONFIG_FILE)
