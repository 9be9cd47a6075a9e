"""Env-var backed settings for the SP1 TEE client.

Resolution order: explicit override > env var > default.
All settings are defined in SETTING_DEFS.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettingDef:
    """Definition of a single setting."""

    key: str
    env_var: str
    default: str
    description: str


# ── Registry ─────────────────────────────────────────────────────────────────

SETTING_DEFS: dict[str, SettingDef] = {}


def _reg(key: str, env_var: str, default: str, description: str):
    SETTING_DEFS[key] = SettingDef(key, env_var, default, description)


_reg("server.url", "SP1_TEE_SERVER_URL", "", "Base URL of the TEE server")
_reg(
    "server.timeout",
    "SP1_TEE_TIMEOUT",
    "30",
    "HTTP timeout in seconds (empty or \"none\" disables it)",
)
_reg(
    "signer.address",
    "SP1_TEE_SIGNER_ADDRESS",
    "",
    "Pinned address of the trusted TEE signer (0x-prefixed hex)",
)

# ── Overrides ────────────────────────────────────────────────────────────────

_overrides: dict[str, str] = {}


def _get_def(key: str) -> SettingDef:
    defn = SETTING_DEFS.get(key)
    if defn is None:
        raise KeyError(f"Unknown setting: {key}")
    return defn


def get_setting(key: str) -> str:
    """Resolve a setting value: override > env var > default."""
    defn = _get_def(key)
    if key in _overrides:
        return _overrides[key]
    env_val = os.environ.get(defn.env_var)
    if env_val is not None:
        return env_val
    return defn.default


def get_setting_source(key: str) -> str:
    """Return where the setting value comes from: 'override', 'env', or 'default'."""
    defn = _get_def(key)
    if key in _overrides:
        return "override"
    if os.environ.get(defn.env_var) is not None:
        return "env"
    return "default"


def get_setting_float(key: str) -> float:
    value = get_setting(key)
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Setting {key} ({_get_def(key).env_var}) must be a number, got {value!r}"
        ) from e


def get_setting_optional_float(key: str) -> float | None:
    """Like get_setting_float, but an empty or "none" value means None."""
    if get_setting(key).strip().lower() in ("", "none"):
        return None
    return get_setting_float(key)


def set_setting(key: str, value: str) -> None:
    """Override a setting for the rest of the process."""
    _get_def(key)
    _overrides[key] = value
    logger.debug(f"Setting {key} overridden")


def clear_settings() -> None:
    """Drop all overrides."""
    _overrides.clear()
