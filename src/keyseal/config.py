"""Configuration for the key generation workflow.

Settings come from a JSON file; every field is optional.  The file named by
``KEYSEAL_CONFIG`` is used when no explicit path is given, and built-in
defaults apply when neither exists.  Key derivation parameters are not
configurable.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

from keyseal.errors import ConfigError

CONFIG_ENV_VAR = "KEYSEAL_CONFIG"


@dataclass(frozen=True)
class KeySealConfig:
    notes: str = "Alpha Coin Banking System"
    contact: str = "contact@abu.mc"
    default_output_dir: str = "."
    min_password_length: int = 12


def _coerce(config: KeySealConfig, raw: dict[str, object]) -> KeySealConfig:
    known = {f.name: f for f in fields(KeySealConfig)}
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    values: dict[str, object] = {}
    for name, value in raw.items():
        expected = type(getattr(config, name))
        if (expected is int and isinstance(value, bool)) or not isinstance(value, expected):
            raise ConfigError(f"Configuration key {name!r} must be of type {expected.__name__}")
        values[name] = value

    min_len = values.get("min_password_length", config.min_password_length)
    if isinstance(min_len, int) and min_len < 1:
        raise ConfigError("min_password_length must be at least 1")
    return replace(config, **values)


def load_config(path: os.PathLike[str] | str | None = None) -> KeySealConfig:
    """Load configuration from ``path`` (or ``$KEYSEAL_CONFIG``)."""

    explicit = path is not None
    candidate = path if explicit else os.environ.get(CONFIG_ENV_VAR)
    if not candidate:
        return KeySealConfig()

    config_path = Path(candidate)
    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Configuration file not found: {config_path}")
        return KeySealConfig()

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read configuration file {config_path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError("Configuration file must contain a JSON object")
    return _coerce(KeySealConfig(), raw)
