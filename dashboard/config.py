"""
goal: settings for the ToolDeck dashboard. every key is looked up as TOOLDECK_<KEY> in the environment
      first, then in data/config.json under the base directory, then falls back to DEFAULTS.
      a missing or broken config file never stops the app from starting.
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

ENV_PREFIX = "TOOLDECK_"

DEFAULTS: dict[str, Any] = {
    "host": "127.0.0.1",
    "port": 8780,
    "max_input_chars": 2_000_000,
    "max_diff_lines": 5000,
    "max_line_tokens": 2000,
    "debounce_ms": 300,
    "default_password_length": 16,
    "random_key_length": 24,
    "log_level": "INFO",
}


def _resolve_base_dir() -> Path:
    # PyInstaller builds keep data/ next to the executable
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent
    return Path(__file__).resolve().parents[1]  # dashboard/config.py -> project root


@dataclass(frozen=True)
class Config:
    base_dir: Path
    host: str
    port: int
    max_input_chars: int  # largest text accepted by any tool endpoint
    max_diff_lines: int  # per side, the line LCS table is lines x lines
    max_line_tokens: int  # per line, above this a changed pair gets no word spans
    debounce_ms: int  # UI wait after the last keystroke before re-running a diff
    default_password_length: int
    random_key_length: int  # length of generated encryption passphrases
    log_level: str  # level for the tooldeck.* loggers


def _coerce(raw: str, default: Any) -> Any:
    """turn an env string into the default's type, keeping the default when it does not parse."""
    # bool before int, bool is an int subclass
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, (int, float)):
        try:
            return type(default)(raw)
        except ValueError:
            return default
    return raw


def _get(obj: dict, key: str, default):
    env = os.getenv(f"{ENV_PREFIX}{key.upper()}")
    if env is not None:
        return _coerce(env, default)
    return obj.get(key, default)


def _read_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        obj = json.loads(path.read_text(encoding="utf-8") or "{}")
    except (OSError, ValueError):
        return {}
    return obj if isinstance(obj, dict) else {}


def load_config() -> Config:
    base = Path(os.getenv(f"{ENV_PREFIX}BASE_DIR") or _resolve_base_dir())
    obj = _read_json(base / "data" / "config.json")
    values = {key: _get(obj, key, default) for key, default in DEFAULTS.items()}
    values["log_level"] = str(values["log_level"]).upper()
    return Config(base_dir=base, **values)
