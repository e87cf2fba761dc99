from __future__ import annotations

"""Loading and saving of user settings.

Settings are stored as a list of dictionaries to preserve order.  Each
dictionary contains ``key``, ``value`` and ``type`` entries.
"""

from pathlib import Path
import json
import logging
from typing import Any, List, Dict

from . import (
    DATA_DIR,
    DEFAULT_CIRCUIT_REST,
    DEFAULT_REST_DURATION,
    DEFAULT_SETS_PER_EXERCISE,
    DEFAULT_SUPERSET_REST,
)

SETTINGS_PATH = DATA_DIR / "settings.json"

# Written to the file on first run.
DEFAULT_SETTINGS: List[Dict[str, Any]] = [
    {"key": "default_rest_time", "value": DEFAULT_REST_DURATION, "type": "int"},
    {"key": "superset_rest_time", "value": DEFAULT_SUPERSET_REST, "type": "int"},
    {"key": "circuit_rest_time", "value": DEFAULT_CIRCUIT_REST, "type": "int"},
    {
        "key": "default_sets_per_exercise",
        "value": DEFAULT_SETS_PER_EXERCISE,
        "type": "int",
    },
    {"key": "log_level", "value": "WARNING", "type": "str"},
]

# Settings are only read from disk once per path.
_settings_cache: Dict[Path, List[Dict[str, Any]]] = {}


def _defaults() -> List[Dict[str, Any]]:
    return [dict(item) for item in DEFAULT_SETTINGS]


def load_settings(path: Path = SETTINGS_PATH) -> List[Dict[str, Any]]:
    """Load settings from ``path`` or create it with the defaults.

    Keys missing from an existing file are filled in from
    :data:`DEFAULT_SETTINGS`.
    """
    path = Path(path)
    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError):
            logging.warning("Unreadable settings file %s, using defaults", path)
        else:
            if isinstance(data, list):
                known = {item.get("key") for item in data}
                data.extend(d for d in _defaults() if d["key"] not in known)
                return data
            logging.warning("Settings file %s is not a list, using defaults", path)
    settings = _defaults()
    save_settings(settings, path)
    return settings


def save_settings(settings: List[Dict[str, Any]], path: Path = SETTINGS_PATH) -> None:
    """Persist ``settings`` to ``path``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(settings, fh, indent=2)


def get_settings(path: Path | None = None) -> List[Dict[str, Any]]:
    """Return the cached settings list, loading from disk if needed."""
    key = Path(path) if path is not None else SETTINGS_PATH
    if key not in _settings_cache:
        _settings_cache[key] = load_settings(key)
    return _settings_cache[key]


def get_value(key: str, path: Path | None = None) -> Any:
    """Fetch the value associated with ``key``."""
    for item in get_settings(path):
        if item.get("key") == key:
            return item.get("value")
    return None


def set_value(key: str, value: Any, path: Path | None = None) -> None:
    """Update ``key`` with ``value`` and persist the change."""
    settings = get_settings(path)
    for item in settings:
        if item.get("key") == key:
            item["value"] = value
            break
    else:
        settings.append({"key": key, "value": value, "type": type(value).__name__})
    save_settings(settings, Path(path) if path is not None else SETTINGS_PATH)


def reset_cache() -> None:
    """Forget cached settings so the next read goes to disk."""
    _settings_cache.clear()
