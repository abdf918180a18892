"""User settings: a JSON file under ~/.config/passbook merged over DEFAULTS.

A missing file means defaults. A file that is unreadable, or a value of the
wrong shape, is logged and replaced by its default so a bad edit never
stops an import.
"""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "passbook"
SETTINGS_PATH = CONFIG_DIR / "settings.json"

DEFAULT_DATA_DIR = Path.home() / "Documents" / "passbook"
DB_FILENAME = "passbook.db"

DEFAULTS = {
    "data_dir": str(DEFAULT_DATA_DIR),
    "default_category": "Other",
    # Narration prefix -> merchant name for salary credits with no counterparty token.
    "payroll_senders": {"LOWES SALARY": "Lowes (Employer)"},
}


def _non_empty_str(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _str_mapping(value) -> bool:
    return isinstance(value, dict) and all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    )


_VALIDATORS = {
    "data_dir": _non_empty_str,
    "default_category": _non_empty_str,
    "payroll_senders": _str_mapping,
}


def _read_saved() -> dict:
    try:
        saved = json.loads(SETTINGS_PATH.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", SETTINGS_PATH, exc)
        return {}
    if not isinstance(saved, dict):
        logger.warning("Ignoring settings file %s: expected a JSON object", SETTINGS_PATH)
        return {}
    return saved


def load_settings() -> dict:
    """Saved settings over DEFAULTS. Unknown keys are kept as-is."""
    settings = {**DEFAULTS, **(_read_saved() if SETTINGS_PATH.exists() else {})}
    for key, is_valid in _VALIDATORS.items():
        if not is_valid(settings[key]):
            logger.warning("Invalid %s in %s, using the default", key, SETTINGS_PATH)
            settings[key] = DEFAULTS[key]
    return settings


def save_settings(settings: dict) -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    SETTINGS_PATH.write_text(json.dumps(settings, indent=2) + "\n")


def get_data_dir() -> Path:
    return Path(load_settings()["data_dir"]).expanduser()


def get_db_path() -> Path:
    return get_data_dir() / DB_FILENAME
