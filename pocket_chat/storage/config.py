"""Global settings (API endpoint, prompt layers, scenario overrides).

Stored as one JSON file. get_settings() returns defaults merged with the
stored values; update_settings() applies a partial update: lists (personas,
lorebooks, stickers, context tags) are replaced wholesale, scalars are
overwritten, unknown keys are ignored.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pocket_chat.models import Settings

from .core import data_dir

logger = logging.getLogger(__name__)

_FIELDS = set(Settings.model_fields)


def _settings_path() -> Path:
    return data_dir() / "settings.json"


def _stored() -> dict[str, Any]:
    path = _settings_path()
    if not path.is_file():
        return {}
    stored = json.loads(path.read_text())
    return {k: v for k, v in stored.items() if k in _FIELDS}


def get_settings() -> Settings:
    """Read settings, returning defaults merged with stored values."""
    return Settings.model_validate(_stored())


def update_settings(fields: dict[str, Any]) -> Settings:
    """Merge fields into settings and persist. Returns the full settings.

    Raises pydantic.ValidationError if the merged result is invalid; nothing
    is written in that case.
    """
    merged = _stored()
    merged.update({k: v for k, v in fields.items() if k in _FIELDS})
    settings = Settings.model_validate(merged)
    _settings_path().write_text(settings.model_dump_json(indent=2))
    ignored = sorted(set(fields) - _FIELDS)
    if ignored:
        logger.debug("update_settings ignored unknown keys: %s", ", ".join(ignored))
    return settings
