"""Loading of ``config.json`` merged over built-in defaults.

Environment overrides:
- OPENAI_API_KEY fills llm.api_key and transcription.api_key when empty
- MEETINGTRACKER_DATA_DIR selects the data directory (see context.AppContext.resolve)
"""

from __future__ import annotations

import copy
import json
import logging
import os
from typing import Optional

from meetingtracker.services.uploads import MAX_UPLOAD_BYTES

_logger = logging.getLogger("meetingtracker.config")

DEFAULT_CONFIG: dict = {
    "llm": {
        "provider": "openai",
        "model": "gpt-4o",
        "api_key": "",
        "base_url": "",
    },
    "transcription": {
        "provider": "openai",
        "model": "",
        "api_key": "",
        "base_url": "",
        "language": "en",
        "device": "cpu",
        "compute_type": "int8",
    },
    "ingestion": {"workers": 2},
    "uploads": {"max_bytes": MAX_UPLOAD_BYTES},
    # datetime.weekday() numbering; 6 = Sunday.
    "analytics": {"week_start": 6},
}


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: str, environ: Optional[dict] = None) -> dict:
    """Read ``config_path`` (if present) and apply defaults and env overrides.

    A malformed file raises; the server refuses to boot on a broken config.
    """
    environ = os.environ if environ is None else environ
    data: dict = {}
    if os.path.exists(config_path):
        _logger.info("Loading config_path=%s", config_path)
        with open(config_path, "r", encoding="utf-8") as config_file:
            data = json.load(config_file)
        if not isinstance(data, dict):
            raise ValueError(f"Config root must be an object: {config_path}")
        _logger.info("Config keys=%s", sorted(data.keys()))
    else:
        _logger.info("Config missing, using defaults: %s", config_path)

    config = _merge(DEFAULT_CONFIG, data)
    api_key = environ.get("OPENAI_API_KEY", "")
    if api_key:
        for section in ("llm", "transcription"):
            if not config[section].get("api_key"):
                config[section]["api_key"] = api_key
    return config
