"""Engine configuration: defaults, .env file and NARRATIVE_* variables.

    NARRATIVE_AUTOSAVE_INTERVAL   seconds between autosaves, 0 disables (30)
    NARRATIVE_DEBUG               log every dispatch and event (false)
    NARRATIVE_STORAGE_PREFIX      key namespace for persistence ("narrative")
    NARRATIVE_DATA_DIR            LocalStorage base directory ("data")
    NARRATIVE_STORAGE_URL         KV service root; set to use RemoteStorage ("")
    NARRATIVE_SESSION_ID          player/session namespace on the KV service ("local")
    NARRATIVE_API_KEY             bearer token for the KV service ("")
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

_ENV_PREFIX = "NARRATIVE_"


class EngineConfig(BaseModel):
    autosave_interval: float = Field(default=30.0, ge=0)
    debug: bool = False
    storage_prefix: str = "narrative"
    data_dir: Path = Path("data")
    storage_url: str = ""
    session_id: str = "local"
    api_key: str = ""


def load_config(env_file: Path | None = None, **overrides) -> EngineConfig:
    """Build an EngineConfig from defaults, the environment and `overrides`.

    Loads `env_file` (default: ./.env) first without overriding variables
    that are already set. Keyword overrides win over everything.
    """
    load_dotenv(env_file or Path(".env"))

    values: dict = {}
    for field in EngineConfig.model_fields:
        raw = os.getenv(_ENV_PREFIX + field.upper())
        if raw is not None and raw != "":
            values[field] = raw
    values.update(overrides)
    return EngineConfig.model_validate(values)
