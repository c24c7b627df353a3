"""Save migration registry.

Persisted saves carry a schema `version`. Providers run every raw save dict
through migrate_save_payload() before validating it, so old saves load as the
current GameSave layout.

Versions:
  1  camelCase layout written by the original browser client
     (createdAt, currentSceneId, readDialogIds, ...)
  2  current snake_case layout
"""

from __future__ import annotations

import copy
import logging
import re
from typing import Any, Callable

from narrative_engine.models import SAVE_VERSION

logger = logging.getLogger(__name__)


class SaveMigrationError(Exception):
    """Raised when a save cannot be migrated to the latest schema."""


Migration = Callable[[dict], dict]

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")

# v1 fields with no counterpart in the engine save
_V1_DROPPED = ("selectedDestination", "selectedFlight")


def _snake(name: str) -> str:
    return _CAMEL_RE.sub(r"_\1", name).lower()


def _snake_keys(value: Any) -> Any:
    if isinstance(value, list):
        return [_snake_keys(v) for v in value]
    if isinstance(value, dict):
        return {_snake(k): _snake_keys(v) for k, v in value.items()}
    return value


def _migrate_v1_to_v2(payload: dict) -> dict:
    flags = payload.get("flags")
    if flags is not None and not isinstance(flags, dict):
        raise SaveMigrationError("Save flags must be an object.")

    dropped = [k for k in _V1_DROPPED if payload.get(k) is not None]
    if dropped:
        logger.info("save %s: dropping legacy fields %s", payload.get("id"), ", ".join(dropped))

    body = {k: v for k, v in payload.items() if k not in _V1_DROPPED and k != "flags"}
    upgraded = _snake_keys(body)
    # flag names are author-chosen keys, never rewritten
    upgraded["flags"] = dict(flags or {})
    upgraded["version"] = 2
    return upgraded


MIGRATIONS: dict[int, Migration] = {
    1: _migrate_v1_to_v2,
}


def migrate_save_payload(payload: dict, target_version: int = SAVE_VERSION) -> dict:
    """Upgrade a raw save dict to `target_version`. The input is not modified."""
    if not isinstance(payload, dict):
        raise SaveMigrationError("Save payload was not an object.")

    version = payload.get("version", 1)
    if version is None:
        version = 1
    if not isinstance(version, int) or isinstance(version, bool):
        raise SaveMigrationError("Save version missing or invalid.")
    if version > target_version:
        raise SaveMigrationError(
            f"Save schema {version} is newer than supported {target_version}."
        )

    current = copy.deepcopy(payload)
    while version < target_version:
        migrator = MIGRATIONS.get(version)
        if migrator is None:
            raise SaveMigrationError(f"No migration available for save schema {version}.")
        current = migrator(current)
        version = current.get("version", version + 1)
        if not isinstance(version, int):
            raise SaveMigrationError("Migration produced an invalid schema version.")

    return current
