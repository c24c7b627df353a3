"""Persistence contract and the key-value logic shared by every backend.

A backend only has to provide four primitives over (kind, id) pairs, where
kind is "save" or "setting":

    _read(kind, id) -> str | None
    _write(kind, id, text)
    _remove(kind, id)
    _ids(kind) -> list[str]

KeyValueStorage builds the whole StorageProvider surface on top of them, so
the local and the network backend cannot disagree on upsert, ordering,
export or import semantics.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from pydantic import BaseModel, Field, ValidationError

from narrative_engine.migrations import SaveMigrationError, migrate_save_payload
from narrative_engine.models import GameSave

logger = logging.getLogger(__name__)

STORAGE_VERSION = 1
DEFAULT_PREFIX = "narrative"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class StorageError(RuntimeError):
    """Raised when a storage backend cannot read or write."""


class BundleVersionError(StorageError):
    """Raised when an import bundle was written by a newer storage version."""


class MalformedBundleError(StorageError):
    """Raised when an import bundle cannot be parsed or validated."""


# ---------------------------------------------------------------------------
# Protocol — every storage backend must match this
# ---------------------------------------------------------------------------

class ExportBundle(BaseModel):
    version: int
    exported_at: str
    saves: list[GameSave] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)


class StorageProvider(Protocol):
    async def get_save(self, save_id: str) -> GameSave | None: ...

    async def get_all_saves(self) -> list[GameSave]: ...

    async def save_save(self, save: GameSave) -> None: ...

    async def delete_save(self, save_id: str) -> None: ...

    async def get_setting(self, key: str) -> Any | None: ...

    async def set_setting(self, key: str, value: Any) -> None: ...

    async def clear(self) -> None: ...

    async def export_bundle(self) -> str: ...

    async def import_bundle(self, data: str | dict | ExportBundle) -> None: ...

    async def is_available(self) -> bool: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def parse_save(text: str) -> GameSave:
    """Decode, migrate and validate one stored save."""
    try:
        raw = json.loads(text)
        return GameSave.model_validate(migrate_save_payload(raw))
    except (json.JSONDecodeError, SaveMigrationError, ValidationError) as e:
        raise StorageError(f"Stored save is unreadable: {e}") from e


def _updated_ts(save: GameSave) -> float:
    try:
        dt = datetime.fromisoformat(save.updated_at)
    except ValueError:
        return 0.0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def parse_bundle(data: str | dict | ExportBundle, max_version: int) -> ExportBundle:
    """Validate an import bundle completely before anything is written."""
    if isinstance(data, ExportBundle):
        data = data.model_dump()
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise MalformedBundleError(f"Import data is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedBundleError("Import data must be a JSON object")

    version = data.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise MalformedBundleError("Import data has no valid version")
    if version > max_version:
        raise BundleVersionError(
            f"Import data version {version} is newer than supported {max_version}"
        )

    saves = data.get("saves", [])
    if not isinstance(saves, list):
        raise MalformedBundleError("Import data 'saves' must be a list")
    try:
        migrated = [migrate_save_payload(s) for s in saves]
        return ExportBundle.model_validate({**data, "saves": migrated})
    except (SaveMigrationError, ValidationError) as e:
        raise MalformedBundleError(f"Import data is invalid: {e}") from e


# ---------------------------------------------------------------------------
# KeyValueStorage
# ---------------------------------------------------------------------------

class KeyValueStorage:
    """StorageProvider implemented over four key-value primitives."""

    def __init__(self, prefix: str = DEFAULT_PREFIX, version: int = STORAGE_VERSION) -> None:
        self.prefix = prefix
        self.version = version

    # ------------------------------------------------------------------
    # Primitives (backend-specific)
    # ------------------------------------------------------------------

    async def _read(self, kind: str, item_id: str) -> str | None:
        raise NotImplementedError

    async def _write(self, kind: str, item_id: str, text: str) -> None:
        raise NotImplementedError

    async def _remove(self, kind: str, item_id: str) -> None:
        raise NotImplementedError

    async def _ids(self, kind: str) -> list[str]:
        raise NotImplementedError

    async def is_available(self) -> bool:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Saves
    # ------------------------------------------------------------------

    async def get_save(self, save_id: str) -> GameSave | None:
        text = await self._read("save", save_id)
        if text is None:
            return None
        return parse_save(text)

    async def get_all_saves(self) -> list[GameSave]:
        """All readable saves, most recently updated first. Corrupt saves are skipped."""
        saves: list[GameSave] = []
        for save_id in await self._ids("save"):
            text = await self._read("save", save_id)
            if text is None:
                continue
            try:
                saves.append(parse_save(text))
            except StorageError as e:
                logger.warning("skipping save %s: %s", save_id, e)
        saves.sort(key=_updated_ts, reverse=True)
        return saves

    async def save_save(self, save: GameSave) -> None:
        """Upsert by save id."""
        await self._write("save", save.id, save.model_dump_json())
        logger.debug("saved %s (%s)", save.id, self.prefix)

    async def delete_save(self, save_id: str) -> None:
        await self._remove("save", save_id)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_setting(self, key: str) -> Any | None:
        text = await self._read("setting", key)
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"Setting {key!r} is unreadable: {e}") from e

    async def set_setting(self, key: str, value: Any) -> None:
        try:
            text = json.dumps(value)
        except TypeError as e:
            raise StorageError(f"Setting {key!r} is not JSON-serialisable") from e
        await self._write("setting", key, text)

    async def _all_settings(self) -> dict[str, Any]:
        settings: dict[str, Any] = {}
        for key in await self._ids("setting"):
            text = await self._read("setting", key)
            if text is None:
                continue
            try:
                settings[key] = json.loads(text)
            except json.JSONDecodeError as e:
                raise StorageError(f"Setting {key!r} is unreadable: {e}") from e
        return settings

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    async def clear(self) -> None:
        """Remove every save and setting under this prefix (and nothing else)."""
        for kind in ("save", "setting"):
            for item_id in await self._ids(kind):
                await self._remove(kind, item_id)

    async def export_bundle(self) -> str:
        bundle = ExportBundle(
            version=self.version,
            exported_at=datetime.now(timezone.utc).isoformat(),
            saves=await self.get_all_saves(),
            settings=await self._all_settings(),
        )
        return bundle.model_dump_json(indent=2)

    async def import_bundle(self, data: str | dict | ExportBundle) -> None:
        """Upsert every save and setting of a bundle.

        The bundle is fully validated first: a version newer than ours or
        malformed data raises before anything is written.
        """
        bundle = parse_bundle(data, self.version)
        for save in bundle.saves:
            await self.save_save(save)
        for key, value in bundle.settings.items():
            await self.set_setting(key, value)
        logger.info(
            "imported %d saves, %d settings into %s",
            len(bundle.saves), len(bundle.settings), self.prefix,
        )
