"""JSON file storage for a single process.

One JSON file per key under a configurable base directory; the prefix is a
directory, so two prefixes never see each other's data:

    {base}/
      {prefix}/
        saves/
          {save_id}.json
        settings/
          {key}.json

Ids are percent-encoded into file names.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from urllib.parse import quote, unquote

from .base import DEFAULT_PREFIX, STORAGE_VERSION, KeyValueStorage, StorageError

logger = logging.getLogger(__name__)

_DIRS = {"save": "saves", "setting": "settings"}


class LocalStorage(KeyValueStorage):
    def __init__(
        self,
        base_path: Path,
        prefix: str = DEFAULT_PREFIX,
        version: int = STORAGE_VERSION,
    ) -> None:
        super().__init__(prefix=prefix, version=version)
        self._root = Path(base_path) / prefix

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _dir(self, kind: str) -> Path:
        return self._root / _DIRS[kind]

    def _path(self, kind: str, item_id: str) -> Path:
        return self._dir(kind) / f"{quote(item_id, safe='')}.json"

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    async def _read(self, kind: str, item_id: str) -> str | None:
        path = self._path(kind, item_id)
        if not path.is_file():
            return None
        try:
            return path.read_text()
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    async def _write(self, kind: str, item_id: str, text: str) -> None:
        path = self._path(kind, item_id)
        tmp = path.with_suffix(".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(text)
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e

    async def _remove(self, kind: str, item_id: str) -> None:
        path = self._path(kind, item_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot delete {path}: {e}") from e

    async def _ids(self, kind: str) -> list[str]:
        directory = self._dir(kind)
        if not directory.is_dir():
            return []
        return sorted(unquote(p.stem) for p in directory.glob("*.json"))

    async def is_available(self) -> bool:
        marker = self._root / ".write-check"
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            marker.write_text("ok")
            marker.unlink()
        except OSError as e:
            logger.warning("local storage at %s unavailable: %s", self._root, e)
            return False
        return True
