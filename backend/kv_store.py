"""In-memory key-value store behind the KV API.

Keys are kept sorted so prefix listings are stable and can be paged with an
opaque cursor (the last key of the previous page). Data lives for the
process lifetime only.
"""

import bisect


class KVStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._keys: list[str] = []

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        if key not in self._data:
            bisect.insort(self._keys, key)
        self._data[key] = value

    def delete(self, key: str) -> bool:
        if key not in self._data:
            return False
        del self._data[key]
        self._keys.pop(bisect.bisect_left(self._keys, key))
        return True

    def list(self, prefix: str = "", cursor: str | None = None, limit: int = 100) -> tuple[list[str], str | None]:
        """Return (keys, next_cursor); next_cursor is None on the last page."""
        start = bisect.bisect_right(self._keys, cursor) if cursor else bisect.bisect_left(self._keys, prefix)
        page: list[str] = []
        for key in self._keys[start:]:
            if not key.startswith(prefix):
                break
            if len(page) == limit:
                return page, page[-1]
            page.append(key)
        return page, None

    def __len__(self) -> int:
        return len(self._data)
