"""Key-value endpoints used by RemoteStorage.

Keys may contain ':' and are matched as full paths, so
`/api/kv/narrative:player-1:save:abc` addresses one key.
"""

import os

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from backend.kv_store import KVStore

from .models import KVEntry, KVListing, PutValue

MAX_PAGE = 1000


def _store(request: Request) -> KVStore:
    return request.app.state.kv


async def check_api_key(authorization: str = Header(default="")) -> None:
    """Require `Bearer $KV_API_KEY` when KV_API_KEY is set."""
    expected = os.getenv("KV_API_KEY", "")
    if expected and authorization != f"Bearer {expected}":
        raise HTTPException(401, "Invalid or missing API key")


router = APIRouter(dependencies=[Depends(check_api_key)])


@router.get("/kv", response_model=KVListing)
async def list_keys(
    request: Request,
    prefix: str = "",
    cursor: str | None = None,
    limit: int = Query(default=100, ge=1, le=MAX_PAGE),
):
    """List keys starting with `prefix`, one page at a time."""
    keys, next_cursor = _store(request).list(prefix, cursor, limit)
    return KVListing(keys=keys, cursor=next_cursor, list_complete=next_cursor is None)


@router.get("/kv/{key:path}", response_model=KVEntry)
async def get_value(request: Request, key: str):
    """Get a single value."""
    value = _store(request).get(key)
    if value is None:
        raise HTTPException(404, "Key not found")
    return KVEntry(key=key, value=value)


@router.put("/kv/{key:path}")
async def put_value(request: Request, key: str, body: PutValue):
    """Create or overwrite a value."""
    _store(request).put(key, body.value)
    return {"ok": True}


@router.delete("/kv/{key:path}")
async def delete_value(request: Request, key: str):
    """Delete a value."""
    if not _store(request).delete(key):
        raise HTTPException(404, "Key not found")
    return {"ok": True}
