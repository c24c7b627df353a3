"""FastAPI API endpoints under /api.

Endpoint groups: health, key-value store (list, get, put, delete). The KV
API is what narrative_engine.storage.RemoteStorage talks to.
"""

from fastapi import APIRouter

from .health import router as health_router
from .kv import router as kv_router

router = APIRouter()
router.include_router(health_router)
router.include_router(kv_router)
