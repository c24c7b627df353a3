import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from backend.kv_store import KVStore
from backend.routes import router

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)


def create_app(store: KVStore | None = None) -> FastAPI:
    app = FastAPI(title="Narrative KV")
    app.state.kv = store if store is not None else KVStore()
    app.include_router(router, prefix="/api")
    logger.debug("kv app created")
    return app


# Default app instance for uvicorn
app = create_app()
