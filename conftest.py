import json
from pathlib import Path

import httpx
import pytest

from backend.app import create_app
from backend.kv_store import KVStore
from narrative_engine.config import EngineConfig
from narrative_engine.content import ContentIndex
from narrative_engine.engine import GameEngine
from narrative_engine.models import CreateSaveParams
from narrative_engine.state import StateManager
from narrative_engine.storage import LocalStorage, RemoteStorage

PRESETS_DIR = Path(__file__).parent / "presets"
DEMO_PACK = PRESETS_DIR / "demo-story.json"


def demo_pack() -> dict:
    return json.loads(DEMO_PACK.read_text())


@pytest.fixture
def content() -> ContentIndex:
    """The demo story: planning (5 nodes) → booking (3 nodes), plus an airport scene."""
    return ContentIndex.from_dict(demo_pack())


@pytest.fixture
def params() -> CreateSaveParams:
    return CreateSaveParams(player_name="Ada", player_avatar="avatars/ada.png")


@pytest.fixture
def manager(content: ContentIndex) -> StateManager:
    return StateManager(content)


@pytest.fixture
def local_storage(tmp_path: Path) -> LocalStorage:
    return LocalStorage(tmp_path / "data")


@pytest.fixture
def kv_store() -> KVStore:
    return KVStore()


@pytest.fixture
def remote_storage(kv_store: KVStore, monkeypatch: pytest.MonkeyPatch) -> RemoteStorage:
    """RemoteStorage wired to an in-process KV app."""
    monkeypatch.delenv("KV_API_KEY", raising=False)
    transport = httpx.ASGITransport(app=create_app(kv_store))
    return RemoteStorage("http://kv.test", session_id="player-1", transport=transport)


@pytest.fixture
async def engine(content: ContentIndex, local_storage: LocalStorage):
    eng = GameEngine(content, local_storage, EngineConfig(autosave_interval=0))
    yield eng
    eng.destroy()
