"""Behaviour every storage backend shares: export, import and their failure modes.

Each test runs once against LocalStorage and once against RemoteStorage.
"""

import json

import pytest

from narrative_engine.models import GameSave
from narrative_engine.storage import (
    STORAGE_VERSION,
    BundleVersionError,
    LocalStorage,
    MalformedBundleError,
    RemoteStorage,
    parse_bundle,
)


def _save(save_id: str, updated_at: str = "2026-01-01T00:00:00+00:00") -> GameSave:
    return GameSave.model_validate({
        "id": save_id,
        "created_at": "2026-01-01T00:00:00+00:00",
        "updated_at": updated_at,
        "player": {"name": "Ada"},
        "current_phase": "planning",
        "current_scene_id": "scene_study",
        "flags": {"k": 1},
    })


@pytest.fixture(params=["local", "remote"])
def provider(request, local_storage: LocalStorage, remote_storage: RemoteStorage):
    return local_storage if request.param == "local" else remote_storage


# ── Export / import ─────────────────────────────────────────


async def test_export_format(provider):
    await provider.save_save(_save("a"))
    await provider.set_setting("lang", "en")
    bundle = json.loads(await provider.export_bundle())
    assert bundle["version"] == STORAGE_VERSION
    assert bundle["exported_at"]
    assert [s["id"] for s in bundle["saves"]] == ["a"]
    assert bundle["settings"] == {"lang": "en"}


async def test_export_then_import_into_empty(provider, tmp_path):
    await provider.save_save(_save("a", "2026-01-02T00:00:00+00:00"))
    await provider.save_save(_save("b", "2026-01-01T00:00:00+00:00"))
    await provider.set_setting("lang", "en")
    await provider.set_setting("last_world", None)
    exported = await provider.export_bundle()
    assert json.loads(exported)["settings"] == {"lang": "en", "last_world": None}

    target = LocalStorage(tmp_path / "other")
    await target.import_bundle(exported)
    assert await target.get_all_saves() == await provider.get_all_saves()
    assert await target.get_setting("lang") == "en"
    assert json.loads(await target.export_bundle())["settings"] == {"lang": "en", "last_world": None}


async def test_import_upserts(provider):
    await provider.save_save(_save("a"))
    await provider.set_setting("lang", "fr")
    bundle = {
        "version": STORAGE_VERSION,
        "exported_at": "2026-02-01T00:00:00+00:00",
        "saves": [_save("a", "2026-02-01T00:00:00+00:00").model_dump(), _save("c").model_dump()],
        "settings": {"lang": "en"},
    }
    await provider.import_bundle(bundle)
    saves = await provider.get_all_saves()
    assert sorted(s.id for s in saves) == ["a", "c"]
    assert (await provider.get_save("a")).updated_at == "2026-02-01T00:00:00+00:00"
    assert await provider.get_setting("lang") == "en"


async def test_import_legacy_saves(provider):
    bundle = {
        "version": 1,
        "exported_at": "2025-06-01T00:00:00Z",
        "saves": [{
            "id": "legacy",
            "createdAt": "2025-06-01T10:00:00Z",
            "updatedAt": "2025-06-01T10:00:00Z",
            "player": {"name": "Mei"},
            "currentPhase": "home",
            "currentSceneId": "scene_home",
        }],
    }
    await provider.import_bundle(bundle)
    assert (await provider.get_save("legacy")).current_phase == "home"


# ── Rejected bundles write nothing ──────────────────────────


async def test_newer_version_rejected(provider):
    bundle = {"version": STORAGE_VERSION + 1, "exported_at": "", "saves": [_save("a").model_dump()]}
    with pytest.raises(BundleVersionError):
        await provider.import_bundle(bundle)
    assert await provider.get_all_saves() == []


@pytest.mark.parametrize("data", [
    "{not json",
    "[1, 2]",
    json.dumps({"exported_at": "", "saves": []}),
    json.dumps({"version": 1, "exported_at": "", "saves": "all"}),
])
async def test_malformed_rejected(provider, data):
    with pytest.raises(MalformedBundleError):
        await provider.import_bundle(data)


async def test_one_invalid_save_rejects_whole_bundle(provider):
    bundle = {
        "version": STORAGE_VERSION,
        "exported_at": "",
        "saves": [_save("good").model_dump(), {"id": "bad", "current_phase": "space"}],
    }
    with pytest.raises(MalformedBundleError):
        await provider.import_bundle(bundle)
    assert await provider.get_save("good") is None


# ── parse_bundle ────────────────────────────────────────────


def test_parse_bundle_accepts_model():
    bundle = parse_bundle(json.dumps({"version": 1, "exported_at": "x"}), max_version=1)
    assert parse_bundle(bundle, max_version=1) == bundle
    assert bundle.saves == []
    assert bundle.settings == {}
