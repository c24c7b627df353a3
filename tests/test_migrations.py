"""Tests for narrative_engine.migrations — legacy save upgrades."""

import pytest

from narrative_engine.migrations import SaveMigrationError, migrate_save_payload
from narrative_engine.models import SAVE_VERSION, GameSave


def _v1_save() -> dict:
    return {
        "id": "legacy",
        "version": 1,
        "createdAt": "2025-06-01T10:00:00.000Z",
        "updatedAt": "2025-06-01T11:00:00.000Z",
        "player": {"name": "Mei", "avatar": "a.png"},
        "currentPhase": "booking",
        "currentSceneId": "scene_travel_agency",
        "currentDialogId": "dialog_booking_done",
        "currentDialogScriptId": "script_booking",
        "readDialogIds": ["dialog_booking_start"],
        "inventory": [{
            "id": "camera",
            "name": "Camera",
            "type": "key_item",
            "quantity": 1,
            "usable": True,
            "useEffects": [{"type": "unlock_achievement", "payload": {"achievementId": "snap"}}],
        }],
        "memories": [{"id": "m1", "title": "Magazine", "acquiredAt": "2025-06-01", "sceneId": "scene_study"}],
        "achievements": ["first_booking"],
        "flags": {"hasTicket": True, "seatClass": "economy"},
        "selectedDestination": "star_moon_island",
        "playTime": 3600,
    }


def test_v1_upgrades_to_current():
    migrated = migrate_save_payload(_v1_save())
    assert migrated["version"] == SAVE_VERSION
    save = GameSave.model_validate(migrated)
    assert save.current_scene_id == "scene_travel_agency"
    assert save.current_dialog_script_id == "script_booking"
    assert save.read_dialog_ids == ["dialog_booking_start"]
    assert save.memories[0].scene_id == "scene_study"
    assert save.inventory[0].use_effects[0].payload.achievement_id == "snap"
    assert save.play_time == 3600


def test_flag_names_untouched():
    migrated = migrate_save_payload(_v1_save())
    assert migrated["flags"] == {"hasTicket": True, "seatClass": "economy"}


def test_legacy_fields_dropped():
    migrated = migrate_save_payload(_v1_save())
    assert "selected_destination" not in migrated
    assert "selectedDestination" not in migrated


def test_missing_version_treated_as_v1():
    payload = _v1_save()
    del payload["version"]
    assert migrate_save_payload(payload)["current_phase"] == "booking"


def test_input_not_modified():
    payload = _v1_save()
    migrate_save_payload(payload)
    assert "createdAt" in payload


def test_current_version_passes_through():
    payload = {"id": "x", "version": SAVE_VERSION, "current_phase": "home"}
    assert migrate_save_payload(payload) == payload


def test_newer_version_rejected():
    with pytest.raises(SaveMigrationError, match="newer"):
        migrate_save_payload({"id": "x", "version": SAVE_VERSION + 1})


@pytest.mark.parametrize("payload", [[1, 2], {"version": "two"}, {"version": True}])
def test_invalid_payload_rejected(payload):
    with pytest.raises(SaveMigrationError):
        migrate_save_payload(payload)


def test_non_object_flags_rejected():
    payload = _v1_save()
    payload["flags"] = ["hasTicket"]
    with pytest.raises(SaveMigrationError):
        migrate_save_payload(payload)
