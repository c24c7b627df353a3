"""Tests for narrative_engine.effects — pure effect application."""

from types import SimpleNamespace

import pytest
from pydantic import TypeAdapter

from narrative_engine import effects
from narrative_engine.models import Effect, GameSave, InventoryItem, Memory

_effects = TypeAdapter(list[Effect])


def _save(**overrides) -> GameSave:
    data = {
        "id": "s1",
        "created_at": "2026-01-01T00:00:00+00:00",
        "updated_at": "2026-01-01T00:00:00+00:00",
        "player": {"name": "Ada"},
        "current_phase": "planning",
        "current_scene_id": "scene_study",
    }
    data.update(overrides)
    return GameSave.model_validate(data)


def _ticket(quantity: int = 1) -> InventoryItem:
    return InventoryItem(id="ticket", name="Plane ticket", type="ticket", quantity=quantity)


# ---------------------------------------------------------------------------
# Per-kind rules
# ---------------------------------------------------------------------------

class TestInventory:
    def test_add_new_item(self) -> None:
        save = effects.add_item(_save(), _ticket())
        assert [(i.id, i.quantity) for i in save.inventory] == [("ticket", 1)]

    def test_add_stacks_quantity(self) -> None:
        save = effects.add_item(_save(), _ticket(2))
        save = effects.add_item(save, _ticket(3))
        assert len(save.inventory) == 1
        assert save.get_item("ticket").quantity == 5

    def test_remove_decrements(self) -> None:
        save = effects.remove_item(effects.add_item(_save(), _ticket(3)), "ticket", 2)
        assert save.get_item("ticket").quantity == 1

    def test_remove_to_zero_drops_item(self) -> None:
        save = effects.remove_item(effects.add_item(_save(), _ticket(2)), "ticket", 2)
        assert save.get_item("ticket") is None

    def test_remove_more_than_held_drops_item(self) -> None:
        save = effects.remove_item(effects.add_item(_save(), _ticket(1)), "ticket", 5)
        assert save.inventory == []

    def test_remove_absent_item_is_noop(self) -> None:
        before = effects.add_item(_save(), _ticket())
        after = effects.remove_item(before, "passport")
        assert after.inventory == before.inventory

    def test_quantity_conserved(self) -> None:
        save = _save()
        for n in (2, 4, 1):
            save = effects.add_item(save, _ticket(n))
        save = effects.remove_item(save, "ticket", 3)
        assert save.get_item("ticket").quantity == 2 + 4 + 1 - 3

    def test_input_save_not_modified(self) -> None:
        before = _save()
        effects.add_item(before, _ticket())
        assert before.inventory == []


class TestIdempotentCollections:
    def test_memory_added_once(self) -> None:
        memory = Memory(id="m1", title="Sunset")
        save = effects.add_memory(effects.add_memory(_save(), memory), memory)
        assert [m.id for m in save.memories] == ["m1"]

    def test_achievement_unlocked_once(self) -> None:
        save = effects.unlock_achievement(_save(), "first_booking")
        save = effects.unlock_achievement(save, "first_booking")
        assert save.achievements == ["first_booking"]

    def test_set_flag_overwrites(self) -> None:
        save = effects.set_flag(effects.set_flag(_save(), "k", 1), "k", "two")
        assert save.flags == {"k": "two"}


# ---------------------------------------------------------------------------
# apply_effects
# ---------------------------------------------------------------------------

class TestApplyEffects:
    def test_data_effects_in_order(self) -> None:
        batch = _effects.validate_python([
            {"type": "set_flag", "payload": {"key": "step", "value": 1}},
            {"type": "set_flag", "payload": {"key": "step", "value": 2}},
            {"type": "add_item", "payload": {"item": {"id": "ticket"}}},
            {"type": "unlock_achievement", "payload": {"achievement_id": "a1"}},
        ])
        result = effects.apply_effects(_save(), batch)
        assert result.save.flags["step"] == 2
        assert result.save.get_item("ticket") is not None
        assert [n.type for n in result.notifications] == [
            "flag_changed", "flag_changed", "item_added", "achievement_unlocked",
        ]
        assert not any(n.control for n in result.notifications)

    def test_control_effects_are_notified_not_applied(self) -> None:
        batch = _effects.validate_python([
            {"type": "change_scene", "payload": {"scene_id": "scene_airport"}},
            {"type": "change_phase", "payload": {"phase": "booking"}},
        ])
        save = _save()
        result = effects.apply_effects(save, batch)
        assert result.save == save
        assert [(n.type, n.control) for n in result.notifications] == [
            ("change_scene", True), ("change_phase", True),
        ]
        assert result.notifications[0].payload == {"scene_id": "scene_airport"}

    def test_reserved_effects_pass_through(self) -> None:
        batch = _effects.validate_python([
            {"type": "play_sound", "payload": {"sound": "sfx/stamp.ogg"}},
            {"type": "shake_screen"},
        ])
        result = effects.apply_effects(_save(), batch)
        assert [(n.type, n.control) for n in result.notifications] == [
            ("play_sound", False), ("shake_screen", False),
        ]

    def test_unknown_kind_rejected(self) -> None:
        teleport = SimpleNamespace(type="teleport", payload=SimpleNamespace(model_dump=dict))
        with pytest.raises(ValueError, match="teleport"):
            effects.apply_effect(_save(), teleport)

    def test_empty_batch(self) -> None:
        save = _save()
        result = effects.apply_effects(save, [])
        assert result.save == save
        assert result.notifications == []
