"""Effect application over a save snapshot.

Data effects (flags, inventory, memories, achievements) are pure functions
from one GameSave to the next. Control effects (change_scene, change_phase)
need the State Manager to re-resolve scene and dialog state, so they are not
applied here: they come back as notifications flagged `control=True` for the
engine to act on. Reserved effects (play_sound, shake_screen) are passed
through as notifications and never touch the save.

The State Manager's mutators call the per-kind functions below, so the two
paths cannot drift apart.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field

from narrative_engine.models import (
    CONTROL_EFFECTS,
    RESERVED_EFFECTS,
    Effect,
    FlagValue,
    GameSave,
    InventoryItem,
    Memory,
)

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    """One upward signal produced while applying an effect."""

    type: str  # event type for data effects, effect type otherwise
    payload: dict[str, Any] = Field(default_factory=dict)
    control: bool = False


class EffectResult(BaseModel):
    save: GameSave
    notifications: list[Notification] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Per-kind data rules
# ---------------------------------------------------------------------------

def set_flag(save: GameSave, key: str, value: FlagValue) -> GameSave:
    return save.model_copy(update={"flags": {**save.flags, key: value}})


def add_item(save: GameSave, item: InventoryItem) -> GameSave:
    """Stack onto an existing item with the same id, else append."""
    existing = save.get_item(item.id)
    if existing is None:
        inventory = [*save.inventory, item]
    else:
        inventory = [
            i.model_copy(update={"quantity": i.quantity + item.quantity}) if i.id == item.id else i
            for i in save.inventory
        ]
    return save.model_copy(update={"inventory": inventory})


def remove_item(save: GameSave, item_id: str, quantity: int = 1) -> GameSave:
    """Decrement an item; it disappears once its quantity reaches zero.

    Removing an item the save does not hold is a no-op.
    """
    inventory: list[InventoryItem] = []
    for item in save.inventory:
        if item.id != item_id:
            inventory.append(item)
            continue
        remaining = item.quantity - quantity
        if remaining > 0:
            inventory.append(item.model_copy(update={"quantity": remaining}))
    return save.model_copy(update={"inventory": inventory})


def add_memory(save: GameSave, memory: Memory) -> GameSave:
    if any(m.id == memory.id for m in save.memories):
        return save
    return save.model_copy(update={"memories": [*save.memories, memory]})


def unlock_achievement(save: GameSave, achievement_id: str) -> GameSave:
    if achievement_id in save.achievements:
        return save
    return save.model_copy(update={"achievements": [*save.achievements, achievement_id]})


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def apply_effect(save: GameSave, effect: Effect) -> tuple[GameSave, Notification]:
    """Apply a single effect and return the new save plus its notification."""
    p = effect.payload

    if effect.type == "set_flag":
        return set_flag(save, p.key, p.value), Notification(
            type="flag_changed", payload={"key": p.key, "value": p.value},
        )

    if effect.type == "add_item":
        return add_item(save, p.item), Notification(
            type="item_added", payload=p.item.model_dump(),
        )

    if effect.type == "remove_item":
        return remove_item(save, p.item_id, p.quantity), Notification(
            type="item_removed", payload={"item_id": p.item_id, "quantity": p.quantity},
        )

    if effect.type == "add_memory":
        return add_memory(save, p.memory), Notification(
            type="memory_added", payload=p.memory.model_dump(),
        )

    if effect.type == "unlock_achievement":
        return unlock_achievement(save, p.achievement_id), Notification(
            type="achievement_unlocked", payload={"achievement_id": p.achievement_id},
        )

    # control effects are followed by the engine, reserved ones by the renderer
    if effect.type in CONTROL_EFFECTS or effect.type in RESERVED_EFFECTS:
        return save, Notification(
            type=effect.type,
            payload=p.model_dump(),
            control=effect.type in CONTROL_EFFECTS,
        )
    raise ValueError(f"Unknown effect type {effect.type!r}")


def apply_effects(save: GameSave, effects: Iterable[Effect]) -> EffectResult:
    """Apply `effects` strictly in order.

    Returns the final save and one notification per effect, in the same
    order. The input save is never modified.
    """
    notifications: list[Notification] = []
    for effect in effects:
        save, note = apply_effect(save, effect)
        notifications.append(note)
    logger.debug("applied %d effects to save %s", len(notifications), save.id)
    return EffectResult(save=save, notifications=notifications)
