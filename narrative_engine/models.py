"""Core domain models.

Content records (scenes, dialog scripts, nodes, effects) are read-only once
loaded. GameSave is the durable unit of progress; GameState is the runtime
view the State Manager derives from a save plus the content index.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

SAVE_VERSION = 2

GamePhase = Literal[
    "planning",
    "booking",
    "departure",
    "traveling",
    "destination",
    "return",
    "home",
]

PHASE_ORDER: tuple[GamePhase, ...] = (
    "planning",
    "booking",
    "departure",
    "traveling",
    "destination",
    "return",
    "home",
)

PHASE_INFO: dict[str, dict[str, str]] = {
    "planning":    {"name": "Planning",    "description": "Browse destinations and pick where to go."},
    "booking":     {"name": "Booking",     "description": "Choose a flight and a seat."},
    "departure":   {"name": "Departure",   "description": "Pack, get to the airport, check in."},
    "traveling":   {"name": "Traveling",   "description": "The flight itself."},
    "destination": {"name": "Destination", "description": "Explore, meet the locals, collect memories."},
    "return":      {"name": "Return",      "description": "Say goodbye and head back."},
    "home":        {"name": "Home",        "description": "Look back on the journey."},
}

FlagValue = Union[bool, int, float, str]
FlagMap = dict[str, FlagValue]

ItemType = Literal["ticket", "souvenir", "photo", "document", "consumable", "key_item"]

Emotion = Literal["neutral", "happy", "sad", "surprised", "angry", "thinking", "excited"]

HotspotType = Literal["dialog", "scene", "item", "action"]


def phase_index(phase: str) -> int:
    """Position of a phase in PHASE_ORDER, -1 if unknown."""
    try:
        return PHASE_ORDER.index(phase)  # type: ignore[arg-type]
    except ValueError:
        return -1


# ---------------------------------------------------------------------------
# Collections carried by a save
# ---------------------------------------------------------------------------

class InventoryItem(BaseModel):
    id: str
    name: str = ""
    description: str = ""
    type: ItemType = "key_item"
    icon: str = ""
    quantity: int = Field(default=1, ge=0)
    usable: bool = False
    use_effects: list[Effect] = Field(default_factory=list)


class Memory(BaseModel):
    """A collected narrative snapshot (photo, moment)."""

    id: str
    title: str = ""
    description: str = ""
    image: str = ""
    acquired_at: str = ""
    scene_id: str = ""
    phase: GamePhase | None = None


# ---------------------------------------------------------------------------
# Effects — one model per kind, discriminated on `type`
# ---------------------------------------------------------------------------

class SetFlagPayload(BaseModel):
    key: str
    value: FlagValue


class AddItemPayload(BaseModel):
    item: InventoryItem


class RemoveItemPayload(BaseModel):
    item_id: str
    quantity: int = Field(default=1, ge=1)


class AddMemoryPayload(BaseModel):
    memory: Memory


class UnlockAchievementPayload(BaseModel):
    achievement_id: str


class ChangeScenePayload(BaseModel):
    scene_id: str


class ChangePhasePayload(BaseModel):
    phase: GamePhase


class PlaySoundPayload(BaseModel):
    sound: str = ""


class ShakeScreenPayload(BaseModel):
    intensity: float = 1.0
    duration: int = 300  # ms


class SetFlagEffect(BaseModel):
    type: Literal["set_flag"] = "set_flag"
    payload: SetFlagPayload


class AddItemEffect(BaseModel):
    type: Literal["add_item"] = "add_item"
    payload: AddItemPayload


class RemoveItemEffect(BaseModel):
    type: Literal["remove_item"] = "remove_item"
    payload: RemoveItemPayload


class AddMemoryEffect(BaseModel):
    type: Literal["add_memory"] = "add_memory"
    payload: AddMemoryPayload


class UnlockAchievementEffect(BaseModel):
    type: Literal["unlock_achievement"] = "unlock_achievement"
    payload: UnlockAchievementPayload


class ChangeSceneEffect(BaseModel):
    type: Literal["change_scene"] = "change_scene"
    payload: ChangeScenePayload


class ChangePhaseEffect(BaseModel):
    type: Literal["change_phase"] = "change_phase"
    payload: ChangePhasePayload


class PlaySoundEffect(BaseModel):
    type: Literal["play_sound"] = "play_sound"
    payload: PlaySoundPayload = Field(default_factory=PlaySoundPayload)


class ShakeScreenEffect(BaseModel):
    type: Literal["shake_screen"] = "shake_screen"
    payload: ShakeScreenPayload = Field(default_factory=ShakeScreenPayload)


Effect = Annotated[
    Union[
        SetFlagEffect,
        AddItemEffect,
        RemoveItemEffect,
        AddMemoryEffect,
        UnlockAchievementEffect,
        ChangeSceneEffect,
        ChangePhaseEffect,
        PlaySoundEffect,
        ShakeScreenEffect,
    ],
    Field(discriminator="type"),
]

CONTROL_EFFECTS = frozenset({"change_scene", "change_phase"})
RESERVED_EFFECTS = frozenset({"play_sound", "shake_screen"})


# ---------------------------------------------------------------------------
# Content — scenes and dialog
# ---------------------------------------------------------------------------

class DialogChoice(BaseModel):
    id: str
    text: str
    next_id: str
    condition: str | None = None  # e.g. "hasTicket && !usedTicket"
    effects: list[Effect] = Field(default_factory=list)


class DialogNode(BaseModel):
    """One beat of narration or speech."""

    id: str
    speaker: str = "narrator"  # "narrator" | "player" | <character_id>
    text: str = ""
    emotion: Emotion | None = None
    background: str | None = None
    character_sprite: str | None = None
    choices: list[DialogChoice] = Field(default_factory=list)
    next: str | None = None
    effects: list[Effect] = Field(default_factory=list)
    auto_advance: bool = False
    auto_advance_delay: int | None = None  # ms
    script_id: str | None = None  # owning script, filled in by the content index

    def get_choice(self, choice_id: str) -> DialogChoice | None:
        for choice in self.choices:
            if choice.id == choice_id:
                return choice
        return None


class DialogScript(BaseModel):
    id: str
    phase: GamePhase
    title: str = ""
    start_node_id: str
    nodes: list[DialogNode] = Field(default_factory=list)

    def get_node(self, node_id: str | None) -> DialogNode | None:
        if not node_id:
            return None
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


class Hotspot(BaseModel):
    id: str
    x: float
    y: float
    width: float
    height: float
    label: str = ""
    icon: str | None = None
    type: HotspotType
    target_id: str
    condition: str | None = None
    highlighted: bool = False


class Scene(BaseModel):
    id: str
    phase: GamePhase
    name: str = ""
    description: str = ""
    background: str = ""
    hotspots: list[Hotspot] = Field(default_factory=list)
    entry_dialog_id: str | None = None
    entry_script_id: str | None = None
    bgm: str | None = None
    ambient_sound: str | None = None


# ---------------------------------------------------------------------------
# Save and runtime state
# ---------------------------------------------------------------------------

class PlayerInfo(BaseModel):
    name: str
    avatar: str | None = None


class CreateSaveParams(BaseModel):
    player_name: str
    player_avatar: str | None = None


class GameSave(BaseModel):
    """The durable record of one player's progress."""

    id: str
    version: int = SAVE_VERSION
    created_at: str
    updated_at: str
    name: str | None = None
    thumbnail: str | None = None

    player: PlayerInfo

    current_phase: GamePhase
    current_scene_id: str
    current_dialog_id: str | None = None
    current_dialog_script_id: str | None = None
    read_dialog_ids: list[str] = Field(default_factory=list)

    inventory: list[InventoryItem] = Field(default_factory=list)
    memories: list[Memory] = Field(default_factory=list)
    achievements: list[str] = Field(default_factory=list)

    flags: FlagMap = Field(default_factory=dict)

    play_time: float = 0.0  # seconds

    def get_item(self, item_id: str) -> InventoryItem | None:
        for item in self.inventory:
            if item.id == item_id:
                return item
        return None


class GameState(BaseModel):
    """Runtime view: the live save, resolved content and UI flags."""

    is_loaded: bool = False
    is_loading: bool = False
    save: GameSave | None = None

    show_dialog: bool = False
    show_choices: bool = False
    show_menu: bool = False
    show_inventory: bool = False
    show_memories: bool = False

    current_dialog_node: DialogNode | None = None
    current_dialog_script: DialogScript | None = None
    typewriter_complete: bool = False

    current_scene: Scene | None = None
    current_background: str | None = None
    current_character_sprite: str | None = None

    @property
    def dialog_mode(self) -> str:
        """One of "none", "active" or "awaiting_choice"."""
        if self.current_dialog_node is None:
            return "none"
        return "awaiting_choice" if self.show_choices else "active"

    @property
    def phase_position(self) -> int:
        """Index of the save's phase in PHASE_ORDER, -1 without a save. Drives progress indicators."""
        return phase_index(self.save.current_phase) if self.save else -1


# InventoryItem.use_effects refers to Effect, declared after it
InventoryItem.model_rebuild()
