"""Closed set of intents accepted by GameEngine.dispatch().

Every action is a pydantic model with a literal `type`; `payload` is the
argument of the matching State Manager operation. Raw JSON-shaped actions
(e.g. from a UI bridge) go through parse_action().
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from narrative_engine.models import CreateSaveParams, FlagValue, GamePhase, InventoryItem, Memory


class RemoveItemArgs(BaseModel):
    item_id: str
    quantity: int = Field(default=1, ge=1)


class SetFlagArgs(BaseModel):
    key: str
    value: FlagValue


class StartNewGame(BaseModel):
    type: Literal["START_NEW_GAME"] = "START_NEW_GAME"
    payload: CreateSaveParams


class LoadSave(BaseModel):
    type: Literal["LOAD_SAVE"] = "LOAD_SAVE"
    payload: str  # save id


class ChangePhase(BaseModel):
    type: Literal["CHANGE_PHASE"] = "CHANGE_PHASE"
    payload: GamePhase


class ChangeScene(BaseModel):
    type: Literal["CHANGE_SCENE"] = "CHANGE_SCENE"
    payload: str  # scene id


class StartDialog(BaseModel):
    type: Literal["START_DIALOG"] = "START_DIALOG"
    payload: str  # dialog script id


class AdvanceDialog(BaseModel):
    type: Literal["ADVANCE_DIALOG"] = "ADVANCE_DIALOG"


class MakeChoice(BaseModel):
    type: Literal["MAKE_CHOICE"] = "MAKE_CHOICE"
    payload: str  # choice id


class CompleteTypewriter(BaseModel):
    type: Literal["COMPLETE_TYPEWRITER"] = "COMPLETE_TYPEWRITER"


class AddItem(BaseModel):
    type: Literal["ADD_ITEM"] = "ADD_ITEM"
    payload: InventoryItem


class RemoveItem(BaseModel):
    type: Literal["REMOVE_ITEM"] = "REMOVE_ITEM"
    payload: RemoveItemArgs


class AddMemory(BaseModel):
    type: Literal["ADD_MEMORY"] = "ADD_MEMORY"
    payload: Memory


class SetFlag(BaseModel):
    type: Literal["SET_FLAG"] = "SET_FLAG"
    payload: SetFlagArgs


class UnlockAchievement(BaseModel):
    type: Literal["UNLOCK_ACHIEVEMENT"] = "UNLOCK_ACHIEVEMENT"
    payload: str  # achievement id


class SaveGame(BaseModel):
    type: Literal["SAVE_GAME"] = "SAVE_GAME"


class ToggleMenu(BaseModel):
    type: Literal["TOGGLE_MENU"] = "TOGGLE_MENU"


class ToggleInventory(BaseModel):
    type: Literal["TOGGLE_INVENTORY"] = "TOGGLE_INVENTORY"


class ToggleMemories(BaseModel):
    type: Literal["TOGGLE_MEMORIES"] = "TOGGLE_MEMORIES"


GameAction = Annotated[
    Union[
        StartNewGame,
        LoadSave,
        ChangePhase,
        ChangeScene,
        StartDialog,
        AdvanceDialog,
        MakeChoice,
        CompleteTypewriter,
        AddItem,
        RemoveItem,
        AddMemory,
        SetFlag,
        UnlockAchievement,
        SaveGame,
        ToggleMenu,
        ToggleInventory,
        ToggleMemories,
    ],
    Field(discriminator="type"),
]

_adapter: TypeAdapter[GameAction] = TypeAdapter(GameAction)


def parse_action(data: dict) -> GameAction:
    """Validate a raw action dict; raises pydantic.ValidationError."""
    return _adapter.validate_python(data)
