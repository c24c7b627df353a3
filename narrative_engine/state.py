"""State Manager — owner of the live GameState and its GameSave.

Dialog mode is a small state machine orthogonal to phase and scene:

    none ──start_dialog / change_scene / change_phase──▶ active
    active ──advance on a node with choices──▶ awaiting_choice
    active / awaiting_choice ──advance past last node / end_dialog──▶ none

advance_dialog() is the turn-taking rule, in strict priority order:
  1. text still revealing       → finish the reveal, stay on the node
  2. node has choices           → show choices, stay (caller must make_choice)
  3. node has a resolvable next → mark read, move, reset the reveal
  4. otherwise                  → end the dialog, return None

Content misses (unknown scene, node or script) never raise: the operation
degrades to a no-op or a None result. Surfacing an error is the engine's job.

State is replaced, never mutated in place: every change builds a new
GameState / GameSave via model_copy and then notifies subscribers.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from narrative_engine import conditions, effects
from narrative_engine.content import ContentProvider
from narrative_engine.models import (
    PHASE_ORDER,
    CreateSaveParams,
    DialogNode,
    DialogScript,
    FlagValue,
    GamePhase,
    GameSave,
    GameState,
    InventoryItem,
    Memory,
    Scene,
)

logger = logging.getLogger(__name__)

StateListener = Callable[[GameState], None]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_new_save(params: CreateSaveParams, content: ContentProvider) -> GameSave:
    """A fresh save positioned at the first phase's first scene."""
    now = _now()
    start_phase = PHASE_ORDER[0]
    start_scene = content.get_phase_start_scene(start_phase)
    return GameSave(
        id=uuid.uuid4().hex,
        created_at=now,
        updated_at=now,
        player={"name": params.player_name, "avatar": params.player_avatar},
        current_phase=start_phase,
        current_scene_id=start_scene.id if start_scene else "",
    )


class StateManager:
    def __init__(self, content: ContentProvider) -> None:
        self._content = content
        self._state = GameState()
        self._listeners: list[StateListener] = []

    # ------------------------------------------------------------------
    # Access and observation
    # ------------------------------------------------------------------

    def get_state(self) -> GameState:
        return self._state

    def get_save(self) -> GameSave | None:
        return self._state.save

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call `listener` after every state change; returns an unsubscribe handle."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_listeners(self) -> None:
        self._listeners.clear()

    def _set_state(self, **updates: Any) -> None:
        self._state = self._state.model_copy(update=updates)
        self._notify()

    def _update_save(self, **updates: Any) -> None:
        save = self._state.save
        if save is None:
            return
        self._replace_save(save.model_copy(update=updates))

    def _replace_save(self, save: GameSave) -> None:
        save = save.model_copy(update={"updated_at": _now()})
        self._state = self._state.model_copy(update={"save": save})
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._state)

    # ------------------------------------------------------------------
    # Resolution helpers
    # ------------------------------------------------------------------

    def _script_for_entry(self, scene: Scene) -> DialogScript | None:
        if scene.entry_script_id:
            return self._content.get_dialog_script_by_id(scene.entry_script_id)
        if scene.entry_dialog_id:
            return self._content.get_script_for_node(scene.entry_dialog_id)
        return None

    def _resolve_entry(self, scene: Scene | None) -> tuple[DialogNode | None, DialogScript | None]:
        """Entry node + owning script of a scene, or (None, None)."""
        if scene is None or not scene.entry_dialog_id:
            return None, None
        script = self._script_for_entry(scene)
        node = script.get_node(scene.entry_dialog_id) if script else None
        if node is None:
            logger.warning(
                "scene %s: entry dialog %r does not resolve", scene.id, scene.entry_dialog_id
            )
            return None, None
        return node, script

    def _resolve_phase_start(self, phase: GamePhase) -> tuple[DialogNode | None, DialogScript | None]:
        script = self._content.get_phase_start_dialog(phase)
        if script is None:
            return None, None
        node = script.get_node(script.start_node_id)
        if node is None:
            logger.warning("script %s: start node %r missing", script.id, script.start_node_id)
            return None, None
        return node, script

    def _sticky(self, node: DialogNode) -> dict[str, Any]:
        return {
            "current_background": node.background or self._state.current_background,
            "current_character_sprite": node.character_sprite or self._state.current_character_sprite,
        }

    def _enter_position(
        self,
        scene: Scene | None,
        node: DialogNode | None,
        script: DialogScript | None,
        **save_updates: Any,
    ) -> None:
        """Commit a new scene/dialog position to the save and the state."""
        self._update_save(
            current_dialog_id=node.id if node else None,
            current_dialog_script_id=script.id if node and script else None,
            **save_updates,
        )
        background = scene.background if scene else None
        if node and node.background:
            background = node.background
        self._set_state(
            current_scene=scene,
            current_background=background or None,
            current_character_sprite=node.character_sprite if node else None,
            show_dialog=node is not None,
            show_choices=False,
            current_dialog_node=node,
            current_dialog_script=script if node else None,
            typewriter_complete=False,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_new_game(self, params: CreateSaveParams) -> GameSave:
        save = create_new_save(params, self._content)
        scene = self._content.get_scene_by_id(save.current_scene_id)

        node, script = self._resolve_entry(scene)
        if node is None:
            node, script = self._resolve_phase_start(save.current_phase)

        self._state = self._state.model_copy(update={
            "is_loaded": True,
            "is_loading": False,
            "save": save,
        })
        self._enter_position(scene, node, script)
        logger.debug(
            "new game %s at scene=%s node=%s", save.id, save.current_scene_id, node.id if node else None
        )
        return self._state.save

    def load_save(self, save: GameSave) -> None:
        """Rehydrate state from persisted ids.

        A dialog pointer that no longer resolves inside its script (content
        changed since the save was written) falls back to no dialog and the
        stale pointer is cleared on the live save.
        """
        scene = self._content.get_scene_by_id(save.current_scene_id)
        script = (
            self._content.get_dialog_script_by_id(save.current_dialog_script_id)
            if save.current_dialog_script_id else None
        )
        node = script.get_node(save.current_dialog_id) if script else None

        if node is None and (save.current_dialog_id or save.current_dialog_script_id):
            logger.warning(
                "save %s: dialog %r / script %r no longer resolve, dialog dropped",
                save.id, save.current_dialog_id, save.current_dialog_script_id,
            )
            save = save.model_copy(update={
                "current_dialog_id": None,
                "current_dialog_script_id": None,
            })
            script = None

        background = scene.background if scene else None
        if node and node.background:
            background = node.background
        self._set_state(
            is_loaded=True,
            is_loading=False,
            save=save,
            current_scene=scene,
            current_background=background or None,
            current_character_sprite=node.character_sprite if node else None,
            show_dialog=node is not None,
            show_choices=False,
            current_dialog_node=node,
            current_dialog_script=script,
            typewriter_complete=True,
        )

    def set_loading(self, loading: bool) -> None:
        self._set_state(is_loading=loading)

    # ------------------------------------------------------------------
    # Phase and scene
    # ------------------------------------------------------------------

    def change_phase(self, phase: GamePhase) -> DialogNode | None:
        """Jump to the phase's first scene and start script; returns the active node."""
        scene = self._content.get_phase_start_scene(phase)
        node, script = self._resolve_phase_start(phase)
        self._enter_position(
            scene, node, script,
            current_phase=phase,
            current_scene_id=scene.id if scene else "",
        )
        return node

    def change_scene(self, scene_id: str) -> Scene | None:
        """Move to a scene and its entry dialog. Unknown scene: no-op, None."""
        scene = self._content.get_scene_by_id(scene_id)
        if scene is None:
            logger.warning("change_scene: unknown scene %r", scene_id)
            return None
        node, script = self._resolve_entry(scene)
        self._enter_position(scene, node, script, current_scene_id=scene.id)
        return scene

    # ------------------------------------------------------------------
    # Dialog
    # ------------------------------------------------------------------

    def start_dialog(self, script_id: str) -> DialogNode | None:
        script = self._content.get_dialog_script_by_id(script_id)
        if script is None:
            logger.warning("start_dialog: unknown script %r", script_id)
            return None
        node = script.get_node(script.start_node_id)
        if node is None:
            logger.warning("start_dialog: script %s has no start node %r", script_id, script.start_node_id)
            return None

        self._update_save(current_dialog_id=node.id, current_dialog_script_id=script.id)
        self._set_state(
            show_dialog=True,
            show_choices=bool(node.choices),
            current_dialog_node=node,
            current_dialog_script=script,
            typewriter_complete=False,
            **self._sticky(node),
        )
        return node

    def _move_to(self, current: DialogNode, target: DialogNode) -> DialogNode:
        save = self._state.save
        if save is not None:
            read = save.read_dialog_ids
            if current.id not in read:
                read = [*read, current.id]
            self._update_save(read_dialog_ids=read, current_dialog_id=target.id)
        self._set_state(
            current_dialog_node=target,
            show_choices=bool(target.choices),
            typewriter_complete=False,
            **self._sticky(target),
        )
        return target

    def advance_dialog(self) -> DialogNode | None:
        node = self._state.current_dialog_node
        script = self._state.current_dialog_script
        if node is None:
            return None

        if not self._state.typewriter_complete:
            self._set_state(typewriter_complete=True)
            return node

        if node.choices:
            self._set_state(show_choices=True)
            return node

        if node.next and script is not None:
            target = script.get_node(node.next)
            if target is not None:
                return self._move_to(node, target)
            logger.warning("node %s: next %r not in script %s", node.id, node.next, script.id)

        self.end_dialog()
        return None

    def make_choice(self, choice_id: str) -> DialogNode | None:
        """Follow a choice of the current node. Unknown choice or target: None, no change."""
        node = self._state.current_dialog_node
        script = self._state.current_dialog_script
        if node is None or script is None:
            return None
        choice = node.get_choice(choice_id)
        if choice is None:
            return None
        target = script.get_node(choice.next_id)
        if target is None:
            return None
        return self._move_to(node, target)

    def end_dialog(self) -> None:
        self._update_save(current_dialog_id=None, current_dialog_script_id=None)
        self._set_state(
            show_dialog=False,
            show_choices=False,
            current_dialog_node=None,
            current_dialog_script=None,
            typewriter_complete=False,
        )

    def complete_typewriter(self) -> None:
        self._set_state(typewriter_complete=True)

    # ------------------------------------------------------------------
    # Inventory, memories, achievements, flags
    # ------------------------------------------------------------------

    def _apply(self, fn: Callable[..., GameSave], *args: Any) -> None:
        save = self._state.save
        if save is None:
            return
        self._replace_save(fn(save, *args))

    def add_item(self, item: InventoryItem) -> None:
        self._apply(effects.add_item, item)

    def remove_item(self, item_id: str, quantity: int = 1) -> None:
        self._apply(effects.remove_item, item_id, quantity)

    def add_memory(self, memory: Memory) -> None:
        self._apply(effects.add_memory, memory)

    def unlock_achievement(self, achievement_id: str) -> None:
        self._apply(effects.unlock_achievement, achievement_id)

    def set_flag(self, key: str, value: FlagValue) -> None:
        self._apply(effects.set_flag, key, value)

    def get_flag(self, key: str) -> FlagValue | None:
        save = self._state.save
        return save.flags.get(key) if save else None

    def check_condition(self, condition: str | None) -> bool:
        save = self._state.save
        if save is None:
            return True
        return conditions.evaluate(condition, save.flags)

    def add_play_time(self, seconds: float) -> None:
        save = self._state.save
        if save is None or seconds <= 0:
            return
        self._update_save(play_time=save.play_time + seconds)

    # ------------------------------------------------------------------
    # UI toggles
    # ------------------------------------------------------------------

    def toggle_menu(self) -> None:
        self._set_state(show_menu=not self._state.show_menu)

    def toggle_inventory(self) -> None:
        self._set_state(show_inventory=not self._state.show_inventory)

    def toggle_memories(self) -> None:
        self._set_state(show_memories=not self._state.show_memories)
