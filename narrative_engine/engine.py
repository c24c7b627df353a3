"""Game engine — the single entry point for every state-changing intent.

    engine = GameEngine(content=ContentIndex.load(path), storage=LocalStorage(dir))
    await engine.dispatch(StartNewGame(payload=CreateSaveParams(player_name="Ada")))
    await engine.dispatch(AdvanceDialog())

dispatch() turns an action into State Manager calls, drains the effects of
every node it lands on and emits typed events. Control effects
(change_scene / change_phase) land on new nodes whose effects are drained in
turn, until nothing is pending; a depth limit stops cyclic content.

Persistence: the save is written on game start, on SAVE_GAME and by the
autosave task (armed on start/load, stopped by destroy()). Storage failures
are emitted as `error` events and re-raised to the caller.

Dispatches are serialised by a per-engine lock; the autosave task only reads
the current save, so it races with SAVE_GAME on a last-write-wins basis.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable

from narrative_engine.actions import GameAction
from narrative_engine.config import EngineConfig
from narrative_engine.content import ContentProvider
from narrative_engine.events import EventBus, GameEventListener, GameEventType
from narrative_engine.models import (
    RESERVED_EFFECTS,
    CreateSaveParams,
    DialogChoice,
    DialogNode,
    Effect,
    GamePhase,
    GameSave,
    GameState,
    Scene,
)
from narrative_engine.state import StateListener, StateManager
from narrative_engine.storage import StorageError, StorageProvider
from narrative_engine.text import render_text

logger = logging.getLogger(__name__)

MAX_EFFECT_DEPTH = 32


class EffectLoopError(RuntimeError):
    """Raised when control effects keep landing on new nodes past MAX_EFFECT_DEPTH."""


class GameEngine:
    def __init__(
        self,
        content: ContentProvider,
        storage: StorageProvider,
        config: EngineConfig | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self._content = content
        self._storage = storage
        self._state = StateManager(content)
        self._events = EventBus(debug=self.config.debug)
        self._lock = asyncio.Lock()
        self._autosave_task: asyncio.Task | None = None
        self._session_clock: float | None = None
        self._depth = 0

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    def get_state(self) -> GameState:
        return self._state.get_state()

    def get_save(self) -> GameSave | None:
        return self._state.get_save()

    def get_current_dialog_node(self) -> DialogNode | None:
        return self.get_state().current_dialog_node

    def get_current_scene(self) -> Scene | None:
        return self.get_state().current_scene

    def get_available_choices(self) -> list[DialogChoice]:
        """Choices of the current node whose condition holds against the live flags."""
        node = self.get_current_dialog_node()
        if node is None:
            return []
        return [c for c in node.choices if self.check_condition(c.condition)]

    def get_dialog_text(self) -> str | None:
        node = self.get_current_dialog_node()
        if node is None:
            return None
        return render_text(node.text, self.get_save())

    def check_condition(self, condition: str | None) -> bool:
        return self._state.check_condition(condition)

    def subscribe_state(self, listener: StateListener) -> Callable[[], None]:
        return self._state.subscribe(listener)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event_type: GameEventType, listener: GameEventListener) -> Callable[[], None]:
        return self._events.on(event_type, listener)

    def off(self, event_type: GameEventType, listener: GameEventListener) -> None:
        self._events.off(event_type, listener)

    def _emit(self, event_type: GameEventType, payload: dict | None = None) -> None:
        if event_type == "error" and not self._events.listener_count("error"):
            logger.warning("unhandled engine error: %s", (payload or {}).get("message"))
        self._events.emit(event_type, payload)

    def _emit_dialog_started(self) -> None:
        script = self.get_state().current_dialog_script
        self._emit("dialog_started", {"script_id": script.id if script else None})

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, action: GameAction) -> None:
        async with self._lock:
            if self.config.debug:
                logger.debug("dispatch %s %r", action.type, getattr(action, "payload", None))
            await self._handle(action)

    async def _handle(self, action: GameAction) -> None:
        kind = action.type

        if kind == "START_NEW_GAME":
            await self._start_new_game(action.payload)

        elif kind == "LOAD_SAVE":
            await self._load_save(action.payload)

        elif kind == "CHANGE_PHASE":
            await self._change_phase(action.payload)

        elif kind == "CHANGE_SCENE":
            await self._change_scene(action.payload)

        elif kind == "START_DIALOG":
            await self._start_dialog(action.payload)

        elif kind == "ADVANCE_DIALOG":
            await self._advance_dialog()

        elif kind == "MAKE_CHOICE":
            await self._make_choice(action.payload)

        elif kind == "COMPLETE_TYPEWRITER":
            self._state.complete_typewriter()

        elif kind == "ADD_ITEM":
            self._state.add_item(action.payload)
            self._emit("item_added", action.payload.model_dump())

        elif kind == "REMOVE_ITEM":
            self._state.remove_item(action.payload.item_id, action.payload.quantity)
            self._emit("item_removed", action.payload.model_dump())

        elif kind == "ADD_MEMORY":
            self._state.add_memory(action.payload)
            self._emit("memory_added", action.payload.model_dump())

        elif kind == "SET_FLAG":
            self._state.set_flag(action.payload.key, action.payload.value)
            self._emit("flag_changed", action.payload.model_dump())

        elif kind == "UNLOCK_ACHIEVEMENT":
            self._state.unlock_achievement(action.payload)
            self._emit("achievement_unlocked", {"achievement_id": action.payload})

        elif kind == "SAVE_GAME":
            await self._save_game()

        elif kind == "TOGGLE_MENU":
            self._state.toggle_menu()

        elif kind == "TOGGLE_INVENTORY":
            self._state.toggle_inventory()

        elif kind == "TOGGLE_MEMORIES":
            self._state.toggle_memories()

        else:
            raise ValueError(f"Unknown action type {kind!r}")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _start_new_game(self, params: CreateSaveParams) -> None:
        save = self._state.start_new_game(params)
        self._session_clock = time.monotonic()
        await self._persist(save)
        self._emit("save_created", {"save": save})

        self._start_autosave()

        node = self.get_current_dialog_node()
        if node is not None:
            self._emit_dialog_started()
            await self._drain(node.effects)

    async def _load_save(self, save_id: str) -> None:
        self._state.set_loading(True)
        try:
            save = await self._storage.get_save(save_id)
        except StorageError as e:
            self._state.set_loading(False)
            self._emit("error", {"message": str(e)})
            raise
        if save is None:
            self._state.set_loading(False)
            logger.warning("load_save: save %r not found", save_id)
            self._emit("error", {"message": f"Save {save_id!r} does not exist"})
            return

        self._state.load_save(save)
        self._session_clock = time.monotonic()
        self._emit("save_loaded", {"save": self.get_save()})
        self._start_autosave()

    async def _change_phase(self, phase: GamePhase) -> None:
        save = self.get_save()
        previous = save.current_phase if save else None
        node = self._state.change_phase(phase)
        logger.debug("phase %s -> %s (position %d)", previous, phase, self.get_state().phase_position)
        self._emit("phase_changed", {"from": previous, "to": phase})
        if node is not None:
            self._emit_dialog_started()
            await self._drain(node.effects)

    async def _change_scene(self, scene_id: str) -> None:
        current = self.get_current_scene()
        previous = current.id if current else None
        if self._state.change_scene(scene_id) is None:
            return
        self._emit("scene_changed", {"from": previous, "to": scene_id})
        node = self.get_current_dialog_node()
        if node is not None:
            self._emit_dialog_started()
            await self._drain(node.effects)

    async def _start_dialog(self, script_id: str) -> None:
        node = self._state.start_dialog(script_id)
        if node is None:
            return
        self._emit_dialog_started()
        await self._drain(node.effects)

    async def _advance_dialog(self) -> None:
        previous = self.get_current_dialog_node()
        node = self._state.advance_dialog()

        if node is not None and previous is not None and node.id != previous.id:
            self._emit("dialog_advanced", {"from": previous.id, "to": node.id})
            await self._drain(node.effects)
        elif node is None and previous is not None:
            self._emit("dialog_ended", {"last_node_id": previous.id})

    async def _make_choice(self, choice_id: str) -> None:
        current = self.get_current_dialog_node()
        choice = current.get_choice(choice_id) if current else None
        if choice is None:
            logger.warning("make_choice: no choice %r on %s",
                           choice_id, current.id if current else None)
            return

        await self._drain(choice.effects)

        # A control effect on the choice may already have moved the dialog on
        node = None
        if self.get_current_dialog_node() is current:
            node = self._state.make_choice(choice_id)
            if node is None:
                logger.warning("make_choice: %r does not lead anywhere from %s", choice_id, current.id)
        self._emit("choice_made", {"choice_id": choice_id, "next_node_id": node.id if node else None})

        if node is not None:
            await self._drain(node.effects)

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    async def execute_effects(self, effects: Iterable[Effect]) -> None:
        """Run effects in order, following control effects to a fixed point."""
        await self._drain(effects)

    async def _drain(self, effects: Iterable[Effect]) -> None:
        self._depth += 1
        try:
            if self._depth > MAX_EFFECT_DEPTH:
                message = f"Effect chain deeper than {MAX_EFFECT_DEPTH}; cyclic content?"
                self._emit("error", {"message": message})
                raise EffectLoopError(message)
            for effect in effects:
                await self._execute_effect(effect)
        finally:
            self._depth -= 1

    async def _execute_effect(self, effect: Effect) -> None:
        p = effect.payload

        if effect.type == "set_flag":
            self._state.set_flag(p.key, p.value)
            self._emit("flag_changed", {"key": p.key, "value": p.value})

        elif effect.type == "add_item":
            self._state.add_item(p.item)
            self._emit("item_added", p.item.model_dump())

        elif effect.type == "remove_item":
            self._state.remove_item(p.item_id, p.quantity)
            self._emit("item_removed", {"item_id": p.item_id, "quantity": p.quantity})

        elif effect.type == "add_memory":
            self._state.add_memory(p.memory)
            self._emit("memory_added", p.memory.model_dump())

        elif effect.type == "unlock_achievement":
            self._state.unlock_achievement(p.achievement_id)
            self._emit("achievement_unlocked", {"achievement_id": p.achievement_id})

        elif effect.type == "change_scene":
            await self._change_scene(p.scene_id)

        elif effect.type == "change_phase":
            await self._change_phase(p.phase)

        elif effect.type in RESERVED_EFFECTS:
            # rendering concerns
            logger.debug("reserved effect %s %r", effect.type, p.model_dump())

        else:
            raise ValueError(f"Unknown effect type {effect.type!r}")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _tick_play_time(self) -> None:
        if self._session_clock is None:
            return
        now = time.monotonic()
        self._state.add_play_time(now - self._session_clock)
        self._session_clock = now

    async def _persist(self, save: GameSave) -> None:
        try:
            await self._storage.save_save(save)
        except StorageError as e:
            logger.error("saving %s failed: %s", save.id, e)
            self._emit("error", {"message": str(e)})
            raise

    async def _save_game(self) -> None:
        if self.get_save() is None:
            return
        self._tick_play_time()
        save = self.get_save()
        await self._persist(save)
        self._emit("save_updated", {"save": save})

    def _start_autosave(self) -> None:
        self._stop_autosave()
        interval = self.config.autosave_interval
        if interval > 0:
            self._autosave_task = asyncio.get_running_loop().create_task(self._autosave_loop(interval))

    def _stop_autosave(self) -> None:
        if self._autosave_task is not None:
            self._autosave_task.cancel()
            self._autosave_task = None

    async def _autosave_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self._save_game()
            except StorageError:
                # already logged and emitted; keep the timer alive
                continue

    @property
    def autosave_running(self) -> bool:
        return self._autosave_task is not None and not self._autosave_task.done()

    def destroy(self) -> None:
        """Stop autosave and drop all event and state listeners. In-flight dispatches finish normally."""
        self._stop_autosave()
        self._events.clear()
        self._state.clear_listeners()
