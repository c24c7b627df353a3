"""Read-only content index over authored scenes and dialog scripts.

The engine only ever talks to content through the ContentProvider protocol.
ContentIndex is the in-memory implementation: it is built once from a
ContentPack (usually loaded from a JSON file) and answers every lookup in
constant time. Lookups are total: a miss returns None, never raises.

Every node is tagged with the id of the script that owns it, so scene entry
dialogs resolve their script through an explicit back-reference instead of
guessing from id naming conventions.

Pack file layout:

    {
      "scenes":  [Scene, ...],
      "scripts": [DialogScript, ...]
    }

Phase start scene / start script = the first scene / script of that phase in
pack order.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field, ValidationError

from narrative_engine.models import DialogNode, DialogScript, GamePhase, Scene

logger = logging.getLogger(__name__)


class ContentError(ValueError):
    """Raised when a content pack cannot be loaded."""


# ---------------------------------------------------------------------------
# Protocol — every content lookup layer must match this
# ---------------------------------------------------------------------------

class ContentProvider(Protocol):
    def get_scene_by_id(self, scene_id: str) -> Scene | None: ...

    def get_phase_start_scene(self, phase: GamePhase) -> Scene | None: ...

    def get_dialog_script_by_id(self, script_id: str) -> DialogScript | None: ...

    def get_dialog_node_by_id(self, node_id: str) -> DialogNode | None: ...

    def get_phase_start_dialog(self, phase: GamePhase) -> DialogScript | None: ...

    def get_script_for_node(self, node_id: str) -> DialogScript | None: ...


class ContentPack(BaseModel):
    scenes: list[Scene] = Field(default_factory=list)
    scripts: list[DialogScript] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# ContentIndex
# ---------------------------------------------------------------------------

class ContentIndex:
    """Precomputed id → record maps over one ContentPack."""

    def __init__(self, pack: ContentPack) -> None:
        self._scenes: dict[str, Scene] = {}
        self._scripts: dict[str, DialogScript] = {}
        self._nodes: dict[str, DialogNode] = {}
        self._phase_scene: dict[str, Scene] = {}
        self._phase_script: dict[str, DialogScript] = {}

        for scene in pack.scenes:
            if scene.id in self._scenes:
                raise ContentError(f"Duplicate scene id {scene.id!r}")
            self._scenes[scene.id] = scene
            self._phase_scene.setdefault(scene.phase, scene)

        for script in pack.scripts:
            if script.id in self._scripts:
                raise ContentError(f"Duplicate dialog script id {script.id!r}")
            nodes = []
            for node in script.nodes:
                if node.id in self._nodes:
                    raise ContentError(
                        f"Duplicate dialog node id {node.id!r} (script {script.id!r})"
                    )
                if node.next and node.choices:
                    logger.warning(
                        "Node %r has both next and choices; choices take priority", node.id
                    )
                tagged = node.model_copy(update={"script_id": script.id})
                self._nodes[tagged.id] = tagged
                nodes.append(tagged)
            script = script.model_copy(update={"nodes": nodes})
            self._scripts[script.id] = script
            self._phase_script.setdefault(script.phase, script)

        logger.debug(
            "content index built: %d scenes, %d scripts, %d nodes",
            len(self._scenes), len(self._scripts), len(self._nodes),
        )

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict) -> ContentIndex:
        try:
            pack = ContentPack.model_validate(data)
        except ValidationError as e:
            raise ContentError(f"Invalid content pack: {e}") from e
        return cls(pack)

    @classmethod
    def load(cls, path: Path) -> ContentIndex:
        """Load a content pack from a JSON file."""
        try:
            data = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ContentError(f"Cannot read content pack {path}: {e}") from e
        return cls.from_dict(data)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_scene_by_id(self, scene_id: str) -> Scene | None:
        return self._scenes.get(scene_id)

    def get_phase_start_scene(self, phase: GamePhase) -> Scene | None:
        return self._phase_scene.get(phase)

    def get_dialog_script_by_id(self, script_id: str) -> DialogScript | None:
        return self._scripts.get(script_id)

    def get_dialog_node_by_id(self, node_id: str) -> DialogNode | None:
        return self._nodes.get(node_id)

    def get_phase_start_dialog(self, phase: GamePhase) -> DialogScript | None:
        return self._phase_script.get(phase)

    def get_script_for_node(self, node_id: str) -> DialogScript | None:
        node = self._nodes.get(node_id)
        if node is None or node.script_id is None:
            return None
        return self._scripts.get(node.script_id)

    def scenes(self) -> list[Scene]:
        return list(self._scenes.values())

    def scripts(self) -> list[DialogScript]:
        return list(self._scripts.values())

    # ------------------------------------------------------------------
    # Integrity report
    # ------------------------------------------------------------------

    def find_problems(self) -> list[str]:
        """List dangling references and ambiguous nodes. Never raises."""
        problems: list[str] = []

        for scene in self._scenes.values():
            if scene.entry_dialog_id and scene.entry_dialog_id not in self._nodes:
                problems.append(
                    f"scene {scene.id}: entry dialog {scene.entry_dialog_id!r} does not exist"
                )
            if scene.entry_script_id and scene.entry_script_id not in self._scripts:
                problems.append(
                    f"scene {scene.id}: entry script {scene.entry_script_id!r} does not exist"
                )

        for script in self._scripts.values():
            if script.get_node(script.start_node_id) is None:
                problems.append(
                    f"script {script.id}: start node {script.start_node_id!r} is not in the script"
                )
            for node in script.nodes:
                if node.next and node.choices:
                    problems.append(f"node {node.id}: has both next and choices")
                if node.next and script.get_node(node.next) is None:
                    problems.append(f"node {node.id}: next {node.next!r} is not in script {script.id}")
                for choice in node.choices:
                    if script.get_node(choice.next_id) is None:
                        problems.append(
                            f"node {node.id}: choice {choice.id} targets "
                            f"{choice.next_id!r}, not in script {script.id}"
                        )
                effect_lists = [node.effects] + [c.effects for c in node.choices]
                for effects in effect_lists:
                    for effect in effects:
                        if effect.type == "change_scene" and effect.payload.scene_id not in self._scenes:
                            problems.append(
                                f"node {node.id}: change_scene to unknown scene "
                                f"{effect.payload.scene_id!r}"
                            )

        return problems
