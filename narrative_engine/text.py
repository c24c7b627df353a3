"""Handlebars rendering of dialog text against the live save.

Node text may reference save-scoped variables:

    "Welcome aboard, {{player.name}}."
    "{{#if flags.has_ticket}}Ticket in hand.{{else}}No ticket yet.{{/if}}"

Context keys: player (name, avatar), flags, phase, scene_id.
"""

from collections.abc import Callable
from typing import Any

import pybars

from narrative_engine.models import GameSave

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class TextRenderError(Exception):
    """Raised when dialog text fails to compile or render."""


def text_context(save: GameSave | None) -> dict[str, Any]:
    if save is None:
        return {"player": {}, "flags": {}, "phase": "", "scene_id": ""}
    return {
        "player": {"name": save.player.name, "avatar": save.player.avatar or ""},
        "flags": dict(save.flags),
        "phase": save.current_phase,
        "scene_id": save.current_scene_id,
    }


def render_text(text: str, save: GameSave | None) -> str:
    """Render `text` with the save's variables.

    Plain text without `{{` is returned as-is. Templates are cached by
    source string.
    """
    if "{{" not in text:
        return text
    try:
        compiled = _cache.get(text)
        if compiled is None:
            compiled = _compiler.compile(text)
            _cache[text] = compiled
        return str(compiled(text_context(save)))
    except Exception as e:
        raise TextRenderError(f"Dialog text error: {e}") from e
