"""Condition expressions over save flags.

The language is deliberately tiny: clauses joined by `&&`, all of which must
hold. Each clause is one of

    name            — the flag is truthy
    !name           — the flag is falsy (missing counts as falsy)
    name === value  — string forms are equal; quotes around value are dropped

There is no `||`, no parentheses and no precedence. Content needing OR logic
has to be split into separate choices.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_QUOTES = "'\""


def evaluate(expression: str | None, flags: Mapping[str, Any]) -> bool:
    """Return True if every clause in `expression` holds against `flags`.

    An empty or missing expression is no gate at all and always holds.
    Evaluation short-circuits on the first failing clause.
    """
    if not expression:
        return True

    for clause in (part.strip() for part in expression.split("&&")):
        if not _clause_holds(clause, flags):
            return False
    return True


def _clause_holds(clause: str, flags: Mapping[str, Any]) -> bool:
    if clause.startswith("!"):
        return not flags.get(clause[1:].strip())

    if "===" in clause:
        name, _, literal = clause.partition("===")
        expected = literal.strip().strip(_QUOTES)
        return coerce_str(flags.get(name.strip())) == expected

    return bool(flags.get(clause))


def coerce_str(value: Any) -> str:
    """String form of a flag value as content authors write it.

    Booleans are lower-case, integral floats drop their fraction and a
    missing flag reads as "undefined", so `count === 3` matches 3 and 3.0.
    """
    if value is None:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
