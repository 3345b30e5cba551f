"""JSON codec for the progression blob.

The blob is the only thing that survives a session::

    {"accessed": [...], "completed": [...], "current": "N1",
     "intro_played": false, "unlocked": [...]}

Decoding never raises. Whatever cannot be read falls back to the initial
value for that field, so a damaged save degrades to "root only" instead of
breaking the lesson.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from slidegate.errors import CorruptPersistedState
from slidegate.types import ProgressionState

logger = logging.getLogger(__name__)

_SET_FIELDS = ("completed", "unlocked", "accessed")


def serialize_state(state: ProgressionState) -> str:
    return json.dumps(
        {
            "accessed": sorted(state.accessed),
            "completed": sorted(state.completed),
            "current": state.current,
            "intro_played": state.intro_played,
            "unlocked": sorted(state.unlocked),
        },
        ensure_ascii=False,
        sort_keys=True,
    )


def decode_blob(blob: str | bytes) -> dict[str, Any]:
    """Strict decode: the blob must be a JSON object."""
    try:
        data = json.loads(blob)
    except (TypeError, ValueError) as e:
        raise CorruptPersistedState(f"unreadable progression blob: {e}") from e
    if not isinstance(data, dict):
        raise CorruptPersistedState(f"progression blob is a {type(data).__name__}, not an object")
    return data


def deserialize_state(blob: str | bytes | None, root: str) -> ProgressionState:
    state = ProgressionState.initial(root)
    if blob is None:
        return state
    try:
        data = decode_blob(blob)
    except CorruptPersistedState as e:
        logger.warning("Discarding saved progress: %s", e)
        return state

    for name in _SET_FIELDS:
        if name not in data:
            continue
        value = data[name]
        if isinstance(value, list) and all(isinstance(v, str) for v in value):
            setattr(state, name, set(value))
        else:
            logger.warning("Saved progress field %r is malformed; using default", name)

    current = data.get("current")
    if isinstance(current, str) and current:
        state.current = current
    elif "current" in data:
        logger.warning("Saved progress field 'current' is malformed; using default")

    intro = data.get("intro_played")
    if isinstance(intro, bool):
        state.intro_played = intro
    return state
