"""Notifications produced by the engine for UI and feedback collaborators.

Nothing in the engine depends on a handler running: a handler that raises
is logged and skipped.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeUnlocked:
    node_id: str


@dataclass(frozen=True)
class NavigationBlocked:
    direction: str
    reason: str  # boundary_not_completed | target_locked | intro_not_played
    position: int
    attempted: int


@dataclass(frozen=True)
class PositionSettled:
    position: int
    node_id: str | None


@dataclass(frozen=True)
class SequenceStep:
    phase: str
    action: str  # token_placed | hub_opened | token_moved | branch_revealed | gate_unlocked | ...
    node_id: str | None = None
    detail: Any = None


class SignalBus:
    def __init__(self):
        self._handlers: dict[type, list[Callable[[Any], None]]] = {}

    def subscribe(self, signal_type: type, handler: Callable[[Any], None]) -> Callable[[], None]:
        """Register ``handler`` for ``signal_type``; returns an unsubscribe callable."""
        self._handlers.setdefault(signal_type, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(signal_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def emit(self, signal: Any) -> None:
        for handler in list(self._handlers.get(type(signal), [])):
            try:
                handler(signal)
            except Exception:
                logger.exception("Signal handler failed for %s", type(signal).__name__)
