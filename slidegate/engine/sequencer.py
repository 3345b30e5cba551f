"""Transition sequencer — paces the map animation that follows a completion or entry.

State changes are applied up front; only the announcements are delayed.
A request made while a sequence is playing is refused, never queued.

  advance   completion_delay → token_placed, step_delay → node_unlocked
  fanout    completion_delay → token_placed, step_delay → hub_opened,
            hub_reveal → token_moved (cursor enters hub),
            token_travel → branch_revealed, then one per fanout_interval,
            then settle_delay
  return    completion_delay → token_placed, step_delay → token_moved
            (cursor enters hub), token_travel → gate_unlocked | gate_waiting | branches_remaining
  entry     token_travel (only if the cursor moved) → navigate to first
            position, settle_delay
"""
from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Any

from slidegate.config import PacingConfig
from slidegate.engine.signals import SequenceStep, SignalBus
from slidegate.types import ActionResult, CompletionResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from slidegate.engine.graph import ProgressionGraph
    from slidegate.engine.guard import NavigationGuard
    from slidegate.engine.scheduler import Handle, Scheduler

logger = logging.getLogger(__name__)

IDLE = "idle"
ANIMATING_ADVANCE = "animating_advance"
ANIMATING_FANOUT = "animating_fanout"
ANIMATING_RETURN = "animating_return"
ANIMATING_ENTRY = "animating_entry"

_FAILURES = {
    "unknown": 'Node "{id}" not found.',
    "hub": 'Hub "{id}" is completed through its branches.',
    "already_completed": 'Node "{id}" is already completed.',
}


class TransitionSequencer:
    def __init__(
        self,
        graph: ProgressionGraph,
        guard: NavigationGuard,
        scheduler: Scheduler,
        *,
        signals: SignalBus | None = None,
        pacing: PacingConfig | None = None,
    ):
        self.graph = graph
        self.guard = guard
        self.scheduler = scheduler
        self.signals = signals or graph.signals
        self.pacing = pacing or PacingConfig()
        self.phase = IDLE
        self.last_completion: CompletionResult | None = None

        self._steps: deque[tuple[float, Callable[[], None]]] = deque()
        self._handle: Handle | None = None

    @property
    def busy(self) -> bool:
        return self.phase != IDLE

    # ─── Requests ───

    def request_completion(self, node_id: str) -> ActionResult:
        if self.busy:
            return ActionResult(False, f"Busy ({self.phase}), try again when the map settles.", node_id)

        result = self.graph.complete_node(node_id)
        self.last_completion = result
        if not result.changed:
            return ActionResult(False, _FAILURES[result.outcome].format(id=node_id), node_id)

        self.guard.invalidate()
        p = self.pacing
        phase = ANIMATING_ADVANCE
        steps: list[tuple[float, Callable[[], None]]] = [
            (p.completion_delay, self._announce("token_placed", node_id)),
        ]

        if result.outcome == "fanout":
            phase = ANIMATING_FANOUT
            hub = self.graph.node(result.hub)
            steps.append((p.step_delay, self._announce("hub_opened", hub.id)))
            steps.append((p.hub_reveal, self._move_token(hub.id)))
            delay = p.token_travel
            for branch_id in hub.children:
                steps.append((delay, self._announce("branch_revealed", branch_id)))
                delay = p.fanout_interval
            steps.append((delay + p.settle_delay, self._announce("choose_path", hub.id)))
        elif result.outcome in ("remaining", "converged"):
            phase = ANIMATING_RETURN
            steps.append((p.step_delay, self._move_token(result.hub)))
            if result.outcome == "converged" and result.gate and result.gate not in result.unlocked:
                steps.append((p.token_travel, self._announce(
                    "gate_waiting", result.gate, self.graph.waiting_on(result.gate))))
            elif result.outcome == "converged":
                steps.append((p.token_travel, self._announce("gate_unlocked", result.gate)))
            else:
                steps.append((p.token_travel, self._announce(
                    "branches_remaining", result.hub, list(result.remaining))))
        elif result.outcome == "advanced":
            first = result.unlocked[0] if result.unlocked else None
            steps.append((p.step_delay, self._announce("node_unlocked", first, list(result.unlocked))))
        else:
            steps.append((0.0, self._announce("journey_complete", node_id)))

        self._play(phase, steps)
        return ActionResult(True, _describe(self.graph, result), node_id)

    def request_entry(self, node_id: str) -> ActionResult:
        if self.busy:
            return ActionResult(False, f"Busy ({self.phase}), try again when the map settles.", node_id)

        moved = self.graph.state.current != node_id
        result = self.graph.enter_node(node_id)
        if not result:
            return result

        self.guard.invalidate()
        p = self.pacing
        steps: list[tuple[float, Callable[[], None]]] = []
        if moved:
            steps.append((p.token_travel, self._announce("token_moved", node_id)))
        steps.append((0.0, self._navigate_into(node_id)))
        steps.append((p.settle_delay, self._announce("entered", node_id)))
        self._play(ANIMATING_ENTRY, steps)
        return result

    def cancel(self) -> None:
        """Drop whatever is still pending and go idle."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._steps.clear()
        self.phase = IDLE

    # ─── Playback ───

    def _play(self, phase: str, steps: list[tuple[float, Callable[[], None]]]) -> None:
        logger.debug("Sequence %s: %d steps", phase, len(steps))
        self.phase = phase
        self._steps = deque(steps)
        self._schedule_next()

    def _schedule_next(self) -> None:
        if not self._steps:
            self._handle = None
            self.phase = IDLE
            return
        delay, action = self._steps.popleft()
        self._handle = self.scheduler.call_later(delay, lambda: self._fire(action))

    def _fire(self, action: Callable[[], None]) -> None:
        try:
            action()
        finally:
            self._schedule_next()

    def _announce(self, action: str, node_id: str | None, detail: Any = None) -> Callable[[], None]:
        def emit() -> None:
            self.signals.emit(SequenceStep(self.phase, action, node_id, detail))
        return emit

    def _move_token(self, hub_id: str) -> Callable[[], None]:
        def move() -> None:
            self.graph.enter_node(hub_id)
            self.signals.emit(SequenceStep(self.phase, "token_moved", hub_id))
        return move

    def _navigate_into(self, node_id: str) -> Callable[[], None]:
        def navigate() -> None:
            first = self.graph.first_position(node_id)
            if first is not None:
                self.guard.navigate_to(first)
        return navigate


def _describe(graph: ProgressionGraph, result: CompletionResult) -> str:
    label = graph.node(result.node_id).label or result.node_id
    if result.outcome == "fanout":
        return f"Completed: {label}. Choose your path: {', '.join(graph.node(result.hub).children)}"
    if result.outcome == "remaining":
        count = len(result.remaining)
        return f"Completed: {label}. {count} challenge{'s' if count > 1 else ''} remaining."
    if result.outcome == "converged" and not result.gate:
        return f"Completed: {label}. All challenges complete."
    if result.outcome == "converged" and result.gate not in result.unlocked:
        waiting = ", ".join(graph.waiting_on(result.gate))
        return f"Completed: {label}. All challenges complete, {result.gate} still waits on: {waiting}"
    if result.outcome == "converged":
        return f"Completed: {label}. All challenges complete, {result.gate} unlocked!"
    if result.outcome == "advanced":
        return f"Completed: {label}. Unlocked: {', '.join(result.unlocked) or 'nothing new'}"
    return f"Completed: {label}. Lesson complete!"
