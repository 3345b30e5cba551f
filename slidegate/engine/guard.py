"""Navigation guard — keep the slide strip inside what the progression graph allows.

Every channel that can move the strip ends up in ``decide``:

  touch drag   on_touch_start / on_touch_move / on_touch_end
  wheel        on_wheel
  keyboard     on_key (advance keys only; everything else passes through)
  scroll       on_scroll, plus per-frame polling after start()
  programmatic navigate_to / advance / retreat / restore

Forward motion stops at an uncompleted exit and never lands on a locked
node or on a sibling branch the learner hasn't entered. Backward motion is
always allowed but skips those same positions. Corrections are immediate
jumps, never animated, so a held drag can't rubber-band.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from slidegate.config import GuardConfig
from slidegate.engine.signals import NavigationBlocked, NodeUnlocked, PositionSettled, SignalBus
from slidegate.types import BranchNode, GuardDecision

if TYPE_CHECKING:
    from slidegate.engine.content import SlideRegistry, Viewport
    from slidegate.engine.graph import ProgressionGraph
    from slidegate.engine.scheduler import Handle, Scheduler
    from slidegate.types import Node

logger = logging.getLogger(__name__)

BOUNDARY_NOT_COMPLETED = "boundary_not_completed"
TARGET_LOCKED = "target_locked"
INTRO_NOT_PLAYED = "intro_not_played"


class NavigationGuard:
    def __init__(
        self,
        graph: ProgressionGraph,
        registry: SlideRegistry,
        viewport: Viewport,
        scheduler: Scheduler,
        *,
        signals: SignalBus | None = None,
        config: GuardConfig | None = None,
    ):
        self.graph = graph
        self.registry = registry
        self.viewport = viewport
        self.scheduler = scheduler
        self.signals = signals or graph.signals
        self.config = config or GuardConfig()

        self.last_valid_position = registry.index_at(viewport.offset)
        self.animating = False

        self._cached_max: int | None = None
        self._cached_revision = -1
        self._touch_start: tuple[float, float] | None = None
        self._touch_blocking = False
        self._last_blocked_at = float("-inf")
        self._debounce: Handle | None = None
        self._frame: Handle | None = None
        self._poll: Handle | None = None
        self._polling = False
        self._last_seen = self.last_valid_position

        self.signals.subscribe(NodeUnlocked, lambda _signal: self.invalidate())

    # ─── Cache ───

    def invalidate(self) -> None:
        self._cached_max = None

    @property
    def max_reachable_position(self) -> int:
        if self._cached_max is None or self._cached_revision != self.graph.revision:
            self._cached_max = self.graph.max_reachable_position()
            self._cached_revision = self.graph.revision
        return self._cached_max

    # ─── Legality ───

    def decide(self, origin: int, candidate: int) -> GuardDecision:
        candidate = self.registry.clamp(candidate)
        if candidate == origin:
            return GuardDecision(origin, origin, "none")
        if candidate < origin:
            return GuardDecision(origin, self._nearest_backward(candidate, origin), "backward")
        return self._decide_forward(origin, candidate)

    def can_advance(self) -> bool:
        decision = self.decide(self.last_valid_position, self.last_valid_position + 1)
        return not decision.blocked and decision.target > self.last_valid_position

    def _decide_forward(self, origin: int, candidate: int) -> GuardDecision:
        if self.graph.in_preamble(origin):
            return GuardDecision(origin, origin, "forward", INTRO_NOT_PLAYED)

        here = self.graph.node_for_position(origin)
        there = self.graph.node_for_position(candidate)
        entered_elsewhere = (
            there is not None
            and there.id == self.graph.state.current
            and (here is None or there.id != here.id)
        )
        if (
            here is not None
            and here.exit_position == origin
            and not self.graph.is_completed(here.id)
            and not entered_elsewhere
        ):
            return GuardDecision(origin, origin, "forward", BOUNDARY_NOT_COMPLETED)

        # Momentum may not carry past another uncompleted exit
        bound, clamp_reason = candidate, None
        for position in range(origin + 1, candidate):
            node = self.graph.node_for_position(position)
            if (
                node is not None
                and node.exit_position == position
                and not self.graph.is_completed(node.id)
                and self._accessible(node)
                and self._active(node)
            ):
                bound, clamp_reason = position, BOUNDARY_NOT_COMPLETED
                break

        for position in range(bound, origin, -1):
            if self._legal_forward(position):
                reason = None if position == candidate else (clamp_reason or TARGET_LOCKED)
                return GuardDecision(origin, position, "forward", reason)
        return GuardDecision(origin, origin, "forward", clamp_reason or TARGET_LOCKED)

    def _nearest_backward(self, candidate: int, origin: int) -> int:
        for position in range(candidate, -1, -1):
            if self._legal_backward(position):
                return position
        for position in range(candidate + 1, origin):
            if self._legal_backward(position):
                return position
        return origin

    def _accessible(self, node: Node) -> bool:
        if self.graph.is_unlocked(node.id):
            return True
        return isinstance(node, BranchNode) and self.graph.is_accessed(node.id)

    def _active(self, node: Node) -> bool:
        """Sibling branches stay dark until entered (or finished, for review)."""
        if isinstance(node, BranchNode):
            return node.id == self.graph.state.current or self.graph.is_completed(node.id)
        return True

    def _legal_forward(self, position: int) -> bool:
        node = self.graph.node_for_position(position)
        if node is None:
            return position <= self.max_reachable_position
        return self._accessible(node) and self._active(node)

    def _legal_backward(self, position: int) -> bool:
        node = self.graph.node_for_position(position)
        if node is None:
            return True
        return self._accessible(node) and self._active(node)

    # ─── Touch ───

    def on_touch_start(self, x: float, y: float) -> None:
        self._touch_start = (x, y)
        self._touch_blocking = False

    def on_touch_move(self, x: float, y: float) -> bool:
        """Returns True when the move must be suppressed."""
        if self._touch_blocking:
            return True
        if self._touch_start is None:
            return False
        delta_x = self._touch_start[0] - x
        if delta_x > self.config.swipe_threshold:
            decision = self.decide(self.last_valid_position, self.last_valid_position + 1)
            if decision.blocked:
                self._touch_blocking = True
                self._emit_blocked(decision, self.last_valid_position + 1)
                return True
        return False

    def on_touch_end(self) -> None:
        self._touch_start = None
        self._touch_blocking = False

    # ─── Wheel / keyboard ───

    def on_wheel(self, delta_x: float, delta_y: float) -> bool:
        if delta_x > 0 or delta_y > 0:
            decision = self.decide(self.last_valid_position, self.last_valid_position + 1)
            if decision.blocked:
                self._emit_blocked(decision, self.last_valid_position + 1)
                return True
        return False

    def on_key(self, key: str, *, editing: bool = False, overlay_open: bool = False) -> bool:
        if editing or overlay_open:
            return False
        if key not in self.config.advance_keys:
            return False
        self.advance()
        return True

    # ─── Programmatic ───

    def navigate_to(self, position: int) -> GuardDecision:
        origin = self.last_valid_position
        decision = self.decide(origin, position)
        if decision.blocked:
            self._emit_blocked(decision, self.registry.clamp(position))
        if self.registry.index_at(self.viewport.offset) != decision.target:
            self._snap(decision.target)
        self._settle(decision.target)
        return decision

    def advance(self) -> GuardDecision:
        return self.navigate_to(self.last_valid_position + 1)

    def retreat(self) -> GuardDecision:
        return self.navigate_to(self.last_valid_position - 1)

    def restore(self, position: int) -> int:
        """Resume at a saved position, never past what is reachable now."""
        target = self.registry.clamp(min(position, self.max_reachable_position))
        if not self._legal_backward(target):
            target = self._nearest_backward(target, target)
        if self.registry.index_at(self.viewport.offset) != target:
            self._snap(target)
        self._settle(target)
        self._last_seen = target
        return target

    # ─── Scroll observation ───

    def on_scroll(self) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce = self.scheduler.call_later(self.config.scroll_debounce, self._schedule_reconcile)

    def start(self) -> None:
        if self._polling:
            return
        self._polling = True
        self._last_seen = self.registry.index_at(self.viewport.offset)
        self._poll = self.scheduler.request_frame(self._poll_frame)

    def stop(self) -> None:
        self._polling = False
        for handle in (self._poll, self._debounce, self._frame):
            if handle is not None:
                handle.cancel()
        self._poll = self._debounce = self._frame = None

    def _poll_frame(self) -> None:
        if not self._polling:
            return
        seen = self.registry.index_at(self.viewport.offset)
        if seen != self._last_seen:
            self._last_seen = seen
            self.on_scroll()
        self._poll = self.scheduler.request_frame(self._poll_frame)

    def _schedule_reconcile(self) -> None:
        self._debounce = None
        if self._frame is None:
            self._frame = self.scheduler.request_frame(self._reconcile)

    def _reconcile(self) -> None:
        self._frame = None
        if self.animating:
            # Superseded, not dropped: look again once the snap lock clears
            self._frame = self.scheduler.request_frame(self._reconcile)
            return
        candidate = self.registry.index_at(self.viewport.offset)
        if candidate == self.last_valid_position:
            return
        decision = self.decide(self.last_valid_position, candidate)
        if decision.target != candidate:
            logger.debug("Snapping from %d to %d (%s)", candidate, decision.target, decision.reason)
            self._snap(decision.target)
        if decision.blocked:
            self._emit_blocked(decision, candidate)
        self._settle(decision.target)

    # ─── Private ───

    def _snap(self, position: int) -> None:
        self.animating = True
        self.viewport.scroll_to(position, smooth=False)
        self.scheduler.request_frame(self._release)

    def _release(self) -> None:
        self.animating = False
        seen = self.registry.index_at(self.viewport.offset)
        self._last_seen = seen
        # The strip moved again while the snap was in flight
        if seen != self.last_valid_position and self._frame is None:
            self._frame = self.scheduler.request_frame(self._reconcile)

    def _settle(self, position: int) -> None:
        if position == self.last_valid_position:
            return
        self.last_valid_position = position
        node = self.graph.node_for_position(position)
        self.signals.emit(PositionSettled(position, node.id if node else None))

    def _emit_blocked(self, decision: GuardDecision, attempted: int) -> None:
        now = self.scheduler.now()
        if now - self._last_blocked_at < self.config.blocked_cooldown:
            return
        self._last_blocked_at = now
        self.signals.emit(NavigationBlocked(
            direction=decision.direction,
            reason=decision.reason or TARGET_LOCKED,
            position=decision.target,
            attempted=attempted,
        ))
