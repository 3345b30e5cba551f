"""Lesson session — one learner, one lesson, one ``.slidegate/`` directory.

Wires the progression graph, the navigation guard and the transition
sequencer to a SQLite progress store. The CLI and the MCP server drive a
session with a virtual clock and an in-process slide strip; a UI host can
pass its own scheduler and viewport.

  .slidegate/
  ├── lessons/<name>.yaml
  ├── .loaded          name of the active lesson
  └── progress.db      progression blob, slide index, history
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from slidegate.compiler.parser import parse_lesson_yaml
from slidegate.config import LessonConfig
from slidegate.engine.content import SimulatedViewport, SlideRegistry
from slidegate.engine.graph import ProgressionGraph
from slidegate.engine.guard import NavigationGuard
from slidegate.engine.scheduler import ManualScheduler
from slidegate.engine.sequencer import TransitionSequencer
from slidegate.engine.signals import NavigationBlocked, PositionSettled, SequenceStep, SignalBus
from slidegate.store.state import ProgressStore
from slidegate.types import ActionResult, LessonDefinition

if TYPE_CHECKING:
    from slidegate.engine.content import Viewport
    from slidegate.engine.scheduler import Scheduler

logger = logging.getLogger(__name__)


def read_loaded(project_dir: str | Path) -> str | None:
    meta_path = Path(project_dir) / ".loaded"
    if not meta_path.exists():
        return None
    return meta_path.read_text(encoding="utf-8").strip() or None


def slide_count(lesson: LessonDefinition) -> int:
    positions = [p for node in lesson.nodes.values() for p in node.content]
    return max(len(lesson.slides), max(positions, default=-1) + 1)


class LessonSession:
    def __init__(
        self,
        project_dir: str | Path,
        lesson_name: str | None = None,
        *,
        scheduler: Scheduler | None = None,
        viewport: Viewport | None = None,
    ):
        self.project_dir = Path(project_dir)
        name = lesson_name or read_loaded(self.project_dir)
        if name is None:
            raise FileNotFoundError("No lesson loaded yet. Run: slidegate load <lesson>")
        lesson_path = self.project_dir / "lessons" / f"{name}.yaml"
        if not lesson_path.exists():
            raise FileNotFoundError(f"Lesson file not found: {lesson_path}")

        self.name = name
        self.lesson = parse_lesson_yaml(lesson_path.read_text(encoding="utf-8"))
        config = self.lesson.config or LessonConfig()

        self.store = ProgressStore(self.project_dir / "progress.db")
        self.scheduler = scheduler or ManualScheduler(frame_interval=config.guard.frame_interval)
        self.signals = SignalBus()
        self.graph = ProgressionGraph(
            self.lesson, store=self.store, state_key=f"progress:{name}", signals=self.signals,
        )
        total = slide_count(self.lesson)
        self.registry = SlideRegistry(self.lesson.slides, total=total)
        self.viewport = viewport or SimulatedViewport(total)
        self.guard = NavigationGuard(
            self.graph, self.registry, self.viewport, self.scheduler,
            signals=self.signals, config=config.guard,
        )
        self.sequencer = TransitionSequencer(
            self.graph, self.guard, self.scheduler, signals=self.signals, pacing=config.pacing,
        )

        saved = self.store.get(self._slide_key)
        if saved is not None:
            try:
                self.guard.restore(int(saved))
            except ValueError:
                logger.warning("Ignoring unreadable slide index %r for %s", saved, name)

        self._unsubscribe = [
            self.signals.subscribe(PositionSettled, self._on_settled),
            self.signals.subscribe(NavigationBlocked, self._on_blocked),
            self.signals.subscribe(SequenceStep, self._on_step),
        ]

    @property
    def _slide_key(self) -> str:
        return f"slide:{self.name}"

    @property
    def position(self) -> int:
        return self.guard.last_valid_position

    # ─── Queries ───

    def status(self) -> dict[str, Any]:
        result = self.graph.status()
        position = self.position
        node = self.graph.node_for_position(position)
        at_exit = (
            node is not None
            and node.exit_position == position
            and not self.graph.is_completed(node.id)
        )
        result.update({
            "position": position,
            "slide": self.registry.label_for(position),
            "node": node.id if node else None,
            "at_exit": at_exit,
            "can_advance": self.guard.can_advance(),
            "phase": self.sequencer.phase,
        })

        summary = [f"{self.name} > {result['current']}", f"slide {result['slide']}"]
        if at_exit:
            summary.append(f"complete {node.id} to continue")
        elif self.graph.in_preamble(position):
            summary.append("journey not started")
        result["summary"] = ", ".join(summary)
        return result

    def history(self, limit: int = 20) -> list[dict]:
        return self.store.get_history(limit, lesson=self.name)

    # ─── Actions ───

    def start_journey(self) -> ActionResult:
        if not self.graph.start_journey():
            return ActionResult(False, "Journey already started.", self.graph.root)
        self.store.add_history(self.name, self.graph.root, "start")
        first = self.graph.first_position(self.graph.root)
        if first is not None and self.position < first:
            self.guard.navigate_to(first)
        return ActionResult(True, f'Journey started: "{self.lesson.name}"', self.graph.root)

    def complete(self, node_id: str | None = None) -> ActionResult:
        if node_id is None:
            node = self.graph.node_for_position(self.position)
            if node is None or node.exit_position != self.position:
                return ActionResult(
                    False,
                    f"Slide {self.registry.label_for(self.position)} is not an exit slide. "
                    "Name the node to complete, or move to its last slide.",
                )
            node_id = node.id

        result = self.sequencer.request_completion(node_id)
        if result:
            completion = self.sequencer.last_completion
            self.store.add_history(self.name, node_id, "complete", json.dumps({
                "outcome": completion.outcome,
                "unlocked": completion.unlocked,
            }))
        return result

    def enter(self, node_id: str) -> ActionResult:
        result = self.sequencer.request_entry(node_id)
        if result:
            self.store.add_history(self.name, node_id, "enter")
        return result

    def goto(self, position: int) -> ActionResult:
        requested = self.registry.clamp(position)
        decision = self.guard.navigate_to(position)
        label = self.registry.label_for(decision.target)
        if decision.target == requested and decision.target != decision.origin:
            return ActionResult(True, f"Moved to slide {label}", self._owner(decision.target))
        if decision.target == decision.origin and not decision.blocked:
            return ActionResult(False, f"Already at slide {label}", self._owner(decision.target))
        reason = decision.reason or "snapped"
        return ActionResult(False, f"Blocked ({reason}): at slide {label}", self._owner(decision.target))

    def next(self) -> ActionResult:
        return self.goto(self.position + 1)

    def previous(self) -> ActionResult:
        return self.goto(self.position - 1)

    def reset(self) -> ActionResult:
        """Start the lesson over. History is kept."""
        self.sequencer.cancel()
        self.graph.reset()
        self.store.delete(self._slide_key)
        self.guard.restore(0)
        self.store.add_history(self.name, None, "reset")
        return ActionResult(True, f'Progress cleared for "{self.lesson.name}"', self.graph.root)

    def settle(self) -> None:
        """Let every pending timer run (virtual clock only)."""
        if isinstance(self.scheduler, ManualScheduler):
            self.scheduler.run_until_idle()

    def close(self) -> None:
        self.guard.stop()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self.store.close()

    # ─── Signal handlers ───

    def _on_settled(self, signal: PositionSettled) -> None:
        self.store.set(self._slide_key, str(signal.position))
        node_id = signal.node_id
        if node_id is None or node_id == self.graph.state.current:
            return
        if self.graph.can_enter(node_id) and self.graph.enter_node(node_id):
            self.store.add_history(self.name, node_id, "enter", json.dumps({"position": signal.position}))

    def _on_blocked(self, signal: NavigationBlocked) -> None:
        self.store.add_history(self.name, self._owner(signal.position), "blocked", json.dumps({
            "reason": signal.reason,
            "attempted": signal.attempted,
        }))

    def _on_step(self, signal: SequenceStep) -> None:
        logger.debug("%s: %s %s", signal.phase, signal.action, signal.node_id or "")

    def _owner(self, position: int) -> str | None:
        node = self.graph.node_for_position(position)
        return node.id if node else None
