"""Shared fixtures for slidegate lesson tests."""
from __future__ import annotations

import shutil
import tempfile
from pathlib import Path

import pytest

from slidegate.compiler.parser import parse_lesson_yaml
from slidegate.engine.content import SimulatedViewport, SlideRegistry
from slidegate.engine.graph import ProgressionGraph
from slidegate.engine.guard import NavigationGuard
from slidegate.engine.scheduler import ManualScheduler
from slidegate.engine.session import LessonSession, slide_count
from slidegate.engine.signals import NavigationBlocked, NodeUnlocked, PositionSettled, SequenceStep
from slidegate.types import ActionResult

LESSONS_DIR = Path(__file__).parent / ".slidegate" / "lessons"
TEMPLATES_DIR = Path(__file__).parent.parent / "slidegate" / "templates"


class LessonHarness:
    """Test harness for driving a lesson through a session.

    Provides a clean temp .slidegate directory per test, a virtual clock
    and an in-process slide strip. Every signal the session's bus emits is
    recorded in ``signals``.
    """

    def __init__(self, lesson_file: str):
        self.tmp = Path(tempfile.mkdtemp())
        self.project_dir = self.tmp / ".slidegate"
        (self.project_dir / "lessons").mkdir(parents=True)

        src = LESSONS_DIR / lesson_file
        if not src.exists():
            src = TEMPLATES_DIR / lesson_file
        shutil.copy2(src, self.project_dir / "lessons" / lesson_file)

        self.lesson_name = lesson_file.removesuffix(".yaml")
        (self.project_dir / ".loaded").write_text(self.lesson_name, encoding="utf-8")
        self.signals: list = []
        self._open()

    def _open(self) -> None:
        self.scheduler = ManualScheduler()
        self.session = LessonSession(self.project_dir, scheduler=self.scheduler)
        for signal_type in (NodeUnlocked, NavigationBlocked, PositionSettled, SequenceStep):
            self.session.signals.subscribe(signal_type, self.signals.append)

    # ─── State ───

    @property
    def graph(self) -> ProgressionGraph:
        return self.session.graph

    @property
    def state(self):
        return self.session.graph.state

    @property
    def current(self) -> str:
        return self.state.current

    @property
    def position(self) -> int:
        return self.session.position

    @property
    def viewport(self) -> SimulatedViewport:
        return self.session.viewport

    def of_type(self, signal_type) -> list:
        return [s for s in self.signals if isinstance(s, signal_type)]

    def blocked(self) -> list[NavigationBlocked]:
        return self.of_type(NavigationBlocked)

    def steps(self) -> list[str]:
        return [s.action for s in self.of_type(SequenceStep)]

    # ─── Actions ───

    def start(self) -> ActionResult:
        return self.session.start_journey()

    def complete(self, node_id: str | None = None, *, settle: bool = True) -> ActionResult:
        r = self.session.complete(node_id)
        if settle:
            self.settle()
        return r

    def enter(self, node_id: str, *, settle: bool = True) -> ActionResult:
        r = self.session.enter(node_id)
        if settle:
            self.settle()
        return r

    def goto(self, position: int) -> ActionResult:
        return self.session.goto(position)

    def next(self) -> ActionResult:
        return self.session.next()

    def prev(self) -> ActionResult:
        return self.session.previous()

    def drag(self, offset: float) -> int:
        """Move the strip without asking anyone, then let the guard catch up."""
        self.viewport.drag_to(offset)
        self.session.guard.on_scroll()
        self.settle()
        return self.position

    def settle(self) -> None:
        self.session.settle()

    def walk_to(self, position: int) -> None:
        """Step forward one slide at a time until ``position`` is reached."""
        while self.position < position:
            before = self.position
            self.next()
            if self.position == before:
                raise RuntimeError(f"Stuck at {before} on the way to {position}")

    def new_session(self) -> None:
        """Close the session and reopen from the same progress.db (a page reload)."""
        self.session.close()
        self._open()

    def history(self, limit: int = 50) -> list[dict]:
        return self.session.history(limit)

    def close(self):
        self.session.close()
        shutil.rmtree(self.tmp, ignore_errors=True)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


@pytest.fixture
def harness_factory():
    """Factory fixture that creates LessonHarness instances and cleans up after test."""
    created: list[LessonHarness] = []

    def _make(lesson_file: str) -> LessonHarness:
        h = LessonHarness(lesson_file)
        created.append(h)
        return h

    yield _make

    for h in created:
        h.close()


# ─── Engine-level fixtures (no session, no database) ───

class GuardRig:
    """Graph + guard over a simulated strip, for driving the guard directly."""

    def __init__(self, lesson_text: str, position: int = 0):
        self.lesson = parse_lesson_yaml(lesson_text)
        self.graph = ProgressionGraph(self.lesson)
        total = slide_count(self.lesson)
        self.registry = SlideRegistry(self.lesson.slides, total=total)
        self.viewport = SimulatedViewport(total, offset=position)
        self.scheduler = ManualScheduler()
        self.guard = NavigationGuard(
            self.graph, self.registry, self.viewport, self.scheduler,
            config=self.lesson.config.guard,
        )
        self.signals: list = []
        for signal_type in (NodeUnlocked, NavigationBlocked, PositionSettled):
            self.graph.signals.subscribe(signal_type, self.signals.append)

    def blocked(self) -> list[NavigationBlocked]:
        return [s for s in self.signals if isinstance(s, NavigationBlocked)]

    def drag(self, offset: float) -> int:
        self.viewport.drag_to(offset)
        self.guard.on_scroll()
        self.scheduler.run_until_idle()
        return self.guard.last_valid_position


@pytest.fixture
def rig_factory():
    def _make(lesson_file: str, position: int = 0) -> GuardRig:
        return GuardRig((LESSONS_DIR / lesson_file).read_text(encoding="utf-8"), position)
    return _make
