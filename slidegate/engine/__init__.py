from slidegate.engine.graph import ProgressionGraph
from slidegate.engine.guard import NavigationGuard
from slidegate.engine.sequencer import TransitionSequencer
from slidegate.engine.session import LessonSession

__all__ = ["LessonSession", "NavigationGuard", "ProgressionGraph", "TransitionSequencer"]
