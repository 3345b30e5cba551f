from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from slidegate.config import LessonConfig

# ─── Lesson Definition IR (parsed from YAML) ───

@dataclass(frozen=True, kw_only=True)
class _ContentNode:
    id: str
    label: str = ""
    content: tuple[int, ...]
    exit: int
    parents: frozenset[str] = frozenset()

    @property
    def exit_position(self) -> int | None:
        return self.exit


@dataclass(frozen=True, kw_only=True)
class LinearNode(_ContentNode):
    kind: ClassVar[str] = "linear"
    children: tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class GateNode(_ContentNode):
    """Convergence node: unlocks only once every parent is completed."""
    kind: ClassVar[str] = "gate"
    children: tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class BranchNode(_ContentNode):
    """Hub child; on completion the cursor returns to ``return_to``."""
    kind: ClassVar[str] = "branch"
    return_to: str

    @property
    def children(self) -> tuple[str, ...]:
        return ()


@dataclass(frozen=True, kw_only=True)
class HubNode:
    """Content-less junction that fans out to its branch children."""
    kind: ClassVar[str] = "hub"
    id: str
    label: str = ""
    parents: frozenset[str] = frozenset()
    children: tuple[str, ...] = ()
    gate_for: str | None = None

    @property
    def content(self) -> tuple[int, ...]:
        return ()

    @property
    def exit_position(self) -> int | None:
        return None


Node = LinearNode | GateNode | BranchNode | HubNode


@dataclass
class LessonDefinition:
    name: str
    description: str = ""
    nodes: dict[str, Node] = field(default_factory=dict)
    root: str = ""
    slides: list[str] = field(default_factory=list)
    config: LessonConfig | None = None

# ─── Progression Runtime State ───

@dataclass
class ProgressionState:
    current: str
    completed: set[str] = field(default_factory=set)
    unlocked: set[str] = field(default_factory=set)
    accessed: set[str] = field(default_factory=set)
    intro_played: bool = False

    @classmethod
    def initial(cls, root: str) -> ProgressionState:
        return cls(current=root, unlocked={root})

# ─── Operation Results ───

class ActionResult:
    def __init__(self, success: bool, message: str, node_id: str | None = None):
        self.success = success
        self.message = message
        self.node_id = node_id

    def __bool__(self) -> bool:
        return self.success

    def __repr__(self) -> str:
        return f"ActionResult({self.success!r}, {self.message!r}, {self.node_id!r})"

    def to_dict(self) -> dict:
        return {"success": self.success, "message": self.message, "node_id": self.node_id}


@dataclass
class CompletionResult:
    node_id: str
    outcome: str  # unknown | hub | already_completed | advanced | fanout | converged | remaining | terminal
    unlocked: list[str] = field(default_factory=list)
    remaining: list[str] = field(default_factory=list)
    hub: str | None = None
    gate: str | None = None

    @property
    def changed(self) -> bool:
        return self.outcome not in ("unknown", "hub", "already_completed")


@dataclass(frozen=True)
class GuardDecision:
    origin: int
    target: int
    direction: str  # forward | backward | none
    reason: str | None = None  # boundary_not_completed | target_locked | intro_not_played

    @property
    def blocked(self) -> bool:
        return self.reason is not None
