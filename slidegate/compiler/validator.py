"""Static analysis for lesson definitions — catch graph mistakes at load time."""
from __future__ import annotations

from typing import TYPE_CHECKING

from slidegate.types import BranchNode, GateNode, HubNode

if TYPE_CHECKING:
    from slidegate.types import LessonDefinition


class ValidationError:
    def __init__(self, level: str, message: str, node: str | None = None):
        self.level = level  # "error" | "warning"
        self.message = message
        self.node = node

    def __str__(self):
        prefix = f"[{self.node}] " if self.node else ""
        return f"{self.level.upper()}: {prefix}{self.message}"

    def __repr__(self):
        return f"ValidationError({self.level!r}, {self.message!r}, {self.node!r})"


def validate_lesson(lesson: LessonDefinition) -> list[ValidationError]:
    """Run all static checks on a lesson definition."""
    errors: list[ValidationError] = []

    if not lesson.nodes:
        errors.append(ValidationError("error", "Lesson has no nodes"))
        return errors

    if not lesson.root or lesson.root not in lesson.nodes:
        errors.append(ValidationError("error", f"Root node not found: '{lesson.root}'"))
        return errors

    errors.extend(_check_references(lesson))
    if any(e.level == "error" for e in errors):
        return errors

    errors.extend(_check_acyclic(lesson))
    errors.extend(_check_positions(lesson))
    errors.extend(_check_hubs(lesson))
    errors.extend(_check_gates(lesson))
    errors.extend(_check_reachability(lesson))

    return errors


def format_errors(errors: list[ValidationError]) -> str:
    if not errors:
        return ""
    lines = []
    errs = [e for e in errors if e.level == "error"]
    warns = [e for e in errors if e.level == "warning"]
    if errs:
        lines.append(f"  {len(errs)} error(s):")
        for e in errs:
            lines.append(f"    ✗ {e}")
    if warns:
        lines.append(f"  {len(warns)} warning(s):")
        for e in warns:
            lines.append(f"    ⚠ {e}")
    return "\n".join(lines)


# ─── Checks ───

def _check_references(lesson: LessonDefinition) -> list[ValidationError]:
    """Every id a node mentions must exist."""
    errors: list[ValidationError] = []
    for node in lesson.nodes.values():
        for child in node.children:
            if child not in lesson.nodes:
                errors.append(ValidationError("error", f"Next node not found: '{child}'", node.id))
        for parent in sorted(node.parents):
            if parent not in lesson.nodes:
                errors.append(ValidationError("error", f"Parent node not found: '{parent}'", node.id))
        if isinstance(node, BranchNode) and node.return_to not in lesson.nodes:
            errors.append(ValidationError("error", f"Return hub not found: '{node.return_to}'", node.id))
        if isinstance(node, HubNode) and node.gate_for and node.gate_for not in lesson.nodes:
            errors.append(ValidationError("error", f"Gate not found: '{node.gate_for}'", node.id))
    return errors


def _check_acyclic(lesson: LessonDefinition) -> list[ValidationError]:
    """The parent/child relation must be a DAG."""
    errors: list[ValidationError] = []
    visiting: set[str] = set()
    done: set[str] = set()

    def visit(node_id: str) -> bool:
        if node_id in done:
            return False
        if node_id in visiting:
            return True
        visiting.add(node_id)
        node = lesson.nodes[node_id]
        edges = set(node.children) | {c for c, n in lesson.nodes.items() if node_id in n.parents}
        cyclic = any(visit(child) for child in sorted(edges))
        visiting.discard(node_id)
        done.add(node_id)
        return cyclic

    for node_id in lesson.nodes:
        if node_id not in done and visit(node_id):
            errors.append(ValidationError("error", "Node is part of a cycle", node_id))
            break
    return errors


def _check_positions(lesson: LessonDefinition) -> list[ValidationError]:
    """A position belongs to at most one node; exits should close their range."""
    errors: list[ValidationError] = []
    owner: dict[int, str] = {}
    for node in lesson.nodes.values():
        for position in node.content:
            if position < 0:
                errors.append(ValidationError("error", f"Negative position {position}", node.id))
            elif position in owner and owner[position] != node.id:
                errors.append(ValidationError(
                    "error", f"Position {position} already belongs to '{owner[position]}'", node.id
                ))
            else:
                owner[position] = node.id
        if node.content and node.exit_position != max(node.content):
            errors.append(ValidationError(
                "warning", f"Exit {node.exit_position} is not the last position of the node", node.id
            ))
        if lesson.slides and any(p >= len(lesson.slides) for p in node.content):
            errors.append(ValidationError("error", "Position outside the slide list", node.id))
    return errors


def _check_hubs(lesson: LessonDefinition) -> list[ValidationError]:
    errors: list[ValidationError] = []
    for node in lesson.nodes.values():
        if isinstance(node, BranchNode):
            hub = lesson.nodes[node.return_to]
            if not isinstance(hub, HubNode):
                errors.append(ValidationError("error", f"Returns to '{hub.id}', which is not a hub", node.id))
            elif node.id not in hub.children:
                errors.append(ValidationError("error", f"Hub '{hub.id}' does not list this branch", node.id))
        if not isinstance(node, HubNode):
            continue
        if not node.children:
            errors.append(ValidationError("error", "Hub has no branches", node.id))
        for child in node.children:
            if not isinstance(lesson.nodes[child], BranchNode):
                errors.append(ValidationError("error", f"Hub child '{child}' is not a branch", node.id))
        if not node.gate_for:
            errors.append(ValidationError("warning", "Hub has no gate; its branches converge nowhere", node.id))
        elif not isinstance(lesson.nodes[node.gate_for], GateNode):
            errors.append(ValidationError("error", f"'{node.gate_for}' is not a gate", node.id))
        else:
            missing = [c for c in node.children if c not in lesson.nodes[node.gate_for].parents]
            if missing:
                errors.append(ValidationError(
                    "error", f"Gate '{node.gate_for}' does not wait for: {', '.join(missing)}", node.id
                ))
    return errors


def _check_gates(lesson: LessonDefinition) -> list[ValidationError]:
    errors: list[ValidationError] = []
    for node in lesson.nodes.values():
        if isinstance(node, GateNode) and len(node.parents) < 2:
            errors.append(ValidationError("warning", "Gate has fewer than two parents", node.id))
    return errors


def _check_reachability(lesson: LessonDefinition) -> list[ValidationError]:
    """All nodes should be reachable from the root."""
    errors: list[ValidationError] = []
    reachable: set[str] = set()
    queue = [lesson.root]

    while queue:
        current = queue.pop(0)
        if current in reachable:
            continue
        reachable.add(current)
        node = lesson.nodes[current]
        targets = list(node.children)
        if isinstance(node, HubNode) and node.gate_for:
            targets.append(node.gate_for)
        targets.extend(n.id for n in lesson.nodes.values() if current in n.parents)
        queue.extend(t for t in targets if t not in reachable)

    for node_id in lesson.nodes:
        if node_id not in reachable:
            errors.append(ValidationError("warning", "Node is unreachable from the root", node_id))

    return errors
