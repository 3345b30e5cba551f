"""Generate a Mermaid flowchart from a LessonDefinition."""
from __future__ import annotations

import re
from typing import TYPE_CHECKING

from slidegate.types import BranchNode, GateNode, HubNode

if TYPE_CHECKING:
    from slidegate.types import LessonDefinition, ProgressionState


def _make_id(name: str) -> str:
    clean = re.sub(r"[^a-zA-Z0-9_]", "_", name)
    clean = re.sub(r"_+", "_", clean).strip("_")
    return f"n_{clean}"


def _node_label(node) -> str:
    label = (node.label or node.id).replace('"', "'")
    if node.content:
        first, last = min(node.content), max(node.content)
        span = f"{first}" if first == last else f"{first}-{last}"
        return f"{label} [{span}]"
    return label


def generate_mermaid(lesson: LessonDefinition, state: ProgressionState | None = None) -> str:
    ids = {node_id: _make_id(node_id) for node_id in lesson.nodes}
    nodes: list[str] = []
    edges: list[str] = []
    classes: list[str] = []

    for node in lesson.nodes.values():
        sid = ids[node.id]
        label = _node_label(node)
        if isinstance(node, HubNode):
            # Hub → diamond
            nodes.append(f'    {sid}{{"{label}"}}')
        elif isinstance(node, GateNode):
            # Gate → hexagon
            nodes.append(f'    {sid}{{{{"{label}"}}}}')
        elif isinstance(node, BranchNode):
            # Branch → stadium
            nodes.append(f'    {sid}(["{label}"])')
        else:
            nodes.append(f'    {sid}["{label}"]')

        if state is not None:
            classes.append(f"    class {sid} {_state_class(node.id, lesson, state)}")

    for node in lesson.nodes.values():
        src = ids[node.id]
        for child in node.children:
            if child in ids:
                edges.append(f"    {src} --> {ids[child]}")
        if isinstance(node, BranchNode) and node.return_to in ids:
            edges.append(f'    {src} -.->|return| {ids[node.return_to]}')
        if isinstance(node, HubNode) and node.gate_for in ids:
            edges.append(f'    {src} -.->|"all complete"| {ids[node.gate_for]}')

    lines = ["graph LR"]
    lines.extend(nodes)
    lines.extend(edges)
    if state is not None:
        lines.extend([
            "    classDef completed fill:#14532d,stroke:#22c55e,color:#fff",
            "    classDef unlocked fill:#164e63,stroke:#22d3ee,color:#fff",
            "    classDef locked fill:#1f2937,stroke:#6b7280,color:#9ca3af",
            "    classDef current fill:#164e63,stroke:#facc15,stroke-width:3px,color:#fff",
        ])
        lines.extend(classes)
    return "\n".join(lines)


def _state_class(node_id: str, lesson: LessonDefinition, state: ProgressionState) -> str:
    if node_id in state.completed:
        return "completed"
    if node_id == state.current:
        return "current"
    if node_id == lesson.root or node_id in state.unlocked:
        return "unlocked"
    return "locked"
