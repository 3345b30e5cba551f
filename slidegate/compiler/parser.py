"""Parse YAML lesson definitions into a progression graph."""
from __future__ import annotations

import yaml

from slidegate.config import LessonConfig
from slidegate.types import BranchNode, GateNode, HubNode, LessonDefinition, LinearNode, Node

# Legacy deck spellings -> internal key mapping
KEYWORD_MAP = {
    "slides": "content",
    "exitSlide": "exit",
    "exit_slide": "exit",
    "children": "next",
    "parents": "after",
    "returnTo": "return",
    "return_to": "return",
    "gate": "gate_for",
    "gateFor": "gate_for",
    "kind": "type",
    "title": "label",
}

NODE_TYPES = frozenset({"linear", "hub", "branch", "gate"})


def _normalize_key(key: str) -> str:
    return KEYWORD_MAP.get(key, key)


def _normalize(obj):
    if isinstance(obj, dict):
        return {_normalize_key(k): _normalize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_normalize(item) for item in obj]
    return obj


def _infer_node_type(body: dict) -> str:
    if "type" in body:
        node_type = str(body["type"]).lower()
        if node_type not in NODE_TYPES:
            raise ValueError(f"Unknown node type: {body['type']!r}")
        return node_type
    if "return" in body:
        return "branch"
    if "gate_for" in body or ("content" not in body and "next" in body):
        return "hub"
    return "linear"


def _parse_raw_node(raw) -> tuple[str, dict]:
    """Parse a single raw YAML node into (id, body_dict)."""
    if isinstance(raw, str):
        return (raw, {})
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid node entry: {raw!r}")

    if "id" in raw:
        return (str(raw["id"]), _normalize(raw))

    keys = list(raw.keys())
    if len(keys) == 1:
        node_id = str(keys[0])
        body = raw[keys[0]]
        if body is None:
            return (node_id, {})
        if isinstance(body, dict):
            return (node_id, _normalize(body))

    raise ValueError(f"Invalid node entry: {raw!r}")


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _resolve_positions(node_id: str, raw_content, slides: list[str]) -> tuple[int, ...]:
    index = {key: i for i, key in enumerate(slides)}
    positions: list[int] = []
    for item in _as_list(raw_content):
        if isinstance(item, bool):
            raise ValueError(f'Node "{node_id}": invalid content entry {item!r}')
        if isinstance(item, int):
            positions.append(item)
        elif isinstance(item, str) and item in index:
            positions.append(index[item])
        elif isinstance(item, str):
            raise ValueError(f'Node "{node_id}": unknown slide key "{item}"')
        else:
            raise ValueError(f'Node "{node_id}": invalid content entry {item!r}')
    return tuple(positions)


def _derive_parents(bodies: dict[str, dict], types: dict[str, str]) -> dict[str, set[str]]:
    """Parents = explicit ``after`` + every node listing it in ``next`` + a hub's children for its gate."""
    parents: dict[str, set[str]] = {node_id: set() for node_id in bodies}
    for node_id, body in bodies.items():
        for p in _as_list(body.get("after")):
            parents[node_id].add(str(p))
        for child in _as_list(body.get("next")):
            parents.setdefault(str(child), set()).add(node_id)
        if types[node_id] == "hub" and body.get("gate_for"):
            gate = str(body["gate_for"])
            for child in _as_list(body.get("next")):
                parents.setdefault(gate, set()).add(str(child))
    return parents


def _owning_hub(branch_id: str, bodies: dict[str, dict], types: dict[str, str]) -> str | None:
    for node_id, body in bodies.items():
        if types[node_id] == "hub" and branch_id in [str(c) for c in _as_list(body.get("next"))]:
            return node_id
    return None


def _build_node(node_id: str, body: dict, node_type: str, parents: set[str],
                slides: list[str], return_to: str | None) -> Node:
    label = str(body.get("label", ""))
    children = tuple(str(c) for c in _as_list(body.get("next")))

    if node_type == "hub":
        if "content" in body:
            raise ValueError(f'Hub "{node_id}" cannot own content')
        gate_for = body.get("gate_for")
        return HubNode(
            id=node_id,
            label=label,
            parents=frozenset(parents),
            children=children,
            gate_for=str(gate_for) if gate_for else None,
        )

    content = _resolve_positions(node_id, body.get("content"), slides)
    if not content:
        raise ValueError(f'Node "{node_id}" has no content')
    exit_position = content[-1]
    if body.get("exit") is not None:
        exit_position = _resolve_positions(node_id, body["exit"], slides)[0]
    if exit_position not in content:
        raise ValueError(f'Node "{node_id}": exit {exit_position} is not one of its positions')

    common = {
        "id": node_id,
        "label": label,
        "content": content,
        "exit": exit_position,
        "parents": frozenset(parents),
    }
    if node_type == "branch":
        if children:
            raise ValueError(f'Branch "{node_id}" cannot have next nodes; it returns to its hub')
        if not return_to:
            raise ValueError(f'Branch "{node_id}" has no hub to return to')
        return BranchNode(return_to=return_to, **common)
    if node_type == "gate":
        return GateNode(children=children, **common)
    return LinearNode(children=children, **common)


def parse_lesson_yaml(content: str) -> LessonDefinition:
    raw = yaml.safe_load(content)
    if not isinstance(raw, dict):
        raise ValueError("Invalid YAML: expected a mapping")

    name = raw.get("name", "unnamed lesson")
    description = raw.get("description", "")
    raw_nodes = raw.get("nodes")
    if not isinstance(raw_nodes, list):
        raise ValueError('Invalid lesson: missing "nodes" list')

    slides = [str(s) for s in _as_list(raw.get("slides"))]
    if len(set(slides)) != len(slides):
        raise ValueError("Duplicate slide keys")

    # Check for duplicate ids before processing
    bodies: dict[str, dict] = {}
    dupes: list[str] = []
    for entry in raw_nodes:
        node_id, body = _parse_raw_node(entry)
        if node_id in bodies:
            dupes.append(node_id)
        bodies[node_id] = body
    if dupes:
        raise ValueError(f"Duplicate node ids: {', '.join(dupes)}")

    types = {node_id: _infer_node_type(body) for node_id, body in bodies.items()}
    # Untyped hub children are branches
    for node_id, body in bodies.items():
        if types[node_id] != "hub":
            continue
        for child in _as_list(body.get("next")):
            child = str(child)
            if child in bodies and "type" not in bodies[child] and types[child] == "linear":
                types[child] = "branch"
    parents = _derive_parents(bodies, types)

    nodes: dict[str, Node] = {}
    for node_id, body in bodies.items():
        return_to = body.get("return")
        if types[node_id] == "branch" and not return_to:
            return_to = _owning_hub(node_id, bodies, types)
        nodes[node_id] = _build_node(
            node_id, body, types[node_id], parents[node_id], slides,
            str(return_to) if return_to else None,
        )

    root = str(raw.get("root") or (next(iter(nodes)) if nodes else ""))
    return LessonDefinition(
        name=name,
        description=description,
        nodes=nodes,
        root=root,
        slides=slides,
        config=LessonConfig.from_dict(raw.get("config")),
    )
