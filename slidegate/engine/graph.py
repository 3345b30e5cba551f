"""Progression graph — which nodes are enterable, and what completing one unlocks.

Unlock rules:
  Root     always unlocked
  Gate     every parent completed
  others   at least one parent completed

Completion effects:
  Linear / Gate   unlock each child; a Hub child also unlocks all of its
                  branches in the same step (fan-out)
  Branch          unlock nothing directly; once every sibling under the
                  return hub is completed, unlock the hub's gate

A gate is only ever written to ``unlocked`` once every parent is completed,
whichever edge (next, gate_for or after) leads to it.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from slidegate.engine.persistence import deserialize_state, serialize_state
from slidegate.engine.signals import NodeUnlocked, SignalBus
from slidegate.errors import UnknownNode
from slidegate.types import (
    ActionResult,
    BranchNode,
    CompletionResult,
    GateNode,
    HubNode,
    LessonDefinition,
    LinearNode,
    Node,
    ProgressionState,
)

if TYPE_CHECKING:
    from slidegate.store.state import StateStore

logger = logging.getLogger(__name__)

# Re-entry policy for completed nodes. Hubs are never completed.
REENTRY_POLICY: dict[type, bool] = {
    LinearNode: False,
    GateNode: False,
    BranchNode: True,
    HubNode: True,
}


class ProgressionGraph:
    def __init__(
        self,
        lesson: LessonDefinition,
        state: ProgressionState | None = None,
        *,
        store: StateStore | None = None,
        state_key: str | None = None,
        signals: SignalBus | None = None,
    ):
        self.lesson = lesson
        self.nodes: dict[str, Node] = lesson.nodes
        self.root = lesson.root
        self.store = store
        self.state_key = state_key or f"progress:{lesson.name}"
        self.signals = signals or SignalBus()
        self.revision = 0

        self._by_position: dict[int, Node] = {}
        for node in self.nodes.values():
            for position in node.content:
                self._by_position.setdefault(position, node)

        if state is not None:
            self.state = state
        elif store is not None:
            self.state = deserialize_state(store.get(self.state_key), self.root)
        else:
            self.state = ProgressionState.initial(self.root)

    # ─── Queries ───

    def node(self, node_id: str) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise UnknownNode(node_id) from None

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def is_unlocked(self, node_id: str) -> bool:
        if node_id == self.root:
            return True
        if node_id in self.state.unlocked:
            return True
        node = self.nodes.get(node_id)
        if node is None or not node.parents:
            return False
        # Computed fallback, correct even before an explicit unlock write
        if isinstance(node, GateNode):
            return all(p in self.state.completed for p in node.parents)
        return any(p in self.state.completed for p in node.parents)

    def is_completed(self, node_id: str) -> bool:
        return node_id in self.state.completed

    def is_accessed(self, node_id: str) -> bool:
        return node_id in self.state.accessed

    def node_for_position(self, position: int) -> Node | None:
        return self._by_position.get(position)

    def position_of(self, node_id: str) -> int | None:
        """Furthest position of a node, ``None`` for hubs and unknown ids."""
        node = self.nodes.get(node_id)
        if node is None or not node.content:
            return None
        return max(node.content)

    def first_position(self, node_id: str) -> int | None:
        node = self.nodes.get(node_id)
        if node is None or not node.content:
            return None
        return node.content[0]

    def max_reachable_position(self) -> int:
        best: int | None = None
        for node in self.nodes.values():
            if node.content and self.is_unlocked(node.id):
                top = max(node.content)
                best = top if best is None else max(best, top)
        current = self.position_of(self.state.current)
        if current is not None:
            best = current if best is None else max(best, current)
        return best if best is not None else 0

    def can_enter(self, node_id: str) -> bool:
        node = self.nodes.get(node_id)
        if node is None or not self.is_unlocked(node_id):
            return False
        if self.is_completed(node_id):
            return REENTRY_POLICY[type(node)]
        return True

    def remaining_branches(self, hub_id: str) -> list[str]:
        hub = self.nodes.get(hub_id)
        if not isinstance(hub, HubNode):
            return []
        return [c for c in hub.children if c not in self.state.completed]

    def waiting_on(self, node_id: str) -> list[str]:
        """Parents of a gate that are not completed yet, in sorted order."""
        node = self.nodes.get(node_id)
        if not isinstance(node, GateNode):
            return []
        return sorted(p for p in node.parents if p not in self.state.completed)

    def in_preamble(self, position: int) -> bool:
        """Positions before the root's content (title slide) while the journey hasn't started."""
        if not (self.lesson.config and self.lesson.config.intro) or self.state.intro_played:
            return False
        first = self.first_position(self.root)
        return first is not None and position < first

    # ─── Mutations ───

    def complete_node(self, node_id: str) -> CompletionResult:
        node = self.nodes.get(node_id)
        if node is None:
            logger.warning("complete_node: %s", UnknownNode(node_id))
            return CompletionResult(node_id, "unknown")
        if isinstance(node, HubNode):
            logger.debug("complete_node: hub %s is never completed", node_id)
            return CompletionResult(node_id, "hub")
        if node_id in self.state.completed:
            return CompletionResult(node_id, "already_completed")

        self.state.completed.add(node_id)
        result = self._apply_completion(node)
        # Also gates that name this node through `after`
        gates = self._gates_fed_by(node_id)
        for gate in gates:
            if self._ready(gate) and self._unlock(gate.id):
                result.unlocked.append(gate.id)
        if result.outcome == "terminal" and gates:
            result.outcome = "advanced"
        self._commit()
        # Announce only what is already durable
        for unlocked_id in result.unlocked:
            self.signals.emit(NodeUnlocked(unlocked_id))
        return result

    def enter_node(self, node_id: str) -> ActionResult:
        node = self.nodes.get(node_id)
        if node is None:
            logger.warning("enter_node: %s", UnknownNode(node_id))
            return ActionResult(False, f'Node "{node_id}" not found.')
        if not self.is_unlocked(node_id):
            return ActionResult(False, f'Node "{node_id}" is locked.', node_id)
        if not self.can_enter(node_id):
            return ActionResult(False, f'Node "{node_id}" is already completed.', node_id)
        if self.state.current == node_id and node_id in self.state.accessed:
            return ActionResult(True, f"Already at: {node_id}", node_id)

        self.state.current = node_id
        self.state.accessed.add(node_id)
        self._commit()
        return ActionResult(True, f"Entered: {node_id}", node_id)

    def start_journey(self) -> bool:
        if self.state.intro_played:
            return False
        self.state.intro_played = True
        self._commit()
        return True

    def adopt(self, blob: str | bytes | None) -> None:
        """Replace the state with a caller-supplied blob (no validation beyond defaults)."""
        self.state = deserialize_state(blob, self.root)
        self._commit()

    def reset(self) -> None:
        self.state = ProgressionState.initial(self.root)
        self._commit()

    # ─── Snapshot ───

    def status(self) -> dict:
        nodes = []
        for node in self.nodes.values():
            nodes.append({
                "id": node.id,
                "kind": node.kind,
                "label": node.label,
                "positions": list(node.content),
                "exit": node.exit_position,
                "unlocked": self.is_unlocked(node.id),
                "completed": self.is_completed(node.id),
                "current": node.id == self.state.current,
            })
        return {
            "lesson": self.lesson.name,
            "current": self.state.current,
            "completed": sorted(self.state.completed),
            "unlocked": sorted(self.state.unlocked),
            "max_reachable_position": self.max_reachable_position(),
            "intro_played": self.state.intro_played,
            "nodes": nodes,
        }

    # ─── Private ───

    def _apply_completion(self, node: Node) -> CompletionResult:
        if isinstance(node, BranchNode):
            return self._complete_branch(node)

        if not node.children:
            return CompletionResult(node.id, "terminal")

        unlocked: list[str] = []
        outcome = "advanced"
        hub_id = None
        for child_id in node.children:
            child = self.nodes.get(child_id)
            if child is None:
                logger.warning("complete_node %s: %s", node.id, UnknownNode(child_id))
                continue
            if isinstance(child, HubNode):
                outcome = "fanout"
                hub_id = child.id
                if self._unlock(child.id):
                    unlocked.append(child.id)
                for branch_id in child.children:
                    if branch_id in self.nodes and self._unlock(branch_id):
                        unlocked.append(branch_id)
            elif self._ready(child) and self._unlock(child_id):
                unlocked.append(child_id)
        return CompletionResult(node.id, outcome, unlocked=unlocked, hub=hub_id)

    def _complete_branch(self, node: BranchNode) -> CompletionResult:
        hub = self.nodes.get(node.return_to)
        if not isinstance(hub, HubNode):
            logger.warning("Branch %s returns to %r, which is not a hub", node.id, node.return_to)
            return CompletionResult(node.id, "terminal")

        remaining = self.remaining_branches(hub.id)
        if remaining:
            return CompletionResult(node.id, "remaining", remaining=remaining, hub=hub.id)

        unlocked: list[str] = []
        gate = self.nodes.get(hub.gate_for) if hub.gate_for else None
        if gate is not None and self._ready(gate) and self._unlock(gate.id):
            unlocked.append(gate.id)
        return CompletionResult(node.id, "converged", unlocked=unlocked, hub=hub.id, gate=hub.gate_for)

    def _ready(self, node: Node) -> bool:
        """A gate waits for every parent; other kinds open on the edge that reached them."""
        if isinstance(node, GateNode):
            return not self.waiting_on(node.id)
        return True

    def _gates_fed_by(self, node_id: str) -> list[GateNode]:
        return [
            node for node in self.nodes.values()
            if isinstance(node, GateNode) and node_id in node.parents
        ]

    def _unlock(self, node_id: str) -> bool:
        self.state.accessed.add(node_id)
        if node_id in self.state.unlocked:
            return False
        self.state.unlocked.add(node_id)
        return True

    def _commit(self) -> None:
        self.revision += 1
        if self.store is not None:
            self.store.set(self.state_key, serialize_state(self.state))
