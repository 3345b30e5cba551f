"""Internal exceptions. None of them escape the public engine API."""
from __future__ import annotations


class UnknownNode(KeyError):
    def __init__(self, node_id: str):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f'Unknown node "{self.node_id}"'


class CorruptPersistedState(ValueError):
    pass
