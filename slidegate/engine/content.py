"""Content oracle: slide keys ↔ positions, and the scrolling surface."""
from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable


class Viewport(Protocol):
    """The physical slide strip. ``offset`` is measured in slides, not pixels."""

    @property
    def offset(self) -> float: ...

    def scroll_to(self, position: int, *, smooth: bool = False) -> None: ...


class SlideRegistry:
    def __init__(self, keys: Iterable[str] = (), total: int | None = None,
                 labels: dict[str, str] | None = None):
        self.key_by_index: list[str] = [str(k) for k in keys]
        self.index_by_key: dict[str, int] = {k: i for i, k in enumerate(self.key_by_index)}
        self._total = total if total is not None else len(self.key_by_index)
        self.labels = dict(labels or {})

    @property
    def total(self) -> int:
        return self._total

    def index_of(self, key: str) -> int | None:
        return self.index_by_key.get(key)

    def key_at(self, index: int) -> str | None:
        if 0 <= index < len(self.key_by_index):
            return self.key_by_index[index]
        return None

    def clamp(self, position: int) -> int:
        if self._total <= 0:
            return 0
        return max(0, min(position, self._total - 1))

    def index_at(self, offset: float) -> int:
        return self.clamp(round(offset))

    def label_for(self, index: int) -> str:
        key = self.key_at(index)
        if key and key in self.labels:
            return f"{self.labels[key]} / {self._total}"
        return f"{index + 1} / {self._total}"


class SimulatedViewport:
    """In-process slide strip used by the CLI, the MCP server and tests.

    ``scroll_to`` lands immediately; ``drag_to`` moves the strip the way a
    finger or scroll-snap would, without any legality check.
    """

    def __init__(self, total: int, offset: float = 0.0):
        self.total = total
        self._offset = float(offset)
        self.moves: list[tuple[int, bool]] = []

    @property
    def offset(self) -> float:
        return self._offset

    def scroll_to(self, position: int, *, smooth: bool = False) -> None:
        self.moves.append((position, smooth))
        self._offset = float(max(0, min(position, self.total - 1)))

    def drag_to(self, offset: float) -> None:
        self._offset = max(0.0, min(float(offset), float(self.total - 1)))
