"""Lesson configuration, read from the ``config:`` section of a lesson file."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class GuardConfig:
    swipe_threshold: float = 30.0  # px of horizontal drag before a swipe counts
    scroll_debounce: float = 0.1
    blocked_cooldown: float = 1.0
    advance_keys: tuple[str, ...] = ("ArrowRight", " ", "Enter")
    frame_interval: float = 1 / 60


@dataclass
class PacingConfig:
    completion_delay: float = 0.8
    step_delay: float = 0.5
    hub_reveal: float = 1.0
    token_travel: float = 2.2
    fanout_interval: float = 0.4
    settle_delay: float = 0.5


@dataclass
class LessonConfig:
    intro: bool = False  # hold the preamble until start_journey()
    guard: GuardConfig = field(default_factory=GuardConfig)
    pacing: PacingConfig = field(default_factory=PacingConfig)

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> LessonConfig:
        raw = dict(raw or {})
        config = cls(
            intro=bool(raw.pop("intro", False)),
            guard=_build(GuardConfig, raw.pop("guard", None), "guard"),
            pacing=_build(PacingConfig, raw.pop("pacing", None), "pacing"),
        )
        for key in raw:
            logger.warning("Ignoring unknown config key %r", key)
        return config


def _build(cls, raw: dict[str, Any] | None, section: str):
    if not raw:
        return cls()
    if not isinstance(raw, dict):
        raise ValueError(f'Invalid config: "{section}" must be a mapping')
    known = {f.name for f in fields(cls)}
    kwargs: dict[str, Any] = {}
    for k, v in raw.items():
        if k not in known:
            logger.warning("Ignoring unknown %s config key %r", section, k)
            continue
        if k == "advance_keys":
            v = tuple(str(key) for key in v)
        else:
            v = float(v)
        kwargs[k] = v
    return cls(**kwargs)
