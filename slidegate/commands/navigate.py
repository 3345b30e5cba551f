"""Progress and navigation commands: complete, enter, goto, next, prev."""
from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from slidegate.commands import open_session

if TYPE_CHECKING:
    from slidegate.engine import LessonSession
    from slidegate.types import ActionResult


def _report(session: LessonSession, result: ActionResult):
    session.settle()
    stream = sys.stdout if result else sys.stderr
    print(result.message, file=stream)
    print(f"[{session.status()['summary']}]")


def cmd_complete(cwd: str, node_id: str | None = None):
    session = open_session(cwd)
    try:
        _report(session, session.complete(node_id))
    finally:
        session.close()


def cmd_enter(cwd: str, node_id: str):
    session = open_session(cwd)
    try:
        _report(session, session.enter(node_id))
    finally:
        session.close()


def cmd_goto(cwd: str, position: int):
    session = open_session(cwd)
    try:
        _report(session, session.goto(position))
    finally:
        session.close()


def cmd_step(cwd: str, forward: bool = True):
    session = open_session(cwd)
    try:
        _report(session, session.next() if forward else session.previous())
    finally:
        session.close()
