"""MCP Server — exposes lesson_* tools to a tutor agent."""
from __future__ import annotations

import json
import logging
import os
import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from slidegate.engine import LessonSession

if TYPE_CHECKING:
    from collections.abc import Iterator

mcp = FastMCP("slidegate")


@contextmanager
def _session() -> Iterator[LessonSession]:
    session = LessonSession(os.path.join(os.getcwd(), ".slidegate"))
    try:
        yield session
        # Let the map animation play out so the reply reflects where the cursor ends up
        session.settle()
    finally:
        session.close()


def _with_reminder(session: LessonSession, message: str) -> str:
    return f'{message}\n\n[Reminder] {session.status()["summary"]}'


@mcp.tool()
def lesson_get_status() -> str:
    """Get the lesson status: current node, slide, what is unlocked and completed."""
    try:
        with _session() as session:
            st = session.status()
            st["reminder"] = st["summary"]
            return json.dumps(st, ensure_ascii=False, indent=2)
    except Exception as e:
        return json.dumps({"error": str(e)}, ensure_ascii=False)


@mcp.tool()
def lesson_get_history(limit: int = 20) -> str:
    """Get recent completions, entries, blocked moves and resets."""
    try:
        with _session() as session:
            return json.dumps(session.history(limit), ensure_ascii=False, indent=2)
    except Exception as e:
        return json.dumps({"error": str(e)}, ensure_ascii=False)


@mcp.tool()
def lesson_start_journey() -> str:
    """Leave the title slide and start the lesson."""
    try:
        with _session() as session:
            return _with_reminder(session, session.start_journey().message)
    except Exception as e:
        return f"Start failed: {e}"


@mcp.tool()
def lesson_complete_node(node_id: str | None = None) -> str:
    """Complete a node (default: the node whose exit slide the learner is on)."""
    try:
        with _session() as session:
            result = session.complete(node_id)
            session.settle()
            return _with_reminder(session, result.message)
    except Exception as e:
        return f"Complete failed: {e}"


@mcp.tool()
def lesson_enter_node(node_id: str) -> str:
    """Enter an unlocked node from the map and jump to its first slide."""
    try:
        with _session() as session:
            result = session.enter(node_id)
            session.settle()
            return _with_reminder(session, result.message)
    except Exception as e:
        return f"Enter failed: {e}"


@mcp.tool()
def lesson_goto(position: int) -> str:
    """Move to a slide index; the guard may stop short or refuse."""
    try:
        with _session() as session:
            return _with_reminder(session, session.goto(position).message)
    except Exception as e:
        return f"Goto failed: {e}"


@mcp.tool()
def lesson_next() -> str:
    """Advance one slide."""
    try:
        with _session() as session:
            return _with_reminder(session, session.next().message)
    except Exception as e:
        return f"Next failed: {e}"


@mcp.tool()
def lesson_previous() -> str:
    """Go back one slide."""
    try:
        with _session() as session:
            return _with_reminder(session, session.previous().message)
    except Exception as e:
        return f"Previous failed: {e}"


def run_server():
    # stdout carries the protocol
    logging.basicConfig(stream=sys.stderr, level=logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    mcp.run(transport="stdio")
