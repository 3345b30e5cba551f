"""Thin CLI router — dispatches to commands."""
from __future__ import annotations

import json
import logging
import os
import sys

USAGE = """\
slidegate — gated slide navigation for branching lessons

Usage:
  slidegate init [template]     Create .slidegate/ with a lesson template (nouns, minimal)
  slidegate load <lesson>       Compile lesson, validate, output Mermaid map
  slidegate start               Leave the title slide and begin (or resume)
  slidegate status              Current node, slide and what is unlocked
  slidegate complete [node]     Complete a node (default: the one whose exit slide you're on)
  slidegate enter <node>        Enter an unlocked node from the map
  slidegate goto <slide>        Move to a slide index (the guard may stop short)
  slidegate next | prev         Move one slide forward / back
  slidegate history [limit]     Recent completions, entries and blocked moves
  slidegate reset [--all]       Clear progress for the loaded lesson (or everything)

Internal:
  slidegate mcp-server          Start MCP Server

Options:
  -v, --verbose                 Debug logging on stderr
"""


def _need(args: list[str], usage: str) -> str:
    if len(args) < 2:
        print(f"Usage: {usage}", file=sys.stderr)
        sys.exit(1)
    return args[1]


def _as_int(value: str, what: str) -> int:
    try:
        return int(value)
    except ValueError:
        print(f"{what} must be an integer, got {value!r}", file=sys.stderr)
        sys.exit(1)


def main():
    args = sys.argv[1:]
    verbose = any(a in ("-v", "--verbose") for a in args)
    args = [a for a in args if a not in ("-v", "--verbose")]
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    cwd = os.getcwd()
    command = args[0] if args else None

    if command == "init":
        from slidegate.commands.init import main as cmd_init
        sys.exit(cmd_init(args[1:]))

    elif command == "load":
        from slidegate.commands.load import cmd_load
        cmd_load(_need(args, "slidegate load <lesson-name>"), cwd)

    elif command == "start":
        from slidegate.commands.start import cmd_start
        cmd_start(cwd)

    elif command == "status":
        from slidegate.commands import open_session
        session = open_session(cwd)
        try:
            st = session.status()
            print(st["summary"])
            print(f'Completed: {", ".join(st["completed"]) or "-"}')
            print(f'Unlocked:  {", ".join(st["unlocked"]) or "-"}')
        finally:
            session.close()

    elif command == "complete":
        from slidegate.commands.navigate import cmd_complete
        cmd_complete(cwd, args[1] if len(args) > 1 else None)

    elif command == "enter":
        from slidegate.commands.navigate import cmd_enter
        cmd_enter(cwd, _need(args, "slidegate enter <node>"))

    elif command == "goto":
        from slidegate.commands.navigate import cmd_goto
        cmd_goto(cwd, _as_int(_need(args, "slidegate goto <slide>"), "slide"))

    elif command in ("next", "prev"):
        from slidegate.commands.navigate import cmd_step
        cmd_step(cwd, forward=command == "next")

    elif command == "history":
        from slidegate.commands import open_session
        limit = _as_int(args[1], "limit") if len(args) > 1 else 20
        session = open_session(cwd)
        try:
            for row in session.history(limit):
                print(json.dumps(row, ensure_ascii=False))
        finally:
            session.close()

    elif command == "reset":
        from slidegate.commands.reset import cmd_reset
        cmd_reset(cwd, everything="--all" in args[1:])

    elif command == "mcp-server":
        from slidegate.integrations.mcp_server import run_server
        run_server()

    elif command in ("help", "--help", "-h", None):
        print(USAGE)

    else:
        print(f"Unknown command: {command}", file=sys.stderr)
        print(USAGE)
        sys.exit(1)
