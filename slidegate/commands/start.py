"""slidegate start — leave the title slide and begin (or resume) the loaded lesson."""
from __future__ import annotations

from slidegate.commands import open_session


def cmd_start(cwd: str):
    session = open_session(cwd)
    try:
        result = session.start_journey()
        if result:
            print(result.message)
        else:
            print(f"Resuming: {session.status()['summary']}")
    finally:
        session.close()
