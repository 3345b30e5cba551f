from __future__ import annotations

import sys
from pathlib import Path

from slidegate.engine import LessonSession


def open_session(cwd: str) -> LessonSession:
    """Open the loaded lesson, or exit 1 with a hint on stderr."""
    try:
        return LessonSession(Path(cwd) / ".slidegate")
    except FileNotFoundError as e:
        print(e, file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"✗ Parse error: {e}", file=sys.stderr)
        sys.exit(1)
