"""slidegate reset — forget progress and history for the loaded lesson."""
from __future__ import annotations

from pathlib import Path

from slidegate.engine.session import read_loaded
from slidegate.store.state import ProgressStore


def cmd_reset(cwd: str, everything: bool = False):
    project_dir = Path(cwd) / ".slidegate"
    db_path = project_dir / "progress.db"

    if not db_path.exists():
        print("Nothing to reset — no progress database found.")
        return

    lesson = None if everything else read_loaded(project_dir)
    store = ProgressStore(db_path)
    try:
        store.reset(lesson)
    finally:
        store.close()

    if lesson:
        print(f'Progress cleared for "{lesson}". Run `slidegate start` to begin again.')
    else:
        print("All progress cleared.")
