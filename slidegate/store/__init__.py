from slidegate.store.state import MemoryStore, ProgressStore, StateStore

__all__ = ["MemoryStore", "ProgressStore", "StateStore"]
