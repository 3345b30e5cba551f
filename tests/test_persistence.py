"""Progression blob codec and the progress stores."""
from __future__ import annotations

import json

import pytest

from slidegate.engine.persistence import decode_blob, deserialize_state, serialize_state
from slidegate.errors import CorruptPersistedState
from slidegate.store.state import MemoryStore, ProgressStore
from slidegate.types import ProgressionState

# ─── Codec ───

def test_round_trip_is_byte_identical():
    state = ProgressionState(
        current="A",
        completed={"R", "N2"},
        unlocked={"R", "N2", "H", "B", "A"},
        accessed={"H", "A", "B", "N2"},
        intro_played=True,
    )
    blob = serialize_state(state)
    again = serialize_state(deserialize_state(blob, "R"))
    assert again == blob
    assert deserialize_state(blob, "R") == state


def test_serialized_sets_are_sorted():
    state = ProgressionState(current="R", unlocked={"b", "a", "R"})
    data = json.loads(serialize_state(state))
    assert data["unlocked"] == ["R", "a", "b"]
    assert sorted(data) == ["accessed", "completed", "current", "intro_played", "unlocked"]


def test_missing_blob_is_the_initial_state():
    assert deserialize_state(None, "R") == ProgressionState.initial("R")


@pytest.mark.parametrize("blob", ["", "{oops", "[1, 2]", "null", b"\xff\xfe"])
def test_unreadable_blob_falls_back_to_root_only(blob, caplog):
    state = deserialize_state(blob, "R")
    assert state == ProgressionState.initial("R")
    assert "Discarding saved progress" in caplog.text


def test_missing_fields_default_individually():
    state = deserialize_state('{"completed": ["R"]}', "R")
    assert state.completed == {"R"}
    assert state.unlocked == {"R"}
    assert state.current == "R"
    assert state.accessed == set()
    assert state.intro_played is False


def test_malformed_fields_default_individually(caplog):
    state = deserialize_state(
        '{"completed": "R", "unlocked": ["R", 3], "current": 7, "accessed": ["A"], "intro_played": "yes"}',
        "R",
    )
    assert state.completed == set()
    assert state.unlocked == {"R"}
    assert state.current == "R"
    assert state.accessed == {"A"}
    assert state.intro_played is False
    assert "'completed' is malformed" in caplog.text
    assert "'current' is malformed" in caplog.text


def test_legacy_blob_without_accessed_or_intro():
    blob = '{"completedNodes": ["N1"], "completed": ["N1"], "unlocked": ["N1", "N2"], "current": "N2"}'
    state = deserialize_state(blob, "N1")
    assert state.current == "N2"
    assert state.unlocked == {"N1", "N2"}


def test_strict_decoder_raises():
    with pytest.raises(CorruptPersistedState):
        decode_blob("[]")
    with pytest.raises(CorruptPersistedState):
        decode_blob("{")
    assert decode_blob('{"a": 1}') == {"a": 1}


# ─── Stores ───

def test_memory_store():
    store = MemoryStore({"k": "v"})
    assert store.get("k") == "v"
    store.set("k", "w")
    assert store.get("k") == "w"
    store.delete("k")
    store.delete("k")
    assert store.get("k") is None


def test_progress_store_upserts(tmp_path):
    store = ProgressStore(tmp_path / "progress.db")
    try:
        assert store.get("progress:x") is None
        store.set("progress:x", "1")
        store.set("progress:x", "2")
        assert store.get("progress:x") == "2"
        store.delete("progress:x")
        assert store.get("progress:x") is None
    finally:
        store.close()


def test_progress_store_persists_across_connections(tmp_path):
    db = tmp_path / "progress.db"
    store = ProgressStore(db)
    store.set("slide:x", "4")
    store.close()

    store = ProgressStore(db)
    try:
        assert store.get("slide:x") == "4"
    finally:
        store.close()


def test_history_is_newest_first_and_per_lesson(tmp_path):
    store = ProgressStore(tmp_path / "progress.db")
    try:
        store.add_history("a", "N1", "start")
        store.add_history("b", "X", "start")
        store.add_history("a", "N1", "complete", '{"outcome": "advanced"}')

        rows = store.get_history(10, lesson="a")
        assert [r["action"] for r in rows] == ["complete", "start"]
        assert rows[0]["data"] == '{"outcome": "advanced"}'
        assert len(store.get_history(10)) == 3
        assert len(store.get_history(1)) == 1
    finally:
        store.close()


def test_reset_one_lesson_or_everything(tmp_path):
    store = ProgressStore(tmp_path / "progress.db")
    try:
        for lesson in ("a", "b"):
            store.set(f"progress:{lesson}", "{}")
            store.set(f"slide:{lesson}", "0")
            store.add_history(lesson, None, "start")

        store.reset("a")
        assert store.get("progress:a") is None
        assert store.get("slide:a") is None
        assert store.get("progress:b") == "{}"
        assert store.get_history(10, lesson="a") == []

        store.reset()
        assert store.get("progress:b") is None
        assert store.get_history(10) == []
    finally:
        store.close()


def test_reset_matches_lesson_names_exactly(tmp_path):
    store = ProgressStore(tmp_path / "progress.db")
    try:
        for lesson in ("a_b", "aXb", "50%"):
            store.set(f"progress:{lesson}", "{}")
            store.set(f"slide:{lesson}", "1")

        store.reset("a_b")
        assert store.get("progress:a_b") is None
        assert store.get("slide:a_b") is None
        assert store.get("progress:aXb") == "{}"
        assert store.get("slide:aXb") == "1"

        store.reset("50%")
        assert store.get("progress:50%") is None
        assert store.get("progress:aXb") == "{}"
    finally:
        store.close()
