"""NavigationGuard: every input channel goes through the same legality check.

Lessons used (tests/.slidegate/lessons/):
  scenario.yaml   0 | R[1..5] → H{A[6], B[7]} → G[8, 9]
  linear.yaml     title[0] | R[1..3] → N2[4, 5] → N3[6] | report[7] (intro on)
"""
from __future__ import annotations

from slidegate.engine.signals import PositionSettled

# ─── Boundary enforcement ───

def test_exit_boundary_blocks_every_forward_channel(rig_factory):
    rig = rig_factory("scenario.yaml", position=5)
    guard = rig.guard

    assert guard.on_wheel(0, 120) is True

    guard.on_touch_start(300, 50)
    assert guard.on_touch_move(200, 50) is True
    guard.on_touch_end()

    assert guard.on_key("ArrowRight") is True
    decision = guard.navigate_to(6)
    assert decision.blocked
    assert decision.target == 5

    assert rig.drag(6.0) == 5
    assert rig.viewport.offset == 5.0
    assert guard.last_valid_position == 5
    assert {b.reason for b in rig.blocked()} == {"boundary_not_completed"}


def test_completion_opens_the_next_position(rig_factory):
    rig = rig_factory("linear.yaml", position=3)
    assert rig.guard.advance().blocked
    rig.graph.complete_node("R")
    decision = rig.guard.advance()
    assert not decision.blocked
    assert rig.guard.last_valid_position == 4


def test_momentum_stops_at_the_next_uncompleted_exit(rig_factory):
    rig = rig_factory("linear.yaml", position=4)
    rig.graph.complete_node("R")
    decision = rig.guard.decide(4, 7)
    assert decision.target == 5
    assert decision.reason == "boundary_not_completed"
    assert rig.drag(7.0) == 5


def test_decide_has_no_side_effects(rig_factory):
    rig = rig_factory("linear.yaml", position=3)
    rig.guard.decide(3, 6)
    rig.guard.decide(3, 0)
    assert rig.guard.last_valid_position == 3
    assert rig.viewport.moves == []
    assert rig.signals == []


# ─── Branch siblings ───

def test_scenario_branches_in_order(rig_factory):
    rig = rig_factory("scenario.yaml", position=5)
    graph, guard = rig.graph, rig.guard

    assert guard.decide(5, 6).blocked
    graph.complete_node("R")
    assert graph.state.unlocked == {"R", "H", "A", "B"}
    # Unlocked but not entered
    assert guard.decide(5, 6).reason == "target_locked"

    graph.enter_node("A")
    assert not guard.navigate_to(6).blocked
    assert guard.decide(6, 7).reason == "boundary_not_completed"

    graph.complete_node("A")
    assert guard.decide(6, 7).reason == "target_locked"
    graph.enter_node("B")
    assert guard.navigate_to(7).target == 7

    graph.complete_node("B")
    assert graph.is_unlocked("G")
    assert guard.navigate_to(8).target == 8


def test_backward_skips_unentered_siblings_without_feedback(rig_factory):
    rig = rig_factory("scenario.yaml", position=5)
    rig.graph.complete_node("R")
    rig.graph.enter_node("B")

    assert rig.guard.navigate_to(7).target == 7
    assert rig.drag(6.0) == 5
    assert rig.blocked() == []


def test_map_entry_leaves_an_unfinished_exit_behind(rig_factory):
    rig = rig_factory("scenario.yaml", position=5)
    rig.graph.complete_node("R")
    rig.graph.enter_node("A")
    rig.guard.navigate_to(6)

    rig.graph.enter_node("B")
    assert rig.guard.navigate_to(7).target == 7


def test_completed_branch_stays_reviewable(rig_factory):
    rig = rig_factory("scenario.yaml", position=5)
    for node_id in ("R", "A", "B"):
        rig.graph.complete_node(node_id)
    rig.graph.enter_node("G")
    rig.guard.navigate_to(8)
    assert rig.drag(6.0) == 6


# ─── Positions outside the graph ───

def test_unmapped_positions_are_open_backward(rig_factory):
    rig = rig_factory("linear.yaml", position=7)
    # N2 is still locked, so the nearest legal position below 5 is R's exit
    assert rig.drag(5.0) == 3
    assert rig.drag(0.0) == 0


def test_unmapped_positions_are_capped_forward(rig_factory):
    rig = rig_factory("linear.yaml", position=6)
    for node_id in ("R", "N2", "N3"):
        rig.graph.complete_node(node_id)
    decision = rig.guard.decide(6, 7)
    assert decision.target == 6
    assert decision.reason == "target_locked"


# ─── Intro ───

def test_intro_holds_the_title_slide(rig_factory):
    rig = rig_factory("linear.yaml", position=0)
    assert rig.guard.on_key("ArrowRight") is True
    assert rig.guard.last_valid_position == 0
    assert rig.blocked()[0].reason == "intro_not_played"

    rig.graph.start_journey()
    rig.guard.advance()
    assert rig.guard.last_valid_position == 1


# ─── Input channels ───

def test_small_drags_are_not_swipes(rig_factory):
    rig = rig_factory("linear.yaml", position=3)
    guard = rig.guard
    guard.on_touch_start(300, 0)
    assert guard.on_touch_move(280, 0) is False
    assert rig.blocked() == []

    assert guard.on_touch_move(250, 0) is True
    # Once a gesture is blocked it stays blocked
    assert guard.on_touch_move(299, 0) is True
    guard.on_touch_end()

    guard.on_touch_start(300, 0)
    assert guard.on_touch_move(295, 0) is False


def test_legal_swipe_passes_through(rig_factory):
    rig = rig_factory("linear.yaml", position=1)
    rig.guard.on_touch_start(300, 0)
    assert rig.guard.on_touch_move(100, 0) is False


def test_advance_keys_and_passthrough(rig_factory):
    rig = rig_factory("linear.yaml", position=1)
    guard = rig.guard

    assert guard.on_key("a") is False
    assert guard.last_valid_position == 1

    assert guard.on_key(" ") is True
    assert guard.last_valid_position == 2

    assert guard.on_key("Enter", editing=True) is False
    assert guard.on_key("ArrowRight", overlay_open=True) is False
    assert guard.last_valid_position == 2


def test_backward_wheel_never_blocks(rig_factory):
    rig = rig_factory("linear.yaml", position=3)
    assert rig.guard.on_wheel(0, -100) is False
    assert rig.guard.on_wheel(-50, 0) is False
    assert rig.blocked() == []


def test_blocked_feedback_has_a_cooldown(rig_factory):
    rig = rig_factory("linear.yaml", position=3)
    assert rig.guard.on_wheel(0, 10)
    assert rig.guard.on_wheel(0, 10)
    assert len(rig.blocked()) == 1

    rig.scheduler.advance(1.0)
    assert rig.guard.on_wheel(0, 10)
    assert len(rig.blocked()) == 2


# ─── Scroll observation ───

def test_scroll_is_debounced(rig_factory):
    rig = rig_factory("linear.yaml", position=1)
    rig.viewport.drag_to(2.0)
    rig.guard.on_scroll()
    rig.scheduler.advance(0.05)
    rig.guard.on_scroll()
    rig.scheduler.advance(0.05)
    assert rig.guard.last_valid_position == 1

    rig.scheduler.advance(0.1)
    assert rig.guard.last_valid_position == 2
    assert PositionSettled(2, "R") in rig.signals


def test_reconcile_waits_out_a_snap_in_flight_then_corrects(rig_factory):
    rig = rig_factory("linear.yaml", position=3)
    rig.viewport.drag_to(4.0)
    rig.guard.animating = True
    rig.guard.on_scroll()
    rig.scheduler.advance(0.2)
    assert rig.viewport.offset == 4.0
    assert rig.guard.last_valid_position == 3

    # No new scroll event: the pending check runs once the lock clears
    rig.guard.animating = False
    rig.scheduler.advance(0.05)
    assert rig.viewport.offset == 3.0
    assert rig.guard.last_valid_position == 3


def test_redrag_before_the_snap_releases_is_corrected(rig_factory):
    rig = rig_factory("scenario.yaml", position=5)
    rig.guard.start()
    rig.viewport.drag_to(6.0)
    for _ in range(60):
        rig.scheduler.advance(1 / 60)
        if rig.viewport.offset == 5.0:
            break
    assert rig.viewport.offset == 5.0
    assert rig.guard.animating

    # Back onto the same illegal slide before the release frame
    rig.viewport.drag_to(6.0)
    rig.scheduler.advance(2.0)
    rig.guard.stop()
    assert rig.viewport.offset == 5.0
    assert rig.guard.last_valid_position == 5
    assert rig.guard.animating is False


def test_corrective_snaps_are_immediate(rig_factory):
    rig = rig_factory("linear.yaml", position=3)
    assert rig.drag(4.0) == 3
    assert rig.viewport.moves
    assert all(smooth is False for _, smooth in rig.viewport.moves)
    assert rig.guard.animating is False


def test_polling_catches_moves_without_scroll_events(rig_factory):
    rig = rig_factory("linear.yaml", position=3)
    rig.guard.start()
    rig.viewport.drag_to(5.0)
    rig.scheduler.advance(0.5)
    rig.guard.stop()
    assert rig.viewport.offset == 3.0
    assert rig.guard.last_valid_position == 3


# ─── Cache ───

def test_cache_follows_unlocks(rig_factory):
    rig = rig_factory("linear.yaml", position=3)
    assert rig.guard.max_reachable_position == 3
    rig.graph.complete_node("R")
    assert rig.guard.max_reachable_position == 5


def test_cache_heals_when_state_changes_silently(rig_factory):
    rig = rig_factory("linear.yaml", position=3)
    assert rig.guard.max_reachable_position == 3
    rig.graph.adopt('{"completed": ["R", "N2"], "unlocked": ["R", "N2", "N3"], "current": "N3"}')
    assert rig.guard.max_reachable_position == 6


# ─── Restore ───

def test_restore_is_clamped_to_what_is_reachable(rig_factory):
    rig = rig_factory("linear.yaml", position=0)
    assert rig.guard.restore(6) == 3
    assert rig.viewport.offset == 3.0
    assert rig.guard.last_valid_position == 3


def test_restore_never_lands_on_an_unentered_sibling(rig_factory):
    rig = rig_factory("scenario.yaml", position=0)
    rig.graph.complete_node("R")
    assert rig.guard.restore(7) == 5
