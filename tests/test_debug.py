import polars as pl

from goap.actions import Goal, simple_action
from goap.datum import Compare, LocalState
from goap.debug import facts_frame, format_state, planners_frame
from goap.executor import execute_plan
from goap.planner import create_planner
from goap.sandbox import SandboxAgent, SandboxMarker
from goap.search import find_plan


def make_planner(name):
    agent = SandboxAgent(name, {"is_tired": True, "energy": 2.5})
    sleep = simple_action("sleep", "is_tired", False)
    goal = Goal.from_reqs(("is_tired", Compare.equals(False)))
    return create_planner(
        agent,
        [(sleep, SandboxMarker("sleep"))],
        [goal],
        state=LocalState.from_values(agent.facts),
        name=name,
    )


def test_format_state_is_sorted_and_readable():
    state = LocalState.from_values({"is_tired": True, "energy": 2.5, "gold": 3})
    assert format_state(state) == "energy: 2.50\ngold: 3\nis_tired: true"


def test_planners_frame_reports_execution_status():
    idle = make_planner("idle")
    busy = make_planner("busy")
    busy.current_plan = find_plan(busy.state, busy.actions, busy.goals)

    frame = planners_frame([idle, busy])
    assert frame.columns == [
        "agent",
        "phase",
        "is_planning",
        "current_action",
        "next_action",
        "remaining_effects",
        "plan_cost",
        "goal",
        "goal_epoch",
    ]
    rows = {row["agent"]: row for row in frame.iter_rows(named=True)}
    assert rows["idle"]["phase"] == "idle"
    assert rows["idle"]["plan_cost"] is None
    assert rows["busy"]["phase"] == "executing"
    assert rows["busy"]["next_action"] == "sleep"
    assert rows["busy"]["remaining_effects"] == 1

    execute_plan(busy)
    row = planners_frame([busy]).row(0, named=True)
    assert row["current_action"] == "sleep"
    assert row["remaining_effects"] == 0


def test_empty_frames_keep_schema():
    assert planners_frame([]).height == 0
    assert facts_frame([]).schema["value"] == pl.Utf8


def test_facts_frame_is_long_form():
    frame = facts_frame([make_planner("a"), make_planner("b")])
    assert frame.height == 4
    assert frame.filter(pl.col("agent") == "a")["key"].to_list() == ["energy", "is_tired"]


def test_describe_lists_actions_and_plan():
    planner = make_planner("sleeper")
    planner.current_plan = find_plan(planner.state, planner.actions, planner.goals)
    text = planner.describe()
    assert "Planner sleeper [executing]" in text
    assert "sleep (cost 1)" in text
    assert "Plan: sleep (cost 1, 1 left)" in text
