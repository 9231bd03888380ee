"""Read-only views of planner records for debug output and UIs."""

from __future__ import annotations

from typing import Iterable

import polars as pl

from goap.datum import LocalState
from goap.planner import Planner

PLANNER_SCHEMA: dict[str, pl.DataType] = {
    "agent": pl.Utf8,
    "phase": pl.Utf8,
    "is_planning": pl.Boolean,
    "current_action": pl.Utf8,
    "next_action": pl.Utf8,
    "remaining_effects": pl.UInt32,
    "plan_cost": pl.Int64,
    "goal": pl.Utf8,
    "goal_epoch": pl.UInt32,
}

FACT_SCHEMA: dict[str, pl.DataType] = {
    "agent": pl.Utf8,
    "key": pl.Utf8,
    "kind": pl.Utf8,
    "value": pl.Utf8,
}


def format_state(state: LocalState) -> str:
    return "\n".join(f"{key}: {datum}" for key, datum in sorted(state.items()))


def planners_frame(planners: Iterable[Planner]) -> pl.DataFrame:
    """One row per planner summarising its execution status."""
    rows = []
    for planner in planners:
        plan = planner.current_plan
        rows.append(
            {
                "agent": planner.name,
                "phase": planner.phase.value,
                "is_planning": planner.is_planning,
                "current_action": planner.current_action.key if planner.current_action else None,
                "next_action": plan.next_action if plan else None,
                "remaining_effects": plan.remaining if plan else 0,
                "plan_cost": plan.cost if plan else None,
                "goal": str(plan.goal) if plan else None,
                "goal_epoch": planner.goal_epoch,
            }
        )
    return pl.DataFrame(rows, schema=PLANNER_SCHEMA)


def facts_frame(planners: Iterable[Planner]) -> pl.DataFrame:
    """Long-form table of every planner's fact snapshot."""
    rows = [
        {"agent": planner.name, "key": key, "kind": datum.kind.name, "value": str(datum)}
        for planner in planners
        for key, datum in sorted(planner.state.items())
    ]
    return pl.DataFrame(rows, schema=FACT_SCHEMA).sort(["agent", "key"])
