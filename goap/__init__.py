"""Goal-oriented action planning.

Agents describe their world as typed facts, register costed actions with
preconditions and effects, and list goals in priority order.  The search
finds the cheapest action sequence toward the first goal that is not yet
met; the scheduler runs that search on a worker thread, and the executor
steps through the resulting plan one action marker at a time.
"""

from __future__ import annotations

from goap.actions import (
    Action,
    Effect,
    Goal,
    Plan,
    satisfies,
    simple_action,
    simple_decrement_action,
    simple_increment_action,
)
from goap.datum import (
    Compare,
    CompareOp,
    Datum,
    DatumKind,
    LocalState,
    Mutator,
    MutatorOp,
    Precondition,
    apply,
    apply_all,
    evaluate,
)
from goap.driver import PlannerLoop, every_n_ticks, when_idle
from goap.executor import execute_plan
from goap.planner import ActionMarker, FactBinding, Planner, PlannerPhase, create_planner
from goap.scheduler import PlanScheduler, UpdatePlan
from goap.search import DEFAULT_MAX_EXPANSIONS, find_plan, make_plan

__all__ = [
    "Action",
    "ActionMarker",
    "Compare",
    "CompareOp",
    "DEFAULT_MAX_EXPANSIONS",
    "Datum",
    "DatumKind",
    "Effect",
    "FactBinding",
    "Goal",
    "LocalState",
    "Mutator",
    "MutatorOp",
    "Plan",
    "PlanScheduler",
    "Planner",
    "PlannerLoop",
    "PlannerPhase",
    "Precondition",
    "UpdatePlan",
    "apply",
    "apply_all",
    "create_planner",
    "evaluate",
    "every_n_ticks",
    "execute_plan",
    "find_plan",
    "make_plan",
    "satisfies",
    "simple_action",
    "simple_decrement_action",
    "simple_increment_action",
    "when_idle",
]
