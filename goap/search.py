"""Uniform-cost state-space search over world facts.

:func:`make_plan` finds the cheapest sequence of actions turning an initial
:class:`~goap.datum.LocalState` into one that satisfies a goal.  It is a pure
function of its inputs so it can run on a worker thread against a snapshot.

Frontier entries are ordered by ``(cost, action keys along the path)`` so
ties always resolve the same way.  Visited states are deduplicated by their
full content, and a hard expansion cap guards against numeric mutators that
generate an unbounded number of distinct states.
"""

from __future__ import annotations

import heapq
import time
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import structlog

from goap.actions import Action, Effect, Goal, Plan, actions_by_key
from goap.datum import Datum, LocalState

log = structlog.get_logger()

DEFAULT_MAX_EXPANSIONS = 50_000

_Fingerprint = FrozenSet[Tuple[str, Datum]]


def make_plan(
    state: LocalState,
    actions: Iterable[Action],
    goal: Goal,
    max_expansions: int = DEFAULT_MAX_EXPANSIONS,
) -> Optional[Tuple[List[Effect], int]]:
    """Search for the cheapest path from ``state`` to ``goal``.

    Returns ``(effects, cost)`` with effects in execution order, or ``None``
    when the goal is unreachable (or the expansion cap was hit).  An already
    satisfied goal yields ``([], 0)``, which callers must distinguish from
    failure.
    """
    if max_expansions <= 0:
        raise ValueError(f"max_expansions must be positive, got {max_expansions}")

    if goal.is_satisfied(state):
        return [], 0

    ordered = actions_by_key(actions)
    start = state.copy()
    start_time = time.perf_counter()

    # (cost, path keys, seq, state, effects)
    frontier: List[Tuple[int, Tuple[str, ...], int, LocalState, Tuple[Effect, ...]]] = [
        (0, (), 0, start, ())
    ]
    best_cost: Dict[_Fingerprint, int] = {start.fingerprint(): 0}
    closed: set = set()
    seq = 1
    expansions = 0

    while frontier:
        cost, path, _, node_state, effects = heapq.heappop(frontier)
        fingerprint = node_state.fingerprint()
        if fingerprint in closed:
            continue
        closed.add(fingerprint)

        if goal.is_satisfied(node_state):
            log.debug(
                "Plan found",
                goal=str(goal),
                actions=list(path),
                cost=cost,
                expansions=expansions,
                elapsed=f"{time.perf_counter() - start_time:.4f}s",
            )
            return list(effects), cost

        expansions += 1
        if expansions > max_expansions:
            log.warning(
                "Search expansion cap reached",
                goal=str(goal),
                max_expansions=max_expansions,
                frontier=len(frontier),
            )
            return None

        for action in ordered:
            if not action.is_applicable(node_state):
                continue
            child = action.apply(node_state)
            child_fp = child.fingerprint()
            if child_fp in closed:
                continue
            child_cost = cost + action.cost
            known = best_cost.get(child_fp)
            if known is not None and known <= child_cost:
                continue
            best_cost[child_fp] = child_cost
            effect = Effect(action.key, action.mutators, child, action.cost)
            heapq.heappush(
                frontier,
                (child_cost, path + (action.key,), seq, child, effects + (effect,)),
            )
            seq += 1

    log.debug(
        "Search exhausted without reaching goal",
        goal=str(goal),
        expansions=expansions,
        elapsed=f"{time.perf_counter() - start_time:.4f}s",
    )
    return None


def find_plan(
    state: LocalState,
    actions: Sequence[Action],
    goals: Sequence[Goal],
    max_expansions: int = DEFAULT_MAX_EXPANSIONS,
) -> Optional[Plan]:
    """Try goals in priority order and return the first real plan.

    Goals that already hold are treated as achieved and skipped, which lets
    lower-priority fallbacks (idling, wandering) take over.  Returns ``None``
    if no goal produces a non-empty plan.
    """
    for index, goal in enumerate(goals):
        result = make_plan(state, actions, goal, max_expansions=max_expansions)
        if result is None:
            log.debug("No plan for goal", goal=str(goal), priority=index)
            continue
        effects, cost = result
        if not effects:
            log.debug("Goal already achieved, skipping", goal=str(goal), priority=index)
            continue
        effects.reverse()
        return Plan(effects=effects, cost=cost, goal=goal)
    return None
