"""Per-tick driver enforcing the planner phase order.

For every registered planner a tick runs, in order:

1. fact sync from the agent's bindings,
2. re-plan triggers (timers, idle detection, custom predicates),
3. a non-blocking poll for finished searches,
4. at most one execution step.

Running these out of order risks planning or acting on stale facts, so
hosts should call :meth:`PlannerLoop.tick` instead of the pieces directly.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Self

import structlog

from goap.executor import execute_plan
from goap.planner import Planner, PlannerPhase
from goap.scheduler import PlanScheduler

log = structlog.get_logger()

Trigger = Callable[[Planner, int], bool]


def every_n_ticks(n: int) -> Trigger:
    """Fire on ticks 0, n, 2n, ..."""
    if n <= 0:
        raise ValueError(f"Trigger interval must be positive, got {n}")

    def _trigger(planner: Planner, tick: int) -> bool:
        return tick % n == 0

    return _trigger


def when_idle() -> Trigger:
    """Fire whenever the planner has no plan and no search in flight."""

    def _trigger(planner: Planner, tick: int) -> bool:
        return planner.phase is PlannerPhase.IDLE

    return _trigger


class PlannerLoop:
    """Owns a set of planners and drives them one tick at a time."""

    def __init__(
        self: Self,
        scheduler: PlanScheduler,
        triggers: Iterable[Trigger] = (),
    ):
        self.scheduler = scheduler
        self.triggers: List[Trigger] = list(triggers)
        self.planners: List[Planner] = []
        self._planner_triggers: Dict[int, List[Trigger]] = {}
        self.tick_count: int = 0

    def add(self: Self, planner: Planner, triggers: Optional[Iterable[Trigger]] = None) -> Planner:
        """Register ``planner``; ``triggers`` replaces the loop-wide defaults for it."""
        self.planners.append(planner)
        if triggers is not None:
            self._planner_triggers[id(planner)] = list(triggers)
        log.debug("Planner added to loop", agent=planner.name, total=len(self.planners))
        return planner

    def remove(self: Self, planner: Planner) -> None:
        self.planners.remove(planner)
        self._planner_triggers.pop(id(planner), None)

    def step(self: Self, planner: Planner) -> None:
        planner.sync_state()

        triggers = self._planner_triggers.get(id(planner), self.triggers)
        if any(trigger(planner, self.tick_count) for trigger in triggers):
            self.scheduler.request_plan(planner)

        self.scheduler.poll(planner)
        execute_plan(planner)

    def tick(self: Self) -> None:
        for planner in self.planners:
            self.step(planner)
        self.tick_count += 1
