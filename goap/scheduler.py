"""Off-tick plan computation.

The scheduler snapshots a :class:`~goap.planner.Planner`, hands the pure
search to a worker thread and later installs the result from a
non-blocking poll.  At most one search is in flight per planner; further
requests are ignored until the result has been installed.

Worker threads come from ``multiprocessing.dummy``, the same thread pool
used by the AI dispatch loop.  With ``use_worker_pool=False`` the search
runs inline when requested and is installed on the next poll, which keeps
single-threaded tests deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass
from multiprocessing.dummy import Pool as ThreadPool
from typing import TYPE_CHECKING, Any, List, Optional, Self

import structlog

from goap.actions import Goal, Plan
from goap.search import DEFAULT_MAX_EXPANSIONS, find_plan

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from goap.config import PlannerSettings
    from goap.planner import Planner

log = structlog.get_logger()


@dataclass
class UpdatePlan:
    """Request to compute a new plan for ``planner``.

    ``goals`` overrides the planner's own goal list for this search only.
    """

    planner: "Planner"
    goals: Optional[List[Goal]] = None

    @classmethod
    def from_planner(cls, planner: "Planner") -> "UpdatePlan":
        return cls(planner=planner)


class _CompletedSearch:
    """Already-finished result exposing the ``AsyncResult`` polling surface."""

    def __init__(self, func, *args, **kwargs):
        self._value: Optional[Plan] = None
        self._error: Optional[BaseException] = None
        try:
            self._value = func(*args, **kwargs)
        except Exception as e:
            self._error = e

    def ready(self) -> bool:
        return True

    def get(self, timeout: float | None = None) -> Optional[Plan]:
        if self._error is not None:
            raise self._error
        return self._value


class PlanScheduler:
    def __init__(
        self: Self,
        max_expansions: int = DEFAULT_MAX_EXPANSIONS,
        worker_threads: int = 4,
        use_worker_pool: bool = True,
        discard_stale_results: bool = False,
    ):
        if worker_threads <= 0:
            raise ValueError(f"worker_threads must be positive, got {worker_threads}")
        if max_expansions <= 0:
            raise ValueError(f"max_expansions must be positive, got {max_expansions}")
        self.max_expansions = max_expansions
        self.worker_threads = worker_threads
        self.use_worker_pool = use_worker_pool
        self.discard_stale_results = discard_stale_results
        self._pool: Any = ThreadPool(worker_threads) if use_worker_pool else None
        log.info(
            "PlanScheduler initialized",
            worker_threads=worker_threads if use_worker_pool else 0,
            max_expansions=max_expansions,
            discard_stale_results=discard_stale_results,
        )

    @classmethod
    def from_settings(cls, settings: "PlannerSettings") -> "PlanScheduler":
        return cls(
            max_expansions=settings.max_expansions,
            worker_threads=settings.worker_threads,
            use_worker_pool=settings.use_worker_pool,
            discard_stale_results=settings.discard_stale_results,
        )

    # --- Lifecycle ---
    def close(self: Self) -> None:
        if self._pool is not None:
            self._pool.terminate()
            self._pool.join()
            self._pool = None

    def __enter__(self: Self) -> Self:
        return self

    def __exit__(self: Self, *exc_info) -> None:
        self.close()

    # --- Triggering ---
    def request(self: Self, event: UpdatePlan) -> bool:
        """Start a search for ``event.planner``.

        Returns ``False`` (and does nothing) if that planner already has a
        search in flight.
        """
        planner = event.planner
        if planner.is_planning:
            log.debug("Planner already computing a plan, ignoring request", agent=planner.name)
            return False
        if self.use_worker_pool and self._pool is None:
            raise RuntimeError("PlanScheduler is closed")

        state = planner.state.copy()
        actions = planner.actions
        goals = list(event.goals) if event.goals is not None else list(planner.goals)

        planner.is_planning = True
        planner._pending_epoch = planner.goal_epoch
        kwargs = {"max_expansions": self.max_expansions}
        if self._pool is not None:
            planner._pending = self._pool.apply_async(find_plan, (state, actions, goals), kwargs)
        else:
            planner._pending = _CompletedSearch(find_plan, state, actions, goals, **kwargs)
        log.debug(
            "Plan requested",
            agent=planner.name,
            goals=len(goals),
            override=event.goals is not None,
            epoch=planner.goal_epoch,
        )
        return True

    def request_plan(self: Self, planner: "Planner", goals: Optional[List[Goal]] = None) -> bool:
        return self.request(UpdatePlan(planner, goals))

    # --- Completion ---
    def poll(self: Self, planner: "Planner") -> bool:
        """Install a finished search result, if there is one.

        Never blocks.  Returns ``True`` when a result (plan or failure) was
        consumed this call.  Errors raised by the search are re-raised here
        after the planning mark is cleared.
        """
        pending = planner._pending
        if pending is None or not pending.ready():
            return False

        planner._pending = None
        try:
            plan = pending.get()
        except Exception as e:
            log.error("Plan search raised", agent=planner.name, error=str(e))
            raise
        finally:
            planner.is_planning = False

        if planner._pending_epoch != planner.goal_epoch:
            log.warning(
                "Plan result computed for outdated goals",
                agent=planner.name,
                search_epoch=planner._pending_epoch,
                current_epoch=planner.goal_epoch,
                discarded=self.discard_stale_results,
            )
            if self.discard_stale_results:
                planner.current_plan = None
                planner.current_action = None
                return True

        if plan is None:
            log.warning("Failed to make a plan for any goal", agent=planner.name)
            planner.current_plan = None
            planner.current_action = None
            return True

        planner.current_plan = plan
        log.info(
            "Plan installed",
            agent=planner.name,
            actions=list(plan.actions),
            cost=plan.cost,
            goal=str(plan.goal),
        )
        return True
