import threading
import time

import pytest

from goap import scheduler as scheduler_module
from goap.actions import Goal, simple_action
from goap.datum import Compare, LocalState
from goap.planner import create_planner
from goap.sandbox import SandboxAgent, SandboxMarker
from goap.scheduler import PlanScheduler, UpdatePlan


def make_planner(name="agent"):
    agent = SandboxAgent(name, {"is_tired": True})
    sleep = simple_action("sleep", "is_tired", False)
    goal = Goal.from_reqs(("is_tired", Compare.equals(False)))
    planner = create_planner(
        agent,
        [(sleep, SandboxMarker("sleep"))],
        [goal],
        state=LocalState.from_values(agent.facts),
    )
    return agent, planner


def wait_for_install(scheduler, planner, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if scheduler.poll(planner):
            return True
        time.sleep(0.01)
    return False


def test_worker_pool_delivers_plan():
    _, planner = make_planner()
    with PlanScheduler(worker_threads=2) as scheduler:
        assert scheduler.request(UpdatePlan.from_planner(planner))
        assert wait_for_install(scheduler, planner)
    assert planner.is_planning is False
    assert planner.current_plan.actions == ("sleep",)


def test_poll_does_not_block_while_search_runs(monkeypatch):
    _, planner = make_planner()
    release = threading.Event()
    real_find_plan = scheduler_module.find_plan

    def slow_find_plan(*args, **kwargs):
        release.wait(5.0)
        return real_find_plan(*args, **kwargs)

    monkeypatch.setattr(scheduler_module, "find_plan", slow_find_plan)
    with PlanScheduler(worker_threads=1) as scheduler:
        scheduler.request_plan(planner)
        assert scheduler.poll(planner) is False
        assert planner.is_planning is True
        # Still in flight, so another trigger is ignored.
        assert scheduler.request_plan(planner) is False
        release.set()
        assert wait_for_install(scheduler, planner)
    assert planner.current_plan is not None


def test_planners_plan_independently():
    _, first = make_planner("first")
    _, second = make_planner("second")
    with PlanScheduler(worker_threads=2) as scheduler:
        assert scheduler.request_plan(first)
        assert scheduler.request_plan(second)
        assert wait_for_install(scheduler, first)
        assert wait_for_install(scheduler, second)
    assert first.current_plan.actions == second.current_plan.actions == ("sleep",)


def test_stale_result_is_installed_by_default():
    _, planner = make_planner()
    with PlanScheduler(use_worker_pool=False) as scheduler:
        scheduler.request_plan(planner)
        planner.goals = [Goal.from_reqs(("is_tired", Compare.equals(True)))]
        assert scheduler.poll(planner)
    assert planner.current_plan is not None
    assert planner.current_plan.actions == ("sleep",)


def test_stale_result_can_be_discarded():
    _, planner = make_planner()
    with PlanScheduler(use_worker_pool=False, discard_stale_results=True) as scheduler:
        scheduler.request_plan(planner)
        planner.goals = list(planner.goals)
        assert scheduler.poll(planner)
    assert planner.current_plan is None
    assert planner.is_planning is False


def test_failed_search_clears_previous_plan():
    _, planner = make_planner()
    with PlanScheduler(use_worker_pool=False) as scheduler:
        scheduler.request_plan(planner)
        scheduler.poll(planner)
        planner.current_action = planner.lookup("sleep")[0]
        scheduler.request_plan(planner, goals=[Goal.from_reqs(("rich", Compare.equals(True)))])
        scheduler.poll(planner)
    assert planner.current_plan is None
    assert planner.current_action is None


def test_search_errors_surface_on_poll():
    agent = SandboxAgent("broken", {"energy": 1.0})
    # Integer comparison against a float fact is a configuration error.
    rest = simple_action("rest", "energy", 5.0).with_precondition(("energy", Compare.less(3)))
    planner = create_planner(
        agent,
        [(rest, SandboxMarker("rest"))],
        [Goal.from_reqs(("energy", Compare.greater(4.0)))],
        state=LocalState.from_values(agent.facts),
    )
    with PlanScheduler(worker_threads=1) as scheduler:
        scheduler.request_plan(planner)
        with pytest.raises(TypeError):
            wait_for_install(scheduler, planner)
    assert planner.is_planning is False


def test_closed_scheduler_rejects_requests():
    _, planner = make_planner()
    scheduler = PlanScheduler(worker_threads=1)
    scheduler.close()
    with pytest.raises(RuntimeError):
        scheduler.request_plan(planner)


def test_invalid_scheduler_settings():
    with pytest.raises(ValueError):
        PlanScheduler(worker_threads=0)
    with pytest.raises(ValueError):
        PlanScheduler(max_expansions=0, use_worker_pool=False)
