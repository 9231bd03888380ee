"""Stepwise plan execution.

Each call to :func:`execute_plan` advances a planner by at most one action:

- an attached marker means the previous step is still being carried out,
  so nothing happens;
- otherwise the next effect is popped and its action's marker attached;
- an exhausted plan is cleared and the planner returns to idle.

The executor never touches domain facts.  Performing the action and
removing its marker is the collaborator's job.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import structlog

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from goap.actions import Action
    from goap.planner import Planner

log = structlog.get_logger()


def execute_plan(planner: "Planner") -> Optional["Action"]:
    """Advance ``planner`` by one step; return the newly activated action."""
    if planner.has_active_marker():
        return None

    plan = planner.current_plan
    if plan is None:
        planner.current_action = None
        return None

    if not plan.effects:
        log.debug("Current plan is finished", agent=planner.name, goal=str(plan.goal))
        planner.current_plan = None
        planner.current_action = None
        return None

    effect = plan.effects.pop()
    action, marker = planner.lookup(effect.action)

    if action != planner.current_action:
        # Clear every marker before switching; a stale one from an earlier
        # plan must not stay active alongside the new action.
        planner.detach_all_markers()

    marker.attach(planner.agent)
    planner.current_action = action
    log.debug(
        "Action activated",
        agent=planner.name,
        action=action.key,
        remaining=len(plan.effects),
    )
    return action
