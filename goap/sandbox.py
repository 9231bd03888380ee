"""A minimal host-side collaborator for running planners headless.

:class:`SandboxAgent` keeps raw fact values in a dict and the set of
attached marker keys.  :func:`perform_marked_actions` plays the role of the
per-action executors: for every attached marker it applies that action's
mutators to the agent's *real* facts, clamps them to the configured bounds
and removes the marker.  Clamping only happens here, never during search.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Set, Tuple

import structlog

from goap.config import AgentDefinition
from goap.datum import LocalState, apply_all
from goap.planner import FactBinding, Planner, create_planner

log = structlog.get_logger()

Bounds = Mapping[str, Tuple[float, float]]


class SandboxAgent:
    def __init__(self, name: str, facts: Mapping[str, Any] | None = None):
        self.name = name
        self.facts: Dict[str, Any] = dict(facts or {})
        self.markers: Set[str] = set()

    def __repr__(self) -> str:
        return f"SandboxAgent({self.name!r}, markers={sorted(self.markers)})"


class SandboxMarker:
    """Marker capability keyed by action name."""

    def __init__(self, key: str):
        self.key = key

    def attach(self, agent: SandboxAgent) -> None:
        agent.markers.add(self.key)

    def detach(self, agent: SandboxAgent) -> None:
        agent.markers.discard(self.key)

    def is_attached(self, agent: SandboxAgent) -> bool:
        return self.key in agent.markers

    def __repr__(self) -> str:
        return f"SandboxMarker({self.key!r})"


def build_agent(definition: AgentDefinition) -> Tuple[SandboxAgent, Planner]:
    """Create an agent and its planner from a parsed definition."""
    agent = SandboxAgent(definition.name, definition.state.to_values())
    bindings = [FactBinding.item(key) for key in definition.state]
    planner = create_planner(
        agent,
        [(action, SandboxMarker(action.key)) for action in definition.actions],
        definition.goals,
        bindings=bindings,
        name=definition.name,
    )
    return agent, planner


def clamp(values: Dict[str, Any], bounds: Bounds) -> None:
    for key, (lo, hi) in bounds.items():
        if key in values and not isinstance(values[key], bool):
            value = values[key]
            values[key] = type(value)(min(max(value, lo), hi))


def perform_marked_actions(
    agent: SandboxAgent, planner: Planner, bounds: Bounds | None = None
) -> List[str]:
    """Carry out every attached action and detach its marker."""
    performed = []
    for key in sorted(agent.markers):
        action, marker = planner.lookup(key)
        result = apply_all(action.mutators, LocalState.from_values(agent.facts)).to_values()
        if bounds:
            clamp(result, bounds)
        agent.facts.update(result)
        marker.detach(agent)
        performed.append(key)
        log.debug("Sandbox performed action", agent=agent.name, action=key)
    return performed
