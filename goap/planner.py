"""Per-agent planner record.

A :class:`Planner` owns everything the scheduler and executor need for one
agent: the live fact snapshot, the prioritized goal list, the action table
(action key to definition plus marker capability), the current plan and the
action currently marked active.

Facts reach the record through :class:`FactBinding` objects supplied at
construction; :meth:`Planner.sync_state` reads them from the agent each tick.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
)

import structlog

from goap.actions import Action, Goal, Plan, actions_by_key
from goap.datum import Datum, LocalState

log = structlog.get_logger()


class ActionMarker(Protocol):
    """Capability that signals "this action is active" on an agent.

    The executor attaches markers; the collaborator that performs the action
    detaches its own marker once it is done or cancelled.
    """

    def attach(self, agent: Any) -> None: ...

    def detach(self, agent: Any) -> None: ...

    def is_attached(self, agent: Any) -> bool: ...


ActionsMap = Mapping[str, Tuple[Action, ActionMarker]]


@dataclass(frozen=True)
class FactBinding:
    """Reads one fact from an agent and converts it to a :class:`Datum`."""

    key: str
    read: Callable[[Any], Any]

    @classmethod
    def attribute(cls, key: str, attr: str | None = None) -> "FactBinding":
        name = attr or key
        return cls(key, lambda agent: getattr(agent, name))

    @classmethod
    def item(cls, key: str, name: str | None = None, source: str = "facts") -> "FactBinding":
        """Bind to ``agent.<source>[name]`` (``agent[name]`` if source is empty)."""
        field_name = name or key
        if source:
            return cls(key, lambda agent: getattr(agent, source)[field_name])
        return cls(key, lambda agent: agent[field_name])

    def datum(self, agent: Any) -> Datum:
        return Datum.from_value(self.read(agent))


class PlannerPhase(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    EXECUTING = "executing"


class Planner:
    def __init__(
        self,
        agent: Any,
        actions_map: ActionsMap,
        goals: Sequence[Goal],
        bindings: Iterable[FactBinding] = (),
        state: LocalState | None = None,
        name: str | None = None,
    ):
        """
        Args:
            agent: The host object markers are attached to and facts read from.
            actions_map: Action key to ``(Action, marker)``. Keys must match
                ``Action.key``.
            goals: Goals in priority order, highest first.
            bindings: Fact readers used by :meth:`sync_state`.
            state: Optional initial facts; bindings are applied on top.
            name: Label used in logs and debug output.
        """
        for key, (action, _marker) in actions_map.items():
            if key != action.key:
                log.error("Action table key mismatch", table_key=key, action=action.key)
                raise ValueError(f"Action table key '{key}' does not match action '{action.key}'")

        self.agent = agent
        self.name: str = name or getattr(agent, "name", None) or f"agent-{id(agent):x}"
        self.bindings: List[FactBinding] = list(bindings)
        self.state: LocalState = state.copy() if state is not None else LocalState()
        self._actions_map: Dict[str, Tuple[Action, ActionMarker]] = dict(actions_map)
        self._actions_for_search: Tuple[Action, ...] = tuple(
            actions_by_key(a for a, _ in self._actions_map.values())
        )
        self._goals: List[Goal] = list(goals)
        self.goal_epoch: int = 0

        self.current_action: Optional[Action] = None
        self.current_plan: Optional[Plan] = None

        # Owned by the scheduler.
        self.is_planning: bool = False
        self._pending: Any = None
        self._pending_epoch: int = 0

        self.sync_state()
        log.debug(
            "Planner created",
            agent=self.name,
            actions=list(self._actions_map),
            goals=len(self._goals),
            facts=len(self.state),
        )

    # --- Goals ---
    @property
    def goals(self) -> List[Goal]:
        return self._goals

    @goals.setter
    def goals(self, goals: Sequence[Goal]) -> None:
        self._goals = list(goals)
        self.goal_epoch += 1
        log.debug("Planner goals replaced", agent=self.name, goals=len(self._goals), epoch=self.goal_epoch)

    # --- Facts ---
    def sync_state(self) -> None:
        """Pull fresh fact values from the agent through the bindings."""
        for binding in self.bindings:
            datum = binding.datum(self.agent)
            previous = self.state.get(binding.key)
            if previous is not None and not previous.same_variant(datum):
                log.error(
                    "Fact changed variant during sync",
                    agent=self.name,
                    key=binding.key,
                    was=previous.kind.name,
                    now=datum.kind.name,
                )
                raise TypeError(
                    f"Fact '{binding.key}' changed from {previous.kind.name} to {datum.kind.name}"
                )
            self.state.set(binding.key, datum)

    # --- Actions ---
    @property
    def actions(self) -> Tuple[Action, ...]:
        """Registered actions sorted by key, as handed to the search."""
        return self._actions_for_search

    def lookup(self, key: str) -> Tuple[Action, ActionMarker]:
        try:
            return self._actions_map[key]
        except KeyError:
            log.critical("Effect refers to unregistered action", agent=self.name, action=key)
            raise KeyError(f"Action '{key}' is not registered on planner '{self.name}'") from None

    def markers(self) -> Iterator[ActionMarker]:
        for _action, marker in self._actions_map.values():
            yield marker

    def has_active_marker(self) -> bool:
        return any(marker.is_attached(self.agent) for marker in self.markers())

    def detach_all_markers(self) -> None:
        for marker in self.markers():
            marker.detach(self.agent)

    # --- Status ---
    @property
    def phase(self) -> PlannerPhase:
        if self.is_planning:
            return PlannerPhase.PLANNING
        if self.current_plan is not None:
            return PlannerPhase.EXECUTING
        return PlannerPhase.IDLE

    def describe(self) -> str:
        lines = [f"Planner {self.name} [{self.phase.value}]", "State:"]
        lines += [f"  {key}: {datum}" for key, datum in sorted(self.state.items())]
        lines.append("Goals:")
        lines += [f"  {i}: {goal}" for i, goal in enumerate(self._goals)]
        lines.append("Actions:")
        for action in self._actions_for_search:
            pre = ", ".join(str(p) for p in action.preconditions) or "-"
            muts = ", ".join(str(m) for m in action.mutators) or "-"
            lines.append(f"  {action.key} (cost {action.cost}): [{pre}] -> [{muts}]")
        if self.current_plan is not None:
            lines.append(
                f"Plan: {' -> '.join(self.current_plan.actions)} "
                f"(cost {self.current_plan.cost}, {self.current_plan.remaining} left)"
            )
        if self.current_action is not None:
            lines.append(f"Current action: {self.current_action.key}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"Planner(name={self.name!r}, phase={self.phase.value})"


def create_planner(
    agent: Any,
    actions: Iterable[Tuple[Action, ActionMarker]],
    goals: Sequence[Goal],
    bindings: Iterable[FactBinding] = (),
    state: LocalState | None = None,
    name: str | None = None,
) -> Planner:
    """Build a :class:`Planner` from ``(action, marker)`` pairs."""
    actions_map: Dict[str, Tuple[Action, ActionMarker]] = {}
    for action, marker in actions:
        if action.key in actions_map:
            log.error("Duplicate action registration", action=action.key)
            raise ValueError(f"Action '{action.key}' registered twice")
        actions_map[action.key] = (action, marker)
    return Planner(agent, actions_map, goals, bindings=bindings, state=state, name=name)
