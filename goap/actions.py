"""Declarative action and goal definitions plus the plan they produce."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, List, Tuple

import structlog

from goap.datum import (
    Compare,
    LocalState,
    Mutator,
    Precondition,
    apply_all,
    evaluate,
)

log = structlog.get_logger()


@dataclass(frozen=True)
class Action:
    """A named, costed transformation.

    Preconditions are AND-combined; mutators are applied in order.  Actions
    are immutable so a single definition can be shared by every search.
    The ``with_*`` helpers return modified copies.
    """

    key: str
    preconditions: Tuple[Precondition, ...] = ()
    mutators: Tuple[Mutator, ...] = ()
    cost: int = 1

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("Action key must be a non-empty string")
        if isinstance(self.cost, bool) or not isinstance(self.cost, int) or self.cost < 0:
            log.error("Invalid action cost", action=self.key, cost=self.cost)
            raise ValueError(f"Action '{self.key}' cost must be a non-negative int, got {self.cost!r}")

    def with_precondition(self, precondition: Precondition | Tuple[str, Any]) -> "Action":
        pre = Precondition.coerce(precondition)
        return replace(self, preconditions=self.preconditions + (pre,))

    def with_mutator(self, mutator: Mutator) -> "Action":
        return replace(self, mutators=self.mutators + (mutator,))

    def set_cost(self, cost: int) -> "Action":
        return replace(self, cost=cost)

    def is_applicable(self, state: LocalState) -> bool:
        return all(evaluate(pre, state) for pre in self.preconditions)

    def apply(self, state: LocalState) -> LocalState:
        return apply_all(self.mutators, state)


def simple_action(key: str, fact: str, value: Any) -> Action:
    """Action with a single ``Set`` mutator and cost 1."""
    return Action(key).with_mutator(Mutator.set(fact, value))


def simple_increment_action(key: str, fact: str, amount: Any) -> Action:
    return Action(key).with_mutator(Mutator.increase(fact, amount))


def simple_decrement_action(key: str, fact: str, amount: Any) -> Action:
    return Action(key).with_mutator(Mutator.decrease(fact, amount))


@dataclass(frozen=True)
class Goal:
    """AND-combined set of required fact values."""

    requirements: Tuple[Precondition, ...] = ()

    @classmethod
    def from_reqs(cls, *reqs: Precondition | Tuple[str, Any]) -> "Goal":
        # Accept both from_reqs(a, b) and from_reqs([a, b]).
        if len(reqs) == 1 and isinstance(reqs[0], list):
            reqs = tuple(reqs[0])
        return cls(tuple(Precondition.coerce(r) for r in reqs))

    def with_req(self, key: str, compare: Compare | Any) -> "Goal":
        return replace(
            self, requirements=self.requirements + (Precondition.coerce((key, compare)),)
        )

    def is_satisfied(self, state: LocalState) -> bool:
        return all(evaluate(req, state) for req in self.requirements)

    def __str__(self) -> str:
        return " & ".join(str(r) for r in self.requirements) or "<empty goal>"


def satisfies(goal: Goal, state: LocalState) -> bool:
    return goal.is_satisfied(state)


@dataclass(frozen=True, eq=True)
class Effect:
    """One planned step: which action runs and the simulated outcome."""

    action: str
    mutators: Tuple[Mutator, ...]
    state: LocalState
    cost: int


@dataclass
class Plan:
    """Search result for one goal.

    ``effects`` is stored in reverse execution order so the next step is
    taken with ``effects.pop()``.  ``cost`` is the total for the whole plan,
    including steps already popped.
    """

    effects: List[Effect]
    cost: int
    goal: Goal
    actions: Tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if not self.actions:
            self.actions = tuple(e.action for e in reversed(self.effects))

    @property
    def next_action(self) -> str | None:
        return self.effects[-1].action if self.effects else None

    @property
    def remaining(self) -> int:
        return len(self.effects)


def actions_by_key(actions: Iterable[Action]) -> List[Action]:
    """Sort actions by key, rejecting duplicates."""
    ordered = sorted(actions, key=lambda a: a.key)
    for prev, cur in zip(ordered, ordered[1:]):
        if prev.key == cur.key:
            log.error("Duplicate action key", action=cur.key)
            raise ValueError(f"Duplicate action key '{cur.key}'")
    return ordered
