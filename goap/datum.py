"""Typed world facts and the primitive operations the planner reasons with.

A :class:`Datum` is a closed variant (bool, 64-bit float, 64-bit integer or
an enum member).  Facts live in a :class:`LocalState` keyed by string.  The
three pure operations used everywhere else are:

- :func:`evaluate` - does a :class:`Precondition` hold against a state?
- :func:`apply` - produce a new state with a :class:`Mutator` applied.
- ``Goal.is_satisfied`` (see :mod:`goap.actions`) - do all requirements hold?

Variant mismatches are configuration errors and raise ``TypeError``.  A
missing key is not an error: preconditions on absent facts are simply false.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Mapping, Tuple

import structlog

log = structlog.get_logger()


class DatumKind(Enum):
    BOOL = auto()
    F64 = auto()
    I64 = auto()
    ENUM = auto()


NUMERIC_KINDS = (DatumKind.F64, DatumKind.I64)


@dataclass(frozen=True)
class Datum:
    """A single typed fact value."""

    kind: DatumKind
    value: Any

    @classmethod
    def boolean(cls, value: bool) -> "Datum":
        return cls(DatumKind.BOOL, bool(value))

    @classmethod
    def f64(cls, value: float) -> "Datum":
        return cls(DatumKind.F64, float(value))

    @classmethod
    def i64(cls, value: int) -> "Datum":
        return cls(DatumKind.I64, int(value))

    @classmethod
    def enum(cls, member: Enum) -> "Datum":
        if not isinstance(member, Enum):
            raise TypeError(f"Enum datum requires an Enum member, got {member!r}")
        return cls(DatumKind.ENUM, member)

    @classmethod
    def from_value(cls, value: Any) -> "Datum":
        """Infer the variant from a plain Python value.

        ``bool`` is checked before ``int`` since it is a subclass of it.
        """
        if isinstance(value, Datum):
            return value
        if isinstance(value, bool):
            return cls.boolean(value)
        if isinstance(value, Enum):
            return cls.enum(value)
        if isinstance(value, int):
            return cls.i64(value)
        if isinstance(value, float):
            return cls.f64(value)
        log.error("Unsupported fact value type", value=repr(value), type=type(value).__name__)
        raise TypeError(f"Cannot build a Datum from {type(value).__name__}: {value!r}")

    @property
    def is_numeric(self) -> bool:
        return self.kind in NUMERIC_KINDS

    def same_variant(self, other: "Datum") -> bool:
        if self.kind is not other.kind:
            return False
        if self.kind is DatumKind.ENUM:
            return type(self.value) is type(other.value)
        return True

    def order_key(self) -> Any:
        # Enum members order by declaration position.
        if self.kind is DatumKind.ENUM:
            return list(type(self.value)).index(self.value)
        return self.value

    def __str__(self) -> str:
        if self.kind is DatumKind.BOOL:
            return "true" if self.value else "false"
        if self.kind is DatumKind.F64:
            return f"{self.value:.2f}"
        if self.kind is DatumKind.ENUM:
            return f"{type(self.value).__name__}.{self.value.name}"
        return str(self.value)


def _require_same_variant(expected: Datum, found: Datum, key: str, context: str) -> None:
    if not expected.same_variant(found):
        log.error(
            "Fact variant mismatch",
            key=key,
            context=context,
            expected=expected.kind.name,
            found=found.kind.name,
        )
        raise TypeError(
            f"{context} on '{key}' expects {expected.kind.name} but state holds "
            f"{found.kind.name} ({found.value!r})"
        )


class CompareOp(str, Enum):
    EQUALS = "=="
    NOT_EQUALS = "!="
    LESS_THAN = "<"
    LESS_THAN_EQUALS = "<="
    GREATER_THAN = ">"
    GREATER_THAN_EQUALS = ">="


ORDERING_OPS = (
    CompareOp.LESS_THAN,
    CompareOp.LESS_THAN_EQUALS,
    CompareOp.GREATER_THAN,
    CompareOp.GREATER_THAN_EQUALS,
)


@dataclass(frozen=True)
class Compare:
    """A comparator paired with the value it compares against."""

    op: CompareOp
    datum: Datum

    @classmethod
    def equals(cls, value: Any) -> "Compare":
        return cls(CompareOp.EQUALS, Datum.from_value(value))

    @classmethod
    def not_equals(cls, value: Any) -> "Compare":
        return cls(CompareOp.NOT_EQUALS, Datum.from_value(value))

    @classmethod
    def less(cls, value: Any) -> "Compare":
        return cls(CompareOp.LESS_THAN, Datum.from_value(value))

    @classmethod
    def less_equals(cls, value: Any) -> "Compare":
        return cls(CompareOp.LESS_THAN_EQUALS, Datum.from_value(value))

    @classmethod
    def greater(cls, value: Any) -> "Compare":
        return cls(CompareOp.GREATER_THAN, Datum.from_value(value))

    @classmethod
    def greater_equals(cls, value: Any) -> "Compare":
        return cls(CompareOp.GREATER_THAN_EQUALS, Datum.from_value(value))

    def check(self, key: str, found: Datum) -> bool:
        _require_same_variant(self.datum, found, key, "Comparison")
        if self.op is CompareOp.EQUALS:
            return found == self.datum
        if self.op is CompareOp.NOT_EQUALS:
            return found != self.datum
        lhs, rhs = found.order_key(), self.datum.order_key()
        if self.op is CompareOp.LESS_THAN:
            return lhs < rhs
        if self.op is CompareOp.LESS_THAN_EQUALS:
            return lhs <= rhs
        if self.op is CompareOp.GREATER_THAN:
            return lhs > rhs
        return lhs >= rhs

    def __str__(self) -> str:
        return f"{self.op.value} {self.datum}"


@dataclass(frozen=True)
class Precondition:
    """``(key, comparator, value)``; also used for goal requirements."""

    key: str
    compare: Compare

    @classmethod
    def coerce(cls, item: "Precondition | Tuple[str, Compare]") -> "Precondition":
        if isinstance(item, Precondition):
            return item
        key, compare = item
        if not isinstance(compare, Compare):
            compare = Compare.equals(compare)
        return cls(key, compare)

    def __str__(self) -> str:
        return f"{self.key} {self.compare}"


class MutatorOp(str, Enum):
    SET = "set"
    INCREASE = "increase"
    DECREASE = "decrease"


@dataclass(frozen=True)
class Mutator:
    key: str
    op: MutatorOp
    datum: Datum

    @classmethod
    def set(cls, key: str, value: Any) -> "Mutator":
        return cls(key, MutatorOp.SET, Datum.from_value(value))

    @classmethod
    def increase(cls, key: str, amount: Any) -> "Mutator":
        return cls._numeric(key, MutatorOp.INCREASE, amount)

    @classmethod
    def decrease(cls, key: str, amount: Any) -> "Mutator":
        return cls._numeric(key, MutatorOp.DECREASE, amount)

    @classmethod
    def _numeric(cls, key: str, op: MutatorOp, amount: Any) -> "Mutator":
        datum = Datum.from_value(amount)
        if not datum.is_numeric:
            log.error("Non-numeric mutator amount", key=key, op=op.value, kind=datum.kind.name)
            raise TypeError(f"{op.value} on '{key}' needs a numeric amount, got {datum.kind.name}")
        return cls(key, op, datum)

    def __str__(self) -> str:
        return f"{self.op.value} {self.key} {self.datum}"


class LocalState:
    """Mapping of fact key to :class:`Datum`.

    No implicit defaults: reading a missing key through a precondition
    evaluates false rather than falling back to a zero value.
    """

    __slots__ = ("data",)

    def __init__(self, data: Mapping[str, Datum] | None = None):
        self.data: Dict[str, Datum] = dict(data) if data else {}

    @classmethod
    def from_values(cls, values: Mapping[str, Any]) -> "LocalState":
        return cls({key: Datum.from_value(value) for key, value in values.items()})

    def with_datum(self, key: str, value: Any) -> "LocalState":
        self.data[key] = Datum.from_value(value)
        return self

    def copy(self) -> "LocalState":
        return LocalState(self.data)

    def get(self, key: str) -> Datum | None:
        return self.data.get(key)

    def set(self, key: str, datum: Datum) -> None:
        self.data[key] = datum

    def to_values(self) -> Dict[str, Any]:
        return {key: datum.value for key, datum in self.data.items()}

    def fingerprint(self) -> FrozenSet[Tuple[str, Datum]]:
        """Hashable identity of the full key/value content."""
        return frozenset(self.data.items())

    def items(self) -> Iterable[Tuple[str, Datum]]:
        return self.data.items()

    def __contains__(self, key: object) -> bool:
        return key in self.data

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LocalState):
            return NotImplemented
        return self.data == other.data

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v}" for k, v in sorted(self.data.items()))
        return f"LocalState({inner})"


def evaluate(precondition: Precondition, state: LocalState) -> bool:
    """Check one precondition; absent keys fail closed."""
    found = state.get(precondition.key)
    if found is None:
        return False
    return precondition.compare.check(precondition.key, found)


def _mutate(mutator: Mutator, state: LocalState) -> None:
    key = mutator.key
    current = state.get(key)
    if mutator.op is MutatorOp.SET:
        if current is not None:
            _require_same_variant(mutator.datum, current, key, "Set")
        state.set(key, mutator.datum)
        return

    if current is None:
        log.error("Numeric mutator on missing fact", key=key, op=mutator.op.value)
        raise KeyError(f"Cannot {mutator.op.value} missing fact '{key}'")
    _require_same_variant(mutator.datum, current, key, mutator.op.value.capitalize())
    amount = mutator.datum.value
    if mutator.op is MutatorOp.DECREASE:
        amount = -amount
    state.set(key, Datum(current.kind, current.value + amount))


def apply(mutator: Mutator, state: LocalState) -> LocalState:
    """Return a copy of ``state`` with ``mutator`` applied."""
    result = state.copy()
    _mutate(mutator, result)
    return result


def apply_all(mutators: Iterable[Mutator], state: LocalState) -> LocalState:
    """Apply mutators in order to a single copy of ``state``."""
    result = state.copy()
    for mutator in mutators:
        _mutate(mutator, result)
    return result
