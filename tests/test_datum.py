from enum import Enum, auto

import pytest

from goap.datum import (
    Compare,
    Datum,
    DatumKind,
    LocalState,
    Mutator,
    Precondition,
    apply,
    apply_all,
    evaluate,
)


class Item(Enum):
    NOTHING = auto()
    LEMONADE = auto()


def make_state():
    return LocalState.from_values(
        {"is_hungry": True, "energy": 10.0, "gold": 3, "carrying": Item.NOTHING}
    )


def test_from_value_infers_variants():
    assert Datum.from_value(True).kind is DatumKind.BOOL
    assert Datum.from_value(1).kind is DatumKind.I64
    assert Datum.from_value(1.5).kind is DatumKind.F64
    assert Datum.from_value(Item.LEMONADE).kind is DatumKind.ENUM
    with pytest.raises(TypeError):
        Datum.from_value("hungry")


def test_missing_key_fails_closed():
    state = make_state()
    assert evaluate(Precondition("is_thirsty", Compare.equals(True)), state) is False
    assert evaluate(Precondition("is_thirsty", Compare.not_equals(True)), state) is False


def test_comparators():
    state = make_state()
    assert evaluate(Precondition("energy", Compare.less(11.0)), state)
    assert not evaluate(Precondition("energy", Compare.less(10.0)), state)
    assert evaluate(Precondition("energy", Compare.less_equals(10.0)), state)
    assert evaluate(Precondition("gold", Compare.greater(2)), state)
    assert evaluate(Precondition("gold", Compare.greater_equals(3)), state)
    assert evaluate(Precondition("is_hungry", Compare.not_equals(False)), state)


def test_enum_ordering_follows_declaration():
    state = make_state()
    assert evaluate(Precondition("carrying", Compare.less(Item.LEMONADE)), state)
    assert evaluate(Precondition("carrying", Compare.equals(Item.NOTHING)), state)


def test_comparison_variant_mismatch_is_fatal():
    state = make_state()
    with pytest.raises(TypeError):
        evaluate(Precondition("energy", Compare.less(10)), state)
    with pytest.raises(TypeError):
        evaluate(Precondition("is_hungry", Compare.equals(1)), state)


def test_apply_does_not_touch_original():
    state = make_state()
    result = apply(Mutator.set("is_hungry", False), state)
    assert result.get("is_hungry") == Datum.boolean(False)
    assert state.get("is_hungry") == Datum.boolean(True)


def test_increase_and_decrease():
    state = make_state()
    result = apply_all(
        [Mutator.increase("energy", 2.5), Mutator.decrease("gold", 5)], state
    )
    assert result.get("energy") == Datum.f64(12.5)
    # No clamping during simulation.
    assert result.get("gold") == Datum.i64(-2)


def test_set_creates_missing_fact():
    result = apply(Mutator.set("at_food", True), LocalState())
    assert result.get("at_food") == Datum.boolean(True)


def test_numeric_mutators_reject_bad_input():
    with pytest.raises(TypeError):
        Mutator.increase("is_hungry", True)
    state = make_state()
    with pytest.raises(TypeError):
        apply(Mutator.increase("gold", 1.0), state)
    with pytest.raises(TypeError):
        apply(Mutator.set("energy", 1), state)
    with pytest.raises(KeyError):
        apply(Mutator.decrease("missing", 1), state)


def test_fingerprint_tracks_content():
    a = LocalState.from_values({"x": 1, "y": True})
    b = LocalState.from_values({"y": True, "x": 1})
    assert a.fingerprint() == b.fingerprint()
    assert a == b
    assert a.fingerprint() != apply(Mutator.increase("x", 1), a).fingerprint()
