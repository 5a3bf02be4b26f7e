"""Tests for the structural matcher."""

from __future__ import annotations

from dataclasses import dataclass

from patsub import (
    WILDCARD,
    Record,
    any_of,
    guarded,
    lit,
    mapping,
    match,
    seq,
    tagged,
    tup,
    var,
)
from patsub.matcher import structurally_equal
from patsub.pattern import Guarded


@dataclass
class User:
    name: str
    age: int


class TestScalars:
    """Literal, wildcard and variable nodes."""

    def test_literal_equal(self) -> None:
        assert match(lit("hello"), "hello") == {}
        assert match(lit("hello"), "goodbye") is None

    def test_literal_bool_is_not_int(self) -> None:
        assert match(lit(1), True) is None
        assert match(lit(True), 1) is None
        assert match(lit(True), True) == {}

    def test_literal_int_matches_float(self) -> None:
        assert match(lit(1), 1.0) == {}

    def test_wildcard_binds_nothing(self) -> None:
        assert match(WILDCARD, {"any": "thing"}) == {}
        assert match(WILDCARD, None) == {}

    def test_variable_binds(self) -> None:
        assert match(var("x"), [1, 2]) == {"x": [1, 2]}


class TestComposites:
    """Tuple and sequence shapes."""

    def test_repeated_variable_equal(self) -> None:
        assert match(tup(var("x"), var("x")), (1, 1)) == {"x": 1}

    def test_repeated_variable_differs(self) -> None:
        assert match(tup(var("x"), var("x")), (1, 2)) is None

    def test_tuple_arity_must_match(self) -> None:
        assert match(tup(WILDCARD, WILDCARD), (1, 2, 3)) is None

    def test_tuple_does_not_match_list(self) -> None:
        assert match(tup(var("a")), [1]) is None
        assert match(seq(var("a")), (1,)) is None

    def test_sequence_with_rest(self) -> None:
        pattern = seq(lit("cmd"), var("first"), rest=var("tail"))
        assert match(pattern, ["cmd", 1, 2, 3]) == {"first": 1, "tail": [2, 3]}
        assert match(pattern, ["cmd", 1]) == {"first": 1, "tail": []}
        assert match(pattern, ["cmd"]) is None

    def test_sequence_without_rest_needs_exact_length(self) -> None:
        assert match(seq(var("a")), [1, 2]) is None

    def test_strings_are_not_sequences(self) -> None:
        assert match(seq(var("a"), var("b")), "ab") is None

    def test_nested_repeated_variable(self) -> None:
        pattern = tup(var("id"), mapping(owner=var("id")))
        assert match(pattern, (7, {"owner": 7})) == {"id": 7}
        assert match(pattern, (7, {"owner": 8})) is None


class TestMappings:
    """Partial mapping and tagged matches."""

    def test_partial_mapping(self) -> None:
        assert match(mapping(name=var("n")), {"name": "a", "age": 5}) == {"n": "a"}

    def test_missing_key(self) -> None:
        assert match(mapping(name=var("n")), {"age": 5}) is None

    def test_mapping_needs_key_value_structure(self) -> None:
        assert match(mapping(name=var("n")), ["name"]) is None

    def test_tagged_record(self) -> None:
        pattern = tagged("User", age=var("age"))
        assert match(pattern, Record("User", age=48, name="John")) == {"age": 48}
        assert match(pattern, Record("Admin", age=48)) is None

    def test_tagged_plain_dict_has_no_tag(self) -> None:
        assert match(tagged("User", age=var("age")), {"age": 48}) is None

    def test_tagged_dataclass(self) -> None:
        assert match(tagged("User", name=var("n")), User("ada", 36)) == {"n": "ada"}

    def test_mapping_matches_record(self) -> None:
        assert match(mapping(age=lit(3)), Record("Cat", age=3)) == {}


class TestAlternation:
    """Left-to-right alternatives with fresh bindings."""

    def test_first_success_wins(self) -> None:
        pattern = any_of(tup(lit("a"), var("x")), tup(var("x"), WILDCARD))
        assert match(pattern, ("a", 1)) == {"x": 1}
        assert match(pattern, ("b", 1)) == {"x": "b"}

    def test_no_alternative_matches(self) -> None:
        assert match(any_of(lit("hello"), lit("goodbye")), "ciao") is None

    def test_bindings_do_not_leak_between_alternatives(self) -> None:
        # First alternative binds y then fails; second must not see y
        pattern = any_of(tup(var("y"), lit(0)), tup(WILDCARD, var("z")))
        assert match(pattern, (5, 1)) == {"z": 1}

    def test_nested_alternation_respects_outer_binding(self) -> None:
        pattern = tup(var("x"), any_of(tup(var("x"), lit(1)), tup(WILDCARD, var("w"))))
        assert match(pattern, (3, (3, 1))) == {"x": 3}
        assert match(pattern, (3, (4, 1))) == {"x": 3, "w": 1}


class TestGuards:
    """Guarded patterns."""

    def test_guard_true_and_false(self) -> None:
        pattern = guarded(tagged("User", age=var("age")), lambda age: age > 42)
        assert match(pattern, Record("User", age=48, name="John")) == {"age": 48}
        assert match(pattern, Record("User", age=10)) is None

    def test_guard_error_is_no_match(self) -> None:
        pattern = guarded(var("age"), "age > 42")
        assert match(pattern, "not a number") is None

    def test_expression_guard(self) -> None:
        pattern = guarded(mapping(items=var("items")), "len(items) >= 2 and items[0] == 'a'")
        assert match(pattern, {"items": ["a", "b"]}) is not None
        assert match(pattern, {"items": ["b", "a"]}) is None

    def test_guard_error_callback(self) -> None:
        failures: list = []
        pattern = guarded(var("age"), "age > 42")
        assert match(pattern, "old", on_guard_error=lambda node, e: failures.append((node, type(e)))) is None
        assert failures == [(pattern, TypeError)]

    def test_raw_callable_guard_error(self) -> None:
        def boom(bindings: dict) -> bool:
            raise RuntimeError("boom")

        assert match(Guarded(var("x"), boom), 1) is None


class TestDeterminism:
    """Matching is a pure function of its inputs."""

    def test_repeated_calls_agree(self) -> None:
        pattern = tup(var("x"), mapping(k=var("x")))
        value = (1, {"k": 1, "other": 2})
        results = [match(pattern, value) for _ in range(5)]
        assert all(r == {"x": 1} for r in results)


class TestStructuralEquality:
    """structurally_equal helper."""

    def test_nested_containers(self) -> None:
        assert structurally_equal({"a": [1, (2, 3)]}, {"a": [1, (2, 3)]})
        assert not structurally_equal({"a": [1, (2, 3)]}, {"a": [1, [2, 3]]})

    def test_bool_inside_containers(self) -> None:
        assert not structurally_equal([1], [True])

    def test_records_compare_tags(self) -> None:
        assert structurally_equal(Record("A", x=1), Record("A", x=1))
        assert not structurally_equal(Record("A", x=1), Record("B", x=1))
        assert not structurally_equal(Record("A", x=1), {"x": 1})

    def test_same_object_is_equal(self) -> None:
        loop: list = []
        loop.append(loop)
        assert structurally_equal(loop, loop)

    def test_self_referential_value_is_no_match(self) -> None:
        a: list = []
        a.append(a)
        b: list = []
        b.append(b)
        assert match(tup(var("x"), var("x")), (a, b)) is None
        assert match(tup(var("x"), var("x")), (a, a)) == {"x": a}
