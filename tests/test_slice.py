import math

import pytest

from xtmpl import Kind, TypedList, CollectionPolicyViolation, Overflow
from xtmpl import xtmpl_slice as ops


def strings(*values):
    return TypedList(Kind.STRING, values)


def ints(*values):
    return TypedList(Kind.INT, values)


def test_append_keeps_kind_and_order():
    result = ops.append(strings("Joe"), "Alice", "Bob")
    assert result == ["Joe", "Alice", "Bob"]
    assert result.kind is Kind.STRING


def test_append_converts_new_values_to_the_kind():
    result = ops.append(ints(1), "2", 3.0, True)
    assert result == [1, 2, 3, 1]
    assert result.kind is Kind.INT

    with pytest.raises(Overflow):
        ops.append(TypedList(Kind.UINT8, [1]), 300)


def test_append_and_prepend_to_plain_lists():
    assert ops.append([1], "x") == [1, "x"]
    assert ops.append([1], "x").kind is Kind.ANY
    assert ops.prepend(strings("c"), "a", "b") == ["a", "b", "c"]


def test_operations_never_mutate_the_input():
    original = [3, 1, 2]
    ops.append(original, 4)
    ops.reverse(original)
    assert original == [3, 1, 2]

    typed = ints(3, 1, 2)
    assert ops.sort(typed) == [1, 2, 3]
    assert typed == [3, 1, 2]


def test_sort():
    assert ops.sort(strings("b", "a", "c")) == ["a", "b", "c"]
    assert ops.sort(ints(3, -1, 2)).kind is Kind.INT


def test_sort_floats_puts_nan_first():
    result = ops.sort(TypedList(Kind.FLOAT64, [2.0, float("nan"), 1.0]))
    assert math.isnan(result[0])
    assert list(result[1:]) == [1.0, 2.0]


def test_sort_of_kind_any_is_a_policy_violation():
    with pytest.raises(CollectionPolicyViolation) as ei:
        ops.sort([3, 1, 2])
    assert str(ei.value) == "cannot sort lists of kind any"


def test_reverse():
    result = ops.reverse(strings("a", "b", "c"))
    assert result == ["c", "b", "a"]
    assert result.kind is Kind.STRING
    assert ops.reverse([]) == []


def test_unique_keeps_first_occurrence():
    assert ops.unique(ints(1, 2, 1, 3, 2)) == [1, 2, 3]
    assert ops.unique([1, True, 1, "1"]) == [1, True, "1"]
    assert ops.unique([[1], [1], [2]]) == [[1], [2]]


def test_compact_collapses_consecutive_runs():
    assert ops.compact(ints(1, 1, 2, 2, 1)) == [1, 2, 1]
    assert ops.compact(strings()) == []
    with pytest.raises(CollectionPolicyViolation):
        ops.compact([1, 1])


def test_contains():
    assert ops.contains(strings("a", "b"), "a")
    assert not ops.contains(strings("a", "b"), "z")
    assert ops.contains([True, False], True)
    # a bool never matches a number
    assert not ops.contains([1, 2], True)
    assert not ops.contains([True], 1)


def test_length():
    assert ops.length(strings("a", "b")) == 2
    assert ops.length([]) == 0


def test_non_list_arguments_are_rejected():
    with pytest.raises(CollectionPolicyViolation) as ei:
        ops.contains("abc", "a")
    assert str(ei.value) == "first argument must be a list, not str"

    with pytest.raises(CollectionPolicyViolation) as ei:
        ops.reverse(5)
    assert str(ei.value) == "argument must be a list, not int"

    with pytest.raises(CollectionPolicyViolation):
        ops.append({"a": 1}, 2)


def test_typed_list_behaves_like_a_sequence():
    values = strings("a", "b", "c")
    assert len(values) == 3
    assert values[1] == "b"
    assert values[1:].kind is Kind.STRING
    assert list(values) == ["a", "b", "c"]
    assert repr(values) == "TypedList('string', ['a', 'b', 'c'])"
    assert str(values) == "[a, b, c]"
