"""
Polymorphic operations over dynamic collections.

Each operation has one canonical implementation over the kind-erased item
tuple. The public entry points normalize their argument, delegate, and rebuild
a collection of the original kind, converting any newly supplied values with
the coercion engine so the result stays homogeneous.
"""

import math
from typing import Any, Tuple

from xtmpl.xtmpl_capabilities import Namespace, operation
from xtmpl.xtmpl_conv import CONVERTERS, convert_all
from xtmpl.xtmpl_datatypes import Kind, TypedList, CollectionPolicyViolation

_FLOAT_KINDS = (Kind.FLOAT32, Kind.FLOAT64)


def _collection(value: Any, first: bool = False) -> Tuple[Kind, tuple]:
    if isinstance(value, TypedList):
        return value.kind, value.items
    if isinstance(value, (list, tuple)):
        return Kind.ANY, tuple(value)
    which = "first argument" if first else "argument"
    raise CollectionPolicyViolation(f"{which} must be a list, not {type(value).__name__}")


def _specialize(kind: Kind, values: tuple) -> tuple:
    if kind is Kind.ANY:
        return tuple(values)
    convert = CONVERTERS[kind]
    return tuple(convert(v) for v in values)


def _same(a: Any, b: Any) -> bool:
    # a bool only ever equals a bool; 1 == True is not a match here
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a is b
    return a == b


def _dedupe_key(value: Any):
    return (isinstance(value, bool), value)


# ===================================================================
# Canonical implementations (kind-erased)
# ===================================================================

def _contains(items: tuple, value: Any) -> bool:
    return any(_same(item, value) for item in items)


def _unique(items: tuple) -> tuple:
    seen = set()
    unhashable = []
    out = []
    for item in items:
        try:
            key = _dedupe_key(item)
            if key in seen:
                continue
            seen.add(key)
        except TypeError:
            if any(_same(item, other) for other in unhashable):
                continue
            unhashable.append(item)
        out.append(item)
    return tuple(out)


def _compact(items: tuple) -> tuple:
    out = []
    for item in items:
        if out and _same(out[-1], item):
            continue
        out.append(item)
    return tuple(out)


def _sort_key(kind: Kind):
    if kind in _FLOAT_KINDS:
        # NaN sorts before every number
        return lambda v: (not math.isnan(v), 0.0 if math.isnan(v) else v)
    return None


# ===================================================================
# Public entry points
# ===================================================================

def contains(collection: Any, value: Any) -> bool:
    _, items = _collection(collection, first=True)
    return _contains(items, value)


def reverse(collection: Any) -> TypedList:
    kind, items = _collection(collection)
    return TypedList(kind, items[::-1])


def sort(collection: Any) -> TypedList:
    kind, items = _collection(collection)
    if kind is Kind.ANY:
        raise CollectionPolicyViolation("cannot sort lists of kind any")
    return TypedList(kind, sorted(items, key=_sort_key(kind)))


def append(collection: Any, *values: Any) -> TypedList:
    kind, items = _collection(collection, first=True)
    return TypedList(kind, items + _specialize(kind, values))


def prepend(collection: Any, *values: Any) -> TypedList:
    kind, items = _collection(collection, first=True)
    return TypedList(kind, _specialize(kind, values) + items)


def length(collection: Any) -> int:
    _, items = _collection(collection)
    return len(items)


def unique(collection: Any) -> TypedList:
    kind, items = _collection(collection)
    return TypedList(kind, _unique(items))


def compact(collection: Any) -> TypedList:
    """Replace consecutive runs of equal elements with a single copy, like uniq(1)."""
    kind, items = _collection(collection)
    if kind is Kind.ANY:
        raise CollectionPolicyViolation("cannot compact lists of kind any")
    return TypedList(kind, _compact(items))


# ===================================================================
# The `slice` namespace
# ===================================================================

class Slice(Namespace, namespace="slice"):
    """Helpers for lists.

    {{ slice.sort(slice.new_strings("World", "Hello")) }}      -> [Hello, World]
    {{ slice.append(slice.new_strings("Joe"), "Alice", "Bob") }} -> [Joe, Alice, Bob]
    """

    @operation
    def new(self, *values):
        return TypedList(Kind.ANY, values)

    @operation
    def new_strings(self, *values):
        return convert_all(values, Kind.STRING)

    @operation
    def new_ints(self, *values):
        return convert_all(values, Kind.INT)

    @operation
    def new_int64s(self, *values):
        return convert_all(values, Kind.INT64)

    @operation
    def new_float64s(self, *values):
        return convert_all(values, Kind.FLOAT64)

    @operation
    def new_bools(self, *values):
        return convert_all(values, Kind.BOOL)

    @operation
    def contains(self, collection, value):
        return contains(collection, value)

    @operation
    def reverse(self, collection):
        return reverse(collection)

    @operation
    def sort(self, collection):
        return sort(collection)

    @operation
    def append(self, collection, *values):
        return append(collection, *values)

    @operation
    def prepend(self, collection, *values):
        return prepend(collection, *values)

    @operation
    def len(self, collection):
        return length(collection)

    @operation
    def unique(self, collection):
        return unique(collection)

    @operation
    def compact(self, collection):
        return compact(collection)
