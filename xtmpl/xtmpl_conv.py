"""
The dynamic coercion engine.

Converts loosely-typed template values into bools, strings and fixed-width
numbers. Conversions never wrap or saturate: a value that does not fit the
target width is an ``Overflow``.
"""

import math
import numbers
import re
import struct
from typing import Any, Callable, Dict

from xtmpl.xtmpl_capabilities import Namespace, operation
from xtmpl.xtmpl_datatypes import (
    Kind, TypedList, CoercionError, UnsupportedKind, UnparseableText, Overflow,
    CollectionPolicyViolation,
)

# Platform-width integers are fixed at 64 bits.
INT_BOUNDS = {
    Kind.INT8: (-(1 << 7), (1 << 7) - 1),
    Kind.INT16: (-(1 << 15), (1 << 15) - 1),
    Kind.INT32: (-(1 << 31), (1 << 31) - 1),
    Kind.INT64: (-(1 << 63), (1 << 63) - 1),
    Kind.INT: (-(1 << 63), (1 << 63) - 1),
    Kind.UINT8: (0, (1 << 8) - 1),
    Kind.UINT16: (0, (1 << 16) - 1),
    Kind.UINT32: (0, (1 << 32) - 1),
    Kind.UINT64: (0, (1 << 64) - 1),
    Kind.UINT: (0, (1 << 64) - 1),
}
FLOAT32_MAX = 3.4028234663852886e38

_TRUTHY = frozenset({"1", "t", "true", "yes"})

_INT_LITERAL = re.compile(
    r"[+-]?(?:0[xX](?:_?[0-9a-fA-F])+|0[oO](?:_?[0-7])+|0[bB](?:_?[01])+"
    r"|0(?:_?[0-7])*|[1-9](?:_?[0-9])*)"
)
_FLOAT_LITERAL = re.compile(
    r"[+-]?(?:(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)


def _parse_number(text: str, target: Kind):
    """Parse numeric text: integer literals first, then float literals."""
    cleaned = text.replace(",", "")
    if _INT_LITERAL.fullmatch(cleaned):
        negative = cleaned.startswith("-")
        digits = cleaned.lstrip("+-").replace("_", "")
        # a leading zero without a base prefix means octal
        if len(digits) > 1 and digits[0] == "0" and digits[1].isdigit():
            value = int(digits, 8)
        else:
            value = int(digits, 0)
        return -value if negative else value
    if _FLOAT_LITERAL.fullmatch(cleaned):
        value = float(cleaned)
        if math.isinf(value) and "inf" not in cleaned.lower():
            raise Overflow(text, target)
        return value
    raise UnparseableText(text, target)


def _truncate(number, original: Any, target: Kind) -> int:
    if isinstance(number, int):
        return number
    if not math.isfinite(number):
        raise Overflow(original, target)
    return int(number)


def _to_integer(value: Any, target: Kind) -> int:
    if isinstance(value, bool):
        number = int(value)
    elif isinstance(value, str):
        number = _truncate(_parse_number(value, target), value, target)
    elif isinstance(value, numbers.Integral):
        number = int(value)
    elif isinstance(value, numbers.Real):
        number = _truncate(float(value), value, target)
    else:
        raise UnsupportedKind(value, target)

    low, high = INT_BOUNDS[target]
    if number < low or number > high:
        raise Overflow(value, target)
    return number


def _to_floating(value: Any, target: Kind) -> float:
    if isinstance(value, bool):
        number = 1.0 if value else 0.0
    elif isinstance(value, (str, numbers.Real)):
        parsed = _parse_number(value, target) if isinstance(value, str) else value
        try:
            number = float(parsed)
        except OverflowError:
            raise Overflow(value, target) from None
    else:
        raise UnsupportedKind(value, target)

    if target is Kind.FLOAT32:
        if abs(number) > FLOAT32_MAX:
            raise Overflow(value, target)
        # round to the nearest single-precision value
        return struct.unpack("f", struct.pack("f", number))[0]
    return number


# ===================================================================
# Scalar conversions
# ===================================================================

def to_bool(value: Any) -> bool:
    """Truthy tokens are 1, t, true and yes; otherwise a value is true only if it equals 1."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value.lower() in _TRUTHY:
            return True
        try:
            return _parse_number(value, Kind.BOOL) == 1
        except CoercionError:
            return False
    if isinstance(value, numbers.Number):
        return value == 1
    raise UnsupportedKind(value, Kind.BOOL)


def to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (list, tuple, TypedList)):
        return "[" + ", ".join(to_string(v) for v in value) + "]"
    return str(value)


def to_int8(value: Any) -> int: return _to_integer(value, Kind.INT8)
def to_int16(value: Any) -> int: return _to_integer(value, Kind.INT16)
def to_int32(value: Any) -> int: return _to_integer(value, Kind.INT32)
def to_int64(value: Any) -> int: return _to_integer(value, Kind.INT64)
def to_int(value: Any) -> int: return _to_integer(value, Kind.INT)
def to_uint8(value: Any) -> int: return _to_integer(value, Kind.UINT8)
def to_uint16(value: Any) -> int: return _to_integer(value, Kind.UINT16)
def to_uint32(value: Any) -> int: return _to_integer(value, Kind.UINT32)
def to_uint64(value: Any) -> int: return _to_integer(value, Kind.UINT64)
def to_uint(value: Any) -> int: return _to_integer(value, Kind.UINT)


def to_float32(value: Any) -> float:
    """Range-checked against float32 and rounded to single precision."""
    return _to_floating(value, Kind.FLOAT32)


def to_float64(value: Any) -> float:
    return _to_floating(value, Kind.FLOAT64)


CONVERTERS: Dict[Kind, Callable[[Any], Any]] = {
    Kind.BOOL: to_bool,
    Kind.STRING: to_string,
    Kind.INT8: to_int8,
    Kind.INT16: to_int16,
    Kind.INT32: to_int32,
    Kind.INT64: to_int64,
    Kind.INT: to_int,
    Kind.UINT8: to_uint8,
    Kind.UINT16: to_uint16,
    Kind.UINT32: to_uint32,
    Kind.UINT64: to_uint64,
    Kind.UINT: to_uint,
    Kind.FLOAT32: to_float32,
    Kind.FLOAT64: to_float64,
}


# ===================================================================
# Batch conversions
# ===================================================================

def items_of(values: Any) -> tuple:
    if isinstance(values, TypedList):
        return values.items
    if isinstance(values, (list, tuple)):
        return tuple(values)
    raise CollectionPolicyViolation(f"argument must be a list, not {type(values).__name__}")


def convert_all(values: Any, target: Kind) -> TypedList:
    """Convert every element or fail on the first element that cannot be converted."""
    convert = CONVERTERS[target]
    return TypedList(target, [convert(v) for v in items_of(values)])


def to_bools(values: Any) -> TypedList: return convert_all(values, Kind.BOOL)
def to_strings(values: Any) -> TypedList: return convert_all(values, Kind.STRING)
def to_int8s(values: Any) -> TypedList: return convert_all(values, Kind.INT8)
def to_int16s(values: Any) -> TypedList: return convert_all(values, Kind.INT16)
def to_int32s(values: Any) -> TypedList: return convert_all(values, Kind.INT32)
def to_int64s(values: Any) -> TypedList: return convert_all(values, Kind.INT64)
def to_ints(values: Any) -> TypedList: return convert_all(values, Kind.INT)
def to_uint8s(values: Any) -> TypedList: return convert_all(values, Kind.UINT8)
def to_uint16s(values: Any) -> TypedList: return convert_all(values, Kind.UINT16)
def to_uint32s(values: Any) -> TypedList: return convert_all(values, Kind.UINT32)
def to_uint64s(values: Any) -> TypedList: return convert_all(values, Kind.UINT64)
def to_uints(values: Any) -> TypedList: return convert_all(values, Kind.UINT)
def to_float32s(values: Any) -> TypedList: return convert_all(values, Kind.FLOAT32)
def to_float64s(values: Any) -> TypedList: return convert_all(values, Kind.FLOAT64)


# ===================================================================
# The `conv` namespace
# ===================================================================

class Conv(Namespace, namespace="conv"):
    """Conversions between types.

    {{ conv.to_bool("yes") }}        -> true
    {{ conv.to_int("1,234") }}       -> 1234
    {{ conv.to_uint8s([1, "0x10"]) }} -> [1, 16]
    """

    @operation
    def to_bool(self, value): return to_bool(value)
    @operation
    def to_bools(self, values): return to_bools(values)
    @operation
    def to_string(self, value): return to_string(value)
    @operation
    def to_strings(self, values): return to_strings(values)

    @operation
    def to_int8(self, value): return to_int8(value)
    @operation
    def to_int8s(self, values): return to_int8s(values)
    @operation
    def to_int16(self, value): return to_int16(value)
    @operation
    def to_int16s(self, values): return to_int16s(values)
    @operation
    def to_int32(self, value): return to_int32(value)
    @operation
    def to_int32s(self, values): return to_int32s(values)
    @operation
    def to_int64(self, value): return to_int64(value)
    @operation
    def to_int64s(self, values): return to_int64s(values)
    @operation
    def to_int(self, value): return to_int(value)
    @operation
    def to_ints(self, values): return to_ints(values)

    @operation
    def to_uint8(self, value): return to_uint8(value)
    @operation
    def to_uint8s(self, values): return to_uint8s(values)
    @operation
    def to_uint16(self, value): return to_uint16(value)
    @operation
    def to_uint16s(self, values): return to_uint16s(values)
    @operation
    def to_uint32(self, value): return to_uint32(value)
    @operation
    def to_uint32s(self, values): return to_uint32s(values)
    @operation
    def to_uint64(self, value): return to_uint64(value)
    @operation
    def to_uint64s(self, values): return to_uint64s(values)
    @operation
    def to_uint(self, value): return to_uint(value)
    @operation
    def to_uints(self, values): return to_uints(values)

    @operation
    def to_float32(self, value): return to_float32(value)
    @operation
    def to_float32s(self, values): return to_float32s(values)
    @operation
    def to_float64(self, value): return to_float64(value)
    @operation
    def to_float64s(self, values): return to_float64s(values)
