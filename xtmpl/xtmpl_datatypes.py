"""
Defines the core data types shared by the xtmpl runtime.

This module provides the element kinds understood by the coercion engine,
the kind-carrying collection type used by the collection operations, the
library's error taxonomy and the control signals used for early exit.
"""

from enum import Enum
from typing import Any, Iterable, Optional
import collections.abc


class Kind(Enum):
    """The element kinds a dynamic collection can be specialized to."""
    ANY = "any"
    BOOL = "bool"
    STRING = "string"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    INT = "int"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    UINT = "uint"
    FLOAT32 = "float32"
    FLOAT64 = "float64"

    def __str__(self) -> str:
        return self.value


# =================================================================
# Collections
# =================================================================

class TypedList(collections.abc.Sequence):
    """An immutable sequence that remembers the kind of its elements.

    Plain lists and tuples are collections of kind ``any``; a TypedList is
    what the conversion and collection operations hand back so that later
    operations (sort, append, ...) know how to treat the elements.
    """
    __slots__ = ("_kind", "_items")

    def __init__(self, kind: Kind, items: Iterable[Any] = ()):
        self._kind = kind
        self._items = tuple(items)

    @property
    def kind(self) -> Kind:
        return self._kind

    @property
    def items(self) -> tuple:
        return self._items

    def __getitem__(self, index):
        if isinstance(index, slice):
            return TypedList(self._kind, self._items[index])
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def __eq__(self, other):
        if isinstance(other, TypedList):
            return self._kind is other._kind and self._items == other._items
        if isinstance(other, (list, tuple)):
            return list(self._items) == list(other)
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        return f"TypedList({self._kind.value!r}, {list(self._items)!r})"

    def __str__(self) -> str:
        from xtmpl.xtmpl_conv import to_string
        return to_string(self)


# =================================================================
# Errors
# =================================================================

class XtmplError(Exception):
    """Base class for every error raised by xtmpl itself."""
    pass


class PermissionDenied(XtmplError):
    """An operation was called that the capability set does not permit."""
    def __init__(self, func):
        self.func = func
        super().__init__(f"function {func.namespace}.{func.name} is not allowed")


class CoercionError(XtmplError):
    """A dynamic value could not be converted to the requested kind."""
    def __init__(self, message: str, value: Any = None, target: Optional[Kind] = None):
        super().__init__(message)
        self.value = value
        self.target = target


class UnsupportedKind(CoercionError, TypeError):
    def __init__(self, value: Any, target: Kind):
        kind = type(value).__name__
        super().__init__(f"could not convert {kind} {value!r} to {target}", value, target)
        self.kind = kind


class UnparseableText(CoercionError, ValueError):
    def __init__(self, value: str, target: Kind):
        super().__init__(f"could not convert {value!r} to {target}", value, target)


class Overflow(CoercionError, OverflowError):
    def __init__(self, value: Any, target: Kind):
        super().__init__(f"could not convert {value!r} to {target}, would overflow", value, target)


class CollectionPolicyViolation(XtmplError, TypeError):
    """A collection operation was applied to a collection it does not support."""
    pass


class ArgumentError(XtmplError, TypeError):
    """An operation was called with an argument list it cannot accept."""
    pass


class CustomError(XtmplError):
    """An error raised by a template through the ``error`` builtin."""
    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.payload = payload


class ConfigError(XtmplError):
    """A capability document is structurally invalid."""
    pass


# =================================================================
# Control signals
# =================================================================

class ControlSignal(BaseException):
    """Non-local exit out of a template evaluation.

    Derives from BaseException so that ``except Exception`` handlers between
    the raise site and the interception point never see it.
    """
    pass


class ReturnSignal(ControlSignal):
    def __init__(self, value: Any = None):
        super().__init__("return")
        self.value = value


class RaiseSignal(ControlSignal):
    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.payload = payload
