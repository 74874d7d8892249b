"""
Capability descriptors, the immutable capability set and the function gate.

Every operation a template can reach lives on a ``Namespace`` subclass and is
marked with ``@operation``. The decorator both registers the method as part of
the namespace's surface and makes the permission check the first thing any
call does.
"""

from __future__ import annotations

import functools
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Tuple

from jinja2 import Undefined

from xtmpl.xtmpl_datatypes import PermissionDenied

logger = logging.getLogger(__name__)

# namespace name -> Namespace subclass
_REGISTRY: Dict[str, type] = {}


# ===================================================================
# 1. Descriptors
# ===================================================================

@dataclass(frozen=True)
class Func:
    """Identifies one operation by its (namespace, name) pair."""
    namespace: str
    name: str

    @classmethod
    def parse(cls, text: str) -> "Func":
        namespace, sep, name = text.partition(".")
        if not sep:
            raise ValueError(f"expected 'namespace.operation', got {text!r}")
        return cls(namespace, name)

    def functions(self) -> Tuple["Func", ...]:
        return (self,)

    def __str__(self) -> str:
        return f"{self.namespace}.{self.name}"


@dataclass(frozen=True)
class NamespaceFuncs:
    """Expands to every operation registered in a namespace."""
    namespace: str

    def functions(self) -> Tuple[Func, ...]:
        return tuple(Func(self.namespace, name) for name in sorted(known_operations(self.namespace)))

    def __str__(self) -> str:
        return f"{self.namespace}.*"


class Funcs(tuple):
    """A bundle of descriptors; bundles may contain other bundles."""

    def __new__(cls, *descriptors):
        return super().__new__(cls, descriptors)

    def functions(self) -> Tuple[Func, ...]:
        out = []
        for descriptor in self:
            out.extend(descriptor.functions())
        return tuple(out)


def known_namespaces() -> FrozenSet[str]:
    return frozenset(_REGISTRY)


def known_operations(namespace: str) -> FrozenSet[str]:
    cls = _REGISTRY.get(namespace)
    if cls is None:
        return frozenset()
    return cls.operations


# ===================================================================
# 2. The capability set
# ===================================================================

@dataclass(frozen=True)
class CapabilitySet:
    """The deduplicated set of permitted operations.

    Never mutated after construction, so one instance can be shared by any
    number of concurrent evaluations.
    """
    functions: FrozenSet[Func] = frozenset()
    namespaces: FrozenSet[str] = frozenset()

    def is_permitted(self, namespace: str, name: str) -> bool:
        return Func(namespace, name) in self.functions

    def __contains__(self, func) -> bool:
        return func in self.functions

    def __iter__(self) -> Iterator[Func]:
        return iter(sorted(self.functions, key=str))

    def __len__(self) -> int:
        return len(self.functions)


def build_capability_set(descriptors: Iterable[Any]) -> CapabilitySet:
    """Expand and union descriptors into a CapabilitySet.

    Unknown namespaces and operations are dropped without error, so embedder
    configuration keeps working when the operation surface changes.
    """
    functions = set()
    for descriptor in descriptors:
        for func in descriptor.functions():
            if func.name not in known_operations(func.namespace):
                logger.debug("dropping unknown capability %s", func)
                continue
            functions.add(Func(func.namespace, func.name))
    namespaces = frozenset(f.namespace for f in functions)
    return CapabilitySet(frozenset(functions), namespaces)


# ===================================================================
# 3. Namespaces and the gate
# ===================================================================

@dataclass(frozen=True)
class RootContext:
    """What every namespace handle needs: the environment and the permissions."""
    environment: Any
    capabilities: CapabilitySet


def _defined(value):
    return None if isinstance(value, Undefined) else value


def operation(func):
    """Mark a Namespace method as a template-callable, gated operation."""
    name = func.__name__

    @functools.wraps(func)
    def gated(self, *args, **kwargs):
        if not self._root.capabilities.is_permitted(self.namespace, name):
            logger.debug("denied %s.%s", self.namespace, name)
            raise PermissionDenied(Func(self.namespace, name))
        args = tuple(_defined(a) for a in args)
        kwargs = {k: _defined(v) for k, v in kwargs.items()}
        return func(self, *args, **kwargs)

    gated._is_xtmpl_op = True
    return gated


class Namespace:
    """Base class for a group of operations exposed under one identifier."""
    namespace: str = ""
    operations: FrozenSet[str] = frozenset()

    def __init_subclass__(cls, namespace: str = "", **kwargs):
        super().__init_subclass__(**kwargs)
        if not namespace:
            return
        cls.namespace = namespace
        cls.operations = frozenset(
            name for name, member in inspect.getmembers(cls)
            if getattr(member, "_is_xtmpl_op", False)
        )
        _REGISTRY[namespace] = cls

    def __init__(self, root: RootContext):
        self._root = root

    def __repr__(self) -> str:
        return f"<{type(self).__name__} namespace={self.namespace!r}>"


def namespace_handles(root: RootContext) -> Dict[str, Namespace]:
    """One handle per namespace that has at least one permitted operation."""
    return {
        name: _REGISTRY[name](root)
        for name in sorted(root.capabilities.namespaces)
        if name in _REGISTRY
    }


# ===================================================================
# 4. Bundles
# ===================================================================

CMP = NamespaceFuncs("cmp")
CONV = NamespaceFuncs("conv")
DICT = NamespaceFuncs("dict")
FILEPATH = NamespaceFuncs("filepath")
JSON = NamespaceFuncs("json")
OS = NamespaceFuncs("os")
PATH = NamespaceFuncs("path")
REGEXP = NamespaceFuncs("regexp")
SLICE = NamespaceFuncs("slice")
STRINGS = NamespaceFuncs("strings")
TMPL = NamespaceFuncs("tmpl")
URL = NamespaceFuncs("url")

# Functions considered safe for untrusted templates: nothing from `os`.
SAFE = Funcs(CMP, CONV, DICT, FILEPATH, JSON, PATH, REGEXP, SLICE, STRINGS, TMPL, URL)
ALL = Funcs(SAFE, OS)

OS_ENVIRON = Func("os", "environ")
OS_EXPAND_ENV = Func("os", "expand_env")
OS_GETENV = Func("os", "getenv")
OS_GETPID = Func("os", "getpid")
OS_GETWD = Func("os", "getwd")
OS_HOSTNAME = Func("os", "hostname")
OS_LOOKUP_ENV = Func("os", "lookup_env")
OS_READ_FILE = Func("os", "read_file")
OS_SETENV = Func("os", "setenv")
OS_USER_HOME_DIR = Func("os", "user_home_dir")
URL_JOIN_PATH = Func("url", "join_path")
TMPL_EXEC = Func("tmpl", "exec")

BUNDLES = {"safe": SAFE, "all": ALL}
