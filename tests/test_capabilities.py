import os

import pytest
from jinja2 import Undefined

from xtmpl import (
    ALL, SAFE, STRINGS, URL_JOIN_PATH, OS_GETENV, Func, NamespaceFuncs, Funcs, CapabilitySet,
    PermissionDenied, build_capability_set,
)
from xtmpl.xtmpl_capabilities import RootContext, known_operations, namespace_handles
from xtmpl.xtmpl_conv import Conv
from xtmpl.xtmpl_stdlib import OS


def handle(cls, *allowed):
    return cls(RootContext(None, build_capability_set(allowed)))


def test_namespace_descriptor_expands_to_every_operation():
    caps = build_capability_set([STRINGS])
    assert len(caps) == len(known_operations("strings"))
    assert caps.is_permitted("strings", "to_lower")
    assert caps.namespaces == frozenset({"strings"})


def test_single_operation_descriptor():
    caps = build_capability_set([STRINGS, URL_JOIN_PATH])
    assert caps.is_permitted("url", "join_path")
    assert not caps.is_permitted("url", "path_escape")
    assert Func("url", "join_path") in caps
    assert caps.namespaces == frozenset({"strings", "url"})


def test_union_is_deduplicated():
    a = build_capability_set([STRINGS])
    b = build_capability_set([STRINGS, Func("strings", "to_lower"), NamespaceFuncs("strings")])
    assert a == b
    assert build_capability_set([]) == CapabilitySet()


@pytest.mark.parametrize("first, second", [
    ([STRINGS], [URL_JOIN_PATH, Func("cmp", "less")]),
    ([SAFE], [ALL]),
    ([URL_JOIN_PATH], [NamespaceFuncs("url"), Func("nope", "x")]),
    ([], [OS_GETENV]),
])
def test_building_from_concatenated_descriptors_is_the_union(first, second):
    combined = build_capability_set(first + second)
    a = build_capability_set(first)
    b = build_capability_set(second)
    assert combined.functions == a.functions | b.functions
    assert combined.namespaces == a.namespaces | b.namespaces


def test_unknown_descriptors_are_dropped():
    caps = build_capability_set([Func("nope", "x"), NamespaceFuncs("nope"), Func("strings", "nope")])
    assert len(caps) == 0
    assert caps.namespaces == frozenset()


def test_safe_excludes_os_and_all_includes_it():
    safe = build_capability_set([SAFE])
    assert "os" not in safe.namespaces
    assert safe.is_permitted("tmpl", "exec")
    assert safe.is_permitted("conv", "to_int")

    everything = build_capability_set([ALL])
    assert everything.is_permitted("os", "getpid")
    assert set(safe) < set(everything)


def test_nested_bundles_flatten():
    bundle = Funcs(Funcs(STRINGS), URL_JOIN_PATH)
    assert Func("url", "join_path") in bundle.functions()
    assert Func("strings", "split") in bundle.functions()


def test_iteration_is_sorted():
    caps = build_capability_set([URL_JOIN_PATH, Func("cmp", "less")])
    assert [str(f) for f in caps] == ["cmp.less", "url.join_path"]


def test_denied_operation_has_no_side_effect(monkeypatch):
    monkeypatch.delenv("XTMPL_TEST_KEY", raising=False)
    os_handle = handle(OS, OS_GETENV)

    with pytest.raises(PermissionDenied) as ei:
        os_handle.setenv("XTMPL_TEST_KEY", "1")

    assert "XTMPL_TEST_KEY" not in os.environ
    assert ei.value.func == Func("os", "setenv")
    assert str(ei.value) == "function os.setenv is not allowed"


def test_denied_operation_does_no_computation():
    conv = handle(Conv, Func("conv", "to_bool"))
    # an unconvertible argument would raise a coercion error if the call got that far
    with pytest.raises(PermissionDenied):
        conv.to_int("not a number")


def test_permitted_operation_runs():
    os_handle = handle(OS, OS_GETENV)
    assert os_handle.getenv("XTMPL_SURELY_UNSET_KEY") == ""


def test_undefined_arguments_become_none():
    conv = handle(Conv, Func("conv", "to_string"))
    assert conv.to_string(Undefined()) == ""


def test_handles_only_for_permitted_namespaces():
    root = RootContext(None, build_capability_set([STRINGS, URL_JOIN_PATH]))
    handles = namespace_handles(root)
    assert sorted(handles) == ["strings", "url"]
    assert repr(handles["url"]) == "<URL namespace='url'>"
