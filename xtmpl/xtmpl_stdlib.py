"""
Pass-through namespaces: thin, gated forwarders to the Python standard library.
"""

import itertools
import json
import os
import re
import socket
import tempfile
from typing import Any, NamedTuple
from urllib.parse import quote, quote_plus, unquote, unquote_plus, urlsplit, urlunsplit

from xtmpl.xtmpl_capabilities import Namespace, operation
from xtmpl.xtmpl_conv import items_of, to_strings
from xtmpl.xtmpl_datatypes import Kind, TypedList, ArgumentError


class CutResult(NamedTuple):
    before: str
    after: str
    found: bool


class CutPrefixResult(NamedTuple):
    after: str
    found: bool


class CutSuffixResult(NamedTuple):
    before: str
    found: bool


class LookupResult(NamedTuple):
    value: str
    found: bool


def _strings(values) -> TypedList:
    return TypedList(Kind.STRING, values)


# ===================================================================
# strings
# ===================================================================

class Strings(Namespace, namespace="strings"):
    @operation
    def compare(self, a, b):
        return (a > b) - (a < b)

    @operation
    def contains(self, s, substr):
        return substr in s

    @operation
    def contains_any(self, s, chars):
        return any(c in s for c in chars)

    @operation
    def count(self, s, substr):
        return s.count(substr)

    @operation
    def cut(self, s, sep):
        """{{ strings.cut("apple,banana", ",").after }} -> banana"""
        if sep == "":
            return CutResult("", s, True)
        before, found, after = s.partition(sep)
        return CutResult(before, after, bool(found))

    @operation
    def cut_prefix(self, s, prefix):
        if s.startswith(prefix):
            return CutPrefixResult(s[len(prefix):], True)
        return CutPrefixResult(s, False)

    @operation
    def cut_suffix(self, s, suffix):
        if suffix and s.endswith(suffix):
            return CutSuffixResult(s[:-len(suffix)], True)
        return CutSuffixResult(s, suffix == "")

    @operation
    def equal_fold(self, a, b):
        return a.casefold() == b.casefold()

    @operation
    def fields(self, s):
        return _strings(s.split())

    @operation
    def has_prefix(self, s, prefix):
        return s.startswith(prefix)

    @operation
    def has_suffix(self, s, suffix):
        return s.endswith(suffix)

    @operation
    def index(self, s, substr):
        return s.find(substr)

    @operation
    def join(self, items, sep):
        """{{ strings.join(slice.new_strings("hello", "world"), " ") }} -> hello world"""
        return sep.join(to_strings(items))

    @operation
    def last_index(self, s, substr):
        return s.rfind(substr)

    @operation
    def repeat(self, s, count):
        if count < 0:
            raise ArgumentError("negative repeat count")
        return s * count

    @operation
    def replace(self, s, old, new, n=-1):
        return s.replace(old, new, n if n >= 0 else -1)

    @operation
    def replace_all(self, s, old, new):
        return s.replace(old, new)

    @operation
    def split(self, s, sep):
        if sep == "":
            return _strings(s)
        return _strings(s.split(sep))

    @operation
    def split_n(self, s, sep, n):
        if n == 0:
            return _strings(())
        if sep == "":
            chars = list(s)
            if 0 < n < len(chars):
                chars = chars[:n - 1] + ["".join(chars[n - 1:])]
            return _strings(chars)
        return _strings(s.split(sep, n - 1 if n > 0 else -1))

    @operation
    def to_lower(self, s):
        return s.lower()

    @operation
    def to_title(self, s):
        # title case maps like upper case: "hello world" -> "HELLO WORLD"
        return s.upper()

    @operation
    def to_upper(self, s):
        return s.upper()

    @operation
    def trim(self, s, cutset):
        return s.strip(cutset)

    @operation
    def trim_left(self, s, cutset):
        return s.lstrip(cutset)

    @operation
    def trim_right(self, s, cutset):
        return s.rstrip(cutset)

    @operation
    def trim_prefix(self, s, prefix):
        return s.removeprefix(prefix)

    @operation
    def trim_suffix(self, s, suffix):
        return s.removesuffix(suffix)

    @operation
    def trim_space(self, s):
        return s.strip()


# ===================================================================
# path (always slash separated)
# ===================================================================

def clean_path(p: str) -> str:
    """Lexically simplify a slash-separated path."""
    if p == "":
        return "."
    rooted = p.startswith("/")
    parts = []
    for segment in p.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if parts and parts[-1] != "..":
                parts.pop()
            elif not rooted:
                parts.append("..")
            continue
        parts.append(segment)
    out = "/".join(parts)
    if rooted:
        return "/" + out
    return out or "."


def join_path(*elems: str) -> str:
    non_empty = [e for e in elems if e]
    if not non_empty:
        return ""
    return clean_path("/".join(non_empty))


class Path(Namespace, namespace="path"):
    @operation
    def base(self, p):
        if p == "":
            return "."
        p = p.rstrip("/")
        if p == "":
            return "/"
        return p.rsplit("/", 1)[-1]

    @operation
    def clean(self, p):
        return clean_path(p)

    @operation
    def dir(self, p):
        head = p[:p.rfind("/") + 1]
        return clean_path(head)

    @operation
    def ext(self, p):
        for i in range(len(p) - 1, -1, -1):
            if p[i] == "/":
                break
            if p[i] == ".":
                return p[i:]
        return ""

    @operation
    def is_abs(self, p):
        return p.startswith("/")

    @operation
    def join(self, *elems):
        return join_path(*elems)


# ===================================================================
# filepath (host OS paths)
# ===================================================================

class FilePath(Namespace, namespace="filepath"):
    @operation
    def abs(self, p):
        return os.path.abspath(p)

    @operation
    def base(self, p):
        if p == "":
            return "."
        stripped = p.rstrip(os.sep)
        return os.path.basename(stripped) if stripped else os.sep

    @operation
    def clean(self, p):
        return os.path.normpath(p) if p else "."

    @operation
    def dir(self, p):
        return os.path.dirname(p) or "."

    @operation
    def ext(self, p):
        return os.path.splitext(p)[1]

    @operation
    def from_slash(self, p):
        return p.replace("/", os.sep)

    @operation
    def join(self, *elems):
        non_empty = [e for e in elems if e]
        if not non_empty:
            return ""
        return os.path.normpath(os.path.join(*non_empty))

    @operation
    def rel(self, basepath, targpath):
        return os.path.relpath(targpath, basepath)

    @operation
    def to_slash(self, p):
        return p.replace(os.sep, "/")


# ===================================================================
# url
# ===================================================================

class URL(Namespace, namespace="url"):
    @operation
    def join_path(self, base, *elems):
        """{{ url.join_path("https://example.com", "a", "b/") }} -> https://example.com/a/b/"""
        parts = urlsplit(base)
        segments = [parts.path, *elems]
        if not segments[0].startswith("/"):
            # keep a relative base relative, but never let it climb above its root
            segments[0] = "/" + segments[0]
            joined = join_path(*segments)[1:]
        else:
            joined = join_path(*segments)
        if segments[-1].endswith("/") and not joined.endswith("/"):
            joined += "/"
        if parts.netloc and joined and not joined.startswith("/"):
            joined = "/" + joined
        return urlunsplit((parts.scheme, parts.netloc, joined, parts.query, parts.fragment))

    @operation
    def path_escape(self, s):
        return quote(s, safe="$&+,:;=@")

    @operation
    def path_unescape(self, s):
        return unquote(s)

    @operation
    def query_escape(self, s):
        return quote_plus(s, safe="")

    @operation
    def query_unescape(self, s):
        return unquote_plus(s)


# ===================================================================
# json
# ===================================================================

def _json_default(value):
    if isinstance(value, TypedList):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dumps(value, prefix: str = "", indent=None) -> str:
    if indent is None:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_json_default)
    text = json.dumps(value, indent=indent, ensure_ascii=False, default=_json_default)
    return text.replace("\n", "\n" + prefix) if prefix else text


class JSON(Namespace, namespace="json"):
    @operation
    def compact(self, text):
        return _dumps(json.loads(text))

    @operation
    def indent(self, text, prefix, indent):
        return _dumps(json.loads(text), prefix, indent)

    @operation
    def marshal(self, value):
        """{{ json.marshal(dict.new("a", 1)) }} -> {"a":1}"""
        return _dumps(value)

    @operation
    def marshal_indent(self, value, prefix, indent):
        return _dumps(value, prefix, indent)

    @operation
    def unmarshal(self, text):
        return json.loads(text)

    @operation
    def valid(self, text):
        try:
            json.loads(text)
        except ValueError:
            return False
        return True


# ===================================================================
# regexp
# ===================================================================

_TEMPLATE_REF = re.compile(r"\$(?:\$|\{(\w+)\}|(\w+))")


def _expand(match, template: str) -> str:
    """Expand $1, ${1}, $name and ${name} references against a match."""
    def ref(m):
        if m.group(0) == "$$":
            return "$"
        name = m.group(1) or m.group(2)
        try:
            return match.group(int(name) if name.isdigit() else name) or ""
        except IndexError:
            return ""
    return _TEMPLATE_REF.sub(ref, template)


def _limit(n: int):
    return None if n < 0 else n


class Regexp(Namespace, namespace="regexp"):
    @operation
    def find_all_string(self, pattern, s, n):
        matches = re.finditer(pattern, s)
        return _strings(m.group(0) for m in itertools.islice(matches, _limit(n)))

    @operation
    def find_string(self, pattern, s):
        m = re.search(pattern, s)
        return m.group(0) if m else ""

    @operation
    def find_string_submatch(self, pattern, s):
        m = re.search(pattern, s)
        if m is None:
            return _strings(())
        return _strings([m.group(0), *(g or "" for g in m.groups())])

    @operation
    def match_string(self, pattern, s):
        return re.search(pattern, s) is not None

    @operation
    def quote_meta(self, s):
        return re.escape(s)

    @operation
    def replace_all_literal_string(self, pattern, s, repl):
        return re.sub(pattern, lambda m: repl, s)

    @operation
    def replace_all_string(self, pattern, s, repl):
        """{{ regexp.replace_all_string("a(x*)b", "-ab-axxb-", "${1}W") }} -> -W-xxW-"""
        return re.sub(pattern, lambda m: _expand(m, repl), s)

    @operation
    def split(self, pattern, s, n):
        if n == 0:
            return _strings(())
        pieces = []
        start = 0
        for m in re.finditer(pattern, s):
            if n > 0 and len(pieces) == n - 1:
                break
            if m.end() == m.start():
                continue
            pieces.append(s[start:m.start()])
            start = m.end()
        pieces.append(s[start:])
        return _strings(pieces)


# ===================================================================
# dict
# ===================================================================

class Dict(Namespace, namespace="dict"):
    @operation
    def new(self, *pairs):
        """{{ dict.new("name", "Frank", "age", 42).name }} -> Frank"""
        if len(pairs) % 2:
            pairs = pairs + (None,)
        return {pairs[i]: pairs[i + 1] for i in range(0, len(pairs), 2)}

    @operation
    def has_key(self, mapping, key):
        return key in mapping

    @operation
    def has_value(self, mapping, value):
        return any(v == value for v in mapping.values())

    @operation
    def keys(self, mapping):
        return TypedList(Kind.ANY, mapping.keys())


# ===================================================================
# cmp
# ===================================================================

class Cmp(Namespace, namespace="cmp"):
    @operation
    def compare(self, a, b):
        return (a > b) - (a < b)

    @operation
    def less(self, a, b):
        return a < b

    @operation
    def coalesce(self, *values):
        """The first non-zero value; a single list argument is searched instead.

        {{ cmp.coalesce("", "Hello", "World") }} -> Hello
        """
        if not values:
            raise ArgumentError("at least one argument is required")
        if isinstance(values[0], (list, tuple, TypedList)):
            if len(values) != 1:
                raise ArgumentError("only one list argument is allowed")
            values = items_of(values[0])
            if not values:
                return None
        for value in values:
            if value:
                return value
        return values[0]


# ===================================================================
# os (never part of SAFE)
# ===================================================================

_ENV_REF = re.compile(r"\$(?:\{(\w+)\}|(\w+))")


class OS(Namespace, namespace="os"):
    @operation
    def environ(self):
        return _strings(f"{k}={v}" for k, v in os.environ.items())

    @operation
    def expand_env(self, s):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1) or m.group(2), ""), s)

    @operation
    def getenv(self, key):
        return os.environ.get(key, "")

    @operation
    def getpid(self):
        return os.getpid()

    @operation
    def getwd(self):
        return os.getcwd()

    @operation
    def hostname(self):
        return socket.gethostname()

    @operation
    def lookup_env(self, key):
        if key in os.environ:
            return LookupResult(os.environ[key], True)
        return LookupResult("", False)

    @operation
    def mkdir_all(self, path, perm=0o777):
        os.makedirs(path, mode=perm, exist_ok=True)

    @operation
    def read_file(self, name):
        with open(name, encoding="utf-8") as f:
            return f.read()

    @operation
    def remove(self, name):
        os.remove(name)

    @operation
    def setenv(self, key, value):
        os.environ[key] = value

    @operation
    def temp_dir(self):
        return tempfile.gettempdir()

    @operation
    def unsetenv(self, key):
        os.environ.pop(key, None)

    @operation
    def user_home_dir(self):
        return os.path.expanduser("~")

    @operation
    def write_file(self, name, data, perm=0o666):
        with open(name, "w", encoding="utf-8") as f:
            f.write(data)
        os.chmod(name, perm)
