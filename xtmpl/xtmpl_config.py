"""
Capability configuration: YAML documents and environment settings in one place.
"""
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml

from xtmpl.xtmpl_capabilities import BUNDLES, Func, NamespaceFuncs
from xtmpl.xtmpl_datatypes import ConfigError

ENV_CAPABILITIES = "XTMPL_CAPABILITIES"
ENV_DEBUG = "XTMPL_DEBUG"

_FALSY = {"", "0", "false", "no", "off"}


def parse_descriptor(text: Any):
    """Turn one configured name into a descriptor.

    "safe" / "all" are bundles, "strings" or "strings.*" a whole namespace,
    "url.join_path" a single operation.
    """
    if not isinstance(text, str):
        raise ConfigError(f"capability entries must be strings, not {type(text).__name__}")
    name = text.strip()
    if not name:
        raise ConfigError("empty capability entry")
    if name.lower() in BUNDLES:
        return BUNDLES[name.lower()]
    namespace, sep, op = name.partition(".")
    if not sep or op == "*":
        return NamespaceFuncs(namespace)
    return Func(namespace, op)


def load_capabilities(text: str) -> List[Any]:
    """Parse a YAML capability document into a list of descriptors."""
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid capability document: {e}") from e

    if doc is None:
        return []
    if isinstance(doc, dict):
        if "capabilities" not in doc:
            raise ConfigError("capability document has no 'capabilities' key")
        entries = doc["capabilities"] or []
    else:
        entries = doc
    if not isinstance(entries, list):
        raise ConfigError(f"'capabilities' must be a list, not {type(entries).__name__}")
    return [parse_descriptor(entry) for entry in entries]


def load_capabilities_file(path: Union[str, Path]) -> List[Any]:
    return load_capabilities(Path(path).read_text(encoding="utf-8"))


# --- Environment ---

def capabilities_from_env(default: Optional[List[Any]] = None) -> List[Any]:
    """Descriptors named in XTMPL_CAPABILITIES (comma-separated), else `default`."""
    raw = os.environ.get(ENV_CAPABILITIES)
    if raw is None:
        return list(default or [])
    return [parse_descriptor(e) for e in raw.split(",") if e.strip()]


def debug_enabled() -> bool:
    return os.environ.get(ENV_DEBUG, "").strip().lower() not in _FALSY


def configure_logging(debug: Optional[bool] = None) -> logging.Logger:
    """Attach a stderr handler to the `xtmpl` logger when debugging is on."""
    logger = logging.getLogger("xtmpl")
    if debug is None:
        debug = debug_enabled()
    if not debug:
        return logger
    logger.setLevel(logging.DEBUG)
    if not any(getattr(h, "_xtmpl_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("[DBG] %(name)s: %(message)s"))
        handler._xtmpl_handler = True
        logger.addHandler(handler)
    return logger
