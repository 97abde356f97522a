"""
base.py
=======
Front-end registry and the loading helpers the YAML dialects share.

A front end is a plain function ``(text) -> DialectTree`` registered under a
dialect name together with the conventional location of that dialect's
pipeline file.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

import yaml

from ..core.dialect import DialectTree
from ..core.errors import ParseError

logger = logging.getLogger(__name__)

FrontEnd = Callable[[str], DialectTree]


@dataclass(frozen=True)
class FrontEndEntry:
    name: str
    parse: FrontEnd
    default_path: str
    description: str = ""


FRONTENDS: dict[str, FrontEndEntry] = {}


def register_frontend(name: str, default_path: str, description: str = "") -> Callable[[FrontEnd], FrontEnd]:
    def decorator(fn: FrontEnd) -> FrontEnd:
        if name in FRONTENDS:
            raise ValueError(f"A front end for '{name}' is already registered.")
        FRONTENDS[name] = FrontEndEntry(name=name, parse=fn, default_path=default_path, description=description)
        return fn

    return decorator


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def load_yaml_mapping(text: str, dialect: str) -> dict[str, Any]:
    """Parse *text* and require a mapping at the top level."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ParseError(f"Invalid {dialect} YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseError(f"A {dialect} pipeline must be a mapping at the top level.")
    return data


def mapping_section(doc: Mapping[str, Any], key: str, dialect: str) -> Mapping[str, Any]:
    """Optional top-level section that must be a mapping when present."""
    value = doc.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ParseError(f"{dialect} `{key}` must be a mapping, got {type(value).__name__}.")
    return value


def string_map(value: Any, where: str) -> dict[str, str]:
    """Environment-style mapping with scalar values rendered as strings."""
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ParseError(f"Expected a mapping for {where}, got {type(value).__name__}.")
    result: dict[str, str] = {}
    for key, item in value.items():
        if isinstance(item, bool):
            result[str(key)] = "true" if item else "false"
        elif item is None:
            result[str(key)] = ""
        elif isinstance(item, (str, int, float)):
            result[str(key)] = str(item)
        else:
            # GitLab allows {value: ..., description: ...}
            result[str(key)] = str(item.get("value", "")) if isinstance(item, Mapping) else str(item)
    return result


def script_lines(value: Any) -> list[str]:
    """A script given as one string or a list of lines (nested lists allowed)."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        lines: list[str] = []
        for item in value:
            lines.extend(script_lines(item))
        return lines
    raise ParseError(f"Expected a script string or list, got {type(value).__name__}.")


def platform_from_label(label: str) -> tuple[str | None, str | None]:
    """Best-effort (os, arch) from a runner label such as ``ubuntu-latest``."""
    lowered = label.lower()
    if "windows" in lowered:
        os_name = "windows"
    elif "macos" in lowered or lowered.startswith("osx"):
        os_name = "macos"
    elif "ubuntu" in lowered or "linux" in lowered:
        os_name = "linux"
    else:
        return None, None
    arch = "arm64" if "arm" in lowered else "amd64"
    return os_name, arch
