"""
mapping.py
==========
Declarative parameter-mapping engine.

Turns a loosely typed attribute bag into typed destination fields using an
ordered table of `MappingRule` rows.

Responsibilities:
    - Look up each rule's source key and coerce the raw value to the
      destination type (`CoercionKind`), failing loudly on bad input.
    - Run named setters for fields that depend on more than one source
      attribute, or on nothing at all (fixed tool names, defaults).
    - Substitute `${NAME}` variable references on rules that opt in.

Adding support for a new dialect construct means adding rows to a table, not
branches to this module.

Author: Transpiler Architect
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel

from .errors import TypeCoercionError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rule definitions
# ---------------------------------------------------------------------------


class CoercionKind(str, Enum):
    BOOL = "bool"
    STRING = "string"
    STRING_TO_FLOAT = "string_to_float"
    STRING_TO_INT = "string_to_int"
    STRING_TO_LIST = "string_to_list"
    MAP = "map"
    STRING_MAP = "string_map"


@dataclass(frozen=True)
class MappingRule:
    """
    A single source → destination field mapping.

    If `setter` is set, the named setter runs after any declared coercion and
    decides the final value, even when the source key is absent.
    """

    source_key: str
    dest_key: str
    coercion: CoercionKind = CoercionKind.STRING
    setter: str | None = None
    interpolate: bool = False


# Setter signature: (attribute bag, destination key, fields mapped so far) -> value.
# Returning None leaves the destination unset.
Setter = Callable[[Mapping[str, Any], str, Mapping[str, Any]], Any]

_SETTERS: dict[str, Setter] = {}


def register_setter(name: str) -> Callable[[Setter], Setter]:
    """Register a named setter so rule tables can refer to it as data."""

    def decorator(fn: Setter) -> Setter:
        if name in _SETTERS:
            raise ValueError(f"Setter '{name}' is already registered.")
        _SETTERS[name] = fn
        return fn

    return decorator


def get_setter(name: str) -> Setter:
    try:
        return _SETTERS[name]
    except KeyError:
        raise KeyError(f"No setter registered under '{name}'.") from None


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

_TRUE_STRINGS = frozenset({"true", "yes", "1", "on"})
_FALSE_STRINGS = frozenset({"false", "no", "0", "off"})
_LIST_SPLIT_RE = re.compile(r"[,\n]")
_VARIABLE_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError("expected a boolean or a true/false string")


def _to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ValueError(f"expected a string, got {type(value).__name__}")


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("expected a number, got bool")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise ValueError(f"expected a numeric string, got {type(value).__name__}")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected an integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    raise ValueError(f"expected an integer string, got {type(value).__name__}")


def _to_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [part.strip() for part in _LIST_SPLIT_RE.split(value) if part.strip()]
    if isinstance(value, (list, tuple)):
        return [_to_string(item) for item in value]
    raise ValueError(f"expected a string or list, got {type(value).__name__}")


def _to_map(value: Any) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return {str(k): v for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        result: dict[str, Any] = {}
        for item in value:
            if not isinstance(item, str) or "=" not in item:
                raise ValueError(f"expected KEY=VALUE entries, got {item!r}")
            key, _, val = item.partition("=")
            result[key.strip()] = val
        return result
    raise ValueError(f"expected a mapping, got {type(value).__name__}")


def _to_string_map(value: Any) -> dict[str, str]:
    result = {}
    for key, val in _to_map(value).items():
        if isinstance(val, bool):
            result[key] = "true" if val else "false"
        elif val is None:
            result[key] = ""
        else:
            result[key] = _to_string(val)
    return result


_COERCERS: dict[CoercionKind, Callable[[Any], Any]] = {
    CoercionKind.BOOL: _to_bool,
    CoercionKind.STRING: _to_string,
    CoercionKind.STRING_TO_FLOAT: _to_float,
    CoercionKind.STRING_TO_INT: _to_int,
    CoercionKind.STRING_TO_LIST: _to_list,
    CoercionKind.MAP: _to_map,
    CoercionKind.STRING_MAP: _to_string_map,
}


def coerce(value: Any, kind: CoercionKind, *, source_key: str = "", dest_key: str = "") -> Any:
    """Convert *value* to the type named by *kind* or raise TypeCoercionError."""
    try:
        return _COERCERS[kind](value)
    except (ValueError, TypeError) as exc:
        raise TypeCoercionError(source_key, dest_key, value, str(exc)) from exc


def interpolate(value: str, variables: Mapping[str, str]) -> str:
    """Replace `${NAME}` with variables[NAME]; unknown names are left as-is."""
    if not variables or "${" not in value:
        return value
    return _VARIABLE_RE.sub(lambda m: str(variables.get(m.group(1), m.group(0))), value)


def _interpolate_value(value: Any, variables: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return interpolate(value, variables)
    if isinstance(value, list):
        return [interpolate(item, variables) if isinstance(item, str) else item for item in value]
    return value


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


def map_params(
    bag: Mapping[str, Any],
    rules: tuple[MappingRule, ...] | list[MappingRule],
    variables: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """
    Evaluate *rules* in order against *bag*.

    Parameters
    ----------
    bag:
        The raw attribute bag of one dialect construct.
    rules:
        Ordered mapping table.
    variables:
        Variable-substitution mapping for rules with `interpolate=True`.

    Returns
    -------
    dict
        destination key → typed value, in rule order.

    Raises
    ------
    TypeCoercionError
        If a present source value cannot be coerced.
    """
    variables = variables or {}
    mapped: dict[str, Any] = {}

    for rule in rules:
        present = rule.source_key in bag and bag[rule.source_key] is not None

        if present:
            value = coerce(
                bag[rule.source_key],
                rule.coercion,
                source_key=rule.source_key,
                dest_key=rule.dest_key,
            )
            if rule.interpolate:
                value = _interpolate_value(value, variables)
            mapped[rule.dest_key] = value
        elif rule.setter is None:
            continue

        if rule.setter is not None:
            value = get_setter(rule.setter)(bag, rule.dest_key, mapped)
            if value is None:
                mapped.pop(rule.dest_key, None)
            else:
                mapped[rule.dest_key] = value

    logger.debug("Mapped %d of %d rules: %s", len(mapped), len(rules), sorted(mapped))
    return mapped


def build_spec(spec_cls: type[BaseModel], mapped: Mapping[str, Any], **fixed: Any) -> BaseModel:
    """Assemble a canonical spec model from mapped fields plus fixed values."""
    return spec_cls.model_validate({**mapped, **fixed})
