"""Dialect front ends: source text → `DialectTree`."""
from __future__ import annotations

from ..core.dialect import DialectTree
from ..core.errors import ParseError
from . import circle, github, gitlab, jenkins_json, jenkins_xml  # noqa: F401  (registers front ends)
from .base import FRONTENDS, FrontEndEntry

__all__ = ["FRONTENDS", "FrontEndEntry", "get_frontend", "parse"]


def get_frontend(dialect: str) -> FrontEndEntry:
    entry = FRONTENDS.get(dialect.lower())
    if entry is None:
        supported = ", ".join(sorted(FRONTENDS))
        raise ParseError(f"Unsupported dialect '{dialect}'. Supported dialects: {supported}.")
    return entry


def parse(dialect: str, text: str) -> DialectTree:
    return get_frontend(dialect).parse(text)
