"""
identifiers.py
==============
Schema-safe identifiers and display names for pipeline entities.

`sanitize_for_id` is the raw scheme: strip, truncate, suffix with the first
characters of a context id. It does not detect collisions created by
truncation. `IdentifierAllocator` layers a per-run registry on top of it so
that no two entities of one conversion share an id.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

PLACEHOLDER_ID = "unnamed"
DEFAULT_NAME = "default"
MAX_ID_BASE_LENGTH = 58
SUFFIX_LENGTH = 6
MAX_NAME_LENGTH = 128

_INVALID_ID_CHARS_RE = re.compile(r"[^a-zA-Z0-9_]+")
_EDGE_UNDERSCORES_RE = re.compile(r"^_+|_+$")
_INVALID_NAME_CHARS_RE = re.compile(r"[^\w\- ]+", re.ASCII)
_REPEATED_SEPARATORS_RE = re.compile(r"([_ \-]){2,}")


def slugify_identifier(name: str) -> str:
    """Collapse disallowed characters to `_` and trim; may return ''."""
    sanitized = _INVALID_ID_CHARS_RE.sub("_", name)
    return _EDGE_UNDERSCORES_RE.sub("", sanitized)


def sanitize_for_id(name: str, context_id: str) -> str:
    """
    Build an identifier from a display name and a context (task/span) id.

    The result contains only letters, digits and underscores. The name part is
    truncated to 58 characters and suffixed with the first 6 id-safe
    characters of *context_id*. Two different names sharing a long common
    prefix and a context id still collide.
    """
    sanitized = slugify_identifier(name) or PLACEHOLDER_ID
    if len(sanitized) > MAX_ID_BASE_LENGTH:
        sanitized = sanitized[:MAX_ID_BASE_LENGTH]
    suffix = _INVALID_ID_CHARS_RE.sub("", context_id)[:SUFFIX_LENGTH]
    return sanitized + suffix


def sanitize_display_name(name: str) -> str:
    """Relaxed, cosmetic sanitizer: never empty, at most 128 characters."""
    sanitized = _INVALID_NAME_CHARS_RE.sub("_", name or "")
    sanitized = _REPEATED_SEPARATORS_RE.sub(r"\1", sanitized)
    sanitized = sanitized.strip("_ ")
    if not sanitized:
        sanitized = DEFAULT_NAME
    return sanitized[:MAX_NAME_LENGTH]


def derive_context_id(*parts: object) -> str:
    """Stable hex digest for front ends whose constructs carry no native id."""
    digest = hashlib.sha1("\x1f".join(str(p) for p in parts).encode("utf-8"))
    return digest.hexdigest()


# ---------------------------------------------------------------------------
# Allocator
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IdentifierRecord:
    candidate: str
    context_id: str
    assigned: str


class IdentifierAllocator:
    """
    Hands out unique identifiers for one conversion run.

    `allocate` memoizes on (candidate, context id), so repeated lookups of the
    same entity agree. `allocate_fresh` never reuses an earlier id and is what
    step builders use: every node is a new entity even when its name and
    context id repeat.

    Never share an instance across conversions: uniqueness is only meaningful
    within one output pipeline.
    """

    def __init__(self) -> None:
        self._by_key: dict[tuple[str, str], IdentifierRecord] = {}
        self._records: list[IdentifierRecord] = []
        self._assigned: set[str] = set()

    def allocate(self, candidate: str, context_id: str = "") -> str:
        key = (candidate, context_id)
        record = self._by_key.get(key)
        if record is not None:
            return record.assigned
        record = self._issue(candidate, context_id)
        self._by_key[key] = record
        return record.assigned

    def allocate_fresh(self, candidate: str, context_id: str = "") -> str:
        return self._issue(candidate, context_id).assigned

    def _issue(self, candidate: str, context_id: str) -> IdentifierRecord:
        ident = sanitize_for_id(candidate, context_id)
        if ident in self._assigned:
            base = ident
            counter = 1
            while f"{base}_{counter}" in self._assigned:
                counter += 1
            ident = f"{base}_{counter}"
            logger.warning(
                "Identifier collision for '%s' (context %r): using '%s'.",
                candidate,
                context_id,
                ident,
            )

        record = IdentifierRecord(candidate=candidate, context_id=context_id, assigned=ident)
        self._records.append(record)
        self._assigned.add(ident)
        return record

    @property
    def records(self) -> list[IdentifierRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)
