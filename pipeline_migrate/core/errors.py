"""Errors raised by the migration engine."""

from __future__ import annotations

from typing import Any


class MigrationError(Exception):
    """Base error for this package."""


class ParseError(MigrationError, ValueError):
    """Raised when source text cannot be parsed into a dialect tree.

    Fatal: the conversion run is aborted.
    """


class TypeCoercionError(MigrationError):
    """Raised when a single attribute cannot be converted to its destination type.

    Local to one step build; the converter degrades the step to a placeholder.
    """

    def __init__(self, source_key: str, dest_key: str, value: Any, reason: str) -> None:
        self.source_key = source_key
        self.dest_key = dest_key
        self.value = value
        self.reason = reason
        super().__init__(
            f"Cannot map '{source_key}' -> '{dest_key}' (value={value!r}): {reason}"
        )


class SerializationError(MigrationError):
    """Raised when a pipeline tree cannot be encoded to the target markup."""
