"""
serializer.py
=============
Markup boundary for pipeline trees.

Responsibilities:
    - Encode a canonical `Config` or a `LegacyPipeline` to YAML or JSON bytes,
      keeping field declaration order and the schema's camelCase names.
    - Load a canonical (v1) YAML/JSON document back into a `Config` for the
      standalone downgrade command.

Author: Transpiler Architect
"""

from __future__ import annotations

import json
import logging

import yaml
from pydantic import BaseModel, ValidationError

from .canonical import Config
from .errors import ParseError, SerializationError

logger = logging.getLogger(__name__)

FORMATS = ("yaml", "json")


def to_document(root: BaseModel) -> dict:
    """Plain-data view of *root*: aliases applied, unset optionals omitted."""
    return root.model_dump(mode="json", by_alias=True, exclude_none=True)


def dump(root: BaseModel, fmt: str = "yaml") -> bytes:
    """
    Encode a pipeline tree.

    Parameters
    ----------
    root:
        A canonical `Config` or a `LegacyPipeline`.
    fmt:
        ``"yaml"`` (default) or ``"json"``.

    Raises
    ------
    SerializationError
        On an unknown format or a value the encoder cannot represent.
    """
    if fmt not in FORMATS:
        raise SerializationError(f"Unsupported output format '{fmt}'. Expected one of: {', '.join(FORMATS)}.")

    try:
        document = to_document(root)
        if fmt == "json":
            text = json.dumps(document, indent=2) + "\n"
        else:
            text = yaml.safe_dump(document, sort_keys=False, default_flow_style=False, allow_unicode=True)
    except (TypeError, ValueError, yaml.YAMLError) as exc:
        raise SerializationError(f"Failed to encode {type(root).__name__} as {fmt}: {exc}") from exc

    logger.debug("Serialized %s to %d bytes of %s.", type(root).__name__, len(text), fmt)
    return text.encode("utf-8")


def load_canonical(text: str | bytes) -> Config:
    """Parse a canonical (v1) YAML or JSON document."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ParseError(f"Invalid YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise ParseError("A canonical pipeline document must be a mapping at the top level.")

    try:
        return Config.model_validate(data)
    except ValidationError as exc:
        raise ParseError(f"Not a valid canonical pipeline: {exc}") from exc
