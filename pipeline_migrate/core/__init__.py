"""Transformation engine: dialect tree → canonical pipeline → legacy pipeline."""
from .canonical import Config
from .converter import ConversionResult, Converter, DegradedStep
from .dialect import DialectNode, DialectStage, DialectTree
from .downgrader import Downgrader
from .errors import MigrationError, ParseError, SerializationError, TypeCoercionError
from .identifiers import IdentifierAllocator, sanitize_display_name, sanitize_for_id
from .legacy import LegacyPipeline
from .mapping import CoercionKind, MappingRule, map_params

__all__ = [
    "CoercionKind",
    "Config",
    "ConversionResult",
    "Converter",
    "DegradedStep",
    "DialectNode",
    "DialectStage",
    "DialectTree",
    "Downgrader",
    "IdentifierAllocator",
    "LegacyPipeline",
    "MappingRule",
    "MigrationError",
    "ParseError",
    "SerializationError",
    "TypeCoercionError",
    "map_params",
    "sanitize_display_name",
    "sanitize_for_id",
]
