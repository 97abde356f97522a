"""pipeline-migrate: convert third-party CI pipelines into the canonical v1 schema."""
from .config import ConvertOptions, DowngradeOptions

__version__ = "0.1.0"

__all__ = ["ConvertOptions", "DowngradeOptions", "__version__"]
