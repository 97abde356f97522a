"""Step builders: one canonical step per dialect construct."""
from . import generic, jenkins_json, jenkins_xml, orbs  # noqa: F401  (registers builders)
from .base import STEP_BUILDERS, BuildContext, build_step, parse_fragment, placeholder_step

__all__ = ["STEP_BUILDERS", "BuildContext", "build_step", "parse_fragment", "placeholder_step"]
