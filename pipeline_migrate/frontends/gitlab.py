"""
gitlab.py
=========
GitLab CI (`.gitlab-ci.yml`) → dialect tree.

Responsibilities:
    - Group jobs into stages following the `stages:` order (GitLab's
      default order when absent); hidden `.jobs` are templates only.
    - Resolve `extends` by deep-merging templates, detecting cycles.
    - Apply `default:` and the legacy global keywords (`image`,
      `before_script`, `after_script`, `variables`) subject to each job's
      `inherit:` settings.
    - Emit one `run` node per job with the full script.

Author: Transpiler Architect
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..core.dialect import DialectNode, DialectStage, DialectTree
from ..core.errors import ParseError
from ..core.identifiers import derive_context_id
from .base import load_yaml_mapping, mapping_section, register_frontend, script_lines, string_map

logger = logging.getLogger(__name__)

DEFAULT_STAGES = (".pre", "build", "test", "deploy", ".post")
DEFAULT_JOB_STAGE = "test"

RESERVED_KEYS = frozenset(
    {
        "default",
        "include",
        "stages",
        "variables",
        "workflow",
        "image",
        "services",
        "cache",
        "before_script",
        "after_script",
        "types",
    }
)
GLOBAL_DEFAULT_KEYS = ("image", "services", "cache", "before_script", "after_script")


# ---------------------------------------------------------------------------
# inherit:
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InheritKeys:
    """
    One `inherit:` entry (`default` or `variables`).

    ``true`` inherits everything, ``false`` inherits nothing and a list
    inherits only the named keys.
    """

    inherit_all: bool = True
    keys: tuple[str, ...] = ()

    @classmethod
    def parse(cls, value: Any) -> InheritKeys:
        if value is None:
            return cls()
        if isinstance(value, bool):
            return cls(inherit_all=value)
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return cls(inherit_all=False, keys=tuple(value))
        raise ParseError("failed to unmarshal inherit keys")

    def allows(self, key: str) -> bool:
        return self.inherit_all or key in self.keys


@dataclass(frozen=True)
class Inherit:
    default: InheritKeys = InheritKeys()
    variables: InheritKeys = InheritKeys()

    @classmethod
    def parse(cls, value: Any) -> Inherit:
        if value is None:
            return cls()
        if not isinstance(value, Mapping):
            raise ParseError("failed to unmarshal inherit keys")
        return cls(
            default=InheritKeys.parse(value.get("default")),
            variables=InheritKeys.parse(value.get("variables")),
        )


# ---------------------------------------------------------------------------
# extends:
# ---------------------------------------------------------------------------


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _resolve_extends(name: str, jobs: Mapping[str, Any], chain: tuple[str, ...] = ()) -> dict[str, Any]:
    if name in chain:
        raise ParseError(f"Circular `extends` chain: {' -> '.join(chain + (name,))}")
    job = jobs.get(name)
    if not isinstance(job, Mapping):
        raise ParseError(f"Job '{chain[-1] if chain else name}' extends unknown job '{name}'.")

    parents = job.get("extends") or []
    if isinstance(parents, str):
        parents = [parents]
    resolved: dict[str, Any] = {}
    for parent in parents:
        resolved = _deep_merge(resolved, _resolve_extends(str(parent), jobs, chain + (name,)))
    own = {key: value for key, value in job.items() if key != "extends"}
    return _deep_merge(resolved, own)


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


def _image_name(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return value.get("name")
    return None


def _job_node(
    name: str,
    job: dict[str, Any],
    defaults: Mapping[str, Any],
    global_variables: Mapping[str, str],
) -> DialectNode:
    inherit = Inherit.parse(job.get("inherit"))

    def setting(key: str) -> Any:
        if key in job:
            return job[key]
        if inherit.default.allows(key):
            return defaults.get(key)
        return None

    variables = {k: v for k, v in global_variables.items() if inherit.variables.allows(k)}
    variables.update(string_map(job.get("variables"), f"variables of job '{name}'"))

    lines = (
        script_lines(setting("before_script"))
        + script_lines(job.get("script"))
        + script_lines(setting("after_script"))
    )
    if not lines and "trigger" not in job:
        logger.warning("Job '%s' has no script.", name)

    attributes: dict[str, Any] = {}
    if "trigger" in job:
        attributes["trigger"] = job["trigger"]
        kind = "gitlab.trigger"
    else:
        kind = "run"
        attributes["run"] = "\n".join(lines)
    image = _image_name(setting("image"))
    if image:
        attributes["image"] = image
    if variables:
        attributes["envs"] = variables

    return DialectNode(
        kind=kind,
        name=name,
        context_id=derive_context_id("gitlab", name),
        attributes=attributes,
    )


@register_frontend("gitlab", ".gitlab-ci.yml", "GitLab CI")
def parse_gitlab(text: str) -> DialectTree:
    doc = load_yaml_mapping(text, "GitLab CI")

    stage_order = doc.get("stages") or list(DEFAULT_STAGES)
    if not isinstance(stage_order, list):
        raise ParseError("`stages` must be a list.")
    stage_order = [str(stage) for stage in stage_order]

    defaults = dict(mapping_section(doc, "default", "GitLab CI"))
    for key in GLOBAL_DEFAULT_KEYS:
        if key in doc and key not in defaults:
            defaults[key] = doc[key]
    global_variables = string_map(doc.get("variables"), "global variables")

    jobs_by_stage: dict[str, list[DialectNode]] = {stage: [] for stage in stage_order}
    for name, value in doc.items():
        if name in RESERVED_KEYS or str(name).startswith("."):
            continue
        if not isinstance(value, Mapping):
            logger.warning("Ignoring top-level key '%s': not a job.", name)
            continue
        job = _resolve_extends(str(name), doc)
        stage = str(job.get("stage") or DEFAULT_JOB_STAGE)
        if stage not in jobs_by_stage:
            logger.warning("Job '%s' uses undeclared stage '%s'.", name, stage)
            jobs_by_stage[stage] = []
        jobs_by_stage[stage].append(_job_node(str(name), job, defaults, global_variables))

    stages = [
        DialectStage(name=stage, nodes=nodes)
        for stage, nodes in jobs_by_stage.items()
        if nodes
    ]
    return DialectTree(dialect="gitlab", stages=stages, variables=global_variables)
