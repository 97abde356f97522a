"""
circle.py
=========
CircleCI `config.yml` → dialect tree.

Job order follows the first workflow (falling back to the `jobs` order).
Each job becomes a stage; its image comes from `docker:` or from a named
executor. Steps are reduced to three node shapes:

    run:                 → `run` node
    <alias>/<command>:   → `orb` node (orb registry name and version from `orbs:`)
    other built-ins      → node of the built-in's own kind (placeholder)

`checkout` is implicit in the canonical pipeline and is skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..core.dialect import DialectNode, DialectStage, DialectTree
from ..core.errors import ParseError
from ..core.identifiers import derive_context_id
from .base import load_yaml_mapping, mapping_section, register_frontend, string_map

logger = logging.getLogger(__name__)

SKIPPED_STEPS = frozenset({"checkout"})


def _orb_refs(doc: Mapping[str, Any]) -> dict[str, tuple[str, str]]:
    refs: dict[str, tuple[str, str]] = {}
    for alias, ref in mapping_section(doc, "orbs", "CircleCI").items():
        if not isinstance(ref, str):
            logger.warning("Inline orb '%s' is not supported.", alias)
            continue
        name, _, version = ref.partition("@")
        refs[str(alias)] = (name, version)
    return refs


def _docker_image(definition: Any) -> str | None:
    if not isinstance(definition, Mapping):
        return None
    docker = definition.get("docker")
    if isinstance(docker, list) and docker and isinstance(docker[0], Mapping):
        return docker[0].get("image")
    return None


def _job_image(job: Mapping[str, Any], executors: Mapping[str, Any]) -> str | None:
    image = _docker_image(job)
    if image:
        return image
    executor = job.get("executor")
    if isinstance(executor, Mapping):
        executor = executor.get("name")
    if isinstance(executor, str):
        return _docker_image(executors.get(executor))
    return None


def _job_order(doc: Mapping[str, Any], jobs: Mapping[str, Any]) -> list[str]:
    workflows = {k: v for k, v in mapping_section(doc, "workflows", "CircleCI").items() if k != "version"}
    for workflow_name, workflow in workflows.items():
        entries = workflow.get("jobs") if isinstance(workflow, Mapping) else None
        if not entries:
            continue
        if not isinstance(entries, list):
            raise ParseError(f"`jobs` of workflow '{workflow_name}' must be a list.")
        order = []
        for entry in entries:
            if isinstance(entry, Mapping) and entry:
                name = str(next(iter(entry)))
            elif isinstance(entry, str):
                name = entry
            else:
                raise ParseError(f"Workflow '{workflow_name}' has a malformed job entry: {entry!r}.")
            if name in jobs and name not in order:
                order.append(name)
            elif name not in jobs:
                logger.warning("Workflow references unknown job '%s'.", name)
        return order
    return list(jobs)


def _step_node(
    job_name: str,
    index: int,
    step: Any,
    image: str | None,
    orbs: Mapping[str, tuple[str, str]],
) -> DialectNode | None:
    if isinstance(step, str):
        key, params = step, {}
    elif isinstance(step, Mapping) and len(step) == 1:
        key, params = next(iter(step.items()))
        key = str(key)
    else:
        raise ParseError(f"Step {index} of job '{job_name}' must be a string or a single-key mapping.")

    if key in SKIPPED_STEPS:
        return None
    context_id = derive_context_id(job_name, index)

    if key == "run":
        if not isinstance(params, Mapping):
            params = {"command": params or ""}
        attributes: dict[str, Any] = {"run": params.get("command", "")}
        if params.get("shell"):
            attributes["shell"] = params["shell"]
        if params.get("environment"):
            attributes["envs"] = params["environment"]
        if image:
            attributes["image"] = image
        return DialectNode(kind="run", name=str(params.get("name") or ""), context_id=context_id, attributes=attributes)

    if "/" in key:
        alias, _, command = key.partition("/")
        orb, version = orbs.get(alias, (alias, ""))
        attributes = {"orb": orb, "command": command, "version": version, "with": params or {}}
        if image:
            attributes["image"] = image
        name = params.get("name", "") if isinstance(params, Mapping) else ""
        return DialectNode(kind="orb", name=str(name), context_id=context_id, attributes=attributes)

    attributes = dict(params) if isinstance(params, Mapping) else {}
    return DialectNode(kind=key, context_id=context_id, attributes=attributes)


@register_frontend("circle", ".circleci/config.yml", "CircleCI")
def parse_circle(text: str) -> DialectTree:
    doc = load_yaml_mapping(text, "CircleCI")
    jobs = doc.get("jobs")
    if not isinstance(jobs, Mapping) or not jobs:
        raise ParseError("A CircleCI config must define a `jobs` mapping.")

    orbs = _orb_refs(doc)
    executors = mapping_section(doc, "executors", "CircleCI")
    stages = []
    for job_name in _job_order(doc, jobs):
        job = jobs[job_name]
        if not isinstance(job, Mapping):
            raise ParseError(f"Job '{job_name}' must be a mapping.")
        image = _job_image(job, executors)
        steps = job.get("steps") or []
        if not isinstance(steps, list):
            raise ParseError(f"`steps` of job '{job_name}' must be a list.")
        nodes = [
            node
            for index, step in enumerate(steps)
            if (node := _step_node(job_name, index, step, image, orbs)) is not None
        ]
        resource_class = str(job.get("resource_class", ""))
        stages.append(
            DialectStage(
                name=str(job_name),
                os="macos" if "macos" in job else ("windows" if "windows" in resource_class else "linux"),
                arch="arm64" if "arm" in resource_class else "amd64",
                envs=string_map(job.get("environment"), f"environment of job '{job_name}'"),
                nodes=nodes,
            )
        )

    return DialectTree(dialect="circle", stages=stages)
