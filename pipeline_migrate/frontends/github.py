"""
github.py
=========
GitHub Actions workflow → dialect tree.

    jobs.<id>           → one stage (display name from `name`, else the id)
    runs-on             → stage os / arch
    env                 → workflow env + job env merged into stage envs
    steps[].run         → `run` node (shell, env, container image)
    steps[].uses        → `action` node (`actions/checkout` is implicit)
    timeout-minutes     → carried on the node
"""

from __future__ import annotations

import logging
from typing import Any

from ..core.dialect import DialectNode, DialectStage, DialectTree
from ..core.errors import ParseError
from ..core.identifiers import derive_context_id
from .base import load_yaml_mapping, platform_from_label, register_frontend, string_map

logger = logging.getLogger(__name__)

CHECKOUT_ACTION = "actions/checkout"


def _runs_on(job: dict[str, Any]) -> tuple[str | None, str | None]:
    runs_on = job.get("runs-on")
    if isinstance(runs_on, list):
        runs_on = next((label for label in runs_on if isinstance(label, str)), None)
    if not isinstance(runs_on, str):
        return None, None
    return platform_from_label(runs_on)


def _container_image(job: dict[str, Any]) -> str | None:
    container = job.get("container")
    if isinstance(container, str):
        return container
    if isinstance(container, dict):
        return container.get("image")
    return None


def _step_node(job_id: str, index: int, step: dict[str, Any], image: str | None) -> DialectNode | None:
    context_id = derive_context_id(job_id, index)
    name = str(step.get("name") or step.get("id") or "")
    common: dict[str, Any] = {}
    if step.get("env"):
        common["envs"] = step["env"]
    if step.get("timeout-minutes") is not None:
        common["timeout_minutes"] = step["timeout-minutes"]

    if "uses" in step:
        uses = str(step["uses"])
        if uses.startswith(CHECKOUT_ACTION):
            logger.debug("Skipping implicit checkout step in job '%s'.", job_id)
            return None
        attributes = {"uses": uses, **common}
        if step.get("with"):
            attributes["with"] = step["with"]
        return DialectNode(kind="action", name=name, context_id=context_id, attributes=attributes)

    if "run" in step:
        attributes = {"run": step["run"], **common}
        if step.get("shell"):
            attributes["shell"] = step["shell"]
        if image:
            attributes["image"] = image
        return DialectNode(kind="run", name=name, context_id=context_id, attributes=attributes)

    logger.warning("Step %d of job '%s' has neither `run` nor `uses`.", index, job_id)
    return DialectNode(kind="github.step", name=name, context_id=context_id, attributes=dict(step))


@register_frontend("github", ".github/workflows/main.yml", "GitHub Actions workflow")
def parse_github(text: str) -> DialectTree:
    doc = load_yaml_mapping(text, "GitHub Actions")
    jobs = doc.get("jobs")
    if not isinstance(jobs, dict) or not jobs:
        raise ParseError("A GitHub Actions workflow must define a `jobs` mapping.")

    workflow_env = string_map(doc.get("env"), "workflow env")
    stages: list[DialectStage] = []
    for job_id, job in jobs.items():
        if not isinstance(job, dict):
            raise ParseError(f"Job '{job_id}' must be a mapping.")
        if "uses" in job:
            logger.warning("Reusable workflow call in job '%s' is not expanded.", job_id)

        os_name, arch = _runs_on(job)
        image = _container_image(job)
        steps = job.get("steps") or []
        if not isinstance(steps, list):
            raise ParseError(f"`steps` of job '{job_id}' must be a list.")

        nodes = []
        for index, step in enumerate(steps):
            if not isinstance(step, dict):
                raise ParseError(f"Step {index} of job '{job_id}' must be a mapping.")
            node = _step_node(str(job_id), index, step, image)
            if node is not None:
                nodes.append(node)

        stages.append(
            DialectStage(
                name=str(job.get("name") or job_id),
                os=os_name,
                arch=arch,
                envs={**workflow_env, **string_map(job.get("env"), f"env of job '{job_id}'")},
                nodes=nodes,
            )
        )

    return DialectTree(
        dialect="github",
        name=str(doc.get("name") or "default"),
        stages=stages,
        variables=workflow_env,
    )
