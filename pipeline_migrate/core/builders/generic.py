"""Builders for the dialect-neutral kinds emitted by the YAML front ends.

`run` covers GitHub `run:` steps, GitLab job scripts and CircleCI `run`
steps; `action` covers GitHub `uses:` steps.
"""

from __future__ import annotations

from ..canonical import STEP_TYPE_ACTION, STEP_TYPE_SCRIPT, Step, StepAction, StepExec
from ..dialect import DialectNode
from ..mapping import CoercionKind, MappingRule, build_spec, map_params
from .base import BuildContext, make_step, register_builder

RUN_RULES = (
    MappingRule("run", "run", CoercionKind.STRING),
    MappingRule("shell", "shell", CoercionKind.STRING),
    MappingRule("image", "image", CoercionKind.STRING, interpolate=True),
    MappingRule("envs", "envs", CoercionKind.STRING_MAP),
)

ACTION_RULES = (
    MappingRule("uses", "uses", CoercionKind.STRING),
    MappingRule("with", "with", CoercionKind.MAP),
    MappingRule("envs", "envs", CoercionKind.STRING_MAP),
)

TIMEOUT_RULES = (
    MappingRule("timeout_minutes", "timeout", CoercionKind.STRING, setter="minutes_duration"),
)


def _timeout(node: DialectNode, ctx: BuildContext) -> str | None:
    return map_params(node.attributes, TIMEOUT_RULES, ctx.variables).get("timeout")


@register_builder("run")
def build_run(node: DialectNode, ctx: BuildContext) -> Step:
    mapped = map_params(node.attributes, RUN_RULES, ctx.variables)
    return make_step(
        ctx,
        node,
        name=node.name or "run",
        type=STEP_TYPE_SCRIPT,
        spec=build_spec(StepExec, mapped),
        timeout=_timeout(node, ctx),
    )


@register_builder("action")
def build_action(node: DialectNode, ctx: BuildContext) -> Step:
    mapped = map_params(node.attributes, ACTION_RULES, ctx.variables)
    name = node.name or str(mapped.get("uses", "action")).split("@")[0]
    return make_step(
        ctx,
        node,
        name=name,
        type=STEP_TYPE_ACTION,
        spec=build_spec(StepAction, mapped),
        timeout=_timeout(node, ctx),
    )
