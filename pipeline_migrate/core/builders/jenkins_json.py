"""
jenkins_json.py
===============
Builders for steps recovered from Jenkins JSON trace exports.

Nodes carry the span's parameter map (with `delegate.arguments` already
flattened by the front end), the span name and the span id. Step ids are
derived from the span name and the first characters of the span id.
"""

from __future__ import annotations

import json
import shlex
from collections.abc import Mapping
from typing import Any

from ..canonical import STEP_TYPE_PLUGIN, STEP_TYPE_SCRIPT, Step, StepExec, StepPlugin
from ..dialect import DialectNode
from ..identifiers import sanitize_display_name
from ..mapping import CoercionKind, MappingRule, build_spec, map_params, register_setter
from .base import BuildContext, make_step, register_builder

COVERAGE_REPORT_IMAGE = "plugins/coverage-report"
WEBHOOK_IMAGE = "plugins/webhook"

_STRING = CoercionKind.STRING
_FLOAT = CoercionKind.STRING_TO_FLOAT

SCRIPT_RULES = (
    MappingRule("script", "run", _STRING),
)

JACOCO_RULES = (
    MappingRule("changeBuildStatus", "fail_on_threshold", CoercionKind.BOOL),
    MappingRule("classPattern", "class_directories", _STRING, interpolate=True),
    MappingRule("exclusionPattern", "class_exclusion_pattern", _STRING, interpolate=True),
    MappingRule("inclusionPattern", "class_inclusion_pattern", _STRING, interpolate=True),
    MappingRule("execPattern", "reports_path_pattern", _STRING, interpolate=True),
    MappingRule("skipCopyOfSrcFiles", "skip_source_copy", CoercionKind.BOOL),
    MappingRule("sourcePattern", "source_directories", _STRING, interpolate=True),
    MappingRule("sourceExclusionPattern", "source_exclusion_pattern", _STRING, interpolate=True),
    MappingRule("sourceInclusionPattern", "source_inclusion_pattern", _STRING, interpolate=True),
    MappingRule("minimumBranchCoverage", "threshold_branch", _FLOAT),
    MappingRule("minimumClassCoverage", "threshold_class", _FLOAT),
    MappingRule("minimumComplexityCoverage", "threshold_complexity", _FLOAT),
    MappingRule("minimumInstructionCoverage", "threshold_instruction", _FLOAT),
    MappingRule("minimumLineCoverage", "threshold_line", _FLOAT),
    MappingRule("minimumMethodCoverage", "threshold_method", _FLOAT),
    MappingRule("tool", "tool", _STRING, setter="jacoco_tool"),
)

NOTIFICATION_RULES = (
    MappingRule("urls", "urls", CoercionKind.STRING_TO_LIST, interpolate=True),
    MappingRule("method", "method", _STRING, setter="http_post_default"),
    MappingRule("tokenValue", "token-value", _STRING, setter="runtime_input"),
    MappingRule("contentType", "content-type", _STRING, setter="json_content_type"),
    MappingRule("template", "template", _STRING, setter="notification_template"),
)


# ---------------------------------------------------------------------------
# Setters
# ---------------------------------------------------------------------------


@register_setter("jacoco_tool")
def _jacoco_tool(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    return "jacoco"


@register_setter("http_post_default")
def _http_post_default(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    return (mapped.get(dest_key) or "POST").upper()


@register_setter("json_content_type")
def _json_content_type(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    return mapped.get(dest_key) or "application/json"


@register_setter("notification_template")
def _notification_template(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str | None:
    if mapped.get(dest_key):
        return mapped[dest_key]
    payload = {}
    if bag.get("phase"):
        payload["status"] = str(bag["phase"])
    if bag.get("notes"):
        payload["notes"] = str(bag["notes"])
    if not payload:
        return None
    return json.dumps(payload, indent=4)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


@register_builder("sh", "bat", "powershell")
def build_script_span(node: DialectNode, ctx: BuildContext) -> Step:
    mapped = map_params(node.attributes, SCRIPT_RULES, ctx.variables)
    if node.kind == "powershell":
        mapped["shell"] = "powershell"
    return make_step(
        ctx,
        node,
        name=node.name or node.kind,
        type=STEP_TYPE_SCRIPT,
        spec=build_spec(StepExec, mapped),
    )


@register_builder("echo")
def build_echo_span(node: DialectNode, ctx: BuildContext) -> Step:
    message = map_params(node.attributes, (MappingRule("message", "message", _STRING),), ctx.variables)
    run = f"echo {shlex.quote(message.get('message', ''))}"
    return make_step(ctx, node, name=node.name or "echo", type=STEP_TYPE_SCRIPT, spec=StepExec(run=run))


@register_builder("jacoco")
def build_jacoco_span(node: DialectNode, ctx: BuildContext) -> Step:
    mapped = map_params(node.attributes, JACOCO_RULES, ctx.variables)
    spec = StepPlugin(image=COVERAGE_REPORT_IMAGE, with_=mapped)
    return make_step(ctx, node, name=node.name or "jacoco", type=STEP_TYPE_PLUGIN, spec=spec)


@register_builder("notifyEndpoints")
def build_notification_span(node: DialectNode, ctx: BuildContext) -> Step:
    mapped = map_params(node.attributes, NOTIFICATION_RULES, ctx.variables)
    spec = StepPlugin(image=WEBHOOK_IMAGE, with_=mapped)
    # The id comes from the span name; the display name is fixed.
    step_id = ctx.allocate(sanitize_display_name(node.name or node.kind), node)
    return Step(id=step_id, name="Notification", type=STEP_TYPE_PLUGIN, spec=spec)
