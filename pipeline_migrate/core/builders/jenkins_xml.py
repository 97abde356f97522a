"""
jenkins_xml.py
==============
Builders for Jenkins freestyle build tasks (`config.xml` `<builders>` children).

Each node carries the task's inner XML as a raw `content` fragment; the
fragment is flattened with `parse_fragment` and fed through a mapping table.

    hudson.tasks.Shell                                  → script  "shell"
    hudson.tasks.BatchFile                              → script  "batch"
    hudson.tasks.Ant                                    → plugin  ant-plugin
    hudson.tasks.Maven                                  → plugin  maven-plugin
    hudson.plugins.gradle.Gradle                        → RunTests (Java / Gradle)
    hudson.plugins.build__timeout.BuildStepWithTimeout  → script  with timeout
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..canonical import (
    STEP_TYPE_PLUGIN,
    STEP_TYPE_SCRIPT,
    STEP_TYPE_TEST,
    Step,
    StepExec,
    StepPlugin,
    StepTest,
)
from ..dialect import DialectNode
from ..mapping import CoercionKind, MappingRule, build_spec, coerce, map_params, register_setter
from .base import BuildContext, make_step, parse_fragment, register_builder

logger = logging.getLogger(__name__)

ANT_PLUGIN_IMAGE = "harnesscommunitytest/ant-plugin"
MAVEN_PLUGIN_IMAGE = "harnesscommunitytest/maven-plugin"
JUNIT_XML_PATTERN = "**/*.xml"

# ---------------------------------------------------------------------------
# Mapping tables
# ---------------------------------------------------------------------------

SHELL_RULES = (
    MappingRule("command", "run", CoercionKind.STRING),
)

ANT_RULES = (
    MappingRule("targets", "goals", CoercionKind.STRING),
    MappingRule("buildFile", "build_file", CoercionKind.STRING),
)

MAVEN_RULES = (
    MappingRule("targets", "goals", CoercionKind.STRING),
)

GRADLE_RULES = (
    MappingRule("tasks", "args", CoercionKind.STRING, setter="gradle_args"),
    MappingRule("language", "language", CoercionKind.STRING, setter="java_language"),
    MappingRule("buildTool", "buildTool", CoercionKind.STRING, setter="gradle_build_tool"),
    MappingRule("makeExecutable", "preCommand", CoercionKind.BOOL, setter="gradle_wrapper_pre_command"),
    MappingRule("reports", "reports", CoercionKind.STRING, setter="junit_xml_reports"),
)

TIMEOUT_RULES = (
    MappingRule("timeoutMinutes", "timeout", CoercionKind.STRING, setter="minutes_duration"),
    MappingRule("command", "run", CoercionKind.STRING),
)


# ---------------------------------------------------------------------------
# Setters
# ---------------------------------------------------------------------------


@register_setter("gradle_args")
def _gradle_args(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str | None:
    switches = coerce(bag.get("switches", ""), CoercionKind.STRING, source_key="switches", dest_key=dest_key)
    parts = [p.strip() for p in (mapped.get(dest_key) or "", switches) if p and p.strip()]
    return " ".join(parts) or None


@register_setter("java_language")
def _java_language(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    return "Java"


@register_setter("gradle_build_tool")
def _gradle_build_tool(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    return "Gradle"


@register_setter("gradle_wrapper_pre_command")
def _gradle_wrapper_pre_command(
    bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]
) -> str | None:
    if not mapped.get(dest_key):
        return None
    uses_wrapper = coerce(
        bag.get("useWrapper", "false"), CoercionKind.BOOL, source_key="useWrapper", dest_key=dest_key
    )
    return "chmod +x ./gradlew" if uses_wrapper else None


@register_setter("junit_xml_reports")
def _junit_xml_reports(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> list:
    return [{"type": "JUnit", "spec": {"paths": [JUNIT_XML_PATTERN]}}]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _fragment_bag(node: DialectNode) -> dict[str, str]:
    return parse_fragment(node.get("content", ""))


@register_builder("hudson.tasks.Shell")
def build_shell_task(node: DialectNode, ctx: BuildContext) -> Step:
    mapped = map_params(_fragment_bag(node), SHELL_RULES, ctx.variables)
    return make_step(ctx, node, name="shell", type=STEP_TYPE_SCRIPT, spec=build_spec(StepExec, mapped))


@register_builder("hudson.tasks.BatchFile")
def build_batch_task(node: DialectNode, ctx: BuildContext) -> Step:
    mapped = map_params(_fragment_bag(node), SHELL_RULES, ctx.variables)
    return make_step(ctx, node, name="batch", type=STEP_TYPE_SCRIPT, spec=build_spec(StepExec, mapped))


@register_builder("hudson.tasks.Ant")
def build_ant_task(node: DialectNode, ctx: BuildContext) -> Step:
    mapped = map_params(_fragment_bag(node), ANT_RULES, ctx.variables)
    spec = StepPlugin(image=ANT_PLUGIN_IMAGE, with_=mapped)
    return make_step(ctx, node, name="ant", type=STEP_TYPE_PLUGIN, spec=spec)


@register_builder("hudson.tasks.Maven")
def build_maven_task(node: DialectNode, ctx: BuildContext) -> Step:
    mapped = map_params(_fragment_bag(node), MAVEN_RULES, ctx.variables)
    spec = StepPlugin(image=MAVEN_PLUGIN_IMAGE, with_=mapped)
    return make_step(ctx, node, name="maven", type=STEP_TYPE_PLUGIN, spec=spec)


@register_builder("hudson.plugins.gradle.Gradle")
def build_gradle_task(node: DialectNode, ctx: BuildContext) -> Step:
    mapped = map_params(_fragment_bag(node), GRADLE_RULES, ctx.variables)
    spec = build_spec(StepTest, mapped, runOnlySelectedTests=False, enableTestSplitting=False)
    return make_step(ctx, node, name="Gradle", type=STEP_TYPE_TEST, spec=spec)


@register_builder("hudson.plugins.build__timeout.BuildStepWithTimeout")
def build_timeout_task(node: DialectNode, ctx: BuildContext) -> Step:
    mapped = map_params(_fragment_bag(node), TIMEOUT_RULES, ctx.variables)
    timeout = mapped.pop("timeout", None)
    if timeout is None:
        logger.warning("Timeout task without timeoutMinutes; emitting step without timeout.")
    return make_step(
        ctx,
        node,
        name="timeout",
        type=STEP_TYPE_SCRIPT,
        spec=build_spec(StepExec, mapped),
        timeout=timeout,
    )
