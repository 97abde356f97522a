"""
jenkins_json.py
===============
Jenkins pipeline trace export (JSON span tree) → dialect tree.

Each span carries `spanName`, `spanId`, an `attributesMap` (whose
``jenkins.pipeline.step.type`` names the step) and a `parameterMap` with the
step arguments. The walk:

    stage spans                 → open a new stage
    wrapper spans (node, dir,   → descended; `withEnv` overrides are added
      withEnv, parallel, ...)     to the variable mapping
    any other step span         → one node, kind = step type,
                                  bag = parameterMap with `delegate.arguments`
                                  flattened into it

Steps outside any stage are collected in an implicit `ci` stage.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from ..core.dialect import DialectNode, DialectStage, DialectTree
from ..core.errors import ParseError
from .base import register_frontend

logger = logging.getLogger(__name__)

STEP_TYPE_ATTRIBUTE = "jenkins.pipeline.step.type"
STEP_NAME_ATTRIBUTE = "jenkins.pipeline.step.name"
IMPLICIT_STAGE = "ci"

WRAPPER_TYPES = frozenset(
    {
        "node",
        "dir",
        "ws",
        "withEnv",
        "withCredentials",
        "parallel",
        "timeout",
        "retry",
        "script",
        "catchError",
        "container",
        "wrap",
    }
)


def _section(span: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = span.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ParseError(f"Span `{key}` must be an object, got {type(value).__name__}.")
    return value


def _step_type(span: Mapping[str, Any]) -> str:
    attributes = _section(span, "attributesMap")
    return str(attributes.get(STEP_TYPE_ATTRIBUTE) or "")


def _flatten_parameters(span: Mapping[str, Any]) -> dict[str, Any]:
    params = dict(_section(span, "parameterMap"))
    delegate = params.pop("delegate", None)
    if isinstance(delegate, Mapping) and isinstance(delegate.get("arguments"), Mapping):
        for key, value in delegate["arguments"].items():
            params.setdefault(str(key), value)
    elif delegate is not None:
        params["delegate"] = delegate
    return params


def _env_overrides(params: Mapping[str, Any]) -> dict[str, str]:
    overrides = params.get("overrides") or []
    if isinstance(overrides, str):
        overrides = [overrides]
    env: dict[str, str] = {}
    for entry in overrides:
        key, sep, value = str(entry).partition("=")
        if sep:
            env[key.strip()] = value
    return env


class _Walker:
    def __init__(self) -> None:
        self.stages: list[tuple[str, list[DialectNode]]] = []
        self.variables: dict[str, str] = {}
        self._implicit: list[DialectNode] | None = None

    def walk(self, span: Mapping[str, Any], nodes: list[DialectNode] | None) -> None:
        if not isinstance(span, Mapping):
            raise ParseError(f"Expected a span object, got {type(span).__name__}.")
        step_type = _step_type(span)
        params = _flatten_parameters(span)

        if step_type == "stage":
            attributes = _section(span, "attributesMap")
            name = str(attributes.get(STEP_NAME_ATTRIBUTE) or params.get("name") or span.get("spanName") or "stage")
            stage_nodes: list[DialectNode] = []
            self.stages.append((name, stage_nodes))
            self._children(span, stage_nodes)
            return

        if not step_type or step_type in WRAPPER_TYPES:
            if step_type == "withEnv":
                self.variables.update(_env_overrides(params))
            self._children(span, nodes)
            return

        target = nodes if nodes is not None else self._implicit_stage()
        target.append(
            DialectNode(
                kind=step_type,
                name=str(span.get("spanName") or ""),
                context_id=str(span.get("spanId") or ""),
                attributes=params,
            )
        )

    def _children(self, span: Mapping[str, Any], nodes: list[DialectNode] | None) -> None:
        children = span.get("children") or []
        if not isinstance(children, list):
            raise ParseError(f"Span `children` must be a list, got {type(children).__name__}.")
        for child in children:
            self.walk(child, nodes)

    def _implicit_stage(self) -> list[DialectNode]:
        if self._implicit is None:
            self._implicit = []
            self.stages.append((IMPLICIT_STAGE, self._implicit))
        return self._implicit


@register_frontend("jenkinsjson", "pipeline.json", "Jenkins pipeline trace export (JSON)")
def parse_jenkins_json(text: str) -> DialectTree:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid Jenkins JSON: {exc}") from exc

    roots = data if isinstance(data, list) else [data]
    walker = _Walker()
    for root in roots:
        walker.walk(root, None)

    name = "default"
    if isinstance(data, Mapping) and data.get("name"):
        name = str(data["name"])
    logger.debug("Recovered %d stages from Jenkins trace '%s'.", len(walker.stages), name)

    return DialectTree(
        dialect="jenkinsjson",
        name=name,
        stages=[DialectStage(name=stage, nodes=nodes) for stage, nodes in walker.stages],
        variables=walker.variables,
    )
