"""
dialect.py
==========
Boundary shape handed from the per-dialect front ends to the engine.

A front end reduces its own grammar to three things:
    - DialectNode  : one construct (shell task, orb call, action, span ...)
    - DialectStage : an ordered group of nodes plus platform / env hints
    - DialectTree  : the ordered stages and the variable-substitution mapping

The engine never looks past this shape, so every dialect is handled by the
same builders and mapping rules.
"""

from __future__ import annotations

from typing import Any, Iterator

from pydantic import BaseModel, Field


class DialectNode(BaseModel):
    """Read-only attribute bag tagged with a construct kind."""

    kind: str = Field(..., min_length=1, description="Construct-kind tag used for builder dispatch.")
    name: str = Field(default="", description="Source display name, if the dialect has one.")
    context_id: str = Field(default="", description="Span/task id used to suffix identifiers.")
    attributes: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self.attributes


class DialectStage(BaseModel):
    name: str = Field(default="ci")
    os: str | None = Field(default=None)
    arch: str | None = Field(default=None)
    envs: dict[str, str] = Field(default_factory=dict)
    nodes: list[DialectNode] = Field(default_factory=list)

    model_config = {"frozen": True}


class DialectTree(BaseModel):
    """Everything a front end produces for one source document."""

    dialect: str
    name: str = Field(default="default")
    stages: list[DialectStage] = Field(default_factory=list)
    variables: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def iter_nodes(self) -> Iterator[DialectNode]:
        for stage in self.stages:
            yield from stage.nodes

    @property
    def node_count(self) -> int:
        return sum(len(s.nodes) for s in self.stages)
