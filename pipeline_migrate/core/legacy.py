"""
legacy.py
=========
Legacy (v0) pipeline model, produced only by the downgrader.

The v0 schema wraps every stage and step in a single-key envelope
(`- stage: {...}`, `- step: {...}`), uses camelCase identifiers and needs
organisation / project / codebase metadata at the root that the canonical
schema does not carry.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

RUNTIME_INPUT = "<+input>"


class LegacyStep(BaseModel):
    identifier: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    timeout: str | None = Field(default=None)
    spec: dict[str, Any] = Field(default_factory=dict)


class LegacyStepWrapper(BaseModel):
    step: LegacyStep


class LegacyExecution(BaseModel):
    steps: list[LegacyStepWrapper] = Field(default_factory=list)


class LegacyInfrastructure(BaseModel):
    type: str = Field(default="KubernetesDirect")
    spec: dict[str, Any] = Field(default_factory=dict)


class LegacyPlatform(BaseModel):
    os: str = Field(default="Linux")
    arch: str = Field(default="Amd64")


class LegacyRuntime(BaseModel):
    type: str = Field(default="Cloud")
    spec: dict[str, Any] = Field(default_factory=dict)


class LegacyStageSpec(BaseModel):
    clone_codebase: bool = Field(default=False, alias="cloneCodebase")
    infrastructure: LegacyInfrastructure | None = Field(default=None)
    platform: LegacyPlatform | None = Field(default=None)
    runtime: LegacyRuntime | None = Field(default=None)
    execution: LegacyExecution = Field(default_factory=LegacyExecution)

    model_config = {"populate_by_name": True}


class LegacyStage(BaseModel):
    name: str = Field(..., min_length=1)
    identifier: str = Field(..., min_length=1)
    description: str | None = Field(default=None)
    type: str = Field(default="CI")
    spec: LegacyStageSpec = Field(default_factory=LegacyStageSpec)


class LegacyStageWrapper(BaseModel):
    stage: LegacyStage


class LegacyCodebase(BaseModel):
    connector_ref: str = Field(..., alias="connectorRef")
    repo_name: str | None = Field(default=None, alias="repoName")
    build: str = Field(default=RUNTIME_INPUT)

    model_config = {"populate_by_name": True}


class LegacyCIProperties(BaseModel):
    codebase: LegacyCodebase


class LegacyProperties(BaseModel):
    ci: LegacyCIProperties


class LegacyPipelineSpec(BaseModel):
    name: str = Field(..., min_length=1)
    identifier: str = Field(..., min_length=1)
    org_identifier: str = Field(..., alias="orgIdentifier")
    project_identifier: str = Field(..., alias="projectIdentifier")
    properties: LegacyProperties | None = Field(default=None)
    stages: list[LegacyStageWrapper] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class LegacyPipeline(BaseModel):
    """Root of a legacy (v0) pipeline document."""

    pipeline: LegacyPipelineSpec
