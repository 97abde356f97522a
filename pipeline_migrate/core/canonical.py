"""
canonical.py
============
Canonical (v1) pipeline model.

    Config
    └── Pipeline
        └── Stage (type=ci)
            └── StageCI
                ├── platform / runtime / envs
                └── Step (id, name, type, timeout, spec)

`Step.spec` is a closed, tagged union. The tag (`kind`) is derived from the
step `type` when a pipeline is loaded from markup, and is never written out.

Author: Transpiler Architect
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, model_validator

# ---------------------------------------------------------------------------
# Step types
# ---------------------------------------------------------------------------

STEP_TYPE_SCRIPT = "script"
STEP_TYPE_PLUGIN = "plugin"
STEP_TYPE_ACTION = "action"
STEP_TYPE_TEST = "RunTests"
STEP_TYPE_BACKGROUND = "background"

_SPEC_KIND_BY_STEP_TYPE: dict[str, str] = {
    STEP_TYPE_SCRIPT: "exec",
    "run": "exec",
    STEP_TYPE_PLUGIN: "plugin",
    STEP_TYPE_ACTION: "action",
    STEP_TYPE_TEST: "test",
    "test": "test",
    STEP_TYPE_BACKGROUND: "background",
}


# ---------------------------------------------------------------------------
# Step specs
# ---------------------------------------------------------------------------


class StepExec(BaseModel):
    """Script step: run a shell command, optionally inside an image."""

    kind: Literal["exec"] = Field(default="exec", exclude=True)
    image: str | None = Field(default=None)
    connector: str | None = Field(default=None)
    shell: str | None = Field(default=None)
    run: str | None = Field(default=None)
    envs: dict[str, str] | None = Field(default=None)

    model_config = {"populate_by_name": True}


class StepPlugin(BaseModel):
    """Plugin step: a container image configured through `with` inputs."""

    kind: Literal["plugin"] = Field(default="plugin", exclude=True)
    image: str | None = Field(default=None)
    connector: str | None = Field(default=None)
    with_: dict[str, Any] | None = Field(default=None, alias="with")
    envs: dict[str, str] | None = Field(default=None)

    model_config = {"populate_by_name": True}


class StepAction(BaseModel):
    """GitHub-style action reference."""

    kind: Literal["action"] = Field(default="action", exclude=True)
    uses: str = Field(..., min_length=1)
    with_: dict[str, Any] | None = Field(default=None, alias="with")
    envs: dict[str, str] | None = Field(default=None)

    model_config = {"populate_by_name": True}


class ReportSpec(BaseModel):
    paths: list[str] = Field(default_factory=list)


class Report(BaseModel):
    type: str = Field(default="JUnit")
    spec: ReportSpec = Field(default_factory=ReportSpec)


class StepTest(BaseModel):
    """Provider-structured build/test step (language + build tool)."""

    kind: Literal["test"] = Field(default="test", exclude=True)
    image: str | None = Field(default=None)
    connector: str | None = Field(default=None)
    language: str | None = Field(default=None)
    build_tool: str | None = Field(default=None, alias="buildTool")
    args: str | None = Field(default=None)
    run_only_selected_tests: bool = Field(default=False, alias="runOnlySelectedTests")
    pre_command: str | None = Field(default=None, alias="preCommand")
    post_command: str | None = Field(default=None, alias="postCommand")
    reports: list[Report] | None = Field(default=None)
    enable_test_splitting: bool = Field(default=False, alias="enableTestSplitting")
    envs: dict[str, str] | None = Field(default=None)

    model_config = {"populate_by_name": True}


class StepBackground(BaseModel):
    """Long-running service container started alongside the stage."""

    kind: Literal["background"] = Field(default="background", exclude=True)
    image: str = Field(..., min_length=1)
    connector: str | None = Field(default=None)
    entrypoint: str | None = Field(default=None)
    run: str | None = Field(default=None)
    envs: dict[str, str] | None = Field(default=None)

    model_config = {"populate_by_name": True}


StepSpec = Annotated[
    Union[StepExec, StepPlugin, StepAction, StepTest, StepBackground],
    Field(discriminator="kind"),
]

class Step(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    timeout: str | None = Field(default=None)
    spec: StepSpec

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def tag_spec_from_type(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        spec = data.get("spec")
        if isinstance(spec, dict) and "kind" not in spec:
            kind = _SPEC_KIND_BY_STEP_TYPE.get(str(data.get("type", "")))
            if kind is None:
                raise ValueError(f"Unknown step type {data.get('type')!r}")
            data = {**data, "spec": {**spec, "kind": kind}}
        return data


# ---------------------------------------------------------------------------
# Stage / pipeline
# ---------------------------------------------------------------------------


class Platform(BaseModel):
    os: str = Field(default="linux")
    arch: str = Field(default="amd64")


class RuntimeSpec(BaseModel):
    connector: str | None = Field(default=None)
    namespace: str | None = Field(default=None)


class Runtime(BaseModel):
    type: Literal["kubernetes", "cloud"] = Field(default="cloud")
    spec: RuntimeSpec | None = Field(default=None)


class StageCI(BaseModel):
    platform: Platform | None = Field(default=None)
    runtime: Runtime | None = Field(default=None)
    envs: dict[str, str] | None = Field(default=None)
    steps: list[Step] = Field(default_factory=list)


class Stage(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    type: Literal["ci"] = Field(default="ci")
    spec: StageCI = Field(default_factory=StageCI)


class Pipeline(BaseModel):
    stages: list[Stage] = Field(default_factory=list)

    def iter_steps(self):
        for stage in self.stages:
            yield from stage.spec.steps


class Config(BaseModel):
    """Root of a canonical (v1) pipeline document."""

    version: Literal[1] = Field(default=1)
    kind: Literal["pipeline"] = Field(default="pipeline")
    spec: Pipeline = Field(default_factory=Pipeline)
