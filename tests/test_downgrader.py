"""Tests for the canonical to legacy downgrade."""

import pytest
import yaml
from pydantic import BaseModel

from pipeline_migrate.config import ConvertOptions, DowngradeOptions
from pipeline_migrate.core import serializer
from pipeline_migrate.core.canonical import (
    Config,
    Pipeline,
    Report,
    ReportSpec,
    Runtime,
    RuntimeSpec,
    Stage,
    StageCI,
    Step,
    StepAction,
    StepBackground,
    StepExec,
    StepPlugin,
    StepTest,
)
from pipeline_migrate.core.converter import Converter
from pipeline_migrate.core.downgrader import Downgrader, legacy_identifier, legacy_shell
from pipeline_migrate.frontends import parse

from samples import GITHUB_WORKFLOW


def _config(*steps, runtime=None):
    stage = Stage(id="build", name="build", spec=StageCI(runtime=runtime, steps=list(steps)))
    return Config(spec=Pipeline(stages=[stage]))


def _legacy_steps(legacy):
    return [wrapper.step for wrapper in legacy.pipeline.stages[0].stage.spec.execution.steps]


@pytest.fixture
def canonical():
    return Converter(ConvertOptions()).convert(parse("github", GITHUB_WORKFLOW)).config


class TestPipelineMetadata:
    def test_defaults(self, canonical):
        legacy = Downgrader().downgrade(canonical)
        spec = legacy.pipeline
        assert spec.name == "default"
        assert spec.identifier == "default"
        assert spec.org_identifier == "default"
        assert spec.project_identifier == "default"
        assert spec.properties is None

    def test_options(self, canonical):
        options = DowngradeOptions(
            organization="acme",
            project="web",
            pipeline_name="2024 release",
            repo_connector="github",
            repo_name="acme/web",
        )
        spec = Downgrader(options).downgrade(canonical).pipeline
        assert spec.org_identifier == "acme"
        assert spec.identifier == "_2024_release"
        assert spec.properties.ci.codebase.connector_ref == "github"
        assert spec.properties.ci.codebase.repo_name == "acme/web"
        assert spec.properties.ci.codebase.build == "<+input>"
        assert all(s.stage.spec.clone_codebase for s in spec.stages)


class TestStages:
    def test_order_preserved(self, canonical):
        legacy = Downgrader().downgrade(canonical)
        assert [s.stage.name for s in legacy.pipeline.stages] == ["build", "Windows build"]
        assert all(s.stage.type == "CI" for s in legacy.pipeline.stages)

    def test_cloud_platform(self, canonical):
        stage = Downgrader().downgrade(canonical).pipeline.stages[1].stage
        assert stage.spec.infrastructure is None
        assert stage.spec.platform.os == "Windows"
        assert stage.spec.platform.arch == "Amd64"
        assert stage.spec.runtime.type == "Cloud"

    def test_kube_connector_from_options(self, canonical):
        options = DowngradeOptions(kube_connector="k8s", kube_namespace="ci")
        stage = Downgrader(options).downgrade(canonical).pipeline.stages[0].stage
        infra = stage.spec.infrastructure
        assert infra.type == "KubernetesDirect"
        assert infra.spec["connectorRef"] == "k8s"
        assert infra.spec["namespace"] == "ci"
        assert infra.spec["os"] == "Linux"
        assert stage.spec.platform is None

    def test_kube_connector_from_canonical_runtime(self):
        runtime = Runtime(type="kubernetes", spec=RuntimeSpec(connector="cluster"))
        stage = Downgrader().downgrade(_config(runtime=runtime)).pipeline.stages[0].stage
        assert stage.spec.infrastructure.spec["connectorRef"] == "cluster"
        assert stage.spec.infrastructure.spec["namespace"] == "default"


class TestSteps:
    def test_run(self):
        step = Step(id="1build", name="build", type="script", timeout="10m", spec=StepExec(run="make", shell="bash", envs={"A": "1"}))
        (legacy,) = _legacy_steps(Downgrader().downgrade(_config(step)))
        assert legacy.identifier == "_1build"
        assert legacy.type == "Run"
        assert legacy.timeout == "10m"
        assert legacy.spec == {"shell": "Bash", "command": "make", "envVariables": {"A": "1"}}

    def test_run_with_image_uses_docker_connector(self):
        step = Step(id="lint", name="lint", type="script", spec=StepExec(run="golint", image="golang"))
        options = DowngradeOptions(docker_connector="hub")
        (legacy,) = _legacy_steps(Downgrader(options).downgrade(_config(step)))
        assert legacy.spec["connectorRef"] == "hub"
        assert legacy.spec["image"] == "golang"

    def test_plugin(self):
        step = Step(id="cov", name="cov", type="plugin", spec=StepPlugin(image="plugins/codecov", with_={"token": "<+input>"}))
        (legacy,) = _legacy_steps(Downgrader().downgrade(_config(step)))
        assert legacy.type == "Plugin"
        assert legacy.spec == {"image": "plugins/codecov", "settings": {"token": "<+input>"}}

    def test_action(self):
        step = Step(id="node", name="node", type="action", spec=StepAction(uses="actions/setup-node@v4", with_={"node-version": 20}))
        (legacy,) = _legacy_steps(Downgrader().downgrade(_config(step)))
        assert legacy.type == "Action"
        assert legacy.spec == {"uses": "actions/setup-node@v4", "with": {"node-version": 20}}

    def test_run_tests_reports_are_merged(self):
        spec = StepTest(
            language="Java",
            build_tool="Gradle",
            args="test",
            reports=[
                Report(spec=ReportSpec(paths=["a/*.xml"])),
                Report(spec=ReportSpec(paths=["b/*.xml", "c/*.xml"])),
            ],
        )
        step = Step(id="gradle", name="Gradle", type="RunTests", spec=spec)
        (legacy,) = _legacy_steps(Downgrader().downgrade(_config(step)))
        assert legacy.type == "RunTests"
        assert legacy.spec["reports"] == {"type": "JUnit", "spec": {"paths": ["a/*.xml", "b/*.xml", "c/*.xml"]}}
        assert legacy.spec["buildTool"] == "Gradle"
        assert legacy.spec["runOnlySelectedTests"] is False

    def test_background(self):
        spec = StepBackground(image="redis:7", entrypoint="redis-server --port 6380", envs={"X": "1"})
        step = Step(id="redis", name="redis", type="background", spec=spec)
        (legacy,) = _legacy_steps(Downgrader().downgrade(_config(step)))
        assert legacy.type == "Background"
        assert legacy.spec == {"image": "redis:7", "entrypoint": ["redis-server", "--port", "6380"], "envVariables": {"X": "1"}}


class _ForeignSpec(BaseModel):
    kind: str = "teleport"


class TestFallback:
    def test_unknown_spec_becomes_echo_step(self, caplog):
        step = Step.model_construct(id="beam", name="beam", type="teleport", timeout=None, spec=_ForeignSpec())
        with caplog.at_level("WARNING"):
            (legacy,) = _legacy_steps(Downgrader().downgrade(_config(step)))
        assert legacy.type == "Run"
        assert legacy.identifier == "beam"
        assert legacy.spec["shell"] == "Sh"
        assert "Step type teleport has no legacy equivalent" in legacy.spec["command"]
        assert "No legacy equivalent" in caplog.text


class TestPurity:
    def test_input_not_mutated(self, canonical):
        before = canonical.model_dump()
        Downgrader(DowngradeOptions(kube_connector="k8s", repo_connector="gh")).downgrade(canonical)
        assert canonical.model_dump() == before

    def test_output_does_not_alias_input(self):
        spec = StepPlugin(image="plugins/webhook", with_={"urls": ["https://a.example.com"]})
        config = _config(Step(id="notify", name="Notification", type="plugin", spec=spec))
        (legacy,) = _legacy_steps(Downgrader().downgrade(config))
        legacy.spec["settings"]["urls"].append("https://b.example.com")
        assert spec.with_ == {"urls": ["https://a.example.com"]}

    def test_byte_identical_output(self, canonical):
        options = DowngradeOptions(project="web", repo_connector="gh")
        first = serializer.dump(Downgrader(options).downgrade(canonical))
        second = serializer.dump(Downgrader(options).downgrade(canonical))
        assert first == second

    def test_serialized_shape(self, canonical):
        document = yaml.safe_load(serializer.dump(Downgrader().downgrade(canonical)))
        stage = document["pipeline"]["stages"][0]["stage"]
        assert stage["type"] == "CI"
        assert stage["spec"]["cloneCodebase"] is False
        assert stage["spec"]["execution"]["steps"][0]["step"]["type"] == "Run"


class TestHelpers:
    @pytest.mark.parametrize(
        "value, expected",
        [("build", "build"), ("9lives", "_9lives"), ("my pipeline", "my_pipeline"), ("", "_")],
    )
    def test_legacy_identifier(self, value, expected):
        assert legacy_identifier(value) == expected

    def test_legacy_shell(self):
        assert legacy_shell(None) == "Sh"
        assert legacy_shell("pwsh") == "Pwsh"
        assert legacy_shell("PowerShell") == "Powershell"
        assert legacy_shell("zsh") == "Sh"
