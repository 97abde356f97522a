"""Tests for the dialect front ends."""

import json

import pytest

from pipeline_migrate.core.errors import ParseError
from pipeline_migrate.frontends import FRONTENDS, parse
from pipeline_migrate.frontends.gitlab import InheritKeys

from samples import CIRCLE_CONFIG, GITHUB_WORKFLOW, GITLAB_CI, JENKINS_TRACE, JENKINS_XML


class TestRegistry:
    def test_supported_dialects(self):
        assert set(FRONTENDS) == {"github", "gitlab", "circle", "jenkinsxml", "jenkinsjson"}

    def test_unsupported_dialect(self):
        with pytest.raises(ParseError, match="Unsupported dialect 'azure'"):
            parse("azure", "trigger: [main]")


class TestGitHub:
    def test_jobs_become_stages(self):
        tree = parse("github", GITHUB_WORKFLOW)
        assert tree.dialect == "github"
        assert tree.name == "CI"
        assert [s.name for s in tree.stages] == ["build", "Windows build"]

    def test_platform_and_env(self):
        build, windows = parse("github", GITHUB_WORKFLOW).stages
        assert (build.os, build.arch) == ("linux", "amd64")
        assert windows.os == "windows"
        assert build.envs == {"GREETING": "hello", "LEVEL": "2"}

    def test_checkout_skipped_and_nodes_kept_in_order(self):
        build = parse("github", GITHUB_WORKFLOW).stages[0]
        assert [n.kind for n in build.nodes] == ["run", "action"]
        run, action = build.nodes
        assert run.name == "Say hi"
        assert run.get("timeout_minutes") == 5
        assert action.get("uses") == "actions/setup-node@v4"
        assert action.get("with") == {"node-version": 20}

    def test_variables_from_workflow_env(self):
        assert parse("github", GITHUB_WORKFLOW).variables == {"GREETING": "hello"}

    def test_missing_jobs(self):
        with pytest.raises(ParseError):
            parse("github", "name: nothing\n")

    def test_invalid_yaml(self):
        with pytest.raises(ParseError):
            parse("github", "jobs: [")


class TestGitLab:
    def test_stage_order(self):
        tree = parse("gitlab", GITLAB_CI)
        assert [s.name for s in tree.stages] == ["build", "test"]

    def test_extends_and_defaults(self):
        unit = parse("gitlab", GITLAB_CI).stages[1].nodes[0]
        assert unit.name == "unit"
        assert unit.get("run") == "pip install -r requirements.txt\npytest"
        assert unit.get("image") == "python:3.12"
        assert unit.get("envs") == {"APP": "demo"}

    def test_inherit_disables_defaults(self):
        compile_job = parse("gitlab", GITLAB_CI).stages[0].nodes[0]
        assert compile_job.get("run") == "make"
        assert "image" not in compile_job
        assert "envs" not in compile_job

    def test_hidden_jobs_skipped(self):
        names = [n.name for n in parse("gitlab", GITLAB_CI).iter_nodes()]
        assert ".template" not in names

    def test_bad_inherit_is_a_parse_error(self):
        text = "build:\n  script: make\n  inherit:\n    default: {}\n"
        with pytest.raises(ParseError, match="failed to unmarshal inherit keys"):
            parse("gitlab", text)

    def test_circular_extends(self):
        text = ".a:\n  extends: .b\n.b:\n  extends: .a\njob:\n  extends: .a\n  script: x\n"
        with pytest.raises(ParseError, match="Circular"):
            parse("gitlab", text)

    def test_default_must_be_a_mapping(self):
        with pytest.raises(ParseError, match="`default` must be a mapping"):
            parse("gitlab", "default: [1]\nbuild:\n  script: make\n")


class TestInheritKeys:
    def test_false(self):
        keys = InheritKeys.parse(False)
        assert not keys.inherit_all
        assert not keys.allows("image")

    def test_true(self):
        assert InheritKeys.parse(True).allows("anything")

    def test_list(self):
        keys = InheritKeys.parse(["retry", "image"])
        assert keys.keys == ("retry", "image")
        assert keys.allows("image")
        assert not keys.allows("services")

    def test_mapping_is_rejected(self):
        with pytest.raises(ParseError) as excinfo:
            InheritKeys.parse({})
        assert str(excinfo.value) == "failed to unmarshal inherit keys"


class TestCircle:
    def test_workflow_order(self):
        tree = parse("circle", CIRCLE_CONFIG)
        assert [s.name for s in tree.stages] == ["test", "lint"]

    def test_executor_image_and_arch(self):
        test = parse("circle", CIRCLE_CONFIG).stages[0]
        assert test.arch == "arm64"
        assert all(n.get("image") == "cimg/node:20.0" for n in test.nodes if n.kind in ("run", "orb"))

    def test_steps(self):
        test = parse("circle", CIRCLE_CONFIG).stages[0]
        assert [n.kind for n in test.nodes] == ["orb", "run", "orb", "save_cache"]
        install = test.nodes[0]
        assert install.get("orb") == "circleci/node"
        assert install.get("command") == "install-packages"
        assert install.get("version") == "5.1.0"
        assert install.get("with") == {"pkg-manager": "yarn"}
        assert test.nodes[1].name == "Unit tests"

    def test_requires_jobs(self):
        with pytest.raises(ParseError):
            parse("circle", "version: 2.1\n")

    @pytest.mark.parametrize("section", ["orbs", "executors", "workflows"])
    def test_top_level_sections_must_be_mappings(self, section):
        text = f"{section}: [x]\njobs:\n  build:\n    steps:\n      - run: make\n"
        with pytest.raises(ParseError, match=f"`{section}` must be a mapping"):
            parse("circle", text)

    def test_steps_must_be_a_list(self):
        with pytest.raises(ParseError):
            parse("circle", "jobs:\n  build:\n    steps: make\n")


class TestJenkinsXml:
    def test_builders_become_nodes(self):
        tree = parse("jenkinsxml", JENKINS_XML)
        assert tree.name == "api build"
        (stage,) = tree.stages
        assert [n.kind for n in stage.nodes] == ["hudson.tasks.Shell", "hudson.plugins.gradle.Gradle"]
        assert "<command>echo hi</command>" in stage.nodes[0].get("content")
        assert stage.nodes[0].context_id != stage.nodes[1].context_id

    def test_malformed(self):
        with pytest.raises(ParseError):
            parse("jenkinsxml", "<project><builders></project>")


class TestJenkinsJson:
    def test_stages_and_implicit_stage(self):
        tree = parse("jenkinsjson", json.dumps(JENKINS_TRACE))
        assert tree.name == "demo"
        assert [s.name for s in tree.stages] == ["ci", "Build"]
        assert [n.kind for n in tree.stages[1].nodes] == ["sh", "jacoco"]

    def test_with_env_feeds_variables(self):
        tree = parse("jenkinsjson", json.dumps(JENKINS_TRACE))
        assert tree.variables == {"HOOK": "https://hooks.example.com"}

    def test_span_ids_and_flattened_arguments(self):
        sh, jacoco = parse("jenkinsjson", json.dumps(JENKINS_TRACE)).stages[1].nodes
        assert sh.context_id == "ccc333"
        assert sh.get("script") == "make test"
        assert jacoco.get("minimumLineCoverage") == "80"
        assert "delegate" not in jacoco

    def test_invalid_json(self):
        with pytest.raises(ParseError):
            parse("jenkinsjson", "{not json")

    @pytest.mark.parametrize("key", ["attributesMap", "parameterMap"])
    def test_span_sections_must_be_objects(self, key):
        span = {"spanName": "sh", "spanId": "a1", key: []}
        with pytest.raises(ParseError, match=f"`{key}` must be an object"):
            parse("jenkinsjson", json.dumps(span))

    def test_children_must_be_a_list(self):
        with pytest.raises(ParseError):
            parse("jenkinsjson", json.dumps({"spanName": "root", "children": {"a": 1}}))
