"""Tests for the markup boundary."""

import json

import pytest
import yaml

from pipeline_migrate.core import serializer
from pipeline_migrate.core.canonical import Config, Pipeline, Stage, StageCI, Step, StepPlugin, StepTest
from pipeline_migrate.core.errors import ParseError, SerializationError


@pytest.fixture
def config():
    steps = [
        Step(id="cov", name="cov", type="plugin", spec=StepPlugin(image="plugins/codecov", with_={"files": ["a.xml"]})),
        Step(id="gradle", name="Gradle", type="RunTests", spec=StepTest(language="Java", build_tool="Gradle")),
    ]
    return Config(spec=Pipeline(stages=[Stage(id="build", name="build", spec=StageCI(steps=steps))]))


class TestDump:
    def test_yaml_root(self, config):
        document = yaml.safe_load(serializer.dump(config))
        assert document["version"] == 1
        assert document["kind"] == "pipeline"
        assert document["spec"]["stages"][0]["type"] == "ci"

    def test_key_order_follows_model(self, config):
        text = serializer.dump(config).decode()
        assert text.startswith("version: 1\nkind: pipeline\nspec:\n")

    def test_aliases_and_omitted_fields(self, config):
        document = yaml.safe_load(serializer.dump(config))
        plugin, test = document["spec"]["stages"][0]["spec"]["steps"]
        assert plugin["spec"] == {"image": "plugins/codecov", "with": {"files": ["a.xml"]}}
        assert "kind" not in plugin["spec"]
        assert "timeout" not in plugin
        assert test["spec"]["buildTool"] == "Gradle"

    def test_json(self, config):
        document = json.loads(serializer.dump(config, "json"))
        assert document["spec"]["stages"][0]["id"] == "build"

    def test_unknown_format(self, config):
        with pytest.raises(SerializationError):
            serializer.dump(config, "toml")


class TestLoadCanonical:
    def test_load_dumped_document(self, config):
        loaded = serializer.load_canonical(serializer.dump(config))
        assert loaded == config
        assert isinstance(loaded.spec.stages[0].spec.steps[1].spec, StepTest)

    def test_not_a_mapping(self):
        with pytest.raises(ParseError):
            serializer.load_canonical("- just\n- a list\n")

    def test_invalid_yaml(self):
        with pytest.raises(ParseError):
            serializer.load_canonical("spec: [")

    def test_unknown_step_type(self):
        text = """
version: 1
kind: pipeline
spec:
  stages:
    - id: build
      name: build
      spec:
        steps:
          - id: x
            name: x
            type: teleport
            spec: {}
"""
        with pytest.raises(ParseError):
            serializer.load_canonical(text)
