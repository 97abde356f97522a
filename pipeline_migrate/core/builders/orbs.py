"""
orbs.py
=======
CircleCI orb step builder.

An orb step (`node/install-packages`, `codecov/upload`, ...) arrives as an
`orb` node with the orb's registry name, the command, the pinned version and
the step parameters under `with`. Each supported (orb, command) pair is one
`OrbCommand` row: the step type it becomes, the image it runs and the mapping
table for its parameters.

Author: Transpiler Architect
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..canonical import (
    STEP_TYPE_BACKGROUND,
    STEP_TYPE_PLUGIN,
    STEP_TYPE_SCRIPT,
    Step,
    StepBackground,
    StepExec,
    StepPlugin,
)
from ..dialect import DialectNode
from ..errors import TypeCoercionError
from ..mapping import CoercionKind, MappingRule, coerce, map_params, register_setter
from .base import UNSUPPORTED_PREFIX, BuildContext, make_step, placeholder_step, register_builder

logger = logging.getLogger(__name__)

_STRING = CoercionKind.STRING
_LIST = CoercionKind.STRING_TO_LIST
_BOOL = CoercionKind.BOOL


@dataclass(frozen=True)
class OrbCommand:
    name: str
    step_type: str
    rules: tuple[MappingRule, ...]
    image: str | None = None


# ---------------------------------------------------------------------------
# Setters
# ---------------------------------------------------------------------------


def _param(bag: Mapping[str, Any], key: str, default: str = "") -> str:
    return coerce(bag.get(key, default), _STRING, source_key=key, dest_key=key)


def _in_app_dir(bag: Mapping[str, Any], command: str) -> str:
    app_dir = _param(bag, "app-dir", "~/project")
    if app_dir in ("", ".", "~/project"):
        return command
    return f"cd {shlex.quote(app_dir)} && {command}"


@register_setter("node_install_command")
def _node_install_command(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    manager = _param(bag, "pkg-manager", "npm")
    if manager == "yarn":
        command = "yarn install --frozen-lockfile"
    elif manager == "yarn-berry":
        command = "yarn install --immutable"
    elif manager == "pnpm":
        command = "pnpm install --frozen-lockfile"
    else:
        command = "npm ci" if coerce(bag.get("with-cache", True), _BOOL) else "npm install"
    override = _param(bag, "override-ci-command")
    return _in_app_dir(bag, override or command)


@register_setter("node_test_command")
def _node_test_command(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    manager = _param(bag, "pkg-manager", "npm")
    script = _param(bag, "run-command", "test")
    runner = "yarn run" if manager.startswith("yarn") else f"{manager} run"
    return _in_app_dir(bag, f"{runner} {script}")


@register_setter("go_mod_download_command")
def _go_mod_download_command(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    return "go mod download"


@register_setter("go_test_command")
def _go_test_command(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    packages = _param(bag, "packages", "./...")
    parts = ["go", "test"]
    if coerce(bag.get("race", False), _BOOL, source_key="race", dest_key=dest_key):
        parts.append("-race")
    if bag.get("coverprofile"):
        parts.append(f"-coverprofile={_param(bag, 'coverprofile')}")
    parts.append(packages)
    return " ".join(parts)


@register_setter("ruby_install_deps_command")
def _ruby_install_deps_command(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    path = _param(bag, "path", "./vendor/bundle")
    return _in_app_dir(bag, f"bundle config set --local path {shlex.quote(path)} && bundle install")


@register_setter("ruby_rspec_command")
def _ruby_rspec_command(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    return _in_app_dir(bag, "bundle exec rspec")


@register_setter("ruby_rubocop_command")
def _ruby_rubocop_command(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    return _in_app_dir(bag, "bundle exec rubocop")


@register_setter("install_chrome_command")
def _install_chrome_command(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    return (
        "wget -q -O /tmp/chrome.deb "
        "https://dl.google.com/linux/direct/google-chrome-stable_current_amd64.deb && "
        "apt-get update && apt-get install -y /tmp/chrome.deb"
    )


@register_setter("install_firefox_command")
def _install_firefox_command(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    return "apt-get update && apt-get install -y firefox-esr"


@register_setter("slack_template")
def _slack_template(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str | None:
    return mapped.get(dest_key) or _param(bag, "template") or None


# ---------------------------------------------------------------------------
# Orb table
# ---------------------------------------------------------------------------

ORB_COMMANDS: dict[str, dict[str, OrbCommand]] = {
    "codecov/codecov": {
        "upload": OrbCommand(
            name="codecov",
            step_type=STEP_TYPE_PLUGIN,
            image="plugins/codecov",
            rules=(
                MappingRule("file", "files", _LIST),
                MappingRule("flags", "flags", _STRING),
                MappingRule("upload_name", "name", _STRING),
                MappingRule("token", "token", _STRING, setter="runtime_input"),
            ),
        ),
    },
    "coveralls/coveralls": {
        "upload": OrbCommand(
            name="coveralls",
            step_type=STEP_TYPE_PLUGIN,
            image="plugins/coveralls",
            rules=(
                MappingRule("coverage_file", "files", _LIST),
                MappingRule("coverage_format", "lang", _STRING),
                MappingRule("flag_name", "flag_name", _STRING),
                MappingRule("parallel", "parallel", _BOOL),
                MappingRule("token", "token", _STRING, setter="runtime_input"),
            ),
        ),
    },
    "circleci/slack": {
        "notify": OrbCommand(
            name="slack",
            step_type=STEP_TYPE_PLUGIN,
            image="plugins/slack",
            rules=(
                MappingRule("channel", "channel", _STRING),
                MappingRule("custom", "template", _STRING, setter="slack_template"),
                MappingRule("event", "event", _STRING),
                MappingRule("webhook", "webhook", _STRING, setter="runtime_input"),
            ),
        ),
    },
    "circleci/node": {
        "install-packages": OrbCommand(
            name="install_packages",
            step_type=STEP_TYPE_SCRIPT,
            rules=(MappingRule("run", "run", _STRING, setter="node_install_command"),),
        ),
        "test": OrbCommand(
            name="node_test",
            step_type=STEP_TYPE_SCRIPT,
            rules=(MappingRule("run", "run", _STRING, setter="node_test_command"),),
        ),
    },
    "circleci/go": {
        "mod-download": OrbCommand(
            name="go_mod_download",
            step_type=STEP_TYPE_SCRIPT,
            rules=(MappingRule("run", "run", _STRING, setter="go_mod_download_command"),),
        ),
        "test": OrbCommand(
            name="go_test",
            step_type=STEP_TYPE_SCRIPT,
            rules=(MappingRule("run", "run", _STRING, setter="go_test_command"),),
        ),
    },
    "circleci/ruby": {
        "install-deps": OrbCommand(
            name="install_deps",
            step_type=STEP_TYPE_SCRIPT,
            rules=(MappingRule("run", "run", _STRING, setter="ruby_install_deps_command"),),
        ),
        "rspec-test": OrbCommand(
            name="rspec",
            step_type=STEP_TYPE_SCRIPT,
            rules=(MappingRule("run", "run", _STRING, setter="ruby_rspec_command"),),
        ),
        "rubocop-check": OrbCommand(
            name="rubocop",
            step_type=STEP_TYPE_SCRIPT,
            rules=(MappingRule("run", "run", _STRING, setter="ruby_rubocop_command"),),
        ),
    },
    "circleci/browser-tools": {
        "install-chrome": OrbCommand(
            name="install_chrome",
            step_type=STEP_TYPE_SCRIPT,
            rules=(MappingRule("run", "run", _STRING, setter="install_chrome_command"),),
        ),
        "install-firefox": OrbCommand(
            name="install_firefox",
            step_type=STEP_TYPE_SCRIPT,
            rules=(MappingRule("run", "run", _STRING, setter="install_firefox_command"),),
        ),
    },
    "datadog/agent": {
        "setup": OrbCommand(
            name="datadog_agent",
            step_type=STEP_TYPE_BACKGROUND,
            image="datadog/agent:latest",
            rules=(
                MappingRule("api_key", "DD_API_KEY", _STRING, setter="runtime_input"),
                MappingRule("site", "DD_SITE", _STRING),
            ),
        ),
    },
    "localstack/platform": {
        "startup": OrbCommand(
            name="localstack",
            step_type=STEP_TYPE_BACKGROUND,
            image="localstack/localstack:latest",
            rules=(
                MappingRule("services", "SERVICES", _STRING),
                MappingRule("debug", "DEBUG", _STRING),
            ),
        ),
    },
    "saucelabs/saucectl-run": {
        "saucectl-run": OrbCommand(
            name="saucectl",
            step_type=STEP_TYPE_PLUGIN,
            image="saucelabs/saucectl-run",
            rules=(
                MappingRule("config-file", "config_file", _STRING),
                MappingRule("region", "region", _STRING),
                MappingRule("sauce-username", "sauce_username", _STRING, setter="runtime_input"),
                MappingRule("sauce-access-key", "sauce_access_key", _STRING, setter="runtime_input"),
            ),
        ),
    },
}


def _orb_spec(command: OrbCommand, mapped: dict[str, Any]) -> Any:
    if command.step_type == STEP_TYPE_PLUGIN:
        return StepPlugin(image=command.image, with_=mapped)
    if command.step_type == STEP_TYPE_BACKGROUND:
        envs = {key: str(value) for key, value in mapped.items()}
        return StepBackground(image=command.image, envs=envs or None)
    return StepExec(image=command.image, run=mapped.get("run"))


@register_builder("orb")
def build_orb(node: DialectNode, ctx: BuildContext) -> Step:
    orb = str(node.get("orb", ""))
    command_name = str(node.get("command", ""))
    command = ORB_COMMANDS.get(orb, {}).get(command_name)
    if command is None:
        logger.warning("Unsupported orb command %s/%s@%s", orb, command_name, node.get("version"))
        return placeholder_step(ctx, node, f"{UNSUPPORTED_PREFIX} {orb}/{command_name}")

    params = node.get("with") or {}
    if not isinstance(params, Mapping):
        raise TypeCoercionError("with", "with", params, "orb parameters must be a mapping")
    mapped = map_params(params, command.rules, ctx.variables)
    spec = _orb_spec(command, mapped)
    if command.step_type == STEP_TYPE_SCRIPT and node.get("image"):
        spec = spec.model_copy(update={"image": node.get("image")})
    return make_step(ctx, node, name=node.name or command.name, type=command.step_type, spec=spec)
