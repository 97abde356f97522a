"""
downgrader.py
=============
Canonical (v1) pipeline → legacy (v0) pipeline.

Responsibilities:
    - Re-express every canonical step in the legacy step vocabulary
      (Run, Plugin, Action, RunTests, Background) through a dispatch table
      keyed on the spec class.
    - Attach the legacy stage scaffolding: codebase cloning, kubernetes
      infrastructure or cloud platform/runtime.
    - Fill in the pipeline metadata the legacy schema requires
      (organization, project, identifiers, codebase properties).

The transformation is pure: the input `Config` is never mutated and the same
input always produces the same output tree.

Author: Transpiler Architect
"""

from __future__ import annotations

import copy
import logging
import shlex
from typing import Any, Callable

from pydantic import BaseModel

from ..config import DowngradeOptions
from .canonical import Config, Stage, Step, StepAction, StepBackground, StepExec, StepPlugin, StepTest
from .identifiers import slugify_identifier
from .legacy import (
    LegacyCIProperties,
    LegacyCodebase,
    LegacyExecution,
    LegacyInfrastructure,
    LegacyPipeline,
    LegacyPipelineSpec,
    LegacyPlatform,
    LegacyProperties,
    LegacyRuntime,
    LegacyStage,
    LegacyStageSpec,
    LegacyStageWrapper,
    LegacyStep,
    LegacyStepWrapper,
)

logger = logging.getLogger(__name__)

_SHELLS = {
    "sh": "Sh",
    "bash": "Bash",
    "powershell": "Powershell",
    "pwsh": "Pwsh",
    "python": "Python",
}
DEFAULT_SHELL = "Sh"


def legacy_identifier(value: str) -> str:
    """Legacy identifiers must start with a letter or an underscore."""
    ident = slugify_identifier(value) or "_"
    if ident[0].isdigit():
        ident = f"_{ident}"
    return ident


def legacy_shell(shell: str | None) -> str:
    if not shell:
        return DEFAULT_SHELL
    return _SHELLS.get(shell.lower(), DEFAULT_SHELL)


def _compact(spec: dict[str, Any]) -> dict[str, Any]:
    """Drop unset fields so the emitted spec only carries what was known."""
    return {key: value for key, value in spec.items() if value not in (None, "", {}, [])}


# ---------------------------------------------------------------------------
# Downgrader
# ---------------------------------------------------------------------------


class Downgrader:
    """
    Projects a canonical `Config` onto the legacy pipeline schema.

    Usage
    -----
    ::

        legacy = Downgrader(DowngradeOptions(project="payments")).downgrade(config)
        print(serializer.dump(legacy).decode())
    """

    def __init__(self, options: DowngradeOptions | None = None) -> None:
        self._options = options or DowngradeOptions()
        self._step_converters: dict[type[BaseModel], Callable[[Any], tuple[str, dict[str, Any]]]] = {
            StepExec: self._run_spec,
            StepPlugin: self._plugin_spec,
            StepAction: self._action_spec,
            StepTest: self._run_tests_spec,
            StepBackground: self._background_spec,
        }

    def downgrade(self, config: Config) -> LegacyPipeline:
        opts = self._options
        name = opts.resolved_pipeline_name
        logger.info(
            "Downgrading pipeline '%s' (%d stages) for %s/%s.",
            name,
            len(config.spec.stages),
            opts.resolved_organization,
            opts.resolved_project,
        )

        properties = None
        if opts.repo_connector:
            properties = LegacyProperties(
                ci=LegacyCIProperties(
                    codebase=LegacyCodebase(
                        connector_ref=opts.repo_connector,
                        repo_name=opts.repo_name or None,
                    )
                )
            )

        stages = [LegacyStageWrapper(stage=self._downgrade_stage(stage)) for stage in config.spec.stages]
        return LegacyPipeline(
            pipeline=LegacyPipelineSpec(
                name=name,
                identifier=legacy_identifier(name),
                org_identifier=opts.resolved_organization,
                project_identifier=opts.resolved_project,
                properties=properties,
                stages=stages,
            )
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _downgrade_stage(self, stage: Stage) -> LegacyStage:
        steps = [LegacyStepWrapper(step=self._downgrade_step(step)) for step in stage.spec.steps]
        spec = LegacyStageSpec(
            clone_codebase=bool(self._options.repo_connector),
            execution=LegacyExecution(steps=steps),
        )

        connector, namespace = self._kube_context(stage)
        if connector:
            spec.infrastructure = LegacyInfrastructure(
                spec={
                    "connectorRef": connector,
                    "namespace": namespace,
                    "automountServiceAccountToken": True,
                    "nodeSelector": {},
                    "os": "Linux",
                }
            )
        else:
            platform = stage.spec.platform
            spec.platform = LegacyPlatform(
                os=(platform.os if platform else "linux").capitalize(),
                arch=(platform.arch if platform else "amd64").capitalize(),
            )
            spec.runtime = LegacyRuntime()

        return LegacyStage(name=stage.name, identifier=legacy_identifier(stage.id), spec=spec)

    def _kube_context(self, stage: Stage) -> tuple[str, str]:
        """Options win over the canonical runtime; empty connector means cloud."""
        opts = self._options
        if opts.kube_connector:
            return opts.kube_connector, opts.resolved_kube_namespace
        runtime = stage.spec.runtime
        if runtime is not None and runtime.type == "kubernetes" and runtime.spec and runtime.spec.connector:
            return runtime.spec.connector, runtime.spec.namespace or opts.resolved_kube_namespace
        return "", ""

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _downgrade_step(self, step: Step) -> LegacyStep:
        converter = self._step_converters.get(type(step.spec))
        if converter is None:
            logger.warning("No legacy equivalent for step '%s' (type=%s).", step.id, step.type)
            step_type, spec = self._fallback_spec(step)
        else:
            step_type, spec = converter(step.spec)

        return LegacyStep(
            identifier=legacy_identifier(step.id),
            name=step.name,
            type=step_type,
            timeout=step.timeout,
            spec=spec,
        )

    def _connector(self, spec: Any) -> str | None:
        return getattr(spec, "connector", None) or self._options.docker_connector or None

    def _run_spec(self, spec: StepExec) -> tuple[str, dict[str, Any]]:
        return "Run", _compact(
            {
                "connectorRef": self._connector(spec) if spec.image else None,
                "image": spec.image,
                "shell": legacy_shell(spec.shell),
                "command": spec.run,
                "envVariables": dict(spec.envs) if spec.envs else None,
            }
        )

    def _plugin_spec(self, spec: StepPlugin) -> tuple[str, dict[str, Any]]:
        return "Plugin", _compact(
            {
                "connectorRef": self._connector(spec),
                "image": spec.image,
                "settings": copy.deepcopy(spec.with_) if spec.with_ else None,
                "envVariables": dict(spec.envs) if spec.envs else None,
            }
        )

    def _action_spec(self, spec: StepAction) -> tuple[str, dict[str, Any]]:
        return "Action", _compact(
            {
                "uses": spec.uses,
                "with": copy.deepcopy(spec.with_) if spec.with_ else None,
                "env": dict(spec.envs) if spec.envs else None,
            }
        )

    def _run_tests_spec(self, spec: StepTest) -> tuple[str, dict[str, Any]]:
        # v0 carries a single report object; all JUnit paths are merged into it.
        paths = [path for report in spec.reports or [] for path in report.spec.paths]
        reports = {"type": "JUnit", "spec": {"paths": paths}} if paths else None
        return "RunTests", _compact(
            {
                "connectorRef": self._connector(spec) if spec.image else None,
                "image": spec.image,
                "language": spec.language,
                "buildTool": spec.build_tool,
                "args": spec.args,
                "runOnlySelectedTests": spec.run_only_selected_tests,
                "preCommand": spec.pre_command,
                "postCommand": spec.post_command,
                "reports": reports,
                "enableTestSplitting": spec.enable_test_splitting,
                "envVariables": dict(spec.envs) if spec.envs else None,
            }
        )

    def _background_spec(self, spec: StepBackground) -> tuple[str, dict[str, Any]]:
        return "Background", _compact(
            {
                "connectorRef": self._connector(spec),
                "image": spec.image,
                "entrypoint": shlex.split(spec.entrypoint) if spec.entrypoint else None,
                "command": spec.run,
                "envVariables": dict(spec.envs) if spec.envs else None,
            }
        )

    @staticmethod
    def _fallback_spec(step: Step) -> tuple[str, dict[str, Any]]:
        message = f"Step type {step.type} has no legacy equivalent"
        return "Run", {"shell": DEFAULT_SHELL, "command": f"echo {shlex.quote(message)}"}
