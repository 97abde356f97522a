"""
converter.py
============
Dialect tree → canonical (v1) pipeline.

Responsibilities:
    - Create one canonical stage per dialect stage (a single `ci` stage when
      the tree has none), preserving stage and step order.
    - Attach the execution context (kubernetes or cloud runtime, platform,
      stage environment) to every stage.
    - Dispatch every node to its step builder with a fresh, per-run
      identifier allocator, and collect degraded steps for reporting.

Author: Transpiler Architect
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..config import ConvertOptions
from .builders import BuildContext, build_step
from .canonical import Config, Pipeline, Platform, Runtime, RuntimeSpec, Stage, StageCI, Step
from .dialect import DialectNode, DialectStage, DialectTree
from .identifiers import IdentifierAllocator, derive_context_id, sanitize_display_name

logger = logging.getLogger(__name__)

DEFAULT_STAGE_NAME = "ci"


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------


@dataclass
class DegradedStep:
    """A construct that was replaced by a placeholder step."""

    construct_kind: str
    reason: str


@dataclass
class ConversionResult:
    """Canonical pipeline plus what could not be translated faithfully."""

    config: Config
    dialect: str
    degraded_steps: list[DegradedStep] = field(default_factory=list)

    @property
    def has_degraded_steps(self) -> bool:
        return bool(self.degraded_steps)

    @property
    def step_count(self) -> int:
        return sum(1 for _ in self.config.spec.iter_steps())


# ---------------------------------------------------------------------------
# Converter
# ---------------------------------------------------------------------------


class Converter:
    """
    Converts a `DialectTree` into a canonical `Config`.

    Usage
    -----
    ::

        tree = frontends.parse("github", text)
        result = Converter(ConvertOptions(kube_connector="k8s")).convert(tree)
        print(serializer.dump(result.config).decode())
    """

    def __init__(self, options: ConvertOptions | None = None) -> None:
        self._options = options or ConvertOptions()

    def convert(self, tree: DialectTree) -> ConversionResult:
        logger.info(
            "Converting %s pipeline '%s': %d stages, %d constructs.",
            tree.dialect,
            tree.name,
            len(tree.stages),
            tree.node_count,
        )

        ctx = BuildContext(allocator=IdentifierAllocator(), variables=dict(tree.variables))
        dialect_stages = tree.stages or [DialectStage(name=DEFAULT_STAGE_NAME)]

        stages = [
            self._convert_stage(tree, index, dialect_stage, ctx)
            for index, dialect_stage in enumerate(dialect_stages)
        ]

        result = ConversionResult(
            config=Config(spec=Pipeline(stages=stages)),
            dialect=tree.dialect,
            degraded_steps=[DegradedStep(kind, reason) for kind, reason in ctx.degraded],
        )
        logger.info(
            "Conversion complete: %d steps, %d degraded.",
            result.step_count,
            len(result.degraded_steps),
        )
        return result

    def _convert_stage(
        self,
        tree: DialectTree,
        index: int,
        dialect_stage: DialectStage,
        ctx: BuildContext,
    ) -> Stage:
        name = sanitize_display_name(dialect_stage.name or DEFAULT_STAGE_NAME)
        stage_id = ctx.allocator.allocate(name, derive_context_id(tree.name, "stage", index))
        steps = [
            self._attach_connector(build_step(self._with_context(tree, index, position, node), ctx))
            for position, node in enumerate(dialect_stage.nodes)
        ]

        return Stage(
            id=stage_id,
            name=name,
            spec=StageCI(
                platform=self._platform(dialect_stage),
                runtime=self._runtime(),
                envs=dict(dialect_stage.envs) or None,
                steps=steps,
            ),
        )

    @staticmethod
    def _with_context(tree: DialectTree, index: int, position: int, node: DialectNode) -> DialectNode:
        """Give nodes without a native id a positional one so step ids stay unique."""
        if node.context_id:
            return node
        return node.model_copy(update={"context_id": derive_context_id(tree.name, index, position)})

    def _attach_connector(self, step: Step) -> Step:
        """Pull images through the configured registry connector."""
        connector = self._options.docker_connector
        spec = step.spec
        if not connector or not getattr(spec, "image", None) or getattr(spec, "connector", None):
            return step
        return step.model_copy(update={"spec": spec.model_copy(update={"connector": connector})})

    @staticmethod
    def _platform(dialect_stage: DialectStage) -> Platform | None:
        if not (dialect_stage.os or dialect_stage.arch):
            return None
        return Platform(os=dialect_stage.os or "linux", arch=dialect_stage.arch or "amd64")

    def _runtime(self) -> Runtime:
        if self._options.kube_enabled:
            return Runtime(
                type="kubernetes",
                spec=RuntimeSpec(
                    connector=self._options.kube_connector,
                    namespace=self._options.resolved_kube_namespace,
                ),
            )
        return Runtime(type="cloud")
