"""
base.py
=======
Builder registry and the helpers every step builder shares.

A builder turns exactly one `DialectNode` into exactly one canonical `Step`.
Builders are registered against one or more construct-kind strings;
`build_step` dispatches through that table and degrades to a placeholder step
whenever a node cannot be translated, so a pipeline is never aborted by a
single construct.
"""

from __future__ import annotations

import logging
import shlex
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

from pydantic import ValidationError

from ..canonical import STEP_TYPE_SCRIPT, Step, StepExec
from ..dialect import DialectNode
from ..errors import ParseError, TypeCoercionError
from ..identifiers import IdentifierAllocator, sanitize_display_name
from ..legacy import RUNTIME_INPUT
from ..mapping import register_setter

logger = logging.getLogger(__name__)

UNSUPPORTED_PREFIX = "Unsupported field"
FAILED_PREFIX = "Failed to convert"
FRAGMENT_ENVELOPE = "builders"


@dataclass
class BuildContext:
    """Per-run state handed to every builder call."""

    allocator: IdentifierAllocator
    variables: Mapping[str, str] = field(default_factory=dict)
    degraded: list[tuple[str, str]] = field(default_factory=list)

    def allocate(self, candidate: str, node: DialectNode) -> str:
        return self.allocator.allocate_fresh(candidate, node.context_id)


StepBuilder = Callable[[DialectNode, BuildContext], Step]

STEP_BUILDERS: dict[str, StepBuilder] = {}


def register_builder(*kinds: str) -> Callable[[StepBuilder], StepBuilder]:
    def decorator(fn: StepBuilder) -> StepBuilder:
        for kind in kinds:
            if kind in STEP_BUILDERS:
                raise ValueError(f"A builder for '{kind}' is already registered.")
            STEP_BUILDERS[kind] = fn
        return fn

    return decorator


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def make_step(
    ctx: BuildContext,
    node: DialectNode,
    *,
    name: str,
    type: str,
    spec: Any,
    timeout: str | None = None,
) -> Step:
    """Allocate an id for *name* and assemble the step."""
    display = sanitize_display_name(name)
    return Step(
        id=ctx.allocate(display, node),
        name=display,
        type=type,
        timeout=timeout,
        spec=spec,
    )


def placeholder_step(ctx: BuildContext, node: DialectNode, message: str) -> Step:
    """Script step that echoes why *node* could not be translated."""
    ctx.degraded.append((node.kind, message))
    return make_step(
        ctx,
        node,
        name=node.name or "unsupported",
        type=STEP_TYPE_SCRIPT,
        spec=StepExec(run=f"echo {shlex.quote(message)}"),
    )


@register_setter("runtime_input")
def _runtime_input(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str:
    return mapped.get(dest_key) or RUNTIME_INPUT


@register_setter("minutes_duration")
def _minutes_duration(bag: Mapping[str, Any], dest_key: str, mapped: Mapping[str, Any]) -> str | None:
    minutes = mapped.get(dest_key)
    if minutes is None or not str(minutes).strip():
        return None
    return f"{str(minutes).strip()}m"


def parse_fragment(content: str) -> dict[str, str]:
    """
    Parse a nested XML fragment into a flat tag → text bag.

    Task bodies are sequences of sibling elements, not standalone documents,
    so the fragment is wrapped in a synthetic envelope first. The first
    occurrence of each leaf tag wins; text is kept verbatim.
    """
    try:
        root = ET.fromstring(f"<{FRAGMENT_ENVELOPE}>{content}</{FRAGMENT_ENVELOPE}>")
    except ET.ParseError as exc:
        raise ParseError(f"Malformed task fragment: {exc}") from exc

    bag: dict[str, str] = {}
    for elem in root.iter():
        if elem is root or len(elem):
            continue
        bag.setdefault(elem.tag, elem.text or "")
    return bag


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def build_step(node: DialectNode, ctx: BuildContext) -> Step:
    """
    Translate one dialect construct into one canonical step.

    Never raises for construct-level problems: unknown kinds, coercion
    failures and malformed fragments all become placeholder steps.
    """
    builder = STEP_BUILDERS.get(node.kind)
    if builder is None:
        logger.warning("No builder for construct kind '%s'; emitting placeholder.", node.kind)
        return placeholder_step(ctx, node, f"{UNSUPPORTED_PREFIX} {node.kind}")

    logger.debug("Dispatching node '%s' → %s", node.name or node.kind, builder.__name__)
    try:
        return builder(node, ctx)
    except (TypeCoercionError, ParseError, ValidationError) as exc:
        logger.error(
            "Failed to build step for '%s' (kind=%s): %s",
            node.name or "<unnamed>",
            node.kind,
            exc,
            exc_info=True,
        )
        return placeholder_step(ctx, node, f"{FAILED_PREFIX} {node.kind}: {exc}")
