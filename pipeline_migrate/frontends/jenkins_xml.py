"""
jenkins_xml.py
==============
Jenkins freestyle job (`config.xml`) → dialect tree.

Every child of `<builders>` becomes one node whose kind is the task's tag
(``hudson.tasks.Shell`` ...). The task body is handed over untouched as the
`content` attribute: builders parse it themselves, so tags this module knows
nothing about still reach them.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET

from ..core.dialect import DialectNode, DialectStage, DialectTree
from ..core.errors import ParseError
from ..core.identifiers import derive_context_id
from .base import register_frontend

logger = logging.getLogger(__name__)

STAGE_NAME = "build"
# Jenkins writes XML 1.1 declarations, which expat rejects.
_XML_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>")


def _inner_xml(elem: ET.Element) -> str:
    """Serialized children of *elem*, without the element's own tag."""
    return "".join(ET.tostring(child, encoding="unicode") for child in elem)


@register_frontend("jenkinsxml", "config.xml", "Jenkins freestyle job (config.xml)")
def parse_jenkins_xml(text: str) -> DialectTree:
    try:
        root = ET.fromstring(_XML_DECLARATION_RE.sub("", text, count=1))
    except ET.ParseError as exc:
        raise ParseError(f"Invalid Jenkins XML: {exc}") from exc

    builders = root.find("builders")
    if builders is None:
        logger.warning("Jenkins job <%s> has no <builders> section.", root.tag)
        builders = ET.Element("builders")

    nodes = [
        DialectNode(
            kind=task.tag,
            context_id=derive_context_id("builders", index, task.tag),
            attributes={"content": _inner_xml(task)},
        )
        for index, task in enumerate(builders)
    ]
    logger.debug("Found %d build tasks in <%s>.", len(nodes), root.tag)

    name = (root.findtext("displayName") or "").strip() or "default"
    return DialectTree(
        dialect="jenkinsxml",
        name=name,
        stages=[DialectStage(name=STAGE_NAME, nodes=nodes)],
    )
