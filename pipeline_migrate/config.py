"""Typed option objects for conversion and downgrade runs.

Empty strings mean "unset": callers (the CLI in particular) pass flag values
straight through and the `resolved_*` helpers apply the defaults.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_ORGANIZATION = "default"
DEFAULT_PROJECT = "default"
DEFAULT_PIPELINE_NAME = "default"
DEFAULT_KUBE_NAMESPACE = "default"


@dataclass(frozen=True)
class ConvertOptions:
    """Execution context attached to every canonical stage."""

    kube_namespace: str = ""
    kube_connector: str = ""
    docker_connector: str = ""

    @property
    def kube_enabled(self) -> bool:
        return bool(self.kube_connector)

    @property
    def resolved_kube_namespace(self) -> str:
        return self.kube_namespace or DEFAULT_KUBE_NAMESPACE


@dataclass(frozen=True)
class DowngradeOptions:
    """Metadata the legacy schema requires but the canonical one does not carry."""

    organization: str = ""
    project: str = ""
    pipeline_name: str = ""
    repo_connector: str = ""
    repo_name: str = ""
    kube_connector: str = ""
    kube_namespace: str = ""
    docker_connector: str = ""

    @property
    def resolved_organization(self) -> str:
        return self.organization or DEFAULT_ORGANIZATION

    @property
    def resolved_project(self) -> str:
        return self.project or DEFAULT_PROJECT

    @property
    def resolved_pipeline_name(self) -> str:
        return self.pipeline_name or DEFAULT_PIPELINE_NAME

    @property
    def resolved_kube_namespace(self) -> str:
        return self.kube_namespace or DEFAULT_KUBE_NAMESPACE
