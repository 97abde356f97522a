"""Command-line interface for pipeline-migrate.

Exit codes:
    0 = Success
    1 = Fatal error (unreadable file, unsupported dialect, malformed
        source, output encoding failure)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from .agents import MigrationAgent, MigrationJob, migrate_batch
from .config import ConvertOptions, DowngradeOptions
from .core import serializer
from .core.downgrader import Downgrader
from .core.errors import MigrationError
from .frontends import FRONTENDS, get_frontend

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

app = typer.Typer(
    name="pipeline-migrate",
    help="Convert CI pipelines from other dialects into the canonical v1 schema.",
    no_args_is_help=True,
)

# Shared option declarations
FormatOption = Annotated[str, typer.Option("--format", "-f", help="Output format: yaml or json")]
OrgOption = Annotated[str, typer.Option("--org", help="Organization identifier (downgrade)")]
ProjectOption = Annotated[str, typer.Option("--project", help="Project identifier (downgrade)")]
PipelineOption = Annotated[str, typer.Option("--pipeline", help="Pipeline name (downgrade)")]
RepoConnectorOption = Annotated[str, typer.Option("--repo-connector", help="Repository connector (downgrade)")]
RepoNameOption = Annotated[str, typer.Option("--repo-name", help="Repository name (downgrade)")]
KubeConnectorOption = Annotated[str, typer.Option("--kube-connector", help="Kubernetes connector")]
KubeNamespaceOption = Annotated[str, typer.Option("--kube-namespace", help="Kubernetes namespace")]
DockerConnectorOption = Annotated[str, typer.Option("--docker-connector", help="Docker registry connector")]


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
):
    """Offline CI pipeline migration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        force=True,
    )


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(code=1)


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise _fail(f"cannot read {path}: {exc.strerror or exc}")


def _downgrade_options(
    org: str,
    project: str,
    pipeline: str,
    repo_connector: str,
    repo_name: str,
    kube_connector: str,
    kube_namespace: str,
    docker_connector: str,
) -> DowngradeOptions:
    return DowngradeOptions(
        organization=org,
        project=project,
        pipeline_name=pipeline,
        repo_connector=repo_connector,
        repo_name=repo_name,
        kube_connector=kube_connector,
        kube_namespace=kube_namespace,
        docker_connector=docker_connector,
    )


@app.command()
def convert(
    dialect: Annotated[str, typer.Argument(help="Source dialect (see `dialects`)")],
    path: Annotated[Optional[Path], typer.Argument(help="Pipeline file (defaults per dialect)")] = None,
    downgrade: Annotated[bool, typer.Option("--downgrade", help="Emit the legacy v0 schema")] = False,
    before_after: Annotated[bool, typer.Option("--before-after", help="Print the source before the result")] = False,
    fmt: FormatOption = "yaml",
    org: OrgOption = "",
    project: ProjectOption = "",
    pipeline: PipelineOption = "",
    repo_connector: RepoConnectorOption = "",
    repo_name: RepoNameOption = "",
    kube_connector: KubeConnectorOption = "",
    kube_namespace: KubeNamespaceOption = "",
    docker_connector: DockerConnectorOption = "",
):
    """Convert one pipeline file."""
    try:
        entry = get_frontend(dialect)
    except MigrationError as exc:
        raise _fail(str(exc))

    source = path or Path(entry.default_path)
    text = _read(source)

    agent = MigrationAgent(
        ConvertOptions(
            kube_namespace=kube_namespace,
            kube_connector=kube_connector,
            docker_connector=docker_connector,
        ),
        _downgrade_options(
            org, project, pipeline, repo_connector, repo_name, kube_connector, kube_namespace, docker_connector
        ),
    )
    state = agent.run(entry.name, text, downgrade=downgrade, fmt=fmt)
    if not state.succeeded:
        raise _fail(state.error_message or "conversion failed")

    if before_after:
        typer.echo(text.rstrip("\n"))
        typer.echo("---")
    typer.echo(state.output.decode("utf-8"), nl=False)

    for degraded in state.conversion.degraded_steps:
        typer.echo(f"Warning: {degraded.reason}", err=True)


@app.command("downgrade")
def downgrade_cmd(
    path: Annotated[Path, typer.Argument(help="Canonical v1 pipeline file")],
    fmt: FormatOption = "yaml",
    org: OrgOption = "",
    project: ProjectOption = "",
    pipeline: PipelineOption = "",
    repo_connector: RepoConnectorOption = "",
    repo_name: RepoNameOption = "",
    kube_connector: KubeConnectorOption = "",
    kube_namespace: KubeNamespaceOption = "",
    docker_connector: DockerConnectorOption = "",
):
    """Downgrade a canonical v1 pipeline to the legacy v0 schema."""
    text = _read(path)
    options = _downgrade_options(
        org, project, pipeline, repo_connector, repo_name, kube_connector, kube_namespace, docker_connector
    )
    try:
        config = serializer.load_canonical(text)
        output = serializer.dump(Downgrader(options).downgrade(config), fmt)
    except MigrationError as exc:
        raise _fail(str(exc))
    typer.echo(output.decode("utf-8"), nl=False)


def _output_names(paths: list[Path], fmt: str) -> list[str]:
    """One distinct file name per input; clashing stems get the input position appended."""
    stems = [path.stem for path in paths]
    taken = {stem for stem in stems if stems.count(stem) == 1}
    names = []
    for index, stem in enumerate(stems):
        name = stem
        if stems.count(stem) > 1:
            name = f"{stem}-{index}"
            while name in taken:
                name = f"{name}-{index}"
            taken.add(name)
        names.append(f"{name}.{fmt}")
    return names


@app.command()
def batch(
    dialect: Annotated[str, typer.Argument(help="Source dialect of every file")],
    paths: Annotated[list[Path], typer.Argument(help="Pipeline files to convert")],
    out_dir: Annotated[Path, typer.Option("--out-dir", "-o", help="Directory for converted files")],
    downgrade: Annotated[bool, typer.Option("--downgrade", help="Emit the legacy v0 schema")] = False,
    fmt: FormatOption = "yaml",
    kube_connector: KubeConnectorOption = "",
    kube_namespace: KubeNamespaceOption = "",
    docker_connector: DockerConnectorOption = "",
):
    """Convert many files; one failed file does not stop the others."""
    try:
        entry = get_frontend(dialect)
    except MigrationError as exc:
        raise _fail(str(exc))

    failures = 0
    readable: list[tuple[Path, str]] = []
    for path in paths:
        try:
            readable.append((path, path.read_text(encoding="utf-8")))
        except OSError as exc:
            failures += 1
            typer.echo(f"FAILED {path}: cannot read: {exc.strerror or exc}", err=True)

    jobs = [
        MigrationJob(dialect=entry.name, text=text, source=str(path), downgrade=downgrade, fmt=fmt)
        for path, text in readable
    ]
    states = migrate_batch(
        jobs,
        ConvertOptions(kube_namespace=kube_namespace, kube_connector=kube_connector, docker_connector=docker_connector),
        DowngradeOptions(kube_connector=kube_connector, kube_namespace=kube_namespace, docker_connector=docker_connector),
    )

    out_dir.mkdir(parents=True, exist_ok=True)
    names = _output_names([path for path, _ in readable], fmt)
    for (path, _), name, state in zip(readable, names, states):
        if not state.succeeded:
            failures += 1
            typer.echo(f"FAILED {path}: {state.error_message}", err=True)
            continue
        target = out_dir / name
        target.write_bytes(state.output)
        typer.echo(f"{path} -> {target}")

    if failures:
        raise typer.Exit(code=1)


@app.command()
def dialects():
    """List the supported source dialects."""
    for name in sorted(FRONTENDS):
        entry = FRONTENDS[name]
        typer.echo(f"{name:<12} {entry.description} (default: {entry.default_path})")


def main() -> None:
    app()
