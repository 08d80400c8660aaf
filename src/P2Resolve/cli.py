# === NAVMAP v1 ===
# {
#   "module": "P2Resolve.cli",
#   "purpose": "Typer CLI that resolves configured repositories and reports warnings and errors.",
#   "sections": [
#     {"id": "clicontext", "name": "CliContext", "anchor": "class-clicontext", "kind": "class"},
#     {"id": "main-callback", "name": "main_callback", "anchor": "function-main-callback", "kind": "function"},
#     {"id": "resolve-cmd", "name": "resolve_cmd", "anchor": "function-resolve-cmd", "kind": "function"},
#     {"id": "index-cmd", "name": "index_cmd", "anchor": "function-index-cmd", "kind": "function"},
#     {"id": "version-cmd", "name": "version_cmd", "anchor": "function-version-cmd", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Command line entry point.

``p2resolve resolve`` resolves every root given on the command line (or the
``repositories`` list of the configuration file) independently, prints the
artifacts, prints recovered branch failures as warnings and fatal root
failures as errors, and exits non-zero when errors accumulated.

Example:
    $ p2resolve resolve https://download.eclipse.org/releases/latest/ --format json
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .documents import Artifact
from .engine import RepositoryResolver, ResolutionResult
from .errors import ConfigurationError, RepositoryResolutionError
from .logging_utils import setup_logging
from .settings import ResolverSettings, load_settings

LOGGER = logging.getLogger(__name__)

app = typer.Typer(
    name="p2resolve",
    help="Resolve the artifacts published by (composite) P2 repositories",
    no_args_is_help=True,
)

_console = Console()
_err_console = Console(stderr=True, soft_wrap=True)

_FORMATS = ("table", "json")


class CliContext:
    """Shared state for one CLI invocation."""

    def __init__(self, config: Optional[Path] = None, verbosity: int = 0) -> None:
        self.config = config
        self.verbosity = verbosity
        self.console = _console
        self.errors = 0
        self.warnings = 0

    def settings(self, **overrides) -> ResolverSettings:
        level = {0: None, 1: "INFO"}.get(self.verbosity, "DEBUG")
        if level is not None:
            overrides.setdefault("logging", {})["level"] = level
        try:
            return load_settings(self.config, **overrides)
        except ConfigurationError as exc:
            _err_console.print(f"Error   : {exc}", style="red", markup=False, highlight=False)
            raise typer.Exit(code=2) from exc

    def warn(self, message: str) -> None:
        self.warnings += 1
        _err_console.print(f"Warning : {message}", style="yellow", markup=False, highlight=False)

    def error(self, message: str) -> None:
        self.errors += 1
        _err_console.print(f"Error   : {message}", style="red", markup=False, highlight=False)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML settings file", exists=False, dir_okay=False
    ),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="-v for INFO, -vv for DEBUG"),
) -> None:
    """Global options shared by every command."""
    ctx.obj = CliContext(config=config, verbosity=verbose)


def _artifact_table(result: ResolutionResult) -> Table:
    table = Table(title=f"{result.root} ({len(result.artifacts)} artifacts)")
    table.add_column("Classifier")
    table.add_column("Id")
    table.add_column("Version")
    table.add_column("Location", overflow="fold")
    for artifact in result.artifacts:
        table.add_row(artifact.classifier, artifact.id, artifact.version, artifact.uri)
    return table


def _artifacts_json(artifacts: List[Artifact]) -> List[dict]:
    return [artifact.to_dict() for artifact in artifacts]


@app.command("resolve")
def resolve_cmd(
    ctx: typer.Context,
    roots: Optional[List[str]] = typer.Argument(None, help="Repository roots (URLs or paths)"),
    offline: Optional[bool] = typer.Option(
        None, "--offline/--online", help="Serve cached copies only"
    ),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Worker threads"),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table or json"),
    strict: bool = typer.Option(False, "--strict", help="Count recovered failures as errors"),
) -> None:
    """Resolve every repository root and list its artifacts."""
    state: CliContext = ctx.obj
    if output_format not in _FORMATS:
        raise typer.BadParameter(f"must be one of {', '.join(_FORMATS)}", param_hint="--format")

    settings = state.settings(
        offline=offline,
        concurrency={"workers": workers} if workers else None,
    )
    setup_logging(settings.logging)
    LOGGER.debug("settings %s", settings.config_hash(), extra={"stage": "cli"})
    targets = list(roots or settings.repositories)
    if not targets:
        raise typer.BadParameter("no repository roots given and none configured", param_hint="ROOTS")

    payload = []
    with RepositoryResolver(settings=settings) as resolver:
        for root in targets:
            try:
                result = resolver.resolve_report(root)
            except RepositoryResolutionError as exc:
                state.error(f"{root}: {exc}")
                payload.append({"root": root, "error": str(exc), "artifacts": [], "failures": []})
                continue
            for failure in result.failures:
                if strict:
                    state.error(str(failure))
                else:
                    state.warn(str(failure))
            if output_format == "json":
                payload.append(
                    {
                        "root": result.root,
                        "artifacts": _artifacts_json(result.artifacts),
                        "failures": [str(failure) for failure in result.failures],
                    }
                )
            else:
                state.console.print(_artifact_table(result))

    if output_format == "json":
        typer.echo(json.dumps(payload, indent=2))

    if state.errors:
        _err_console.print(f"[red]{state.errors} errors found[/red]")
        raise typer.Exit(code=1)


@app.command("index")
def index_cmd(
    ctx: typer.Context,
    root: str = typer.Argument(..., help="Repository root or p2.index location"),
    offline: Optional[bool] = typer.Option(None, "--offline/--online", help="Serve cached copies only"),
) -> None:
    """Show the artifact and content listings a repository advertises."""
    state: CliContext = ctx.obj
    settings = state.settings(offline=offline)
    setup_logging(settings.logging)
    with RepositoryResolver(settings=settings) as resolver:
        try:
            index = resolver.resolve_index(root)
        except RepositoryResolutionError as exc:
            state.error(f"{root}: {exc}")
            raise typer.Exit(code=1) from exc

    origin = "synthesized defaults" if index.synthesized else "p2.index"
    typer.echo(f"{root} ({origin})")
    if index.last_modified:
        stamp = datetime.fromtimestamp(index.last_modified, tz=timezone.utc).isoformat()
        typer.echo(f"last modified: {stamp}")
    typer.echo("artifact listings:")
    for locator in index.artifact_listings:
        typer.echo(f"  {locator}")
    typer.echo("content listings:")
    for locator in index.content_listings:
        typer.echo(f"  {locator}")


@app.command("version")
def version_cmd() -> None:
    """Print the p2resolve version."""
    _console.print(f"p2resolve {__version__}")


def main() -> None:
    app()


__all__ = ["app", "main"]
