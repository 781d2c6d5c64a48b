# === NAVMAP v1 ===
# {
#   "module": "GhReleaseApt.cli",
#   "purpose": "Typer CLI exposing the import and assemble commands",
#   "sections": [
#     {"id": "clicontext", "name": "CliContext", "anchor": "class-clicontext", "kind": "class"},
#     {"id": "get-context", "name": "get_context", "anchor": "function-get-context", "kind": "function"},
#     {"id": "main", "name": "main", "anchor": "function-main", "kind": "function"},
#     {"id": "import-cmd", "name": "import_cmd", "anchor": "function-import-cmd", "kind": "function"},
#     {"id": "assemble-cmd", "name": "assemble_cmd", "anchor": "function-assemble-cmd", "kind": "function"},
#     {"id": "run", "name": "run", "anchor": "function-run", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Command-line interface for gh-release-apt.

Two subcommands drive the pipelines:

    gh-release-apt import owner/repo --output ./apt-repo
    gh-release-apt assemble --output ./apt-repo --sign

Handled failures print ``Error: <message>`` on stderr and exit with status 1.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from . import __version__
from .assemble import assemble_repository
from .dpkg import DpkgScanner
from .errors import GhReleaseAptError, RepositoryFormatError
from .github import GitHubReleaseClient
from .importer import import_release
from .layout import RepositoryId, parse_repository
from .logging_utils import setup_logging
from .services import GpgSigningService, compression_service_for
from .settings import AptSettings, load_settings

__all__ = ["app", "CliContext", "get_context", "main", "import_cmd", "assemble_cmd", "run"]

_console = Console()


class CliContext:
    """Global options shared by the subcommands."""

    def __init__(
        self,
        config: Optional[Path] = None,
        verbosity: int = 0,
        log_dir: Optional[Path] = None,
    ) -> None:
        self.config = config
        self.verbosity = verbosity
        self.log_dir = log_dir
        self.console = _console

    def settings(self, **overrides: object) -> AptSettings:
        """Resolve settings and configure logging for the running command."""

        settings = load_settings(self.config, log_dir=self.log_dir, **overrides)
        level = logging.DEBUG if self.verbosity >= 1 else settings.logging.level_int()
        setup_logging(
            level=level,
            log_dir=settings.log_dir,
            emit_json_logs=settings.logging.emit_json_logs,
            retention_days=settings.logging.retention_days,
            max_log_size_mb=settings.logging.max_log_size_mb,
        )
        return settings


app = typer.Typer(
    name="gh-release-apt",
    help="Generate APT repositories from GitHub release .deb assets",
    no_args_is_help=True,
)

_context: Optional[CliContext] = None


def get_context() -> CliContext:
    """Return the context created by the global callback."""

    if _context is None:
        raise RuntimeError("CLI context not initialized")
    return _context


def _fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(1)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"gh-release-apt {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        envvar="GHAPT_CONFIG",
        help="Path to a YAML settings file",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v for DEBUG)",
    ),
    log_dir: Optional[Path] = typer.Option(
        None,
        "--log-dir",
        help="Write JSON-lines logs to this directory",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """gh-release-apt - APT repositories backed by GitHub releases."""
    global _context

    _context = CliContext(config=config, verbosity=verbosity, log_dir=log_dir)


def _parse_repository_argument(value: str) -> RepositoryId:
    try:
        return parse_repository(value)
    except RepositoryFormatError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command("import")
def import_cmd(
    repository: str = typer.Argument(
        ...,
        metavar="OWNER/REPO",
        help="GitHub repository in owner/repo format",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory for the APT repository [default: ./apt-repo]",
    ),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        "-t",
        help="GitHub token for authentication (or use GITHUB_TOKEN env var)",
    ),
    tag: Optional[str] = typer.Option(
        None,
        "--tag",
        help="Import this release tag instead of the latest release",
    ),
) -> None:
    """Import .deb assets from a GitHub release into an APT repository."""

    ctx = get_context()
    repo_id = _parse_repository_argument(repository)
    try:
        settings = ctx.settings(output_dir=output, github_token=token)
        with GitHubReleaseClient(
            token=settings.token(),
            api_url=settings.api_url,
            timeout=settings.timeout_sec,
        ) as client:
            result = import_release(
                repo_id,
                settings=settings,
                source=client,
                scanner=DpkgScanner(),
                tag=tag,
            )
    except GhReleaseAptError as exc:
        _fail(exc)
        return

    ctx.console.print("\n[green]✓ APT repository updated successfully![/green]")
    ctx.console.print(f"  Output directory: {settings.layout().output_dir}")
    ctx.console.print(f"  Packages file: {result.fragment_path}")
    ctx.console.print(f"  .deb files: {result.release_dir}")
    ctx.console.print(f"  Downloaded {len(result.fetched)}, unchanged {len(result.skipped)}")


@app.command("assemble")
def assemble_cmd(
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory for the APT repository [default: ./apt-repo]",
    ),
    sign: bool = typer.Option(
        False,
        "--sign",
        help="Sign the Release file (writes Release.gpg and InRelease)",
    ),
) -> None:
    """Assemble per-architecture Packages files and the Release manifest from pool/."""

    ctx = get_context()
    try:
        settings = ctx.settings(output_dir=output)
        signer = (
            GpgSigningService(
                binary=settings.gpg_binary,
                key_id=settings.gpg_key_id,
                key_material=(
                    settings.signing_key.get_secret_value() if settings.signing_key else None
                ),
            )
            if sign
            else None
        )
        try:
            result = assemble_repository(
                settings=settings,
                compressor=compression_service_for(settings.compression),
                signer=signer,
                sign=sign,
            )
        finally:
            if signer is not None:
                signer.close()
    except GhReleaseAptError as exc:
        _fail(exc)
        return

    ctx.console.print("\n[green]✓ Packages files assembled successfully![/green]")
    ctx.console.print(
        f"  Created {len(result.index_files)} architecture-specific Packages file(s) "
        f"in {settings.layout().component_dir}"
    )
    ctx.console.print(f"  Release file: {result.release_path}")
    for signature in result.signatures:
        ctx.console.print(f"  Signature: {signature}")


def run() -> None:
    """Console-script entry point."""

    app()

