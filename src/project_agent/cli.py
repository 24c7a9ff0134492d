"""Command-line entry point for project-agent."""

from types import SimpleNamespace
from typing import Annotated, Optional

import typer

from . import __version__
from . import log as project_agent_log
from .commands.run import start_run as run_cmd
from .commands.validate import validate_run as validate_cmd

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Prepare isolated issue runs for a coding agent and gate their completion.",
)


def _log_level_callback(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in project_agent_log.LEVEL_NAMES:
        choices = ", ".join(project_agent_log.LEVEL_NAMES)
        raise typer.BadParameter(f"expected one of: {choices}")
    return normalized


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"project-agent {__version__}")
        raise typer.Exit()


@app.callback()
def main_options(
    log_level: Annotated[
        Optional[str],
        typer.Option(
            "--log-level",
            callback=_log_level_callback,
            help="Log verbosity: trace, debug, info, success, warning or error.",
        ),
    ] = None,
    no_color: Annotated[
        bool, typer.Option("--no-color", help="Disable colorized output.")
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the installed version and exit.",
        ),
    ] = False,
) -> None:
    """Global options shared by every command."""
    if log_level is not None:
        project_agent_log.set_level(log_level)
    if no_color:
        project_agent_log.set_no_color(True)


@app.command("run")
def run_command(
    issue_id: Annotated[
        Optional[str],
        typer.Argument(help="Issue identifier; omit to start an unscoped intake run."),
    ] = None,
    artifacts_dir: Annotated[
        Optional[str],
        typer.Option(
            "--artifacts-dir",
            help="Root directory for run artifacts (overrides PROJECT_AGENT_ARTIFACTS_DIR).",
        ),
    ] = None,
    no_agent: Annotated[
        bool,
        typer.Option(
            "--no-agent",
            "--no-codex",
            help="Prepare the run context without launching the agent.",
        ),
    ] = False,
) -> None:
    """Prepare a run in its issue worktree and launch the agent."""
    run_cmd(
        SimpleNamespace(
            issue_id=issue_id or "",
            artifacts_dir=artifacts_dir,
            no_agent=no_agent,
        )
    )


@app.command("validate")
def validate_command(
    path: Annotated[str, typer.Argument(help="Path to the run.json artifact.")],
) -> None:
    """Check a run artifact against its schema and completion gates."""
    validate_cmd(SimpleNamespace(path=path))


def main() -> None:
    app()
