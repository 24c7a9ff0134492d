"""Subprocess helpers for running external commands."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol


@dataclass(frozen=True)
class CommandRequest:
    """Typed command invocation request.

    ``capture_output=False`` lets the child inherit stdio; the result then
    carries only the exit code.
    """

    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    capture_output: bool = True
    text: bool = True


@dataclass(frozen=True)
class CommandResult:
    """Typed command execution result."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str


class CommandRunner(Protocol):
    """Runtime command-execution interface."""

    def run(self, request: CommandRequest) -> CommandResult | None: ...


class SubprocessCommandRunner:
    """Default command-runner adapter backed by subprocess.

    Blocks until the child exits; there is no timeout.
    """

    def run(self, request: CommandRequest) -> CommandResult | None:
        run_kwargs: dict[str, object] = {
            "cwd": request.cwd,
            "env": request.env,
            "check": False,
        }
        if request.capture_output:
            run_kwargs["capture_output"] = True
            run_kwargs["text"] = request.text
        try:
            completed = subprocess.run(list(request.argv), **run_kwargs)
        except FileNotFoundError:
            return None

        stdout = completed.stdout if isinstance(completed.stdout, str) else ""
        stderr = completed.stderr if isinstance(completed.stderr, str) else ""
        return CommandResult(
            argv=request.argv,
            returncode=completed.returncode,
            stdout=stdout,
            stderr=stderr,
        )


_DEFAULT_COMMAND_RUNNER: CommandRunner = SubprocessCommandRunner()


@dataclass(frozen=True)
class CommandExecutionError(RuntimeError):
    """Raised when a command is missing or exits non-zero."""

    request: CommandRequest
    detail: str
    result: CommandResult | None = None

    def __str__(self) -> str:
        return self.detail

    @property
    def output(self) -> str:
        """Return the command diagnostics, preferring stderr over stdout."""
        if self.result is None:
            return ""
        return (self.result.stderr or "").strip() or (self.result.stdout or "").strip()


def run_with_runner(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult | None:
    """Execute a typed command request with the given runner."""
    active_runner = runner or _DEFAULT_COMMAND_RUNNER
    return active_runner.run(request)


def _missing_command_error(request: CommandRequest) -> CommandExecutionError:
    argv = request.argv
    detail = f"missing required command: {argv[0]}" if argv else "missing required command"
    return CommandExecutionError(request=request, detail=detail)


def _command_failure_detail(request: CommandRequest, result: CommandResult) -> str:
    output = (result.stderr or result.stdout or "").strip()
    command_text = " ".join(request.argv)
    if output:
        return f"command failed: {command_text}\n{output}"
    return f"command failed: {command_text}"


def run_checked(
    request: CommandRequest, *, runner: CommandRunner | None = None
) -> CommandResult:
    """Execute a command that must exist and exit zero.

    Raises:
        CommandExecutionError: the executable is missing or the exit code is
            non-zero; ``result`` carries the failed run's output.
    """
    result = run_with_runner(request, runner=runner)
    if result is None:
        raise _missing_command_error(request)
    if result.returncode != 0:
        raise CommandExecutionError(
            request=request,
            result=result,
            detail=_command_failure_detail(request, result),
        )
    return result


def run_interactive(
    argv: list[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    runner: CommandRunner | None = None,
) -> int | None:
    """Run a command with inherited stdio and return its exit code.

    Args:
        argv: Command and arguments to execute.
        cwd: Optional working directory.
        env: Optional full environment for the child.

    Returns:
        The child's exit code, or ``None`` when the executable is missing.
    """
    result = run_with_runner(
        CommandRequest(
            argv=tuple(argv),
            cwd=cwd,
            env=env,
            capture_output=False,
            text=False,
        ),
        runner=runner,
    )
    if result is None:
        return None
    return result.returncode
