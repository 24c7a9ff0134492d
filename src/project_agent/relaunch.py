"""Re-invoke the current command inside a prepared run worktree."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Mapping, Sequence

from . import config, log
from . import exec as exec_util
from .worktree import BootstrapRelaunch


class RelaunchError(RuntimeError):
    """Raised when the relaunched child cannot be started."""


def relaunch_command(orig_argv: Sequence[str], executable: str) -> list[str]:
    """Return argv that repeats the current invocation with the same interpreter.

    ``orig_argv`` is the interpreter command line (``sys.orig_argv``), so
    interpreter options such as ``-m project_agent`` are preserved.

    Example:
        >>> relaunch_command(["python3", "-m", "project_agent", "run", "AG-1"], "/usr/bin/python3")
        ['/usr/bin/python3', '-m', 'project_agent', 'run', 'AG-1']
    """
    return [executable, *list(orig_argv)[1:]]


def relaunch_environment(
    environ: Mapping[str, str], *, unscoped_seed: str | None = None
) -> dict[str, str]:
    """Return the child environment with the re-entrancy guard set."""
    env = dict(environ)
    env[config.BOOTSTRAP_GUARD_ENV] = "1"
    if unscoped_seed:
        env[config.UNSCOPED_KEY_ENV] = unscoped_seed
    return env


def relaunch_in_worktree(
    result: BootstrapRelaunch,
    *,
    unscoped_seed: str | None = None,
    orig_argv: Sequence[str] | None = None,
    executable: str | None = None,
    environ: Mapping[str, str] | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> int:
    """Run the current command again from ``result.path`` and wait for it.

    Returns:
        The child's exit code, which the caller should exit with.

    Raises:
        RelaunchError: the interpreter could not be started.
    """
    argv = relaunch_command(
        orig_argv if orig_argv is not None else sys.orig_argv,
        executable or sys.executable,
    )
    env = relaunch_environment(
        os.environ if environ is None else environ, unscoped_seed=unscoped_seed
    )
    log.debug(f"relaunching in {result.path}: {' '.join(argv)}")
    returncode = exec_util.run_interactive(argv, cwd=Path(result.path), env=env, runner=runner)
    if returncode is None:
        raise RelaunchError(
            f"Failed to relaunch in worktree: {argv[0]} executable was not found."
        )
    if returncode < 0:
        # Killed by a signal; report it the way a shell would.
        return 128 - returncode
    return returncode
