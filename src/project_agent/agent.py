"""Launch the coding agent for a prepared run."""

from __future__ import annotations

from pathlib import Path

from . import exec as exec_util
from . import log

DEFAULT_AGENT_COMMAND = "codex"


class AgentLaunchError(RuntimeError):
    """Raised when the agent executable cannot be started."""


def launch_agent(
    prompt: str,
    *,
    cwd: Path,
    command: str = DEFAULT_AGENT_COMMAND,
    runner: exec_util.CommandRunner | None = None,
) -> int:
    """Run the agent in ``cwd`` with the initial prompt and wait for it.

    Returns:
        The agent's exit code.

    Raises:
        AgentLaunchError: the agent executable is not on ``PATH``.
    """
    log.debug(f"launching {command} in {cwd}")
    returncode = exec_util.run_interactive([command, prompt], cwd=cwd, runner=runner)
    if returncode is None:
        raise AgentLaunchError(f"{command} CLI was not found on PATH.")
    return returncode
