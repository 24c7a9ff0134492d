"""Git helper functions used by the run bootstrapper."""

from __future__ import annotations

from pathlib import Path

from . import exec as exec_util
from . import log


def git_command(args: list[str], *, git_path: str | None = None) -> list[str]:
    """Build a git command using an optional executable path.

    Example:
        >>> git_command(["status"])
        ['git', 'status']
    """
    resolved = git_path.strip() if isinstance(git_path, str) else ""
    if not resolved:
        resolved = "git"
    return [resolved, *args]


def _run_git_capture(
    cmd: list[str], *, runner: exec_util.CommandRunner | None = None
) -> exec_util.CommandResult | None:
    log.trace(f"git: {' '.join(cmd)}")
    return exec_util.run_with_runner(
        exec_util.CommandRequest(argv=tuple(cmd), capture_output=True, text=True),
        runner=runner,
    )


def git_repo_root(
    start: Path,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> Path | None:
    """Return the git repository root for a starting path.

    Args:
        start: Directory to search from.

    Returns:
        Repo root path, or ``None`` when ``start`` is not inside a git
        repository or git itself is not installed.
    """
    result = _run_git_capture(
        git_command(["-C", str(start), "rev-parse", "--show-toplevel"], git_path=git_path),
        runner=runner,
    )
    if result is None or result.returncode != 0:
        return None
    resolved = result.stdout.strip()
    if not resolved:
        return None
    return Path(resolved)


def git_ref_exists(
    repo_dir: Path,
    ref: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> bool:
    """Check whether a git ref exists.

    Args:
        repo_dir: Git repository directory.
        ref: Ref name (e.g., ``refs/heads/main``).

    Returns:
        ``True`` if the ref exists.

    Raises:
        exec_util.CommandExecutionError: git is not installed.
    """
    cmd = git_command(
        ["-C", str(repo_dir), "show-ref", "--verify", "--quiet", ref],
        git_path=git_path,
    )
    result = _run_git_capture(cmd, runner=runner)
    if result is None:
        request = exec_util.CommandRequest(argv=tuple(cmd))
        raise exec_util.CommandExecutionError(
            request=request, detail=f"missing required command: {cmd[0]}"
        )
    return result.returncode == 0


def git_worktree_add(
    repo_root: Path,
    worktree_path: Path,
    branch: str,
    *,
    create_branch: bool,
    start_point: str = "HEAD",
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> None:
    """Add a worktree at ``worktree_path`` checked out on ``branch``.

    When ``create_branch`` is set the branch is created from ``start_point``.

    Raises:
        exec_util.CommandExecutionError: git is missing or exits non-zero.
    """
    if create_branch:
        args = ["worktree", "add", "-b", branch, str(worktree_path), start_point]
    else:
        args = ["worktree", "add", str(worktree_path), branch]
    cmd = git_command(["-C", str(repo_root), *args], git_path=git_path)
    log.debug(f"git: {' '.join(cmd)}")
    exec_util.run_checked(
        exec_util.CommandRequest(argv=tuple(cmd), capture_output=True, text=True),
        runner=runner,
    )
