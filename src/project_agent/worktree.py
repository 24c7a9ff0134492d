"""Per-run git worktree resolution and bootstrap.

A run for issue ``BRI-32`` works inside
``<repo>/.project-agent-worktrees/bri-32`` on branch
``project-agent-bri-32``. Unscoped runs get a key derived from a
uniqueness seed so concurrent intake sessions never share a checkout.

The bootstrapper only decides and prepares; re-launching the process in the
returned workspace is the caller's job (see :mod:`project_agent.relaunch`).
"""

from __future__ import annotations

import datetime as dt
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Union

from . import branching, git, log
from . import exec as exec_util

WORKTREE_DIRNAME = ".project-agent-worktrees"
BRANCH_PREFIX = "project-agent-"
UNSCOPED_PREFIX = "unscoped-"


class WorktreeBootstrapError(RuntimeError):
    """Raised when git fails while preparing a run worktree."""


@dataclass(frozen=True)
class WorktreeSpec:
    key: str
    branch: str


@dataclass(frozen=True)
class BootstrapFlags:
    """Process-level inputs to the bootstrapper.

    Attributes:
        disabled: Worktree isolation is switched off for this process.
        bootstrapped: The process is already the relaunched child.
        unscoped_seed: Externally supplied seed for unscoped runs.
    """

    disabled: bool = False
    bootstrapped: bool = False
    unscoped_seed: str | None = None


@dataclass(frozen=True)
class BootstrapSkipped:
    reason: str
    action: Literal["skipped"] = "skipped"


@dataclass(frozen=True)
class BootstrapAlreadyInTarget:
    path: Path
    branch: str
    action: Literal["already-in-target"] = "already-in-target"


@dataclass(frozen=True)
class BootstrapRelaunch:
    path: Path
    branch: str
    created: bool
    action: Literal["relaunch"] = "relaunch"


WorktreeBootstrapResult = Union[BootstrapSkipped, BootstrapAlreadyInTarget, BootstrapRelaunch]


def sanitize_worktree_key(value: str) -> str:
    """Normalize a run identifier into a worktree key.

    Example:
        >>> sanitize_worktree_key("  BRI 32 / Hot Fix  ")
        'bri-32-hot-fix'
    """
    return branching.sanitize_slug(value, fallback="run")


def default_unscoped_seed(now_iso: str, pid: int) -> str:
    """Return a time+pid seed for an unscoped run.

    Example:
        >>> default_unscoped_seed("2026-02-28T00:00:00.000Z", 4242)
        '2026-02-28t00-00-00-000z-p4242'
    """
    stamp = now_iso.replace(":", "-").replace(".", "-").lower()
    return f"{stamp}-p{pid}"


def resolve_unscoped_seed(
    flags: BootstrapFlags, *, now_iso: str | None = None, pid: int | None = None
) -> str:
    """Return the seed for an unscoped run, preferring the supplied one."""
    if flags.unscoped_seed:
        return flags.unscoped_seed
    if now_iso is None:
        now = dt.datetime.now(tz=dt.timezone.utc)
        now_iso = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return default_unscoped_seed(now_iso, os.getpid() if pid is None else pid)


def unscoped_worktree_key(seed: str) -> str:
    """Return the worktree key for an unscoped run seed.

    Example:
        >>> unscoped_worktree_key("550E8400-e29b")
        'unscoped-550e8400-e29b'
    """
    return sanitize_worktree_key(f"{UNSCOPED_PREFIX}{seed}")


def resolve_worktree_spec(issue_id: str, seed: str | None = None) -> WorktreeSpec:
    """Map a run identifier to its worktree key and branch.

    Args:
        issue_id: Issue identifier; blank means an unscoped run.
        seed: Uniqueness seed, required for unscoped runs.

    Returns:
        The deterministic ``WorktreeSpec`` for the inputs.

    Example:
        >>> resolve_worktree_spec(" BRI-32 ")
        WorktreeSpec(key='bri-32', branch='project-agent-bri-32')
    """
    trimmed = issue_id.strip()
    if trimmed:
        key = sanitize_worktree_key(trimmed)
    else:
        if seed is None or not seed.strip():
            raise ValueError("resolve_worktree_spec requires an issue id or an unscoped seed")
        key = unscoped_worktree_key(seed)
    return WorktreeSpec(key=key, branch=f"{BRANCH_PREFIX}{key}")


def worktree_path(repo_root: Path, spec: WorktreeSpec) -> Path:
    """Return the canonical workspace path for a spec."""
    return repo_root / WORKTREE_DIRNAME / spec.key


def _canonical_path(path: Path) -> Path:
    resolved = Path(os.path.abspath(path))
    if not resolved.exists():
        return resolved
    try:
        return resolved.resolve(strict=True)
    except OSError:
        return resolved


def same_path(left: Path, right: Path) -> bool:
    """Return True when two paths name the same location.

    Existing paths are compared by real path so symlinked temp or home
    directories match; missing paths fall back to their lexical form.
    """
    return _canonical_path(left) == _canonical_path(right)


def _owning_repo_root(repo_root: Path) -> Path:
    # Inside a managed worktree git reports the worktree itself as top-level.
    if repo_root.parent.name == WORKTREE_DIRNAME:
        return repo_root.parent.parent
    return repo_root


def _ensure_worktree_exists(
    repo_root: Path,
    target: Path,
    branch: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> bool:
    if target.exists():
        log.debug(f"worktree already present: {target}")
        return False
    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        has_branch = git.git_ref_exists(
            repo_root, f"refs/heads/{branch}", git_path=git_path, runner=runner
        )
        git.git_worktree_add(
            repo_root,
            target,
            branch,
            create_branch=not has_branch,
            git_path=git_path,
            runner=runner,
        )
    except exec_util.CommandExecutionError as exc:
        details = exc.output or str(exc) or "unknown error"
        raise WorktreeBootstrapError(
            f"Failed to prepare git worktree at {target}: {details}"
        ) from exc
    return True


def ensure_workspace(
    cwd: Path,
    issue_id: str,
    *,
    flags: BootstrapFlags,
    now_iso: str | None = None,
    pid: int | None = None,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> WorktreeBootstrapResult:
    """Decide whether the run must move into its own worktree.

    Args:
        cwd: Directory the run was started from.
        issue_id: Issue identifier; blank for an unscoped run.
        flags: Disable / re-entrancy inputs read from the environment.
        now_iso: Timestamp used for the default unscoped seed.
        pid: Process id used for the default unscoped seed.

    Returns:
        ``BootstrapSkipped`` when isolation is off or impossible,
        ``BootstrapAlreadyInTarget`` when ``cwd`` is the target worktree,
        otherwise ``BootstrapRelaunch`` after creating the worktree if needed.

    Raises:
        WorktreeBootstrapError: git failed while adding the worktree.
    """
    if flags.disabled:
        return BootstrapSkipped(reason="PROJECT_AGENT_DISABLE_WORKTREE=1")
    if flags.bootstrapped:
        return BootstrapSkipped(reason="PROJECT_AGENT_WORKTREE_BOOTSTRAPPED=1")

    repo_root = git.git_repo_root(cwd, git_path=git_path, runner=runner)
    if repo_root is None:
        return BootstrapSkipped(reason="not inside a git worktree")
    repo_root = _owning_repo_root(repo_root)

    seed = None if issue_id.strip() else resolve_unscoped_seed(flags, now_iso=now_iso, pid=pid)
    spec = resolve_worktree_spec(issue_id, seed)
    target = worktree_path(repo_root, spec)
    if same_path(cwd, target):
        return BootstrapAlreadyInTarget(path=target, branch=spec.branch)

    created = _ensure_worktree_exists(
        repo_root, target, spec.branch, git_path=git_path, runner=runner
    )
    return BootstrapRelaunch(path=target, branch=spec.branch, created=created)
