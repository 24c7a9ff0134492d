from __future__ import annotations

import os
import subprocess
from pathlib import Path

import pytest

import project_agent.worktree as worktree
from tests.project_agent.helpers import FakeRunner, init_git_repo, requires_git

NOW = "2026-02-28T00:00:00.000Z"


def _repo_runner(
    repo: Path, responses: dict[str, tuple[int, str, str] | None] | None = None
) -> FakeRunner:
    table: dict[str, tuple[int, str, str] | None] = {
        "rev-parse --show-toplevel": (0, f"{repo}\n", "")
    }
    table.update(responses or {})
    return FakeRunner(table)


def _mutations(runner: FakeRunner) -> list[str]:
    return [command for command in runner.commands() if "rev-parse" not in command]


def test_resolve_worktree_spec_for_issue() -> None:
    assert worktree.resolve_worktree_spec("BRI-32") == worktree.WorktreeSpec(
        key="bri-32", branch="project-agent-bri-32"
    )
    assert worktree.resolve_worktree_spec("  Team/ABC 7 ").key == "team-abc-7"


def test_resolve_worktree_spec_falls_back_for_unusable_issue() -> None:
    assert worktree.resolve_worktree_spec("###").key == "run"
    assert worktree.resolve_worktree_spec("..").key == "run"


def test_resolve_worktree_spec_for_unscoped_seed() -> None:
    spec = worktree.resolve_worktree_spec("", "550E8400-E29B")

    assert spec.key == "unscoped-550e8400-e29b"
    assert spec.branch == "project-agent-unscoped-550e8400-e29b"


@pytest.mark.parametrize("seed", [None, "", "   "])
def test_resolve_worktree_spec_requires_issue_or_seed(seed: str | None) -> None:
    with pytest.raises(ValueError, match="requires an issue id or an unscoped seed"):
        worktree.resolve_worktree_spec("  ", seed)


def test_resolve_unscoped_seed_prefers_supplied_seed() -> None:
    flags = worktree.BootstrapFlags(unscoped_seed="parent-seed")

    assert worktree.resolve_unscoped_seed(flags, now_iso=NOW, pid=1) == "parent-seed"
    assert (
        worktree.resolve_unscoped_seed(worktree.BootstrapFlags(), now_iso=NOW, pid=42)
        == "2026-02-28t00-00-00-000z-p42"
    )


def test_resolve_unscoped_seed_defaults_to_current_process() -> None:
    seed = worktree.resolve_unscoped_seed(worktree.BootstrapFlags())

    assert seed.endswith(f"-p{os.getpid()}")
    assert ":" not in seed


def test_same_path_matches_through_symlinks(tmp_path: Path) -> None:
    real = tmp_path / "real"
    real.mkdir()
    link = tmp_path / "link"
    link.symlink_to(real, target_is_directory=True)

    assert worktree.same_path(link, real)
    assert worktree.same_path(tmp_path / "a" / ".." / "real", real)
    assert not worktree.same_path(tmp_path / "missing", real)


@pytest.mark.parametrize(
    ("flags", "reason"),
    [
        (worktree.BootstrapFlags(disabled=True), "PROJECT_AGENT_DISABLE_WORKTREE=1"),
        (worktree.BootstrapFlags(bootstrapped=True), "PROJECT_AGENT_WORKTREE_BOOTSTRAPPED=1"),
        (
            worktree.BootstrapFlags(disabled=True, bootstrapped=True),
            "PROJECT_AGENT_DISABLE_WORKTREE=1",
        ),
    ],
)
def test_ensure_workspace_skips_on_flags_without_running_git(
    tmp_path: Path, flags: worktree.BootstrapFlags, reason: str
) -> None:
    runner = FakeRunner()

    result = worktree.ensure_workspace(tmp_path, "AG-1", flags=flags, runner=runner)

    assert result == worktree.BootstrapSkipped(reason=reason)
    assert runner.requests == []


@pytest.mark.parametrize("response", [None, (128, "", "fatal: not a git repository")])
def test_ensure_workspace_skips_outside_git(
    tmp_path: Path, response: tuple[int, str, str] | None
) -> None:
    runner = FakeRunner({"rev-parse": response})

    result = worktree.ensure_workspace(
        tmp_path, "AG-1", flags=worktree.BootstrapFlags(), runner=runner
    )

    assert result == worktree.BootstrapSkipped(reason="not inside a git worktree")
    assert _mutations(runner) == []


def test_ensure_workspace_reports_already_in_target(tmp_path: Path) -> None:
    """A process already running in its worktree is not moved again."""
    repo = tmp_path / "repo"
    target = repo / worktree.WORKTREE_DIRNAME / "ag-1"
    target.mkdir(parents=True)
    runner = _repo_runner(target)

    result = worktree.ensure_workspace(
        target, "AG-1", flags=worktree.BootstrapFlags(), runner=runner
    )

    assert isinstance(result, worktree.BootstrapAlreadyInTarget)
    assert result.action == "already-in-target"
    assert result.branch == "project-agent-ag-1"
    assert worktree.same_path(result.path, target)
    assert _mutations(runner) == []


def test_ensure_workspace_creates_branch_and_worktree(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    runner = _repo_runner(repo, {"show-ref": (1, "", "")})

    result = worktree.ensure_workspace(
        repo, "AG-1", flags=worktree.BootstrapFlags(), runner=runner
    )

    target = repo / worktree.WORKTREE_DIRNAME / "ag-1"
    assert result == worktree.BootstrapRelaunch(
        path=target, branch="project-agent-ag-1", created=True
    )
    assert _mutations(runner) == [
        f"git -C {repo} show-ref --verify --quiet refs/heads/project-agent-ag-1",
        f"git -C {repo} worktree add -b project-agent-ag-1 {target} HEAD",
    ]
    assert target.parent.is_dir()


def test_ensure_workspace_reuses_existing_branch(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    runner = _repo_runner(repo, {"show-ref": (0, "", "")})

    result = worktree.ensure_workspace(
        repo, "AG-1", flags=worktree.BootstrapFlags(), runner=runner
    )

    target = repo / worktree.WORKTREE_DIRNAME / "ag-1"
    assert isinstance(result, worktree.BootstrapRelaunch)
    assert result.created is True
    assert _mutations(runner)[-1] == (
        f"git -C {repo} worktree add {target} project-agent-ag-1"
    )


def test_ensure_workspace_reuses_existing_worktree(tmp_path: Path) -> None:
    """An existing target path is reused without any git mutation."""
    repo = tmp_path / "repo"
    target = repo / worktree.WORKTREE_DIRNAME / "ag-1"
    target.mkdir(parents=True)
    runner = _repo_runner(repo)

    result = worktree.ensure_workspace(
        repo / "src", "AG-1", flags=worktree.BootstrapFlags(), runner=runner
    )

    assert result == worktree.BootstrapRelaunch(
        path=target, branch="project-agent-ag-1", created=False
    )
    assert _mutations(runner) == []


def test_ensure_workspace_unscoped_uses_seed_from_flags(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    runner = _repo_runner(repo, {"show-ref": (1, "", "")})

    result = worktree.ensure_workspace(
        repo, "", flags=worktree.BootstrapFlags(unscoped_seed="Parent.Seed"), runner=runner
    )

    assert isinstance(result, worktree.BootstrapRelaunch)
    assert result.branch == "project-agent-unscoped-parent.seed"
    assert result.path == repo / worktree.WORKTREE_DIRNAME / "unscoped-parent.seed"


def test_ensure_workspace_unscoped_uses_time_and_pid(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    runner = _repo_runner(repo, {"show-ref": (1, "", "")})

    result = worktree.ensure_workspace(
        repo, "", flags=worktree.BootstrapFlags(), now_iso=NOW, pid=42, runner=runner
    )

    assert isinstance(result, worktree.BootstrapRelaunch)
    assert result.path.name == "unscoped-2026-02-28t00-00-00-000z-p42"


def test_ensure_workspace_raises_with_git_output(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    runner = _repo_runner(
        repo,
        {
            "show-ref": (1, "", ""),
            "worktree add": (128, "", "fatal: 'project-agent-ag-1' is already checked out\n"),
        },
    )

    with pytest.raises(worktree.WorktreeBootstrapError) as exc_info:
        worktree.ensure_workspace(repo, "AG-1", flags=worktree.BootstrapFlags(), runner=runner)

    message = str(exc_info.value)
    assert message.startswith(
        f"Failed to prepare git worktree at {repo / worktree.WORKTREE_DIRNAME / 'ag-1'}: "
    )
    assert message.endswith("fatal: 'project-agent-ag-1' is already checked out")


def test_ensure_workspace_raises_when_git_disappears(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    runner = _repo_runner(repo, {"show-ref": None})

    with pytest.raises(worktree.WorktreeBootstrapError, match="missing required command: git"):
        worktree.ensure_workspace(repo, "AG-1", flags=worktree.BootstrapFlags(), runner=runner)


@requires_git
def test_ensure_workspace_with_real_git(tmp_path: Path) -> None:
    """Create, reuse, then detect the worktree against a real repository."""
    repo = init_git_repo(tmp_path / "repo")
    flags = worktree.BootstrapFlags()

    created = worktree.ensure_workspace(repo, "AG-1", flags=flags)

    assert isinstance(created, worktree.BootstrapRelaunch)
    assert created.created is True
    assert (created.path / ".git").exists()

    reused = worktree.ensure_workspace(repo, "AG-1", flags=flags)
    assert reused == worktree.BootstrapRelaunch(
        path=created.path, branch=created.branch, created=False
    )

    inside = worktree.ensure_workspace(created.path, "AG-1", flags=flags)
    assert isinstance(inside, worktree.BootstrapAlreadyInTarget)
    assert inside.branch == "project-agent-ag-1"


@requires_git
def test_ensure_workspace_reattaches_existing_branch(tmp_path: Path) -> None:
    repo = init_git_repo(tmp_path / "repo")
    flags = worktree.BootstrapFlags()
    first = worktree.ensure_workspace(repo, "AG-2", flags=flags)
    assert isinstance(first, worktree.BootstrapRelaunch)
    subprocess.run(
        ["git", "-C", str(repo), "worktree", "remove", "--force", str(first.path)], check=True
    )

    second = worktree.ensure_workspace(repo, "AG-2", flags=flags)

    assert isinstance(second, worktree.BootstrapRelaunch)
    assert second.created is True
    assert (second.path / ".git").exists()
