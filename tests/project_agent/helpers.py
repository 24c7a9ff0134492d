from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from project_agent import artifacts
from project_agent import exec as exec_util

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


class FakeRunner:
    """Command runner that records requests and replays canned results.

    ``responses`` maps a command-name fragment (matched against the joined
    argv) to ``(returncode, stdout, stderr)``; ``None`` simulates a missing
    executable. Unmatched commands succeed with empty output.
    """

    def __init__(self, responses: dict[str, tuple[int, str, str] | None] | None = None) -> None:
        self.responses = responses or {}
        self.requests: list[exec_util.CommandRequest] = []

    def run(self, request: exec_util.CommandRequest) -> exec_util.CommandResult | None:
        self.requests.append(request)
        joined = " ".join(request.argv)
        for fragment, response in self.responses.items():
            if fragment in joined:
                if response is None:
                    return None
                returncode, stdout, stderr = response
                return exec_util.CommandResult(
                    argv=request.argv, returncode=returncode, stdout=stdout, stderr=stderr
                )
        return exec_util.CommandResult(argv=request.argv, returncode=0, stdout="", stderr="")

    def commands(self) -> list[str]:
        return [" ".join(request.argv) for request in self.requests]


def init_git_repo(path: Path) -> Path:
    """Create a git repository with one empty commit and return its real path."""
    path.mkdir(parents=True, exist_ok=True)
    subprocess.run(["git", "init", "-q", str(path)], check=True)
    subprocess.run(
        [
            "git",
            "-C",
            str(path),
            "-c",
            "user.name=Test",
            "-c",
            "user.email=test@example.com",
            "-c",
            "commit.gpgsign=false",
            "commit",
            "-q",
            "--allow-empty",
            "-m",
            "init",
        ],
        check=True,
    )
    return path.resolve()


def done_artifact(issue_id: str = "AG-1") -> artifacts.RunArtifact:
    """Return an artifact that satisfies every ``done`` gate."""
    artifact = artifacts.create_initial_run_artifact(issue_id, "2026-02-28T00:00:00Z")
    artifact.status = "done"
    artifact.ended_at = "2026-02-28T01:00:00Z"
    artifact.summary = "Implemented acceptance criteria."
    artifact.linear.plan_comment_posted = True
    artifact.linear.progress_comment_posted = True
    artifact.linear.done_comment_posted = True
    artifact.tests.commands = ["pytest"]
    artifact.tests.results = [artifacts.TestCommandResult(command="pytest", exit_code=0)]
    artifact.verification = ["Open the updated flow and confirm behavior."]
    artifact.changes.pull_request_url = "https://github.com/example/repo/pull/123"
    return artifact
