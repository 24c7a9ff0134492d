# ruff: noqa: E402

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import project_agent.log as project_agent_log

_PROJECT_AGENT_ENV = (
    "PROJECT_AGENT_DISABLE_WORKTREE",
    "PROJECT_AGENT_WORKTREE_BOOTSTRAPPED",
    "PROJECT_AGENT_UNSCOPED_KEY",
    "PROJECT_AGENT_ARTIFACTS_DIR",
    "PROJECT_AGENT_NO_CODEX",
    "PROJECT_AGENT_LOG_LEVEL",
    "PROJECT_AGENT_NO_COLOR",
)


@pytest.fixture(autouse=True)
def _isolated_runtime(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _PROJECT_AGENT_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.setattr(project_agent_log, "_configured_level", None)
    monkeypatch.setattr(project_agent_log, "_no_color_override", None)
