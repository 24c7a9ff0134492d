"""Configuration helpers for project-agent runs.

This module reads the process environment flags consumed by the run
bootstrapper, resolves the artifacts root, and loads the optional
``project-agent.json`` project file.

Example:
    >>> from project_agent.config import utc_now
    >>> utc_now().endswith("Z")
    True
"""

from __future__ import annotations

import datetime as dt
import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from pydantic import ValidationError

from . import branching
from .models import ProjectConfig
from .worktree import BootstrapFlags

DISABLE_WORKTREE_ENV = "PROJECT_AGENT_DISABLE_WORKTREE"
BOOTSTRAP_GUARD_ENV = "PROJECT_AGENT_WORKTREE_BOOTSTRAPPED"
UNSCOPED_KEY_ENV = "PROJECT_AGENT_UNSCOPED_KEY"
ARTIFACTS_DIR_ENV = "PROJECT_AGENT_ARTIFACTS_DIR"
NO_AGENT_ENV = "PROJECT_AGENT_NO_CODEX"

ARTIFACTS_DIRNAME = ".project-agent-artifacts"
PROJECT_CONFIG_FILENAMES = ("project-agent.json", ".project-agent.json")

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ProjectConfigError(ValueError):
    """Raised when a project config file exists but cannot be used."""


@dataclass(frozen=True)
class LoadedProjectConfig:
    path: Path
    config: ProjectConfig


def utc_now() -> str:
    """Return the current UTC timestamp in ISO-8601 format.

    Returns:
        UTC timestamp like ``2026-01-18T12:34:56Z``.
    """
    now = dt.datetime.now(tz=dt.timezone.utc).replace(microsecond=0)
    return now.isoformat().replace("+00:00", "Z")


def env_flag(value: str | None) -> bool:
    """Interpret a boolean-ish environment value.

    Example:
        >>> env_flag("1"), env_flag(" TRUE "), env_flag("0"), env_flag(None)
        (True, True, False, False)
    """
    if value is None:
        return False
    return value.strip().lower() in _TRUE_VALUES


def env_text(environ: Mapping[str, str], name: str) -> str | None:
    raw = environ.get(name)
    if raw is None:
        return None
    return raw.strip() or None


def bootstrap_flags(environ: Mapping[str, str]) -> BootstrapFlags:
    """Build bootstrapper flags from a process environment."""
    return BootstrapFlags(
        disabled=env_flag(environ.get(DISABLE_WORKTREE_ENV)),
        bootstrapped=env_flag(environ.get(BOOTSTRAP_GUARD_ENV)),
        unscoped_seed=env_text(environ, UNSCOPED_KEY_ENV),
    )


def agent_launch_disabled(environ: Mapping[str, str]) -> bool:
    return env_flag(environ.get(NO_AGENT_ENV))


def resolve_artifacts_root(
    cli_value: str | None, environ: Mapping[str, str], cwd: Path
) -> Path:
    """Resolve the artifacts root directory.

    Precedence: the ``--artifacts-dir`` option, then
    ``PROJECT_AGENT_ARTIFACTS_DIR``, then ``<cwd>/.project-agent-artifacts``.
    """
    cli_text = cli_value.strip() if isinstance(cli_value, str) else ""
    if cli_text:
        return Path(cli_text).expanduser()
    env_value = env_text(environ, ARTIFACTS_DIR_ENV)
    if env_value:
        return Path(env_value).expanduser()
    return cwd / ARTIFACTS_DIRNAME


def parse_project_config(raw: str, path: Path) -> ProjectConfig:
    """Parse project config text, naming ``path`` in every error."""
    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise ProjectConfigError(
            f"invalid project config at {path}: JSON parse failed: {exc}"
        ) from exc
    if not isinstance(payload, dict):
        raise ProjectConfigError(f"invalid project config at {path}: expected a JSON object")
    try:
        return ProjectConfig.model_validate(payload)
    except ValidationError as exc:
        raise ProjectConfigError(f"invalid project config at {path}: {exc}") from exc


def load_project_config(root: Path) -> LoadedProjectConfig | None:
    """Load the first project config file found in ``root``.

    Returns:
        The parsed config and its path, or ``None`` when no file exists.

    Example:
        >>> from pathlib import Path
        >>> load_project_config(Path("/nonexistent")) is None
        True
    """
    for filename in PROJECT_CONFIG_FILENAMES:
        path = root / filename
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            continue
        try:
            raw = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProjectConfigError(
                f"invalid project config at {path}: not UTF-8 text: {exc}"
            ) from exc
        return LoadedProjectConfig(path=path, config=parse_project_config(raw, path))
    return None


def sanitize_project_name(project: str) -> str:
    return branching.sanitize_slug(project, fallback="project")


def resolve_project_namespace(repo_root: Path, config: ProjectConfig | None) -> str:
    """Return the artifacts namespace for a repository.

    Configured projects use their sanitized name; otherwise the repo
    directory name plus a short hash of its path keeps same-named
    checkouts apart.

    Example:
        >>> resolve_project_namespace(Path("/src/app"), ProjectConfig(project="My App"))
        'my-app'
    """
    if config is not None and config.project:
        return sanitize_project_name(config.project)
    repo_name = repo_root.name or "repo"
    digest = hashlib.sha1(str(repo_root).encode("utf-8")).hexdigest()[:10]
    return f"{repo_name}-{digest}"
