"""Implementation for the ``project-agent run`` command.

Moves the run into its issue worktree (relaunching there when needed),
prepares the run directory, and hands control to the agent.
"""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Mapping

from .. import agent, artifacts, config, instructions, log, relaunch, worktree
from ..io import die, say


def _issue_id(args: object) -> str:
    value = getattr(args, "issue_id", None)
    return value.strip() if isinstance(value, str) else ""


def _bootstrap(
    cwd: Path, issue_id: str, flags: worktree.BootstrapFlags
) -> worktree.WorktreeBootstrapResult:
    try:
        return worktree.ensure_workspace(cwd, issue_id, flags=flags)
    except worktree.WorktreeBootstrapError as exc:
        die(str(exc))


def _check_resumed_artifact(path: Path) -> None:
    try:
        parsed = artifacts.load_run_artifact(path)
    except OSError as exc:
        log.warning(f"Could not read existing run artifact {path}: {exc}")
        return
    if parsed.artifact is None:
        log.warning(f"Existing run artifact {path} does not match the schema; left as is.")
    elif parsed.artifact.is_terminal:
        log.warning(f"Existing run artifact {path} is already {parsed.artifact.status}.")


def start_run(args: object, *, environ: Mapping[str, str] | None = None) -> None:
    """Prepare a run context and launch the agent."""
    env = os.environ if environ is None else environ
    issue_id = _issue_id(args)
    flags = config.bootstrap_flags(env)
    if not issue_id:
        # Parent and relaunched child must agree on the unscoped run key.
        flags = dataclasses.replace(flags, unscoped_seed=worktree.resolve_unscoped_seed(flags))

    cwd = Path.cwd()
    result = _bootstrap(cwd, issue_id, flags)
    if isinstance(result, worktree.BootstrapRelaunch):
        verb = "Created" if result.created else "Reusing"
        log.info(f"{verb} worktree {result.path} ({result.branch}).")
        try:
            code = relaunch.relaunch_in_worktree(
                result, unscoped_seed=flags.unscoped_seed, environ=env
            )
        except relaunch.RelaunchError as exc:
            die(str(exc))
        raise SystemExit(code)
    if isinstance(result, worktree.BootstrapAlreadyInTarget):
        log.info(f"Using managed worktree {result.path} ({result.branch}).")
    else:
        log.debug(f"worktree bootstrap skipped: {result.reason}")

    effective_root = Path.cwd()
    try:
        loaded = config.load_project_config(effective_root)
    except config.ProjectConfigError as exc:
        die(str(exc))
    project = loaded.config if loaded is not None else None

    artifacts_root = config.resolve_artifacts_root(
        getattr(args, "artifacts_dir", None), env, effective_root
    )
    namespace = config.resolve_project_namespace(effective_root, project)
    run_dir = artifacts_root / namespace / instructions.run_key(
        issue_id, flags.unscoped_seed or ""
    )
    paths = instructions.run_context_paths(run_dir)

    initial = artifacts.create_initial_run_artifact(issue_id)
    if artifacts.write_initial_run_artifact(paths.run_artifact, initial):
        log.debug(f"created run artifact {paths.run_artifact}")
    else:
        log.info(f"Resuming existing run artifact {paths.run_artifact}.")
        _check_resumed_artifact(paths.run_artifact)
    instructions.write_run_context(issue_id, effective_root, project, paths)

    say(f"Prepared run context for {issue_id or 'unscoped intake'}.")
    say(f"- Artifact: {paths.run_artifact}")
    say(f"- Instructions: {paths.instructions}")
    if loaded is not None:
        say(f"- Project config: {loaded.path}")

    if getattr(args, "no_agent", False) or config.agent_launch_disabled(env):
        say(
            "Next: open Codex for this repo and follow codex-instructions.md in the "
            "generated artifact directory."
        )
        return

    log.info("Launching Codex for this repository...")
    prompt = instructions.agent_prompt(issue_id, project, paths)
    try:
        code = agent.launch_agent(prompt, cwd=effective_root)
    except agent.AgentLaunchError as exc:
        log.error(str(exc))
        die(f"Run Codex manually from {effective_root} and follow {paths.instructions}.")
    if code != 0:
        raise SystemExit(code)
