"""Run-context files handed to the agent.

Each run directory holds ``run.json``, ``codex-instructions.md`` and a
``skills/`` folder with the Linear and GitHub workflow rules the agent must
follow. Everything here is plain text rendering.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .models import ProjectConfig

RUN_ARTIFACT_FILENAME = "run.json"
INSTRUCTIONS_FILENAME = "codex-instructions.md"
SKILLS_DIRNAME = "skills"
SKILLS_MANIFEST_FILENAME = "skills.json"
SKILLS_MANIFEST_VERSION = 1

_ISSUE_STEPS = (
    "Triage: ensure the issue exists and acceptance criteria are explicit.",
    "Plan: post a plan comment to Linear before editing code.",
    "Implement: make focused code changes against acceptance criteria.",
    "Verify: run tests and collect concrete evidence.",
    "Record: update run.json with test commands, exit codes, and manual verification steps.",
    "PR lifecycle: open or update a PR for the issue branch and record the PR URL "
    "in run.json changes.pullRequestUrl.",
    "Document: post progress + done comments with summary, tests, verification, "
    "and PR details.",
    "Transition: mark issue done only after evidence is posted.",
)

_UNSCOPED_STEPS = (
    "Wait gate: if no concrete user request exists yet, do not start intake triage.",
    "Intake triage: once a concrete user request exists, inspect it and search for an "
    "existing relevant issue in Linear.",
    "Bind before coding: once implementation scope is clear, reuse an existing issue when "
    "possible; create one only if truly needed, then set run.json issueId before edits.",
    "Plan: post a plan comment to that issue before editing code.",
    *_ISSUE_STEPS[2:],
)

INSTRUCTIONS_TEMPLATE = """# Codex Run Contract: {{ title }}

Repository root: {{ repo_root }}

Linear is the source of truth. Use Linear MCP tools for all issue actions.
{{ scope }}

Required sequence:
{{ steps }}

Run-local skills:
- Linear workflow: {{ linear_skill }}
- GitHub workflow: {{ github_skill }}
- Skill manifest (names + metadata): {{ skills_manifest }}

Artifact requirements:
- Keep run.json in this directory updated during the run: {{ run_path }}
- If run started without issueId, do not create placeholder issues; populate issueId only \
when implementation work is actually being started.
- Set linear.planCommentPosted/progressCommentPosted/doneCommentPosted accurately.
- Record test commands and results with exit codes.
- For completed issue runs, set changes.pullRequestUrl to the opened/updated PR URL.
- Do not set status=done unless tests are green and verification steps are present.
- For status=blocked, list every blocker and set endedAt.

Finish gate:
- Run: project-agent validate {{ run_path }}
- A run is complete only when validation passes.
"""

LINEAR_SKILL_TEMPLATE = """---
name: linear-workflow
description: Run-scoped Linear workflow rules for {{ title }}.
---

# Run Skill: Linear Workflow

- Treat the Linear issue as the source of truth for scope and acceptance criteria.
- {{ scope }}
- Post a plan comment before editing code; set linear.planCommentPosted=true.
- Post a progress comment once implementation is underway; set \
linear.progressCommentPosted=true.
- Post a done comment with summary, tests, verification and PR link; set \
linear.doneCommentPosted=true.
- Move the issue to its done state only after the done comment is posted and record the \
state name in linear.stateTransitionedTo.
"""

GITHUB_SKILL_TEMPLATE = """---
name: github-pr-workflow
description: Run-scoped GitHub workflow rules for {{ title }}.
---

# Run Skill: GitHub PR Workflow

- Work on the run branch checked out in {{ repo_root }}.
- Commit focused changes and record every commit SHA in run.json changes.commitShas.
- Record touched files in run.json changes.filesTouched.
- Open a PR for the branch, or update the existing one, and record its URL in \
run.json changes.pullRequestUrl.
- Reference the Linear issue in the PR description.
"""

_SKILL_DESCRIPTIONS = {
    "linear-workflow": "Run-scoped Linear workflow rules",
    "github-pr-workflow": "Run-scoped GitHub workflow rules",
}


@dataclass(frozen=True)
class RunContextPaths:
    run_dir: Path
    run_artifact: Path
    instructions: Path
    linear_skill: Path
    github_skill: Path
    skills_manifest: Path


def render_template(template: str, variables: Mapping[str, str]) -> str:
    """Render a template using ``{{ key }}`` substitution.

    Example:
        >>> render_template("hello {{ name }}", {"name": "run"})
        'hello run'
    """
    rendered = template
    for key, value in variables.items():
        rendered = rendered.replace(f"{{{{ {key} }}}}", value)
    return rendered


def run_key(issue_id: str, unscoped_seed: str) -> str:
    """Return the artifact directory name for a run.

    Example:
        >>> run_key("", "2026-02-28t00-00-00z-p7")
        'UNSCOPED-2026-02-28t00-00-00z-p7'
    """
    trimmed = issue_id.strip()
    if trimmed:
        return trimmed
    return f"UNSCOPED-{unscoped_seed}"


def run_context_paths(run_dir: Path) -> RunContextPaths:
    skills_dir = run_dir / SKILLS_DIRNAME
    return RunContextPaths(
        run_dir=run_dir,
        run_artifact=run_dir / RUN_ARTIFACT_FILENAME,
        instructions=run_dir / INSTRUCTIONS_FILENAME,
        linear_skill=skills_dir / "linear.md",
        github_skill=skills_dir / "github.md",
        skills_manifest=skills_dir / SKILLS_MANIFEST_FILENAME,
    )


def _scope_line(project: ProjectConfig | None) -> str:
    if project is None:
        return (
            "Default Linear scope: current team/workspace context (no project configured). "
            "Keep queries scoped to the relevant issue context unless explicitly asked for "
            "team/workspace-wide status."
        )
    return (
        f"Default Linear project scope: {project.project}. Unless explicitly asked for "
        f'team/workspace-wide status, query Linear with project="{project.project}".'
    )


def _numbered(steps: tuple[str, ...]) -> str:
    return "\n".join(f"{index}. {step}" for index, step in enumerate(steps, start=1))


def _variables(
    issue_id: str, repo_root: Path, project: ProjectConfig | None, paths: RunContextPaths
) -> dict[str, str]:
    trimmed = issue_id.strip()
    return {
        "title": trimmed or "No issue provided",
        "repo_root": str(repo_root),
        "scope": _scope_line(project),
        "steps": _numbered(_ISSUE_STEPS if trimmed else _UNSCOPED_STEPS),
        "linear_skill": str(paths.linear_skill),
        "github_skill": str(paths.github_skill),
        "skills_manifest": str(paths.skills_manifest),
        "run_path": str(paths.run_artifact),
    }


def render_instructions(
    issue_id: str, repo_root: Path, project: ProjectConfig | None, paths: RunContextPaths
) -> str:
    return render_template(
        INSTRUCTIONS_TEMPLATE, _variables(issue_id, repo_root, project, paths)
    )


def skills_manifest(paths: RunContextPaths) -> dict:
    return {
        "version": SKILLS_MANIFEST_VERSION,
        "skills": [
            {
                "name": "linear-workflow",
                "description": _SKILL_DESCRIPTIONS["linear-workflow"],
                "path": str(paths.linear_skill),
            },
            {
                "name": "github-pr-workflow",
                "description": _SKILL_DESCRIPTIONS["github-pr-workflow"],
                "path": str(paths.github_skill),
            },
        ],
    }


def write_run_context(
    issue_id: str, repo_root: Path, project: ProjectConfig | None, paths: RunContextPaths
) -> None:
    """Write the instructions file and run-local skills.

    These files are regenerated on every run; ``run.json`` is not touched.
    """
    variables = _variables(issue_id, repo_root, project, paths)
    paths.linear_skill.parent.mkdir(parents=True, exist_ok=True)
    paths.linear_skill.write_text(
        render_template(LINEAR_SKILL_TEMPLATE, variables), encoding="utf-8"
    )
    paths.github_skill.write_text(
        render_template(GITHUB_SKILL_TEMPLATE, variables), encoding="utf-8"
    )
    paths.skills_manifest.write_text(
        json.dumps(skills_manifest(paths), indent=2) + "\n", encoding="utf-8"
    )
    paths.instructions.write_text(
        render_instructions(issue_id, repo_root, project, paths), encoding="utf-8"
    )


def agent_prompt(issue_id: str, project: ProjectConfig | None, paths: RunContextPaths) -> str:
    """Return the initial prompt passed to the agent."""
    lines = [f"Run context prepared. Read and follow: {paths.instructions}"]
    if project is not None:
        lines.append(
            f'Default Linear project scope is "{project.project}". Query this project unless '
            "user explicitly asks for team/workspace-wide scope."
        )
    else:
        lines.append(
            "Default Linear scope is the relevant issue context unless user explicitly asks "
            "for team/workspace-wide scope."
        )
    trimmed = issue_id.strip()
    if trimmed:
        lines.append(f"Issue ID for this run: {trimmed}")
    else:
        lines.append(
            "No issue ID provided yet; wait for the first concrete user request before intake "
            "triage. Do not create placeholder issues, and only bind run.json when "
            "implementation scope is confirmed."
        )
    return "\n".join(lines)
