"""Implementation for the ``project-agent validate`` command."""

from __future__ import annotations

from pathlib import Path

from .. import artifacts, log
from ..io import die, say


def validate_run(args: object) -> None:
    """Validate a run artifact and exit non-zero on any problem."""
    raw_path = str(getattr(args, "path", "") or "").strip()
    if not raw_path:
        die("usage: project-agent validate <path-to-run.json>")
    path = Path(raw_path)

    try:
        parsed = artifacts.load_run_artifact(path)
    except OSError as exc:
        die(f"Failed to read artifact JSON: {exc}")

    if parsed.artifact is None:
        log.error("Run artifact schema validation failed:")
        for error in parsed.errors:
            log.error(f"- {error}")
        raise SystemExit(1)

    artifact = parsed.artifact
    log.debug(f"artifact status={artifact.status} issueId={artifact.issue_id or '<unbound>'}")
    errors = artifacts.validate_run_artifact(artifact)
    if errors:
        log.error("Run artifact validation failed:")
        for error in errors:
            log.error(f"- {error}")
        raise SystemExit(1)

    say("Run artifact validation passed.")
