"""Run artifact schema, boundary parsing, and completion gates.

The run artifact (``run.json``) is the durable record of one run. The agent
updates it while working; ``project-agent validate`` checks it before a run
may be reported complete.

Two layers are kept apart:

- :func:`parse_run_artifact` checks shape and types of untrusted JSON and
  returns every schema error with its field path;
- :func:`validate_run_artifact` checks the evidence a claimed ``status``
  requires and returns every violation.

Example:
    >>> artifact = create_initial_run_artifact("AG-1", "2026-02-28T00:00:00Z")
    >>> artifact.status, validate_run_artifact(artifact)
    ('in_progress', [])
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from . import config

RUN_ARTIFACT_VERSION = 1

RUN_STATUS_VALUES = ("in_progress", "done", "blocked")
RunStatus = Literal["in_progress", "done", "blocked"]


class _ArtifactSection(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class LinearEvidence(_ArtifactSection):
    """Issue-tracker interactions recorded by the agent."""

    plan_comment_posted: StrictBool = Field(alias="planCommentPosted")
    progress_comment_posted: StrictBool = Field(alias="progressCommentPosted")
    done_comment_posted: StrictBool = Field(alias="doneCommentPosted")
    state_transitioned_to: StrictStr | None = Field(default=None, alias="stateTransitionedTo")


class ChangeSummary(_ArtifactSection):
    files_touched: list[StrictStr] = Field(alias="filesTouched")
    commit_shas: list[StrictStr] = Field(alias="commitShas")
    pull_request_url: StrictStr = Field(alias="pullRequestUrl")


class TestCommandResult(_ArtifactSection):
    command: StrictStr
    exit_code: StrictInt = Field(alias="exitCode")
    output: StrictStr | None = None


class TestEvidence(_ArtifactSection):
    commands: list[StrictStr]
    results: list[TestCommandResult]


class RunArtifact(_ArtifactSection):
    """Persisted progress and completion evidence for one run.

    Attributes:
        version: Schema version; only ``RUN_ARTIFACT_VERSION`` parses.
        issue_id: Bound issue; may stay empty while ``in_progress``.
        started_at: Creation timestamp.
        ended_at: Set when the run leaves ``in_progress``.
        status: ``in_progress``, ``done`` or ``blocked``.
    """

    version: StrictInt
    issue_id: StrictStr = Field(alias="issueId")
    started_at: StrictStr = Field(alias="startedAt")
    ended_at: StrictStr | None = Field(default=None, alias="endedAt")
    status: RunStatus
    linear: LinearEvidence
    changes: ChangeSummary
    tests: TestEvidence
    verification: list[StrictStr]
    summary: StrictStr
    blockers: list[StrictStr]

    @field_validator("version", mode="after")
    @classmethod
    def _supported_version(cls, value: int) -> int:
        if value != RUN_ARTIFACT_VERSION:
            raise ValueError(
                f"unsupported run artifact version {value}; expected {RUN_ARTIFACT_VERSION}"
            )
        return value

    @property
    def is_terminal(self) -> bool:
        """Return True once the run is closed (terminal status and ``endedAt``)."""
        return self.status != "in_progress" and bool((self.ended_at or "").strip())


@dataclass(frozen=True)
class RunArtifactParseResult:
    """Outcome of boundary parsing: an artifact or every schema error."""

    artifact: RunArtifact | None
    errors: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.artifact is not None


def create_initial_run_artifact(issue_id: str, now_iso: str | None = None) -> RunArtifact:
    """Return the ``in_progress`` artifact written at run start.

    Example:
        >>> create_initial_run_artifact("", "2026-02-28T00:00:00Z").issue_id
        ''
    """
    return RunArtifact(
        version=RUN_ARTIFACT_VERSION,
        issue_id=issue_id,
        started_at=now_iso if now_iso is not None else config.utc_now(),
        status="in_progress",
        linear=LinearEvidence(
            plan_comment_posted=False,
            progress_comment_posted=False,
            done_comment_posted=False,
        ),
        changes=ChangeSummary(files_touched=[], commit_shas=[], pull_request_url=""),
        tests=TestEvidence(commands=[], results=[]),
        verification=[],
        summary="",
        blockers=[],
    )


def _format_location(loc: tuple[int | str, ...]) -> str:
    text = ""
    for item in loc:
        if isinstance(item, int):
            text += f"[{item}]"
        elif text:
            text += f".{item}"
        else:
            text = str(item)
    return text or "<root>"


def _format_error(error: dict) -> str:
    message = error.get("msg", "invalid value")
    if error.get("type") == "value_error":
        ctx = error.get("ctx") or {}
        if "error" in ctx:
            message = str(ctx["error"])
    return f"{_format_location(tuple(error.get('loc', ())))}: {message}"


def parse_run_artifact(payload: object) -> RunArtifactParseResult:
    """Validate decoded JSON against the run artifact schema.

    Never raises for bad input: every schema violation is returned, each
    prefixed with its field path.

    Example:
        >>> result = parse_run_artifact({"version": 2})
        >>> result.artifact is None
        True
        >>> result.errors[0]
        'version: unsupported run artifact version 2; expected 1'
    """
    try:
        artifact = RunArtifact.model_validate(payload)
    except ValidationError as exc:
        return RunArtifactParseResult(
            artifact=None,
            errors=tuple(_format_error(error) for error in exc.errors()),
        )
    return RunArtifactParseResult(artifact=artifact)


def parse_run_artifact_json(raw: str) -> RunArtifactParseResult:
    """Decode JSON text and validate it against the run artifact schema.

    Undecodable input, including nesting too deep to decode, yields a single
    ``<root>`` error instead of raising.
    """
    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        return RunArtifactParseResult(artifact=None, errors=(f"<root>: invalid JSON: {exc}",))
    return parse_run_artifact(payload)


def _blank(value: str | None) -> bool:
    return not (value or "").strip()


def validate_run_artifact(artifact: RunArtifact) -> list[str]:
    """Return every completion-gate violation for the artifact's status.

    ``in_progress`` has no gates beyond the version and ``startedAt``;
    ``done`` and ``blocked`` require their evidence. An empty list means
    the claimed status is consistent with the record.
    """
    errors: list[str] = []

    if artifact.version != RUN_ARTIFACT_VERSION:
        errors.append(f"version must equal {RUN_ARTIFACT_VERSION}")
    if _blank(artifact.started_at):
        errors.append("startedAt is required")

    if artifact.status == "done":
        if _blank(artifact.issue_id):
            errors.append("status=done requires issueId")
        if not artifact.linear.plan_comment_posted:
            errors.append("status=done requires linear.planCommentPosted=true")
        if not artifact.linear.progress_comment_posted:
            errors.append("status=done requires linear.progressCommentPosted=true")
        if not artifact.linear.done_comment_posted:
            errors.append("status=done requires linear.doneCommentPosted=true")
        if _blank(artifact.summary):
            errors.append("status=done requires summary")
        if not artifact.tests.results:
            errors.append("status=done requires at least one tests.results entry")
        if any(result.exit_code != 0 for result in artifact.tests.results):
            errors.append("status=done requires all tests.results exitCode values to be 0")
        if not artifact.verification:
            errors.append("status=done requires at least one manual verification step")
        if _blank(artifact.changes.pull_request_url):
            errors.append("status=done requires changes.pullRequestUrl")
        if _blank(artifact.ended_at):
            errors.append("status=done requires endedAt")

    if artifact.status == "blocked":
        if not artifact.blockers:
            errors.append("status=blocked requires at least one blocker")
        if _blank(artifact.ended_at):
            errors.append("status=blocked requires endedAt")

    return errors


def run_artifact_payload(artifact: RunArtifact) -> dict:
    """Return the JSON-ready payload; unset optional fields are omitted."""
    return artifact.model_dump(mode="json", by_alias=True, exclude_none=True)


def run_artifact_json(artifact: RunArtifact) -> str:
    """Serialize an artifact as pretty-printed, newline-terminated JSON."""
    return json.dumps(run_artifact_payload(artifact), indent=2, ensure_ascii=False) + "\n"


def write_initial_run_artifact(path: Path, artifact: RunArtifact) -> bool:
    """Write ``artifact`` to ``path`` unless a file is already there.

    Existing artifacts belong to a resumed run and are never overwritten. A
    write that fails part way removes the file it created.

    Returns:
        ``True`` when the file was created.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fh = path.open("x", encoding="utf-8")
    except FileExistsError:
        return False
    try:
        with fh:
            fh.write(run_artifact_json(artifact))
    except BaseException:
        path.unlink(missing_ok=True)
        raise
    return True


def load_run_artifact(path: Path) -> RunArtifactParseResult:
    """Read and parse a persisted artifact; read failures raise ``OSError``.

    Content that is not UTF-8 is reported as a ``<root>`` schema error.
    """
    data = path.read_bytes()
    try:
        raw = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        return RunArtifactParseResult(artifact=None, errors=(f"<root>: invalid UTF-8: {exc}",))
    return parse_run_artifact_json(raw)
