"""Pydantic models for project-agent configuration data."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class ProjectConfig(BaseModel):
    """Per-repository project settings read from ``project-agent.json``.

    Attributes:
        project: Issue-tracker project name used to scope queries and to
            namespace run artifacts.

    Example:
        >>> ProjectConfig(project="  Bridge  ").project
        'Bridge'
    """

    model_config = ConfigDict(extra="allow")

    project: str

    @field_validator("project", mode="before")
    @classmethod
    def normalize_project(cls, value: object) -> object:
        if isinstance(value, str):
            normalized = value.strip()
            if not normalized:
                raise ValueError('"project" must be a non-empty string')
            return normalized
        return value
