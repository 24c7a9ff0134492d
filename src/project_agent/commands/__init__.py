"""Command implementations exposed by the project-agent CLI."""

from .run import start_run
from .validate import validate_run

__all__ = [
    "start_run",
    "validate_run",
]
