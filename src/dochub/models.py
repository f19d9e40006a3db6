"""Core data models for dochub."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class JobState(str, Enum):
    """Possible states for a job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProjectConfig:
    """Execution configuration for one project, as loaded from the registry."""

    identifier: str
    repo_name: str = ""
    enabled: bool = True
    workspace_path: str = ""
    default_branch: str = "main"
    service_type: str = "pm2"
    service_name: str | None = None
    restart_command: str | None = None

    @property
    def script_name(self) -> str:
        """Name handed to the handler scripts: the repo name, else the registry key."""
        return self.repo_name or self.identifier


@dataclass
class Job:
    """A request to regenerate documentation for a project."""

    id: str
    project: ProjectConfig
    payload: dict[str, Any] = field(default_factory=dict)
    state: JobState = JobState.PENDING
    enqueued_at: float = 0.0
    started_at: float | None = None
    completed_at: float | None = None
    outcome: JobOutcome | None = None

    @property
    def commit(self) -> str:
        """Short commit id of the triggering push, or empty string."""
        return str(self.payload.get("after") or "")[:7]

    @property
    def ref(self) -> str:
        return str(self.payload.get("ref") or "")


@dataclass
class ExecutionResult:
    """What an external job runner reports back."""

    exit_code: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False


@dataclass
class JobOutcome:
    """Classified result of running a job."""

    success: bool
    duration_ms: int
    exit_code: int | None = None
    timed_out: bool = False
    stdout: str = ""  # Truncated
    stderr: str = ""  # Truncated
    error: str | None = None
