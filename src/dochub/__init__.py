"""dochub - Webhook-triggered documentation job orchestrator."""

from dochub.executor import JobExecutor
from dochub.models import ExecutionResult, Job, JobOutcome, JobState, ProjectConfig
from dochub.registry import Registry, load_projects
from dochub.scheduler import Scheduler

__version__ = "0.3.0"
__all__ = [
    "Scheduler",
    "JobExecutor",
    "Job",
    "JobState",
    "JobOutcome",
    "ExecutionResult",
    "ProjectConfig",
    "Registry",
    "load_projects",
]
