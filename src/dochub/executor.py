"""Job executor: runs one job through an external runner and classifies it."""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Union

from dochub.logging import get_logger
from dochub.models import ExecutionResult, Job, JobOutcome, ProjectConfig

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30 * 60  # seconds
DEFAULT_OUTPUT_CAP = 500  # characters

# Extra time a runner gets to kill its own process before we give up on it.
KILL_GRACE = 5.0

RunnerFunc = Callable[
    [ProjectConfig, dict[str, Any], float],
    Union[ExecutionResult, Awaitable[ExecutionResult]],
]


def truncate(text: str | bytes | None, cap: int) -> str:
    """Cap captured output to ``cap`` characters."""
    if not text:
        return ""
    if isinstance(text, bytes):
        text = text.decode("utf-8", "replace")
    return text[:cap]


class JobExecutor:
    """
    Runs jobs by calling a runner and turning its result into a JobOutcome.

    The runner is any callable ``runner(project, payload, timeout)`` that
    returns an ExecutionResult, sync or async. Sync runners are called in
    a worker thread so they never block the event loop. The executor never
    retries: a failed job is reported once.

    Example:
        executor = JobExecutor(ScriptRunner(script), timeout=1800)
        outcome = await executor.run(job)
    """

    def __init__(
        self,
        runner: RunnerFunc,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        output_cap: int = DEFAULT_OUTPUT_CAP,
    ) -> None:
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.runner = runner
        self.timeout = timeout
        self.output_cap = output_cap

    async def run(self, job: Job) -> JobOutcome:
        """Execute a job. Never raises for runner failures."""
        project = job.project.identifier
        start_time = time.monotonic()

        logger.info("Processing documentation job", project=project, commit=job.commit, ref=job.ref)

        try:
            result = await asyncio.wait_for(
                self._call_runner(job),
                timeout=self.timeout + KILL_GRACE,
            )
        except asyncio.TimeoutError:
            result = ExecutionResult(exit_code=None, timed_out=True)
        except Exception as e:
            outcome = JobOutcome(
                success=False,
                duration_ms=self._elapsed_ms(start_time),
                error=str(e),
            )
            logger.error(
                "Documentation generation failed",
                project=project,
                duration=outcome.duration_ms,
                error=outcome.error,
            )
            return outcome

        outcome = self._classify(result, self._elapsed_ms(start_time))

        if outcome.success:
            if outcome.stderr:
                logger.warning(
                    "Script produced stderr output (may be harmless warnings)",
                    project=project,
                    stderr=outcome.stderr,
                )
            logger.info(
                "Documentation generation completed",
                project=project,
                duration=outcome.duration_ms,
                stdout=outcome.stdout,
            )
        else:
            logger.error(
                "Documentation generation failed",
                project=project,
                duration=outcome.duration_ms,
                exitCode="TIMEOUT" if outcome.timed_out else outcome.exit_code,
                error=outcome.error,
                stdout=outcome.stdout,
                stderr=outcome.stderr,
            )

        return outcome

    async def _call_runner(self, job: Job) -> ExecutionResult:
        if inspect.iscoroutinefunction(self.runner) or inspect.iscoroutinefunction(
            getattr(self.runner, "__call__", None)
        ):
            return await self.runner(job.project, job.payload, self.timeout)
        return await asyncio.to_thread(self.runner, job.project, job.payload, self.timeout)

    def _classify(self, result: ExecutionResult, duration_ms: int) -> JobOutcome:
        stdout = truncate(result.stdout, self.output_cap)
        stderr = truncate(result.stderr, self.output_cap)

        if result.timed_out:
            return JobOutcome(
                success=False,
                duration_ms=duration_ms,
                timed_out=True,
                stdout=stdout,
                stderr=stderr,
                error=f"Timed out after {self.timeout:g}s",
            )

        if result.exit_code == 0:
            return JobOutcome(
                success=True,
                duration_ms=duration_ms,
                exit_code=0,
                stdout=stdout,
                stderr=stderr,
            )

        return JobOutcome(
            success=False,
            duration_ms=duration_ms,
            exit_code=result.exit_code,
            stdout=stdout,
            stderr=stderr,
            error=f"Exit code: {result.exit_code}",
        )

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return max(0, int((time.monotonic() - start_time) * 1000))
