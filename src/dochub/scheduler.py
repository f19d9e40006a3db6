"""FIFO job scheduler with a concurrency cap."""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable

from dochub.executor import JobExecutor
from dochub.logging import get_logger
from dochub.models import Job, JobOutcome, JobState, ProjectConfig

logger = get_logger(__name__)


@dataclass
class QueueStats:
    """Point-in-time view of the scheduler."""

    active: int
    pending: int
    max_concurrency: int
    completed: int
    failed: int


class Scheduler:
    """
    Runs jobs in enqueue order with at most ``max_concurrency`` at a time.

    Fully in-memory. Nothing survives a restart: queued and running jobs
    are simply lost.

    All queue state is touched only from the event loop thread, so
    ``enqueue``, ``try_drain`` and the completion bookkeeping never
    interleave. Job bodies run as separate tasks, so a slow job never
    blocks new submissions.

    There is no polling loop. When a job finishes it frees its slot and
    calls ``try_drain`` again, which pulls the next job off the queue.

    Example:
        scheduler = Scheduler(JobExecutor(runner), max_concurrency=2)
        scheduler.start()
        position = scheduler.enqueue(scheduler.create_job(project, payload))
        ...
        await scheduler.stop()
    """

    def __init__(self, executor: JobExecutor, *, max_concurrency: int = 2) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")

        self.executor = executor
        self.max_concurrency = max_concurrency

        # Callbacks
        self._on_start_callback: Callable | None = None
        self._on_complete_callback: Callable | None = None
        self._on_failure_callback: Callable | None = None

        # In-memory job storage
        self._pending: deque[Job] = deque()
        self._active: dict[str, Job] = {}
        self._job_tasks: dict[str, asyncio.Task] = {}

        self._completed_count = 0
        self._failed_count = 0

        self._running = False
        self._loop: asyncio.AbstractEventLoop | None = None

    # --- Event Callbacks ---

    def on_start(self, func):
        """
        Decorator to register start callback.

        Called with (job) when a job leaves the queue and begins executing.
        """
        self._on_start_callback = func
        return func

    def on_complete(self, func):
        """
        Decorator to register completion callback.

        Called with (job, outcome) after a successful run.
        """
        self._on_complete_callback = func
        return func

    def on_failure(self, func):
        """
        Decorator to register failure callback.

        Called with (job, outcome) after a non-zero exit, timeout, or
        runner error.

        Example:
            @scheduler.on_failure
            def on_failure(job, outcome):
                alerting.send(f"Docs failed for {job.project.identifier}")
        """
        self._on_failure_callback = func
        return func

    # --- State ---

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def queue_length(self) -> int:
        return len(self._pending)

    @property
    def running(self) -> bool:
        return self._running

    def stats(self) -> QueueStats:
        return QueueStats(
            active=self.active_count,
            pending=self.queue_length,
            max_concurrency=self.max_concurrency,
            completed=self._completed_count,
            failed=self._failed_count,
        )

    # --- Lifecycle ---

    def start(self) -> None:
        """
        Start dispatching.

        Must be called from inside a running event loop. Jobs enqueued
        before start() wait in the queue and are dispatched now.
        """
        if self._running:
            return

        self._running = True
        self._loop = asyncio.get_running_loop()
        self.try_drain()

    async def stop(self, timeout: float | None = None) -> None:
        """
        Stop dispatching and wait for running jobs.

        Args:
            timeout: Max seconds to wait for running jobs. None = wait forever.

        Jobs still in the queue are not started.
        """
        self._running = False

        if self._job_tasks:
            tasks = list(self._job_tasks.values())
            if timeout is not None:
                done, pending = await asyncio.wait(tasks, timeout=timeout)
                for task in pending:
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        pass
                if pending:
                    logger.warning(
                        "Cancelled running jobs on shutdown",
                        cancelled=len(pending),
                    )
            else:
                await asyncio.gather(*tasks, return_exceptions=True)

        if self._pending:
            logger.warning(
                "Dropping queued jobs on shutdown",
                dropped=len(self._pending),
            )

        self._job_tasks.clear()
        self._loop = None

    # --- Queue Operations ---

    def create_job(self, project: ProjectConfig, payload: dict[str, Any] | None = None) -> Job:
        """Build a new pending job for a project."""
        return Job(
            id=uuid.uuid4().hex[:12],
            project=project,
            payload=payload or {},
            state=JobState.PENDING,
            enqueued_at=time.time(),
        )

    def enqueue(self, job: Job) -> int:
        """
        Append a job to the tail of the queue.

        Never blocks and never rejects: the queue is unbounded and jobs
        are not deduplicated. Dispatch happens on the next loop iteration,
        after the caller has had a chance to respond.

        Returns:
            The job's 1-based position in the queue.
        """
        self._pending.append(job)
        position = len(self._pending)

        if self._running and self._loop is not None:
            self._loop.call_soon(self.try_drain)

        return position

    def try_drain(self) -> None:
        """Start queued jobs while there is free capacity."""
        if not self._running:
            return

        while self._pending and len(self._active) < self.max_concurrency:
            job = self._pending.popleft()
            job.state = JobState.RUNNING
            job.started_at = time.time()
            self._active[job.id] = job

            task = asyncio.get_running_loop().create_task(self._execute_job(job))
            self._job_tasks[job.id] = task

    async def _execute_job(self, job: Job) -> None:
        """Run one job and release its slot."""
        self._emit(self._on_start_callback, job)

        outcome: JobOutcome | None = None
        try:
            outcome = await self.executor.run(job)
        except asyncio.CancelledError:
            outcome = JobOutcome(
                success=False,
                duration_ms=self._since(job.started_at),
                error="Cancelled",
            )
            raise
        except Exception as e:
            logger.exception(
                "Job processing error",
                project=job.project.identifier,
                job_id=job.id,
            )
            outcome = JobOutcome(
                success=False,
                duration_ms=self._since(job.started_at),
                error=str(e),
            )
        finally:
            job.outcome = outcome
            job.completed_at = time.time()
            job.state = JobState.COMPLETED if outcome and outcome.success else JobState.FAILED

            self._active.pop(job.id, None)
            self._job_tasks.pop(job.id, None)

            if job.state == JobState.COMPLETED:
                self._completed_count += 1
            else:
                self._failed_count += 1

            logger.info(
                "Job completed",
                project=job.project.identifier,
                job_id=job.id,
                success=job.state == JobState.COMPLETED,
                duration=outcome.duration_ms if outcome else None,
            )

            self.try_drain()

        if outcome.success:
            self._emit(self._on_complete_callback, job, outcome)
        else:
            self._emit(self._on_failure_callback, job, outcome)

    def _emit(self, callback: Callable | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Scheduler callback raised")

    @staticmethod
    def _since(started_at: float | None) -> int:
        if started_at is None:
            return 0
        return max(0, int((time.time() - started_at) * 1000))
