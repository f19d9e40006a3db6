"""Runners that shell out to the handler scripts.

These are the only places that know about the external commands. The
scheduler and executor only see the ``runner(project, payload, timeout)``
contract and can be driven by fakes in tests.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any

from dochub.logging import get_logger
from dochub.models import ExecutionResult, ProjectConfig

logger = get_logger(__name__)

GENERATE_DOCS_SCRIPT = "generate-docs.sh"
RESTART_SERVICE_SCRIPT = "restart-service.sh"

# Bytes kept per stream; the executor truncates further for logs and responses.
OUTPUT_BUFFER_LIMIT = 64 * 1024


async def _read_stream(stream: asyncio.StreamReader, buffer: bytearray, limit: int) -> None:
    """Read a pipe to EOF, keeping the first ``limit`` bytes."""
    while True:
        chunk = await stream.read(4096)
        if not chunk:
            return
        room = limit - len(buffer)
        if room > 0:
            buffer.extend(chunk[:room])


async def run_process(
    argv: list[str],
    *,
    env: dict[str, str] | None = None,
    cwd: str | None = None,
    timeout: float | None = None,
    output_limit: int = OUTPUT_BUFFER_LIMIT,
) -> ExecutionResult:
    """
    Spawn a process, capture its output, and kill it on timeout.

    Both pipes are read as the process writes, so whatever it printed
    before being killed is still returned.

    Args:
        argv: Program and arguments.
        env: Full environment for the child. None = inherit.
        cwd: Working directory. None = inherit.
        timeout: Seconds before the process is killed. None = no limit.
        output_limit: Bytes kept per stream.

    Returns:
        ExecutionResult with exit code and decoded output.
    """
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
        cwd=cwd,
    )

    stdout = bytearray()
    stderr = bytearray()

    async def communicate() -> int:
        await asyncio.gather(
            _read_stream(process.stdout, stdout, output_limit),
            _read_stream(process.stderr, stderr, output_limit),
        )
        return await process.wait()

    try:
        exit_code = await asyncio.wait_for(communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        logger.warning("Process killed after timeout", argv=argv[:2], timeout=timeout)
        return ExecutionResult(
            exit_code=None,
            stdout=stdout.decode("utf-8", "replace"),
            stderr=stderr.decode("utf-8", "replace"),
            timed_out=True,
        )
    except asyncio.CancelledError:
        process.kill()
        await process.wait()
        raise

    return ExecutionResult(
        exit_code=exit_code,
        stdout=stdout.decode("utf-8", "replace"),
        stderr=stderr.decode("utf-8", "replace"),
    )


class ScriptRunner:
    """
    Runs ``<interpreter> <script> <project>`` for a documentation job.

    The script gets the project and trigger details as environment
    variables on top of the hub's own environment.

    Example:
        runner = ScriptRunner(Path("handlers/generate-docs.sh"), pr_branch_prefix="docs/auto")
        executor = JobExecutor(runner, timeout=1800)
    """

    def __init__(
        self,
        script: str | Path,
        *,
        interpreter: str = "bash",
        pr_branch_prefix: str = "",
    ) -> None:
        self.script = Path(script)
        self.interpreter = interpreter
        self.pr_branch_prefix = pr_branch_prefix

    def build_env(self, project: ProjectConfig, payload: dict[str, Any]) -> dict[str, str]:
        env = dict(os.environ)
        env.update(
            {
                "PROJECT_NAME": project.script_name,
                "WORKSPACE_PATH": project.workspace_path,
                "COMMIT_SHA": str(payload.get("after") or ""),
                "TRIGGER_EVENT": str(payload.get("ref") or ""),
                "PR_BRANCH_PREFIX": self.pr_branch_prefix,
            }
        )
        return env

    async def __call__(
        self, project: ProjectConfig, payload: dict[str, Any], timeout: float
    ) -> ExecutionResult:
        argv = [self.interpreter, str(self.script), project.script_name]
        return await run_process(argv, env=self.build_env(project, payload), timeout=timeout)


class ServiceRestarter:
    """Runs the restart handler script for a project after a merge."""

    def __init__(
        self,
        script: str | Path,
        *,
        interpreter: str = "bash",
        timeout: float | None = 300,
    ) -> None:
        self.script = Path(script)
        self.interpreter = interpreter
        self.timeout = timeout

    def build_env(self, project: ProjectConfig) -> dict[str, str]:
        env = dict(os.environ)
        env.update(
            {
                "PROJECT_NAME": project.script_name,
                "SERVICE_TYPE": project.service_type,
                "SERVICE_NAME": project.service_name or project.script_name,
                "WORKSPACE_PATH": project.workspace_path,
            }
        )
        # Unset means the script picks its own default
        if project.restart_command:
            env["RESTART_COMMAND"] = project.restart_command
        return env

    async def __call__(self, project: ProjectConfig) -> ExecutionResult:
        argv = [self.interpreter, str(self.script), project.script_name]
        return await run_process(argv, env=self.build_env(project), timeout=self.timeout)
