"""
FastAPI application factory.

``create_app()`` loads the registry, builds the scheduler and wires
routers, error handlers and the lifespan into a single ``FastAPI``
instance. The scheduler is owned by the app (``app.state.scheduler``),
so independent apps never share queue state.
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dochub import __version__
from dochub.errors import HubError
from dochub.executor import JobExecutor, RunnerFunc
from dochub.logging import get_logger
from dochub.models import ExecutionResult, ProjectConfig
from dochub.registry import Registry, load_projects
from dochub.routes import router
from dochub.runners import GENERATE_DOCS_SCRIPT, RESTART_SERVICE_SCRIPT, ScriptRunner, ServiceRestarter
from dochub.scheduler import Scheduler
from dochub.settings import HubSettings

logger = get_logger(__name__)

RestartFunc = Callable[[ProjectConfig], Awaitable[ExecutionResult]]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the scheduler with the server, drain it on shutdown."""
    settings: HubSettings = app.state.settings
    scheduler: Scheduler = app.state.scheduler

    scheduler.start()
    logger.info(
        "Documentation Automation Hub started",
        port=settings.port,
        projects=len(app.state.registry),
        maxConcurrentJobs=scheduler.max_concurrency,
    )

    yield

    logger.info("Shutting down gracefully")
    await scheduler.stop(timeout=settings.shutdown_timeout)


async def hub_error_handler(request: Request, exc: HubError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions."""
    logger.error(
        "Unhandled error",
        exc_info=(type(exc), exc, exc.__traceback__),
        error=str(exc),
        url=str(request.url),
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    settings: HubSettings | None = None,
    *,
    registry: Registry | None = None,
    runner: RunnerFunc | None = None,
    restarter: RestartFunc | None = None,
) -> FastAPI:
    """
    Build and return a fully-configured FastAPI application.

    Args:
        settings: Override settings (useful for testing).
        registry: Pre-loaded registry. None = load from ``settings.registry_path``.
        runner: Documentation job runner. None = the generate-docs script.
        restarter: Service restart runner. None = the restart-service script.

    Raises:
        RegistryError: If the registry cannot be loaded. The app is not built.
    """
    settings = settings or HubSettings()
    if registry is None:
        registry = load_projects(settings.registry_path)

    if runner is None:
        runner = ScriptRunner(
            settings.handlers_dir / GENERATE_DOCS_SCRIPT,
            pr_branch_prefix=registry.pr_branch_prefix,
        )
    if restarter is None:
        restarter = ServiceRestarter(settings.handlers_dir / RESTART_SERVICE_SCRIPT)

    executor = JobExecutor(
        runner,
        timeout=settings.job_timeout,
        output_cap=settings.output_cap,
    )
    scheduler = Scheduler(executor, max_concurrency=settings.max_concurrent_jobs)

    app = FastAPI(
        title="Documentation Automation Hub",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.scheduler = scheduler
    app.state.restarter = restarter
    app.state.started_at = time.monotonic()

    app.add_exception_handler(HubError, hub_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(router)

    return app
