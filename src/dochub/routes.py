"""HTTP endpoints: health check and the two webhooks.

Endpoints
---------
``GET  /health``                   queue state and uptime
``POST /webhook/generate-docs``    queue a documentation job (202)
``POST /webhook/restart-service``  restart a service after a merge
"""

from __future__ import annotations

import json
import math
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from dochub.errors import AuthenticationError, ProjectNotFoundError, ValidationError
from dochub.executor import truncate
from dochub.logging import get_logger
from dochub.models import ProjectConfig
from dochub.registry import Registry
from dochub.scheduler import Scheduler
from dochub.signature import SIGNATURE_HEADER, redact, verify

logger = get_logger(__name__)

router = APIRouter()

MERGE_MARKER = "Merge pull request"
MINUTES_PER_JOB = 5


def get_scheduler(request: Request) -> Scheduler:
    return request.app.state.scheduler


def get_registry(request: Request) -> Registry:
    return request.app.state.registry


async def signed_payload(request: Request) -> dict[str, Any]:
    """
    Verify the request signature against the raw body, then decode it.

    Raises:
        AuthenticationError: Missing or invalid signature.
        ValidationError: Body is not a JSON object.
    """
    raw = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    secret = request.app.state.settings.webhook_secret
    client = request.client.host if request.client else None

    if not verify(raw, signature, secret):
        if not secret:
            logger.error("WEBHOOK_SECRET not configured")
        elif not signature:
            logger.warning("Missing signature header", path=request.url.path, ip=client)
        else:
            logger.warning(
                "Invalid webhook signature",
                path=request.url.path,
                ip=client,
                received=redact(signature),
                payloadLength=len(raw),
            )
        raise AuthenticationError("Invalid signature")

    try:
        payload = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError("Invalid JSON payload") from e

    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    return payload


def project_name(payload: dict[str, Any]) -> str:
    repository = payload.get("repository")
    name = repository.get("name") if isinstance(repository, dict) else None
    if not name or not isinstance(name, str):
        logger.warning("Missing project name in webhook payload")
        raise ValidationError("Missing repository name")
    return name


def is_merge_event(payload: dict[str, Any], project: ProjectConfig) -> bool:
    """True for a push of a merged pull request to the project's default branch."""
    if payload.get("ref") != f"refs/heads/{project.default_branch}":
        return False
    head_commit = payload.get("head_commit")
    message = head_commit.get("message") if isinstance(head_commit, dict) else None
    return isinstance(message, str) and MERGE_MARKER in message


def estimated_wait(scheduler: Scheduler) -> str:
    if scheduler.active_count < scheduler.max_concurrency:
        return "Processing soon"
    minutes = math.ceil(scheduler.queue_length / scheduler.max_concurrency) * MINUTES_PER_JOB
    return f"{minutes} minutes"


@router.get("/health")
async def health(request: Request, scheduler: Scheduler = Depends(get_scheduler)) -> dict[str, Any]:
    """Report queue state. Always 200, no side effects."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        "activeJobs": scheduler.active_count,
        "queueLength": scheduler.queue_length,
    }


@router.post("/webhook/generate-docs")
async def generate_docs(
    payload: dict[str, Any] = Depends(signed_payload),
    scheduler: Scheduler = Depends(get_scheduler),
    registry: Registry = Depends(get_registry),
) -> JSONResponse:
    """Queue a documentation job and respond without waiting for it."""
    name = project_name(payload)

    project = registry.get(name)
    if project is None:
        logger.warning("Unknown project received webhook", project=name)
        raise ProjectNotFoundError("Project not found in registry")

    if not project.enabled:
        logger.info("Webhook received for disabled project", project=name)
        return JSONResponse(status_code=200, content={"message": "Project is disabled"})

    job = scheduler.create_job(project, payload)
    position = scheduler.enqueue(job)

    logger.info(
        "Documentation job queued",
        project=name,
        job_id=job.id,
        queuePosition=position,
        activeJobs=scheduler.active_count,
    )

    return JSONResponse(
        status_code=202,
        content={
            "message": "Documentation generation queued",
            "project": name,
            "queuePosition": position,
            "estimatedWaitTime": estimated_wait(scheduler),
        },
    )


@router.post("/webhook/restart-service")
async def restart_service(
    request: Request,
    payload: dict[str, Any] = Depends(signed_payload),
    registry: Registry = Depends(get_registry),
) -> JSONResponse:
    """Restart a project's service once its documentation PR is merged."""
    name = project_name(payload)

    project = registry.get(name)
    if project is None or not project.enabled:
        raise ProjectNotFoundError("Project not found or disabled")

    if not is_merge_event(payload, project):
        return JSONResponse(
            status_code=200,
            content={"message": "Not a merge event, skipping restart"},
        )

    logger.info("Service restart requested", project=name, commit=str(payload.get("after") or "")[:7])

    output_cap = request.app.state.settings.output_cap
    try:
        result = await request.app.state.restarter(project)
    except Exception as e:
        logger.exception("Service restart failed", project=name)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    if result.timed_out or result.exit_code != 0:
        error = "Timed out" if result.timed_out else f"Exit code: {result.exit_code}"
        logger.error(
            "Service restart failed",
            project=name,
            error=error,
            stderr=truncate(result.stderr, output_cap),
        )
        return JSONResponse(status_code=500, content={"success": False, "error": error})

    output = truncate(result.stdout, output_cap)
    logger.info("Service restarted successfully", project=name, output=output)
    return JSONResponse(
        status_code=200,
        content={"success": True, "message": "Service restarted", "output": output},
    )
