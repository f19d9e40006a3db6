"""Shared fixtures and fake runners."""

import asyncio
import logging
import threading
import time

import pytest
import structlog

from dochub.logging import ROOT_LOGGER
from dochub.models import ExecutionResult, ProjectConfig
from dochub.registry import Registry


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo configure_logging() so caplog keeps working across tests."""
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    structlog.reset_defaults()


def make_project(name="docs-site", **kwargs):
    return ProjectConfig(identifier=name, **kwargs)


def make_registry():
    return Registry.from_dict(
        {
            "settings": {"pr_branch_prefix": "docs/auto-update"},
            "projects": {
                "docs-site": {"repo_name": "docs-site", "enabled": True, "default_branch": "main"},
                "api-server": {
                    "repo_name": "api-server",
                    "enabled": True,
                    "default_branch": "develop",
                    "service_name": "api",
                },
                "legacy-app": {"repo_name": "legacy-app", "enabled": False},
            },
        }
    )


async def wait_until(predicate, timeout=2.0):
    """Poll until predicate() is true or fail."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


def wait_until_sync(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        time.sleep(0.01)


class GatedRunner:
    """Async runner that holds each job until the test releases it.

    Jobs are keyed by the payload's ``after`` field.
    """

    def __init__(self, exit_codes=None):
        self.started = []
        self.finished = []
        self.current = 0
        self.peak = 0
        self.exit_codes = exit_codes or {}
        self._gates = {}

    def _gate(self, key):
        return self._gates.setdefault(key, asyncio.Event())

    def release(self, key):
        self._gate(key).set()

    def release_all(self):
        for key in self.started:
            self.release(key)

    async def __call__(self, project, payload, timeout):
        key = payload.get("after")
        self.started.append(key)
        self.current += 1
        self.peak = max(self.peak, self.current)
        try:
            await self._gate(key).wait()
        finally:
            self.current -= 1
            self.finished.append(key)
        return ExecutionResult(exit_code=self.exit_codes.get(key, 0), stdout=f"done {key}")


class BlockingRunner:
    """Sync runner that blocks its worker thread until released."""

    def __init__(self):
        self.calls = []
        self.gate = threading.Event()

    def __call__(self, project, payload, timeout):
        self.calls.append((project.identifier, payload.get("after")))
        self.gate.wait(timeout=5)
        return ExecutionResult(exit_code=0, stdout="generated")


class RecordingRunner:
    """Async runner that succeeds immediately."""

    def __init__(self):
        self.calls = []

    async def __call__(self, project, payload, timeout):
        self.calls.append((project.identifier, payload.get("after")))
        return ExecutionResult(exit_code=0, stdout="generated")


@pytest.fixture
def project():
    return make_project()


@pytest.fixture
def registry():
    return make_registry()
