"""Project registry loading.

The registry is a JSON file read once at startup. It maps project
identifiers (repository names) to their execution configuration and
carries a small block of hub-wide settings.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from dochub.errors import RegistryError
from dochub.models import ProjectConfig

DEFAULT_PR_BRANCH_PREFIX = "docs/auto-update"


@dataclass(frozen=True)
class Registry:
    """Read-only view of the loaded registry."""

    projects: Mapping[str, ProjectConfig] = field(default_factory=dict)
    settings: Mapping[str, Any] = field(default_factory=dict)

    def get(self, identifier: str) -> ProjectConfig | None:
        return self.projects.get(identifier)

    def __len__(self) -> int:
        return len(self.projects)

    @property
    def pr_branch_prefix(self) -> str:
        return str(self.settings.get("pr_branch_prefix", DEFAULT_PR_BRANCH_PREFIX))

    @classmethod
    def from_dict(cls, data: Any) -> Registry:
        """
        Build a registry from the decoded JSON document.

        Raises:
            RegistryError: If the document does not have the expected shape.
        """
        if not isinstance(data, dict):
            raise RegistryError("Registry must be a JSON object")

        raw_projects = data.get("projects", {})
        if not isinstance(raw_projects, dict):
            raise RegistryError("Registry 'projects' must be an object")

        raw_settings = data.get("settings", {})
        if not isinstance(raw_settings, dict):
            raise RegistryError("Registry 'settings' must be an object")

        projects = {}
        for key, entry in raw_projects.items():
            if not isinstance(entry, dict):
                raise RegistryError(f"Project '{key}' must be an object")
            projects[key] = _project_from_entry(key, entry)

        return cls(
            projects=MappingProxyType(projects),
            settings=MappingProxyType(dict(raw_settings)),
        )


def _project_from_entry(key: str, entry: dict[str, Any]) -> ProjectConfig:
    repo_name = str(entry.get("repo_name") or key)
    return ProjectConfig(
        identifier=key,
        repo_name=repo_name,
        enabled=bool(entry.get("enabled", True)),
        workspace_path=str(entry.get("workspace_path", "")),
        default_branch=str(entry.get("default_branch", "main")),
        service_type=str(entry.get("service_type", "pm2")),
        service_name=entry.get("service_name") or repo_name,
        restart_command=entry.get("restart_command"),
    )


def load_projects(path: str | Path) -> Registry:
    """
    Load the project registry from a JSON file.

    Args:
        path: Path to ``project-registry.json``.

    Returns:
        The loaded Registry.

    Raises:
        RegistryError: If the file is missing, unreadable, or malformed.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RegistryError(f"Cannot read registry {path}: {e}") from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise RegistryError(f"Invalid JSON in registry {path}: {e}") from e

    return Registry.from_dict(data)
