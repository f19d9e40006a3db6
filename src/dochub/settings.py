"""
Hub settings.

All values can be overridden via environment variables or a ``.env``
file. Names are unprefixed (``PORT``, ``WEBHOOK_SECRET``,
``MAX_CONCURRENT_JOBS``...) to match existing deployments.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class HubSettings(BaseSettings):
    """Settings for the documentation hub.

    Order of precedence (highest → lowest):
        1. Environment variables
        2. ``.env`` file
        3. Defaults below
    """

    # ── Server ───────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=6000, description="Bind port")
    log_level: str = Field(default="INFO", description="Log level")
    log_dir: Path | None = Field(default=Path("logs"), description="Directory for daily log files")

    # ── Webhooks ─────────────────────────────────────────────────────────
    webhook_secret: str = Field(
        default="",
        validation_alias=AliasChoices("webhook_secret", "github_webhook_secret"),
        description="Shared HMAC secret. Empty rejects every request.",
    )

    # ── Jobs ─────────────────────────────────────────────────────────────
    max_concurrent_jobs: int = Field(default=2, ge=1, description="Concurrency cap")
    job_timeout_minutes: float = Field(default=30, gt=0, description="Hard timeout per job")
    output_cap: int = Field(default=500, ge=0, description="Characters of output kept per stream")
    shutdown_timeout: float = Field(default=10, ge=0, description="Seconds to wait for jobs on shutdown")

    # ── Paths ────────────────────────────────────────────────────────────
    registry_path: Path = Field(default=Path("project-registry.json"))
    handlers_dir: Path = Field(default=Path("handlers"))

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def job_timeout(self) -> float:
        """Job timeout in seconds."""
        return self.job_timeout_minutes * 60
