"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from dochub.settings import HubSettings

ENV_VARS = (
    "PORT",
    "WEBHOOK_SECRET",
    "GITHUB_WEBHOOK_SECRET",
    "MAX_CONCURRENT_JOBS",
    "JOB_TIMEOUT_MINUTES",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate from the real environment and any .env in the repo."""
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestHubSettings:
    """Tests for HubSettings."""

    def test_defaults(self):
        settings = HubSettings()

        assert settings.port == 6000
        assert settings.max_concurrent_jobs == 2
        assert settings.job_timeout == 30 * 60
        assert settings.output_cap == 500
        assert settings.webhook_secret == ""

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("PORT", "7000")
        monkeypatch.setenv("MAX_CONCURRENT_JOBS", "4")
        monkeypatch.setenv("JOB_TIMEOUT_MINUTES", "5")
        monkeypatch.setenv("WEBHOOK_SECRET", "abc")

        settings = HubSettings()

        assert settings.port == 7000
        assert settings.max_concurrent_jobs == 4
        assert settings.job_timeout == 300
        assert settings.webhook_secret == "abc"

    def test_github_secret_fallback(self, monkeypatch):
        monkeypatch.setenv("GITHUB_WEBHOOK_SECRET", "from-github")
        assert HubSettings().webhook_secret == "from-github"

    def test_webhook_secret_wins(self, monkeypatch):
        monkeypatch.setenv("WEBHOOK_SECRET", "primary")
        monkeypatch.setenv("GITHUB_WEBHOOK_SECRET", "fallback")
        assert HubSettings().webhook_secret == "primary"

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("WEBHOOK_SECRET=from-dotenv\nMAX_CONCURRENT_JOBS=3\n")

        settings = HubSettings()

        assert settings.webhook_secret == "from-dotenv"
        assert settings.max_concurrent_jobs == 3

    def test_zero_concurrency_rejected(self, monkeypatch):
        monkeypatch.setenv("MAX_CONCURRENT_JOBS", "0")
        with pytest.raises(ValidationError):
            HubSettings()
