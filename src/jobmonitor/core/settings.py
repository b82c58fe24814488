"""Settings for job-monitor.

Configuration is explicit, validated, and environment-driven: every field can
be set through a ``JOBMONITOR_``-prefixed environment variable or a ``.env``
file, and unknown variables are ignored.

Fields
──────
api_url                : Base URL of the dashboard API
stream_path            : Path template of the step stream (``{job_log_id}``)
api_token              : Optional bearer token sent with stream requests
preview_count          : Default number of upcoming runs to preview
search_horizon_days    : Days searched per upcoming run before giving up
protect_terminal_steps : Drop ``step_start`` events that would restart a finished step
log_level              : Structlog log level
json_logs              : Force JSON (True) or console (False) logs; auto when unset

Examples:
    >>> settings = JobMonitorSettings(api_url="http://dashboard:8080/api")
    >>> settings.stream_url(42)
    'http://dashboard:8080/api/v1/monitor/jobs/logs/42/stream'
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class JobMonitorSettings(BaseSettings):
    """Runtime configuration shared by the CLI and library entry points."""

    model_config = SettingsConfigDict(
        env_prefix="JOBMONITOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Channel ──────────────────────────────────────────────────
    api_url: str = "http://localhost:8000/api"
    stream_path: str = "/v1/monitor/jobs/logs/{job_log_id}/stream"
    api_token: SecretStr | None = None

    # ── Preview ──────────────────────────────────────────────────
    preview_count: int = Field(default=3, ge=1, le=100)
    search_horizon_days: int = Field(default=30, ge=1, le=366)

    # ── Stream folding ───────────────────────────────────────────
    protect_terminal_steps: bool = False

    # ── Observability ────────────────────────────────────────────
    log_level: str = "WARNING"
    json_logs: bool | None = None

    @field_validator("stream_path")
    @classmethod
    def _check_stream_path(cls, value: str) -> str:
        if "{job_log_id}" not in value:
            raise ValueError("stream_path must contain a {job_log_id} placeholder")
        return value

    def stream_url(self, job_log_id: int) -> str:
        """Absolute URL of the step stream for ``job_log_id``."""
        base = self.api_url.rstrip("/")
        path = self.stream_path.replace("{job_log_id}", str(job_log_id))
        if not path.startswith("/"):
            path = "/" + path
        return f"{base}{path}"

    def auth_headers(self) -> dict[str, str]:
        """Authorization header for stream requests, if a token is configured."""
        if self.api_token is None:
            return {}
        return {"Authorization": f"Bearer {self.api_token.get_secret_value()}"}


@lru_cache(maxsize=1)
def get_settings() -> JobMonitorSettings:
    """Cached settings, loaded once per process."""
    return JobMonitorSettings()


__all__ = ["JobMonitorSettings", "get_settings"]
