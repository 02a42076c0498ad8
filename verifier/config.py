"""Central configuration for the verifier terminal service."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_ENV_FILE = ROOT_DIR / ".env"


# ============================================================
# Nested Configuration Classes
# ============================================================

class HttpSettings(BaseModel):
    """Access backend REST configuration."""
    timeout_seconds: float = Field(15.0, description="Per-request timeout for backend calls (seconds)")
    unlock_path: str = Field("/.netlify/functions/unlock-verifier", description="PIN unlock endpoint")
    validate_path: str = Field("/.netlify/functions/validate-rotating-code", description="Code validation endpoint")
    checkpoints_path: str = Field("/.netlify/functions/checkpoints", description="Checkpoints-by-org endpoint")
    session_header: str = Field("X-Verifier-Session", description="Header carrying the verifier session token")


class MockSettings(BaseModel):
    """Disconnected-mode collaborator configuration."""
    pin: str = Field("1234", description="Only PIN accepted by the mock unlock")
    session_ttl_seconds: int = Field(900, description="Lifetime of mock sessions (seconds, minimum 60)")
    org_id: str = Field("mock_org_1", description="Org issued in mock session tokens")
    staff_id: str = Field("mock_staff_1", description="Staff id issued in mock session tokens")
    user_id: str = Field("mock_user_1", description="User id issued in mock session tokens")

    @field_validator("session_ttl_seconds")
    @classmethod
    def _clamp_ttl(cls, value: int) -> int:
        return max(60, int(value))


class PresenterSettings(BaseModel):
    """Result display tuning."""
    ui_event_queue_size: int = Field(8, description="Max buffered UI events per subscriber")


class Settings(BaseSettings):
    """Environment-driven settings for the verifier terminal."""

    # Backend selection
    data_mode: Literal["mock", "remote"] = Field("mock", description="Access backend: in-process mock or remote HTTP")
    api_base_url: str = Field("", description="Access backend base URL (required in remote mode)")
    staff_id_token: Optional[str] = Field(None, description="Caller identity token sent with unlock requests")

    # Terminal HTTP Server
    terminal_host: str = Field("0.0.0.0", description="Host interface for local FastAPI server")
    terminal_port: int = Field(5000, description="Port for FastAPI server")
    cors_allow_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Origins allowed to call the terminal API (kiosk UI). \"*\" disables credentials",
    )

    # Durable terminal state (device identity)
    state_directory: Path = Field(ROOT_DIR / "state", description="Directory holding durable terminal state")

    # Logging
    log_level: str = Field("INFO", description="Logging level")
    log_directory: Path = Field(ROOT_DIR / "logs", description="Log directory path")
    log_retention_days: int = Field(14, description="Number of log files to retain")

    # Nested Configuration Objects
    http: HttpSettings = Field(default_factory=HttpSettings, description="Access backend REST settings")
    mock: MockSettings = Field(default_factory=MockSettings, description="Mock backend settings")
    presenter: PresenterSettings = Field(default_factory=PresenterSettings, description="Result display settings")

    @field_validator("api_base_url", mode="before")
    @classmethod
    def _strip_base_url(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value

    @model_validator(mode="after")
    def _require_remote_url(self) -> "Settings":
        if self.data_mode == "remote" and not self.api_base_url:
            raise ValueError("API_BASE_URL is required when DATA_MODE=remote")
        return self

    model_config = SettingsConfigDict(
        env_file=str(DEFAULT_ENV_FILE),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings(override_env_file: Optional[Path] = None) -> Settings:
    """Cached Settings instance; accepts optional env override for tests."""

    if override_env_file:
        return Settings(_env_file=str(override_env_file))
    return Settings()
