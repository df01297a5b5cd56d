"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from .env or environment variables."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "CF_"}

    # Claude API
    anthropic_api_key: str = ""
    extraction_model: str = "claude-sonnet-4-20250514"

    # Google Workspace (Gmail)
    google_credentials_file: str = "credentials.json"
    google_token_file: str = "token.json"
    gmail_send_as_email: str = ""
    agent_email: str = ""

    # Push Notifications
    pushover_user_key: str = ""
    pushover_api_token: str = ""
    ntfy_topic: str = ""
    ntfy_server: str = "https://ntfy.sh"

    # Application
    data_dir: str = "./data"
    owner_id: str = ""
    timezone: str = "America/Los_Angeles"
    upcoming_limit: int = 8
    calendar_event_hour: int = 9
    log_level: str = "INFO"

    @property
    def data_path(self) -> Path:
        p = Path(self.data_dir)
        p.mkdir(parents=True, exist_ok=True)
        return p

    def has_pushover(self) -> bool:
        return bool(self.pushover_user_key and self.pushover_api_token)

    def has_ntfy(self) -> bool:
        return bool(self.ntfy_topic)

    def has_google(self) -> bool:
        return Path(self.google_credentials_file).exists()

    def has_anthropic(self) -> bool:
        return bool(self.anthropic_api_key)


def get_settings() -> Settings:
    return Settings()
