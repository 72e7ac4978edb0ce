from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    database_ssl: bool = True

    # Staff bearer tokens
    secret_key: str
    access_token_expire_minutes: int = 60 * 24 * 30
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Language model used by the chat assistant
    anthropic_api_key: str = ""
    assistant_model: str = "claude-3-5-sonnet-20241022"
    assistant_max_tokens: int = 1024

    # Aurinko calendar API
    aurinko_client_id: str = ""
    aurinko_client_secret: str = ""
    aurinko_base_url: str = "https://api.aurinko.io/v1"
    aurinko_return_url: str = "http://localhost:8000/api/v1/calendar/callback"
    # Where the calendar callback sends the browser afterwards
    admin_calendar_url: str = "http://localhost:3000/admin/calendar"

    # Scheduling rules
    timezone: str = "America/Denver"
    slot_search_days: int = 14
    slot_display_limit: int = 5
    calendar_timeout_seconds: float = 10.0

    # Env
    env: str = "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def assistant_enabled(self) -> bool:
        return bool(self.anthropic_api_key)

    @property
    def calendar_oauth_enabled(self) -> bool:
        return bool(self.aurinko_client_id and self.aurinko_client_secret)


settings = Settings()
