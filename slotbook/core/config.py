from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    database_ssl: bool = False  # asyncpg only; managed Postgres usually wants True
    auto_create_tables: bool = False

    # JWT (provider login)
    secret_key: str
    access_token_expire_minutes: int = 60
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Availability / booking rules
    default_slot_duration_minutes: int = 60
    default_timezone: str = "UTC"
    no_show_grace_minutes: int = 15
    max_range_days: int = 62

    # Holiday lookup (Nager.Date public holiday API)
    holiday_api_url: str = "https://date.nager.at/api/v3"
    holiday_region: str = "US"
    holiday_api_timeout_seconds: float = 10.0

    # Env
    env: str = "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.env == "production"


settings = Settings()
