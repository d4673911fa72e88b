import os
from functools import lru_cache
from pathlib import Path

DEFAULT_ALLOWED_ORIGINS = (
    "https://personal-expense-tracker-j3yh.vercel.app",
    "https://personal-expense-tracker-frontend.vercel.app",
    "https://personal-expense-tracker.vercel.app",
    "http://localhost:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:3001",
)


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        environment: str,
        allowed_origins: list[str],
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.environment = environment
        self.allowed_origins = allowed_origins
        self.log_level = log_level

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _parse_origins(raw: str | None) -> list[str]:
    if not raw:
        return list(DEFAULT_ALLOWED_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("FINANCE_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "finance.db"
        database_url = f"sqlite:///{default_db}"
    timezone = os.getenv("FINANCE_TIMEZONE", "UTC")
    environment = os.getenv("FINANCE_ENV", "development").strip().lower()
    allowed_origins = _parse_origins(os.getenv("FINANCE_ALLOWED_ORIGINS"))
    log_level = os.getenv("FINANCE_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        environment=environment,
        allowed_origins=allowed_origins,
        log_level=log_level,
    )
