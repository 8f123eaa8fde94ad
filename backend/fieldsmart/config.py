from decimal import Decimal
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url

from fieldsmart.estimates.pricing import DEFAULT_TAX_RATE


class Settings(BaseSettings):
    """Process configuration, read from the environment and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = "sqlite+aiosqlite:///./data/fieldsmart.db"

    # JWT signing; override secret_key outside development
    secret_key: str = "dev-secret-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(30, gt=0)
    refresh_token_expire_days: int = Field(7, gt=0)

    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000"]

    log_level: str = "INFO"
    log_file: str = ""

    # Applied when an estimate is created without its own values
    default_tax_rate: Decimal = Field(DEFAULT_TAX_RATE, ge=0)
    estimate_valid_days: int = Field(30, ge=0)

    scheduler_enabled: bool = True

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.database_url).get_backend_name() == "sqlite"

    @property
    def sqlite_path(self) -> Path | None:
        """Database file for file-backed SQLite URLs, else ``None``."""
        if not self.is_sqlite:
            return None
        database = make_url(self.database_url).database
        if not database or database == ":memory:":
            return None
        return Path(database)
