from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Maintenance Desk"
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent.parent / "data")
    LOG_LEVEL: str = "INFO"

    DB_URL: str | None = Field(default=None, validation_alias=AliasChoices("DB_URL", "DATABASE_URL"))

    # Role labels are not identities; this is what an HTTP caller acts as
    # when it does not send X-Role.
    DEFAULT_ROLE: str = "MANAGEMENT"
    DEFAULT_VENDOR: str = "Proveedor (DEMO)"
    DEFAULT_LEAD_TIME_DAYS: int = Field(default=3, ge=0)

    SEED_ON_EMPTY: bool = True
    SNAPSHOT_ENABLED: bool = False
    SNAPSHOT_PATH: Path | None = None

    @field_validator("LOG_LEVEL", "DEFAULT_ROLE", mode="before")
    @classmethod
    def _upper(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @property
    def database_url(self) -> str:
        return self.DB_URL or f"sqlite:///{self.DATA_DIR / 'maintdesk.db'}"

    @property
    def snapshot_path(self) -> Path:
        return self.SNAPSHOT_PATH if self.SNAPSHOT_PATH is not None else self.DATA_DIR / "snapshot.json"


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    return settings


settings = get_settings()
