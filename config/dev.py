from __future__ import annotations

from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict

ROOT = Path(__file__).resolve().parents[1]
ENV_FILE = ROOT / "env" / ".env.dev"


class DevSettings(BaseSettings):
    DATABASE_URL: str | None = None
    APP_ENV: str = "dev"
    SECRET_KEY: str | None = None
    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"
    TRANSITION_RULES_PATH: str | None = None

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
    )
