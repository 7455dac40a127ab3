from __future__ import annotations

from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict

ROOT = Path(__file__).resolve().parents[1]
ENV_FILE = ROOT / "env" / ".env.test"


class TestSettings(BaseSettings):
    # Tests build their own engine per test; this URL only backs db.py
    DATABASE_URL: str = "sqlite+aiosqlite:///./asset_lifecycle_test.db"
    APP_ENV: str = "test"
    SECRET_KEY: str = "test-secret-key"
    DEBUG: bool = False
    LOG_LEVEL: str = "WARNING"
    TRANSITION_RULES_PATH: str | None = None

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
    )
