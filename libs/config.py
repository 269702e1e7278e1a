# libs/config.py
"""
Настройки интерпретатора, адаптера Gemini, хранилища и API.

* Источник – переменные окружения или `.env` (pydantic-settings).
* Без `GEMINI_API_KEY` всё работает на правилах (fallback), это штатный режим.
* `get_settings()` кеширует объект на процесс.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Значение-заглушка из .env.example – считаем, что ключа нет
PLACEHOLDER_API_KEY = "your_gemini_api_key_here"

# --------------------------------------------------------------------------- #
# Основные настройки
# --------------------------------------------------------------------------- #


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    env: str = Field("local", alias="ENV")

    # ── Gemini ───────────────────────────────────────────────────────────────
    gemini_api_key: Optional[str] = Field(None, alias="GEMINI_API_KEY")
    gemini_model: str = Field("gemini-1.5-flash", alias="GEMINI_MODEL")
    gemini_timeout_seconds: float = Field(10.0, gt=0, alias="GEMINI_TIMEOUT_SECONDS")
    gemini_temperature: float = Field(0.1, ge=0, le=2, alias="GEMINI_TEMPERATURE")

    # ── Кеш ответов LLM (diskcache) ──────────────────────────────────────────
    llm_cache_dir: Optional[Path] = Field(None, alias="LLM_CACHE_DIR")

    # ── Хранилище (PocketBase-совместимое API) ───────────────────────────────
    store_url: str = Field("http://127.0.0.1:8090", alias="STORE_URL")
    store_email: str = Field("", alias="STORE_EMAIL")
    store_password: str = Field("", alias="STORE_PASSWORD")
    recent_transactions_limit: int = Field(10, ge=0, alias="RECENT_TRANSACTIONS_LIMIT")

    # ── Sentry ───────────────────────────────────────────────────────────────
    sentry_dsn: Optional[str] = Field(None, alias="SENTRY_DSN")

    # ── API ──────────────────────────────────────────────────────────────────
    api_host: str = Field("0.0.0.0", alias="API_HOST")
    api_port: int = Field(9001, alias="API_PORT")
    metrics_port: int = Field(9101, alias="METRICS_PORT")

    # ── Валидация ────────────────────────────────────────────────────────────
    @field_validator("gemini_api_key")
    def _drop_placeholder_key(cls, v: str | None) -> str | None:  # noqa: N805
        if not v or v.strip() == PLACEHOLDER_API_KEY:
            return None
        return v.strip()

    @computed_field  # type: ignore[misc]
    @property
    def provider_enabled(self) -> bool:
        """True, если ключ Gemini задан и это не заглушка."""
        return self.gemini_api_key is not None


# --------------------------------------------------------------------------- #
# Public helper
# --------------------------------------------------------------------------- #


@lru_cache(maxsize=1)
def get_settings() -> Settings:  # noqa: D401
    """Возвращает **singleton** объект Settings."""
    return Settings()


# --------------------------------------------------------------------------- #
# CLI-debug
# --------------------------------------------------------------------------- #

if __name__ == "__main__":
    import json

    print(json.dumps(get_settings().model_dump(exclude={"gemini_api_key", "store_password"}), indent=2, default=str))
