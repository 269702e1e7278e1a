# libs/sentry.py
"""Sentry-обвязка для интерпретатора и API.

Без DSN обе функции ничего не делают, поэтому тесты и локальный запуск
работают без Sentry. В события не должны попадать ключ Gemini, пароль
хранилища и полный текст пользовательских сообщений: за это отвечает
``_scrub``.

    init_sentry(release="api_gateway@0.1.0")
    sentry_capture(exc, extras={"message": text}, tags={"component": "provider"})
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Optional

import sentry_sdk

from libs.config import get_settings

__all__ = ["init_sentry", "sentry_capture"]

MAX_EXTRA_LENGTH = 200
_SECRET_KEYS = ("api_key", "password", "token", "authorization")


def _scrub(event: dict[str, Any], hint: dict[str, Any]) -> Optional[dict[str, Any]]:
    """before_send: режем длинные extras и вычищаем секреты."""
    extra = event.get("extra") or {}
    for key in list(extra):
        if any(secret in key.lower() for secret in _SECRET_KEYS):
            extra[key] = "[redacted]"
        elif isinstance(extra[key], str) and len(extra[key]) > MAX_EXTRA_LENGTH:
            extra[key] = extra[key][:MAX_EXTRA_LENGTH] + "…"

    headers = (event.get("request") or {}).get("headers") or {}
    for key in list(headers):
        if key.lower() in _SECRET_KEYS:
            headers[key] = "[redacted]"
    return event


@lru_cache(maxsize=1)
def init_sentry(*, release: str | None = None, env: str | None = None) -> bool:
    """Initialise Sentry once per process. Returns False when no DSN is set."""
    settings = get_settings()
    dsn = settings.sentry_dsn or os.getenv("SENTRY_DSN")
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        release=release,
        environment=env or settings.env,
        send_default_pii=False,
        before_send=_scrub,
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.2")),
    )
    return True


def sentry_capture(
    exc: BaseException,
    *,
    extras: Optional[dict[str, Any]] = None,
    tags: Optional[dict[str, str]] = None,
) -> None:
    """Report *exc* if the SDK is active; otherwise do nothing."""
    if not sentry_sdk.get_client().is_active():
        return

    with sentry_sdk.new_scope() as scope:
        for key, value in (tags or {}).items():
            scope.set_tag(key, value)
        for key, value in (extras or {}).items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(exc)
