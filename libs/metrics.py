# libs/metrics.py
"""Prometheus-метрики интерпретатора.

Экспортируются два типа показателей:
1. **Business** – сколько предложений какого типа построено, сколько ушло в
   уточнение, сколько подтверждений выполнено / упало.
2. **Runtime**  – исходы обращений к провайдеру и их латентность.

> Запуск: вызовите `start_metrics_server()` один раз при старте процесса – он
> поднимет HTTP-endpoint `/metrics` на `METRICS_PORT` (по умолчанию 9101).
"""
from __future__ import annotations

import contextlib
import logging
from typing import Optional

from prometheus_client import Counter, Histogram, start_http_server

from libs.config import get_settings

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Metric objects (module-level singletons)
# ---------------------------------------------------------------------------
PROVIDER_RESULTS = Counter(
    "nlfci_provider_results_total",
    "Исходы обращений к внешнему провайдеру",
    ["kind"],  # ok | unavailable | parse_error | validation_error
)
PROVIDER_LATENCY = Histogram(
    "nlfci_provider_latency_seconds",
    "Время (сек) одного обращения к провайдеру",
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)
PROPOSALS = Counter(
    "nlfci_proposals_total",
    "Построенные предложения по типу действия",
    ["action_type", "source"],
)
CLARIFICATIONS = Counter(
    "nlfci_clarifications_total",
    "Ответы-уточнения вместо действия",
    ["source"],
)
EXECUTIONS = Counter(
    "nlfci_executions_total",
    "Подтверждённые действия, отправленные в хранилище",
    ["action_type", "status"],  # status: done | failed
)


def start_metrics_server(port: Optional[int] = None) -> None:  # pragma: no cover – network
    """Запускает HTTP-эндпоинт `/metrics` в отдельном треде."""
    port = port or get_settings().metrics_port
    with contextlib.suppress(OSError):  # идемпотентность при повторном запуске
        start_http_server(port)
        log.info("Prometheus metrics available on http://0.0.0.0:%s/metrics", port)
