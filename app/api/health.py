"""Health and readiness endpoints.

  /health (liveness):  "is the process alive?"  Always 200; the body's
    ``status`` reports degraded dependencies without inviting a restart.

  /ready (readiness):  "can this instance take traffic?"  503 when the
    database is configured but unreachable, so the load balancer stops
    routing here until it recovers.  With no DATABASE_URL the service
    runs on in-memory repositories and is always ready.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from prometheus_client import REGISTRY

from app.db import engine as db

router = APIRouter(tags=["health"])

logger = logging.getLogger(__name__)


def _sum_counter(metric_name: str, label_filter: dict | None = None) -> float:
    """Sum a counter's samples across every label combination matching the filter."""
    total = 0.0
    for metric in REGISTRY.collect():
        for sample in metric.samples:
            if sample.name != metric_name:
                continue
            if label_filter and not all(
                sample.labels.get(k) == v for k, v in label_filter.items()
            ):
                continue
            total += sample.value
    return total


async def _database_status() -> str:
    if db.engine is None:
        return "not_configured"
    try:
        await db.ping_database()
    except Exception:
        logger.warning("Database ping failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    """Liveness probe plus dependency status and recalculation counters."""
    database = await _database_status()
    return {
        "status": "degraded" if database == "degraded" else "ok",
        "checks": {"database": database},
        "recalculations": {
            "ok": _sum_counter("progress_recalculations_total", {"result": "ok"}),
            "failed": _sum_counter(
                "progress_recalculations_total", {"result": "failed"}
            ),
        },
    }


@router.get("/ready")
async def ready() -> Response:
    if await _database_status() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
