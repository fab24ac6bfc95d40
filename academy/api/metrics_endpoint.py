"""Prometheus scrape endpoint.

Exposes the HTTP metrics from MetricsMiddleware alongside the domain
counters in academy.core.metrics (lesson completions, quiz outcomes,
certificate decisions, code collisions, domain errors by code).

Restrict access at the network layer in production: the counters reveal
per-route traffic and error patterns.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
