"""Prometheus-compatible metrics endpoint."""

from fastapi import APIRouter, Response

from app.monitoring import metrics as _metrics  # noqa: F401  registers the collectors
from app.monitoring.registry import registry


router = APIRouter(tags=["metrics"])


@router.get("/metrics", response_class=Response)
def export_metrics() -> Response:
    """Expose presence, event and call counters for Prometheus scraping."""

    payload = registry.render()
    return Response(content=payload, media_type="text/plain; version=0.0.4")
