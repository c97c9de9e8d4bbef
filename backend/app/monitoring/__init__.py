"""Metric registry and collectors for the realtime core and its services."""

from . import metrics, registry

__all__ = ["metrics", "registry"]
