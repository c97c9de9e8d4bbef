"""Metric definitions for the realtime core and its services."""

from __future__ import annotations

from .registry import registry


realtime_connections = registry.gauge(
    "realtime_active_connections",
    "Number of websocket sessions currently registered in the presence registry.",
)

realtime_events_total = registry.counter(
    "realtime_events_total",
    "Count of realtime events processed by connection sessions.",
    label_names=("event", "direction"),
)

realtime_push_failures_total = registry.counter(
    "realtime_push_failures_total",
    "Pushes dropped because the target connection vanished mid-send.",
    label_names=("event",),
)

call_transitions_total = registry.counter(
    "calls_transitions_total",
    "Call status transitions committed to the store.",
    label_names=("status",),
)

messages_sent_total = registry.counter(
    "messages_sent_total",
    "Direct messages persisted, split by the entry point used.",
    label_names=("channel",),
)
