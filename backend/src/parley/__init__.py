"""Realtime presence, call lifecycle and signaling core."""
