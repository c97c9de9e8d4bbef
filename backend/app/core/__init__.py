"""Core utilities for the Parley backend."""
