"""Shared low-level helpers (logging, JSON)."""
