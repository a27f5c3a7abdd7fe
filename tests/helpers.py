"""Shared helpers for service tests."""

from datetime import datetime


def at(day: int, hour: int = 8) -> datetime:
    """Deterministic ledger timestamp in January 2024."""
    return datetime(2024, 1, day, hour, 0, 0)
