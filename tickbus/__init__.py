"""Asyncio job scheduler with in-memory stores and broadcast-driven notifications."""

__version__ = "0.1.0"

__all__ = [
    "code",
    "notifications",
    "scheduler",
    "simple_metadata_store",
    "simple_notification_store",
    "store",
]