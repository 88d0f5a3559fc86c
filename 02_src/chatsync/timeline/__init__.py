"""Timeline module."""

from .store import DEFAULT_PLACEHOLDER, TimelineEntry, TimelineStore, day_key

__all__ = ["TimelineStore", "TimelineEntry", "DEFAULT_PLACEHOLDER", "day_key"]
