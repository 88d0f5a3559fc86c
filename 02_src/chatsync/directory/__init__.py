"""Directory module."""

from .cache import ACTIVE_WINDOW, DirectoryCache
from .client import (
    DirectoryClient,
    IDirectoryClient,
    presence_from_payload,
    summary_from_payload,
)
from .poller import DirectoryPoller

__all__ = [
    "ACTIVE_WINDOW",
    "DirectoryCache",
    "DirectoryClient",
    "IDirectoryClient",
    "DirectoryPoller",
    "summary_from_payload",
    "presence_from_payload",
]
