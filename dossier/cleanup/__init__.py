"""Daily retention sweep."""

from __future__ import annotations

from .config import CleanupConfig
from .errors import CleanupAlreadyRunningError, CleanupError
from .observability import CleanupEventLogger, CleanupEventType
from .processor import CleanupProcessor, CleanupStats

__all__ = [
    "CleanupAlreadyRunningError",
    "CleanupConfig",
    "CleanupError",
    "CleanupEventLogger",
    "CleanupEventType",
    "CleanupProcessor",
    "CleanupStats",
]
