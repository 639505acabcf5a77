"""Version history retention for append-only record stores."""

from truncator.core import (
    RecordRef,
    RetentionConfig,
    StaticTableResolver,
    VersionHistoryRepository,
    VersionTruncator,
)

__version__ = "0.1.0"

__all__ = [
    "RecordRef",
    "RetentionConfig",
    "StaticTableResolver",
    "VersionHistoryRepository",
    "VersionTruncator",
    "__version__",
]
