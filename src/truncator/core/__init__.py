"""Truncator Core -- version history retention for append-only record stores.

Manifesto:
    Every edit of a versioned record leaves an immutable version row
    behind. Without pruning, history tables grow without bound. The core
    decides which versions of one record may go (keep the newest N
    published, the newest N drafts, one anchor per former URL) and
    deletes exactly those rows from every table backing the record.

Architecture::

    Layer 1 -- Types & Errors
        errors.py          Structured error hierarchy (TruncatorError, ...)
        records.py         RecordRef, IdentityKey, VersionedRecord protocol
        protocols.py       Connection, VersionHistoryReader, RowDeleter, TableResolver
        config.py          RetentionConfig + TruncatorSettings

    Layer 2 -- Database
        dialect.py         SQL dialect abstraction (5 backends)
        repository.py      BaseRepository with dialect-aware helpers
        history.py         VersionHistoryRepository (reader + deleter)
        tables.py          Static and SQLAlchemy-mapped table resolvers
        orm/               SQLAlchemy base, version_table, session bridge

    Layer 3 -- Retention
        selector.py        Candidate selection (published, redirects, drafts)
        executor.py        Cross-table deletion
        sweep.py           VersionTruncator orchestration

    Cross-cutting
        logging.py         structlog configuration

Tags:
    retention, versioning, garbage-collection, sql

Doc-Types:
    package-overview, module-index
"""

from truncator.core.config import RetentionConfig, TruncatorSettings, get_settings
from truncator.core.errors import (
    ConfigError,
    DatabaseError,
    DeletionError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    InvalidIdentifierError,
    QueryError,
    SchemaError,
    TableResolutionError,
    TruncatorError,
)
from truncator.core.executor import DeletionResult, delete_versions
from truncator.core.factory import configure_logging_from_settings, create_database_engine
from truncator.core.history import HistoryQuery, VersionColumns, VersionHistoryRepository, VersionRow
from truncator.core.records import IdentityKey, RecordRef, VersionedRecord
from truncator.core.selector import CandidateSet, select_candidates
from truncator.core.sweep import BatchReport, SweepResult, SweepState, VersionTruncator
from truncator.core.tables import MappedTableResolver, StaticTableResolver, VersionTables

__all__ = [
    # config
    "RetentionConfig",
    "TruncatorSettings",
    "get_settings",
    "create_database_engine",
    "configure_logging_from_settings",
    # errors
    "ErrorCategory",
    "ErrorContext",
    "TruncatorError",
    "ConfigError",
    "InvalidConfigError",
    "SchemaError",
    "TableResolutionError",
    "InvalidIdentifierError",
    "DatabaseError",
    "QueryError",
    "DeletionError",
    # records
    "IdentityKey",
    "RecordRef",
    "VersionedRecord",
    # history
    "HistoryQuery",
    "VersionColumns",
    "VersionRow",
    "VersionHistoryRepository",
    # tables
    "VersionTables",
    "StaticTableResolver",
    "MappedTableResolver",
    # retention
    "CandidateSet",
    "select_candidates",
    "DeletionResult",
    "delete_versions",
    "SweepState",
    "SweepResult",
    "BatchReport",
    "VersionTruncator",
]
