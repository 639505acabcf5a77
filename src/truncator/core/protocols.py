"""
Canonical protocol definitions for the version truncator.

Manifesto:
    The truncator never owns the versioned store. It is handed a record
    and talks to the store through a handful of narrow capabilities:
    read version history, delete version rows, list the tables that back
    a record type. Protocols define those contracts without inheritance,
    so a raw ``sqlite3.Connection``, a SQLAlchemy session bridge or a test
    double all plug in the same way.

Architecture:
    ::

        protocols.py
        ├── Connection           -- sync DB protocol (sqlite3, DB-API drivers, SA bridge)
        ├── VersionHistoryReader -- read ordered, filtered version rows
        ├── RowDeleter           -- delete version rows by exact version number
        └── TableResolver        -- list every version table behind a record type

    Implementations:
        history.VersionHistoryRepository  → VersionHistoryReader + RowDeleter
        tables.StaticTableResolver        → TableResolver
        tables.MappedTableResolver        → TableResolver (SQLAlchemy mappers)

Guardrails:
    ❌ DON'T: Add async methods to these protocols
    ✅ DO: Keep sweeps synchronous; wrap async drivers in an adapter

Tags:
    protocol, connection, version-history, retention, contracts

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from truncator.core.history import HistoryQuery, VersionRow
    from truncator.core.tables import VersionTables


@runtime_checkable
class Connection(Protocol):
    """
    Minimal SYNCHRONOUS connection interface.

    ``sqlite3.Connection`` satisfies it natively; other drivers and
    SQLAlchemy sessions are adapted (see
    :class:`truncator.core.orm.session.SAConnectionBridge`).

    Examples:
        >>> cursor = conn.execute(
        ...     "DELETE FROM page_versions WHERE record_id = ?", (12,)
        ... )
        >>> cursor.rowcount
        3
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement with optional parameters. SYNC."""
        ...

    def commit(self) -> None:
        """Commit current transaction. SYNC."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction. SYNC."""
        ...


@runtime_checkable
class VersionHistoryReader(Protocol):
    """Read access to one record's version history."""

    def fetch_versions(self, table: str, query: HistoryQuery) -> list[VersionRow]:
        """Return rows of ``table`` matching ``query``, newest first."""
        ...


@runtime_checkable
class RowDeleter(Protocol):
    """Delete access keyed by exact version numbers."""

    def delete_versions(self, table: str, record_id: int, versions: Iterable[int]) -> int:
        """Delete the given versions of one record from ``table``.

        Returns the number of rows removed.
        """
        ...


@runtime_checkable
class TableResolver(Protocol):
    """Maps a record type name to the tables holding its version history."""

    def resolve_version_tables(self, type_name: str) -> VersionTables:
        """Return base and related version tables for ``type_name``.

        Raises:
            TableResolutionError: If the type is unknown.
        """
        ...


__all__ = [
    "Connection",
    "VersionHistoryReader",
    "RowDeleter",
    "TableResolver",
]
