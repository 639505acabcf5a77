"""Base repository with dialect-aware database access.

Provides :class:`BaseRepository`, a base class that pairs a
:class:`~truncator.core.protocols.Connection` with a
:class:`~truncator.core.dialect.Dialect` so that repositories can write
**portable** SQL without referencing any specific database driver.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                       BaseRepository                               │
    │                                                                    │
    │   conn: Connection        ← protocol from truncator.core.protocols │
    │   dialect: Dialect        ← from truncator.core.dialect            │
    │                                                                    │
    │   execute(sql, params)     → cursor                                │
    │   query(sql, params)       → list[dict]                            │
    │   quote(name)              → quoted identifier                     │
    └────────────────────────────────────────────────────────────────────┘

Tags:
    repository, database, abstraction, portability
"""

from __future__ import annotations

from typing import Any

from truncator.core.dialect import Dialect, SQLiteDialect
from truncator.core.protocols import Connection


class BaseRepository:
    """Dialect-aware base class for data-access repositories.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol.
        dialect: SQL dialect to use. Defaults to :class:`SQLiteDialect`.
    """

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()

    @classmethod
    def from_session(
        cls,
        session: Any,
        dialect: Dialect | None = None,
        **kwargs: Any,
    ) -> BaseRepository:
        """Create a repository backed by a SQLAlchemy ORM session.

        Wraps *session* in :class:`~truncator.core.orm.session.SAConnectionBridge`
        so the same ``Connection``-based helpers work over an ORM session.
        When *dialect* is omitted it is derived from the session's bind.

        Example::

            with Session(engine) as session:
                repo = VersionHistoryRepository.from_session(session)
        """
        from truncator.core.orm.session import SAConnectionBridge, dialect_for_session

        bridge = SAConnectionBridge(session)
        return cls(conn=bridge, dialect=dialect or dialect_for_session(session), **kwargs)  # type: ignore[arg-type]

    # -- Convenience shortcuts ---------------------------------------------

    def quote(self, name: str) -> str:
        """Shortcut for ``self.dialect.quote_identifier(name)``."""
        return self.dialect.quote_identifier(name)

    # -- Query helpers -----------------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a statement and return the raw cursor/result."""
        return self.conn.execute(sql, params)

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as dicts.

        Column names come from ``cursor.description`` (DB-API 2.0). Rows
        that are already mappings (``sqlite3.Row``, dict cursors) are
        converted directly when no description is available.
        """
        cursor = self.conn.execute(sql, params)
        rows = cursor.fetchall()
        if not rows:
            return []

        description = getattr(cursor, "description", None)
        if description:
            columns = [desc[0] for desc in description]
            return [dict(zip(columns, row, strict=False)) for row in rows]

        return [dict(row) for row in rows]

    def commit(self) -> None:
        """Commit the current transaction."""
        self.conn.commit()

    def rollback(self) -> None:
        """Roll back the current transaction."""
        self.conn.rollback()


__all__ = [
    "BaseRepository",
]
