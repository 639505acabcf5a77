"""Version history access over SQL tables.

Every versioned table stores one row per ``(record_id, version)``. This
module provides the value types describing those rows and the filters a
sweep applies to them, plus :class:`VersionHistoryRepository`, which
implements both :class:`~truncator.core.protocols.VersionHistoryReader`
and :class:`~truncator.core.protocols.RowDeleter` on top of any
:class:`~truncator.core.protocols.Connection`.

Manifesto:
    All values (record ids, version numbers, identity keys, limits) are
    bound parameters. Table and column names are validated identifiers,
    quoted by the dialect. Rows always come back newest first:
    ``last_edited DESC, version DESC``, so two versions saved within the
    same timestamp still have a stable order and the higher version
    number counts as more recent.

Architecture:
    ::

        HistoryQuery ──► VersionHistoryRepository.fetch_versions(table, q)
                              │  SELECT … WHERE record_id = ?
                              │         [AND was_published = TRUE|FALSE]
                              │         [AND url_segment = ? AND COALESCE(parent_id, 0) = ?]
                              │         [AND (url_segment <> ? OR COALESCE(parent_id, 0) <> ?)]
                              │         [AND version NOT IN (?, …)]
                              │  ORDER BY last_edited DESC, version DESC
                              │  [LIMIT ? OFFSET ?]
                              ▼
                         list[VersionRow]

        VersionHistoryRepository.delete_versions(table, record_id, versions)
                              │  DELETE … WHERE record_id = ? AND version IN (?, …)
                              │  (one statement per in_list_limit versions)
                              ▼
                         rowcount

Examples:
    >>> repo = VersionHistoryRepository(sqlite3.connect("site.db"))
    >>> rows = repo.fetch_versions(
    ...     "page_versions",
    ...     HistoryQuery(record_id=12, published=True, limit=100, offset=10),
    ... )
    >>> repo.delete_versions("page_versions", 12, [row.version for row in rows])
    90

Tags:
    version-history, repository, sql, retention

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from truncator.core.dialect import Dialect, validate_identifier
from truncator.core.logging import get_logger
from truncator.core.protocols import Connection
from truncator.core.records import IdentityKey
from truncator.core.repository import BaseRepository

logger = get_logger(__name__)

IN_LIST_LIMIT = 1000


@dataclass(frozen=True, slots=True)
class VersionColumns:
    """Physical column names of a version history table."""

    id: str = "id"
    record_id: str = "record_id"
    version: str = "version"
    last_edited: str = "last_edited"
    was_published: str = "was_published"
    url_segment: str = "url_segment"
    parent_id: str = "parent_id"

    def __post_init__(self) -> None:
        for name in (
            self.id,
            self.record_id,
            self.version,
            self.last_edited,
            self.was_published,
            self.url_segment,
            self.parent_id,
        ):
            validate_identifier(name)


@dataclass(frozen=True, slots=True)
class VersionRow:
    """One immutable version snapshot, as far as retention cares."""

    version: int
    last_edited: Any
    was_published: bool
    id: int | None = None
    url_segment: str | None = None
    parent_id: int | None = None

    @property
    def identity_key(self) -> IdentityKey | None:
        if self.url_segment is None:
            return None
        return IdentityKey(parent_id=self.parent_id or 0, url_segment=self.url_segment)


@dataclass(frozen=True)
class HistoryQuery:
    """Filters for one version history read.

    Attributes:
        record_id: Record whose versions are read.
        published: ``True``/``False`` to filter on ``was_published``,
            ``None`` for both.
        identity_equals: Keep only rows at this ``(parent_id, url_segment)``.
        identity_differs: Keep only rows *not* at this identity key.
        exclude_versions: Version numbers to leave out.
        include_identity: Read ``url_segment``/``parent_id`` even without an
            identity filter.
        limit: Maximum rows returned, ``None`` for all.
        offset: Rows skipped from the newest end; requires ``limit``.
    """

    record_id: int
    published: bool | None = None
    identity_equals: IdentityKey | None = None
    identity_differs: IdentityKey | None = None
    exclude_versions: frozenset[int] = field(default_factory=frozenset)
    include_identity: bool = False
    limit: int | None = None
    offset: int = 0

    def __post_init__(self) -> None:
        if self.offset < 0:
            raise ValueError(f"offset must be >= 0, got {self.offset}")
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"limit must be >= 0, got {self.limit}")
        if self.offset and self.limit is None:
            raise ValueError("offset requires a limit")

    @property
    def reads_identity(self) -> bool:
        return (
            self.include_identity
            or self.identity_equals is not None
            or self.identity_differs is not None
        )


class VersionHistoryRepository(BaseRepository):
    """SQL reader and deleter for version history tables.

    Parameters:
        conn: Connection to the database holding the version tables.
        dialect: SQL dialect, defaults to SQLite.
        columns: Column naming of the version tables.
        autocommit: Commit after every successful delete, roll back after a
            failed one. Disable when the caller owns the transaction.
        in_list_limit: Most versions bound into one ``IN (...)`` list. Larger
            deletes are split into several statements; Oracle rejects lists
            longer than 1000 (ORA-01795).
    """

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        *,
        columns: VersionColumns | None = None,
        autocommit: bool = True,
        in_list_limit: int = IN_LIST_LIMIT,
    ) -> None:
        if in_list_limit < 1:
            raise ValueError(f"in_list_limit must be >= 1, got {in_list_limit}")
        super().__init__(conn, dialect)
        self.columns = columns or VersionColumns()
        self.autocommit = autocommit
        self.in_list_limit = in_list_limit

    # -- Reads -------------------------------------------------------------

    def build_select(self, table: str, query: HistoryQuery) -> tuple[str, tuple]:
        """Render the SELECT for ``query`` against ``table``."""
        c = self.columns
        q = self.quote
        params: list[Any] = []

        def bind(value: Any) -> str:
            params.append(value)
            return self.dialect.placeholder(len(params) - 1)

        selected = [c.id, c.version, c.last_edited, c.was_published]
        if query.reads_identity:
            selected += [c.url_segment, c.parent_id]

        where = [f"{q(c.record_id)} = {bind(query.record_id)}"]

        if query.published is not None:
            flag = self.dialect.boolean_true() if query.published else self.dialect.boolean_false()
            where.append(f"{q(c.was_published)} = {flag}")

        # NULL parent_id means the root, same as 0.
        parent = f"COALESCE({q(c.parent_id)}, 0)"

        if query.identity_equals is not None:
            key = query.identity_equals
            where.append(f"{q(c.url_segment)} = {bind(key.url_segment)}")
            where.append(f"{parent} = {bind(key.parent_id)}")

        if query.identity_differs is not None:
            key = query.identity_differs
            where.append(
                f"({q(c.url_segment)} <> {bind(key.url_segment)} "
                f"OR {parent} <> {bind(key.parent_id)})"
            )

        if query.exclude_versions:
            marks = ", ".join(bind(v) for v in sorted(query.exclude_versions))
            where.append(f"{q(c.version)} NOT IN ({marks})")

        sql = (
            f"SELECT {', '.join(q(col) for col in selected)} "
            f"FROM {q(table)} "
            f"WHERE {' AND '.join(where)} "
            f"ORDER BY {q(c.last_edited)} DESC, {q(c.version)} DESC"
        )

        if query.limit is not None:
            clause, values = self.dialect.limit_offset(len(params), query.limit, query.offset)
            sql = f"{sql} {clause}"
            params.extend(values)

        return sql, tuple(params)

    def fetch_versions(self, table: str, query: HistoryQuery) -> list[VersionRow]:
        """Return the rows of ``table`` matching ``query``, newest first."""
        if query.limit == 0:
            return []

        sql, params = self.build_select(table, query)
        c = self.columns
        rows = []
        for raw in self.query(sql, params):
            rows.append(
                VersionRow(
                    version=int(raw[c.version]),
                    last_edited=raw[c.last_edited],
                    was_published=bool(raw[c.was_published]),
                    id=raw[c.id],
                    url_segment=raw.get(c.url_segment),
                    parent_id=raw.get(c.parent_id),
                )
            )
        return rows

    # -- Deletes -----------------------------------------------------------

    def build_delete(self, table: str, record_id: int, versions: list[int]) -> tuple[str, tuple]:
        """Render the bounded DELETE for ``versions`` of one record."""
        c = self.columns
        q = self.quote
        marks = self.dialect.placeholders(len(versions), start=1)
        sql = (
            f"DELETE FROM {q(table)} "
            f"WHERE {q(c.record_id)} = {self.dialect.placeholder(0)} "
            f"AND {q(c.version)} IN ({marks})"
        )
        return sql, (record_id, *versions)

    def delete_versions(self, table: str, record_id: int, versions: Iterable[int]) -> int:
        """Delete the given versions of one record from ``table``.

        Versions are deleted in chunks of at most ``in_list_limit``. With
        ``autocommit`` all chunks are committed together, or rolled back
        together when one fails.
        """
        ordered = sorted(set(versions))
        if not ordered:
            return 0

        deleted = 0
        try:
            for start in range(0, len(ordered), self.in_list_limit):
                chunk = ordered[start : start + self.in_list_limit]
                sql, params = self.build_delete(table, record_id, chunk)
                cursor = self.execute(sql, params)
                deleted += max(getattr(cursor, "rowcount", 0) or 0, 0)
            if self.autocommit:
                self.commit()
        except Exception:
            if self.autocommit:
                self.rollback()
            raise

        logger.debug("history.deleted", table=table, record_id=record_id, deleted=deleted)
        return deleted


__all__ = [
    "IN_LIST_LIMIT",
    "VersionColumns",
    "VersionRow",
    "HistoryQuery",
    "VersionHistoryRepository",
]
