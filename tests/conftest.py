"""
Shared pytest fixtures for truncator tests.

This module provides:
- In-memory SQLite databases with version history tables
- A ``VersionHistory`` builder to seed published and draft versions
- Resolver and truncator fixtures wired to those tables

Usage:
    def test_something(history, truncator, page):
        history.published(1, 2, 3)
        truncator.sweep(page, RetentionConfig(keep_versions=1))
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from truncator.core.history import VersionHistoryRepository
from truncator.core.records import RecordRef
from truncator.core.sweep import VersionTruncator
from truncator.core.tables import StaticTableResolver

BASE_TIME = datetime(2024, 1, 1, 9, 0, 0)

PAGE_ID = 12


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests under an ``orm`` directory as integration, the rest as unit."""
    for item in items:
        test_path = Path(item.path).relative_to(Path(__file__).parent)
        if "orm" in test_path.parts:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Database
# =============================================================================


SCHEMA = """
    CREATE TABLE site_tree_versions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        record_id INTEGER NOT NULL,
        version INTEGER NOT NULL,
        last_edited TEXT NOT NULL,
        was_published INTEGER NOT NULL DEFAULT 0,
        url_segment TEXT,
        parent_id INTEGER DEFAULT 0,
        UNIQUE (record_id, version)
    );
    CREATE TABLE page_versions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        record_id INTEGER NOT NULL,
        version INTEGER NOT NULL,
        content TEXT,
        UNIQUE (record_id, version)
    );
    CREATE TABLE file_versions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        record_id INTEGER NOT NULL,
        version INTEGER NOT NULL,
        last_edited TEXT NOT NULL,
        was_published INTEGER NOT NULL DEFAULT 0,
        UNIQUE (record_id, version)
    );
"""


@pytest.fixture()
def conn() -> Iterator[sqlite3.Connection]:
    """In-memory SQLite connection with version history tables."""
    c = sqlite3.connect(":memory:")
    c.executescript(SCHEMA)
    yield c
    c.close()


class VersionHistory:
    """Seeds version rows of one record into the site tree tables.

    Every version goes into ``site_tree_versions`` and ``page_versions``.
    ``last_edited`` grows with the version number unless given.
    """

    def __init__(self, conn: sqlite3.Connection, record_id: int = PAGE_ID) -> None:
        self.conn = conn
        self.record_id = record_id

    def add(
        self,
        version: int,
        *,
        published: bool,
        url_segment: str | None = "about-us",
        parent_id: int | None = 0,
        last_edited: datetime | None = None,
    ) -> None:
        edited = last_edited or BASE_TIME + timedelta(minutes=version)
        self.conn.execute(
            "INSERT INTO site_tree_versions "
            "(record_id, version, last_edited, was_published, url_segment, parent_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (self.record_id, version, edited.isoformat(sep=" "), int(published), url_segment, parent_id),
        )
        self.conn.execute(
            "INSERT INTO page_versions (record_id, version, content) VALUES (?, ?, ?)",
            (self.record_id, version, f"v{version}"),
        )
        self.conn.commit()

    def published(self, *versions: int, **kwargs) -> VersionHistory:
        for version in versions:
            self.add(version, published=True, **kwargs)
        return self

    def drafts(self, *versions: int, **kwargs) -> VersionHistory:
        for version in versions:
            self.add(version, published=False, **kwargs)
        return self

    def versions(self, table: str = "site_tree_versions") -> set[int]:
        rows = self.conn.execute(
            f"SELECT version FROM {table} WHERE record_id = ?", (self.record_id,)
        ).fetchall()
        return {row[0] for row in rows}


@pytest.fixture()
def history(conn: sqlite3.Connection) -> VersionHistory:
    return VersionHistory(conn)


@pytest.fixture()
def make_history(conn: sqlite3.Connection):
    """Builder for records other than the default page."""

    def _make(record_id: int) -> VersionHistory:
        return VersionHistory(conn, record_id)

    return _make


# =============================================================================
# Repository / resolver / truncator
# =============================================================================


@pytest.fixture()
def repo(conn: sqlite3.Connection) -> VersionHistoryRepository:
    return VersionHistoryRepository(conn)


@pytest.fixture()
def resolver() -> StaticTableResolver:
    return StaticTableResolver(
        {
            "Page": ["site_tree_versions", "page_versions"],
            "SiteTree": ["site_tree_versions"],
            "File": ["file_versions"],
        }
    )


@pytest.fixture()
def truncator(repo: VersionHistoryRepository, resolver: StaticTableResolver) -> VersionTruncator:
    return VersionTruncator(repo, resolver=resolver)


@pytest.fixture()
def page() -> RecordRef:
    """The record seeded by :class:`VersionHistory`, at its current identity."""
    return RecordRef("Page", PAGE_ID, url_segment="about-us", parent_id=0)
