"""Tests for version history reads and deletes."""

from __future__ import annotations

import sqlite3
from datetime import datetime

import pytest

from truncator.core.dialect import OracleDialect, PostgreSQLDialect
from truncator.core.errors import InvalidIdentifierError
from truncator.core.history import (
    IN_LIST_LIMIT,
    HistoryQuery,
    VersionColumns,
    VersionHistoryRepository,
    VersionRow,
)
from truncator.core.protocols import RowDeleter, VersionHistoryReader
from truncator.core.records import IdentityKey

TABLE = "site_tree_versions"


class TestValueTypes:
    def test_row_identity_key(self):
        row = VersionRow(version=3, last_edited=None, was_published=True, url_segment="a", parent_id=None)
        assert row.identity_key == IdentityKey(parent_id=0, url_segment="a")

    def test_row_without_segment(self):
        assert VersionRow(version=3, last_edited=None, was_published=True).identity_key is None

    def test_offset_requires_limit(self):
        with pytest.raises(ValueError, match="offset requires a limit"):
            HistoryQuery(record_id=1, offset=5)

    @pytest.mark.parametrize("kwargs", [{"limit": -1}, {"limit": 1, "offset": -1}])
    def test_negative_bounds(self, kwargs):
        with pytest.raises(ValueError):
            HistoryQuery(record_id=1, **kwargs)

    def test_reads_identity(self):
        key = IdentityKey(0, "a")
        assert HistoryQuery(record_id=1).reads_identity is False
        assert HistoryQuery(record_id=1, identity_equals=key).reads_identity is True
        assert HistoryQuery(record_id=1, identity_differs=key).reads_identity is True
        assert HistoryQuery(record_id=1, include_identity=True).reads_identity is True

    def test_columns_validated(self):
        with pytest.raises(InvalidIdentifierError):
            VersionColumns(version="version; --")


class TestBuildSelect:
    def test_minimal(self, repo):
        sql, params = repo.build_select(TABLE, HistoryQuery(record_id=12))
        assert sql == (
            'SELECT "id", "version", "last_edited", "was_published" '
            'FROM "site_tree_versions" WHERE "record_id" = ? '
            'ORDER BY "last_edited" DESC, "version" DESC'
        )
        assert params == (12,)

    def test_published_window(self, repo):
        sql, params = repo.build_select(
            TABLE, HistoryQuery(record_id=12, published=True, limit=100, offset=10)
        )
        assert '"was_published" = 1' in sql
        assert sql.endswith("LIMIT ? OFFSET ?")
        assert params == (12, 100, 10)

    def test_drafts(self, repo):
        sql, _ = repo.build_select(TABLE, HistoryQuery(record_id=12, published=False))
        assert '"was_published" = 0' in sql

    def test_identity_equals(self, repo):
        sql, params = repo.build_select(
            TABLE, HistoryQuery(record_id=12, identity_equals=IdentityKey(3, "about"))
        )
        assert '"url_segment" = ? AND COALESCE("parent_id", 0) = ?' in sql
        assert '"url_segment", "parent_id" FROM' in sql
        assert params == (12, "about", 3)

    def test_identity_differs_and_exclusions(self, repo):
        sql, params = repo.build_select(
            TABLE,
            HistoryQuery(
                record_id=12,
                identity_differs=IdentityKey(0, "about"),
                exclude_versions=frozenset({9, 7}),
            ),
        )
        assert '("url_segment" <> ? OR COALESCE("parent_id", 0) <> ?)' in sql
        assert '"version" NOT IN (?, ?)' in sql
        assert params == (12, "about", 0, 7, 9)

    def test_postgresql(self, conn):
        repo = VersionHistoryRepository(conn, PostgreSQLDialect())
        sql, params = repo.build_select(
            TABLE, HistoryQuery(record_id=12, published=True, limit=5, offset=2)
        )
        assert '"record_id" = %s' in sql
        assert '"was_published" = TRUE' in sql
        assert sql.endswith("LIMIT %s OFFSET %s")
        assert params == (12, 5, 2)

    def test_oracle_binds_in_order(self, conn):
        repo = VersionHistoryRepository(conn, OracleDialect())
        sql, params = repo.build_select(
            TABLE,
            HistoryQuery(
                record_id=12,
                identity_equals=IdentityKey(0, "about"),
                limit=5,
                offset=2,
            ),
        )
        assert '"record_id" = :1' in sql
        assert '"url_segment" = :2 AND COALESCE("parent_id", 0) = :3' in sql
        assert sql.endswith("OFFSET :4 ROWS FETCH NEXT :5 ROWS ONLY")
        assert params == (12, "about", 0, 2, 5)

    def test_custom_columns(self, conn):
        repo = VersionHistoryRepository(conn, columns=VersionColumns(record_id="RecordID"))
        sql, _ = repo.build_select(TABLE, HistoryQuery(record_id=1))
        assert '"RecordID" = ?' in sql

    def test_invalid_table(self, repo):
        with pytest.raises(InvalidIdentifierError):
            repo.build_select("pages; DROP TABLE x", HistoryQuery(record_id=1))


class TestFetchVersions:
    def test_protocols(self, repo):
        assert isinstance(repo, VersionHistoryReader)
        assert isinstance(repo, RowDeleter)

    def test_newest_first(self, repo, history):
        history.published(1, 2).drafts(3)
        rows = repo.fetch_versions(TABLE, HistoryQuery(record_id=12))
        assert [row.version for row in rows] == [3, 2, 1]
        assert [row.was_published for row in rows] == [False, True, True]

    def test_same_timestamp_orders_by_version(self, repo, history):
        stamp = datetime(2024, 5, 1, 12, 0)
        history.add(4, published=True, last_edited=stamp)
        history.add(6, published=True, last_edited=stamp)
        history.add(5, published=True, last_edited=stamp)
        rows = repo.fetch_versions(TABLE, HistoryQuery(record_id=12))
        assert [row.version for row in rows] == [6, 5, 4]

    def test_window(self, repo, history):
        history.published(*range(1, 11))
        rows = repo.fetch_versions(
            TABLE, HistoryQuery(record_id=12, published=True, limit=3, offset=2)
        )
        assert [row.version for row in rows] == [8, 7, 6]

    def test_zero_limit_reads_nothing(self, repo, history):
        history.published(1, 2)
        assert repo.fetch_versions(TABLE, HistoryQuery(record_id=12, limit=0)) == []

    def test_identity_columns(self, repo, history):
        history.published(1, url_segment="old", parent_id=4)
        (row,) = repo.fetch_versions(TABLE, HistoryQuery(record_id=12, include_identity=True))
        assert row.identity_key == IdentityKey(4, "old")

    def test_identity_not_read_by_default(self, repo, history):
        history.published(1)
        (row,) = repo.fetch_versions(TABLE, HistoryQuery(record_id=12))
        assert row.url_segment is None

    def test_identity_differs(self, repo, history):
        history.published(1, url_segment="old")
        history.published(2, url_segment="about-us", parent_id=3)
        history.published(3)
        rows = repo.fetch_versions(
            TABLE, HistoryQuery(record_id=12, identity_differs=IdentityKey(0, "about-us"))
        )
        assert [row.version for row in rows] == [2, 1]

    def test_other_records_ignored(self, repo, history, make_history):
        history.published(1)
        make_history(99).published(1, 2)
        rows = repo.fetch_versions(TABLE, HistoryQuery(record_id=12))
        assert [row.version for row in rows] == [1]

    def test_missing_table_propagates(self, repo):
        with pytest.raises(sqlite3.OperationalError):
            repo.fetch_versions("missing_versions", HistoryQuery(record_id=1))


class TestDeleteVersions:
    def test_build_delete(self, repo):
        sql, params = repo.build_delete("page_versions", 12, [1, 2, 3])
        assert sql == (
            'DELETE FROM "page_versions" WHERE "record_id" = ? AND "version" IN (?, ?, ?)'
        )
        assert params == (12, 1, 2, 3)

    def test_deletes_exact_versions(self, repo, history):
        history.published(1, 2, 3, 4)
        assert repo.delete_versions(TABLE, 12, {1, 3}) == 2
        assert history.versions() == {2, 4}

    def test_absent_versions_count_zero(self, repo, history):
        history.published(1)
        assert repo.delete_versions(TABLE, 12, [7, 8]) == 0
        assert history.versions() == {1}

    def test_empty_issues_no_statement(self, repo):
        assert repo.delete_versions("missing_versions", 12, []) == 0

    def test_other_records_untouched(self, repo, history, make_history):
        history.published(1, 2)
        other = make_history(99).published(1, 2)
        repo.delete_versions(TABLE, 12, [1, 2])
        assert other.versions() == {1, 2}

    def test_autocommit(self, repo, history, conn):
        history.published(1, 2)
        repo.delete_versions(TABLE, 12, [1])
        conn.rollback()
        assert history.versions() == {2}

    def test_without_autocommit_caller_owns_transaction(self, conn, history):
        history.published(1, 2)
        repo = VersionHistoryRepository(conn, autocommit=False)
        repo.delete_versions(TABLE, 12, [1])
        conn.rollback()
        assert history.versions() == {1, 2}

    def test_failure_propagates(self, repo):
        with pytest.raises(sqlite3.OperationalError):
            repo.delete_versions("missing_versions", 12, [1])

    def test_long_lists_split_into_chunks(self, conn, history):
        history.published(*range(1, 8))
        repo = VersionHistoryRepository(conn, in_list_limit=3)
        statements = []
        conn.set_trace_callback(statements.append)
        try:
            deleted = repo.delete_versions(TABLE, 12, range(1, 7))
        finally:
            conn.set_trace_callback(None)
        assert deleted == 6
        assert history.versions() == {7}
        assert len([sql for sql in statements if sql.lstrip().upper().startswith("DELETE")]) == 2

    def test_default_chunk_size(self, repo):
        assert repo.in_list_limit == IN_LIST_LIMIT == 1000

    def test_chunk_size_must_be_positive(self, conn):
        with pytest.raises(ValueError, match="in_list_limit"):
            VersionHistoryRepository(conn, in_list_limit=0)


class TestNullParent:
    """Rows with a NULL ``parent_id`` sit at the root, like ``parent_id = 0``."""

    def test_identity_equals_matches_null(self, repo, history):
        history.published(1, 2, parent_id=None)
        rows = repo.fetch_versions(
            TABLE, HistoryQuery(record_id=12, identity_equals=IdentityKey(0, "about-us"))
        )
        assert [row.version for row in rows] == [2, 1]
        assert rows[0].identity_key == IdentityKey(0, "about-us")

    def test_identity_differs_skips_null_root(self, repo, history):
        history.published(1, parent_id=None)
        history.published(2, url_segment="old", parent_id=None)
        history.published(3, parent_id=5)
        rows = repo.fetch_versions(
            TABLE, HistoryQuery(record_id=12, identity_differs=IdentityKey(0, "about-us"))
        )
        assert [row.version for row in rows] == [3, 2]
