"""
Tests for MappedTableResolver and sweeps running inside a SQLAlchemy session.

The models mirror a typical site tree: ``SiteTree`` at the root, joined
subclasses ``Page`` and ``RedirectorPage``, and ``VirtualPage`` sharing
``Page``'s table through single-table inheritance.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy import ForeignKey, insert, select
from sqlalchemy.orm import Mapped, mapped_column

from truncator.core.config import RetentionConfig, TruncatorSettings
from truncator.core.errors import TableResolutionError
from truncator.core.orm import TruncatorBase, create_truncator_engine, session_factory, version_table
from truncator.core.protocols import TableResolver
from truncator.core.records import RecordRef
from truncator.core.sweep import VersionTruncator
from truncator.core.tables import MappedTableResolver, VersionTables


class SiteTree(TruncatorBase):
    __tablename__ = "site_tree"

    id: Mapped[int] = mapped_column(primary_key=True)
    class_name: Mapped[str]
    url_segment: Mapped[str]
    parent_id: Mapped[int] = mapped_column(default=0)

    __mapper_args__ = {"polymorphic_on": "class_name", "polymorphic_identity": "SiteTree"}


class Page(SiteTree):
    __tablename__ = "page"

    id: Mapped[int] = mapped_column(ForeignKey("site_tree.id"), primary_key=True)
    content: Mapped[str | None]

    __mapper_args__ = {"polymorphic_identity": "Page"}


class RedirectorPage(Page):
    __tablename__ = "redirector_page"

    id: Mapped[int] = mapped_column(ForeignKey("page.id"), primary_key=True)
    redirect_url: Mapped[str | None]

    __mapper_args__ = {"polymorphic_identity": "RedirectorPage"}


class VirtualPage(Page):
    __mapper_args__ = {"polymorphic_identity": "VirtualPage"}


SITE_TREE_VERSIONS = version_table("site_tree_versions", TruncatorBase.metadata, path_addressed=True)
PAGE_VERSIONS = version_table("page_versions", TruncatorBase.metadata)
REDIRECTOR_PAGE_VERSIONS = version_table("redirector_page_versions", TruncatorBase.metadata)


class NotMapped:
    pass


# ── Resolution ───────────────────────────────────────────────────────


class TestMappedTableResolver:
    def test_protocol(self):
        assert isinstance(MappedTableResolver(TruncatorBase), TableResolver)

    def test_root_type(self):
        tables = MappedTableResolver(TruncatorBase).resolve_version_tables("SiteTree")
        assert tables == VersionTables("site_tree_versions")

    def test_joined_chain_root_first(self):
        tables = MappedTableResolver(TruncatorBase).resolve_version_tables("RedirectorPage")
        assert tables.names == (
            "site_tree_versions",
            "page_versions",
            "redirector_page_versions",
        )
        assert tables.deletion_order[-1] == "site_tree_versions"

    def test_single_table_subclass_shares_parent_table(self):
        tables = MappedTableResolver(TruncatorBase).resolve_version_tables("VirtualPage")
        assert tables.names == ("site_tree_versions", "page_versions")

    def test_custom_suffix(self):
        resolver = MappedTableResolver(TruncatorBase, suffix="_history")
        assert resolver.resolve_version_tables("Page").names == ("site_tree_history", "page_history")

    def test_explicit_classes(self):
        resolver = MappedTableResolver(classes={"Article": Page})
        assert resolver.resolve_version_tables("Article").base == "site_tree_versions"

    def test_unknown_name(self):
        with pytest.raises(TableResolutionError) as exc_info:
            MappedTableResolver(TruncatorBase).resolve_version_tables("Widget")
        assert exc_info.value.type_name == "Widget"

    def test_unmapped_class(self):
        resolver = MappedTableResolver(classes={"NotMapped": NotMapped})
        with pytest.raises(TableResolutionError, match="not a mapped class"):
            resolver.resolve_version_tables("NotMapped")

    def test_no_base(self):
        with pytest.raises(TableResolutionError):
            MappedTableResolver().resolve_version_tables("Page")


# ── Sweeps in a session ──────────────────────────────────────────────

BASE_TIME = datetime(2024, 1, 1, 9, 0)


@pytest.fixture()
def session():
    engine = create_truncator_engine("sqlite://")
    TruncatorBase.metadata.create_all(engine)
    with session_factory(engine)() as s:
        yield s
    engine.dispose()


def seed(session, record_id, versions, *, url_segment="about", published=True):
    rows = [
        {
            "record_id": record_id,
            "version": v,
            "last_edited": BASE_TIME + timedelta(minutes=v),
            "was_published": published,
            "url_segment": url_segment,
            "parent_id": 0,
        }
        for v in versions
    ]
    session.execute(insert(SITE_TREE_VERSIONS), rows)
    session.execute(
        insert(PAGE_VERSIONS),
        [{k: row[k] for k in ("record_id", "version", "last_edited", "was_published")} for row in rows],
    )
    session.commit()


def versions(session, table, record_id=1):
    return set(
        session.execute(select(table.c.version).where(table.c.record_id == record_id)).scalars()
    )


@pytest.fixture()
def truncator(session):
    return VersionTruncator.from_session(
        session, TruncatorBase, settings=TruncatorSettings(_env_file=None)
    )


class TestSessionSweep:
    def test_prunes_every_table(self, session, truncator):
        seed(session, 1, range(1, 8))
        record = RecordRef("Page", 1, url_segment="about")

        result = truncator.sweep(record, RetentionConfig(keep_versions=2))
        session.commit()

        assert result.per_table == {"page_versions": 5, "site_tree_versions": 5}
        assert versions(session, SITE_TREE_VERSIONS) == {6, 7}
        assert versions(session, PAGE_VERSIONS) == {6, 7}

    def test_caller_owns_transaction(self, session, truncator):
        seed(session, 1, range(1, 6))
        truncator.sweep(RecordRef("Page", 1, url_segment="about"), RetentionConfig(keep_versions=1))
        session.rollback()
        assert versions(session, SITE_TREE_VERSIONS) == {1, 2, 3, 4, 5}

    def test_redirect_anchors(self, session, truncator):
        seed(session, 1, range(1, 4), url_segment="old")
        seed(session, 1, range(4, 7))
        config = RetentionConfig(keep_versions=1, keep_redirects=True)

        truncator.sweep(RecordRef("Page", 1, url_segment="about"), config)
        session.commit()

        assert versions(session, SITE_TREE_VERSIONS) == {3, 6}

    def test_drafts(self, session, truncator):
        seed(session, 1, range(1, 3))
        seed(session, 1, range(3, 6), published=False)

        truncator.sweep(RecordRef("Page", 1, url_segment="about"), RetentionConfig(keep_drafts=1))
        session.commit()

        assert versions(session, SITE_TREE_VERSIONS) == {1, 2, 5}

    def test_unknown_type(self, session, truncator):
        seed(session, 1, range(1, 4))
        with pytest.raises(TableResolutionError):
            truncator.sweep(RecordRef("Widget", 1), RetentionConfig(keep_versions=1))
        assert versions(session, SITE_TREE_VERSIONS) == {1, 2, 3}
