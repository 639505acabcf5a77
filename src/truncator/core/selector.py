"""Candidate selection: which versions of a record may be deleted.

Manifesto:
    Selection is the only place where retention policy lives. It reads
    the base version table of a record and returns the version numbers
    that fall outside every retained window. It never deletes anything,
    so it can run as a dry run, and it never selects the newest published
    version while ``keep_versions`` is at least one.

Passes (independent, results unioned):

    1. Published retention   keep_versions > 0
       published rows [at the current identity key when keep_redirects]
       ORDER BY last_edited DESC, version DESC
       skip keep_versions, take delete_limit

    2. Move/rename collapsing   path-addressed, keep_redirects, keep_versions > 0
       protected = newest keep_versions published rows (any identity)
       walk published rows NOT at the current identity, newest first,
       excluding protected; first row per (parent_id, url_segment) stays,
       every later row at an already-seen key is a candidate

    3. Draft retention   keep_drafts >= 0
       unpublished rows ORDER BY last_edited DESC, version DESC
       skip keep_drafts, take delete_limit

Example:
    >>> candidates = select_candidates(
    ...     RecordRef("Page", 12, url_segment="about", parent_id=0),
    ...     RetentionConfig(keep_versions=3, keep_drafts=0, keep_redirects=True),
    ...     reader=repo,
    ...     table="site_tree_versions",
    ... )
    >>> sorted(candidates.versions)
    [1, 2, 3, 4, 5, 6, 7]

Tags:
    retention, selection, versioning, redirects
"""

from __future__ import annotations

from dataclasses import dataclass, field

from truncator.core.config import RetentionConfig
from truncator.core.errors import QueryError, TruncatorError
from truncator.core.history import HistoryQuery, VersionRow
from truncator.core.logging import get_logger
from truncator.core.protocols import VersionHistoryReader
from truncator.core.records import IdentityKey, RecordRef, VersionedRecord

logger = get_logger(__name__)


@dataclass(frozen=True)
class CandidateSet:
    """Deletion candidates of one record, broken down by the pass that chose them."""

    published: frozenset[int] = field(default_factory=frozenset)
    redirects: frozenset[int] = field(default_factory=frozenset)
    drafts: frozenset[int] = field(default_factory=frozenset)

    @property
    def versions(self) -> frozenset[int]:
        return self.published | self.redirects | self.drafts

    def __len__(self) -> int:
        return len(self.versions)

    def __bool__(self) -> bool:
        return bool(self.published or self.redirects or self.drafts)

    def to_dict(self) -> dict[str, list[int]]:
        return {
            "published": sorted(self.published),
            "redirects": sorted(self.redirects),
            "drafts": sorted(self.drafts),
        }


def _read(
    reader: VersionHistoryReader, table: str, query: HistoryQuery, record: RecordRef
) -> list[VersionRow]:
    try:
        return reader.fetch_versions(table, query)
    except TruncatorError:
        raise
    except Exception as exc:
        raise QueryError(
            f"Reading version history from {table} failed: {exc}", cause=exc
        ).with_context(type_name=record.type_name, record_id=record.record_id, table=table) from exc


def select_published(
    record: RecordRef,
    config: RetentionConfig,
    reader: VersionHistoryReader,
    table: str,
) -> frozenset[int]:
    """Published versions beyond the ``keep_versions`` window."""
    if not config.published_enabled:
        return frozenset()

    identity = None
    if record.path_addressed and config.keep_redirects:
        identity = record.identity_key

    rows = _read(
        reader,
        table,
        HistoryQuery(
            record_id=record.record_id,
            published=True,
            identity_equals=identity,
            limit=config.delete_limit,
            offset=config.keep_versions,
        ),
        record,
    )
    return frozenset(row.version for row in rows)


def select_redirects(
    record: RecordRef,
    config: RetentionConfig,
    reader: VersionHistoryReader,
    table: str,
) -> frozenset[int]:
    """Surplus published versions at each former identity key.

    One version per prior ``(parent_id, url_segment)`` survives as a
    redirect anchor; the newest ``keep_versions`` published versions are
    never touched here, whatever their identity.

    This pass is not capped by ``delete_limit``: every surplus version at
    a former identity is selected in one sweep. The deleter splits long
    version lists into several statements.
    """
    current = record.identity_key
    if current is None or not config.keep_redirects or not config.published_enabled:
        return frozenset()

    protected = _read(
        reader,
        table,
        HistoryQuery(
            record_id=record.record_id,
            published=True,
            limit=config.keep_versions,
        ),
        record,
    )

    moved = _read(
        reader,
        table,
        HistoryQuery(
            record_id=record.record_id,
            published=True,
            identity_differs=current,
            exclude_versions=frozenset(row.version for row in protected),
        ),
        record,
    )

    seen: set[IdentityKey | None] = set()
    surplus = set()
    for row in moved:
        key = row.identity_key
        if key in seen:
            surplus.add(row.version)
        else:
            seen.add(key)

    return frozenset(surplus)


def select_drafts(
    record: RecordRef,
    config: RetentionConfig,
    reader: VersionHistoryReader,
    table: str,
) -> frozenset[int]:
    """Draft versions beyond the ``keep_drafts`` window."""
    if not config.drafts_enabled:
        return frozenset()

    rows = _read(
        reader,
        table,
        HistoryQuery(
            record_id=record.record_id,
            published=False,
            limit=config.delete_limit,
            offset=config.keep_drafts,
        ),
        record,
    )
    return frozenset(row.version for row in rows)


def select_candidates(
    record: VersionedRecord,
    config: RetentionConfig,
    reader: VersionHistoryReader,
    table: str,
) -> CandidateSet:
    """Run every enabled pass against ``table`` and collect the candidates.

    Args:
        record: Record being swept.
        config: Effective retention settings for the record's type.
        reader: Version history source.
        table: Base version table of the record type.

    Raises:
        QueryError: If reading the history fails. Nothing has been deleted.
    """
    ref = RecordRef.from_record(record)
    if not ref.has_stages:
        logger.debug("selector.unstaged", type_name=ref.type_name, record_id=ref.record_id)
        return CandidateSet()

    candidates = CandidateSet(
        published=select_published(ref, config, reader, table),
        redirects=select_redirects(ref, config, reader, table),
        drafts=select_drafts(ref, config, reader, table),
    )

    logger.debug(
        "selector.done",
        type_name=ref.type_name,
        record_id=ref.record_id,
        table=table,
        **{name: len(versions) for name, versions in candidates.to_dict().items()},
    )
    return candidates


__all__ = [
    "CandidateSet",
    "select_candidates",
    "select_published",
    "select_redirects",
    "select_drafts",
]
