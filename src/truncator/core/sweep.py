"""
Sweep orchestration: select, resolve, delete.

Manifesto:
    A sweep prunes the version history of exactly one record and keeps
    no state of its own: everything it needs is the record, the effective
    :class:`~truncator.core.config.RetentionConfig` and the capabilities
    to read history, resolve tables and delete rows. Sweeps on different
    records are independent; sweeps on the same record must be serialized
    by the caller (per-record lock or transaction).

Architecture:
    ::

        trigger (after publish / scheduled batch)
              │
              ▼
        ┌───────────┐   resolve_version_tables(type_name)
        │ SELECTING │── select_candidates(record, config, reader, base)
        └─────┬─────┘
              │ empty candidate set ──────────────────────┐
              ▼                                           │
        ┌───────────┐                                     │
        │ DELETING  │── delete_versions(deleter,          │
        └─────┬─────┘     related..., base, candidates)   │
              ▼                                           ▼
        ┌───────────┐                               ┌─────────┐
        │   DONE    │                               │  DONE   │ deleted = 0
        └───────────┘                               └─────────┘

Features:
    - **sweep():** Full pipeline for one record
    - **on_after_publish():** Publish hook; no-op while keep_versions is off
    - **preview():** Selection only (dry run)
    - **sweep_many():** Scheduled batch, failures collected per record

Guardrails:
    ❌ DON'T: Retry inside a sweep
    ✅ DO: Let the next sweep reselect whatever survived a failure

    ❌ DON'T: Delete before every table is resolved
    ✅ DO: Resolve tables first; a schema error aborts with nothing deleted

Tags:
    retention, orchestration, sweep, versioning

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from truncator.core.config import RetentionConfig, TruncatorSettings, get_settings
from truncator.core.errors import DeletionError, TruncatorError
from truncator.core.executor import delete_versions
from truncator.core.history import VersionColumns, VersionHistoryRepository
from truncator.core.logging import LogContext, get_logger
from truncator.core.protocols import RowDeleter, TableResolver, VersionHistoryReader
from truncator.core.records import RecordRef, VersionedRecord
from truncator.core.selector import CandidateSet, select_candidates
from truncator.core.tables import MappedTableResolver

logger = get_logger(__name__)


class SweepState(str, Enum):
    """Progress of a sweep; ``DONE`` once it returns."""

    SELECTING = "selecting"
    DELETING = "deleting"
    DONE = "done"


@dataclass
class SweepResult:
    """Outcome of one sweep."""

    type_name: str
    record_id: int
    state: SweepState = SweepState.SELECTING
    candidates: CandidateSet = field(default_factory=CandidateSet)
    per_table: dict[str, int] = field(default_factory=dict)
    skipped: str | None = None

    @property
    def deleted(self) -> int:
        return sum(self.per_table.values())

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type_name": self.type_name,
            "record_id": self.record_id,
            "state": self.state.value,
            "deleted": self.deleted,
            "candidates": self.candidates.to_dict(),
            "per_table": dict(self.per_table),
        }
        if self.skipped:
            result["skipped"] = self.skipped
        return result


@dataclass
class BatchReport:
    """Aggregated results of a scheduled sweep over many records."""

    results: list[SweepResult] = field(default_factory=list)
    errors: dict[tuple[str, int], TruncatorError] = field(default_factory=dict)

    @property
    def total_deleted(self) -> int:
        deleted = sum(result.deleted for result in self.results)
        return deleted + sum(
            error.deleted for error in self.errors.values() if isinstance(error, DeletionError)
        )

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


class VersionTruncator:
    """Prunes version history according to a :class:`RetentionConfig`.

    Parameters:
        reader: Reads version rows (usually a ``VersionHistoryRepository``).
        deleter: Deletes version rows; defaults to ``reader`` when it can.
        resolver: Maps record types to their version tables.

    Example::

        repo = VersionHistoryRepository(conn)
        truncator = VersionTruncator(repo, resolver=StaticTableResolver(
            {"Page": ["site_tree_versions", "page_versions"]}
        ))
        result = truncator.on_after_publish(
            RecordRef("Page", 12, url_segment="about", parent_id=0),
            settings.retention_for("Page"),
        )
        result.deleted
    """

    def __init__(
        self,
        reader: VersionHistoryReader,
        *,
        resolver: TableResolver,
        deleter: RowDeleter | None = None,
    ) -> None:
        if deleter is None:
            if not isinstance(reader, RowDeleter):
                raise TypeError("reader does not implement delete_versions; pass deleter=")
            deleter = reader
        self.reader = reader
        self.deleter = deleter
        self.resolver = resolver

    @classmethod
    def from_session(
        cls,
        session: Any,
        base: Any,
        *,
        settings: TruncatorSettings | None = None,
        columns: VersionColumns | None = None,
    ) -> VersionTruncator:
        """Build a truncator working inside a SQLAlchemy session.

        Version tables are resolved from the mapped classes of ``base``
        using ``settings.version_table_suffix``. Deletes are not committed;
        the session's owner commits or rolls back.
        """
        settings = settings or get_settings()
        repo = VersionHistoryRepository.from_session(session, columns=columns, autocommit=False)
        resolver = MappedTableResolver(base, suffix=settings.version_table_suffix)
        return cls(repo, resolver=resolver)

    def preview(self, record: VersionedRecord, config: RetentionConfig) -> CandidateSet:
        """Select deletion candidates without deleting anything."""
        ref = RecordRef.from_record(record)
        tables = self.resolver.resolve_version_tables(ref.type_name)
        return select_candidates(ref, config, self.reader, tables.base)

    def sweep(self, record: VersionedRecord, config: RetentionConfig) -> SweepResult:
        """Run one full sweep for ``record``.

        Raises:
            TableResolutionError: Unknown record type; nothing deleted.
            QueryError: History read failed; nothing deleted.
            DeletionError: A table delete failed; earlier tables keep their
                deletions (see ``DeletionError.deleted``).
        """
        ref = RecordRef.from_record(record)
        result = SweepResult(type_name=ref.type_name, record_id=ref.record_id)

        with LogContext(type_name=ref.type_name, record_id=ref.record_id):
            logger.debug("sweep.started", config=config.model_dump())

            try:
                tables = self.resolver.resolve_version_tables(ref.type_name)
            except TruncatorError as exc:
                exc.with_context(type_name=ref.type_name, record_id=ref.record_id)
                logger.error("sweep.unresolved", error=exc.message)
                raise

            result.candidates = select_candidates(ref, config, self.reader, tables.base)
            if not result.candidates:
                result.state = SweepState.DONE
                logger.debug("sweep.nothing_to_do")
                return result

            logger.info(
                "sweep.selected",
                candidates=len(result.candidates),
                tables=list(tables),
            )

            result.state = SweepState.DELETING
            deletion = delete_versions(
                self.deleter, tables.deletion_order, ref.record_id, result.candidates.versions
            )
            result.per_table = deletion.per_table
            result.state = SweepState.DONE

            logger.info("sweep.deleted", deleted=result.deleted, per_table=result.per_table)
            return result

    def on_after_publish(self, record: VersionedRecord, config: RetentionConfig) -> SweepResult:
        """Publish hook: sweep unless published retention is switched off.

        With ``keep_versions`` disabled the record's history is left alone
        entirely, drafts included.
        """
        if not config.published_enabled:
            ref = RecordRef.from_record(record)
            logger.debug(
                "sweep.skipped",
                type_name=ref.type_name,
                record_id=ref.record_id,
                reason="keep_versions disabled",
            )
            return SweepResult(
                type_name=ref.type_name,
                record_id=ref.record_id,
                state=SweepState.DONE,
                skipped="keep_versions disabled",
            )
        return self.sweep(record, config)

    def sweep_many(
        self,
        records: Iterable[VersionedRecord],
        config_for: Callable[[str], RetentionConfig],
    ) -> BatchReport:
        """Sweep records one at a time, collecting failures per record.

        ``config_for`` maps a type name to its effective config, e.g.
        ``get_settings().retention_for``.
        """
        report = BatchReport()
        for record in records:
            ref = RecordRef.from_record(record)
            try:
                report.results.append(self.sweep(ref, config_for(ref.type_name)))
            except TruncatorError as exc:
                report.errors[(ref.type_name, ref.record_id)] = exc
                logger.error(
                    "sweep.failed",
                    type_name=ref.type_name,
                    record_id=ref.record_id,
                    **exc.to_dict(),
                )

        logger.info(
            "sweep.batch_done",
            records=len(report.results) + len(report.errors),
            failed=len(report.errors),
            deleted=report.total_deleted,
        )
        return report


__all__ = [
    "SweepState",
    "SweepResult",
    "BatchReport",
    "VersionTruncator",
]
