"""Deletion of selected versions across every version table of a record.

The same candidate set is applied to each resolved table, one bounded
``DELETE`` per table, related tables first and the base table last. A
failure stops at the failing table: deletions already done on earlier
tables stay done and are reported on the raised
:class:`~truncator.core.errors.DeletionError`. Since selection reads the
base table, which goes last, re-running the sweep reselects the same
versions and finishes the job.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from truncator.core.errors import DeletionError, TruncatorError
from truncator.core.logging import get_logger
from truncator.core.protocols import RowDeleter

logger = get_logger(__name__)


@dataclass
class DeletionResult:
    """Rows removed per table for one record."""

    record_id: int
    per_table: dict[str, int] = field(default_factory=dict)

    @property
    def deleted(self) -> int:
        return sum(self.per_table.values())


def delete_versions(
    deleter: RowDeleter,
    tables: Iterable[str],
    record_id: int,
    candidates: Iterable[int],
) -> DeletionResult:
    """Delete ``candidates`` of ``record_id`` from every table in ``tables``.

    Parameters
    ----------
    deleter
        Executes the per-table delete and returns its row count.
    tables
        Tables to prune, in deletion order.
    record_id
        Record whose versions are removed.
    candidates
        Version numbers to remove. Empty means no statement is issued.

    Returns
    -------
    DeletionResult
        Per-table counts; ``deleted`` is their sum.

    Raises
    ------
    DeletionError
        If a table's delete fails. Carries the partial count of the tables
        processed before it.
    """
    versions = frozenset(candidates)
    result = DeletionResult(record_id=record_id)
    if not versions:
        return result

    for table in tables:
        try:
            count = deleter.delete_versions(table, record_id, versions)
        except Exception as exc:
            logger.error(
                "deletion.failed",
                table=table,
                record_id=record_id,
                deleted=result.deleted,
                error=str(exc),
            )
            error = DeletionError(
                f"Deleting versions from {table} failed after {result.deleted} row(s): {exc}",
                deleted=result.deleted,
                per_table=result.per_table,
                cause=exc,
                retryable=not isinstance(exc, TruncatorError) or exc.retryable,
            )
            raise error.with_context(record_id=record_id, table=table) from exc

        result.per_table[table] = count
        logger.debug("deletion.table", table=table, record_id=record_id, deleted=count)

    return result


__all__ = [
    "DeletionResult",
    "delete_versions",
]
