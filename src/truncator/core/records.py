"""Record identity types.

A sweep operates on one logical record, identified by its type name and
id. Path-addressed records (pages in a site tree, documents in a folder
hierarchy) additionally carry an identity key: the ``(parent_id,
url_segment)`` pair that defines their current address. A change of that
pair across the version history is a move or rename.

Any object exposing the attributes of :class:`VersionedRecord` can be
swept; :class:`RecordRef` is the plain value type used when the caller
only has the identifiers at hand (a publish event, a queue message).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class IdentityKey:
    """The address-defining attributes of a path-addressed record."""

    parent_id: int
    url_segment: str

    def __str__(self) -> str:
        return f"{self.parent_id} - {self.url_segment}"


@runtime_checkable
class VersionedRecord(Protocol):
    """Capabilities a record must expose to be swept."""

    @property
    def type_name(self) -> str:
        ...

    @property
    def record_id(self) -> int:
        ...

    @property
    def identity_key(self) -> IdentityKey | None:
        """Current address, or ``None`` for records that are not path-addressed."""
        ...

    @property
    def has_stages(self) -> bool:
        """Whether the type distinguishes draft and published versions."""
        ...


@dataclass(frozen=True, slots=True)
class RecordRef:
    """Identifiers of a record as supplied by a publish event or batch job.

    Attributes:
        type_name: Record type (mapped class name).
        record_id: Record id shared by all of its version rows.
        url_segment: Current URL segment; set only for path-addressed types.
        parent_id: Current parent id; ``0`` means the root.
        has_stages: ``False`` for versioned types without a draft/live split.

    Examples:
        >>> page = RecordRef("Page", 12, url_segment="about-us", parent_id=3)
        >>> page.identity_key
        IdentityKey(parent_id=3, url_segment='about-us')
        >>> RecordRef("File", 7).path_addressed
        False
    """

    type_name: str
    record_id: int
    url_segment: str | None = None
    parent_id: int = 0
    has_stages: bool = True

    @property
    def identity_key(self) -> IdentityKey | None:
        if self.url_segment is None:
            return None
        return IdentityKey(parent_id=self.parent_id, url_segment=self.url_segment)

    @property
    def path_addressed(self) -> bool:
        return self.url_segment is not None

    @classmethod
    def from_record(cls, record: VersionedRecord) -> RecordRef:
        """Snapshot any :class:`VersionedRecord` into a ``RecordRef``."""
        if isinstance(record, RecordRef):
            return record
        key = record.identity_key
        return cls(
            type_name=record.type_name,
            record_id=record.record_id,
            url_segment=key.url_segment if key is not None else None,
            parent_id=key.parent_id if key is not None else 0,
            has_stages=record.has_stages,
        )


__all__ = [
    "IdentityKey",
    "VersionedRecord",
    "RecordRef",
]
