"""Declarative base and version table factory.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map``
that maps Python built-in types to portable SA column types. Record types
whose version tables are resolved through
:class:`~truncator.core.tables.MappedTableResolver` are declared on
:class:`TruncatorBase` (or any other declarative base).

``version_table`` builds the matching ``<table>_versions`` history table:
one row per ``(record_id, version)`` with ``last_edited`` and
``was_published``, plus ``url_segment`` / ``parent_id`` for path-addressed
types.
"""

from __future__ import annotations

import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase

from truncator.core.history import VersionColumns


class TruncatorBase(DeclarativeBase):
    """Shared declarative base for versioned record types.

    * ``str``   → ``Text``
    * ``int``   → ``Integer``
    * ``bool``  → ``Boolean``
    * ``datetime.datetime`` → ``DateTime``
    """

    type_annotation_map = {
        str: Text,
        int: Integer,
        bool: Boolean,
        datetime.datetime: DateTime,
    }


def version_table(
    name: str,
    metadata: MetaData,
    *,
    path_addressed: bool = False,
    columns: VersionColumns | None = None,
) -> Table:
    """Define a version history table on ``metadata``.

    Example::

        version_table("site_tree_versions", TruncatorBase.metadata, path_addressed=True)
        TruncatorBase.metadata.create_all(engine)
    """
    c = columns or VersionColumns()
    cols: list = [
        Column(c.id, Integer, primary_key=True, autoincrement=True),
        Column(c.record_id, Integer, nullable=False),
        Column(c.version, Integer, nullable=False),
        Column(c.last_edited, DateTime, nullable=False),
        Column(c.was_published, Boolean, nullable=False, default=False),
    ]
    if path_addressed:
        cols += [
            Column(c.url_segment, Text),
            Column(c.parent_id, Integer, nullable=False, default=0),
        ]

    return Table(
        name,
        metadata,
        *cols,
        UniqueConstraint(c.record_id, c.version, name=f"uq_{name}_record_version"),
        Index(f"ix_{name}_history", c.record_id, c.was_published, c.last_edited),
    )
