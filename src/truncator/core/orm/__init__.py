"""SQLAlchemy 2.0 integration for the version truncator.

Manifesto:
    The core talks to the database through the ``Connection`` protocol
    and resolves tables through ``TableResolver``. This package connects
    both to SQLAlchemy: mapped classes supply the table inheritance chain,
    and sessions are bridged to ``Connection`` so sweeps run inside the
    host application's unit of work.

Modules
-------
base        TruncatorBase (declarative base) + version_table factory
session     Engine factory, session factory, SAConnectionBridge

Tags:
    orm, sqlalchemy, declarative, bridge

Doc-Types:
    package-overview, module-index
"""

from __future__ import annotations

from truncator.core.orm.base import TruncatorBase, version_table
from truncator.core.orm.session import (
    SAConnectionBridge,
    create_truncator_engine,
    dialect_for_session,
    session_factory,
)

__all__ = [
    "TruncatorBase",
    "version_table",
    "create_truncator_engine",
    "session_factory",
    "dialect_for_session",
    "SAConnectionBridge",
]
