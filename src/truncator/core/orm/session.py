"""SQLAlchemy engine factory and Connection bridge.

Manifesto:
    Host applications usually already hold a SQLAlchemy ``Session``. A
    sweep must be able to run inside that session's transaction, so
    ``SAConnectionBridge`` wraps it to satisfy the
    ``truncator.core.protocols.Connection`` protocol and the history
    repository runs unchanged on top of it.

This module provides:

* ``create_truncator_engine`` -- Create a SA engine from a URL.
* ``session_factory``         -- ``sessionmaker`` with ``expire_on_commit=False``.
* ``SAConnectionBridge``      -- ``Session`` → ``Connection`` adapter.
* ``dialect_for_session``     -- Pick the SQL dialect from the session's bind.

Tags:
    orm, sqlalchemy, session, engine, bridge, connection

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from truncator.core.dialect import Dialect, SQLiteDialect, get_dialect


def create_truncator_engine(
    url: str = "sqlite:///versions.db",
    *,
    echo: bool = False,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    Parameters
    ----------
    url:
        Database URL (``sqlite:///…``, ``postgresql://…``, etc.)
    echo:
        If ``True``, log all SQL to stdout.
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """
    if not url.startswith("sqlite"):
        return _sa_create_engine(url, echo=echo, **kwargs)

    kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = _sa_create_engine(url, echo=echo, **kwargs)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a ``sessionmaker`` bound to *engine* with ``expire_on_commit=False``."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def dialect_for_session(session: Session) -> Dialect:
    """SQL dialect matching the session's bind, SQLite when unknown."""
    bind = session.get_bind()
    name = getattr(getattr(bind, "dialect", None), "name", None)
    if name is None:
        return SQLiteDialect()
    try:
        return get_dialect(name)
    except ValueError:
        return SQLiteDialect()


class SAConnectionBridge:
    """Adapter that makes a SQLAlchemy ``Session`` look like ``Connection``.

    Positional placeholders produced by the dialect (``?``, ``%s``,
    ``:1``) are rewritten into SQLAlchemy named binds (``:p0``, ``:p1``)
    before execution. Quoted identifiers are left untouched.

    Implements: ``execute``, ``fetchall``, ``commit``, ``rollback`` plus
    ``rowcount`` and ``description`` of the last statement.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._last_result: Any = None

    @staticmethod
    def _rewrite(sql: str) -> str:
        out: list[str] = []
        idx = 0
        quote: str | None = None
        i = 0
        while i < len(sql):
            ch = sql[i]
            if quote is not None:
                out.append(ch)
                if ch == quote:
                    quote = None
            elif ch in ("'", '"', "`"):
                quote = ch
                out.append(ch)
            elif ch == "?":
                out.append(f":p{idx}")
                idx += 1
            elif ch == "%" and sql.startswith("%s", i):
                out.append(f":p{idx}")
                idx += 1
                i += 1
            elif ch == ":" and i + 1 < len(sql) and sql[i + 1].isdigit():
                j = i + 1
                while j < len(sql) and sql[j].isdigit():
                    j += 1
                out.append(f":p{idx}")
                idx += 1
                i = j - 1
            else:
                out.append(ch)
            i += 1
        return "".join(out)

    def execute(self, sql: str, parameters: Sequence[Any] | None = None) -> SAConnectionBridge:  # type: ignore[override]
        if parameters:
            mapping = {f"p{i}": v for i, v in enumerate(parameters)}
            self._last_result = self._session.execute(text(self._rewrite(sql)), mapping)
        else:
            self._last_result = self._session.execute(text(sql))
        return self

    def fetchall(self) -> list[tuple[Any, ...]]:
        if self._last_result is None:
            return []
        return [tuple(r) for r in self._last_result.fetchall()]

    def commit(self) -> None:
        self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()

    @property
    def rowcount(self) -> int:
        if self._last_result is None:
            return 0
        return self._last_result.rowcount

    @property
    def description(self) -> list[tuple[str, ...]] | None:
        """DB-API 2.0 compatible description from the last result."""
        if self._last_result is None or not self._last_result.returns_rows:
            return None
        keys = list(self._last_result.keys())
        return [(k, None, None, None, None, None, None) for k in keys]

    @property
    def session(self) -> Session:
        """Access the underlying SA session."""
        return self._session
