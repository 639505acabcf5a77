"""SQL dialect abstraction for the version history queries.

Provides a ``Dialect`` protocol and concrete implementations for every
supported database backend. The history repository uses ``Dialect``
methods to generate placeholders, quote table/column names, render
boolean literals and paginate, without importing any database driver.

Manifesto:
    Selection queries need ``LIMIT``/``OFFSET`` and deletion queries need
    an ``IN (...)`` list of bound version numbers. Both are spelled
    differently on every backend; none of them may ever be built by
    interpolating values into the SQL text.

    - **One interface:** Dialect protocol for all SQL generation
    - **Values are bound:** Only identifiers and literals are rendered
    - **Identifiers are validated:** Plain names only, then quoted

Architecture::

    ┌──────────┐ ┌──────────────┐ ┌────────────┐ ┌────────┐ ┌────────────┐
    │ SQLite   │ │ PostgreSQL   │ │    DB2     │ │ MySQL  │ │  Oracle    │
    │ ?        │ │ %s           │ │ ?          │ │ %s     │ │ :1, :2     │
    │ "name"   │ │ "name"       │ │ "name"     │ │ `name` │ │ "name"     │
    │ LIMIT ?  │ │ LIMIT %s     │ │ OFFSET ?   │ │ LIMIT  │ │ OFFSET :n  │
    │ OFFSET ? │ │ OFFSET %s    │ │ ROWS FETCH │ │ OFFSET │ │ ROWS FETCH │
    └──────────┘ └──────────────┘ └────────────┘ └────────┘ └────────────┘

Examples:
    >>> from truncator.core.dialect import get_dialect
    >>> d = get_dialect("postgresql")
    >>> d.placeholders(3)
    '%s, %s, %s'
    >>> d.quote_identifier("page_versions")
    '"page_versions"'

Guardrails:
    ❌ DON'T: Interpolate version numbers or record ids into SQL
    ✅ DO: Render placeholders and pass values as parameters

Tags:
    dialect, sql, abstraction, portability, database

Doc-Types:
    - API Reference
    - Database Portability Guide
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

from truncator.core.errors import InvalidIdentifierError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_identifier(name: str) -> str:
    """Return ``name`` unchanged if it is a plain SQL identifier.

    Raises:
        InvalidIdentifierError: For anything else (spaces, quotes, dots, ...).
    """
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise InvalidIdentifierError(str(name))
    return name


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a **SQL fragment** valid for the target database.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index).

        ``index`` is ignored by anonymous styles (``?``, ``%s``) but
        required by numbered styles (Oracle ``:1``).
        """
        ...

    def placeholders(self, count: int, start: int = 0) -> str:
        """Comma-separated placeholder list starting at ``start``."""
        ...

    def quote_identifier(self, name: str) -> str:
        """Validate and quote a table or column name."""
        ...

    def limit_offset(self, index: int, limit: int, offset: int) -> tuple[str, tuple[int, int]]:
        """Pagination clause and its bind values in placeholder order.

        ``index`` is the position of the clause's first placeholder in the
        statement, needed by numbered placeholder styles.
        """
        ...

    def boolean_true(self) -> str:
        """Literal SQL value for boolean ``True``."""
        ...

    def boolean_false(self) -> str:
        """Literal SQL value for boolean ``False``."""
        ...


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class SQLiteDialect:
    """SQLite dialect: ``?`` placeholders, ``LIMIT ? OFFSET ?``."""

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int, start: int = 0) -> str:
        return ", ".join(self.placeholder(start + i) for i in range(count))

    def quote_identifier(self, name: str) -> str:
        return f'"{validate_identifier(name)}"'

    def limit_offset(self, index: int, limit: int, offset: int) -> tuple[str, tuple[int, int]]:
        clause = f"LIMIT {self.placeholder(index)} OFFSET {self.placeholder(index + 1)}"
        return clause, (limit, offset)

    def boolean_true(self) -> str:
        return "1"

    def boolean_false(self) -> str:
        return "0"


class PostgreSQLDialect:
    """PostgreSQL dialect: ``%s`` placeholders (psycopg), native booleans."""

    @property
    def name(self) -> str:
        return "postgresql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int, start: int = 0) -> str:
        return ", ".join(self.placeholder(start + i) for i in range(count))

    def quote_identifier(self, name: str) -> str:
        return f'"{validate_identifier(name)}"'

    def limit_offset(self, index: int, limit: int, offset: int) -> tuple[str, tuple[int, int]]:
        clause = f"LIMIT {self.placeholder(index)} OFFSET {self.placeholder(index + 1)}"
        return clause, (limit, offset)

    def boolean_true(self) -> str:
        return "TRUE"

    def boolean_false(self) -> str:
        return "FALSE"


class DB2Dialect:
    """IBM DB2 dialect: ``?`` placeholders, ``FETCH FIRST`` pagination.

    Pagination is ``OFFSET ? ROWS FETCH FIRST ? ROWS ONLY`` (DB2 11.1+),
    so the offset is bound before the limit.
    """

    @property
    def name(self) -> str:
        return "db2"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int, start: int = 0) -> str:
        return ", ".join(self.placeholder(start + i) for i in range(count))

    def quote_identifier(self, name: str) -> str:
        return f'"{validate_identifier(name)}"'

    def limit_offset(self, index: int, limit: int, offset: int) -> tuple[str, tuple[int, int]]:
        clause = (
            f"OFFSET {self.placeholder(index)} ROWS "
            f"FETCH FIRST {self.placeholder(index + 1)} ROWS ONLY"
        )
        return clause, (offset, limit)

    def boolean_true(self) -> str:
        return "1"

    def boolean_false(self) -> str:
        return "0"


class MySQLDialect:
    """MySQL / MariaDB dialect: ``%s`` placeholders, backtick quoting."""

    @property
    def name(self) -> str:
        return "mysql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int, start: int = 0) -> str:
        return ", ".join(self.placeholder(start + i) for i in range(count))

    def quote_identifier(self, name: str) -> str:
        return f"`{validate_identifier(name)}`"

    def limit_offset(self, index: int, limit: int, offset: int) -> tuple[str, tuple[int, int]]:
        clause = f"LIMIT {self.placeholder(index)} OFFSET {self.placeholder(index + 1)}"
        return clause, (limit, offset)

    def boolean_true(self) -> str:
        return "1"

    def boolean_false(self) -> str:
        return "0"


class OracleDialect:
    """Oracle dialect: ``:1, :2`` numbered placeholders.

    Compatible with ``oracledb``, which binds positional values in the
    order the placeholders appear; pagination binds the offset first.
    """

    @property
    def name(self) -> str:
        return "oracle"

    def placeholder(self, index: int) -> str:
        return f":{index + 1}"

    def placeholders(self, count: int, start: int = 0) -> str:
        return ", ".join(self.placeholder(start + i) for i in range(count))

    def quote_identifier(self, name: str) -> str:
        return f'"{validate_identifier(name)}"'

    def limit_offset(self, index: int, limit: int, offset: int) -> tuple[str, tuple[int, int]]:
        clause = (
            f"OFFSET {self.placeholder(index)} ROWS "
            f"FETCH NEXT {self.placeholder(index + 1)} ROWS ONLY"
        )
        return clause, (offset, limit)

    def boolean_true(self) -> str:
        return "1"

    def boolean_false(self) -> str:
        return "0"


# =========================================================================
# Registry / Factory
# =========================================================================

_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
    "db2": DB2Dialect(),
    "mysql": MySQLDialect(),
    "oracle": OracleDialect(),
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Args:
        db_type: One of ``'sqlite'``, ``'postgresql'``, ``'postgres'``,
                 ``'db2'``, ``'mysql'``, ``'oracle'``.

    Raises:
        ValueError: If ``db_type`` is not recognised.
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres'})}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "DB2Dialect",
    "MySQLDialect",
    "OracleDialect",
    "get_dialect",
    "register_dialect",
    "validate_identifier",
]
