"""
Structured error types for the version truncator.

Every failure a sweep can hit is raised as a :class:`TruncatorError`
subclass carrying a category, a retry hint, structured context (record
type, record id, table) and the underlying driver exception as ``cause``.

Manifesto:
    - **Typed hierarchy:** Configuration, schema, read and write failures
      are distinct types so callers can decide what to do with each
    - **Explicit retry semantics:** A failed delete is safe to retry, a
      broken table mapping is not
    - **Rich context:** Errors carry the record identity for logging
    - **Error chaining:** The underlying driver exception is kept as cause

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                      TruncatorError                           │
        │            (category, retryable, context, cause)              │
        ├──────────────────────────────────────────────────────────────┤
        │                                                               │
        │  ConfigError         SchemaError          DatabaseError       │
        │  (CONFIG)            (SCHEMA)             (DATABASE)          │
        │      │                   │                     │              │
        │  InvalidConfigError  TableResolutionError  QueryError         │
        │                      InvalidIdentifierError DeletionError     │
        └──────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Treat a negative ``keep_versions`` as an error
    ✅ DO: Normalize it to "rule disabled" in the config model

    ❌ DON'T: Swallow the driver exception
    ✅ DO: Pass it as ``cause=`` so tracebacks keep the root cause

Tags:
    error-handling, exception-hierarchy, retry-logic, retention

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for routing and retry decisions."""

    CONFIG = "CONFIG"           # Unparseable retention settings
    SCHEMA = "SCHEMA"           # Unknown record type, bad table/column names
    DATABASE = "DATABASE"       # Read or write failure in the history tables
    INTERNAL = "INTERNAL"       # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-``None`` fields are emitted by :meth:`to_dict`, so a context
    built for a table-resolution failure does not carry an empty ``table``
    key into the log line.

    Examples:
        >>> ctx = ErrorContext(type_name="Page", record_id=12)
        >>> ctx.to_dict()
        {'type_name': 'Page', 'record_id': 12}
    """

    type_name: str | None = None
    record_id: int | None = None
    table: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["type_name", "record_id", "table"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class TruncatorError(Exception):
    """
    Base exception for all truncator errors.

    Subclasses set ``default_category`` and ``default_retryable`` so the
    common case needs only a message.

    Examples:
        >>> error = TruncatorError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(type_name="Page", record_id=3).context.record_id
        3
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> TruncatorError:
        """
        Add context to this error (fluent API).

        Usage:
            raise QueryError("read failed").with_context(
                type_name="Page", record_id=12, table="page_versions"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(TruncatorError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value cannot be interpreted at all."""

    def __init__(self, key: str, value: Any, message: str | None = None, **kwargs: Any):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}", **kwargs)


# =============================================================================
# SCHEMA ERRORS
# =============================================================================


class SchemaError(TruncatorError):
    """The record type or its version tables cannot be mapped."""

    default_category = ErrorCategory.SCHEMA
    default_retryable = False


class TableResolutionError(SchemaError):
    """No version tables could be resolved for a record type."""

    def __init__(self, type_name: str, message: str | None = None, **kwargs: Any):
        self.type_name = type_name
        super().__init__(
            message or f"Cannot resolve version tables for type {type_name!r}",
            **kwargs,
        )
        self.context.type_name = type_name


class InvalidIdentifierError(SchemaError):
    """A table or column name is not a plain SQL identifier."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Not a valid SQL identifier: {identifier!r}")


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(TruncatorError):
    """Error reading from or writing to the version history tables."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class QueryError(DatabaseError):
    """Reading version history failed; nothing was deleted."""

    pass


class DeletionError(DatabaseError):
    """
    Deleting from one of the resolved tables failed.

    Tables processed before the failing one keep their deletions, which are
    reported in ``deleted`` and ``per_table``. Retrying is safe: the
    remaining versions are still present and are selected again.
    """

    default_retryable = True

    def __init__(
        self,
        message: str,
        *,
        deleted: int = 0,
        per_table: dict[str, int] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.deleted = deleted
        self.per_table = dict(per_table or {})

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["deleted"] = self.deleted
        if self.per_table:
            result["per_table"] = dict(self.per_table)
        return result


# =============================================================================
# HELPERS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check whether an error is safe to retry on the next sweep."""
    if isinstance(error, TruncatorError):
        return error.retryable
    return False


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "TruncatorError",
    "ConfigError",
    "InvalidConfigError",
    "SchemaError",
    "TableResolutionError",
    "InvalidIdentifierError",
    "DatabaseError",
    "QueryError",
    "DeletionError",
    "is_retryable",
]
