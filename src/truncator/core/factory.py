"""
Factory functions that build runtime components from settings.

Manifesto:
    ``TruncatorSettings`` is the one place a deployment describes its
    database and its logging. These factories turn those fields into live
    objects so a host only has to load settings and call them. SQLAlchemy
    is imported lazily; the sqlite3-only path never loads it.

Features:
    - ``create_database_engine()`` -- SQLAlchemy engine from ``database_url``
      and ``database_echo``
    - ``configure_logging_from_settings()`` -- structlog setup from
      ``log_level`` and ``log_format``

Examples:
    >>> settings = TruncatorSettings()
    >>> configure_logging_from_settings(settings)
    >>> engine = create_database_engine(settings)

Tags:
    configuration, factory-pattern, lazy-imports, sqlalchemy, structlog

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from truncator.core.config import TruncatorSettings, get_settings
from truncator.core.logging import configure_logging

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


def create_database_engine(settings: TruncatorSettings | None = None, **kwargs: Any) -> Engine:
    """Create a SQLAlchemy :class:`~sqlalchemy.engine.Engine` from settings.

    Extra keyword arguments go to ``sqlalchemy.create_engine``.
    """
    from truncator.core.orm.session import create_truncator_engine

    settings = settings or get_settings()
    return create_truncator_engine(settings.database_url, echo=settings.database_echo, **kwargs)


def configure_logging_from_settings(
    settings: TruncatorSettings | None = None,
    service: str = "truncator",
) -> None:
    """Configure structlog with the level and format from settings."""
    settings = settings or get_settings()
    configure_logging(level=settings.log_level, json_format=settings.json_logs, service=service)


__all__ = [
    "create_database_engine",
    "configure_logging_from_settings",
]
