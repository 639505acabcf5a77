"""Resolution of the physical tables holding a record type's versions.

A record type may be stored across several tables: a base table plus one
table per subclass in a joined-table inheritance chain. Each of those has
its own version history table keyed by ``(record_id, version)``, and a
sweep must prune all of them with the same version set.

Resolvers:
    StaticTableResolver   explicit ``type_name → (base, *related)`` registry
    MappedTableResolver   walks a SQLAlchemy mapper's inheritance chain

Both raise :class:`~truncator.core.errors.TableResolutionError` for an
unknown type; the sweep treats that as fatal before deleting anything.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable

from truncator.core.dialect import validate_identifier
from truncator.core.errors import InvalidIdentifierError, TableResolutionError

DEFAULT_VERSION_SUFFIX = "_versions"


@dataclass(frozen=True)
class VersionTables:
    """Version tables of one record type, base table first.

    Examples:
        >>> tables = VersionTables.of("site_tree_versions", "page_versions")
        >>> tables.base
        'site_tree_versions'
        >>> list(tables)
        ['site_tree_versions', 'page_versions']
    """

    base: str
    related: tuple[str, ...] = ()

    @classmethod
    def of(cls, base: str, *related: str) -> VersionTables:
        """Build from names, dropping duplicates and validating identifiers."""
        validate_identifier(base)
        seen = {base}
        extra = []
        for name in related:
            validate_identifier(name)
            if name not in seen:
                seen.add(name)
                extra.append(name)
        return cls(base=base, related=tuple(extra))

    @property
    def names(self) -> tuple[str, ...]:
        return (self.base, *self.related)

    @property
    def deletion_order(self) -> tuple[str, ...]:
        """Related tables first, base table last.

        Selection reads the base table, so as long as it is pruned last a
        sweep interrupted on any table leaves the versions selectable for
        the next one.
        """
        return (*self.related, self.base)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def __contains__(self, name: object) -> bool:
        return name in self.names


class StaticTableResolver:
    """Registry of version tables per record type name."""

    def __init__(self, mapping: Mapping[str, Iterable[str]] | None = None) -> None:
        self._tables: dict[str, VersionTables] = {}
        for type_name, names in (mapping or {}).items():
            self.register(type_name, *names)

    def register(self, type_name: str, base: str, *related: str) -> VersionTables:
        tables = VersionTables.of(base, *related)
        self._tables[type_name] = tables
        return tables

    def resolve_version_tables(self, type_name: str) -> VersionTables:
        try:
            return self._tables[type_name]
        except KeyError:
            raise TableResolutionError(type_name) from None


class MappedTableResolver:
    """Resolve version tables from SQLAlchemy mapped classes.

    The record type name is the mapped class name. The class's mapper is
    walked from the inheritance root down to the class itself; every
    distinct local table contributes ``<table name><suffix>`` as a version
    table, so the root's table becomes the base.

    Parameters:
        base: A ``DeclarativeBase`` subclass (or ``registry``) whose mappers
            are searched by class name.
        classes: Explicit ``type_name → mapped class`` entries, checked
            before ``base``.
        suffix: Appended to each mapped table name.

    Example::

        class SiteTree(Base):
            __tablename__ = "site_tree"
            ...

        class Page(SiteTree):
            __tablename__ = "page"
            ...

        MappedTableResolver(Base).resolve_version_tables("Page")
        # VersionTables(base='site_tree_versions', related=('page_versions',))
    """

    def __init__(
        self,
        base: Any = None,
        *,
        classes: Mapping[str, type] | None = None,
        suffix: str = DEFAULT_VERSION_SUFFIX,
    ) -> None:
        self._base = base
        self._classes = dict(classes or {})
        self.suffix = suffix

    def _mapped_class(self, type_name: str) -> type:
        if type_name in self._classes:
            return self._classes[type_name]

        registry = getattr(self._base, "registry", self._base)
        for mapper in getattr(registry, "mappers", ()):
            if mapper.class_.__name__ == type_name:
                return mapper.class_

        raise TableResolutionError(type_name, f"No mapped class named {type_name!r}")

    def resolve_version_tables(self, type_name: str) -> VersionTables:
        cls = self._mapped_class(type_name)
        try:
            mapper = sa_inspect(cls)
        except NoInspectionAvailable as exc:
            raise TableResolutionError(
                type_name, f"{cls!r} is not a mapped class", cause=exc
            ) from exc

        names = []
        for current in reversed(list(mapper.iterate_to_root())):
            table_name = getattr(current.local_table, "name", None)
            if table_name is None:
                raise TableResolutionError(
                    type_name, f"{current.class_.__name__} is not mapped to a table"
                )
            names.append(f"{table_name}{self.suffix}")

        try:
            return VersionTables.of(*names)
        except InvalidIdentifierError as exc:
            raise TableResolutionError(type_name, str(exc), cause=exc) from exc


__all__ = [
    "DEFAULT_VERSION_SUFFIX",
    "VersionTables",
    "StaticTableResolver",
    "MappedTableResolver",
]
