"""
Retention configuration and environment-driven settings.

Manifesto:
    A misconfigured retention rule must never turn into "delete
    everything". Every retention value is normalized on the way in: a
    negative, zero or unparseable-but-empty window disables its rule, a
    missing batch cap falls back to the default. The resulting
    :class:`RetentionConfig` is an immutable value handed to each sweep
    explicitly; nothing caches it between sweeps.

Architecture:
    ::

        env / .env (TRUNCATOR_*)
              │
              ▼
        TruncatorSettings ── defaults + overrides[type_name]
              │
              │  retention_for("Page")
              ▼
        RetentionConfig (frozen)  ──►  VersionTruncator.sweep(record, config)

Rule semantics:
    ============== ============================ ==============================
    Field          Enabled when                 Disabled when
    ============== ============================ ==============================
    keep_versions  positive integer             None, 0, negative, "disabled"
    keep_drafts    integer ≥ 0 (0 = no drafts)  None, negative, "disabled"
    keep_redirects True                         False (or not path-addressed)
    delete_limit   positive integer             None/0/negative → 100
    ============== ============================ ==============================

Examples:
    >>> RetentionConfig(keep_versions=-3).keep_versions is None
    True
    >>> RetentionConfig(keep_drafts=0).drafts_enabled
    True
    >>> RetentionConfig(delete_limit=0).delete_limit
    100

Tags:
    configuration, settings, pydantic, retention, validation

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

try:
    from pydantic_settings import BaseSettings, SettingsConfigDict
except ImportError as exc:  # pragma: no cover
    raise ImportError(
        "truncator.core.config requires pydantic-settings. "
        "Install it with: pip install pydantic-settings"
    ) from exc

from truncator.core.errors import InvalidConfigError

DEFAULT_DELETE_LIMIT = 100

LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
LOG_FORMATS = frozenset({"json", "console", "auto"})

_DISABLED_WORDS = frozenset({"", "none", "null", "off", "false", "disabled", "unlimited"})


def _coerce_window(value: Any) -> Any:
    """Map the "rule off" spellings to ``None`` before int validation."""
    if value is None or value is False:
        return None
    if value is True:
        raise ValueError("expected an integer, got True")
    if isinstance(value, str) and value.strip().lower() in _DISABLED_WORDS:
        return None
    return value


class RetentionConfig(BaseModel):
    """Effective retention settings for one record type."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    keep_versions: int | None = Field(
        default=None,
        description="Published versions to keep; None disables the published pass",
    )
    keep_drafts: int | None = Field(
        default=None,
        description="Draft versions to keep; 0 deletes all drafts, None disables",
    )
    keep_redirects: bool = Field(
        default=False,
        description="Keep one published version per prior (parent_id, url_segment)",
    )
    delete_limit: int = Field(
        default=DEFAULT_DELETE_LIMIT,
        description="Maximum candidates taken per pass in one sweep",
    )

    @field_validator("keep_versions", mode="before")
    @classmethod
    def _parse_keep_versions(cls, value: Any) -> Any:
        return _coerce_window(value)

    @field_validator("keep_versions", mode="after")
    @classmethod
    def _positive_keep_versions(cls, value: int | None) -> int | None:
        if value is None or value <= 0:
            return None
        return value

    @field_validator("keep_drafts", mode="before")
    @classmethod
    def _parse_keep_drafts(cls, value: Any) -> Any:
        return _coerce_window(value)

    @field_validator("keep_drafts", mode="after")
    @classmethod
    def _non_negative_keep_drafts(cls, value: int | None) -> int | None:
        if value is None or value < 0:
            return None
        return value

    @field_validator("delete_limit", mode="before")
    @classmethod
    def _default_delete_limit(cls, value: Any) -> Any:
        if value is None or value is False or value == "":
            return DEFAULT_DELETE_LIMIT
        return value

    @field_validator("delete_limit", mode="after")
    @classmethod
    def _positive_delete_limit(cls, value: int) -> int:
        return value if value > 0 else DEFAULT_DELETE_LIMIT

    # -- Derived flags -----------------------------------------------------

    @property
    def published_enabled(self) -> bool:
        return self.keep_versions is not None

    @property
    def drafts_enabled(self) -> bool:
        return self.keep_drafts is not None

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> RetentionConfig:
        """Build a config from a plain mapping (YAML/JSON/env section).

        Raises:
            InvalidConfigError: If a value cannot be interpreted at all,
                e.g. ``keep_versions="ten"``.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            first = exc.errors()[0]
            key = ".".join(str(part) for part in first.get("loc", ())) or "retention"
            raise InvalidConfigError(key, first.get("input"), cause=exc) from exc


class TruncatorSettings(BaseSettings):
    """Truncator settings read from ``TRUNCATOR_*`` environment variables.

    ``overrides`` holds per-type partial configs layered over the defaults::

        TRUNCATOR_KEEP_VERSIONS=10
        TRUNCATOR_OVERRIDES='{"Page": {"keep_redirects": true}}'
        TRUNCATOR_OVERRIDES__File__keep_drafts=0
    """

    model_config = SettingsConfigDict(
        env_prefix="TRUNCATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # ── Retention defaults ───────────────────────────────────────
    keep_versions: int | None = Field(default=10)
    keep_drafts: int | None = Field(default=5)
    keep_redirects: bool = Field(default=True)
    delete_limit: int = Field(default=DEFAULT_DELETE_LIMIT)

    # ── Per-type overrides ───────────────────────────────────────
    overrides: dict[str, dict[str, Any]] = Field(default_factory=dict)

    # ── Database ─────────────────────────────────────────────────
    database_url: str = Field(default="sqlite:///data/versions.db")
    database_echo: bool = Field(default=False)
    version_table_suffix: str = Field(default="_versions")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json, console or auto (json when not a tty)")

    @field_validator("keep_versions", "keep_drafts", mode="before")
    @classmethod
    def _parse_window(cls, value: Any) -> Any:
        return _coerce_window(value)

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(LOG_LEVELS)}, got {value!r}")
        return level

    @field_validator("log_format")
    @classmethod
    def _known_log_format(cls, value: str) -> str:
        fmt = value.strip().lower()
        if fmt not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {sorted(LOG_FORMATS)}, got {value!r}")
        return fmt

    @property
    def json_logs(self) -> bool | None:
        """``log_format`` as the ``json_format`` flag of ``configure_logging``."""
        return {"json": True, "console": False, "auto": None}[self.log_format]

    def defaults(self) -> dict[str, Any]:
        return {
            "keep_versions": self.keep_versions,
            "keep_drafts": self.keep_drafts,
            "keep_redirects": self.keep_redirects,
            "delete_limit": self.delete_limit,
        }

    def retention_for(self, type_name: str) -> RetentionConfig:
        """Effective :class:`RetentionConfig` for ``type_name``.

        Override keys are matched exactly first, then case-insensitively
        (environment variable names arrive lower-cased).
        """
        override = self.overrides.get(type_name)
        if override is None:
            lowered = {key.lower(): value for key, value in self.overrides.items()}
            override = lowered.get(type_name.lower(), {})
        return RetentionConfig.from_mapping({**self.defaults(), **override})


@lru_cache(maxsize=1)
def get_settings() -> TruncatorSettings:
    """Process-wide settings instance (cached)."""
    return TruncatorSettings()


__all__ = [
    "DEFAULT_DELETE_LIMIT",
    "RetentionConfig",
    "TruncatorSettings",
    "get_settings",
]
