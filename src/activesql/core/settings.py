"""
Centralized settings for activesql.

One validated, cached settings object replaces ad-hoc parsing of the same
environment variables by the CLI and by applications building a ``Db``.
All fields can be set via ``ACTIVESQL_*`` environment variables (e.g.
``ACTIVESQL_DATABASE_URL=postgresql+psycopg2://app@db/app``) or a ``.env``
file in the working directory.

Examples:
    >>> from activesql.core.settings import ActiveSqlSettings
    >>> ActiveSqlSettings(database_url="sqlite:///app.db").resolved_dialect
    'sqlite'

Tags:
    configuration, settings, pydantic, caching, validation, activesql
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ActiveSqlSettings(BaseSettings):
    """activesql configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ACTIVESQL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ─────────────────────────────────────────────────
    database_url: str = Field(default="sqlite://")
    dialect: str = Field(default="", description="Dialect name; inferred from database_url when empty")
    database_echo: bool = Field(default=False)
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)

    # ── Statements ───────────────────────────────────────────────
    batch_size: int = Field(default=500, ge=1, description="Rows per batch round-trip")
    logical_delete_field: str = Field(default="deleted")
    logical_delete_value: int = Field(default=1)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="console or json")

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("console", "json"):
            raise ValueError(f"log_format must be 'console' or 'json', got {value!r}")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    # ── Derived properties ───────────────────────────────────────

    @property
    def resolved_dialect(self) -> str:
        """Explicit dialect, else the URL scheme without its driver suffix."""
        if self.dialect:
            return self.dialect.lower()
        return self.database_url.split("://", 1)[0].split("+", 1)[0].lower()

    @property
    def is_sqlite(self) -> bool:
        return self.resolved_dialect == "sqlite"


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, ActiveSqlSettings] = {}


def get_settings(*, _force_reload: bool = False) -> ActiveSqlSettings:
    """Load, validate, and cache an :class:`ActiveSqlSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = _settings_cache["default"] = ActiveSqlSettings()
    return settings


def clear_settings_cache() -> None:
    """Drop the cached settings (tests, reconfiguration)."""
    _settings_cache.clear()


__all__ = [
    "ActiveSqlSettings",
    "get_settings",
    "clear_settings_cache",
]
