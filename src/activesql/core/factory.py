"""
Build a ready-to-use :class:`~activesql.core.db.Db` from settings.

``create_db`` wires the four collaborators ``Db`` needs:

==================  ================================================
Engine / provider   ``SQLAlchemyProvider`` over ``create_engine``
Dialect             ``settings.dialect`` or inferred from the URL
Schema              ``InspectedSchema`` on the same engine
Batch size          ``settings.batch_size``
==================  ================================================

Tags:
    configuration, factory-pattern, sqlalchemy, activesql
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from activesql.core.adapters.sqlalchemy import SQLAlchemyProvider, create_engine
from activesql.core.db import Db
from activesql.core.dialect import get_dialect
from activesql.core.logging import get_logger
from activesql.core.record import MappingRegistry
from activesql.core.schema import InspectedSchema, LogicalDeleteSpec
from activesql.core.settings import get_settings

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from activesql.core.settings import ActiveSqlSettings

logger = get_logger(__name__)


def create_database_engine(settings: ActiveSqlSettings) -> Engine:
    """SQLAlchemy engine from settings; pool tuning is skipped for SQLite."""
    if settings.is_sqlite:
        return create_engine(settings.database_url, echo=settings.database_echo)
    return create_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )


def create_db(
    settings: ActiveSqlSettings | None = None,
    *,
    registry: MappingRegistry | None = None,
) -> Db:
    """Create a :class:`Db` for ``settings`` (the cached settings by default)."""
    settings = settings or get_settings()
    dialect = get_dialect(settings.resolved_dialect)
    engine = create_database_engine(settings)
    schema = InspectedSchema(
        engine,
        logical_delete=LogicalDeleteSpec(
            field=settings.logical_delete_field,
            deleted_value=settings.logical_delete_value,
        ),
    )
    db = Db(
        SQLAlchemyProvider(engine, dialect.paramstyle),
        dialect,
        schema,
        registry=registry,
        batch_size=settings.batch_size,
    )
    logger.info(
        "db_created",
        dialect=dialect.name,
        url=engine.url.render_as_string(hide_password=True),
        batch_size=settings.batch_size,
    )
    return db


__all__ = [
    "create_database_engine",
    "create_db",
]
