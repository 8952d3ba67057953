"""Connection adapters -- reference ``ConnectionProvider`` implementations.

Architecture::

    ConnectionProvider (protocols.py)
        |-- SqliteProvider         stdlib sqlite3 (always available)
        |-- SQLAlchemyProvider     any SQLAlchemy engine (pooling by the engine)

Both adapters raise ``TransportFailure`` (``IntegrityViolation`` for
constraint errors) with the driver exception chained as ``cause``.

Guardrails:
    ❌ ``conn.execute("SELECT * FROM t WHERE id=" + user_input)``
    ✅ ``conn.execute("SELECT * FROM t WHERE id=?", [user_input])``
    ❌ Sharing an acquired connection outside its scope
    ✅ ``Db`` acquires per scope and releases in ``finally``
"""

from activesql.core.adapters.sqlalchemy import (
    SQLAlchemyConnection,
    SQLAlchemyProvider,
    create_engine,
)
from activesql.core.adapters.sqlite import SqliteConnection, SqliteProvider

__all__ = [
    "SqliteConnection",
    "SqliteProvider",
    "SQLAlchemyConnection",
    "SQLAlchemyProvider",
    "create_engine",
]
