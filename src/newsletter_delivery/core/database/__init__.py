"""
Database abstraction layer supporting SQLite and PostgreSQL.

Usage:
    from newsletter_delivery.core.database import DatabaseAdapter, ensure_schema

    db = DatabaseAdapter()
    await db.connect()
    await ensure_schema(db)

    async with db.transaction() as tx:
        await tx.execute("UPDATE delivery_tasks SET state = $1 WHERE task_id = $2", state, task_id)
"""

from .adapter import (
    DatabaseAdapter,
    DatabaseBackend,
    DatabaseConfig,
    Transaction,
)
from .schema import ensure_schema, schema_statements

__all__ = [
    "DatabaseAdapter",
    "DatabaseBackend",
    "DatabaseConfig",
    "Transaction",
    "ensure_schema",
    "schema_statements",
]
