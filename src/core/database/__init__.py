"""
Database abstraction layer supporting SQLite and PostgreSQL.

Usage:
    from src.core.database import get_database

    db = await get_database()

    rows = await db.fetch("SELECT * FROM deals WHERE partner_id = $1", partner_id)
    await db.execute("UPDATE deals SET stage = $1 WHERE id = $2", stage, deal_id)
"""

from .adapter import (
    DatabaseAdapter,
    DatabaseBackend,
    DatabaseConfig,
    IntegrityErrors,
    Transaction,
    get_database,
    set_database,
    close_database,
)

__all__ = [
    "DatabaseAdapter",
    "DatabaseBackend",
    "DatabaseConfig",
    "IntegrityErrors",
    "Transaction",
    "get_database",
    "set_database",
    "close_database",
]
