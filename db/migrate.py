#!/usr/bin/env python3
"""
Database Schema Runner

Usage:
    python -m db.migrate              # Apply db/schema.sql
    python -m db.migrate --status     # Show which portal tables exist

Environment:
    DATABASE_BACKEND - sqlite (default) or postgresql
    SQLITE_PATH      - SQLite file (default: prm_portal.db)
    DATABASE_URL     - PostgreSQL connection string
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
from pathlib import Path
from typing import List, Optional

from src.core.database.adapter import DatabaseAdapter, DatabaseBackend

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def schema_tables(sql: Optional[str] = None) -> List[str]:
    """Table names declared in the schema, in creation order."""
    sql = sql if sql is not None else SCHEMA_PATH.read_text()
    return re.findall(r"CREATE TABLE IF NOT EXISTS (\w+)", sql)


async def apply_schema(db: DatabaseAdapter, path: Path = SCHEMA_PATH) -> List[str]:
    """Create every portal table and index that does not exist yet."""
    sql = path.read_text()
    await db.executescript(sql)
    tables = schema_tables(sql)
    logger.info(f"Schema applied: {len(tables)} tables")
    return tables


async def existing_tables(db: DatabaseAdapter) -> List[str]:
    if db.backend == DatabaseBackend.POSTGRESQL:
        rows = await db.fetch(
            "SELECT table_name AS name FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_type = 'BASE TABLE'"
        )
    else:
        rows = await db.fetch("SELECT name FROM sqlite_master WHERE type = 'table'")
    return sorted(r["name"] for r in rows)


async def show_status(db: DatabaseAdapter) -> None:
    present = set(await existing_tables(db))
    print(f"Database: {db.config}")
    for table in schema_tables():
        status = "present" if table in present else "missing"
        print(f"  {table:<22} {status}")


async def main() -> None:
    parser = argparse.ArgumentParser(description="PRM portal schema runner")
    parser.add_argument("--status", action="store_true", help="Show which tables exist")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    db = DatabaseAdapter()
    await db.connect()
    try:
        if args.status:
            await show_status(db)
        else:
            tables = await apply_schema(db)
            print(f"Applied schema: {', '.join(tables)}")
    finally:
        await db.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
