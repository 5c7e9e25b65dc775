"""Database migrations for the workflow domain.

Schema initialization executes schema.sql; all DDL lives there for maintainability.
Incremental migrations add columns introduced after the first deployment and are
safe to run on every startup.
"""

from pathlib import Path

import asyncpg
from loguru import logger

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

# (table, column, definition) added after the initial schema
INCREMENTAL_COLUMNS = (
    ("requests", "original_request_id", "VARCHAR(32) NULL"),
    ("requests", "completed_at", "TIMESTAMPTZ NULL"),
    ("requests", "turnaround_days", "INTEGER NULL"),
    ("attachments", "size_bytes", "INTEGER NOT NULL DEFAULT 0"),
)


def load_schema_sql() -> str:
    """Read schema.sql.

    Raises
    ------
    FileNotFoundError
        If schema.sql is not packaged next to this module
    """
    if not SCHEMA_PATH.exists():
        raise FileNotFoundError(
            f"Schema file not found: {SCHEMA_PATH}\nExpected location: src/ccas_api/workflow/db/schema.sql"
        )
    return SCHEMA_PATH.read_text(encoding="utf-8")


async def apply_schema(conn: asyncpg.Connection) -> None:
    """Create the ccas schema and all tables.

    All SQL uses IF NOT EXISTS, so it's safe to run multiple times.

    Parameters
    ----------
    conn : asyncpg.Connection
        Open database connection
    """
    schema_sql = load_schema_sql()
    logger.info("Loaded workflow schema", path=str(SCHEMA_PATH))

    try:
        await conn.execute(schema_sql)
    except asyncpg.PostgresError as e:
        logger.error("Workflow schema migration failed", error=str(e))
        raise

    logger.success("Workflow database migrations completed")


async def run_incremental_migrations(pool: asyncpg.Pool) -> None:
    """Run only incremental migrations (add columns introduced after first deployment).

    Use when schema/tables already exist so that existing databases pick up new columns
    without re-running the full schema.
    """
    async with pool.acquire() as conn:
        for table, column, definition in INCREMENTAL_COLUMNS:
            await conn.execute(f"ALTER TABLE ccas.{table} ADD COLUMN IF NOT EXISTS {column} {definition}")
            logger.debug("Ensured column", table=f"ccas.{table}", column=column)
