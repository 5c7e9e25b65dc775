"""
Workflow Database Connection Pool

Manages the asyncpg connection pool for the CCAS workflow database.
Automatically runs migrations on initialization.

Schema Evolution:
-----------------
When adding/removing/renaming tables in schema.sql:
1. Update the schema.sql file with new DDL
2. Update DomainDBPool.EXPECTED_TABLES constant with new table names
3. Additive column changes go into migrations.run_incremental_migrations
"""

from typing import Dict
from typing import Optional

import asyncpg
from loguru import logger

SCHEMA_NAME = "ccas"


class DomainDBPool:
    """Workflow database connection pool manager."""

    # Expected tables in the ccas schema
    # Update this set when schema evolves (add/remove/rename tables)
    EXPECTED_TABLES = {
        "users",
        "requests",
        "plant_code_details",
        "company_code_details",
        "approvals",
        "history_logs",
        "attachments",
        "request_id_counters",
        "notifications",
        "master_plant_codes",
        "master_company_codes",
    }

    def __init__(
        self,
        connection_string: str,
        min_size: int = 2,
        max_size: int = 10,
        command_timeout: float = 60,
    ):
        """
        Initialize workflow DB pool.

        Args:
            connection_string: PostgreSQL connection string for the workflow database
            min_size: Minimum pooled connections
            max_size: Maximum pooled connections
            command_timeout: Per-statement timeout in seconds
        """
        self.connection_string = connection_string
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.pool: Optional[asyncpg.Pool] = None
        self._pool_initialized = False

    async def initialize(self) -> None:
        """
        Initialize connection pool and run migrations.

        Creates the pool, validates it with a trivial query and applies schema.sql
        when the ccas schema does not exist yet.
        """
        if self._pool_initialized and self.pool is not None:
            logger.debug("Workflow DB pool already initialized")
            return

        try:
            logger.info("Initializing workflow database pool", min_size=self.min_size, max_size=self.max_size)

            self.pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout,
                timeout=15,  # Connection timeout (15 seconds)
                max_cached_statement_lifetime=0,  # Disable prepared statement caching (safer for DDL)
            )

            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                if result != 1:
                    raise RuntimeError("Pool validation query failed")

            logger.info("Workflow DB pool validated")

            await self._run_migrations()

            self._pool_initialized = True
            logger.success("Workflow database initialized successfully")

        except Exception as e:
            logger.error("Failed to initialize workflow DB pool", error=str(e), exc_info=True)
            if self.pool:
                await self.pool.close()
                self.pool = None
            raise

    async def _run_migrations(self) -> None:
        """
        Run database migrations (execute schema.sql if needed).

        Checks if the ccas schema and all expected tables exist. If the schema is
        missing it is created from schema.sql; a partial or drifted schema aborts startup.
        """
        from ccas_api.workflow.db.migrations import apply_schema
        from ccas_api.workflow.db.migrations import run_incremental_migrations

        async with self.pool.acquire() as conn:
            existing_tables = await self._existing_tables(conn)

            if existing_tables == self.EXPECTED_TABLES:
                logger.info(
                    "Workflow schema and all expected tables exist - running incremental migrations only",
                    table_count=len(existing_tables),
                )
                await run_incremental_migrations(self.pool)
                return

            if existing_tables:
                missing_tables = self.EXPECTED_TABLES - existing_tables
                extra_tables = existing_tables - self.EXPECTED_TABLES
                logger.error(
                    "Workflow schema does not match expected tables",
                    missing_tables=sorted(missing_tables),
                    extra_tables=sorted(extra_tables),
                )
                raise RuntimeError(
                    f"Schema mismatch in '{SCHEMA_NAME}': missing {sorted(missing_tables)}, "
                    f"extra {sorted(extra_tables)}. Manual migration required."
                )

            logger.info("Workflow schema not found - running migrations")
            await apply_schema(conn)

            created_tables = await self._existing_tables(conn)
            if created_tables != self.EXPECTED_TABLES:
                raise RuntimeError(
                    f"Migration incomplete: missing {sorted(self.EXPECTED_TABLES - created_tables)}, "
                    f"extra {sorted(created_tables - self.EXPECTED_TABLES)}"
                )

            logger.success("All workflow tables verified successfully", table_count=len(created_tables))

    async def _existing_tables(self, conn: asyncpg.Connection) -> set:
        rows = await conn.fetch(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = $1
            ORDER BY table_name
            """,
            SCHEMA_NAME,
        )
        return {row["table_name"] for row in rows}

    async def close(self) -> None:
        """Close the connection pool gracefully."""
        if self.pool:
            logger.info("Closing workflow database pool")
            await self.pool.close()
            self.pool = None
            self._pool_initialized = False
            logger.info("Workflow DB pool closed")

    def acquire(self):
        """
        Acquire a database connection from the pool.

        Returns async context manager that yields a connection.

        Usage:
            async with pool.acquire() as conn:
                result = await conn.fetchrow("SELECT * FROM ...")
        """
        if not self.pool:
            raise RuntimeError("Workflow DB pool not initialized - call initialize() first")
        return self.pool.acquire()

    async def health_check(self) -> bool:
        """
        Check if database connection is healthy.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            if not self.pool:
                return False

            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("Workflow DB health check failed", error=str(e))
            return False

    async def get_table_counts(self) -> Dict[str, int]:
        """
        Get row counts for all tables in the ccas schema.

        Returns:
            Dict mapping table names to row counts
        """
        async with self.acquire() as conn:
            counts = {}
            for table_name in sorted(await self._existing_tables(conn)):
                counts[table_name] = await conn.fetchval(f"SELECT COUNT(*) FROM {SCHEMA_NAME}.{table_name}")
            return counts
