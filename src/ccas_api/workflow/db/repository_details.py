"""
Details Repository

Versioned store for Plant Code and Company Code details: one immutable snapshot per
(request_id, version). Snapshots are returned keyed by canonical camelCase field name
plus requestId, version, submittedBy and submittedAt.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Mapping
from typing import Optional

import asyncpg
from loguru import logger

from ccas_api.errors import ConflictError
from ccas_api.errors import NotFoundError
from ccas_api.errors import ValidationError
from ccas_api.workflow.db.repository_base import SCHEMA
from ccas_api.workflow.db.repository_base import BaseRepository
from ccas_api.workflow.enums import RequestType
from ccas_api.workflow.models.details import DETAILS_TABLES
from ccas_api.workflow.models.details import FIELDS_BY_TYPE
from ccas_api.workflow.models.details import column_name
from ccas_api.workflow.models.details import field_name
from ccas_api.workflow.models.details import normalize_details


def row_to_snapshot(row: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """Convert a details row (snake_case columns) to a snapshot (camelCase fields)."""
    if row is None:
        return None
    return {field_name(column): value for column, value in dict(row).items()}


class DetailsRepository(BaseRepository):
    """Versioned details repository for one request type."""

    def __init__(self, pool: asyncpg.Pool, request_type: RequestType):
        self.request_type = RequestType(request_type)
        super().__init__(pool, DETAILS_TABLES[self.request_type])
        self.fields = FIELDS_BY_TYPE[self.request_type]
        self.columns = [column_name(field) for field in self.fields]

    async def save_version(
        self,
        request_id: str,
        version: int,
        fields: Mapping[str, Any],
        submitted_by: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Dict[str, Any]:
        """
        Store the snapshot for (request_id, version).

        The owning request row is locked for the duration of the write so concurrent
        savers for the same request are serialized. Rules:
        - same version as the latest, same submitter: overwrite in place (idempotent retry)
        - same version as the latest, different submitter: ConflictError
        - version below the current latest: ConflictError (stored history is immutable)
        - otherwise: insert

        Args:
            request_id: Owning request
            version: Positive version number chosen by the submitter
            fields: Details keyed by canonical field name
            submitted_by: Email of the submitter

        Returns:
            The authoritative stored snapshot

        Raises:
            ValidationError: version < 1 or required fields missing
            NotFoundError: request does not exist
            ConflictError: version collision with another submitter or stale version
        """
        if version < 1:
            raise ValidationError(f"Version must be a positive integer, got {version}")
        values = normalize_details(self.request_type, fields)
        column_values = [values[field] for field in self.fields]

        async with self.connection(conn) as c:
            async with c.transaction():
                owner = await c.fetchval(
                    f"SELECT request_id FROM {SCHEMA}.requests WHERE request_id = $1 FOR UPDATE",
                    request_id,
                )
                if owner is None:
                    raise NotFoundError(f"Request not found: {request_id}")

                latest = await c.fetchval(
                    f"SELECT MAX(version) FROM {self.qualified_table} WHERE request_id = $1",
                    request_id,
                )
                if latest is not None and version < latest:
                    raise ConflictError(
                        f"Version {version} of {request_id} is stale; latest stored version is {latest}"
                    )

                if latest is not None and version == latest:
                    existing = await c.fetchrow(
                        f"SELECT submitted_by FROM {self.qualified_table} WHERE request_id = $1 AND version = $2",
                        request_id,
                        version,
                    )
                    if existing is None or existing["submitted_by"] != submitted_by:
                        logger.warning(
                            "Details version collision",
                            request_id=request_id,
                            version=version,
                            existing_submitter=existing["submitted_by"] if existing else None,
                            submitter=submitted_by,
                        )
                        raise ConflictError(
                            f"Version {version} of {request_id} was already saved by another user; "
                            "reload the latest version and resubmit"
                        )
                    row = await self._overwrite(c, request_id, version, column_values)
                    logger.info("Details version overwritten (retry)", request_id=request_id, version=version)
                    return row_to_snapshot(row)

                try:
                    row = await self._insert(c, request_id, version, column_values, submitted_by)
                except asyncpg.UniqueViolationError:
                    raise ConflictError(f"Version {version} of {request_id} already exists")

        logger.info(
            "Details version saved",
            request_id=request_id,
            request_type=self.request_type.value,
            version=version,
        )
        return row_to_snapshot(row)

    async def _insert(
        self,
        conn: asyncpg.Connection,
        request_id: str,
        version: int,
        column_values: List[Any],
        submitted_by: str,
    ) -> asyncpg.Record:
        columns = ["request_id", "version", *self.columns, "submitted_by"]
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        return await conn.fetchrow(
            f"""
            INSERT INTO {self.qualified_table} ({", ".join(columns)}, submitted_at)
            VALUES ({placeholders}, NOW())
            RETURNING *
            """,
            request_id,
            version,
            *column_values,
            submitted_by,
        )

    async def _overwrite(
        self,
        conn: asyncpg.Connection,
        request_id: str,
        version: int,
        column_values: List[Any],
    ) -> asyncpg.Record:
        assignments = ", ".join(f"{column} = ${i}" for i, column in enumerate(self.columns, start=3))
        return await conn.fetchrow(
            f"""
            UPDATE {self.qualified_table}
            SET {assignments}, submitted_at = NOW()
            WHERE request_id = $1 AND version = $2
            RETURNING *
            """,
            request_id,
            version,
            *column_values,
        )

    async def get_latest(
        self,
        request_id: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Optional[Dict[str, Any]]:
        """Snapshot with the highest version, or None."""
        async with self.connection(conn) as c:
            row = await c.fetchrow(
                f"""
                SELECT * FROM {self.qualified_table}
                WHERE request_id = $1
                ORDER BY version DESC
                LIMIT 1
                """,
                request_id,
            )
        return row_to_snapshot(row)

    async def get_version(
        self,
        request_id: str,
        version: int,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Optional[Dict[str, Any]]:
        """Snapshot for an exact version, or None."""
        async with self.connection(conn) as c:
            row = await c.fetchrow(
                f"SELECT * FROM {self.qualified_table} WHERE request_id = $1 AND version = $2",
                request_id,
                version,
            )
        return row_to_snapshot(row)

    async def get_all_versions(
        self,
        request_id: str,
        conn: Optional[asyncpg.Connection] = None,
    ) -> List[Dict[str, Any]]:
        """All snapshots for a request, newest version first."""
        async with self.connection(conn) as c:
            rows = await c.fetch(
                f"""
                SELECT * FROM {self.qualified_table}
                WHERE request_id = $1
                ORDER BY version DESC
                """,
                request_id,
            )
        return [row_to_snapshot(row) for row in rows]

    async def get_latest_for_all(
        self,
        conn: Optional[asyncpg.Connection] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """Latest snapshot of every request of this type, keyed by request_id."""
        async with self.connection(conn) as c:
            rows = await c.fetch(
                f"""
                SELECT DISTINCT ON (request_id) *
                FROM {self.qualified_table}
                ORDER BY request_id, version DESC
                """
            )
        return {row["request_id"]: row_to_snapshot(row) for row in rows}
