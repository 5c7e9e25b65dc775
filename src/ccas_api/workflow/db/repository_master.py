"""
Master Data Repository

Read-only lookups over the master plant and company code tables (loaded by the ETL job).
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import asyncpg

from ccas_api.workflow.db.repository_base import SCHEMA
from ccas_api.workflow.db.repository_details import row_to_snapshot

DEFAULT_LIMIT = 1000
MAX_LIMIT = 10000


def clamp_limit(limit: Optional[int]) -> int:
    """Default to DEFAULT_LIMIT, cap at MAX_LIMIT, never below 1."""
    if limit is None:
        return DEFAULT_LIMIT
    return max(1, min(int(limit), MAX_LIMIT))


class MasterDataRepository:
    """Master plant/company code lookups."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def search_company_codes(
        self,
        q: Optional[str] = None,
        company_code: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Search master company codes.

        Args:
            q: Case-insensitive substring of code or name
            company_code: Exact company code
            limit: Page size (default 1000, max 10000)
            offset: Rows to skip
        """
        clauses = []
        params: List[Any] = []
        if q:
            params.append(f"%{q}%")
            clauses.append(f"(company_code ILIKE ${len(params)} OR name_of_company_code ILIKE ${len(params)})")
        if company_code:
            params.append(company_code)
            clauses.append(f"company_code = ${len(params)}")
        return await self._page(
            f"SELECT * FROM {SCHEMA}.master_company_codes",
            clauses,
            params,
            "company_code",
            limit,
            offset,
        )

    async def search_plant_codes(
        self,
        q: Optional[str] = None,
        company_code: Optional[str] = None,
        plant_code: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Search master plant codes.

        Args:
            q: Case-insensitive substring of plant code or plant name
            company_code: Exact company code
            plant_code: Exact plant code
            limit: Page size (default 1000, max 10000)
            offset: Rows to skip
        """
        clauses = []
        params: List[Any] = []
        if q:
            params.append(f"%{q}%")
            clauses.append(f"(plant_code ILIKE ${len(params)} OR name_of_plant ILIKE ${len(params)})")
        if company_code:
            params.append(company_code)
            clauses.append(f"company_code = ${len(params)}")
        if plant_code:
            params.append(plant_code)
            clauses.append(f"plant_code = ${len(params)}")
        return await self._page(
            f"SELECT * FROM {SCHEMA}.master_plant_codes",
            clauses,
            params,
            "company_code, plant_code",
            limit,
            offset,
        )

    async def _page(
        self,
        select: str,
        clauses: List[str],
        params: List[Any],
        order_by: str,
        limit: Optional[int],
        offset: int,
    ) -> List[Dict[str, Any]]:
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        params = [*params, clamp_limit(limit), max(0, offset)]
        query = f"{select}{where} ORDER BY {order_by} LIMIT ${len(params) - 1} OFFSET ${len(params)}"
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [row_to_snapshot(row) for row in rows]

    async def get_company_code(self, company_code: str) -> Optional[Dict[str, Any]]:
        """Master record for one company code, keyed by canonical field name."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT * FROM {SCHEMA}.master_company_codes WHERE company_code = $1",
                company_code,
            )
        return row_to_snapshot(row)

    async def get_plant_code(self, company_code: str, plant_code: str) -> Optional[Dict[str, Any]]:
        """Master record for one plant, keyed by canonical field name."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT * FROM {SCHEMA}.master_plant_codes WHERE company_code = $1 AND plant_code = $2",
                company_code,
                plant_code,
            )
        return row_to_snapshot(row)
