"""Read-only master data lookups (existing plant and company codes)."""

from typing import Optional

import asyncpg
from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query

from ccas_api.dependencies import get_db_pool
from ccas_api.schemas.schemas_workflow import MasterDataResponse
from ccas_api.workflow.db.repository_master import DEFAULT_LIMIT
from ccas_api.workflow.db.repository_master import MAX_LIMIT
from ccas_api.workflow.db.repository_master import MasterDataRepository
from ccas_api.workflow.db.repository_master import clamp_limit

ROUTER_MASTER = APIRouter(tags=["Master Data"], prefix="/master")


@ROUTER_MASTER.get(
    "/company-codes",
    response_model=MasterDataResponse,
    summary="Search master company codes",
)
async def search_company_codes(
    q: Optional[str] = Query(default=None, description="Substring of company code or name"),
    company_code: Optional[str] = Query(default=None, alias="companyCode"),
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    offset: int = Query(default=0, ge=0),
    pool: asyncpg.Pool = Depends(get_db_pool),
):
    items = await MasterDataRepository(pool).search_company_codes(
        q=q, company_code=company_code, limit=limit, offset=offset
    )
    return MasterDataResponse(
        Message=f"Found {len(items)} company code(s)",
        Count=len(items),
        Limit=clamp_limit(limit),
        Offset=offset,
        Items=items,
    )


@ROUTER_MASTER.get(
    "/plant-codes",
    response_model=MasterDataResponse,
    summary="Search master plant codes",
)
async def search_plant_codes(
    q: Optional[str] = Query(default=None, description="Substring of plant code or plant name"),
    company_code: Optional[str] = Query(default=None, alias="companyCode"),
    plant_code: Optional[str] = Query(default=None, alias="plantCode"),
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    offset: int = Query(default=0, ge=0),
    pool: asyncpg.Pool = Depends(get_db_pool),
):
    items = await MasterDataRepository(pool).search_plant_codes(
        q=q, company_code=company_code, plant_code=plant_code, limit=limit, offset=offset
    )
    return MasterDataResponse(
        Message=f"Found {len(items)} plant code(s)",
        Count=len(items),
        Limit=clamp_limit(limit),
        Offset=offset,
        Items=items,
    )
