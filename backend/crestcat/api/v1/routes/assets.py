"""Asset catalogue endpoints (read only; edits live under /admin)."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.api import deps
from crestcat.schemas.asset import AssetResponse
from crestcat.services.asset import AssetService

router = APIRouter()


@router.get("", response_model=List[AssetResponse])
async def list_assets(
    *,
    db: AsyncSession = Depends(deps.get_db)
) -> List[AssetResponse]:
    """List the assets open for investment."""
    return await AssetService(db).list_active()


@router.get("/{asset_id}", response_model=AssetResponse)
async def get_asset(
    *,
    db: AsyncSession = Depends(deps.get_db),
    asset_id: UUID
) -> AssetResponse:
    return await AssetService(db).get(asset_id)
