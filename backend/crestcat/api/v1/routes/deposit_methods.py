"""Deposit methods offered to investors (edits live under /admin)."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.api import deps
from crestcat.schemas.deposit_method import DepositMethodList
from crestcat.services.deposit_method import DepositMethodService

router = APIRouter()


@router.get("", response_model=DepositMethodList)
async def list_deposit_methods(
    *,
    db: AsyncSession = Depends(deps.get_db),
    principal: deps.CurrentPrincipal
) -> DepositMethodList:
    """Active deposit methods with the account details to pay into."""
    methods = await DepositMethodService(db).list_methods(active_only=True)
    return DepositMethodList(deposit_methods=methods)
