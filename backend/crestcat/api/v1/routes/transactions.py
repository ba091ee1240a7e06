"""Transaction history endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.api import deps
from crestcat.models.transaction import TransactionStatus, TransactionType
from crestcat.schemas.transaction import TransactionFilter, TransactionResponse
from crestcat.services.transaction import TransactionService

router = APIRouter()


@router.get("", response_model=List[TransactionResponse])
async def list_my_transactions(
    *,
    db: AsyncSession = Depends(deps.get_db),
    principal: deps.CurrentPrincipal,
    type: Optional[TransactionType] = None,
    status: Optional[TransactionStatus] = None,
    limit: int = Query(100, ge=1, le=500)
) -> List[TransactionResponse]:
    """
    Get the caller's transactions, newest first.

    Args:
        db: Database session
        principal: Current authenticated user
        type: Filter by transaction type
        status: Filter by transaction status
        limit: Maximum number of records to return
    """
    filters = TransactionFilter(type=type, status=status, limit=limit)
    return await TransactionService(db).list_for_user(principal.user_id, filters)
