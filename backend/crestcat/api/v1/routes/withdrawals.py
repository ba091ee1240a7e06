"""Withdrawal API endpoints."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.api import deps
from crestcat.schemas.withdrawal import WithdrawalCreate, WithdrawalResponse
from crestcat.services.notification import NotificationService
from crestcat.services.withdrawal import WithdrawalService

router = APIRouter()


@router.post("", response_model=WithdrawalResponse, status_code=status.HTTP_201_CREATED)
async def create_withdrawal(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.CurrentPrincipal,
    withdrawal_in: WithdrawalCreate
) -> WithdrawalResponse:
    """
    Request a withdrawal to a bank account.

    Args:
        db: Database session
        notifier: Notification service
        principal: Current authenticated user
        withdrawal_in: Amount and bank details

    Returns:
        The pending withdrawal
    """
    service = WithdrawalService(db, notifier)
    return await service.create(principal, withdrawal_in)


@router.get("", response_model=List[WithdrawalResponse])
async def list_my_withdrawals(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.CurrentPrincipal
) -> List[WithdrawalResponse]:
    service = WithdrawalService(db, notifier)
    return await service.list_for_user(principal.user_id)


@router.get("/{withdrawal_id}", response_model=WithdrawalResponse)
async def get_withdrawal(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.CurrentPrincipal,
    withdrawal_id: UUID
) -> WithdrawalResponse:
    service = WithdrawalService(db, notifier)
    return await service.get(principal, withdrawal_id)
