"""
Investment API endpoints.

Deposits, portfolio reads and closure requests for the authenticated user.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.api import deps
from crestcat.models.investment import InvestmentStatus
from crestcat.schemas.investment import InvestmentCreate, InvestmentResponse
from crestcat.services.investment import InvestmentService
from crestcat.services.notification import NotificationService

router = APIRouter()


@router.post("", response_model=InvestmentResponse, status_code=status.HTTP_201_CREATED)
async def create_investment(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.CurrentPrincipal,
    investment_in: InvestmentCreate
) -> InvestmentResponse:
    """
    Submit a deposit into an asset.

    Args:
        db: Database session
        notifier: Notification service
        principal: Current authenticated user
        investment_in: Asset, amount and deposit evidence

    Returns:
        The pending investment
    """
    service = InvestmentService(db, notifier)
    return await service.create(principal, investment_in)


@router.get("", response_model=List[InvestmentResponse])
async def list_my_investments(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.CurrentPrincipal,
    status_filter: Optional[InvestmentStatus] = Query(None, alias="status")
) -> List[InvestmentResponse]:
    service = InvestmentService(db, notifier)
    return await service.list_for_user(principal.user_id, status_filter)


@router.get("/{investment_id}", response_model=InvestmentResponse)
async def get_investment(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.CurrentPrincipal,
    investment_id: UUID
) -> InvestmentResponse:
    service = InvestmentService(db, notifier)
    return await service.get(principal, investment_id)


@router.post("/{investment_id}/close", response_model=InvestmentResponse)
async def request_closure(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.CurrentPrincipal,
    investment_id: UUID
) -> InvestmentResponse:
    """
    Ask for an active investment to be closed and paid out.

    The closing value is credited only once an admin approves the request.
    """
    service = InvestmentService(db, notifier)
    return await service.request_closure(principal, investment_id)
