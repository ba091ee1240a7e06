"""
Admin API endpoints.

Investment review, closure decisions, the asset catalogue, withdrawal
processing, balance adjustments and dashboard aggregates. Every route
requires an admin principal.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.api import deps
from crestcat.models.investment import InvestmentStatus
from crestcat.models.transaction import TransactionStatus, TransactionType
from crestcat.models.withdrawal import WithdrawalStatus
from crestcat.schemas.admin import (
    BadgeCounts,
    BalanceAdjustment,
    BalanceAdjustmentResult,
    PlatformStats,
    ReconciliationReport,
)
from crestcat.schemas.asset import AssetCreate, AssetPriceUpdate, AssetResponse, AssetUpdate
from crestcat.schemas.deposit_method import DepositMethodList
from crestcat.schemas.investment import (
    ClosureDecision,
    ClosureRejection,
    InvestmentCorrection,
    InvestmentResponse,
    InvestmentReview,
)
from crestcat.schemas.notification import NotificationList, NotificationResponse
from crestcat.schemas.transaction import TransactionFilter, TransactionResponse
from crestcat.schemas.user import UserResponse
from crestcat.schemas.withdrawal import WithdrawalProcess, WithdrawalResponse
from crestcat.services.admin import AdminService
from crestcat.services.asset import AssetService
from crestcat.services.deposit_method import DepositMethodService
from crestcat.services.investment import InvestmentService
from crestcat.services.notification import NotificationService
from crestcat.services.transaction import TransactionService
from crestcat.services.withdrawal import WithdrawalService

router = APIRouter()


# Investments

@router.get("/investments", response_model=List[InvestmentResponse])
async def list_investments(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal,
    status_filter: Optional[InvestmentStatus] = Query(None, alias="status")
) -> List[InvestmentResponse]:
    return await InvestmentService(db, notifier).list_all(principal, status_filter)


@router.get("/investments/pending", response_model=List[InvestmentResponse])
async def list_pending_investments(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal
) -> List[InvestmentResponse]:
    return await InvestmentService(db, notifier).list_pending(principal)


@router.get("/investments/active", response_model=List[InvestmentResponse])
async def list_active_investments(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal
) -> List[InvestmentResponse]:
    return await InvestmentService(db, notifier).list_active(principal)


@router.get("/investments/closure-requests", response_model=List[InvestmentResponse])
async def list_closure_requests(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal
) -> List[InvestmentResponse]:
    return await InvestmentService(db, notifier).list_closure_requested(principal)


@router.post("/investments/{investment_id}/approve", response_model=InvestmentResponse)
async def approve_investment(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal,
    investment_id: UUID,
    review: Optional[InvestmentReview] = None
) -> InvestmentResponse:
    """Confirm the deposit of a pending investment."""
    notes = review.notes if review else None
    return await InvestmentService(db, notifier).approve(principal, investment_id, notes)


@router.post("/investments/{investment_id}/reject", response_model=InvestmentResponse)
async def reject_investment(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal,
    investment_id: UUID,
    review: Optional[InvestmentReview] = None
) -> InvestmentResponse:
    notes = review.notes if review else None
    return await InvestmentService(db, notifier).reject(principal, investment_id, notes)


@router.patch("/investments/{investment_id}", response_model=InvestmentResponse)
async def correct_investment(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal,
    investment_id: UUID,
    correction: InvestmentCorrection
) -> InvestmentResponse:
    """Correct deposit evidence while the investment is still pending."""
    return await InvestmentService(db, notifier).correct(principal, investment_id, correction)


@router.post("/investments/{investment_id}/closure/approve", response_model=InvestmentResponse)
async def approve_closure(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal,
    investment_id: UUID,
    decision: Optional[ClosureDecision] = None
) -> InvestmentResponse:
    """
    Close an investment and credit its current value to the owner.

    Args:
        db: Database session
        notifier: Notification service
        principal: Current admin
        investment_id: Investment with a pending closure request
        decision: Optional admin notes

    Returns:
        The closed investment
    """
    notes = decision.notes if decision else None
    return await InvestmentService(db, notifier).approve_closure(principal, investment_id, notes)


@router.post("/investments/{investment_id}/closure/reject", response_model=InvestmentResponse)
async def reject_closure(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal,
    investment_id: UUID,
    rejection: ClosureRejection
) -> InvestmentResponse:
    return await InvestmentService(db, notifier).reject_closure(principal, investment_id, rejection.reason)


# Assets

@router.post("/assets", response_model=AssetResponse, status_code=status.HTTP_201_CREATED)
async def create_asset(
    *,
    db: AsyncSession = Depends(deps.get_db),
    principal: deps.AdminPrincipal,
    asset_in: AssetCreate
) -> AssetResponse:
    return await AssetService(db).create(principal, asset_in)


@router.patch("/assets/{asset_id}", response_model=AssetResponse)
async def update_asset(
    *,
    db: AsyncSession = Depends(deps.get_db),
    principal: deps.AdminPrincipal,
    asset_id: UUID,
    asset_in: AssetUpdate
) -> AssetResponse:
    asset, _ = await AssetService(db).update(principal, asset_id, asset_in)
    return asset


@router.put("/assets/{asset_id}/price", response_model=ReconciliationReport)
async def update_asset_price(
    *,
    db: AsyncSession = Depends(deps.get_db),
    principal: deps.AdminPrincipal,
    asset_id: UUID,
    price_in: AssetPriceUpdate
) -> ReconciliationReport:
    """
    Set a new price and revalue every live investment on the asset.

    Returns:
        Per-investment revaluations and the total balance movement
    """
    return await AssetService(db).update_price(principal, asset_id, price_in.price)


@router.delete("/assets/{asset_id}", response_model=AssetResponse)
async def delete_asset(
    *,
    db: AsyncSession = Depends(deps.get_db),
    principal: deps.AdminPrincipal,
    asset_id: UUID
) -> AssetResponse:
    return await AssetService(db).deactivate(principal, asset_id)


# Deposit methods

@router.get("/deposit-methods", response_model=DepositMethodList)
async def list_all_deposit_methods(
    *,
    db: AsyncSession = Depends(deps.get_db),
    principal: deps.AdminPrincipal
) -> DepositMethodList:
    """Every deposit method, including inactive ones."""
    return DepositMethodList(deposit_methods=await DepositMethodService(db).list_methods())


@router.put("/deposit-methods", response_model=DepositMethodList)
async def replace_deposit_methods(
    *,
    db: AsyncSession = Depends(deps.get_db),
    principal: deps.AdminPrincipal,
    methods_in: DepositMethodList
) -> DepositMethodList:
    """Replace the deposit methods catalogue."""
    methods = await DepositMethodService(db).replace(principal, methods_in)
    return DepositMethodList(deposit_methods=methods)


# Withdrawals

@router.get("/withdrawals", response_model=List[WithdrawalResponse])
async def list_withdrawals(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal,
    status_filter: Optional[WithdrawalStatus] = Query(None, alias="status")
) -> List[WithdrawalResponse]:
    return await WithdrawalService(db, notifier).list_all(principal, status_filter)


@router.post("/withdrawals/{withdrawal_id}/process", response_model=WithdrawalResponse)
async def process_withdrawal(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal,
    withdrawal_id: UUID,
    decision: WithdrawalProcess
) -> WithdrawalResponse:
    """Approve (pay out) or reject a pending withdrawal."""
    service = WithdrawalService(db, notifier)
    return await service.process(principal, withdrawal_id, decision.action, decision.admin_notes)


# Users and balances

@router.get("/users", response_model=List[UserResponse])
async def list_users(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal
) -> List[UserResponse]:
    return await AdminService(db, notifier).list_users(principal)


@router.post("/users/{user_id}/balance", response_model=BalanceAdjustmentResult)
async def adjust_user_balance(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal,
    user_id: UUID,
    adjustment: BalanceAdjustment
) -> BalanceAdjustmentResult:
    """Set, increase or decrease a user's balance; recorded as an ADMIN_ADJUSTMENT."""
    return await AdminService(db, notifier).adjust_balance(principal, user_id, adjustment)


@router.get("/transactions", response_model=List[TransactionResponse])
async def list_transactions(
    *,
    db: AsyncSession = Depends(deps.get_db),
    principal: deps.AdminPrincipal,
    type: Optional[TransactionType] = None,
    status_filter: Optional[TransactionStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500)
) -> List[TransactionResponse]:
    filters = TransactionFilter(type=type, status=status_filter, limit=limit)
    return await TransactionService(db).list_all(filters)


# Dashboard

@router.get("/stats", response_model=PlatformStats)
async def get_stats(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal
) -> PlatformStats:
    return await AdminService(db, notifier).stats(principal)


@router.get("/badge-counts", response_model=BadgeCounts)
async def get_badge_counts(
    *,
    db: AsyncSession = Depends(deps.get_db),
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal
) -> BadgeCounts:
    return await AdminService(db, notifier).badge_counts(principal)


@router.get("/notifications", response_model=NotificationList)
async def get_admin_notifications(
    *,
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal,
    limit: int = Query(50, ge=1, le=100)
) -> NotificationList:
    return await notifier.list_admin(limit)


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_admin_notification_read(
    *,
    notifier: NotificationService = Depends(deps.get_notifier),
    principal: deps.AdminPrincipal,
    notification_id: UUID
) -> NotificationResponse:
    return await notifier.mark_read(notification_id, None)
