"""
Admin Service

Dashboard aggregates, the user directory and manual balance adjustments.
"""

from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.auth.principal import Principal
from crestcat.core.logging import get_logger
from crestcat.models.asset import Asset
from crestcat.models.investment import LIVE_STATUSES, Investment, InvestmentStatus
from crestcat.models.notification import NotificationCategory
from crestcat.models.transaction import Transaction, TransactionStatus, TransactionType
from crestcat.models.user import User, UserRole
from crestcat.models.withdrawal import Withdrawal, WithdrawalStatus
from crestcat.schemas.admin import (
    AssetAllocation,
    BadgeCounts,
    BalanceAdjustment,
    BalanceAdjustmentResult,
    PlatformStats,
)
from crestcat.schemas.notification import NotificationEvent
from crestcat.services.balance import BalanceLedger
from crestcat.services.notification import NotificationService
from crestcat.services.valuation import to_money
from crestcat.utils.receipts import format_currency

# Initialize logger
logger = get_logger(__name__)

NEW_USER_WINDOW = timedelta(hours=24)


class AdminService:
    """Service for admin-only reads and balance overrides."""

    def __init__(self, db: AsyncSession, notifier: NotificationService):
        self.db = db
        self.notifier = notifier
        self.ledger = BalanceLedger(db)

    async def stats(self, principal: Principal) -> PlatformStats:
        """Platform totals for the admin dashboard."""
        principal.require_admin()

        total_users = await self.db.scalar(
            select(func.count(User.id)).where(User.role == UserRole.USER.value)
        )
        by_status = dict(
            (await self.db.execute(
                select(Investment.status, func.count(Investment.id)).group_by(Investment.status)
            )).all()
        )
        pending_withdrawals = await self.db.scalar(
            select(func.count(Withdrawal.id)).where(Withdrawal.status == WithdrawalStatus.PENDING.value)
        )
        pending_deposits = await self.db.scalar(
            select(func.count(Transaction.id)).where(
                Transaction.type == TransactionType.DEPOSIT.value,
                Transaction.status == TransactionStatus.PENDING.value
            )
        )
        volume = await self.db.scalar(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.status == TransactionStatus.COMPLETED.value
            )
        )

        rows = await self.db.execute(
            select(Asset.id, Asset.name, Asset.symbol, func.sum(Investment.amount))
            .join(Investment, Investment.asset_id == Asset.id)
            .where(Investment.status.in_(LIVE_STATUSES))
            .group_by(Asset.id, Asset.name, Asset.symbol)
            .order_by(desc(func.sum(Investment.amount)))
        )
        distribution = [
            AssetAllocation(
                asset_id=asset_id,
                asset_name=name,
                asset_symbol=symbol,
                total_invested=to_money(total or 0)
            )
            for asset_id, name, symbol, total in rows.all()
        ]

        return PlatformStats(
            total_users=total_users or 0,
            total_investments=sum(by_status.values()),
            investments_by_status={s.value: by_status.get(s.value, 0) for s in InvestmentStatus},
            pending_withdrawals=pending_withdrawals or 0,
            pending_deposits=pending_deposits or 0,
            total_transaction_volume=to_money(volume or 0),
            asset_distribution=distribution,
        )

    async def badge_counts(self, principal: Principal, now: Optional[datetime] = None) -> BadgeCounts:
        """Counts of items awaiting admin attention."""
        principal.require_admin()
        now = now or datetime.utcnow()

        new_users = await self.db.scalar(
            select(func.count(User.id)).where(
                User.role == UserRole.USER.value,
                User.created_at >= now - NEW_USER_WINDOW
            )
        )
        pending_investments = await self.db.scalar(
            select(func.count(Investment.id)).where(
                Investment.status.in_([
                    InvestmentStatus.PENDING.value,
                    InvestmentStatus.CLOSURE_REQUESTED.value
                ])
            )
        )
        pending_withdrawals = await self.db.scalar(
            select(func.count(Withdrawal.id)).where(Withdrawal.status == WithdrawalStatus.PENDING.value)
        )
        return BadgeCounts(
            new_users=new_users or 0,
            pending_investments=pending_investments or 0,
            pending_withdrawals=pending_withdrawals or 0,
        )

    async def list_users(self, principal: Principal) -> List[User]:
        principal.require_admin()
        result = await self.db.execute(
            select(User).where(User.role == UserRole.USER.value).order_by(desc(User.created_at))
        )
        return list(result.scalars().all())

    async def adjust_balance(
        self,
        principal: Principal,
        user_id: UUID,
        data: BalanceAdjustment
    ) -> BalanceAdjustmentResult:
        """
        Set, increase or decrease a user's balance.

        Raises:
            UnauthorizedError: Caller is not an admin
            NotFoundError: Unknown user
            ValidationError: Negative amount
            InsufficientBalanceError: The result would be negative
        """
        principal.require_admin()
        transaction = await self.ledger.adjust(
            user_id,
            data.operation,
            data.amount,
            admin_id=principal.user_id,
            note=data.note
        )
        await self.db.commit()

        meta = transaction.meta_data
        result = BalanceAdjustmentResult(
            user_id=user_id,
            operation=data.operation,
            previous_balance=meta["previous_balance"],
            new_balance=meta["new_balance"],
            transaction_id=transaction.id,
        )

        await self.notifier.notify(
            NotificationEvent(
                kind="balance_adjusted",
                user_id=user_id,
                title="Balance Updated",
                message=f"Your balance has been updated to {format_currency(result.new_balance)}.",
                category=NotificationCategory.SYSTEM,
                payload={"transaction_id": str(transaction.id), "operation": data.operation},
            )
        )
        return result
