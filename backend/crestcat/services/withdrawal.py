"""
Withdrawal Service

Cash-out requests and their admin decisions. Funds leave the balance only
on approval, through the ledger's conditional debit.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from crestcat.auth.principal import Principal
from crestcat.core.exceptions import InsufficientBalanceError, InvalidStateError, NotFoundError, ValidationError
from crestcat.core.logging import get_logger
from crestcat.core.settings import settings
from crestcat.models.balance_entry import BalanceReason
from crestcat.models.notification import NotificationCategory
from crestcat.models.transaction import TransactionStatus, TransactionType
from crestcat.models.user import User
from crestcat.models.withdrawal import Withdrawal, WithdrawalStatus
from crestcat.monitoring.prometheus import get_withdrawal_transitions_total
from crestcat.schemas.notification import EmailMessage, NotificationEvent
from crestcat.schemas.transaction import WithdrawalMeta
from crestcat.schemas.withdrawal import WithdrawalCreate
from crestcat.services.balance import BalanceLedger
from crestcat.services.lifecycle import WithdrawalEvent, withdrawal_target
from crestcat.services.notification import NotificationService
from crestcat.services.transaction import TransactionService
from crestcat.services.valuation import ZERO, to_money
from crestcat.utils.receipts import format_currency, format_datetime, generate_receipt_id

# Initialize logger
logger = get_logger(__name__)


class WithdrawalService:
    """Service for the withdrawal lifecycle."""

    def __init__(self, db: AsyncSession, notifier: NotificationService):
        self.db = db
        self.notifier = notifier
        self.ledger = BalanceLedger(db)
        self.transactions = TransactionService(db)

    async def available_balance(self, user_id: UUID) -> Decimal:
        """
        Balance a new withdrawal may draw on.

        With WITHDRAWAL_RESERVE_FUNDS on, amounts of pending withdrawals are
        held back; otherwise this is the plain balance.
        """
        balance = await self.ledger.balance_of(user_id)
        if not settings.features.WITHDRAWAL_RESERVE_FUNDS:
            return balance

        reserved = await self.db.scalar(
            select(func.coalesce(func.sum(Withdrawal.amount), 0)).where(
                Withdrawal.user_id == user_id,
                Withdrawal.status == WithdrawalStatus.PENDING.value
            )
        )
        return balance - to_money(reserved)

    async def create(self, principal: Principal, data: WithdrawalCreate) -> Withdrawal:
        """
        Request a withdrawal. The balance is not touched until approval.

        Raises:
            ValidationError: Non-positive amount or blank bank details
            NotFoundError: Unknown user
            InsufficientBalanceError: Amount above the available balance
        """
        amount = to_money(data.amount)
        if amount <= ZERO:
            raise ValidationError("Amount must be greater than zero")
        if not data.bank_account_number.strip() or not data.bank_account_name.strip():
            raise ValidationError("Bank account number and name are required")

        user = await self.db.get(User, principal.user_id)
        if user is None:
            raise NotFoundError("User not found")

        available = await self.available_balance(user.id)
        if amount > available:
            raise InsufficientBalanceError(
                "Insufficient balance",
                details={"requested": str(amount), "available": str(available)}
            )

        withdrawal = Withdrawal(
            id=uuid.uuid4(),
            user_id=user.id,
            amount=amount,
            bank_account_number=data.bank_account_number.strip(),
            bank_account_name=data.bank_account_name.strip(),
            additional_details=data.additional_details,
            status=WithdrawalStatus.PENDING.value,
        )
        self.db.add(withdrawal)
        await self.db.flush()

        self.transactions.record(
            user_id=user.id,
            tx_type=TransactionType.WITHDRAWAL,
            amount=amount,
            description=f"Withdrawal to {withdrawal.masked_account_number}",
            withdrawal_id=withdrawal.id,
            meta=WithdrawalMeta(withdrawal_id=withdrawal.id, bank_account_name=withdrawal.bank_account_name),
        )
        await self.db.commit()

        logger.info(
            "Withdrawal requested",
            extra={"withdrawal_id": str(withdrawal.id), "amount": str(amount)}
        )

        await self.notifier.notify(
            NotificationEvent(
                kind="withdrawal_requested",
                admin=True,
                title="New Withdrawal Request",
                message=f"{user.full_name} requested withdrawal of {format_currency(amount)}",
                category=NotificationCategory.WITHDRAWAL,
                whatsapp=(
                    "NEW WITHDRAWAL REQUEST\n\n"
                    f"User: {user.full_name}\n"
                    f"Email: {user.email}\n"
                    f"Amount: {format_currency(amount)}\n"
                    f"Account: {withdrawal.masked_account_number}\n"
                    f"Time: {format_datetime(withdrawal.created_at)}\n\n"
                    "Please process this withdrawal in the admin dashboard."
                ),
                payload={"withdrawal_id": str(withdrawal.id), "user_id": str(user.id), "amount": str(amount)},
            )
        )
        return withdrawal

    async def approve(
        self,
        principal: Principal,
        withdrawal_id: UUID,
        admin_notes: Optional[str] = None
    ) -> Withdrawal:
        """
        Pay out a pending withdrawal.

        The status guard and the debit share one transaction: if the debit
        finds too little balance the whole unit rolls back and the
        withdrawal stays PENDING.

        Raises:
            UnauthorizedError: Caller is not an admin
            NotFoundError: Unknown withdrawal
            InvalidStateError: Already processed
            InsufficientBalanceError: Balance below the amount
        """
        principal.require_admin()
        withdrawal = await self._lock(withdrawal_id)
        receipt_id = generate_receipt_id()

        try:
            await self._transition(
                withdrawal,
                WithdrawalEvent.APPROVE,
                processed_by=principal.user_id,
                processed_at=datetime.utcnow(),
                admin_notes=admin_notes,
                receipt_id=receipt_id,
            )
            await self.ledger.debit(
                withdrawal.user_id,
                withdrawal.amount,
                BalanceReason.WITHDRAWAL_DEBIT,
                withdrawal_id=withdrawal.id,
                actor_id=principal.user_id,
            )
        except InsufficientBalanceError:
            await self.db.rollback()
            logger.warning(
                "Withdrawal approval refused, insufficient balance",
                extra={"withdrawal_id": str(withdrawal_id)}
            )
            raise

        await self.transactions.mirror(
            status=TransactionStatus.COMPLETED,
            processed_by=principal.user_id,
            withdrawal_id=withdrawal.id,
        )
        await self.db.commit()

        user = await self.db.get(User, withdrawal.user_id)
        await self.notifier.notify(
            NotificationEvent(
                kind="withdrawal_completed",
                user_id=withdrawal.user_id,
                title="Withdrawal Completed",
                message=(
                    f"Your withdrawal of {format_currency(withdrawal.amount)} has been processed. "
                    "Check your email for the receipt."
                ),
                category=NotificationCategory.WITHDRAWAL,
                email=EmailMessage(
                    to=user.email,
                    subject=f"Withdrawal Receipt - {receipt_id}",
                    template_name="withdrawal_receipt",
                    template_data={
                        "name": user.full_name,
                        "receipt_id": receipt_id,
                        "amount": str(to_money(withdrawal.amount)),
                        "bank_account": withdrawal.masked_account_number,
                        "date": format_datetime(withdrawal.processed_at),
                        "status": "Completed",
                        "admin_notes": admin_notes,
                    },
                ) if user is not None else None,
                payload={"withdrawal_id": str(withdrawal.id), "receipt_id": receipt_id},
            )
        )
        return withdrawal

    async def reject(
        self,
        principal: Principal,
        withdrawal_id: UUID,
        admin_notes: Optional[str] = None
    ) -> Withdrawal:
        """
        Refuse a pending withdrawal. No balance moves.

        Raises:
            UnauthorizedError: Caller is not an admin
            NotFoundError: Unknown withdrawal
            InvalidStateError: Already processed
        """
        principal.require_admin()
        withdrawal = await self._lock(withdrawal_id)
        await self._transition(
            withdrawal,
            WithdrawalEvent.REJECT,
            processed_by=principal.user_id,
            processed_at=datetime.utcnow(),
            admin_notes=admin_notes,
        )
        await self.transactions.mirror(
            status=TransactionStatus.REJECTED,
            processed_by=principal.user_id,
            withdrawal_id=withdrawal.id,
        )
        await self.db.commit()

        await self.notifier.notify(
            NotificationEvent(
                kind="withdrawal_rejected",
                user_id=withdrawal.user_id,
                title="Withdrawal Rejected",
                message=f"Your withdrawal request has been rejected. {admin_notes or 'Please contact support.'}",
                category=NotificationCategory.WITHDRAWAL,
                payload={"withdrawal_id": str(withdrawal.id)},
            )
        )
        return withdrawal

    async def process(
        self,
        principal: Principal,
        withdrawal_id: UUID,
        action: str,
        admin_notes: Optional[str] = None
    ) -> Withdrawal:
        """Dispatch an ``approve`` / ``reject`` admin decision."""
        if action == "approve":
            return await self.approve(principal, withdrawal_id, admin_notes)
        if action == "reject":
            return await self.reject(principal, withdrawal_id, admin_notes)
        raise ValidationError(f"Invalid action: {action}")

    async def get(self, principal: Principal, withdrawal_id: UUID) -> Withdrawal:
        withdrawal = await self.db.get(Withdrawal, withdrawal_id)
        if withdrawal is None:
            raise NotFoundError("Withdrawal not found")
        principal.require_owner(withdrawal.user_id)
        return withdrawal

    async def list_for_user(self, user_id: UUID) -> List[Withdrawal]:
        result = await self.db.execute(
            select(Withdrawal)
            .where(Withdrawal.user_id == user_id)
            .order_by(desc(Withdrawal.created_at))
        )
        return list(result.scalars().all())

    async def list_all(
        self,
        principal: Principal,
        status: Optional[WithdrawalStatus] = None
    ) -> List[Withdrawal]:
        principal.require_admin()
        query = select(Withdrawal)
        if status is not None:
            query = query.where(Withdrawal.status == status.value)
        result = await self.db.execute(query.order_by(desc(Withdrawal.created_at)))
        return list(result.scalars().all())

    async def _lock(self, withdrawal_id: UUID) -> Withdrawal:
        result = await self.db.execute(
            select(Withdrawal)
            .where(Withdrawal.id == withdrawal_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        withdrawal = result.scalar_one_or_none()
        if withdrawal is None:
            raise NotFoundError("Withdrawal not found", details={"withdrawal_id": str(withdrawal_id)})
        return withdrawal

    async def _transition(self, withdrawal: Withdrawal, event: WithdrawalEvent, **values) -> WithdrawalStatus:
        current = withdrawal.status
        target = withdrawal_target(current, event)

        result = await self.db.execute(
            update(Withdrawal)
            .where(Withdrawal.id == withdrawal.id, Withdrawal.status == current)
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError(
                "Withdrawal was changed by another request",
                details={"withdrawal_id": str(withdrawal.id), "event": event.value}
            )

        set_committed_value(withdrawal, "status", target.value)
        for key, value in values.items():
            set_committed_value(withdrawal, key, value)

        get_withdrawal_transitions_total().labels(event=event.value).inc()
        logger.info(
            "Withdrawal transition",
            extra={
                "withdrawal_id": str(withdrawal.id),
                "event": event.value,
                "from_status": current,
                "to_status": target.value
            }
        )
        return target
