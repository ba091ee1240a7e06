"""
Balance Ledger

The only writer of ``User.balance``. Every movement is a database-side
increment or decrement, never a value computed in Python and written back,
and every movement appends a BalanceEntry. Nothing here commits; callers
commit the whole unit of work.
"""

import uuid
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from crestcat.core.exceptions import InsufficientBalanceError, NotFoundError, ValidationError
from crestcat.core.logging import get_logger
from crestcat.models.balance_entry import BalanceEntry, BalanceReason
from crestcat.models.transaction import Transaction, TransactionStatus, TransactionType
from crestcat.models.user import User
from crestcat.monitoring.prometheus import get_balance_movements_total
from crestcat.schemas.transaction import AdjustmentMeta
from crestcat.services.transaction import TransactionService
from crestcat.services.valuation import ZERO, to_money

# Initialize logger
logger = get_logger(__name__)

AdjustOperation = Literal["set", "increase", "decrease"]


class BalanceLedger:
    """Atomic credit, debit and mark-to-market on user balances."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def balance_of(self, user_id: UUID) -> Decimal:
        """
        Read the stored balance.

        Raises:
            NotFoundError: If the user does not exist
        """
        result = await self.db.execute(select(User.balance).where(User.id == user_id))
        balance = result.scalar_one_or_none()
        if balance is None:
            raise NotFoundError("User not found", details={"user_id": str(user_id)})
        return to_money(balance)

    async def credit(
        self,
        user_id: UUID,
        amount: Decimal,
        reason: BalanceReason,
        **refs
    ) -> BalanceEntry:
        """
        Add a positive amount to the balance.

        Args:
            user_id: Account to credit
            amount: Strictly positive amount
            reason: Journal reason
            **refs: investment_id / withdrawal_id / transaction_id / asset_id / actor_id / note

        Returns:
            The journal entry

        Raises:
            ValidationError: If amount is not positive
            NotFoundError: If the user does not exist
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationError("Credit amount must be positive", details={"amount": str(amount)})
        return await self._apply(user_id, amount, reason, refs)

    async def debit(
        self,
        user_id: UUID,
        amount: Decimal,
        reason: BalanceReason,
        **refs
    ) -> BalanceEntry:
        """
        Subtract a positive amount, refusing to go below zero.

        The sufficiency check and the decrement are one conditional UPDATE,
        so two concurrent debits cannot both pass against the same funds.

        Raises:
            ValidationError: If amount is not positive
            InsufficientBalanceError: If the balance is lower than amount
            NotFoundError: If the user does not exist
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationError("Debit amount must be positive", details={"amount": str(amount)})

        stmt = (
            update(User)
            .where(User.id == user_id, User.balance >= amount)
            .values(balance=User.balance - amount)
            .returning(User.balance)
            .execution_options(synchronize_session=False)
        )
        new_balance = (await self.db.execute(stmt)).scalar_one_or_none()
        if new_balance is None:
            available = await self.balance_of(user_id)
            raise InsufficientBalanceError(
                "Insufficient balance",
                details={"requested": str(amount), "available": str(available)}
            )
        return self._journal(user_id, -amount, to_money(new_balance), reason, refs)

    async def mark_to_market(
        self,
        user_id: UUID,
        delta: Decimal,
        **refs
    ) -> Optional[BalanceEntry]:
        """
        Apply a signed change in unrealized profit/loss.

        The balance may go below zero here; clamping would break the
        equality between balance movements and profit/loss changes.

        Returns:
            The journal entry, or None when delta is zero
        """
        delta = to_money(delta)
        if delta == ZERO:
            return None
        return await self._apply(user_id, delta, BalanceReason.MARK_TO_MARKET, refs)

    async def adjust(
        self,
        user_id: UUID,
        operation: AdjustOperation,
        amount: Decimal,
        admin_id: UUID,
        note: Optional[str] = None
    ) -> Transaction:
        """
        Admin override of a balance, recorded as an ADMIN_ADJUSTMENT transaction.

        Args:
            user_id: Account to adjust
            operation: ``set``, ``increase`` or ``decrease``
            amount: Non-negative amount (target balance for ``set``)
            admin_id: Acting admin
            note: Optional reason

        Returns:
            The COMPLETED ADMIN_ADJUSTMENT transaction

        Raises:
            ValidationError: Negative amount or unknown operation
            InsufficientBalanceError: A decrease larger than the balance
            NotFoundError: If the user does not exist
        """
        amount = to_money(amount)
        if amount < ZERO:
            raise ValidationError("Adjustment amount must not be negative")

        # Row lock so a concurrent movement cannot slip between read and write of a "set"
        result = await self.db.execute(
            select(User.balance).where(User.id == user_id).with_for_update()
        )
        previous = result.scalar_one_or_none()
        if previous is None:
            raise NotFoundError("User not found", details={"user_id": str(user_id)})
        previous = to_money(previous)

        if operation == "increase":
            delta = amount
        elif operation == "decrease":
            delta = -amount
        elif operation == "set":
            delta = amount - previous
        else:
            raise ValidationError(f"Unknown adjustment operation: {operation}")

        if previous + delta < ZERO:
            raise InsufficientBalanceError(
                "Insufficient balance",
                details={"requested": str(amount), "available": str(previous)}
            )

        # The row lock above keeps the balance fixed until commit
        new_balance = previous + delta
        transaction = TransactionService(self.db).record(
            user_id=user_id,
            tx_type=TransactionType.ADMIN_ADJUSTMENT,
            amount=amount,
            status=TransactionStatus.COMPLETED,
            description=f"Admin balance {operation}",
            processed_by=admin_id,
            meta=AdjustmentMeta(
                operation=operation,
                previous_balance=previous,
                new_balance=new_balance,
                note=note,
            ),
        )
        await self.db.flush()

        refs = {"transaction_id": transaction.id, "actor_id": admin_id, "note": note}
        if delta > ZERO:
            await self.credit(user_id, delta, BalanceReason.ADMIN_ADJUSTMENT, **refs)
        elif delta < ZERO:
            await self.debit(user_id, -delta, BalanceReason.ADMIN_ADJUSTMENT, **refs)

        logger.info(
            "Balance adjusted by admin",
            extra={
                "target_user": str(user_id),
                "admin_id": str(admin_id),
                "operation": operation,
                "previous_balance": str(previous),
                "new_balance": str(new_balance)
            }
        )
        return transaction

    async def _apply(
        self,
        user_id: UUID,
        delta: Decimal,
        reason: BalanceReason,
        refs: dict
    ) -> BalanceEntry:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(balance=User.balance + delta)
            .returning(User.balance)
            .execution_options(synchronize_session=False)
        )
        new_balance = (await self.db.execute(stmt)).scalar_one_or_none()
        if new_balance is None:
            raise NotFoundError("User not found", details={"user_id": str(user_id)})
        return self._journal(user_id, delta, to_money(new_balance), reason, refs)

    def _journal(
        self,
        user_id: UUID,
        delta: Decimal,
        balance_after: Decimal,
        reason: BalanceReason,
        refs: dict
    ) -> BalanceEntry:
        self._sync_identity_map(user_id, balance_after)

        entry = BalanceEntry(
            id=uuid.uuid4(),
            user_id=user_id,
            amount=delta,
            balance_after=balance_after,
            reason=reason.value,
            investment_id=refs.get("investment_id"),
            withdrawal_id=refs.get("withdrawal_id"),
            transaction_id=refs.get("transaction_id"),
            asset_id=refs.get("asset_id"),
            actor_id=refs.get("actor_id"),
            note=refs.get("note"),
        )
        self.db.add(entry)
        get_balance_movements_total().labels(reason=reason.value).inc()

        logger.debug(
            "Balance movement",
            extra={
                "target_user": str(user_id),
                "delta": str(delta),
                "balance_after": str(balance_after),
                "reason": reason.value
            }
        )
        return entry

    def _sync_identity_map(self, user_id: UUID, balance: Decimal) -> None:
        """Keep an already loaded User in this session consistent with the row."""
        key = self.db.identity_key(User, user_id)
        user = self.db.identity_map.get(key)
        if user is not None:
            set_committed_value(user, "balance", balance)
