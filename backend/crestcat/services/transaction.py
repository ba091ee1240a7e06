"""
Transaction Service

Writes and reads the Transaction audit trail. Records are added to the
caller's session and committed with the caller's unit of work.
"""

import uuid
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.auth.principal import Principal
from crestcat.core.exceptions import NotFoundError
from crestcat.core.logging import get_logger
from crestcat.models.transaction import Transaction, TransactionStatus, TransactionType
from crestcat.schemas.transaction import TransactionFilter, dump_meta
from crestcat.services.valuation import to_money

# Initialize logger
logger = get_logger(__name__)


class TransactionService:
    """Service for the cash movement audit trail."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def record(
        self,
        *,
        user_id: UUID,
        tx_type: TransactionType,
        amount: Decimal,
        meta: BaseModel,
        status: TransactionStatus = TransactionStatus.PENDING,
        description: Optional[str] = None,
        investment_id: Optional[UUID] = None,
        withdrawal_id: Optional[UUID] = None,
        processed_by: Optional[UUID] = None,
    ) -> Transaction:
        """
        Add a transaction record to the session.

        Args:
            user_id: Account the movement belongs to
            tx_type: Transaction type; selects the metadata variant
            amount: Non-negative amount
            meta: Typed metadata matching ``tx_type``
            status: Initial status
            description: Human readable summary
            investment_id: Linked investment
            withdrawal_id: Linked withdrawal
            processed_by: Admin who decided the movement

        Returns:
            The pending Transaction (flushed with the caller's commit)

        Raises:
            ValidationError: If ``meta`` does not match ``tx_type``
        """
        transaction = Transaction(
            id=uuid.uuid4(),
            user_id=user_id,
            type=tx_type.value,
            status=status.value,
            amount=to_money(amount),
            description=description,
            investment_id=investment_id,
            withdrawal_id=withdrawal_id,
            processed_by=processed_by,
            meta_data=dump_meta(tx_type, meta),
        )
        self.db.add(transaction)
        return transaction

    async def mirror(
        self,
        *,
        status: TransactionStatus,
        processed_by: Optional[UUID] = None,
        investment_id: Optional[UUID] = None,
        withdrawal_id: Optional[UUID] = None,
        tx_type: Optional[TransactionType] = None,
    ) -> int:
        """
        Copy a lifecycle decision onto the pending transaction(s) linked to an entity.

        Returns:
            Number of transaction rows updated
        """
        stmt = update(Transaction).where(
            Transaction.status == TransactionStatus.PENDING.value
        )
        if investment_id is not None:
            stmt = stmt.where(Transaction.investment_id == investment_id)
        if withdrawal_id is not None:
            stmt = stmt.where(Transaction.withdrawal_id == withdrawal_id)
        if tx_type is not None:
            stmt = stmt.where(Transaction.type == tx_type.value)

        result = await self.db.execute(
            stmt.values(status=status.value, processed_by=processed_by)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            logger.warning(
                "No pending transaction to mirror",
                extra={
                    "investment_id": str(investment_id) if investment_id else None,
                    "withdrawal_id": str(withdrawal_id) if withdrawal_id else None,
                    "target_status": status.value
                }
            )
        return result.rowcount

    async def get(self, transaction_id: UUID, principal: Principal) -> Transaction:
        transaction = await self.db.get(Transaction, transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction not found")
        principal.require_owner(transaction.user_id)
        return transaction

    async def list_for_user(
        self,
        user_id: UUID,
        filters: Optional[TransactionFilter] = None
    ) -> List[Transaction]:
        return await self._list(filters or TransactionFilter(), user_id=user_id)

    async def list_all(self, filters: Optional[TransactionFilter] = None) -> List[Transaction]:
        return await self._list(filters or TransactionFilter())

    async def _list(
        self,
        filters: TransactionFilter,
        user_id: Optional[UUID] = None
    ) -> List[Transaction]:
        query = select(Transaction)
        if user_id is not None:
            query = query.where(Transaction.user_id == user_id)
        if filters.type is not None:
            query = query.where(Transaction.type == filters.type.value)
        if filters.status is not None:
            query = query.where(Transaction.status == filters.status.value)

        query = query.order_by(desc(Transaction.created_at)).limit(filters.limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())
