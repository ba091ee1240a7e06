"""
Investment Service

Drives an investment through its lifecycle: deposit, admin review, closure
request and closure decision. Every status change is a guarded UPDATE on the
current status, so a retried or concurrent decision matches no row and fails
instead of being applied twice. Notifications go out after commit.
"""

import uuid
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from crestcat.auth.principal import Principal
from crestcat.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from crestcat.core.logging import get_logger
from crestcat.core.settings import settings
from crestcat.models.asset import Asset
from crestcat.models.balance_entry import BalanceReason
from crestcat.models.investment import LIVE_STATUSES, Investment, InvestmentStatus
from crestcat.models.notification import NotificationCategory
from crestcat.models.transaction import TransactionStatus, TransactionType
from crestcat.models.user import User
from crestcat.monitoring.prometheus import get_investment_transitions_total
from crestcat.schemas.investment import InvestmentCorrection, InvestmentCreate
from crestcat.schemas.notification import EmailMessage, NotificationEvent
from crestcat.schemas.transaction import ClosureMeta, DepositMeta
from crestcat.services.balance import BalanceLedger
from crestcat.services.deposit_method import DepositMethodService
from crestcat.services.lifecycle import InvestmentEvent, investment_target
from crestcat.services.notification import NotificationService
from crestcat.services.transaction import TransactionService
from crestcat.services.valuation import ZERO, quantity, to_money, to_price
from crestcat.utils.receipts import format_currency, format_datetime, generate_receipt_id

# Initialize logger
logger = get_logger(__name__)


class InvestmentService:
    """Service for the investment lifecycle."""

    def __init__(self, db: AsyncSession, notifier: NotificationService):
        self.db = db
        self.notifier = notifier
        self.ledger = BalanceLedger(db)
        self.transactions = TransactionService(db)
        self.deposit_methods = DepositMethodService(db)

    async def create(self, principal: Principal, data: InvestmentCreate) -> Investment:
        """
        Submit a deposit into an asset.

        Args:
            principal: Depositing user
            data: Asset, amount and deposit evidence

        Returns:
            The PENDING investment

        Raises:
            NotFoundError: Unknown user, or unknown or deactivated asset
            ValidationError: Non-positive amount, below the asset minimum, or a
                deposit method that is not offered
        """
        user = await self._get_user(principal.user_id)
        asset = await self.db.get(Asset, data.asset_id)
        if asset is None or not asset.is_active:
            raise NotFoundError("Asset not found", details={"asset_id": str(data.asset_id)})

        amount = to_money(data.amount)
        if amount <= ZERO:
            raise ValidationError("Amount must be greater than zero")
        if amount < to_money(asset.min_investment):
            raise ValidationError(
                f"Minimum investment for {asset.name} is {format_currency(asset.min_investment, settings.ledger.CURRENCY)}",
                details={"min_investment": str(to_money(asset.min_investment))}
            )
        deposit_method = await self.deposit_methods.require_active(data.deposit_method)

        price = to_price(asset.current_price)
        receipt_id = generate_receipt_id()
        investment = Investment(
            id=uuid.uuid4(),
            user_id=user.id,
            asset=asset,
            amount=amount,
            quantity=quantity(amount, price),
            purchase_price=price,
            current_value=amount,
            profit_loss=ZERO,
            deposit_method=deposit_method,
            deposit_proof=data.deposit_proof,
            receipt_id=receipt_id,
            status=InvestmentStatus.PENDING.value,
        )
        self.db.add(investment)
        await self.db.flush()

        self.transactions.record(
            user_id=user.id,
            tx_type=TransactionType.DEPOSIT,
            amount=amount,
            description=f"Investment in {asset.name}",
            investment_id=investment.id,
            meta=DepositMeta(investment_id=investment.id, asset_name=asset.name, receipt_id=receipt_id),
        )
        await self.db.commit()

        logger.info(
            "Investment created",
            extra={
                "investment_id": str(investment.id),
                "asset_id": str(asset.id),
                "amount": str(amount),
                "receipt_id": receipt_id
            }
        )

        now = format_datetime(investment.created_at)
        await self._emit(
            NotificationEvent(
                kind="deposit_received",
                user_id=user.id,
                title="Deposit Received",
                message=f"Your deposit of {format_currency(amount)} into {asset.name} is awaiting approval.",
                category=NotificationCategory.DEPOSIT,
                email=EmailMessage(
                    to=user.email,
                    subject=f"Deposit Receipt - {receipt_id}",
                    template_name="deposit_receipt",
                    template_data={
                        "name": user.full_name,
                        "receipt_id": receipt_id,
                        "amount": str(amount),
                        "asset_name": asset.name,
                        "date": now,
                    },
                ),
                payload={"investment_id": str(investment.id), "receipt_id": receipt_id},
            ),
            NotificationEvent(
                kind="deposit_submitted",
                admin=True,
                title="New Deposit",
                message=f"{user.full_name} deposited {format_currency(amount)} into {asset.name}",
                category=NotificationCategory.DEPOSIT,
                whatsapp=(
                    "NEW DEPOSIT ALERT\n\n"
                    f"User: {user.full_name}\n"
                    f"Email: {user.email}\n"
                    f"Asset: {asset.name}\n"
                    f"Amount: {format_currency(amount)}\n"
                    f"Time: {now}\n\n"
                    "Please review and approve this deposit in the admin dashboard."
                ),
                payload={"investment_id": str(investment.id), "user_id": str(user.id)},
            ),
        )
        return investment

    async def approve(
        self,
        principal: Principal,
        investment_id: UUID,
        notes: Optional[str] = None
    ) -> Investment:
        """
        Confirm a pending deposit. No balance moves.

        Raises:
            UnauthorizedError: Caller is not an admin
            NotFoundError: Unknown investment
            InvalidStateError: Investment is not PENDING
        """
        principal.require_admin()
        investment = await self._lock(investment_id)
        await self._transition(
            investment,
            InvestmentEvent.APPROVE,
            approved_at=datetime.utcnow(),
            approved_by=principal.user_id,
            review_notes=notes,
        )
        await self.transactions.mirror(
            status=TransactionStatus.APPROVED,
            processed_by=principal.user_id,
            investment_id=investment.id,
            tx_type=TransactionType.DEPOSIT,
        )
        await self.db.commit()

        await self._emit(
            NotificationEvent(
                kind="investment_approved",
                user_id=investment.user_id,
                title="Investment Approved",
                message=f"Your {investment.asset.name} investment of {format_currency(investment.amount)} is now active.",
                category=NotificationCategory.INVESTMENT,
                payload={"investment_id": str(investment.id)},
            )
        )
        return investment

    async def reject(
        self,
        principal: Principal,
        investment_id: UUID,
        notes: Optional[str] = None
    ) -> Investment:
        """
        Refuse a pending deposit. The investment ends in REJECTED.

        Raises:
            UnauthorizedError: Caller is not an admin
            NotFoundError: Unknown investment
            InvalidStateError: Investment is not PENDING
        """
        principal.require_admin()
        investment = await self._lock(investment_id)
        await self._transition(
            investment,
            InvestmentEvent.REJECT,
            rejected_at=datetime.utcnow(),
            rejected_by=principal.user_id,
            review_notes=notes,
        )
        await self.transactions.mirror(
            status=TransactionStatus.REJECTED,
            processed_by=principal.user_id,
            investment_id=investment.id,
            tx_type=TransactionType.DEPOSIT,
        )
        await self.db.commit()

        await self._emit(
            NotificationEvent(
                kind="investment_rejected",
                user_id=investment.user_id,
                title="Investment Rejected",
                message=(
                    f"Your {investment.asset.name} deposit of {format_currency(investment.amount)} was rejected. "
                    f"{notes or 'Please contact support for more information.'}"
                ),
                category=NotificationCategory.INVESTMENT,
                payload={"investment_id": str(investment.id)},
            )
        )
        return investment

    async def request_closure(self, principal: Principal, investment_id: UUID) -> Investment:
        """
        Ask for an active investment to be closed.

        Ownership is checked before state, so a stranger learns nothing
        about the investment's status.

        Raises:
            NotFoundError: Unknown investment
            UnauthorizedError: Caller does not own the investment
            InvalidStateError: Investment is not ACTIVE
        """
        investment = await self._lock(investment_id)
        if investment.user_id != principal.user_id:
            raise UnauthorizedError("You do not own this investment")

        await self._transition(
            investment,
            InvestmentEvent.REQUEST_CLOSURE,
            closure_requested_at=datetime.utcnow(),
        )
        await self.db.commit()

        user = await self._get_user(investment.user_id)
        asset_name = investment.asset.name
        await self._emit(
            NotificationEvent(
                kind="closure_requested",
                admin=True,
                title="Investment Closure Request",
                message=(
                    f"{user.full_name} requested to close investment in {asset_name} "
                    f"worth {format_currency(investment.current_value)}"
                ),
                category=NotificationCategory.INVESTMENT,
                email=EmailMessage(
                    to=settings.notify.ADMIN_EMAIL,
                    subject=f"Closure Request - {asset_name}",
                    template_name="investment_closure_request",
                    template_data={
                        "name": "Admin",
                        "user_name": user.full_name,
                        "user_email": user.email,
                        "asset_name": asset_name,
                        "amount": str(to_money(investment.amount)),
                        "current_value": str(to_money(investment.current_value)),
                        "profit_loss": str(to_money(investment.profit_loss)),
                    },
                ),
                payload={
                    "investment_id": str(investment.id),
                    "user_id": str(investment.user_id),
                    "current_value": str(to_money(investment.current_value)),
                },
            ),
            NotificationEvent(
                kind="closure_submitted",
                user_id=investment.user_id,
                title="Closure Request Submitted",
                message=f"Your request to close {asset_name} investment has been submitted and is awaiting admin approval.",
                category=NotificationCategory.INVESTMENT,
                payload={"investment_id": str(investment.id)},
            ),
        )
        return investment

    async def approve_closure(
        self,
        principal: Principal,
        investment_id: UUID,
        notes: Optional[str] = None
    ) -> Investment:
        """
        Close an investment and credit its current value to the owner.

        The status guard and the credit commit together; a second approval
        finds the investment already CLOSED and credits nothing.

        Raises:
            UnauthorizedError: Caller is not an admin
            NotFoundError: Unknown investment
            InvalidStateError: No closure request pending
        """
        principal.require_admin()
        investment = await self._lock(investment_id)
        await self._transition(
            investment,
            InvestmentEvent.APPROVE_CLOSURE,
            closed_at=datetime.utcnow(),
            closure_approved_by=principal.user_id,
            closure_notes=notes,
        )

        closure_value = to_money(investment.current_value)
        amount = to_money(investment.amount)
        profit_loss = closure_value - amount
        asset_name = investment.asset.name

        transaction = self.transactions.record(
            user_id=investment.user_id,
            tx_type=TransactionType.INVESTMENT,
            amount=closure_value,
            status=TransactionStatus.COMPLETED,
            description=f"Investment closure: {asset_name} - Profit/Loss: {format_currency(profit_loss)}",
            investment_id=investment.id,
            processed_by=principal.user_id,
            meta=ClosureMeta(
                investment_id=investment.id,
                asset_name=asset_name,
                original_amount=amount,
                closure_value=closure_value,
                profit_loss=profit_loss,
            ),
        )
        await self.db.flush()

        if closure_value > ZERO:
            await self.ledger.credit(
                investment.user_id,
                closure_value,
                BalanceReason.CLOSURE_CREDIT,
                investment_id=investment.id,
                transaction_id=transaction.id,
                actor_id=principal.user_id,
            )
        await self.db.commit()

        logger.info(
            "Investment closed",
            extra={
                "investment_id": str(investment.id),
                "closure_value": str(closure_value),
                "profit_loss": str(profit_loss)
            }
        )

        user = await self._get_user(investment.user_id)
        await self._emit(
            NotificationEvent(
                kind="investment_closed",
                user_id=investment.user_id,
                title="Investment Closed",
                message=(
                    f"Your {asset_name} investment has been closed. "
                    f"{format_currency(closure_value)} has been added to your balance."
                ),
                category=NotificationCategory.INVESTMENT,
                email=EmailMessage(
                    to=user.email,
                    subject=f"Investment Closed - {asset_name}",
                    template_name="investment_closure_approved",
                    template_data={
                        "name": user.full_name,
                        "asset_name": asset_name,
                        "amount": str(amount),
                        "closure_value": str(closure_value),
                        "profit_loss": str(profit_loss),
                        "notes": notes,
                    },
                ),
                payload={"investment_id": str(investment.id), "closure_value": str(closure_value)},
            )
        )
        return investment

    async def reject_closure(
        self,
        principal: Principal,
        investment_id: UUID,
        reason: str
    ) -> Investment:
        """
        Refuse a closure request; the investment goes back to ACTIVE.

        Raises:
            UnauthorizedError: Caller is not an admin
            ValidationError: Blank reason
            NotFoundError: Unknown investment
            InvalidStateError: No closure request pending
        """
        principal.require_admin()
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A reason is required to reject a closure request")

        investment = await self._lock(investment_id)
        await self._transition(
            investment,
            InvestmentEvent.REJECT_CLOSURE,
            closure_rejected_at=datetime.utcnow(),
            closure_notes=reason,
            closure_requested_at=None,
        )
        await self.db.commit()

        user = await self._get_user(investment.user_id)
        asset_name = investment.asset.name
        await self._emit(
            NotificationEvent(
                kind="closure_rejected",
                user_id=investment.user_id,
                title="Investment Closure Rejected",
                message=f"Your request to close {asset_name} investment has been rejected. {reason}",
                category=NotificationCategory.INVESTMENT,
                email=EmailMessage(
                    to=user.email,
                    subject=f"Closure Request Declined - {asset_name}",
                    template_name="investment_closure_rejected",
                    template_data={"name": user.full_name, "asset_name": asset_name, "reason": reason},
                ),
                payload={"investment_id": str(investment.id)},
            )
        )
        return investment

    async def correct(
        self,
        principal: Principal,
        investment_id: UUID,
        data: InvestmentCorrection
    ) -> Investment:
        """
        Fix deposit evidence on a pending investment.

        Raises:
            UnauthorizedError: Caller is not an admin
            NotFoundError: Unknown investment
            InvalidStateError: Investment has already been reviewed
            ValidationError: Deposit method that is not offered
        """
        principal.require_admin()
        investment = await self._lock(investment_id)
        if investment.status != InvestmentStatus.PENDING.value:
            raise InvalidStateError(
                "Only pending investments can be corrected",
                details={"status": investment.status}
            )

        changes = data.model_dump(exclude_unset=True)
        if "deposit_method" in changes:
            changes["deposit_method"] = await self.deposit_methods.require_active(changes["deposit_method"])
        for field, value in changes.items():
            setattr(investment, field, value)
        await self.db.commit()

        logger.info(
            "Investment corrected",
            extra={"investment_id": str(investment.id), "fields": sorted(changes)}
        )
        return investment

    async def get(self, principal: Principal, investment_id: UUID) -> Investment:
        investment = await self.db.get(Investment, investment_id)
        if investment is None:
            raise NotFoundError("Investment not found")
        principal.require_owner(investment.user_id)
        return investment

    async def list_for_user(
        self,
        user_id: UUID,
        status: Optional[InvestmentStatus] = None
    ) -> List[Investment]:
        statuses = [status.value] if status else None
        return await self._list(statuses, user_id=user_id)

    async def list_pending(self, principal: Principal) -> List[Investment]:
        principal.require_admin()
        return await self._list([InvestmentStatus.PENDING.value])

    async def list_active(self, principal: Principal) -> List[Investment]:
        principal.require_admin()
        return await self._list(LIVE_STATUSES)

    async def list_closure_requested(self, principal: Principal) -> List[Investment]:
        principal.require_admin()
        return await self._list([InvestmentStatus.CLOSURE_REQUESTED.value])

    async def list_all(
        self,
        principal: Principal,
        status: Optional[InvestmentStatus] = None
    ) -> List[Investment]:
        principal.require_admin()
        return await self._list([status.value] if status else None)

    async def _list(
        self,
        statuses: Optional[Sequence[str]],
        user_id: Optional[UUID] = None
    ) -> List[Investment]:
        query = select(Investment)
        if user_id is not None:
            query = query.where(Investment.user_id == user_id)
        if statuses is not None:
            query = query.where(Investment.status.in_(statuses))
        result = await self.db.execute(query.order_by(desc(Investment.created_at)))
        return list(result.unique().scalars().all())

    async def _get_user(self, user_id: UUID) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found", details={"user_id": str(user_id)})
        return user

    async def _lock(self, investment_id: UUID) -> Investment:
        """Load an investment with its row locked, refreshing any cached copy."""
        result = await self.db.execute(
            select(Investment)
            .where(Investment.id == investment_id)
            .with_for_update(of=Investment)
            .execution_options(populate_existing=True)
        )
        investment = result.unique().scalar_one_or_none()
        if investment is None:
            raise NotFoundError("Investment not found", details={"investment_id": str(investment_id)})
        return investment

    async def _transition(self, investment: Investment, event: InvestmentEvent, **values) -> InvestmentStatus:
        """
        Move ``investment`` along ``event`` with a guarded UPDATE.

        Raises:
            InvalidStateError: The table forbids the move, or the row left its
                current status before this write
        """
        current = investment.status
        target = investment_target(current, event)

        result = await self.db.execute(
            update(Investment)
            .where(Investment.id == investment.id, Investment.status == current)
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError(
                "Investment was changed by another request",
                details={"investment_id": str(investment.id), "event": event.value}
            )

        set_committed_value(investment, "status", target.value)
        for key, value in values.items():
            set_committed_value(investment, key, value)

        get_investment_transitions_total().labels(event=event.value).inc()
        logger.info(
            "Investment transition",
            extra={
                "investment_id": str(investment.id),
                "event": event.value,
                "from_status": current,
                "to_status": target.value
            }
        )
        return target

    async def _emit(self, *events: NotificationEvent) -> None:
        for event in events:
            await self.notifier.notify(event)
