"""
Investment Service Tests
"""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import InvalidRequestError

from crestcat.auth.principal import Principal
from crestcat.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from crestcat.models.balance_entry import BalanceEntry, BalanceReason
from crestcat.models.investment import Investment, InvestmentStatus
from crestcat.models.transaction import Transaction, TransactionStatus, TransactionType
from crestcat.schemas.investment import InvestmentCorrection, InvestmentCreate
from crestcat.services.asset import AssetService
from crestcat.services.investment import InvestmentService
from tests.utils.factories import (
    BANK_TRANSFER,
    create_asset,
    create_investment,
    create_user,
    reload_user,
    set_deposit_methods,
)


@pytest.fixture
def service(db, notifier) -> InvestmentService:
    """Fixture for InvestmentService"""
    return InvestmentService(db, notifier)


@pytest.fixture
async def gold(db):
    return await create_asset(db, name="Gold", symbol="XAU", price=Decimal("2000.00"))


async def _transactions(db, investment_id):
    result = await db.execute(
        select(Transaction)
        .where(Transaction.investment_id == investment_id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def test_create_investment_is_pending_with_fixed_quantity(service, db, user, user_principal, gold):
    """Test deposit of 1000 at price 2000 buys half a unit and waits for review"""
    investment = await service.create(
        user_principal, InvestmentCreate(asset_id=gold.id, amount=Decimal("1000"))
    )

    assert investment.status == InvestmentStatus.PENDING.value
    assert investment.quantity == Decimal("0.5")
    assert investment.purchase_price == Decimal("2000.00")
    assert investment.current_value == Decimal("1000.00")
    assert investment.profit_loss == Decimal("0")
    assert investment.receipt_id.startswith("RCP-")

    refreshed = await reload_user(db, user.id)
    assert refreshed.balance == Decimal("0")

    transactions = await _transactions(db, investment.id)
    assert len(transactions) == 1
    assert transactions[0].type == TransactionType.DEPOSIT.value
    assert transactions[0].status == TransactionStatus.PENDING.value
    assert transactions[0].meta_data["receipt_id"] == investment.receipt_id


async def test_create_investment_notifies_user_and_admin(service, user_principal, gold, notifier, mailer, whatsapp):
    """Test deposit sends a receipt to the user and an alert to the admin"""
    await service.create(user_principal, InvestmentCreate(asset_id=gold.id, amount=Decimal("1000")))

    assert notifier.titles() == ["Deposit Received", "New Deposit"]
    assert notifier.events[1].admin is True
    assert mailer.sent[0]["template"] == "deposit_receipt"
    assert mailer.sent[0]["to"] == "investor@crestcat.com"
    assert whatsapp.messages[0].startswith("NEW DEPOSIT ALERT")


async def test_create_investment_below_minimum(service, db, user_principal):
    """Test deposit below the asset minimum is refused"""
    asset = await create_asset(db, price=Decimal("50"), min_investment=Decimal("100"))

    with pytest.raises(ValidationError):
        await service.create(user_principal, InvestmentCreate(asset_id=asset.id, amount=Decimal("99.99")))


async def test_create_investment_in_inactive_asset(service, db, user_principal):
    """Test deactivated assets do not accept deposits"""
    asset = await create_asset(db, is_active=False)

    with pytest.raises(NotFoundError):
        await service.create(user_principal, InvestmentCreate(asset_id=asset.id, amount=Decimal("100")))


async def test_approve_activates_without_moving_balance(service, db, user, user_principal, admin_principal, gold):
    """Test approval makes the investment active and leaves the balance alone"""
    investment = await service.create(user_principal, InvestmentCreate(asset_id=gold.id, amount=Decimal("1000")))

    approved = await service.approve(admin_principal, investment.id, "Payment received")

    assert approved.status == InvestmentStatus.ACTIVE.value
    assert approved.is_active is True
    assert approved.approved_by == admin_principal.user_id
    assert approved.quantity == Decimal("0.5")
    assert (await reload_user(db, user.id)).balance == Decimal("0")

    transactions = await _transactions(db, investment.id)
    assert transactions[0].status == TransactionStatus.APPROVED.value


async def test_approve_requires_admin(service, user_principal, gold):
    """Test a regular user cannot approve deposits"""
    investment = await service.create(user_principal, InvestmentCreate(asset_id=gold.id, amount=Decimal("1000")))

    with pytest.raises(UnauthorizedError):
        await service.approve(user_principal, investment.id)


async def test_approve_twice_is_refused(service, user_principal, admin_principal, gold):
    """Test an active investment cannot be approved again"""
    investment = await service.create(user_principal, InvestmentCreate(asset_id=gold.id, amount=Decimal("1000")))
    await service.approve(admin_principal, investment.id)

    with pytest.raises(InvalidStateError):
        await service.approve(admin_principal, investment.id)


async def test_reject_is_terminal(service, db, user_principal, admin_principal, gold):
    """Test a rejected deposit ends in REJECTED and accepts no further moves"""
    investment = await service.create(user_principal, InvestmentCreate(asset_id=gold.id, amount=Decimal("1000")))

    rejected = await service.reject(admin_principal, investment.id, "No payment found")

    assert rejected.status == InvestmentStatus.REJECTED.value
    assert rejected.is_active is False
    assert (await _transactions(db, investment.id))[0].status == TransactionStatus.REJECTED.value
    with pytest.raises(InvalidStateError):
        await service.approve(admin_principal, investment.id)


async def test_request_closure_by_owner(service, db, user, user_principal, gold, notifier, mailer):
    """Test the owner can ask to close an active investment"""
    investment = await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))

    requested = await service.request_closure(user_principal, investment.id)

    assert requested.status == InvestmentStatus.CLOSURE_REQUESTED.value
    assert requested.closure_requested is True
    assert requested.closure_requested_at is not None
    assert "Investment Closure Request" in notifier.titles()
    assert "Closure Request Submitted" in notifier.titles()
    assert mailer.sent[0]["template"] == "investment_closure_request"


async def test_request_closure_twice(service, db, user, user_principal, gold):
    """Test a second closure request is refused"""
    investment = await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))
    await service.request_closure(user_principal, investment.id)

    with pytest.raises(InvalidStateError) as exc_info:
        await service.request_closure(user_principal, investment.id)
    assert exc_info.value.message == "Closure already requested"


async def test_request_closure_by_stranger(service, db, user, other_principal, gold):
    """Test ownership is checked before the investment state"""
    investment = await create_investment(
        db, user=user, asset=gold, amount=Decimal("1000"), status=InvestmentStatus.PENDING
    )

    with pytest.raises(UnauthorizedError):
        await service.request_closure(other_principal, investment.id)


async def test_request_closure_on_pending_investment(service, db, user, user_principal, gold):
    """Test only active investments can be closed"""
    investment = await create_investment(
        db, user=user, asset=gold, amount=Decimal("1000"), status=InvestmentStatus.PENDING
    )

    with pytest.raises(InvalidStateError):
        await service.request_closure(user_principal, investment.id)


async def test_request_closure_unknown_investment(service, user_principal):
    """Test closing a missing investment"""
    with pytest.raises(NotFoundError):
        await service.request_closure(user_principal, uuid.uuid4())


async def test_approve_closure_credits_current_value(service, db, user, user_principal, admin_principal, gold, mailer):
    """Test closing an investment credits its current value once"""
    investment = await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))
    await service.request_closure(user_principal, investment.id)

    closed = await service.approve_closure(admin_principal, investment.id, "Paid out")

    assert closed.status == InvestmentStatus.CLOSED.value
    assert closed.closed_at is not None
    assert closed.closure_approved_by == admin_principal.user_id
    assert (await reload_user(db, user.id)).balance == Decimal("1000.00")

    closures = [t for t in await _transactions(db, investment.id) if t.type == TransactionType.INVESTMENT.value]
    assert len(closures) == 1
    assert closures[0].status == TransactionStatus.COMPLETED.value
    assert Decimal(closures[0].meta_data["closure_value"]) == Decimal("1000.00")
    assert mailer.sent[-1]["template"] == "investment_closure_approved"


async def test_approve_closure_twice_credits_once(service, db, user, user_principal, admin_principal, gold):
    """Test a repeated closure approval fails and does not credit again"""
    investment = await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))
    await service.request_closure(user_principal, investment.id)
    await service.approve_closure(admin_principal, investment.id)

    with pytest.raises(InvalidStateError):
        await service.approve_closure(admin_principal, investment.id)

    assert (await reload_user(db, user.id)).balance == Decimal("1000.00")
    credits = (await db.execute(
        select(BalanceEntry).where(
            BalanceEntry.investment_id == investment.id,
            BalanceEntry.reason == BalanceReason.CLOSURE_CREDIT.value
        )
    )).scalars().all()
    assert len(credits) == 1


async def test_approve_closure_without_request(service, db, user, admin_principal, gold):
    """Test closure approval needs a pending request"""
    investment = await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))

    with pytest.raises(InvalidStateError):
        await service.approve_closure(admin_principal, investment.id)
    assert (await reload_user(db, user.id)).balance == Decimal("0")


async def test_reject_closure_returns_to_active(service, db, user, user_principal, admin_principal, gold, mailer):
    """Test a rejected closure request leaves the investment active"""
    investment = await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))
    await service.request_closure(user_principal, investment.id)

    reopened = await service.reject_closure(admin_principal, investment.id, "Lock-in period not over")

    assert reopened.status == InvestmentStatus.ACTIVE.value
    assert reopened.closure_requested_at is None
    assert reopened.closure_notes == "Lock-in period not over"
    assert mailer.sent[-1]["template"] == "investment_closure_rejected"

    # The owner may ask again
    again = await service.request_closure(user_principal, investment.id)
    assert again.status == InvestmentStatus.CLOSURE_REQUESTED.value


async def test_reject_closure_needs_reason(service, db, user, user_principal, admin_principal, gold):
    """Test a blank reason is refused"""
    investment = await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))
    await service.request_closure(user_principal, investment.id)

    with pytest.raises(ValidationError):
        await service.reject_closure(admin_principal, investment.id, "   ")


async def test_correct_pending_investment(service, db, user_principal, admin_principal, gold):
    """Test deposit evidence can be fixed while pending"""
    await set_deposit_methods(db, BANK_TRANSFER)
    investment = await service.create(user_principal, InvestmentCreate(asset_id=gold.id, amount=Decimal("1000")))

    corrected = await service.correct(
        admin_principal, investment.id, InvestmentCorrection(deposit_method="bank-transfer")
    )

    assert corrected.deposit_method == "bank-transfer"
    assert corrected.status == InvestmentStatus.PENDING.value


async def test_correct_after_review_is_refused(service, db, user, admin_principal, gold):
    """Test reviewed investments cannot be corrected"""
    investment = await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))

    with pytest.raises(InvalidStateError):
        await service.correct(admin_principal, investment.id, InvestmentCorrection(deposit_method="Cash"))


async def test_get_hides_other_users_investments(service, db, user, other_principal, admin_principal, gold):
    """Test only the owner or an admin can read an investment"""
    investment = await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))

    with pytest.raises(UnauthorizedError):
        await service.get(other_principal, investment.id)
    assert (await service.get(admin_principal, investment.id)).id == investment.id


async def test_closed_investments_leave_admin_queues(service, db, user, user_principal, admin_principal, gold):
    """Test closed investments are absent from pending, active and closure lists"""
    closed = await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))
    await service.request_closure(user_principal, closed.id)
    await service.approve_closure(admin_principal, closed.id)
    active = await create_investment(db, user=user, asset=gold, amount=Decimal("500"))
    pending = await create_investment(
        db, user=user, asset=gold, amount=Decimal("200"), status=InvestmentStatus.PENDING
    )

    pending_ids = {i.id for i in await service.list_pending(admin_principal)}
    active_ids = {i.id for i in await service.list_active(admin_principal)}
    closure_ids = {i.id for i in await service.list_closure_requested(admin_principal)}

    assert closed.id not in pending_ids | active_ids | closure_ids
    assert pending_ids == {pending.id}
    assert active_ids == {active.id}
    assert closure_ids == set()

    closed_only = await service.list_for_user(user.id, InvestmentStatus.CLOSED)
    assert [i.id for i in closed_only] == [closed.id]


async def test_scenarios_deposit_reprice_close_and_withdraw(db, notifier, user, user_principal, admin_principal, gold):
    """Test the full lifecycle: deposit, approval, price move, closure"""
    investments = InvestmentService(db, notifier)
    assets = AssetService(db)

    investment = await investments.create(
        user_principal, InvestmentCreate(asset_id=gold.id, amount=Decimal("1000"))
    )
    assert investment.quantity == Decimal("0.5")
    await investments.approve(admin_principal, investment.id)
    assert (await reload_user(db, user.id)).balance == Decimal("0")

    await assets.update_price(admin_principal, gold.id, Decimal("2200"))
    assert (await reload_user(db, user.id)).balance == Decimal("100.00")

    await investments.request_closure(user_principal, investment.id)
    closed = await investments.approve_closure(admin_principal, investment.id)
    assert closed.current_value == Decimal("1100.00")
    assert (await reload_user(db, user.id)).balance == Decimal("1200.00")


async def test_create_records_offered_deposit_method(service, db, user_principal, gold):
    await set_deposit_methods(db, BANK_TRANSFER)

    investment = await service.create(
        user_principal,
        InvestmentCreate(asset_id=gold.id, amount=Decimal("1000"), deposit_method=" bank-transfer ")
    )

    assert investment.deposit_method == "bank-transfer"


@pytest.mark.parametrize("method_id", ["crypto-wallet", "cash-office"])
async def test_create_refuses_method_not_offered(service, db, user_principal, gold, method_id):
    """Test unknown and deactivated deposit methods are refused before anything is stored"""
    await set_deposit_methods(db, BANK_TRANSFER, {"id": "cash-office", "name": "Cash", "is_active": False})

    with pytest.raises(ValidationError) as exc_info:
        await service.create(
            user_principal, InvestmentCreate(asset_id=gold.id, amount=Decimal("1000"), deposit_method=method_id)
        )

    assert exc_info.value.details == {"deposit_method": method_id, "available": ["bank-transfer"]}
    assert (await db.execute(select(Investment))).scalars().all() == []


async def test_correct_refuses_method_not_offered(service, user_principal, admin_principal, gold):
    investment = await service.create(user_principal, InvestmentCreate(asset_id=gold.id, amount=Decimal("1000")))

    with pytest.raises(ValidationError):
        await service.correct(admin_principal, investment.id, InvestmentCorrection(deposit_method="cheque"))


async def test_undeliverable_email_does_not_fail_the_deposit(db, notifier, mailer, whatsapp, gold):
    """Test a stored address the mailer cannot use only fails the email channel"""
    investor = await create_user(db, email="ivy@crestcat.local", full_name="Ivy Investor")
    service = InvestmentService(db, notifier)

    investment = await service.create(
        Principal(user_id=investor.id), InvestmentCreate(asset_id=gold.id, amount=Decimal("1000"))
    )

    assert investment.status == InvestmentStatus.PENDING.value
    assert notifier.titles() == ["Deposit Received", "New Deposit"]
    assert mailer.sent == []
    assert whatsapp.messages[0].startswith("NEW DEPOSIT ALERT")
    assert (await notifier.list_for_user(investor.id)).unread_count == 1


async def test_unloaded_relationships_raise_instead_of_querying(service, user_principal, gold):
    """Test the owner is never lazily loaded behind the caller's back"""
    investment = await service.create(user_principal, InvestmentCreate(asset_id=gold.id, amount=Decimal("1000")))

    with pytest.raises(InvalidRequestError):
        investment.user
