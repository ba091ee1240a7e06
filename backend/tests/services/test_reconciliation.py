"""
Price Reconciliation Tests
"""

import uuid
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import event, func, select

from crestcat.core.exceptions import NotFoundError, ValidationError
from crestcat.models.balance_entry import BalanceEntry, BalanceReason
from crestcat.models.investment import Investment, InvestmentStatus
from crestcat.services.reconciliation import PriceReconciler, append_price_point
from tests.utils.factories import create_asset, create_investment, create_user, reload_user


@pytest.fixture
def reconciler(db) -> PriceReconciler:
    return PriceReconciler(db)


@pytest.fixture
async def gold(db):
    return await create_asset(db, name="Gold", symbol="XAU", price=Decimal("2000.00"))


async def _investment(db, investment_id) -> Investment:
    return await db.get(Investment, investment_id, populate_existing=True)


async def test_price_rise_moves_balance_by_profit(reconciler, db, user, gold):
    """Test a move from 2000 to 2200 credits 100 on a half-unit position"""
    investment = await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))

    report = await reconciler.apply_price(gold.id, Decimal("2200"))
    await db.commit()

    assert report.old_price == Decimal("2000.00")
    assert report.new_price == Decimal("2200.00")
    assert report.investments_updated == 1
    assert report.total_delta == Decimal("100.00")

    refreshed = await _investment(db, investment.id)
    assert refreshed.current_value == Decimal("1100.00")
    assert refreshed.profit_loss == Decimal("100.00")
    assert refreshed.quantity == Decimal("0.5")
    assert (await reload_user(db, user.id)).balance == Decimal("100.00")


async def test_price_drop_can_take_balance_below_zero(reconciler, db, user, gold):
    """Test mark-to-market losses are applied in full"""
    await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))

    report = await reconciler.apply_price(gold.id, Decimal("1500"))
    await db.commit()

    assert report.total_delta == Decimal("-250.00")
    assert (await reload_user(db, user.id)).balance == Decimal("-250.00")


async def test_consecutive_moves_conserve_profit_and_loss(reconciler, db, user, gold):
    """Test the balance change over several passes equals the total profit/loss change"""
    investment = await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))

    for price in ("2100", "1900", "2333.33", "2050"):
        await reconciler.apply_price(gold.id, Decimal(price))
        await db.commit()

    refreshed = await _investment(db, investment.id)
    assert refreshed.current_value == Decimal("1025.00")
    assert (await reload_user(db, user.id)).balance == refreshed.profit_loss

    journal_total = await db.scalar(
        select(func.sum(BalanceEntry.amount)).where(
            BalanceEntry.user_id == user.id,
            BalanceEntry.reason == BalanceReason.MARK_TO_MARKET.value
        )
    )
    assert Decimal(str(journal_total)).quantize(Decimal("0.01")) == Decimal("25.00")


async def test_only_live_investments_are_revalued(reconciler, db, user, gold):
    """Test pending, closed and rejected investments keep their stored values"""
    active = await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))
    closing = await create_investment(
        db, user=user, asset=gold, amount=Decimal("400"), status=InvestmentStatus.CLOSURE_REQUESTED
    )
    frozen = {}
    for status in (InvestmentStatus.PENDING, InvestmentStatus.CLOSED, InvestmentStatus.REJECTED):
        investment = await create_investment(db, user=user, asset=gold, amount=Decimal("200"), status=status)
        frozen[investment.id] = investment.current_value

    report = await reconciler.apply_price(gold.id, Decimal("3000"))
    await db.commit()

    assert {r.investment_id for r in report.revaluations} == {active.id, closing.id}
    for investment_id, value in frozen.items():
        assert (await _investment(db, investment_id)).current_value == value
    assert (await _investment(db, closing.id)).current_value == Decimal("600.00")


async def test_each_owner_is_moved_by_their_own_position(reconciler, db, user, gold):
    """Test two owners on one asset are revalued independently"""
    second = await create_user(db, email="second@crestcat.com", balance=Decimal("50"))
    await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))
    await create_investment(db, user=second, asset=gold, amount=Decimal("4000"))

    await reconciler.apply_price(gold.id, Decimal("1800"))
    await db.commit()

    assert (await reload_user(db, user.id)).balance == Decimal("-100.00")
    assert (await reload_user(db, second.id)).balance == Decimal("-350.00")


async def test_current_value_matches_quantity_times_price(reconciler, db, user):
    """Test revalued investments satisfy current_value == quantity * price"""
    asset = await create_asset(db, price=Decimal("3.00"), min_investment=Decimal("1"))
    investment = await create_investment(db, user=user, asset=asset, amount=Decimal("100"))

    await reconciler.apply_price(asset.id, Decimal("4.17"))
    await db.commit()

    refreshed = await _investment(db, investment.id)
    expected = (refreshed.quantity * Decimal("4.17")).quantize(Decimal("0.01"))
    assert refreshed.current_value == expected
    assert refreshed.profit_loss == expected - Decimal("100.00")


async def test_price_history_is_appended(reconciler, db, gold):
    """Test every price change is recorded"""
    await reconciler.apply_price(gold.id, Decimal("2100"))
    await db.commit()

    await db.refresh(gold)
    assert gold.current_price == Decimal("2100.00")
    assert gold.price_history[-1]["price"] == "2100.00"


@pytest.mark.parametrize("price", [Decimal("0"), Decimal("-5")])
async def test_non_positive_price_is_refused(reconciler, gold, price):
    """Test zero and negative prices are refused"""
    with pytest.raises(ValidationError):
        await reconciler.apply_price(gold.id, price)


async def test_unknown_asset(reconciler):
    """Test repricing a missing asset"""
    with pytest.raises(NotFoundError):
        await reconciler.apply_price(uuid.uuid4(), Decimal("10"))


def test_price_history_is_bounded():
    """Test history keeps only the most recent points"""
    start = datetime(2024, 1, 1)
    history = []
    for i in range(105):
        history = append_price_point(history, Decimal(100 + i), start + timedelta(minutes=i), limit=100)

    assert len(history) == 100
    assert history[0]["price"] == "105.00"
    assert history[-1]["price"] == "204.00"


def test_price_history_does_not_mutate_input():
    original = [{"timestamp": "2024-01-01T00:00:00", "price": "1.00"}]

    updated = append_price_point(original, Decimal("2"), datetime(2024, 1, 2), limit=100)

    assert len(original) == 1
    assert len(updated) == 2


async def test_sub_cent_price_keeps_its_precision(reconciler, db, user):
    """Test a price below one cent is stored as given and values follow it"""
    token = await create_asset(db, name="Token", price=Decimal("0.005"), min_investment=Decimal("1"))
    investment = await create_investment(db, user=user, asset=token, amount=Decimal("100"))
    assert investment.quantity == Decimal("20000")

    report = await reconciler.apply_price(token.id, Decimal("0.004"))
    await db.commit()

    assert report.old_price == Decimal("0.005")
    assert report.new_price == Decimal("0.004")
    assert report.total_delta == Decimal("-20.00")

    await db.refresh(token)
    assert token.current_price == Decimal("0.004")
    assert token.price_history[-1]["price"] == "0.004"
    refreshed = await _investment(db, investment.id)
    assert refreshed.current_value == Decimal("80.00")
    assert (await reload_user(db, user.id)).balance == Decimal("-20.00")


async def test_owners_are_locked_in_user_id_order_before_balances_move(reconciler, db, test_engine, user, gold):
    """Test the owners' rows are selected in user id order ahead of the first balance update"""
    second = await create_user(db, email="second@crestcat.com")
    await create_investment(db, user=second, asset=gold, amount=Decimal("500"))
    await create_investment(db, user=user, asset=gold, amount=Decimal("1000"))

    statements = []

    def capture(conn, cursor, statement, parameters, context, executemany):
        statements.append(" ".join(statement.split()).lower())

    event.listen(test_engine.sync_engine, "before_cursor_execute", capture)
    try:
        await reconciler.apply_price(gold.id, Decimal("2100"))
    finally:
        event.remove(test_engine.sync_engine, "before_cursor_execute", capture)

    owner_lock = next(i for i, s in enumerate(statements) if s.startswith("select users.id from users"))
    first_update = next(i for i, s in enumerate(statements) if s.startswith("update users"))
    assert owner_lock < first_update
    assert "order by users.id" in statements[owner_lock]
