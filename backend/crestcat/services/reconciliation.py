"""
Price Reconciliation

Applies a new asset price and revalues every live investment on that asset,
moving each owner's balance by the change in unrealized profit/loss.
"""

import time
from datetime import datetime
from decimal import Decimal
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.core.exceptions import NotFoundError, ValidationError
from crestcat.core.logging import get_logger, log_duration
from crestcat.core.settings import settings
from crestcat.models.asset import Asset
from crestcat.models.investment import LIVE_STATUSES, Investment
from crestcat.models.user import User
from crestcat.monitoring.prometheus import (
    get_reconciliation_duration_seconds,
    get_reconciliation_passes_total,
)
from crestcat.schemas.admin import InvestmentRevaluation, ReconciliationReport
from crestcat.services.balance import BalanceLedger
from crestcat.services.valuation import ZERO, price_text, to_money, to_price, valuate

# Initialize logger
logger = get_logger(__name__)


def append_price_point(history, price: Decimal, at: datetime, limit: int) -> List[dict]:
    """Return a new history list with ``price`` appended, keeping the last ``limit`` points."""
    points = list(history or [])
    points.append({"timestamp": at.isoformat(), "price": price_text(price)})
    return points[-limit:]


class PriceReconciler:
    """Runs one reconciliation pass per price change inside the caller's transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = BalanceLedger(db)

    async def apply_price(
        self,
        asset_id: UUID,
        new_price: Decimal,
        actor_id: UUID = None
    ) -> ReconciliationReport:
        """
        Set an asset's price and mark its live investments to market.

        Each live investment is processed exactly once, in id order, so that
        concurrent passes on the same asset lock rows in the same sequence.
        The caller commits; on any error the caller rolls back the whole pass.

        Args:
            asset_id: Asset being repriced
            new_price: Strictly positive price
            actor_id: Admin who set the price

        Returns:
            ReconciliationReport with one revaluation per live investment

        Raises:
            ValidationError: If new_price is not positive
            NotFoundError: If the asset does not exist
        """
        new_price = to_price(new_price)
        if new_price <= ZERO:
            raise ValidationError("Price must be greater than zero", details={"price": str(new_price)})

        started = time.perf_counter()
        with log_duration(logger, "Price reconciliation", asset_id=str(asset_id)):
            result = await self.db.execute(
                select(Asset).where(Asset.id == asset_id).with_for_update()
            )
            asset = result.scalar_one_or_none()
            if asset is None:
                raise NotFoundError("Asset not found", details={"asset_id": str(asset_id)})

            old_price = to_price(asset.current_price)
            asset.current_price = new_price
            asset.price_history = append_price_point(
                asset.price_history,
                new_price,
                datetime.utcnow(),
                settings.ledger.PRICE_HISTORY_LIMIT
            )

            result = await self.db.execute(
                select(Investment)
                .where(Investment.asset_id == asset_id, Investment.status.in_(LIVE_STATUSES))
                .order_by(Investment.id)
                .with_for_update(of=Investment)
            )
            investments = list(result.unique().scalars().all())

            # Balance rows are always locked in user id order
            owner_ids = sorted({investment.user_id for investment in investments})
            if owner_ids:
                await self.db.execute(
                    select(User.id)
                    .where(User.id.in_(owner_ids))
                    .order_by(User.id)
                    .with_for_update()
                )

            report = ReconciliationReport(
                asset_id=asset_id,
                old_price=old_price,
                new_price=new_price
            )
            total_delta = ZERO

            for investment in investments:
                old_value = to_money(investment.current_value)
                old_profit_loss = to_money(investment.profit_loss)
                valuation = valuate(investment.quantity, investment.amount, new_price)
                delta = valuation.profit_loss - old_profit_loss

                await self.ledger.mark_to_market(
                    investment.user_id,
                    delta,
                    investment_id=investment.id,
                    asset_id=asset_id,
                    actor_id=actor_id,
                )
                investment.current_value = valuation.current_value
                investment.profit_loss = valuation.profit_loss

                total_delta += delta
                report.revaluations.append(
                    InvestmentRevaluation(
                        investment_id=investment.id,
                        user_id=investment.user_id,
                        old_value=old_value,
                        new_value=valuation.current_value,
                        old_profit_loss=old_profit_loss,
                        new_profit_loss=valuation.profit_loss,
                        delta=delta,
                    )
                )

            report.investments_updated = len(investments)
            report.total_delta = to_money(total_delta)
            await self.db.flush()

        get_reconciliation_duration_seconds().observe(time.perf_counter() - started)
        get_reconciliation_passes_total().inc()

        logger.info(
            "Asset repriced",
            extra={
                "asset_id": str(asset_id),
                "old_price": str(old_price),
                "new_price": str(new_price),
                "investments_updated": report.investments_updated,
                "total_delta": str(report.total_delta)
            }
        )
        return report
