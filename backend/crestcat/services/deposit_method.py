"""
Deposit Method Service

Keeps the admin-curated list of deposit methods in ``system_settings`` and
checks that a deposit names one that is currently offered.
"""

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.auth.principal import Principal
from crestcat.core.exceptions import ValidationError
from crestcat.core.logging import get_logger
from crestcat.models.system_setting import DEPOSIT_METHODS_KEY, SystemSetting
from crestcat.schemas.deposit_method import DepositMethod, DepositMethodList

# Initialize logger
logger = get_logger(__name__)


class DepositMethodService:
    """Service for the deposit methods catalogue."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_methods(self, active_only: bool = False) -> List[DepositMethod]:
        setting = await self.db.get(SystemSetting, DEPOSIT_METHODS_KEY)
        methods = [DepositMethod.model_validate(item) for item in (setting.value if setting else None) or []]
        if active_only:
            methods = [method for method in methods if method.is_active]
        return methods

    async def replace(self, principal: Principal, data: DepositMethodList) -> List[DepositMethod]:
        """
        Save the full list of deposit methods.

        Investments already submitted keep the method they named, even if it
        is removed or deactivated here.

        Raises:
            UnauthorizedError: Caller is not an admin
        """
        principal.require_admin()
        value = [method.model_dump() for method in data.deposit_methods]

        setting = await self.db.get(SystemSetting, DEPOSIT_METHODS_KEY)
        if setting is None:
            setting = SystemSetting(
                key=DEPOSIT_METHODS_KEY,
                description="Available deposit methods and account details for investments",
            )
            self.db.add(setting)
        setting.value = value
        await self.db.commit()

        logger.info(
            "Deposit methods updated",
            extra={"methods": [method.id for method in data.deposit_methods], "admin_id": str(principal.user_id)}
        )
        return list(data.deposit_methods)

    async def require_active(self, method_id: Optional[str]) -> Optional[str]:
        """
        Check a deposit names an offered method.

        A deposit may name no method at all; a named one must be active.

        Returns:
            The method id, stripped, or None

        Raises:
            ValidationError: Unknown or inactive method
        """
        if method_id is None or not method_id.strip():
            return None
        method_id = method_id.strip()

        active = await self.list_methods(active_only=True)
        if method_id not in {method.id for method in active}:
            raise ValidationError(
                f"Unknown deposit method: {method_id}",
                details={"deposit_method": method_id, "available": sorted(method.id for method in active)}
            )
        return method_id
