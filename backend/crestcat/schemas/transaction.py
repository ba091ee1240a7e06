"""
Transaction schemas.

Transaction metadata is a discriminated union keyed by ``kind``; each
TransactionType admits exactly one kind.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing_extensions import Annotated

from crestcat.core.exceptions import ValidationError
from crestcat.models.transaction import TransactionStatus, TransactionType


class DepositMeta(BaseModel):
    """Deposit into an investment awaiting approval."""
    kind: Literal["deposit"] = "deposit"
    investment_id: UUID
    asset_name: str
    receipt_id: str


class WithdrawalMeta(BaseModel):
    kind: Literal["withdrawal"] = "withdrawal"
    withdrawal_id: UUID
    bank_account_name: Optional[str] = None
    receipt_id: Optional[str] = None


class ClosureMeta(BaseModel):
    """Realized value credited when an investment closes."""
    kind: Literal["closure"] = "closure"
    investment_id: UUID
    asset_name: str
    original_amount: Decimal
    closure_value: Decimal
    profit_loss: Decimal


class AdjustmentMeta(BaseModel):
    kind: Literal["adjustment"] = "adjustment"
    operation: Literal["set", "increase", "decrease"]
    previous_balance: Decimal
    new_balance: Decimal
    note: Optional[str] = None


TransactionMeta = Annotated[
    Union[DepositMeta, WithdrawalMeta, ClosureMeta, AdjustmentMeta],
    Field(discriminator="kind")
]

transaction_meta_adapter: TypeAdapter = TypeAdapter(TransactionMeta)

META_KIND_BY_TYPE: Dict[TransactionType, str] = {
    TransactionType.DEPOSIT: "deposit",
    TransactionType.WITHDRAWAL: "withdrawal",
    TransactionType.INVESTMENT: "closure",
    TransactionType.ADMIN_ADJUSTMENT: "adjustment",
}


def dump_meta(tx_type: TransactionType, meta: BaseModel) -> Dict[str, Any]:
    """
    Serialize metadata for storage, checking it matches the transaction type.

    Raises:
        ValidationError: If the metadata kind belongs to another type
    """
    expected = META_KIND_BY_TYPE[TransactionType(tx_type)]
    kind = getattr(meta, "kind", None)
    if kind != expected:
        raise ValidationError(
            f"{TransactionType(tx_type).value} transactions carry '{expected}' metadata, got '{kind}'"
        )
    return meta.model_dump(mode="json")


def parse_meta(tx_type: Union[TransactionType, str], raw: Optional[Dict[str, Any]]):
    """Load stored metadata back into its typed variant."""
    if raw is None:
        return None
    meta = transaction_meta_adapter.validate_python(raw)
    if meta.kind != META_KIND_BY_TYPE[TransactionType(tx_type)]:
        raise ValidationError("Stored metadata does not match the transaction type")
    return meta


class TransactionResponse(BaseModel):
    """Schema for transaction response."""

    id: UUID
    user_id: UUID
    type: TransactionType
    status: TransactionStatus
    amount: Decimal
    description: Optional[str] = None
    processed_by: Optional[UUID] = None
    investment_id: Optional[UUID] = None
    withdrawal_id: Optional[UUID] = None
    metadata: Optional[TransactionMeta] = Field(default=None, validation_alias="meta_data")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionFilter(BaseModel):
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    limit: int = Field(default=100, ge=1, le=500)
