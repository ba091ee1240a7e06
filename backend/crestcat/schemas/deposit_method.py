"""
Deposit method schemas.

The catalogue of ways an investor can pay in, with the account details
shown to them when they pick one.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator


class DepositMethod(BaseModel):
    id: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    is_active: bool = True
    account_details: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Must not be blank")
        return v.strip()


class DepositMethodList(BaseModel):
    """Full replacement list, as saved by an admin."""

    deposit_methods: List[DepositMethod] = Field(default_factory=list)

    @model_validator(mode="after")
    def unique_ids(self) -> "DepositMethodList":
        ids = [method.id for method in self.deposit_methods]
        if len(ids) != len(set(ids)):
            raise ValueError("Deposit method ids must be unique")
        return self
