"""User schemas."""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr

from crestcat.models.user import UserRole


class UserResponse(BaseModel):
    id: UUID
    email: EmailStr
    full_name: str
    phone: Optional[str] = None
    role: UserRole
    balance: Decimal
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
