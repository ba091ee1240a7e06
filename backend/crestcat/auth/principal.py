"""Authenticated caller handed to every service operation."""

from dataclasses import dataclass
from uuid import UUID

from crestcat.core.exceptions import UnauthorizedError
from crestcat.models.user import UserRole


@dataclass(frozen=True)
class Principal:
    user_id: UUID
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def require_admin(self) -> None:
        if not self.is_admin:
            raise UnauthorizedError("Admin access required")

    def require_owner(self, owner_id: UUID) -> None:
        """Allow the owner; admins may act on anyone's resources."""
        if self.is_admin:
            return
        if owner_id != self.user_id:
            raise UnauthorizedError("You do not own this resource")
