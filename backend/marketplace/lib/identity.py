"""
Resolved caller identity.

Authentication happens upstream; the booking engine trusts the
``(user_id, role)`` pair carried in the access token.
"""
from dataclasses import dataclass
from uuid import UUID

from marketplace.models.users import UserRole


@dataclass(frozen=True)
class Identity:
    user_id: UUID
    role: UserRole

    @property
    def is_vendor(self) -> bool:
        return self.role == UserRole.VENDOR

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
