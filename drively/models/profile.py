from dataclasses import dataclass, field
from typing import Optional

from drively.utils.constants import Role, VerificationStatus


@dataclass
class Profile:
    """
    Application-level user record. The Store keeps raw dicts; services wrap
    them into this object to ask role and verification questions.
    """
    id: str
    email: str
    full_name: str = ""
    roles: list[str] = field(default_factory=lambda: [Role.RENTER])
    active_role: str = Role.RENTER
    verification_status: str = VerificationStatus.PENDING
    phone_number: Optional[str] = None
    avatar_url: Optional[str] = None

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return self.active_role == Role.ADMIN

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.VERIFIED

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    def roles_with(self, role: str) -> list[str]:
        """
        Return the role set with `role` appended. Appending a role that is
        already held leaves the set unchanged.
        """
        roles = list(self.roles or [Role.RENTER])
        if role not in roles:
            roles.append(role)
        return roles
