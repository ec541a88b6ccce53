"""Whitelisted user record."""

from dataclasses import dataclass
from typing import Optional

from docutrack.models.role import Role


@dataclass
class User:
    """A staff identity allowed to hold a role.

    ``password_hash`` is None for OAuth-only identities, which can never
    pass a password login.
    """

    email: str
    role: Role
    password_hash: Optional[str] = None
    full_name: Optional[str] = None
    provisioned: bool = False

    def __post_init__(self):
        self.email = self.email.strip().lower()

    @property
    def domain(self) -> str:
        return email_domain(self.email)


def email_domain(email: str) -> str:
    """Return the ``@domain`` suffix of an address, or '' when there is none."""
    if not email or "@" not in email:
        return ""
    return email[email.index("@"):].lower()
