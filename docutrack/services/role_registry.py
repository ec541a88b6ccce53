"""Role registry: static lookups from role to permissions, level and domains."""

from typing import Any, Dict, FrozenSet, Mapping, Optional, Union

from docutrack.models.role import (
    DOMAIN_ROLES,
    ROLE_LEVELS,
    ROLE_PERMISSIONS,
    UNKNOWN_ROLE_LEVEL,
    Role,
)
from docutrack.models.user import email_domain

RoleLike = Union[Role, str, None]


class RoleRegistry:
    """Pure lookups over the role tables.

    Unknown roles are a normal "no access" answer: every query returns an
    empty set, ``UNKNOWN_ROLE_LEVEL`` or False instead of raising.
    """

    def __init__(
        self,
        permissions: Optional[Mapping[Role, FrozenSet[str]]] = None,
        levels: Optional[Mapping[Role, int]] = None,
        domain_roles: Optional[Mapping[str, FrozenSet[Role]]] = None,
    ):
        self._permissions = {r: frozenset(p) for r, p in (permissions or ROLE_PERMISSIONS).items()}
        self._levels = dict(levels or ROLE_LEVELS)
        self._domain_roles = {d.lower(): frozenset(r) for d, r in (domain_roles or DOMAIN_ROLES).items()}

    @staticmethod
    def parse_role(value: RoleLike) -> Optional[Role]:
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            return None
        try:
            return Role(value.strip())
        except ValueError:
            return None

    @property
    def roles(self) -> list:
        return sorted(self._levels, key=self._levels.get, reverse=True)

    @property
    def domains(self) -> list:
        return sorted(self._domain_roles)

    def permissions_of(self, role: RoleLike) -> FrozenSet[str]:
        parsed = self.parse_role(role)
        if parsed is None:
            return frozenset()
        return self._permissions.get(parsed, frozenset())

    def level_of(self, role: RoleLike) -> int:
        parsed = self.parse_role(role)
        if parsed is None:
            return UNKNOWN_ROLE_LEVEL
        return self._levels.get(parsed, UNKNOWN_ROLE_LEVEL)

    def allowed_domains_of(self, role: RoleLike) -> FrozenSet[str]:
        parsed = self.parse_role(role)
        if parsed is None:
            return frozenset()
        return frozenset(d for d, roles in self._domain_roles.items() if parsed in roles)

    def roles_for_domain(self, domain: str) -> FrozenSet[Role]:
        return self._domain_roles.get((domain or "").lower(), frozenset())

    def is_role_legal_for_email(self, email: Optional[str], role: RoleLike) -> bool:
        if not email or not isinstance(email, str):
            return False
        domain = email_domain(email.strip())
        return domain in self.allowed_domains_of(role)

    def role_has_permission(self, role: RoleLike, permission: Optional[str]) -> bool:
        if not isinstance(permission, str) or not permission.strip():
            return False
        return permission in self.permissions_of(role)

    def has_equal_or_higher_role(self, role: RoleLike, other: RoleLike) -> bool:
        return self.level_of(role) >= self.level_of(other)

    def role_info(self, role: RoleLike) -> Dict[str, Any]:
        parsed = self.parse_role(role)
        permissions = sorted(self.permissions_of(parsed))
        return {
            "role": parsed.value if parsed else role,
            "level": self.level_of(parsed),
            "permissions": permissions,
            "allowedDomains": sorted(self.allowed_domains_of(parsed)),
            "permissionCount": len(permissions),
        }
