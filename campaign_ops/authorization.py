"""
Authorization gate.

Turns "who is asking" plus "what they want to do" into an allow
or a deny. The gate never touches the database: the principal
is already resolved and the permission table is in memory.
"""

import enum
from dataclasses import dataclass

from campaign_ops.exceptions import ForbiddenError, UnauthenticatedError
from campaign_ops.models.enums import Role
from campaign_ops.permissions import DEFAULT_PERMISSION_MODEL, PermissionModel


@dataclass(frozen=True)
class Principal:
    """An authenticated caller."""
    id: int
    role: Role

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(id=user.id, role=Role(user.role))


class DenialReason(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: DenialReason | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = AuthorizationDecision(allowed=True)

# Roles that may modify resources they did not create
_UNRESTRICTED_EDITORS = frozenset({Role.ADMIN, Role.MANAGER})


class AuthorizationGate:

    def __init__(self, permission_model: PermissionModel = DEFAULT_PERMISSION_MODEL):
        self.permission_model = permission_model

    def authorize(
        self, principal: Principal | None, permission: str
    ) -> AuthorizationDecision:
        if principal is None:
            return AuthorizationDecision(False, DenialReason.UNAUTHENTICATED)
        if not self.permission_model.has_permission(principal.role, permission):
            return AuthorizationDecision(False, DenialReason.FORBIDDEN)
        return ALLOW

    def require(self, principal: Principal | None, permission: str) -> Principal:
        """Like authorize, but raises on deny and returns the principal."""
        decision = self.authorize(principal, permission)
        if decision.reason is DenialReason.UNAUTHENTICATED:
            raise UnauthenticatedError()
        if decision.reason is DenialReason.FORBIDDEN:
            raise ForbiddenError(permission, principal.role.value)
        return principal

    def can_modify(self, principal: Principal | None, owner_id: int | None) -> bool:
        """
        Ownership rule for edits.

        Admins and managers may edit anything, marketers only what
        they created. Analysts never edit.
        """
        if principal is None:
            return False
        if principal.role in _UNRESTRICTED_EDITORS:
            return True
        return principal.role == Role.MARKETER and owner_id == principal.id


DEFAULT_GATE = AuthorizationGate()


def authorize(principal: Principal | None, permission: str) -> AuthorizationDecision:
    return DEFAULT_GATE.authorize(principal, permission)
