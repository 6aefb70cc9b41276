"""
Role to permission mapping.

Permissions are ``resource:action`` tokens. The table below is the
only place that decides what a role may do; the rest of the code
asks ``has_permission`` and never compares roles directly.

Containment is a design rule, checked by tests rather than at
runtime: admin ⊇ manager ⊇ marketer ⊇ analyst.
"""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from campaign_ops.models.enums import Role


class Permission:
    """Every permission token known to the system."""

    # SEO Campaigns
    SEO_CREATE = "seo:create"
    SEO_READ = "seo:read"
    SEO_UPDATE = "seo:update"
    SEO_DELETE = "seo:delete"

    # Websites
    WEBSITE_CREATE = "website:create"
    WEBSITE_READ = "website:read"
    WEBSITE_UPDATE = "website:update"
    WEBSITE_DELETE = "website:delete"

    # Coupons
    COUPON_CREATE = "coupon:create"
    COUPON_READ = "coupon:read"
    COUPON_UPDATE = "coupon:update"
    COUPON_DELETE = "coupon:delete"
    COUPON_REDEEM = "coupon:redeem"

    # Analytics
    ANALYTICS_VIEW = "analytics:view"

    # Audit Logs
    AUDIT_VIEW = "audit:view"

    # Export/Import
    DATA_EXPORT = "data:export"
    DATA_IMPORT = "data:import"

    @classmethod
    def all(cls) -> frozenset[str]:
        return frozenset(
            value for name, value in vars(cls).items()
            if name.isupper() and isinstance(value, str)
        )


_ANALYST = frozenset({
    Permission.SEO_READ,
    Permission.WEBSITE_READ,
    Permission.COUPON_READ,
    Permission.ANALYTICS_VIEW,
    Permission.DATA_EXPORT,
})

_MARKETER = _ANALYST | {
    Permission.SEO_CREATE,
    Permission.SEO_UPDATE,
    Permission.WEBSITE_CREATE,
    Permission.WEBSITE_UPDATE,
    Permission.COUPON_CREATE,
    Permission.COUPON_UPDATE,
    Permission.COUPON_REDEEM,
}

_MANAGER = _MARKETER | {
    Permission.SEO_DELETE,
    Permission.WEBSITE_DELETE,
    Permission.COUPON_DELETE,
    Permission.DATA_IMPORT,
}

_ADMIN = _MANAGER | {Permission.AUDIT_VIEW}

ROLE_PERMISSIONS: Mapping[Role, frozenset[str]] = MappingProxyType({
    Role.ADMIN: _ADMIN,
    Role.MANAGER: _MANAGER,
    Role.MARKETER: _MARKETER,
    Role.ANALYST: _ANALYST,
})

ROLE_LABELS: Mapping[Role, str] = MappingProxyType({
    Role.ADMIN: "Administrator",
    Role.MANAGER: "Manager",
    Role.MARKETER: "Marketer",
    Role.ANALYST: "Analyst",
})


def _coerce_role(role) -> Role | None:
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


class PermissionModel:
    """
    Read-only view over a role to permission table.

    Unknown roles resolve to an empty set, so every check
    against them is False.
    """

    def __init__(self, role_permissions: Mapping[Role, Iterable[str]] = ROLE_PERMISSIONS):
        self._table = MappingProxyType({
            role: frozenset(perms) for role, perms in role_permissions.items()
        })

    def permissions_for(self, role) -> frozenset[str]:
        resolved = _coerce_role(role)
        if resolved is None:
            return frozenset()
        return self._table.get(resolved, frozenset())

    def has_permission(self, role, permission: str) -> bool:
        return permission in self.permissions_for(role)

    def has_any(self, role, permissions: Iterable[str]) -> bool:
        granted = self.permissions_for(role)
        return any(p in granted for p in permissions)

    def has_all(self, role, permissions: Iterable[str]) -> bool:
        granted = self.permissions_for(role)
        return all(p in granted for p in permissions)


DEFAULT_PERMISSION_MODEL = PermissionModel()


def get_permission_model() -> PermissionModel:
    """FastAPI dependency; override it to swap the table in tests."""
    return DEFAULT_PERMISSION_MODEL


def has_permission(role, permission: str) -> bool:
    return DEFAULT_PERMISSION_MODEL.has_permission(role, permission)


def has_any_permission(role, permissions: Iterable[str]) -> bool:
    return DEFAULT_PERMISSION_MODEL.has_any(role, permissions)


def has_all_permissions(role, permissions: Iterable[str]) -> bool:
    return DEFAULT_PERMISSION_MODEL.has_all(role, permissions)


def get_role_label(role) -> str:
    resolved = _coerce_role(role)
    if resolved is None:
        return str(role)
    return ROLE_LABELS[resolved]


def get_role_options() -> list[dict[str, str]]:
    """Value/label pairs for role pickers, in rank order."""
    return [{"value": role.value, "label": ROLE_LABELS[role]} for role in Role]
