"""
Audit service: the append-only who-changed-what trail.

Writes never open or commit a transaction of their own: an audit
entry is flushed into the caller's transaction so it commits or
rolls back together with the change it documents.
"""

import enum
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from campaign_ops.authorization import Principal
from campaign_ops.models.audit_log import AuditLog
from campaign_ops.models.enums import AuditAction
from campaign_ops.schemas.audit import AuditLogFilter

COUPON_RESOURCE = "coupons"

# Fields captured per resource kind. Anything not listed here
# never appears in an audit entry.
AUDITED_FIELDS: dict[str, tuple[str, ...]] = {
    COUPON_RESOURCE: (
        "coupon_id",
        "coupon_code",
        "issued_date",
        "expiry_date",
        "discount_amount",
        "usage_limit",
        "redemption_count",
        "applicable_items",
        "is_stackable",
        "status",
        "campaign_source",
        "created_by",
        "remarks",
    ),
}


def _json_safe(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, Decimal):
        # 10, 10.0 and 10.00 are the same amount
        return format(value.normalize(), "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def snapshot(resource_kind: str, resource) -> dict[str, Any]:
    """Capture the audited fields of a resource as JSON-safe values."""
    fields = AUDITED_FIELDS[resource_kind]
    return {name: _json_safe(getattr(resource, name)) for name in fields}


def diff(
    old: Mapping[str, Any], new: Mapping[str, Any]
) -> dict[str, dict[str, Any]]:
    """
    Field-level difference between two snapshots of the same shape.

    Only fields whose values differ are returned.
    """
    changes = {}
    for name, new_value in new.items():
        old_value = old.get(name)
        if old_value != new_value:
            changes[name] = {"old": old_value, "new": new_value}
    return changes


class AuditService:

    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        principal: Principal,
        resource_kind: str,
        resource_id,
        action: AuditAction,
        changes: dict[str, Any],
    ) -> AuditLog:
        """Add one entry to the caller's open transaction."""
        entry = AuditLog(
            user_id=principal.id,
            resource_kind=resource_kind,
            resource_id=str(resource_id),
            action=AuditAction(action).value,
            changes=changes,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def log_create(
        self, principal: Principal, resource_kind: str, resource_id, data: dict
    ) -> AuditLog:
        return self.append(
            principal, resource_kind, resource_id,
            AuditAction.CREATE, {"new": data},
        )

    def log_update(
        self,
        principal: Principal,
        resource_kind: str,
        resource_id,
        old: dict,
        new: dict,
    ) -> AuditLog:
        return self.append(
            principal, resource_kind, resource_id,
            AuditAction.UPDATE, diff(old, new),
        )

    def log_redeem(
        self,
        principal: Principal,
        resource_kind: str,
        resource_id,
        old: dict,
        new: dict,
    ) -> AuditLog:
        return self.append(
            principal, resource_kind, resource_id,
            AuditAction.REDEEM, diff(old, new),
        )

    def log_delete(
        self, principal: Principal, resource_kind: str, resource_id, data: dict
    ) -> AuditLog:
        return self.append(
            principal, resource_kind, resource_id,
            AuditAction.DELETE, {"old": data},
        )

    def query(self, filters: AuditLogFilter | None = None) -> list[AuditLog]:
        """Return matching entries, newest first."""
        filters = filters or AuditLogFilter()
        stmt = select(AuditLog).options(joinedload(AuditLog.user))

        if filters.user_id is not None:
            stmt = stmt.where(AuditLog.user_id == filters.user_id)
        if filters.resource_kind:
            stmt = stmt.where(AuditLog.resource_kind == filters.resource_kind)
        if filters.resource_id is not None:
            stmt = stmt.where(AuditLog.resource_id == str(filters.resource_id))
        if filters.action is not None:
            stmt = stmt.where(AuditLog.action == filters.action.value)
        if filters.start_date is not None:
            stmt = stmt.where(AuditLog.created_at >= filters.start_date)
        if filters.end_date is not None:
            stmt = stmt.where(AuditLog.created_at <= filters.end_date)

        stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        if filters.limit:
            stmt = stmt.limit(filters.limit)

        return list(self.db.execute(stmt).scalars().all())

    def history(self, resource_kind: str, resource_id) -> list[AuditLog]:
        """All entries for one resource, newest first."""
        return self.query(AuditLogFilter(
            resource_kind=resource_kind, resource_id=str(resource_id),
        ))
