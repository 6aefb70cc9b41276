"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from campaign_ops.models.base import Base
from campaign_ops.models.enums import Role, CouponStatus, AuditAction
from campaign_ops.models.user import User
from campaign_ops.models.coupon import Coupon
from campaign_ops.models.audit_log import AuditLog

__all__ = [
    "Base",
    "Role",
    "CouponStatus",
    "AuditAction",
    "User",
    "Coupon",
    "AuditLog",
]
