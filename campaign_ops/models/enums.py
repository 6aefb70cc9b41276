"""
Shared enumerations for database models.

Python enums mapped to database enums ensure that only valid
values can be stored.
"""

import enum


class Role(str, enum.Enum):
    """Closed set of principal roles."""
    ADMIN = "admin"
    MANAGER = "manager"
    MARKETER = "marketer"
    ANALYST = "analyst"


class CouponStatus(str, enum.Enum):
    """Coupon lifecycle states."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    DEPLETED = "depleted"


class AuditAction(str, enum.Enum):
    """What kind of mutation an audit entry documents."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    REDEEM = "REDEEM"
