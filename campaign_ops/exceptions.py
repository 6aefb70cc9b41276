"""
Typed exception hierarchy.

Callers catch by type and read ``code`` for a machine-readable
kind; nobody should parse messages.

    CampaignOpsError
    +-- AuthorizationError
    |   +-- UnauthenticatedError
    |   +-- ForbiddenError
    +-- RedemptionError
    |   +-- RedemptionRejected
    |   |   +-- CouponNotFoundError
    |   |   +-- CouponExpiredError
    |   |   +-- CouponDepletedError
    |   |   +-- CouponInactiveError
    |   +-- LockTimeoutError
    |   +-- RedemptionInternalError
    +-- CouponValidationError
    +-- ImmutabilityViolationError

The authorization errors double as redemption outcomes, so
``ErrorKind`` names every kind a redeem call can produce.
"""

import enum


class ErrorKind(str, enum.Enum):
    UNAUTHENTICATED = "Unauthenticated"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    EXPIRED = "Expired"
    DEPLETED = "Depleted"
    INACTIVE = "Inactive"
    LOCK_TIMEOUT = "LockTimeout"
    INTERNAL = "Internal"
    VALIDATION = "Validation"
    IMMUTABLE = "Immutable"


class CampaignOpsError(Exception):
    """Base class for every error raised by this package."""

    kind: ErrorKind = ErrorKind.INTERNAL
    retryable: bool = False

    @property
    def code(self) -> str:
        return self.kind.value


# --- Authorization ---

class AuthorizationError(CampaignOpsError):
    pass


class UnauthenticatedError(AuthorizationError):
    kind = ErrorKind.UNAUTHENTICATED

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(AuthorizationError):
    kind = ErrorKind.FORBIDDEN

    def __init__(self, permission: str, role: str | None = None):
        self.permission = permission
        self.role = role
        super().__init__("Insufficient permissions")


# --- Redemption ---

class RedemptionError(CampaignOpsError):
    pass


class RedemptionRejected(RedemptionError):
    """An expected business outcome, not a system failure."""

    message = "Coupon cannot be redeemed"

    def __init__(self, coupon_id: int):
        self.coupon_id = coupon_id
        super().__init__(self.message)


class CouponNotFoundError(RedemptionRejected):
    kind = ErrorKind.NOT_FOUND
    message = "Coupon not found"


class CouponExpiredError(RedemptionRejected):
    kind = ErrorKind.EXPIRED
    message = "Coupon has expired"


class CouponDepletedError(RedemptionRejected):
    kind = ErrorKind.DEPLETED
    message = "Coupon usage limit reached"


class CouponInactiveError(RedemptionRejected):
    kind = ErrorKind.INACTIVE
    message = "Coupon is inactive"


class LockTimeoutError(RedemptionError):
    """
    A lock wait ran past its timeout.

    Raised with the coupon id when the coupon row stayed locked,
    and without one when the store itself was busy.
    """

    kind = ErrorKind.LOCK_TIMEOUT
    retryable = True

    def __init__(self, coupon_id: int | None = None):
        self.coupon_id = coupon_id
        subject = "Coupon" if coupon_id is not None else "Database"
        super().__init__(f"{subject} is busy, retry shortly")


class RedemptionInternalError(RedemptionError):
    kind = ErrorKind.INTERNAL

    def __init__(self):
        super().__init__("Failed to redeem coupon")


# --- Other ---

class CouponValidationError(CampaignOpsError):
    kind = ErrorKind.VALIDATION


class ImmutabilityViolationError(CampaignOpsError):
    """Attempted to modify or delete an append-only record."""

    kind = ErrorKind.IMMUTABLE

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
