"""
Coupon lifecycle guard for redemption.

Pure decision logic: given a coupon snapshot and the current
time, say what a redemption attempt should do. The caller owns
the transaction and applies the decision.

Checks run in a fixed order. Terminal states first, then expiry,
then the inactive flag, then the usage limit. Expiry therefore
always wins over depletion when both hold.
"""

import enum
from dataclasses import dataclass
from datetime import datetime

from campaign_ops.models.coupon import TERMINAL_STATUSES, UNLIMITED
from campaign_ops.models.enums import CouponStatus


class RedemptionOutcome(str, enum.Enum):
    ACCEPT = "accept"
    # Expiry detected: persist the status correction, then reject.
    FORCE_EXPIRE = "force_expire"
    REJECT_EXPIRED = "reject_expired"
    REJECT_DEPLETED = "reject_depleted"
    REJECT_INACTIVE = "reject_inactive"


@dataclass(frozen=True)
class RedemptionDecision:
    outcome: RedemptionOutcome
    new_status: CouponStatus
    new_redemption_count: int

    @property
    def accepted(self) -> bool:
        return self.outcome is RedemptionOutcome.ACCEPT

    @property
    def writes(self) -> bool:
        """Whether applying this decision changes the row."""
        return self.outcome in (
            RedemptionOutcome.ACCEPT,
            RedemptionOutcome.FORCE_EXPIRE,
        )


def is_past_expiry(expiry_date: datetime | None, now: datetime) -> bool:
    return expiry_date is not None and expiry_date < now


def at_usage_limit(usage_limit: int, redemption_count: int) -> bool:
    return usage_limit != UNLIMITED and redemption_count >= usage_limit


def evaluate_redemption(coupon, now: datetime) -> RedemptionDecision:
    """
    Decide the outcome of one redemption attempt.

    ``coupon`` is anything with status, usage_limit,
    redemption_count and expiry_date attributes.
    """
    status = CouponStatus(coupon.status)
    count = coupon.redemption_count
    expired = is_past_expiry(coupon.expiry_date, now)

    def reject(outcome: RedemptionOutcome) -> RedemptionDecision:
        return RedemptionDecision(outcome, status, count)

    if status in TERMINAL_STATUSES:
        if status == CouponStatus.EXPIRED or expired:
            return reject(RedemptionOutcome.REJECT_EXPIRED)
        return reject(RedemptionOutcome.REJECT_DEPLETED)

    if expired:
        return RedemptionDecision(
            RedemptionOutcome.FORCE_EXPIRE, CouponStatus.EXPIRED, count
        )

    if status == CouponStatus.INACTIVE:
        return reject(RedemptionOutcome.REJECT_INACTIVE)

    # An active row that already reached its limit is stale; refuse
    # rather than push the count past the limit.
    if at_usage_limit(coupon.usage_limit, count):
        return reject(RedemptionOutcome.REJECT_DEPLETED)

    new_count = count + 1
    new_status = (
        CouponStatus.DEPLETED
        if at_usage_limit(coupon.usage_limit, new_count)
        else CouponStatus.ACTIVE
    )
    return RedemptionDecision(RedemptionOutcome.ACCEPT, new_status, new_count)


def status_after_edit(
    requested: CouponStatus,
    expiry_date: datetime,
    usage_limit: int,
    redemption_count: int,
    now: datetime,
) -> CouponStatus:
    """Status a coupon ends up in after an administrative field edit."""
    if is_past_expiry(expiry_date, now):
        return CouponStatus.EXPIRED
    if at_usage_limit(usage_limit, redemption_count):
        return CouponStatus.DEPLETED
    return requested
