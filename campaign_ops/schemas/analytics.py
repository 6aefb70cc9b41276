"""
Pydantic schemas for coupon analytics.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, field_validator, model_validator

from campaign_ops.models.base import to_naive_utc
from campaign_ops.models.enums import CouponStatus


class AnalyticsRange(BaseModel):
    """Inclusive created_at window. Missing bounds are filled in by the service."""
    start_date: datetime | None = None
    end_date: datetime | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def as_naive_utc(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v)

    @model_validator(mode="after")
    def range_must_be_ordered(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class StatusCount(BaseModel):
    status: CouponStatus
    count: int


class TopCoupon(BaseModel):
    coupon_code: str
    redemption_count: int
    discount_amount: Decimal

    model_config = {"from_attributes": True}


class CouponAnalytics(BaseModel):
    start_date: datetime
    end_date: datetime
    total_coupons: int
    redeemed_coupons: int
    total_redemptions: int
    avg_discount: Decimal
    # Percentage of coupons in the window redeemed at least once
    redemption_rate: Decimal
    status_distribution: list[StatusCount]
    top_coupons: list[TopCoupon]
