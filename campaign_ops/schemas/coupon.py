"""
Pydantic schemas for coupon operations.
"""

import re
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from campaign_ops.models.base import to_naive_utc
from campaign_ops.models.coupon import UNLIMITED
from campaign_ops.models.enums import CouponStatus

COUPON_CODE_PATTERN = re.compile(r"^[A-Z0-9]{4,20}$")


class _CouponFields(BaseModel):
    issued_date: datetime | None = None
    expiry_date: datetime
    discount_amount: Decimal = Field(gt=0, decimal_places=2)
    usage_limit: int = UNLIMITED
    applicable_items: str | None = None
    is_stackable: bool = False
    campaign_source: str | None = Field(default=None, max_length=100)
    remarks: str | None = None

    @field_validator("usage_limit")
    @classmethod
    def usage_limit_positive_or_unlimited(cls, v: int) -> int:
        if v != UNLIMITED and v <= 0:
            raise ValueError(
                "usage_limit must be a positive integer or -1 for unlimited"
            )
        return v

    @field_validator("issued_date", "expiry_date")
    @classmethod
    def as_naive_utc(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v)

    @model_validator(mode="after")
    def expiry_after_issue(self):
        if self.issued_date and self.expiry_date <= self.issued_date:
            raise ValueError("expiry_date must be after issued_date")
        return self


class CouponCreate(_CouponFields):
    """Request to create a coupon."""
    coupon_code: str
    coupon_id: str | None = Field(default=None, max_length=50)

    @field_validator("coupon_code")
    @classmethod
    def code_is_alphanumeric(cls, v: str) -> str:
        code = v.strip().upper()
        if not COUPON_CODE_PATTERN.match(code):
            raise ValueError("coupon_code must be 4-20 alphanumeric characters")
        return code


class CouponUpdate(_CouponFields):
    """
    Full replacement of the editable coupon fields.

    The code, the public id and the redemption count are not
    editable; status is a request that may be overridden by
    expiry or depletion.
    """
    status: CouponStatus | None = None


class CouponResponse(BaseModel):
    id: int
    coupon_id: str
    coupon_code: str
    issued_date: datetime | None
    expiry_date: datetime
    discount_amount: Decimal
    usage_limit: int
    redemption_count: int
    applicable_items: str | None
    is_stackable: bool
    status: CouponStatus
    campaign_source: str | None
    created_by: int | None
    remarks: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
