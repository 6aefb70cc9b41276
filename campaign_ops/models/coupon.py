"""
Coupon model.

Coupons are the mutable resource behind redemption. Status is
governed by a state machine: redemption may move a coupon to
DEPLETED or EXPIRED, and nothing ever moves it back out of
those states.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Boolean, DateTime, Integer, Numeric, Text, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from campaign_ops.models.base import Base, utcnow
from campaign_ops.models.enums import CouponStatus

UNLIMITED = -1

VALID_TRANSITIONS: dict[CouponStatus, set[CouponStatus]] = {
    CouponStatus.ACTIVE: {
        CouponStatus.INACTIVE,
        CouponStatus.EXPIRED,
        CouponStatus.DEPLETED,
    },
    CouponStatus.INACTIVE: {CouponStatus.ACTIVE, CouponStatus.EXPIRED},
    CouponStatus.EXPIRED: set(),  # Terminal
    CouponStatus.DEPLETED: set(),  # Terminal
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)


class Coupon(Base):
    __tablename__ = "coupons"

    id: Mapped[int] = mapped_column(primary_key=True)
    coupon_id: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False
    )
    coupon_code: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )
    issued_date: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    expiry_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False
    )
    usage_limit: Mapped[int] = mapped_column(
        Integer, nullable=False, default=UNLIMITED
    )
    redemption_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    applicable_items: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_stackable: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    status: Mapped[CouponStatus] = mapped_column(
        SAEnum(
            CouponStatus,
            name="coupon_status_enum",
            create_constraint=True,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=CouponStatus.ACTIVE,
    )
    campaign_source: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True, index=True
    )
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    def can_transition_to(self, new_status: CouponStatus) -> bool:
        """Check if a state transition is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def __repr__(self) -> str:
        return (
            f"<Coupon {self.coupon_code} "
            f"{self.redemption_count}/{self.usage_limit} ({self.status.value})>"
        )
