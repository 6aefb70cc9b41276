"""
Analytics service: read-only summaries of coupon activity.

Figures cover coupons created inside the requested window and
reflect their current counters. Nothing here takes a lock or
writes, so a summary may trail an in-flight redemption.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from campaign_ops.authorization import AuthorizationGate, DEFAULT_GATE, Principal
from campaign_ops.models.base import utcnow
from campaign_ops.models.coupon import Coupon
from campaign_ops.permissions import Permission
from campaign_ops.schemas.analytics import (
    AnalyticsRange,
    CouponAnalytics,
    StatusCount,
    TopCoupon,
)

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(days=30)
TOP_COUPONS_LIMIT = 10
TWO_PLACES = Decimal("0.01")


def _two_places(value) -> Decimal:
    # SQLite hands back floats for AVG
    return Decimal(str(value or 0)).quantize(TWO_PLACES)


class AnalyticsService:

    def __init__(
        self,
        db: Session,
        gate: AuthorizationGate = DEFAULT_GATE,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.gate = gate
        self.clock = clock

    def resolve_range(
        self, date_range: AnalyticsRange | None
    ) -> tuple[datetime, datetime]:
        """Fill missing bounds: end defaults to now, start to 30 days before end."""
        date_range = date_range or AnalyticsRange()
        end = date_range.end_date or self.clock()
        start = date_range.start_date or end - DEFAULT_WINDOW
        return start, end

    def coupon_analytics(
        self,
        principal: Principal | None,
        date_range: AnalyticsRange | None = None,
    ) -> CouponAnalytics:
        """
        Summarize coupons created in the window.

        Returns totals, average discount, redemption rate, the
        status distribution and the most-redeemed coupons.
        """
        self.gate.require(principal, Permission.ANALYTICS_VIEW)
        start, end = self.resolve_range(date_range)
        in_window = Coupon.created_at.between(start, end)

        total_coupons, total_redemptions, avg_discount, redeemed = self.db.execute(
            select(
                func.count(Coupon.id),
                func.coalesce(func.sum(Coupon.redemption_count), 0),
                func.avg(Coupon.discount_amount),
                func.count(case((Coupon.redemption_count > 0, 1))),
            ).where(in_window)
        ).one()

        status_rows = self.db.execute(
            select(Coupon.status, func.count(Coupon.id))
            .where(in_window)
            .group_by(Coupon.status)
            .order_by(Coupon.status)
        ).all()

        top_rows = self.db.execute(
            select(
                Coupon.coupon_code,
                Coupon.redemption_count,
                Coupon.discount_amount,
            )
            .where(in_window)
            .order_by(Coupon.redemption_count.desc(), Coupon.id)
            .limit(TOP_COUPONS_LIMIT)
        ).all()

        if total_coupons:
            rate = (Decimal(redeemed) * 100 / Decimal(total_coupons)).quantize(
                TWO_PLACES
            )
        else:
            rate = Decimal("0.00")

        logger.info("coupon_analytics_computed", extra={
            "user_id": principal.id,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "total_coupons": total_coupons,
        })

        return CouponAnalytics(
            start_date=start,
            end_date=end,
            total_coupons=total_coupons,
            redeemed_coupons=redeemed,
            total_redemptions=total_redemptions,
            avg_discount=_two_places(avg_discount),
            redemption_rate=rate,
            status_distribution=[
                StatusCount(status=status, count=count)
                for status, count in status_rows
            ],
            top_coupons=[TopCoupon.model_validate(row) for row in top_rows],
        )
