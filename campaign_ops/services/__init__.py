"""Business logic services."""

from campaign_ops.services.analytics_service import AnalyticsService
from campaign_ops.services.audit_service import AuditService
from campaign_ops.services.coupon_service import CouponService
from campaign_ops.services.redemption_service import RedemptionService

__all__ = [
    "AnalyticsService",
    "AuditService",
    "CouponService",
    "RedemptionService",
]
