"""
Analytics API endpoints.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError
from sqlalchemy.orm import Session

from campaign_ops.api.dependencies import (
    get_authorization_gate,
    get_current_principal,
)
from campaign_ops.authorization import AuthorizationGate, Principal
from campaign_ops.models.base import get_db
from campaign_ops.schemas.analytics import AnalyticsRange, CouponAnalytics
from campaign_ops.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/coupons", response_model=CouponAnalytics)
def get_coupon_analytics(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_current_principal),
    gate: AuthorizationGate = Depends(get_authorization_gate),
):
    """Coupon metrics for coupons created in the window (default: last 30 days)."""
    try:
        date_range = AnalyticsRange(start_date=start_date, end_date=end_date)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return AnalyticsService(db, gate).coupon_analytics(principal, date_range)
