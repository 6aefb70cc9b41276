"""
Coupon API endpoints.

The API layer is thin: it resolves the caller, delegates to the
services, and commits. Package errors propagate to the handler
registered in main.py, which picks the status code.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from campaign_ops.api.dependencies import (
    get_authorization_gate,
    get_current_principal,
)
from campaign_ops.authorization import AuthorizationGate, Principal
from campaign_ops.exceptions import CampaignOpsError
from campaign_ops.models.base import get_db
from campaign_ops.models.enums import CouponStatus
from campaign_ops.schemas.coupon import (
    CouponCreate,
    CouponUpdate,
    CouponResponse,
)
from campaign_ops.services.coupon_service import CouponService
from campaign_ops.services.redemption_service import RedemptionService

router = APIRouter(prefix="/coupons", tags=["Coupons"])


@router.post("", response_model=CouponResponse, status_code=201)
def create_coupon(
    request: CouponCreate,
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_current_principal),
    gate: AuthorizationGate = Depends(get_authorization_gate),
):
    """Create a new active coupon."""
    service = CouponService(db, gate)
    try:
        coupon = service.create_coupon(principal, request)
        db.commit()
        return coupon
    except CampaignOpsError:
        db.rollback()
        raise


@router.get("", response_model=list[CouponResponse])
def list_coupons(
    search: str | None = None,
    status: CouponStatus | None = None,
    limit: int = Query(default=100, gt=0, le=1000),
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_current_principal),
    gate: AuthorizationGate = Depends(get_authorization_gate),
):
    """List coupons, newest first."""
    service = CouponService(db, gate)
    return service.list_coupons(principal, search, status, limit)


@router.get("/{coupon_id}", response_model=CouponResponse)
def get_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_current_principal),
    gate: AuthorizationGate = Depends(get_authorization_gate),
):
    """Get coupon details."""
    return CouponService(db, gate).get_coupon(principal, coupon_id)


@router.put("/{coupon_id}", response_model=CouponResponse)
def update_coupon(
    coupon_id: int,
    request: CouponUpdate,
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_current_principal),
    gate: AuthorizationGate = Depends(get_authorization_gate),
):
    """Replace a coupon's editable fields."""
    service = CouponService(db, gate)
    try:
        coupon = service.update_coupon(principal, coupon_id, request)
        db.commit()
        return coupon
    except CampaignOpsError:
        db.rollback()
        raise


@router.post("/{coupon_id}/redeem", response_model=CouponResponse)
def redeem_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_current_principal),
    gate: AuthorizationGate = Depends(get_authorization_gate),
):
    """
    Redeem a coupon once.

    The service owns the transaction: it commits on success and
    on expiry detection, and rolls back on every other outcome.
    """
    return RedemptionService(db, gate).redeem(principal, coupon_id)
