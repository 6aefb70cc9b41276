"""
Coupon service: administrative create, read and update.

Redemption is not here; it goes through RedemptionService.
Each mutation writes its audit entry before returning, and the
caller commits both together.
"""

import logging
import secrets
import time

from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from campaign_ops.authorization import AuthorizationGate, DEFAULT_GATE, Principal
from campaign_ops.exceptions import (
    CouponNotFoundError,
    CouponValidationError,
    ForbiddenError,
)
from campaign_ops.models.base import utcnow
from campaign_ops.models.coupon import UNLIMITED, Coupon
from campaign_ops.models.enums import CouponStatus
from campaign_ops.permissions import Permission
from campaign_ops.schemas.coupon import CouponCreate, CouponUpdate
from campaign_ops.services.audit_service import (
    AuditService,
    COUPON_RESOURCE,
    snapshot,
)
from campaign_ops.services.coupon_lifecycle import status_after_edit

logger = logging.getLogger(__name__)


def new_coupon_id() -> str:
    """Public reference: millisecond timestamp plus a random suffix."""
    return f"CPN-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"


class CouponService:

    def __init__(self, db: Session, gate: AuthorizationGate = DEFAULT_GATE):
        self.db = db
        self.gate = gate
        self.audit_service = AuditService(db)

    def create_coupon(
        self, principal: Principal | None, request: CouponCreate
    ) -> Coupon:
        """Create an active coupon owned by the principal."""
        self.gate.require(principal, Permission.COUPON_CREATE)

        existing = self.db.execute(
            select(Coupon.id).where(Coupon.coupon_code == request.coupon_code)
        ).scalar_one_or_none()
        if existing is not None:
            raise CouponValidationError("Coupon code already exists")

        coupon = Coupon(
            coupon_id=request.coupon_id or new_coupon_id(),
            coupon_code=request.coupon_code,
            issued_date=request.issued_date,
            expiry_date=request.expiry_date,
            discount_amount=request.discount_amount,
            usage_limit=request.usage_limit,
            redemption_count=0,
            applicable_items=request.applicable_items,
            is_stackable=request.is_stackable,
            status=CouponStatus.ACTIVE,
            campaign_source=request.campaign_source,
            created_by=principal.id,
            remarks=request.remarks,
        )
        self.db.add(coupon)
        try:
            self.db.flush()
        except IntegrityError as exc:
            # Lost a race with another create for the same code or id
            self.db.rollback()
            logger.info("coupon_create_conflict", extra={
                "coupon_code": request.coupon_code,
                "coupon_id": coupon.coupon_id,
            })
            raise CouponValidationError("Coupon code or id already exists") from exc

        self.audit_service.log_create(
            principal, COUPON_RESOURCE, coupon.id,
            snapshot(COUPON_RESOURCE, coupon),
        )
        return coupon

    def get_coupon(self, principal: Principal | None, coupon_id: int) -> Coupon:
        self.gate.require(principal, Permission.COUPON_READ)
        coupon = self.db.get(Coupon, coupon_id)
        if not coupon:
            raise CouponNotFoundError(coupon_id)
        return coupon

    def list_coupons(
        self,
        principal: Principal | None,
        search: str | None = None,
        status: CouponStatus | None = None,
        limit: int = 100,
    ) -> list[Coupon]:
        """Coupons newest first, optionally filtered by code/id text and status."""
        self.gate.require(principal, Permission.COUPON_READ)

        stmt = select(Coupon)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(or_(
                Coupon.coupon_code.ilike(pattern),
                Coupon.coupon_id.ilike(pattern),
            ))
        if status is not None:
            stmt = stmt.where(Coupon.status == status)
        stmt = stmt.order_by(Coupon.created_at.desc(), Coupon.id.desc()).limit(limit)

        return list(self.db.execute(stmt).scalars().all())

    def update_coupon(
        self,
        principal: Principal | None,
        coupon_id: int,
        request: CouponUpdate,
    ) -> Coupon:
        """
        Replace a coupon's editable fields.

        Requires coupon:update plus ownership for marketers. Expiry
        and depletion override the requested status, and a terminal
        coupon cannot be brought back to a live status.
        """
        self.gate.require(principal, Permission.COUPON_UPDATE)

        coupon = self.db.get(Coupon, coupon_id)
        if not coupon:
            raise CouponNotFoundError(coupon_id)
        if not self.gate.can_modify(principal, coupon.created_by):
            raise ForbiddenError(Permission.COUPON_UPDATE, principal.role.value)

        if (
            request.usage_limit != UNLIMITED
            and coupon.redemption_count > request.usage_limit
        ):
            raise CouponValidationError(
                "Redemption count cannot exceed usage limit"
            )

        new_status = status_after_edit(
            request.status or coupon.status,
            request.expiry_date,
            request.usage_limit,
            coupon.redemption_count,
            utcnow(),
        )
        if new_status != coupon.status and not coupon.can_transition_to(new_status):
            raise CouponValidationError(
                f"Cannot transition from {coupon.status.value} "
                f"to {new_status.value}"
            )

        before = snapshot(COUPON_RESOURCE, coupon)

        coupon.issued_date = request.issued_date
        coupon.expiry_date = request.expiry_date
        coupon.discount_amount = request.discount_amount
        coupon.usage_limit = request.usage_limit
        coupon.applicable_items = request.applicable_items
        coupon.is_stackable = request.is_stackable
        coupon.status = new_status
        coupon.campaign_source = request.campaign_source
        coupon.remarks = request.remarks
        self.db.flush()

        self.audit_service.log_update(
            principal, COUPON_RESOURCE, coupon.id,
            before, snapshot(COUPON_RESOURCE, coupon),
        )
        return coupon
