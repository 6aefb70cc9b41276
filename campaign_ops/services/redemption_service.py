"""
Redemption service: the only write path for redeeming coupons.

One call is one unit of work:
1. Check the caller holds coupon:redeem (before any SQL runs)
2. Lock the coupon row (SELECT ... FOR UPDATE)
3. Ask the lifecycle guard what this attempt should do
4. Apply it: count + status + audit entry, all in one commit

Concurrent redeemers of the same coupon queue on the row lock,
which is what keeps redemption_count from passing usage_limit.
Different coupons never wait on each other.

Every exit except success and the expiry correction rolls back
before raising. Nothing is retried here; a LockTimeoutError tells
the caller a retry is safe.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from campaign_ops.authorization import AuthorizationGate, DEFAULT_GATE, Principal
from campaign_ops.config import get_settings
from campaign_ops.exceptions import (
    CouponDepletedError,
    CouponExpiredError,
    CouponInactiveError,
    CouponNotFoundError,
    LockTimeoutError,
    RedemptionInternalError,
    RedemptionRejected,
)
from campaign_ops.models.base import is_lock_timeout, utcnow
from campaign_ops.models.coupon import Coupon
from campaign_ops.models.enums import CouponStatus
from campaign_ops.permissions import Permission
from campaign_ops.services.audit_service import (
    AuditService,
    COUPON_RESOURCE,
    snapshot,
)
from campaign_ops.services.coupon_lifecycle import (
    RedemptionOutcome,
    evaluate_redemption,
)

logger = logging.getLogger(__name__)

_REJECTIONS = {
    RedemptionOutcome.REJECT_EXPIRED: CouponExpiredError,
    RedemptionOutcome.REJECT_DEPLETED: CouponDepletedError,
    RedemptionOutcome.REJECT_INACTIVE: CouponInactiveError,
}


class RedemptionService:
    """
    Coordinates one redemption per call.

    The service commits and rolls back the session it is given,
    so callers should hand it a session with no pending work.
    """

    def __init__(
        self,
        db: Session,
        gate: AuthorizationGate = DEFAULT_GATE,
        clock: Callable[[], datetime] = utcnow,
        lock_timeout_ms: int | None = None,
    ):
        self.db = db
        self.gate = gate
        self.clock = clock
        self.lock_timeout_ms = (
            lock_timeout_ms
            if lock_timeout_ms is not None
            else get_settings().LOCK_TIMEOUT_MS
        )
        self.audit_service = AuditService(db)

    def redeem(self, principal: Principal | None, coupon_id: int) -> Coupon:
        """
        Redeem a coupon once on behalf of ``principal``.

        Returns the updated coupon. Raises UnauthenticatedError or
        ForbiddenError without opening a transaction, a
        RedemptionRejected subclass for expected business outcomes,
        LockTimeoutError when the row stayed locked too long, and
        RedemptionInternalError for anything else.
        """
        self.gate.require(principal, Permission.COUPON_REDEEM)

        try:
            return self._redeem_locked(principal, coupon_id)
        except RedemptionRejected:
            raise
        except OperationalError as exc:
            self.db.rollback()
            if is_lock_timeout(exc):
                logger.warning(
                    "coupon_lock_timeout",
                    extra={"coupon_id": coupon_id, "user_id": principal.id},
                )
                raise LockTimeoutError(coupon_id) from exc
            logger.exception(
                "coupon_redeem_failed",
                extra={"coupon_id": coupon_id, "user_id": principal.id},
            )
            raise RedemptionInternalError() from exc
        except Exception as exc:
            self.db.rollback()
            logger.exception(
                "coupon_redeem_failed",
                extra={"coupon_id": coupon_id, "user_id": principal.id},
            )
            raise RedemptionInternalError() from exc
        except BaseException:
            # Cancelled mid-flight: nothing may stay half-written
            self.db.rollback()
            raise

    def _redeem_locked(self, principal: Principal, coupon_id: int) -> Coupon:
        self._set_lock_timeout()
        coupon = self._lock_coupon(coupon_id)

        if coupon is None:
            self.db.rollback()
            logger.info("coupon_redeem_rejected", extra={
                "coupon_id": coupon_id, "reason": "not_found",
            })
            raise CouponNotFoundError(coupon_id)

        decision = evaluate_redemption(coupon, self.clock())

        if decision.outcome is RedemptionOutcome.FORCE_EXPIRE:
            # The status correction commits even though the
            # redemption itself is refused.
            before = snapshot(COUPON_RESOURCE, coupon)
            coupon.status = CouponStatus.EXPIRED
            self.db.flush()
            self.audit_service.log_update(
                principal, COUPON_RESOURCE, coupon.id,
                before, snapshot(COUPON_RESOURCE, coupon),
            )
            self.db.commit()
            logger.info("coupon_redeem_rejected", extra={
                "coupon_id": coupon_id, "reason": "expired_on_attempt",
            })
            raise CouponExpiredError(coupon_id)

        if not decision.accepted:
            self.db.rollback()
            logger.info("coupon_redeem_rejected", extra={
                "coupon_id": coupon_id, "reason": decision.outcome.value,
            })
            raise _REJECTIONS[decision.outcome](coupon_id)

        before = snapshot(COUPON_RESOURCE, coupon)
        coupon.redemption_count = decision.new_redemption_count
        coupon.status = decision.new_status
        self.db.flush()

        self.audit_service.log_redeem(
            principal, COUPON_RESOURCE, coupon.id,
            before, snapshot(COUPON_RESOURCE, coupon),
        )
        self.db.commit()

        logger.info("coupon_redeemed", extra={
            "coupon_id": coupon_id,
            "user_id": principal.id,
            "redemption_count": decision.new_redemption_count,
            "status": decision.new_status.value,
        })
        return coupon

    def _set_lock_timeout(self) -> None:
        """Bound the row-lock wait. SQLite uses its busy timeout instead."""
        if self.db.get_bind().dialect.name == "postgresql":
            self.db.execute(
                text(f"SET LOCAL lock_timeout = {int(self.lock_timeout_ms)}")
            )

    def _lock_coupon(self, coupon_id: int) -> Coupon | None:
        # populate_existing: a row already in the identity map must be
        # re-read under the lock, not served from a stale snapshot.
        return self.db.execute(
            select(Coupon)
            .where(Coupon.id == coupon_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
