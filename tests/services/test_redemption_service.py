"""
Tests for the RedemptionService.

Covers the scenarios that matter most for redemption: usage
limits under concurrency, lazy expiry, rejection idempotence,
audit atomicity, and rollback on every failure path.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from campaign_ops.authorization import Principal
from campaign_ops.exceptions import (
    CouponDepletedError,
    CouponExpiredError,
    CouponInactiveError,
    CouponNotFoundError,
    ForbiddenError,
    LockTimeoutError,
    RedemptionError,
    RedemptionInternalError,
    UnauthenticatedError,
)
from campaign_ops.models.audit_log import AuditLog
from campaign_ops.models.base import build_engine
from campaign_ops.models.coupon import Coupon
from campaign_ops.models.enums import CouponStatus, Role
from campaign_ops.services.audit_service import AuditService, COUPON_RESOURCE
from campaign_ops.services.redemption_service import RedemptionService


def load_coupon(db_session, coupon_id) -> Coupon:
    db_session.expire_all()
    return db_session.get(Coupon, coupon_id)


def audit_entries(db_session, coupon_id) -> list[AuditLog]:
    return AuditService(db_session).history(COUPON_RESOURCE, coupon_id)


# --- Successful Redemption ---

class TestRedeem:

    def test_single_use_coupon_depletes(self, db_session, principals, make_coupon):
        coupon_id = make_coupon(usage_limit=1)
        service = RedemptionService(db_session)

        coupon = service.redeem(principals[Role.MARKETER], coupon_id)

        assert coupon.status == CouponStatus.DEPLETED
        assert coupon.redemption_count == 1

    def test_unlimited_coupon_stays_active(self, db_session, principals, make_coupon):
        coupon_id = make_coupon(usage_limit=-1)
        service = RedemptionService(db_session)

        for _ in range(3):
            coupon = service.redeem(principals[Role.ADMIN], coupon_id)

        assert coupon.status == CouponStatus.ACTIVE
        assert coupon.redemption_count == 3

    def test_writes_one_audit_entry_with_diff(self, db_session, principals, make_coupon):
        coupon_id = make_coupon(usage_limit=1)
        marketer = principals[Role.MARKETER]

        RedemptionService(db_session).redeem(marketer, coupon_id)

        entries = audit_entries(db_session, coupon_id)
        assert len(entries) == 1
        entry = entries[0]
        assert entry.action == "REDEEM"
        assert entry.user_id == marketer.id
        assert entry.changes == {
            "redemption_count": {"old": 0, "new": 1},
            "status": {"old": "active", "new": "depleted"},
        }

    def test_unchanged_status_absent_from_audit(self, db_session, principals, make_coupon):
        coupon_id = make_coupon(usage_limit=5)

        RedemptionService(db_session).redeem(principals[Role.ADMIN], coupon_id)

        entry = audit_entries(db_session, coupon_id)[0]
        assert entry.changes == {"redemption_count": {"old": 0, "new": 1}}


# --- Rejections ---

class TestRejections:

    def test_second_redeem_of_depleted_coupon(self, db_session, principals, make_coupon):
        coupon_id = make_coupon(usage_limit=1)
        service = RedemptionService(db_session)
        service.redeem(principals[Role.MARKETER], coupon_id)

        with pytest.raises(CouponDepletedError) as exc_info:
            service.redeem(principals[Role.MARKETER], coupon_id)

        assert exc_info.value.code == "Depleted"
        coupon = load_coupon(db_session, coupon_id)
        assert coupon.redemption_count == 1
        assert coupon.status == CouponStatus.DEPLETED

    def test_missing_coupon(self, db_session, principals):
        with pytest.raises(CouponNotFoundError):
            RedemptionService(db_session).redeem(principals[Role.ADMIN], 999)

    def test_inactive_coupon(self, db_session, principals, make_coupon):
        coupon_id = make_coupon(status=CouponStatus.INACTIVE)

        with pytest.raises(CouponInactiveError):
            RedemptionService(db_session).redeem(principals[Role.ADMIN], coupon_id)

        coupon = load_coupon(db_session, coupon_id)
        assert coupon.status == CouponStatus.INACTIVE
        assert coupon.redemption_count == 0
        assert audit_entries(db_session, coupon_id) == []

    def test_rejections_are_repeatable_and_silent(self, db_session, principals, make_coupon):
        coupon_id = make_coupon(usage_limit=1)
        service = RedemptionService(db_session)
        service.redeem(principals[Role.ADMIN], coupon_id)

        for _ in range(5):
            with pytest.raises(CouponDepletedError):
                service.redeem(principals[Role.ADMIN], coupon_id)

        assert load_coupon(db_session, coupon_id).redemption_count == 1
        assert len(audit_entries(db_session, coupon_id)) == 1


# --- Lazy Expiry ---

class TestExpiry:

    def test_first_attempt_commits_expired_status(self, db_session, principals, make_coupon):
        coupon_id = make_coupon(expiry_delta=timedelta(days=-1))

        with pytest.raises(CouponExpiredError):
            RedemptionService(db_session).redeem(principals[Role.ADMIN], coupon_id)

        coupon = load_coupon(db_session, coupon_id)
        assert coupon.status == CouponStatus.EXPIRED
        assert coupon.redemption_count == 0

        entries = audit_entries(db_session, coupon_id)
        assert len(entries) == 1
        assert entries[0].action == "UPDATE"
        assert entries[0].changes == {
            "status": {"old": "active", "new": "expired"},
        }

    def test_second_attempt_changes_nothing(self, db_session, principals, make_coupon):
        coupon_id = make_coupon(expiry_delta=timedelta(days=-1))
        service = RedemptionService(db_session)

        with pytest.raises(CouponExpiredError):
            service.redeem(principals[Role.ADMIN], coupon_id)
        with pytest.raises(CouponExpiredError):
            service.redeem(principals[Role.ADMIN], coupon_id)

        assert load_coupon(db_session, coupon_id).status == CouponStatus.EXPIRED
        assert len(audit_entries(db_session, coupon_id)) == 1

    def test_expiry_beats_depletion(self, db_session, principals, make_coupon):
        coupon_id = make_coupon(
            usage_limit=1, redemption_count=1, expiry_delta=timedelta(days=-1)
        )

        with pytest.raises(CouponExpiredError):
            RedemptionService(db_session).redeem(principals[Role.ADMIN], coupon_id)

        assert load_coupon(db_session, coupon_id).status == CouponStatus.EXPIRED

    def test_injected_clock(self, db_session, principals, make_coupon):
        coupon_id = make_coupon(expiry_delta=timedelta(days=2))
        coupon = load_coupon(db_session, coupon_id)
        later = coupon.expiry_date + timedelta(minutes=1)

        service = RedemptionService(db_session, clock=lambda: later)
        with pytest.raises(CouponExpiredError):
            service.redeem(principals[Role.ADMIN], coupon_id)


# --- Authorization ---

class TestAuthorization:

    def test_analyst_forbidden_before_any_sql(self, principals):
        db = MagicMock()
        service = RedemptionService(db)

        with pytest.raises(ForbiddenError):
            service.redeem(principals[Role.ANALYST], 1)

        db.execute.assert_not_called()
        db.commit.assert_not_called()
        db.rollback.assert_not_called()

    def test_missing_principal_unauthenticated(self):
        db = MagicMock()

        with pytest.raises(UnauthenticatedError):
            RedemptionService(db).redeem(None, 1)

        db.execute.assert_not_called()

    def test_forbidden_leaves_coupon_untouched(self, db_session, principals, make_coupon):
        coupon_id = make_coupon()

        with pytest.raises(ForbiddenError):
            RedemptionService(db_session).redeem(principals[Role.ANALYST], coupon_id)

        assert load_coupon(db_session, coupon_id).redemption_count == 0


# --- Failure Paths ---

class TestFailures:

    def test_audit_failure_rolls_back_redemption(
        self, db_session, principals, make_coupon, monkeypatch
    ):
        coupon_id = make_coupon(usage_limit=3)

        def broken_append(*args, **kwargs):
            raise RuntimeError("audit table unavailable")

        monkeypatch.setattr(AuditService, "append", broken_append)

        with pytest.raises(RedemptionInternalError) as exc_info:
            RedemptionService(db_session).redeem(principals[Role.ADMIN], coupon_id)

        assert "audit table" not in str(exc_info.value)
        monkeypatch.undo()
        coupon = load_coupon(db_session, coupon_id)
        assert coupon.redemption_count == 0
        assert coupon.status == CouponStatus.ACTIVE

    def test_cancellation_rolls_back(
        self, db_session, principals, make_coupon, monkeypatch
    ):
        coupon_id = make_coupon(usage_limit=3)

        def cancelled(*args, **kwargs):
            raise KeyboardInterrupt

        monkeypatch.setattr(AuditService, "append", cancelled)

        with pytest.raises(KeyboardInterrupt):
            RedemptionService(db_session).redeem(principals[Role.ADMIN], coupon_id)

        monkeypatch.undo()
        assert load_coupon(db_session, coupon_id).redemption_count == 0

    def test_lock_timeout_is_retryable(self, db_session, principals, make_coupon):
        coupon_id = make_coupon(usage_limit=3)
        db_session.close()

        # A separate engine with a short wait, so the test is quick
        impatient_engine = build_engine("sqlite:///./test.db", lock_timeout_ms=100)
        ImpatientSession = sessionmaker(bind=impatient_engine)

        holder = ImpatientSession()
        try:
            holder.execute(
                select(Coupon).where(Coupon.id == coupon_id).with_for_update()
            )
            waiter = ImpatientSession()
            try:
                with pytest.raises(LockTimeoutError) as exc_info:
                    RedemptionService(waiter, lock_timeout_ms=100).redeem(
                        principals[Role.ADMIN], coupon_id
                    )
                assert exc_info.value.retryable
            finally:
                waiter.close()
        finally:
            holder.rollback()
            holder.close()
            impatient_engine.dispose()

        assert load_coupon(db_session, coupon_id).redemption_count == 0


# --- Concurrency ---

class TestConcurrentRedemption:

    def _redeem_concurrently(self, session_factory, principal, coupon_id, attempts):
        barrier = threading.Barrier(attempts)

        def attempt():
            barrier.wait()
            with session_factory() as session:
                try:
                    RedemptionService(session).redeem(principal, coupon_id)
                    return "Ok"
                except RedemptionError as exc:
                    return exc.code

        with ThreadPoolExecutor(max_workers=attempts) as pool:
            futures = [pool.submit(attempt) for _ in range(attempts)]
            return [f.result() for f in futures]

    def test_usage_limit_never_exceeded(
        self, db_session, session_factory, principals, make_coupon
    ):
        coupon_id = make_coupon(usage_limit=3)
        principal = principals[Role.MARKETER]
        # Release the test session's connection before the workers start
        db_session.close()

        results = self._redeem_concurrently(session_factory, principal, coupon_id, 8)

        assert results.count("Ok") == 3
        assert results.count("Depleted") == 5

        coupon = load_coupon(db_session, coupon_id)
        assert coupon.redemption_count == 3
        assert coupon.status == CouponStatus.DEPLETED

        redeem_entries = db_session.execute(
            select(func.count()).select_from(AuditLog).where(
                AuditLog.resource_id == str(coupon_id),
                AuditLog.action == "REDEEM",
            )
        ).scalar()
        assert redeem_entries == 3

    def test_different_coupons_do_not_interfere(
        self, db_session, session_factory, principals, make_coupon
    ):
        first = make_coupon(usage_limit=-1)
        second = make_coupon(usage_limit=-1)
        principal = principals[Role.ADMIN]
        db_session.close()

        barrier = threading.Barrier(6)

        def attempt(coupon_id):
            barrier.wait()
            with session_factory() as session:
                RedemptionService(session).redeem(principal, coupon_id)

        with ThreadPoolExecutor(max_workers=6) as pool:
            futures = [pool.submit(attempt, cid) for cid in (first, second) * 3]
            for future in futures:
                future.result()

        assert load_coupon(db_session, first).redemption_count == 3
        assert load_coupon(db_session, second).redemption_count == 3
