"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real database. Tables are created before each test and dropped
after it.
"""

from datetime import timedelta
from decimal import Decimal
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from campaign_ops.authorization import Principal
from campaign_ops.main import app
from campaign_ops.models import Base, Coupon, CouponStatus, Role, User
from campaign_ops.models.base import build_engine, get_db, utcnow


TEST_DATABASE_URL = "sqlite:///./test.db"

# Generous lock wait so concurrent tests queue instead of failing
TEST_LOCK_TIMEOUT_MS = 10000

engine = build_engine(TEST_DATABASE_URL, TEST_LOCK_TIMEOUT_MS)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def session_factory():
    """Independent sessions, one per simulated request."""
    return TestSessionLocal


@pytest.fixture
def client(db_session):
    """Test client whose get_db yields the test session."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def principals(db_session) -> dict[Role, Principal]:
    """One committed user per role."""
    users = {
        role: User(email=f"{role.value}@test.com", name=role.value.title(), role=role)
        for role in Role
    }
    db_session.add_all(users.values())
    db_session.flush()
    result = {role: Principal(id=user.id, role=role) for role, user in users.items()}
    db_session.commit()
    return result


@pytest.fixture
def make_coupon(db_session, principals):
    """
    Insert a coupon directly, bypassing the service.

    Returns the new coupon's id; the row is committed.
    """
    codes = count(1)

    def _make(
        status=CouponStatus.ACTIVE,
        usage_limit=1,
        redemption_count=0,
        expiry_delta=timedelta(days=30),
        created_by=None,
    ) -> int:
        coupon = Coupon(
            coupon_id=f"CPN-TEST-{next(codes)}",
            coupon_code=f"TEST{next(codes):04d}",
            issued_date=utcnow() - timedelta(days=1),
            expiry_date=utcnow() + expiry_delta,
            discount_amount=Decimal("10.00"),
            usage_limit=usage_limit,
            redemption_count=redemption_count,
            status=status,
            created_by=created_by or principals[Role.ADMIN].id,
        )
        db_session.add(coupon)
        db_session.flush()
        coupon_id = coupon.id
        db_session.commit()
        return coupon_id

    return _make
